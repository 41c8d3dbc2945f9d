"""Process capability indices against specification limits.

    Cp  = (USL - LSL) / (6 * sigma)
    Cpk = min(USL - mean, mean - LSL) / (3 * sigma)
    Cpm = (USL - LSL) / (6 * sqrt(sigma^2 + (mean - target)^2))

Pp and Ppk use the same formulas with a long-term sigma, approximated as a
fixed multiple (default 1.5) of the sample sigma. This is a heuristic, not
an estimate from rational subgroups.

A zero sigma makes every index unbounded; such a process is reported as
degenerate with indices capped at CAPABILITY_CAP.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import structlog

from spcengine.core.config import get_settings
from spcengine.core.exceptions import InvalidConfigError, InvalidSpecError
from spcengine.utils.statistics import compute_statistics

logger = structlog.get_logger(__name__)

CAPABILITY_CAP = 999.0

MAX_SIGMA_LEVEL = 6.0


class CapabilityLevel(Enum):
    """Qualitative capability grade derived from Cpk."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


# Lower Cpk bound of each grade, best first
_LEVEL_THRESHOLDS = (
    (2.0, CapabilityLevel.EXCELLENT),
    (1.33, CapabilityLevel.GOOD),
    (1.0, CapabilityLevel.FAIR),
)


@dataclass(frozen=True)
class ProcessCapability:
    """Capability of a process relative to its specification limits.

    Attributes:
        cp: Potential capability (spread only)
        cpk: Actual capability (spread and centering)
        cpm: Taguchi capability around target, None when no target is given
        pp: Long-term potential capability
        ppk: Long-term actual capability
        mean: Sample mean
        std_dev: Sample standard deviation
        process_spread: 6 * std_dev
        spec_spread: USL - LSL
        is_degenerate: True when std_dev is 0 and indices are capped
        level: Grade from Cpk
        sigma_level: min(3 * Cpk, 6)
    """
    cp: float
    cpk: float
    cpm: float | None
    pp: float
    ppk: float
    mean: float
    std_dev: float
    process_spread: float
    spec_spread: float
    is_degenerate: bool
    level: CapabilityLevel
    sigma_level: float


def classify_capability(cpk: float) -> CapabilityLevel:
    """Grade a Cpk value: excellent >= 2.0, good >= 1.33, fair >= 1.0, else poor."""
    for lower_bound, level in _LEVEL_THRESHOLDS:
        if cpk >= lower_bound:
            return level
    return CapabilityLevel.POOR


def _spread_index(spec_spread: float, sigma: float) -> float:
    if sigma == 0.0:
        return CAPABILITY_CAP
    return spec_spread / (6 * sigma)


def _centering_index(mean: float, lsl: float, usl: float, sigma: float) -> float:
    if sigma == 0.0:
        # Unbounded; the sign records whether the mean is inside the limits
        return CAPABILITY_CAP if lsl <= mean <= usl else -CAPABILITY_CAP
    return min((usl - mean) / (3 * sigma), (mean - lsl) / (3 * sigma))


def compute_process_capability(
    values: Sequence[float],
    lsl: float,
    usl: float,
    target: float | None = None,
    long_term_factor: float | None = None,
) -> ProcessCapability:
    """Compute Cp, Cpk, Cpm, Pp and Ppk for a set of measurements.

    Args:
        values: Finite measurement values
        lsl: Lower specification limit
        usl: Upper specification limit, must exceed lsl
        target: Nominal value for Cpm; Cpm is omitted when None
        long_term_factor: Long-term sigma multiplier for Pp/Ppk
            (defaults to the long_term_sigma_factor setting)

    Returns:
        ProcessCapability for the values

    Raises:
        InvalidSpecError: If usl <= lsl or either limit is not finite
        InvalidConfigError: If long_term_factor is not positive
        EmptyInputError: If values is empty

    Examples:
        >>> cap = compute_process_capability([98, 100, 102, 100], lsl=90, usl=110)
        >>> cap.level
        <CapabilityLevel.EXCELLENT: 'excellent'>
    """
    if not (math.isfinite(lsl) and math.isfinite(usl)):
        raise InvalidSpecError(f"Specification limits must be finite, got LSL={lsl}, USL={usl}")
    if usl <= lsl:
        raise InvalidSpecError(f"USL ({usl}) must be greater than LSL ({lsl})")

    if long_term_factor is None:
        long_term_factor = get_settings().long_term_sigma_factor
    if not long_term_factor > 0:
        raise InvalidConfigError(f"long_term_factor must be positive, got {long_term_factor}")

    stats = compute_statistics(values)
    mean = stats.mean
    sigma = stats.std_dev
    spec_spread = usl - lsl
    long_term_sigma = sigma * long_term_factor
    is_degenerate = sigma == 0.0

    if is_degenerate:
        logger.warning("zero_sigma_capability", count=stats.count, mean=mean)

    cpm = None
    if target is not None:
        offset_sigma = math.sqrt(sigma ** 2 + (mean - target) ** 2)
        cpm = _spread_index(spec_spread, offset_sigma)

    cpk = _centering_index(mean, lsl, usl, sigma)

    capability = ProcessCapability(
        cp=_spread_index(spec_spread, sigma),
        cpk=cpk,
        cpm=cpm,
        pp=_spread_index(spec_spread, long_term_sigma),
        ppk=_centering_index(mean, lsl, usl, long_term_sigma),
        mean=mean,
        std_dev=sigma,
        process_spread=6 * sigma,
        spec_spread=spec_spread,
        is_degenerate=is_degenerate,
        level=classify_capability(cpk),
        sigma_level=min(3 * cpk, MAX_SIGMA_LEVEL),
    )

    logger.debug(
        "capability_computed",
        count=stats.count,
        cp=capability.cp,
        cpk=capability.cpk,
        level=capability.level.value,
    )
    return capability
