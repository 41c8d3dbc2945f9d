"""Descriptive statistics for SPC calculations.

This module provides functions for:
- Descriptive statistics (mean, sample variance, quartiles, IQR)
- Process parameter estimation (sample or moving-range sigma)
- Empirical run length over a sequence of out-of-control flags
"""

from dataclasses import dataclass
from typing import Literal, Sequence

import numpy as np
import structlog

from spcengine.core.exceptions import EmptyInputError, InvalidConfigError

logger = structlog.get_logger(__name__)

# d2 bias-correction factor for moving ranges of span 2 (ASTM E2587)
D2_SPAN_2 = 1.128

EstimationMethod = Literal["sample", "moving_range"]


@dataclass(frozen=True)
class StatisticsResult:
    """Descriptive statistics of a value sequence.

    Attributes:
        mean: Arithmetic mean
        std_dev: Sample standard deviation (Bessel-corrected, n-1)
        variance: Sample variance (n-1); 0.0 by convention when count == 1
        min: Smallest value
        max: Largest value
        range: max - min
        count: Number of values
        median: Middle value (mean of the two middle values for even count)
        q1: First quartile, sorted[floor(0.25 * n)]
        q3: Third quartile, sorted[floor(0.75 * n)]
        iqr: q3 - q1
    """
    mean: float
    std_dev: float
    variance: float
    min: float
    max: float
    range: float
    count: int
    median: float
    q1: float
    q3: float
    iqr: float


def compute_statistics(values: Sequence[float]) -> StatisticsResult:
    """Compute descriptive statistics for a sequence of values.

    Quartiles use index-based selection on a sorted copy rather than
    interpolation, so q1 and q3 are always members of the input.

    Args:
        values: Finite measurement values (input order is not modified)

    Returns:
        StatisticsResult for the values

    Raises:
        EmptyInputError: If values is empty

    Examples:
        >>> stats = compute_statistics([10, 11, 9, 10, 11, 1000])
        >>> stats.q1, stats.q3, stats.iqr
        (10.0, 11.0, 1.0)
    """
    if len(values) == 0:
        raise EmptyInputError("Statistics require at least one value")

    arr = np.asarray(values, dtype=np.float64)
    ordered = np.sort(arr)
    n = len(ordered)

    if ordered[0] == ordered[-1]:
        # Zero range means zero spread, also for a single value; np.mean
        # can be off by an ulp here
        mean = float(ordered[0])
        variance = 0.0
    else:
        mean = float(np.mean(arr))
        variance = float(np.var(arr, ddof=1))
    std_dev = float(np.sqrt(variance))

    q1 = float(ordered[n // 4])
    q3 = float(ordered[(3 * n) // 4])
    middle = n // 2
    if n % 2 == 0:
        median = float((ordered[middle - 1] + ordered[middle]) / 2)
    else:
        median = float(ordered[middle])

    minimum = float(ordered[0])
    maximum = float(ordered[-1])

    return StatisticsResult(
        mean=mean,
        std_dev=std_dev,
        variance=variance,
        min=minimum,
        max=maximum,
        range=maximum - minimum,
        count=n,
        median=median,
        q1=q1,
        q3=q3,
        iqr=q3 - q1,
    )


def estimate_sigma_moving_range(values: Sequence[float], span: int = 2) -> float:
    """Estimate process sigma for individuals using the moving range method.

    Only span 2 is supported since it is the only span with a tabulated d2
    in this engine; it is also by far the most common choice.

    Args:
        values: Individual measurements in acquisition order
        span: Number of consecutive values per range (must be 2)

    Returns:
        MR-bar / d2

    Raises:
        InvalidConfigError: If span is not 2
        EmptyInputError: If fewer than two values are given

    Examples:
        >>> values = [10, 12, 11, 13, 10]
        >>> estimate_sigma_moving_range(values)
        1.773...
    """
    if span != 2:
        raise InvalidConfigError(f"Moving range span must be 2, got {span}")

    if len(values) < span:
        raise EmptyInputError(
            f"Need at least {span} values for moving range calculation, got {len(values)}"
        )

    arr = np.asarray(values, dtype=np.float64)
    mr_bar = float(np.mean(np.abs(np.diff(arr))))
    return mr_bar / D2_SPAN_2


def estimate_process_parameters(
    values: Sequence[float],
    method: EstimationMethod = "sample",
) -> tuple[float, float]:
    """Estimate (target, sigma) from historical data to seed a monitoring config.

    Args:
        values: Historical in-control measurements
        method: "sample" uses the sample standard deviation,
            "moving_range" uses MR-bar / d2

    Returns:
        Tuple of (mean, sigma)

    Raises:
        EmptyInputError: If values is empty (or has < 2 values for moving range)
        InvalidConfigError: If method is unknown
    """
    stats = compute_statistics(values)

    if method == "sample":
        sigma = stats.std_dev
    elif method == "moving_range":
        sigma = estimate_sigma_moving_range(values)
    else:
        raise InvalidConfigError(f"Unknown sigma estimation method: {method!r}")

    if sigma == 0.0:
        logger.warning("zero_sigma_estimate", method=method, count=stats.count)

    return stats.mean, sigma


def empirical_run_length(out_of_control: Sequence[bool]) -> float:
    """Average number of points per completed run.

    The realized sequence is segmented at out-of-control points; each
    segment ends with (and includes) a signalling point. The in-control
    tail after the last signal is not a completed run and is ignored.
    This is an empirical figure for the given data, not a theoretical ARL.

    Args:
        out_of_control: Per-point out-of-control flags in sequence order

    Returns:
        Mean completed-run length; the sequence length when nothing
        signalled; 0.0 for an empty sequence
    """
    runs = _completed_runs(out_of_control)
    if not runs:
        return float(len(out_of_control))
    return sum(runs) / len(runs)


def _completed_runs(out_of_control: Sequence[bool]) -> list[int]:
    runs = []
    current = 0
    for flag in out_of_control:
        current += 1
        if flag:
            runs.append(current)
            current = 0
    return runs


def count_completed_runs(out_of_control: Sequence[bool]) -> int:
    """Number of runs terminated by an out-of-control point."""
    return len(_completed_runs(out_of_control))
