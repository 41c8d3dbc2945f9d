"""EWMA (Exponentially Weighted Moving Average) control chart engine.

Recurrence, seeded with the target:
    z_0 = mu_0
    z_i = lambda * x_i + (1 - lambda) * z_{i-1}

Control limits at point i (i >= 1):
    time_varying: mu_0 +/- L * sigma * sqrt(lambda / (2 - lambda) * (1 - (1 - lambda)^(2i)))
    fixed:        mu_0 +/- L * sigma * sqrt(lambda / (2 - lambda))

The time-varying limits start narrow and converge to the fixed
(asymptotic) limits. Time-varying limits are the default.

Zones and the 2-sigma band of the run rules are measured in process sigma
by default. ZoneSigma.EWMA measures them in the standard deviation of z_i
instead, which keeps the bands inside the control limits when lambda < 1.

The pass is a fold: ewma_step() maps (state, measurement) to the next
state, and both compute_ewma() and EWMAMonitor drive that same function,
so a point appended incrementally is identical to the batch result.

Reference: Montgomery, "Introduction to Statistical Quality Control", ch. 9
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import partial
from itertools import accumulate
from typing import Sequence

import numpy as np
import structlog

from spcengine.core.config import get_settings
from spcengine.core.engine.rolling_window import (
    TrailingWindow,
    Trend,
    WindowPoint,
    Zone,
    classify_trend,
    classify_zone,
)
from spcengine.core.engine.rules import (
    DEFAULT_ENABLED_RULES,
    MAX_RULE_WINDOW,
    RuleLibrary,
    RuleResult,
    default_rule_library,
)
from spcengine.core.exceptions import EmptyInputError, InvalidConfigError
from spcengine.core.measurement import (
    Measurement,
    MeasurementLike,
    as_measurement,
    as_measurements,
)
from spcengine.utils.statistics import count_completed_runs, empirical_run_length

logger = structlog.get_logger(__name__)


class LimitMode(str, Enum):
    """How EWMA control limits evolve over the sequence."""
    FIXED = "fixed"
    TIME_VARYING = "time_varying"


class ZoneSigma(str, Enum):
    """Which standard deviation the zones and sigma bands are measured in."""
    PROCESS = "process"
    EWMA = "ewma"


@dataclass(frozen=True)
class EWMAConfig:
    """Parameters of an EWMA chart.

    Attributes:
        target: In-control process mean (mu_0), also the center line
        sigma: In-control process standard deviation, must be > 0
        lambda_: Smoothing constant in (0, 1]; 1 reduces to a Shewhart chart
        L: Control limit width in multiples of the EWMA standard deviation
        limit_mode: FIXED or TIME_VARYING control limits
        zone_sigma: PROCESS (sigma) or EWMA (sigma_z,i) for zones and rule bands
        enabled_rules: Run rule IDs to evaluate on the EWMA series

    Raises:
        InvalidConfigError: If any parameter is outside its valid domain
    """
    target: float
    sigma: float
    lambda_: float = 0.2
    L: float = 3.0
    limit_mode: LimitMode = LimitMode.TIME_VARYING
    zone_sigma: ZoneSigma = ZoneSigma.PROCESS
    enabled_rules: frozenset[int] = DEFAULT_ENABLED_RULES

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "limit_mode", LimitMode(self.limit_mode))
        except ValueError:
            raise InvalidConfigError(
                f"limit_mode must be 'fixed' or 'time_varying', got {self.limit_mode!r}"
            ) from None
        try:
            object.__setattr__(self, "zone_sigma", ZoneSigma(self.zone_sigma))
        except ValueError:
            raise InvalidConfigError(
                f"zone_sigma must be 'process' or 'ewma', got {self.zone_sigma!r}"
            ) from None
        object.__setattr__(self, "enabled_rules", frozenset(self.enabled_rules))
        self._validate()

    def _validate(self) -> None:
        if not math.isfinite(self.target):
            raise InvalidConfigError(f"target must be finite, got {self.target}")
        if not (0.0 < self.lambda_ <= 1.0):
            raise InvalidConfigError(f"lambda must be in (0, 1], got {self.lambda_}")
        if not (math.isfinite(self.sigma) and self.sigma > 0):
            raise InvalidConfigError(f"sigma must be positive, got {self.sigma}")
        if not (math.isfinite(self.L) and self.L > 0):
            raise InvalidConfigError(f"L must be positive, got {self.L}")
        unknown = self.enabled_rules - default_rule_library.rule_ids
        if unknown:
            raise InvalidConfigError(
                f"Unknown rule IDs {sorted(unknown)}, available: "
                f"{sorted(default_rule_library.rule_ids)}"
            )

    @classmethod
    def from_settings(cls, target: float, sigma: float) -> "EWMAConfig":
        """Build a config from the SPCENGINE_EWMA_* settings."""
        settings = get_settings()
        return cls(
            target=target,
            sigma=sigma,
            lambda_=settings.ewma_lambda,
            L=settings.ewma_l,
            limit_mode=LimitMode(settings.ewma_limit_mode),
            zone_sigma=ZoneSigma(settings.ewma_zone_sigma),
        )


@dataclass(frozen=True)
class EWMAPoint:
    """A measurement annotated with its EWMA chart state.

    Attributes:
        index: Ordinal of the measurement
        value: Raw measured value
        timestamp: Measurement timestamp, if known
        sample_size: Measurement sample size, if known
        subgroup: Measurement subgroup, if known
        ewma: Smoothed statistic z_i
        ucl: Upper control limit at this point
        lcl: Lower control limit at this point
        center_line: Center line (the target)
        ewma_sigma: Standard deviation of z_i used for the limits
        zone: Zone of z_i relative to center line and the zone sigma
        is_out_of_control: True if z_i lies outside [lcl, ucl]
        violated_rules: IDs of run rules triggered at this point
        violations: Details of the triggered rules
        sigma_level: |z_i - target| / sigma (process sigma units)
        trend: Direction of z over the trailing three points
    """
    index: int
    value: float
    timestamp: datetime | None
    sample_size: int | None
    subgroup: str | None
    ewma: float
    ucl: float
    lcl: float
    center_line: float
    ewma_sigma: float
    zone: Zone
    is_out_of_control: bool
    violated_rules: frozenset[int]
    violations: tuple[RuleResult, ...]
    sigma_level: float
    trend: Trend


@dataclass(frozen=True)
class EWMAState:
    """Accumulator threaded through an EWMA pass.

    Attributes:
        ewma: Previous smoothed value z_{i-1} (the target before any point)
        count: Number of points consumed so far
        window: Trailing window used by the run rules and trend
        point: Annotated point produced by the last step, None for the seed
    """
    ewma: float
    count: int
    window: TrailingWindow
    point: EWMAPoint | None = None


@dataclass(frozen=True)
class EWMASummary:
    """Aggregate figures for an EWMA run.

    Attributes:
        count: Number of points
        out_of_control_count: Points outside their control limits
        out_of_control_rate: out_of_control_count / count
        rule_violation_count: Points with at least one run-rule violation
        average_run_length: Empirical run length (see empirical_run_length)
        completed_runs: Number of runs ended by an out-of-control point
        stability_index: 1 - out_of_control_rate
        ewma_mean: Mean of the EWMA series
        ewma_std_dev: Population standard deviation of the EWMA series
    """
    count: int
    out_of_control_count: int
    out_of_control_rate: float
    rule_violation_count: int
    average_run_length: float
    completed_runs: int
    stability_index: float
    ewma_mean: float
    ewma_std_dev: float


def ewma_sigma_at(config: EWMAConfig, i: int) -> float:
    """Standard deviation of z_i used for the control limits at point i (1-based)."""
    asymptotic = config.lambda_ / (2 - config.lambda_)
    if config.limit_mode == LimitMode.FIXED:
        return config.sigma * math.sqrt(asymptotic)
    decay = 1 - (1 - config.lambda_) ** (2 * i)
    return config.sigma * math.sqrt(asymptotic * decay)


def seed_state(config: EWMAConfig) -> EWMAState:
    """Initial accumulator: z_0 equals the target and no history exists."""
    return EWMAState(
        ewma=config.target,
        count=0,
        window=TrailingWindow(max_size=MAX_RULE_WINDOW),
    )


def _trend(window: TrailingWindow, sigma: float) -> Trend:
    last_3 = window.get_samples()[-3:]
    if len(last_3) < 3:
        return Trend.STABLE
    slopes = [last_3[i].value - last_3[i - 1].value for i in range(1, len(last_3))]
    return classify_trend(sum(slopes) / len(slopes), sigma)


def ewma_step(
    state: EWMAState,
    measurement: Measurement,
    config: EWMAConfig,
    rules: RuleLibrary = default_rule_library,
) -> EWMAState:
    """Advance an EWMA pass by one measurement.

    Args:
        state: Accumulator after the previous measurement
        measurement: Next measurement (finite value)
        config: Chart parameters
        rules: Rule library used for violation detection

    Returns:
        New accumulator whose ``point`` is the annotated measurement
    """
    i = state.count + 1
    z = config.lambda_ * measurement.value + (1 - config.lambda_) * state.ewma

    sigma_z = ewma_sigma_at(config, i)
    ucl = config.target + config.L * sigma_z
    lcl = config.target - config.L * sigma_z

    zone_sigma = sigma_z if config.zone_sigma == ZoneSigma.EWMA else config.sigma
    zone = classify_zone(z, config.target, zone_sigma, ucl, lcl)
    window = state.window.append(WindowPoint(
        index=measurement.index,
        value=z,
        center_line=config.target,
        sigma=zone_sigma,
        ucl=ucl,
        lcl=lcl,
        zone=zone,
    ))

    violations = tuple(rules.check_all(window, config.enabled_rules))

    point = EWMAPoint(
        index=measurement.index,
        value=measurement.value,
        timestamp=measurement.timestamp,
        sample_size=measurement.sample_size,
        subgroup=measurement.subgroup,
        ewma=z,
        ucl=ucl,
        lcl=lcl,
        center_line=config.target,
        ewma_sigma=sigma_z,
        zone=zone,
        is_out_of_control=z > ucl or z < lcl,
        violated_rules=frozenset(v.rule_id for v in violations),
        violations=violations,
        sigma_level=abs(z - config.target) / config.sigma,
        trend=_trend(window, config.sigma),
    )
    return EWMAState(ewma=z, count=i, window=window, point=point)


def compute_ewma(
    measurements: Sequence[MeasurementLike],
    config: EWMAConfig,
) -> list[EWMAPoint]:
    """Compute the annotated EWMA chart for a full sequence.

    Args:
        measurements: Finite measurements (or plain values) in acquisition
            order; gaps must be interpolated beforehand
        config: Chart parameters

    Returns:
        One EWMAPoint per measurement, same order; empty for empty input
    """
    items = as_measurements(measurements)
    if not items:
        return []

    states = accumulate(items, partial(ewma_step, config=config), initial=seed_state(config))
    next(states)  # the seed carries no point
    points = [state.point for state in states]

    logger.debug(
        "ewma_computed",
        count=len(points),
        lambda_=config.lambda_,
        limit_mode=config.limit_mode.value,
        out_of_control=sum(1 for p in points if p.is_out_of_control),
    )
    return points


def summarize_ewma(points: Sequence[EWMAPoint]) -> EWMASummary:
    """Aggregate an EWMA chart into run-level figures.

    Raises:
        EmptyInputError: If points is empty
    """
    if not points:
        raise EmptyInputError("Cannot summarize an empty EWMA chart")

    flags = [p.is_out_of_control for p in points]
    out_of_control = sum(flags)
    rate = out_of_control / len(points)
    ewma_values = np.asarray([p.ewma for p in points], dtype=np.float64)

    return EWMASummary(
        count=len(points),
        out_of_control_count=out_of_control,
        out_of_control_rate=rate,
        rule_violation_count=sum(1 for p in points if p.violated_rules),
        average_run_length=empirical_run_length(flags),
        completed_runs=count_completed_runs(flags),
        stability_index=1.0 - rate,
        ewma_mean=float(np.mean(ewma_values)),
        ewma_std_dev=float(np.std(ewma_values)),
    )


@dataclass
class EWMAMonitor:
    """Incremental EWMA chart fed one measurement at a time.

    Each update costs O(1) and produces exactly the point compute_ewma()
    would produce at the same position, since both run ewma_step().

    Example:
        >>> monitor = EWMAMonitor(EWMAConfig(target=100.0, sigma=5.0))
        >>> point = monitor.update(103.0)
        >>> round(point.ewma, 2)
        100.6
    """
    config: EWMAConfig
    _state: EWMAState = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._state = seed_state(self.config)

    @property
    def count(self) -> int:
        """Number of measurements consumed."""
        return self._state.count

    @property
    def last_point(self) -> EWMAPoint | None:
        """Most recent annotated point, None before the first update."""
        return self._state.point

    def update(self, measurement: MeasurementLike) -> EWMAPoint:
        """Consume the next measurement and return its annotated point."""
        measurement = as_measurement(measurement, self._state.count + 1)
        self._state = ewma_step(self._state, measurement, self.config)
        return self._state.point

    def reset(self) -> None:
        """Discard all history and start again from the target."""
        self._state = seed_state(self.config)
