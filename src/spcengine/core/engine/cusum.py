"""Two-sided tabular CUSUM (Cumulative Sum) control chart engine.

With K = k * sigma and H = h * sigma (k and h are always given in sigma
units and scaled here, never by the caller):

    C+_i = max(0, C+_{i-1} + (x_i - target) - K)
    C-_i = min(0, C-_{i-1} + (x_i - target) + K)

A point is out of control when C+_i > H or C-_i < -H. Both sides are
evaluated at every step. With fast initial response (FIR) the sums start
from +H/2 and -H/2 instead of 0, which shortens the delay for a shift
present from the first point.

Change points and signal strength are heuristics for operators, not
formal estimators.

Reference: Montgomery, "Introduction to Statistical Quality Control", ch. 9
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import partial
from itertools import accumulate
from typing import Sequence

import structlog

from spcengine.core.config import get_settings
from spcengine.core.engine.rolling_window import Trend, classify_trend
from spcengine.core.exceptions import EmptyInputError, InvalidConfigError
from spcengine.core.measurement import (
    Measurement,
    MeasurementLike,
    as_measurement,
    as_measurements,
)
from spcengine.utils.statistics import count_completed_runs, empirical_run_length

logger = structlog.get_logger(__name__)

HIGH_SIGNAL_FRACTION = 0.8
MEDIUM_SIGNAL_FRACTION = 0.5


class SignalStrength(Enum):
    """Size of the combined cumulative sums relative to H."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class CUSUMConfig:
    """Parameters of a two-sided CUSUM chart.

    Attributes:
        target: In-control process mean
        sigma: In-control process standard deviation, must be > 0
        k: Reference value (allowance) in sigma units, >= 0
        h: Decision interval in sigma units, > 0
        fast_initial_response: Start the sums at +/-H/2 instead of 0

    Raises:
        InvalidConfigError: If any parameter is outside its valid domain
    """
    target: float
    sigma: float
    k: float = 0.5
    h: float = 5.0
    fast_initial_response: bool = False

    def __post_init__(self) -> None:
        if not math.isfinite(self.target):
            raise InvalidConfigError(f"target must be finite, got {self.target}")
        if not (math.isfinite(self.sigma) and self.sigma > 0):
            raise InvalidConfigError(f"sigma must be positive, got {self.sigma}")
        if not (math.isfinite(self.k) and self.k >= 0):
            raise InvalidConfigError(f"k cannot be negative, got {self.k}")
        if not (math.isfinite(self.h) and self.h > 0):
            raise InvalidConfigError(f"h must be positive, got {self.h}")

    @property
    def reference_value(self) -> float:
        """K = k * sigma, in measurement units."""
        return self.k * self.sigma

    @property
    def decision_interval(self) -> float:
        """H = h * sigma, in measurement units."""
        return self.h * self.sigma

    @classmethod
    def from_settings(cls, target: float, sigma: float) -> "CUSUMConfig":
        """Build a config from the SPCENGINE_CUSUM_* settings."""
        settings = get_settings()
        return cls(
            target=target,
            sigma=sigma,
            k=settings.cusum_k,
            h=settings.cusum_h,
            fast_initial_response=settings.cusum_fast_initial_response,
        )


@dataclass(frozen=True)
class CUSUMPoint:
    """A measurement annotated with its CUSUM chart state.

    Attributes:
        index: Ordinal of the measurement
        value: Raw measured value
        timestamp: Measurement timestamp, if known
        sample_size: Measurement sample size, if known
        subgroup: Measurement subgroup, if known
        deviation: value - target
        cusum_high: Upper cumulative sum C+_i (>= 0)
        cusum_low: Lower cumulative sum C-_i (<= 0)
        upper_limit: H
        lower_limit: -H
        is_out_of_control: C+_i > H or C-_i < -H
        change_point: Heuristic flag for a probable process change here
        magnitude: sqrt(C+_i^2 + C-_i^2)
        signal_strength: Magnitude classified against H
        trend: Direction of the raw values over the trailing three points
    """
    index: int
    value: float
    timestamp: datetime | None
    sample_size: int | None
    subgroup: str | None
    deviation: float
    cusum_high: float
    cusum_low: float
    upper_limit: float
    lower_limit: float
    is_out_of_control: bool
    change_point: bool
    magnitude: float
    signal_strength: SignalStrength
    trend: Trend


@dataclass(frozen=True)
class CUSUMState:
    """Accumulator threaded through a CUSUM pass.

    Attributes:
        high: Previous upper sum C+_{i-1}
        low: Previous lower sum C-_{i-1}
        count: Number of points consumed so far
        recent_values: Up to the last three raw values, oldest first
        point: Annotated point produced by the last step, None for the seed
    """
    high: float
    low: float
    count: int
    recent_values: tuple[float, ...] = ()
    point: CUSUMPoint | None = None


@dataclass(frozen=True)
class CUSUMSummary:
    """Aggregate figures for a CUSUM run.

    Attributes:
        count: Number of points
        max_cusum_high: Largest upper sum
        min_cusum_low: Smallest (most negative) lower sum
        out_of_control_count: Points beyond the decision interval
        out_of_control_rate: out_of_control_count / count
        change_point_count: Points flagged as change points
        average_run_length: Empirical run length (see empirical_run_length)
        completed_runs: Number of runs ended by an out-of-control point
        average_magnitude: Mean of the per-point magnitudes
        detection_efficiency: Fraction of points with HIGH signal strength
        stability_index: 1 - (trend changes between consecutive points) / count,
            floored at 0
    """
    count: int
    max_cusum_high: float
    min_cusum_low: float
    out_of_control_count: int
    out_of_control_rate: float
    change_point_count: int
    average_run_length: float
    completed_runs: int
    average_magnitude: float
    detection_efficiency: float
    stability_index: float


def classify_signal(magnitude: float, decision_interval: float) -> SignalStrength:
    """Classify a CUSUM magnitude relative to the decision interval H."""
    if magnitude > HIGH_SIGNAL_FRACTION * decision_interval:
        return SignalStrength.HIGH
    if magnitude > MEDIUM_SIGNAL_FRACTION * decision_interval:
        return SignalStrength.MEDIUM
    return SignalStrength.LOW


def seed_state(config: CUSUMConfig) -> CUSUMState:
    """Initial accumulator: zero sums, or +/-H/2 with fast initial response."""
    head_start = config.decision_interval / 2 if config.fast_initial_response else 0.0
    return CUSUMState(high=head_start, low=-head_start, count=0)


def _is_change_point(
    previous: CUSUMPoint | None,
    high: float,
    low: float,
    is_out_of_control: bool,
    decision_interval: float,
) -> bool:
    # The first point has nothing to change from
    if previous is None:
        return False
    half_h = decision_interval / 2
    return (
        (not previous.is_out_of_control and is_out_of_control)
        or abs(high - previous.cusum_high) > half_h
        or abs(low - previous.cusum_low) > half_h
    )


def _trend(recent_values: tuple[float, ...], sigma: float) -> Trend:
    if len(recent_values) < 3:
        return Trend.STABLE
    slope = (recent_values[-1] - recent_values[0]) / (len(recent_values) - 1)
    return classify_trend(slope, sigma)


def cusum_step(state: CUSUMState, measurement: Measurement, config: CUSUMConfig) -> CUSUMState:
    """Advance a CUSUM pass by one measurement.

    Args:
        state: Accumulator after the previous measurement
        measurement: Next measurement (finite value)
        config: Chart parameters

    Returns:
        New accumulator whose ``point`` is the annotated measurement
    """
    k_value = config.reference_value
    h_value = config.decision_interval

    deviation = measurement.value - config.target
    high = max(0.0, state.high + deviation - k_value)
    low = min(0.0, state.low + deviation + k_value)
    is_out_of_control = high > h_value or low < -h_value

    magnitude = math.sqrt(high * high + low * low)
    recent_values = (state.recent_values + (measurement.value,))[-3:]

    point = CUSUMPoint(
        index=measurement.index,
        value=measurement.value,
        timestamp=measurement.timestamp,
        sample_size=measurement.sample_size,
        subgroup=measurement.subgroup,
        deviation=deviation,
        cusum_high=high,
        cusum_low=low,
        upper_limit=h_value,
        lower_limit=-h_value,
        is_out_of_control=is_out_of_control,
        change_point=_is_change_point(state.point, high, low, is_out_of_control, h_value),
        magnitude=magnitude,
        signal_strength=classify_signal(magnitude, h_value),
        trend=_trend(recent_values, config.sigma),
    )
    return CUSUMState(
        high=high,
        low=low,
        count=state.count + 1,
        recent_values=recent_values,
        point=point,
    )


def compute_cusum(
    measurements: Sequence[MeasurementLike],
    config: CUSUMConfig,
) -> list[CUSUMPoint]:
    """Compute the annotated two-sided CUSUM chart for a full sequence.

    Args:
        measurements: Finite measurements (or plain values) in acquisition
            order; gaps must be interpolated beforehand
        config: Chart parameters

    Returns:
        One CUSUMPoint per measurement, same order; empty for empty input
    """
    items = as_measurements(measurements)
    if not items:
        return []

    states = accumulate(items, partial(cusum_step, config=config), initial=seed_state(config))
    next(states)  # the seed carries no point
    points = [state.point for state in states]

    logger.debug(
        "cusum_computed",
        count=len(points),
        k=config.k,
        h=config.h,
        fir=config.fast_initial_response,
        out_of_control=sum(1 for p in points if p.is_out_of_control),
    )
    return points


def summarize_cusum(points: Sequence[CUSUMPoint]) -> CUSUMSummary:
    """Aggregate a CUSUM chart into run-level figures.

    Raises:
        EmptyInputError: If points is empty
    """
    if not points:
        raise EmptyInputError("Cannot summarize an empty CUSUM chart")

    n = len(points)
    flags = [p.is_out_of_control for p in points]
    out_of_control = sum(flags)
    high_signals = sum(1 for p in points if p.signal_strength == SignalStrength.HIGH)
    trend_changes = sum(1 for prev, cur in zip(points, points[1:]) if cur.trend != prev.trend)

    return CUSUMSummary(
        count=n,
        max_cusum_high=max(p.cusum_high for p in points),
        min_cusum_low=min(p.cusum_low for p in points),
        out_of_control_count=out_of_control,
        out_of_control_rate=out_of_control / n,
        change_point_count=sum(1 for p in points if p.change_point),
        average_run_length=empirical_run_length(flags),
        completed_runs=count_completed_runs(flags),
        average_magnitude=sum(p.magnitude for p in points) / n,
        detection_efficiency=high_signals / n,
        stability_index=max(0.0, 1.0 - trend_changes / n),
    )


@dataclass
class CUSUMMonitor:
    """Incremental CUSUM chart fed one measurement at a time.

    Each update costs O(1) and produces exactly the point compute_cusum()
    would produce at the same position, since both run cusum_step().
    """
    config: CUSUMConfig
    _state: CUSUMState = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._state = seed_state(self.config)

    @property
    def count(self) -> int:
        """Number of measurements consumed."""
        return self._state.count

    @property
    def last_point(self) -> CUSUMPoint | None:
        """Most recent annotated point, None before the first update."""
        return self._state.point

    def update(self, measurement: MeasurementLike) -> CUSUMPoint:
        """Consume the next measurement and return its annotated point."""
        measurement = as_measurement(measurement, self._state.count + 1)
        self._state = cusum_step(self._state, measurement, self.config)
        return self._state.point

    def reset(self) -> None:
        """Discard all history and restart from the seed sums."""
        self._state = seed_state(self.config)
