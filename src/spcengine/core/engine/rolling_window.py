"""Bounded trailing window of charted points with zone classification.

Rule evaluation only ever looks at the most recent points, so each engine
pass threads a small immutable window through its fold instead of keeping
the full history. Appending returns a new window; the oldest point is
evicted once max_size is reached (FIFO).

Zones are defined per point, relative to that point's center line and
the zone sigma the chart supplies for that point:
- Beyond UCL/LCL: outside the point's control limits
- Zone A: between 2 sigma and the control limit
- Zone B: between 1 sigma and 2 sigma
- Zone C: between the center line and 1 sigma
"""

from dataclasses import dataclass
from enum import Enum


class Zone(Enum):
    """Zone classification for a charted point."""
    BEYOND_UCL = "beyond_ucl"      # above UCL
    ZONE_A_UPPER = "zone_a_upper"  # 2 sigma to UCL above
    ZONE_B_UPPER = "zone_b_upper"  # 1-2 sigma above
    ZONE_C_UPPER = "zone_c_upper"  # 0-1 sigma above
    ZONE_C_LOWER = "zone_c_lower"  # 0-1 sigma below
    ZONE_B_LOWER = "zone_b_lower"  # 1-2 sigma below
    ZONE_A_LOWER = "zone_a_lower"  # 2 sigma to LCL below
    BEYOND_LCL = "beyond_lcl"      # below LCL


UPPER_ZONES = frozenset({Zone.ZONE_C_UPPER, Zone.ZONE_B_UPPER, Zone.ZONE_A_UPPER, Zone.BEYOND_UCL})
LOWER_ZONES = frozenset({Zone.ZONE_C_LOWER, Zone.ZONE_B_LOWER, Zone.ZONE_A_LOWER, Zone.BEYOND_LCL})


def classify_zone(
    value: float,
    center_line: float,
    sigma: float,
    ucl: float,
    lcl: float,
) -> Zone:
    """Classify a charted value into a zone.

    The control limits take precedence over the sigma bands, so with
    narrow limits (L <= 2) Zone A is empty rather than overlapping the
    out-of-control region.

    Args:
        value: Charted statistic (e.g. the EWMA)
        center_line: Center line at this point
        sigma: Zone sigma at this point
        ucl: Upper control limit at this point
        lcl: Lower control limit at this point

    Returns:
        Zone of the value
    """
    if value > ucl:
        return Zone.BEYOND_UCL
    if value < lcl:
        return Zone.BEYOND_LCL
    if value >= center_line:
        if value >= center_line + 2 * sigma:
            return Zone.ZONE_A_UPPER
        if value >= center_line + sigma:
            return Zone.ZONE_B_UPPER
        return Zone.ZONE_C_UPPER
    if value <= center_line - 2 * sigma:
        return Zone.ZONE_A_LOWER
    if value <= center_line - sigma:
        return Zone.ZONE_B_LOWER
    return Zone.ZONE_C_LOWER


@dataclass(frozen=True)
class WindowPoint:
    """A charted point held in a trailing window.

    Attributes:
        index: Ordinal of the underlying measurement
        value: Charted statistic at this point
        center_line: Center line at this point
        sigma: Zone sigma at this point
        ucl: Upper control limit at this point
        lcl: Lower control limit at this point
        zone: Zone classification of value
    """
    index: int
    value: float
    center_line: float
    sigma: float
    ucl: float
    lcl: float
    zone: Zone

    @property
    def is_above_center(self) -> bool:
        """True if the value lies strictly above the center line."""
        return self.value > self.center_line

    @property
    def is_below_center(self) -> bool:
        """True if the value lies strictly below the center line."""
        return self.value < self.center_line


@dataclass(frozen=True)
class TrailingWindow:
    """Immutable fixed-size window of recent points, oldest first.

    Args:
        max_size: Maximum number of points to retain
    """
    max_size: int
    points: tuple[WindowPoint, ...] = ()

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {self.max_size}")

    def append(self, point: WindowPoint) -> "TrailingWindow":
        """Return a new window with point added, evicting the oldest if full."""
        points = self.points + (point,)
        if len(points) > self.max_size:
            points = points[-self.max_size:]
        return TrailingWindow(max_size=self.max_size, points=points)

    def get_samples(self) -> list[WindowPoint]:
        """Return all points in chronological order (oldest first)."""
        return list(self.points)

    def get_recent(self, n: int) -> list[WindowPoint]:
        """Return up to the last n points, newest first."""
        return list(reversed(self.points[-n:]))

    def __len__(self) -> int:
        return len(self.points)


class Trend(Enum):
    """Short-term direction of a charted series."""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


# Slopes within +/- this fraction of process sigma count as stable
TREND_SLOPE_FACTOR = 0.1


def classify_trend(slope: float, sigma: float) -> Trend:
    """Classify an average per-point slope relative to process sigma."""
    if slope > TREND_SLOPE_FACTOR * sigma:
        return Trend.INCREASING
    if slope < -TREND_SLOPE_FACTOR * sigma:
        return Trend.DECREASING
    return Trend.STABLE
