"""Preprocessing applied upstream of the monitoring engines.

The EWMA and CUSUM engines assume finite input; gaps must be filled with
interpolate_missing() before a sequence is monitored.
"""

import math
from dataclasses import dataclass, field
from typing import Sequence

import structlog

from spcengine.core.config import get_settings
from spcengine.core.exceptions import InvalidConfigError
from spcengine.core.measurement import MeasurementLike, as_measurements

logger = structlog.get_logger(__name__)

MIN_MONITORING_POINTS = 3


@dataclass(frozen=True)
class ValidationReport:
    """Result of validating a measurement sequence before monitoring.

    Attributes:
        is_valid: True when no problems were found
        errors: Human-readable descriptions of each problem
    """
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def _is_valid(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def interpolate_missing(values: Sequence[float | None]) -> list[float | None]:
    """Fill interior gaps by linear interpolation between valid neighbours.

    A gap is a None or non-finite value. For each interior gap the nearest
    valid values to the left and right are located and the gap receives
    the value on the straight line between them. A gap with a valid
    neighbour on only one side, which includes every gap at either end of
    the sequence, is returned unmodified; callers must trim or fill those
    explicitly.

    Args:
        values: Values in acquisition order

    Returns:
        A new list of the same length

    Examples:
        >>> interpolate_missing([1.0, float("nan"), 3.0])
        [1.0, 2.0, 3.0]
    """
    result = list(values)
    n = len(result)

    for i in range(1, n - 1):
        if _is_valid(result[i]):
            continue

        prev_index = i - 1
        while prev_index >= 0 and not _is_valid(values[prev_index]):
            prev_index -= 1

        next_index = i + 1
        while next_index < n and not _is_valid(values[next_index]):
            next_index += 1

        if prev_index < 0 or next_index >= n:
            continue

        prev_value = values[prev_index]
        next_value = values[next_index]
        ratio = (i - prev_index) / (next_index - prev_index)
        result[i] = prev_value + ratio * (next_value - prev_value)

    unresolved = sum(1 for v in result if not _is_valid(v))
    if unresolved:
        logger.warning("unresolved_gaps_after_interpolation", count=unresolved, length=n)

    return result


def smooth(values: Sequence[float], window_size: int | None = None) -> list[float]:
    """Centered moving average clamped to the sequence bounds.

    The window for index i spans [i - w//2, i - w//2 + w) intersected with
    the sequence, so windows near either edge hold fewer than window_size
    values. No padding is applied.

    Args:
        values: Finite values in acquisition order
        window_size: Number of values per full window (1 = no smoothing);
            defaults to the smoothing_window setting

    Returns:
        A new list of the same length

    Raises:
        InvalidConfigError: If window_size is less than 1
    """
    if window_size is None:
        window_size = get_settings().smoothing_window
    if window_size < 1:
        raise InvalidConfigError(f"window_size must be at least 1, got {window_size}")

    if window_size == 1:
        return list(values)

    n = len(values)
    half = window_size // 2
    smoothed = []
    for i in range(n):
        start = max(0, i - half)
        end = min(n, i - half + window_size)
        window = values[start:end]
        smoothed.append(sum(window) / len(window))
    return smoothed


def validate_measurements(measurements: Sequence[MeasurementLike]) -> ValidationReport:
    """Check a sequence for problems that would distort monitoring results.

    Checks for an empty sequence, fewer than three points, non-finite values
    and duplicate timestamps. Problems are reported, never fixed.
    """
    items = as_measurements(measurements)
    errors = []

    if not items:
        errors.append("Sequence is empty")
        return ValidationReport(is_valid=False, errors=errors)

    if len(items) < MIN_MONITORING_POINTS:
        errors.append(
            f"Too few points: at least {MIN_MONITORING_POINTS} required, got {len(items)}"
        )

    invalid = sum(1 for m in items if not _is_valid(m.value))
    if invalid:
        errors.append(f"Found {invalid} non-finite values")

    seen = set()
    duplicates = 0
    for m in items:
        if m.timestamp is None:
            continue
        if m.timestamp in seen:
            duplicates += 1
        seen.add(m.timestamp)
    if duplicates:
        errors.append(f"Found {duplicates} duplicate timestamps")

    return ValidationReport(is_valid=not errors, errors=errors)
