"""Measurement input type shared by the monitoring engines."""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Union


@dataclass(frozen=True)
class Measurement:
    """A single quality measurement in acquisition order.

    Attributes:
        index: 1-based ordinal position in the sequence
        value: Measured value (mean of the subgroup when sample_size > 1)
        timestamp: When the measurement was taken, if known
        sample_size: Number of readings behind the value, if known
        subgroup: Subgroup label, if the data is grouped
    """
    index: int
    value: float
    timestamp: datetime | None = None
    sample_size: int | None = None
    subgroup: str | None = None


MeasurementLike = Union[Measurement, float, int, None]


def as_measurement(item: MeasurementLike, index: int) -> Measurement:
    """Wrap a single raw value, passing a Measurement through untouched.

    A missing value (None) becomes NaN; index is used only for raw values.
    """
    if isinstance(item, Measurement):
        return item
    if item is None:
        return Measurement(index=index, value=math.nan)
    return Measurement(index=index, value=float(item))


def as_measurements(items: Iterable[MeasurementLike]) -> list[Measurement]:
    """Normalize raw values and Measurements into a list of Measurements.

    Plain numbers are wrapped with index = position + 1 and a missing
    value (None) becomes NaN. Existing Measurement objects are passed
    through untouched.
    """
    return [as_measurement(item, position + 1) for position, item in enumerate(items)]
