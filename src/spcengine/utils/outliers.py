"""Outlier scoring strategies.

Three interchangeable methods, each scoring every value against statistics
computed from the same values:
- IQR fences (Tukey)
- Z-score against mean and sample standard deviation
- Modified Z-score against median and MAD (Iglewicz and Hoaglin)
"""

from dataclasses import dataclass
from typing import Callable, Literal, Sequence

import structlog

from spcengine.core.measurement import Measurement, MeasurementLike, as_measurements
from spcengine.core.exceptions import InvalidConfigError
from spcengine.utils.statistics import compute_statistics

logger = structlog.get_logger(__name__)

OutlierMethod = Literal["iqr", "zscore", "modified_zscore"]

DEFAULT_IQR_MULTIPLIER = 1.5
DEFAULT_ZSCORE_THRESHOLD = 3.0
DEFAULT_MODIFIED_ZSCORE_THRESHOLD = 3.5

# 0.6745 is the 0.75 quantile of the standard normal; it makes MAD
# consistent with sigma for normal data
MODIFIED_ZSCORE_FACTOR = 0.6745


@dataclass(frozen=True)
class OutlierResult:
    """Outlier verdict for one value.

    Attributes:
        is_outlier: True if the value is flagged
        method: Method that produced the verdict
        score: Method-specific score (fence distance, |z| or |modified z|)
        threshold: Threshold the score was judged against (for IQR, the
            fence offset multiplier * IQR)
    """
    is_outlier: bool
    method: OutlierMethod
    score: float
    threshold: float


@dataclass(frozen=True)
class OutlierPartition:
    """Measurements split by outlier verdict.

    Attributes:
        clean: Measurements that were not flagged, in input order
        removed: Flagged measurements, in input order
        results: One OutlierResult per input measurement
    """
    clean: list[Measurement]
    removed: list[Measurement]
    results: list[OutlierResult]


def detect_outliers_iqr(
    values: Sequence[float], multiplier: float = DEFAULT_IQR_MULTIPLIER
) -> list[OutlierResult]:
    """Flag values outside [Q1 - m*IQR, Q3 + m*IQR].

    The score is the distance from the value to the nearer fence.
    """
    stats = compute_statistics(values)
    offset = multiplier * stats.iqr
    lower_fence = stats.q1 - offset
    upper_fence = stats.q3 + offset

    results = []
    for value in values:
        score = min(abs(value - lower_fence), abs(value - upper_fence))
        results.append(OutlierResult(
            is_outlier=value < lower_fence or value > upper_fence,
            method="iqr",
            score=score,
            threshold=offset,
        ))
    return results


def detect_outliers_zscore(
    values: Sequence[float], threshold: float = DEFAULT_ZSCORE_THRESHOLD
) -> list[OutlierResult]:
    """Flag values whose |value - mean| / std_dev exceeds threshold.

    A zero standard deviation means every value equals the mean, so all
    scores are 0 and nothing is flagged.
    """
    stats = compute_statistics(values)

    if stats.std_dev == 0.0:
        logger.warning("zscore_zero_std_dev", count=stats.count)
        return [
            OutlierResult(is_outlier=False, method="zscore", score=0.0, threshold=threshold)
            for _ in values
        ]

    results = []
    for value in values:
        score = abs(value - stats.mean) / stats.std_dev
        results.append(OutlierResult(
            is_outlier=score > threshold,
            method="zscore",
            score=score,
            threshold=threshold,
        ))
    return results


def detect_outliers_modified_zscore(
    values: Sequence[float], threshold: float = DEFAULT_MODIFIED_ZSCORE_THRESHOLD
) -> list[OutlierResult]:
    """Flag values whose |0.6745 * (value - median) / MAD| exceeds threshold.

    When MAD is 0 (more than half the values are identical) the score is
    undefined; every value is then reported as a non-outlier with score 0.
    """
    stats = compute_statistics(values)
    median = stats.median
    mad = compute_statistics([abs(value - median) for value in values]).median

    if mad == 0.0:
        logger.warning("modified_zscore_zero_mad", count=stats.count, median=median)
        return [
            OutlierResult(
                is_outlier=False, method="modified_zscore", score=0.0, threshold=threshold
            )
            for _ in values
        ]

    results = []
    for value in values:
        score = abs(MODIFIED_ZSCORE_FACTOR * (value - median) / mad)
        results.append(OutlierResult(
            is_outlier=score > threshold,
            method="modified_zscore",
            score=score,
            threshold=threshold,
        ))
    return results


_DETECTORS: dict[str, tuple[Callable[..., list[OutlierResult]], float]] = {
    "iqr": (detect_outliers_iqr, DEFAULT_IQR_MULTIPLIER),
    "zscore": (detect_outliers_zscore, DEFAULT_ZSCORE_THRESHOLD),
    "modified_zscore": (detect_outliers_modified_zscore, DEFAULT_MODIFIED_ZSCORE_THRESHOLD),
}


def detect_outliers(
    values: Sequence[float],
    method: OutlierMethod = "iqr",
    threshold: float | None = None,
) -> list[OutlierResult]:
    """Score every value with the selected method.

    Args:
        values: Finite values to score
        method: "iqr", "zscore" or "modified_zscore"
        threshold: Method threshold (IQR multiplier for "iqr"); the
            method default is used when None

    Returns:
        One OutlierResult per value, in input order

    Raises:
        InvalidConfigError: If method is unknown or threshold is negative
        EmptyInputError: If values is empty
    """
    if method not in _DETECTORS:
        raise InvalidConfigError(
            f"Unknown outlier method {method!r}, expected one of {sorted(_DETECTORS)}"
        )

    detector, default_threshold = _DETECTORS[method]
    if threshold is None:
        threshold = default_threshold
    if threshold < 0:
        raise InvalidConfigError(f"Outlier threshold cannot be negative, got {threshold}")

    results = detector(values, threshold)
    logger.debug(
        "outliers_detected",
        method=method,
        count=len(results),
        outliers=sum(1 for r in results if r.is_outlier),
    )
    return results


def remove_outliers(
    measurements: Sequence[MeasurementLike],
    method: OutlierMethod = "iqr",
    threshold: float | None = None,
) -> OutlierPartition:
    """Split measurements into clean and removed sets by outlier verdict."""
    items = as_measurements(measurements)
    results = detect_outliers([m.value for m in items], method, threshold)

    clean = []
    removed = []
    for item, result in zip(items, results):
        if result.is_outlier:
            removed.append(item)
        else:
            clean.append(item)

    return OutlierPartition(clean=clean, removed=removed, results=results)
