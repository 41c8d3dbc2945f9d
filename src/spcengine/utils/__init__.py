"""Utilities for SPC engine statistical calculations."""

from .outliers import (
    OutlierPartition,
    OutlierResult,
    detect_outliers,
    detect_outliers_iqr,
    detect_outliers_modified_zscore,
    detect_outliers_zscore,
    remove_outliers,
)

from .preprocessing import (
    ValidationReport,
    interpolate_missing,
    smooth,
    validate_measurements,
)

from .statistics import (
    StatisticsResult,
    compute_statistics,
    count_completed_runs,
    empirical_run_length,
    estimate_process_parameters,
    estimate_sigma_moving_range,
)

__all__ = [
    # Descriptive statistics
    "StatisticsResult",
    "compute_statistics",
    # Sigma estimation
    "estimate_process_parameters",
    "estimate_sigma_moving_range",
    # Run length
    "count_completed_runs",
    "empirical_run_length",
    # Outliers
    "OutlierPartition",
    "OutlierResult",
    "detect_outliers",
    "detect_outliers_iqr",
    "detect_outliers_modified_zscore",
    "detect_outliers_zscore",
    "remove_outliers",
    # Preprocessing
    "ValidationReport",
    "interpolate_missing",
    "smooth",
    "validate_measurements",
]
