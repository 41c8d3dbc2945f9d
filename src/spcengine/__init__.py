"""Statistical process control computation engine.

Pure functions over ordered measurement sequences: descriptive statistics,
outlier detection, preprocessing, EWMA and CUSUM monitoring with run rules,
and process capability indices.
"""

from spcengine.core.config import Settings, get_settings
from spcengine.core.engine import (
    CAPABILITY_CAP,
    CapabilityLevel,
    CUSUMConfig,
    CUSUMMonitor,
    CUSUMPoint,
    CUSUMSummary,
    EWMAConfig,
    EWMAMonitor,
    EWMAPoint,
    EWMASummary,
    LimitMode,
    ProcessCapability,
    SignalStrength,
    Trend,
    Zone,
    ZoneSigma,
    compute_cusum,
    compute_ewma,
    compute_process_capability,
    summarize_cusum,
    summarize_ewma,
)
from spcengine.core.exceptions import (
    EmptyInputError,
    InvalidConfigError,
    InvalidSpecError,
    SPCError,
)
from spcengine.core.logging import configure_logging
from spcengine.core.measurement import Measurement
from spcengine.utils import (
    OutlierPartition,
    OutlierResult,
    StatisticsResult,
    ValidationReport,
    compute_statistics,
    detect_outliers,
    empirical_run_length,
    estimate_process_parameters,
    interpolate_missing,
    remove_outliers,
    smooth,
    validate_measurements,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Data model
    "Measurement",
    # Statistics
    "StatisticsResult",
    "compute_statistics",
    "estimate_process_parameters",
    "empirical_run_length",
    # Outliers
    "OutlierPartition",
    "OutlierResult",
    "detect_outliers",
    "remove_outliers",
    # Preprocessing
    "ValidationReport",
    "interpolate_missing",
    "smooth",
    "validate_measurements",
    # EWMA
    "EWMAConfig",
    "EWMAMonitor",
    "EWMAPoint",
    "EWMASummary",
    "LimitMode",
    "Trend",
    "Zone",
    "ZoneSigma",
    "compute_ewma",
    "summarize_ewma",
    # CUSUM
    "CUSUMConfig",
    "CUSUMMonitor",
    "CUSUMPoint",
    "CUSUMSummary",
    "SignalStrength",
    "compute_cusum",
    "summarize_cusum",
    # Capability
    "CAPABILITY_CAP",
    "CapabilityLevel",
    "ProcessCapability",
    "compute_process_capability",
    # Ambient
    "Settings",
    "get_settings",
    "configure_logging",
    # Errors
    "SPCError",
    "EmptyInputError",
    "InvalidConfigError",
    "InvalidSpecError",
]
