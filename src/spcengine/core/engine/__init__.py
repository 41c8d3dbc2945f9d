"""SPC Engine - monitoring charts, run rules and process capability."""

from .capability import (
    CAPABILITY_CAP,
    CapabilityLevel,
    ProcessCapability,
    classify_capability,
    compute_process_capability,
)
from .cusum import (
    CUSUMConfig,
    CUSUMMonitor,
    CUSUMPoint,
    CUSUMSummary,
    SignalStrength,
    compute_cusum,
    cusum_step,
    summarize_cusum,
)
from .ewma import (
    EWMAConfig,
    EWMAMonitor,
    EWMAPoint,
    EWMASummary,
    LimitMode,
    ZoneSigma,
    compute_ewma,
    ewma_step,
    summarize_ewma,
)
from .rolling_window import (
    TrailingWindow,
    Trend,
    WindowPoint,
    Zone,
    classify_zone,
)
from .rules import (
    DEFAULT_ENABLED_RULES,
    Rule1OutOfLimits,
    Rule2Shift,
    Rule3Trend,
    Rule5ZoneA,
    Rule6ZoneB,
    Rule8Mixture,
    RuleLibrary,
    RuleResult,
    Severity,
)

__all__ = [
    # EWMA
    "EWMAConfig",
    "EWMAMonitor",
    "EWMAPoint",
    "EWMASummary",
    "LimitMode",
    "ZoneSigma",
    "compute_ewma",
    "ewma_step",
    "summarize_ewma",
    # CUSUM
    "CUSUMConfig",
    "CUSUMMonitor",
    "CUSUMPoint",
    "CUSUMSummary",
    "SignalStrength",
    "compute_cusum",
    "cusum_step",
    "summarize_cusum",
    # Capability
    "CAPABILITY_CAP",
    "CapabilityLevel",
    "ProcessCapability",
    "classify_capability",
    "compute_process_capability",
    # Run rules
    "DEFAULT_ENABLED_RULES",
    "RuleLibrary",
    "Rule1OutOfLimits",
    "Rule2Shift",
    "Rule3Trend",
    "Rule5ZoneA",
    "Rule6ZoneB",
    "Rule8Mixture",
    "RuleResult",
    "Severity",
    # Trailing window
    "TrailingWindow",
    "Trend",
    "WindowPoint",
    "Zone",
    "classify_zone",
]
