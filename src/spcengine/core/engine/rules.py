"""Run rules for out-of-control detection on a monitoring chart.

Each rule is a standalone class following the ControlRule protocol and is
evaluated against the trailing window of charted points, newest last. A
rule whose window needs more points than the history holds is skipped and
reports nothing; missing history never counts as a violation.

Rule numbering follows the Nelson tests. Rules 1, 2, 3 and 5 are enabled by
default; 6 and 8 are available on request. Rules 4 and 7 need windows of
14 and 15 points and are not provided, which keeps every window at or
below MAX_RULE_WINDOW points.

References:
    - Lloyd S. Nelson, "The Shewhart Control Chart - Tests for Special Causes" (1984)
    - AIAG SPC Manual, 2nd Edition
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from spcengine.core.engine.rolling_window import (
    LOWER_ZONES,
    UPPER_ZONES,
    TrailingWindow,
    WindowPoint,
    Zone,
)

MAX_RULE_WINDOW = 9

DEFAULT_ENABLED_RULES = frozenset({1, 2, 3, 5})

_ZONE_C = (Zone.ZONE_C_UPPER, Zone.ZONE_C_LOWER)
_BEYOND_1_SIGMA_UPPER = (Zone.ZONE_B_UPPER, Zone.ZONE_A_UPPER, Zone.BEYOND_UCL)
_BEYOND_1_SIGMA_LOWER = (Zone.ZONE_B_LOWER, Zone.ZONE_A_LOWER, Zone.BEYOND_LCL)


def _beyond_2_sigma_within_limits(point: WindowPoint) -> bool:
    upper = point.center_line + 2 * point.sigma
    lower = point.center_line - 2 * point.sigma
    return upper < point.value < point.ucl or point.lcl < point.value < lower


class Severity(Enum):
    """Violation severity levels."""
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class RuleResult:
    """Result of checking a run rule.

    Attributes:
        rule_id: Rule number
        rule_name: Human-readable rule name
        triggered: bool
        severity: Severity level (WARNING or CRITICAL)
        involved_indices: Measurement ordinals that caused the violation
        message: Human-readable description of the violation
    """
    rule_id: int
    rule_name: str
    triggered: bool
    severity: Severity
    involved_indices: list[int]
    message: str


class ControlRule(Protocol):
    """Protocol for run rule implementations."""

    @property
    def rule_id(self) -> int:
        """Rule number."""
        ...

    @property
    def rule_name(self) -> str:
        """Human-readable rule name."""
        ...

    @property
    def min_samples_required(self) -> int:
        """Minimum number of points needed to evaluate this rule."""
        ...

    @property
    def severity(self) -> Severity:
        """Severity level for violations of this rule."""
        ...

    def check(self, window: TrailingWindow) -> RuleResult | None:
        """Check rule against window.

        Args:
            window: Trailing window of charted points

        Returns:
            RuleResult if violated, None otherwise
        """
        ...


class Rule1OutOfLimits:
    """Rule 1: The latest point lies outside its control limits."""

    rule_id = 1
    rule_name = "Out of Limits"
    min_samples_required = 1
    severity = Severity.CRITICAL

    def check(self, window: TrailingWindow) -> RuleResult | None:
        """Check whether the latest point is beyond UCL or LCL."""
        samples = window.get_samples()
        if len(samples) < self.min_samples_required:
            return None

        latest = samples[-1]

        if latest.zone in (Zone.BEYOND_UCL, Zone.BEYOND_LCL):
            side = "above UCL" if latest.zone == Zone.BEYOND_UCL else "below LCL"
            return RuleResult(
                rule_id=self.rule_id,
                rule_name=self.rule_name,
                triggered=True,
                severity=self.severity,
                involved_indices=[latest.index],
                message=f"Point at {latest.value:.4f} is {side}"
            )
        return None


class Rule2Shift:
    """Rule 2: Nine points in a row strictly on the same side of the center line.

    A point exactly on the center line breaks the run.
    """

    rule_id = 2
    rule_name = "Shift"
    min_samples_required = 9
    severity = Severity.WARNING

    def check(self, window: TrailingWindow) -> RuleResult | None:
        """Check for 9 consecutive points on same side of center."""
        samples = window.get_samples()
        if len(samples) < self.min_samples_required:
            return None

        last_9 = samples[-9:]

        all_upper = all(p.is_above_center for p in last_9)
        all_lower = all(p.is_below_center for p in last_9)

        if all_upper or all_lower:
            side = "above" if all_upper else "below"
            return RuleResult(
                rule_id=self.rule_id,
                rule_name=self.rule_name,
                triggered=True,
                severity=self.severity,
                involved_indices=[p.index for p in last_9],
                message=f"9 consecutive points {side} center line"
            )
        return None


class Rule3Trend:
    """Rule 3: Six points in a row, all strictly increasing or all strictly decreasing."""

    rule_id = 3
    rule_name = "Trend"
    min_samples_required = 6
    severity = Severity.WARNING

    def check(self, window: TrailingWindow) -> RuleResult | None:
        """Check for 6 consecutive points monotonically increasing or decreasing."""
        samples = window.get_samples()
        if len(samples) < self.min_samples_required:
            return None

        last_6 = samples[-6:]
        values = [p.value for p in last_6]

        all_increasing = all(values[i] < values[i+1] for i in range(5))
        all_decreasing = all(values[i] > values[i+1] for i in range(5))

        if all_increasing or all_decreasing:
            direction = "increasing" if all_increasing else "decreasing"
            return RuleResult(
                rule_id=self.rule_id,
                rule_name=self.rule_name,
                triggered=True,
                severity=self.severity,
                involved_indices=[p.index for p in last_6],
                message=f"6 consecutive points {direction}"
            )
        return None


class Rule5ZoneA:
    """Rule 5: At least two of the last three points in Zone A.

    A point counts when it lies strictly beyond 2 sigma and strictly
    inside the control limit on either side; points on or beyond a limit
    are Rule 1's concern. Points on opposite sides count together.
    """

    rule_id = 5
    rule_name = "Zone A Warning"
    min_samples_required = 3
    severity = Severity.WARNING

    def check(self, window: TrailingWindow) -> RuleResult | None:
        """Check for 2 of 3 points beyond 2 sigma but inside the limits."""
        samples = window.get_samples()
        if len(samples) < self.min_samples_required:
            return None

        last_3 = samples[-3:]
        involved = [p for p in last_3 if _beyond_2_sigma_within_limits(p)]

        if len(involved) >= 2:
            return RuleResult(
                rule_id=self.rule_id,
                rule_name=self.rule_name,
                triggered=True,
                severity=self.severity,
                involved_indices=[p.index for p in involved],
                message="2 of 3 consecutive points beyond 2 sigma within control limits"
            )
        return None


class Rule6ZoneB:
    """Rule 6: Four out of five consecutive points beyond 1 sigma, same side."""

    rule_id = 6
    rule_name = "Zone B Warning"
    min_samples_required = 5
    severity = Severity.WARNING

    def check(self, window: TrailingWindow) -> RuleResult | None:
        """Check for 4 of 5 points in Zone B or beyond, same side."""
        samples = window.get_samples()
        if len(samples) < self.min_samples_required:
            return None

        last_5 = samples[-5:]

        upper = [p for p in last_5 if p.zone in _BEYOND_1_SIGMA_UPPER]
        lower = [p for p in last_5 if p.zone in _BEYOND_1_SIGMA_LOWER]

        if len(upper) >= 4 or len(lower) >= 4:
            side = "upper" if len(upper) >= 4 else "lower"
            involved = upper if len(upper) >= 4 else lower
            return RuleResult(
                rule_id=self.rule_id,
                rule_name=self.rule_name,
                triggered=True,
                severity=self.severity,
                involved_indices=[p.index for p in involved],
                message=f"4 of 5 consecutive points in Zone B or beyond ({side} side)"
            )
        return None


class Rule8Mixture:
    """Rule 8: Eight consecutive points with none in Zone C, either side."""

    rule_id = 8
    rule_name = "Mixture"
    min_samples_required = 8
    severity = Severity.WARNING

    def check(self, window: TrailingWindow) -> RuleResult | None:
        """Check for 8 consecutive points outside Zone C."""
        samples = window.get_samples()
        if len(samples) < self.min_samples_required:
            return None

        last_8 = samples[-8:]

        none_in_zone_c = all(p.zone not in _ZONE_C for p in last_8)
        # Nelson test 8 requires points on both sides of the center line
        both_sides = (
            any(p.zone in UPPER_ZONES for p in last_8)
            and any(p.zone in LOWER_ZONES for p in last_8)
        )

        if none_in_zone_c and both_sides:
            return RuleResult(
                rule_id=self.rule_id,
                rule_name=self.rule_name,
                triggered=True,
                severity=self.severity,
                involved_indices=[p.index for p in last_8],
                message="8 consecutive points outside Zone C (mixture pattern)"
            )
        return None


class RuleLibrary:
    """Registry of the available run rules.

    Provides methods to check rules individually or collectively against a
    trailing window.
    """

    def __init__(self):
        """Initialize the library with all available rules."""
        self._rules: dict[int, ControlRule] = {}
        self._register_default_rules()

    def _register_default_rules(self) -> None:
        rules = [
            Rule1OutOfLimits(),
            Rule2Shift(),
            Rule3Trend(),
            Rule5ZoneA(),
            Rule6ZoneB(),
            Rule8Mixture(),
        ]
        for rule in rules:
            self._rules[rule.rule_id] = rule

    @property
    def rule_ids(self) -> frozenset[int]:
        """IDs of all registered rules."""
        return frozenset(self._rules)

    def check_all(
        self,
        window: TrailingWindow,
        enabled_rules: frozenset[int] | set[int] | None = None
    ) -> list[RuleResult]:
        """Check all enabled rules and return violations ordered by rule ID.

        Args:
            window: Trailing window of charted points
            enabled_rules: Set of rule IDs to check (None = check all)

        Returns:
            List of RuleResult objects for violated rules
        """
        if enabled_rules is None:
            enabled_rules = self.rule_ids

        violations = []
        for rule_id in sorted(enabled_rules):
            result = self.check_single(window, rule_id)
            if result is not None and result.triggered:
                violations.append(result)

        return violations

    def check_single(self, window: TrailingWindow, rule_id: int) -> RuleResult | None:
        """Check a single rule.

        Args:
            window: Trailing window of charted points
            rule_id: ID of the rule to check

        Returns:
            RuleResult if rule exists and was violated, None otherwise
        """
        rule = self._rules.get(rule_id)
        if rule is None:
            return None
        return rule.check(window)

    def get_rule(self, rule_id: int) -> ControlRule | None:
        """Get rule by ID."""
        return self._rules.get(rule_id)


default_rule_library = RuleLibrary()
