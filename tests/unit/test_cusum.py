"""Tests for the two-sided tabular CUSUM engine."""

import math

import pytest

from spcengine.core.engine.cusum import (
    CUSUMConfig,
    CUSUMMonitor,
    SignalStrength,
    classify_signal,
    compute_cusum,
    summarize_cusum,
)
from spcengine.core.engine.rolling_window import Trend
from spcengine.core.exceptions import EmptyInputError, InvalidConfigError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _upper_sums(values: list[float], target: float, K: float, start: float = 0.0) -> list[float]:
    """C+_i computed independently from the recurrence."""
    c = start
    result = []
    for v in values:
        c = max(0.0, c + (v - target) - K)
        result.append(c)
    return result


def _first_signal(points) -> int | None:
    """1-based position of the first out-of-control point."""
    for position, point in enumerate(points, start=1):
        if point.is_out_of_control:
            return position
    return None


@pytest.fixture
def shifted_config() -> CUSUMConfig:
    # K = 2.5 * 5 = 12.5, H = 20 * 5 = 100
    return CUSUMConfig(target=100.0, sigma=5.0, k=2.5, h=20.0)


SHIFTED = [130.0] * 10


# ===================================================================
# Configuration
# ===================================================================

class TestCUSUMConfig:
    """Tests for CUSUMConfig validation and scaling."""

    def test_sigma_unit_scaling(self, shifted_config):
        assert shifted_config.reference_value == pytest.approx(12.5)
        assert shifted_config.decision_interval == pytest.approx(100.0)

    def test_defaults(self):
        config = CUSUMConfig(target=0.0, sigma=1.0)
        assert config.k == 0.5
        assert config.h == 5.0
        assert not config.fast_initial_response

    @pytest.mark.parametrize("kwargs,match", [
        ({"sigma": 0.0}, "sigma"),
        ({"sigma": -2.0}, "sigma"),
        ({"k": -0.1}, "k cannot be negative"),
        ({"h": 0.0}, "h must be positive"),
    ])
    def test_invalid_parameters(self, kwargs, match):
        params = {"target": 100.0, "sigma": 5.0, **kwargs}
        with pytest.raises(InvalidConfigError, match=match):
            CUSUMConfig(**params)

    def test_zero_allowance_allowed(self):
        assert CUSUMConfig(target=100.0, sigma=5.0, k=0.0).reference_value == 0.0

    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("SPCENGINE_CUSUM_K", "1.0")
        monkeypatch.setenv("SPCENGINE_CUSUM_H", "4.0")
        monkeypatch.setenv("SPCENGINE_CUSUM_FAST_INITIAL_RESPONSE", "true")

        config = CUSUMConfig.from_settings(target=10.0, sigma=2.0)
        assert config.k == 1.0
        assert config.h == 4.0
        assert config.fast_initial_response


# ===================================================================
# Chart computation
# ===================================================================

class TestComputeCUSUM:
    """Tests for compute_cusum."""

    def test_end_to_end_first_signal(self, shifted_config):
        points = compute_cusum(SHIFTED, shifted_config)
        expected_high = _upper_sums(SHIFTED, 100.0, 12.5)
        expected_first = next(i for i, c in enumerate(expected_high, start=1) if c > 100.0)

        assert [p.cusum_high for p in points] == pytest.approx(expected_high)
        assert all(b - a == pytest.approx(17.5) for a, b in zip(expected_high, expected_high[1:]))
        assert _first_signal(points) == expected_first == 6
        assert all(p.is_out_of_control for p in points[expected_first - 1:])

    def test_lower_sum_stays_zero_for_upward_shift(self, shifted_config):
        points = compute_cusum(SHIFTED, shifted_config)
        assert all(p.cusum_low == 0.0 for p in points)
        assert all(p.upper_limit == 100.0 and p.lower_limit == -100.0 for p in points)

    def test_downward_shift_detected_by_lower_sum(self, shifted_config):
        points = compute_cusum([70.0] * 10, shifted_config)
        assert all(p.cusum_high == 0.0 for p in points)
        assert points[0].cusum_low == pytest.approx(-17.5)
        assert _first_signal(points) == 6

    def test_deviation(self, shifted_config):
        points = compute_cusum([103.0, 97.0], shifted_config)
        assert [p.deviation for p in points] == pytest.approx([3.0, -3.0])

    def test_fast_initial_response_detects_sooner(self):
        plain = CUSUMConfig(target=100.0, sigma=5.0, k=2.5, h=20.0)
        fir = CUSUMConfig(target=100.0, sigma=5.0, k=2.5, h=20.0, fast_initial_response=True)

        fir_points = compute_cusum(SHIFTED, fir)
        assert fir_points[0].cusum_high == pytest.approx(_upper_sums(SHIFTED, 100.0, 12.5, 50.0)[0])
        assert fir_points[0].cusum_low == pytest.approx(-7.5)
        assert _first_signal(fir_points) < _first_signal(compute_cusum(SHIFTED, plain))

    def test_first_point_never_change_point(self):
        config = CUSUMConfig(target=100.0, sigma=1.0, k=0.5, h=1.0)
        points = compute_cusum([110.0, 100.0], config)
        assert points[0].is_out_of_control
        assert not points[0].change_point

    def test_change_point_on_transition(self, shifted_config):
        points = compute_cusum(SHIFTED, shifted_config)
        assert [p.index for p in points if p.change_point] == [6]

    def test_change_point_on_large_jump(self):
        # H = 10: a jump of C+ by more than 5 between points is a change point
        config = CUSUMConfig(target=0.0, sigma=1.0, k=0.0, h=10.0)
        points = compute_cusum([1.0, 7.0, 1.0], config)
        assert [p.change_point for p in points] == [False, True, False]

    def test_signal_strength_and_magnitude(self, shifted_config):
        points = compute_cusum(SHIFTED, shifted_config)
        # C+: 17.5, 35, 52.5, 70, 87.5, ...
        assert points[0].magnitude == pytest.approx(17.5)
        assert points[1].signal_strength == SignalStrength.LOW
        assert points[2].signal_strength == SignalStrength.MEDIUM
        assert points[3].signal_strength == SignalStrength.MEDIUM
        assert points[4].signal_strength == SignalStrength.HIGH

    def test_classify_signal_thresholds(self):
        assert classify_signal(80.0, 100.0) == SignalStrength.MEDIUM
        assert classify_signal(80.1, 100.0) == SignalStrength.HIGH
        assert classify_signal(50.0, 100.0) == SignalStrength.LOW

    def test_trend_from_raw_values(self, shifted_config):
        points = compute_cusum([100.0, 101.0, 103.0, 103.0, 100.0], shifted_config)
        assert points[0].trend == Trend.STABLE
        assert points[1].trend == Trend.STABLE
        # (103 - 100) / 2 = 1.5 > 0.1 * 5
        assert points[2].trend == Trend.INCREASING
        # (103 - 101) / 2 = 1.0
        assert points[3].trend == Trend.INCREASING
        # (100 - 103) / 2 = -1.5
        assert points[4].trend == Trend.DECREASING

    def test_signal_count_non_increasing_in_h(self):
        values = [100.0 + 0.4 * i for i in range(40)]
        counts = []
        for h in [1.0, 2.0, 4.0, 8.0, 16.0]:
            config = CUSUMConfig(target=100.0, sigma=2.0, k=0.5, h=h)
            counts.append(sum(p.is_out_of_control for p in compute_cusum(values, config)))
        assert all(a >= b for a, b in zip(counts, counts[1:]))
        assert counts[0] > counts[-1]

    def test_empty_input(self, shifted_config):
        assert compute_cusum([], shifted_config) == []

    def test_deterministic(self, shifted_config, in_control_values):
        first = compute_cusum(in_control_values, shifted_config)
        assert first == compute_cusum(in_control_values, shifted_config)


# ===================================================================
# Summary
# ===================================================================

class TestSummarizeCUSUM:
    """Tests for summarize_cusum."""

    def test_summary(self, shifted_config):
        summary = summarize_cusum(compute_cusum(SHIFTED, shifted_config))

        assert summary.count == 10
        assert summary.max_cusum_high == pytest.approx(175.0)
        assert summary.min_cusum_low == 0.0
        assert summary.out_of_control_count == 5
        assert summary.out_of_control_rate == pytest.approx(0.5)
        assert summary.change_point_count == 1
        # Runs: 6, 1, 1, 1, 1
        assert summary.completed_runs == 5
        assert summary.average_run_length == pytest.approx(2.0)
        assert summary.average_magnitude == pytest.approx(17.5 * 5.5)
        # Magnitude above 80 from the fifth point on
        assert summary.detection_efficiency == pytest.approx(0.6)
        # Constant input keeps every trend stable
        assert summary.stability_index == 1.0

    def test_stability_index_counts_trend_changes(self, shifted_config):
        points = compute_cusum([100.0, 101.0, 103.0, 103.0, 100.0], shifted_config)
        # stable, stable, increasing, increasing, decreasing: two changes
        assert summarize_cusum(points).stability_index == pytest.approx(1 - 2 / 5)

    def test_in_control_run_length(self, in_control_values):
        config = CUSUMConfig(target=100.0, sigma=0.2)
        summary = summarize_cusum(compute_cusum(in_control_values, config))
        assert summary.out_of_control_count == 0
        assert summary.average_run_length == float(len(in_control_values))

    def test_empty(self):
        with pytest.raises(EmptyInputError):
            summarize_cusum([])


# ===================================================================
# Incremental monitor
# ===================================================================

class TestCUSUMMonitor:
    """Tests for CUSUMMonitor."""

    @pytest.mark.parametrize("fir", [False, True])
    def test_matches_batch(self, fir, in_control_values):
        config = CUSUMConfig(target=100.0, sigma=0.2, fast_initial_response=fir)
        values = in_control_values + [100.5, 100.6, 100.8, 101.0]
        batch = compute_cusum(values, config)

        monitor = CUSUMMonitor(config)
        incremental = [monitor.update(v) for v in values]

        assert incremental == batch
        assert monitor.count == len(values)
        assert monitor.last_point == batch[-1]

    def test_reset(self, shifted_config):
        monitor = CUSUMMonitor(shifted_config)
        first = monitor.update(130.0)
        monitor.update(130.0)
        monitor.reset()

        assert monitor.count == 0
        assert monitor.last_point is None
        assert monitor.update(130.0) == first

    def test_missing_value_normalized_like_batch(self, shifted_config):
        values = [130.0, None, 130.0]
        batch = compute_cusum(values, shifted_config)

        monitor = CUSUMMonitor(shifted_config)
        incremental = [monitor.update(v) for v in values]

        assert math.isnan(incremental[1].value)
        assert [p.index for p in incremental] == [p.index for p in batch]
        assert [p.cusum_high for p in incremental] == [p.cusum_high for p in batch]
        assert incremental[2] == batch[2]
