"""Unit tests for interpolation, smoothing and validation."""

import math
from datetime import datetime

import pytest

from spcengine.core.exceptions import InvalidConfigError
from spcengine.core.measurement import Measurement
from spcengine.utils.preprocessing import (
    interpolate_missing,
    smooth,
    validate_measurements,
)

NAN = float("nan")


class TestInterpolateMissing:
    """Tests for interpolate_missing."""

    def test_single_interior_gap(self):
        assert interpolate_missing([1.0, NAN, 3.0]) == [1.0, 2.0, 3.0]

    def test_none_is_a_gap(self):
        assert interpolate_missing([1.0, None, 3.0]) == [1.0, 2.0, 3.0]

    def test_run_of_gaps_weighted_by_distance(self):
        result = interpolate_missing([0.0, NAN, NAN, 3.0])
        assert result == pytest.approx([0.0, 1.0, 2.0, 3.0])

    def test_infinite_value_is_a_gap(self):
        assert interpolate_missing([2.0, math.inf, 4.0]) == [2.0, 3.0, 4.0]

    def test_leading_gap_left_unmodified(self):
        result = interpolate_missing([NAN, 2.0, 3.0])
        assert math.isnan(result[0])
        assert result[1:] == [2.0, 3.0]

    def test_trailing_gap_left_unmodified(self):
        result = interpolate_missing([1.0, 2.0, None])
        assert result == [1.0, 2.0, None]

    def test_one_sided_interior_gap_left_unmodified(self):
        result = interpolate_missing([NAN, NAN, 3.0])
        assert math.isnan(result[0])
        assert math.isnan(result[1])

    def test_same_length_and_input_untouched(self):
        values = [1.0, NAN, 3.0, NAN, 5.0]
        result = interpolate_missing(values)
        assert len(result) == len(values)
        assert math.isnan(values[1])
        assert result == [1.0, 2.0, 3.0, 4.0, 5.0]

    def test_empty(self):
        assert interpolate_missing([]) == []


class TestSmooth:
    """Tests for the centered moving average."""

    def test_window_one_is_identity(self):
        values = [1.0, 5.0, 2.0, 8.0]
        assert smooth(values, 1) == values

    def test_centered_window_clamped_at_edges(self):
        # w=3: [0,2), [0,3), [1,4), [2,5), [3,5)
        result = smooth([1.0, 2.0, 3.0, 4.0, 5.0], 3)
        assert result == pytest.approx([1.5, 2.0, 3.0, 4.0, 4.5])

    def test_even_window(self):
        # w=2: window for i spans [i-1, i+1)
        result = smooth([2.0, 4.0, 6.0], 2)
        assert result == pytest.approx([2.0, 3.0, 5.0])

    def test_window_larger_than_sequence(self):
        assert smooth([1.0, 2.0, 3.0], 10) == pytest.approx([2.0, 2.0, 2.0])

    @pytest.mark.parametrize("window_size", [0, -3])
    def test_invalid_window(self, window_size):
        with pytest.raises(InvalidConfigError):
            smooth([1.0, 2.0], window_size)

    def test_default_window_from_settings(self, monkeypatch):
        monkeypatch.setenv("SPCENGINE_SMOOTHING_WINDOW", "1")
        values = [1.0, 9.0, 1.0]
        assert smooth(values) == values


class TestValidateMeasurements:
    """Tests for validate_measurements."""

    def test_valid_sequence(self, measurements_from):
        report = validate_measurements(measurements_from([1.0, 2.0, 3.0]))
        assert report.is_valid
        assert report.errors == []

    def test_empty(self):
        report = validate_measurements([])
        assert not report.is_valid
        assert report.errors == ["Sequence is empty"]

    def test_too_few_points(self):
        report = validate_measurements([1.0, 2.0])
        assert not report.is_valid
        assert any("Too few points" in e for e in report.errors)

    def test_non_finite_values_counted(self):
        report = validate_measurements([1.0, None, NAN, 4.0])
        assert not report.is_valid
        assert "Found 2 non-finite values" in report.errors

    def test_duplicate_timestamps_counted(self):
        ts = datetime(2025, 1, 1, 8, 0, 0)
        measurements = [
            Measurement(index=1, value=1.0, timestamp=ts),
            Measurement(index=2, value=2.0, timestamp=ts),
            Measurement(index=3, value=3.0, timestamp=ts),
        ]
        report = validate_measurements(measurements)
        assert "Found 2 duplicate timestamps" in report.errors

    def test_multiple_problems_reported(self):
        report = validate_measurements([1.0, NAN])
        assert len(report.errors) == 2
