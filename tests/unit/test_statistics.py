"""Unit tests for descriptive statistics and run-length utilities.

Tests verify:
- Descriptive statistics match independent numpy computations
- Quartiles use index-based selection on the sorted values
- Sigma estimation methods are accurate
- Empirical run length segments at out-of-control points
- Error handling for invalid inputs
"""

import math

import numpy as np
import pytest

from spcengine.core.exceptions import EmptyInputError, InvalidConfigError, SPCError
from spcengine.utils import (
    compute_statistics,
    count_completed_runs,
    empirical_run_length,
    estimate_process_parameters,
    estimate_sigma_moving_range,
)


class TestComputeStatistics:
    """Test compute_statistics."""

    def test_known_values(self):
        stats = compute_statistics([2, 4, 4, 4, 5, 5, 7, 9])

        assert stats.count == 8
        assert stats.mean == pytest.approx(5.0)
        assert stats.variance == pytest.approx(32 / 7)
        assert stats.std_dev == pytest.approx(math.sqrt(32 / 7))
        assert stats.min == 2.0
        assert stats.max == 9.0
        assert stats.range == 7.0
        assert stats.median == 4.5
        assert stats.q1 == 4.0
        assert stats.q3 == 7.0
        assert stats.iqr == 3.0

    def test_matches_numpy_sample_statistics(self, in_control_values):
        stats = compute_statistics(in_control_values)
        arr = np.array(in_control_values)

        assert stats.mean == pytest.approx(float(np.mean(arr)))
        assert stats.std_dev == pytest.approx(float(np.std(arr, ddof=1)))
        assert stats.median == pytest.approx(float(np.median(arr)))

    def test_odd_count_median(self):
        assert compute_statistics([3, 1, 2]).median == 2.0

    def test_quartiles_are_members_of_input(self):
        values = [10, 11, 9, 10, 11, 1000]
        stats = compute_statistics(values)
        assert stats.q1 == 10.0
        assert stats.q3 == 11.0
        assert stats.q1 in values
        assert stats.q3 in values

    def test_constant_sequence(self):
        stats = compute_statistics([5.0] * 5)
        assert stats.std_dev == 0.0
        assert stats.variance == 0.0
        assert stats.iqr == 0.0
        assert stats.range == 0.0

    @pytest.mark.parametrize("value", [0.1, 2.3, 9.7, 100.1])
    def test_constant_inexact_values_have_zero_spread(self, value):
        """Constant sequences of values with no exact binary form."""
        stats = compute_statistics([value] * 7)
        assert stats.mean == value
        assert stats.std_dev == 0.0
        assert stats.variance == 0.0

    def test_single_value(self):
        stats = compute_statistics([3.0])
        assert stats.count == 1
        assert stats.variance == 0.0
        assert stats.std_dev == 0.0
        assert stats.median == 3.0

    def test_input_not_modified(self):
        values = [3.0, 1.0, 2.0]
        compute_statistics(values)
        assert values == [3.0, 1.0, 2.0]

    def test_empty_raises(self):
        with pytest.raises(EmptyInputError):
            compute_statistics([])

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            compute_statistics([])
        assert issubclass(EmptyInputError, SPCError)


class TestSigmaEstimation:
    """Test sigma estimation methods."""

    def test_moving_range(self):
        # Moving ranges: 2, 1, 2, 3 -> MR-bar = 2.0
        sigma = estimate_sigma_moving_range([10, 12, 11, 13, 10])
        assert sigma == pytest.approx(2.0 / 1.128)

    def test_moving_range_matches_numpy(self, in_control_values):
        arr = np.array(in_control_values)
        expected = float(np.mean(np.abs(np.diff(arr)))) / 1.128
        assert estimate_sigma_moving_range(in_control_values) == pytest.approx(expected)

    def test_moving_range_unsupported_span(self):
        with pytest.raises(InvalidConfigError, match="span must be 2"):
            estimate_sigma_moving_range([1, 2, 3, 4], span=3)

    def test_moving_range_too_few_values(self):
        with pytest.raises(EmptyInputError):
            estimate_sigma_moving_range([5.0])

    def test_process_parameters_sample(self):
        mean, sigma = estimate_process_parameters([2, 4, 4, 4, 5, 5, 7, 9])
        assert mean == pytest.approx(5.0)
        assert sigma == pytest.approx(math.sqrt(32 / 7))

    def test_process_parameters_moving_range(self):
        mean, sigma = estimate_process_parameters([10, 12, 11, 13, 10], method="moving_range")
        assert mean == pytest.approx(11.2)
        assert sigma == pytest.approx(2.0 / 1.128)

    def test_process_parameters_constant_data(self):
        mean, sigma = estimate_process_parameters([7.0] * 4)
        assert mean == 7.0
        assert sigma == 0.0

    def test_process_parameters_unknown_method(self):
        with pytest.raises(InvalidConfigError, match="Unknown sigma estimation method"):
            estimate_process_parameters([1, 2, 3], method="range")


class TestEmpiricalRunLength:
    """Test empirical run length over out-of-control flags."""

    def test_empty(self):
        assert empirical_run_length([]) == 0.0
        assert count_completed_runs([]) == 0

    def test_no_signals_returns_length(self):
        assert empirical_run_length([False] * 7) == 7.0
        assert count_completed_runs([False] * 7) == 0

    def test_trailing_tail_ignored(self):
        # Runs: [F, F, T] and [F, T]; the final [F, F] never signalled
        flags = [False, False, True, False, True, False, False]
        assert empirical_run_length(flags) == pytest.approx(2.5)
        assert count_completed_runs(flags) == 2

    def test_consecutive_signals(self):
        assert empirical_run_length([True, True, True]) == 1.0
        assert count_completed_runs([True, True, True]) == 3
