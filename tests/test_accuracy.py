"""Tests for estimation accuracy scoring."""

import pytest

from taskpulse.services.accuracy import (
    average_accuracy,
    compute_accuracy,
    estimation_breakdown,
    intensity_accuracy,
    time_accuracy,
)


class TestTimeAccuracy:
    """Test time accuracy scores."""

    def test_close_estimate(self):
        assert time_accuracy(60, 50) == pytest.approx(83.333, abs=0.01)

    def test_exact_estimate(self):
        assert time_accuracy(45, 45) == 100.0

    def test_double_or_worse_scores_zero(self):
        assert time_accuracy(60, 120) == 0.0
        assert time_accuracy(60, 300) == 0.0

    @pytest.mark.parametrize("estimated,actual", [(0, 30), (30, 0), (-5, 30), (None, 30)])
    def test_non_positive_values_score_zero(self, estimated, actual):
        assert time_accuracy(estimated, actual) == 0.0


class TestIntensityAccuracy:
    """Test intensity accuracy on the 1-5 scale."""

    def test_two_levels_off(self):
        assert intensity_accuracy(3, 5) == 50.0

    def test_exact(self):
        assert intensity_accuracy(4, 4) == 100.0

    def test_worst_case(self):
        assert intensity_accuracy(1, 5) == 0.0


class TestTaskAccuracy:
    """Test per-task and averaged accuracy."""

    def test_missing_actuals_are_none(self, make_task):
        accuracy = compute_accuracy(make_task())

        assert accuracy.time_accuracy is None
        assert accuracy.intensity_accuracy is None

    def test_zero_minutes_is_recorded_data(self, make_task):
        accuracy = compute_accuracy(make_task(actual_minutes=0, actual_intensity=3))

        assert accuracy.time_accuracy == 0.0
        assert accuracy.intensity_accuracy == 100.0

    def test_average_skips_missing_values(self, make_task):
        tasks = [
            make_task(1, estimated_minutes=60, actual_minutes=60, actual_intensity=3),
            make_task(2, estimated_minutes=60, actual_minutes=30, actual_intensity=1),
            make_task(3),
        ]
        accuracy = average_accuracy(tasks)

        assert accuracy.time_accuracy == 75.0
        assert accuracy.intensity_accuracy == 75.0

    def test_average_of_nothing_is_none(self, make_task):
        accuracy = average_accuracy([make_task()])

        assert accuracy.time_accuracy is None
        assert accuracy.intensity_accuracy is None


class TestEstimationBreakdown:
    def test_classification(self, make_task):
        tasks = [
            make_task(1, estimated_minutes=60, actual_minutes=70),   # within 25%
            make_task(2, estimated_minutes=60, actual_minutes=100),  # took longer
            make_task(3, estimated_minutes=60, actual_minutes=20),   # took less
            make_task(4, estimated_minutes=60),                      # no actual
        ]
        breakdown = estimation_breakdown(tasks)

        assert breakdown.total_tasks_with_estimates == 3
        assert breakdown.accurate_estimates == 1
        assert breakdown.underestimated_tasks == 1
        assert breakdown.overestimated_tasks == 1
        assert breakdown.accuracy_percentage == pytest.approx(33.33, abs=0.01)

    def test_empty(self):
        assert estimation_breakdown([]).accuracy_percentage == 0.0
