"""Estimation accuracy calculations.

Pure functions turning (estimated, actual) pairs into 0-100 scores. Tasks
without a recorded actual value are left out of averages entirely; they are
never counted as a score of 0.
"""

import statistics
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from ..task import Task

INTENSITY_SCALE_SPAN = 4  # 1-5 scale, largest possible miss
ACCURATE_THRESHOLD = 0.25  # within 25% of the estimate


def time_accuracy(estimated: float, actual: float) -> float:
    """Closeness of actual time to the estimate, relative to the estimate.

    Returns 0 when either value is not positive. An actual of twice the
    estimate (or more) scores 0.
    """
    if estimated is None or actual is None or estimated <= 0 or actual <= 0:
        return 0.0
    return max(0.0, (1 - abs(actual - estimated) / estimated) * 100)


def intensity_accuracy(estimated: int, actual: int) -> float:
    """Closeness of actual intensity to the estimate on the fixed 1-5 scale."""
    score = (1 - abs(actual - estimated) / INTENSITY_SCALE_SPAN) * 100
    return min(100.0, max(0.0, score))


@dataclass
class TaskAccuracy:
    """Per-task accuracy; None where the actual value is missing"""
    time_accuracy: Optional[float]
    intensity_accuracy: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'time_accuracy': self.time_accuracy,
            'intensity_accuracy': self.intensity_accuracy,
        }


def compute_accuracy(task: Task) -> TaskAccuracy:
    time_score = None
    if task.actual_minutes is not None:
        time_score = time_accuracy(task.estimated_minutes, task.actual_minutes)

    intensity_score = None
    if task.actual_intensity is not None:
        intensity_score = intensity_accuracy(task.estimated_intensity, task.actual_intensity)

    return TaskAccuracy(time_score, intensity_score)


def average_accuracy(tasks: Iterable[Task]) -> TaskAccuracy:
    """Mean accuracies over the tasks that have the matching actual value.

    Each mean is None when no task qualifies.
    """
    time_scores = []
    intensity_scores = []
    for task in tasks:
        accuracy = compute_accuracy(task)
        if accuracy.time_accuracy is not None:
            time_scores.append(accuracy.time_accuracy)
        if accuracy.intensity_accuracy is not None:
            intensity_scores.append(accuracy.intensity_accuracy)

    return TaskAccuracy(
        statistics.mean(time_scores) if time_scores else None,
        statistics.mean(intensity_scores) if intensity_scores else None,
    )


@dataclass
class EstimationBreakdown:
    """How time estimates compared to actual time"""
    total_tasks_with_estimates: int
    accurate_estimates: int  # Within 25% of actual
    underestimated_tasks: int
    overestimated_tasks: int

    @property
    def accuracy_percentage(self) -> float:
        if not self.total_tasks_with_estimates:
            return 0.0
        return self.accurate_estimates / self.total_tasks_with_estimates * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'total_tasks_with_estimates': self.total_tasks_with_estimates,
            'accurate_estimates': self.accurate_estimates,
            'underestimated_tasks': self.underestimated_tasks,
            'overestimated_tasks': self.overestimated_tasks,
            'accuracy_percentage': self.accuracy_percentage,
        }


def estimation_breakdown(tasks: Iterable[Task]) -> EstimationBreakdown:
    """Classify each task with a recorded time against its estimate.

    A task whose actual time is within 25% of the estimate counts as
    accurate; otherwise it was underestimated (took longer) or
    overestimated (took less).
    """
    total = accurate = under = over = 0
    for task in tasks:
        if task.actual_minutes is None or task.estimated_minutes <= 0:
            continue
        total += 1
        error = (task.actual_minutes - task.estimated_minutes) / task.estimated_minutes
        if abs(error) <= ACCURATE_THRESHOLD:
            accurate += 1
        elif error > 0:
            under += 1
        else:
            over += 1

    return EstimationBreakdown(total, accurate, under, over)
