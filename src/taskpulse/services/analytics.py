"""Productivity aggregation for TaskPulse.

This module turns a task history into period metrics:
- Calendar bucketing by day, week and month with [start, end) windows
- Per-bucket completion counts, worked time and estimation accuracy
- Composite productivity score and day-to-day consistency
- Trend against the preceding bucket of the same size
- Project, intensity and weekday breakdowns for reports

Everything here is computed fresh from the tasks passed in; nothing is cached.
"""

import logging
import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..task import Task, TaskStatus
from ..utils.datetime import (
    add_months,
    ensure_aware,
    now_utc,
    start_of_day,
    start_of_month,
    start_of_week,
    to_iso_string,
)
from .accuracy import average_accuracy

logger = logging.getLogger(__name__)

# Composite score weights; each input is scaled to 0-1 first.
COMPLETION_WEIGHT = 0.3
TIME_ACCURACY_WEIGHT = 0.3
INTENSITY_ACCURACY_WEIGHT = 0.2
CONSISTENCY_WEIGHT = 0.2

MIN_CONSISTENCY_DAYS = 7
DEFAULT_CONSISTENCY = 0.5
TREND_BAND = 0.1
HIGH_INTENSITY_LEVEL = 4
TOP_PROJECT_LIMIT = 5
WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class ReportGranularity(Enum):
    """Calendar bucket sizes"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class Trend(Enum):
    """Direction of change against the previous period"""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


@dataclass
class DateRange:
    """Half-open window [start, end)"""
    start: datetime
    end: datetime
    label: str = ""

    def __post_init__(self):
        self.start = ensure_aware(self.start)
        self.end = ensure_aware(self.end)
        if not self.label:
            self.label = f"{self.start:%B %d, %Y} - {self.end:%B %d, %Y}"

    def contains(self, moment: Optional[datetime]) -> bool:
        return moment is not None and self.start <= moment < self.end

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': to_iso_string(self.start),
            'end': to_iso_string(self.end),
            'label': self.label,
        }


def calculate_date_range(granularity: ReportGranularity, reference: datetime,
                         first_day_of_week: int = 0) -> DateRange:
    """Calendar window of the given size containing ``reference``"""
    reference = ensure_aware(reference)
    if granularity == ReportGranularity.DAY:
        start = start_of_day(reference)
        return DateRange(start, start + timedelta(days=1), f"{start:%B %d, %Y}")
    elif granularity == ReportGranularity.WEEK:
        start = start_of_week(reference, first_day_of_week)
        return DateRange(start, start + timedelta(days=7), f"Week of {start:%B %d, %Y}")
    else:
        start = start_of_month(reference)
        return DateRange(start, add_months(start, 1), f"{start:%B %Y}")


def previous_range(date_range: DateRange, granularity: ReportGranularity,
                   first_day_of_week: int = 0) -> DateRange:
    """The bucket immediately before the one starting at ``date_range.start``"""
    return calculate_date_range(
        granularity, date_range.start - timedelta(microseconds=1), first_day_of_week
    )


def iter_buckets(date_range: DateRange, granularity: ReportGranularity,
                 first_day_of_week: int = 0) -> List[DateRange]:
    """Consecutive calendar buckets covering a range.

    The first bucket is the calendar window containing the range start, so it
    may begin slightly before it.
    """
    buckets = []
    bucket = calculate_date_range(granularity, date_range.start, first_day_of_week)
    while bucket.start < date_range.end:
        buckets.append(bucket)
        bucket = calculate_date_range(granularity, bucket.end, first_day_of_week)
    return buckets


# ----- selectors -----

def completed_in(tasks: Iterable[Task], date_range: DateRange) -> List[Task]:
    """Tasks whose completion time falls inside the range"""
    return [t for t in tasks if date_range.contains(t.completed_at)]


def open_during(tasks: Iterable[Task], date_range: DateRange) -> List[Task]:
    """Tasks that existed and were not yet finished at some point in the range.

    Archived tasks that were never completed are left out.
    """
    result = []
    for task in tasks:
        if task.status == TaskStatus.ARCHIVED and task.completed_at is None:
            continue
        if task.created_at >= date_range.end:
            continue
        if task.completed_at is not None and task.completed_at < date_range.start:
            continue
        result.append(task)
    return result


def total_minutes(tasks: Iterable[Task]) -> int:
    return sum(t.actual_minutes or 0 for t in tasks)


# ----- metrics -----

def calculate_consistency(completed: Iterable[Task]) -> float:
    """Inverse relative spread of completions per calendar day.

    Needs completions on at least 7 distinct days; otherwise the sample is
    too small and the neutral default of 0.5 is returned.
    """
    daily_counts = defaultdict(int)
    for task in completed:
        if task.completed_at is not None:
            daily_counts[task.completed_at.date()] += 1

    if len(daily_counts) < MIN_CONSISTENCY_DAYS:
        return DEFAULT_CONSISTENCY

    counts = list(daily_counts.values())
    mean = statistics.mean(counts)
    spread = statistics.pstdev(counts)
    return min(1.0, max(0.0, 1 - spread / max(1, mean)))


def calculate_productivity_score(completed: List[Task], open_count: int) -> int:
    """Weighted 0-100 composite of completion, accuracy and consistency.

    Missing accuracy means contribute nothing to the score.
    """
    if not completed:
        return 0

    accuracy = average_accuracy(completed)
    completion_rate = min(1.0, len(completed) / max(1, open_count))
    time_factor = (accuracy.time_accuracy or 0.0) / 100
    intensity_factor = (accuracy.intensity_accuracy or 0.0) / 100
    consistency = calculate_consistency(completed)

    score = (
        completion_rate * COMPLETION_WEIGHT
        + time_factor * TIME_ACCURACY_WEIGHT
        + intensity_factor * INTENSITY_ACCURACY_WEIGHT
        + consistency * CONSISTENCY_WEIGHT
    )
    return round(score * 100)


def activity_score(completed: Iterable[Task]) -> float:
    """Completed count plus hours worked; the basis for trend comparison"""
    completed = list(completed)
    return len(completed) + total_minutes(completed) / 60


def classify_trend(current: float, previous: float) -> Trend:
    """Compare two period scores using a fixed +/-10% band.

    A change of exactly 10% already counts; the comparison is done on the
    difference so that 110 against 100 is not lost to float rounding.
    """
    if current == previous:
        return Trend.STABLE
    band = previous * TREND_BAND
    if current - previous >= band:
        return Trend.UP
    if previous - current >= band:
        return Trend.DOWN
    return Trend.STABLE


def high_intensity_share(completed: Iterable[Task]) -> Optional[float]:
    """Fraction of tasks with a recorded intensity that were intensity 4 or 5"""
    rated = [t for t in completed if t.actual_intensity is not None]
    if not rated:
        return None
    high = sum(1 for t in rated if t.actual_intensity >= HIGH_INTENSITY_LEVEL)
    return high / len(rated)


# ----- result types -----

@dataclass
class BucketMetrics:
    """Metrics for one calendar bucket"""
    period: DateRange
    completed_tasks: int
    total_minutes: int
    time_accuracy: Optional[float]
    intensity_accuracy: Optional[float]
    productivity_score: int
    consistency: float
    activity_score: float
    trend: Trend = Trend.STABLE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'period': self.period.to_dict(),
            'completed_tasks': self.completed_tasks,
            'total_minutes': self.total_minutes,
            'time_accuracy': self.time_accuracy,
            'intensity_accuracy': self.intensity_accuracy,
            'productivity_score': self.productivity_score,
            'consistency': self.consistency,
            'activity_score': self.activity_score,
            'trend': self.trend.value,
        }


@dataclass
class ReportSummary:
    """Period totals; the only input the insight rules see"""
    total_tasks: int
    completed_tasks: int
    total_minutes: int
    average_task_minutes: float
    time_accuracy: Optional[float]
    intensity_accuracy: Optional[float]
    productivity_score: int
    consistency: float
    high_intensity_share: Optional[float] = None
    trend: Trend = Trend.STABLE
    project_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'total_tasks': self.total_tasks,
            'completed_tasks': self.completed_tasks,
            'total_minutes': self.total_minutes,
            'average_task_minutes': self.average_task_minutes,
            'time_accuracy': self.time_accuracy,
            'intensity_accuracy': self.intensity_accuracy,
            'productivity_score': self.productivity_score,
            'consistency': self.consistency,
            'high_intensity_share': self.high_intensity_share,
            'trend': self.trend.value,
            'project_count': self.project_count,
        }


@dataclass
class Summary:
    """Whole-history overview"""
    total_tasks: int
    completed_tasks: int
    total_hours: float
    avg_time_accuracy: Optional[float]
    avg_intensity_accuracy: Optional[float]
    productivity_score: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'total_tasks': self.total_tasks,
            'completed_tasks': self.completed_tasks,
            'total_hours': self.total_hours,
            'avg_time_accuracy': self.avg_time_accuracy,
            'avg_intensity_accuracy': self.avg_intensity_accuracy,
            'productivity_score': self.productivity_score,
        }


@dataclass
class CompletionStats:
    """Status counts and estimate averages for a set of tasks"""
    total_tasks: int
    completed_tasks: int
    in_progress_tasks: int
    todo_tasks: int
    completion_rate: float
    avg_estimated_minutes: float
    avg_actual_minutes: Optional[float]
    avg_time_accuracy: Optional[float]
    avg_intensity_accuracy: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_tasks': self.total_tasks,
            'completed_tasks': self.completed_tasks,
            'in_progress_tasks': self.in_progress_tasks,
            'todo_tasks': self.todo_tasks,
            'completion_rate': self.completion_rate,
            'avg_estimated_minutes': self.avg_estimated_minutes,
            'avg_actual_minutes': self.avg_actual_minutes,
            'avg_time_accuracy': self.avg_time_accuracy,
            'avg_intensity_accuracy': self.avg_intensity_accuracy,
        }


def completion_stats(tasks: Iterable[Task]) -> CompletionStats:
    """Count tasks by status and average their estimates.

    ``completion_rate`` is a percentage, 0 for no tasks. Actual minutes and
    accuracies are averaged over completed tasks only; done tasks that were
    later archived still count as completed.
    """
    tasks = list(tasks)
    completed = [t for t in tasks if t.completed_at is not None]
    actual = [t.actual_minutes for t in completed if t.actual_minutes is not None]
    accuracy = average_accuracy(completed)

    return CompletionStats(
        total_tasks=len(tasks),
        completed_tasks=len(completed),
        in_progress_tasks=sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS),
        todo_tasks=sum(1 for t in tasks if t.status == TaskStatus.TODO),
        completion_rate=len(completed) / len(tasks) * 100 if tasks else 0.0,
        avg_estimated_minutes=(statistics.mean(t.estimated_minutes for t in tasks)
                               if tasks else 0.0),
        avg_actual_minutes=statistics.mean(actual) if actual else None,
        avg_time_accuracy=accuracy.time_accuracy,
        avg_intensity_accuracy=accuracy.intensity_accuracy,
    )


@dataclass
class ProjectBreakdown:
    project: str
    tasks: int
    minutes: int


@dataclass
class ReportBreakdowns:
    """Detailed breakdowns shown alongside a report"""
    projects: List[ProjectBreakdown] = field(default_factory=list)
    intensity_distribution: List[Dict[str, int]] = field(default_factory=list)
    weekday_pattern: List[Dict[str, Any]] = field(default_factory=list)
    top_projects: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'projects': [
                {'project': p.project, 'tasks': p.tasks, 'minutes': p.minutes}
                for p in self.projects
            ],
            'intensity_distribution': self.intensity_distribution,
            'weekday_pattern': self.weekday_pattern,
            'top_projects': self.top_projects,
        }


class ProductivityAggregator:
    """Core aggregation engine for period reports"""

    def __init__(self, first_day_of_week: int = 0,
                 project_names: Optional[Dict[int, str]] = None):
        self.first_day_of_week = first_day_of_week
        self.project_names = project_names or {}

    def date_range(self, granularity: ReportGranularity,
                   reference: Optional[datetime] = None) -> DateRange:
        return calculate_date_range(granularity, reference or now_utc(), self.first_day_of_week)

    def bucket_metrics(self, tasks: List[Task], bucket: DateRange,
                       granularity: ReportGranularity) -> BucketMetrics:
        """Metrics for one bucket, with its trend against the bucket before it"""
        completed = completed_in(tasks, bucket)
        accuracy = average_accuracy(completed)
        current_activity = activity_score(completed)

        previous = previous_range(bucket, granularity, self.first_day_of_week)
        previous_activity = activity_score(completed_in(tasks, previous))

        return BucketMetrics(
            period=bucket,
            completed_tasks=len(completed),
            total_minutes=total_minutes(completed),
            time_accuracy=accuracy.time_accuracy,
            intensity_accuracy=accuracy.intensity_accuracy,
            productivity_score=calculate_productivity_score(
                completed, len(open_during(tasks, bucket))
            ),
            consistency=calculate_consistency(completed),
            activity_score=current_activity,
            trend=classify_trend(current_activity, previous_activity),
        )

    def per_bucket(self, tasks: Iterable[Task], date_range: DateRange,
                   granularity: ReportGranularity) -> List[BucketMetrics]:
        tasks = list(tasks)
        buckets = iter_buckets(date_range, granularity, self.first_day_of_week)
        logger.debug(f"Aggregating {len(tasks)} tasks into {len(buckets)} "
                     f"{granularity.value} buckets")
        return [self.bucket_metrics(tasks, bucket, granularity) for bucket in buckets]

    def period_summary(self, tasks: Iterable[Task], date_range: DateRange,
                       trend: Trend = Trend.STABLE) -> ReportSummary:
        """Totals over a whole report range"""
        tasks = list(tasks)
        completed = completed_in(tasks, date_range)
        accuracy = average_accuracy(completed)
        minutes = total_minutes(completed)
        projects = {t.project_id for t in completed if t.project_id is not None}

        return ReportSummary(
            total_tasks=len(open_during(tasks, date_range)),
            completed_tasks=len(completed),
            total_minutes=minutes,
            average_task_minutes=minutes / len(completed) if completed else 0.0,
            time_accuracy=accuracy.time_accuracy,
            intensity_accuracy=accuracy.intensity_accuracy,
            productivity_score=calculate_productivity_score(
                completed, len(open_during(tasks, date_range))
            ),
            consistency=calculate_consistency(completed),
            high_intensity_share=high_intensity_share(completed),
            trend=trend,
            project_count=len(projects),
        )

    def summarize(self, tasks: Iterable[Task]) -> Summary:
        """Overview of a whole task collection, completed or not"""
        tasks = list(tasks)
        completed = [t for t in tasks if t.completed_at is not None]
        accuracy = average_accuracy(completed)

        return Summary(
            total_tasks=len(tasks),
            completed_tasks=len(completed),
            total_hours=round(total_minutes(completed) / 60, 1),
            avg_time_accuracy=accuracy.time_accuracy,
            avg_intensity_accuracy=accuracy.intensity_accuracy,
            productivity_score=calculate_productivity_score(completed, len(tasks)),
        )

    # ----- breakdowns -----

    def project_breakdown(self, completed: Iterable[Task]) -> List[ProjectBreakdown]:
        """Tasks and minutes per project, most time first"""
        by_project = defaultdict(lambda: [0, 0])
        for task in completed:
            if task.project_id is None:
                continue
            by_project[task.project_id][0] += 1
            by_project[task.project_id][1] += task.actual_minutes or 0

        breakdown = [
            ProjectBreakdown(
                project=self.project_names.get(project_id, f"Project {project_id}"),
                tasks=counts[0],
                minutes=counts[1],
            )
            for project_id, counts in by_project.items()
        ]
        breakdown.sort(key=lambda p: p.minutes, reverse=True)
        return breakdown

    def intensity_distribution(self, completed: List[Task]) -> List[Dict[str, int]]:
        counts = defaultdict(int)
        for task in completed:
            if task.actual_intensity is not None:
                counts[task.actual_intensity] += 1
        return [
            {
                'level': level,
                'count': count,
                'percentage': round(count / max(1, len(completed)) * 100),
            }
            for level, count in sorted(counts.items())
        ]

    def weekday_pattern(self, completed: Iterable[Task],
                        granularity: ReportGranularity) -> List[Dict[str, Any]]:
        """Completions and minutes per weekday, Monday first"""
        if granularity == ReportGranularity.DAY:
            return []
        tasks_by_day = defaultdict(int)
        minutes_by_day = defaultdict(int)
        for task in completed:
            day = WEEKDAYS[task.completed_at.weekday()]
            tasks_by_day[day] += 1
            minutes_by_day[day] += task.actual_minutes or 0
        return [
            {'day': day, 'tasks': tasks_by_day[day], 'minutes': minutes_by_day[day]}
            for day in WEEKDAYS
        ]

    def breakdowns(self, tasks: Iterable[Task], date_range: DateRange,
                   granularity: ReportGranularity) -> ReportBreakdowns:
        completed = completed_in(tasks, date_range)
        projects = self.project_breakdown(completed)
        return ReportBreakdowns(
            projects=projects,
            intensity_distribution=self.intensity_distribution(completed),
            weekday_pattern=self.weekday_pattern(completed, granularity),
            top_projects=[
                {'name': p.project, 'hours': round(p.minutes / 60, 1), 'tasks': p.tasks}
                for p in projects[:TOP_PROJECT_LIMIT]
            ],
        )

    def daily_series(self, tasks: Iterable[Task], days: int = 7,
                     end: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """One zero-filled entry per calendar day for the last ``days`` days"""
        last_day = start_of_day(end or now_utc())
        first_day = last_day - timedelta(days=days - 1)
        series = {
            (first_day + timedelta(days=offset)).date(): {'minutes': 0, 'tasks_completed': 0}
            for offset in range(days)
        }
        for task in tasks:
            if task.completed_at is None:
                continue
            entry = series.get(task.completed_at.date())
            if entry is not None:
                entry['minutes'] += task.actual_minutes or 0
                entry['tasks_completed'] += 1
        return [
            {'date': day.isoformat(), **values}
            for day, values in sorted(series.items())
        ]
