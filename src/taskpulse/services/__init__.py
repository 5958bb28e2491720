"""Application services for TaskPulse.

``TaskService`` lives in :mod:`taskpulse.services.task_service`; it depends on
the storage layer and is exported from the top-level package instead.
"""

from .time_tracking import TimeSession, TimeSessionLedger, TimerStats, timer_stats
from .accuracy import (
    TaskAccuracy,
    average_accuracy,
    compute_accuracy,
    estimation_breakdown,
    intensity_accuracy,
    time_accuracy,
)
from .analytics import (
    CompletionStats,
    DateRange,
    ProductivityAggregator,
    ReportGranularity,
    ReportSummary,
    Summary,
    Trend,
    calculate_date_range,
    classify_trend,
    completion_stats,
)
from .insights import Insight, InsightGenerator
from .reports import Report, generate_report

__all__ = [
    "TimeSession",
    "TimeSessionLedger",
    "TimerStats",
    "timer_stats",
    "TaskAccuracy",
    "average_accuracy",
    "compute_accuracy",
    "estimation_breakdown",
    "intensity_accuracy",
    "time_accuracy",
    "DateRange",
    "ProductivityAggregator",
    "ReportGranularity",
    "ReportSummary",
    "Summary",
    "CompletionStats",
    "Trend",
    "calculate_date_range",
    "completion_stats",
    "classify_trend",
    "Insight",
    "InsightGenerator",
    "Report",
    "generate_report",
]
