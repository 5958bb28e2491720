"""Period reports: aggregation plus insights in one structure."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..task import Task
from .analytics import (
    BucketMetrics,
    DateRange,
    ProductivityAggregator,
    ReportBreakdowns,
    ReportGranularity,
    ReportSummary,
    Trend,
)
from .insights import InsightGenerator


@dataclass
class Report:
    """Comprehensive period report"""
    period: DateRange
    granularity: ReportGranularity
    totals: ReportSummary
    per_bucket: List[BucketMetrics]
    insights: List[str]
    breakdowns: ReportBreakdowns = field(default_factory=ReportBreakdowns)

    @property
    def trend(self) -> Trend:
        return self.totals.trend

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'period': self.period.to_dict(),
            'granularity': self.granularity.value,
            'totals': self.totals.to_dict(),
            'per_bucket': [bucket.to_dict() for bucket in self.per_bucket],
            'insights': self.insights,
            'breakdowns': self.breakdowns.to_dict(),
        }


def generate_report(tasks: Iterable[Task], date_range: DateRange,
                    granularity: ReportGranularity,
                    aggregator: Optional[ProductivityAggregator] = None) -> Report:
    """Build a report over ``date_range`` split into ``granularity`` buckets.

    The report trend is the trend of the last (current) bucket against the
    bucket before it.
    """
    aggregator = aggregator or ProductivityAggregator()
    tasks = list(tasks)

    per_bucket = aggregator.per_bucket(tasks, date_range, granularity)
    trend = per_bucket[-1].trend if per_bucket else Trend.STABLE
    totals = aggregator.period_summary(tasks, date_range, trend)

    return Report(
        period=date_range,
        granularity=granularity,
        totals=totals,
        per_bucket=per_bucket,
        insights=InsightGenerator().messages(totals),
        breakdowns=aggregator.breakdowns(tasks, date_range, granularity),
    )
