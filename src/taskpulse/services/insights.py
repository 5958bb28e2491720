"""
Rule-based Insight Generator for TaskPulse

Turns a period summary into human-readable recommendations. The rules are a
fixed, ordered list with constant thresholds; every matching rule fires, and
a single fallback message is produced when none do.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .analytics import ReportSummary, Trend

REQUEST_MORE_DATA_BELOW = 5
PRAISE_SCORE = 80
LOW_ACCURACY = 70
LONG_TASK_MINUTES = 120
QUICK_TASK_MINUTES = 30
BURNOUT_SHARE = 0.5
LOW_CHALLENGE_SHARE = 0.2
MANY_PROJECTS = 3

FALLBACK_MESSAGE = "Keep tracking your tasks to unlock more personalized insights!"


@dataclass
class Insight:
    """A fired rule and its message"""
    rule: str
    category: str  # 'warning', 'praise', 'suggestion', 'info'
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {'rule': self.rule, 'category': self.category, 'message': self.message}


@dataclass(frozen=True)
class InsightRule:
    name: str
    category: str
    predicate: Callable[[ReportSummary], bool]
    message: Callable[[ReportSummary], str]


def _accuracy_below(value: Optional[float], threshold: float) -> bool:
    return value is not None and value < threshold


INSIGHT_RULES: Tuple[InsightRule, ...] = (
    InsightRule(
        "no_completions", "suggestion",
        lambda s: s.completed_tasks == 0,
        lambda s: "No tasks completed in this period. Consider setting smaller, achievable goals.",
    ),
    InsightRule(
        "more_data_needed", "info",
        lambda s: 0 < s.completed_tasks < REQUEST_MORE_DATA_BELOW,
        lambda s: (f"Only {s.completed_tasks} completed task(s) so far. Complete at least "
                   f"{REQUEST_MORE_DATA_BELOW} for more reliable feedback."),
    ),
    InsightRule(
        "high_score", "praise",
        lambda s: s.productivity_score >= PRAISE_SCORE,
        lambda s: f"Excellent productivity score of {s.productivity_score}! Keep it up.",
    ),
    InsightRule(
        "time_estimates_off", "warning",
        lambda s: _accuracy_below(s.time_accuracy, LOW_ACCURACY),
        lambda s: (f"Time estimates are {s.time_accuracy:.0f}% accurate. Try breaking work "
                   "down before estimating, or pad estimates for unfamiliar tasks."),
    ),
    InsightRule(
        "intensity_estimates_off", "warning",
        lambda s: _accuracy_below(s.intensity_accuracy, LOW_ACCURACY),
        lambda s: (f"Intensity estimates are {s.intensity_accuracy:.0f}% accurate. "
                   "Reflect on how demanding similar tasks felt before rating new ones."),
    ),
    InsightRule(
        "long_tasks", "suggestion",
        lambda s: s.average_task_minutes > LONG_TASK_MINUTES,
        lambda s: "Your tasks took longer than average. Consider breaking them down into smaller chunks.",
    ),
    InsightRule(
        "quick_tasks", "info",
        lambda s: 0 < s.average_task_minutes < QUICK_TASK_MINUTES,
        lambda s: ("You're completing tasks quickly! This could indicate good efficiency "
                   "or tasks that are too small."),
    ),
    InsightRule(
        "burnout_risk", "warning",
        lambda s: s.high_intensity_share is not None and s.high_intensity_share > BURNOUT_SHARE,
        lambda s: "High intensity focus! Make sure to balance with easier tasks to avoid burnout.",
    ),
    InsightRule(
        "low_challenge", "suggestion",
        lambda s: s.high_intensity_share is not None and s.high_intensity_share < LOW_CHALLENGE_SHARE,
        lambda s: "Mostly low-intensity tasks. Consider tackling some challenging work for growth.",
    ),
    InsightRule(
        "trending_up", "praise",
        lambda s: s.trend == Trend.UP,
        lambda s: "Productivity is trending upward! Keep up the momentum.",
    ),
    InsightRule(
        "trending_down", "warning",
        lambda s: s.trend == Trend.DOWN,
        lambda s: ("Productivity has decreased. Consider what might be causing this "
                   "and how to address it."),
    ),
    InsightRule(
        "many_projects", "warning",
        lambda s: s.project_count > MANY_PROJECTS,
        lambda s: ("You're working on multiple projects. Make sure you're maintaining focus "
                   "and not spreading too thin."),
    ),
)


class InsightGenerator:
    """Evaluates every rule against a summary"""

    rules = INSIGHT_RULES

    def evaluate(self, summary: ReportSummary) -> List[Insight]:
        insights = [
            Insight(rule.name, rule.category, rule.message(summary))
            for rule in self.rules
            if rule.predicate(summary)
        ]
        if not insights:
            insights.append(Insight("fallback", "info", FALLBACK_MESSAGE))
        return insights

    def messages(self, summary: ReportSummary) -> List[str]:
        return [insight.message for insight in self.evaluate(summary)]
