"""Human-readable formatting for durations and percentages."""

from typing import Optional


def format_minutes(minutes: int) -> str:
    """Format minutes as "2h 30m", "45m" or "3h"."""
    hours, mins = divmod(int(minutes), 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"


def format_seconds(seconds: int) -> str:
    """Format a stopwatch value: "1:02:03" above an hour, "2:03" below."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_average(minutes: float) -> str:
    """Format an average duration, switching to hours past the hour mark."""
    if minutes < 60:
        return f"{round(minutes)}m"
    return f"{round(minutes / 60, 1)}h"


def format_percentage(value: Optional[float], decimals: int = 0) -> str:
    if value is None:
        return "n/a"
    return f"{value:.{decimals}f}%"
