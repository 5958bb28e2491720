"""Datetime utilities with consistent UTC timezone handling.

Every timestamp TaskPulse stores or compares goes through these helpers so
that naive and aware datetimes never get mixed.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import parsedatetime


def now_utc() -> datetime:
    """Return current datetime in UTC timezone.

    Returns:
        Current datetime with timezone=UTC
    """
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware, assuming UTC if naive.

    Args:
        dt: Datetime to check/convert, or None

    Returns:
        Timezone-aware datetime, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt


def start_of_day(dt: datetime) -> datetime:
    """Truncate a datetime to midnight of the same (UTC) day."""
    return ensure_aware(dt).replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(dt: datetime, first_day_of_week: int = 0) -> datetime:
    """Floor a datetime to the start of its week.

    Args:
        dt: Datetime to floor
        first_day_of_week: 0=Monday ... 6=Sunday
    """
    day = start_of_day(dt)
    days_back = (day.weekday() - first_day_of_week) % 7
    return day - timedelta(days=days_back)


def start_of_month(dt: datetime) -> datetime:
    """Floor a datetime to the first day of its month."""
    return start_of_day(dt).replace(day=1)


def add_months(dt: datetime, months: int) -> datetime:
    """Shift a month-aligned datetime by a number of months."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    return dt.replace(year=year, month=month_index % 12 + 1, day=1)


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO string (or YYYY-MM-DD date) into an aware datetime.

    Raises:
        ValueError: If the string is not a recognizable date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    try:
        return ensure_aware(datetime.fromisoformat(value))
    except ValueError:
        return ensure_aware(datetime.strptime(value, "%Y-%m-%d"))


def to_iso_string(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO string with timezone info.

    Args:
        dt: Datetime to convert, or None

    Returns:
        ISO format string with timezone, or None if input was None
    """
    if dt is None:
        return None

    return ensure_aware(dt).isoformat()


def parse_human_datetime(value: Union[str, datetime, None],
                         now: Optional[datetime] = None) -> Optional[datetime]:
    """Parse an ISO date or a natural phrase like "tomorrow" or "next friday".

    Relative phrases are resolved against ``now`` (current UTC time by
    default).

    Raises:
        ValueError: If the text is neither an ISO date nor a phrase
            parsedatetime understands
    """
    try:
        return parse_datetime(value)
    except ValueError:
        pass

    source = ensure_aware(now) if now is not None else now_utc()
    time_struct, parse_status = parsedatetime.Calendar().parse(value.strip(), source)
    if parse_status > 0:
        return ensure_aware(datetime(*time_struct[:6]))
    raise ValueError(f"Unrecognized date: {value!r}")
