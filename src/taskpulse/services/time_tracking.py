"""Time session ledger for TaskPulse.

This module records start/stop work intervals per task:
- At most one active session per task; starting again closes the old one
- Durations are fixed once, at stop time, from the ledger's clock
- Elapsed time of a running session is recomputed on every call
- Manual entries for time worked away from the timer
- Timer statistics (today/week/month totals, session length, peak hour)
"""

import logging
import statistics
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..errors import ValidationError
from ..task import Task
from ..utils.datetime import (
    ensure_aware,
    now_utc,
    parse_datetime,
    start_of_day,
    start_of_month,
    start_of_week,
    to_iso_string,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class TimeSession:
    """One recorded start/stop interval of work on a task"""
    id: Optional[int]
    task_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    is_active: bool = True
    description: str = ""

    def __post_init__(self):
        self.start_time = ensure_aware(self.start_time)
        self.end_time = ensure_aware(self.end_time)

    def elapsed_seconds(self, now: datetime) -> int:
        """Seconds worked so far; the fixed duration once the session is closed."""
        if not self.is_active:
            return self.duration_seconds or 0
        return max(0, int((ensure_aware(now) - self.start_time).total_seconds()))

    def close(self, end_time: datetime) -> bool:
        """Stop the session and fix its duration.

        Returns:
            False if the session was already closed; its duration is untouched
        """
        if not self.is_active:
            return False
        self.end_time = ensure_aware(end_time)
        self.duration_seconds = max(0, int((self.end_time - self.start_time).total_seconds()))
        self.is_active = False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'id': self.id,
            'task_id': self.task_id,
            'start_time': to_iso_string(self.start_time),
            'end_time': to_iso_string(self.end_time),
            'duration_seconds': self.duration_seconds,
            'is_active': self.is_active,
            'description': self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimeSession':
        """Create from dictionary"""
        return cls(
            id=data.get('id'),
            task_id=data['task_id'],
            start_time=parse_datetime(data['start_time']),
            end_time=parse_datetime(data.get('end_time')),
            duration_seconds=data.get('duration_seconds'),
            is_active=data.get('is_active', data.get('end_time') is None),
            description=data.get('description', ''),
        )


class TimeSessionLedger:
    """Session bookkeeping over a snapshot of sessions.

    The ledger never talks to storage. Callers load the sessions they care
    about, apply operations, and persist whatever the operations returned.
    Sessions created here carry ``id=None`` until a repository assigns one.
    """

    def __init__(self, sessions: Iterable[TimeSession] = (), clock: Clock = now_utc):
        self.sessions: List[TimeSession] = list(sessions)
        self.clock = clock

    def sessions_for(self, task_id: int) -> List[TimeSession]:
        return [s for s in self.sessions if s.task_id == task_id]

    def active_session(self, task_id: int) -> Optional[TimeSession]:
        """Return the running session for a task, if any"""
        for session in self.sessions:
            if session.task_id == task_id and session.is_active:
                return session
        return None

    def start(self, task: Task) -> TimeSession:
        """Start a new session for a task.

        Any session still running for the task is closed first, so repeated
        starts converge to exactly one active session. A todo task moves to
        in_progress.
        """
        now = self.clock()
        for session in self.sessions_for(task.id):
            if session.is_active:
                session.close(now)
                logger.debug(f"Closed session {session.id} for task {task.id} "
                             f"after {session.duration_seconds}s")

        session = TimeSession(id=None, task_id=task.id, start_time=now)
        self.sessions.append(session)

        if task.start(now):
            logger.info(f"Task {task.id} moved to in_progress")

        return session

    def stop(self, task_id: int) -> Optional[TimeSession]:
        """Stop the running session for a task; None when nothing is running"""
        session = self.active_session(task_id)
        if session is None:
            return None
        session.close(self.clock())
        return session

    def stop_session(self, session_id: int) -> Optional[TimeSession]:
        """Stop a session by id; None when it is unknown or already stopped"""
        for session in self.sessions:
            if session.id == session_id and session.is_active:
                session.close(self.clock())
                return session
        return None

    def elapsed(self, task_id: int) -> int:
        """Seconds since the active session started, 0 when none is running"""
        session = self.active_session(task_id)
        if session is None:
            return 0
        return session.elapsed_seconds(self.clock())

    def total_seconds(self, task_id: int) -> int:
        """Sum of every session's duration, the running one counted up to now"""
        now = self.clock()
        return sum(s.elapsed_seconds(now) for s in self.sessions_for(task_id))

    def total_minutes(self, task_id: int) -> int:
        return round(self.total_seconds(task_id) / 60)

    def add_manual_session(self, task_id: int, start_time: datetime, end_time: datetime,
                           description: str = "") -> TimeSession:
        """Record a closed session for time worked away from the timer"""
        start_time = ensure_aware(start_time)
        end_time = ensure_aware(end_time)
        if end_time <= start_time:
            raise ValidationError("End time must be after start time", "end_time",
                                  to_iso_string(end_time))

        session = TimeSession(id=None, task_id=task_id, start_time=start_time,
                              description=description)
        session.close(end_time)
        self.sessions.append(session)
        return session


@dataclass
class TimerStats:
    """Tracked time summary (all totals in seconds)"""
    total_time_today: int
    total_time_week: int
    total_time_month: int
    average_session_length: float
    most_productive_hour: Optional[int]
    session_count: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'total_time_today': self.total_time_today,
            'total_time_week': self.total_time_week,
            'total_time_month': self.total_time_month,
            'average_session_length': self.average_session_length,
            'most_productive_hour': self.most_productive_hour,
            'session_count': self.session_count,
        }


def timer_stats(sessions: Iterable[TimeSession], now: Optional[datetime] = None,
                first_day_of_week: int = 0) -> TimerStats:
    """Summarize tracked time.

    Sessions are attributed to the window their start time falls in; the
    most productive hour is the start hour with the most tracked seconds.
    """
    now = ensure_aware(now) or now_utc()
    sessions = list(sessions)
    day_start = start_of_day(now)
    week_start = start_of_week(now, first_day_of_week)
    month_start = start_of_month(now)

    today = week = month = 0
    seconds_by_hour = Counter()
    for session in sessions:
        seconds = session.elapsed_seconds(now)
        if session.start_time >= day_start:
            today += seconds
        if session.start_time >= week_start:
            week += seconds
        if session.start_time >= month_start:
            month += seconds
        seconds_by_hour[session.start_time.hour] += seconds

    closed = [s.duration_seconds or 0 for s in sessions if not s.is_active]
    average = statistics.mean(closed) if closed else 0.0

    most_productive_hour = None
    if seconds_by_hour and max(seconds_by_hour.values()) > 0:
        most_productive_hour = seconds_by_hour.most_common(1)[0][0]

    return TimerStats(
        total_time_today=today,
        total_time_week=week,
        total_time_month=month,
        average_session_length=average,
        most_productive_hour=most_productive_hour,
        session_count=len(sessions),
    )
