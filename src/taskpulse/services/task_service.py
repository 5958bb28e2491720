"""Task Service

Business operations over a storage repository. Every mutation fetches a
fresh snapshot, applies the state machine or ledger to it, and persists the
result; sessions are written before the task they belong to. When a
repository call fails the exception propagates unchanged and the operation
has no effect from the caller's point of view.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..errors import NotFoundError, ValidationError
from ..storage import Repository
from ..task import Priority, Task, TaskStatus
from ..utils.datetime import now_utc, parse_datetime
from ..utils.validation import TaskValidator, estimate_warnings, is_overdue
from .accuracy import TaskAccuracy, compute_accuracy
from .analytics import (
    CompletionStats,
    DateRange,
    ProductivityAggregator,
    ReportGranularity,
    Summary,
    completion_stats,
)
from .reports import Report, generate_report
from .time_tracking import Clock, TimerStats, TimeSession, TimeSessionLedger, timer_stats

logger = logging.getLogger(__name__)

CREATE_FIELDS = {
    "title", "description", "project_id", "priority", "status",
    "estimated_minutes", "estimated_intensity", "due_date",
}
UPDATE_FIELDS = CREATE_FIELDS | {"actual_minutes", "actual_intensity"}
READ_ONLY_FIELDS = {"id", "created_at", "completed_at", "updated_at"}


class TaskService:
    """Facade for the task lifecycle, time tracking and reporting"""

    def __init__(self, repository: Repository, clock: Clock = now_utc,
                 first_day_of_week: int = 0,
                 project_names: Optional[Dict[int, str]] = None):
        self.repository = repository
        self.clock = clock
        self.first_day_of_week = first_day_of_week
        self.aggregator = ProductivityAggregator(first_day_of_week, project_names)

    async def _require_task(self, task_id: int) -> Task:
        task = await self.repository.get_task(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    async def _ledger(self, task_id: int) -> TimeSessionLedger:
        sessions = await self.repository.list_sessions(task_id)
        return TimeSessionLedger(sessions, self.clock)

    @staticmethod
    def _reject_unknown_fields(data: Mapping[str, Any], allowed: set):
        for key in data:
            if key in READ_ONLY_FIELDS:
                raise ValidationError(f"{key} cannot be set directly", key, data[key])
            if key not in allowed:
                raise ValidationError(f"Unknown task field: {key}", key, data[key])

    # ----- task lifecycle -----

    async def create_task(self, data: Mapping[str, Any]) -> Task:
        """Create a new task in the todo state.

        Raises:
            ValidationError: Empty title, or an estimate outside its range
        """
        self._reject_unknown_fields(data, CREATE_FIELDS)
        TaskValidator().validate_create(data)

        for warning in estimate_warnings(data["estimated_minutes"], data["estimated_intensity"]):
            logger.warning(f"Task estimate warning for '{data['title']}': {warning}")

        now = self.clock()
        task = Task(
            id=None,
            title=data["title"].strip(),
            project_id=data.get("project_id"),
            description=data.get("description") or "",
            priority=Priority(data.get("priority") or "medium"),
            estimated_minutes=data["estimated_minutes"],
            estimated_intensity=data["estimated_intensity"],
            due_date=parse_datetime(data.get("due_date")),
            created_at=now,
            updated_at=now,
        )
        if data.get("status"):
            task.transition_to(TaskStatus(data["status"]), now)

        task = await self.repository.add_task(task)
        logger.info(f"Created task {task.id}: {task.title}")
        return task

    async def get_task(self, task_id: int) -> Task:
        return await self._require_task(task_id)

    async def list_tasks(self, project_id: Optional[int] = None,
                         status: Optional[TaskStatus] = None) -> List[Task]:
        return await self.repository.list_tasks(project_id, status)

    async def search_tasks(self, query: str, project_id: Optional[int] = None) -> List[Task]:
        """Tasks whose title or description contains ``query``, ignoring case.

        An empty query matches every task.
        """
        needle = (query or "").strip().lower()
        tasks = await self.repository.list_tasks(project_id)
        matches = [
            t for t in tasks
            if needle in t.title.lower() or needle in (t.description or "").lower()
        ]
        return sorted(matches, key=lambda t: t.id)

    async def completion_stats(self, project_id: Optional[int] = None,
                               start: Optional[datetime] = None,
                               end: Optional[datetime] = None) -> CompletionStats:
        """Completion counts for tasks created in ``[start, end)``.

        Either bound may be omitted to leave that side open.
        """
        start = parse_datetime(start)
        end = parse_datetime(end)
        tasks = [
            t for t in await self.repository.list_tasks(project_id)
            if (start is None or t.created_at >= start) and (end is None or t.created_at < end)
        ]
        return completion_stats(tasks)

    async def update_task(self, task_id: int, patch: Mapping[str, Any]) -> Task:
        """Apply a partial update; status changes go through the state machine.

        Raises:
            NotFoundError: Unknown task id
            ValidationError: Bad field values or an illegal status change
        """
        self._reject_unknown_fields(patch, UPDATE_FIELDS)
        TaskValidator().validate_update(patch)
        task = await self._require_task(task_id)
        now = self.clock()

        for key, value in patch.items():
            if key == "status":
                continue
            if key == "priority":
                value = Priority(value)
            elif key == "due_date":
                value = parse_datetime(value)
            elif key == "title":
                value = value.strip()
            setattr(task, key, value)

        stopped = None
        if "status" in patch:
            target = TaskStatus(patch["status"])
            if target != task.status and target in (TaskStatus.DONE, TaskStatus.ARCHIVED):
                # Finishing a task ends its timer; done also takes the tracked total
                ledger = await self._ledger(task_id)
                stopped = ledger.stop(task_id)
                if target == TaskStatus.DONE and task.actual_minutes is None:
                    task.actual_minutes = ledger.total_minutes(task_id)
            task.transition_to(target, now)
        if task.status == TaskStatus.DONE and task.actual_intensity is None:
            raise ValidationError("A done task must keep its actual intensity",
                                  "actual_intensity", None)

        task.updated_at = now
        if stopped is not None:
            await self.repository.save_session(stopped)
        task = await self.repository.save_task(task)
        logger.debug(f"Updated task {task.id}: {sorted(patch)}")
        return task

    async def complete_task(self, task_id: int, actual_intensity: int,
                            actual_minutes: Optional[int] = None) -> Task:
        """Mark a task done with its outcome.

        A running session is stopped first so its time counts. Without an
        explicit ``actual_minutes`` the tracked total is used.

        Raises:
            NotFoundError: Unknown task id
            ValidationError: Missing or out-of-range outcome values
        """
        TaskValidator().validate_completion(actual_intensity, actual_minutes)
        task = await self._require_task(task_id)
        ledger = await self._ledger(task_id)
        now = self.clock()

        stopped = ledger.stop(task_id)
        if actual_minutes is None:
            actual_minutes = ledger.total_minutes(task_id)
        task.complete(actual_intensity, actual_minutes, now)

        if is_overdue(task.due_date, now):
            logger.info(f"Task {task_id} completed after its due date")

        if stopped is not None:
            await self.repository.save_session(stopped)
        task = await self.repository.save_task(task)
        logger.info(f"Completed task {task_id} in {actual_minutes} minutes "
                    f"(intensity {actual_intensity})")
        return task

    async def _archive(self, task: Task) -> Task:
        """Archive a task, closing its running session first"""
        ledger = await self._ledger(task.id)
        stopped = ledger.stop(task.id)
        task.archive(self.clock())
        if stopped is not None:
            await self.repository.save_session(stopped)
            logger.debug(f"Closed session {stopped.id} of archived task {task.id}")
        task = await self.repository.save_task(task)
        logger.info(f"Archived task {task.id}")
        return task

    async def archive_task(self, task_id: int) -> Task:
        task = await self._require_task(task_id)
        if task.is_terminal():
            return task
        return await self._archive(task)

    async def archive_completed(self, older_than_days: int,
                                project_id: Optional[int] = None) -> int:
        """Archive done tasks completed more than ``older_than_days`` ago"""
        cutoff = self.clock() - timedelta(days=older_than_days)
        archived = 0
        for task in await self.repository.list_tasks(project_id, TaskStatus.DONE):
            if task.completed_at is not None and task.completed_at <= cutoff:
                await self._archive(task)
                archived += 1
        logger.info(f"Archived {archived} completed tasks older than {older_than_days} days")
        return archived

    async def tasks_due_soon(self, days_ahead: int = 7,
                             project_id: Optional[int] = None) -> List[Task]:
        now = self.clock()
        horizon = now + timedelta(days=days_ahead)
        tasks = await self.repository.list_tasks(project_id)
        return sorted(
            (t for t in tasks if t.is_open() and t.due_date and now <= t.due_date <= horizon),
            key=lambda t: t.due_date,
        )

    async def overdue_tasks(self, project_id: Optional[int] = None) -> List[Task]:
        now = self.clock()
        tasks = await self.repository.list_tasks(project_id)
        return sorted((t for t in tasks if t.is_overdue(now)), key=lambda t: t.due_date)

    # ----- time sessions -----

    async def start_session(self, task_id: int) -> TimeSession:
        """Start timing a task, closing any session already running for it"""
        task = await self._require_task(task_id)
        if task.is_terminal():
            raise ValidationError("Cannot track time on an archived task", "status",
                                  task.status.value)

        ledger = await self._ledger(task_id)
        to_close = [s for s in ledger.sessions_for(task_id) if s.is_active]
        status_before = task.status
        session = ledger.start(task)

        for closed in to_close:
            await self.repository.save_session(closed)
        session = await self.repository.add_session(session)
        if task.status != status_before:
            await self.repository.save_task(task)

        logger.info(f"Started session {session.id} for task {task_id}")
        return session

    async def stop_session(self, task_id: int) -> Optional[TimeSession]:
        """Stop the task's running session; None if nothing was running"""
        await self._require_task(task_id)
        ledger = await self._ledger(task_id)
        session = ledger.stop(task_id)
        if session is None:
            logger.debug(f"No active session to stop for task {task_id}")
            return None
        session = await self.repository.save_session(session)
        logger.info(f"Stopped session {session.id} after {session.duration_seconds}s")
        return session

    async def stop_session_by_id(self, session_id: int) -> Optional[TimeSession]:
        """Stop a session by its id; None if it was already stopped"""
        session = await self.repository.get_session(session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        if not session.close(self.clock()):
            return None
        session = await self.repository.save_session(session)
        logger.info(f"Stopped session {session.id} after {session.duration_seconds}s")
        return session

    async def active_session(self, task_id: int) -> Optional[TimeSession]:
        await self._require_task(task_id)
        return (await self._ledger(task_id)).active_session(task_id)

    async def elapsed(self, task_id: int) -> int:
        """Seconds on the running session, recomputed on every call"""
        await self._require_task(task_id)
        return (await self._ledger(task_id)).elapsed(task_id)

    async def total_minutes(self, task_id: int) -> int:
        await self._require_task(task_id)
        return (await self._ledger(task_id)).total_minutes(task_id)

    async def sessions_for(self, task_id: int) -> List[TimeSession]:
        await self._require_task(task_id)
        sessions = await self.repository.list_sessions(task_id)
        return sorted(sessions, key=lambda s: s.start_time)

    async def add_manual_session(self, task_id: int, start_time: datetime, end_time: datetime,
                                 description: str = "") -> TimeSession:
        """Log time worked away from the timer"""
        await self._require_task(task_id)
        ledger = await self._ledger(task_id)
        session = ledger.add_manual_session(task_id, start_time, end_time, description)
        session = await self.repository.add_session(session)
        logger.info(f"Logged {session.duration_seconds}s manually for task {task_id}")
        return session

    async def timer_stats(self) -> TimerStats:
        sessions = await self.repository.list_sessions()
        return timer_stats(sessions, self.clock(), self.first_day_of_week)

    # ----- derived values -----

    def compute_accuracy(self, task: Task) -> TaskAccuracy:
        return compute_accuracy(task)

    def report_range(self, granularity: ReportGranularity,
                     reference: Optional[datetime] = None) -> DateRange:
        return self.aggregator.date_range(granularity, reference or self.clock())

    def generate_report(self, tasks: Iterable[Task], date_range: DateRange,
                        granularity: ReportGranularity) -> Report:
        return generate_report(tasks, date_range, granularity, self.aggregator)

    def summarize(self, tasks: Iterable[Task]) -> Summary:
        return self.aggregator.summarize(tasks)

    def daily_series(self, tasks: Iterable[Task], days: int = 7) -> List[Dict[str, Any]]:
        return self.aggregator.daily_series(tasks, days, self.clock())
