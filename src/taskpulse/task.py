"""Task data model and status state machine."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .errors import ValidationError
from .utils.datetime import ensure_aware, now_utc, parse_datetime, to_iso_string
from .utils.validation import TaskValidator


class Priority(Enum):
    """Task priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(Enum):
    """Task status states."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    ARCHIVED = "archived"


# Forward-only machine; archived is terminal and reopening is not a core concern.
ALLOWED_TRANSITIONS = {
    TaskStatus.TODO: {TaskStatus.IN_PROGRESS, TaskStatus.DONE, TaskStatus.ARCHIVED},
    TaskStatus.IN_PROGRESS: {TaskStatus.DONE, TaskStatus.ARCHIVED},
    TaskStatus.DONE: {TaskStatus.ARCHIVED},
    TaskStatus.ARCHIVED: set(),
}


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    """Check whether a status change is legal (same-state moves always are)."""
    return current == target or target in ALLOWED_TRANSITIONS[current]


@dataclass
class Task:
    """A unit of work with an estimate and, once done, an outcome."""

    # Core identification; None until a repository assigns one
    id: Optional[int]
    title: str
    project_id: Optional[int] = None
    description: str = ""

    # Status and priority
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM

    # Estimate
    estimated_minutes: int = 30
    estimated_intensity: int = 3

    # Outcome; None means "not recorded", which is not the same as 0
    actual_minutes: Optional[int] = None
    actual_intensity: Optional[int] = None

    # Dates
    due_date: Optional[datetime] = None
    created_at: datetime = None
    completed_at: Optional[datetime] = None
    updated_at: datetime = None

    def __post_init__(self):
        """Normalize datetimes and coerce enum fields given as strings."""
        if isinstance(self.status, str):
            self.status = TaskStatus(self.status)
        if isinstance(self.priority, str):
            self.priority = Priority(self.priority)

        self.created_at = ensure_aware(self.created_at) or now_utc()
        self.updated_at = ensure_aware(self.updated_at) or self.created_at
        self.due_date = ensure_aware(self.due_date)
        self.completed_at = ensure_aware(self.completed_at)

    # ----- state machine -----

    def is_terminal(self) -> bool:
        return self.status == TaskStatus.ARCHIVED

    def is_open(self) -> bool:
        """Check if the task still needs work (todo or in progress)."""
        return self.status in (TaskStatus.TODO, TaskStatus.IN_PROGRESS)

    def start(self, now: Optional[datetime] = None) -> bool:
        """Move a todo task to in_progress.

        Returns:
            True if the status changed. Tasks in any other state are left alone.
        """
        if self.status != TaskStatus.TODO:
            return False
        self.status = TaskStatus.IN_PROGRESS
        self.updated_at = now or now_utc()
        return True

    def transition_to(self, target: TaskStatus, now: Optional[datetime] = None) -> bool:
        """Explicitly set the status, enforcing the transition rules.

        Moving to done this way requires ``actual_intensity`` to be set already.

        Returns:
            True if the status changed, False for a same-state no-op.

        Raises:
            ValidationError: For illegal transitions or a done without intensity
        """
        if isinstance(target, str):
            target = TaskStatus(target)
        if target == self.status:
            return False
        if not can_transition(self.status, target):
            raise ValidationError(
                f"Cannot transition from {self.status.value} to {target.value}",
                "status", target.value,
            )
        if target == TaskStatus.DONE:
            TaskValidator().validate_completion(self.actual_intensity, self.actual_minutes)

        now = now or now_utc()
        self.status = target
        if target == TaskStatus.DONE and self.completed_at is None:
            self.completed_at = now
        self.updated_at = now
        return True

    def complete(self, actual_intensity: int, actual_minutes: Optional[int] = None,
                 now: Optional[datetime] = None):
        """Mark the task as done with its outcome values.

        Raises:
            ValidationError: If the outcome is invalid or the task is already
                done or archived
        """
        TaskValidator().validate_completion(actual_intensity, actual_minutes)
        if self.status == TaskStatus.DONE:
            raise ValidationError("Task is already done", "status", self.status.value)
        if not can_transition(self.status, TaskStatus.DONE):
            raise ValidationError(
                f"Cannot transition from {self.status.value} to done",
                "status", TaskStatus.DONE.value,
            )

        now = now or now_utc()
        self.actual_intensity = actual_intensity
        self.actual_minutes = actual_minutes
        self.status = TaskStatus.DONE
        self.completed_at = now
        self.updated_at = now

    def archive(self, now: Optional[datetime] = None) -> bool:
        """Archive the task. Always allowed; archiving twice is a no-op."""
        return self.transition_to(TaskStatus.ARCHIVED, now)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Check if an open task is past its due date."""
        if self.due_date and self.is_open():
            return (now or now_utc()) > self.due_date
        return False

    # ----- serialization -----

    def to_dict(self) -> Dict[str, Any]:
        """Convert the Task to a dictionary with timezone-aware ISO strings."""
        return {
            "id": self.id,
            "title": self.title,
            "project_id": self.project_id,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "estimated_minutes": self.estimated_minutes,
            "estimated_intensity": self.estimated_intensity,
            "actual_minutes": self.actual_minutes,
            "actual_intensity": self.actual_intensity,
            "due_date": to_iso_string(self.due_date),
            "created_at": to_iso_string(self.created_at),
            "completed_at": to_iso_string(self.completed_at),
            "updated_at": to_iso_string(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        """Create a Task from a dictionary."""
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            project_id=data.get("project_id"),
            description=data.get("description", ""),
            status=TaskStatus(data.get("status", "todo")),
            priority=Priority(data.get("priority", "medium")),
            estimated_minutes=data.get("estimated_minutes", 30),
            estimated_intensity=data.get("estimated_intensity", 3),
            actual_minutes=data.get("actual_minutes"),
            actual_intensity=data.get("actual_intensity"),
            due_date=parse_datetime(data.get("due_date")),
            created_at=parse_datetime(data.get("created_at")),
            completed_at=parse_datetime(data.get("completed_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )
