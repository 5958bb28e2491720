"""TaskPulse - estimate, track and review the time your tasks really take."""

__version__ = "0.1.0"
__author__ = "TaskPulse Team"

from .errors import TaskPulseError, ValidationError, NotFoundError, StorageError
from .task import Task, TaskStatus, Priority
from .services.task_service import TaskService
from .storage import Repository, InMemoryRepository, JsonFileRepository

__all__ = [
    "Task",
    "TaskStatus",
    "Priority",
    "TaskService",
    "Repository",
    "InMemoryRepository",
    "JsonFileRepository",
    "TaskPulseError",
    "ValidationError",
    "NotFoundError",
    "StorageError",
    "__version__",
]
