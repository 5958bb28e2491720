"""Storage repositories for tasks and time sessions.

The core treats a repository as an opaque awaited collaborator: it provides
read-after-write consistency per record but no transactions spanning tasks
and sessions. Implementations raise ``StorageError`` for their own failures
and never retry.
"""

import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import StorageError
from .services.time_tracking import TimeSession
from .task import Task, TaskStatus

logger = logging.getLogger(__name__)


class Repository(ABC):
    """CRUD over Task and TimeSession records"""

    @abstractmethod
    async def get_task(self, task_id: int) -> Optional[Task]:
        """Return the task or None when the id is unknown"""

    @abstractmethod
    async def list_tasks(self, project_id: Optional[int] = None,
                         status: Optional[TaskStatus] = None) -> List[Task]:
        """Return tasks, optionally filtered by project and status"""

    @abstractmethod
    async def add_task(self, task: Task) -> Task:
        """Store a new task, assigning its id"""

    @abstractmethod
    async def save_task(self, task: Task) -> Task:
        """Persist changes to an existing task"""

    @abstractmethod
    async def get_session(self, session_id: int) -> Optional[TimeSession]:
        """Return the session or None when the id is unknown"""

    @abstractmethod
    async def list_sessions(self, task_id: Optional[int] = None) -> List[TimeSession]:
        """Return sessions, optionally only those of one task"""

    @abstractmethod
    async def add_session(self, session: TimeSession) -> TimeSession:
        """Store a new session, assigning its id"""

    @abstractmethod
    async def save_session(self, session: TimeSession) -> TimeSession:
        """Persist changes to an existing session"""


class InMemoryRepository(Repository):
    """Dictionary-backed repository.

    Records go in and come out as deep copies, so a caller mutating what it
    fetched changes nothing until it saves.
    """

    def __init__(self):
        self._tasks: Dict[int, Task] = {}
        self._sessions: Dict[int, TimeSession] = {}
        self._next_task_id = 1
        self._next_session_id = 1

    async def get_task(self, task_id: int) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return copy.deepcopy(task) if task else None

    async def list_tasks(self, project_id: Optional[int] = None,
                         status: Optional[TaskStatus] = None) -> List[Task]:
        return [
            copy.deepcopy(task) for task in self._tasks.values()
            if (project_id is None or task.project_id == project_id)
            and (status is None or task.status == status)
        ]

    async def add_task(self, task: Task) -> Task:
        task = copy.deepcopy(task)
        task.id = self._next_task_id
        self._next_task_id += 1
        self._tasks[task.id] = task
        return copy.deepcopy(task)

    async def save_task(self, task: Task) -> Task:
        if task.id not in self._tasks:
            raise StorageError(f"Cannot save unknown task {task.id}")
        self._tasks[task.id] = copy.deepcopy(task)
        return copy.deepcopy(task)

    async def get_session(self, session_id: int) -> Optional[TimeSession]:
        session = self._sessions.get(session_id)
        return copy.deepcopy(session) if session else None

    async def list_sessions(self, task_id: Optional[int] = None) -> List[TimeSession]:
        return [
            copy.deepcopy(session) for session in self._sessions.values()
            if task_id is None or session.task_id == task_id
        ]

    async def add_session(self, session: TimeSession) -> TimeSession:
        session = copy.deepcopy(session)
        session.id = self._next_session_id
        self._next_session_id += 1
        self._sessions[session.id] = session
        return copy.deepcopy(session)

    async def save_session(self, session: TimeSession) -> TimeSession:
        if session.id not in self._sessions:
            raise StorageError(f"Cannot save unknown session {session.id}")
        self._sessions[session.id] = copy.deepcopy(session)
        return copy.deepcopy(session)


class JsonFileRepository(InMemoryRepository):
    """Repository persisted to ``tasks.json`` and ``time_sessions.json``.

    Files are read once, on first access, and rewritten in full after every
    change.
    """

    def __init__(self, data_dir: Union[str, Path]):
        super().__init__()
        self.data_dir = Path(data_dir).expanduser()
        self.tasks_file = self.data_dir / "tasks.json"
        self.sessions_file = self.data_dir / "time_sessions.json"
        self._loaded = False

    def _read(self, path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to read {path}: {e}")
            raise StorageError(f"Failed to read {path}: {e}") from e

    def _write(self, path: Path, records: List[Dict[str, Any]]):
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise StorageError(f"Failed to write {path}: {e}") from e

    def _ensure_loaded(self):
        if self._loaded:
            return
        try:
            tasks = [Task.from_dict(data) for data in self._read(self.tasks_file)]
            sessions = [TimeSession.from_dict(data) for data in self._read(self.sessions_file)]
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Corrupt data in {self.data_dir}: {e}")
            raise StorageError(f"Corrupt data in {self.data_dir}: {e}") from e

        self._tasks = {task.id: task for task in tasks}
        self._sessions = {session.id: session for session in sessions}
        self._next_task_id = max(self._tasks, default=0) + 1
        self._next_session_id = max(self._sessions, default=0) + 1
        self._loaded = True
        logger.debug(f"Loaded {len(tasks)} tasks and {len(sessions)} sessions from {self.data_dir}")

    def _flush_tasks(self):
        self._write(self.tasks_file, [task.to_dict() for task in self._tasks.values()])

    def _flush_sessions(self):
        self._write(self.sessions_file, [s.to_dict() for s in self._sessions.values()])

    async def get_task(self, task_id: int) -> Optional[Task]:
        self._ensure_loaded()
        return await super().get_task(task_id)

    async def list_tasks(self, project_id: Optional[int] = None,
                         status: Optional[TaskStatus] = None) -> List[Task]:
        self._ensure_loaded()
        return await super().list_tasks(project_id, status)

    async def add_task(self, task: Task) -> Task:
        self._ensure_loaded()
        stored = await super().add_task(task)
        try:
            self._flush_tasks()
        except StorageError:
            del self._tasks[stored.id]
            self._next_task_id -= 1
            raise
        return stored

    async def save_task(self, task: Task) -> Task:
        self._ensure_loaded()
        previous = self._tasks.get(task.id)
        stored = await super().save_task(task)
        try:
            self._flush_tasks()
        except StorageError:
            self._tasks[task.id] = previous
            raise
        return stored

    async def get_session(self, session_id: int) -> Optional[TimeSession]:
        self._ensure_loaded()
        return await super().get_session(session_id)

    async def list_sessions(self, task_id: Optional[int] = None) -> List[TimeSession]:
        self._ensure_loaded()
        return await super().list_sessions(task_id)

    async def add_session(self, session: TimeSession) -> TimeSession:
        self._ensure_loaded()
        stored = await super().add_session(session)
        try:
            self._flush_sessions()
        except StorageError:
            del self._sessions[stored.id]
            self._next_session_id -= 1
            raise
        return stored

    async def save_session(self, session: TimeSession) -> TimeSession:
        self._ensure_loaded()
        previous = self._sessions.get(session.id)
        stored = await super().save_session(session)
        try:
            self._flush_sessions()
        except StorageError:
            self._sessions[session.id] = previous
            raise
        return stored
