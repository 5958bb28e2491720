"""Pytest configuration and shared fixtures."""

import sys
import asyncio
import inspect
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from taskpulse.services.task_service import TaskService  # noqa: E402
from taskpulse.storage import InMemoryRepository  # noqa: E402
from taskpulse.task import Task, TaskStatus  # noqa: E402


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Execute async tests without external plugins."""
    testfunction = pyfuncitem.obj
    if inspect.iscoroutinefunction(testfunction):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            sig = inspect.signature(testfunction)
            call_kwargs = {name: pyfuncitem.funcargs[name] for name in sig.parameters}
            loop.run_until_complete(testfunction(**call_kwargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


class FakeClock:
    """Controllable clock; call it for the current time."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs):
        self.now += timedelta(seconds=seconds, **kwargs)

    def set(self, moment: datetime):
        self.now = moment


# Wednesday
BASE_TIME = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FakeClock(BASE_TIME)


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def service(repository, clock):
    return TaskService(repository, clock=clock)


def build_task(task_id=1, estimated_minutes=60, estimated_intensity=3,
              actual_minutes=None, actual_intensity=None, completed_at=None,
              created_at=None, **kwargs):
    """Build a task, marking it done when a completion time is given."""
    task = Task(
        id=task_id,
        title=kwargs.pop("title", f"Task {task_id}"),
        estimated_minutes=estimated_minutes,
        estimated_intensity=estimated_intensity,
        actual_minutes=actual_minutes,
        actual_intensity=actual_intensity,
        created_at=created_at or BASE_TIME - timedelta(days=30),
        **kwargs,
    )
    if completed_at is not None:
        if "status" not in kwargs:
            task.status = TaskStatus.DONE
        task.completed_at = completed_at
    return task


@pytest.fixture
def make_task():
    return build_task
