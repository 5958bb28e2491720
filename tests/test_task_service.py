"""Tests for the async task service over an in-memory repository."""

import pytest
from datetime import timedelta

from taskpulse.errors import NotFoundError, StorageError, ValidationError
from taskpulse.services.analytics import ReportGranularity
from taskpulse.storage import InMemoryRepository
from taskpulse.services.task_service import TaskService
from taskpulse.task import TaskStatus


def payload(**overrides):
    data = {"title": "Write docs", "estimated_minutes": 60, "estimated_intensity": 3}
    data.update(overrides)
    return data


class TestTaskLifecycle:
    """Test creating, updating and finishing tasks."""

    async def test_create_task(self, service, clock):
        task = await service.create_task(payload(priority="high", due_date="2024-01-20"))

        assert task.id == 1
        assert task.status == TaskStatus.TODO
        assert task.created_at == clock()
        assert task.due_date.day == 20

        second = await service.create_task(payload(title="Another"))
        assert second.id == 2

    async def test_create_rejects_invalid_estimate(self, service, repository):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_task(payload(estimated_minutes=0))

        assert exc_info.value.field == "estimated_minutes"
        assert await repository.list_tasks() == []

    async def test_create_rejects_read_only_fields(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_task(payload(completed_at="2024-01-01"))

        assert exc_info.value.field == "completed_at"

    async def test_create_logs_estimate_warning(self, service, caplog):
        await service.create_task(payload(estimated_minutes=300, estimated_intensity=5))

        assert "seems long for a high-intensity task" in caplog.text

    async def test_get_unknown_task(self, service):
        with pytest.raises(NotFoundError):
            await service.get_task(99)

    async def test_update_task(self, service, clock):
        task = await service.create_task(payload())
        clock.advance(seconds=60)

        updated = await service.update_task(task.id, {"title": "  Renamed ", "priority": "low"})

        assert updated.title == "Renamed"
        assert updated.priority.value == "low"
        assert updated.updated_at == clock()

    async def test_update_illegal_transition(self, service):
        task = await service.create_task(payload())
        await service.start_session(task.id)

        with pytest.raises(ValidationError):
            await service.update_task(task.id, {"status": "todo"})

        assert (await service.get_task(task.id)).status == TaskStatus.IN_PROGRESS

    async def test_update_to_done_requires_intensity(self, service):
        task = await service.create_task(payload())

        with pytest.raises(ValidationError):
            await service.update_task(task.id, {"status": "done"})

        done = await service.update_task(task.id, {"status": "done", "actual_intensity": 2})
        assert done.status == TaskStatus.DONE
        assert done.completed_at is not None

    async def test_update_to_done_stops_timer_and_records_tracked_time(self, service, clock):
        task = await service.create_task(payload())
        await service.start_session(task.id)
        clock.advance(seconds=1800)

        done = await service.update_task(task.id, {"status": "done", "actual_intensity": 3})

        assert done.actual_minutes == 30
        assert done.actual_minutes == await service.total_minutes(task.id)
        assert await service.active_session(task.id) is None
        assert service.compute_accuracy(done).time_accuracy == 50.0

    async def test_update_to_done_keeps_explicit_minutes(self, service, clock):
        task = await service.create_task(payload())
        await service.start_session(task.id)
        clock.advance(minutes=10)

        done = await service.update_task(
            task.id, {"status": "done", "actual_intensity": 3, "actual_minutes": 55})

        assert done.actual_minutes == 55
        assert await service.active_session(task.id) is None

    async def test_update_to_archived_stops_timer(self, service, clock):
        task = await service.create_task(payload())
        await service.start_session(task.id)
        clock.advance(minutes=15)

        await service.update_task(task.id, {"status": "archived"})
        clock.advance(hours=2)

        assert await service.active_session(task.id) is None
        assert await service.total_minutes(task.id) == 15

    async def test_complete_uses_tracked_time(self, service, clock):
        task = await service.create_task(payload())
        await service.start_session(task.id)
        clock.advance(minutes=25)
        await service.stop_session(task.id)
        await service.start_session(task.id)
        clock.advance(minutes=20)

        done = await service.complete_task(task.id, actual_intensity=4)

        assert done.actual_minutes == 45
        assert done.actual_minutes == await service.total_minutes(task.id)
        assert await service.active_session(task.id) is None
        assert done.completed_at == clock()

    async def test_complete_with_explicit_minutes(self, service):
        task = await service.create_task(payload())

        done = await service.complete_task(task.id, 2, actual_minutes=0)

        assert done.actual_minutes == 0
        assert service.compute_accuracy(done).time_accuracy == 0.0

    async def test_complete_without_intensity_leaves_task_open(self, service):
        task = await service.create_task(payload())
        await service.start_session(task.id)

        with pytest.raises(ValidationError):
            await service.complete_task(task.id, None)

        assert (await service.get_task(task.id)).status == TaskStatus.IN_PROGRESS
        assert await service.active_session(task.id) is not None

    async def test_archive(self, service):
        task = await service.create_task(payload())

        archived = await service.archive_task(task.id)
        assert archived.status == TaskStatus.ARCHIVED

        # Archiving again is a no-op
        again = await service.archive_task(task.id)
        assert again.updated_at == archived.updated_at

    async def test_archive_stops_running_timer(self, service, clock):
        task = await service.create_task(payload())
        await service.start_session(task.id)
        clock.advance(minutes=20)

        await service.archive_task(task.id)
        clock.advance(seconds=7200)

        assert await service.elapsed(task.id) == 0
        assert await service.active_session(task.id) is None
        assert await service.total_minutes(task.id) == 20

    async def test_archive_completed_stops_running_timer(self, service, clock):
        task = await service.create_task(payload())
        await service.complete_task(task.id, 3, 30)
        # Tracking on a done task is allowed
        await service.start_session(task.id)
        clock.advance(days=10)

        assert await service.archive_completed(older_than_days=7) == 1

        assert await service.active_session(task.id) is None
        sessions = await service.sessions_for(task.id)
        assert sessions[0].end_time == clock()

    async def test_archive_completed(self, service, clock):
        old = await service.create_task(payload(title="Old"))
        await service.complete_task(old.id, 3, 30)
        clock.advance(days=10)
        recent = await service.create_task(payload(title="Recent"))
        await service.complete_task(recent.id, 3, 30)

        count = await service.archive_completed(older_than_days=7)

        assert count == 1
        assert (await service.get_task(old.id)).status == TaskStatus.ARCHIVED
        assert (await service.get_task(recent.id)).status == TaskStatus.DONE

    async def test_due_soon_and_overdue(self, service, clock):
        soon = await service.create_task(payload(due_date=clock() + timedelta(days=2)))
        late = await service.create_task(payload(due_date=clock() - timedelta(days=1)))
        await service.create_task(payload(due_date=clock() + timedelta(days=30)))

        assert [t.id for t in await service.tasks_due_soon(7)] == [soon.id]
        assert [t.id for t in await service.overdue_tasks()] == [late.id]


class TestSearchAndStats:
    """Test text search and completion statistics."""

    async def test_search_matches_title_and_description(self, service):
        docs = await service.create_task(payload(title="Write DOCS"))
        notes = await service.create_task(payload(title="Release", description="update the docs site"))
        await service.create_task(payload(title="Fix login bug"))

        found = await service.search_tasks("docs")

        assert [t.id for t in found] == [docs.id, notes.id]

    async def test_search_filters_by_project(self, service):
        await service.create_task(payload(title="Docs A", project_id=1))
        other = await service.create_task(payload(title="Docs B", project_id=2))

        found = await service.search_tasks("docs", project_id=2)

        assert [t.id for t in found] == [other.id]

    async def test_empty_search_returns_everything(self, service):
        await service.create_task(payload(title="One"))
        await service.create_task(payload(title="Two"))

        assert len(await service.search_tasks("")) == 2

    async def test_completion_stats(self, service, clock):
        first = await service.create_task(payload(estimated_minutes=60))
        await service.complete_task(first.id, 3, 30)
        second = await service.create_task(payload(estimated_minutes=30))
        await service.start_session(second.id)
        await service.create_task(payload(estimated_minutes=90))

        stats = await service.completion_stats()

        assert stats.total_tasks == 3
        assert stats.completed_tasks == 1
        assert stats.in_progress_tasks == 1
        assert stats.todo_tasks == 1
        assert stats.completion_rate == pytest.approx(33.33, abs=0.01)
        assert stats.avg_estimated_minutes == 60
        assert stats.avg_actual_minutes == 30
        assert stats.avg_time_accuracy == 50.0
        assert stats.avg_intensity_accuracy == 100.0

    async def test_completion_stats_window_and_project(self, service, clock):
        await service.create_task(payload(title="Before", project_id=1))
        clock.advance(days=1)
        inside = await service.create_task(payload(title="Inside", project_id=1))
        await service.create_task(payload(title="Other project", project_id=2))
        clock.advance(days=1)
        await service.create_task(payload(title="At end", project_id=1))

        stats = await service.completion_stats(
            project_id=1, start=inside.created_at, end=clock())

        assert stats.total_tasks == 1

    async def test_completion_stats_without_tasks(self, service):
        stats = await service.completion_stats()

        assert stats.total_tasks == 0
        assert stats.completion_rate == 0
        assert stats.avg_estimated_minutes == 0
        assert stats.avg_actual_minutes is None
        assert stats.to_dict()['avg_time_accuracy'] is None


class TestSessions:
    """Test timing through the service."""

    async def test_start_moves_task_to_in_progress(self, service):
        task = await service.create_task(payload())

        session = await service.start_session(task.id)

        assert session.id == 1
        assert session.is_active
        assert (await service.get_task(task.id)).status == TaskStatus.IN_PROGRESS

    async def test_restart_closes_previous_session(self, service, clock):
        task = await service.create_task(payload())
        first = await service.start_session(task.id)
        clock.advance(seconds=90)
        second = await service.start_session(task.id)

        sessions = await service.sessions_for(task.id)

        assert [s.id for s in sessions] == [first.id, second.id]
        assert sessions[0].duration_seconds == 90
        assert [s.is_active for s in sessions] == [False, True]

    async def test_start_on_archived_task_rejected(self, service):
        task = await service.create_task(payload())
        await service.archive_task(task.id)

        with pytest.raises(ValidationError):
            await service.start_session(task.id)

    async def test_start_on_done_task_keeps_status(self, service):
        task = await service.create_task(payload())
        await service.complete_task(task.id, 3, 10)

        await service.start_session(task.id)

        assert (await service.get_task(task.id)).status == TaskStatus.DONE

    async def test_stop_without_session(self, service):
        task = await service.create_task(payload())

        assert await service.stop_session(task.id) is None

    async def test_stop_by_id(self, service, clock):
        task = await service.create_task(payload())
        session = await service.start_session(task.id)
        clock.advance(seconds=5)

        stopped = await service.stop_session_by_id(session.id)
        assert stopped.duration_seconds == 5
        assert await service.stop_session_by_id(session.id) is None

        with pytest.raises(NotFoundError):
            await service.stop_session_by_id(999)

    async def test_elapsed(self, service, clock):
        task = await service.create_task(payload())
        await service.start_session(task.id)
        clock.advance(seconds=42)

        assert await service.elapsed(task.id) == 42

    async def test_manual_session_and_stats(self, service, clock):
        task = await service.create_task(payload())
        start = clock() - timedelta(hours=1)
        await service.add_manual_session(task.id, start, start + timedelta(minutes=30), "call")

        stats = await service.timer_stats()

        assert stats.session_count == 1
        assert stats.total_time_today == 1800
        assert await service.total_minutes(task.id) == 30

    async def test_sessions_for_unknown_task(self, service):
        with pytest.raises(NotFoundError):
            await service.sessions_for(5)


class FailingSaveRepository(InMemoryRepository):
    """Repository whose task writes fail once armed."""

    def __init__(self):
        super().__init__()
        self.fail_task_saves = False

    async def save_task(self, task):
        if self.fail_task_saves:
            raise StorageError("disk full")
        return await super().save_task(task)


class TestStorageFailures:
    async def test_storage_error_propagates(self, clock):
        repository = FailingSaveRepository()
        service = TaskService(repository, clock=clock)
        task = await service.create_task(payload())
        repository.fail_task_saves = True

        with pytest.raises(StorageError):
            await service.complete_task(task.id, 3, 30)

        assert (await repository.get_task(task.id)).status == TaskStatus.TODO


class TestReporting:
    async def test_report_and_summary(self, service, clock):
        task = await service.create_task(payload(estimated_minutes=60))
        await service.complete_task(task.id, 3, 50)

        tasks = await service.list_tasks()
        date_range = service.report_range(ReportGranularity.WEEK)
        report = service.generate_report(tasks, date_range, ReportGranularity.WEEK)
        summary = service.summarize(tasks)

        assert date_range.contains(clock())
        assert report.totals.completed_tasks == 1
        assert report.totals.time_accuracy == pytest.approx(83.33, abs=0.01)
        assert summary.completed_tasks == 1
        assert service.daily_series(tasks)[-1]['tasks_completed'] == 1
