"""Tests for the click command-line interface."""

import json
import pytest
from click.testing import CliRunner

from taskpulse.cli.tasks import main


@pytest.fixture
def cli(tmp_path):
    """Invoke the CLI against a throwaway config and data directory."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"data_dir: {tmp_path / 'data'}\nno_color: true\n")
    runner = CliRunner()

    def invoke(*args):
        return runner.invoke(main, ["--config", str(config_path), *args])

    return invoke


class TestTaskCommands:
    """Test task lifecycle commands end to end."""

    def test_add_and_list(self, cli):
        result = cli("add", "Write release notes", "-m", "45", "-i", "2")
        assert result.exit_code == 0, result.output
        assert "Added task 1" in result.output

        result = cli("list", "--format", "json")
        assert result.exit_code == 0
        tasks = json.loads(result.output)
        assert tasks[0]["title"] == "Write release notes"
        assert tasks[0]["estimated_minutes"] == 45

    def test_add_uses_config_defaults(self, cli):
        cli("add", "Defaults")

        task = json.loads(cli("list", "--format", "json").output)[0]
        assert task["estimated_minutes"] == 30
        assert task["estimated_intensity"] == 3
        assert task["priority"] == "medium"

    def test_add_invalid_estimate_fails(self, cli):
        result = cli("add", "Too long", "-m", "2000")

        assert result.exit_code == 1
        assert "Estimated minutes must be between 1 and 1440" in result.output

    def test_timer_and_done(self, cli):
        cli("add", "Timed task")

        result = cli("start", "1")
        assert result.exit_code == 0
        assert "Started timer for task 1" in result.output

        result = cli("status")
        assert "Timed task" in result.output

        result = cli("stop", "1")
        assert result.exit_code == 0
        assert "Stopped task 1" in result.output

        result = cli("done", "1", "-i", "3", "-m", "25")
        assert result.exit_code == 0
        assert "Completed task 1" in result.output

        task = json.loads(cli("list", "--all", "--format", "json").output)[0]
        assert task["status"] == "done"
        assert task["actual_minutes"] == 25

    def test_stop_without_timer(self, cli):
        cli("add", "Idle")

        result = cli("stop", "1")
        assert result.exit_code == 0
        assert "No timer running" in result.output

    def test_unknown_task(self, cli):
        result = cli("start", "42")

        assert result.exit_code == 1
        assert "Task with ID 42 not found" in result.output

    def test_archive(self, cli):
        cli("add", "Old idea")

        result = cli("archive", "1")
        assert result.exit_code == 0

        assert json.loads(cli("list", "--format", "json").output) == []
        archived = json.loads(cli("list", "--status", "archived", "--format", "json").output)
        assert archived[0]["title"] == "Old idea"

    def test_archive_needs_target(self, cli):
        assert cli("archive").exit_code != 0

    def test_log_manual_session(self, cli):
        cli("add", "Offline work")

        result = cli("log", "1", "--start", "2024-01-10T09:00:00", "--end", "2024-01-10T10:30:00")
        assert result.exit_code == 0
        assert "1:30:00" in result.output

    def test_add_with_natural_due_date(self, cli):
        result = cli("add", "Ship it", "--due", "tomorrow")
        assert result.exit_code == 0, result.output

        task = json.loads(cli("list", "--format", "json").output)[0]
        assert task["due_date"] is not None

    def test_add_with_unparseable_due_date(self, cli):
        result = cli("add", "Ship it", "--due", "blorp")

        assert result.exit_code == 2
        assert "not a valid date" in result.output

    def test_log_with_relative_times(self, cli):
        cli("add", "Offline work")

        result = cli("log", "1", "--start", "2 hours ago", "--end", "1 hour ago")
        assert result.exit_code == 0, result.output
        # Each phrase is resolved against the clock separately
        assert "Logged 1:00:0" in result.output

    def test_status_shows_timer_on_done_task(self, cli):
        cli("add", "Follow-up")
        cli("done", "1", "-i", "3", "-m", "20")
        cli("start", "1")

        result = cli("status")
        assert result.exit_code == 0
        assert "Follow-up" in result.output
        assert "No timers running" not in result.output

    def test_list_search(self, cli):
        cli("add", "Write release notes")
        cli("add", "Fix login", "-d", "users see NOTES page")
        cli("add", "Plan sprint")

        result = cli("list", "--search", "notes", "--format", "json")
        assert result.exit_code == 0, result.output
        assert [t["id"] for t in json.loads(result.output)] == [1, 2]

    def test_list_search_hides_finished_unless_all(self, cli):
        cli("add", "Notes draft")
        cli("done", "1", "-i", "3", "-m", "20")

        assert json.loads(cli("list", "--search", "notes", "--format", "json").output) == []
        found = json.loads(cli("list", "--search", "notes", "--all", "--format", "json").output)
        assert found[0]["status"] == "done"

    def test_log_bad_range(self, cli):
        cli("add", "Offline work")

        result = cli("log", "1", "--start", "2024-01-10T10:00:00", "--end", "2024-01-10T09:00:00")
        assert result.exit_code == 1
        assert "End time must be after start time" in result.output


class TestAnalyticsCommands:
    """Test report, summary and stats output."""

    def test_report_json(self, cli):
        cli("add", "Reported")
        cli("done", "1", "-i", "3", "-m", "30")

        result = cli("report", "--granularity", "week", "--format", "json")
        assert result.exit_code == 0, result.output
        report = json.loads(result.output)
        assert report["granularity"] == "week"
        assert report["totals"]["completed_tasks"] == 1
        assert report["insights"]

    def test_report_text_with_custom_range(self, cli):
        result = cli("report", "-g", "day", "--from", "2024-01-01", "--to", "2024-01-08")

        assert result.exit_code == 0, result.output
        assert "Productivity Report" in result.output
        assert "No tasks completed in this period" in result.output

    def test_report_from_requires_to(self, cli):
        assert cli("report", "--from", "2024-01-01").exit_code != 0

    def test_summary(self, cli):
        cli("add", "One")
        cli("done", "1", "-i", "4", "-m", "60")

        result = cli("summary", "--format", "json")
        assert result.exit_code == 0
        summary = json.loads(result.output)
        assert summary["completed_tasks"] == 1
        assert summary["total_hours"] == 1.0
        assert summary["estimates"]["total_tasks_with_estimates"] == 1

        result = cli("summary")
        assert "TaskPulse Summary" in result.output
        assert "Last 7 days" in result.output

    def test_stats(self, cli):
        result = cli("stats", "--format", "json")

        assert result.exit_code == 0
        assert json.loads(result.output)["session_count"] == 0
