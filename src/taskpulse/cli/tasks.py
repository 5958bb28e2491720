"""Command-line interface for TaskPulse task tracking."""

from pathlib import Path
from typing import List

import click
from rich.panel import Panel
from rich.table import Table

from ..config import load_config
from ..task import Task, TaskStatus
from ..utils.formatting import format_minutes, format_percentage, format_seconds
from .analytics_commands import register_analytics_commands
from .helpers import (
    AppContext,
    build_context,
    parse_date_option,
    print_json,
    run,
    setup_logging,
)

STATUS_ICONS = {
    TaskStatus.TODO: "⏳",
    TaskStatus.IN_PROGRESS: "🔄",
    TaskStatus.DONE: "✅",
    TaskStatus.ARCHIVED: "📦",
}

PRIORITY_STYLES = {
    "low": "dim",
    "medium": "white",
    "high": "bold red",
}


def render_tasks(app: AppContext, tasks: List[Task]):
    """Print tasks as a rich table."""
    if not tasks:
        app.console.print("[yellow]No tasks found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("")
    table.add_column("Title")
    table.add_column("Estimate", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("Due")

    for task in tasks:
        style = PRIORITY_STYLES[task.priority.value]
        actual = ""
        if task.actual_minutes is not None:
            actual = f"{format_minutes(task.actual_minutes)} / i{task.actual_intensity}"
        due = ""
        if task.due_date:
            due = task.due_date.strftime(app.config.date_format)
            if task.is_overdue():
                due = f"[red]!{due}[/red]"
        table.add_row(
            str(task.id),
            STATUS_ICONS[task.status],
            f"[{style}]{task.title}[/{style}]",
            f"{format_minutes(task.estimated_minutes)} / i{task.estimated_intensity}",
            actual,
            due,
        )
    app.console.print(table)


@click.group()
@click.option("--config", "config_path", type=click.Path(), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx, config_path, verbose):
    """TaskPulse - estimate, track and review the time your tasks take."""
    config = load_config(Path(config_path) if config_path else None)
    setup_logging(config.log_level, verbose)
    ctx.obj = build_context(config)


@main.command()
@click.argument("title")
@click.option("--minutes", "-m", type=int, help="Estimated minutes (1-1440)")
@click.option("--intensity", "-i", type=int, help="Estimated intensity (1-5)")
@click.option("--priority", "-p", type=click.Choice(["low", "medium", "high"]))
@click.option("--project", type=int, help="Project id")
@click.option("--due", help="Due date, YYYY-MM-DD or a phrase like 'next friday'")
@click.option("--description", "-d", default="", help="Longer description")
@click.pass_obj
def add(app: AppContext, title, minutes, intensity, priority, project, due, description):
    """Add a new task with its estimate."""
    data = {
        "title": title,
        "description": description,
        "project_id": project,
        "priority": priority or app.config.default_priority.value,
        "estimated_minutes": minutes if minutes is not None else app.config.default_estimate_minutes,
        "estimated_intensity": (intensity if intensity is not None
                                else app.config.default_estimate_intensity),
        "due_date": parse_date_option(due, "--due"),
    }
    task = run(app, app.service.create_task(data))
    app.console.print(
        f"[green]✓[/green] Added task [bold]{task.id}[/bold]: {task.title} "
        f"[dim]({format_minutes(task.estimated_minutes)}, intensity {task.estimated_intensity})[/dim]"
    )


@main.command("list")
@click.option("--status", "-s", type=click.Choice([s.value for s in TaskStatus]))
@click.option("--project", type=int, help="Only tasks of this project")
@click.option("--all", "-a", "show_all", is_flag=True, help="Include done and archived tasks")
@click.option("--overdue", is_flag=True, help="Only overdue tasks")
@click.option("--search", "query", help="Only tasks whose title or description contains TEXT")
@click.option("--format", "-f", "output_format", type=click.Choice(["table", "json"]),
              default="table")
@click.pass_obj
def list_tasks(app: AppContext, status, project, show_all, overdue, query, output_format):
    """List tasks (open tasks by default)."""
    if overdue:
        tasks = run(app, app.service.overdue_tasks(project))
    elif query is not None:
        tasks = run(app, app.service.search_tasks(query, project))
        if status:
            tasks = [t for t in tasks if t.status == TaskStatus(status)]
        elif not show_all:
            tasks = [t for t in tasks if t.is_open()]
    else:
        tasks = run(app, app.service.list_tasks(project, TaskStatus(status) if status else None))
        if not status and not show_all:
            tasks = [t for t in tasks if t.is_open()]
        tasks.sort(key=lambda t: t.id)

    if output_format == "json":
        print_json([t.to_dict() for t in tasks])
    else:
        render_tasks(app, tasks)


@main.command()
@click.argument("task_id", type=int)
@click.pass_obj
def start(app: AppContext, task_id):
    """Start timing a task."""
    session = run(app, app.service.start_session(task_id))
    app.console.print(f"[green]⏱[/green]  Started timer for task {task_id} "
                      f"[dim](session {session.id})[/dim]")


@main.command()
@click.argument("task_id", type=int)
@click.pass_obj
def stop(app: AppContext, task_id):
    """Stop the running timer of a task."""
    session = run(app, app.service.stop_session(task_id))
    if session is None:
        app.console.print(f"[yellow]No timer running for task {task_id}[/yellow]")
        return
    total = run(app, app.service.total_minutes(task_id))
    app.console.print(
        f"[green]■[/green] Stopped task {task_id} after "
        f"{format_seconds(session.duration_seconds)} "
        f"[dim](total {format_minutes(total)})[/dim]"
    )


@main.command()
@click.argument("task_id", type=int, required=False)
@click.pass_obj
def status(app: AppContext, task_id):
    """Show running timers, or tracked time for one task."""
    if task_id is not None:
        task = run(app, app.service.get_task(task_id))
        elapsed = run(app, app.service.elapsed(task_id))
        total = run(app, app.service.total_minutes(task_id))
        lines = [
            f"Status: {STATUS_ICONS[task.status]} {task.status.value}",
            f"Estimate: {format_minutes(task.estimated_minutes)}",
            f"Tracked: {format_minutes(total)}",
        ]
        if elapsed:
            lines.append(f"Running: {format_seconds(elapsed)}")
        app.console.print(Panel("\n".join(lines), title=f"{task.id}: {task.title}"))
        return

    running = []
    # Done tasks can still be timed
    for task in run(app, app.service.list_tasks()):
        if task.is_terminal():
            continue
        if run(app, app.service.active_session(task.id)) is not None:
            running.append((task, run(app, app.service.elapsed(task.id))))

    if not running:
        app.console.print("[dim]No timers running[/dim]")
        return
    for task, elapsed in running:
        app.console.print(f"🔄 [bold]{task.id}[/bold] {task.title}  {format_seconds(elapsed)}")


@main.command()
@click.argument("task_id", type=int)
@click.option("--intensity", "-i", type=int, required=True, help="How demanding it was (1-5)")
@click.option("--minutes", "-m", type=int, help="Actual minutes; defaults to tracked time")
@click.pass_obj
def done(app: AppContext, task_id, intensity, minutes):
    """Complete a task and record how it went."""
    task = run(app, app.service.complete_task(task_id, intensity, minutes))
    accuracy = app.service.compute_accuracy(task)
    app.console.print(f"[green]✓[/green] Completed task {task.id}: {task.title}")
    app.console.print(
        f"  Time: {format_minutes(task.actual_minutes)} of {format_minutes(task.estimated_minutes)} "
        f"({format_percentage(accuracy.time_accuracy)} accurate)"
    )
    app.console.print(
        f"  Intensity: {task.actual_intensity} vs {task.estimated_intensity} "
        f"({format_percentage(accuracy.intensity_accuracy)} accurate)"
    )


@main.command()
@click.argument("task_id", type=int, required=False)
@click.option("--completed-older-than", "older_than", type=int,
              help="Archive every done task completed more than N days ago")
@click.pass_obj
def archive(app: AppContext, task_id, older_than):
    """Archive a task, or old completed tasks in bulk."""
    if task_id is None and older_than is None:
        raise click.UsageError("Give a TASK_ID or --completed-older-than")
    if older_than is not None:
        count = run(app, app.service.archive_completed(older_than))
        app.console.print(f"📦 Archived {count} completed task(s)")
    if task_id is not None:
        task = run(app, app.service.archive_task(task_id))
        app.console.print(f"📦 Archived task {task.id}: {task.title}")


@main.command()
@click.argument("task_id", type=int)
@click.option("--start", "start_time", required=True,
              help="Start time, ISO or a phrase like '2 hours ago'")
@click.option("--end", "end_time", required=True, help="End time, ISO or a phrase like 'now'")
@click.option("--description", "-d", default="", help="What was done")
@click.pass_obj
def log(app: AppContext, task_id, start_time, end_time, description):
    """Log time worked on a task away from the timer."""
    session = run(app, app.service.add_manual_session(
        task_id,
        parse_date_option(start_time, "--start"),
        parse_date_option(end_time, "--end"),
        description,
    ))
    app.console.print(f"[green]✓[/green] Logged {format_seconds(session.duration_seconds)} "
                      f"for task {task_id}")


register_analytics_commands(main)
