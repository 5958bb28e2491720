"""Reporting commands: period reports, overall summary and timer statistics."""

from typing import Any, Dict, List, Optional

import click
import tabulate

from ..services.accuracy import estimation_breakdown
from ..services.analytics import DateRange, ReportGranularity
from ..services.reports import Report
from ..utils.formatting import format_average, format_minutes, format_percentage, format_seconds
from .helpers import AppContext, parse_date_option, print_json, run

TREND_ARROWS = {"up": "↑", "down": "↓", "stable": "→"}


def format_table(data: List[Dict[str, Any]], headers: Optional[List[str]] = None,
                 tablefmt: str = "grid") -> str:
    """Format rows as a table"""
    if not data:
        return "No data available"
    return tabulate.tabulate(data, headers=headers or "keys", tablefmt=tablefmt)


def print_section(title: str, content: str = ""):
    """Print a formatted section"""
    click.echo(f"\n{'=' * 60}")
    click.echo(f"{title:^60}")
    click.echo(f"{'=' * 60}")
    if content:
        click.echo(content)
    click.echo()


def print_subsection(title: str):
    click.echo(f"\n{title}")
    click.echo("-" * len(title))


def _format_report(report: Report):
    totals = report.totals
    print_section(f"Productivity Report: {report.period.label}")

    click.echo(f"Tasks completed:     {totals.completed_tasks} of {totals.total_tasks}")
    click.echo(f"Time worked:         {format_minutes(totals.total_minutes)}")
    click.echo(f"Average per task:    {format_average(totals.average_task_minutes)}")
    click.echo(f"Time accuracy:       {format_percentage(totals.time_accuracy, 1)}")
    click.echo(f"Intensity accuracy:  {format_percentage(totals.intensity_accuracy, 1)}")
    click.echo(f"Productivity score:  {totals.productivity_score}/100")
    click.echo(f"Trend:               {TREND_ARROWS[report.trend.value]} {report.trend.value}")

    if len(report.per_bucket) > 1:
        print_subsection(f"By {report.granularity.value}")
        rows = [
            [
                bucket.period.label,
                bucket.completed_tasks,
                format_minutes(bucket.total_minutes),
                format_percentage(bucket.time_accuracy),
                bucket.productivity_score,
                TREND_ARROWS[bucket.trend.value],
            ]
            for bucket in report.per_bucket
        ]
        click.echo(format_table(rows, ["Period", "Done", "Time", "Accuracy", "Score", "Trend"]))

    if report.breakdowns.top_projects:
        print_subsection("Top projects")
        click.echo(format_table(report.breakdowns.top_projects))

    if report.breakdowns.weekday_pattern:
        print_subsection("By weekday")
        click.echo(format_table(report.breakdowns.weekday_pattern))

    print_subsection("Insights")
    for message in report.insights:
        click.echo(f"💡 {message}")


@click.command()
@click.option("--granularity", "-g", type=click.Choice([g.value for g in ReportGranularity]),
              default="week", help="Bucket size")
@click.option("--date", "reference", help="Report on the period containing this date")
@click.option("--from", "date_from", help="Start of a custom range (YYYY-MM-DD)")
@click.option("--to", "date_to", help="End of a custom range, exclusive (YYYY-MM-DD)")
@click.option("--format", "-f", "output_format", type=click.Choice(["text", "json"]),
              default="text")
@click.pass_obj
def report(app: AppContext, granularity, reference, date_from, date_to, output_format):
    """Productivity report for a day, week or month."""
    granularity = ReportGranularity(granularity)
    if date_from or date_to:
        if not (date_from and date_to):
            raise click.UsageError("--from and --to must be given together")
        date_range = DateRange(parse_date_option(date_from, "--from"),
                               parse_date_option(date_to, "--to"))
        if date_range.end <= date_range.start:
            raise click.BadParameter("must be after --from", param_hint="--to")
    else:
        date_range = app.service.report_range(granularity, parse_date_option(reference, "--date"))

    tasks = run(app, app.service.list_tasks())
    result = app.service.generate_report(tasks, date_range, granularity)

    if output_format == "json":
        print_json(result.to_dict())
    else:
        _format_report(result)


@click.command()
@click.option("--format", "-f", "output_format", type=click.Choice(["text", "json"]),
              default="text")
@click.pass_obj
def summary(app: AppContext, output_format):
    """Overview of the whole task history."""
    tasks = run(app, app.service.list_tasks())
    overview = app.service.summarize(tasks)
    estimates = estimation_breakdown(tasks)

    if output_format == "json":
        print_json({**overview.to_dict(), 'estimates': estimates.to_dict()})
        return

    print_section("TaskPulse Summary")
    click.echo(f"Tasks:               {overview.completed_tasks} done of {overview.total_tasks}")
    click.echo(f"Hours tracked:       {overview.total_hours}")
    click.echo(f"Time accuracy:       {format_percentage(overview.avg_time_accuracy, 1)}")
    click.echo(f"Intensity accuracy:  {format_percentage(overview.avg_intensity_accuracy, 1)}")
    click.echo(f"Productivity score:  {overview.productivity_score}/100")
    if estimates.total_tasks_with_estimates:
        print_subsection("Estimates")
        click.echo(f"Within 25%:          {estimates.accurate_estimates} "
                   f"({format_percentage(estimates.accuracy_percentage)})")
        click.echo(f"Took longer:         {estimates.underestimated_tasks}")
        click.echo(f"Took less:           {estimates.overestimated_tasks}")

    series = app.service.daily_series(tasks, 7)
    print_subsection("Last 7 days")
    click.echo(format_table(
        [[day['date'], day['tasks_completed'], format_minutes(day['minutes'])] for day in series],
        ["Date", "Done", "Time"],
    ))


@click.command()
@click.option("--format", "-f", "output_format", type=click.Choice(["text", "json"]),
              default="text")
@click.pass_obj
def stats(app: AppContext, output_format):
    """Timer statistics for today, this week and this month."""
    timer = run(app, app.service.timer_stats())
    if output_format == "json":
        print_json(timer.to_dict())
        return

    print_section("Timer Statistics")
    click.echo(f"Today:               {format_seconds(timer.total_time_today)}")
    click.echo(f"This week:           {format_seconds(timer.total_time_week)}")
    click.echo(f"This month:          {format_seconds(timer.total_time_month)}")
    click.echo(f"Sessions:            {timer.session_count}")
    click.echo(f"Average session:     {format_seconds(timer.average_session_length)}")
    if timer.most_productive_hour is not None:
        click.echo(f"Most productive:     {timer.most_productive_hour:02d}:00")


def register_analytics_commands(group: click.Group):
    """Attach the reporting commands to the main CLI group"""
    for command in (report, summary, stats):
        group.add_command(command)
