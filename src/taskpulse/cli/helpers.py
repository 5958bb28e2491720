"""Shared plumbing for TaskPulse CLI commands."""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from ..config import ConfigModel
from ..errors import TaskPulseError, ValidationError
from ..services.task_service import TaskService
from ..storage import JsonFileRepository
from ..utils.datetime import parse_human_datetime


@dataclass
class AppContext:
    """Objects shared by every command of one invocation"""
    config: ConfigModel
    service: TaskService
    console: Console


def setup_logging(level: str, verbose: bool = False):
    """Route log records through rich at the configured level."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def build_context(config: ConfigModel) -> AppContext:
    service = TaskService(
        JsonFileRepository(config.data_dir),
        first_day_of_week=config.first_day_of_week,
    )
    return AppContext(config, service, Console(no_color=config.no_color))


def run(app: AppContext, awaitable: Awaitable) -> Any:
    """Run a service coroutine, turning domain errors into a clean exit."""
    try:
        return asyncio.run(awaitable)
    except ValidationError as e:
        field = f" [dim]({e.field})[/dim]" if e.field else ""
        app.console.print(f"[bold red]Error:[/bold red] {e}{field}")
        sys.exit(1)
    except TaskPulseError as e:
        app.console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)


def print_json(data: Any):
    click.echo(json.dumps(data, indent=2, default=str))


def parse_date_option(value: Optional[str], name: str) -> Optional[datetime]:
    try:
        return parse_human_datetime(value)
    except ValueError:
        raise click.BadParameter(f"'{value}' is not a valid date", param_hint=name)
