"""Upload command: run the planned work units."""

import json
import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from crashmap.cli.app import AppContext
from crashmap.cli.decorators import handle_errors
from crashmap.cli.helpers.parameters import (
    BuildFileArgument,
    OutputFormatOption,
    WorkersOption,
)
from crashmap.delivery.pool import UploadClientPool
from crashmap.host.engine import TaskEngine
from crashmap.host.resolver import create_build_description_resolver
from crashmap.orchestrator import BuildReport, PipelineOrchestrator


logger = logging.getLogger(__name__)

STATE_STYLES = {
    "succeeded": "green",
    "skipped": "yellow",
    "failed": "red",
    "pending": "dim",
}


def _print_report_table(report: BuildReport, dry_run: bool) -> None:
    console = Console()
    table = Table(
        title="Recorded requests" if dry_run else "Uploads",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Task", style="cyan", no_wrap=True)
    table.add_column("State", style="bold")
    table.add_column("Detail", style="dim")
    for unit in report.units:
        style = STATE_STYLES.get(unit.state.value, "")
        table.add_row(
            unit.task_name,
            f"[{style}]{unit.state.value}[/{style}]",
            unit.detail or "",
        )
    console.print(table)

    for variant_name, messages in report.failures.items():
        for message in messages:
            console.print(f"[red]Failed[/red] {variant_name}: {message}")


@contextmanager
def _cancel_on_interrupt(cancel_event: threading.Event) -> Iterator[None]:
    """Set *cancel_event* on SIGINT so no new task or retry is started."""

    def handler(signum: int, frame: object) -> None:
        logger.warning("Interrupted, finishing running tasks")
        cancel_event.set()

    # Signal handlers can only be installed from the main thread
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@handle_errors
def upload_command(
    ctx: typer.Context,
    build_file: BuildFileArgument,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Write request records to the build directory without sending them",
        ),
    ] = False,
    workers: WorkersOption = 1,
    tasks: Annotated[
        list[str] | None,
        typer.Option("--task", "-t", help="Only run these tasks and their dependencies"),
    ] = None,
    output_format: OutputFormatOption = "table",
) -> None:
    """Prepare and upload mappings, symbols and release information."""
    app_ctx: AppContext = ctx.obj
    config = app_ctx.config
    resolved = create_build_description_resolver().resolve(build_file)

    engine = TaskEngine()
    resolved.register_external_steps(engine)
    cancel_event = threading.Event()
    with (
        _cancel_on_interrupt(cancel_event),
        UploadClientPool(initial_retry_delay=config.retry_delay_ms / 1000) as pool,
    ):
        orchestrator = PipelineOrchestrator(config, resolved.host, pool, dry_run=dry_run)
        report = orchestrator.run(
            resolved.variants,
            engine=engine,
            max_workers=workers,
            cancel_event=cancel_event,
            targets=tasks or None,
        )

    if output_format.lower() == "json":
        print(json.dumps(report.to_dict(), indent=2, default=str))
    elif output_format.lower() == "table":
        _print_report_table(report, dry_run)
    else:
        print(f"Error: Unknown format '{output_format}'. Supported formats: table, json")
        raise typer.Exit(1)

    if not report.succeeded:
        raise typer.Exit(1)


def register_commands(app: typer.Typer) -> None:
    """Register upload command with the main app.

    Args:
        app: The main Typer app
    """
    app.command(name="upload")(upload_command)
