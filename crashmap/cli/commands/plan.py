"""Plan command: show the work units a build would run."""

import json
import logging

import typer
from rich.console import Console
from rich.table import Table

from crashmap.cli.app import AppContext
from crashmap.cli.decorators import handle_errors
from crashmap.cli.helpers.parameters import BuildFileArgument, OutputFormatOption
from crashmap.delivery.pool import UploadClientPool
from crashmap.host.resolver import create_build_description_resolver
from crashmap.orchestrator import BuildPlan, PipelineOrchestrator


logger = logging.getLogger(__name__)


def _print_plan_table(build_plan: BuildPlan) -> None:
    console = Console()

    pairs_table = Table(title="Variant outputs", show_header=True, header_style="bold cyan")
    pairs_table.add_column("Variant", style="cyan", no_wrap=True)
    pairs_table.add_column("Output", style="cyan")
    pairs_table.add_column("Minify")
    pairs_table.add_column("NDK")
    pairs_table.add_column("Planned", style="bold")
    for pair in build_plan.pairs:
        if not pair.features.user_enabled:
            planned = "[dim]disabled[/dim]"
        elif pair.features.is_debug_excluded:
            planned = "[dim]debug excluded[/dim]"
        else:
            planned = ", ".join(kind.value for kind in pair.kinds) or "[dim]nothing[/dim]"
        pairs_table.add_row(
            pair.variant.name,
            pair.output.name,
            "yes" if pair.features.minify_enabled else "no",
            "yes" if pair.features.ndk_enabled else "no",
            planned,
        )
    console.print(pairs_table)
    console.print()

    units_table = Table(title="Work units", show_header=True, header_style="bold cyan")
    units_table.add_column("Task", style="cyan", no_wrap=True)
    units_table.add_column("Key")
    units_table.add_column("Requested by")
    units_table.add_column("Depends on", style="dim")
    for unit in build_plan.registry.units():
        units_table.add_row(
            unit.task_name,
            unit.key,
            ", ".join(unit.requesters) or "-",
            ", ".join(sorted(unit.edges.depends_on)) or "-",
        )
    console.print(units_table)

    for variant_name, error in build_plan.planning_errors.items():
        console.print(f"[red]Planning error[/red] in {variant_name}: {error}")


@handle_errors
def plan_command(
    ctx: typer.Context,
    build_file: BuildFileArgument,
    output_format: OutputFormatOption = "table",
) -> None:
    """Show the work units planned for every variant output.

    Nothing is executed and no request is made.
    """
    app_ctx: AppContext = ctx.obj
    config = app_ctx.config
    resolved = create_build_description_resolver().resolve(build_file)

    with UploadClientPool() as pool:
        orchestrator = PipelineOrchestrator(config, resolved.host, pool)
        build_plan = orchestrator.plan(resolved.variants)

    if output_format.lower() == "json":
        print(json.dumps(build_plan.to_dict(), indent=2))
    elif output_format.lower() == "table":
        _print_plan_table(build_plan)
    else:
        print(f"Error: Unknown format '{output_format}'. Supported formats: table, json")
        raise typer.Exit(1)

    if build_plan.planning_errors:
        raise typer.Exit(1)


def register_commands(app: typer.Typer) -> None:
    """Register plan command with the main app.

    Args:
        app: The main Typer app
    """
    app.command(name="plan")(plan_command)
