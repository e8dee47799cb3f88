"""CLI command modules."""

import typer

from crashmap.cli.commands.plan import register_commands as register_plan_commands
from crashmap.cli.commands.upload import register_commands as register_upload_commands


def register_all_commands(app: typer.Typer) -> None:
    """Register all CLI commands with the main app.

    Args:
        app: The main Typer app
    """
    register_plan_commands(app)
    register_upload_commands(app)
