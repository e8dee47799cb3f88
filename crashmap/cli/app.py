"""Main CLI application for crashmap."""

import logging
import sys
from importlib.metadata import distribution
from typing import Annotated

import typer

from crashmap.cli.decorators.error_handling import print_stack_trace_if_verbose
from crashmap.config.loader import load_config
from crashmap.config.models import CrashmapConfig
from crashmap.core.errors import ConfigError
from crashmap.core.logging import setup_logging


__all__ = ["AppContext", "app", "main", "__version__"]


__version__ = distribution("crashmap").version

logger = logging.getLogger(__name__)


class AppContext:
    """Application context for storing shared state."""

    def __init__(
        self,
        verbose: int = 0,
        log_file: str | None = None,
        config_file: str | None = None,
    ):
        self.verbose = verbose
        self.log_file = log_file
        self.config_file = config_file
        self._config: CrashmapConfig | None = None

    @property
    def config(self) -> CrashmapConfig:
        """Resolved configuration, loaded on first access."""
        if self._config is None:
            self._config = load_config(cli_config_path=self.config_file)
        return self._config


app = typer.Typer(
    name="crashmap",
    help=f"""crashmap build provenance uploader v{__version__}

Plans, records and uploads obfuscation mappings, native debug symbols and
release metadata for every variant of a build.

Common workflows:
  - Inspect the plan:   crashmap plan build.yaml
  - Record requests:    crashmap upload build.yaml --dry-run
  - Upload:             crashmap upload build.yaml --workers 4""",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity (-v=INFO, -vv=DEBUG)",
        ),
    ] = 0,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug logging (equivalent to -vv)"),
    ] = False,
    log_file: Annotated[
        str | None, typer.Option("--log-file", help="Log to file (JSON lines)")
    ] = None,
    config_file: Annotated[
        str | None,
        typer.Option("-c", "--config", help="Path to configuration file"),
    ] = None,
    version: Annotated[
        bool, typer.Option("--version", help="Show version and exit")
    ] = False,
) -> None:
    """crashmap build provenance uploader."""
    if version:
        print(f"crashmap v{__version__}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        print(ctx.get_help())
        raise typer.Exit()

    app_context = AppContext(verbose=verbose, log_file=log_file, config_file=config_file)
    ctx.obj = app_context

    log_level_name = "WARNING"
    if debug or verbose >= 2:
        log_level_name = "DEBUG"
    elif verbose == 1:
        log_level_name = "INFO"
    elif log_file is None:
        # No explicit CLI flags, use the configured level
        try:
            log_level_name = app_context.config.log_level
        except ConfigError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            raise typer.Exit(1) from e

    setup_logging(log_level_name=log_level_name, log_file=log_file)


def main() -> int:
    """Main CLI entry point."""
    try:
        from crashmap.cli.commands import register_all_commands

        register_all_commands(app)
        app()
        return 0

    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 0

    except Exception as e:
        logger.exception("Unexpected error: %s", e)
        print_stack_trace_if_verbose()
        return 1


if __name__ == "__main__":
    sys.exit(main())
