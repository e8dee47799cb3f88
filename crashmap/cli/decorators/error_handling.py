"""Error handling decorators for CLI commands."""

import logging
import sys
import traceback
from collections.abc import Callable
from functools import wraps
from typing import Any

import click
import typer

from crashmap.core.errors import (
    ConfigError,
    CycleError,
    InputAbsentError,
    PlanningError,
    UploadError,
)
from crashmap.core.structlog_logger import get_struct_logger


__all__ = ["handle_errors", "print_stack_trace_if_verbose"]

logger = get_struct_logger(__name__)


def _error_event(error: Exception) -> tuple[str, dict[str, Any]]:
    """Event name and context logged for a command failure."""
    if isinstance(error, ConfigError):
        return "configuration_error", {}
    if isinstance(error, PlanningError):
        return "planning_error", {"variant": error.variant_name}
    if isinstance(error, CycleError):
        return "task_graph_cycle", {}
    if isinstance(error, UploadError | InputAbsentError):
        return "upload_error", {"kind": error.kind, "key": error.key}
    if isinstance(error, FileNotFoundError):
        return "file_not_found", {"path": error.filename}
    return "unexpected_error", {
        "exc_info": logging.getLogger().isEnabledFor(logging.DEBUG)
    }


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn exceptions escaping a command into a logged error and exit code 1.

    ``typer.Exit`` raised by the command itself passes through untouched.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except Exception as e:
            event, context = _error_event(e)
            logger.error(event, error=str(e), **context)
            print_stack_trace_if_verbose()
            raise typer.Exit(1) from e

    return wrapper


def print_stack_trace_if_verbose() -> None:
    """Print the current exception's traceback when -v or --debug was given."""
    ctx = click.get_current_context(silent=True)
    app_ctx = ctx.obj if ctx is not None else None
    verbose = getattr(app_ctx, "verbose", 0) or any(
        arg in sys.argv for arg in ("-v", "-vv", "--verbose", "--debug")
    )
    if verbose:
        print("\nStack trace:", file=sys.stderr)
        traceback.print_exc(file=sys.stderr)
