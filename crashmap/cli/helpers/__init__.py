"""CLI helper utilities."""

from crashmap.cli.helpers.parameters import (
    BuildFileArgument,
    OutputFormatOption,
    WorkersOption,
)


__all__ = ["BuildFileArgument", "OutputFormatOption", "WorkersOption"]
