"""Command-line interface for crashmap."""

from crashmap.cli.app import app, main


__all__ = ["app", "main"]
