"""Common CLI parameter definitions for reuse across commands."""

from pathlib import Path
from typing import Annotated

import typer


BuildFileArgument = Annotated[
    Path,
    typer.Argument(
        help="YAML build description listing the variants and their build steps",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
]

OutputFormatOption = Annotated[
    str,
    typer.Option(
        "--output-format",
        "-f",
        help="Output format: table|json (default: table)",
    ),
]

WorkersOption = Annotated[
    int,
    typer.Option(
        "--workers",
        "-j",
        min=1,
        help="Number of tasks planned and executed concurrently",
    ),
]
