"""Logging setup for crashmap.

structlog renders both its own events and stdlib ``logging`` records through
``ProcessorFormatter``, so every handler on the root logger picks its renderer
independently: human-readable console output on stderr, JSON lines in the
optional log file.
"""

import logging
import shutil
import sys
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any, TextIO

import structlog
from rich.console import Console
from rich.traceback import Traceback
from structlog.stdlib import BoundLogger
from structlog.typing import ExcInfo, Processor


# HTTP libraries used for uploads log every connection at DEBUG
QUIET_LOGGERS = ("urllib3", "urllib3.connectionpool", "requests")


def drop_microseconds(
    logger: Any, log_method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Keep millisecond precision of the console timestamp."""
    raw = event_dict.pop("timestamp_raw", None)
    if raw is not None:
        event_dict["timestamp"] = raw[:-3]
    return event_dict


def rich_traceback(sio: TextIO, exc_info: ExcInfo) -> None:
    """Render *exc_info* with rich, hiding CLI and HTTP library frames."""
    width, _ = shutil.get_terminal_size((100, 40))
    sio.write("\n")
    Console(file=sio, color_system="truecolor").print(
        Traceback.from_exception(
            *exc_info,
            width=width,
            extra_lines=1,
            max_frames=5,
            suppress=["click", "typer", "requests", "urllib3"],
        )
    )


def _pre_chain(log_level: int) -> list[Processor]:
    chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    if log_level < logging.INFO:
        chain.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            )
        )
    return chain


def _console_timestamper(log_level: int) -> Processor:
    fmt = "%H:%M:%S.%f" if log_level < logging.INFO else "%Y-%m-%d %H:%M:%S.%f"
    return structlog.processors.TimeStamper(fmt=fmt, key="timestamp_raw")


def configure_structlog(log_level: int = logging.INFO) -> None:
    """Route structlog events into stdlib logging for the handlers to render."""
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        *_pre_chain(log_level),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        # Must stay last so each handler applies its own renderer
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _console_handler(log_level: int, json_logs: bool) -> logging.Handler:
    # stderr keeps `plan -f json` output parseable
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(exception_formatter=rich_traceback)
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[*_pre_chain(log_level), structlog.dev.set_exc_info],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _console_timestamper(log_level),
                drop_microseconds,
                renderer,
            ],
        )
    )
    return handler


def _file_handler(log_file: str, log_level: int) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8", delay=True)
    handler.setLevel(log_level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_pre_chain(log_level),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    return handler


def setup_logging(
    json_logs: bool = False,
    log_level_name: str = "WARNING",
    log_file: str | None = None,
) -> BoundLogger:
    """Configure logging for one CLI invocation.

    Replaces any handler installed by a previous call, so it is safe to run
    repeatedly in the same process.

    Args:
        json_logs: Render console output as JSON lines instead of text
        log_level_name: Name of the stdlib level, unknown names fall back to INFO
        log_file: Optional path receiving JSON lines at the same level
    """
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    configure_structlog(log_level=log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [_console_handler(log_level, json_logs)]
    if log_file:
        root_logger.addHandler(_file_handler(log_file, log_level))

    quiet_level = max(log_level, logging.WARNING)
    for name in QUIET_LOGGERS:
        quiet = logging.getLogger(name)
        quiet.handlers = []
        quiet.propagate = True
        quiet.setLevel(quiet_level)

    return structlog.get_logger()  # type: ignore[no-any-return]


def get_logger(name: str | None = None) -> BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]
