from .errors import (
    ConfigError,
    CrashmapError,
    CycleError,
    InputAbsentError,
    PlanningError,
    TaskExecutionError,
    UploadError,
)
from .logging import get_logger, setup_logging


__all__ = [
    "setup_logging",
    "get_logger",
    "ConfigError",
    "CrashmapError",
    "CycleError",
    "InputAbsentError",
    "PlanningError",
    "TaskExecutionError",
    "UploadError",
]
