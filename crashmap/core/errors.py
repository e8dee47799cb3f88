"""Core exception hierarchy for crashmap."""

from typing import Any


class CrashmapError(Exception):
    """Base exception for all crashmap errors."""


class ConfigError(CrashmapError):
    """Configuration could not be loaded or is invalid."""


class PlanningError(CrashmapError):
    """Malformed or contradictory configuration detected while planning a variant."""

    def __init__(self, message: str, variant_name: str | None = None) -> None:
        super().__init__(message)
        self.variant_name = variant_name


class InputAbsentError(CrashmapError):
    """A required artifact file was missing at delivery time."""

    def __init__(self, message: str, kind: str, key: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.key = key


class UploadError(CrashmapError):
    """Terminal delivery failure for one work unit."""

    def __init__(
        self,
        message: str,
        kind: str,
        key: str,
        status_code: int | None = None,
        attempts: int = 0,
        response_data: Any = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.key = key
        self.status_code = status_code
        self.attempts = attempts
        self.response_data = response_data


class TaskExecutionError(CrashmapError):
    """A task registered with the task engine failed."""

    def __init__(self, message: str, task_name: str) -> None:
        super().__init__(message)
        self.task_name = task_name


class CycleError(CrashmapError):
    """The declared ordering edges contain a cycle."""


__all__ = [
    "ConfigError",
    "CrashmapError",
    "CycleError",
    "InputAbsentError",
    "PlanningError",
    "TaskExecutionError",
    "UploadError",
]
