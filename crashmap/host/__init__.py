"""Host plumbing: build description resolution and local task execution."""

from crashmap.host.engine import ExecutionReport, Task, TaskEngine, TaskState
from crashmap.host.resolver import (
    BuildDescriptionResolver,
    ResolvedBuild,
    create_build_description_resolver,
)


__all__ = [
    "BuildDescriptionResolver",
    "ExecutionReport",
    "ResolvedBuild",
    "Task",
    "TaskEngine",
    "TaskState",
    "create_build_description_resolver",
]
