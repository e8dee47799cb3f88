"""Local task engine honouring declared ordering edges.

Stands in for the host build system's task graph when crashmap runs on its
own. Hard ``depends_on`` edges pull tasks into the execution set and
propagate failure; ``must_run_after`` and ``runs_after`` only order tasks
that execute anyway; ``finalized_by`` schedules a finalizer after its task.
"""

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from graphlib import CycleError as GraphCycleError
from graphlib import TopologicalSorter
from typing import Any

from crashmap.core.errors import CycleError, TaskExecutionError


logger = logging.getLogger(__name__)


class TaskState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass
class Task:
    """One node of the task graph."""

    name: str
    action: Callable[[], Any] | None = None
    external: bool = False
    depends_on: set[str] = field(default_factory=set)
    must_run_after: set[str] = field(default_factory=set)
    runs_after: set[str] = field(default_factory=set)
    finalized_by: set[str] = field(default_factory=set)


@dataclass
class ExecutionReport:
    """Outcome of one engine run."""

    order: list[str] = field(default_factory=list)
    states: dict[str, TaskState] = field(default_factory=dict)
    errors: dict[str, BaseException] = field(default_factory=dict)

    @property
    def failed(self) -> list[str]:
        return [name for name, state in self.states.items() if state is TaskState.FAILED]

    @property
    def succeeded(self) -> bool:
        return not self.failed and TaskState.CANCELLED not in self.states.values()


class TaskEngine:
    """Registers tasks with ordering edges and executes them."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._lock = threading.Lock()

    @property
    def tasks(self) -> dict[str, Task]:
        return dict(self._tasks)

    def task(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise TaskExecutionError(f"Unknown task '{name}'", task_name=name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def register(
        self,
        name: str,
        action: Callable[[], Any] | None = None,
        *,
        external: bool = False,
        depends_on: Iterable[str] = (),
        must_run_after: Iterable[str] = (),
        runs_after: Iterable[str] = (),
        finalized_by: Iterable[str] = (),
    ) -> Task:
        """Register a task, or merge edges into an already registered one.

        Raises:
            TaskExecutionError: If two different actions are registered under one name
        """
        with self._lock:
            task = self._tasks.get(name)
            if task is None:
                task = Task(name=name, action=action, external=external)
                self._tasks[name] = task
            elif action is not None:
                if task.action is not None and task.action is not action:
                    raise TaskExecutionError(
                        f"Task '{name}' is already registered with an action", task_name=name
                    )
                task.action = action

            task.depends_on.update(depends_on)
            task.must_run_after.update(must_run_after)
            task.runs_after.update(runs_after)
            task.finalized_by.update(finalized_by)
            return task

    def _execution_set(self, targets: Iterable[str] | None) -> set[str]:
        if targets is None:
            pending = [name for name, task in self._tasks.items() if not task.external]
        else:
            pending = list(targets)

        selected: set[str] = set()
        while pending:
            name = pending.pop()
            if name in selected:
                continue
            task = self.task(name)
            selected.add(name)
            pending.extend(task.depends_on)
            pending.extend(task.finalized_by)
        return selected

    def _build_graph(self, selected: set[str]) -> dict[str, set[str]]:
        graph: dict[str, set[str]] = {name: set() for name in selected}
        for name in selected:
            task = self._tasks[name]
            graph[name].update(task.depends_on)
            # Soft edges only order tasks that run anyway
            graph[name].update(task.must_run_after & selected)
            graph[name].update(task.runs_after & selected)
            for finalizer in task.finalized_by:
                graph[finalizer].add(name)
        return graph

    def execution_order(self, targets: Iterable[str] | None = None) -> list[str]:
        """Deterministic sequential order of the tasks that would run.

        Raises:
            CycleError: If the edges among the selected tasks form a cycle
        """
        graph = self._build_graph(self._execution_set(targets))
        sorter = TopologicalSorter(graph)
        try:
            sorter.prepare()
        except GraphCycleError as e:
            raise CycleError(f"Task graph contains a cycle: {e.args[1]}") from e

        order: list[str] = []
        while sorter.is_active():
            ready = sorted(sorter.get_ready())
            order.extend(ready)
            sorter.done(*ready)
        return order

    def execute(
        self,
        targets: Iterable[str] | None = None,
        max_workers: int = 1,
        cancel_event: threading.Event | None = None,
    ) -> ExecutionReport:
        """Run the selected tasks in dependency order.

        A failing task only skips tasks that (transitively) depend on it;
        independent tasks keep running. Once *cancel_event* is set no new task
        is started.
        """
        selected = self._execution_set(targets)
        graph = self._build_graph(selected)
        sorter = TopologicalSorter(graph)
        try:
            sorter.prepare()
        except GraphCycleError as e:
            raise CycleError(f"Task graph contains a cycle: {e.args[1]}") from e

        report = ExecutionReport(states={name: TaskState.PENDING for name in selected})
        running: dict[Future[Any], str] = {}

        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            while sorter.is_active():
                for name in sorted(sorter.get_ready()):
                    state = self._pre_state(name, report, cancel_event)
                    if state is not None:
                        report.states[name] = state
                        sorter.done(name)
                        continue
                    report.order.append(name)
                    action = self._tasks[name].action
                    running[executor.submit(action if action else _noop)] = name

                if not running:
                    continue

                done, _ = wait(list(running), return_when=FIRST_COMPLETED)
                for future in done:
                    name = running.pop(future)
                    error = future.exception()
                    if error is None:
                        report.states[name] = TaskState.SUCCEEDED
                    else:
                        report.states[name] = TaskState.FAILED
                        report.errors[name] = error
                        logger.error("Task %s failed: %s", name, error)
                    sorter.done(name)

        return report

    def _pre_state(
        self,
        name: str,
        report: ExecutionReport,
        cancel_event: threading.Event | None,
    ) -> TaskState | None:
        """State to assign without running the task, or None to run it."""
        if cancel_event is not None and cancel_event.is_set():
            return TaskState.CANCELLED
        blocked = [
            dep
            for dep in self._tasks[name].depends_on
            if report.states.get(dep) in (TaskState.FAILED, TaskState.SKIPPED, TaskState.CANCELLED)
        ]
        if blocked:
            logger.warning("Skipping %s because %s did not complete", name, ", ".join(sorted(blocked)))
            return TaskState.SKIPPED
        return None


def _noop() -> None:
    return None
