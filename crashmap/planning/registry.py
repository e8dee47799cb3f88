"""Work unit deduplication registry."""

import threading
from collections.abc import Callable, Iterator

from crashmap.core.structlog_logger import get_struct_logger
from crashmap.models.work_units import WorkUnit, WorkUnitKind


logger = get_struct_logger(__name__)


class WorkUnitRegistry:
    """Keyed store guaranteeing at most one work unit per key.

    A registry lives for exactly one build invocation. Outputs of the same
    variant may be planned concurrently, so the check-and-insert sequence in
    :meth:`get_or_create` runs under a single lock: the second requester
    observes and reuses the first requester's instance.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._units: dict[str, WorkUnit] = {}

    def get_or_create(
        self,
        kind: WorkUnitKind,
        key: str,
        factory: Callable[[], WorkUnit],
        requester: str | None = None,
    ) -> WorkUnit:
        """Return the canonical unit for *key*, building it with *factory* on first miss.

        Args:
            kind: Expected kind of the unit
            key: Registry key derived from the variant or output name
            factory: Builds the unit; called at most once per key
            requester: Output name asking for the unit, recorded on the unit

        Raises:
            ValueError: If an existing unit under *key* has a different kind
        """
        with self._lock:
            unit = self._units.get(key)
            if unit is None:
                unit = factory()
                if unit.key != key or unit.kind is not kind:
                    raise ValueError(
                        f"Factory for {key} built {unit.kind.value} unit {unit.key}"
                    )
                self._units[key] = unit
                logger.debug("work_unit_created", kind=kind.value, key=key)
            elif unit.kind is not kind:
                raise ValueError(
                    f"Key {key} already registered for {unit.kind.value}, not {kind.value}"
                )
            else:
                logger.debug("work_unit_reused", kind=kind.value, key=key)

            if requester is not None and requester not in unit.requesters:
                unit.requesters.append(requester)
            return unit

    def get(self, key: str) -> WorkUnit | None:
        with self._lock:
            return self._units.get(key)

    def units(self) -> list[WorkUnit]:
        """All units in creation order."""
        with self._lock:
            return list(self._units.values())

    def of_kind(self, kind: WorkUnitKind) -> list[WorkUnit]:
        return [unit for unit in self.units() if unit.kind is kind]

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._units

    def __len__(self) -> int:
        with self._lock:
            return len(self._units)

    def __iter__(self) -> Iterator[WorkUnit]:
        return iter(self.units())
