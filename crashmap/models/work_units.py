"""Work unit models shared by the planning, wiring and delivery stages."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class WorkUnitKind(str, Enum):
    """Closed set of work unit kinds."""

    MANIFEST = "manifest"
    JVM_MAPPING = "jvmMapping"
    NATIVE_SYMBOLS = "nativeSymbols"
    RELEASE = "release"
    INSTALL_JNI_LIBS = "installJniLibs"

    @property
    def is_variant_scoped(self) -> bool:
        """Whether units of this kind are shared by all outputs of a variant."""
        return self in (WorkUnitKind.MANIFEST, WorkUnitKind.JVM_MAPPING)

    @property
    def upload_category(self) -> str | None:
        """Delivery client category used by units of this kind."""
        return _UPLOAD_CATEGORIES.get(self)


_UPLOAD_CATEGORIES = {
    WorkUnitKind.JVM_MAPPING: "proguard",
    WorkUnitKind.NATIVE_SYMBOLS: "ndk",
    WorkUnitKind.RELEASE: "releases",
}

# Fixed execution order of kinds within one (variant, output) pair
KIND_ORDER = (
    WorkUnitKind.MANIFEST,
    WorkUnitKind.JVM_MAPPING,
    WorkUnitKind.NATIVE_SYMBOLS,
    WorkUnitKind.RELEASE,
)

PROJECT_SCOPE = "project"


class WorkUnitState(str, Enum):
    """Lifecycle state of a work unit."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not WorkUnitState.PENDING


@dataclass(frozen=True)
class FeatureSet:
    """Feature flags gating every downstream decision for one (variant, output) pair."""

    minify_enabled: bool
    ndk_enabled: bool
    is_debug_excluded: bool
    user_enabled: bool


@dataclass
class DependencyDescriptor:
    """Ordering constraints declared for one work unit.

    All entries are host task names.

    Attributes:
        depends_on: Hard dependencies; their output is a required input
        must_run_after: Soft ordering against steps that may wipe directories
        runs_after: Soft ordering; only applies when the other task executes
        finalizes: External steps that must be finalized by this unit
        required_by: External steps that must depend on this unit
    """

    depends_on: set[str] = field(default_factory=set)
    must_run_after: set[str] = field(default_factory=set)
    runs_after: set[str] = field(default_factory=set)
    finalizes: set[str] = field(default_factory=set)
    required_by: set[str] = field(default_factory=set)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "dependsOn": sorted(self.depends_on),
            "mustRunAfter": sorted(self.must_run_after),
            "runsAfter": sorted(self.runs_after),
            "finalizes": sorted(self.finalizes),
            "requiredBy": sorted(self.required_by),
        }


def work_unit_key(kind: WorkUnitKind, variant_name: str, output_name: str) -> str:
    """Derive the registry key of a work unit.

    Manifest and JVM mapping units are keyed on the variant because every
    output of a variant shares them; native symbol and release units are keyed
    on the output because symbols are per ABI.
    """
    if kind is WorkUnitKind.INSTALL_JNI_LIBS:
        return f"{kind.value}:{PROJECT_SCOPE}"
    scope = variant_name if kind.is_variant_scoped else output_name
    return f"{kind.value}:{scope}"


def task_name_for(kind: WorkUnitKind, scope_name: str) -> str:
    """Host task name of a work unit."""
    scope = scope_name[:1].upper() + scope_name[1:]
    if kind is WorkUnitKind.MANIFEST:
        return f"processCrashmap{scope}Manifest"
    if kind is WorkUnitKind.JVM_MAPPING:
        return f"uploadCrashmap{scope}Mapping"
    if kind is WorkUnitKind.NATIVE_SYMBOLS:
        return f"uploadCrashmapNdk{scope}Mapping"
    if kind is WorkUnitKind.RELEASE:
        return f"crashmapRelease{scope}Task"
    return "crashmapInstallJniLibsTask"


@dataclass(eq=False)
class WorkUnit:
    """A named, idempotent unit of artifact preparation and upload.

    Instances are compared by identity: the registry guarantees one instance
    per key per build invocation.
    """

    kind: WorkUnitKind
    key: str
    variant_name: str
    output_name: str
    task_name: str
    requesters: list[str] = field(default_factory=list)
    providers: list[str] = field(default_factory=list)
    edges: DependencyDescriptor = field(default_factory=DependencyDescriptor)
    state: WorkUnitState = WorkUnitState.PENDING
    result: Any = None
    build_uuid: str | None = None
    detail: str | None = None

    @property
    def scope_name(self) -> str:
        return self.key.split(":", 1)[1]

    def mark(self, state: WorkUnitState, result: Any = None, detail: str | None = None) -> None:
        """Move the unit to a terminal state."""
        if self.state.is_terminal:
            raise RuntimeError(
                f"Work unit {self.key} already reached terminal state {self.state.value}"
            )
        self.state = state
        self.result = result
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "key": self.key,
            "task": self.task_name,
            "variant": self.variant_name,
            "requesters": list(self.requesters),
            "providers": list(self.providers),
            "edges": self.edges.to_dict(),
            "state": self.state.value,
        }
