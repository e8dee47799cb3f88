"""Host-supplied descriptors for build variants, outputs and external steps.

These objects are produced once per build invocation by the host variant
enumeration and are read-only for the lifetime of the pipeline.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class NativeBuildStep:
    """External native compilation step for one output.

    Attributes:
        name: Host task name (e.g. ``externalNativeBuildRelease``)
        obj_dir: Object file directory, queryable once the step has run
        so_dir: Shared object directory, queryable once the step has run
    """

    name: str
    obj_dir: Path | None = None
    so_dir: Path | None = None

    def search_directories(self) -> list[Path]:
        """Directories that may hold shared objects produced by this step."""
        return [d for d in (self.obj_dir, self.so_dir) if d is not None]


@dataclass(frozen=True)
class ManifestMergeStep:
    """External manifest merge step for one variant."""

    name: str
    merged_manifest: Path | None = None


@dataclass(frozen=True)
class PackagingStep:
    """External packaging step that finalizes one output."""

    name: str
    mapping_file: Path | None = None


@dataclass(frozen=True)
class OutputDescriptor:
    """A single packaged artifact derived from a variant.

    ``variant_name`` is a lookup back-reference to the owning variant.
    """

    name: str
    variant_name: str
    abi: str | None = None
    packaging: PackagingStep | None = None
    native_builds: tuple[NativeBuildStep, ...] = ()


@dataclass(frozen=True)
class VariantDescriptor:
    """A named build configuration produced by the host."""

    name: str
    app_id: str
    version_code: int
    version_name: str
    minify_enabled: bool = False
    debuggable: bool = False
    native_build_systems: tuple[Path, ...] = ()
    manifest_merge: ManifestMergeStep | None = None
    outputs: tuple[OutputDescriptor, ...] = ()

    @property
    def has_native_build_configured(self) -> bool:
        """True when at least one native build system (cmake/ndk-build) is set."""
        return len(self.native_build_systems) > 0

    def output(self, name: str) -> OutputDescriptor:
        """Look up an output of this variant by name."""
        for output in self.outputs:
            if output.name == name:
                return output
        raise KeyError(f"Variant '{self.name}' has no output named '{name}'")

    def native_builds(self) -> list[NativeBuildStep]:
        """All native build steps across outputs, in declaration order, deduplicated."""
        seen: dict[str, NativeBuildStep] = {}
        for output in self.outputs:
            for step in output.native_builds:
                seen.setdefault(step.name, step)
        return list(seen.values())


@dataclass(frozen=True)
class HostContext:
    """Project-wide facts about the host build.

    Attributes:
        project_dir: Root directory of the project being built
        build_dir: Build output directory; request records land below it
        host_version: Version of the host build tool, reported as ``gradle_version``
        external_obfuscator_present: An obfuscator outside the variant flags is applied
        clean_steps: Names of housekeeping steps that may wipe build directories
    """

    project_dir: Path
    build_dir: Path
    host_version: str = "unknown"
    external_obfuscator_present: bool = False
    clean_steps: tuple[str, ...] = field(default_factory=tuple)

    @property
    def intermediates_dir(self) -> Path:
        return self.build_dir / "intermediates" / "crashmap"
