"""Dependency wiring between work units and external build steps.

The wirer never executes anything. It returns declared edges that the host
task engine honours. Edges only ever point from ``release`` to the mapping
and symbol units, never the reverse, so the graph stays acyclic.
"""

from collections.abc import Iterable

from crashmap.models.variants import HostContext, OutputDescriptor, VariantDescriptor
from crashmap.models.work_units import (
    DependencyDescriptor,
    WorkUnit,
    WorkUnitKind,
    task_name_for,
    work_unit_key,
)


class DependencyWirer:
    """Attach ordering constraints and upstream providers to work units."""

    def __init__(self, host: HostContext) -> None:
        self.host = host

    def wire(
        self,
        unit: WorkUnit,
        variant: VariantDescriptor,
        output: OutputDescriptor,
        planned: Iterable[WorkUnitKind] = (),
    ) -> DependencyDescriptor:
        """Compute and attach the edges of *unit*.

        Args:
            unit: Freshly created unit to wire
            variant: Variant the unit belongs to
            output: Output whose request created the unit
            planned: All kinds planned for the (variant, output) pair

        Returns:
            The descriptor now stored on ``unit.edges``
        """
        planned_kinds = set(planned)
        if unit.kind is WorkUnitKind.MANIFEST:
            edges = self._wire_manifest(variant)
        elif unit.kind is WorkUnitKind.JVM_MAPPING:
            edges = self._wire_jvm_mapping(unit, variant)
        elif unit.kind is WorkUnitKind.NATIVE_SYMBOLS:
            edges = self._wire_native_symbols(unit, variant, output)
        elif unit.kind is WorkUnitKind.RELEASE:
            edges = self._wire_release(unit, variant, output, planned_kinds)
        else:
            raise ValueError(f"Use wire_jni_libs_install for {unit.kind.value} units")

        unit.edges = edges
        return edges

    def wire_jni_libs_install(
        self, unit: WorkUnit, variants: Iterable[VariantDescriptor]
    ) -> DependencyDescriptor:
        """Make every native build step depend on the shared library install unit."""
        edges = DependencyDescriptor(must_run_after=set(self.host.clean_steps))
        for variant in variants:
            edges.required_by.update(step.name for step in variant.native_builds())
        unit.edges = edges
        return edges

    def _manifest_dependency(self, unit: WorkUnit, variant: VariantDescriptor) -> str:
        manifest_key = work_unit_key(WorkUnitKind.MANIFEST, variant.name, "")
        unit.providers.append(manifest_key)
        return task_name_for(WorkUnitKind.MANIFEST, variant.name)

    def _wire_manifest(self, variant: VariantDescriptor) -> DependencyDescriptor:
        edges = DependencyDescriptor()
        if variant.manifest_merge is not None:
            edges.depends_on.add(variant.manifest_merge.name)
            edges.finalizes.add(variant.manifest_merge.name)
        return edges

    def _wire_jvm_mapping(
        self, unit: WorkUnit, variant: VariantDescriptor
    ) -> DependencyDescriptor:
        # Shared by every output of the variant, so wait for all of their packaging
        edges = DependencyDescriptor(depends_on={self._manifest_dependency(unit, variant)})
        for output in variant.outputs:
            if output.packaging is not None:
                edges.depends_on.add(output.packaging.name)
        return edges

    def _wire_native_symbols(
        self, unit: WorkUnit, variant: VariantDescriptor, output: OutputDescriptor
    ) -> DependencyDescriptor:
        edges = DependencyDescriptor(
            depends_on={self._manifest_dependency(unit, variant)},
            must_run_after=set(self.host.clean_steps),
        )
        edges.depends_on.update(step.name for step in output.native_builds)
        return edges

    def _wire_release(
        self,
        unit: WorkUnit,
        variant: VariantDescriptor,
        output: OutputDescriptor,
        planned: set[WorkUnitKind],
    ) -> DependencyDescriptor:
        edges = DependencyDescriptor(depends_on={self._manifest_dependency(unit, variant)})
        if output.packaging is not None:
            edges.depends_on.add(output.packaging.name)

        # The release payload reports whether mappings and symbols were supplied
        if WorkUnitKind.JVM_MAPPING in planned:
            unit.providers.append(work_unit_key(WorkUnitKind.JVM_MAPPING, variant.name, output.name))
            edges.depends_on.add(task_name_for(WorkUnitKind.JVM_MAPPING, variant.name))
        if WorkUnitKind.NATIVE_SYMBOLS in planned:
            unit.providers.append(
                work_unit_key(WorkUnitKind.NATIVE_SYMBOLS, variant.name, output.name)
            )
            edges.depends_on.add(task_name_for(WorkUnitKind.NATIVE_SYMBOLS, output.name))
        return edges
