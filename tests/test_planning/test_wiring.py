"""Tests for dependency wiring."""

import pytest

from crashmap.models.work_units import (
    KIND_ORDER,
    WorkUnit,
    WorkUnitKind,
    task_name_for,
    work_unit_key,
)
from crashmap.planning.wiring import DependencyWirer


def new_unit(kind: WorkUnitKind, variant_name: str, output_name: str) -> WorkUnit:
    key = work_unit_key(kind, variant_name, output_name)
    scope = variant_name if kind.is_variant_scoped else output_name
    return WorkUnit(
        kind=kind,
        key=key,
        variant_name=variant_name,
        output_name=output_name,
        task_name=task_name_for(kind, scope),
    )


class TestDependencyWirer:
    """Test declared edges per work unit kind."""

    @pytest.fixture
    def wirer(self, host):
        return DependencyWirer(host)

    def test_manifest_depends_on_and_finalizes_merge_step(self, wirer, make_variant):
        variant = make_variant(minify=True)
        unit = new_unit(WorkUnitKind.MANIFEST, variant.name, variant.outputs[0].name)

        edges = wirer.wire(unit, variant, variant.outputs[0])

        assert edges.depends_on == {"processReleaseManifest"}
        assert edges.finalizes == {"processReleaseManifest"}
        assert unit.edges is edges
        assert unit.providers == []

    def test_manifest_without_merge_step_has_no_edges(self, wirer, make_variant):
        variant = make_variant(with_manifest=False)
        unit = new_unit(WorkUnitKind.MANIFEST, variant.name, variant.name)

        edges = wirer.wire(unit, variant, variant.outputs[0])

        assert not edges.depends_on
        assert not edges.finalizes

    def test_jvm_mapping_waits_for_every_output_packaging(self, wirer, make_variant):
        variant = make_variant(
            minify=True, outputs=[("armeabi-v7aRelease", "armeabi-v7a"), ("x86Release", "x86")]
        )
        unit = new_unit(WorkUnitKind.JVM_MAPPING, variant.name, "x86Release")

        edges = wirer.wire(unit, variant, variant.outputs[1])

        assert edges.depends_on == {
            "processCrashmapReleaseManifest",
            "packageArmeabi-v7aRelease",
            "packageX86Release",
        }
        assert unit.providers == ["manifest:release"]

    def test_native_symbols_depend_on_native_builds(self, wirer, make_variant):
        variant = make_variant(native=True, outputs=[("x86Release", "x86")])
        unit = new_unit(WorkUnitKind.NATIVE_SYMBOLS, variant.name, "x86Release")

        edges = wirer.wire(unit, variant, variant.outputs[0])

        assert edges.depends_on == {"processCrashmapReleaseManifest", "externalNativeBuildRelease"}
        assert edges.must_run_after == {"clean"}

    def test_release_depends_on_planned_uploads(self, wirer, make_variant):
        variant = make_variant(minify=True, native=True, outputs=[("x86Release", "x86")])
        unit = new_unit(WorkUnitKind.RELEASE, variant.name, "x86Release")

        edges = wirer.wire(unit, variant, variant.outputs[0], KIND_ORDER)

        assert edges.depends_on == {
            "processCrashmapReleaseManifest",
            "packageX86Release",
            "uploadCrashmapReleaseMapping",
            "uploadCrashmapNdkX86ReleaseMapping",
        }
        assert unit.providers == [
            "manifest:release",
            "jvmMapping:release",
            "nativeSymbols:x86Release",
        ]

    def test_release_without_uploads(self, wirer, make_variant):
        variant = make_variant()
        unit = new_unit(WorkUnitKind.RELEASE, variant.name, variant.name)

        edges = wirer.wire(
            unit, variant, variant.outputs[0], [WorkUnitKind.MANIFEST, WorkUnitKind.RELEASE]
        )

        assert edges.depends_on == {"processCrashmapReleaseManifest", "packageRelease"}

    def test_edges_never_point_back_at_release(self, wirer, make_variant):
        variant = make_variant(minify=True, native=True)
        output = variant.outputs[0]
        release_task = task_name_for(WorkUnitKind.RELEASE, output.name)

        for kind in KIND_ORDER:
            unit = new_unit(kind, variant.name, output.name)
            edges = wirer.wire(unit, variant, output, KIND_ORDER)
            assert release_task not in edges.depends_on | edges.must_run_after | edges.runs_after

    def test_jni_libs_install_is_required_by_native_builds(self, wirer, make_variant):
        first = make_variant(name="free", native=True)
        second = make_variant(name="paid", native=True)
        unit = WorkUnit(
            kind=WorkUnitKind.INSTALL_JNI_LIBS,
            key=work_unit_key(WorkUnitKind.INSTALL_JNI_LIBS, "project", "project"),
            variant_name="project",
            output_name="project",
            task_name=task_name_for(WorkUnitKind.INSTALL_JNI_LIBS, "project"),
        )

        edges = wirer.wire_jni_libs_install(unit, [first, second])

        assert edges.required_by == {"externalNativeBuildFree", "externalNativeBuildPaid"}
        assert edges.must_run_after == {"clean"}

    def test_wire_rejects_jni_libs_units(self, wirer, make_variant):
        variant = make_variant()
        unit = new_unit(WorkUnitKind.INSTALL_JNI_LIBS, "project", "project")

        with pytest.raises(ValueError):
            wirer.wire(unit, variant, variant.outputs[0])
