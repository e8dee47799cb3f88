"""Tests for YAML build description resolution."""

from pathlib import Path

import pytest
import yaml

from crashmap.core.errors import ConfigError
from crashmap.host.engine import TaskEngine
from crashmap.host.resolver import create_build_description_resolver


BUILD_DESCRIPTION = {
    "build_dir": "out",
    "host_version": "8.5",
    "external_obfuscator": False,
    "clean_steps": ["clean"],
    "variants": [
        {
            "name": "release",
            "app_id": "com.example.app",
            "version_code": 42,
            "version_name": "1.2.3",
            "minify": True,
            "native_build_systems": ["src/main/cpp/CMakeLists.txt"],
            "manifest": {
                "task": "processReleaseManifest",
                "merged_manifest": "out/manifests/release/AndroidManifest.xml",
            },
            "outputs": [
                {
                    "name": "arm64-v8aRelease",
                    "abi": "arm64-v8a",
                    "packaging": {
                        "task": "packageArm64-v8aRelease",
                        "mapping_file": "out/mapping/release/mapping.txt",
                    },
                    "native_builds": [
                        {"task": "externalNativeBuildRelease", "obj_dir": "out/obj"}
                    ],
                },
                {
                    "name": "x86Release",
                    "abi": "x86",
                    "packaging": {"task": "packageX86Release"},
                    "native_builds": [
                        {"task": "externalNativeBuildRelease", "obj_dir": "out/obj"}
                    ],
                },
            ],
        },
        {
            "name": "debug",
            "app_id": "com.example.app.debug",
            "version_code": 1,
            "version_name": "1.2.3-debug",
            "debuggable": True,
        },
    ],
}


def write_description(path: Path, data: object) -> Path:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestBuildDescriptionResolver:
    def setup_method(self):
        self.resolver = create_build_description_resolver()

    def test_resolves_host_and_variants(self, tmp_path):
        path = write_description(tmp_path / "build.yaml", BUILD_DESCRIPTION)

        resolved = self.resolver.resolve(path)

        assert resolved.host.project_dir == tmp_path.resolve()
        assert resolved.host.build_dir == tmp_path.resolve() / "out"
        assert resolved.host.clean_steps == ("clean",)
        assert [v.name for v in resolved.variants] == ["release", "debug"]

        release = resolved.variant("release")
        assert release.minify_enabled
        assert release.has_native_build_configured
        assert release.manifest_merge.merged_manifest == (
            tmp_path.resolve() / "out/manifests/release/AndroidManifest.xml"
        )
        assert [o.abi for o in release.outputs] == ["arm64-v8a", "x86"]
        assert release.outputs[1].packaging.mapping_file is None
        assert [s.name for s in release.native_builds()] == ["externalNativeBuildRelease"]

    def test_variant_without_outputs_gets_one_named_after_it(self, tmp_path):
        path = write_description(tmp_path / "build.yaml", BUILD_DESCRIPTION)

        debug = self.resolver.resolve(path).variant("debug")

        assert [o.name for o in debug.outputs] == ["debug"]
        assert debug.outputs[0].variant_name == "debug"

    def test_register_external_steps(self, tmp_path):
        path = write_description(tmp_path / "build.yaml", BUILD_DESCRIPTION)
        engine = TaskEngine()

        self.resolver.resolve(path).register_external_steps(engine)

        assert set(engine.tasks) == {
            "clean",
            "processReleaseManifest",
            "packageArm64-v8aRelease",
            "packageX86Release",
            "externalNativeBuildRelease",
        }
        assert all(task.external for task in engine.tasks.values())

    def test_unknown_key_is_rejected(self, tmp_path):
        data = {**BUILD_DESCRIPTION, "variantz": []}
        path = write_description(tmp_path / "build.yaml", data)

        with pytest.raises(ConfigError):
            self.resolver.resolve(path)

    def test_duplicate_variants_are_rejected(self, tmp_path):
        variant = BUILD_DESCRIPTION["variants"][1]
        path = write_description(tmp_path / "build.yaml", {"variants": [variant, variant]})

        with pytest.raises(ConfigError, match="Duplicate variant"):
            self.resolver.resolve(path)

    def test_output_name_shared_between_variants_is_rejected(self, tmp_path):
        release = BUILD_DESCRIPTION["variants"][0]
        staging = {**release, "name": "staging"}
        path = write_description(tmp_path / "build.yaml", {"variants": [release, staging]})

        with pytest.raises(ConfigError, match="'arm64-v8aRelease' is used by variants 'release' and 'staging'"):
            self.resolver.resolve(path)

    def test_default_output_name_clashing_with_declared_output(self, tmp_path):
        debug = BUILD_DESCRIPTION["variants"][1]
        other = {**debug, "name": "other", "outputs": [{"name": "debug"}]}
        path = write_description(tmp_path / "build.yaml", {"variants": [debug, other]})

        with pytest.raises(ConfigError, match="'debug' is used by variants 'debug' and 'other'"):
            self.resolver.resolve(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            self.resolver.resolve(tmp_path / "missing.yaml")

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "build.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            self.resolver.resolve(path)
