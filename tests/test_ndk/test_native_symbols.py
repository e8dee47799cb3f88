"""Tests for shared object discovery and library archive installation."""

import zipfile
from pathlib import Path

import pytest

from crashmap.core.errors import InputAbsentError
from crashmap.models.variants import NativeBuildStep
from crashmap.ndk.jni_libs import JniLibsInstaller, jni_libs_destination
from crashmap.ndk.symbols import find_shared_objects


class TestFindSharedObjects:
    def test_finds_per_abi_libraries(self, tmp_path, shared_object_writer):
        obj_dir = tmp_path / "obj"
        shared_object_writer(obj_dir, "arm64-v8a")
        shared_object_writer(obj_dir, "x86_64")
        # Not an ABI directory
        shared_object_writer(obj_dir, "intermediates")

        found = find_shared_objects([NativeBuildStep("externalNativeBuildRelease", obj_dir=obj_dir)])

        assert [(so.arch, so.name) for so in found] == [
            ("arm64-v8a", "libapp.so"),
            ("x86_64", "libapp.so"),
        ]

    def test_abi_filter(self, tmp_path, shared_object_writer):
        obj_dir = tmp_path / "obj"
        shared_object_writer(obj_dir, "arm64-v8a")
        shared_object_writer(obj_dir, "x86")

        found = find_shared_objects([NativeBuildStep("build", obj_dir=obj_dir)], abi="x86")

        assert [so.arch for so in found] == ["x86"]

    def test_object_directory_wins_over_stripped_libraries(self, tmp_path, shared_object_writer):
        obj_dir = tmp_path / "obj"
        so_dir = tmp_path / "lib"
        unstripped = shared_object_writer(obj_dir, "x86")
        shared_object_writer(so_dir, "x86")

        found = find_shared_objects([NativeBuildStep("build", obj_dir=obj_dir, so_dir=so_dir)])

        assert [so.path for so in found] == [unstripped]

    def test_missing_directories_are_skipped(self, tmp_path):
        step = NativeBuildStep("build", obj_dir=tmp_path / "never-built")

        assert find_shared_objects([step]) == []


def make_archive(path: Path, entries: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return path


class TestJniLibsInstaller:
    def test_extracts_jni_shared_objects(self, tmp_path, host):
        archive = make_archive(
            tmp_path / "native.aar",
            {
                "jni/arm64-v8a/libcrash.so": b"arm",
                "jni/x86/libcrash.so": b"x86",
                "jni/x86/readme.txt": b"ignored",
                "classes.jar": b"ignored",
            },
        )
        destination = jni_libs_destination(host)

        installed = JniLibsInstaller([archive], destination).install()

        assert sorted(p.relative_to(destination).as_posix() for p in installed) == [
            "arm64-v8a/libcrash.so",
            "x86/libcrash.so",
        ]
        assert (destination / "x86" / "libcrash.so").read_bytes() == b"x86"
        assert destination == host.build_dir / "intermediates" / "crashmap-libs"

    def test_rejects_path_traversal(self, tmp_path):
        archive = make_archive(tmp_path / "evil.zip", {"jni/../../escape.so": b"x"})
        destination = tmp_path / "out"

        installed = JniLibsInstaller([archive], destination).install()

        assert installed == []
        assert not (tmp_path / "escape.so").exists()

    @pytest.mark.parametrize("content", [None, b"not a zip"])
    def test_missing_or_invalid_archive(self, tmp_path, content):
        archive = tmp_path / "native.aar"
        if content is not None:
            archive.write_bytes(content)

        with pytest.raises(InputAbsentError) as exc_info:
            JniLibsInstaller([archive], tmp_path / "out").install()

        assert exc_info.value.kind == "installJniLibs"
