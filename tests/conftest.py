"""Core test fixtures for the crashmap project."""

import json
import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
import requests
from typer.testing import CliRunner

from crashmap.config.models import CrashmapConfig
from crashmap.delivery.client import UploadDeliveryClient
from crashmap.delivery.pool import UploadClientPool
from crashmap.models.variants import (
    HostContext,
    ManifestMergeStep,
    NativeBuildStep,
    OutputDescriptor,
    PackagingStep,
    VariantDescriptor,
)
from crashmap.release.metadata import ReleaseMetadataCollector


MERGED_MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android"
    package="{app_id}"
    android:versionCode="{version_code}"
    android:versionName="{version_name}">
    <application android:label="Example">
        <meta-data android:name="com.bugsnag.android.API_KEY" android:value="{api_key}" />
    </application>
</manifest>
"""


def make_response(status_code: int = 200, body: Any = None) -> requests.Response:
    """Build a real ``requests.Response`` with a JSON body."""
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode("utf-8") if body is not None else b""
    response.encoding = "utf-8"
    return response


class RecordingSession(requests.Session):
    """Session that records posts and answers from a scripted queue.

    Queue entries are responses or exceptions to raise; once the queue is
    empty every post answers 200.
    """

    def __init__(self, responses: list[Any] | None = None) -> None:
        super().__init__()
        self.calls: list[dict[str, Any]] = []
        self.responses = list(responses or [])

    def post(self, url, data=None, json=None, **kwargs):  # type: ignore[override]
        files = kwargs.get("files") or {}
        self.calls.append(
            {
                "url": url,
                "json": json,
                "data": data,
                "files": {name: part[0] for name, part in files.items()},
                "timeout": kwargs.get("timeout"),
            }
        )
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return make_response(200, {"status": "ok"})

    def calls_to(self, fragment: str) -> list[dict[str, Any]]:
        return [call for call in self.calls if fragment in call["url"]]


# ---- Test Isolation Fixtures ----


@pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Keep user config files and CRASHMAP_ variables out of every test."""
    for name in list(os.environ):
        if name.startswith("CRASHMAP_"):
            monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    yield workdir


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a Typer CLI test runner."""
    return CliRunner()


# ---- Domain Fixtures ----


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def host(project_dir: Path) -> HostContext:
    return HostContext(
        project_dir=project_dir,
        build_dir=project_dir / "build",
        host_version="8.5",
        clean_steps=("clean",),
    )


@pytest.fixture
def make_config() -> Callable[..., CrashmapConfig]:
    """Factory for configs with an API key and no retry delay."""

    def factory(**overrides: Any) -> CrashmapConfig:
        values: dict[str, Any] = {"api_key": "test-api-key", "retry_delay_ms": 0}
        values.update(overrides)
        return CrashmapConfig(**values)

    return factory


@pytest.fixture
def config(make_config: Callable[..., CrashmapConfig]) -> CrashmapConfig:
    return make_config()


@pytest.fixture
def metadata(config: CrashmapConfig) -> ReleaseMetadataCollector:
    """Metadata collector that never shells out."""
    outputs = {
        ("java", "-version"): 'openjdk version "17.0.9" 2023-10-17',
        ("git", "--version"): "git version 2.43.0",
        ("git", "rev-parse", "HEAD"): "0123456789abcdef",
        ("git", "config", "--get", "remote.origin.url"): "git@github.com:example/app.git",
    }
    return ReleaseMetadataCollector(
        config,
        "8.5",
        runner=lambda args, cwd: outputs.get(tuple(args)),
    )


@pytest.fixture
def recording_session() -> RecordingSession:
    return RecordingSession()


@pytest.fixture
def client_pool(recording_session: RecordingSession) -> Generator[UploadClientPool, None, None]:
    pool = UploadClientPool(
        client_factory=lambda category: UploadDeliveryClient(
            category, session=recording_session, initial_retry_delay=0
        )
    )
    yield pool
    pool.close()


def write_merged_manifest(
    path: Path,
    app_id: str = "com.example.app",
    version_code: int = 42,
    version_name: str = "1.2.3",
    api_key: str = "manifest-api-key",
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        MERGED_MANIFEST.format(
            app_id=app_id,
            version_code=version_code,
            version_name=version_name,
            api_key=api_key,
        ),
        encoding="utf-8",
    )
    return path


def write_shared_object(directory: Path, abi: str, name: str = "libapp.so") -> Path:
    path = directory / abi / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x7fELF" + abi.encode("utf-8"))
    return path


@pytest.fixture
def make_variant(project_dir: Path) -> Callable[..., VariantDescriptor]:
    """Factory for variant descriptors laid out below the project directory.

    ``outputs`` is a list of ``(name, abi)`` pairs. Minified variants get an
    existing mapping file, native variants get one native build step per
    variant whose object directory is ``native_dir`` when given.
    """

    def factory(
        name: str = "release",
        minify: bool = False,
        native: bool = False,
        outputs: list[tuple[str, str | None]] | None = None,
        native_dir: Path | None = None,
        with_manifest: bool = True,
        with_mapping: bool = True,
    ) -> VariantDescriptor:
        scope = name[:1].upper() + name[1:]
        mapping_file = project_dir / "build" / "outputs" / "mapping" / name / "mapping.txt"
        if minify and with_mapping:
            mapping_file.parent.mkdir(parents=True, exist_ok=True)
            mapping_file.write_text(f"com.example.{name}.A -> a:\n", encoding="utf-8")

        native_steps: tuple[NativeBuildStep, ...] = ()
        native_systems: tuple[Path, ...] = ()
        if native:
            native_systems = (project_dir / "CMakeLists.txt",)
            native_steps = (
                NativeBuildStep(
                    name=f"externalNativeBuild{scope}",
                    obj_dir=native_dir or project_dir / "build" / "obj" / name,
                ),
            )

        manifest_merge = None
        if with_manifest:
            manifest_merge = ManifestMergeStep(
                name=f"process{scope}Manifest",
                merged_manifest=project_dir / "build" / "manifests" / name / "AndroidManifest.xml",
            )

        output_specs = outputs or [(name, None)]
        return VariantDescriptor(
            name=name,
            app_id="com.example.app",
            version_code=42,
            version_name="1.2.3",
            minify_enabled=minify,
            native_build_systems=native_systems,
            manifest_merge=manifest_merge,
            outputs=tuple(
                OutputDescriptor(
                    name=output_name,
                    variant_name=name,
                    abi=abi,
                    packaging=PackagingStep(
                        name=f"package{output_name[:1].upper()}{output_name[1:]}",
                        mapping_file=mapping_file,
                    ),
                    native_builds=native_steps,
                )
                for output_name, abi in output_specs
            ),
        )

    return factory


# ---- Helper Fixtures ----


@pytest.fixture
def response_factory() -> Callable[..., requests.Response]:
    return make_response


@pytest.fixture
def session_factory() -> Callable[..., RecordingSession]:
    return RecordingSession


@pytest.fixture
def manifest_writer() -> Callable[..., Path]:
    return write_merged_manifest


@pytest.fixture
def shared_object_writer() -> Callable[..., Path]:
    return write_shared_object
