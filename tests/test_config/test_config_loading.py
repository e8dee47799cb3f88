"""Tests for configuration models and loading."""

from pathlib import Path

import pytest
import yaml

from crashmap.config.loader import config_search_paths, load_config
from crashmap.config.models import (
    DEFAULT_RELEASES_ENDPOINT,
    DEFAULT_UPLOAD_ENDPOINT,
    CrashmapConfig,
)
from crashmap.core.errors import ConfigError


class TestCrashmapConfig:
    def test_defaults(self):
        config = CrashmapConfig()

        assert config.enabled is True
        assert config.upload_ndk_mappings is None
        assert config.upload_debug_build_mappings is False
        assert config.fail_on_upload_error is True
        assert config.retry_count == 0
        assert config.request_timeout_ms == 60000
        assert config.resolve_endpoint("proguard") == DEFAULT_UPLOAD_ENDPOINT
        assert config.resolve_endpoint("ndk") == DEFAULT_UPLOAD_ENDPOINT
        assert config.resolve_endpoint("releases") == DEFAULT_RELEASES_ENDPOINT

    def test_endpoint_overrides(self):
        config = CrashmapConfig(
            endpoint="https://upload.internal",
            endpoints={"releases": "https://releases.internal"},
        )

        assert config.resolve_endpoint("ndk") == "https://upload.internal"
        assert config.resolve_endpoint("releases") == "https://releases.internal"

    def test_unknown_endpoint_category(self):
        with pytest.raises(ValueError, match="Unknown endpoint categories"):
            CrashmapConfig(endpoints={"symbols": "https://example.com"})

    def test_negative_retry_count_rejected(self):
        with pytest.raises(ValueError):
            CrashmapConfig(retry_count=-1)

    def test_log_level_normalized(self):
        assert CrashmapConfig(log_level=" debug ").log_level == "DEBUG"

    def test_environment_overrides_constructor(self, monkeypatch):
        monkeypatch.setenv("CRASHMAP_RETRY_COUNT", "4")
        monkeypatch.setenv("CRASHMAP_SOURCE_CONTROL__REVISION", "cafebabe")

        config = CrashmapConfig(retry_count=1)

        assert config.retry_count == 4
        assert config.source_control.revision == "cafebabe"


class TestLoadConfig:
    def test_defaults_without_file(self):
        config = load_config()

        assert config.api_key is None

    def test_explicit_file(self, tmp_path: Path):
        path = tmp_path / "crashmap.yaml"
        path.write_text(
            yaml.safe_dump({"api_key": "from-file", "retry_count": 2, "exclude_variants": ["*Debug"]}),
            encoding="utf-8",
        )

        config = load_config(cli_config_path=path)

        assert config.api_key == "from-file"
        assert config.retry_count == 2
        assert config.exclude_variants == ["*Debug"]

    def test_current_directory_file_is_found(self, isolated_environment: Path):
        (isolated_environment / "crashmap.yaml").write_text("api_key: cwd-key\n", encoding="utf-8")

        assert load_config().api_key == "cwd-key"

    def test_environment_beats_file(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "crashmap.yaml"
        path.write_text("api_key: from-file\n", encoding="utf-8")
        monkeypatch.setenv("CRASHMAP_API_KEY", "from-env")

        assert load_config(cli_config_path=path).api_key == "from-env"

    def test_overrides_beat_file(self, tmp_path: Path):
        path = tmp_path / "crashmap.yaml"
        path.write_text("report_builds: true\n", encoding="utf-8")

        assert load_config(cli_config_path=path, report_builds=False).report_builds is False

    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(cli_config_path=tmp_path / "nope.yaml")

    def test_invalid_file(self, tmp_path: Path):
        path = tmp_path / "crashmap.yaml"
        path.write_text("retry_count: many\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(cli_config_path=path)

    def test_search_paths_order(self, tmp_path: Path):
        explicit = tmp_path / "explicit.yaml"

        paths = config_search_paths(explicit)

        assert paths[0] == explicit.resolve()
        assert paths[1] == Path.cwd() / "crashmap.yaml"
        assert paths[-2:] == [
            tmp_path / "xdg" / "crashmap" / "config.yaml",
            tmp_path / "xdg" / "crashmap" / "config.yml",
        ]
