"""Tests for release metadata collection."""

from unittest.mock import Mock

import pytest

from crashmap.config.models import SourceControlConfig
from crashmap.release.metadata import (
    UNKNOWN,
    ReleaseMetadataCollector,
    infer_provider,
    parse_git_version,
    parse_java_version,
)


class TestParsers:
    def test_java_version(self):
        assert parse_java_version('java version "1.8.0_392"\nJava(TM) SE Runtime') == "1.8.0_392"
        assert parse_java_version("garbage") is None
        assert parse_java_version(None) is None

    def test_git_version(self):
        assert parse_git_version("git version 2.43.0") == "2.43.0"
        assert parse_git_version("") is None

    @pytest.mark.parametrize(
        ("repository", "provider"),
        [
            ("https://github.com/example/app.git", "github"),
            ("git@gitlab.com:example/app.git", "gitlab"),
            ("https://bitbucket.org/example/app", "bitbucket"),
            ("https://git.example.com/app", None),
            (None, None),
        ],
    )
    def test_infer_provider(self, repository, provider):
        assert infer_provider(repository) == provider


class TestReleaseMetadataCollector:
    def test_unknown_when_tools_are_missing(self, config):
        collector = ReleaseMetadataCollector(config, "8.5", runner=lambda args, cwd: None)

        metadata = collector.environment_metadata()

        assert metadata["java_version"] == UNKNOWN
        assert metadata["git_version"] == UNKNOWN
        assert metadata["gradle_version"] == "8.5"
        assert collector.source_control() == {}

    def test_user_metadata_is_merged(self, make_config):
        config = make_config(metadata={"ci": "true", "os_name": "custom"})
        collector = ReleaseMetadataCollector(config, "8.5", runner=lambda args, cwd: None)

        metadata = collector.environment_metadata()

        assert metadata["ci"] == "true"
        assert metadata["os_name"] == "custom"

    def test_environment_collected_once(self, config):
        runner = Mock(return_value=None)
        collector = ReleaseMetadataCollector(config, "8.5", runner=runner)

        collector.environment_metadata()
        collector.environment_metadata()

        assert runner.call_count == 2  # java and git, once each

    def test_configured_source_control_wins(self, make_config, project_dir):
        config = make_config(
            source_control=SourceControlConfig(
                repository="https://gitlab.com/example/app", revision="feedface"
            )
        )
        runner = Mock(return_value="from-git")
        collector = ReleaseMetadataCollector(config, "8.5", project_dir=project_dir, runner=runner)

        assert collector.source_control() == {
            "revision": "feedface",
            "repository": "https://gitlab.com/example/app",
            "provider": "gitlab",
        }
        runner.assert_not_called()

    def test_builder_name(self, make_config):
        collector = ReleaseMetadataCollector(make_config(builder_name="ci-bot"), "8.5")

        assert collector.builder_name() == "ci-bot"
