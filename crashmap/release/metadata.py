"""Build environment and source control metadata for release reports."""

import getpass
import platform
import re
import subprocess
import threading
from collections.abc import Callable
from pathlib import Path

from crashmap.config.models import CrashmapConfig
from crashmap.core.structlog_logger import get_struct_logger


logger = get_struct_logger(__name__)

UNKNOWN = "unknown"

# Runs a command and returns its combined output, or None when it cannot run
CommandRunner = Callable[[list[str], Path | None], str | None]

PROVIDER_HOSTS = {
    "github.com": "github",
    "gitlab.com": "gitlab",
    "bitbucket.org": "bitbucket",
}


def run_command(args: list[str], cwd: Path | None = None) -> str | None:
    try:
        completed = subprocess.run(
            args,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=10,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("command_unavailable", command=args[0], error=str(e))
        return None
    # java -version reports on stderr
    return (completed.stdout or completed.stderr).strip()


def parse_java_version(output: str | None) -> str | None:
    if not output:
        return None
    match = re.search(r'version "([^"]+)"', output)
    return match.group(1) if match else None


def parse_git_version(output: str | None) -> str | None:
    if not output:
        return None
    match = re.search(r"git version (\S+)", output)
    return match.group(1) if match else None


def infer_provider(repository: str | None) -> str | None:
    """Guess the source control provider from a repository URL."""
    if not repository:
        return None
    for host, provider in PROVIDER_HOSTS.items():
        if host in repository:
            return provider
    return None


class ReleaseMetadataCollector:
    """Collects environment and source control facts once per build invocation."""

    def __init__(
        self,
        config: CrashmapConfig,
        host_version: str,
        project_dir: Path | None = None,
        runner: CommandRunner = run_command,
    ) -> None:
        self.config = config
        self.host_version = host_version
        self.project_dir = project_dir
        self.runner = runner
        self._lock = threading.Lock()
        self._metadata: dict[str, str] | None = None
        self._source_control: dict[str, str] | None = None

    def environment_metadata(self) -> dict[str, str]:
        """OS, runtime and tool versions merged with user supplied metadata."""
        with self._lock:
            if self._metadata is None:
                java = parse_java_version(self.runner(["java", "-version"], None))
                git = parse_git_version(self.runner(["git", "--version"], None))
                metadata = {
                    "os_name": platform.system() or UNKNOWN,
                    "os_arch": platform.machine() or UNKNOWN,
                    "os_version": platform.release() or UNKNOWN,
                    "java_version": java or UNKNOWN,
                    "gradle_version": self.host_version,
                    "git_version": git or UNKNOWN,
                }
                metadata.update(self.config.metadata)
                self._metadata = metadata
            return dict(self._metadata)

    def source_control(self) -> dict[str, str]:
        """Revision, repository and provider; configuration wins over git."""
        with self._lock:
            if self._source_control is None:
                configured = self.config.source_control
                revision = configured.revision or self.runner(
                    ["git", "rev-parse", "HEAD"], self.project_dir
                )
                repository = configured.repository or self.runner(
                    ["git", "config", "--get", "remote.origin.url"], self.project_dir
                )
                provider = configured.provider or infer_provider(repository)
                source_control = {
                    "revision": revision,
                    "repository": repository,
                    "provider": provider,
                }
                self._source_control = {k: v for k, v in source_control.items() if v}
            return dict(self._source_control)

    def builder_name(self) -> str:
        if self.config.builder_name:
            return self.config.builder_name
        try:
            return getpass.getuser()
        except (KeyError, OSError):
            return UNKNOWN
