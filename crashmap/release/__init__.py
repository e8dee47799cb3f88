"""Release/build report metadata."""

from crashmap.release.metadata import (
    ReleaseMetadataCollector,
    infer_provider,
    parse_git_version,
    parse_java_version,
    run_command,
)


__all__ = [
    "ReleaseMetadataCollector",
    "infer_provider",
    "parse_git_version",
    "parse_java_version",
    "run_command",
]
