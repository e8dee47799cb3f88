"""Native shared object discovery."""

from dataclasses import dataclass
from pathlib import Path

from crashmap.core.structlog_logger import get_struct_logger
from crashmap.models.variants import NativeBuildStep


logger = get_struct_logger(__name__)

KNOWN_ABIS = frozenset({"armeabi", "armeabi-v7a", "arm64-v8a", "x86", "x86_64", "mips", "mips64"})


@dataclass(frozen=True)
class SharedObject:
    """One shared library built for one ABI."""

    arch: str
    path: Path

    @property
    def name(self) -> str:
        return self.path.name


def find_shared_objects(
    native_builds: tuple[NativeBuildStep, ...] | list[NativeBuildStep],
    abi: str | None = None,
) -> list[SharedObject]:
    """Find shared objects under the output directories of native build steps.

    Libraries are expected in ``<dir>/<abi>/<lib>.so``. When the same library
    exists in several directories the first one wins, so object directories
    (unstripped) take precedence over stripped shared object directories.
    Directories of steps that never ran are skipped.

    Args:
        native_builds: Native build steps of one output
        abi: Restrict results to this ABI (ABI split outputs)

    Returns:
        Shared objects sorted by arch then name
    """
    found: dict[tuple[str, str], SharedObject] = {}
    for step in native_builds:
        for directory in step.search_directories():
            if not directory.is_dir():
                logger.debug("native_directory_missing", step=step.name, directory=str(directory))
                continue
            for path in sorted(directory.rglob("*.so")):
                arch = path.parent.name
                if arch not in KNOWN_ABIS:
                    continue
                if abi is not None and arch != abi:
                    continue
                found.setdefault((arch, path.name), SharedObject(arch=arch, path=path))

    return sorted(found.values(), key=lambda so: (so.arch, so.name))
