"""Installation of prebuilt crash-reporter shared objects for native builds.

Native code that links against the crash reporter needs its shared objects
on disk before the native build steps run. They ship inside library archives
(``.aar``/``.zip``) under ``jni/<abi>/``; this module extracts them into the
build directory.
"""

import shutil
import zipfile
from pathlib import Path

from crashmap.core.errors import InputAbsentError
from crashmap.core.structlog_logger import get_struct_logger
from crashmap.models.variants import HostContext


logger = get_struct_logger(__name__)

JNI_PREFIX = "jni/"


def jni_libs_destination(host: HostContext) -> Path:
    return host.build_dir / "intermediates" / "crashmap-libs"


class JniLibsInstaller:
    """Extract shared objects from library archives into the build directory."""

    def __init__(self, archives: list[Path], destination: Path) -> None:
        self.archives = archives
        self.destination = destination

    def install(self) -> list[Path]:
        """Copy every ``jni/**.so`` entry of every archive into the destination.

        Returns:
            Installed file paths

        Raises:
            InputAbsentError: If a configured archive does not exist or is not a zip
        """
        installed: list[Path] = []
        self.destination.mkdir(parents=True, exist_ok=True)

        for archive in self.archives:
            if not archive.is_file() or not zipfile.is_zipfile(archive):
                raise InputAbsentError(
                    f"Shared object archive not found or invalid: {archive}",
                    kind="installJniLibs",
                    key=str(archive),
                )

            with zipfile.ZipFile(archive, "r") as zip_ref:
                for member in zip_ref.infolist():
                    if member.is_dir() or not member.filename.startswith(JNI_PREFIX):
                        continue
                    if not member.filename.endswith(".so"):
                        continue
                    relative = Path(member.filename[len(JNI_PREFIX) :])
                    if relative.is_absolute() or ".." in relative.parts:
                        logger.warning(
                            "archive_entry_rejected", archive=str(archive), entry=member.filename
                        )
                        continue
                    target = self.destination / relative
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zip_ref.open(member) as src, target.open("wb") as dst:
                        shutil.copyfileobj(src, dst)
                    installed.append(target)

            logger.debug("archive_extracted", archive=str(archive))

        logger.info("jni_libs_installed", count=len(installed), destination=str(self.destination))
        return installed
