"""Build UUID stamping and manifest info records."""

from crashmap.manifest.info import (
    ManifestInfo,
    load_manifest_info,
    manifest_info_path,
    read_manifest_values,
    stamp_build_uuid,
    write_manifest_info,
)


__all__ = [
    "ManifestInfo",
    "load_manifest_info",
    "manifest_info_path",
    "read_manifest_values",
    "stamp_build_uuid",
    "write_manifest_info",
]
