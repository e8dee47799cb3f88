"""Build UUID stamping and manifest info records.

The manifest unit of a variant owns the build UUID. It stamps the UUID into
the merged application manifest (when the merge step produced one) and writes
a manifest info record that every upload of the variant reads.
"""

import json
import xml.etree.ElementTree as ET
from pathlib import Path

from pydantic import Field

from crashmap.config.models import CrashmapConfig
from crashmap.core.errors import PlanningError
from crashmap.core.structlog_logger import get_struct_logger
from crashmap.models.base import CrashmapBaseModel
from crashmap.models.variants import HostContext, VariantDescriptor


logger = get_struct_logger(__name__)

ANDROID_NS = "http://schemas.android.com/apk/res/android"
API_KEY_META_DATA = "com.bugsnag.android.API_KEY"
BUILD_UUID_META_DATA = "com.bugsnag.android.BUILD_UUID"

ET.register_namespace("android", ANDROID_NS)


def _android(attr: str) -> str:
    return f"{{{ANDROID_NS}}}{attr}"


class ManifestInfo(CrashmapBaseModel):
    """Identity of one variant's build, shared by all of its uploads."""

    api_key: str = Field(alias="apiKey")
    app_id: str = Field(alias="appId")
    version_code: str = Field(alias="versionCode")
    version_name: str = Field(alias="versionName")
    build_uuid: str = Field(alias="buildUUID")


def manifest_info_path(host: HostContext, variant_name: str) -> Path:
    scope = variant_name[:1].upper() + variant_name[1:]
    return host.intermediates_dir / f"manifestInfoFor{scope}.json"


def read_manifest_values(manifest_path: Path) -> dict[str, str]:
    """Read app identity values present in a merged manifest.

    Returns only the keys that were found: ``appId``, ``versionCode``,
    ``versionName`` and ``apiKey``.
    """
    root = ET.parse(manifest_path).getroot()
    values: dict[str, str] = {}
    if root.get("package"):
        values["appId"] = root.get("package", "")
    if root.get(_android("versionCode")):
        values["versionCode"] = root.get(_android("versionCode"), "")
    if root.get(_android("versionName")):
        values["versionName"] = root.get(_android("versionName"), "")

    application = root.find("application")
    if application is not None:
        for meta_data in application.findall("meta-data"):
            if meta_data.get(_android("name")) == API_KEY_META_DATA:
                values["apiKey"] = meta_data.get(_android("value"), "")
    return values


def stamp_build_uuid(manifest_path: Path, build_uuid: str) -> None:
    """Insert or replace the build UUID meta-data element of the merged manifest."""
    tree = ET.parse(manifest_path)
    root = tree.getroot()
    application = root.find("application")
    if application is None:
        application = ET.SubElement(root, "application")

    for meta_data in application.findall("meta-data"):
        if meta_data.get(_android("name")) == BUILD_UUID_META_DATA:
            meta_data.set(_android("value"), build_uuid)
            break
    else:
        ET.SubElement(
            application,
            "meta-data",
            {_android("name"): BUILD_UUID_META_DATA, _android("value"): build_uuid},
        )
    tree.write(manifest_path, encoding="utf-8", xml_declaration=True)


def write_manifest_info(
    variant: VariantDescriptor,
    build_uuid: str,
    config: CrashmapConfig,
    host: HostContext,
) -> ManifestInfo:
    """Resolve the variant's identity, stamp the manifest and record it.

    Values found in the merged manifest win over the variant descriptor; the
    API key falls back to configuration.

    Raises:
        PlanningError: If no API key is available from either source
    """
    values: dict[str, str] = {}
    merged = variant.manifest_merge.merged_manifest if variant.manifest_merge else None
    if merged is not None and merged.is_file():
        values = read_manifest_values(merged)
        stamp_build_uuid(merged, build_uuid)
        logger.debug("build_uuid_stamped", variant=variant.name, manifest=str(merged))
    elif merged is not None:
        logger.warning("merged_manifest_missing", variant=variant.name, manifest=str(merged))

    api_key = values.get("apiKey") or config.api_key
    if not api_key:
        raise PlanningError(
            f"No API key configured for variant '{variant.name}'", variant_name=variant.name
        )

    info = ManifestInfo(
        apiKey=api_key,
        appId=values.get("appId", variant.app_id),
        versionCode=values.get("versionCode", str(variant.version_code)),
        versionName=values.get("versionName", variant.version_name),
        buildUUID=build_uuid,
    )

    path = manifest_info_path(host, variant.name)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(info.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
    logger.info("manifest_info_written", variant=variant.name, path=str(path))
    return info


def load_manifest_info(path: Path) -> ManifestInfo:
    return ManifestInfo.model_validate_json(path.read_text(encoding="utf-8"))
