"""Artifact requirement planning.

Maps a feature set to the ordered list of work unit kinds one
(variant, output) pair needs. An empty list short-circuits all downstream
work for the pair.
"""

from crashmap.config.models import CrashmapConfig
from crashmap.models.work_units import KIND_ORDER, FeatureSet, WorkUnitKind


def plan_requirements(
    features: FeatureSet, config: CrashmapConfig
) -> list[WorkUnitKind]:
    """Return the required work unit kinds for one pair, in execution order."""
    if not features.user_enabled or features.is_debug_excluded:
        return []

    if not features.minify_enabled and not features.ndk_enabled:
        # Nothing to upload; the build UUID is still stamped when builds are reported
        return [WorkUnitKind.MANIFEST] if config.report_builds else []

    required: set[WorkUnitKind] = set()
    if features.minify_enabled and config.upload_jvm_mappings:
        required.add(WorkUnitKind.JVM_MAPPING)
    if features.ndk_enabled:
        required.add(WorkUnitKind.NATIVE_SYMBOLS)
    if config.report_builds:
        required.add(WorkUnitKind.RELEASE)

    # Every payload embeds the build UUID recorded by the manifest unit
    if required:
        required.add(WorkUnitKind.MANIFEST)

    return [kind for kind in KIND_ORDER if kind in required]
