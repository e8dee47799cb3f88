"""Variant feature evaluation.

Computes the feature set gating every later decision for one
(variant, output) pair. Evaluation is pure and must run per output: debug
exclusion depends on the output name while the remaining flags depend on the
variant.
"""

from crashmap.config.models import CrashmapConfig
from crashmap.models.variants import HostContext, OutputDescriptor, VariantDescriptor
from crashmap.models.work_units import FeatureSet


class VariantFilter:
    """Mutable context handed to the user's variant filter callback.

    The callback may call :meth:`set_enabled`; leaving it untouched keeps the
    variant enabled.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.variant_enabled: bool | None = None

    def set_enabled(self, enabled: bool) -> None:
        self.variant_enabled = enabled

    def __repr__(self) -> str:
        return f"VariantFilter(name={self.name!r}, variant_enabled={self.variant_enabled!r})"


def is_variant_enabled(variant_name: str, config: CrashmapConfig) -> bool:
    """Run the configured variant filter and return its verdict."""
    variant_filter = VariantFilter(variant_name)
    config.apply_variant_filter(variant_filter)
    if variant_filter.variant_enabled is None:
        return True
    return variant_filter.variant_enabled


def is_ndk_enabled(variant: VariantDescriptor, config: CrashmapConfig) -> bool:
    """Explicit user setting wins, otherwise follow the native build setup."""
    if config.upload_ndk_mappings is not None:
        return config.upload_ndk_mappings
    return variant.has_native_build_configured


def is_debug_excluded(output: OutputDescriptor, config: CrashmapConfig) -> bool:
    # Debug outputs are recognised by name suffix, not by the debuggable flag
    return output.name.lower().endswith("debug") and not config.upload_debug_build_mappings


def evaluate_features(
    variant: VariantDescriptor,
    output: OutputDescriptor,
    config: CrashmapConfig,
    host: HostContext,
) -> FeatureSet:
    """Compute the feature set for one (variant, output) pair."""
    return FeatureSet(
        minify_enabled=variant.minify_enabled or host.external_obfuscator_present,
        ndk_enabled=is_ndk_enabled(variant, config),
        is_debug_excluded=is_debug_excluded(output, config),
        user_enabled=is_variant_enabled(variant.name, config),
    )
