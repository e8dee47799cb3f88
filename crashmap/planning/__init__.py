"""Variant evaluation, requirement planning, deduplication and wiring."""

from crashmap.planning.features import (
    VariantFilter,
    evaluate_features,
    is_debug_excluded,
    is_ndk_enabled,
    is_variant_enabled,
)
from crashmap.planning.planner import plan_requirements
from crashmap.planning.registry import WorkUnitRegistry
from crashmap.planning.wiring import DependencyWirer


__all__ = [
    "DependencyWirer",
    "VariantFilter",
    "WorkUnitRegistry",
    "evaluate_features",
    "is_debug_excluded",
    "is_ndk_enabled",
    "is_variant_enabled",
    "plan_requirements",
]
