"""Models package for crashmap."""

from crashmap.models.base import CrashmapBaseModel
from crashmap.models.variants import (
    HostContext,
    ManifestMergeStep,
    NativeBuildStep,
    OutputDescriptor,
    PackagingStep,
    VariantDescriptor,
)
from crashmap.models.work_units import (
    DependencyDescriptor,
    FeatureSet,
    WorkUnit,
    WorkUnitKind,
    WorkUnitState,
)


__all__ = [
    "CrashmapBaseModel",
    "DependencyDescriptor",
    "FeatureSet",
    "HostContext",
    "ManifestMergeStep",
    "NativeBuildStep",
    "OutputDescriptor",
    "PackagingStep",
    "VariantDescriptor",
    "WorkUnit",
    "WorkUnitKind",
    "WorkUnitState",
]
