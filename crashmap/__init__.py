"""crashmap - variant-aware build provenance uploader."""

from importlib.metadata import distribution

from .orchestrator import BuildPlan, BuildReport, PipelineOrchestrator


__version__ = distribution(__package__ or "crashmap").version

__all__ = [
    "BuildPlan",
    "BuildReport",
    "PipelineOrchestrator",
    "__version__",
]
