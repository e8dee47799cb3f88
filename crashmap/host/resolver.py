"""Resolve a YAML build description into host descriptors."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from crashmap.core.errors import ConfigError
from crashmap.host.engine import TaskEngine
from crashmap.host.models import BuildDescriptionConfig, OutputConfig, VariantConfig
from crashmap.models.variants import (
    HostContext,
    ManifestMergeStep,
    NativeBuildStep,
    OutputDescriptor,
    PackagingStep,
    VariantDescriptor,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedBuild:
    """Host context plus the variants it produced."""

    host: HostContext
    variants: tuple[VariantDescriptor, ...]

    def variant(self, name: str) -> VariantDescriptor:
        for variant in self.variants:
            if variant.name == name:
                return variant
        raise KeyError(f"No variant named '{name}'")

    def register_external_steps(self, engine: TaskEngine) -> None:
        """Register the host's own steps as external tasks of *engine*.

        The steps have already run by the time crashmap is invoked standalone,
        so they carry no action.
        """
        for name in self.host.clean_steps:
            engine.register(name, external=True)
        for variant in self.variants:
            if variant.manifest_merge is not None:
                engine.register(variant.manifest_merge.name, external=True)
            for output in variant.outputs:
                if output.packaging is not None:
                    engine.register(output.packaging.name, external=True)
                for step in output.native_builds:
                    engine.register(step.name, external=True)


class BuildDescriptionResolver:
    """Parse build descriptions into immutable variant descriptors.

    Relative paths are resolved against the project directory, which defaults
    to the directory holding the description file.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def resolve(self, description_path: Path) -> ResolvedBuild:
        """Load and resolve a build description.

        Raises:
            ConfigError: If the file cannot be read or fails validation
        """
        try:
            self.logger.debug("Parsing build description from %s", description_path)
            data = self._load_yaml(description_path)
            config = BuildDescriptionConfig.model_validate(data)
        except (FileNotFoundError, yaml.YAMLError, ValidationError) as e:
            msg = f"Failed to parse build description: {e}"
            self.logger.error(msg)
            raise ConfigError(msg) from e

        base_dir = description_path.resolve().parent
        return self.resolve_config(config, base_dir)

    def resolve_config(self, config: BuildDescriptionConfig, base_dir: Path) -> ResolvedBuild:
        project_dir = self._absolute(config.project_dir, base_dir) or base_dir
        host = HostContext(
            project_dir=project_dir,
            build_dir=self._absolute(config.build_dir, project_dir) or project_dir / "build",
            host_version=config.host_version,
            external_obfuscator_present=config.external_obfuscator,
            clean_steps=tuple(config.clean_steps),
        )
        variants = tuple(self._variant(v, project_dir) for v in config.variants)
        self.logger.info("Resolved %d variants", len(variants))
        return ResolvedBuild(host=host, variants=variants)

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Build description {path} must contain a mapping")
        return data

    @staticmethod
    def _absolute(path: Path | None, base: Path) -> Path | None:
        if path is None:
            return None
        path = path.expanduser()
        return path if path.is_absolute() else base / path

    def _variant(self, config: VariantConfig, project_dir: Path) -> VariantDescriptor:
        manifest_merge = None
        if config.manifest is not None:
            manifest_merge = ManifestMergeStep(
                name=config.manifest.task,
                merged_manifest=self._absolute(config.manifest.merged_manifest, project_dir),
            )

        outputs = config.outputs or [OutputConfig(name=config.name)]
        return VariantDescriptor(
            name=config.name,
            app_id=config.app_id,
            version_code=config.version_code,
            version_name=config.version_name,
            minify_enabled=config.minify,
            debuggable=config.debuggable,
            native_build_systems=tuple(
                p for p in (self._absolute(s, project_dir) for s in config.native_build_systems) if p
            ),
            manifest_merge=manifest_merge,
            outputs=tuple(self._output(o, config.name, project_dir) for o in outputs),
        )

    def _output(
        self, config: OutputConfig, variant_name: str, project_dir: Path
    ) -> OutputDescriptor:
        packaging = None
        if config.packaging is not None:
            packaging = PackagingStep(
                name=config.packaging.task,
                mapping_file=self._absolute(config.packaging.mapping_file, project_dir),
            )
        return OutputDescriptor(
            name=config.name,
            variant_name=variant_name,
            abi=config.abi,
            packaging=packaging,
            native_builds=tuple(
                NativeBuildStep(
                    name=step.task,
                    obj_dir=self._absolute(step.obj_dir, project_dir),
                    so_dir=self._absolute(step.so_dir, project_dir),
                )
                for step in config.native_builds
            ),
        )


def create_build_description_resolver() -> BuildDescriptionResolver:
    return BuildDescriptionResolver()
