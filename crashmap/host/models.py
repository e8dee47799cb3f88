"""Build description models parsed from YAML."""

from pathlib import Path

from pydantic import Field, model_validator

from crashmap.models.base import CrashmapBaseModel


class NativeBuildConfig(CrashmapBaseModel):
    task: str
    obj_dir: Path | None = None
    so_dir: Path | None = None


class PackagingConfig(CrashmapBaseModel):
    task: str
    mapping_file: Path | None = None


class ManifestMergeConfig(CrashmapBaseModel):
    task: str
    merged_manifest: Path | None = None


class OutputConfig(CrashmapBaseModel):
    name: str
    abi: str | None = None
    packaging: PackagingConfig | None = None
    native_builds: list[NativeBuildConfig] = Field(default_factory=list)


class VariantConfig(CrashmapBaseModel):
    name: str
    app_id: str
    version_code: int = Field(ge=0)
    version_name: str
    minify: bool = False
    debuggable: bool = False
    native_build_systems: list[Path] = Field(default_factory=list)
    manifest: ManifestMergeConfig | None = None
    outputs: list[OutputConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_outputs(self) -> "VariantConfig":
        names = [output.name for output in self.outputs]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate output names in variant '{self.name}': {duplicates}")
        return self


class BuildDescriptionConfig(CrashmapBaseModel):
    """Top-level build description document."""

    project_dir: Path | None = None
    build_dir: Path = Path("build")
    host_version: str = "unknown"
    external_obfuscator: bool = False
    clean_steps: list[str] = Field(default_factory=list)
    variants: list[VariantConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_variants(self) -> "BuildDescriptionConfig":
        names = [variant.name for variant in self.variants]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate variant names: {duplicates}")
        return self

    @model_validator(mode="after")
    def validate_outputs_unique_across_variants(self) -> "BuildDescriptionConfig":
        # Variants without outputs get one output named after the variant
        owners: dict[str, str] = {}
        for variant in self.variants:
            for name in [output.name for output in variant.outputs] or [variant.name]:
                owner = owners.setdefault(name, variant.name)
                if owner != variant.name:
                    raise ValueError(
                        f"Output name '{name}' is used by variants '{owner}' "
                        f"and '{variant.name}'"
                    )
        return self
