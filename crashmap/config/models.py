"""Resolved configuration models consumed by the crashmap pipeline."""

import fnmatch
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


if TYPE_CHECKING:
    from crashmap.planning.features import VariantFilter


DEFAULT_UPLOAD_ENDPOINT = "https://upload.bugsnag.com"
DEFAULT_RELEASES_ENDPOINT = "https://build.bugsnag.com"

UPLOAD_CATEGORIES = ("proguard", "ndk", "releases")


class SourceControlConfig(BaseModel):
    """Source control details reported with release/build metadata."""

    provider: str | None = None
    repository: str | None = None
    revision: str | None = None


class CrashmapConfig(BaseSettings):
    """Configuration with automatic environment variable support.

    Precedence order (highest to lowest):
    1. Environment variables (``CRASHMAP_`` prefix, ``__`` for nested fields)
    2. Constructor arguments (file data)
    3. .env file
    4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="CRASHMAP_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Environment variables override configuration file values."""
        return (
            env_settings,
            init_settings,
            dotenv_settings,
            file_secret_settings,
        )

    enabled: bool = True
    api_key: str | None = None

    # Which artifacts are delivered
    upload_jvm_mappings: bool = True
    upload_ndk_mappings: bool | None = Field(
        default=None,
        description="Force native symbol upload on/off; unset follows the variant's native build setup",
    )
    upload_debug_build_mappings: bool = False
    report_builds: bool = True

    # Delivery policy
    fail_on_upload_error: bool = True
    retry_count: int = Field(default=0, ge=0)
    request_timeout_ms: int = Field(default=60000, gt=0)
    retry_delay_ms: int = Field(default=1000, ge=0)
    endpoint: str = DEFAULT_UPLOAD_ENDPOINT
    releases_endpoint: str = DEFAULT_RELEASES_ENDPOINT
    endpoints: dict[str, str] = Field(
        default_factory=dict,
        description="Per-category endpoint overrides (proguard, ndk, releases)",
    )

    # Release reporting
    builder_name: str | None = None
    source_control: SourceControlConfig = Field(default_factory=SourceControlConfig)
    metadata: dict[str, str] = Field(default_factory=dict)

    # Variant selection
    include_variants: list[str] = Field(default_factory=list)
    exclude_variants: list[str] = Field(default_factory=list)
    variant_filter: Callable[[Any], None] | None = Field(
        default=None, exclude=True
    )

    project_root: Path | None = None
    shared_object_archives: list[Path] = Field(default_factory=list)

    log_level: str = "WARNING"

    @field_validator("endpoints")
    @classmethod
    def validate_endpoint_categories(cls, v: dict[str, str]) -> dict[str, str]:
        unknown = sorted(set(v) - set(UPLOAD_CATEGORIES))
        if unknown:
            raise ValueError(
                f"Unknown endpoint categories {unknown}; expected one of {list(UPLOAD_CATEGORIES)}"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        upper_v = v.strip().upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return upper_v

    def resolve_endpoint(self, category: str) -> str:
        """Endpoint for an upload category, honouring per-category overrides."""
        if category in self.endpoints:
            return self.endpoints[category]
        if category == "releases":
            return self.releases_endpoint
        return self.endpoint

    def apply_variant_filter(self, variant_filter: "VariantFilter") -> None:
        """Run the user filter callback, or the include/exclude globs, on *variant_filter*."""
        if self.variant_filter is not None:
            self.variant_filter(variant_filter)
            return

        name = variant_filter.name
        if self.include_variants and not any(
            fnmatch.fnmatchcase(name, pattern) for pattern in self.include_variants
        ):
            variant_filter.set_enabled(False)
        elif any(fnmatch.fnmatchcase(name, pattern) for pattern in self.exclude_variants):
            variant_filter.set_enabled(False)
