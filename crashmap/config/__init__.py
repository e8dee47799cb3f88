"""Configuration for crashmap."""

from crashmap.config.loader import config_search_paths, load_config
from crashmap.config.models import (
    DEFAULT_RELEASES_ENDPOINT,
    DEFAULT_UPLOAD_ENDPOINT,
    CrashmapConfig,
    SourceControlConfig,
)


__all__ = [
    "DEFAULT_RELEASES_ENDPOINT",
    "DEFAULT_UPLOAD_ENDPOINT",
    "CrashmapConfig",
    "SourceControlConfig",
    "config_search_paths",
    "load_config",
]
