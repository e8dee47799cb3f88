"""
Configuration loading for crashmap.

Configuration is resolved from multiple sources:
1. Environment variables (highest precedence)
2. Command-line provided config file
3. Config file in current directory
4. User's XDG config directory
5. Default values (lowest precedence)
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from crashmap.config.models import CrashmapConfig
from crashmap.core.errors import ConfigError


logger = logging.getLogger(__name__)

ENV_PREFIX = "CRASHMAP_"


def config_search_paths(cli_config_path: str | Path | None = None) -> list[Path]:
    """Generate a list of config paths to search in order of precedence."""
    config_paths = []

    if cli_config_path:
        config_paths.append(Path(cli_config_path).expanduser().resolve())

    config_paths.extend([Path.cwd() / "crashmap.yaml", Path.cwd() / ".crashmap.yml"])

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    config_root = (
        Path(xdg_config_home) if xdg_config_home else Path.home() / ".config"
    ) / "crashmap"
    config_paths.extend([config_root / "config.yaml", config_root / "config.yml"])

    return config_paths


def _read_yaml(path: Path) -> dict[str, Any]:
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")
    return data


def load_config(
    cli_config_path: str | Path | None = None, **overrides: Any
) -> CrashmapConfig:
    """Load the resolved configuration.

    The first existing file among the search paths is used. An explicitly
    requested config file that does not exist is an error.

    Args:
        cli_config_path: Optional config file path provided via CLI
        **overrides: Values taking precedence over the file (not over env vars)

    Raises:
        ConfigError: If the file cannot be parsed or fails validation
    """
    if cli_config_path and not Path(cli_config_path).expanduser().exists():
        raise ConfigError(f"Configuration file not found: {cli_config_path}")

    data: dict[str, Any] = {}
    found_path: Path | None = None
    for path in config_search_paths(cli_config_path):
        if path.is_file():
            found_path = path
            break

    try:
        if found_path is not None:
            logger.debug("Loading configuration from %s", found_path)
            data = _read_yaml(found_path)
        else:
            logger.debug("No configuration file found, using defaults")

        data.update(overrides)
        config = CrashmapConfig(**data)
    except (yaml.YAMLError, ValidationError) as e:
        source = found_path or "overrides"
        raise ConfigError(f"Invalid configuration in {source}: {e}") from e

    if logger.isEnabledFor(logging.DEBUG):
        env_vars = sorted(k for k in os.environ if k.startswith(ENV_PREFIX))
        if env_vars:
            logger.debug("Environment overrides present: %s", ", ".join(env_vars))

    return config
