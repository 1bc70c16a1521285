"""Configuration loading."""

import os
from pathlib import Path
from typing import Optional

import yaml

from .config_models import RealtyConfig

CONFIG_ENV_VAR = "REALTY_CONFIG"


def find_config() -> Optional[Path]:
    """Find config file: $REALTY_CONFIG, then standard locations."""
    override = os.getenv(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    locations = [
        Path.cwd() / "config.yaml",
        Path.home() / ".realty" / "config.yaml",
    ]
    for loc in locations:
        if loc.exists():
            return loc
    return None


def load_config_model(config_path: Optional[Path] = None, overrides: Optional[dict] = None) -> RealtyConfig:
    """Load configuration as Pydantic model with validation.

    Raises:
        ValueError: unreadable YAML or a config that fails validation
    """
    base_config = {}

    path = config_path or find_config()
    if path and path.exists():
        try:
            with open(path) as f:
                base_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}")

    if overrides:
        base_config = _deep_merge(base_config, overrides)

    try:
        return RealtyConfig.from_dict(base_config)
    except Exception as e:
        raise ValueError(f"Config validation failed: {e}")


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
