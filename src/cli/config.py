"""Configuration loading and management."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from .config_models import FactFusionConfig


def find_config() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / "config.yaml",
        Path.home() / ".factfusion" / "config.yaml",
    ]
    for loc in locations:
        if loc.exists():
            return loc
    return None


def load_config_model(config_path: Optional[Path] = None) -> FactFusionConfig:
    """Load configuration as Pydantic model with validation.

    Raises:
        ValueError: unreadable YAML or invalid values.
    """
    base_config = {}

    path = config_path or find_config()
    if path and path.exists():
        try:
            with open(path) as f:
                base_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}")
        if not isinstance(base_config, dict):
            raise ValueError(f"Config file {path} must contain a mapping")

    try:
        return FactFusionConfig.from_dict(base_config)
    except ValidationError as e:
        raise ValueError(f"Config validation failed: {e}")


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load configuration as a plain dict."""
    return load_config_model(config_path).to_dict()
