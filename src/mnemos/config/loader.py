"""Configuration loading and validation."""

import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from mnemos.config.schema import MnemosConfig

DEFAULT_CONFIG_PATH = Path.home() / ".mnemos" / "mnemos.yaml"

JWT_SECRET_ENV = "MNEMOS_JWT_SECRET"


class ConfigError(Exception):
    """Configuration loading or validation error."""


def load_config(path: Optional[Path] = None) -> MnemosConfig:
    """Load and validate Mnemos configuration from YAML file.

    Args:
        path: Path to config file. If None, tries default location.
              If file doesn't exist, returns default config.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If config file exists but is invalid
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    # Zero-config mode: if file doesn't exist, use all defaults
    if not path.exists():
        return _apply_env(MnemosConfig())

    try:
        with open(path, "r") as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            return _apply_env(MnemosConfig())

        return _apply_env(MnemosConfig(**config_data))

    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e
    except Exception as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def _apply_env(config: MnemosConfig) -> MnemosConfig:
    """Fill secrets that are conventionally supplied through the environment."""
    if config.auth.jwt_secret is None:
        config.auth.jwt_secret = os.environ.get(JWT_SECRET_ENV)
    return config


def save_config(config: MnemosConfig, path: Optional[Union[str, Path]] = None) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration object to save
        path: Destination path (string or Path object). If None, uses default location.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    elif isinstance(path, str):
        path = Path(path)

    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump()

    with open(path, "w") as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)
