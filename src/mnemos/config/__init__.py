"""Configuration schema and YAML loading."""

from mnemos.config.loader import ConfigError, load_config, save_config
from mnemos.config.schema import MnemosConfig

__all__ = ["ConfigError", "MnemosConfig", "load_config", "save_config"]
