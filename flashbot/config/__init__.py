"""Configuration utilities for the relay client."""

from .loader import (
    ConfigError,
    DEFAULT_CONFIG_PATH,
    DefaultsConfig,
    FlashbotConfig,
    load_config,
    parse_config,
)

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "DefaultsConfig",
    "FlashbotConfig",
    "load_config",
    "parse_config",
]
