"""Configuration loading for the composite likelihood engine."""

from bivardpp.config.manager import (
    ConfigManager,
    ConfigurationError,
    LikelihoodConfig,
    load_config,
)

__all__ = [
    "ConfigManager",
    "ConfigurationError",
    "LikelihoodConfig",
    "load_config",
]
