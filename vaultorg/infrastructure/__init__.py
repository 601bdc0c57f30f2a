"""vaultorg Infrastructure Layer.

This layer provides services used by the rules and organizer packages:
- ConfigManager: Hierarchical configuration (defaults, file, environment, CLI)
- Settings / YamlSettingsStore: Persisted rules, exclusions and move history
- Logger: Structured logging with scoped context
"""

from .config_manager import (
    ConfigError,
    ConfigManager,
    ConfigSource,
    Settings,
    YamlSettingsStore,
)
from .logger import Logger, LogLevel, configure_logging, get_logger, set_global_logger

__all__ = [
    # Logger exports
    "Logger",
    "LogLevel",
    "configure_logging",
    "get_logger",
    "set_global_logger",
    # ConfigManager exports
    "ConfigSource",
    "ConfigError",
    "ConfigManager",
    # Settings exports
    "Settings",
    "YamlSettingsStore",
]
