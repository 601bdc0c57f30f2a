#!/usr/bin/env python3
"""Hierarchical configuration and settings persistence for vaultorg.

This module provides two things:
- ConfigManager: engine tunables (batch size, debounce windows, logging)
  resolved through a precedence hierarchy of defaults, YAML files,
  environment variables, CLI arguments and runtime updates
- YamlSettingsStore: the user's organizing settings (rules, exclusion
  patterns, move history) persisted as a YAML document inside the vault

Example:
    >>> config = ConfigManager()
    >>> config.load_file("vaultorg.yaml")
    >>> config.get("vaultorg.performance.batch_size", default=100)
"""

import asyncio
import copy
import os
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml

from vaultorg.core.constants import (
    DEFAULT_SETTINGS,
    DebounceConfig,
    ErrorCode,
    HistoryDefaults,
    PerformanceConfig,
    SettingsKey,
)
from vaultorg.core.validators import ValidationError, validate_settings

ENV_PREFIX = "VAULTORG_"


class ConfigSource(Enum):
    """Configuration source precedence levels."""

    COMPILED_DEFAULTS = 1  # Lowest precedence
    SYSTEM_CONFIG = 2
    USER_CONFIG = 3
    ENVIRONMENT = 4
    CLI_ARGS = 5
    RUNTIME = 6  # Highest precedence


class ConfigError(Exception):
    """Configuration error."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_INPUT):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class ConfigManager:
    """Thread-safe hierarchical configuration manager.

    Manages configuration from multiple sources with precedence:
    1. Compiled defaults (lowest)
    2. System config
    3. User config (--config FILE)
    4. Environment variables (VAULTORG_*)
    5. CLI arguments
    6. Runtime updates (highest)
    """

    DEFAULT_CONFIG = {
        "vaultorg": {
            "settings_file": None,
            "performance": {
                "batch_size": PerformanceConfig.BULK_OPERATION_BATCH_SIZE,
                "batch_delay_ms": PerformanceConfig.BULK_OPERATION_BATCH_DELAY_MS,
                "max_unique_attempts": PerformanceConfig.MAX_UNIQUE_FILENAME_ATTEMPTS,
            },
            "debounce": {
                "settings_save_ms": DebounceConfig.SETTINGS_SAVE_MS,
                "metadata_refresh_ms": DebounceConfig.METADATA_REFRESH_MS,
            },
            "logging": {
                "level": "INFO",
                "file": None,
            },
        }
    }

    SCHEMA = {
        "vaultorg": {
            "performance": {
                "batch_size": int,
                "batch_delay_ms": (int, float),
                "max_unique_attempts": int,
            },
            "debounce": {
                "settings_save_ms": (int, float),
                "metadata_refresh_ms": (int, float),
            },
            "logging": {"level": str},
        }
    }

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_file: Optional config file to load
        """
        self._config: Dict[ConfigSource, Dict[str, Any]] = {}
        self._lock = threading.RLock()
        self._watchers: List[Callable[[Dict[str, Any]], None]] = []

        self._config[ConfigSource.COMPILED_DEFAULTS] = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_file:
            self.load_file(config_file)

        self._load_environment()

    def load_file(self, file_path: str, source: ConfigSource = ConfigSource.USER_CONFIG) -> None:
        """Load configuration from YAML file.

        Args:
            file_path: Path to YAML config file
            source: Configuration source level

        Raises:
            ConfigError: If file cannot be loaded or parsed
        """
        path = Path(file_path).expanduser().resolve()

        if not path.exists():
            raise ConfigError(f"Config file not found: {file_path}", ErrorCode.NOT_FOUND)

        try:
            with open(path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error in {file_path}: {e}", ErrorCode.INVALID_INPUT)
        except OSError as e:
            raise ConfigError(f"Error loading config {file_path}: {e}", ErrorCode.INTERNAL_ERROR)

        if not isinstance(config_data, dict):
            raise ConfigError(f"Invalid config format in {file_path}", ErrorCode.INVALID_INPUT)

        with self._lock:
            self._config[source] = config_data

    def load_dict(
        self, config_data: Dict[str, Any], source: ConfigSource = ConfigSource.RUNTIME
    ) -> None:
        """Load configuration from dictionary.

        Args:
            config_data: Configuration dictionary
            source: Configuration source level
        """
        with self._lock:
            self._config[source] = copy.deepcopy(config_data)

    def _load_environment(self) -> None:
        """Load configuration from environment variables.

        Variables take the form VAULTORG_SECTION__KEY=value; a double
        underscore separates nesting levels so that keys may contain
        single underscores.
        Example: VAULTORG_PERFORMANCE__BATCH_SIZE=50
        """
        env_config: Dict[str, Any] = {}

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            parts = [part for part in key[len(ENV_PREFIX):].lower().split("__") if part]
            if not parts:
                continue

            current = env_config
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = self._parse_env_value(value)

        if env_config:
            with self._lock:
                self._config[ConfigSource.ENVIRONMENT] = {"vaultorg": env_config}

    def _parse_env_value(self, value: str) -> Any:
        """Parse environment variable value into bool, int, float or str."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key.

        Args:
            key: Dot-separated key path (e.g., "vaultorg.performance.batch_size")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        with self._lock:
            for source in sorted(self._config.keys(), key=lambda s: s.value, reverse=True):
                value = self._get_nested(self._config[source], key)
                if value is not None:
                    return value

            return default

    def _get_nested(self, config: Dict[str, Any], key: str) -> Optional[Any]:
        current: Any = config
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return None
            current = current[part]
        return current

    def set(self, key: str, value: Any, source: ConfigSource = ConfigSource.RUNTIME) -> None:
        """Set configuration value.

        Args:
            key: Dot-separated key path
            value: Value to set
            source: Configuration source level
        """
        with self._lock:
            parts = key.split(".")
            current = self._config.setdefault(source, {})

            for part in parts[:-1]:
                current = current.setdefault(part, {})

            current[parts[-1]] = value

        self._notify_watchers()

    def get_all(self) -> Dict[str, Any]:
        """Get merged configuration from all sources."""
        with self._lock:
            merged: Dict[str, Any] = {}
            for source in sorted(self._config.keys(), key=lambda s: s.value):
                merged = self._deep_merge(merged, self._config[source])
            return merged

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def add_watcher(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Add configuration change watcher.

        Args:
            callback: Function called with merged config on changes
        """
        with self._lock:
            self._watchers.append(callback)

    def remove_watcher(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Remove configuration change watcher."""
        with self._lock:
            if callback in self._watchers:
                self._watchers.remove(callback)

    def _notify_watchers(self) -> None:
        merged = self.get_all()
        with self._lock:
            watchers = list(self._watchers)

        for watcher in watchers:
            watcher(merged)

    def validate_schema(self, schema: Optional[Dict[str, Any]] = None) -> bool:
        """Validate configuration against schema.

        Args:
            schema: Schema dictionary; defaults to SCHEMA

        Returns:
            True if valid

        Raises:
            ConfigError: If validation fails
        """
        return self._validate_dict(self.get_all(), schema or self.SCHEMA, "")

    def _validate_dict(self, config: Dict[str, Any], schema: Dict[str, Any], prefix: str) -> bool:
        for key, expected_type in schema.items():
            if key not in config or config[key] is None:
                continue

            value = config[key]
            path = f"{prefix}{key}"

            if isinstance(expected_type, dict):
                if not isinstance(value, dict):
                    raise ConfigError(f"Expected dict for {path}, got {type(value).__name__}")
                self._validate_dict(value, expected_type, f"{path}.")
            elif isinstance(value, bool) or not isinstance(value, expected_type):
                expected = (
                    " or ".join(t.__name__ for t in expected_type)
                    if isinstance(expected_type, tuple)
                    else expected_type.__name__
                )
                raise ConfigError(f"Expected {expected} for {path}, got {type(value).__name__}")

        return True

    def clear(self, source: Optional[ConfigSource] = None) -> None:
        """Clear configuration.

        Args:
            source: Specific source to clear, or None for all except defaults
        """
        with self._lock:
            if source:
                if source in self._config and source != ConfigSource.COMPILED_DEFAULTS:
                    del self._config[source]
            else:
                for s in [s for s in self._config if s != ConfigSource.COMPILED_DEFAULTS]:
                    del self._config[s]


# Global config manager instance
@dataclass
class Settings:
    """User organizing settings in their persisted (serialized) form.

    Rules and history entries stay as dictionaries here; the rule engine
    and history manager own their typed forms.
    """

    rules: List[Dict[str, Any]] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    move_history: List[Dict[str, Any]] = field(default_factory=list)
    max_history_size: int = HistoryDefaults.MAX_HISTORY_SIZE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted key layout."""
        return {
            SettingsKey.RULES: copy.deepcopy(self.rules),
            SettingsKey.EXCLUDE_PATTERNS: list(self.exclude_patterns),
            SettingsKey.MOVE_HISTORY: copy.deepcopy(self.move_history),
            SettingsKey.MAX_HISTORY_SIZE: self.max_history_size,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        """Build settings from persisted data, filling in defaults.

        Raises:
            ConfigError: If the data is structurally invalid
        """
        merged = copy.deepcopy(DEFAULT_SETTINGS)
        merged.update(data or {})
        if SettingsKey.EXCLUSION_PATTERNS_ALIAS in merged:
            alias = merged.pop(SettingsKey.EXCLUSION_PATTERNS_ALIAS)
            if not (data or {}).get(SettingsKey.EXCLUDE_PATTERNS):
                merged[SettingsKey.EXCLUDE_PATTERNS] = alias

        try:
            validate_settings(merged)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings: {e}", e.error_code)

        return cls(
            rules=merged[SettingsKey.RULES],
            exclude_patterns=merged[SettingsKey.EXCLUDE_PATTERNS],
            move_history=merged[SettingsKey.MOVE_HISTORY],
            max_history_size=merged[SettingsKey.MAX_HISTORY_SIZE],
        )


class YamlSettingsStore:
    """Persists Settings as a YAML document.

    File access runs in a worker thread so the event loop is not blocked.
    A missing file loads as default settings.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def load(self) -> Settings:
        """Load settings from disk.

        Raises:
            ConfigError: If the file cannot be read or is invalid
        """
        data = await asyncio.to_thread(self._read)
        return Settings.from_dict(data)

    async def save(self, settings: Settings) -> None:
        """Write settings to disk, replacing the file atomically."""
        await asyncio.to_thread(self._write, settings.to_dict())

    def _read(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error in {self.path}: {e}", ErrorCode.INVALID_INPUT)
        except OSError as e:
            raise ConfigError(f"Error reading settings {self.path}: {e}", ErrorCode.INTERNAL_ERROR)

        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"Invalid settings format in {self.path}", ErrorCode.INVALID_INPUT)
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.{int(time.time() * 1000)}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        os.replace(tmp_path, self.path)
