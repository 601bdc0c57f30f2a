"""
vaultorg Foundation: Constants

This module provides system-wide constants and error codes
shared by the rule engine, the organizer and the CLI.
"""
from enum import Enum, IntEnum

# Version information
VAULTORG_VERSION = "1.0.0"


# Error codes
class ErrorCode(IntEnum):
    """Standardized error codes for vaultorg operations."""

    INVALID_INPUT = 1  # Bad path, invalid configuration
    NOT_FOUND = 2  # File or resource doesn't exist
    PERMISSION_DENIED = 3  # Insufficient permissions
    CONFLICT = 4  # Resource conflict (locked, exists)
    INTERNAL_ERROR = 6  # Bug in vaultorg


class PathLimits:
    """Path validation limits."""

    # Windows MAX_PATH, the most restrictive target
    WINDOWS_MAX_PATH = 260
    MAX_COMPONENT_LENGTH = 255

    # Frontmatter lists become nested folders at most this deep
    MAX_ARRAY_PATH_DEPTH = 5

    MAX_VARIABLE_NAME_LENGTH = 100


class PerformanceConfig:
    """Throttling for bulk operations."""

    # Probe budget before falling back to a timestamped name
    MAX_UNIQUE_FILENAME_ATTEMPTS = 100

    BULK_OPERATION_BATCH_SIZE = 100
    BULK_OPERATION_BATCH_DELAY_MS = 10


class DebounceConfig:
    """Debounce windows in milliseconds."""

    SETTINGS_SAVE_MS = 300
    METADATA_REFRESH_MS = 1000


class RegexLimits:
    """Complexity limits for user supplied regular expressions."""

    MAX_PATTERN_LENGTH = 500
    MAX_CAPTURING_GROUPS = 20
    MAX_NESTING_DEPTH = 10
    MAX_ALTERNATIONS = 50


class HistoryDefaults:
    """Move history defaults."""

    # Each entry is roughly 200 bytes once serialized
    MAX_HISTORY_SIZE = 50


class MatchType(Enum):
    """How a rule compares a frontmatter value."""

    EQUALS = "equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts-with"
    ENDS_WITH = "ends-with"
    REGEX = "regex"


MATCH_TYPE_LABELS = {
    MatchType.EQUALS: "Equals",
    MatchType.CONTAINS: "Contains",
    MatchType.STARTS_WITH: "Starts with",
    MatchType.ENDS_WITH: "Ends with",
    MatchType.REGEX: "Regex",
}

# Document types the organizer acts on
MARKDOWN_EXTENSION = "md"


# Settings keys (persisted layout)
class SettingsKey:
    """Persisted settings key constants."""

    RULES = "rules"
    EXCLUDE_PATTERNS = "excludePatterns"
    EXCLUSION_PATTERNS_ALIAS = "exclusionPatterns"
    MOVE_HISTORY = "moveHistory"
    MAX_HISTORY_SIZE = "maxHistorySize"

    # Rule fields
    RULE_KEY = "key"
    RULE_VALUE = "value"
    RULE_DESTINATION = "destination"
    RULE_MATCH_TYPE = "matchType"
    RULE_ENABLED = "enabled"
    RULE_CASE_INSENSITIVE = "caseInsensitive"
    RULE_IS_REGEX = "isRegex"
    RULE_FLAGS = "flags"
    RULE_DEBUG = "debug"

    # History fields
    HISTORY_TIMESTAMP = "timestamp"
    HISTORY_FILE_NAME = "fileName"
    HISTORY_FROM_PATH = "fromPath"
    HISTORY_TO_PATH = "toPath"
    HISTORY_RULE_KEY = "ruleKey"


# Configuration keys (engine tunables)
class ConfigKey:
    """Dot-path configuration keys understood by ConfigManager."""

    BATCH_SIZE = "vaultorg.performance.batch_size"
    BATCH_DELAY_MS = "vaultorg.performance.batch_delay_ms"
    MAX_UNIQUE_ATTEMPTS = "vaultorg.performance.max_unique_attempts"
    SETTINGS_SAVE_MS = "vaultorg.debounce.settings_save_ms"
    METADATA_REFRESH_MS = "vaultorg.debounce.metadata_refresh_ms"
    LOG_LEVEL = "vaultorg.logging.level"
    LOG_FILE = "vaultorg.logging.file"
    SETTINGS_FILE = "vaultorg.settings_file"


DEFAULT_SETTINGS_FILENAME = ".vaultorg.yaml"


# Default settings values
DEFAULT_SETTINGS = {
    SettingsKey.RULES: [],
    SettingsKey.EXCLUDE_PATTERNS: [],
    SettingsKey.MOVE_HISTORY: [],
    SettingsKey.MAX_HISTORY_SIZE: HistoryDefaults.MAX_HISTORY_SIZE,
}
