"""
vaultorg Foundation: Input Validators.

This module provides path validation for relocation destinations and
structural validation for persisted settings (rules, exclusion patterns,
move history).

Path validation rules:
- No path traversal (..) under any options
- No absolute paths unless explicitly allowed
- No characters that are invalid on Windows, the most restrictive target
- Overall and per-component length limits
- No reserved device names (CON, PRN, ...) at any depth
- No component ending in a dot or a space
"""
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from vaultorg.core.constants import ErrorCode, MatchType, PathLimits, SettingsKey
from vaultorg.core.errors import InvalidPathError, PathErrorReason


class ValidationError(Exception):
    """Base exception for validation errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_INPUT):
        """Initialize ValidationError.

        Args:
            message: Error message
            error_code: Associated error code
        """
        super().__init__(message)
        self.error_code = error_code


# Reserved at any directory level and with any extension
RESERVED_DEVICE_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)

INVALID_FILENAME_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')
ABSOLUTE_PATH_PATTERN = re.compile(r"^([A-Za-z]:[\\/]|/)")
PATH_TRAVERSAL_PATTERN = re.compile(r"(^|[\\/])\.\.($|[\\/])")
MULTIPLE_SEPARATORS_PATTERN = re.compile(r"/{2,}")
EDGE_TRIM_PATTERN = re.compile(r"^[\s/]+|[\s/]+$")


@dataclass
class PathValidationOptions:
    """Options for validate_path. Each toggle is independent."""

    allow_empty: bool = False
    allow_absolute: bool = False
    max_length: int = PathLimits.WINDOWS_MAX_PATH
    check_reserved_names: bool = True


@dataclass
class PathValidationResult:
    """Outcome of validating a single path."""

    valid: bool
    sanitized_path: Optional[str] = None
    error: Optional[InvalidPathError] = None
    warnings: List[str] = field(default_factory=list)


def _invalid(
    path: str, reason: PathErrorReason, details: Optional[str] = None
) -> PathValidationResult:
    return PathValidationResult(valid=False, error=InvalidPathError(path, reason, details))


def _normalize(path: str, warnings: List[str]) -> str:
    """Apply separator and whitespace normalization."""
    sanitized = unicodedata.normalize("NFC", path).replace("\u00a0", " ")
    sanitized = sanitized.replace("\\", "/")

    if MULTIPLE_SEPARATORS_PATTERN.search(sanitized):
        sanitized = MULTIPLE_SEPARATORS_PATTERN.sub("/", sanitized)
        warnings.append("Multiple consecutive slashes were normalized")

    return EDGE_TRIM_PATTERN.sub("", sanitized)


def validate_path(
    path: str, options: Optional[PathValidationOptions] = None
) -> PathValidationResult:
    """Validate and sanitize a vault-relative path.

    Checks run in a fixed order and the first failure wins.

    Args:
        path: Path to validate
        options: Validation options (defaults are the strict ones)

    Returns:
        PathValidationResult with either sanitized_path or error set
    """
    opts = options or PathValidationOptions()
    warnings: List[str] = []

    if path is None or not str(path).strip():
        if not opts.allow_empty:
            return _invalid(path or "", PathErrorReason.EMPTY)
        return PathValidationResult(valid=True, sanitized_path="", warnings=warnings)

    if ABSOLUTE_PATH_PATTERN.match(path) and not opts.allow_absolute:
        return _invalid(path, PathErrorReason.ABSOLUTE, "Use relative paths within the vault")

    # Traversal is never allowed, whatever the options say
    if PATH_TRAVERSAL_PATTERN.search(path):
        return _invalid(path, PathErrorReason.TRAVERSAL, 'Paths cannot contain ".." segments')

    sanitized = _normalize(path, warnings)

    invalid_match = INVALID_FILENAME_CHARS.search(sanitized)
    if invalid_match:
        return _invalid(
            path,
            PathErrorReason.INVALID_CHARACTERS,
            f'Contains invalid character: "{invalid_match.group(0)}"',
        )

    if len(sanitized) > opts.max_length:
        return _invalid(
            path,
            PathErrorReason.TOO_LONG,
            f"Path length ({len(sanitized)}) exceeds maximum ({opts.max_length})",
        )

    for component in filter(None, sanitized.split("/")):
        if len(component) > PathLimits.MAX_COMPONENT_LENGTH:
            return _invalid(
                path,
                PathErrorReason.TOO_LONG,
                f'Path component "{component}" exceeds '
                f"{PathLimits.MAX_COMPONENT_LENGTH} characters",
            )

        if opts.check_reserved_names:
            base_name = component.split(".")[0].upper()
            if base_name in RESERVED_DEVICE_NAMES:
                return _invalid(
                    path,
                    PathErrorReason.RESERVED_NAME,
                    f'"{component}" is a reserved system name on Windows',
                )

        if component.endswith(".") or component.endswith(" "):
            return _invalid(
                path,
                PathErrorReason.INVALID_CHARACTERS,
                f'Path component "{component}" cannot end with a dot or space',
            )

    return PathValidationResult(valid=True, sanitized_path=sanitized, warnings=warnings)


def sanitize_path(path: str, options: Optional[PathValidationOptions] = None) -> str:
    """Validate a path and return its sanitized form.

    Args:
        path: Path to sanitize
        options: Validation options

    Returns:
        The sanitized path

    Raises:
        InvalidPathError: If the path is invalid
    """
    result = validate_path(path, options)
    if not result.valid:
        raise result.error or InvalidPathError(
            path, PathErrorReason.INVALID_CHARACTERS, "Path validation failed"
        )
    return result.sanitized_path or ""


def is_valid_path(path: str, options: Optional[PathValidationOptions] = None) -> bool:
    """Return True if the path passes validation."""
    return validate_path(path, options).valid


def validate_destination_path(destination: str) -> PathValidationResult:
    """Validate a rule destination with the strict defaults."""
    return validate_path(
        destination,
        PathValidationOptions(allow_empty=False, allow_absolute=False, check_reserved_names=True),
    )


def safe_join_path(
    segments: Iterable[str], options: Optional[PathValidationOptions] = None
) -> PathValidationResult:
    """Join non-empty segments with "/" and validate the result.

    Segments are never trusted to be safe on their own.
    """
    joined = "/".join(segment for segment in segments if segment)
    return validate_path(joined, options)


def validate_rule_config(rule: Dict[str, Any]) -> bool:
    """Validate a serialized rule.

    Args:
        rule: Serialized rule dictionary

    Returns:
        True if valid

    Raises:
        ValidationError: If rule is invalid
    """
    if not isinstance(rule, dict):
        raise ValidationError("Rule must be a dictionary")

    for field_name in (SettingsKey.RULE_KEY, SettingsKey.RULE_VALUE, SettingsKey.RULE_DESTINATION):
        value = rule.get(field_name)
        # YAML scalars such as 2024 or true are read as text
        if value is not None and not isinstance(value, (str, int, float)):
            raise ValidationError(f"Rule {field_name} must be a scalar: {value!r}")

    if SettingsKey.RULE_MATCH_TYPE in rule:
        match_type = rule[SettingsKey.RULE_MATCH_TYPE]
        try:
            MatchType(match_type)
        except ValueError:
            valid_types = [t.value for t in MatchType]
            raise ValidationError(f"Invalid match type: {match_type}. Must be one of {valid_types}")

    for flag in (
        SettingsKey.RULE_ENABLED,
        SettingsKey.RULE_CASE_INSENSITIVE,
        SettingsKey.RULE_IS_REGEX,
        SettingsKey.RULE_DEBUG,
    ):
        if flag in rule and not isinstance(rule[flag], bool):
            raise ValidationError(f"Rule {flag} must be boolean: {rule[flag]!r}")

    if SettingsKey.RULE_FLAGS in rule and not isinstance(rule[SettingsKey.RULE_FLAGS], str):
        raise ValidationError(f"Rule flags must be a string: {rule[SettingsKey.RULE_FLAGS]!r}")

    return True


def validate_history_entry(entry: Dict[str, Any]) -> bool:
    """Validate a serialized move history entry.

    Raises:
        ValidationError: If entry is invalid
    """
    if not isinstance(entry, dict):
        raise ValidationError("History entry must be a dictionary")

    for field_name in (
        SettingsKey.HISTORY_FILE_NAME,
        SettingsKey.HISTORY_FROM_PATH,
        SettingsKey.HISTORY_TO_PATH,
    ):
        if not isinstance(entry.get(field_name), str) or not entry[field_name]:
            raise ValidationError(f"History entry must have non-empty '{field_name}'")

    timestamp = entry.get(SettingsKey.HISTORY_TIMESTAMP)
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)) or timestamp < 0:
        raise ValidationError(f"History timestamp must be a non-negative number: {timestamp!r}")

    return True


def validate_settings(settings: Dict[str, Any]) -> bool:
    """Validate the persisted settings structure.

    Args:
        settings: Settings dictionary as loaded from disk

    Returns:
        True if valid

    Raises:
        ValidationError: If settings are invalid
    """
    if not isinstance(settings, dict):
        raise ValidationError("Settings must be a dictionary")

    rules = settings.get(SettingsKey.RULES, [])
    if not isinstance(rules, list):
        raise ValidationError("Rules must be a list")
    # Field-level problems only disable the offending rule when it is loaded
    for i, rule in enumerate(rules):
        if not isinstance(rule, dict):
            raise ValidationError(f"Invalid rule configuration at index {i}: must be a dictionary")

    patterns = settings.get(SettingsKey.EXCLUDE_PATTERNS, [])
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        raise ValidationError("Exclude patterns must be a list of strings")

    history = settings.get(SettingsKey.MOVE_HISTORY, [])
    if not isinstance(history, list):
        raise ValidationError("Move history must be a list")
    for i, entry in enumerate(history):
        try:
            validate_history_entry(entry)
        except ValidationError as e:
            raise ValidationError(f"Invalid move history entry at index {i}: {e}")

    if SettingsKey.MAX_HISTORY_SIZE in settings:
        size = settings[SettingsKey.MAX_HISTORY_SIZE]
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise ValidationError(f"Max history size must be a positive integer: {size!r}")

    return True
