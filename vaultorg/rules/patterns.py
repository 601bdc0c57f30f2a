#!/usr/bin/env python3
"""Exclusion pattern matching for vault paths.

This module decides whether a document is kept out of automatic
organizing. A path is excluded when any pattern matches it by either of
two independent checks:
- Glob match: the pattern compiled to an anchored regex
  (``*`` stays within a segment, ``**`` crosses segments, ``?`` is one
  character, ``[...]`` is a character class)
- Folder prefix: a pattern without wildcards excludes the folder it names
  and everything below it, on whole path segments only

Example:
    >>> is_excluded("Templates/daily.md", ["Templates/**"])
    True
    >>> is_excluded("TemplatesBackup/daily.md", ["Templates"])
    False
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern

_WILDCARDS = ("*", "?")
_INVALID_PATTERN_CHARS = re.compile(r'[<>:"|]')


@dataclass
class ExclusionValidationResult:
    """Result of validating an exclusion pattern."""

    valid: bool
    error: Optional[str] = None


def normalize_pattern(pattern: str) -> str:
    """Trim a pattern and normalize separators to forward slashes."""
    return pattern.strip().replace("\\", "/")


def glob_to_regex(pattern: str) -> Pattern[str]:
    """Compile a glob pattern to an anchored regular expression.

    Args:
        pattern: Normalized glob pattern

    Returns:
        Compiled regex matching whole paths

    Raises:
        re.error: If a character class is not a valid regex class
    """
    parts = ["^"]
    i = 0

    while i < len(pattern):
        char = pattern[i]

        if char == "*":
            if pattern[i + 1 : i + 2] == "*":
                parts.append(".*")
                i += 2
            else:
                parts.append("[^/]*")
                i += 1
        elif char == "?":
            parts.append("[^/]")
            i += 1
        elif char == "[":
            end = pattern.find("]", i)
            if end == -1:
                parts.append(r"\[")
                i += 1
            else:
                parts.append(pattern[i : end + 1])
                i = end + 1
        else:
            parts.append(re.escape(char))
            i += 1

    parts.append("$")
    return re.compile("".join(parts))


def matches_glob(path: str, pattern: str) -> bool:
    """Check a path against the compiled form of one glob pattern.

    A pattern that does not compile matches nothing.
    """
    try:
        regex = glob_to_regex(pattern)
    except re.error:
        return False
    return regex.match(path) is not None


def matches_folder_prefix(path: str, pattern: str) -> bool:
    """Check whether a bare folder pattern names the path or one of its parents.

    Only patterns without wildcards take part, and the comparison is on
    whole segments: "Templates" excludes "Templates/a.md" but not
    "TemplatesBackup/a.md".
    """
    if any(wildcard in pattern for wildcard in _WILDCARDS):
        return False

    folder = pattern.rstrip("/")
    if not folder:
        return False

    return path == folder or path.startswith(folder + "/")


def is_excluded(path: str, patterns: Optional[Iterable[str]]) -> bool:
    """Check whether a vault path is excluded by any pattern.

    Args:
        path: Vault-relative path of the document
        patterns: Exclusion patterns; empty and whitespace-only ones are skipped

    Returns:
        True if any pattern excludes the path
    """
    if not patterns:
        return False

    normalized_path = path.replace("\\", "/")

    for raw_pattern in patterns:
        if not raw_pattern or not raw_pattern.strip():
            continue

        pattern = normalize_pattern(raw_pattern)
        if matches_glob(normalized_path, pattern) or matches_folder_prefix(
            normalized_path, pattern
        ):
            return True

    return False


def validate_exclusion_pattern(pattern: str) -> ExclusionValidationResult:
    """Validate an exclusion pattern before it is stored.

    Args:
        pattern: Pattern as entered by the user

    Returns:
        ExclusionValidationResult
    """
    if not pattern or not pattern.strip():
        return ExclusionValidationResult(valid=False, error="Pattern cannot be empty")

    if _INVALID_PATTERN_CHARS.search(pattern):
        return ExclusionValidationResult(valid=False, error="Pattern contains invalid characters")

    try:
        glob_to_regex(normalize_pattern(pattern))
    except re.error:
        return ExclusionValidationResult(valid=False, error="Invalid glob pattern syntax")

    return ExclusionValidationResult(valid=True)


class ExclusionMatcher:
    """Holds the user's exclusion patterns.

    Patterns are compiled on each check, so edits take effect on the next
    document without any cache invalidation.
    """

    def __init__(self, patterns: Optional[Iterable[str]] = None):
        """Initialize exclusion matcher.

        Args:
            patterns: Initial patterns
        """
        self._patterns: List[str] = list(patterns or [])

    @property
    def patterns(self) -> List[str]:
        """Current patterns, in insertion order."""
        return list(self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """Add a validated pattern.

        Raises:
            ValueError: If the pattern is invalid
        """
        result = validate_exclusion_pattern(pattern)
        if not result.valid:
            raise ValueError(f"{result.error}: {pattern!r}")
        self._patterns.append(pattern.strip())

    def remove_pattern(self, pattern: str) -> bool:
        """Remove a pattern.

        Returns:
            True if the pattern was present
        """
        try:
            self._patterns.remove(pattern)
        except ValueError:
            return False
        return True

    def set_patterns(self, patterns: Iterable[str]) -> None:
        """Replace all patterns."""
        self._patterns = list(patterns)

    def is_excluded(self, path: str) -> bool:
        """Check whether a path is excluded by any held pattern."""
        return is_excluded(path, self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)
