r"""
vaultorg Foundation: Regular expression safety checks.

User supplied rule patterns are checked for size and for shapes known to
cause catastrophic backtracking before they are compiled.

Example:
    >>> result = validate_regex_pattern(r"^2024-\d{2}", "i")
    >>> result.valid
    True
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern

from vaultorg.core.constants import RegexLimits

# Nested quantifiers and friends: (a+)+, a**, (a|a)+, ((a)+)+
DANGEROUS_PATTERNS = [
    re.compile(r"\([^)]*[+*]\)[+*]"),
    re.compile(r"[+*]{2,}"),
    re.compile(r"\([^)]*\|[^)]*\)[+*]"),
    re.compile(r"\(\([^)]*[+*]\)[+*]\)"),
]

_UNESCAPED_GROUP = re.compile(r"(?<!\\)\(")
_UNESCAPED_ALTERNATION = re.compile(r"(?<!\\)\|")

# Flag letters as authored in settings. "g" and "y" only affect cursor
# state, which the matcher never carries between documents.
FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "u": re.UNICODE,
    "g": 0,
    "y": 0,
}


@dataclass
class RegexValidationResult:
    """Result of validating a regex pattern."""

    valid: bool
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    regex: Optional[Pattern[str]] = None


def parse_flags(flags: Optional[str]) -> int:
    """Translate a string of flag letters into re module flags.

    Raises:
        ValueError: On an unknown flag letter
    """
    result = 0
    for letter in flags or "":
        if letter not in FLAG_MAP:
            raise ValueError(f"Invalid regular expression flag: {letter!r}")
        result |= FLAG_MAP[letter]
    return result


def nesting_depth(pattern: str) -> int:
    """Maximum parenthesis nesting depth, ignoring escaped parentheses."""
    max_depth = 0
    depth = 0
    escaped = False

    for char in pattern:
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
        elif char == "(":
            depth += 1
            max_depth = max(max_depth, depth)
        elif char == ")":
            depth = max(0, depth - 1)

    return max_depth


def validate_regex_pattern(pattern: str, flags: Optional[str] = None) -> RegexValidationResult:
    """Validate a regex pattern for safety and compile it.

    Args:
        pattern: The regex pattern to validate
        flags: Optional flag letters (e.g. "i")

    Returns:
        RegexValidationResult; ``regex`` is set when valid
    """
    if len(pattern) > RegexLimits.MAX_PATTERN_LENGTH:
        return RegexValidationResult(
            valid=False,
            error=f"Pattern too long ({len(pattern)} chars). "
            f"Maximum: {RegexLimits.MAX_PATTERN_LENGTH}",
        )

    for dangerous in DANGEROUS_PATTERNS:
        if dangerous.search(pattern):
            return RegexValidationResult(
                valid=False,
                error="Pattern contains potentially dangerous nested quantifiers "
                "that could cause performance issues",
            )

    groups = len(_UNESCAPED_GROUP.findall(pattern))
    if groups > RegexLimits.MAX_CAPTURING_GROUPS:
        return RegexValidationResult(
            valid=False,
            error=f"Too many capturing groups ({groups}). "
            f"Maximum: {RegexLimits.MAX_CAPTURING_GROUPS}",
        )

    alternations = len(_UNESCAPED_ALTERNATION.findall(pattern))
    if alternations > RegexLimits.MAX_ALTERNATIONS:
        return RegexValidationResult(
            valid=False,
            error=f"Too many alternations ({alternations}). "
            f"Maximum: {RegexLimits.MAX_ALTERNATIONS}",
        )

    depth = nesting_depth(pattern)
    if depth > RegexLimits.MAX_NESTING_DEPTH:
        return RegexValidationResult(
            valid=False,
            error=f"Nesting too deep ({depth} levels). Maximum: {RegexLimits.MAX_NESTING_DEPTH}",
        )

    warnings = []
    if ".*.*" in pattern:
        warnings.append("Pattern contains multiple .* which may be slow on large inputs")
    if ".+.+" in pattern:
        warnings.append("Pattern contains multiple .+ which may be slow on large inputs")

    try:
        regex = re.compile(pattern, parse_flags(flags))
    except (re.error, ValueError) as e:
        return RegexValidationResult(valid=False, error=f"Invalid regex syntax: {e}")

    return RegexValidationResult(valid=True, warnings=warnings, regex=regex)


def safe_regex(pattern: str, flags: Optional[str] = None) -> Optional[Pattern[str]]:
    """Compile a pattern if it passes validation, else return None."""
    result = validate_regex_pattern(pattern, flags)
    return result.regex if result.valid else None
