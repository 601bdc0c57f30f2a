#!/usr/bin/env python3
"""Frontmatter variable substitution for destination templates.

A rule destination may contain ``{name}`` placeholders that are filled
from the document's frontmatter:

    "Projects/{project}"   + {project: "Website"}        -> "Projects/Website"
    "Archive/{year}/{mon}" + {year: 2024, mon: "Jan"}     -> "Archive/2024/Jan"
    "{tags}"               + {tags: ["work", "urgent"]}   -> "work/urgent"
    "People/{author.name}" + {author: {name: "Ada"}}      -> "People/Ada"

Values are sanitized so that a frontmatter value can never introduce a
path separator or a character that is invalid on disk. Placeholder names
that fail validation are left in the template untouched and reported.
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple

from vaultorg.core.constants import PathLimits
from vaultorg.core.errors import InvalidPathError, PathErrorReason
from vaultorg.core.validators import PathValidationOptions, validate_destination_path, validate_path
from vaultorg.rules.engine import stringify_value

PLACEHOLDER_PATTERN = re.compile(r"\{([^}]+)\}")
VALID_VARIABLE_NAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_.-]{0,99}$")

_STRIP_CHARS = re.compile(r'[<>:"|?*]')
_EDGE_DOTS = re.compile(r"^\.+|\.+$")
_WHITESPACE_RUN = re.compile(r"\s+")
_SEPARATOR_RUN = re.compile(r"/+")


@dataclass
class SubstitutionResult:
    """Outcome of filling a destination template."""

    substituted_path: str
    substituted: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    truncated: List[str] = field(default_factory=list)
    invalid: List[str] = field(default_factory=list)

    @property
    def has_variables(self) -> bool:
        """True if the template contained any placeholder, valid or not."""
        return bool(self.substituted or self.missing or self.invalid)


@dataclass
class DestinationResult:
    """A fully prepared and validated move destination."""

    valid: bool
    destination_folder: Optional[str] = None
    full_path: Optional[str] = None
    substitution: Optional[SubstitutionResult] = None
    error: Optional[InvalidPathError] = None
    warnings: List[str] = field(default_factory=list)


def is_valid_variable_name(name: str) -> bool:
    """Check a placeholder name.

    Names start with a letter or underscore, use only letters, digits,
    ``_``, ``.`` and ``-``, and may not contain ``..`` or separators.
    """
    if not name or len(name) > PathLimits.MAX_VARIABLE_NAME_LENGTH:
        return False
    if ".." in name or "/" in name or "\\" in name:
        return False
    return VALID_VARIABLE_NAME.match(name) is not None


def extract_variables(template: str) -> Tuple[List[str], List[str]]:
    """Find placeholder names in a template.

    Returns:
        Tuple of (valid names, invalid names), in order of appearance
    """
    variables: List[str] = []
    invalid: List[str] = []

    for match in PLACEHOLDER_PATTERN.finditer(template):
        name = match.group(1)
        if is_valid_variable_name(name):
            variables.append(name)
        else:
            invalid.append(name)

    return variables, invalid


def get_nested_value(data: Optional[Mapping[str, Any]], path: str) -> Any:
    """Look up a value by dot notation; None when any step is missing."""
    if not data or not path:
        return None

    if "." not in path:
        return data.get(path)

    current: Any = data
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
        if current is None:
            return None

    return current


def sanitize_path_value(value: Any) -> str:
    """Make a frontmatter value safe to use as one path segment."""
    if value is None:
        return ""

    text = _STRIP_CHARS.sub("", stringify_value(value))
    text = text.replace("\\", "-").replace("/", "-")
    text = _EDGE_DOTS.sub("", text.strip())
    return _WHITESPACE_RUN.sub(" ", text)


def substitute_variables(
    template: str, metadata: Optional[Mapping[str, Any]]
) -> SubstitutionResult:
    """Fill ``{name}`` placeholders from frontmatter.

    Missing values are replaced with nothing and the empty segment is
    collapsed. List values become nested folders, truncated at
    PathLimits.MAX_ARRAY_PATH_DEPTH entries.

    Args:
        template: Destination template
        metadata: Document frontmatter

    Returns:
        SubstitutionResult
    """
    variables, invalid = extract_variables(template)
    if not variables and not invalid:
        return SubstitutionResult(substituted_path=template)

    result = SubstitutionResult(substituted_path=template, invalid=invalid)
    path = template

    for variable in variables:
        value = get_nested_value(metadata, variable)
        placeholder = "{" + variable + "}"

        if value is None:
            result.missing.append(variable)
            path = path.replace(placeholder, "")
            continue

        result.substituted.append(variable)
        if isinstance(value, (list, tuple)):
            if len(value) > PathLimits.MAX_ARRAY_PATH_DEPTH:
                result.truncated.append(variable)
            segments = [sanitize_path_value(v) for v in value[: PathLimits.MAX_ARRAY_PATH_DEPTH]]
            replacement = "/".join(segment for segment in segments if segment)
        else:
            replacement = sanitize_path_value(value)

        path = path.replace(placeholder, replacement)

    path = _SEPARATOR_RUN.sub("/", path).strip("/")
    result.substituted_path = "/".join(segment for segment in path.split("/") if segment)
    return result


def prepare_destination(
    template: str, file_name: str, metadata: Optional[Mapping[str, Any]]
) -> DestinationResult:
    """Resolve a rule destination into a validated folder and file path.

    Args:
        template: Rule destination, possibly with placeholders
        file_name: Name of the document being moved, extension included
        metadata: Document frontmatter

    Returns:
        DestinationResult; on failure ``error`` says why
    """
    warnings: List[str] = []

    trimmed = template.strip() if template else ""
    if not trimmed:
        return DestinationResult(
            valid=False,
            error=InvalidPathError(
                template or "", PathErrorReason.EMPTY, "Destination path cannot be empty"
            ),
        )

    substitution = substitute_variables(trimmed, metadata)
    if substitution.invalid:
        warnings.append(f"Invalid variable names (ignored): {', '.join(substitution.invalid)}")
    if substitution.missing:
        warnings.append(f"Missing variables: {', '.join(substitution.missing)}")
    if substitution.truncated:
        warnings.append(
            f"List values truncated to {PathLimits.MAX_ARRAY_PATH_DEPTH} folders: "
            f"{', '.join(substitution.truncated)}"
        )

    folder_result = validate_destination_path(substitution.substituted_path)
    warnings.extend(folder_result.warnings)
    if not folder_result.valid or not folder_result.sanitized_path:
        return DestinationResult(
            valid=False,
            substitution=substitution,
            error=folder_result.error
            or InvalidPathError(
                substitution.substituted_path,
                PathErrorReason.INVALID_CHARACTERS,
                "Destination path validation failed",
            ),
            warnings=warnings,
        )

    destination_folder = folder_result.sanitized_path
    candidate = f"{destination_folder}/{file_name}"
    full_result = validate_path(
        candidate, PathValidationOptions(allow_empty=False, allow_absolute=False)
    )
    warnings.extend(full_result.warnings)
    if not full_result.valid or not full_result.sanitized_path:
        return DestinationResult(
            valid=False,
            destination_folder=destination_folder,
            substitution=substitution,
            error=full_result.error
            or InvalidPathError(
                candidate, PathErrorReason.INVALID_CHARACTERS, "Full path validation failed"
            ),
            warnings=warnings,
        )

    return DestinationResult(
        valid=True,
        destination_folder=destination_folder,
        full_path=full_result.sanitized_path,
        substitution=substitution,
        warnings=warnings,
    )
