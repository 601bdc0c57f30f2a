#!/usr/bin/env python3
"""Rule engine for frontmatter-driven document placement.

This module provides the rule model and evaluation for vaultorg:
- Ordered rules keyed on a frontmatter field
- Match types: equals, contains, starts-with, ends-with, regex
- Optional case-insensitive comparison for the literal match types
- Multi-valued fields match when any element matches
- First-match-wins evaluation, disabled rules skipped
- Serialization to and from the persisted settings form

Example:
    >>> engine = RuleEngine()
    >>> engine.add_rule(Rule(key="type", value="meeting", destination="Meetings"))
    >>> engine.match({"type": "meeting"}).destination
    'Meetings'
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Pattern, Tuple, Union

from vaultorg.core.constants import MatchType, SettingsKey
from vaultorg.core.regex_validation import validate_regex_pattern
from vaultorg.core.validators import ValidationError, validate_rule_config
from vaultorg.infrastructure.logger import get_logger

RuleValue = Union[str, Pattern[str]]

# Reverse of the flag letters accepted on load, in a stable order
_FLAG_LETTERS = (("i", re.IGNORECASE), ("m", re.MULTILINE), ("s", re.DOTALL), ("x", re.VERBOSE))


@dataclass
class Rule:
    """A rule mapping a frontmatter value to a destination folder.

    Rules are evaluated in order. The first enabled matching rule decides
    where a document goes.
    """

    key: str
    value: RuleValue
    destination: str
    match_type: MatchType = MatchType.EQUALS
    enabled: bool = True
    case_insensitive: bool = False
    debug: bool = False

    def __post_init__(self):
        if self.match_type == MatchType.REGEX and isinstance(self.value, str):
            self.value = re.compile(self.value)

    @property
    def flags(self) -> str:
        """Regex flag letters for a regex rule, empty otherwise."""
        if not isinstance(self.value, re.Pattern):
            return ""
        return "".join(letter for letter, flag in _FLAG_LETTERS if self.value.flags & flag)


@dataclass
class RuleDeserializationError:
    """A persisted rule that could not be turned into a Rule."""

    index: int
    rule: Dict[str, Any]
    message: str
    regex_error: bool = False


@dataclass
class RuleDeserializationSuccess:
    """A persisted rule that loaded, with its position in the settings list."""

    index: int
    rule: Rule


def stringify_value(value: Any) -> str:
    """Render a frontmatter scalar the way it was written in YAML."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _matches_element(rule: Rule, element: str) -> bool:
    if rule.match_type == MatchType.REGEX:
        pattern = rule.value if isinstance(rule.value, re.Pattern) else re.compile(rule.value)
        # A fresh search per call; no match position survives between documents
        return pattern.search(element) is not None

    expected = rule.value.pattern if isinstance(rule.value, re.Pattern) else rule.value
    actual = element
    if rule.case_insensitive:
        expected = expected.casefold()
        actual = actual.casefold()

    if rule.match_type == MatchType.EQUALS:
        return actual == expected
    if rule.match_type == MatchType.CONTAINS:
        return expected in actual
    if rule.match_type == MatchType.STARTS_WITH:
        return actual.startswith(expected)
    if rule.match_type == MatchType.ENDS_WITH:
        return actual.endswith(expected)

    return False


def rule_matches(rule: Rule, metadata: Optional[Mapping[str, Any]]) -> bool:
    """Evaluate a single rule against document metadata.

    Args:
        rule: Rule to evaluate
        metadata: Frontmatter mapping, or None when the document has none

    Returns:
        True if the rule is enabled and any value element matches
    """
    if not rule.enabled or not metadata:
        return False

    value = metadata.get(rule.key)
    if value is None:
        return False

    elements = value if isinstance(value, (list, tuple)) else [value]
    return any(
        element is not None and _matches_element(rule, stringify_value(element))
        for element in elements
    )


def match_frontmatter(
    metadata: Optional[Mapping[str, Any]], rules: Iterable[Rule]
) -> Optional[Rule]:
    """Return the first enabled rule that matches, or None."""
    for rule in rules:
        if rule_matches(rule, metadata):
            return rule
    return None


class RuleEngine:
    """Ordered collection of rules with first-match-wins evaluation."""

    def __init__(self, rules: Optional[Iterable[Rule]] = None):
        """Initialize rule engine.

        Args:
            rules: Initial rules, in evaluation order
        """
        self._rules: List[Rule] = list(rules or [])

    def add_rule(self, rule: Rule) -> None:
        """Append a rule; it is evaluated after all existing rules."""
        self._rules.append(rule)

    def insert_rule(self, index: int, rule: Rule) -> None:
        """Insert a rule at a position in the evaluation order."""
        self._rules.insert(index, rule)

    def remove_rule(self, index: int) -> Rule:
        """Remove and return the rule at index.

        Raises:
            IndexError: If index is out of range
        """
        return self._rules.pop(index)

    def move_rule(self, from_index: int, to_index: int) -> None:
        """Move a rule to a new position in the evaluation order."""
        rule = self._rules.pop(from_index)
        self._rules.insert(to_index, rule)

    def set_rules(self, rules: Iterable[Rule]) -> None:
        """Replace all rules."""
        self._rules = list(rules)

    def clear_rules(self) -> None:
        """Clear all rules."""
        self._rules.clear()

    def enable_rule(self, index: int) -> None:
        """Enable rule at index."""
        self._rules[index].enabled = True

    def disable_rule(self, index: int) -> None:
        """Disable rule at index."""
        self._rules[index].enabled = False

    def get_rules(self) -> List[Rule]:
        """Get all rules, in evaluation order."""
        return self._rules.copy()

    def match(self, metadata: Optional[Mapping[str, Any]]) -> Optional[Rule]:
        """Find the rule governing a document.

        Args:
            metadata: The document's frontmatter

        Returns:
            First enabled matching rule, or None
        """
        return match_frontmatter(metadata, self._rules)

    def get_matching_rules(self, metadata: Optional[Mapping[str, Any]]) -> List[Rule]:
        """Get every enabled rule that matches, in order."""
        return [rule for rule in self._rules if rule_matches(rule, metadata)]

    def __len__(self) -> int:
        """Return number of rules."""
        return len(self._rules)


def normalize_serialized_rule(rule: Mapping[str, Any]) -> Dict[str, Any]:
    """Bring a persisted rule to the current layout.

    Legacy rules that only carry ``isRegex`` get a ``matchType``; missing
    fields get defaults; numeric and boolean key, value and destination
    fields become text; regex-only fields are dropped from other rules.

    Args:
        rule: Persisted rule dictionary

    Returns:
        A normalized copy
    """
    normalized = dict(rule)

    match_type = rule.get(SettingsKey.RULE_MATCH_TYPE) or (
        MatchType.REGEX.value if rule.get(SettingsKey.RULE_IS_REGEX) else MatchType.EQUALS.value
    )
    normalized[SettingsKey.RULE_MATCH_TYPE] = match_type

    for field_name in (SettingsKey.RULE_KEY, SettingsKey.RULE_VALUE, SettingsKey.RULE_DESTINATION):
        field_value = normalized.get(field_name)
        if field_value is None:
            normalized[field_name] = ""
        elif isinstance(field_value, (int, float)):
            normalized[field_name] = stringify_value(field_value)

    if normalized.get(SettingsKey.RULE_ENABLED) is None:
        normalized[SettingsKey.RULE_ENABLED] = True

    if match_type == MatchType.REGEX.value:
        normalized[SettingsKey.RULE_IS_REGEX] = True
        normalized[SettingsKey.RULE_FLAGS] = rule.get(SettingsKey.RULE_FLAGS) or ""
    else:
        normalized.pop(SettingsKey.RULE_IS_REGEX, None)
        normalized.pop(SettingsKey.RULE_FLAGS, None)

    return normalized


def serialize_rule(rule: Rule) -> Dict[str, Any]:
    """Convert a rule to its persisted form."""
    data: Dict[str, Any] = {
        SettingsKey.RULE_KEY: rule.key,
        SettingsKey.RULE_VALUE: (
            rule.value.pattern if isinstance(rule.value, re.Pattern) else rule.value
        ),
        SettingsKey.RULE_DESTINATION: rule.destination,
        SettingsKey.RULE_MATCH_TYPE: rule.match_type.value,
        SettingsKey.RULE_ENABLED: rule.enabled,
        SettingsKey.RULE_DEBUG: rule.debug,
    }

    if rule.match_type == MatchType.REGEX:
        data[SettingsKey.RULE_IS_REGEX] = True
        data[SettingsKey.RULE_FLAGS] = rule.flags
    else:
        data[SettingsKey.RULE_CASE_INSENSITIVE] = rule.case_insensitive

    return data


def serialize_rules(rules: Iterable[Rule]) -> List[Dict[str, Any]]:
    """Convert rules to their persisted form, preserving order."""
    return [serialize_rule(rule) for rule in rules]


def deserialize_rule(data: Mapping[str, Any]) -> Rule:
    """Build a Rule from persisted data.

    Raises:
        ValidationError: If a field has the wrong type or the match type is unknown
        ValueError: If a regex is rejected
    """
    normalized = normalize_serialized_rule(data)
    validate_rule_config(normalized)
    match_type = MatchType(normalized[SettingsKey.RULE_MATCH_TYPE])
    value: RuleValue = str(normalized[SettingsKey.RULE_VALUE])

    if match_type == MatchType.REGEX:
        result = validate_regex_pattern(value, normalized[SettingsKey.RULE_FLAGS])
        if not result.valid:
            raise ValueError(result.error)
        value = result.regex

    return Rule(
        key=normalized[SettingsKey.RULE_KEY],
        value=value,
        destination=normalized[SettingsKey.RULE_DESTINATION],
        match_type=match_type,
        enabled=bool(normalized[SettingsKey.RULE_ENABLED]),
        case_insensitive=bool(normalized.get(SettingsKey.RULE_CASE_INSENSITIVE, False)),
        debug=bool(normalized.get(SettingsKey.RULE_DEBUG, False)),
    )


def deserialize_rules(
    data: Optional[Iterable[Mapping[str, Any]]],
) -> Tuple[List[RuleDeserializationSuccess], List[RuleDeserializationError]]:
    """Build rules from persisted data, dropping the ones that fail.

    A rule that fails to load never affects the others. Each failure is
    logged as a warning and returned with its index.

    Args:
        data: Persisted rule dictionaries

    Returns:
        Tuple of (successes, errors), each carrying the original index
    """
    logger = get_logger()
    successes: List[RuleDeserializationSuccess] = []
    errors: List[RuleDeserializationError] = []

    for index, raw in enumerate(data or []):
        try:
            successes.append(RuleDeserializationSuccess(index, deserialize_rule(raw)))
        except (ValidationError, ValueError, TypeError) as e:
            errors.append(
                RuleDeserializationError(index, dict(raw), str(e), isinstance(e, ValueError))
            )
            logger.warning(
                "Failed to load rule; it will be ignored",
                index=index,
                key=raw.get(SettingsKey.RULE_KEY) or "(unnamed rule)",
                destination=raw.get(SettingsKey.RULE_DESTINATION, ""),
                error=str(e),
            )

    return successes, errors

