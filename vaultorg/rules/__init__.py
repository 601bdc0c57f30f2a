"""vaultorg Rules System.

This module decides where a note belongs:
- RuleEngine: Ordered frontmatter rules, first match wins
- ExclusionMatcher: Glob and folder-prefix exclusions
- prepare_destination: {variable} substitution and validation of destinations

Rules are persisted in camelCase dictionaries; see serialize_rule and
deserialize_rules for the conversion.
"""

from .engine import (
    Rule,
    RuleDeserializationError,
    RuleDeserializationSuccess,
    RuleEngine,
    deserialize_rule,
    deserialize_rules,
    match_frontmatter,
    normalize_serialized_rule,
    serialize_rule,
    serialize_rules,
)
from .patterns import ExclusionMatcher, is_excluded, validate_exclusion_pattern
from .substitution import (
    DestinationResult,
    SubstitutionResult,
    prepare_destination,
    substitute_variables,
)

__all__ = [
    # Rule engine
    "Rule",
    "RuleEngine",
    "RuleDeserializationError",
    "RuleDeserializationSuccess",
    "match_frontmatter",
    "normalize_serialized_rule",
    "serialize_rule",
    "serialize_rules",
    "deserialize_rule",
    "deserialize_rules",
    # Exclusions
    "ExclusionMatcher",
    "is_excluded",
    "validate_exclusion_pattern",
    # Destinations
    "SubstitutionResult",
    "DestinationResult",
    "substitute_variables",
    "prepare_destination",
]
