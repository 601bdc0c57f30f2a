"""Tests for the frontmatter rule engine.

This module tests:
- Match types and case-insensitive comparison
- Multi-valued frontmatter fields
- First-match-wins ordering and disabled rules
- Conversion to and from the persisted settings form
"""

import re

import pytest

from vaultorg.core.constants import MatchType
from vaultorg.core.validators import ValidationError
from vaultorg.rules.engine import (
    Rule,
    RuleEngine,
    deserialize_rule,
    deserialize_rules,
    match_frontmatter,
    normalize_serialized_rule,
    rule_matches,
    serialize_rule,
    serialize_rules,
    stringify_value,
)


class TestRuleMatching:
    """Test single-rule evaluation."""

    def test_equals(self):
        rule = Rule(key="type", value="meeting", destination="Meetings")

        assert rule_matches(rule, {"type": "meeting"})
        assert not rule_matches(rule, {"type": "meetings"})
        assert not rule_matches(rule, {"type": "Meeting"})

    def test_contains(self):
        rule = Rule(key="title", value="plan", destination="P", match_type=MatchType.CONTAINS)

        assert rule_matches(rule, {"title": "Q3 planning"})
        assert not rule_matches(rule, {"title": "Q3 review"})

    def test_starts_with(self):
        rule = Rule(key="id", value="PRJ-", destination="P", match_type=MatchType.STARTS_WITH)

        assert rule_matches(rule, {"id": "PRJ-12"})
        assert not rule_matches(rule, {"id": "X-PRJ-12"})

    def test_ends_with(self):
        rule = Rule(key="file", value=".draft", destination="D", match_type=MatchType.ENDS_WITH)

        assert rule_matches(rule, {"file": "post.draft"})
        assert not rule_matches(rule, {"file": "post.draft.old"})

    def test_case_insensitive(self):
        rule = Rule(
            key="type",
            value="Meeting",
            destination="Meetings",
            match_type=MatchType.CONTAINS,
            case_insensitive=True,
        )

        assert rule_matches(rule, {"type": "WEEKLY MEETING"})

    def test_regex_compiled_from_string(self):
        rule = Rule(
            key="date", value=r"^2024-\d{2}", destination="2024", match_type=MatchType.REGEX
        )

        assert isinstance(rule.value, re.Pattern)
        assert rule_matches(rule, {"date": "2024-05-01"})
        assert not rule_matches(rule, {"date": "2023-05-01"})

    def test_regex_is_repeatable(self):
        """A regex rule gives the same answer however often it is evaluated."""
        rule = Rule(key="tag", value="work", destination="W", match_type=MatchType.REGEX)
        metadata = {"tag": "work"}

        assert [rule_matches(rule, metadata) for _ in range(3)] == [True, True, True]

    def test_case_insensitive_ignored_for_regex(self):
        rule = Rule(
            key="tag",
            value="work",
            destination="W",
            match_type=MatchType.REGEX,
            case_insensitive=True,
        )

        assert not rule_matches(rule, {"tag": "WORK"})

    def test_list_matches_any_element(self):
        rule = Rule(key="tags", value="urgent", destination="Urgent")

        assert rule_matches(rule, {"tags": ["work", "urgent"]})
        assert not rule_matches(rule, {"tags": ["work", "later"]})
        assert not rule_matches(rule, {"tags": []})

    def test_list_none_elements_skipped(self):
        rule = Rule(key="tags", value="None", destination="X")

        assert not rule_matches(rule, {"tags": [None]})

    def test_scalars_stringified(self):
        assert rule_matches(Rule(key="done", value="true", destination="D"), {"done": True})
        assert rule_matches(Rule(key="year", value="2024", destination="Y"), {"year": 2024})
        assert stringify_value(False) == "false"
        assert stringify_value(1.5) == "1.5"

    def test_missing_key_or_metadata(self):
        rule = Rule(key="type", value="meeting", destination="Meetings")

        assert not rule_matches(rule, {"other": "meeting"})
        assert not rule_matches(rule, {"type": None})
        assert not rule_matches(rule, {})
        assert not rule_matches(rule, None)

    def test_disabled_rule_never_matches(self):
        rule = Rule(key="type", value="meeting", destination="Meetings", enabled=False)

        assert not rule_matches(rule, {"type": "meeting"})


class TestRuleEngine:
    """Test ordered evaluation and rule management."""

    def test_first_match_wins(self):
        engine = RuleEngine(
            [
                Rule(key="type", value="meeting", destination="First"),
                Rule(key="type", value="meeting", destination="Second"),
            ]
        )

        assert engine.match({"type": "meeting"}).destination == "First"

    def test_disabled_rules_skipped(self):
        engine = RuleEngine(
            [
                Rule(key="type", value="meeting", destination="First", enabled=False),
                Rule(key="type", value="meeting", destination="Second"),
            ]
        )

        assert engine.match({"type": "meeting"}).destination == "Second"
        assert [r.destination for r in engine.get_matching_rules({"type": "meeting"})] == [
            "Second"
        ]

    def test_no_match(self):
        engine = RuleEngine([Rule(key="type", value="meeting", destination="M")])

        assert engine.match({"type": "note"}) is None
        assert match_frontmatter({"type": "note"}, engine.get_rules()) is None

    def test_rule_management(self):
        engine = RuleEngine()
        a = Rule(key="a", value="1", destination="A")
        b = Rule(key="b", value="1", destination="B")
        c = Rule(key="c", value="1", destination="C")

        engine.add_rule(a)
        engine.add_rule(c)
        engine.insert_rule(1, b)
        assert [r.key for r in engine.get_rules()] == ["a", "b", "c"]

        engine.move_rule(2, 0)
        assert [r.key for r in engine.get_rules()] == ["c", "a", "b"]

        assert engine.remove_rule(1) is a
        assert len(engine) == 2

        engine.disable_rule(0)
        assert not engine.get_rules()[0].enabled
        engine.enable_rule(0)
        assert engine.get_rules()[0].enabled

        engine.clear_rules()
        assert len(engine) == 0

    def test_remove_out_of_range(self):
        with pytest.raises(IndexError):
            RuleEngine().remove_rule(0)

    def test_get_rules_returns_copy(self):
        engine = RuleEngine([Rule(key="a", value="1", destination="A")])
        engine.get_rules().clear()

        assert len(engine) == 1


class TestNormalizeSerializedRule:
    """Test bringing persisted rules to the current layout."""

    def test_legacy_regex_rule(self):
        normalized = normalize_serialized_rule(
            {"key": "tags", "value": "^proj", "destination": "P", "isRegex": True}
        )

        assert normalized["matchType"] == "regex"
        assert normalized["isRegex"] is True
        assert normalized["flags"] == ""
        assert normalized["enabled"] is True

    def test_legacy_plain_rule(self):
        normalized = normalize_serialized_rule(
            {"key": "type", "value": "x", "destination": "X", "isRegex": False, "flags": "i"}
        )

        assert normalized["matchType"] == "equals"
        assert "isRegex" not in normalized
        assert "flags" not in normalized

    def test_missing_fields_defaulted(self):
        normalized = normalize_serialized_rule({})

        assert normalized["key"] == ""
        assert normalized["value"] == ""
        assert normalized["destination"] == ""
        assert normalized["enabled"] is True

    def test_explicit_disabled_kept(self):
        assert normalize_serialized_rule({"key": "a", "enabled": False})["enabled"] is False

    def test_input_not_mutated(self):
        original = {"key": "a", "isRegex": True}
        normalize_serialized_rule(original)

        assert original == {"key": "a", "isRegex": True}

    def test_scalar_fields_become_text(self):
        normalized = normalize_serialized_rule(
            {"key": "year", "value": 2024, "destination": 7, "caseInsensitive": True}
        )

        assert normalized["value"] == "2024"
        assert normalized["destination"] == "7"
        assert normalize_serialized_rule({"key": "done", "value": True})["value"] == "true"
        assert normalize_serialized_rule({"key": "w", "value": 1.5})["value"] == "1.5"

    def test_non_scalar_fields_left_for_validation(self):
        assert normalize_serialized_rule({"key": "a", "value": ["x"]})["value"] == ["x"]


class TestSerialization:
    """Test converting rules to and from settings."""

    def test_serialize_plain_rule(self):
        data = serialize_rule(
            Rule(
                key="type",
                value="meeting",
                destination="Meetings",
                match_type=MatchType.STARTS_WITH,
                case_insensitive=True,
            )
        )

        assert data == {
            "key": "type",
            "value": "meeting",
            "destination": "Meetings",
            "matchType": "starts-with",
            "enabled": True,
            "debug": False,
            "caseInsensitive": True,
        }

    def test_serialize_regex_rule(self):
        rule = Rule(
            key="tags",
            value=re.compile("^proj-", re.IGNORECASE | re.MULTILINE),
            destination="Projects",
            match_type=MatchType.REGEX,
        )

        data = serialize_rule(rule)

        assert data["value"] == "^proj-"
        assert data["isRegex"] is True
        assert data["flags"] == "im"
        assert "caseInsensitive" not in data

    def test_serialize_rules_keeps_order(self):
        rules = [Rule(key=k, value="v", destination="D") for k in ("b", "a", "c")]

        assert [d["key"] for d in serialize_rules(rules)] == ["b", "a", "c"]

    def test_deserialize_regex_with_flags(self):
        rule = deserialize_rule(
            {"key": "tags", "value": "^proj-", "destination": "P", "isRegex": True, "flags": "gi"}
        )

        assert rule.match_type == MatchType.REGEX
        assert rule.value.flags & re.IGNORECASE
        assert rule.flags == "i"
        assert rule_matches(rule, {"tags": "PROJ-1"})

    def test_deserialize_defaults(self):
        rule = deserialize_rule({"key": "type", "value": "m", "destination": "M"})

        assert rule.match_type == MatchType.EQUALS
        assert rule.enabled
        assert not rule.case_insensitive
        assert not rule.debug

    def test_deserialize_rejects_dangerous_regex(self):
        with pytest.raises(ValueError, match="dangerous"):
            deserialize_rule(
                {"key": "a", "value": "(a+)+", "destination": "A", "matchType": "regex"}
            )

    def test_deserialize_rejects_unknown_match_type(self):
        with pytest.raises(ValidationError, match="Invalid match type"):
            deserialize_rule({"key": "a", "value": "b", "destination": "A", "matchType": "fuzzy"})

    def test_round_trip(self):
        rule = Rule(
            key="tags",
            value=re.compile("work", re.IGNORECASE),
            destination="Work/{project}",
            match_type=MatchType.REGEX,
            debug=True,
        )

        restored = deserialize_rule(serialize_rule(rule))

        assert restored.key == rule.key
        assert restored.destination == rule.destination
        assert restored.value.pattern == "work"
        assert restored.flags == "i"
        assert restored.debug

    def test_deserialize_rules_isolates_failures(self, log_handler):
        data = [
            {"key": "a", "value": "x", "destination": "A"},
            {"key": "b", "value": "[", "destination": "B", "isRegex": True},
            {"key": "c", "value": "y", "destination": "C"},
        ]

        successes, errors = deserialize_rules(data)

        assert [(s.index, s.rule.key) for s in successes] == [(0, "a"), (2, "c")]
        assert len(errors) == 1
        assert errors[0].index == 1
        assert errors[0].rule["key"] == "b"
        assert errors[0].message.startswith("Invalid regex syntax")
        assert errors[0].regex_error
        assert any("Failed to load rule" in m for m in log_handler.messages)

    def test_deserialize_numeric_value_matches(self):
        rule = deserialize_rule({"key": "year", "value": 2024, "destination": "Y/{year}"})

        assert rule.value == "2024"
        assert rule_matches(rule, {"year": 2024})
        assert rule_matches(deserialize_rule({"key": "done", "value": True}), {"done": True})

    def test_deserialize_rules_isolates_bad_field_types(self):
        data = [
            {"key": "a", "value": ["x"], "destination": "A"},
            {"key": "b", "value": "y", "destination": "B", "enabled": "yes"},
            {"key": "c", "value": "z", "destination": "C"},
        ]

        successes, errors = deserialize_rules(data)

        assert [s.rule.key for s in successes] == ["c"]
        assert [e.index for e in errors] == [0, 1]
        assert "value must be a scalar" in errors[0].message
        assert "enabled must be boolean" in errors[1].message
        assert not any(e.regex_error for e in errors)

    def test_deserialize_rules_empty(self):
        assert deserialize_rules(None) == ([], [])
