from __future__ import annotations

import logging
import time

import pytest

from core.conditions import (
    evaluate_condition,
    execute_regex_with_timeout,
    resolve_field_value,
    rule_matches,
)
from core.models import FilterContext, FilterRule, MatchCondition, RuleAction, RuleField


def _context(**overrides) -> FilterContext:
    values = {
        "title": "Great Ad Deal",
        "url": "https://example.com/posts/1",
        "subscription_id": "sub-1",
        "content": "<p>Raw body</p>",
        "content_text": "Plain body",
        "author": "Jane",
        "category_id": None,
    }
    values.update(overrides)
    return FilterContext(**values)


def _rule(**overrides) -> FilterRule:
    values = {
        "id": "r1",
        "owner_id": "u1",
        "name": "rule",
        "field": RuleField.TITLE,
        "condition": MatchCondition.CONTAINS,
        "pattern": "ad",
        "action": RuleAction.MARK_READ,
    }
    values.update(overrides)
    return FilterRule(**values)


def test_resolve_content_prefers_plain_text() -> None:
    assert resolve_field_value(RuleField.CONTENT, _context()) == "Plain body"
    assert resolve_field_value(RuleField.CONTENT, _context(content_text=None)) == "<p>Raw body</p>"
    assert resolve_field_value(RuleField.CONTENT, _context(content_text="", content=None)) is None


def test_resolve_missing_author_and_unknown_field() -> None:
    assert resolve_field_value(RuleField.AUTHOR, _context(author="")) is None
    assert resolve_field_value("category", _context()) is None


@pytest.mark.parametrize(
    "condition, pattern, expected",
    [
        (MatchCondition.CONTAINS, "ad deal", True),
        (MatchCondition.NOT_CONTAINS, "ad deal", False),
        (MatchCondition.EQUALS, "great ad deal", True),
        (MatchCondition.NOT_EQUALS, "great ad deal", False),
        (MatchCondition.STARTS_WITH, "GREAT", True),
        (MatchCondition.ENDS_WITH, "deal", True),
        (MatchCondition.ENDS_WITH, "great", False),
    ],
)
def test_string_conditions_case_insensitive(condition, pattern, expected) -> None:
    assert evaluate_condition(condition, "Great Ad Deal", pattern) is expected


def test_case_sensitive_comparisons_keep_casing() -> None:
    assert evaluate_condition(MatchCondition.CONTAINS, "Great Ad Deal", "ad", case_sensitive=True) is False
    assert evaluate_condition(MatchCondition.CONTAINS, "Great Ad Deal", "Ad", case_sensitive=True) is True


def test_missing_value_never_matches_even_negated_conditions() -> None:
    assert evaluate_condition(MatchCondition.NOT_CONTAINS, None, "x") is False
    assert evaluate_condition(MatchCondition.NOT_EQUALS, None, "x") is False


def test_regex_searches_anywhere() -> None:
    assert evaluate_condition(MatchCondition.REGEX, "Release v2.10 is out", r"v\d+\.\d+") is True
    assert evaluate_condition(MatchCondition.REGEX, "nothing here", r"v\d+\.\d+") is False


def test_regex_respects_case_sensitivity() -> None:
    assert evaluate_condition(MatchCondition.REGEX, "BREAKING news", r"^breaking") is True
    assert evaluate_condition(MatchCondition.REGEX, "BREAKING news", r"^breaking", case_sensitive=True) is False


def test_invalid_regex_is_a_logged_non_match(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="core.conditions"):
        assert evaluate_condition(MatchCondition.REGEX, "anything", "[invalid") is False
    assert "Invalid regex pattern" in caplog.text
    assert execute_regex_with_timeout("[invalid", "anything") is None


def test_catastrophic_regex_times_out_as_non_match(caplog) -> None:
    value = "a" * 5000 + "!"
    pattern = r"(\w+\s?)+$"

    started = time.monotonic()
    with caplog.at_level(logging.WARNING, logger="core.conditions"):
        assert execute_regex_with_timeout(pattern, value, timeout=0.05) is None
        assert evaluate_condition(MatchCondition.REGEX, value, pattern, regex_timeout=0.05) is False

    assert time.monotonic() - started < 5
    assert "exceeded" in caplog.text


@pytest.mark.parametrize(
    "condition, value, pattern, expected",
    [
        (MatchCondition.GREATER_THAN, "150", "100", True),
        (MatchCondition.GREATER_THAN, "100", "100", False),
        (MatchCondition.LESS_THAN, " 3.5 ", "4", True),
        (MatchCondition.LESS_THAN, "-1e3", "0", True),
        (MatchCondition.GREATER_THAN, "42abc", "100", False),
        (MatchCondition.LESS_THAN, "42", "abc", False),
        (MatchCondition.GREATER_THAN, "nan", "1", False),
    ],
)
def test_numeric_conditions(condition, value, pattern, expected) -> None:
    assert evaluate_condition(condition, value, pattern) is expected


def test_unknown_condition_is_false() -> None:
    assert evaluate_condition("fuzzy", "value", "value") is False


def test_rule_matches_uses_configured_field() -> None:
    rule = _rule(field=RuleField.URL, condition=MatchCondition.STARTS_WITH, pattern="https://example.com")
    assert rule_matches(rule, _context()) is True
    assert rule_matches(_rule(field=RuleField.AUTHOR, pattern="jane"), _context()) is True
    assert rule_matches(_rule(field=RuleField.AUTHOR, pattern="jane"), _context(author=None)) is False
