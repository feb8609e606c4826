"""Condition evaluation (core domain).

Every branch is total: missing values, unparsable numbers, broken regex
patterns and regex timeouts all evaluate to False instead of raising, so one
misconfigured rule can never abort the evaluation of the others.
"""

from __future__ import annotations

import functools
import logging
from typing import Optional, Union

import regex

from core.config import DEFAULT_REGEX_TIMEOUT_SECONDS
from core.models import FilterContext, FilterRule, MatchCondition, RuleField

LOGGER = logging.getLogger(__name__)


def resolve_field_value(field: Union[RuleField, str], context: FilterContext) -> Optional[str]:
    """Return the context value a rule inspects, or None when absent."""

    if field == RuleField.TITLE:
        return context.title
    if field == RuleField.CONTENT:
        # Plain text is preferred over raw HTML when both are present.
        return context.content_text or context.content or None
    if field == RuleField.AUTHOR:
        return context.author or None
    if field == RuleField.URL:
        return context.url
    return None


@functools.lru_cache(maxsize=256)
def _compile(pattern: str, flags: int) -> regex.Pattern:
    return regex.compile(pattern, flags)


def execute_regex_with_timeout(
    pattern: str,
    value: str,
    case_sensitive: bool = False,
    timeout: float = DEFAULT_REGEX_TIMEOUT_SECONDS,
) -> Optional[bool]:
    """Search ``value`` for ``pattern`` within a time bound.

    Returns None when the pattern does not compile or the search exceeds the
    timeout; callers treat None as a non-match.
    """

    flags = 0 if case_sensitive else regex.IGNORECASE
    try:
        compiled = _compile(pattern, flags)
    except regex.error as exc:
        LOGGER.warning("Invalid regex pattern %r: %s", pattern, exc)
        return None

    try:
        return compiled.search(value, timeout=timeout) is not None
    except TimeoutError:
        LOGGER.warning("Regex %r exceeded %.3fs, treating as no match", pattern, timeout)
        return None


def _parse_number(raw: str) -> Optional[float]:
    try:
        return float(raw.strip())
    except ValueError:
        return None


def evaluate_condition(
    condition: Union[MatchCondition, str],
    value: Optional[str],
    pattern: str,
    case_sensitive: bool = False,
    regex_timeout: float = DEFAULT_REGEX_TIMEOUT_SECONDS,
) -> bool:
    """Apply ``condition`` between a field value and the rule pattern."""

    if value is None:
        return False

    if condition == MatchCondition.REGEX:
        # The pattern keeps its original casing; case folding is done by the
        # regex flag so escapes like \D or \W keep their meaning.
        return bool(execute_regex_with_timeout(pattern, value, case_sensitive, regex_timeout))

    if not case_sensitive:
        value = value.lower()
        pattern = pattern.lower()

    if condition == MatchCondition.CONTAINS:
        return pattern in value
    if condition == MatchCondition.NOT_CONTAINS:
        return pattern not in value
    if condition == MatchCondition.EQUALS:
        return value == pattern
    if condition == MatchCondition.NOT_EQUALS:
        return value != pattern
    if condition == MatchCondition.STARTS_WITH:
        return value.startswith(pattern)
    if condition == MatchCondition.ENDS_WITH:
        return value.endswith(pattern)

    if condition in (MatchCondition.GREATER_THAN, MatchCondition.LESS_THAN):
        operand = _parse_number(value)
        threshold = _parse_number(pattern)
        if operand is None or threshold is None:
            LOGGER.debug("Non-numeric comparison %r vs %r, no match", value, pattern)
            return False
        if condition == MatchCondition.GREATER_THAN:
            return operand > threshold
        return operand < threshold

    LOGGER.debug("Unknown condition %r, no match", condition)
    return False


def rule_matches(
    rule: FilterRule,
    context: FilterContext,
    regex_timeout: float = DEFAULT_REGEX_TIMEOUT_SECONDS,
) -> bool:
    """Resolve the rule's field on ``context`` and evaluate its condition."""

    value = resolve_field_value(rule.field, context)
    return evaluate_condition(
        rule.condition,
        value,
        rule.pattern,
        case_sensitive=rule.case_sensitive,
        regex_timeout=regex_timeout,
    )
