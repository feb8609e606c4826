"""Rule normalisation and save-time validation (core domain)."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Type, TypeVar, Union

import regex

from core.actions import split_tags
from core.models import (
    FilterRule,
    MatchCondition,
    RuleAction,
    RuleField,
    RuleScope,
)

E = TypeVar("E", bound=Enum)

# Accept both the camelCase config schema and snake_case storage columns.
_ALIASES = {
    "ownerId": "owner_id",
    "userId": "owner_id",
    "isEnabled": "enabled",
    "isActive": "enabled",
    "caseSensitive": "case_sensitive",
    "actionValue": "action_value",
    "subscriptionIds": "subscription_ids",
    "categoryIds": "category_ids",
    "matchCount": "match_count",
    "lastMatchedAt": "last_matched_at",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "fieldType": "field",
    "matchType": "condition",
}


def _coerce_enum(enum_cls: Type[E], value: Any) -> Union[E, str]:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return "" if value is None else str(value)


def _id_list(raw: Any) -> tuple[str, ...]:
    if raw is None or raw == "":
        return ()
    if isinstance(raw, str):
        raw = json.loads(raw)
    return tuple(str(item) for item in raw)


_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


def _flag(raw: Any, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, (bool, int)):
        return bool(raw)
    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"not a boolean: {raw!r}")


def _timestamp(raw: Any) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    return datetime.fromisoformat(str(raw))


def normalize_keys(raw_rule: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase keys onto the snake_case names used internally."""

    return {_ALIASES.get(key, key): value for key, value in raw_rule.items()}


def rule_to_dict(rule: FilterRule) -> dict[str, Any]:
    """Flatten a rule into plain values accepted by ``build_rule``."""

    def _plain(value: Any) -> Any:
        return value.value if isinstance(value, Enum) else value

    return {
        "id": rule.id,
        "owner_id": rule.owner_id,
        "name": rule.name,
        "description": rule.description,
        "enabled": rule.enabled,
        "priority": rule.priority,
        "field": _plain(rule.field),
        "condition": _plain(rule.condition),
        "pattern": rule.pattern,
        "case_sensitive": rule.case_sensitive,
        "action": _plain(rule.action),
        "action_value": rule.action_value,
        "scope": _plain(rule.scope),
        "subscription_ids": list(rule.subscription_ids),
        "category_ids": list(rule.category_ids),
        "match_count": rule.match_count,
        "last_matched_at": rule.last_matched_at,
        "created_at": rule.created_at,
        "updated_at": rule.updated_at,
    }


def determine_scope(raw: Mapping[str, Any]) -> RuleScope:
    """Infer a scope from the stored id lists when none is recorded."""

    if _id_list(raw.get("category_ids")):
        return RuleScope.CATEGORY
    if _id_list(raw.get("subscription_ids")):
        return RuleScope.SUBSCRIPTION
    return RuleScope.GLOBAL


def build_rule(raw_rule: Mapping[str, Any], owner_id: Optional[str] = None) -> FilterRule:
    """Normalise a config entry or storage row into a FilterRule.

    Missing optional fields get their defaults; id lists may be JSON text.
    """

    raw = normalize_keys(raw_rule)
    scope = raw.get("scope")
    return FilterRule(
        id=str(raw.get("id") or ""),
        owner_id=str(raw.get("owner_id") or owner_id or ""),
        name=str(raw.get("name") or ""),
        description=raw.get("description") or None,
        enabled=_flag(raw.get("enabled"), True),
        priority=int(raw.get("priority") or 0),
        field=_coerce_enum(RuleField, raw.get("field", RuleField.TITLE)),
        condition=_coerce_enum(MatchCondition, raw.get("condition", MatchCondition.CONTAINS)),
        pattern=str(raw.get("pattern") or ""),
        case_sensitive=_flag(raw.get("case_sensitive"), False),
        action=_coerce_enum(RuleAction, raw.get("action")),
        action_value=raw.get("action_value") or None,
        scope=_coerce_enum(RuleScope, scope) if scope else determine_scope(raw),
        subscription_ids=_id_list(raw.get("subscription_ids")),
        category_ids=_id_list(raw.get("category_ids")),
        match_count=int(raw.get("match_count") or 0),
        last_matched_at=_timestamp(raw.get("last_matched_at")),
        created_at=_timestamp(raw.get("created_at")),
        updated_at=_timestamp(raw.get("updated_at")),
    )


def build_rules(rules_config: Iterable[Mapping[str, Any]], owner_id: Optional[str] = None) -> List[FilterRule]:
    return [build_rule(rule, owner_id) for rule in rules_config]


@dataclass
class RuleCheck:
    """Outcome of validating a rule before it is saved."""

    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _is_number(value: str) -> bool:
    try:
        return not math.isnan(float(value.strip()))
    except ValueError:
        return False


def validate_rule(rule: FilterRule) -> RuleCheck:
    """Reject rules that could never match as configured.

    The evaluator already treats these as non-matches; catching them here
    gives the author feedback instead of a silently idle rule.
    """

    if not rule.name or not rule.name.strip():
        return RuleCheck("name is required")
    if not rule.owner_id:
        return RuleCheck("owner is required")
    if not isinstance(rule.field, RuleField):
        return RuleCheck(f"unknown field: {rule.field}")
    if not isinstance(rule.condition, MatchCondition):
        return RuleCheck(f"unknown condition: {rule.condition}")
    if not isinstance(rule.action, RuleAction):
        return RuleCheck(f"unknown action: {rule.action}")
    if not isinstance(rule.scope, RuleScope):
        return RuleCheck(f"unknown scope: {rule.scope}")

    if rule.condition == MatchCondition.REGEX:
        try:
            regex.compile(rule.pattern)
        except regex.error as exc:
            return RuleCheck(f"pattern is not a valid regex: {exc}")
    elif rule.condition in (MatchCondition.GREATER_THAN, MatchCondition.LESS_THAN):
        if not _is_number(rule.pattern):
            return RuleCheck("pattern must be numeric for numeric comparisons")
    elif not rule.pattern:
        return RuleCheck("pattern is required")

    if rule.action == RuleAction.ADD_TAG and not split_tags(rule.action_value):
        return RuleCheck("addTag requires at least one tag")

    return RuleCheck()
