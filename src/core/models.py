"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any storage-specific types. Enum values are the persisted
camelCase strings so rows can be mapped without a translation table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class RuleField(str, Enum):
    """Item field a rule inspects."""

    TITLE = "title"
    CONTENT = "content"
    AUTHOR = "author"
    URL = "url"


class MatchCondition(str, Enum):
    """Comparison applied between the field value and the rule pattern."""

    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    REGEX = "regex"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"


class ExternalServiceType(str, Enum):
    """Third-party services a push action can target."""

    INSTAPAPER = "instapaper"
    NOTION = "notion"


class RuleAction(str, Enum):
    """Effect applied to the decision when a rule matches."""

    MARK_READ = "markRead"
    MARK_STARRED = "markStarred"
    ADD_TAG = "addTag"
    HIGHLIGHT = "highlight"
    PUSH_TO_INSTAPAPER = "pushToInstapaper"
    PUSH_TO_NOTION = "pushToNotion"
    DELETE = "delete"

    @property
    def external_kind(self) -> Optional[ExternalServiceType]:
        """Return the target service for push actions, else None."""

        return _EXTERNAL_KINDS.get(self)


_EXTERNAL_KINDS = {
    RuleAction.PUSH_TO_INSTAPAPER: ExternalServiceType.INSTAPAPER,
    RuleAction.PUSH_TO_NOTION: ExternalServiceType.NOTION,
}


class RuleScope(str, Enum):
    """Which items a rule applies to."""

    GLOBAL = "global"
    CATEGORY = "category"
    SUBSCRIPTION = "subscription"


@dataclass(frozen=True)
class FilterRule:
    """A persisted rule definition.

    ``field``, ``condition``, ``action`` and ``scope`` hold enum members for
    known values. Unknown stored strings are kept verbatim so that evaluation
    can fail closed instead of refusing to load the whole rule set.
    """

    id: str
    owner_id: str
    name: str
    field: Union[RuleField, str]
    condition: Union[MatchCondition, str]
    pattern: str
    action: Union[RuleAction, str]
    description: Optional[str] = None
    enabled: bool = True
    priority: int = 0
    case_sensitive: bool = False
    action_value: Optional[str] = None
    scope: Union[RuleScope, str] = RuleScope.GLOBAL
    subscription_ids: tuple[str, ...] = ()
    category_ids: tuple[str, ...] = ()
    match_count: int = 0
    last_matched_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class FilterContext:
    """Minimal article context used by the filter pipeline."""

    title: str
    url: str
    subscription_id: str
    content: Optional[str] = None
    content_text: Optional[str] = None
    author: Optional[str] = None
    category_id: Optional[str] = None


@dataclass(frozen=True)
class ExternalAction:
    """A push request produced by a matching rule, delivered elsewhere."""

    action: RuleAction
    kind: ExternalServiceType
    value: Optional[str]
    rule_id: str
    rule_name: str


@dataclass
class FilterResult:
    """Decision accumulator for one evaluation.

    Fields only ever move towards "more true" or "more populated".
    """

    should_skip: bool = False
    is_read: bool = False
    is_starred: bool = False
    is_highlighted: bool = False
    tags: list[str] = field(default_factory=list)
    matched_rule_ids: list[str] = field(default_factory=list)
    external_actions: list[ExternalAction] = field(default_factory=list)
    is_filtered: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "shouldSkip": self.should_skip,
            "isRead": self.is_read,
            "isStarred": self.is_starred,
            "isHighlighted": self.is_highlighted,
            "tags": list(self.tags),
            "matchedRuleIds": list(self.matched_rule_ids),
            "externalActions": [
                {
                    "action": item.action.value,
                    "kind": item.kind.value,
                    "value": item.value,
                    "ruleId": item.rule_id,
                    "ruleName": item.rule_name,
                }
                for item in self.external_actions
            ],
            "isFiltered": self.is_filtered,
        }


@dataclass(frozen=True)
class CachedRuleSet:
    """Immutable per-owner snapshot of the priority-sorted active rules."""

    rules: tuple[FilterRule, ...]
    cached_at: float


@dataclass(frozen=True)
class RuleStats:
    """Persisted match statistics for one rule."""

    match_count: int = 0
    last_matched_at: Optional[datetime] = None
