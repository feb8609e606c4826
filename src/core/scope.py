"""Scope matching (core domain)."""

from __future__ import annotations

from core.models import FilterContext, FilterRule, RuleScope


def matches_scope(rule: FilterRule, context: FilterContext) -> bool:
    """Return True when the rule applies to the item's subscription/category.

    An empty id list on a category or subscription scope means "everything".
    Unknown scopes fail closed.
    """

    scope = rule.scope
    if scope == RuleScope.GLOBAL:
        return True

    if scope == RuleScope.SUBSCRIPTION:
        if not rule.subscription_ids:
            return True
        return context.subscription_id in rule.subscription_ids

    if scope == RuleScope.CATEGORY:
        if not rule.category_ids:
            return True
        # Uncategorised items never match a restricted category rule.
        if context.category_id is None:
            return False
        return context.category_id in rule.category_ids

    return False
