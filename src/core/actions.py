"""Action execution (core domain)."""

from __future__ import annotations

import logging
from typing import Optional

from core.models import ExternalAction, FilterResult, FilterRule, RuleAction

LOGGER = logging.getLogger(__name__)


def split_tags(action_value: Optional[str]) -> list[str]:
    """Split a comma-separated tag list, dropping blanks."""

    if not action_value:
        return []
    return [tag.strip() for tag in action_value.split(",") if tag.strip()]


def apply_action(rule: FilterRule, result: FilterResult) -> None:
    """Apply the rule's action to ``result`` in place.

    Flags are only ever switched on and collections only ever grow.
    Bookkeeping (``is_filtered``, ``matched_rule_ids``) is left to the engine.
    """

    action = rule.action
    if action == RuleAction.MARK_READ:
        result.is_read = True
    elif action == RuleAction.MARK_STARRED:
        result.is_starred = True
    elif action == RuleAction.HIGHLIGHT:
        result.is_highlighted = True
    elif action == RuleAction.ADD_TAG:
        for tag in split_tags(rule.action_value):
            if tag not in result.tags:
                result.tags.append(tag)
    elif action == RuleAction.DELETE:
        result.should_skip = True
    elif isinstance(action, RuleAction) and action.external_kind is not None:
        # Delivery happens outside the engine; we only describe the request.
        result.external_actions.append(
            ExternalAction(
                action=action,
                kind=action.external_kind,
                value=rule.action_value,
                rule_id=rule.id,
                rule_name=rule.name,
            )
        )
    else:
        LOGGER.debug("Rule %s has unknown action %r, ignoring", rule.id, action)
