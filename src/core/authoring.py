"""Rule authoring operations.

Every write goes through validation and finishes by invalidating the
owner's cached rule set; the engine has no other way to notice changes.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from core.models import FilterRule
from core.ports import RuleWriterPort
from core.rule_cache import RuleCache
from core.rules_engine import build_rule, normalize_keys, rule_to_dict, validate_rule

LOGGER = logging.getLogger(__name__)

# Statistics and identity are owned by the store, not by the author.
_READ_ONLY_KEYS = {"id", "owner_id", "match_count", "last_matched_at", "created_at", "updated_at"}


class RuleValidationError(ValueError):
    """Raised when a rule definition is rejected before saving."""


class RuleNotFoundError(LookupError):
    """Raised when a rule id does not exist for the owner."""


class RuleAuthoring:
    """Create, edit and delete rules while keeping the cache coherent."""

    def __init__(self, store: RuleWriterPort, cache: RuleCache) -> None:
        self._store = store
        self._cache = cache

    def list_rules(self, owner_id: str) -> list[FilterRule]:
        return self._store.list_rules(owner_id)

    def get(self, owner_id: str, rule_id: str) -> FilterRule:
        rule = self._store.get_rule(owner_id, rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    def create(self, owner_id: str, data: Mapping[str, Any]) -> FilterRule:
        fields = {k: v for k, v in normalize_keys(data).items() if k not in _READ_ONLY_KEYS}
        rule = self._build(fields, owner_id)
        saved = self._store.insert_rule(rule)
        self._cache.invalidate(owner_id)
        LOGGER.info("Rule created for %s: %s (%s)", owner_id, saved.id, saved.name)
        return saved

    def update(self, owner_id: str, rule_id: str, changes: Mapping[str, Any]) -> FilterRule:
        existing = self.get(owner_id, rule_id)
        merged = rule_to_dict(existing)
        merged.update(
            {k: v for k, v in normalize_keys(changes).items() if k not in _READ_ONLY_KEYS}
        )
        rule = self._build(merged, owner_id)
        saved = self._store.update_rule(rule)
        self._cache.invalidate(owner_id)
        LOGGER.info("Rule updated for %s: %s", owner_id, rule_id)
        return saved

    def delete(self, owner_id: str, rule_id: str) -> None:
        if not self._store.delete_rule(owner_id, rule_id):
            raise RuleNotFoundError(rule_id)
        self._cache.invalidate(owner_id)
        LOGGER.info("Rule deleted for %s: %s", owner_id, rule_id)

    def set_enabled(self, owner_id: str, rule_id: str, enabled: bool) -> FilterRule:
        return self.update(owner_id, rule_id, {"enabled": enabled})

    def toggle(self, owner_id: str, rule_id: str) -> FilterRule:
        existing = self.get(owner_id, rule_id)
        return self.set_enabled(owner_id, rule_id, not existing.enabled)

    def reorder(self, owner_id: str, orders: Iterable[tuple[str, int]]) -> int:
        """Apply (rule_id, priority) pairs and return how many were updated."""

        updated = 0
        for rule_id, priority in orders:
            if self._store.set_priority(owner_id, rule_id, int(priority)):
                updated += 1
        self._cache.invalidate(owner_id)
        return updated

    @staticmethod
    def _build(raw: Mapping[str, Any], owner_id: str) -> FilterRule:
        try:
            rule = build_rule(raw, owner_id=owner_id)
        except ValueError as exc:
            raise RuleValidationError(str(exc)) from exc
        RuleAuthoring._check(rule)
        return rule

    @staticmethod
    def _check(rule: FilterRule) -> None:
        check = validate_rule(rule)
        if not check.ok:
            raise RuleValidationError(check.error)
