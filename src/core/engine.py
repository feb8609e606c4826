"""Filter orchestration.

The engine is storage-agnostic. It only relies on the rule cache and the
stats recorder, which in turn talk to the store through ports.

Evaluation order for one item:
1) Fetch the owner's cached, priority-sorted rules
2) Skip disabled rules and rules whose scope excludes the item
3) Evaluate the rule condition against the item
4) Apply the action, record the match, notify stats in the background
5) Stop as soon as a delete action has been applied
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from core.actions import apply_action
from core.conditions import rule_matches
from core.config import EngineConfig
from core.models import FilterContext, FilterResult, FilterRule, RuleAction, RuleStats
from core.ports import RuleStorePort
from core.rule_cache import RuleCache
from core.scope import matches_scope
from core.stats import StatsRecorder

LOGGER = logging.getLogger(__name__)


class FilterEngine:
    """Classifies articles against an owner's filter rules."""

    def __init__(
        self,
        store: RuleStorePort,
        config: Optional[EngineConfig] = None,
        cache: Optional[RuleCache] = None,
        stats: Optional[StatsRecorder] = None,
    ) -> None:
        self._store = store
        self._config = config or EngineConfig()
        self._cache = cache or RuleCache(store, ttl_seconds=self._config.cache_ttl_seconds)
        self._stats = stats or StatsRecorder(store, max_workers=self._config.stats_workers)

    @property
    def cache(self) -> RuleCache:
        return self._cache

    def apply_filters(self, owner_id: str, context: FilterContext) -> FilterResult:
        """Evaluate one item and return the accumulated decision.

        Raises ``RuleLoadError`` when the rules cannot be loaded; callers
        should leave the item unclassified and retry later.
        """

        rules = self._cache.get_active_rules(owner_id)
        return self._evaluate(rules, context)

    def apply_filters_batch(
        self, owner_id: str, contexts: Iterable[FilterContext]
    ) -> dict[str, FilterResult]:
        """Evaluate many items for one owner, keyed by item url.

        The rule list is looked up once for the whole batch.
        """

        rules = self._cache.get_active_rules(owner_id)
        results: dict[str, FilterResult] = {}
        for context in contexts:
            results[context.url] = self._evaluate(rules, context)
        return results

    def _evaluate(self, rules: Iterable[FilterRule], context: FilterContext) -> FilterResult:
        result = FilterResult()
        for rule in rules:
            if not rule.enabled:
                continue
            if not matches_scope(rule, context):
                continue
            if not rule_matches(rule, context, self._config.regex_timeout_seconds):
                continue

            apply_action(rule, result)
            result.is_filtered = True
            result.matched_rule_ids.append(rule.id)
            self._stats.record_match(rule.id)
            LOGGER.debug("Rule %s (%s) matched %s", rule.id, rule.name, context.url)

            # Lower-priority rules never run once the item is dropped.
            if rule.action == RuleAction.DELETE:
                break
        return result

    def get_rule_stats(self, rule_id: str) -> RuleStats:
        """Return persisted match statistics, zeroed for unknown rules."""

        stats = self._store.get_rule_stats(rule_id)
        return stats or RuleStats()

    def invalidate(self, owner_id: str) -> None:
        self._cache.invalidate(owner_id)

    def invalidate_all(self) -> None:
        self._cache.invalidate_all()

    def close(self) -> None:
        """Flush pending stats writes."""

        self._stats.close()
