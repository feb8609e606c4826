"""Per-owner cache of active, priority-sorted rules (core domain).

Snapshots are immutable and replaced wholesale: on a miss the store is read
outside the lock and the new snapshot is swapped in under it, so concurrent
misses for the same owner may load twice but never expose a half-built list.
A load that overlaps an invalidation returns its rules without caching them.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Iterable, Optional

from core.config import DEFAULT_CACHE_TTL_SECONDS
from core.models import CachedRuleSet, FilterRule
from core.ports import RuleStorePort

LOGGER = logging.getLogger(__name__)


class RuleLoadError(RuntimeError):
    """Raised when the rule store cannot be read during a cache refresh."""

    def __init__(self, owner_id: str, message: str) -> None:
        super().__init__(f"Failed to load rules for {owner_id}: {message}")
        self.owner_id = owner_id


def sort_rules(rules: Iterable[FilterRule]) -> tuple[FilterRule, ...]:
    """Order rules by descending priority, ties broken by rule id."""

    return tuple(sorted(rules, key=lambda rule: (-rule.priority, rule.id)))


class RuleCache:
    """Time-bounded cache of each owner's enabled rules."""

    def __init__(
        self,
        store: RuleStorePort,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshots: dict[str, CachedRuleSet] = {}
        # Bumped by every invalidation; a load only caches if nothing moved.
        self._generations: dict[str, int] = {}
        self._epoch = 0

    def _generation(self, owner_id: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(owner_id, 0)

    def get_active_rules(self, owner_id: str) -> tuple[FilterRule, ...]:
        """Return the owner's rules, reloading when missing or expired."""

        now = self._clock()
        with self._lock:
            cached = self._snapshots.get(owner_id)
            generation = self._generation(owner_id)
        if cached is not None and now - cached.cached_at < self._ttl:
            return cached.rules

        try:
            loaded = list(self._store.list_enabled_rules(owner_id))
        except Exception as exc:
            # Without rules every decision would be silently wrong, so the
            # failure reaches the caller instead of serving stale data.
            raise RuleLoadError(owner_id, str(exc)) from exc

        rules = sort_rules(rule for rule in loaded if rule.enabled)
        snapshot = CachedRuleSet(rules=rules, cached_at=now)
        with self._lock:
            if self._generation(owner_id) != generation:
                LOGGER.debug("Rules for %s changed during load, not caching", owner_id)
                return rules
            self._snapshots[owner_id] = snapshot
        LOGGER.debug("Loaded %s active rules for %s", len(rules), owner_id)
        return rules

    def snapshot(self, owner_id: str) -> Optional[CachedRuleSet]:
        """Return the current snapshot for an owner, expired or not."""

        with self._lock:
            return self._snapshots.get(owner_id)

    def invalidate(self, owner_id: str) -> None:
        """Drop one owner's snapshot. Safe when nothing is cached."""

        with self._lock:
            removed = self._snapshots.pop(owner_id, None)
            self._generations[owner_id] = self._generations.get(owner_id, 0) + 1
        if removed is not None:
            LOGGER.debug("Rule cache invalidated for %s", owner_id)

    def invalidate_all(self) -> None:
        """Drop every snapshot."""

        with self._lock:
            self._snapshots.clear()
            self._epoch += 1
        LOGGER.debug("Rule cache cleared")
