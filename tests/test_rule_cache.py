from __future__ import annotations

import threading
from datetime import datetime

import pytest

from core.models import FilterRule, MatchCondition, RuleAction, RuleField
from core.rule_cache import RuleCache, RuleLoadError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FakeStore:
    def __init__(self, rules: dict[str, list[FilterRule]]) -> None:
        self.rules = rules
        self.loads: list[str] = []
        self.fail = False

    def list_enabled_rules(self, owner_id: str) -> list[FilterRule]:
        self.loads.append(owner_id)
        if self.fail:
            raise OSError("database is locked")
        return list(self.rules.get(owner_id, []))

    def increment_match_stats(self, rule_id: str, matched_at: datetime) -> None:
        pass

    def get_rule_stats(self, rule_id: str):
        return None


def _rule(rule_id: str, priority: int, enabled: bool = True, owner_id: str = "u1") -> FilterRule:
    return FilterRule(
        id=rule_id,
        owner_id=owner_id,
        name=rule_id,
        field=RuleField.TITLE,
        condition=MatchCondition.CONTAINS,
        pattern="x",
        action=RuleAction.MARK_READ,
        priority=priority,
        enabled=enabled,
    )


def test_rules_sorted_by_priority_then_id() -> None:
    store = FakeStore({"u1": [_rule("b", 5), _rule("c", 10), _rule("a", 5), _rule("d", 1)]})
    cache = RuleCache(store, ttl_seconds=300, clock=FakeClock())

    rules = cache.get_active_rules("u1")

    assert [rule.id for rule in rules] == ["c", "a", "b", "d"]


def test_order_is_stable_across_reloads() -> None:
    store = FakeStore({"u1": [_rule("z", 3), _rule("m", 3), _rule("a", 3)]})
    cache = RuleCache(store, ttl_seconds=300, clock=FakeClock())

    first = [rule.id for rule in cache.get_active_rules("u1")]
    store.rules["u1"].reverse()
    cache.invalidate("u1")
    second = [rule.id for rule in cache.get_active_rules("u1")]

    assert first == second == ["a", "m", "z"]


def test_disabled_rules_are_dropped_from_snapshot() -> None:
    store = FakeStore({"u1": [_rule("on", 1), _rule("off", 2, enabled=False)]})
    cache = RuleCache(store, clock=FakeClock())

    assert [rule.id for rule in cache.get_active_rules("u1")] == ["on"]


def test_snapshot_reused_until_ttl_expires() -> None:
    clock = FakeClock()
    store = FakeStore({"u1": [_rule("a", 1)]})
    cache = RuleCache(store, ttl_seconds=300, clock=clock)

    first = cache.get_active_rules("u1")
    clock.now += 299
    second = cache.get_active_rules("u1")

    assert store.loads == ["u1"]
    assert second is first

    clock.now += 2
    cache.get_active_rules("u1")
    cache.get_active_rules("u1")

    assert store.loads == ["u1", "u1"]
    assert cache.snapshot("u1").cached_at == clock.now


def test_invalidate_only_affects_one_owner() -> None:
    store = FakeStore({"u1": [_rule("a", 1)], "u2": [_rule("b", 1, owner_id="u2")]})
    cache = RuleCache(store, clock=FakeClock())
    cache.get_active_rules("u1")
    cache.get_active_rules("u2")

    cache.invalidate("u1")
    cache.get_active_rules("u1")
    cache.get_active_rules("u2")

    assert store.loads == ["u1", "u2", "u1"]


def test_invalidate_all_and_idempotency() -> None:
    store = FakeStore({"u1": [_rule("a", 1)], "u2": []})
    cache = RuleCache(store, clock=FakeClock())
    cache.invalidate("missing")
    cache.invalidate_all()

    cache.get_active_rules("u1")
    cache.get_active_rules("u2")
    cache.invalidate_all()
    cache.invalidate_all()

    assert cache.snapshot("u1") is None
    assert cache.snapshot("u2") is None


def test_store_failure_propagates_and_is_not_cached() -> None:
    store = FakeStore({"u1": [_rule("a", 1)]})
    store.fail = True
    cache = RuleCache(store, clock=FakeClock())

    with pytest.raises(RuleLoadError) as excinfo:
        cache.get_active_rules("u1")

    assert excinfo.value.owner_id == "u1"
    assert isinstance(excinfo.value.__cause__, OSError)
    assert cache.snapshot("u1") is None

    store.fail = False
    assert [rule.id for rule in cache.get_active_rules("u1")] == ["a"]


class BlockingStore(FakeStore):
    """Holds the first load open until the test releases it."""

    def __init__(self, rules: dict[str, list[FilterRule]]) -> None:
        super().__init__(rules)
        self.entered = threading.Event()
        self.release = threading.Event()

    def list_enabled_rules(self, owner_id: str) -> list[FilterRule]:
        loaded = super().list_enabled_rules(owner_id)
        if len(self.loads) == 1:
            self.entered.set()
            assert self.release.wait(timeout=5)
        return loaded


@pytest.mark.parametrize("invalidate_all", [False, True])
def test_invalidate_during_load_is_not_lost(invalidate_all: bool) -> None:
    store = BlockingStore({"u1": [_rule("old", 1)]})
    cache = RuleCache(store, clock=FakeClock())
    seen: list[list[str]] = []

    worker = threading.Thread(
        target=lambda: seen.append([rule.id for rule in cache.get_active_rules("u1")])
    )
    worker.start()
    assert store.entered.wait(timeout=5)

    store.rules["u1"] = [_rule("new", 1)]
    if invalidate_all:
        cache.invalidate_all()
    else:
        cache.invalidate("u1")
    store.release.set()
    worker.join(timeout=5)

    assert seen == [["old"]]
    assert cache.snapshot("u1") is None
    assert [rule.id for rule in cache.get_active_rules("u1")] == ["new"]
    assert cache.snapshot("u1") is not None
