from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from datetime import datetime, timezone

from core.stats import StatsRecorder

MATCHED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


class ImmediateExecutor(Executor):
    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class FakeStore:
    def __init__(self, fail: bool = False) -> None:
        self.increments: list[tuple[str, datetime]] = []
        self.fail = fail

    def increment_match_stats(self, rule_id: str, matched_at: datetime) -> None:
        if self.fail:
            raise OSError("disk full")
        self.increments.append((rule_id, matched_at))


def test_record_match_writes_through_executor() -> None:
    store = FakeStore()
    recorder = StatsRecorder(store, executor=ImmediateExecutor(), clock=lambda: MATCHED_AT)

    recorder.record_match("r1")
    recorder.record_match("r1")

    assert store.increments == [("r1", MATCHED_AT), ("r1", MATCHED_AT)]


def test_store_errors_are_logged_and_swallowed(caplog) -> None:
    recorder = StatsRecorder(FakeStore(fail=True), executor=ImmediateExecutor())

    with caplog.at_level(logging.ERROR, logger="core.stats"):
        recorder.record_match("r1")

    assert "Failed to update rule stats for r1" in caplog.text


def test_background_executor_flush_and_close() -> None:
    store = FakeStore()
    recorder = StatsRecorder(store, clock=lambda: MATCHED_AT)

    for rule_id in ("a", "b", "c"):
        recorder.record_match(rule_id)
    recorder.close()

    assert sorted(rule_id for rule_id, _ in store.increments) == ["a", "b", "c"]


def test_record_after_close_is_dropped(caplog) -> None:
    store = FakeStore()
    recorder = StatsRecorder(store)
    recorder.close()

    with caplog.at_level(logging.WARNING, logger="core.stats"):
        recorder.record_match("late")

    assert store.increments == []
    assert "dropping match for late" in caplog.text
