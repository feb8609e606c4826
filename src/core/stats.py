"""Fire-and-forget rule match statistics (core domain)."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Callable, Optional

from core.ports import RuleStorePort

LOGGER = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StatsRecorder:
    """Hands match-counter writes to a background executor.

    ``record_match`` never blocks on the store and never raises; store errors
    are logged from the worker. Pass an explicit executor to control
    scheduling (tests use one that runs tasks inline).
    """

    def __init__(
        self,
        store: RuleStorePort,
        executor: Optional[Executor] = None,
        clock: Callable[[], datetime] = _utc_now,
        max_workers: int = 1,
    ) -> None:
        self._store = store
        self._clock = clock
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="rule-stats"
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def record_match(self, rule_id: str) -> None:
        """Schedule a counter increment for ``rule_id`` and return at once."""

        matched_at = self._clock()
        try:
            future = self._executor.submit(self._write, rule_id, matched_at)
        except RuntimeError:
            # Executor already shut down; stats are best effort.
            LOGGER.warning("Stats executor unavailable, dropping match for %s", rule_id)
            return
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _write(self, rule_id: str, matched_at: datetime) -> None:
        try:
            self._store.increment_match_stats(rule_id, matched_at)
        except Exception:
            LOGGER.exception("Failed to update rule stats for %s", rule_id)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for writes scheduled so far."""

        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        """Flush pending writes and release an executor we created."""

        self.flush()
        if self._owns_executor:
            self._executor.shutdown(wait=True)
