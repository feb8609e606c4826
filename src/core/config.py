"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CACHE_TTL_SECONDS = 5 * 60
DEFAULT_REGEX_TIMEOUT_SECONDS = 0.05


@dataclass(frozen=True)
class EngineConfig:
    """Tuning knobs for the filter engine."""

    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    regex_timeout_seconds: float = DEFAULT_REGEX_TIMEOUT_SECONDS
    stats_workers: int = 1
