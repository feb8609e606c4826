"""Ports (interfaces) used by the filter engine.

Ports define the minimal contracts for rule storage so that the core can be
reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

from core.models import FilterRule, RuleStats


class RuleStorePort(Protocol):
    """Read-mostly storage operations required by the engine."""

    def list_enabled_rules(self, owner_id: str) -> Iterable[FilterRule]:
        ...

    def increment_match_stats(self, rule_id: str, matched_at: datetime) -> None:
        ...

    def get_rule_stats(self, rule_id: str) -> Optional[RuleStats]:
        ...


class RuleWriterPort(Protocol):
    """Write operations used by the rule-authoring collaborator."""

    def insert_rule(self, rule: FilterRule) -> FilterRule:
        ...

    def update_rule(self, rule: FilterRule) -> FilterRule:
        ...

    def delete_rule(self, owner_id: str, rule_id: str) -> bool:
        ...

    def get_rule(self, owner_id: str, rule_id: str) -> Optional[FilterRule]:
        ...

    def list_rules(self, owner_id: str) -> list[FilterRule]:
        ...

    def set_priority(self, owner_id: str, rule_id: str, priority: int) -> bool:
        ...
