"""SQLite storage adapter.

Implements the core rule store ports using a simple SQLite database.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from core.models import FilterRule, RuleStats
from core.rules_engine import build_rule, rule_to_dict

_COLUMNS = (
    "id",
    "owner_id",
    "name",
    "description",
    "enabled",
    "priority",
    "field",
    "condition",
    "pattern",
    "case_sensitive",
    "action",
    "action_value",
    "scope",
    "subscription_ids",
    "category_ids",
    "match_count",
    "last_matched_at",
    "created_at",
    "updated_at",
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _row_values(rule: FilterRule) -> dict:
    data = rule_to_dict(rule)
    data["enabled"] = int(rule.enabled)
    data["case_sensitive"] = int(rule.case_sensitive)
    # Empty lists are stored as NULL so "no restriction" has one representation.
    data["subscription_ids"] = json.dumps(list(rule.subscription_ids)) if rule.subscription_ids else None
    data["category_ids"] = json.dumps(list(rule.category_ids)) if rule.category_ids else None
    for key in ("last_matched_at", "created_at", "updated_at"):
        data[key] = _iso(data[key])
    return data


class SQLiteRuleStore:
    """Thin SQLite wrapper that satisfies the rule store ports."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - filter_rules: rule definitions plus their match statistics
        """

        with self._connect() as conn:
            # Fields:
            # - field/condition/action/scope: camelCase enum values
            # - subscription_ids/category_ids: JSON arrays, NULL when unrestricted
            # - match_count/last_matched_at: best-effort counters written by stats
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS filter_rules (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT,
                    enabled INTEGER NOT NULL DEFAULT 1,
                    priority INTEGER NOT NULL DEFAULT 0,
                    field TEXT NOT NULL,
                    condition TEXT NOT NULL,
                    pattern TEXT NOT NULL,
                    case_sensitive INTEGER NOT NULL DEFAULT 0,
                    action TEXT NOT NULL,
                    action_value TEXT,
                    scope TEXT NOT NULL DEFAULT 'global',
                    subscription_ids TEXT,
                    category_ids TEXT,
                    match_count INTEGER NOT NULL DEFAULT 0,
                    last_matched_at TIMESTAMP,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_filter_rules_owner
                ON filter_rules (owner_id, enabled)
                """
            )

    def list_enabled_rules(self, owner_id: str) -> list[FilterRule]:
        """Return the owner's enabled rules, highest priority first."""

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM filter_rules
                WHERE owner_id = ? AND enabled = 1
                ORDER BY priority DESC, id
                """,
                (owner_id,),
            ).fetchall()
        return [build_rule(dict(row)) for row in rows]

    def list_rules(self, owner_id: str) -> list[FilterRule]:
        """Return every rule for an owner, enabled or not."""

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM filter_rules
                WHERE owner_id = ?
                ORDER BY priority DESC, created_at DESC
                """,
                (owner_id,),
            ).fetchall()
        return [build_rule(dict(row)) for row in rows]

    def get_rule(self, owner_id: str, rule_id: str) -> Optional[FilterRule]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM filter_rules WHERE id = ? AND owner_id = ?",
                (rule_id, owner_id),
            ).fetchone()
        return build_rule(dict(row)) if row else None

    def insert_rule(self, rule: FilterRule) -> FilterRule:
        """Persist a new rule, assigning an id and timestamps."""

        now = datetime.now(timezone.utc)
        saved = replace(
            rule,
            id=rule.id or uuid.uuid4().hex,
            match_count=0,
            last_matched_at=None,
            created_at=now,
            updated_at=now,
        )
        values = _row_values(saved)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO filter_rules ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                tuple(values[column] for column in _COLUMNS),
            )
        return saved

    def update_rule(self, rule: FilterRule) -> FilterRule:
        """Overwrite the editable columns of an existing rule."""

        saved = replace(rule, updated_at=datetime.now(timezone.utc))
        values = _row_values(saved)
        editable = [
            column
            for column in _COLUMNS
            if column not in {"id", "owner_id", "match_count", "last_matched_at", "created_at"}
        ]
        assignments = ", ".join(f"{column} = ?" for column in editable)
        with self._connect() as conn:
            conn.execute(
                f"UPDATE filter_rules SET {assignments} WHERE id = ? AND owner_id = ?",
                tuple(values[column] for column in editable) + (saved.id, saved.owner_id),
            )
        return self.get_rule(saved.owner_id, saved.id) or saved

    def delete_rule(self, owner_id: str, rule_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM filter_rules WHERE id = ? AND owner_id = ?",
                (rule_id, owner_id),
            )
            return cur.rowcount > 0

    def set_priority(self, owner_id: str, rule_id: str, priority: int) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE filter_rules SET priority = ?, updated_at = ?
                WHERE id = ? AND owner_id = ?
                """,
                (priority, datetime.now(timezone.utc).isoformat(), rule_id, owner_id),
            )
            return cur.rowcount > 0

    def increment_match_stats(self, rule_id: str, matched_at: datetime) -> None:
        """Bump the match counter and stamp the last match time."""

        with self._connect() as conn:
            conn.execute(
                """
                UPDATE filter_rules
                SET match_count = match_count + 1, last_matched_at = ?
                WHERE id = ?
                """,
                (matched_at.isoformat(), rule_id),
            )

    def get_rule_stats(self, rule_id: str) -> Optional[RuleStats]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT match_count, last_matched_at FROM filter_rules WHERE id = ?",
                (rule_id,),
            ).fetchone()
        if row is None:
            return None
        last = row["last_matched_at"]
        return RuleStats(
            match_count=int(row["match_count"]),
            last_matched_at=datetime.fromisoformat(last) if last else None,
        )
