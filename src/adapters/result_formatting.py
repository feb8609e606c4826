"""Shared result formatting helpers.

Keeping formatting here prevents drift between the CLI output modes and
keeps decisions readable regardless of how they are printed.
"""

from __future__ import annotations

import json
from typing import Iterable

from rich.table import Table

from core.models import FilterResult, FilterRule


def describe_result(result: FilterResult) -> str:
    """Return a short human-readable summary of one decision."""

    if not result.is_filtered:
        return "no match"

    parts: list[str] = []
    if result.should_skip:
        parts.append("skip")
    if result.is_read:
        parts.append("read")
    if result.is_starred:
        parts.append("starred")
    if result.is_highlighted:
        parts.append("highlighted")
    if result.tags:
        parts.append(f"tags: {', '.join(result.tags)}")
    for action in result.external_actions:
        target = f"{action.kind.value}:{action.value}" if action.value else action.kind.value
        parts.append(f"push: {target}")
    parts.append(f"rules: {', '.join(result.matched_rule_ids)}")
    return "; ".join(parts)


def _format_text(results: dict[str, FilterResult]) -> str:
    lines = []
    for url, result in results.items():
        lines.append(f"{url}\n  {describe_result(result)}")
    return "\n".join(lines)


def _format_json(results: dict[str, FilterResult]) -> str:
    payload = {url: result.to_dict() for url, result in results.items()}
    return json.dumps(payload, indent=2, ensure_ascii=False)


def format_results(results: dict[str, FilterResult], mode: str) -> str:
    """Return batch results formatted for the requested mode."""

    if mode == "text":
        return _format_text(results)
    if mode == "json":
        return _format_json(results)
    raise ValueError(f"Unsupported output format: {mode}")


def build_stats_table(rules: Iterable[FilterRule]) -> Table:
    """Render rule match counters as a rich table."""

    table = Table(title="Filter rule statistics")
    table.add_column("Priority", justify="right")
    table.add_column("Rule")
    table.add_column("Action")
    table.add_column("Enabled")
    table.add_column("Matches", justify="right")
    table.add_column("Last match")

    for rule in rules:
        action = getattr(rule.action, "value", rule.action)
        last = rule.last_matched_at.strftime("%Y-%m-%d %H:%M:%S") if rule.last_matched_at else "-"
        table.add_row(
            str(rule.priority),
            rule.name,
            str(action),
            "yes" if rule.enabled else "no",
            str(rule.match_count),
            last,
        )
    return table
