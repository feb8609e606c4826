from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from adapters.result_formatting import build_stats_table, describe_result, format_results
from core.models import (
    ExternalAction,
    ExternalServiceType,
    FilterResult,
    FilterRule,
    MatchCondition,
    RuleAction,
    RuleField,
)


def _result() -> FilterResult:
    return FilterResult(
        should_skip=False,
        is_read=True,
        tags=["ai", "news"],
        matched_rule_ids=["r1", "r2"],
        external_actions=[
            ExternalAction(
                action=RuleAction.PUSH_TO_NOTION,
                kind=ExternalServiceType.NOTION,
                value="db-1",
                rule_id="r2",
                rule_name="Save",
            )
        ],
        is_filtered=True,
    )


def test_describe_result_lists_effects() -> None:
    summary = describe_result(_result())
    assert summary == "read; tags: ai, news; push: notion:db-1; rules: r1, r2"
    assert describe_result(FilterResult()) == "no match"


def test_format_results_json_and_text() -> None:
    results = {"https://example.com/1": _result(), "https://example.com/2": FilterResult()}

    payload = json.loads(format_results(results, "json"))
    assert payload["https://example.com/1"]["tags"] == ["ai", "news"]
    assert payload["https://example.com/2"]["isFiltered"] is False

    text = format_results(results, "text")
    assert "https://example.com/2\n  no match" in text

    with pytest.raises(ValueError):
        format_results(results, "xml")


def test_build_stats_table_rows() -> None:
    rule = FilterRule(
        id="r1",
        owner_id="u1",
        name="Drop ads",
        field=RuleField.TITLE,
        condition=MatchCondition.CONTAINS,
        pattern="ad",
        action=RuleAction.DELETE,
        priority=9,
        match_count=12,
        last_matched_at=datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc),
    )

    table = build_stats_table([rule])

    assert table.row_count == 1
    assert [column.header for column in table.columns][:2] == ["Priority", "Rule"]
