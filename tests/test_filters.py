#!/usr/bin/env python3
"""Tests for relevance filters and sort orders.

Usage: python3 tests/test_filters.py
"""

import copy
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from signal_dashboard.filters import (
    filter_affects_us,
    filter_changes_only,
    is_relevant_to_us,
    sort_by_severity,
    sort_signals_by_date,
)


def test_relevance_by_item_kind():
    assert is_relevant_to_us({"id": "x", "affectsUs": True})
    assert not is_relevant_to_us({"id": "shipyard.bot", "affectsUs": False})
    assert is_relevant_to_us({"id": "A2A", "relevanceToUs": "high"})
    assert not is_relevant_to_us({"id": "A2A", "relevanceToUs": "low"})
    assert is_relevant_to_us({"id": "shipyard.bot"})
    assert not is_relevant_to_us({"id": "moltroad.com"})
    assert not is_relevant_to_us({})


def test_filter_affects_us():
    result = filter_affects_us(
        [{"id": "clawhub.io"}, {"id": "4claw.org"}],
        [{"id": "a", "affectsUs": True}, {"id": "b", "affectsUs": False}],
        [{"id": "MCP", "relevanceToUs": "high"}, {"id": "A2A"}],
    )
    assert result == {
        "spaces": [{"id": "clawhub.io"}],
        "security": [{"id": "a", "affectsUs": True}],
        "protocols": [{"id": "MCP", "relevanceToUs": "high"}],
    }


def test_filter_changes_only():
    data = [{"id": "a"}, {"id": "b"}, {"id": "c"}]
    diff = [{"id": "c", "change": "added"}, {"id": "a", "change": "status"}]
    assert filter_changes_only(data, diff) == [{"id": "a"}, {"id": "c"}]
    assert filter_changes_only(data, None) == []
    assert filter_changes_only(data, {"spaces": []}) == []


def test_sort_by_severity_order():
    alerts = [{"id": s, "severity": s} for s in ("low", "info", "critical", "bogus", "medium", "high")]
    ordered = [a["id"] for a in sort_by_severity(alerts)]
    assert ordered == ["critical", "high", "medium", "low", "info", "bogus"]


def test_sort_by_severity_pins_affects_us():
    alerts = [
        {"id": "h1", "severity": "high", "affectsUs": False},
        {"id": "m1", "severity": "medium", "affectsUs": True},
        {"id": "h2", "severity": "high", "affectsUs": True},
        {"id": "h3", "severity": "high", "affectsUs": False},
    ]
    assert [a["id"] for a in sort_by_severity(alerts)] == ["h2", "h1", "h3", "m1"]


def test_sort_by_severity_stable_and_pure():
    alerts = [{"id": i, "severity": "medium", "affectsUs": False} for i in range(6)]
    before = copy.deepcopy(alerts)
    result = sort_by_severity(alerts)
    assert [a["id"] for a in result] == list(range(6))
    assert result is not alerts
    assert alerts == before


def test_sort_signals_by_date():
    signals = [
        {"summary": "undated one"},
        {"summary": "old", "date": "2026-01-01"},
        {"summary": "new", "date": "2026-02-04"},
        {"summary": "undated two", "date": None},
    ]
    before = copy.deepcopy(signals)
    ordered = [s["summary"] for s in sort_signals_by_date(signals)]
    assert ordered == ["new", "old", "undated one", "undated two"]
    assert signals == before


ALL_TESTS = [
    test_relevance_by_item_kind,
    test_filter_affects_us,
    test_filter_changes_only,
    test_sort_by_severity_order,
    test_sort_by_severity_pins_affects_us,
    test_sort_by_severity_stable_and_pure,
    test_sort_signals_by_date,
]


def main():
    print("Filter Tests")
    print("=" * 50)
    passed = 0
    failed = 0
    for test_fn in ALL_TESTS:
        try:
            test_fn()
            passed += 1
        except Exception as e:
            print(f"  FAIL {test_fn.__name__}: {e}")
            failed += 1

    print(f"\n{passed}/{passed + failed} passed")
    return 0 if failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
