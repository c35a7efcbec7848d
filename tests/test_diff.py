#!/usr/bin/env python3
"""Tests for snapshot diffing.

Usage: python3 tests/test_diff.py
"""

import copy
import json
import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from signal_dashboard.diff import (
    diff_protocols,
    diff_security,
    diff_snapshots,
    diff_spaces,
    diff_vitals,
    main as diff_main,
    severity_level,
)
from signal_dashboard.parser import parse_agentsy

FIXTURE = Path(__file__).parent / "fixtures" / "crawl-012.txt"


def _space(sid, **fields):
    space = {"id": sid, "status": "active", "trust": "medium", "agents": None}
    space.update(fields)
    return space


# ════════════════════════════════════════════════════
# Spaces
# ════════════════════════════════════════════════════

def test_identical_spaces_no_diff():
    spaces = [_space("a.io", agents=5), _space("b.io")]
    assert diff_spaces(spaces, copy.deepcopy(spaces)) == []


def test_disjoint_spaces_partition():
    current = [_space("a.io"), _space("b.io")]
    previous = [_space("c.io")]
    diffs = diff_spaces(current, previous)
    assert [(d["id"], d["change"]) for d in diffs] == [
        ("a.io", "added"), ("b.io", "added"), ("c.io", "removed"),
    ]
    assert diffs[2]["space"] == previous[0]


def test_space_field_changes():
    previous = [_space("a.io", status="steady", trust="low")]
    current = [_space("a.io", status="surging", trust="high")]
    diffs = diff_spaces(current, previous)
    assert diffs == [
        {"id": "a.io", "change": "status", "from": "steady", "to": "surging"},
        {"id": "a.io", "change": "trust", "from": "low", "to": "high"},
    ]


def test_agent_delta_and_percent():
    diffs = diff_spaces([_space("shipyard.bot", agents=124)], [_space("shipyard.bot", agents=120)])
    assert diffs[0]["delta"] == 4
    assert diffs[0]["percentChange"] == 3.33

    diffs = diff_spaces([_space("clawnews.org", agents=11396)], [_space("clawnews.org", agents=445)])
    assert diffs[0]["delta"] == 10951
    assert diffs[0]["percentChange"] == 2460.9


def test_agent_change_from_unknown():
    diffs = diff_spaces([_space("a.io", agents=50)], [_space("a.io", agents=None)])
    assert diffs[0]["delta"] == 50
    assert diffs[0]["percentChange"] is None

    diffs = diff_spaces([_space("a.io", agents=None)], [_space("a.io", agents=50)])
    assert diffs[0]["delta"] == -50
    assert diffs[0]["percentChange"] == -100.0


def test_spaces_inputs_not_mutated():
    current = [_space("a.io", agents=1)]
    previous = [_space("a.io", agents=2), _space("b.io")]
    snapshot = json.dumps([current, previous])
    diff_spaces(current, previous)
    assert json.dumps([current, previous]) == snapshot


# ════════════════════════════════════════════════════
# Protocols and security
# ════════════════════════════════════════════════════

def test_protocol_changes():
    previous = [{"id": "A2A", "status": "emerging", "stars": 20000},
                {"id": "OLD", "status": "stalled", "stars": None}]
    current = [{"id": "A2A", "status": "growing", "stars": 21700},
               {"id": "MCP", "status": "established", "stars": None}]
    diffs = diff_protocols(current, previous)
    assert diffs[0] == {"id": "A2A", "change": "status", "from": "emerging", "to": "growing"}
    assert diffs[1]["change"] == "stars"
    assert diffs[1]["delta"] == 1700
    assert diffs[2]["change"] == "added"
    assert diffs[3] == {"id": "OLD", "change": "removed", "protocol": previous[1]}


def test_protocol_stars_need_both_values():
    diffs = diff_protocols([{"id": "A2A", "status": "growing", "stars": 100}],
                           [{"id": "A2A", "status": "growing", "stars": None}])
    assert diffs == []


def test_security_changes():
    previous = [
        {"id": "leak", "severity": "medium", "ourStatus": None},
        {"id": "old", "severity": "low", "ourStatus": "patched"},
        {"id": "calm", "severity": "critical", "ourStatus": "vulnerable"},
    ]
    current = [
        {"id": "leak", "severity": "critical", "ourStatus": "monitoring"},
        {"id": "calm", "severity": "high", "ourStatus": "vulnerable"},
        {"id": "fresh", "severity": "high", "ourStatus": None},
    ]
    diffs = diff_security(current, previous)
    assert diffs[0] == {"id": "leak", "severityChanged": True, "from": "medium",
                        "to": "critical", "escalated": True}
    assert diffs[1] == {"id": "leak", "ourStatusChanged": True, "from": None, "to": "monitoring"}
    assert diffs[2]["escalated"] is False
    assert diffs[3] == {"id": "fresh", "isNew": True, "alert": current[2]}
    assert diffs[4] == {"id": "old", "resolved": True, "alert": previous[1]}


def test_severity_levels():
    assert severity_level("critical") > severity_level("high") > severity_level("medium")
    assert severity_level("medium") > severity_level("low") > severity_level("info")
    assert severity_level("bogus") == severity_level("info")


# ════════════════════════════════════════════════════
# Vitals and snapshots
# ════════════════════════════════════════════════════

VITALS = {
    "totalSpaces": 11,
    "totalAgentsClaimed": 88750,
    "securityAlerts": {"critical": 2, "high": 1, "medium": 1, "low": 0},
}


def test_vitals_without_baseline():
    diff = diff_vitals(VITALS, None)
    assert diff["totalSpaces"] == {"value": 11, "delta": None}
    assert diff["securityAlerts"]["critical"] == {"value": 2, "delta": None}


def test_vitals_against_itself():
    diff = diff_vitals(VITALS, copy.deepcopy(VITALS))
    assert all(v["delta"] == 0 for k, v in diff.items() if k != "securityAlerts")
    assert all(v["delta"] == 0 for v in diff["securityAlerts"].values())


def test_vitals_deltas():
    previous = {"totalSpaces": 9, "totalAgentsClaimed": 80000, "securityAlerts": {"critical": 3}}
    diff = diff_vitals(VITALS, previous)
    assert diff["totalSpaces"]["delta"] == 2
    assert diff["totalAgentsClaimed"]["delta"] == 8750
    assert diff["securityAlerts"]["critical"]["delta"] == -1
    assert diff["securityAlerts"]["high"]["delta"] == 1


def test_diff_snapshots_without_previous():
    snapshot = parse_agentsy(FIXTURE.read_text(encoding="utf-8"))
    diff = diff_snapshots(snapshot)
    assert all(d["change"] == "added" for d in diff["spaces"])
    assert all(d["isNew"] for d in diff["security"])
    assert len(diff["protocols"]) == 4
    assert diff["vitals"]["totalSpaces"]["delta"] is None


def test_diff_snapshots_same_crawl():
    snapshot = parse_agentsy(FIXTURE.read_text(encoding="utf-8"))
    diff = diff_snapshots(snapshot, copy.deepcopy(snapshot))
    assert diff["security"] == []
    assert diff["protocols"] == []
    assert diff["vitals"]["totalAgentsClaimed"] == {"value": 88750, "delta": 0}


def test_cli_json():
    with tempfile.TemporaryDirectory() as d:
        previous = Path(d) / "crawl-011.json"
        previous.write_text(json.dumps(parse_agentsy("")), encoding="utf-8")
        assert diff_main([str(previous), str(FIXTURE), "--json"]) == 0
        assert diff_main([str(previous), str(FIXTURE)]) == 0
        assert diff_main([str(Path(d) / "missing.txt"), str(FIXTURE)]) == 1


ALL_TESTS = [
    test_identical_spaces_no_diff,
    test_disjoint_spaces_partition,
    test_space_field_changes,
    test_agent_delta_and_percent,
    test_agent_change_from_unknown,
    test_spaces_inputs_not_mutated,
    test_protocol_changes,
    test_protocol_stars_need_both_values,
    test_security_changes,
    test_severity_levels,
    test_vitals_without_baseline,
    test_vitals_against_itself,
    test_vitals_deltas,
    test_diff_snapshots_without_previous,
    test_diff_snapshots_same_crawl,
    test_cli_json,
]


def main():
    print("Snapshot Diff Tests")
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
