#!/usr/bin/env python3
"""Tests for agent-count extraction.

Usage: python3 tests/test_counts.py
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from signal_dashboard.counts import parse_agent_count, round_half_up


def test_range_takes_upper_bound():
    assert parse_agent_count("50-70K DAU") == 70000


def test_decimal_thousands():
    assert parse_agent_count("4.2K skill installs") == 4200
    assert parse_agent_count("21.7K stars") == 21700


def test_plus_suffixed_thousands():
    assert parse_agent_count("42K+ instances exposed") == 42000


def test_grouped_digits():
    assert parse_agent_count("11,396 agents claimed") == 11396


def test_simple_count_with_unit():
    assert parse_agent_count("124 agents") == 124
    assert parse_agent_count("64 members across three congregations") == 64


def test_registry_verified_count():
    assert parse_agent_count("120+ ERC-8004 verified agents") == 120


def test_no_activity_is_none():
    assert parse_agent_count("no visible activity") is None
    assert parse_agent_count("board is empty, 40 agents left") is None


def test_no_count_is_none():
    assert parse_agent_count("theology forum") is None
    assert parse_agent_count("") is None
    assert parse_agent_count(None) is None
    assert parse_agent_count(1234) is None


def test_explicit_zero():
    assert parse_agent_count("0 agents") == 0


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2


ALL_TESTS = [
    test_range_takes_upper_bound,
    test_decimal_thousands,
    test_plus_suffixed_thousands,
    test_grouped_digits,
    test_simple_count_with_unit,
    test_registry_verified_count,
    test_no_activity_is_none,
    test_no_count_is_none,
    test_explicit_zero,
    test_round_half_up,
]


def main():
    print("Agent Count Tests")
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
