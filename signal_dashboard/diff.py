#!/usr/bin/env python3
"""
Snapshot Diff: structured comparison between two parsed crawls.

Each collection is keyed by id. Records come out in the current snapshot's
order, followed by removals in the previous snapshot's order. Neither input
is mutated.

Usage:
    python3 -m signal_dashboard.diff crawls/crawl-011.txt crawls/crawl-012.txt
    python3 -m signal_dashboard.diff snapshots/011.json snapshots/012.json --json
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import os
import sys
from typing import Any

import yaml

from .parser import load_crawl

# ANSI colors
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
CYAN = "\033[36m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

SEVERITY_LEVELS = {
    "critical": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
    "info": 0,
}


def severity_level(severity: str | None) -> int:
    """Numeric rank of a severity; unknown severities rank with info."""
    return SEVERITY_LEVELS.get(severity, 0)


def percent_change(delta: int, previous: int | None) -> float | None:
    """delta/previous as a percentage rounded half-up to 2 places, or None without a baseline."""
    if not previous:
        return None
    return math.floor(delta / previous * 10000 + 0.5) / 100


def _index(items: list[dict]) -> dict[Any, dict]:
    return {item.get("id"): item for item in items}


def _field_change(item_id: Any, field: str, old: Any, new: Any) -> dict:
    return {"id": item_id, "change": field, "from": old, "to": new}


# ════════════════════════════════════════════════════
# Collections
# ════════════════════════════════════════════════════

def diff_spaces(current: list[dict], previous: list[dict]) -> list[dict]:
    """Diff two space lists: added / removed / status, trust and agents changes."""
    diffs: list[dict] = []
    prev_map = _index(previous)
    curr_ids = {s.get("id") for s in current}

    for space in current:
        sid = space.get("id")
        prev = prev_map.get(sid)
        if prev is None:
            diffs.append({"id": sid, "change": "added", "space": space})
            continue

        for field in ("status", "trust"):
            if space.get(field) != prev.get(field):
                diffs.append(_field_change(sid, field, prev.get(field), space.get(field)))

        old_agents, new_agents = prev.get("agents"), space.get("agents")
        if old_agents != new_agents:
            delta = (new_agents or 0) - (old_agents or 0)
            record = _field_change(sid, "agents", old_agents, new_agents)
            record["delta"] = delta
            record["percentChange"] = percent_change(delta, old_agents)
            diffs.append(record)

    for prev in previous:
        if prev.get("id") not in curr_ids:
            diffs.append({"id": prev.get("id"), "change": "removed", "space": prev})

    return diffs


def diff_protocols(current: list[dict], previous: list[dict]) -> list[dict]:
    """Diff two protocol lists: added / removed / status and stars changes."""
    diffs: list[dict] = []
    prev_map = _index(previous)
    curr_ids = {p.get("id") for p in current}

    for proto in current:
        pid = proto.get("id")
        prev = prev_map.get(pid)
        if prev is None:
            diffs.append({"id": pid, "change": "added", "protocol": proto})
            continue

        if proto.get("status") != prev.get("status"):
            diffs.append(_field_change(pid, "status", prev.get("status"), proto.get("status")))

        old_stars, new_stars = prev.get("stars"), proto.get("stars")
        if old_stars is not None and new_stars is not None and old_stars != new_stars:
            record = _field_change(pid, "stars", old_stars, new_stars)
            record["delta"] = new_stars - old_stars
            diffs.append(record)

    for prev in previous:
        if prev.get("id") not in curr_ids:
            diffs.append({"id": prev.get("id"), "change": "removed", "protocol": prev})

    return diffs


def diff_security(current: list[dict], previous: list[dict]) -> list[dict]:
    """Diff two alert lists: new / resolved / severity and ourStatus changes."""
    diffs: list[dict] = []
    prev_map = _index(previous)
    curr_ids = {a.get("id") for a in current}

    for alert in current:
        aid = alert.get("id")
        prev = prev_map.get(aid)
        if prev is None:
            diffs.append({"id": aid, "isNew": True, "alert": alert})
            continue

        old_sev, new_sev = prev.get("severity"), alert.get("severity")
        if old_sev != new_sev:
            diffs.append({
                "id": aid,
                "severityChanged": True,
                "from": old_sev,
                "to": new_sev,
                "escalated": severity_level(new_sev) > severity_level(old_sev),
            })

        if alert.get("ourStatus") != prev.get("ourStatus"):
            diffs.append({
                "id": aid,
                "ourStatusChanged": True,
                "from": prev.get("ourStatus"),
                "to": alert.get("ourStatus"),
            })

    for prev in previous:
        if prev.get("id") not in curr_ids:
            diffs.append({"id": prev.get("id"), "resolved": True, "alert": prev})

    return diffs


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def diff_vitals(current: dict, previous: dict | None) -> dict:
    """Pair every numeric vitals field with its delta.

    With no previous vitals every delta is None ("no baseline"), never the
    value itself. Nested count buckets (securityAlerts) are handled one level
    deep, a missing previous key counting as 0.
    """
    has_baseline = previous is not None
    previous = previous or {}
    diff = {}

    for key, value in current.items():
        prev_value = previous.get(key)
        if _is_number(value):
            delta = value - (prev_value or 0) if has_baseline else None
            diff[key] = {"value": value, "delta": delta}
        elif isinstance(value, dict):
            prev_sub = prev_value if isinstance(prev_value, dict) else {}
            diff[key] = {}
            for sub_key, sub_value in value.items():
                delta = sub_value - (prev_sub.get(sub_key) or 0) if has_baseline else None
                diff[key][sub_key] = {"value": sub_value, "delta": delta}

    return diff


def diff_snapshots(current: dict, previous: dict | None = None) -> dict:
    """Diff two snapshots. A None previous reports everything as added/new."""
    if previous is None:
        return {
            "spaces": [{"id": s.get("id"), "change": "added", "space": s} for s in current["spaces"]],
            "security": [{"id": a.get("id"), "isNew": True, "alert": a} for a in current["security"]],
            "protocols": [{"id": p.get("id"), "change": "added", "protocol": p}
                          for p in current["protocols"]],
            "vitals": diff_vitals(current["vitals"], None),
        }

    return {
        "spaces": diff_spaces(current["spaces"], previous["spaces"]),
        "security": diff_security(current["security"], previous["security"]),
        "protocols": diff_protocols(current["protocols"], previous["protocols"]),
        "vitals": diff_vitals(current["vitals"], previous["vitals"]),
    }


# ════════════════════════════════════════════════════
# Output
# ════════════════════════════════════════════════════

def _short(value: Any) -> str:
    return str(value)[:60] if value is not None else "∅"


def _print_changes(records: list[dict], label: str) -> tuple[int, int, int]:
    added = [r for r in records if r.get("change") == "added" or r.get("isNew")]
    removed = [r for r in records if r.get("change") == "removed" or r.get("resolved")]
    changed = [r for r in records if r not in added and r not in removed]
    if not records:
        return 0, 0, 0

    print(f"\n{CYAN}{label} ({GREEN}+{len(added)}{RESET}, {RED}-{len(removed)}{RESET}, "
          f"{YELLOW}~{len(changed)}{RESET}{CYAN}):{RESET}")
    for r in added:
        print(f"  {GREEN}+ {r['id']}{RESET}")
    for r in removed:
        print(f"  {RED}- {r['id']}{RESET}")
    for r in changed:
        field = r.get("change") or ("severity" if r.get("severityChanged") else "ourStatus")
        extra = ""
        if r.get("delta") is not None:
            extra = f" {DIM}({r['delta']:+}"
            if r.get("percentChange") is not None:
                extra += f", {r['percentChange']:+}%"
            extra += f"){RESET}"
        if r.get("escalated"):
            extra += f" {RED}▲ escalated{RESET}"
        print(f"  {YELLOW}~ {r['id']}{RESET} {DIM}{field}:{RESET} "
              f"{RED}{_short(r.get('from'))}{RESET} → {GREEN}{_short(r.get('to'))}{RESET}{extra}")
    return len(added), len(removed), len(changed)


def print_diff(diff: dict, old_name: str, new_name: str) -> None:
    """Print colored diff to terminal."""
    print(f"\n{BOLD}Snapshot Diff: {old_name} → {new_name}{RESET}")
    print("=" * 60)

    total_added = total_removed = total_changed = 0
    for section, label in (("spaces", "Spaces"), ("security", "Security"), ("protocols", "Protocols")):
        n_add, n_rem, n_chg = _print_changes(diff[section], label)
        total_added += n_add
        total_removed += n_rem
        total_changed += n_chg

    moved = {k: v for k, v in diff["vitals"].items() if "value" in v and v["delta"]}
    if moved:
        print(f"\n{CYAN}Vitals:{RESET}")
        for key, v in moved.items():
            color = GREEN if v["delta"] > 0 else RED
            print(f"  {YELLOW}{key}:{RESET} {v['value']} {color}({v['delta']:+}){RESET}")

    print(f"\n{'=' * 60}")
    total = total_added + total_removed + total_changed
    if total == 0:
        print(f"  {DIM}No differences found.{RESET}")
    else:
        print(f"  {GREEN}+{total_added}{RESET} added, {RED}-{total_removed}{RESET} removed, "
              f"{YELLOW}~{total_changed}{RESET} changed")
    print()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Snapshot Diff: structured comparison between two crawls"
    )
    parser.add_argument("old", help="Previous crawl (.txt) or snapshot (.json/.yaml)")
    parser.add_argument("new", help="Current crawl (.txt) or snapshot (.json/.yaml)")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        old_snapshot = load_crawl(args.old)
        new_snapshot = load_crawl(args.new)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"{RED}✗ Failed to load snapshot: {e}{RESET}", file=sys.stderr)
        return 1

    diff = diff_snapshots(new_snapshot, old_snapshot)

    if args.json:
        print(json.dumps(diff, indent=2, default=str, ensure_ascii=False))
    else:
        print_diff(diff, os.path.basename(args.old), os.path.basename(args.new))
    return 0


if __name__ == "__main__":
    sys.exit(main())
