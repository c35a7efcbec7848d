#!/usr/bin/env python3
"""
Signal Dashboard Report
=======================
Parses a crawl (and optionally the crawl before it), diffs the two and
prints a terminal dashboard: vitals with deltas, security alerts by
severity, signals, protocols and per-space changes.

Usage:
    python3 -m signal_dashboard.report crawls/crawl-012.txt
    python3 -m signal_dashboard.report crawls/crawl-012.txt --previous crawls/crawl-011.txt
    python3 -m signal_dashboard.report crawls/crawl-012.txt --brief
    python3 -m signal_dashboard.report crawls/crawl-012.txt --affects-us --json
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys

import yaml

from .diff import diff_snapshots
from .filters import filter_affects_us, filter_changes_only, sort_by_severity, sort_signals_by_date
from .format import (
    format_agent_count,
    format_date,
    format_delta,
    format_percent,
    maturity_score,
    signal_type_icon,
    signal_type_label,
    status_icon,
    trust_label,
)
from .graph import latest_by_id
from .parser import load_crawl
from .vitals import calculate_vitals

# ---------------------------------------------------------------------------
# ANSI color helpers
# ---------------------------------------------------------------------------

_USE_COLOR = sys.stdout.isatty()


def _c(code: str, text: str) -> str:
    if not _USE_COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def _green(t: str) -> str:
    return _c("32", t)


def _red(t: str) -> str:
    return _c("31", t)


def _yellow(t: str) -> str:
    return _c("33", t)


def _bold(t: str) -> str:
    return _c("1", t)


def _dim(t: str) -> str:
    return _c("2", t)


def _cyan(t: str) -> str:
    return _c("36", t)


_SEVERITY_STYLE = {
    "critical": _red,
    "high": _red,
    "warning": _yellow,
    "medium": _yellow,
    "low": _cyan,
}


def _severity(severity: str | None, text: str) -> str:
    return _SEVERITY_STYLE.get(severity, _dim)(text)


def _delta(n: int | None) -> str:
    text = format_delta(n)
    if n is None or n == 0:
        return _dim(text)
    return _green(text) if n > 0 else _red(text)


def _visible_len(s: str) -> int:
    return len(re.sub(r"\033\[[0-9;]*m", "", s))


def _pad(s: str, width: int) -> str:
    return s + " " * max(0, width - _visible_len(s))


def _trunc(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: width - 2] + ".."


# ---------------------------------------------------------------------------
# Report assembly
# ---------------------------------------------------------------------------

VITALS_ROWS = [
    ("totalSpaces", "Spaces"),
    ("activeSpaces", "Active"),
    ("warningSpaces", "Warning"),
    ("downSpaces", "Down"),
    ("totalAgentsClaimed", "Agents claimed"),
    ("totalAgentsVerified", "Agents verified"),
    ("newSpacesSinceLastCrawl", "New spaces"),
]

_AGENT_FIELDS = {"totalAgentsClaimed", "totalAgentsVerified"}


def scope_snapshot(snapshot: dict, affects_us: bool = False) -> dict:
    """Dedupe spaces by id and, with *affects_us*, keep only relevant items.

    Vitals are recomputed over the scoped spaces and alerts.
    """
    spaces = latest_by_id(snapshot.get("spaces", []))
    security = snapshot.get("security", [])
    protocols = snapshot.get("protocols", [])
    if affects_us:
        scoped = filter_affects_us(spaces, security, protocols)
        spaces, security, protocols = scoped["spaces"], scoped["security"], scoped["protocols"]
    return {
        **snapshot,
        "spaces": spaces,
        "security": security,
        "protocols": protocols,
        "vitals": calculate_vitals(spaces, security),
    }


def build_report(current: dict, previous: dict | None = None, affects_us: bool = False) -> dict:
    """Return {"snapshot", "diff"} for a crawl and its optional predecessor."""
    snapshot = scope_snapshot(current, affects_us)
    baseline = scope_snapshot(previous, affects_us) if previous is not None else None
    return {"snapshot": snapshot, "diff": diff_snapshots(snapshot, baseline)}


def _header(snapshot: dict) -> str:
    crawl = snapshot.get("crawl")
    label = f"crawl #{crawl:03d}" if isinstance(crawl, int) else "crawl #?"
    return f"  Signal Dashboard: {label}  |  {format_date(snapshot.get('date'))}"


def _vitals_lines(vitals_diff: dict) -> list[str]:
    lines = []
    for key, label in VITALS_ROWS:
        entry = vitals_diff.get(key)
        if entry is None:
            continue
        value = format_agent_count(entry["value"]) if key in _AGENT_FIELDS else str(entry["value"])
        lines.append(f"  {label:<18} {value:>8}  {_delta(entry['delta'])}")

    buckets = vitals_diff.get("securityAlerts", {})
    if buckets:
        parts = [_severity(name, f"{name} {entry['value']}") for name, entry in buckets.items()]
        lines.append(f"  {'Alerts':<18} " + "  ".join(parts))
    return lines


def _alert_lines(security: list[dict], security_diff: list[dict]) -> list[str]:
    new_ids = {d["id"] for d in security_diff if d.get("isNew")}
    escalated = {d["id"] for d in security_diff if d.get("escalated")}
    lines = []
    for alert in sort_by_severity(security):
        sev = alert.get("severity") or "info"
        marks = ""
        if alert.get("affectsUs"):
            marks += " " + _bold(_red("[AFFECTS US]"))
        if alert.get("id") in escalated:
            marks += " " + _red("▲ escalated")
        elif alert.get("id") in new_ids:
            marks += " " + _cyan("new")
        lines.append(f"  {_pad(_severity(sev, sev.upper()), 9)} {alert.get('title', '')}{marks}")
        if alert.get("detail"):
            lines.append(f"            {_dim(_trunc(alert['detail'], 70))}")
    return lines


def _signal_lines(signals: list[dict]) -> list[str]:
    lines = []
    for signal in sort_signals_by_date(signals):
        kind = signal.get("type")
        tag = f"{signal_type_icon(kind)} {signal_type_label(kind)}"
        lines.append(f"  {_pad(_severity(signal.get('severity'), tag), 14)} "
                     f"{_trunc(signal.get('summary', ''), 64)}")
    return lines


def _space_change_lines(spaces_diff: list[dict]) -> list[str]:
    lines = []
    for record in spaces_diff:
        change = record.get("change")
        if change == "added":
            space = record["space"]
            lines.append(f"  {_green('+')} {record['id']:<24} {status_icon(space.get('status'))} "
                         f"{space.get('status')}  {trust_label(space.get('trust'))}  "
                         f"{format_agent_count(space.get('agents'))}")
        elif change == "removed":
            lines.append(f"  {_red('-')} {record['id']}")
        elif change == "agents":
            pct = record.get("percentChange")
            pct_text = f" ({format_percent(pct)})" if pct is not None else ""
            lines.append(f"  {_yellow('~')} {record['id']:<24} agents "
                         f"{format_agent_count(record['from'])} → {format_agent_count(record['to'])} "
                         f"{_delta(record['delta'])}{pct_text}")
        else:
            lines.append(f"  {_yellow('~')} {record['id']:<24} {change} "
                         f"{record.get('from')} → {record.get('to')}")
    return lines


def _protocol_lines(protocols: list[dict]) -> list[str]:
    lines = []
    for proto in protocols:
        score = maturity_score(proto.get("status"))
        bar = "#" * score + "." * (10 - score)
        stars = f"  {format_agent_count(proto['stars'])} stars" if proto.get("stars") is not None else ""
        lines.append(f"  {proto.get('id', ''):<16} {bar}  {proto.get('status')}{_dim(stars)}")
    return lines


def format_full_report(report: dict, has_previous: bool = False) -> str:
    """Build the full dashboard as a string."""
    snapshot, diff = report["snapshot"], report["diff"]
    lines: list[str] = [""]
    lines.append(_bold(_header(snapshot)))
    lines.append("  " + "=" * 72)

    lines.append("")
    lines.append(_bold("  VITALS"))
    lines.extend(_vitals_lines(diff["vitals"]))

    lines.append("")
    lines.append(_bold(f"  SECURITY ({len(snapshot['security'])})"))
    lines.extend(_alert_lines(snapshot["security"], diff["security"]) or [_dim("  none")])

    lines.append("")
    lines.append(_bold(f"  SIGNALS ({len(snapshot.get('signals', []))})"))
    lines.extend(_signal_lines(snapshot.get("signals", [])) or [_dim("  none")])

    lines.append("")
    lines.append(_bold(f"  PROTOCOLS ({len(snapshot['protocols'])})"))
    lines.extend(_protocol_lines(snapshot["protocols"]) or [_dim("  none")])

    # Without a baseline every space is "added"; that list is just the snapshot.
    if has_previous:
        changed = filter_changes_only(snapshot["spaces"], diff["spaces"])
        lines.append("")
        lines.append(_bold(f"  SPACE CHANGES ({len(diff['spaces'])} records, {len(changed)} spaces)"))
        lines.extend(_space_change_lines(diff["spaces"]) or [_dim("  no changes")])

    lines.append("")
    return "\n".join(lines)


def format_brief_report(report: dict) -> str:
    """One-screen summary with just the key numbers."""
    snapshot, vitals = report["snapshot"], report["snapshot"]["vitals"]
    alerts = vitals["securityAlerts"]
    affecting = sum(1 for a in snapshot["security"] if a.get("affectsUs") is True)

    lines = ["", _bold(_header(snapshot) + " (brief)")]
    lines.append(f"  Spaces:        {vitals['totalSpaces']} "
                 f"({vitals['activeSpaces']} active, {vitals['warningSpaces']} warning, "
                 f"{vitals['downSpaces']} down, {vitals['newSpacesSinceLastCrawl']} new)")
    lines.append(f"  Agents:        {format_agent_count(vitals['totalAgentsClaimed'])} claimed, "
                 f"{format_agent_count(vitals['totalAgentsVerified'])} verified")
    lines.append(f"  Alerts:        {alerts['critical']} critical, {alerts['high']} high, "
                 f"{alerts['medium']} medium, {alerts['low']} low ({affecting} affect us)")
    lines.append(f"  Signals:       {len(snapshot.get('signals', []))}")
    lines.append(f"  Protocols:     {len(snapshot['protocols'])}")
    lines.append("")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Signal Dashboard -- terminal report for a crawl.",
        epilog="Examples:\n"
               "  signal-report crawl-012.txt                          # full dashboard\n"
               "  signal-report crawl-012.txt --previous crawl-011.txt # with deltas\n"
               "  signal-report crawl-012.txt --brief                  # summary numbers only\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("crawl", help="Crawl text file or snapshot (.json/.yaml).")
    parser.add_argument("--previous", help="Prior crawl to diff against.")
    parser.add_argument("--json", action="store_true", dest="json_output",
                        help="Output {snapshot, diff} as JSON.")
    parser.add_argument("--brief", action="store_true", help="Print only summary numbers.")
    parser.add_argument("--affects-us", action="store_true",
                        help="Only spaces, alerts and protocols relevant to us.")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI color output.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    global _USE_COLOR
    if args.no_color:
        _USE_COLOR = False

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        current = load_crawl(args.crawl)
        previous = load_crawl(args.previous) if args.previous else None
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(_red(f"Error: {e}"), file=sys.stderr)
        return 1

    report = build_report(current, previous, affects_us=args.affects_us)

    if args.json_output:
        print(json.dumps(report, indent=2, default=str, ensure_ascii=False))
    elif args.brief:
        print(format_brief_report(report))
    else:
        print(format_full_report(report, has_previous=previous is not None))
    return 0


if __name__ == "__main__":
    sys.exit(main())
