#!/usr/bin/env python3
"""
Crawl Parser: turn a plain-text crawl report into a structured snapshot.

A crawl report is a loosely formatted text file. Section boundaries are
found by their headers, each followed by a dashed rule:

    PULSE ◇ 2026-02-04 ◇ crawl #012     header + inline space list
    SIGNALS                              one icon-prefixed line per signal
    KNOWN SPACES                         multi-line space entries
    NEW SPACES (unverified)              multi-line space entries, isNew
    TRUST NOTES                          "TIER : domain / alias" lines
    BE CAREFUL                           ⚠-separated security warnings
    PROTOCOLS EMERGING                   multi-line protocol entries

The order above is load-bearing: each section's body ends where the next
expected header begins. Every extractor is independent and returns an empty
list when its section is missing or unreadable, so one broken section never
takes down the rest of the parse.

Usage:
  python3 -m signal_dashboard.parser crawls/crawl-012.txt
  python3 -m signal_dashboard.parser crawls/crawl-012.txt -o snapshots/crawl-012.json
  python3 -m signal_dashboard.parser crawls/crawl-012.txt --format yaml --validate
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from pathlib import Path
from typing import Any

import yaml

from .counts import parse_agent_count, round_half_up
from .schema import SCHEMA, validate_snapshot
from .trust import DEFAULT_TIER, parse_trust_tier, parse_trust_tiers
from .vitals import calculate_vitals, empty_vitals

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# Icons and patterns
# ═══════════════════════════════════════════════════════════════

STATUS_ICONS = {
    "▲": "surging",
    "●": "active",
    "◇": "steady",
    "⚠": "warning",
    "✕": "down",
    "▼": "quiet",
}

SIGNAL_ICONS = {
    "▲": "surge",
    "▼": "decline",
    "★": "launch",
    "✕": "death",
    "●": "merge",
    "⚠": "breach",
    "↓": "correction",
}

SIGNAL_SEVERITY = {
    "⚠": "warning",
    "✕": "high",
}

# Icons may carry an emoji variation selector (U+FE0F) when pasted from chat.
_VS = r"\ufe0f?"
_STATUS_ICON_GROUP = "(" + "|".join(STATUS_ICONS) + ")" + _VS
_SIGNAL_ICON_GROUP = "(" + "|".join(sorted(set(STATUS_ICONS) | set(SIGNAL_ICONS))) + ")" + _VS

PULSE_RE = re.compile(r"PULSE\s+◇\s+(\d{4}-\d{2}-\d{2})\s+◇\s+crawl\s+#(\d+)", re.IGNORECASE)

INLINE_SECTION_RE = re.compile(r"PULSE[^\n]+\n-+\n([\s\S]*?)(?=\nSIGNALS|\Z)")
KNOWN_SECTION_RE = re.compile(
    r"KNOWN SPACES\s*\n-+\n([\s\S]*?)(?=\n(?:NEW SPACES|TRUST NOTES|BE CAREFUL)|\n?\Z)")
NEW_SECTION_RE = re.compile(
    r"NEW SPACES[^\n]*\n-+\n([\s\S]*?)(?=\n(?:TRUST NOTES|BE CAREFUL|API ENDPOINTS)|\n?\Z)")
SECURITY_SECTION_RE = re.compile(
    r"BE CAREFUL\s*\n-+\n([\s\S]*?)"
    r"(?=\n(?:API ENDPOINTS|SPACES FOR REFLECTION|PROTOCOLS EMERGING)|\n?\Z)")
SIGNALS_SECTION_RE = re.compile(r"SIGNALS\s*\n-+\n([\s\S]*?)(?=\n(?:KNOWN SPACES|NEW SPACES)|\n?\Z)")
PROTOCOLS_SECTION_RE = re.compile(
    r"PROTOCOLS EMERGING\s*\n-+\n([\s\S]*?)(?=\n[^\n]*\n-{3,}|\n-{3,}|\Z)")

# "domain ▲ status (details)"
INLINE_LINE_RE = re.compile(rf"^(\S+)\s+{_STATUS_ICON_GROUP}\s+([^\s(]+)(?:\s+\(([^)]+)\))?")
# "domain ▲ rest of first line"
KNOWN_LINE_RE = re.compile(rf"^(\S+)\s+{_STATUS_ICON_GROUP}\s+(.+)")
# NEW entries may omit the icon
NEW_LINE_RE = re.compile(rf"^([^\s(]*\.[^\s(]+)\s+(?:{_STATUS_ICON_GROUP})?\s*(.+)")
SIGNAL_LINE_RE = re.compile(rf"^{_SIGNAL_ICON_GROUP}\s+(.+)")
PROTOCOL_LINE_RE = re.compile(r"^([A-Z][A-Za-z0-9._-]*)\s+(.+)")

ENTRY_SPLIT_RE = re.compile(r"\n(?=\S)")
PROTOCOL_SPLIT_RE = re.compile(r"\n(?=[A-Z]\S)")
WARNING_SPLIT_RE = re.compile(r"\n(?=⚠)")
WARNING_PREFIX_RE = re.compile(r"^⚠\ufe0f?\s*")
DEFENSE_RE = re.compile(r"Defense:", re.IGNORECASE)
DOMAIN_RE = re.compile(r"([a-z0-9.-]+\.[a-z]{2,})", re.IGNORECASE)
STARS_RE = re.compile(r"(\d[\d,]*(?:\.\d+)?)(K?)\+?\s+stars", re.IGNORECASE)
PARTNERS_RE = re.compile(r"(\d+)\+?\s+partners", re.IGNORECASE)

SECURITY_KEYWORDS = ("breach", "malicious", "bot invasion")

RELEVANCE_KEYWORDS = tuple(SCHEMA.get("relevance", {}).get("keywords", []))


# ═══════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════

def _normalize(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _collapse(parts: list[str]) -> str:
    """Join description fragments and collapse runs of whitespace."""
    return re.sub(r"\s+", " ", " ".join(parts)).strip()


def _split_entries(body: str) -> list[list[str]]:
    """Split a section body into entries; indented lines continue the previous one."""
    entries = []
    for chunk in ENTRY_SPLIT_RE.split(body):
        chunk = chunk.strip()
        if chunk:
            entries.append(chunk.split("\n"))
    return entries


def parse_status_icon(icon: str | None) -> str:
    return STATUS_ICONS.get(icon or "", "active")


def _security_notes(description: str, flagged: bool = False) -> str | None:
    """The description doubles as the security note when it carries a warning."""
    if flagged or "⚠" in description or any(k in description for k in SECURITY_KEYWORDS):
        return description
    return None


def _make_space(space_id, icon, trust, description, is_new, flagged=False, metrics=None):
    space = {
        "id": space_id,
        "name": space_id.split(".")[0],
        "url": f"https://{space_id}",
        "status": parse_status_icon(icon),
        "trust": trust,
        "agents": parse_agent_count(description),
        "description": description,
        "isNew": is_new,
        "securityNotes": _security_notes(description, flagged),
    }
    if metrics is not None:
        space["metrics"] = metrics
    return space


def slugify(title: str, limit: int = 50) -> str:
    return re.sub(r"[^a-z0-9]+", "-", title.lower())[:limit]


# ═══════════════════════════════════════════════════════════════
# Header
# ═══════════════════════════════════════════════════════════════

def parse_pulse_header(text: str) -> dict | None:
    """Return {"crawl": int, "date": "YYYY-MM-DD"} from the PULSE line, or None."""
    if not text:
        return None
    m = PULSE_RE.search(text)
    if not m:
        return None
    return {"date": m.group(1), "crawl": int(m.group(2))}


# ═══════════════════════════════════════════════════════════════
# Spaces
# ═══════════════════════════════════════════════════════════════

def _parse_inline_spaces(text: str, trust_map: dict[str, str]) -> list[dict]:
    section = INLINE_SECTION_RE.search(text)
    if not section:
        return []

    spaces = []
    for line in section.group(1).strip().split("\n"):
        if not line.strip() or line.startswith("-"):
            continue
        m = INLINE_LINE_RE.match(line)
        if not m:
            continue
        space_id, icon, status_text, details = m.group(1), m.group(2), m.group(3), m.group(4) or ""
        spaces.append(_make_space(
            space_id, icon,
            trust_map.get(space_id, DEFAULT_TIER),
            details,
            is_new=False,
            flagged=status_text == "warning",
        ))
    return spaces


def _parse_entry_section(body: str, trust_map: dict[str, str], line_re: re.Pattern,
                         is_new: bool) -> list[dict]:
    spaces = []
    for lines in _split_entries(body):
        m = line_re.match(lines[0])
        if not m:
            continue
        space_id, icon, rest = m.group(1), m.group(2), m.group(3)

        trust = parse_trust_tier(rest)
        if space_id in trust_map:
            trust = trust_map[space_id]

        description = _collapse([rest] + [l.strip() for l in lines[1:]])
        spaces.append(_make_space(
            space_id, icon or "●", trust, description,
            is_new=is_new,
            metrics=None if is_new else {},
        ))
    return spaces


def parse_spaces(text: str, trust_map: dict[str, str] | None = None) -> list[dict]:
    """Parse spaces from the inline list, KNOWN SPACES and NEW SPACES.

    Duplicate ids across sections are kept as-is; consumers resolve them
    with last-occurrence-wins (see graph.latest_by_id).
    """
    if not text:
        return []
    text = _normalize(text)
    if trust_map is None:
        trust_map = parse_trust_tiers(text)

    spaces = _parse_inline_spaces(text, trust_map)

    known = KNOWN_SECTION_RE.search(text)
    if known:
        spaces.extend(_parse_entry_section(known.group(1), trust_map, KNOWN_LINE_RE, is_new=False))

    new = NEW_SECTION_RE.search(text)
    if new:
        spaces.extend(_parse_entry_section(new.group(1), trust_map, NEW_LINE_RE, is_new=True))

    return spaces


# ═══════════════════════════════════════════════════════════════
# Security warnings
# ═══════════════════════════════════════════════════════════════

def _alert_severity(content: str) -> str:
    if "critical" in content or "exposed" in content or "breach" in content:
        return "critical"
    if "warning" in content or "attack" in content or "invasion" in content:
        return "high"
    return "medium"


def parse_security(text: str) -> list[dict]:
    """Parse the BE CAREFUL section, one alert per ⚠ block."""
    if not text:
        return []
    section = SECURITY_SECTION_RE.search(_normalize(text))
    if not section:
        return []

    alerts = []
    for block in WARNING_SPLIT_RE.split(section.group(1).strip()):
        block = block.strip()
        # Preamble text before the first marker is not an alert
        if not block.startswith("⚠"):
            continue
        lines = block.split("\n")
        title = WARNING_PREFIX_RE.sub("", lines[0]).strip()

        defense_idx = next((i for i, l in enumerate(lines) if DEFENSE_RE.search(l)), -1)
        if defense_idx > 0:
            summary_lines, detail_lines = lines[1:defense_idx], lines[defense_idx:]
        else:
            summary_lines, detail_lines = lines[1:], []

        summary = " ".join(l.strip() for l in summary_lines if l.strip())
        detail = " ".join(l.strip() for l in detail_lines if l.strip())

        content = f"{title} {summary}".lower()
        alerts.append({
            "id": slugify(title),
            "severity": _alert_severity(content),
            "title": title,
            "summary": summary,
            "detail": detail,
            "affectsUs": any(k in content for k in RELEVANCE_KEYWORDS),
            "ourStatus": None,
            "firstSeen": None,
        })
    return alerts


# ═══════════════════════════════════════════════════════════════
# Signals
# ═══════════════════════════════════════════════════════════════

def parse_signals(text: str) -> list[dict]:
    """Parse the SIGNALS section. Unknown icons become "anomaly" signals."""
    if not text:
        return []
    section = SIGNALS_SECTION_RE.search(_normalize(text))
    if not section:
        return []

    signals = []
    for line in section.group(1).split("\n"):
        m = SIGNAL_LINE_RE.match(line.strip())
        if not m:
            continue
        icon, summary = m.group(1), m.group(2).strip()
        domain = DOMAIN_RE.search(summary)
        signals.append({
            "type": SIGNAL_ICONS.get(icon, "anomaly"),
            "space": domain.group(1) if domain else None,
            "summary": summary,
            "severity": SIGNAL_SEVERITY.get(icon, "medium"),
        })
    return signals


# ═══════════════════════════════════════════════════════════════
# Protocols
# ═══════════════════════════════════════════════════════════════

def _protocol_status(description: str) -> str:
    # Later checks overwrite earlier ones: a "stalled" cue beats "established".
    status = "emerging"
    if "Linux Foundation" in description or "production" in description:
        status = "growing"
    if "SOC2" in description or "99." in description:
        status = "established"
    if "collapse" in description or "uncertain" in description:
        status = "stalled"
    return status


def _parse_stars(description: str) -> int | None:
    m = STARS_RE.search(description)
    if not m:
        return None
    value = float(m.group(1).replace(",", ""))
    if m.group(2):
        value *= 1000
    return round_half_up(value)


def parse_protocols(text: str) -> list[dict]:
    """Parse the PROTOCOLS EMERGING section."""
    if not text:
        return []
    section = PROTOCOLS_SECTION_RE.search(_normalize(text))
    if not section:
        return []

    protocols = []
    for chunk in PROTOCOL_SPLIT_RE.split(section.group(1)):
        lines = chunk.strip().split("\n")
        m = PROTOCOL_LINE_RE.match(lines[0])
        if not m:
            continue
        protocol_id = m.group(1)
        description = _collapse([m.group(2)] + [l.strip() for l in lines[1:]])
        partners = PARTNERS_RE.search(description)
        protocols.append({
            "id": protocol_id,
            "name": protocol_id,
            "description": description,
            "status": _protocol_status(description),
            "stars": _parse_stars(description),
            "partners": int(partners.group(1)) if partners else None,
        })
    return protocols


# ═══════════════════════════════════════════════════════════════
# Full parse
# ═══════════════════════════════════════════════════════════════

def empty_snapshot() -> dict[str, Any]:
    return {
        "crawl": None,
        "date": None,
        "spaces": [],
        "protocols": [],
        "security": [],
        "signals": [],
        "vitals": empty_vitals(),
    }


def parse_agentsy(text: Any) -> dict[str, Any]:
    """Parse a full crawl report into a snapshot.

    Never raises. Empty or non-string input yields an empty snapshot; a
    snapshot that fails validation is logged and still returned.
    """
    if not text or not isinstance(text, str):
        return empty_snapshot()

    text = _normalize(text)
    pulse = parse_pulse_header(text) or {}
    spaces = parse_spaces(text)
    protocols = parse_protocols(text)
    security = parse_security(text)
    signals = parse_signals(text)

    logger.debug("Parsed crawl %s: %d spaces, %d protocols, %d alerts, %d signals",
                 pulse.get("crawl"), len(spaces), len(protocols), len(security), len(signals))

    snapshot = {
        "crawl": pulse.get("crawl"),
        "date": pulse.get("date"),
        "spaces": spaces,
        "protocols": protocols,
        "security": security,
        "signals": signals,
        "vitals": calculate_vitals(spaces, security),
    }

    validation = validate_snapshot(snapshot)
    if not validation["valid"]:
        logger.warning("Parser produced invalid snapshot: %s", validation["errors"])

    return snapshot


def load_crawl(path: str | Path) -> dict[str, Any]:
    """Load a snapshot from a crawl .txt file or an already-parsed .json/.yaml file."""
    path = Path(path)
    raw = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return json.loads(raw)
    if path.suffix in (".yaml", ".yml"):
        return yaml.safe_load(raw) or empty_snapshot()
    return parse_agentsy(raw)


# ═══════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════

def dump_snapshot(snapshot: dict, fmt: str = "json") -> str:
    if fmt == "yaml":
        return yaml.dump(snapshot, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return json.dumps(snapshot, indent=2, ensure_ascii=False)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Parse a crawl report into a structured snapshot")
    parser.add_argument("input", help="Path to crawl text file")
    parser.add_argument("-o", "--output", help="Output file path (default: stdout)")
    parser.add_argument("--format", choices=["json", "yaml"], default="json",
                        help="Output format (default: json)")
    parser.add_argument("--validate", action="store_true",
                        help="Validate the snapshot and report violations")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    input_path = Path(args.input)
    if not input_path.is_file():
        print(f"Error: {input_path} not found", file=sys.stderr)
        return 1

    snapshot = parse_agentsy(input_path.read_text(encoding="utf-8"))
    output = dump_snapshot(snapshot, args.format)

    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(f"  Wrote {args.output}")
    else:
        print(output)

    if args.validate:
        result = validate_snapshot(snapshot)
        if result["valid"]:
            print("  ✓ Validation passed")
        else:
            print(f"\n  {len(result['errors'])} validation errors:")
            for e in result["errors"]:
                print(f"    ✗ {e}")
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
