"""Display formatting and lookup tables for snapshot values.

Every lookup is a pure function over a constant table with an explicit
fallback, so unknown values render as neutral gray / default icons instead
of failing.
"""

from __future__ import annotations

import math
from datetime import date

DASH = "—"
FALLBACK_COLOR = "#6b7280"
FALLBACK_ICON = "●"

TRUST_COLORS = {
    "high": "#22c55e",
    "medium-high": "#eab308",
    "medium": "#eab308",
    "low": "#f97316",
    "critical": "#ef4444",
    "avoid": "#dc2626",
}

STATUS_COLORS = {
    "surging": "#22c55e",
    "active": "#3b82f6",
    "steady": "#6b7280",
    "quiet": "#4b5563",
    "warning": "#f97316",
    "down": "#ef4444",
    "critical": "#ef4444",
}

SEVERITY_COLORS = {
    "critical": "#ef4444",
    "high": "#f97316",
    "medium": "#eab308",
    "low": "#3b82f6",
    "info": "#6b7280",
}

STATUS_ICONS = {
    "surging": "▲",
    "active": "●",
    "steady": "◇",
    "warning": "⚠",
    "down": "✕",
    "quiet": "▼",
    "critical": "⚠",
}

SIGNAL_TYPE_ICONS = {
    "surge": "▲",
    "decline": "▼",
    "launch": "★",
    "death": "✕",
    "merge": "●",
    "breach": "⚠",
    "anomaly": "⚠",
    "correction": "↓",
}

SIGNAL_TYPE_LABELS = {
    "surge": "SURGE",
    "decline": "DECLINE",
    "launch": "LAUNCH",
    "death": "DOWN",
    "merge": "MERGE",
    "breach": "BREACH",
    "anomaly": "ANOMALY",
    "correction": "CORRECTION",
}

# Protocol status -> maturity bar width (1-10)
MATURITY_SCORES = {
    "established": 9,
    "growing": 7,
    "emerging": 4,
    "stalled": 3,
    "deprecated": 2,
}

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


# -- Numbers -----------------------------------------------------------------

def format_agent_count(n: int | None) -> str:
    """124 -> "124", 11396 -> "11.4K", 546000 -> "546K", None -> DASH."""
    if n is None:
        return DASH
    if n == 0:
        return "0"
    if n < 1000:
        return str(n)
    if n < 100000:
        return f"{n / 1000:.1f}K"
    return f"{_round(n / 1000)}K"


def format_delta(n: int | None) -> str:
    """4 -> "+4", -12 -> "-12", 10951 -> "+11K", None -> DASH."""
    if n is None:
        return DASH
    if n == 0:
        return "0"
    sign = "+" if n > 0 else ""
    if abs(n) < 1000:
        return f"{sign}{n}"
    return f"{sign}{_round(n / 1000)}K"


def format_percent(n: float | None) -> str:
    """2461 -> "+2,461%", -5 -> "-5%", None -> "0%"."""
    if n is None or (isinstance(n, float) and math.isnan(n)):
        return "0%"
    sign = "+" if n > 0 else "-" if n < 0 else ""
    magnitude = _round(abs(n))
    if magnitude == 0:
        return "0%"
    if magnitude >= 1000:
        return f"{sign}{magnitude:,}%"
    return f"{sign}{magnitude}%"


# -- Colors ------------------------------------------------------------------

def trust_color(trust: str | None) -> str:
    return TRUST_COLORS.get(trust, FALLBACK_COLOR)


def status_color(status: str | None) -> str:
    return STATUS_COLORS.get(status, FALLBACK_COLOR)


def severity_color(severity: str | None) -> str:
    return SEVERITY_COLORS.get(severity, FALLBACK_COLOR)


# -- Icons and labels --------------------------------------------------------

def status_icon(status: str | None) -> str:
    return STATUS_ICONS.get(status, FALLBACK_ICON)


def signal_type_icon(signal_type: str | None) -> str:
    return SIGNAL_TYPE_ICONS.get(signal_type, FALLBACK_ICON)


def signal_type_label(signal_type: str | None) -> str:
    if not signal_type:
        return "UNKNOWN"
    return SIGNAL_TYPE_LABELS.get(signal_type, signal_type.upper())


def trust_label(trust: str | None) -> str:
    if not trust:
        return "UNKNOWN"
    return trust.upper()


def maturity_score(status: str | None) -> int:
    return MATURITY_SCORES.get(status, 5)


def format_date(date_str: str | None) -> str:
    """ISO date to "Feb 4, 2026"; missing or unparseable dates render as a dash."""
    if not date_str:
        return DASH
    try:
        d = date.fromisoformat(date_str[:10])
    except (TypeError, ValueError):
        return DASH
    return f"{MONTHS[d.month - 1]} {d.day}, {d.year}"
