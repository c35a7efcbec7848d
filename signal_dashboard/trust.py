"""Trust-tier resolution.

Two sources feed a space's trust tier:

    inline      keywords in the entry's own description ("HIGH trust", "MEDIUM+")
    TRUST NOTES a dedicated block of "TIER : domain / alias (annotation)" lines

The notes block always wins; inline keywords are only a first guess.
"""

from __future__ import annotations

import re

DEFAULT_TIER = "medium"

# Raw tier label (uppercased) -> trust value
TIER_MAP = {
    "HIGH": "high",
    "MEDIUM+": "medium-high",
    "MEDIUM-HIGH": "medium-high",
    "MEDIUM": "medium",
    "LOW": "low",
    "CRITICAL": "critical",
    "AVOID": "avoid",
}

# Inline description keywords, checked in order (first hit wins).
INLINE_KEYWORDS = [
    (("high trust",), "high"),
    (("medium-high", "medium+"), "medium-high"),
    (("medium trust",), "medium"),
    (("low trust",), "low"),
    (("critical",), "critical"),
    (("avoid",), "avoid"),
]

TRUST_SECTION_RE = re.compile(r"TRUST NOTES\s*\n-+\n([\s\S]*?)(?:\n\n|\Z)")

TRUST_LINE_RE = re.compile(
    r"^(HIGH|MEDIUM(?:\+|-HIGH)?|LOW|CRITICAL|AVOID)\s*:\s*"
    r"([^\s(]+(?:\s*/\s*[^\s(]+)*)",
    re.IGNORECASE,
)


def resolve_tier(raw: str) -> str:
    """Map a notes-section tier label (any case) to a trust value."""
    return TIER_MAP.get(raw.strip().upper(), DEFAULT_TIER)


def parse_trust_tier(label: str | None) -> str:
    """Guess a trust tier from free description text. Defaults to medium."""
    if not label:
        return DEFAULT_TIER
    normalized = label.lower()
    for keywords, tier in INLINE_KEYWORDS:
        if any(k in normalized for k in keywords):
            return tier
    return DEFAULT_TIER


def parse_trust_tiers(text: str) -> dict[str, str]:
    """Build a domain -> trust-tier map from the TRUST NOTES section.

    Every domain and alias on a line maps to that line's tier. A later line
    naming the same domain overrides an earlier one. Returns an empty dict
    when the section is missing.
    """
    trust_map: dict[str, str] = {}
    if not text:
        return trust_map

    section = TRUST_SECTION_RE.search(text)
    if not section:
        return trust_map

    for line in section.group(1).split("\n"):
        m = TRUST_LINE_RE.match(line.strip())
        if not m:
            continue
        tier = resolve_tier(m.group(1))
        for domain in m.group(2).split("/"):
            domain = domain.strip()
            if domain:
                trust_map[domain] = tier

    return trust_map
