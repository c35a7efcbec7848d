"""Agent-count extraction from free-form crawl text.

Crawl descriptions quote sizes in many shapes: "124 agents", "11,396 agents
claimed", "50-70K DAU", "4.2K skill installs", "120+ ERC-8004 verified agents".
``parse_agent_count`` tries each shape in a fixed order and returns the first
hit as a non-negative integer, or None when nothing usable is present.
"""

from __future__ import annotations

import math
import re

# -- Patterns, in resolution order -------------------------------------------

NO_ACTIVITY_RE = re.compile(r"no visible activity|no agents|empty", re.IGNORECASE)

# "50-70K" -> upper bound of the range
RANGE_K_RE = re.compile(r"(\d+)-(\d+)K", re.IGNORECASE)

# "4.2K", "42K+"
DECIMAL_K_RE = re.compile(r"(\d+(?:\.\d+)?)K\+?", re.IGNORECASE)

UNITS = "agents|users|instances|members|posts"

# "11,396 agents"
GROUPED_RE = re.compile(rf"(\d[\d,]*)\+?\s*(?:{UNITS})", re.IGNORECASE)

# "120+ ERC-8004" (registry-verified counts name the standard, not a unit)
SIMPLE_RE = re.compile(r"(\d+)\+?\s*(?:agents|users|instances|members|ERC-8004)", re.IGNORECASE)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (never banker's rounding)."""
    return int(math.floor(value + 0.5))


def parse_agent_count(text: str | None) -> int | None:
    """Extract a count from *text*.

    Returns None both for "no activity" phrasing and for text with no
    recognizable count. Zero is only returned when the text says zero.
    """
    if not text or not isinstance(text, str):
        return None

    if NO_ACTIVITY_RE.search(text):
        return None

    m = RANGE_K_RE.search(text)
    if m:
        return int(m.group(2)) * 1000

    m = DECIMAL_K_RE.search(text)
    if m:
        return round_half_up(float(m.group(1)) * 1000)

    m = GROUPED_RE.search(text)
    if m:
        return int(m.group(1).replace(",", ""))

    m = SIMPLE_RE.search(text)
    if m:
        return int(m.group(1))

    return None
