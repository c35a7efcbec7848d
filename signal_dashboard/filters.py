"""Relevance filters and sort orders for snapshot collections.

None of these mutate their inputs; sorts return new lists and are stable.
"""

from __future__ import annotations

from .schema import SCHEMA

RELEVANT_SPACES = frozenset(SCHEMA.get("relevance", {}).get("spaces", []))

# Higher sorts first; unknown severities sink below info.
SORT_LEVELS = {
    "critical": 5,
    "high": 4,
    "medium": 3,
    "low": 2,
    "info": 1,
}


def is_relevant_to_us(item: dict) -> bool:
    """Whether an alert, protocol or space concerns the consuming organization."""
    if "affectsUs" in item:
        return item["affectsUs"] is True
    if "relevanceToUs" in item:
        return item["relevanceToUs"] == "high"
    if item.get("id"):
        return item["id"] in RELEVANT_SPACES
    return False


def filter_affects_us(spaces: list[dict], security: list[dict], protocols: list[dict]) -> dict:
    return {
        "spaces": [s for s in spaces if is_relevant_to_us(s)],
        "security": [a for a in security if is_relevant_to_us(a)],
        "protocols": [p for p in protocols if is_relevant_to_us(p)],
    }


def filter_changes_only(data: list[dict], diff: list[dict] | None) -> list[dict]:
    """Keep items whose id appears in a diff record list."""
    if not isinstance(diff, list):
        return []
    changed_ids = {d.get("id") for d in diff}
    return [item for item in data if item.get("id") in changed_ids]


def sort_by_severity(alerts: list[dict]) -> list[dict]:
    """Most severe first; affectsUs alerts lead within the same severity."""
    return sorted(
        alerts,
        key=lambda a: (-SORT_LEVELS.get(a.get("severity"), 0), a.get("affectsUs") is not True),
    )


def sort_signals_by_date(signals: list[dict]) -> list[dict]:
    """Newest first by ISO date; undated signals keep their order at the end."""
    dated = [s for s in signals if s.get("date")]
    undated = [s for s in signals if not s.get("date")]
    return sorted(dated, key=lambda s: s["date"], reverse=True) + undated
