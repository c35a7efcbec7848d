"""Aggregate roll-up statistics ("vitals") over a snapshot's spaces and alerts.

Vitals are never parsed from text. They are derived from a (spaces, security)
pair and can be recomputed at any time, e.g. after a consumer filters spaces.
"""

from __future__ import annotations

from typing import Any

from .schema import SCHEMA, enum_values

VITALS_SCHEMA = SCHEMA.get("vitals", {})
SECURITY_BUCKETS = list(VITALS_SCHEMA.get("security_buckets", ["critical", "high", "medium", "low"]))
ACTIVE_STATUSES = set(VITALS_SCHEMA.get("active_statuses", ["active", "surging"]))
VERIFIED_TRUST = list(VITALS_SCHEMA.get("verified_trust", ["high", "medium-high"]))


def count_by_status(spaces: list[dict]) -> dict[str, int]:
    """Count spaces per known status. Unknown statuses are not counted."""
    counts = {status: 0 for status in enum_values("space", "status")}
    for space in spaces:
        status = space.get("status")
        if status in counts:
            counts[status] += 1
    return counts


def count_by_trust(spaces: list[dict]) -> dict[str, int]:
    """Count spaces per known trust tier. Unknown tiers are not counted."""
    counts = {tier: 0 for tier in enum_values("space", "trust")}
    for space in spaces:
        trust = space.get("trust")
        if trust in counts:
            counts[trust] += 1
    return counts


def sum_agents(spaces: list[dict], trust_filter: list[str] | None = None) -> int:
    """Sum non-null agent counts, optionally only for the given trust tiers."""
    total = 0
    for space in spaces:
        agents = space.get("agents")
        if agents is None:
            continue
        if trust_filter is None or space.get("trust") in trust_filter:
            total += agents
    return total


def empty_vitals() -> dict[str, Any]:
    return calculate_vitals([], [])


def calculate_vitals(spaces: list[dict], security: list[dict]) -> dict[str, Any]:
    """Compute vitals for a (spaces, security) pair.

    Pure and deterministic: the same inputs always produce an equal dict.
    Alerts whose severity is outside the four buckets (e.g. "info") are not
    counted anywhere.
    """
    return {
        "totalSpaces": len(spaces),
        "activeSpaces": sum(1 for s in spaces if s.get("status") in ACTIVE_STATUSES),
        "warningSpaces": sum(1 for s in spaces if s.get("status") == "warning"),
        "downSpaces": sum(1 for s in spaces if s.get("status") == "down"),
        "totalAgentsClaimed": sum_agents(spaces),
        "totalAgentsVerified": sum_agents(spaces, VERIFIED_TRUST),
        "newSpacesSinceLastCrawl": sum(1 for s in spaces if s.get("isNew") is True),
        "securityAlerts": {
            bucket: sum(1 for a in security if a.get("severity") == bucket)
            for bucket in SECURITY_BUCKETS
        },
    }
