#!/usr/bin/env python3
"""
Snapshot Validator
Validates parsed crawl snapshots against SCHEMA.yaml.

Every validator is a pure predicate: it never raises, accepts unknown fields,
and returns {"valid": bool, "errors": [str, ...]}.

Usage: python3 -m signal_dashboard.schema snapshots/crawl-012.json
       python3 -m signal_dashboard.schema snapshots/*.yaml
"""

from __future__ import annotations

import argparse
import json
import os
import re
import sys
from typing import Any, Callable

import yaml

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
SCHEMA_PATH = os.path.join(SCRIPT_DIR, "SCHEMA.yaml")

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def load_yaml(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def load_schema(path: str = SCHEMA_PATH) -> dict:
    return load_yaml(path) or {}


SCHEMA = load_schema()


def enum_values(entity: str, field: str, schema: dict | None = None) -> list[str]:
    """Return the allowed values for ``entity.field`` as a list (empty if undeclared)."""
    schema = schema or SCHEMA
    return list(schema.get("entities", {}).get(entity, {}).get("enums", {}).get(field, []))


def _result(errors: list[str]) -> dict:
    return {"valid": len(errors) == 0, "errors": errors}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_enums(obj: dict, entity: str, err: Callable[[str], None],
                 nullable: tuple[str, ...] = ()) -> None:
    """Check every enum-typed field that is present on *obj*."""
    for field, allowed in SCHEMA.get("entities", {}).get(entity, {}).get("enums", {}).items():
        if field not in obj:
            continue
        value = obj[field]
        if value is None and field in nullable:
            continue
        if value not in allowed:
            suffix = " or null" if field in nullable else ""
            err(f"invalid {field}: {value} (must be one of: {', '.join(allowed)}{suffix})")


def _check_id(obj: dict, err: Callable[[str], None]) -> None:
    oid = obj.get("id")
    if not isinstance(oid, str) or len(oid) == 0:
        err("id is required and must be a non-empty string")


# ════════════════════════════════════════════════════
# Entity validators
# ════════════════════════════════════════════════════

def validate_space(obj: Any) -> dict:
    if not isinstance(obj, dict):
        return _result(["Space must be an object"])

    errors: list[str] = []
    err = errors.append

    _check_id(obj, err)
    _check_enums(obj, "space", err)

    agents = obj.get("agents")
    if agents is not None and (not _is_number(agents) or agents < 0):
        err("agents must be null or a non-negative number")

    if "isNew" in obj and not isinstance(obj["isNew"], bool):
        err("isNew must be a boolean")

    notes = obj.get("securityNotes")
    if notes is not None and not isinstance(notes, str):
        err("securityNotes must be null or a string")

    metrics = obj.get("metrics")
    if metrics is not None and not isinstance(metrics, dict):
        err("metrics must be null or an object")

    return _result(errors)


def validate_protocol(obj: Any) -> dict:
    if not isinstance(obj, dict):
        return _result(["Protocol must be an object"])

    errors: list[str] = []
    err = errors.append

    _check_id(obj, err)
    _check_enums(obj, "protocol", err)

    for field in ("stars", "partners"):
        value = obj.get(field)
        if value is not None and (not _is_int(value) or value < 0):
            err(f"{field} must be null or a non-negative integer")

    return _result(errors)


def validate_security_alert(obj: Any) -> dict:
    if not isinstance(obj, dict):
        return _result(["Security alert must be an object"])

    errors: list[str] = []
    err = errors.append

    if "id" in obj and not isinstance(obj["id"], str):
        err("id must be a string")

    _check_enums(obj, "security", err, nullable=("ourStatus",))

    if "affectsUs" in obj and not isinstance(obj["affectsUs"], bool):
        err("affectsUs must be a boolean")

    first_seen = obj.get("firstSeen")
    if first_seen is not None:
        if not isinstance(first_seen, str):
            err("firstSeen must be an ISO date string if present")
        elif not ISO_DATE_RE.match(first_seen):
            err("firstSeen must be in ISO date format (YYYY-MM-DD)")

    return _result(errors)


def validate_signal(obj: Any) -> dict:
    if not isinstance(obj, dict):
        return _result(["Signal must be an object"])

    errors: list[str] = []
    err = errors.append

    _check_enums(obj, "signal", err)

    space = obj.get("space")
    if space is not None and not isinstance(space, str):
        err("space must be null or a string")

    return _result(errors)


def validate_vitals(obj: Any) -> dict:
    if not isinstance(obj, dict):
        return _result(["Vitals must be an object"])

    errors: list[str] = []
    err = errors.append
    vitals_schema = SCHEMA.get("vitals", {})

    for field in vitals_schema.get("counts", []):
        if field not in obj:
            continue
        value = obj[field]
        if not _is_int(value) or value < 0:
            err(f"{field} must be a non-negative integer")

    if "securityAlerts" in obj:
        buckets = obj["securityAlerts"]
        if not isinstance(buckets, dict):
            err("securityAlerts must be an object")
        else:
            for key in vitals_schema.get("security_buckets", []):
                if key not in buckets:
                    err(f"securityAlerts must have {key} key")
                elif not _is_int(buckets[key]) or buckets[key] < 0:
                    err(f"securityAlerts.{key} must be a non-negative integer")

    return _result(errors)


# ════════════════════════════════════════════════════
# Snapshot validator
# ════════════════════════════════════════════════════

COLLECTIONS = [
    ("spaces", validate_space),
    ("protocols", validate_protocol),
    ("security", validate_security_alert),
    ("signals", validate_signal),
]


def validate_snapshot(obj: Any) -> dict:
    """Validate a full snapshot, including every nested entity and the vitals."""
    if not isinstance(obj, dict):
        return _result(["Snapshot must be an object"])

    errors: list[str] = []
    err = errors.append

    # crawl/date keys are required; null means "no header found"
    if "crawl" not in obj:
        err("crawl is required (integer or null)")
    elif obj["crawl"] is not None and (not _is_int(obj["crawl"]) or obj["crawl"] < 0):
        err("crawl must be a non-negative integer or null")

    if "date" not in obj:
        err("date is required (ISO date string or null)")
    elif obj["date"] is not None and (
            not isinstance(obj["date"], str) or not ISO_DATE_RE.match(obj["date"])):
        err("date must be an ISO date string (YYYY-MM-DD) or null")

    for key, validator in COLLECTIONS:
        items = obj.get(key)
        if not isinstance(items, list):
            err(f"{key} is required and must be an array")
            continue
        for i, item in enumerate(items):
            for e in validator(item)["errors"]:
                err(f"{key}[{i}]: {e}")

    if "vitals" not in obj:
        err("vitals is required")
    else:
        for e in validate_vitals(obj["vitals"])["errors"]:
            err(f"vitals: {e}")

    return _result(errors)


# ════════════════════════════════════════════════════
# CLI
# ════════════════════════════════════════════════════

def load_snapshot(path: str) -> Any:
    """Load a snapshot from a .json or .yaml file."""
    with open(path, encoding="utf-8") as f:
        if path.endswith(".json"):
            return json.load(f)
        return yaml.safe_load(f)


def print_results(filepath: str, result: dict) -> bool:
    name = os.path.basename(filepath)
    errors = result["errors"]

    if result["valid"]:
        print(f"\033[32m✓ {name}: VALID (0 errors)\033[0m")
        return True

    print(f"\n{'═' * 60}")
    print(f"  {name}")
    print(f"{'═' * 60}")
    print(f"\n  \033[31m{len(errors)} ERROR{'S' if len(errors) != 1 else ''}:\033[0m")
    for e in errors:
        print(f"    \033[31m✗\033[0m {e}")
    print()
    return False


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate parsed crawl snapshots")
    parser.add_argument("snapshots", nargs="+", help="Snapshot files (.json or .yaml)")
    parser.add_argument("--json", action="store_true", help="Output results as JSON")
    args = parser.parse_args(argv)

    all_valid = True
    report = {}
    for filepath in args.snapshots:
        try:
            snapshot = load_snapshot(filepath)
        except (OSError, ValueError, yaml.YAMLError) as e:
            print(f"\033[31m✗ {filepath}: Failed to load snapshot: {e}\033[0m")
            all_valid = False
            continue

        result = validate_snapshot(snapshot)
        if args.json:
            report[filepath] = result
        elif not print_results(filepath, result):
            all_valid = False
        if not result["valid"]:
            all_valid = False

    if args.json:
        print(json.dumps(report, indent=2))

    return 0 if all_valid else 1


if __name__ == "__main__":
    sys.exit(main())
