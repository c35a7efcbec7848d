#!/usr/bin/env python3
"""Force-directed layout for the space graph.

Positions spaces on a 2D canvas by simulating three forces:

    repulsion   every node pair pushes apart, COULOMB / distance²
    springs     edge endpoints pull toward SPRING_LENGTH apart
    gravity     every node is pulled to the canvas center, scaled by its
                trust tier (high trust sits in the middle, avoid drifts out)

Velocities are damped each step and positions are clamped to the canvas.
``step_simulation`` is pure: it returns a new GraphState and leaves its input
untouched, so a run can be handed to a worker thread as one unit of work.

Usage:
    python3 -m signal_dashboard.graph crawls/crawl-012.txt
    python3 -m signal_dashboard.graph crawls/crawl-012.txt --edges edges.yaml --json
    python3 -m signal_dashboard.graph crawls/crawl-012.txt --width 1200 --height 900
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import random
import sys
from pathlib import Path
from typing import Any

import yaml

from .format import trust_color
from .parser import load_crawl

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_RADIUS = 8
MAX_RADIUS = 40
# Largest agent count seen across crawls; anything above it renders at MAX_RADIUS.
RADIUS_CEILING = 546000

COULOMB_CONSTANT = 5000     # repulsion strength
SPRING_CONSTANT = 0.01      # attraction strength
SPRING_LENGTH = 100         # ideal edge length
DAMPING = 0.85              # velocity damping per step
GRAVITY_STRENGTH = 0.5      # base pull toward center
ENERGY_THRESHOLD = 0.1      # convergence threshold
MIN_DISTANCE = 0.1

DEFAULT_WIDTH = 800
DEFAULT_HEIGHT = 600
INITIAL_SPREAD = 200        # initial positions: center ± INITIAL_SPREAD / 2

TRUST_GRAVITY = {
    "high": 1.0,
    "medium-high": 0.8,
    "medium": 0.5,
    "low": 0.2,
    "critical": 0.1,
    "avoid": 0.0,
}
DEFAULT_GRAVITY = TRUST_GRAVITY["medium"]


# ---------------------------------------------------------------------------
# Node sizing and gravity
# ---------------------------------------------------------------------------

def get_node_radius(agents: int | None) -> float:
    """Map an agent count onto [MIN_RADIUS, MAX_RADIUS] on a log scale."""
    if agents is None or agents <= 0:
        return MIN_RADIUS

    log_value = math.log(agents + 1)
    log_min = math.log(1)
    log_max = math.log(RADIUS_CEILING + 1)

    normalized = (log_value - log_min) / (log_max - log_min)
    radius = MIN_RADIUS + normalized * (MAX_RADIUS - MIN_RADIUS)
    return min(radius, MAX_RADIUS)


def get_trust_gravity(trust: str | None) -> float:
    """Center-gravity multiplier for a trust tier; unknown tiers get medium's."""
    return TRUST_GRAVITY.get(trust, DEFAULT_GRAVITY)


# ---------------------------------------------------------------------------
# Graph construction
# ---------------------------------------------------------------------------

def latest_by_id(spaces: list[dict]) -> list[dict]:
    """Collapse duplicate ids, keeping the last occurrence of each.

    The parser keeps duplicates (a space can be listed inline and again under
    KNOWN SPACES); graph and display consumers resolve them here. Each id
    keeps the position of its first appearance.
    """
    by_id: dict[str, dict] = {}
    for space in spaces:
        by_id[space.get("id")] = space
    return list(by_id.values())


def normalize_edges(raw_edges: list[Any] | None) -> list[dict]:
    """Return edges as {"source", "target", "type"} dicts.

    Accepts 'source'/'target' or 'from'/'to' keys; entries missing either
    endpoint are dropped.
    """
    edges: list[dict] = []
    for item in raw_edges or []:
        if not isinstance(item, dict):
            continue
        src = item.get("source") or item.get("from")
        tgt = item.get("target") or item.get("to")
        if src and tgt:
            edge = {"source": str(src), "target": str(tgt)}
            if item.get("type"):
                edge["type"] = str(item["type"])
            edges.append(edge)
    return edges


def create_graph(spaces: list[dict], edges: list[dict], width: float = DEFAULT_WIDTH,
                 height: float = DEFAULT_HEIGHT, rng: random.Random | None = None) -> dict:
    """Build the initial GraphState, one node per unique space id.

    Nodes start at random positions near the canvas center with zero
    velocity. Layout fields (x, y, vx, vy, fx, fy, radius) override any
    same-named space field. Pass *rng* for reproducible placement.
    """
    rng = rng or random.Random()
    width = width or DEFAULT_WIDTH
    height = height or DEFAULT_HEIGHT
    center_x = width / 2
    center_y = height / 2

    nodes = []
    for space in latest_by_id(spaces):
        nodes.append({
            **space,
            "x": center_x + (rng.random() - 0.5) * INITIAL_SPREAD,
            "y": center_y + (rng.random() - 0.5) * INITIAL_SPREAD,
            "vx": 0.0,
            "vy": 0.0,
            "fx": 0.0,
            "fy": 0.0,
            "radius": get_node_radius(space.get("agents")),
        })

    return {
        "nodes": nodes,
        "edges": list(edges),
        "width": width,
        "height": height,
        "energy": math.inf,
    }


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

def _separation(a: dict, b: dict) -> tuple[float, float, float]:
    """Vector a->b and its length, floored at MIN_DISTANCE.

    Coincident nodes get an arbitrary +x direction so they can separate.
    """
    dx = b["x"] - a["x"]
    dy = b["y"] - a["y"]
    dist = math.sqrt(dx * dx + dy * dy)
    if dist == 0:
        return MIN_DISTANCE, 0.0, MIN_DISTANCE
    if dist < MIN_DISTANCE:
        scale = MIN_DISTANCE / dist
        return dx * scale, dy * scale, MIN_DISTANCE
    return dx, dy, dist


def _apply_repulsion(nodes: list[dict]) -> None:
    for i in range(len(nodes)):
        n1 = nodes[i]
        for j in range(i + 1, len(nodes)):
            n2 = nodes[j]
            dx, dy, dist = _separation(n1, n2)
            force = COULOMB_CONSTANT / (dist * dist)
            fx = dx / dist * force
            fy = dy / dist * force
            n1["fx"] -= fx
            n1["fy"] -= fy
            n2["fx"] += fx
            n2["fy"] += fy


def _apply_springs(nodes: list[dict], edges: list[dict]) -> None:
    by_id = {n.get("id"): n for n in nodes}
    for edge in edges:
        source = by_id.get(edge.get("source"))
        target = by_id.get(edge.get("target"))
        # Dangling edges are ignored
        if source is None or target is None or source is target:
            continue
        dx, dy, dist = _separation(source, target)
        force = SPRING_CONSTANT * (dist - SPRING_LENGTH)
        fx = dx / dist * force
        fy = dy / dist * force
        source["fx"] += fx
        source["fy"] += fy
        target["fx"] -= fx
        target["fy"] -= fy


def _apply_gravity(nodes: list[dict], center_x: float, center_y: float) -> None:
    for node in nodes:
        gravity = GRAVITY_STRENGTH * get_trust_gravity(node.get("trust"))
        node["fx"] += (center_x - node["x"]) * gravity * 0.01
        node["fy"] += (center_y - node["y"]) * gravity * 0.01


def step_simulation(state: dict) -> dict:
    """Advance the simulation one step and return the new GraphState."""
    width, height = state["width"], state["height"]

    nodes = [dict(node, fx=0.0, fy=0.0) for node in state["nodes"]]

    _apply_repulsion(nodes)
    _apply_springs(nodes, state["edges"])
    _apply_gravity(nodes, width / 2, height / 2)

    energy = 0.0
    for node in nodes:
        node["vx"] = (node["vx"] + node["fx"]) * DAMPING
        node["vy"] = (node["vy"] + node["fy"]) * DAMPING
        node["x"] += node["vx"]
        node["y"] += node["vy"]

        # Hard boundary: clamp position, keep velocity
        pad = node["radius"]
        node["x"] = max(pad, min(width - pad, node["x"]))
        node["y"] = max(pad, min(height - pad, node["y"]))

        energy += node["vx"] * node["vx"] + node["vy"] * node["vy"]

    return {**state, "nodes": nodes, "edges": list(state["edges"]), "energy": energy}


def run_simulation(state: dict, max_iterations: int = 200) -> dict:
    """Step until energy drops below ENERGY_THRESHOLD or max_iterations is reached."""
    current = state
    for i in range(max_iterations):
        current = step_simulation(current)
        if current["energy"] < ENERGY_THRESHOLD:
            logger.debug("Layout converged after %d steps (energy %.4f)", i + 1, current["energy"])
            break
    else:
        logger.debug("Layout stopped at %d steps (energy %.4f)", max_iterations, current["energy"])
    return current


def hit_test(state: dict, x: float, y: float) -> dict | None:
    """Return the node whose disc contains (x, y), closest center first, or None."""
    closest = None
    closest_dist = math.inf
    for node in state["nodes"]:
        dist = math.hypot(x - node["x"], y - node["y"])
        if dist <= node["radius"] and dist < closest_dist:
            closest = node
            closest_dist = dist
    return closest


def layout_coordinates(state: dict) -> list[dict]:
    """Per-node drawing data for a renderer: id, x, y, radius, fill color."""
    return [
        {
            "id": node.get("id"),
            "x": round(node["x"], 2),
            "y": round(node["y"], 2),
            "radius": round(node["radius"], 2),
            "color": trust_color(node.get("trust")),
        }
        for node in state["nodes"]
    ]


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def load_edges(path: str | Path) -> list[dict]:
    """Load edges from a YAML/JSON file: a list, or a mapping with an 'edges' list."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("edges", [])
    return normalize_edges(data)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Force-directed layout of a crawl's spaces")
    parser.add_argument("crawl", help="Crawl text file or snapshot (.json/.yaml)")
    parser.add_argument("--edges", help="YAML/JSON file of {source, target, type} edges")
    parser.add_argument("--width", type=float, default=DEFAULT_WIDTH)
    parser.add_argument("--height", type=float, default=DEFAULT_HEIGHT)
    parser.add_argument("--iterations", type=int, default=200, help="Max simulation steps")
    parser.add_argument("--seed", type=int, help="Seed for initial placement")
    parser.add_argument("--json", action="store_true", help="Output coordinates as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        snapshot = load_crawl(args.crawl)
        edges = load_edges(args.edges) if args.edges else []
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    rng = random.Random(args.seed) if args.seed is not None else None
    state = create_graph(snapshot.get("spaces", []), edges, args.width, args.height, rng=rng)
    final = run_simulation(state, args.iterations)
    coords = layout_coordinates(final)

    if args.json:
        print(json.dumps({"width": final["width"], "height": final["height"],
                          "energy": final["energy"], "nodes": coords}, indent=2))
        return 0

    print(f"{len(coords)} nodes, {len(edges)} edges, energy {final['energy']:.4f}")
    for c in sorted(coords, key=lambda c: (c["x"], c["y"])):
        print(f"  {c['id']:<28} x={c['x']:>8.2f} y={c['y']:>8.2f} r={c['radius']:>5.2f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
