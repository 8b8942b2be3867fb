"""File I/O helpers for dynamic flow networks."""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from pathlib import Path
from typing import Any

from .data import FlowResult, build_graph
from .exceptions import InvalidProblemError
from .graph import DynamicGraph


def _normalize_edges(raw: Iterable[Mapping[str, Any]]) -> Sequence[dict[str, Any]]:
    # Accept both source/target and tail/head spellings.
    edges = []
    for edge in raw:
        source = edge.get("source", edge.get("tail"))
        target = edge.get("target", edge.get("head"))
        if source is None or target is None:
            raise InvalidProblemError(
                f"Invalid edge specification: {edge}. Each edge must have 'source' and 'target' "
                f"(or 'tail' and 'head') fields."
            )
        normalized = {
            key: value for key, value in edge.items() if key not in ("tail", "head")
        }
        normalized["source"] = source
        normalized["target"] = target
        edges.append(normalized)
    return edges


def load_graph(path: str | Path) -> DynamicGraph:
    """Load a network from a JSON file.

    The file holds ``{"directed": bool, "nodes": [...], "edges": [...]}``. Node
    entries need an ``id``; edge entries need endpoints and may carry an ``id``
    and a per-edge ``directed`` flag. All other keys become attributes.
    """
    with Path(path).open("r", encoding="utf-8") as fh:
        try:
            payload: MutableMapping[str, Any] = json.load(fh)
        except json.JSONDecodeError as exc:
            raise InvalidProblemError(f"Malformed JSON in {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise InvalidProblemError(f"Invalid network format: expected a JSON object in {path}")
    directed = bool(payload.get("directed", True))
    nodes = payload.get("nodes")
    edges = payload.get("edges") or payload.get("arcs") or []
    if not isinstance(nodes, list) or not isinstance(edges, list):
        raise InvalidProblemError(
            "Invalid network format: JSON must include a 'nodes' array and an 'edges' (or 'arcs') "
            f"array. Got nodes type: {type(nodes).__name__}, edges type: {type(edges).__name__}"
        )
    for node in nodes:
        if "id" not in node:
            raise InvalidProblemError(f"Invalid node specification: {node}. Each node needs an 'id'.")
    return build_graph(nodes=nodes, edges=_normalize_edges(edges), directed=directed)


def _json_number(value: float) -> float | str:
    # JSON has no infinity; keep it readable.
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return value


def save_result(path: str | Path, result: FlowResult) -> None:
    """Persist a solution snapshot to JSON."""
    # Sorted entries give deterministic output that is easy to diff in fixtures.
    data = {
        "status": result.status.value,
        "objective": result.objective,
        "iterations": result.iterations,
        "network_balance": result.network_balance,
        "flows": [{"id": edge_id, "flow": flow} for edge_id, flow in sorted(result.flows.items())],
        "potentials": {node_id: _json_number(dual) for node_id, dual in sorted(result.duals.items())},
        "infeasibility": dict(sorted(result.infeasibility.items())),
    }
    with Path(path).open("w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2, sort_keys=False)
