"""Utility functions for inspecting and validating engine solutions."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .simplex import NetworkSimplex


@dataclass
class TreePath:
    """Represents a path of the basis tree, from its start to its end node.

    Attributes:
        nodes: Sequence of node IDs from the start node to the end node.
        edges: Sequence of edge IDs along the path.
        length: Sum of the edge costs along the path (inf if there is no path).
    """

    nodes: list[str]
    edges: list[str]
    length: float

    def __len__(self) -> int:
        return len(self.edges)


@dataclass
class ValidationResult:
    """Results from validating the engine's current flow.

    Attributes:
        is_valid: True if the flow satisfies all constraints.
        errors: List of validation error messages (empty if valid).
        flow_balance: Dict mapping node IDs to supply - outflow + inflow. Any
                      non-zero entry is unrouted supply or demand.
        capacity_violations: Edge IDs whose flow exceeds the capacity.
        lower_bound_violations: Edge IDs carrying negative flow.
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    flow_balance: dict[str, float] = field(default_factory=dict)
    capacity_violations: list[str] = field(default_factory=list)
    lower_bound_violations: list[str] = field(default_factory=list)


def validate_flow(engine: NetworkSimplex, tolerance: float = 1e-6) -> ValidationResult:
    """Validate the engine's flow against conservation and bound constraints.

    Conservation is checked on real arcs only: a node whose supply is not fully
    routed shows up in ``flow_balance`` but is not an error when the engine
    reports it as infeasibility (artificial flow). Errors are raised for arcs
    outside their bounds and for balances that disagree with the artificial
    flow.

    Args:
        engine: An initialised engine, usually after compute().
        tolerance: Absolute tolerance for all comparisons (default: 1e-6).

    Returns:
        ValidationResult with detailed validation information.

    Examples:
        >>> engine.compute()
        >>> check = validate_flow(engine)
        >>> check.is_valid
        True
    """
    nodes = engine.model.nodes
    arcs = engine.model.arcs
    size = arcs.size
    real = arcs.real_mask()
    tails = arcs.tail[:size][real]
    heads = arcs.head[:size][real]
    flows = arcs.flow[:size][real]
    capacities = arcs.capacity[:size][real]

    excess = np.array(nodes.supply, dtype=np.float64)
    np.subtract.at(excess, tails, flows)
    np.add.at(excess, heads, flows)

    result = ValidationResult(is_valid=True)
    labels = [arcs.keys[idx] for idx in np.flatnonzero(real)]
    for position in np.flatnonzero(flows > capacities + tolerance):
        edge_id = labels[position][0]  # type: ignore[index]
        result.capacity_violations.append(edge_id)
        result.errors.append(
            f"Edge {edge_id}: flow {flows[position]:.6g} exceeds capacity {capacities[position]:.6g}"
        )
    for position in np.flatnonzero(flows < -tolerance):
        edge_id = labels[position][0]  # type: ignore[index]
        result.lower_bound_violations.append(edge_id)
        result.errors.append(f"Edge {edge_id}: negative flow {flows[position]:.6g}")

    for node in nodes.live():
        node_id = nodes.ids[node]
        balance = float(excess[node])
        if abs(balance) > tolerance:
            result.flow_balance[node_id] = balance
        unrouted = engine.get_node_balance(node_id)
        if not math.isclose(balance, unrouted, abs_tol=tolerance):
            result.errors.append(
                f"Node {node_id}: balance {balance:.6g} does not match artificial flow {unrouted:.6g}"
            )
    if abs(engine.model.supply_total() - engine.get_network_balance()) > tolerance:
        result.errors.append("Root supply does not absorb the network balance")

    result.is_valid = not result.errors
    return result
