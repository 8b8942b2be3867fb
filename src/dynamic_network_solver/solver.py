"""Public solver entrypoints."""

from __future__ import annotations

from pathlib import Path

from .data import AttributeNames, FlowResult, ProgressCallback, SolverOptions
from .graph import DynamicGraph
from .io import load_graph as load_graph_file
from .io import save_result as save_result_file
from .shortest_path import DynamicShortestPath
from .simplex import NetworkSimplex


def solve_min_cost_flow(
    graph: DynamicGraph,
    names: AttributeNames | None = None,
    options: SolverOptions | None = None,
    progress_callback: ProgressCallback | None = None,
) -> FlowResult:
    """Solve a minimum-cost flow problem once and detach from the graph.

    Use :class:`NetworkSimplex` directly to keep the solution optimal while the
    graph changes; this wrapper is meant for one-off solves.

    Args:
        graph: The network. Nodes carry supplies, edges carry costs and capacities.
        names: Attribute names to read. Defaults to ``supply``, ``capacity`` and ``cost``.
        options: Solver configuration options. If None, uses defaults.
        progress_callback: Optional callback receiving ProgressInfo every
                          ``options.progress_interval`` pivots.

    Returns:
        FlowResult containing:
        - status: OPTIMAL, INFEASIBLE or UNBOUNDED
        - objective: Total cost of the solution
        - flows: Flow per edge id (net flow for undirected edges)
        - duals: Node potentials
        - infeasibility: Unrouted supply per node, empty when feasible

    Raises:
        IterationLimitError: If ``options.max_pivots`` is exceeded.

    Examples:
        >>> from dynamic_network_solver import build_graph, solve_min_cost_flow
        >>> graph = build_graph(
        ...     nodes=[{"id": "s", "supply": 100.0}, {"id": "t", "supply": -100.0}],
        ...     edges=[{"source": "s", "target": "t", "capacity": 150.0, "cost": 2.5}],
        ... )
        >>> result = solve_min_cost_flow(graph)
        >>> print(f"Status: {result.status.value}, Cost: ${result.objective:.2f}")
        Status: optimal, Cost: $250.00
    """
    # Fresh engine per call to avoid cross-run state sharing.
    engine = NetworkSimplex(names, options=options)
    engine.init(graph)
    try:
        engine.compute(progress_callback)
        return engine.result()
    finally:
        engine.terminate()


def shortest_path_lengths(
    graph: DynamicGraph,
    source: str,
    cost_name: str | None = "length",
    options: SolverOptions | None = None,
) -> dict[str, float]:
    """Return the shortest path length from ``source`` to every node.

    Unreachable nodes map to ``inf``.

    Examples:
        >>> shortest_path_lengths(graph, "A")["E"]
        20.0
    """
    engine = DynamicShortestPath(cost_name, source=source, options=options)
    engine.init(graph)
    try:
        engine.compute()
        return {node_id: engine.get_path_length(node_id) for node_id in graph.nodes()}
    finally:
        engine.terminate()


def load_graph(path: str | Path) -> DynamicGraph:
    """Load a network from a JSON file.

    Args:
        path: Path to JSON file containing the network definition.

    Returns:
        DynamicGraph ready to be observed by an engine.

    Raises:
        FileNotFoundError: If file does not exist.
        InvalidProblemError: If JSON is malformed or the network is invalid.
    """
    return load_graph_file(path)


def save_result(path: str | Path, result: FlowResult) -> None:
    """Save a solution snapshot to a JSON file."""
    save_result_file(path, result)
