"""Example demonstrating incremental re-optimisation while a network changes.

The engine observes the graph: every mutation is queued and the next
compute() repairs the previous optimal basis instead of solving from scratch.
This example walks through:
1. Cost changes (pricing updates)
2. Capacity changes (a congested link)
3. Supply/demand changes (demand fluctuations)
4. Adding/removing edges (network topology changes)
"""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from dynamic_network_solver import NetworkSimplex, SolverOptions, load_graph  # noqa: E402


def print_section_header(title: str) -> None:
    """Print a formatted section header."""
    print("\n" + "=" * 70)
    print(title.center(70))
    print("=" * 70)


def print_solution(engine: NetworkSimplex, pivots_before: int) -> None:
    """Print solution summary."""
    result = engine.result()
    print(f"  Status: {result.status.value}")
    print(f"  Objective: {result.objective:,.2f}")
    print(f"  Pivots for this update: {engine.total_pivots - pivots_before}")
    for edge_id, flow in sorted(result.flows.items()):
        print(f"    {edge_id}: {flow:.2f} units")
    for node_id, balance in sorted(result.infeasibility.items()):
        print(f"    unmet at {node_id}: {balance:+.2f}")


def main() -> None:
    graph = load_graph(Path(__file__).resolve().parent / "sample_network.json")
    engine = NetworkSimplex(options=SolverOptions(pricing_strategy="most_negative"))
    engine.init(graph)

    print_section_header("INITIAL SOLUTION")
    engine.compute()
    print_solution(engine, 0)

    updates = [
        ("COST UPDATE: C -> F becomes expensive", lambda: graph.set_edge_attribute("CF", "cost", 9)),
        ("CAPACITY CUT: B -> C limited to 2 units", lambda: graph.set_edge_attribute("BC", "capacity", 2)),
        ("DEMAND SHIFT: E needs 2 more units", lambda: graph.set_node_attribute("E", "supply", -6)),
        ("NEW LINK: A -> E", lambda: graph.add_edge("AE", "A", "E", capacity=4, cost=6)),
        ("LINK CLOSED: C -> E", lambda: graph.remove_edge("CE")),
    ]
    for title, update in updates:
        print_section_header(title)
        update()
        print(f"  Pending changes: {len(engine.pending_changes())}")
        pivots_before = engine.total_pivots
        engine.compute()
        print_solution(engine, pivots_before)

    engine.terminate()


if __name__ == "__main__":
    main()
