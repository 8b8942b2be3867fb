#!/usr/bin/env python3
"""Compare incremental re-optimisation with solving from scratch.

Applies a stream of random cost/capacity edits to a random network and times
the engine's repair against a fresh engine and networkx's network simplex on
the same snapshot.

Usage: python benchmarks/benchmark_incremental.py [nodes] [edges] [edits]
"""

import random
import sys
import time
from pathlib import Path

import networkx as nx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from dynamic_network_solver import DynamicGraph, NetworkSimplex  # noqa: E402


def random_network(node_count: int, edge_count: int, seed: int = 0) -> nx.DiGraph:
    rng = random.Random(seed)
    base = nx.gnm_random_graph(node_count, edge_count, seed=seed, directed=True)
    network = nx.DiGraph()
    for node in base.nodes:
        network.add_node(f"v{node}", supply=0)
    for tail, head in base.edges:
        network.add_edge(f"v{tail}", f"v{head}", capacity=rng.randint(5, 50), cost=rng.randint(1, 100))
    for _ in range(node_count // 4):
        source, sink = rng.sample(list(network.nodes), 2)
        amount = rng.randint(1, 20)
        network.nodes[source]["supply"] += amount
        network.nodes[sink]["supply"] -= amount
    return network


def networkx_solve(network: nx.DiGraph) -> float | None:
    reference = nx.DiGraph()
    for node, data in network.nodes(data=True):
        reference.add_node(node, demand=-data["supply"])
    for tail, head, data in network.edges(data=True):
        reference.add_edge(tail, head, capacity=data["capacity"], weight=data["cost"])
    try:
        return float(nx.min_cost_flow_cost(reference))
    except nx.NetworkXUnfeasible:
        return None


def main() -> None:
    node_count = int(sys.argv[1]) if len(sys.argv) > 1 else 300
    edge_count = int(sys.argv[2]) if len(sys.argv) > 2 else 1500
    edits = int(sys.argv[3]) if len(sys.argv) > 3 else 50
    rng = random.Random(1)

    network = random_network(node_count, edge_count)
    graph = DynamicGraph.from_networkx(network)
    engine = NetworkSimplex()
    start = time.perf_counter()
    engine.init(graph)
    engine.compute()
    print(f"Network: {node_count} nodes, {edge_count} edges")
    print(f"Initial solve: {time.perf_counter() - start:.3f}s, {engine.total_pivots} pivots")

    timings = {"incremental": 0.0, "fresh": 0.0, "networkx": 0.0}
    mismatches = 0
    for _ in range(edits):
        tail, head = rng.choice(list(network.edges))
        if rng.random() < 0.5:
            value = rng.randint(1, 100)
            network.edges[tail, head]["cost"] = value
            graph.set_edge_attribute(f"{tail}{head}", "cost", value)
        else:
            value = rng.randint(0, 50)
            network.edges[tail, head]["capacity"] = value
            graph.set_edge_attribute(f"{tail}{head}", "capacity", value)

        start = time.perf_counter()
        engine.compute()
        timings["incremental"] += time.perf_counter() - start

        start = time.perf_counter()
        fresh = NetworkSimplex()
        fresh.init(graph)
        fresh.compute()
        fresh.terminate()
        timings["fresh"] += time.perf_counter() - start

        start = time.perf_counter()
        expected = networkx_solve(network)
        timings["networkx"] += time.perf_counter() - start

        if expected is not None and abs(engine.get_objective_value() - expected) > 1e-6:
            mismatches += 1

    print(f"\n{'=' * 60}")
    print(f"{'Method':<15} {'Total (s)':>12} {'Per edit (ms)':>15}")
    print(f"{'=' * 60}")
    for name, total in timings.items():
        print(f"{name:<15} {total:>12.3f} {1000 * total / edits:>15.2f}")
    print(f"\nObjective mismatches against networkx: {mismatches}")


if __name__ == "__main__":
    main()
