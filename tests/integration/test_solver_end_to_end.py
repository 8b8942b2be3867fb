"""End-to-end checks of the min-cost flow engine against networkx."""

import random
import sys
from pathlib import Path

import networkx as nx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from dynamic_network_solver import (  # noqa: E402
    DynamicGraph,
    NetworkSimplex,
    SolutionStatus,
    SolverOptions,
    load_graph,
    save_result,
    solve_min_cost_flow,
    validate_flow,
)


def _random_network(seed: int, node_count: int = 25, edge_count: int = 90) -> nx.DiGraph:
    rng = random.Random(seed)
    reference = nx.gnm_random_graph(node_count, edge_count, seed=seed, directed=True)
    network = nx.DiGraph()
    for node in reference.nodes:
        network.add_node(f"v{node}", supply=0)
    for tail, head in reference.edges:
        network.add_edge(
            f"v{tail}", f"v{head}", capacity=rng.randint(1, 20), cost=rng.randint(0, 15)
        )
    for _ in range(6):
        source, sink = rng.sample(list(network.nodes), 2)
        amount = rng.randint(1, 8)
        network.nodes[source]["supply"] += amount
        network.nodes[sink]["supply"] -= amount
    return network


def _networkx_cost(network: nx.DiGraph) -> float | None:
    reference = nx.DiGraph()
    for node, data in network.nodes(data=True):
        reference.add_node(node, demand=-data["supply"])
    for tail, head, data in network.edges(data=True):
        reference.add_edge(tail, head, capacity=data["capacity"], weight=data["cost"])
    try:
        return float(nx.min_cost_flow_cost(reference))
    except nx.NetworkXUnfeasible:
        return None


@pytest.mark.parametrize("seed", [1, 7, 42, 99])
@pytest.mark.parametrize("strategy", ["first_negative", "most_negative"])
def test_random_networks_match_networkx(seed, strategy):
    network = _random_network(seed)
    graph = DynamicGraph.from_networkx(network)
    result = solve_min_cost_flow(graph, options=SolverOptions(pricing_strategy=strategy))
    expected = _networkx_cost(network)

    if expected is None:
        assert result.status == SolutionStatus.INFEASIBLE
    else:
        assert result.status == SolutionStatus.OPTIMAL
        assert result.objective == pytest.approx(expected)


@pytest.mark.parametrize("seed", [3, 11])
def test_random_edits_match_networkx(seed):
    """A long sequence of edits keeps the engine in step with networkx."""
    rng = random.Random(seed)
    network = _random_network(seed)
    graph = DynamicGraph.from_networkx(network)
    engine = NetworkSimplex()
    engine.init(graph)
    engine.compute()

    for step in range(40):
        tail, head = rng.choice(list(network.edges))
        edge_id = f"{tail}{head}"
        action = rng.random()
        if action < 0.35:
            cost = rng.randint(0, 15)
            network.edges[tail, head]["cost"] = cost
            graph.set_edge_attribute(edge_id, "cost", cost)
        elif action < 0.7:
            capacity = rng.randint(0, 20)
            network.edges[tail, head]["capacity"] = capacity
            graph.set_edge_attribute(edge_id, "capacity", capacity)
        elif action < 0.85:
            source, sink = rng.sample(list(network.nodes), 2)
            amount = rng.randint(1, 4)
            for node, delta in ((source, amount), (sink, -amount)):
                network.nodes[node]["supply"] += delta
                graph.set_node_attribute(node, "supply", network.nodes[node]["supply"])
        else:
            network.remove_edge(tail, head)
            graph.remove_edge(edge_id)

        status = engine.compute()
        expected = _networkx_cost(network)
        if expected is None:
            assert status == SolutionStatus.INFEASIBLE, step
        else:
            assert status == SolutionStatus.OPTIMAL, step
            assert engine.get_objective_value() == pytest.approx(expected), step
        assert validate_flow(engine).is_valid, step


def test_file_round_trip(tmp_path: Path):
    """Load a network from JSON, solve it and persist the result."""
    source = tmp_path / "network.json"
    source.write_text(
        """
        {
          "directed": true,
          "nodes": [
            {"id": "plant", "supply": 12},
            {"id": "hub"},
            {"id": "store_a", "supply": -5},
            {"id": "store_b", "supply": -7}
          ],
          "edges": [
            {"source": "plant", "target": "hub", "capacity": 15, "cost": 2},
            {"source": "hub", "target": "store_a", "capacity": 10, "cost": 1},
            {"source": "hub", "target": "store_b", "capacity": 10, "cost": 3},
            {"source": "plant", "target": "store_b", "capacity": 4, "cost": 4}
          ]
        }
        """,
        encoding="utf-8",
    )

    result = solve_min_cost_flow(load_graph(source))
    save_result(tmp_path / "result.json", result)

    assert result.status == SolutionStatus.OPTIMAL
    # store_b: 7 via hub costs 5 each, direct costs 4 each up to 4 units
    assert result.objective == pytest.approx(5 * 3 + 4 * 4 + 3 * 5)
    assert result.flows["plantstore_b"] == pytest.approx(4.0)
    assert (tmp_path / "result.json").exists()


def test_flow_attribute_tracks_updates():
    network = _random_network(5, node_count=10, edge_count=30)
    graph = DynamicGraph.from_networkx(network)
    engine = NetworkSimplex(options=SolverOptions(flow_attribute="flow"))
    engine.init(graph)
    engine.compute()
    record = next(iter(graph.edges()))

    graph.set_edge_attribute(record.edge_id, "capacity", 0)
    engine.compute()

    assert graph.edge(record.edge_id).attributes["flow"] == 0.0
    for other in graph.edges():
        assert other.attributes["flow"] == pytest.approx(engine.get_flow(other.edge_id))
