import json
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from dynamic_network_solver import (  # noqa: E402
    InvalidProblemError,
    SolutionStatus,
    load_graph,
    save_result,
    solve_min_cost_flow,
)
from dynamic_network_solver.data import FlowResult  # noqa: E402

# These tests pin the JSON contract implemented by dynamic_network_solver.io.


def _write_payload(tmp_path: Path, payload) -> Path:
    path = tmp_path / "network.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_graph_prefers_edges_key(tmp_path: Path):
    # When both edges and arcs exist, the loader should prioritise the canonical edges field.
    payload = {
        "directed": True,
        "nodes": [
            {"id": "s", "supply": 5.0},
            {"id": "t", "supply": -5.0},
        ],
        "edges": [
            {"tail": "s", "head": "t", "capacity": 7.5, "cost": 3.0},
        ],
        "arcs": [
            {"tail": "s", "head": "t", "capacity": 9.0, "cost": 4.0},
        ],
    }

    graph = load_graph(_write_payload(tmp_path, payload))

    assert graph.number_of_edges() == 1
    record = graph.edge("st")
    assert (record.source, record.target) == ("s", "t")
    assert record.attributes == {"capacity": 7.5, "cost": 3.0}
    assert graph.node_attributes("s") == {"supply": 5.0}


def test_load_graph_accepts_arcs_key_and_undirected(tmp_path: Path):
    payload = {
        "directed": False,
        "nodes": [{"id": "A"}, {"id": "B"}],
        "arcs": [{"id": "road", "source": "A", "target": "B", "length": 4}],
    }

    graph = load_graph(_write_payload(tmp_path, payload))

    assert graph.edge("road").directed is False
    assert graph.edge("road").attributes == {"length": 4}


def test_load_graph_per_edge_direction(tmp_path: Path):
    payload = {
        "directed": False,
        "nodes": [{"id": "A"}, {"id": "B"}],
        "edges": [{"source": "A", "target": "B", "directed": True}],
    }

    graph = load_graph(_write_payload(tmp_path, payload))

    assert graph.edge("AB").directed is True


def test_load_graph_requires_endpoints(tmp_path: Path):
    payload = {"nodes": [{"id": "s"}], "edges": [{"head": "s"}]}

    with pytest.raises(InvalidProblemError, match="source"):
        load_graph(_write_payload(tmp_path, payload))


def test_load_graph_requires_node_ids(tmp_path: Path):
    payload = {"nodes": [{"supply": 1}], "edges": []}

    with pytest.raises(InvalidProblemError, match="'id'"):
        load_graph(_write_payload(tmp_path, payload))


def test_load_graph_requires_nodes_array(tmp_path: Path):
    with pytest.raises(InvalidProblemError, match="nodes"):
        load_graph(_write_payload(tmp_path, {"edges": []}))

    with pytest.raises(InvalidProblemError, match="JSON object"):
        load_graph(_write_payload(tmp_path, [1, 2, 3]))


def test_load_graph_malformed_json(tmp_path: Path):
    path = tmp_path / "broken.json"
    path.write_text("{nodes: [", encoding="utf-8")

    with pytest.raises(InvalidProblemError, match="Malformed JSON"):
        load_graph(path)


def test_load_graph_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_graph(tmp_path / "absent.json")


def test_save_result_writes_sorted_entries(tmp_path: Path):
    result = FlowResult(
        status=SolutionStatus.INFEASIBLE,
        objective=12.5,
        flows={"b": 1.0, "a": 2.0},
        duals={"y": float("inf"), "x": -3.0},
        infeasibility={"y": -1.0},
        network_balance=-1.0,
        iterations=4,
    )
    path = tmp_path / "result.json"

    save_result(path, result)
    data = json.loads(path.read_text(encoding="utf-8"))

    assert data["status"] == "infeasible"
    assert data["objective"] == 12.5
    assert data["iterations"] == 4
    assert data["flows"] == [{"id": "a", "flow": 2.0}, {"id": "b", "flow": 1.0}]
    assert data["potentials"] == {"x": -3.0, "y": "inf"}
    assert data["infeasibility"] == {"y": -1.0}
    assert data["network_balance"] == -1.0


def test_round_trip_through_solver(tmp_path: Path):
    payload = {
        "nodes": [{"id": "s", "supply": 3}, {"id": "t", "supply": -3}],
        "edges": [{"source": "s", "target": "t", "capacity": 4, "cost": 2}],
    }
    result = solve_min_cost_flow(load_graph(_write_payload(tmp_path, payload)))
    out = tmp_path / "out.json"
    save_result(out, result)

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["status"] == "optimal"
    assert data["objective"] == pytest.approx(6.0)
    assert data["flows"] == [{"id": "st", "flow": 3.0}]
