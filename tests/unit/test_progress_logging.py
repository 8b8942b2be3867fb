"""Tests for progress callbacks and structured logging during compute()."""

import logging
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from dynamic_network_solver import (  # noqa: E402
    BasisCorruptionError,
    NetworkSimplex,
    ProgressInfo,
    SolverOptions,
    build_graph,
    solve_min_cost_flow,
)


def _chain(length: int = 6):
    nodes = [{"id": f"n{i}"} for i in range(length)]
    nodes[0]["supply"] = 10.0
    nodes[-1]["supply"] = -10.0
    edges = [
        {"source": f"n{i}", "target": f"n{i + 1}", "capacity": 20.0, "cost": 1.0}
        for i in range(length - 1)
    ]
    return build_graph(nodes=nodes, edges=edges)


def test_progress_callback_called():
    """Test that progress callback is invoked during compute."""
    progress_calls = []

    def callback(info: ProgressInfo) -> None:
        progress_calls.append(info)

    result = solve_min_cost_flow(
        _chain(), options=SolverOptions(progress_interval=1), progress_callback=callback
    )

    assert result.status == "optimal"
    assert len(progress_calls) == result.iterations
    assert [info.pivots for info in progress_calls] == list(range(1, result.iterations + 1))


def test_progress_info_fields():
    progress_calls = []
    solve_min_cost_flow(
        _chain(), options=SolverOptions(progress_interval=1), progress_callback=progress_calls.append
    )

    info = progress_calls[-1]
    assert info.total_pivots >= info.pivots
    assert info.elapsed_time >= 0
    assert info.infeasibility >= 0
    assert isinstance(info.objective, float)


def test_progress_interval():
    """Test that progress_interval controls callback frequency."""
    every_pivot = []
    every_other = []
    solve_min_cost_flow(
        _chain(8), options=SolverOptions(progress_interval=1), progress_callback=every_pivot.append
    )
    solve_min_cost_flow(
        _chain(8), options=SolverOptions(progress_interval=2), progress_callback=every_other.append
    )

    assert len(every_other) == len(every_pivot) // 2


def test_info_logs_emitted(caplog):
    """init() and compute() log their summary at INFO level."""
    engine = NetworkSimplex()
    with caplog.at_level(logging.INFO, logger="dynamic_network_solver"):
        engine.init(_chain())
        engine.compute()

    messages = [record.getMessage() for record in caplog.records]
    assert "Initialized network simplex" in messages
    assert "Network simplex finished" in messages
    finished = next(r for r in caplog.records if r.getMessage() == "Network simplex finished")
    assert finished.status == "optimal"
    assert finished.pivots >= 1


def test_debug_logs_pivots(caplog):
    engine = NetworkSimplex()
    with caplog.at_level(logging.DEBUG, logger="dynamic_network_solver"):
        engine.init(_chain())
        engine.compute()

    pivots = [r for r in caplog.records if r.getMessage() == "Pivot"]
    assert len(pivots) == engine.total_pivots
    assert all(hasattr(r, "entering") and hasattr(r, "leaving") for r in pivots)


def test_ill_typed_attribute_warns(caplog):
    """Non-numeric attribute values fall back to defaults with a warning."""
    graph = build_graph(
        nodes=[{"id": "s", "supply": 2}, {"id": "t", "supply": -2}],
        edges=[{"source": "s", "target": "t", "cost": "cheap"}],
    )
    with caplog.at_level(logging.WARNING, logger="dynamic_network_solver"):
        result = solve_min_cost_flow(graph)

    assert result.objective == pytest.approx(2.0)
    assert any("Ill-typed cost" in record.getMessage() for record in caplog.records)


def test_rebuild_is_logged(caplog):
    """A change that cannot be applied falls back to a rebuild with a warning."""
    graph = _chain()
    engine = NetworkSimplex()
    engine.init(graph)
    engine.compute()
    graph.remove_edge("n1n2")

    failure = BasisCorruptionError("Removed arc did not leave the basis", node="n1")
    with patch.object(engine._changes, "remove_edge", side_effect=failure):
        with caplog.at_level(logging.WARNING, logger="dynamic_network_solver"):
            engine.compute()

    assert engine.rebuilds == 1
    assert any("rebuilding" in record.getMessage() for record in caplog.records)
    assert engine.get_solution_status() == "infeasible"
    engine.check_basis()
