"""Tests for the spanning-tree basis bookkeeping."""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from dynamic_network_solver import BasisCorruptionError, NetworkSimplex, build_graph  # noqa: E402
from dynamic_network_solver.data import ArcStatus  # noqa: E402
from dynamic_network_solver.model import ROOT  # noqa: E402


def _engine():
    """Star basis over s (supply 2), a and t (demand 2); arcs s->a->t."""
    graph = build_graph(
        nodes=[{"id": "s", "supply": 2}, {"id": "a"}, {"id": "t", "supply": -2}],
        edges=[
            {"source": "s", "target": "a", "capacity": 5, "cost": 3},
            {"source": "a", "target": "t", "capacity": 5, "cost": 4},
        ],
    )
    engine = NetworkSimplex()
    engine.init(graph)
    return engine


def _index(engine, node_id):
    return engine.model.nodes.lookup(node_id)


class TestInitialStar:
    def test_every_node_hangs_below_root(self):
        engine = _engine()
        basis = engine.basis

        for node_id in "sat":
            node = _index(engine, node_id)
            assert basis.parent[node] == ROOT
            assert basis.depth[node] == 1
        assert sorted(basis.subtree(ROOT)) == [0, 1, 2, 3]

    def test_potentials_follow_artificial_orientation(self):
        engine = _engine()
        basis = engine.basis

        assert basis.potential_big[_index(engine, "s")] == 1
        assert basis.potential_big[_index(engine, "a")] == -1
        assert basis.potential_big[_index(engine, "t")] == -1
        assert basis.reduced_cost(engine.model.edges["sa"].forward) == (3.0, -2)

    def test_check_passes(self):
        engine = _engine()

        engine.check_basis()


class TestTreeUpdates:
    def test_change_parent_moves_subtree(self):
        engine = _engine()
        basis = engine.basis
        s, a, t = (_index(engine, node_id) for node_id in "sat")
        arcs = engine.model.arcs
        sa = engine.model.edges["sa"].forward
        at = engine.model.edges["at"].forward

        # Replace a's artificial arc by s->a, then t's by a->t
        arcs.status[engine.model.nodes.artificial_arc[a]] = ArcStatus.NONBASIC_LOWER
        arcs.status[sa] = ArcStatus.BASIC
        basis.change_parent(a, s, sa)
        arcs.status[engine.model.nodes.artificial_arc[t]] = ArcStatus.NONBASIC_LOWER
        arcs.status[at] = ArcStatus.BASIC
        basis.change_parent(t, a, at)

        assert basis.parent[t] == a
        assert basis.depth[t] == 3
        assert list(basis.subtree(s)) == [s, a, t]
        assert basis.join(t, s) == s
        assert basis.last_successor(s) == t
        assert basis.potential[t] == pytest.approx(basis.potential[s] - 7.0)
        assert basis.potential_big[t] == basis.potential_big[s]
        for node in basis.subtree(ROOT):
            assert basis.rev_thread[basis.thread[node]] == node
        engine.check_basis()

    def test_stale_reverse_thread_is_detected(self):
        engine = _engine()
        engine.compute()
        basis = engine.basis
        first = basis.thread[ROOT]
        basis.rev_thread[first] = first

        with pytest.raises(BasisCorruptionError, match="Reverse thread"):
            engine.check_basis()

    def test_refresh_subtree_after_cost_change(self):
        engine = _engine()
        engine.compute()
        basis = engine.basis
        sa = engine.model.edges["sa"].forward
        assert engine.model.arcs.status[sa] == ArcStatus.BASIC

        engine.model.arcs.cost[sa] = 10.0
        below = _index(engine, "a") if basis.parent_arc[_index(engine, "a")] == sa else _index(engine, "s")
        basis.refresh_subtree(below)

        engine.check_basis()

    def test_detach_leaf_with_children_raises(self):
        engine = _engine()
        engine.compute()
        basis = engine.basis
        inner = next(node for node in basis.subtree(ROOT) if node != ROOT)

        with pytest.raises(BasisCorruptionError):
            basis.detach_leaf(inner)

    def test_load_installs_tree(self):
        engine = _engine()
        basis = engine.basis
        s, a, t = (_index(engine, node_id) for node_id in "sat")
        arcs = engine.model.arcs
        sa = engine.model.edges["sa"].forward
        at = engine.model.edges["at"].forward
        parent = [ROOT, ROOT, s, a]
        parent_arc = [-1, engine.model.nodes.artificial_arc[s], sa, at]
        for node in (a, t):
            arcs.status[engine.model.nodes.artificial_arc[node]] = ArcStatus.NONBASIC_LOWER
        arcs.status[sa] = ArcStatus.BASIC
        arcs.status[at] = ArcStatus.BASIC

        basis.load(parent, parent_arc, [ROOT, s, a, t])

        assert basis.thread[t] == ROOT
        assert basis.depth[t] == 3
        engine.check_basis()
