"""Tests for the observable graph and its change events."""

import sys
from pathlib import Path

import networkx as nx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from dynamic_network_solver import (  # noqa: E402
    AttributeChange,
    AttributeChanged,
    DynamicGraph,
    EdgeAdded,
    EdgeRemoved,
    ElementKind,
    ElementNotFoundError,
    GraphCleared,
    NodeAdded,
    NodeRemoved,
    build_graph,
)


@pytest.fixture
def recorded():
    graph = DynamicGraph()
    events = []
    graph.add_sink(events.append)
    return graph, events


class TestEvents:
    def test_node_and_edge_events(self, recorded):
        graph, events = recorded
        graph.add_node("A", supply=3)
        graph.add_node("B")
        graph.add_edge("AB", "A", "B", cost=2)

        assert events == [
            NodeAdded("A", {"supply": 3}),
            NodeAdded("B", {}),
            EdgeAdded("AB", "A", "B", True, {"cost": 2}),
        ]

    def test_attribute_events(self, recorded):
        graph, events = recorded
        graph.add_node("A")
        graph.set_node_attribute("A", "supply", 1)
        graph.set_node_attribute("A", "supply", 2)
        graph.remove_node_attribute("A", "supply")
        graph.remove_node_attribute("A", "supply")

        assert events[1:] == [
            AttributeChanged(ElementKind.NODE, "A", "supply", AttributeChange.ADDED, None, 1),
            AttributeChanged(ElementKind.NODE, "A", "supply", AttributeChange.CHANGED, 1, 2),
            AttributeChanged(ElementKind.NODE, "A", "supply", AttributeChange.REMOVED, 2),
        ]

    def test_remove_node_removes_incident_edges_first(self, recorded):
        graph, events = recorded
        graph.add_node("A")
        graph.add_node("B")
        graph.add_node("C")
        graph.add_edge("AB", "A", "B")
        graph.add_edge("CA", "C", "A")
        events.clear()
        graph.remove_node("A")

        assert set(events[:2]) == {EdgeRemoved("AB"), EdgeRemoved("CA")}
        assert events[2] == NodeRemoved("A")
        assert graph.number_of_edges() == 0

    def test_clear(self, recorded):
        graph, events = recorded
        graph.add_node("A")
        graph.clear()

        assert events[-1] == GraphCleared()
        assert len(graph) == 0

    def test_removed_sink_receives_nothing(self, recorded):
        graph, events = recorded
        graph.remove_sink(events.append)
        graph.add_node("A")

        assert events == []

    def test_edge_attribute_dict_is_live(self):
        graph = build_graph(nodes=[{"id": "A"}, {"id": "B"}], edges=[{"source": "A", "target": "B"}])
        graph.set_edge_attribute("AB", "cost", 4)

        assert graph.edge("AB").attributes == {"cost": 4}


class TestQueries:
    def test_edge_between_prefers_directed(self):
        graph = DynamicGraph()
        graph.add_node("A")
        graph.add_node("B")
        graph.add_edge("road", "A", "B", directed=False)
        graph.add_edge("oneway", "A", "B")

        assert graph.edge_between("A", "B").edge_id == "oneway"
        assert graph.edge_between("B", "A").edge_id == "road"

    def test_edge_between_rejects_wrong_direction(self):
        graph = DynamicGraph()
        graph.add_node("A")
        graph.add_node("B")
        graph.add_edge("AB", "A", "B")

        with pytest.raises(ElementNotFoundError):
            graph.edge_between("B", "A")

    def test_incident_edges(self):
        graph = build_graph(
            nodes=[{"id": "A"}, {"id": "B"}],
            edges=[{"source": "A", "target": "B"}, {"id": "loop", "source": "A", "target": "A"}],
        )

        assert sorted(graph.incident_edges("A")) == ["AB", "loop"]
        assert graph.incident_edges("B") == ["AB"]

    def test_unknown_elements(self):
        graph = DynamicGraph()

        with pytest.raises(ElementNotFoundError):
            graph.edge("XY")
        with pytest.raises(ElementNotFoundError):
            graph.node_attributes("X")

    def test_edge_record_opposite(self):
        record = build_graph(
            nodes=[{"id": "A"}, {"id": "B"}], edges=[{"source": "A", "target": "B"}]
        ).edge("AB")

        assert record.opposite("A") == "B"
        assert record.opposite("B") == "A"


class TestBuildGraph:
    def test_tail_head_spelling_and_ids(self):
        graph = build_graph(
            nodes=[{"id": 1, "supply": 2}, {"id": 2, "supply": -2}],
            edges=[{"tail": 1, "head": 2, "capacity": 3}],
        )

        assert graph.has_node("1")
        assert graph.edge("12").attributes == {"capacity": 3}

    def test_per_edge_direction(self):
        graph = build_graph(
            nodes=[{"id": "A"}, {"id": "B"}],
            edges=[{"source": "A", "target": "B", "directed": False}],
        )

        assert graph.edge("AB").directed is False


def test_from_networkx_keeps_attributes_and_parallel_edges():
    source = nx.MultiDiGraph()
    source.add_node("A", supply=2)
    source.add_node("B", supply=-2)
    source.add_edge("A", "B", cost=1)
    source.add_edge("A", "B", cost=3)
    source.add_edge("B", "A", id="back", cost=7)

    graph = DynamicGraph.from_networkx(source)

    assert graph.node_attributes("A") == {"supply": 2}
    assert {record.edge_id for record in graph.edges()} == {"AB", "AB#1", "back"}
    assert graph.edge("back").attributes == {"cost": 7}
    assert all(record.directed for record in graph.edges())


def test_from_undirected_networkx():
    source = nx.Graph()
    source.add_edge("A", "B", length=4)

    graph = DynamicGraph.from_networkx(source)

    assert graph.edge("AB").directed is False
    assert graph.edge("AB").attributes == {"length": 4}
