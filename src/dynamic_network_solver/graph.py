"""In-memory dynamic graph with a change-notification feed.

``DynamicGraph`` stores nodes, edges and their attributes in a
``networkx.MultiDiGraph`` and reports every mutation to registered sinks as
events from :mod:`dynamic_network_solver.events`. It is the topology and
attribute store the engine observes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import networkx as nx

from .events import (
    AttributeChange,
    AttributeChanged,
    EdgeAdded,
    EdgeRemoved,
    ElementKind,
    EventSink,
    GraphCleared,
    GraphEvent,
    NodeAdded,
    NodeRemoved,
)
from .exceptions import ElementNotFoundError, InvalidProblemError

logger = logging.getLogger(__name__)


@dataclass
class EdgeRecord:
    """Endpoints and attributes of one edge.

    ``attributes`` is the live attribute dictionary held by the underlying
    networkx graph; mutate it only through DynamicGraph so sinks are notified.
    """

    edge_id: str
    source: str
    target: str
    directed: bool
    attributes: dict[str, Any]

    def opposite(self, node_id: str) -> str:
        return self.target if node_id == self.source else self.source


class DynamicGraph:
    """Mutable graph whose changes are observable.

    Edges have unique identifiers, may be directed or undirected, and parallel
    edges are allowed. Every mutating method emits the matching event to all
    sinks before returning.

    Examples:
        >>> graph = DynamicGraph()
        >>> graph.add_node("A", supply=3)
        >>> graph.add_node("B", supply=-3)
        >>> graph.add_edge("AB", "A", "B", capacity=5, cost=2)
        >>> graph.set_edge_attribute("AB", "cost", 4)
    """

    def __init__(self) -> None:
        self._graph = nx.MultiDiGraph()
        self._edges: dict[str, EdgeRecord] = {}
        self._sinks: list[EventSink] = []

    # ------------------------------------------------------------------
    # Sinks

    def add_sink(self, sink: EventSink) -> None:
        if sink not in self._sinks:
            self._sinks.append(sink)

    def remove_sink(self, sink: EventSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def _emit(self, event: GraphEvent) -> None:
        for sink in list(self._sinks):
            sink(event)

    # ------------------------------------------------------------------
    # Read access

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._graph

    def __len__(self) -> int:
        return self._graph.number_of_nodes()

    def number_of_nodes(self) -> int:
        return self._graph.number_of_nodes()

    def number_of_edges(self) -> int:
        return len(self._edges)

    def nodes(self) -> Iterator[str]:
        return iter(list(self._graph.nodes))

    def edges(self) -> Iterator[EdgeRecord]:
        return iter(list(self._edges.values()))

    def has_node(self, node_id: str) -> bool:
        return node_id in self._graph

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edges

    def node_attributes(self, node_id: str) -> dict[str, Any]:
        if node_id not in self._graph:
            raise ElementNotFoundError(f"Unknown node '{node_id}'", element=node_id)
        return self._graph.nodes[node_id]

    def edge(self, edge_id: str) -> EdgeRecord:
        try:
            return self._edges[edge_id]
        except KeyError:
            raise ElementNotFoundError(f"Unknown edge '{edge_id}'", element=edge_id) from None

    def incident_edges(self, node_id: str) -> list[str]:
        """Return the ids of all edges touching ``node_id`` (self-loops once)."""
        if node_id not in self._graph:
            raise ElementNotFoundError(f"Unknown node '{node_id}'", element=node_id)
        seen: dict[str, None] = {}
        for _, _, key in self._graph.out_edges(node_id, keys=True):
            seen[key] = None
        for _, _, key in self._graph.in_edges(node_id, keys=True):
            seen[key] = None
        return list(seen)

    def edge_between(self, source: str, target: str) -> EdgeRecord:
        """Return an edge that can carry flow from ``source`` to ``target``.

        Directed edges ``source -> target`` are preferred; an undirected edge
        joining the two nodes in either orientation also matches.

        Raises:
            ElementNotFoundError: If either node is unknown or no such edge exists.
        """
        for node_id in (source, target):
            if node_id not in self._graph:
                raise ElementNotFoundError(f"Unknown node '{node_id}'", element=node_id)
        undirected: EdgeRecord | None = None
        if self._graph.has_edge(source, target):
            for key in self._graph[source][target]:
                record = self._edges[key]
                if record.directed:
                    return record
                undirected = undirected or record
        if undirected is None and self._graph.has_edge(target, source):
            for key in self._graph[target][source]:
                record = self._edges[key]
                if not record.directed:
                    undirected = record
                    break
        if undirected is None:
            raise ElementNotFoundError(
                f"No edge from '{source}' to '{target}'", element=(source, target)
            )
        return undirected

    # ------------------------------------------------------------------
    # Topology mutations

    def add_node(self, node_id: str, **attributes: Any) -> None:
        if node_id in self._graph:
            raise InvalidProblemError(f"Duplicate node id '{node_id}'")
        self._graph.add_node(node_id, **attributes)
        self._emit(NodeAdded(node_id, dict(attributes)))

    def remove_node(self, node_id: str) -> None:
        """Remove a node, emitting EdgeRemoved for its incident edges first."""
        for edge_id in self.incident_edges(node_id):
            self.remove_edge(edge_id)
        self._graph.remove_node(node_id)
        self._emit(NodeRemoved(node_id))

    def add_edge(
        self,
        edge_id: str,
        source: str,
        target: str,
        directed: bool = True,
        **attributes: Any,
    ) -> EdgeRecord:
        if edge_id in self._edges:
            raise InvalidProblemError(f"Duplicate edge id '{edge_id}'")
        for node_id in (source, target):
            if node_id not in self._graph:
                raise InvalidProblemError(f"Edge '{edge_id}' references unknown node '{node_id}'")
        self._graph.add_edge(source, target, key=edge_id, **attributes)
        record = EdgeRecord(
            edge_id=edge_id,
            source=source,
            target=target,
            directed=directed,
            attributes=self._graph.edges[source, target, edge_id],
        )
        self._edges[edge_id] = record
        self._emit(EdgeAdded(edge_id, source, target, directed, dict(attributes)))
        return record

    def remove_edge(self, edge_id: str) -> None:
        record = self.edge(edge_id)
        self._graph.remove_edge(record.source, record.target, key=edge_id)
        del self._edges[edge_id]
        self._emit(EdgeRemoved(edge_id))

    def clear(self) -> None:
        self._graph.clear()
        self._edges.clear()
        self._emit(GraphCleared())

    # ------------------------------------------------------------------
    # Attribute mutations

    def set_node_attribute(self, node_id: str, name: str, value: Any) -> None:
        self._set_attribute(ElementKind.NODE, node_id, self.node_attributes(node_id), name, value)

    def remove_node_attribute(self, node_id: str, name: str) -> None:
        self._remove_attribute(ElementKind.NODE, node_id, self.node_attributes(node_id), name)

    def set_edge_attribute(self, edge_id: str, name: str, value: Any) -> None:
        self._set_attribute(ElementKind.EDGE, edge_id, self.edge(edge_id).attributes, name, value)

    def remove_edge_attribute(self, edge_id: str, name: str) -> None:
        self._remove_attribute(ElementKind.EDGE, edge_id, self.edge(edge_id).attributes, name)

    def _set_attribute(
        self,
        kind: ElementKind,
        element_id: str,
        attributes: dict[str, Any],
        name: str,
        value: Any,
    ) -> None:
        change = AttributeChange.CHANGED if name in attributes else AttributeChange.ADDED
        old_value = attributes.get(name)
        attributes[name] = value
        self._emit(AttributeChanged(kind, element_id, name, change, old_value, value))

    def _remove_attribute(
        self,
        kind: ElementKind,
        element_id: str,
        attributes: dict[str, Any],
        name: str,
    ) -> None:
        if name not in attributes:
            return
        old_value = attributes.pop(name)
        self._emit(AttributeChanged(kind, element_id, name, AttributeChange.REMOVED, old_value))

    # ------------------------------------------------------------------
    # Conversion

    @classmethod
    def from_networkx(cls, nx_graph: nx.Graph) -> DynamicGraph:
        """Copy a networkx graph, keeping node and edge attributes.

        Edge ids come from an ``id`` edge attribute when present, else from the
        concatenated endpoint ids (suffixed with ``#k`` for parallel edges).
        Edges are directed exactly when ``nx_graph`` is directed.
        """
        graph = cls()
        directed = nx_graph.is_directed()
        for node_id, data in nx_graph.nodes(data=True):
            graph.add_node(node_id, **data)
        for source, target, data in nx_graph.edges(data=True):
            attributes = dict(data)
            edge_id = str(attributes.pop("id", f"{source}{target}"))
            base, suffix = edge_id, 1
            while edge_id in graph._edges:
                edge_id = f"{base}#{suffix}"
                suffix += 1
            graph.add_edge(edge_id, source, target, directed=directed, **attributes)
        logger.debug(
            "Imported networkx graph",
            extra={"nodes": graph.number_of_nodes(), "edges": graph.number_of_edges()},
        )
        return graph
