"""Dynamic single-source shortest paths on top of the network simplex engine.

The shortest path tree from a source ``s`` in a graph with ``n`` nodes is the
optimal basis of a transportation problem where ``s`` supplies ``n - 1`` units,
every other node demands one unit and arcs are uncapacitated with cost equal to
their length. Path lengths are read from node potentials, predecessors from the
tree. Graph changes are repaired by the same incremental machinery as any
min-cost flow instance.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Mapping
from typing import Any

import networkx as nx
import numpy as np

from .data import ArcStatus, AttributeNames, SolutionStatus, SolverOptions
from .exceptions import SolverConfigurationError
from .model import NO_ARC, ROOT
from .simplex import NetworkSimplex
from .utils import TreePath

logger = logging.getLogger(__name__)


class DynamicShortestPath(NetworkSimplex):
    """Shortest paths from one source, kept up to date while the graph changes.

    Edge lengths are read from ``cost_name``; a missing length counts as 1, so
    an unweighted graph yields hop counts. Negative lengths are allowed as long
    as no negative cycle is reachable (otherwise the status is UNBOUNDED).
    Nodes that cannot be reached keep their demand on their artificial arc:
    their path length is infinite and the solution status is INFEASIBLE.

    Examples:
        >>> sp = DynamicShortestPath("length", source="A")
        >>> sp.init(graph)
        >>> sp.compute()
        >>> sp.get_path_length("E")
        20.0
        >>> list(sp.iter_path_nodes("E"))
        ['E', 'B', 'C', 'A']
    """

    def __init__(
        self,
        cost_name: str | None = "length",
        source: str | None = None,
        options: SolverOptions | None = None,
    ) -> None:
        super().__init__(AttributeNames(supply=None, capacity=None, cost=cost_name), options)
        self.source = source

    # ------------------------------------------------------------------
    # Source handling

    def set_source(self, source: str) -> None:
        """Change the source and re-balance supplies incrementally.

        Pending graph changes are applied first. The shortest path tree is
        available after the next compute().
        """
        self.source = source
        if self.graph is None:
            return
        self._apply_pending_changes()
        nodes = self.model.nodes
        count = nodes.count()
        for node in nodes.live():
            supply = count - 1.0 if nodes.ids[node] == source else -1.0
            self._changes.change_supply(node, supply)
        self._status = SolutionStatus.UNDEFINED

    def _initial_supply(self, node_id: str, attributes: Mapping[str, Any]) -> float:
        if node_id == self.source and self.graph is not None:
            return self.graph.number_of_nodes() - 1.0
        return -1.0

    def _on_node_added(self, node_id: str, attributes: Mapping[str, Any]) -> None:
        if node_id == self.source:
            self._changes.add_node(node_id, float(self.model.nodes.count()))
            return
        self._changes.add_node(node_id, -1.0)
        self._rebalance_source()

    def _on_node_removed(self, node_id: str) -> None:
        self._changes.remove_node(node_id)
        if node_id != self.source:
            self._rebalance_source()

    def _rebalance_source(self) -> None:
        nodes = self.model.nodes
        source = nodes.index.get(self.source) if self.source is not None else None
        if source is not None:
            self._changes.change_supply(source, nodes.count() - 1.0)

    # ------------------------------------------------------------------
    # Warm start

    def _build(self) -> None:
        super()._build()
        self._warm_start()

    def _warm_start(self) -> None:
        """Install the Dijkstra shortest path tree as the starting basis.

        Only possible when the source exists and no arc has a negative length.
        Unreachable nodes stay below the root on their artificial arcs.
        """
        nodes = self.model.nodes
        arcs = self.model.arcs
        source = nodes.index.get(self.source) if self.source is not None else None
        if source is None:
            return
        real = np.flatnonzero(arcs.real_mask())
        if np.any(arcs.cost[real] < 0):
            return

        cheapest: dict[tuple[int, int], int] = {}
        for index in real:
            arc = int(index)
            tail, head = int(arcs.tail[arc]), int(arcs.head[arc])
            if tail == head:
                continue
            current = cheapest.get((tail, head))
            if current is None or arcs.cost[arc] < arcs.cost[current]:
                cheapest[(tail, head)] = arc
        live = nodes.live()
        digraph = nx.DiGraph()
        digraph.add_nodes_from(live)
        for (tail, head), arc in cheapest.items():
            digraph.add_edge(tail, head, weight=float(arcs.cost[arc]))
        _, paths = nx.single_source_dijkstra(digraph, source, weight="weight")

        parent = [ROOT] * len(nodes)
        parent_arc = [NO_ARC] * len(nodes)
        children: dict[int, list[int]] = {ROOT: []}
        for node in live:
            children.setdefault(node, [])
            path = paths.get(node)
            if node == source or path is None:
                parent_arc[node] = nodes.artificial_arc[node]
            else:
                parent[node] = path[-2]
                parent_arc[node] = cheapest[(path[-2], node)]
        for node in live:
            children[parent[node]].append(node)
            artificial = nodes.artificial_arc[node]
            arcs.status[artificial] = ArcStatus.NONBASIC_LOWER
            arcs.flow[artificial] = 0.0
        for node in live:
            arcs.status[parent_arc[node]] = ArcStatus.BASIC

        # Every node receives one unit along its tree path
        for node in live:
            current = node
            while current != ROOT:
                arcs.flow[parent_arc[current]] += 1.0
                current = parent[current]
        source_arc = nodes.artificial_arc[source]
        arcs.flow[source_arc] = len(live) - arcs.flow[source_arc]

        order: list[int] = []
        stack = [ROOT]
        while stack:
            node = stack.pop()
            order.append(node)
            stack.extend(reversed(children[node]))
        self.basis.load(parent, parent_arc, order)
        logger.info(
            "Built starting basis from Dijkstra tree",
            extra={"source": self.source, "reachable": len(paths), "nodes": len(live)},
        )

    # ------------------------------------------------------------------
    # Queries

    def _source_index(self) -> int:
        self._require_init()
        if self.source is None:
            raise SolverConfigurationError("No source set; call set_source() first")
        return self.model.nodes.lookup(self.source)

    def _reaches(self, source: int, node: int) -> bool:
        # Nodes fed by the source share its M coefficient; unreachable nodes
        # hang below root arcs of the opposite orientation.
        return bool(self.basis.potential_big[node] == self.basis.potential_big[source])

    def _tree_path(self, node_id: str) -> tuple[list[int], list[int]]:
        """Nodes and arcs of the tree path from ``node_id`` back to the source.

        The source is usually an ancestor of every reachable node, but a
        degenerate optimal basis may hang it below another node; the path then
        climbs to the nearest common ancestor and descends to the source.
        """
        source = self._source_index()
        node = self.model.nodes.lookup(node_id)
        if not self._reaches(source, node):
            return [], []
        basis = self.basis
        join = basis.join(node, source)
        nodes: list[int] = []
        arcs: list[int] = []
        current = node
        while current != join:
            nodes.append(current)
            arcs.append(basis.parent_arc[current])
            current = basis.parent[current]
        nodes.append(join)
        descent_nodes: list[int] = []
        descent_arcs: list[int] = []
        current = source
        while current != join:
            descent_nodes.append(current)
            descent_arcs.append(basis.parent_arc[current])
            current = basis.parent[current]
        nodes.extend(reversed(descent_nodes))
        arcs.extend(reversed(descent_arcs))
        return nodes, arcs

    def get_path_length(self, node_id: str) -> float:
        """Length of the shortest path from the source, ``inf`` when unreachable."""
        source = self._source_index()
        node = self.model.nodes.lookup(node_id)
        if node == source:
            return 0.0
        if not self._reaches(source, node):
            return math.inf
        return float(self.basis.potential[source] - self.basis.potential[node])

    def iter_path_nodes(self, node_id: str) -> Iterator[str]:
        """Yield the nodes of the shortest path from ``node_id`` back to the source."""
        nodes, _ = self._tree_path(node_id)
        for node in nodes:
            yield self.model.nodes.ids[node]  # type: ignore[misc]

    def iter_path_edges(self, node_id: str) -> Iterator[str]:
        """Yield the edges of the shortest path from ``node_id`` back to the source."""
        _, arcs = self._tree_path(node_id)
        for arc in arcs:
            yield self.model.arcs.keys[arc][0]  # type: ignore[index]

    def get_path(self, node_id: str) -> TreePath:
        """Shortest path from the source to ``node_id``, empty when unreachable."""
        length = self.get_path_length(node_id)
        if math.isinf(length):
            return TreePath(nodes=[], edges=[], length=math.inf)
        nodes = list(self.iter_path_nodes(node_id))
        edges = list(self.iter_path_edges(node_id))
        nodes.reverse()
        edges.reverse()
        return TreePath(nodes=nodes, edges=edges, length=length)
