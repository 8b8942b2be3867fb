"""Incremental repair of the basis after changes to the network.

Graph events are queued as they arrive and applied at the start of the next
``compute()``. Every repair leaves a valid spanning-tree basis behind: primal
feasibility may be lost (artificial arcs carry flow again) and dual feasibility
may be lost (some reduced costs turn negative), and the simplex loop that
follows restores both.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from .data import ArcStatus, ChangeState
from .events import (
    AttributeChanged,
    EdgeAdded,
    EdgeRemoved,
    ElementKind,
    GraphCleared,
    GraphEvent,
    NodeAdded,
    NodeRemoved,
)
from .exceptions import BasisCorruptionError, ElementNotFoundError
from .model import INFINITE_CAPACITY, ROOT, coerce_capacity, coerce_cost, coerce_supply

if TYPE_CHECKING:
    from .simplex import NetworkSimplex

logger = logging.getLogger(__name__)


def read_attribute(attributes: Mapping[str, Any], name: str | None) -> Any:
    return attributes.get(name) if name is not None else None


class ChangeHandler:
    """Event queue, dirty markers and repair operations of one engine."""

    def __init__(self, engine: NetworkSimplex) -> None:
        self.engine = engine
        self.queue: deque[GraphEvent] = deque()
        self.markers: dict[tuple[str, str], ChangeState] = {}
        self._handlers: dict[type, Callable[[Any], None]] = {
            NodeAdded: self._on_node_added,
            NodeRemoved: self._on_node_removed,
            EdgeAdded: self._on_edge_added,
            EdgeRemoved: self._on_edge_removed,
            AttributeChanged: self._on_attribute_changed,
            GraphCleared: self._on_graph_cleared,
        }

    @property
    def model(self):
        return self.engine.model

    @property
    def arcs(self):
        return self.engine.model.arcs

    @property
    def basis(self):
        return self.engine.basis

    @property
    def tolerance(self) -> float:
        return self.engine.options.tolerance

    # ------------------------------------------------------------------
    # Queue

    def enqueue(self, event: GraphEvent) -> bool:
        """Queue an event. Returns False when the event is irrelevant."""
        names = self.engine.names
        if isinstance(event, AttributeChanged):
            if not names.tracks(event.name):
                return False
            key = (event.kind.value, event.element_id)
            marker = ChangeState.CLEAN
            if event.name == names.supply and event.kind is ElementKind.NODE:
                marker |= ChangeState.DIRTY_SUPPLY
            if event.kind is ElementKind.EDGE:
                if event.name == names.cost:
                    marker |= ChangeState.DIRTY_COST
                    if self._edge_is_basic(event.element_id):
                        marker |= ChangeState.DIRTY_POTENTIAL
                if event.name == names.capacity:
                    marker |= ChangeState.DIRTY_CAPACITY
            if not marker:
                return False
            self.markers[key] = self.markers.get(key, ChangeState.CLEAN) | marker
        elif isinstance(event, GraphCleared):
            self.markers.clear()
        elif isinstance(event, (NodeAdded, EdgeAdded)):
            kind, element_id = self._element_of(event)
            self.markers[(kind, element_id)] = ChangeState.ADDED
        else:
            kind, element_id = self._element_of(event)
            self.markers[(kind, element_id)] = ChangeState.REMOVED
        self.queue.append(event)
        return True

    @staticmethod
    def _element_of(event: GraphEvent) -> tuple[str, str]:
        if isinstance(event, (NodeAdded, NodeRemoved)):
            return ElementKind.NODE.value, event.node_id
        return ElementKind.EDGE.value, event.edge_id  # type: ignore[union-attr]

    def _edge_is_basic(self, edge_id: str) -> bool:
        record = self.model.edges.get(edge_id)
        if record is None:
            return False
        return any(self.arcs.status[arc] == ArcStatus.BASIC for arc in record.arcs())

    def reset(self) -> None:
        self.queue.clear()
        self.markers.clear()

    def drain(self) -> int:
        """Apply all queued events in arrival order.

        Returns:
            Number of events applied.

        Raises:
            BasisCorruptionError: If an event cannot be applied to the current
                basis. The remaining events are left in the queue.
        """
        applied = 0
        while self.queue:
            event = self.queue.popleft()
            self.apply(event)
            applied += 1
        self.markers.clear()
        return applied

    def apply(self, event: GraphEvent) -> None:
        handler = self._handlers[type(event)]
        try:
            handler(event)
        except ElementNotFoundError as exc:
            raise BasisCorruptionError(
                f"Cannot apply {type(event).__name__}: {exc}",
                node=str(exc.element) if exc.element is not None else None,
            ) from exc
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Applied change", extra={"event": repr(event)})

    # ------------------------------------------------------------------
    # Event handlers

    def _on_node_added(self, event: NodeAdded) -> None:
        if event.node_id in self.model.nodes.index:
            raise BasisCorruptionError(f"Node '{event.node_id}' already exists", node=event.node_id)
        self.engine._on_node_added(event.node_id, event.attributes)

    def _on_node_removed(self, event: NodeRemoved) -> None:
        self.engine._on_node_removed(event.node_id)

    def _on_edge_added(self, event: EdgeAdded) -> None:
        if event.edge_id in self.model.edges:
            raise BasisCorruptionError(f"Edge '{event.edge_id}' already exists")
        self.add_edge(event.edge_id, event.source, event.target, event.directed, event.attributes)

    def _on_edge_removed(self, event: EdgeRemoved) -> None:
        self.remove_edge(event.edge_id)

    def _on_attribute_changed(self, event: AttributeChanged) -> None:
        names = self.engine.names
        if event.kind is ElementKind.NODE:
            if event.name == names.supply:
                node = self.model.nodes.lookup(event.element_id)
                self.change_supply(node, coerce_supply(event.new_value, event.element_id, event.name))
            return
        record = self.model.edge_arcs(event.element_id)
        if event.name == names.cost:
            cost = coerce_cost(event.new_value, event.element_id, event.name)
            for arc in record.arcs():
                self.change_cost(arc, cost)
        if event.name == names.capacity:
            capacity = coerce_capacity(event.new_value, event.element_id, event.name)
            for arc in record.arcs():
                self.change_capacity(arc, capacity)

    def _on_graph_cleared(self, event: GraphCleared) -> None:
        self.clear()

    # ------------------------------------------------------------------
    # Structural changes

    def add_node(self, node_id: str, supply: float) -> int:
        """Create a node hanging below the root through its artificial arc."""
        nodes = self.model.nodes
        node = nodes.append(node_id, supply)
        if supply > 0:
            arc = self.arcs.append(node, ROOT, 0.0, INFINITE_CAPACITY, ArcStatus.BASIC, supply, True)
        else:
            arc = self.arcs.append(ROOT, node, 0.0, INFINITE_CAPACITY, ArcStatus.BASIC, -supply, True)
        nodes.artificial_arc[node] = arc
        nodes.supply[ROOT] -= supply
        self.basis.attach_to_root(node, arc)
        return node

    def remove_node(self, node_id: str) -> None:
        """Remove a node after detaching every live arc that touches it."""
        nodes = self.model.nodes
        node = nodes.lookup(node_id)
        for edge_id in self.model.incident_edges(node_id):
            self.remove_edge(edge_id)
        artificial = nodes.artificial_arc[node]
        if self.basis.parent_arc[node] != artificial:
            raise BasisCorruptionError(
                f"Node '{node_id}' is not attached through its artificial arc", node=node_id
            )
        self.basis.detach_leaf(node)
        nodes.supply[ROOT] += nodes.supply[node]
        self.arcs.release(artificial)
        self.model.drop_node(node)

    def add_edge(
        self,
        edge_id: str,
        source: str,
        target: str,
        directed: bool,
        attributes: Mapping[str, Any],
    ) -> None:
        """Add the arcs of an edge at their lower bound with zero flow."""
        names = self.engine.names
        cost = coerce_cost(read_attribute(attributes, names.cost), edge_id, names.cost)
        capacity = coerce_capacity(read_attribute(attributes, names.capacity), edge_id, names.capacity)
        self.model.add_edge_arcs(edge_id, source, target, directed, cost, capacity)

    def remove_edge(self, edge_id: str) -> None:
        record = self.model.edge_arcs(edge_id)
        for arc in record.arcs():
            self.remove_arc(arc)
        self.model.drop_edge(edge_id)

    def remove_arc(self, arc: int) -> None:
        """Drive the arc's flow to zero, pivot it out of the tree, then drop it."""
        arcs = self.arcs
        basis = self.basis
        self.change_capacity(arc, 0.0)
        if arcs.status[arc] == ArcStatus.BASIC:
            tail = int(arcs.tail[arc])
            node = tail if basis.parent_arc[tail] == arc else int(arcs.head[arc])
            entering = self.model.nodes.artificial_arc[node]
            if arcs.tail[entering] == ROOT:
                self.switch_direction(entering)
            plan = self.engine._select_leaving_arc(entering)
            if plan.leaving != arc:
                raise BasisCorruptionError(
                    f"Removed arc {self.model.arc_label(arc)} did not leave the basis",
                    node=self.model.nodes.ids[node],
                )
            self.engine._pivot(plan)
            self.orient_artificial(node)
        arcs.release(arc)

    def clear(self) -> None:
        self.model.clear()
        self.basis.reset()

    # ------------------------------------------------------------------
    # Data changes

    def change_cost(self, arc: int, cost: float) -> None:
        arcs = self.arcs
        if arcs.cost[arc] == cost:
            return
        arcs.cost[arc] = cost
        if arcs.status[arc] == ArcStatus.BASIC:
            tail = int(arcs.tail[arc])
            subtree_root = tail if self.basis.parent_arc[tail] == arc else int(arcs.head[arc])
            self.basis.refresh_subtree(subtree_root)

    def change_supply(self, node: int, supply: float) -> None:
        """Set a node's supply, routing the difference through its artificial arc."""
        nodes = self.model.nodes
        arcs = self.arcs
        if nodes.supply[node] == supply:
            return
        artificial = nodes.artificial_arc[node]
        if arcs.status[artificial] == ArcStatus.NONBASIC_LOWER:
            plan = self.engine._select_leaving_arc(artificial)
            if math.isinf(plan.delta):
                # The forced cycle is uncapacitated; enter in the other direction
                self.switch_direction(artificial)
                plan = self.engine._select_leaving_arc(artificial)
            self.engine._pivot(plan)
        delta = supply - nodes.supply[node]
        nodes.supply[node] = supply
        nodes.supply[ROOT] -= delta
        if arcs.tail[artificial] == node:
            arcs.flow[artificial] += delta
        else:
            arcs.flow[artificial] -= delta
        if arcs.flow[artificial] < 0:
            self.switch_direction(artificial)
        self.orient_artificial(node)

    def change_capacity(self, arc: int, capacity: float) -> None:
        """Set an arc's capacity, pushing back flow that no longer fits."""
        arcs = self.arcs
        if arcs.capacity[arc] == capacity:
            return
        status = arcs.status[arc]
        if status == ArcStatus.NONBASIC_LOWER:
            arcs.capacity[arc] = capacity
            return
        if status == ArcStatus.NONBASIC_UPPER:
            self.engine._pivot(self.engine._select_leaving_arc(arc))
        flow = float(arcs.flow[arc])
        if math.isinf(capacity) or flow <= capacity + self.tolerance:
            arcs.capacity[arc] = capacity
            return
        # Basic arc carrying more than the new capacity
        nodes = self.model.nodes
        excess = flow - capacity
        arcs.flow[arc] = capacity
        arcs.capacity[arc] = capacity
        tail = int(arcs.tail[arc])
        head = int(arcs.head[arc])
        nodes.supply[tail] -= excess
        nodes.supply[head] += excess
        self.change_supply(tail, nodes.supply[tail] + excess)
        self.change_supply(head, nodes.supply[head] - excess)

    def switch_direction(self, arc: int) -> None:
        """Reverse an artificial arc, negating its flow."""
        arcs = self.arcs
        arcs.switch_direction(arc)
        node = int(arcs.head[arc]) if arcs.tail[arc] == ROOT else int(arcs.tail[arc])
        if self.basis.parent_arc[node] == arc:
            self.basis.refresh_subtree(node)

    def orient_artificial(self, node: int) -> None:
        """Align the artificial arc of ``node`` with the sign of its supply.

        An arc without flow is turned around when it points against the supply.
        A basic arc still carrying flow against the supply keeps its direction
        and costs 2M per unit until a pivot drives it out of the tree.
        """
        arcs = self.arcs
        nodes = self.model.nodes
        arc = nodes.artificial_arc[node]
        along = (arcs.tail[arc] == node) == (nodes.supply[node] > 0)
        changed = False
        if not along and arcs.flow[arc] <= self.tolerance:
            arcs.switch_direction(arc)
            arcs.flow[arc] = 0.0
            along = True
            changed = True
        cost_big = 1 if along else 2
        if arcs.cost_big[arc] != cost_big:
            arcs.cost_big[arc] = cost_big
            changed = True
        if changed and self.basis.parent_arc[node] == arc:
            self.basis.refresh_subtree(node)
