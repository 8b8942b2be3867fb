"""Arena storage for the engine's internal network and attribute coercion.

Nodes and arcs are records addressed by stable integer indices. Index 0 is the
artificial root. Arc columns are growable numpy arrays so that pricing can scan
them without Python-level loops; node data stays in plain lists because tree
updates touch one node at a time.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

import numpy as np

from .data import ArcStatus
from .exceptions import ElementNotFoundError

logger = logging.getLogger(__name__)

ROOT = 0
NO_ARC = -1

DEFAULT_SUPPLY = 0.0
DEFAULT_COST = 1.0
INFINITE_CAPACITY = math.inf

# Arc key of a real arc: (edge id, True for the edge's own direction)
ArcKey = tuple[str, bool]


def _to_float(value: Any) -> float:
    """Convert an attribute value to float, NaN when it is not numeric."""
    if isinstance(value, bool) or value is None:
        return math.nan
    if isinstance(value, (int, float, np.integer, np.floating)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return math.nan
    return math.nan


def _substitute(kind: str, element_id: object, name: str | None, value: Any, default: float) -> float:
    if value is None:
        if name is not None and logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Missing {kind} attribute on '{element_id}', using {default}",
                extra={"element": element_id, "attribute": name, "default": default},
            )
    else:
        logger.warning(
            f"Ill-typed {kind} value {value!r} on '{element_id}', using {default}",
            extra={"element": element_id, "attribute": name, "value": repr(value), "default": default},
        )
    return default


def coerce_supply(value: Any, element_id: object, name: str | None = None) -> float:
    """Return a node supply; missing or non-numeric values become 0."""
    number = _to_float(value)
    if math.isnan(number) or math.isinf(number):
        return _substitute("supply", element_id, name, value, DEFAULT_SUPPLY)
    return number


def coerce_cost(value: Any, element_id: object, name: str | None = None) -> float:
    """Return an arc cost; missing or non-numeric values become 1."""
    number = _to_float(value)
    if math.isnan(number) or math.isinf(number):
        return _substitute("cost", element_id, name, value, DEFAULT_COST)
    return number


def coerce_capacity(value: Any, element_id: object, name: str | None = None) -> float:
    """Return an arc capacity; missing, non-numeric or negative values mean infinite."""
    number = _to_float(value)
    if math.isnan(number) or number < 0:
        return _substitute("capacity", element_id, name, value, INFINITE_CAPACITY)
    return number


class NodeTable:
    """Node records. Slot 0 is the root, which has no id and no artificial arc.

    Slots of removed nodes are recycled by later insertions, so the table never
    holds more slots than the largest number of nodes alive at once.
    """

    def __init__(self) -> None:
        self.ids: list[str | None] = []
        self.supply: list[float] = []
        self.artificial_arc: list[int] = []
        self.alive: list[bool] = []
        self.index: dict[str, int] = {}
        self.free: list[int] = []
        self.clear()

    def clear(self) -> None:
        self.ids = [None]
        self.supply = [0.0]
        self.artificial_arc = [NO_ARC]
        self.alive = [True]
        self.index = {}
        self.free = []

    def __len__(self) -> int:
        return len(self.ids)

    def append(self, node_id: str, supply: float) -> int:
        if self.free:
            idx = self.free.pop()
            self.ids[idx] = node_id
            self.supply[idx] = supply
            self.artificial_arc[idx] = NO_ARC
            self.alive[idx] = True
        else:
            idx = len(self.ids)
            self.ids.append(node_id)
            self.supply.append(supply)
            self.artificial_arc.append(NO_ARC)
            self.alive.append(True)
        self.index[node_id] = idx
        return idx

    def kill(self, idx: int) -> None:
        self.alive[idx] = False
        self.supply[idx] = 0.0
        self.artificial_arc[idx] = NO_ARC
        node_id = self.ids[idx]
        if node_id is not None and self.index.get(node_id) == idx:
            del self.index[node_id]
        self.free.append(idx)

    def lookup(self, node_id: str) -> int:
        try:
            return self.index[node_id]
        except KeyError:
            raise ElementNotFoundError(f"Unknown node '{node_id}'", element=node_id) from None

    def live(self) -> list[int]:
        """Indices of live real nodes, in slot order."""
        return [idx for idx in range(1, len(self.ids)) if self.alive[idx]]

    def count(self) -> int:
        return len(self.index)


class ArcTable:
    """Arc records stored column-wise in growable numpy arrays.

    Costs are big-M pairs: ``cost`` holds the finite part and ``cost_big`` the
    coefficient of M. Real arcs have ``cost_big`` 0. An artificial arc has cost
    ``(0, 1)`` while it points along its node's supply (node to root for a
    positive supply, root to node otherwise) and ``(0, 2)`` while it is basic
    against it, so that flow it still carries in that direction is driven out
    first. Artificial arcs have infinite capacity.

    ``size`` is the high-water mark of the columns. Slots of removed arcs go to
    a free list and are reused by later insertions.
    """

    def __init__(self, initial_size: int = 16) -> None:
        self.size = 0
        self._allocate(initial_size)
        self.keys: list[ArcKey | None] = []
        self.free: list[int] = []

    def _allocate(self, length: int) -> None:
        self.tail = np.zeros(length, dtype=np.int64)
        self.head = np.zeros(length, dtype=np.int64)
        self.cost = np.zeros(length, dtype=np.float64)
        self.cost_big = np.zeros(length, dtype=np.int64)
        self.capacity = np.zeros(length, dtype=np.float64)
        self.flow = np.zeros(length, dtype=np.float64)
        self.status = np.zeros(length, dtype=np.int8)
        self.artificial = np.zeros(length, dtype=np.bool_)
        self.alive = np.zeros(length, dtype=np.bool_)

    def clear(self) -> None:
        self.size = 0
        self._allocate(16)
        self.keys = []
        self.free = []

    def __len__(self) -> int:
        return self.size

    def _grow(self) -> None:
        length = max(16, 2 * len(self.tail))
        for name in (
            "tail", "head", "cost", "cost_big", "capacity", "flow", "status", "artificial", "alive"
        ):
            column = getattr(self, name)
            grown = np.zeros(length, dtype=column.dtype)
            grown[: self.size] = column[: self.size]
            setattr(self, name, grown)

    def append(
        self,
        tail: int,
        head: int,
        cost: float,
        capacity: float,
        status: ArcStatus = ArcStatus.NONBASIC_LOWER,
        flow: float = 0.0,
        artificial: bool = False,
        key: ArcKey | None = None,
    ) -> int:
        if self.free:
            idx = self.free.pop()
        else:
            if self.size == len(self.tail):
                self._grow()
            idx = self.size
            self.size += 1
            self.keys.append(None)
        self.tail[idx] = tail
        self.head[idx] = head
        self.cost[idx] = cost
        self.cost_big[idx] = 1 if artificial else 0
        self.capacity[idx] = capacity
        self.flow[idx] = flow
        self.status[idx] = status
        self.artificial[idx] = artificial
        self.alive[idx] = True
        self.keys[idx] = key
        return idx

    def release(self, arc: int) -> None:
        """Drop an arc that is no longer part of the tree and recycle its slot."""
        self.alive[arc] = False
        self.flow[arc] = 0.0
        self.status[arc] = ArcStatus.NONBASIC_LOWER
        self.keys[arc] = None
        self.free.append(arc)

    def live_count(self) -> int:
        return self.size - len(self.free)

    # ------------------------------------------------------------------
    # Scalar helpers used by the pivot machinery

    def cost_pair(self, arc: int) -> tuple[float, int]:
        return float(self.cost[arc]), int(self.cost_big[arc])

    def opposite(self, arc: int, node: int) -> int:
        return int(self.head[arc]) if self.tail[arc] == node else int(self.tail[arc])

    def allowed_change(self, arc: int, node: int) -> float:
        """Flow that can still be pushed through ``arc`` leaving from ``node``.

        Leaving from the tail the arc moves forward, limited by its residual
        capacity; leaving from the head it moves backward, limited by its flow.
        """
        if self.tail[arc] == node:
            capacity = self.capacity[arc]
            if math.isinf(capacity):
                return math.inf
            return float(capacity - self.flow[arc])
        return float(self.flow[arc])

    def change_flow(self, arc: int, delta: float, node: int, tolerance: float) -> None:
        """Push ``delta`` units through ``arc`` leaving from ``node``."""
        flow = self.flow[arc] + delta if self.tail[arc] == node else self.flow[arc] - delta
        if abs(flow) <= tolerance:
            flow = 0.0
        else:
            capacity = self.capacity[arc]
            if not math.isinf(capacity) and abs(flow - capacity) <= tolerance:
                flow = capacity
        self.flow[arc] = flow

    def switch_direction(self, arc: int) -> None:
        self.tail[arc], self.head[arc] = self.head[arc], self.tail[arc]
        self.flow[arc] = -self.flow[arc]

    # ------------------------------------------------------------------
    # Vectorised aggregates

    def real_mask(self) -> np.ndarray:
        size = self.size
        return self.alive[:size] & ~self.artificial[:size]

    def artificial_mask(self) -> np.ndarray:
        size = self.size
        return self.alive[:size] & self.artificial[:size]

    def objective(self) -> float:
        mask = self.real_mask()
        return float(np.dot(self.cost[: self.size][mask], self.flow[: self.size][mask]))

    def infeasibility(self) -> float:
        mask = self.artificial_mask()
        return float(np.abs(self.flow[: self.size][mask]).sum())


@dataclass
class EdgeArcs:
    """Arcs modelling one graph edge. Undirected edges get a reverse arc."""

    edge_id: str
    source: str
    target: str
    directed: bool
    forward: int
    reverse: int | None = None

    def arcs(self) -> tuple[int, ...]:
        return (self.forward,) if self.reverse is None else (self.forward, self.reverse)


class NetworkModel:
    """Node table, arc table, the edge-to-arc index and the incident edges of every node."""

    def __init__(self) -> None:
        self.nodes = NodeTable()
        self.arcs = ArcTable()
        self.edges: dict[str, EdgeArcs] = {}
        # Dicts keep the incident edges of a node in insertion order
        self.incident: dict[str, dict[str, None]] = {}

    def clear(self) -> None:
        self.nodes.clear()
        self.arcs.clear()
        self.edges.clear()
        self.incident.clear()

    def edge_arcs(self, edge_id: str) -> EdgeArcs:
        try:
            return self.edges[edge_id]
        except KeyError:
            raise ElementNotFoundError(f"Unknown edge '{edge_id}'", element=edge_id) from None

    def incident_edges(self, node_id: str) -> list[str]:
        """Ids of the edges touching ``node_id``, oldest first."""
        return list(self.incident.get(node_id, ()))

    def add_edge_arcs(
        self,
        edge_id: str,
        source: str,
        target: str,
        directed: bool,
        cost: float,
        capacity: float,
    ) -> EdgeArcs:
        tail = self.nodes.lookup(source)
        head = self.nodes.lookup(target)
        forward = self.arcs.append(tail, head, cost, capacity, key=(edge_id, True))
        reverse = None
        if not directed:
            reverse = self.arcs.append(head, tail, cost, capacity, key=(edge_id, False))
        record = EdgeArcs(edge_id, source, target, directed, forward, reverse)
        self.edges[edge_id] = record
        self.incident.setdefault(source, {})[edge_id] = None
        self.incident.setdefault(target, {})[edge_id] = None
        return record

    def drop_edge(self, edge_id: str) -> None:
        """Forget an edge whose arcs have been released."""
        record = self.edges.pop(edge_id)
        for node_id in (record.source, record.target):
            incident = self.incident.get(node_id)
            if incident is not None:
                incident.pop(edge_id, None)

    def drop_node(self, node: int) -> None:
        """Forget a node whose edges and artificial arc are gone."""
        node_id = self.nodes.ids[node]
        self.incident.pop(node_id, None)  # type: ignore[arg-type]
        self.nodes.kill(node)

    def arc_label(self, arc: int) -> str:
        """Human readable arc name for logs and debug tables."""
        key = self.arcs.keys[arc]
        if key is None:
            tail, head = int(self.arcs.tail[arc]), int(self.arcs.head[arc])
            node = tail if tail != ROOT else head
            return f"artificial[{self.nodes.ids[node]}]"
        edge_id, forward = key
        return edge_id if forward else f"{edge_id}(reverse)"

    def supply_total(self) -> float:
        """Sum of the supplies of the live real nodes."""
        return float(sum(self.nodes.supply[idx] for idx in self.nodes.live()))
