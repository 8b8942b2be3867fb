"""Change events emitted by a dynamic graph and consumed by the engine.

Events are plain immutable records. The graph delivers them synchronously to
every registered sink; the engine only appends them to a queue and applies them
at the start of the next ``compute()``. Each event carries a copy of the data it
introduces, so applying a queued event never depends on the graph's state at
drain time.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class ElementKind(str, Enum):
    NODE = "node"
    EDGE = "edge"


class AttributeChange(str, Enum):
    ADDED = "added"
    CHANGED = "changed"
    REMOVED = "removed"


@dataclass(frozen=True)
class NodeAdded:
    node_id: str
    attributes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NodeRemoved:
    node_id: str


@dataclass(frozen=True)
class EdgeAdded:
    edge_id: str
    source: str
    target: str
    directed: bool = True
    attributes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EdgeRemoved:
    edge_id: str


@dataclass(frozen=True)
class AttributeChanged:
    """A node or edge attribute was added, changed or removed.

    Attributes:
        kind: Whether ``element_id`` names a node or an edge.
        element_id: Identifier of the element.
        name: Attribute name.
        change: ADDED, CHANGED or REMOVED.
        old_value: Previous value (None when the attribute was added).
        new_value: New value (None when the attribute was removed).
    """

    kind: ElementKind
    element_id: str
    name: str
    change: AttributeChange
    old_value: Any = None
    new_value: Any = None


@dataclass(frozen=True)
class GraphCleared:
    pass


GraphEvent = Union[NodeAdded, NodeRemoved, EdgeAdded, EdgeRemoved, AttributeChanged, GraphCleared]

# Sinks receive every event in emission order
EventSink = Callable[[GraphEvent], None]
