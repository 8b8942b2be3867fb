"""Core data structures shared by the dynamic network simplex engine."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum, Flag, IntEnum, auto
from typing import TYPE_CHECKING, Any

from .exceptions import SolverConfigurationError

if TYPE_CHECKING:
    from .graph import DynamicGraph


class ArcStatus(IntEnum):
    """Position of an arc with respect to the current basis.

    Values are stored in the arc table's ``status`` column, hence the integer
    encoding.
    """

    BASIC = 0
    NONBASIC_LOWER = 1
    NONBASIC_UPPER = 2


class SolutionStatus(str, Enum):
    """Status of the current solution.

    UNDEFINED means the network changed since the last compute(). INFEASIBLE
    means some supplies cannot be routed (artificial arcs still carry flow).
    UNBOUNDED means an uncapacitated negative-cost cycle exists.
    """

    UNDEFINED = "undefined"
    OPTIMAL = "optimal"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"


class PricingStrategy(str, Enum):
    """Entering-arc selection rule.

    FIRST_NEGATIVE makes each iteration cheap but usually needs more pivots.
    MOST_NEGATIVE (Dantzig rule) scans every nonbasic arc and usually needs
    fewer pivots.
    """

    FIRST_NEGATIVE = "first_negative"
    MOST_NEGATIVE = "most_negative"


class ChangeState(Flag):
    """Dirty markers of an element with changes queued for the next compute().

    Markers combine: an edge whose cost and capacity both changed reports
    ``DIRTY_COST | DIRTY_CAPACITY``. DIRTY_POTENTIAL flags a cost change on an
    arc that was basic when the change arrived, which forces a potential
    refresh of the subtree below it.
    """

    CLEAN = 0
    DIRTY_COST = auto()
    DIRTY_CAPACITY = auto()
    DIRTY_SUPPLY = auto()
    DIRTY_POTENTIAL = auto()
    ADDED = auto()
    REMOVED = auto()


@dataclass(frozen=True)
class AttributeNames:
    """Names of the graph attributes holding the problem data.

    Attributes:
        supply: Node attribute with the supply (positive) or demand (negative).
        capacity: Edge attribute with the arc capacity.
        cost: Edge attribute with the cost per unit of flow.

    Any name may be None, in which case the corresponding default is used for
    every element and attribute events are ignored.

    Examples:
        >>> names = AttributeNames(supply="supply", capacity="cap", cost="weight")
        >>> names.tracks("cap")
        True
    """

    supply: str | None = "supply"
    capacity: str | None = "capacity"
    cost: str | None = "cost"

    def tracks(self, name: str) -> bool:
        return name in (self.supply, self.capacity, self.cost)


@dataclass(frozen=True)
class ProgressInfo:
    """Progress information provided during compute().

    Attributes:
        pivots: Pivots performed by the current compute() call.
        total_pivots: Pivots performed since init().
        objective: Current cost of the real arcs.
        infeasibility: Total flow still carried by artificial arcs.
        elapsed_time: Elapsed time in seconds since compute() started.
    """

    pivots: int
    total_pivots: int
    objective: float
    infeasibility: float
    elapsed_time: float


# Type alias for progress callback function
ProgressCallback = Callable[[ProgressInfo], None]


@dataclass
class SolverOptions:
    """Configuration options for the dynamic network simplex engine.

    Attributes:
        pricing_strategy: Entering arc selection rule, a PricingStrategy or its
                          name ("first_negative" / "most_negative").
                          Default: MOST_NEGATIVE.
        tolerance: Numerical tolerance for reduced cost signs and ratio test
                   ties (default: 1e-9). Integral data is handled exactly.
        max_pivots: Optional cap on the pivots of a single compute() call.
                    None (default) means no cap; when exceeded compute() raises
                    IterationLimitError and the solution stays UNDEFINED.
        flow_attribute: Optional edge attribute name. After each optimisation
                        the engine writes the flow of every edge onto the graph
                        under this name (net flow for undirected edges).
        validate_basis: Run a full tree consistency check after applying
                        pending changes; a failed check triggers a rebuild
                        (default: False).
        progress_interval: Pivots between progress callbacks (default: 100).

    Examples:
        >>> options = SolverOptions(pricing_strategy="first_negative")
        >>> options.pricing_strategy
        <PricingStrategy.FIRST_NEGATIVE: 'first_negative'>

        >>> # Bounded latency: give up after 10k pivots
        >>> options = SolverOptions(max_pivots=10_000)
    """

    pricing_strategy: PricingStrategy | str = PricingStrategy.MOST_NEGATIVE
    tolerance: float = 1e-9
    max_pivots: int | None = None
    flow_attribute: str | None = None
    validate_basis: bool = False
    progress_interval: int = 100

    def __post_init__(self) -> None:
        if not isinstance(self.pricing_strategy, PricingStrategy):
            try:
                self.pricing_strategy = PricingStrategy(str(self.pricing_strategy).lower())
            except ValueError:
                raise SolverConfigurationError(
                    f"Invalid pricing strategy '{self.pricing_strategy}'. Must be "
                    f"'first_negative' or 'most_negative'."
                ) from None
        if not self.tolerance > 0 or math.isinf(self.tolerance):
            raise SolverConfigurationError(
                f"Tolerance must be positive and finite, got {self.tolerance}. "
                f"Tolerance controls the sign tests on reduced costs."
            )
        if self.max_pivots is not None and self.max_pivots <= 0:
            raise SolverConfigurationError(
                f"max_pivots must be positive, got {self.max_pivots}. "
                f"Use None to disable the pivot cap."
            )
        if self.progress_interval <= 0:
            raise SolverConfigurationError(
                f"progress_interval must be positive, got {self.progress_interval}."
            )


@dataclass
class FlowResult:
    """Snapshot of the engine's current solution.

    Attributes:
        status: Solution status at the time of the snapshot.
        objective: Total cost of the real arcs (∑ cost_ij * flow_ij).
        flows: Mapping of edge id to flow. Undirected edges report the net flow,
               positive from source to target. Zero flows are omitted.
        duals: Mapping of node id to the finite part of its potential.
        infeasibility: Mapping of node id to its unsatisfied balance. Only
                       non-zero entries are kept; empty for feasible solutions.
        network_balance: Sum of all supplies (0 for a balanced network).
        iterations: Pivots performed since init().

    Examples:
        >>> result = engine.result()
        >>> print(f"{result.status.value}: {result.objective}")
        optimal: 47.0
    """

    status: SolutionStatus
    objective: float
    flows: dict[str, float] = field(default_factory=dict)
    duals: dict[str, float] = field(default_factory=dict)
    infeasibility: dict[str, float] = field(default_factory=dict)
    network_balance: float = 0.0
    iterations: int = 0


def build_graph(
    nodes: Iterable[Mapping[str, Any]],
    edges: Iterable[Mapping[str, Any]],
    directed: bool = True,
) -> DynamicGraph:
    """Factory helper assembling a DynamicGraph from plain dictionaries.

    Each node mapping needs an ``id``; every other key becomes a node attribute.
    Each edge mapping needs ``source``/``target`` (or ``tail``/``head``); ``id``
    defaults to ``f"{source}{target}"`` and ``directed`` defaults to the
    ``directed`` argument. Other keys become edge attributes.

    Examples:
        >>> graph = build_graph(
        ...     nodes=[{"id": "s", "supply": 4}, {"id": "t", "supply": -4}],
        ...     edges=[{"source": "s", "target": "t", "capacity": 5, "cost": 2}],
        ... )
        >>> graph.edge("st").attributes["cost"]
        2
    """
    from .graph import DynamicGraph

    graph = DynamicGraph()
    for node in nodes:
        attributes = {key: value for key, value in node.items() if key != "id"}
        graph.add_node(str(node["id"]), **attributes)
    for edge in edges:
        source = edge.get("source", edge.get("tail"))
        target = edge.get("target", edge.get("head"))
        edge_id = edge.get("id", f"{source}{target}")
        attributes = {
            key: value
            for key, value in edge.items()
            if key not in ("id", "source", "target", "tail", "head", "directed")
        }
        graph.add_edge(
            str(edge_id),
            str(source),
            str(target),
            directed=bool(edge.get("directed", directed)),
            **attributes,
        )
    return graph
