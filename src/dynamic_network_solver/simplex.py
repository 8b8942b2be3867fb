"""Incremental network simplex for the minimum-cost flow problem."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Union

from .basis import TreeBasis
from .data import (
    ArcStatus,
    AttributeNames,
    ChangeState,
    FlowResult,
    PricingStrategy,
    ProgressCallback,
    ProgressInfo,
    SolutionStatus,
    SolverOptions,
)
from .events import GraphEvent
from .exceptions import (
    BasisCorruptionError,
    IterationLimitError,
    SolverConfigurationError,
)
from .graph import DynamicGraph
from .model import NO_ARC, ROOT, NetworkModel, coerce_supply
from .simplex_changes import ChangeHandler, read_attribute
from .simplex_pricing import select_entering_arc

# An edge is addressed by its id or by a (source, target) pair of node ids
EdgeRef = Union[str, tuple[str, str]]


@dataclass
class PivotPlan:
    """Cycle, ratio-test result and re-rooting endpoints of one pivot.

    The cycle is closed by the entering arc and oriented from ``first`` to
    ``second`` across it. ``delta`` is the flow pushed around the cycle; the
    tree path from ``new_subtree_root`` up to ``old_subtree_root`` is turned
    upside down when the leaving arc differs from the entering one.
    """

    entering: int
    first: int
    second: int
    join: int
    delta: float
    leaving: int
    old_subtree_root: int = ROOT
    new_subtree_root: int = ROOT


class NetworkSimplex:
    """Incremental network simplex solver for the minimum-cost flow problem.

    The solver observes a :class:`~dynamic_network_solver.graph.DynamicGraph`.
    Every node supplies (positive) or demands (negative) flow, every edge has a
    cost per unit of flow and a capacity. After each change of the graph the
    previous optimal basis is repaired instead of solving from scratch.

    Implementation Details:
        - Primal network simplex on a spanning tree rooted at an artificial root
        - One artificial arc per node with symbolic big-M cost, giving an
          initial feasible basis and detecting infeasibility
        - Parent/thread/depth tree representation, only the moved subtree is
          updated after a pivot
        - Strongly feasible basis maintained through the leaving-arc tie rule
        - Graph changes are queued and applied lazily by compute()

    Attributes:
        names: Attribute names read from the graph.
        options: Solver configuration (pricing strategy, tolerance, etc.).
        model: Arena storage of nodes and arcs.
        basis: TreeBasis managing the spanning tree and potentials.

    Examples:
        >>> engine = NetworkSimplex(AttributeNames("supply", "capacity", "cost"))
        >>> engine.init(graph)
        >>> engine.compute()
        <SolutionStatus.OPTIMAL: 'optimal'>
        >>> graph.set_edge_attribute("AB", "cost", 5)
        >>> engine.compute()  # repairs the previous basis
        <SolutionStatus.OPTIMAL: 'optimal'>

    See Also:
        - solve_min_cost_flow(): One-shot wrapper
        - DynamicShortestPath: Single-source shortest path specialization
    """

    def __init__(
        self,
        names: AttributeNames | None = None,
        options: SolverOptions | None = None,
    ) -> None:
        self.names = names if names is not None else AttributeNames()
        self.options = options if options is not None else SolverOptions()
        self.logger = logging.getLogger(__name__)
        self.model = NetworkModel()
        self.basis = TreeBasis(self.model.arcs)
        self.graph: DynamicGraph | None = None
        self._changes = ChangeHandler(self)
        self._status = SolutionStatus.UNDEFINED
        self.total_pivots = 0
        self.rebuilds = 0

    # ------------------------------------------------------------------
    # Configuration

    @property
    def pricing_strategy(self) -> PricingStrategy:
        return self.options.pricing_strategy  # type: ignore[return-value]

    @pricing_strategy.setter
    def pricing_strategy(self, strategy: PricingStrategy | str) -> None:
        self.options = replace(self.options, pricing_strategy=strategy)

    # ------------------------------------------------------------------
    # Lifecycle

    def init(self, graph: DynamicGraph, names: AttributeNames | None = None) -> None:
        """Attach to a graph and build the initial basis.

        Every node starts below the root on its artificial arc, every real arc
        starts at its lower bound. The solution is UNDEFINED until compute().
        """
        if names is not None:
            self.names = names
        flow_attribute = self.options.flow_attribute
        if flow_attribute is not None and self.names.tracks(flow_attribute):
            raise SolverConfigurationError(
                f"flow_attribute '{flow_attribute}' collides with an input attribute name"
            )
        if self.graph is not None:
            self.graph.remove_sink(self._on_graph_event)
        self.graph = graph
        self._changes.reset()
        self.total_pivots = 0
        self._build()
        graph.add_sink(self._on_graph_event)
        self.logger.info(
            "Initialized network simplex",
            extra={
                "nodes": self.model.nodes.count(),
                "edges": len(self.model.edges),
                "arcs": self.model.arcs.size,
                "pricing_strategy": self.pricing_strategy.value,
            },
        )

    def terminate(self) -> None:
        """Stop observing the graph. The last solution stays queryable."""
        if self.graph is not None:
            self.graph.remove_sink(self._on_graph_event)
        self._changes.reset()
        self._status = SolutionStatus.UNDEFINED

    def _require_init(self) -> DynamicGraph:
        if self.graph is None:
            raise SolverConfigurationError("init() must be called before using the solver")
        return self.graph

    def _build(self) -> None:
        """Rebuild the arena and the initial star-shaped basis from the graph."""
        graph = self._require_init()
        self.model.clear()
        self.basis.reset()
        for node_id in graph.nodes():
            self._changes.add_node(node_id, self._initial_supply(node_id, graph.node_attributes(node_id)))
        for record in graph.edges():
            self._changes.add_edge(
                record.edge_id, record.source, record.target, record.directed, record.attributes
            )
        self._status = SolutionStatus.UNDEFINED

    def _initial_supply(self, node_id: str, attributes: Mapping[str, Any]) -> float:
        return coerce_supply(read_attribute(attributes, self.names.supply), node_id, self.names.supply)

    def _on_node_added(self, node_id: str, attributes: Mapping[str, Any]) -> None:
        self._changes.add_node(node_id, self._initial_supply(node_id, attributes))

    def _on_node_removed(self, node_id: str) -> None:
        self._changes.remove_node(node_id)

    def _on_graph_event(self, event: GraphEvent) -> None:
        if self._changes.enqueue(event):
            self._status = SolutionStatus.UNDEFINED

    def pending_changes(self) -> dict[tuple[str, str], ChangeState]:
        """Dirty markers of the elements with queued changes.

        Keys are ``("node", id)`` or ``("edge", id)``.

        Examples:
            >>> graph.set_edge_attribute("AB", "cost", 3)
            >>> engine.pending_changes()
            {('edge', 'AB'): <ChangeState.DIRTY_COST: 1>}
        """
        return dict(self._changes.markers)

    # ------------------------------------------------------------------
    # Optimisation

    def compute(self, progress_callback: ProgressCallback | None = None) -> SolutionStatus:
        """Apply queued changes and re-optimise.

        Calling compute() again without intervening changes does nothing.

        Args:
            progress_callback: Optional callable receiving ProgressInfo every
                ``options.progress_interval`` pivots.

        Returns:
            The solution status.

        Raises:
            SolverConfigurationError: If init() was not called.
            IterationLimitError: If ``options.max_pivots`` pivots did not suffice.
        """
        self._require_init()
        if not self._changes.queue and self._status is not SolutionStatus.UNDEFINED:
            return self._status

        start_time = time.perf_counter()
        self._apply_pending_changes()
        self._status = SolutionStatus.UNDEFINED
        pivots = self._simplex(progress_callback, start_time)
        self._publish_flows()

        self.logger.info(
            "Network simplex finished",
            extra={
                "status": self._status.value,
                "pivots": pivots,
                "objective": self.get_objective_value(),
                "elapsed_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        return self._status

    def _apply_pending_changes(self) -> None:
        try:
            applied = self._changes.drain()
            if self.options.validate_basis:
                self.basis.check(self.model.nodes, self.options.tolerance)
        except BasisCorruptionError as exc:
            self.logger.warning(
                "Basis inconsistent after changes; rebuilding from the graph",
                extra={"error": str(exc), "node": exc.node},
            )
            self._changes.reset()
            self.rebuilds += 1
            self._build()
            return
        if applied and self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug("Applied pending changes", extra={"events": applied})

    def _simplex(self, progress_callback: ProgressCallback | None, start_time: float) -> int:
        """Main loop: price, ratio test, pivot until no candidate remains."""
        arcs = self.model.arcs
        tolerance = self.options.tolerance
        max_pivots = self.options.max_pivots
        interval = self.options.progress_interval
        pivots = 0

        while True:
            infeasibility = arcs.infeasibility()
            entering = select_entering_arc(self.pricing_strategy, self.basis, infeasibility, tolerance)
            if entering is None:
                if infeasibility > tolerance:
                    self._status = SolutionStatus.INFEASIBLE
                else:
                    self._status = SolutionStatus.OPTIMAL
                break
            plan = self._select_leaving_arc(entering)
            if math.isinf(plan.delta):
                self._status = SolutionStatus.UNBOUNDED
                break
            if max_pivots is not None and pivots >= max_pivots:
                raise IterationLimitError(
                    f"Pivot limit reached: {pivots} pivots completed",
                    iterations=pivots,
                    objective=self.get_objective_value(),
                    status=SolutionStatus.UNDEFINED.value,
                )
            self._pivot(plan)
            pivots += 1
            self.total_pivots += 1

            if self.logger.isEnabledFor(logging.DEBUG):
                self.logger.debug(
                    "Pivot",
                    extra={
                        "pivot": pivots,
                        "entering": self.model.arc_label(plan.entering),
                        "leaving": self.model.arc_label(plan.leaving),
                        "delta": plan.delta,
                    },
                )
            if progress_callback is not None and pivots % interval == 0:
                progress_callback(
                    ProgressInfo(
                        pivots=pivots,
                        total_pivots=self.total_pivots,
                        objective=self.get_objective_value(),
                        infeasibility=arcs.infeasibility(),
                        elapsed_time=time.perf_counter() - start_time,
                    )
                )
        return pivots

    # ------------------------------------------------------------------
    # Pivot machinery

    def _select_leaving_arc(self, entering: int) -> PivotPlan:
        """Ratio test on the cycle closed by ``entering``.

        Ties are broken toward the last blocking arc met when the cycle is
        traversed in its direction starting from the join node, which keeps
        the basis strongly feasible. An infinite ``delta`` in the returned plan
        means the cycle is uncapacitated.
        """
        arcs = self.model.arcs
        basis = self.basis
        tolerance = self.options.tolerance
        tail = int(arcs.tail[entering])
        head = int(arcs.head[entering])
        if arcs.status[entering] == ArcStatus.NONBASIC_LOWER:
            first, second = tail, head
        else:
            first, second = head, tail
        plan = PivotPlan(
            entering=entering,
            first=first,
            second=second,
            join=basis.join(tail, head),
            delta=arcs.allowed_change(entering, first),
            leaving=entering,
        )

        node = second
        while node != plan.join:
            arc = basis.parent_arc[node]
            change = arcs.allowed_change(arc, node)
            if change <= plan.delta + tolerance:
                plan.delta = min(change, plan.delta)
                plan.leaving = arc
                plan.old_subtree_root = node
                plan.new_subtree_root = second
            node = basis.parent[node]

        node = first
        while node != plan.join:
            arc = basis.parent_arc[node]
            parent = basis.parent[node]
            change = arcs.allowed_change(arc, parent)
            if change < plan.delta - tolerance:
                plan.delta = change
                plan.leaving = arc
                plan.old_subtree_root = node
                plan.new_subtree_root = first
            node = parent
        return plan

    def _change_flows(self, plan: PivotPlan) -> None:
        delta = plan.delta
        if delta == 0:
            return
        arcs = self.model.arcs
        basis = self.basis
        tolerance = self.options.tolerance
        arcs.change_flow(plan.entering, delta, plan.first, tolerance)
        node = plan.second
        while node != plan.join:
            arcs.change_flow(basis.parent_arc[node], delta, node, tolerance)
            node = basis.parent[node]
        node = plan.first
        while node != plan.join:
            parent = basis.parent[node]
            arcs.change_flow(basis.parent_arc[node], delta, parent, tolerance)
            node = parent

    def _pivot(self, plan: PivotPlan) -> None:
        """Push flow around the cycle and exchange the entering and leaving arcs."""
        arcs = self.model.arcs
        self._change_flows(plan)
        entering, leaving = plan.entering, plan.leaving
        if entering == leaving:
            if arcs.status[entering] == ArcStatus.NONBASIC_LOWER:
                arcs.status[entering] = ArcStatus.NONBASIC_UPPER
            else:
                arcs.status[entering] = ArcStatus.NONBASIC_LOWER
            return
        arcs.status[entering] = ArcStatus.BASIC
        along_cycle = (
            plan.new_subtree_root == plan.first and plan.old_subtree_root == arcs.head[leaving]
        ) or (plan.new_subtree_root == plan.second and plan.old_subtree_root == arcs.tail[leaving])
        arcs.status[leaving] = ArcStatus.NONBASIC_UPPER if along_cycle else ArcStatus.NONBASIC_LOWER
        if arcs.status[leaving] == ArcStatus.NONBASIC_LOWER:
            arcs.flow[leaving] = 0.0
        else:
            arcs.flow[leaving] = arcs.capacity[leaving]
        self._update_tree(plan)
        if arcs.artificial[leaving] and arcs.cost_big[leaving] != 1:
            # Out of the tree, the arc is only offered along its node's supply
            arcs.switch_direction(leaving)
            arcs.flow[leaving] = 0.0
            arcs.cost_big[leaving] = 1

    def _update_tree(self, plan: PivotPlan) -> None:
        """Re-root the path between the entering and the leaving arc."""
        basis = self.basis
        stop = basis.parent[plan.old_subtree_root]
        current = plan.new_subtree_root
        old_parent = basis.parent[current]
        new_parent = self.model.arcs.opposite(plan.entering, current)
        old_arc = basis.parent_arc[current]
        new_arc = plan.entering
        while current != stop:
            basis.change_parent(current, new_parent, new_arc)
            new_parent = current
            current = old_parent
            old_parent = basis.parent[current]
            new_arc = old_arc
            old_arc = basis.parent_arc[current]

    # ------------------------------------------------------------------
    # Queries

    def _arc_of(self, edge: EdgeRef, same_direction: bool) -> int | None:
        """Resolve an edge reference to one of its arcs (None if it has none)."""
        graph = self._require_init()
        if isinstance(edge, tuple):
            source, target = edge
            record = graph.edge_between(source, target)
            edge_id = record.edge_id
            if not record.directed and record.source != source:
                same_direction = not same_direction
        else:
            edge_id = edge
        arcs = self.model.edge_arcs(edge_id)
        if same_direction:
            return arcs.forward
        return arcs.reverse

    def get_flow(self, edge: EdgeRef, same_direction: bool = True) -> float:
        """Flow on an edge.

        For an undirected edge ``same_direction=False`` gives the flow from
        target to source. A directed edge carries no flow against its
        direction.

        Raises:
            ElementNotFoundError: If the edge (or the node pair) is unknown.
        """
        arc = self._arc_of(edge, same_direction)
        return 0.0 if arc is None else float(self.model.arcs.flow[arc])

    def get_status(self, edge: EdgeRef, same_direction: bool = True) -> ArcStatus | None:
        """Basis status of an edge's arc, None against a directed edge."""
        arc = self._arc_of(edge, same_direction)
        return None if arc is None else ArcStatus(int(self.model.arcs.status[arc]))

    def get_solution_status(self) -> SolutionStatus:
        return self._status

    def get_objective_value(self) -> float:
        """Total cost ∑ cost·flow over the real arcs."""
        return self.model.arcs.objective()

    def get_solution_infeasibility(self) -> float:
        """Total flow still carried by artificial arcs (0 when feasible)."""
        return self.model.arcs.infeasibility()

    def get_network_balance(self) -> float:
        """Sum of all supplies; non-zero means the network is unbalanced."""
        return -self.model.nodes.supply[ROOT]

    def get_node_balance(self, node_id: str) -> float:
        """Supply of ``node_id`` that could not be routed.

        Positive for unshipped supply, negative for unmet demand, 0 when the
        node is satisfied.
        """
        self._require_init()
        nodes = self.model.nodes
        arcs = self.model.arcs
        artificial = nodes.artificial_arc[nodes.lookup(node_id)]
        flow = float(arcs.flow[artificial])
        return flow if arcs.head[artificial] == ROOT else -flow

    def get_parent_arc(self, node_id: str) -> str | None:
        """Edge joining ``node_id`` to its tree parent, None for artificial arcs."""
        self._require_init()
        arc = self.basis.parent_arc[self.model.nodes.lookup(node_id)]
        if arc == NO_ARC:
            return None
        key = self.model.arcs.keys[arc]
        return None if key is None else key[0]

    def get_parent(self, node_id: str) -> str | None:
        """Tree parent of ``node_id``, None for children of the root."""
        self._require_init()
        parent = self.basis.parent[self.model.nodes.lookup(node_id)]
        return None if parent == ROOT else self.model.nodes.ids[parent]

    def get_potential(self, node_id: str) -> float:
        """Finite part of the node potential (dual value)."""
        self._require_init()
        return float(self.basis.potential[self.model.nodes.lookup(node_id)])

    def check_basis(self) -> None:
        """Run the full tree consistency check.

        Raises:
            BasisCorruptionError: If the basis is inconsistent.
        """
        self._require_init()
        self.basis.check(self.model.nodes, self.options.tolerance)

    def result(self) -> FlowResult:
        """Snapshot of the current solution."""
        self._require_init()
        arcs = self.model.arcs
        tolerance = self.options.tolerance
        flows: dict[str, float] = {}
        for edge_id, record in self.model.edges.items():
            value = self._net_flow(record.forward, record.reverse)
            if abs(value) > tolerance:
                flows[edge_id] = value
        duals: dict[str, float] = {}
        infeasibility: dict[str, float] = {}
        for node in self.model.nodes.live():
            node_id = self.model.nodes.ids[node]
            duals[node_id] = float(self.basis.potential[node])
            artificial = self.model.nodes.artificial_arc[node]
            flow = float(arcs.flow[artificial])
            if flow > tolerance:
                infeasibility[node_id] = flow if arcs.head[artificial] == ROOT else -flow
        return FlowResult(
            status=self._status,
            objective=self.get_objective_value(),
            flows=flows,
            duals=duals,
            infeasibility=infeasibility,
            network_balance=self.get_network_balance(),
            iterations=self.total_pivots,
        )

    def _net_flow(self, forward: int, reverse: int | None) -> float:
        flow = self.model.arcs.flow
        value = float(flow[forward])
        if reverse is not None:
            value -= float(flow[reverse])
        return value

    def _publish_flows(self) -> None:
        name = self.options.flow_attribute
        if name is None or self.graph is None:
            return
        for edge_id, record in self.model.edges.items():
            self.graph.set_edge_attribute(edge_id, name, self._net_flow(record.forward, record.reverse))

    def format_basis(self) -> str:
        """Render nodes and arcs of the current basis as text tables."""
        self._require_init()
        nodes = self.model.nodes
        arcs = self.model.arcs
        basis = self.basis

        def node_name(idx: int) -> str:
            return "ROOT" if idx == ROOT else str(nodes.ids[idx])

        lines = [
            f"{'node':>20}{'supply':>10}{'potential':>14}{'parent':>20}{'thread':>20}{'depth':>7}"
        ]
        order = list(basis.subtree(ROOT))
        for idx in order:
            big = int(basis.potential_big[idx])
            potential = f"{basis.potential[idx]:g}" + (f"{big:+d}M" if big else "")
            lines.append(
                f"{node_name(idx):>20}{nodes.supply[idx]:>10g}{potential:>14}"
                f"{node_name(basis.parent[idx]):>20}{node_name(basis.thread[idx]):>20}"
                f"{basis.depth[idx]:>7}"
            )
        lines.append("")
        lines.append(
            f"{'arc':>24}{'tail':>20}{'head':>20}{'cost':>8}{'capacity':>10}{'flow':>10}  status"
        )
        for arc in range(arcs.size):
            if not arcs.alive[arc]:
                continue
            cost = f"{arcs.cost_big[arc]}M" if arcs.artificial[arc] else f"{arcs.cost[arc]:g}"
            lines.append(
                f"{self.model.arc_label(arc):>24}{node_name(int(arcs.tail[arc])):>20}"
                f"{node_name(int(arcs.head[arc])):>20}{cost:>8}{arcs.capacity[arc]:>10g}"
                f"{arcs.flow[arc]:>10g}  {ArcStatus(int(arcs.status[arc])).name}"
            )
        return "\n".join(lines)
