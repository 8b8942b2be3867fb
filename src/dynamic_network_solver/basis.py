"""Spanning-tree basis with parent/thread/depth bookkeeping and node potentials."""

from __future__ import annotations

from collections.abc import Iterator

import numpy as np

from .data import ArcStatus
from .exceptions import BasisCorruptionError
from .model import NO_ARC, ROOT, ArcTable, NodeTable


class TreeBasis:
    """Encapsulates parent/thread/depth and potential bookkeeping for the basis.

    The tree spans the root and every live node. ``thread`` lists the nodes in
    preorder and wraps back to the root, so the subtree of ``i`` is the run of
    thread successors whose depth exceeds ``depth[i]``. ``rev_thread`` is the
    inverse permutation, so cutting a subtree out of the thread costs O(size of
    the subtree).

    Potentials are big-M pairs stored in two parallel arrays: ``potential`` (the
    finite part) and ``potential_big`` (the coefficient of M). For every tree arc
    ``u -> v`` the invariant ``potential(v) = potential(u) - cost(u, v)`` holds
    and the root has potential 0.
    """

    def __init__(self, arcs: ArcTable) -> None:
        self.arcs = arcs
        self.parent: list[int] = []
        self.parent_arc: list[int] = []
        self.thread: list[int] = []
        self.rev_thread: list[int] = []
        self.depth: list[int] = []
        self.potential = np.zeros(16, dtype=np.float64)
        self.potential_big = np.zeros(16, dtype=np.int64)
        self.reset()

    def reset(self) -> None:
        """Return to the root-only tree."""
        self.parent = [ROOT]
        self.parent_arc = [NO_ARC]
        self.thread = [ROOT]
        self.rev_thread = [ROOT]
        self.depth = [0]
        self.potential = np.zeros(16, dtype=np.float64)
        self.potential_big = np.zeros(16, dtype=np.int64)

    def _ensure_slot(self, idx: int) -> None:
        while len(self.parent) <= idx:
            self.parent.append(ROOT)
            self.parent_arc.append(NO_ARC)
            self.thread.append(ROOT)
            self.rev_thread.append(ROOT)
            self.depth.append(0)
        if idx >= len(self.potential):
            length = max(2 * len(self.potential), idx + 1)
            for name in ("potential", "potential_big"):
                column = getattr(self, name)
                grown = np.zeros(length, dtype=column.dtype)
                grown[: len(column)] = column
                setattr(self, name, grown)

    # ------------------------------------------------------------------
    # Potentials

    def compute_potential(self, node: int) -> None:
        """Derive the potential of ``node`` from its parent's across the tree arc."""
        arc = self.parent_arc[node]
        parent = self.parent[node]
        cost, cost_big = self.arcs.cost_pair(arc)
        if self.arcs.tail[arc] == node:
            self.potential[node] = self.potential[parent] + cost
            self.potential_big[node] = self.potential_big[parent] + cost_big
        else:
            self.potential[node] = self.potential[parent] - cost
            self.potential_big[node] = self.potential_big[parent] - cost_big

    def refresh_subtree(self, node: int) -> None:
        """Recompute potentials of ``node`` and everything below it, in thread order."""
        self.compute_potential(node)
        depth = self.depth[node]
        current = self.thread[node]
        while self.depth[current] > depth:
            self.compute_potential(current)
            current = self.thread[current]

    def reduced_cost(self, arc: int) -> tuple[float, int]:
        """Return the big-M reduced cost of ``arc``, sign-flipped at the upper bound."""
        tail = int(self.arcs.tail[arc])
        head = int(self.arcs.head[arc])
        cost, cost_big = self.arcs.cost_pair(arc)
        small = cost - self.potential[tail] + self.potential[head]
        big = cost_big - int(self.potential_big[tail]) + int(self.potential_big[head])
        if self.arcs.status[arc] == ArcStatus.NONBASIC_UPPER:
            return -float(small), -big
        return float(small), big

    # ------------------------------------------------------------------
    # Tree navigation

    def join(self, u: int, v: int) -> int:
        """Nearest common ancestor of ``u`` and ``v``."""
        depth = self.depth
        parent = self.parent
        while depth[u] > depth[v]:
            u = parent[u]
        while depth[v] > depth[u]:
            v = parent[v]
        while u != v:
            u = parent[u]
            v = parent[v]
        return u

    def _link(self, node: int, successor: int) -> None:
        self.thread[node] = successor
        self.rev_thread[successor] = node

    def last_successor(self, node: int) -> int:
        """Last node of the subtree of ``node`` in thread order."""
        depth = self.depth[node]
        current = node
        while self.depth[self.thread[current]] > depth:
            current = self.thread[current]
        return current

    def subtree(self, node: int) -> Iterator[int]:
        yield node
        depth = self.depth[node]
        current = self.thread[node]
        while self.depth[current] > depth:
            yield current
            current = self.thread[current]

    # ------------------------------------------------------------------
    # Structural updates

    def attach_to_root(self, node: int, arc: int) -> None:
        """Hang a new node directly below the root through ``arc``."""
        self._ensure_slot(node)
        self.parent[node] = ROOT
        self.parent_arc[node] = arc
        self._link(node, self.thread[ROOT])
        self._link(ROOT, node)
        self.depth[node] = 1
        self.compute_potential(node)

    def detach_leaf(self, node: int) -> None:
        """Unthread a leaf of the tree."""
        if self.depth[self.thread[node]] > self.depth[node]:
            raise BasisCorruptionError(f"Node index {node} still has tree children", node=str(node))
        self._link(self.rev_thread[node], self.thread[node])
        self.parent[node] = ROOT
        self.parent_arc[node] = NO_ARC
        self._link(node, node)

    def change_parent(self, node: int, new_parent: int, arc: int) -> None:
        """Move the subtree of ``node`` below ``new_parent``, joined by ``arc``.

        The subtree is cut out of the thread, spliced in right after the new
        parent, and depths and potentials of its nodes are refreshed. Every step
        walks the moved subtree only.
        """
        thread = self.thread
        pred = self.rev_thread[node]
        succ = self.last_successor(node)

        self._link(pred, thread[succ])
        self._link(succ, thread[new_parent])
        self._link(new_parent, node)

        self.parent[node] = new_parent
        self.parent_arc[node] = arc

        stop = thread[succ]
        current = node
        while current != stop:
            self.depth[current] = self.depth[self.parent[current]] + 1
            self.compute_potential(current)
            current = thread[current]

    def load(self, parent: list[int], parent_arc: list[int], order: list[int]) -> None:
        """Install a complete tree given parents and a preorder (root first)."""
        size = len(parent)
        self._ensure_slot(size - 1)
        self.parent[:size] = parent
        self.parent_arc[:size] = parent_arc
        for position, node in enumerate(order):
            self._link(node, order[(position + 1) % len(order)])
            if node != ROOT:
                self.depth[node] = self.depth[parent[node]] + 1
                self.compute_potential(node)
        self.depth[ROOT] = 0
        self.potential[ROOT] = 0.0
        self.potential_big[ROOT] = 0

    # ------------------------------------------------------------------
    # Diagnostics

    def check(self, nodes: NodeTable, tolerance: float) -> None:
        """Verify the tree structure and potentials.

        Raises:
            BasisCorruptionError: On the first inconsistency found.
        """
        arcs = self.arcs
        expected = set(nodes.live())
        visited: set[int] = set()
        current = self.thread[ROOT]
        while current != ROOT:
            if current in visited or current not in expected:
                raise BasisCorruptionError(
                    f"Thread visits node {nodes.ids[current]!r} twice or after removal",
                    node=nodes.ids[current],
                )
            if self.thread[self.rev_thread[current]] != current:
                raise BasisCorruptionError(
                    f"Reverse thread of {nodes.ids[current]!r} is stale", node=nodes.ids[current]
                )
            visited.add(current)
            parent = self.parent[current]
            arc = self.parent_arc[current]
            if arc == NO_ARC or not arcs.alive[arc] or arcs.status[arc] != ArcStatus.BASIC:
                raise BasisCorruptionError(
                    f"Node {nodes.ids[current]!r} has no basic arc to its parent",
                    node=nodes.ids[current],
                )
            if {int(arcs.tail[arc]), int(arcs.head[arc])} != {current, parent}:
                raise BasisCorruptionError(
                    f"Parent arc of {nodes.ids[current]!r} does not reach its parent",
                    node=nodes.ids[current],
                )
            if self.depth[current] != self.depth[parent] + 1:
                raise BasisCorruptionError(
                    f"Depth of {nodes.ids[current]!r} is inconsistent", node=nodes.ids[current]
                )
            small, big = self.reduced_cost(arc)
            if big != 0 or abs(small) > tolerance * max(1.0, abs(self.potential[current])):
                raise BasisCorruptionError(
                    f"Potential of {nodes.ids[current]!r} is stale", node=nodes.ids[current]
                )
            current = self.thread[current]
        if visited != expected:
            missing = sorted(str(nodes.ids[idx]) for idx in expected - visited)
            raise BasisCorruptionError(f"Nodes missing from the tree: {', '.join(missing)}")
        basic = int(np.count_nonzero(arcs.alive[: arcs.size] & (arcs.status[: arcs.size] == ArcStatus.BASIC)))
        if basic != len(expected):
            raise BasisCorruptionError(
                f"Basis has {basic} basic arcs for {len(expected)} nodes"
            )
