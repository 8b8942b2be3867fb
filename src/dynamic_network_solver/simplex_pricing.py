"""Pricing strategies for network simplex arc selection.

Pricing picks the entering arc of the next pivot among the nonbasic arcs whose
reduced cost violates optimality. Reduced costs are big-M pairs; an arc is a
candidate when its pair is lexicographically negative, i.e. a negative M
coefficient, or a zero M coefficient and a finite part below ``-tolerance``.

Each strategy is a plain function selected through ``select_entering_arc``'s
dispatch table. Both share the same vectorised scan over the arc table.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .data import ArcStatus, PricingStrategy

if TYPE_CHECKING:
    from .basis import TreeBasis


def reduced_costs(
    basis: TreeBasis, candidates: NDArray[np.int64]
) -> tuple[NDArray[np.float64], NDArray[np.int64]]:
    """Compute big-M reduced costs for the given arcs.

    Returns:
        Tuple ``(small, big)`` of arrays: ``cost - potential[tail] + potential[head]``
        split into finite part and M coefficient, negated for arcs at their
        upper bound.
    """
    arcs = basis.arcs
    tails = arcs.tail[candidates]
    heads = arcs.head[candidates]
    small = arcs.cost[candidates] - basis.potential[tails] + basis.potential[heads]
    big = arcs.cost_big[candidates] - basis.potential_big[tails] + basis.potential_big[heads]
    upper = arcs.status[candidates] == ArcStatus.NONBASIC_UPPER
    small = np.where(upper, -small, small)
    big = np.where(upper, -big, big)
    return small, big


def _violations(
    basis: TreeBasis, candidates: NDArray[np.int64], tolerance: float
) -> tuple[NDArray[np.int64], NDArray[np.float64], NDArray[np.int64]]:
    small, big = reduced_costs(basis, candidates)
    negative = (big < 0) | ((big == 0) & (small < -tolerance))
    return candidates[negative], small[negative], big[negative]


def first_negative(
    basis: TreeBasis, candidates: NDArray[np.int64], tolerance: float
) -> int | None:
    """Return the first candidate, in arena order, with a negative reduced cost."""
    violators, _, _ = _violations(basis, candidates, tolerance)
    if violators.size == 0:
        return None
    return int(violators[0])


def most_negative(
    basis: TreeBasis, candidates: NDArray[np.int64], tolerance: float
) -> int | None:
    """Return the candidate with the most negative reduced cost (Dantzig rule).

    Pairs are compared on the M coefficient first. Ties go to the earliest
    arc in arena order.
    """
    violators, small, big = _violations(basis, candidates, tolerance)
    if violators.size == 0:
        return None
    lowest_big = big.min()
    tied = big == lowest_big
    position = int(np.argmin(np.where(tied, small, np.inf)))
    return int(violators[position])


PricingFunction = Callable[["TreeBasis", NDArray[np.int64], float], "int | None"]

_PRICING: dict[PricingStrategy, PricingFunction] = {
    PricingStrategy.FIRST_NEGATIVE: first_negative,
    PricingStrategy.MOST_NEGATIVE: most_negative,
}


def select_entering_arc(
    strategy: PricingStrategy,
    basis: TreeBasis,
    infeasibility: float,
    tolerance: float,
) -> int | None:
    """Select the entering arc for the next pivot.

    Live nonbasic real arcs are priced first. Artificial arcs at their lower
    bound are only considered while artificial flow remains and no real arc
    qualifies.

    Args:
        strategy: Pricing rule to apply.
        basis: Current basis (gives access to the arc table and potentials).
        infeasibility: Total flow on artificial arcs.
        tolerance: Numerical tolerance for the sign test.

    Returns:
        Arc index, or None when the current basis is optimal.
    """
    price = _PRICING[strategy]
    arcs = basis.arcs
    size = arcs.size
    nonbasic = arcs.alive[:size] & (arcs.status[:size] != ArcStatus.BASIC)
    real = np.flatnonzero(nonbasic & ~arcs.artificial[:size])
    entering = price(basis, real, tolerance) if real.size else None
    if entering is not None or infeasibility <= tolerance:
        return entering
    artificial = np.flatnonzero(nonbasic & arcs.artificial[:size])
    if artificial.size == 0:
        return None
    return price(basis, artificial, tolerance)
