"""
Search labels shared by the itinerary optimizers.

A Label is one partial path retained at a search state: the node it
ends at, its accumulated price, when it first departed, and a chain
back to the previous label for reconstruction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from itinerary_router.schemas.graph import NoFeasibleGraph, RouteEdge, RouteNode
from itinerary_router.schemas.itinerary import (
    Infeasible,
    Itinerary,
    PartialState,
    itinerary_sort_key,
)
from itinerary_router.schemas.leg import FlightLeg

# Prices are sums of floats; compare them at this precision.
PRICE_DIGITS = 6


@dataclass(frozen=True, eq=False)
class Label:
    """
    Represents one partial itinerary in the search space.

    Note: eq=False keeps identity semantics; two labels with equal
    values are still distinct paths.

    Attributes:
        node: Graph node the path ends at.
        price: Accumulated leg prices.
        start: First departure in epoch minutes (None before any leg).
        prev: Previous label on the path.
        edge: Edge taken from prev to reach node.
        path_key: Sort keys of the legs flown so far, in order.
    """

    node: RouteNode
    price: float
    start: Optional[float] = None
    prev: Optional["Label"] = None
    edge: Optional[RouteEdge] = None
    path_key: Tuple = ()

    @property
    def time(self) -> float:
        return self.node.time

    @property
    def duration(self) -> float:
        """Minutes from first departure to arrival at node."""
        if self.start is None:
            return 0.0
        return self.node.time - self.start

    @property
    def rounded_price(self) -> float:
        return round(self.price, PRICE_DIGITS)

    def extend(self, edge: RouteEdge) -> "Label":
        """Label for following ``edge`` from this label's node."""
        leg = edge.leg
        return Label(
            node=edge.target,
            price=self.price + leg.price,
            start=self.start if self.start is not None else leg.departure_minutes,
            prev=self,
            edge=edge,
            path_key=self.path_key + (leg.sort_key,),
        )

    def start_if_extended(self, edge: RouteEdge) -> float:
        return self.start if self.start is not None else edge.leg.departure_minutes


def label_order(label: Label) -> Tuple:
    """
    Sort key placing every label after the labels that dominate it.

    Cheaper first, then later first departure (shorter trip), then the
    lexicographically smaller leg sequence.
    """
    start = label.start if label.start is not None else float("inf")
    return (label.rounded_price, -start, label.path_key)


def weakly_dominates(l1: Label, l2: Label) -> bool:
    """
    Check whether l1 is at least as good as l2 for every completion.

    Both labels must arrive at the same time; with a maximum layover an
    earlier arrival can miss connections a later one makes. Beyond that,
    l1 must be no more expensive and have departed no earlier (so any
    completion is no longer), and be strictly better in price, start or
    leg ordering.
    """
    p1, p2 = l1.rounded_price, l2.rounded_price
    if p1 > p2:
        return False

    s1 = l1.start if l1.start is not None else float("inf")
    s2 = l2.start if l2.start is not None else float("inf")
    if s1 < s2:
        return False

    if l1.time != l2.time:
        return False

    return p1 < p2 or s1 > s2 or l1.path_key < l2.path_key


def k_best_labels(candidates: Iterable[Label], k: int) -> List[Label]:
    """
    Keep the labels not weakly dominated by k other kept labels.

    Any label discarded here has k retained labels that are at least as
    good under every completion, so the global top-k is preserved.

    Args:
        candidates: Labels for one search state.
        k: Number of itineraries the search must be able to return.

    Returns:
        Retained labels, best first.
    """
    kept: List[Label] = []
    for candidate in sorted(candidates, key=label_order):
        dominated_by = 0
        for existing in kept:
            if weakly_dominates(existing, candidate):
                dominated_by += 1
                if dominated_by >= k:
                    break
        if dominated_by < k:
            kept.append(candidate)
    return kept


def reconstruct_legs(label: Label) -> Tuple[FlightLeg, ...]:
    """Walk parent pointers back to the source and return legs in order."""
    legs: List[FlightLeg] = []
    curr: Optional[Label] = label
    while curr is not None:
        if curr.edge is not None:
            legs.append(curr.edge.leg)
        curr = curr.prev
    legs.reverse()
    return tuple(legs)


def rank_complete_labels(labels: Sequence[Label], top_k: int) -> Tuple[Itinerary, ...]:
    """Turn terminal labels into the top_k itineraries, best first."""
    paths = sorted((reconstruct_legs(label) for label in labels), key=itinerary_sort_key)
    return tuple(Itinerary.from_legs(legs) for legs in paths[:top_k])


def partial_state(label: Label) -> PartialState:
    """Diagnostic snapshot of a partial path."""
    legs = reconstruct_legs(label)
    if legs:
        visited = (legs[0].origin,) + tuple(leg.destination for leg in legs)
    else:
        visited = (label.node.location,)
    return PartialState(
        location=label.node.location,
        visited_locations=visited,
        legs=legs,
        price=label.price,
    )


def infeasible_from_graph_failure(failure: NoFeasibleGraph, algorithm: str) -> Infeasible:
    """Report a builder failure without searching."""
    last_partial = None
    if failure.last_location is not None:
        last_partial = PartialState(
            location=failure.last_location,
            visited_locations=failure.visited_locations,
            legs=failure.partial_legs,
            price=sum(leg.price for leg in failure.partial_legs),
        )
    return Infeasible(
        reason=failure.reason,
        last_partial=last_partial,
        graph_failure=failure,
        algorithm=algorithm,
    )
