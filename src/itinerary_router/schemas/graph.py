"""
Route graph structures.

The route graph is a layered DAG: layer k holds the nodes reached after
flying k legs. Node identity includes the visited-subset bitmask
(Held-Karp style), so every stop permutation permitted by the trip's
fixed positions is a distinct path and no true cycles exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from itinerary_router.schemas.leg import FlightLeg, epoch_minutes_to_datetime


@dataclass(eq=False)
class RouteNode:
    """
    Graph vertex: present at a stop by a given time, with a visited subset.

    Note: eq=False keeps identity-based hashing; two nodes are the same
    vertex only if the builder made them the same object.

    Attributes:
        stop_index: Index of the stop in the TripRequest.
        location: Airport code of that stop.
        time: Arrival time in epoch minutes (for the source node, the
            start of the origin window).
        mask: Visited-subset bitmask over stop indices.
        layer: Number of legs flown to reach this node.
        latest_start: Latest first-departure time of any path reaching
            this node (None for the source).
    """

    stop_index: int
    location: str
    time: float
    mask: int
    layer: int
    latest_start: Optional[float] = None
    out_edges: List["RouteEdge"] = field(default_factory=list, repr=False)
    in_edges: List["RouteEdge"] = field(default_factory=list, repr=False)

    @property
    def identity(self) -> Tuple[int, int, float]:
        return (self.stop_index, self.mask, self.time)

    @property
    def arrival(self) -> datetime:
        return epoch_minutes_to_datetime(self.time)

    def visited_indices(self) -> Tuple[int, ...]:
        return tuple(i for i in range(self.mask.bit_length()) if self.mask & (1 << i))


@dataclass(frozen=True, eq=False)
class RouteEdge:
    """
    Candidate transition backed by exactly one FlightLeg.

    The leg is a back-reference; the Leg Repository owns it.

    Attributes:
        source: Node the leg departs from.
        target: Node the leg arrives at.
        leg: The flight leg.
        layover_minutes: Wait at the source stop before departure
            (None when leaving the origin).
    """

    source: RouteNode
    target: RouteNode
    leg: FlightLeg
    layover_minutes: Optional[float] = None

    @property
    def price(self) -> float:
        return self.leg.price


@dataclass
class RouteGraph:
    """
    Layered DAG for one search. Owns all of its nodes and edges.

    Attributes:
        source: Start node at the origin.
        layers: Nodes per layer; layers[0] == [source].
        terminals: Nodes at the final stop with every stop visited.
        num_stops: Stop count of the trip.
        final_mask: Bitmask with every stop set.
        max_layover_minutes: Layover cap the graph was built with.
        max_trip_minutes: Trip budget the graph was built with.
    """

    source: RouteNode
    layers: List[List[RouteNode]]
    terminals: List[RouteNode]
    num_stops: int
    final_mask: int
    max_layover_minutes: Optional[float] = None
    max_trip_minutes: Optional[float] = None

    @property
    def node_count(self) -> int:
        return sum(len(layer) for layer in self.layers)

    @property
    def edge_count(self) -> int:
        return sum(len(node.out_edges) for layer in self.layers for node in layer)

    def cheapest_out_price(self) -> Dict[int, float]:
        """Cheapest leg price leaving each stop, over the whole graph."""
        cheapest: Dict[int, float] = {}
        for layer in self.layers:
            for node in layer:
                for edge in node.out_edges:
                    current = cheapest.get(node.stop_index)
                    if current is None or edge.price < current:
                        cheapest[node.stop_index] = edge.price
        return cheapest


@dataclass(frozen=True)
class NoFeasibleGraph:
    """
    Structural infeasibility detected before search.

    Returned by the builder (never raised). Signals the optimizer to
    report infeasibility instead of searching.

    Attributes:
        reason: Human-readable explanation.
        deepest_layer: Furthest layer any node reached.
        last_location: Location of a node in the deepest layer.
        visited_locations: Stops visited on the way to that node.
        partial_legs: One leg path reaching that node.
    """

    reason: str
    deepest_layer: int = 0
    last_location: Optional[str] = None
    visited_locations: Tuple[str, ...] = ()
    partial_legs: Tuple[FlightLeg, ...] = ()
