"""
Itinerary result schemas.

Defines the optimizer's output contract: ranked itineraries on success,
or an explicit infeasibility report the caller can render.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple, Union

from itinerary_router.schemas.graph import NoFeasibleGraph
from itinerary_router.schemas.leg import FlightLeg


def itinerary_sort_key(legs: Sequence[FlightLeg]) -> Tuple:
    """
    Ranking rule for complete itineraries.

    Ordering, most significant first:
    1. Total price, ascending.
    2. Total duration (first departure to last arrival), ascending.
    3. First departure time, ascending.
    4. Lexicographic comparison of the legs' sort keys.

    Args:
        legs: Legs of the itinerary in flight order.

    Returns:
        Tuple usable as a sort key.
    """
    total_price = sum(leg.price for leg in legs)
    if legs:
        duration = legs[-1].arrival - legs[0].departure
        first_departure = legs[0].departure
    else:
        duration = timedelta(0)
        first_departure = datetime.min
    return (
        round(total_price, 6),
        duration,
        first_departure,
        tuple(leg.sort_key for leg in legs),
    )


@dataclass(frozen=True)
class Itinerary:
    """
    Immutable itinerary produced by the optimizer.

    Attributes:
        legs: Flight legs in flight order (references into the repository).
        total_price: Sum of leg prices.
        total_duration: First departure to last arrival.
        feasible: True if every trip constraint holds.
    """

    legs: Tuple[FlightLeg, ...]
    total_price: float
    total_duration: timedelta
    feasible: bool = True

    @classmethod
    def from_legs(cls, legs: Sequence[FlightLeg], feasible: bool = True) -> "Itinerary":
        """
        Factory computing totals from legs.

        Raises:
            ValueError: If no legs are given.
        """
        if not legs:
            raise ValueError("Itinerary must have at least one leg")
        return cls(
            legs=tuple(legs),
            total_price=sum(leg.price for leg in legs),
            total_duration=legs[-1].arrival - legs[0].departure,
            feasible=feasible,
        )

    @property
    def num_legs(self) -> int:
        return len(self.legs)

    @property
    def departure(self) -> datetime:
        return self.legs[0].departure

    @property
    def arrival(self) -> datetime:
        return self.legs[-1].arrival

    @property
    def route(self) -> List[str]:
        """Ordered list of visited locations, origin first."""
        return [self.legs[0].origin] + [leg.destination for leg in self.legs]

    @property
    def layovers(self) -> List[timedelta]:
        """Wait at each intermediate stop."""
        return [
            nxt.departure - prev.arrival
            for prev, nxt in zip(self.legs, self.legs[1:])
        ]

    @property
    def sort_key(self) -> Tuple:
        return itinerary_sort_key(self.legs)


@dataclass(frozen=True)
class PartialState:
    """
    Diagnostic snapshot of the furthest progress a search made.

    Attributes:
        location: Where the partial path ended.
        visited_locations: Stops visited, in order.
        legs: Legs flown so far.
        price: Accumulated price.
    """

    location: str
    visited_locations: Tuple[str, ...]
    legs: Tuple[FlightLeg, ...] = ()
    price: float = 0.0

    @property
    def num_visited(self) -> int:
        return len(self.visited_locations)


@dataclass(frozen=True)
class ItineraryResult:
    """
    Successful optimization: 1..top_k itineraries, best first.

    Attributes:
        itineraries: Ranked by itinerary_sort_key.
        algorithm: Name of the optimizer that produced them.
        states_expanded: Search effort, for diagnostics.
    """

    itineraries: Tuple[Itinerary, ...]
    algorithm: str = ""
    states_expanded: int = 0

    @property
    def is_feasible(self) -> bool:
        return True

    @property
    def best(self) -> Itinerary:
        return self.itineraries[0]

    def __len__(self) -> int:
        return len(self.itineraries)


@dataclass(frozen=True)
class Infeasible:
    """
    No itinerary satisfies the trip's constraints.

    Returned (never raised) so the caller can render the reason.

    Attributes:
        reason: Human-readable explanation.
        last_partial: Furthest partial state reached, if any.
        graph_failure: The builder's report when infeasibility was
            structural (detected before search).
        algorithm: Name of the optimizer that reported it.
    """

    reason: str
    last_partial: Optional[PartialState] = None
    graph_failure: Optional[NoFeasibleGraph] = None
    algorithm: str = ""

    @property
    def is_feasible(self) -> bool:
        return False

    @property
    def itineraries(self) -> Tuple[Itinerary, ...]:
        return ()


OptimizationResult = Union[ItineraryResult, Infeasible]
