"""
Trip request schema.

Defines the contract for the traveler's journey: the required stops
with their date windows and ordering flexibility, plus the layover
and total-duration limits. Validation happens once, at construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import FrozenSet, List, Optional, Sequence, Tuple

from itinerary_router.exceptions import InvalidTripRequestError
from itinerary_router.schemas.leg import DateRange


@dataclass(frozen=True)
class Stop:
    """
    One required stop of a trip.

    Attributes:
        location: Airport IATA code.
        earliest: First date the stop may be reached.
        latest: Last date the stop may be reached.
        fixed_order: If True, the stop keeps its position in the list.
            Free stops may be visited in any order among the positions
            not held by fixed stops.
    """

    location: str
    earliest: date
    latest: date
    fixed_order: bool = True

    @property
    def window(self) -> DateRange:
        return DateRange(start=self.earliest, end=self.latest)

    @classmethod
    def on(cls, location: str, day: date, fixed_order: bool = True) -> "Stop":
        """Stop whose window is a single day."""
        return cls(location=location, earliest=day, latest=day, fixed_order=fixed_order)

    @classmethod
    def between(
        cls, location: str, earliest: date, latest: date, fixed_order: bool = False
    ) -> "Stop":
        """Stop with a multi-day window, free-order by default."""
        return cls(location=location, earliest=earliest, latest=latest, fixed_order=fixed_order)


@dataclass(frozen=True)
class TripRequest:
    """
    Immutable description of the desired journey.

    The first stop is the origin and the last stop the final destination;
    both are always anchored to their positions regardless of their
    ``fixed_order`` flag.

    Date windows: the first leg departs within the origin's window; every
    other stop's window constrains the arrival date at that stop.

    Attributes:
        stops: Required stops in list order.
        min_layover: Minimum time between arriving at a stop and leaving it.
        max_layover: Maximum time between arriving at a stop and leaving it
            (None = unlimited).
        max_trip_duration: Maximum time from first departure to final
            arrival (None = unlimited).

    Raises:
        InvalidTripRequestError: On fewer than two stops, an inverted date
            window, or inconsistent layover limits.
    """

    stops: Tuple[Stop, ...]
    min_layover: timedelta = timedelta(0)
    max_layover: Optional[timedelta] = None
    max_trip_duration: Optional[timedelta] = None

    def __post_init__(self) -> None:
        if not isinstance(self.stops, tuple):
            object.__setattr__(self, "stops", tuple(self.stops))

        if len(self.stops) < 2:
            raise InvalidTripRequestError(
                f"a trip needs at least two stops, got {len(self.stops)}"
            )
        for i, stop in enumerate(self.stops):
            if not stop.location:
                raise InvalidTripRequestError("location cannot be empty", stop_index=i)
            if stop.earliest > stop.latest:
                raise InvalidTripRequestError(
                    f"earliest ({stop.earliest}) must be <= latest ({stop.latest})",
                    stop_index=i,
                )
        if self.min_layover < timedelta(0):
            raise InvalidTripRequestError(
                f"min_layover must be >= 0, got {self.min_layover}"
            )
        if self.max_layover is not None and self.max_layover < self.min_layover:
            raise InvalidTripRequestError(
                f"max_layover ({self.max_layover}) must be >= min_layover ({self.min_layover})"
            )
        if self.max_trip_duration is not None and self.max_trip_duration <= timedelta(0):
            raise InvalidTripRequestError(
                f"max_trip_duration must be > 0, got {self.max_trip_duration}"
            )

    @classmethod
    def create(
        cls,
        stops: Sequence[Stop],
        min_layover: timedelta = timedelta(0),
        max_layover: Optional[timedelta] = None,
        max_trip_duration: Optional[timedelta] = None,
    ) -> "TripRequest":
        """Factory accepting any sequence of stops."""
        return cls(
            stops=tuple(stops),
            min_layover=min_layover,
            max_layover=max_layover,
            max_trip_duration=max_trip_duration,
        )

    @property
    def num_stops(self) -> int:
        return len(self.stops)

    @property
    def origin(self) -> Stop:
        return self.stops[0]

    @property
    def destination(self) -> Stop:
        return self.stops[-1]

    @property
    def full_mask(self) -> int:
        """Visited-subset bitmask with every stop set."""
        return (1 << len(self.stops)) - 1

    def is_anchored(self, index: int) -> bool:
        """True if stop ``index`` must occupy position ``index``."""
        if index == 0 or index == len(self.stops) - 1:
            return True
        return self.stops[index].fixed_order

    @property
    def free_stop_indices(self) -> Tuple[int, ...]:
        return tuple(i for i in range(len(self.stops)) if not self.is_anchored(i))

    @property
    def free_positions(self) -> FrozenSet[int]:
        """Positions not held by an anchored stop."""
        return frozenset(self.free_stop_indices)

    def positions_for(self, index: int) -> FrozenSet[int]:
        """Positions stop ``index`` may occupy in a visiting order."""
        if self.is_anchored(index):
            return frozenset({index})
        return self.free_positions

    def candidates_at(self, position: int, visited_mask: int) -> List[int]:
        """
        Stop indices that may fill ``position`` given the visited mask.

        Anchored positions admit only their own stop; free positions
        admit any unvisited free stop.
        """
        if self.is_anchored(position):
            return [] if visited_mask & (1 << position) else [position]
        return [i for i in self.free_stop_indices if not visited_mask & (1 << i)]

    @property
    def trip_horizon(self) -> Optional[date]:
        """Last date any leg can depart given the trip budget."""
        if self.max_trip_duration is None:
            return None
        extra_days = -(-self.max_trip_duration // timedelta(days=1))
        return self.origin.latest + timedelta(days=extra_days)
