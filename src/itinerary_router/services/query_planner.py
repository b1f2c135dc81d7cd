"""
Query Planner - Decides and drives the leg lookups a trip needs.

Before graph construction, enumerates every (origin, destination,
date range) query the builder will read, deduplicates them, and
dispatches them through the Leg Repository with a bounded pool of
worker tasks so the pricing source's rate limits are respected.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from itinerary_router.cancellation import NEVER_CANCELLED, CancellationToken
from itinerary_router.config import FetchPolicy
from itinerary_router.exceptions import DataUnavailable
from itinerary_router.schemas.leg import DateRange
from itinerary_router.schemas.trip import TripRequest

if TYPE_CHECKING:
    from itinerary_router.adapters.repositories.leg_repository import LegRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegQuery:
    """One deduplicated lookup for the Leg Repository."""

    origin: str
    destination: str
    date_range: DateRange

    @property
    def sort_key(self) -> Tuple:
        return (self.origin, self.destination, self.date_range.start, self.date_range.end)

    def __str__(self) -> str:
        return f"{self.origin}->{self.destination} {self.date_range}"


@dataclass(frozen=True)
class PlanReport:
    """
    Outcome of executing a query plan.

    Attributes:
        queries: Queries dispatched, in plan order.
        legs_by_query: Legs found per query (unavailable queries absent).
        unavailable: Queries that returned no legs.
        fetch_count: External calls made during execution.
        elapsed_ms: Wall time of the execution.
    """

    queries: Tuple[LegQuery, ...]
    legs_by_query: Dict[LegQuery, int] = field(default_factory=dict)
    unavailable: Tuple[LegQuery, ...] = ()
    fetch_count: int = 0
    elapsed_ms: float = 0.0

    @property
    def total_legs(self) -> int:
        return sum(self.legs_by_query.values())


def adjacent_pairs(trip: TripRequest) -> List[Tuple[int, int]]:
    """
    Ordered stop pairs (i, j) that are consecutive in some visiting order.

    Stop j may follow stop i iff some position p allowed for i has p + 1
    allowed for j. Anchored stops allow only their own index; free stops
    allow any free position.
    """
    pairs: List[Tuple[int, int]] = []
    n = trip.num_stops
    for i in range(n - 1):
        positions_i = trip.positions_for(i)
        for j in range(1, n):
            if i == j:
                continue
            positions_j = trip.positions_for(j)
            if any(p + 1 in positions_j for p in positions_i):
                pairs.append((i, j))
    return pairs


def feasible_departure_range(
    trip: TripRequest,
    i: int,
    j: int,
    max_leg_days: Optional[int] = None,
) -> Optional[DateRange]:
    """
    Dates a leg from stop i to stop j could depart on.

    The origin's window bounds the first departure; for any other stop
    the traveler can leave no earlier than the stop's first day plus the
    minimum layover. A leg must arrive within stop j's window, so it
    departs no later than j's last day. When max_leg_days is given it
    also departs no earlier than that many days before j's first day;
    None leaves that side open. Everything is clipped to the trip budget.

    Returns:
        The departure date range, or None if the pair can never connect.
    """
    a = trip.stops[i]
    b = trip.stops[j]
    if a.location == b.location:
        return None

    if i == 0:
        start = a.earliest
        end = min(a.latest, b.latest)
    else:
        start = a.earliest + timedelta(days=trip.min_layover.days)
        end = b.latest
    if max_leg_days is not None:
        start = max(start, b.earliest - timedelta(days=max_leg_days))

    horizon = trip.trip_horizon
    if horizon is not None:
        end = min(end, horizon)

    if start > end:
        return None
    return DateRange(start=start, end=end)


def merge_ranges(ranges: List[DateRange]) -> List[DateRange]:
    """Merge overlapping or adjacent ranges into disjoint ranges."""
    merged: List[DateRange] = []
    for current in sorted(ranges, key=lambda r: (r.start, r.end)):
        if merged and merged[-1].overlaps_or_touches(current):
            merged[-1] = merged[-1].union_hull(current)
        else:
            merged.append(current)
    return merged


class QueryPlanner:
    """
    Plans and executes the leg lookups for a trip.

    Attributes:
        _repository: Leg Repository that owns the cache.
        _max_concurrent: Size of the worker pool.
        _max_leg_days: Calendar days a single leg may span.
        _fetch_policy: Timeout and retry settings for this plan's fetches
            (None = the repository's defaults).
    """

    def __init__(
        self,
        repository: LegRepository,
        max_concurrent_fetches: int = 4,
        max_leg_days: int = 2,
        fetch_policy: Optional[FetchPolicy] = None,
    ) -> None:
        if max_concurrent_fetches < 1:
            raise ValueError(
                f"max_concurrent_fetches must be >= 1, got {max_concurrent_fetches}"
            )
        if max_leg_days < 0:
            raise ValueError(f"max_leg_days must be >= 0, got {max_leg_days}")
        self._repository = repository
        self._max_concurrent = max_concurrent_fetches
        self._max_leg_days = max_leg_days
        self._fetch_policy = fetch_policy

    def plan(self, trip: TripRequest) -> List[LegQuery]:
        """
        Enumerate the deduplicated queries the graph builder will need.

        Every ordered stop pair adjacent under some permitted permutation
        contributes its feasible departure range; ranges for the same
        airport pair are merged.

        Returns:
            Queries sorted by (origin, destination, start date).
        """
        ranges_by_route: Dict[Tuple[str, str], List[DateRange]] = defaultdict(list)
        for i, j in adjacent_pairs(trip):
            date_range = feasible_departure_range(trip, i, j, self._max_leg_days)
            if date_range is None:
                continue
            route = (trip.stops[i].location, trip.stops[j].location)
            ranges_by_route[route].append(date_range)

        queries = [
            LegQuery(origin=origin, destination=destination, date_range=merged)
            for (origin, destination), ranges in ranges_by_route.items()
            for merged in merge_ranges(ranges)
        ]
        queries.sort(key=lambda q: q.sort_key)

        logger.debug("Planned %d leg queries for %d stops", len(queries), trip.num_stops)
        return queries

    async def execute(
        self,
        trip: TripRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PlanReport:
        """
        Fetch every planned query through the repository.

        A pool of at most max_concurrent_fetches workers pulls queries
        from a queue; further queries wait until a worker frees up.
        DataUnavailable is a normal outcome and is only recorded.

        Raises:
            OptimizationCancelled: If the token is cancelled between dispatches.
        """
        token = cancel_token or NEVER_CANCELLED
        start_time = time.perf_counter()
        fetches_before = self._repository.fetch_count

        queries = self.plan(trip)
        queue: asyncio.Queue = asyncio.Queue()
        for query in queries:
            queue.put_nowait(query)

        legs_by_query: Dict[LegQuery, int] = {}
        unavailable: List[LegQuery] = []

        async def worker() -> None:
            while True:
                try:
                    query = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                token.raise_if_cancelled("leg fetch dispatch")
                try:
                    legs = await self._repository.legs_for(
                        query.origin, query.destination, query.date_range, self._fetch_policy
                    )
                    legs_by_query[query] = len(legs)
                except DataUnavailable as e:
                    logger.debug("No legs for %s: %s", query, e)
                    unavailable.append(query)

        num_workers = min(self._max_concurrent, len(queries))
        workers = [asyncio.create_task(worker()) for _ in range(num_workers)]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        report = PlanReport(
            queries=tuple(queries),
            legs_by_query=legs_by_query,
            unavailable=tuple(sorted(unavailable, key=lambda q: q.sort_key)),
            fetch_count=self._repository.fetch_count - fetches_before,
            elapsed_ms=(time.perf_counter() - start_time) * 1000,
        )

        logger.info(
            "Executed %d leg queries with %d workers: %d legs, %d unavailable, "
            "%d external fetches in %.3fms",
            len(queries),
            num_workers,
            report.total_legs,
            len(report.unavailable),
            report.fetch_count,
            report.elapsed_ms,
        )
        return report

    @property
    def max_concurrent_fetches(self) -> int:
        return self._max_concurrent

    @property
    def max_leg_days(self) -> int:
        return self._max_leg_days
