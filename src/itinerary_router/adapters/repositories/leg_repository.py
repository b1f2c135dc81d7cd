"""
Leg Repository - Session cache in front of the pricing source.

Implements lazy, deduplicated leg lookups with:
- Day-granularity cache keys (origin, destination, day)
- At-most-one in-flight fetch per key (other requesters await it)
- Per-fetch timeout and bounded retries with exponential backoff
- Any source fault recovered locally as "no legs"
- Failed lookups cached as "no legs" so they are not retried
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from datetime import date, timedelta
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pandas as pd

from itinerary_router.config import FetchPolicy
from itinerary_router.exceptions import (
    DataUnavailable,
    FetchFailed,
    FetchTimeout,
    ItineraryRouterError,
)
from itinerary_router.schemas.leg import (
    DateRange,
    FlightLeg,
    LegKey,
    legs_from_dataframe,
)

if TYPE_CHECKING:
    from itinerary_router.ports.leg_cache import LegCache
    from itinerary_router.ports.pricing_source import PricingSource

logger = logging.getLogger(__name__)


def contiguous_runs(days: Iterable[date]) -> List[DateRange]:
    """
    Group dates into maximal runs of consecutive days.

    Example:
        >>> contiguous_runs([date(2026, 5, 1), date(2026, 5, 2), date(2026, 5, 5)])
        [DateRange(start=datetime.date(2026, 5, 1), end=datetime.date(2026, 5, 2)),
         DateRange(start=datetime.date(2026, 5, 5), end=datetime.date(2026, 5, 5))]
    """
    runs: List[DateRange] = []
    start: Optional[date] = None
    prev: Optional[date] = None
    for day in sorted(set(days)):
        if start is None:
            start = prev = day
        elif day == prev + timedelta(days=1):
            prev = day
        else:
            runs.append(DateRange(start=start, end=prev))
            start = prev = day
    if start is not None:
        runs.append(DateRange(start=start, end=prev))
    return runs


# =============================================================================
# IN-MEMORY CACHE: per-session, per-process
# =============================================================================


class InMemoryLegCache:
    """
    Thread-safe in-process leg cache.

    Each key maps to the complete, sorted tuple of legs for one
    (origin, destination, day) bucket. An empty tuple is a cached miss.

    Attributes:
        _entries: Cached legs per key.
        _lock: Lock for thread-safe access.
    """

    def __init__(self) -> None:
        self._entries: Dict[LegKey, Tuple[FlightLeg, ...]] = {}
        self._lock = threading.Lock()

    def get(self, key: LegKey) -> Optional[Tuple[FlightLeg, ...]]:
        with self._lock:
            return self._entries.get(key)

    def put_many(self, entries: Dict[LegKey, Sequence[FlightLeg]]) -> None:
        """Store entries; legs for an existing key are merged in."""
        with self._lock:
            for key, legs in entries.items():
                existing = self._entries.get(key, ())
                merged = set(existing)
                merged.update(legs)
                self._entries[key] = tuple(sorted(merged, key=lambda leg: leg.sort_key))

    def contains(self, key: LegKey) -> bool:
        with self._lock:
            return key in self._entries

    def keys(self) -> List[LegKey]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# =============================================================================
# LEG REPOSITORY: sole consumer of the pricing source
# =============================================================================


class LegRepository:
    """
    Holds the flight legs of one optimization session.

    The repository is the only component that talks to the pricing
    source. Lookups are keyed by (origin, destination, day); a requested
    date range is split into days, days already cached are served from
    memory, days already being fetched are awaited, and the remaining
    days are fetched as contiguous runs, one external call per run.

    Usage:
        >>> repo = LegRepository(source, fetch_timeout_seconds=5.0)
        >>> legs = await repo.legs_for("JFK", "CDG", DateRange.fixed(day))
        >>> repo.cached_legs("JFK", "CDG", DateRange.fixed(day))  # no I/O
    """

    def __init__(
        self,
        source: PricingSource,
        cache: Optional[LegCache] = None,
        fetch_timeout_seconds: Optional[float] = None,
        max_retries: int = 0,
        backoff_seconds: float = 0.5,
        backoff_multiplier: float = 2.0,
    ) -> None:
        """
        Initialize the repository.

        Args:
            source: External pricing collaborator.
            cache: Cache backend. Defaults to InMemoryLegCache.
            fetch_timeout_seconds: Per-fetch timeout (None = unlimited).
            max_retries: Retries of a failed fetch before the lookup is
                downgraded to DataUnavailable.
            backoff_seconds: Delay before the first retry.
            backoff_multiplier: Exponential backoff multiplier.
        """
        self._source = source
        self._cache = cache if cache is not None else InMemoryLegCache()
        self._policy = FetchPolicy(
            timeout_seconds=fetch_timeout_seconds,
            max_retries=max_retries,
            backoff_seconds=backoff_seconds,
            backoff_multiplier=backoff_multiplier,
        )

        self._in_flight: Dict[LegKey, asyncio.Future] = {}
        self._unavailable: Set[LegKey] = set()
        self._fetch_count = 0

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def legs_for(
        self,
        origin: str,
        destination: str,
        date_range: DateRange,
        policy: Optional[FetchPolicy] = None,
    ) -> Tuple[FlightLeg, ...]:
        """
        Legs from origin to destination departing within date_range.

        Fetches lazily on first miss, then serves from the session cache.
        ``policy`` overrides the repository's timeout and retry settings
        for the fetches this call starts; days already in flight are
        awaited under the policy of the call that started them.

        Returns:
            Legs sorted by FlightLeg.sort_key.

        Raises:
            DataUnavailable: If no legs exist for the pair/range.
        """
        waits: List[asyncio.Future] = []
        missing: List[date] = []

        # Claim missing days before the first await so concurrent callers
        # see them as in flight.
        for day in date_range.days():
            key = LegKey(origin, destination, day)
            if self._cache.contains(key):
                continue
            pending = self._in_flight.get(key)
            if pending is not None:
                if pending not in waits:
                    waits.append(pending)
                continue
            missing.append(day)

        loop = asyncio.get_running_loop()
        owned: List[Tuple[DateRange, asyncio.Future]] = []
        for run in contiguous_runs(missing):
            future = loop.create_future()
            for day in run.days():
                self._in_flight[LegKey(origin, destination, day)] = future
            owned.append((run, future))

        try:
            for run, _ in owned:
                await self._fetch_run(origin, destination, run, policy or self._policy)
        finally:
            for run, future in owned:
                for day in run.days():
                    self._in_flight.pop(LegKey(origin, destination, day), None)
                if not future.done():
                    future.set_result(None)

        if waits:
            await asyncio.gather(*waits)

        legs = self.cached_legs(origin, destination, date_range)
        if not legs:
            raise DataUnavailable(origin, destination, f"no legs departing {date_range}")
        return legs

    def cached_legs(
        self,
        origin: str,
        destination: str,
        date_range: DateRange,
    ) -> Tuple[FlightLeg, ...]:
        """
        Snapshot of cached legs for the pair/range. Never performs I/O.

        Days never fetched contribute nothing.
        """
        legs: List[FlightLeg] = []
        for day in date_range.days():
            entry = self._cache.get(LegKey(origin, destination, day))
            if entry:
                legs.extend(entry)
        return tuple(sorted(legs, key=lambda leg: leg.sort_key))

    def is_cached(self, origin: str, destination: str, day: date) -> bool:
        return self._cache.contains(LegKey(origin, destination, day))

    def is_unavailable(self, origin: str, destination: str, day: date) -> bool:
        """True if a fetch covering this day failed or returned nothing."""
        return LegKey(origin, destination, day) in self._unavailable

    # -------------------------------------------------------------------------
    # Pre-warming
    # -------------------------------------------------------------------------

    def ingest(self, legs: Iterable[FlightLeg]) -> int:
        """
        Pre-warm the cache from a batch fetch.

        Every day that receives at least one leg is marked as cached and
        will not be fetched again this session.

        Returns:
            Number of legs ingested.
        """
        grouped: Dict[LegKey, List[FlightLeg]] = defaultdict(list)
        count = 0
        for leg in legs:
            grouped[leg.key].append(leg)
            count += 1
        if grouped:
            self._cache.put_many(grouped)
        logger.debug("Ingested %d legs into %d cache keys", count, len(grouped))
        return count

    def ingest_dataframe(self, df: pd.DataFrame) -> int:
        """
        Validate a LegSchema DataFrame and ingest its legs.

        Raises:
            pandera.errors.SchemaError: If the data fails validation.
        """
        return self.ingest(legs_from_dataframe(df))

    # -------------------------------------------------------------------------
    # External fetches
    # -------------------------------------------------------------------------

    async def _fetch_run(
        self, origin: str, destination: str, run: DateRange, policy: FetchPolicy
    ) -> None:
        """Fetch one contiguous run of days and cache the outcome."""
        retries = 0
        backoff = policy.backoff_seconds
        legs: Sequence[FlightLeg] = ()
        unavailable = False

        while True:
            try:
                legs = await self._call_source(origin, destination, run, policy.timeout_seconds)
                break
            except DataUnavailable as e:
                logger.debug("%s", e)
                unavailable = True
                break
            except FetchFailed as e:
                if retries >= policy.max_retries:
                    logger.warning(
                        "Fetch %s->%s %s failed after %d retries, treating as unavailable: %s",
                        origin,
                        destination,
                        run,
                        retries,
                        e,
                    )
                    unavailable = True
                    break
                retries += 1
                logger.warning(
                    "Fetch %s->%s %s failed, retry %d/%d in %.1fs",
                    origin,
                    destination,
                    run,
                    retries,
                    policy.max_retries,
                    backoff,
                )
                await asyncio.sleep(backoff)
                backoff *= policy.backoff_multiplier

        entries: Dict[LegKey, List[FlightLeg]] = {
            LegKey(origin, destination, day): [] for day in run.days()
        }
        dropped = 0
        for leg in legs:
            key = leg.key
            if key in entries:
                entries[key].append(leg)
            else:
                dropped += 1
        if dropped:
            logger.debug(
                "Dropped %d legs outside %s->%s %s", dropped, origin, destination, run
            )

        self._cache.put_many(entries)
        for key, day_legs in entries.items():
            if unavailable or not day_legs:
                self._unavailable.add(key)

    async def _call_source(
        self,
        origin: str,
        destination: str,
        run: DateRange,
        timeout: Optional[float],
    ) -> Sequence[FlightLeg]:
        """
        Single external call, bounded by the per-fetch timeout.

        Errors outside the pricing-source contract (connection resets,
        parse errors and the like) are reported as FetchFailed so they go
        through the same retry path. Cancellation is never converted.
        """
        self._fetch_count += 1
        logger.debug("Fetching %s->%s %s from %s", origin, destination, run, self._source.name)
        try:
            call = self._source.fetch_legs(origin, destination, run)
            if timeout is None:
                return await call
            try:
                return await asyncio.wait_for(call, timeout=timeout)
            except asyncio.TimeoutError as e:
                raise FetchTimeout(origin, destination, timeout) from e
        except ItineraryRouterError:
            raise
        except Exception as e:
            raise FetchFailed(origin, destination, f"{type(e).__name__}: {e}") from e

    # -------------------------------------------------------------------------
    # Session state
    # -------------------------------------------------------------------------

    @property
    def fetch_count(self) -> int:
        """Number of external calls made this session (retries included)."""
        return self._fetch_count

    @property
    def source_name(self) -> str:
        return self._source.name

    @property
    def policy(self) -> FetchPolicy:
        """Default timeout and retry settings for lookups."""
        return self._policy

    @property
    def cached_key_count(self) -> int:
        return len(list(self._cache.keys()))

    def clear(self) -> None:
        """Drop the session cache."""
        self._cache.clear()
        self._unavailable.clear()
        self._fetch_count = 0
