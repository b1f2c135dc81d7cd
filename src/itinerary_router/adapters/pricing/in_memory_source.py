"""
In-Memory Pricing Source - static quotes as a pricing collaborator.

Serves legs held in memory, loaded from a LegSchema DataFrame or a CSV
export. Useful for fixtures, offline replays of captured quotes, and
tests. An optional simulated latency exercises the async fetch path.
"""

import asyncio
import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple, Union

import pandas as pd

from itinerary_router.exceptions import DataUnavailable
from itinerary_router.ports.pricing_source import PricingSource
from itinerary_router.schemas.leg import DateRange, FlightLeg, legs_from_dataframe

logger = logging.getLogger(__name__)


class InMemoryPricingSource(PricingSource):
    """
    Pricing source backed by an in-memory list of legs.

    Legs are indexed by (origin, destination) once at construction.
    A query with no matching legs raises DataUnavailable, matching the
    behavior of a provider that has no route for the pair/dates.

    Attributes:
        _legs_by_pair: Legs per (origin, destination), sorted by departure.
        _latency_seconds: Simulated response time per call.
        _call_count: Number of fetch_legs calls served.
    """

    def __init__(
        self,
        legs: Iterable[FlightLeg] = (),
        latency_seconds: float = 0.0,
        name: str = "In-Memory Source",
    ) -> None:
        """
        Initialize the source.

        Args:
            legs: Legs to serve.
            latency_seconds: Simulated delay per fetch.
            name: Identifier used in logs.
        """
        self._legs_by_pair: Dict[Tuple[str, str], List[FlightLeg]] = defaultdict(list)
        for leg in legs:
            self._legs_by_pair[(leg.origin, leg.destination)].append(leg)
        for pair_legs in self._legs_by_pair.values():
            pair_legs.sort(key=lambda leg: leg.sort_key)

        self._latency_seconds = latency_seconds
        self._name = name
        self._call_count = 0

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, **kwargs) -> "InMemoryPricingSource":
        """
        Build a source from a DataFrame validated against LegSchema.

        Raises:
            pandera.errors.SchemaError: If the data fails validation.
        """
        return cls(legs_from_dataframe(df), **kwargs)

    @classmethod
    def from_csv(cls, path: Union[str, Path], **kwargs) -> "InMemoryPricingSource":
        """
        Build a source from a CSV export with LegSchema columns.

        Raises:
            FileNotFoundError: If the file does not exist.
            pandera.errors.SchemaError: If the data fails validation.
        """
        csv_path = Path(path)
        if not csv_path.exists():
            raise FileNotFoundError(f"Leg file not found: {csv_path}")
        df = pd.read_csv(
            csv_path,
            parse_dates=["departure", "arrival"],
            dtype={"carrier": "string", "fare_class": "string"},
        )
        logger.info("Loaded %d legs from %s", len(df), csv_path)
        return cls.from_dataframe(df, **kwargs)

    async def fetch_legs(
        self,
        origin: str,
        destination: str,
        date_range: DateRange,
    ) -> Sequence[FlightLeg]:
        """
        Return legs for the pair departing within date_range.

        Raises:
            DataUnavailable: If no leg matches.
        """
        self._call_count += 1
        if self._latency_seconds > 0:
            await asyncio.sleep(self._latency_seconds)

        matching = [
            leg
            for leg in self._legs_by_pair.get((origin, destination), ())
            if date_range.contains(leg.departure_day)
        ]
        if not matching:
            raise DataUnavailable(origin, destination, f"no quotes for {date_range}")
        return matching

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return self._call_count

    @property
    def routes(self) -> frozenset:
        """All (origin, destination) pairs with at least one leg."""
        return frozenset(self._legs_by_pair)

    def all_legs(self) -> List[FlightLeg]:
        return [leg for legs in self._legs_by_pair.values() for leg in legs]
