"""
Pricing Source port interface.

Defines the abstract contract for the external collaborator that quotes
flight legs. The core places no constraint on how an implementation
obtains its data (API, scraping, cache file) beyond this contract.
"""

from abc import ABC, abstractmethod
from typing import Sequence

from itinerary_router.schemas.leg import DateRange, FlightLeg


class PricingSource(ABC):
    """
    Abstract interface for flight-leg pricing sources.

    Only the Leg Repository talks to a pricing source. Implementations
    must be safe to call concurrently from several asyncio tasks.

    Implementations:
    - InMemoryPricingSource: legs held in memory, a DataFrame or a CSV file
    """

    @abstractmethod
    async def fetch_legs(
        self,
        origin: str,
        destination: str,
        date_range: DateRange,
    ) -> Sequence[FlightLeg]:
        """
        Return point-in-time quotes for direct legs.

        Args:
            origin: Departure airport IATA code.
            destination: Arrival airport IATA code.
            date_range: Inclusive range of departure dates.

        Returns:
            Legs from origin to destination departing within date_range.

        Raises:
            DataUnavailable: If no legs exist for the pair/range.
            FetchFailed: If the lookup failed (network, provider error).
            FetchTimeout: If the lookup timed out.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Human-readable name of this pricing source.

        Returns:
            Source identifier (e.g., "In-Memory Source").
        """
        ...
