"""
Itinerary Router - cheapest multi-stop flight itineraries.

Builds a layered route graph from flight legs fetched through a pricing
source and searches it for the lowest-cost itineraries that respect
the traveler's stop order, date windows and connection limits.
"""

from itinerary_router.application.optimize_itinerary import OptimizeItinerary
from itinerary_router.cancellation import CancellationToken
from itinerary_router.config import FetchPolicy, OptimizerConfig, SearchMode
from itinerary_router.exceptions import (
    DataUnavailable,
    FetchFailed,
    FetchTimeout,
    InvalidTripRequestError,
    ItineraryRouterError,
    OptimizationCancelled,
)
from itinerary_router.schemas import (
    DateRange,
    FlightLeg,
    Infeasible,
    Itinerary,
    ItineraryResult,
    Stop,
    TripRequest,
)

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "DataUnavailable",
    "DateRange",
    "FetchFailed",
    "FetchPolicy",
    "FetchTimeout",
    "FlightLeg",
    "Infeasible",
    "InvalidTripRequestError",
    "Itinerary",
    "ItineraryResult",
    "ItineraryRouterError",
    "OptimizationCancelled",
    "OptimizeItinerary",
    "OptimizerConfig",
    "SearchMode",
    "Stop",
    "TripRequest",
]
