"""
Schema definitions for the Itinerary Router.

Immutable dataclasses as the primary contracts, with a Pandera
DataFrame contract for leg batches at the pricing-source boundary.
"""

from .graph import NoFeasibleGraph, RouteEdge, RouteGraph, RouteNode
from .itinerary import (
    Infeasible,
    Itinerary,
    ItineraryResult,
    OptimizationResult,
    PartialState,
    itinerary_sort_key,
)
from .leg import (
    DateRange,
    FlightLeg,
    LegDataFrame,
    LegKey,
    LegSchema,
    legs_from_dataframe,
    legs_to_dataframe,
)
from .trip import Stop, TripRequest

__all__ = [
    # Legs
    "DateRange",
    "FlightLeg",
    "LegDataFrame",
    "LegKey",
    "LegSchema",
    "legs_from_dataframe",
    "legs_to_dataframe",
    # Trip
    "Stop",
    "TripRequest",
    # Graph
    "NoFeasibleGraph",
    "RouteEdge",
    "RouteGraph",
    "RouteNode",
    # Results
    "Infeasible",
    "Itinerary",
    "ItineraryResult",
    "OptimizationResult",
    "PartialState",
    "itinerary_sort_key",
]
