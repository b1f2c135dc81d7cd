"""
Port interfaces for the Itinerary Router.

Ports define the abstract interfaces (ABCs and Protocols) that the domain
layer uses to communicate with external systems. This follows the
Ports and Adapters (Hexagonal) architecture pattern.
"""

from itinerary_router.ports.itinerary_optimizer import ItineraryOptimizer
from itinerary_router.ports.leg_cache import LegCache
from itinerary_router.ports.pricing_source import PricingSource

__all__ = [
    "ItineraryOptimizer",
    "LegCache",
    "PricingSource",
]
