"""
Pricing source adapters.
"""

from itinerary_router.adapters.pricing.in_memory_source import InMemoryPricingSource

__all__ = [
    "InMemoryPricingSource",
]
