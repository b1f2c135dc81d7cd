"""
Repository adapters for flight-leg caching.
"""

from itinerary_router.adapters.repositories.leg_repository import (
    InMemoryLegCache,
    LegRepository,
    contiguous_runs,
)

__all__ = [
    "InMemoryLegCache",
    "LegRepository",
    "contiguous_runs",
]
