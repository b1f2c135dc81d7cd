"""Application layer: public entry points."""

from .optimize_itinerary import OptimizeItinerary

__all__ = ["OptimizeItinerary"]
