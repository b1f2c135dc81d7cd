"""Domain services: query planning, graph construction, orchestration."""

from .graph_builder import RouteGraphBuilder
from .itinerary_service import ItineraryService
from .query_planner import LegQuery, PlanReport, QueryPlanner

__all__ = [
    "ItineraryService",
    "LegQuery",
    "PlanReport",
    "QueryPlanner",
    "RouteGraphBuilder",
]
