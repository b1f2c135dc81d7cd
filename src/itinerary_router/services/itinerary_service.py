"""
Itinerary Service - Domain orchestrator for itinerary optimization.

Coordinates the interaction between:
- QueryPlanner (which leg lookups a trip needs, fetched concurrently)
- LegRepository (session cache in front of the pricing source)
- RouteGraphBuilder (layered graph from cached legs)
- ItineraryOptimizer (exact or bounded search)
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Optional

from itinerary_router.adapters.algorithms.branch_and_bound import BranchAndBoundOptimizer
from itinerary_router.adapters.algorithms.held_karp import HeldKarpOptimizer
from itinerary_router.cancellation import NEVER_CANCELLED, CancellationToken
from itinerary_router.config import OptimizerConfig, SearchMode
from itinerary_router.schemas.graph import NoFeasibleGraph
from itinerary_router.schemas.itinerary import OptimizationResult
from itinerary_router.services.graph_builder import RouteGraphBuilder
from itinerary_router.services.query_planner import QueryPlanner

if TYPE_CHECKING:
    from itinerary_router.adapters.repositories.leg_repository import LegRepository
    from itinerary_router.ports.itinerary_optimizer import ItineraryOptimizer
    from itinerary_router.schemas.trip import TripRequest

logger = logging.getLogger(__name__)


class ItineraryService:
    """
    Domain service for finding the cheapest itineraries.

    Orchestrates one optimization:
    1. Plans and fetches the needed legs (bounded concurrency)
    2. Builds the route graph from the warmed cache
    3. Selects and runs the optimizer
    4. Logs per-stage timings

    The repository is shared across calls, so legs fetched for one trip
    are reused by the next.

    Attributes:
        _repository: Leg Repository owning the session cache.
        _builder: Route Graph Builder.
        _config: Default configuration.
    """

    def __init__(
        self,
        repository: LegRepository,
        builder: Optional[RouteGraphBuilder] = None,
        config: Optional[OptimizerConfig] = None,
    ) -> None:
        self._repository = repository
        self._builder = builder or RouteGraphBuilder()
        self._config = config or OptimizerConfig()

    async def optimize(
        self,
        trip: TripRequest,
        config: Optional[OptimizerConfig] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> OptimizationResult:
        """
        Find up to top_k cheapest itineraries for the trip.

        Args:
            trip: Validated trip request.
            config: Per-call configuration. Search, concurrency and fetch
                settings all apply to this call; without it the service
                default is used and fetches follow the repository's own
                timeout and retry settings.
            cancel_token: Cooperative cancellation signal.

        Returns:
            ItineraryResult or Infeasible.

        Raises:
            OptimizationCancelled: If the token is cancelled.
        """
        fetch_policy = config.fetch_policy if config is not None else None
        config = config or self._config
        token = cancel_token or NEVER_CANCELLED
        start_time = time.perf_counter()

        # 1. Warm the cache with every leg the builder could read
        planner = QueryPlanner(
            self._repository,
            max_concurrent_fetches=config.max_concurrent_fetches,
            max_leg_days=config.max_leg_days,
            fetch_policy=fetch_policy,
        )
        report = await planner.execute(trip, token)
        token.raise_if_cancelled("graph construction")

        # 2. Build the route graph (no I/O)
        build_start = time.perf_counter()
        graph = self._builder.build(trip, self._repository)
        build_time = time.perf_counter() - build_start

        # 3. Search
        optimizer = self.select_optimizer(trip, config)
        search_start = time.perf_counter()
        result = optimizer.optimize(graph, top_k=config.top_k, cancel_token=token)
        search_time = time.perf_counter() - search_start

        total_time = time.perf_counter() - start_time
        if isinstance(graph, NoFeasibleGraph):
            graph_summary = "no feasible graph"
        else:
            graph_summary = f"{graph.node_count} nodes, {graph.edge_count} edges"

        logger.info(
            "Optimized %d-stop trip in %.3fms (fetch: %.3fms, graph: %.3fms [%s], "
            "%s: %.3fms) -> %s",
            trip.num_stops,
            total_time * 1000,
            report.elapsed_ms,
            build_time * 1000,
            graph_summary,
            optimizer.name,
            search_time * 1000,
            f"{len(result.itineraries)} itineraries" if result.is_feasible else "infeasible",
        )
        return result

    def select_optimizer(self, trip: TripRequest, config: OptimizerConfig) -> ItineraryOptimizer:
        """
        Pick the optimizer for a trip.

        Bounded search runs when requested, or when the trip has more
        stops than exact search supports.
        """
        if (
            config.search_mode is SearchMode.BOUNDED
            or trip.num_stops > config.exact_search_max_stops
        ):
            if config.search_mode is SearchMode.EXACT:
                logger.info(
                    "%d stops exceeds exact search limit of %d, using branch and bound",
                    trip.num_stops,
                    config.exact_search_max_stops,
                )
            return BranchAndBoundOptimizer(cancel_check_interval=config.cancel_check_interval)
        return HeldKarpOptimizer(
            time_bucket_minutes=config.time_bucket_minutes,
            cancel_check_interval=config.cancel_check_interval,
        )

    @property
    def repository(self) -> LegRepository:
        return self._repository

    @property
    def config(self) -> OptimizerConfig:
        return self._config
