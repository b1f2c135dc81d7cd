"""
OptimizeItinerary Use Case - Public API for itinerary optimization.

This module provides the main entry point for the itinerary optimizer.
It acts as a Facade/Factory, wiring the pricing source, leg repository
and service from one configuration object.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

import pandas as pd

from itinerary_router.adapters.pricing.in_memory_source import InMemoryPricingSource
from itinerary_router.adapters.repositories.leg_repository import LegRepository
from itinerary_router.cancellation import CancellationToken
from itinerary_router.config import OptimizerConfig
from itinerary_router.ports.pricing_source import PricingSource
from itinerary_router.schemas.itinerary import OptimizationResult
from itinerary_router.schemas.leg import FlightLeg
from itinerary_router.schemas.trip import TripRequest
from itinerary_router.services.itinerary_service import ItineraryService
from itinerary_router.services.query_planner import LegQuery, QueryPlanner

logger = logging.getLogger(__name__)


class OptimizeItinerary:
    """
    Public API for finding the cheapest multi-stop itineraries.

    Example usage:
        >>> optimizer = OptimizeItinerary.from_csv("quotes.csv")
        >>> trip = TripRequest.create([
        ...     Stop.on("JFK", date(2026, 6, 1)),
        ...     Stop.on("CDG", date(2026, 6, 2)),
        ...     Stop.on("FCO", date(2026, 6, 6)),
        ... ])
        >>> result = optimizer.optimize_sync(trip)
        >>> if result.is_feasible:
        ...     print(result.best.route, result.best.total_price)

    Attributes:
        _config: Default configuration for every call.
        _repository: Session leg cache shared across calls.
        _service: Underlying ItineraryService.
    """

    def __init__(
        self,
        pricing_source: Optional[PricingSource] = None,
        config: Optional[OptimizerConfig] = None,
        repository: Optional[LegRepository] = None,
    ) -> None:
        """
        Initialize the optimizer.

        Args:
            pricing_source: External pricing collaborator. Ignored when a
                repository is supplied.
            config: Defaults to OptimizerConfig().
            repository: Pre-built Leg Repository (e.g. shared between facades).

        Raises:
            ValueError: If neither a pricing source nor a repository is given.
        """
        self._config = config or OptimizerConfig()

        if repository is not None:
            self._repository = repository
        elif pricing_source is not None:
            self._repository = LegRepository(
                source=pricing_source,
                fetch_timeout_seconds=self._config.fetch_timeout_seconds,
                max_retries=self._config.max_retries,
                backoff_seconds=self._config.backoff_seconds,
                backoff_multiplier=self._config.backoff_multiplier,
            )
        else:
            raise ValueError("Either pricing_source or repository is required")

        self._service = ItineraryService(repository=self._repository, config=self._config)

        logger.info(
            "OptimizeItinerary initialized with %s (mode=%s, top_k=%d)",
            self._repository.source_name,
            self._config.search_mode.value,
            self._config.top_k,
        )

    @classmethod
    def from_legs(
        cls,
        legs: Iterable[FlightLeg],
        config: Optional[OptimizerConfig] = None,
    ) -> "OptimizeItinerary":
        """Optimizer over a fixed set of legs served from memory."""
        return cls(pricing_source=InMemoryPricingSource(legs), config=config)

    @classmethod
    def from_csv(
        cls,
        path: Union[str, Path],
        config: Optional[OptimizerConfig] = None,
    ) -> "OptimizeItinerary":
        """
        Optimizer over legs exported to CSV.

        Raises:
            FileNotFoundError: If the file does not exist.
            pandera.errors.SchemaError: If the data fails validation.
        """
        return cls(pricing_source=InMemoryPricingSource.from_csv(path), config=config)

    async def optimize(
        self,
        trip: TripRequest,
        config: Optional[OptimizerConfig] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> OptimizationResult:
        """
        Find up to top_k cheapest itineraries.

        Args:
            trip: Validated trip request.
            config: Per-call override of the default configuration,
                fetch timeout and retry settings included.
            cancel_token: Cooperative cancellation signal.

        Returns:
            ItineraryResult (ranked, best first) or Infeasible.

        Raises:
            OptimizationCancelled: If the token is cancelled.
        """
        return await self._service.optimize(trip, config=config, cancel_token=cancel_token)

    def optimize_sync(
        self,
        trip: TripRequest,
        config: Optional[OptimizerConfig] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> OptimizationResult:
        """Blocking wrapper around optimize() for callers without an event loop."""
        return asyncio.run(self.optimize(trip, config=config, cancel_token=cancel_token))

    def plan(self, trip: TripRequest) -> List[LegQuery]:
        """Leg lookups an optimization of this trip would issue."""
        planner = QueryPlanner(
            self._repository,
            max_concurrent_fetches=self._config.max_concurrent_fetches,
            max_leg_days=self._config.max_leg_days,
        )
        return planner.plan(trip)

    def preload(self, legs: Iterable[FlightLeg]) -> int:
        """Pre-warm the session cache from a batch fetch."""
        return self._repository.ingest(legs)

    def preload_dataframe(self, df: pd.DataFrame) -> int:
        """Pre-warm the session cache from a LegSchema DataFrame."""
        return self._repository.ingest_dataframe(df)

    def clear_cache(self) -> None:
        """Drop every cached leg; the next call fetches again."""
        self._repository.clear()

    @property
    def config(self) -> OptimizerConfig:
        return self._config

    @property
    def repository(self) -> LegRepository:
        return self._repository

    def shutdown(self) -> None:
        """Release the session cache."""
        self._repository.clear()
        logger.info("OptimizeItinerary shutdown complete")

    def __enter__(self) -> "OptimizeItinerary":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()
