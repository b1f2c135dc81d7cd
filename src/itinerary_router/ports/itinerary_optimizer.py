"""
Itinerary Optimizer port interface.

Defines the abstract contract for search algorithms over a route graph.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from itinerary_router.cancellation import CancellationToken
    from itinerary_router.schemas.graph import NoFeasibleGraph, RouteGraph
    from itinerary_router.schemas.itinerary import OptimizationResult


class ItineraryOptimizer(ABC):
    """
    Abstract interface for itinerary search algorithms.

    Optimizers are pure computation: they never perform I/O and never
    raise for infeasibility. Every outcome is a typed result.

    Implementations:
    - HeldKarpOptimizer: exact subset dynamic program with top-K labels
    - BranchAndBoundOptimizer: depth-first search with a lower bound
    """

    @abstractmethod
    def optimize(
        self,
        graph: Union[RouteGraph, NoFeasibleGraph],
        top_k: int = 1,
        cancel_token: Optional[CancellationToken] = None,
    ) -> OptimizationResult:
        """
        Find the cheapest itineraries through the graph.

        Args:
            graph: Graph from the builder, or its structural failure.
            top_k: Number of ranked itineraries to return.
            cancel_token: Checked at coarse intervals during the search.

        Returns:
            ItineraryResult with 1..top_k itineraries ordered by
            itinerary_sort_key, or Infeasible.

        Raises:
            OptimizationCancelled: If the token is cancelled mid-search.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Algorithm identifier.

        Returns:
            Human-readable algorithm name.
        """
        ...
