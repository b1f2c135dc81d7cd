"""
Held-Karp Optimizer - Subset dynamic program over the route graph.

States are (stop, visited subset, time bucket). The graph is layered,
so every state in layer k is final once layer k-1 has been relaxed and
a single forward sweep suffices. Each state keeps up to K labels that
are not dominated by K others, which preserves the global top K.

Performance notes:
- States within a layer are relaxed in sorted order, so results are
  independent of dict or set iteration order.
- The cancellation token is polled once per cancel_check_interval
  label expansions, not per edge.
"""

from __future__ import annotations

import logging
import math
import time
from collections import defaultdict
from typing import Dict, List, Optional, Tuple, Union

from itinerary_router.adapters.algorithms.labels import (
    Label,
    infeasible_from_graph_failure,
    k_best_labels,
    label_order,
    partial_state,
    rank_complete_labels,
)
from itinerary_router.cancellation import NEVER_CANCELLED, CancellationToken
from itinerary_router.ports.itinerary_optimizer import ItineraryOptimizer
from itinerary_router.schemas.graph import NoFeasibleGraph, RouteGraph, RouteNode
from itinerary_router.schemas.itinerary import Infeasible, ItineraryResult, OptimizationResult

logger = logging.getLogger(__name__)

_EPS = 1e-6

StateKey = Tuple[int, int, float]


class HeldKarpOptimizer(ItineraryOptimizer):
    """
    Exact optimizer for small stop counts.

    With time_bucket_minutes == 0 every distinct arrival time is its own
    state and the result is exact. A positive bucket width merges
    arrivals within the same bucket into one state and keeps the K
    cheapest labels there, trading exactness for fewer states.

    Attributes:
        _bucket_minutes: Width of a time bucket (0 = exact times).
        _check_interval: Label expansions between cancellation checks.
    """

    def __init__(self, time_bucket_minutes: int = 0, cancel_check_interval: int = 1000) -> None:
        if time_bucket_minutes < 0:
            raise ValueError(f"time_bucket_minutes must be >= 0, got {time_bucket_minutes}")
        if cancel_check_interval < 1:
            raise ValueError(f"cancel_check_interval must be >= 1, got {cancel_check_interval}")
        self._bucket_minutes = time_bucket_minutes
        self._check_interval = cancel_check_interval

    @property
    def name(self) -> str:
        return "Held-Karp DP"

    def optimize(
        self,
        graph: Union[RouteGraph, NoFeasibleGraph],
        top_k: int = 1,
        cancel_token: Optional[CancellationToken] = None,
    ) -> OptimizationResult:
        if top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {top_k}")
        if isinstance(graph, NoFeasibleGraph):
            return infeasible_from_graph_failure(graph, self.name)

        token = cancel_token or NEVER_CANCELLED
        start_time = time.perf_counter()
        budget = graph.max_trip_minutes

        frontier: Dict[StateKey, List[Label]] = {
            self._state_of(graph.source): [Label(node=graph.source, price=0.0)]
        }
        deepest = frontier[self._state_of(graph.source)][0]
        expanded = 0

        token.raise_if_cancelled("Held-Karp search")
        for _ in range(1, graph.num_stops):
            candidates: Dict[StateKey, List[Label]] = defaultdict(list)
            for state in sorted(frontier):
                for label in frontier[state]:
                    expanded += 1
                    if expanded % self._check_interval == 0:
                        token.raise_if_cancelled("Held-Karp search")
                    for edge in label.node.out_edges:
                        if budget is not None:
                            start = label.start_if_extended(edge)
                            if edge.target.time - start > budget + _EPS:
                                continue
                        candidates[self._state_of(edge.target)].append(label.extend(edge))

            frontier = {}
            for state, labels in candidates.items():
                kept = self._retain(labels, top_k)
                if kept:
                    frontier[state] = kept
            if not frontier:
                break
            deepest = min((ls[0] for ls in frontier.values()), key=label_order)

        complete = [
            label
            for labels in frontier.values()
            for label in labels
            if label.node.mask == graph.final_mask and label.node.layer == graph.num_stops - 1
        ]

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        if not complete:
            logger.info(
                "Held-Karp found no itinerary after %d expansions in %.3fms",
                expanded,
                elapsed_ms,
            )
            return Infeasible(
                reason="No itinerary satisfies the trip duration and connection constraints",
                last_partial=partial_state(deepest),
                algorithm=self.name,
            )

        itineraries = rank_complete_labels(complete, top_k)
        logger.debug(
            "Held-Karp: %d itineraries from %d terminal labels, %d expansions in %.3fms",
            len(itineraries),
            len(complete),
            expanded,
            elapsed_ms,
        )
        return ItineraryResult(
            itineraries=itineraries,
            algorithm=self.name,
            states_expanded=expanded,
        )

    def _state_of(self, node: RouteNode) -> StateKey:
        if self._bucket_minutes == 0:
            return (node.stop_index, node.mask, node.time)
        return (node.stop_index, node.mask, float(math.floor(node.time / self._bucket_minutes)))

    def _retain(self, labels: List[Label], k: int) -> List[Label]:
        if self._bucket_minutes == 0:
            return k_best_labels(labels, k)
        # Merged buckets: keep the K best regardless of arrival time.
        return sorted(labels, key=label_order)[:k]
