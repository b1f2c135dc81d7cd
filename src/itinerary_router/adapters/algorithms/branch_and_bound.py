"""
Branch and Bound Optimizer - Depth-first search with a price bound.

Explores the route graph depth-first, cheapest edge first, and prunes a
partial path once its price plus an admissible lower bound on the
remaining legs exceeds the K-th best complete itinerary found so far.

Lower bound: every remaining leg departs either from the current stop
or from an unvisited stop other than the final one, exactly once, so
the sum of the cheapest outgoing leg of each of those stops never
overestimates the remaining cost.
"""

from __future__ import annotations

import bisect
import logging
import time
from typing import Dict, List, Optional, Tuple, Union

from itinerary_router.adapters.algorithms.labels import (
    Label,
    infeasible_from_graph_failure,
    label_order,
    partial_state,
    rank_complete_labels,
    reconstruct_legs,
)
from itinerary_router.cancellation import NEVER_CANCELLED, CancellationToken
from itinerary_router.ports.itinerary_optimizer import ItineraryOptimizer
from itinerary_router.schemas.graph import NoFeasibleGraph, RouteGraph
from itinerary_router.schemas.itinerary import (
    Infeasible,
    ItineraryResult,
    OptimizationResult,
    itinerary_sort_key,
)

logger = logging.getLogger(__name__)

_EPS = 1e-6


class BranchAndBoundOptimizer(ItineraryOptimizer):
    """
    Optimizer for larger stop counts.

    Exact: a path is pruned only when its bound is strictly above the
    K-th best price, so ties are still ranked by the full sort key.
    Worst-case exponential, but typically far fewer states than the
    subset DP once a good incumbent is found.
    """

    def __init__(self, cancel_check_interval: int = 1000) -> None:
        if cancel_check_interval < 1:
            raise ValueError(f"cancel_check_interval must be >= 1, got {cancel_check_interval}")
        self._check_interval = cancel_check_interval

    @property
    def name(self) -> str:
        return "Branch and Bound"

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
        final_index = graph.num_stops - 1
        cheapest = graph.cheapest_out_price()

        # Sorted (sort_key, label) pairs, at most top_k long.
        best: List[Tuple[Tuple, Label]] = []
        deepest = Label(node=graph.source, price=0.0)
        stack: List[Label] = [deepest]
        expanded = 0

        token.raise_if_cancelled("branch-and-bound search")
        while stack:
            label = stack.pop()
            expanded += 1
            if expanded % self._check_interval == 0:
                token.raise_if_cancelled("branch-and-bound search")

            node = label.node
            if node.layer > deepest.node.layer or (
                node.layer == deepest.node.layer and label_order(label) < label_order(deepest)
            ):
                deepest = label

            if node.layer == final_index:
                if node.mask == graph.final_mask:
                    self._offer(best, label, top_k)
                continue

            if len(best) >= top_k:
                bound = label.price + self._lower_bound(node.stop_index, node.mask, cheapest, final_index)
                if round(bound, 6) > best[-1][0][0] + _EPS:
                    continue

            children = []
            for edge in node.out_edges:
                if budget is not None:
                    start = label.start_if_extended(edge)
                    if edge.target.time - start > budget + _EPS:
                        continue
                children.append(label.extend(edge))

            # Push most expensive first so the cheapest child is popped next.
            children.sort(key=label_order, reverse=True)
            stack.extend(children)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        if not best:
            logger.info(
                "Branch and bound found no itinerary after %d expansions in %.3fms",
                expanded,
                elapsed_ms,
            )
            return Infeasible(
                reason="No itinerary satisfies the trip duration and connection constraints",
                last_partial=partial_state(deepest),
                algorithm=self.name,
            )

        itineraries = rank_complete_labels([label for _, label in best], top_k)
        logger.debug(
            "Branch and bound: %d itineraries, %d expansions in %.3fms",
            len(itineraries),
            expanded,
            elapsed_ms,
        )
        return ItineraryResult(
            itineraries=itineraries,
            algorithm=self.name,
            states_expanded=expanded,
        )

    @staticmethod
    def _lower_bound(
        stop_index: int,
        mask: int,
        cheapest: Dict[int, float],
        final_index: int,
    ) -> float:
        """Cheapest-outgoing-leg bound on the cost of completing the path."""
        bound = cheapest.get(stop_index, 0.0)
        for j, price in cheapest.items():
            if j != final_index and j != stop_index and not mask & (1 << j):
                bound += price
        return bound

    @staticmethod
    def _offer(best: List[Tuple[Tuple, Label]], label: Label, k: int) -> None:
        """Insert a complete label, keeping the k best by itinerary_sort_key."""
        key = itinerary_sort_key(reconstruct_legs(label))
        if len(best) >= k and key >= best[-1][0]:
            return
        keys = [entry[0] for entry in best]
        best.insert(bisect.bisect_right(keys, key), (key, label))
        del best[k:]
