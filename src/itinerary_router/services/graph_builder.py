"""
Route Graph Builder - Layered DAG from a trip and cached legs.

Performance notes:
- Legs for each stop pair are pre-extracted into numpy arrays once
  (PairLegArrays), so connection feasibility is a vectorized mask
  instead of a Python loop over every leg.
- Node identity is (stop, visited mask, arrival time); identical
  arrivals reached along different paths share one node.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from itinerary_router.schemas.graph import NoFeasibleGraph, RouteEdge, RouteGraph, RouteNode
from itinerary_router.schemas.leg import MINUTES_PER_DAY, FlightLeg, day_start_minutes
from itinerary_router.schemas.trip import TripRequest
from itinerary_router.services.query_planner import adjacent_pairs, feasible_departure_range

if TYPE_CHECKING:
    from itinerary_router.adapters.repositories.leg_repository import LegRepository

logger = logging.getLogger(__name__)

# Window ends are exclusive midnights; comparisons are inclusive, so
# the upper bounds are pulled back by a fraction of a minute.
_EPS = 1e-6


class PairLegArrays:
    """
    Pre-extracted numpy arrays for the legs between two stops.

    Enables vectorized feasibility filtering without touching the
    FlightLeg objects until an edge is actually created.
    """

    __slots__ = ("legs", "dep_time", "arr_time", "price", "n")

    def __init__(self, legs: Sequence[FlightLeg]) -> None:
        self.legs: Tuple[FlightLeg, ...] = tuple(legs)
        self.n = len(self.legs)
        self.dep_time = np.array([leg.departure_minutes for leg in self.legs], dtype=np.float64)
        self.arr_time = np.array([leg.arrival_minutes for leg in self.legs], dtype=np.float64)
        self.price = np.array([leg.price for leg in self.legs], dtype=np.float64)

    def get_feasible_indices(
        self,
        dep_min: float,
        dep_max: float,
        arr_min: float,
        arr_max: float,
    ) -> np.ndarray:
        """Indices of legs departing in [dep_min, dep_max] and arriving in [arr_min, arr_max]."""
        if self.n == 0:
            return np.array([], dtype=np.intp)
        mask = (
            (self.dep_time >= dep_min)
            & (self.dep_time <= dep_max)
            & (self.arr_time >= arr_min)
            & (self.arr_time <= arr_max)
        )
        return np.nonzero(mask)[0]


class RouteGraphBuilder:
    """
    Builds the layered route graph for one search.

    Layer k holds the nodes reached after k legs. Edges from a node at
    stop i go to the stops allowed at the next position: the anchored
    stop when the position is fixed, otherwise any unvisited free stop.

    An edge exists iff the leg:
    - departs inside the origin window (first leg), or between
      arrival + min_layover and arrival + max_layover (later legs);
    - arrives inside the destination stop's window;
    - keeps arrival - first departure within max_trip_duration for the
      latest-starting path into the source node.

    The builder never performs I/O: it reads the repository's cache.
    """

    def build(
        self,
        trip: TripRequest,
        repository: LegRepository,
    ) -> Union[RouteGraph, NoFeasibleGraph]:
        """
        Build the graph, or report structural infeasibility.

        Args:
            trip: Validated trip request.
            repository: Leg Repository already warmed by the planner.

        Returns:
            RouteGraph pruned to nodes on some origin-to-terminal path,
            or NoFeasibleGraph if no edge leaves the origin or no
            terminal node is reachable.
        """
        start_time = time.perf_counter()
        n = trip.num_stops
        pair_arrays = self._collect_pair_arrays(trip, repository)

        windows = [
            (
                day_start_minutes(stop.earliest),
                day_start_minutes(stop.latest) + MINUTES_PER_DAY - _EPS,
            )
            for stop in trip.stops
        ]
        min_layover = trip.min_layover.total_seconds() / 60
        max_layover = (
            trip.max_layover.total_seconds() / 60 if trip.max_layover is not None else None
        )
        budget = (
            trip.max_trip_duration.total_seconds() / 60
            if trip.max_trip_duration is not None
            else None
        )

        source = RouteNode(
            stop_index=0,
            location=trip.origin.location,
            time=windows[0][0],
            mask=1,
            layer=0,
        )
        layers: List[List[RouteNode]] = [[source]]

        for position in range(1, n):
            nodes: Dict[Tuple[int, int, float], RouteNode] = {}
            for node in layers[-1]:
                for j in trip.candidates_at(position, node.mask):
                    arrays = pair_arrays.get((node.stop_index, j))
                    if arrays is None:
                        continue
                    self._expand(
                        node,
                        j,
                        trip.stops[j].location,
                        arrays,
                        position,
                        windows,
                        min_layover,
                        max_layover,
                        budget,
                        nodes,
                    )
            if not nodes:
                break
            layers.append(sorted(nodes.values(), key=lambda nd: nd.identity))

        if not source.out_edges:
            logger.info("No feasible graph: no legs leave %s in its window", source.location)
            return NoFeasibleGraph(
                reason=f"No legs depart {source.location} within its date window",
                deepest_layer=0,
                last_location=source.location,
                visited_locations=(source.location,),
            )

        if len(layers) < n:
            deepest = layers[-1][0]
            blocked = len(layers)
            logger.info(
                "No feasible graph: progress stops after %d of %d legs",
                blocked - 1,
                n - 1,
            )
            partial_legs = self._any_path_to(deepest)
            return NoFeasibleGraph(
                reason=(
                    f"No leg reaches stop position {blocked} within its date window "
                    f"and connection limits"
                ),
                deepest_layer=blocked - 1,
                last_location=deepest.location,
                visited_locations=self._locations_along(source, partial_legs),
                partial_legs=partial_legs,
            )

        terminals = list(layers[n - 1])
        layers = self._prune_dead_ends(layers)

        graph = RouteGraph(
            source=source,
            layers=layers,
            terminals=terminals,
            num_stops=n,
            final_mask=trip.full_mask,
            max_layover_minutes=max_layover,
            max_trip_minutes=budget,
        )

        logger.debug(
            "Route graph built in %.3fms: %d nodes, %d edges, %d terminals",
            (time.perf_counter() - start_time) * 1000,
            graph.node_count,
            graph.edge_count,
            len(terminals),
        )
        return graph

    def _collect_pair_arrays(
        self,
        trip: TripRequest,
        repository: LegRepository,
    ) -> Dict[Tuple[int, int], PairLegArrays]:
        """
        Snapshot cached legs for every adjacent stop pair.

        Reads every cached departure day that could still reach the
        target's window, however long the leg; arrival windows are
        applied per edge in _expand.
        """
        pair_arrays: Dict[Tuple[int, int], PairLegArrays] = {}
        for i, j in adjacent_pairs(trip):
            date_range = feasible_departure_range(trip, i, j)
            if date_range is None:
                continue
            legs = repository.cached_legs(
                trip.stops[i].location, trip.stops[j].location, date_range
            )
            if legs:
                pair_arrays[(i, j)] = PairLegArrays(legs)
        return pair_arrays

    def _expand(
        self,
        node: RouteNode,
        target_index: int,
        target_location: str,
        arrays: PairLegArrays,
        position: int,
        windows: List[Tuple[float, float]],
        min_layover: float,
        max_layover: Optional[float],
        budget: Optional[float],
        nodes: Dict[Tuple[int, int, float], RouteNode],
    ) -> None:
        """Create the edges (and target nodes) out of one node toward one stop."""
        is_origin = node.layer == 0
        if is_origin:
            dep_min, dep_max = windows[0]
        else:
            dep_min = node.time + min_layover
            dep_max = node.time + max_layover if max_layover is not None else np.inf
        arr_min, arr_max = windows[target_index]

        feasible_idx = arrays.get_feasible_indices(dep_min, dep_max, arr_min, arr_max)
        target_mask = node.mask | (1 << target_index)

        for idx in feasible_idx:
            dep_time = float(arrays.dep_time[idx])
            arr_time = float(arrays.arr_time[idx])
            start = dep_time if is_origin else node.latest_start

            if budget is not None and arr_time - start > budget + _EPS:
                continue

            key = (target_index, target_mask, arr_time)
            target = nodes.get(key)
            if target is None:
                target = RouteNode(
                    stop_index=target_index,
                    location=target_location,
                    time=arr_time,
                    mask=target_mask,
                    layer=position,
                    latest_start=start,
                )
                nodes[key] = target
            elif start > target.latest_start:
                target.latest_start = start

            edge = RouteEdge(
                source=node,
                target=target,
                leg=arrays.legs[idx],
                layover_minutes=None if is_origin else dep_time - node.time,
            )
            node.out_edges.append(edge)
            target.in_edges.append(edge)

    def _prune_dead_ends(self, layers: List[List[RouteNode]]) -> List[List[RouteNode]]:
        """Drop nodes and edges that cannot reach the final layer."""
        alive = set(layers[-1])
        for layer in reversed(layers[:-1]):
            for node in layer:
                node.out_edges = [e for e in node.out_edges if e.target in alive]
                if node.out_edges:
                    alive.add(node)

        pruned: List[List[RouteNode]] = []
        for layer in layers:
            kept = [node for node in layer if node in alive]
            for node in kept:
                node.in_edges = [e for e in node.in_edges if e.source in alive]
            pruned.append(kept)
        return pruned

    @staticmethod
    def _any_path_to(node: RouteNode) -> Tuple[FlightLeg, ...]:
        """One leg path from the source to ``node`` (first incoming edges)."""
        legs: List[FlightLeg] = []
        current = node
        while current.in_edges:
            edge = current.in_edges[0]
            legs.append(edge.leg)
            current = edge.source
        legs.reverse()
        return tuple(legs)

    @staticmethod
    def _locations_along(source: RouteNode, legs: Sequence[FlightLeg]) -> Tuple[str, ...]:
        return (source.location,) + tuple(leg.destination for leg in legs)
