"""
Tests for the Route Graph Builder.

Tests cover:
- PairLegArrays vectorized feasibility
- Layer structure and subset-bitmask node identity
- Date-window, layover and trip-budget edge filtering
- Dead-end pruning
- NoFeasibleGraph reporting
"""

from datetime import timedelta

import numpy as np

from itinerary_router.adapters.repositories.leg_repository import LegRepository
from itinerary_router.adapters.pricing.in_memory_source import InMemoryPricingSource
from itinerary_router.schemas.graph import NoFeasibleGraph, RouteGraph
from itinerary_router.schemas.trip import Stop, TripRequest
from itinerary_router.services.graph_builder import PairLegArrays, RouteGraphBuilder


def build(trip, legs):
    """Build a graph from a repository pre-warmed with ``legs``."""
    repo = LegRepository(InMemoryPricingSource(legs))
    repo.ingest(legs)
    return RouteGraphBuilder().build(trip, repo)


def graph_legs(graph: RouteGraph):
    return {edge.leg for layer in graph.layers for node in layer for edge in node.out_edges}


# =============================================================================
# PAIR LEG ARRAYS TESTS
# =============================================================================


class TestPairLegArrays:
    """Tests for PairLegArrays."""

    def test_feasible_indices(self, leg):
        legs = [
            leg("WAW", "BCN", 1, dep="06:00"),
            leg("WAW", "BCN", 1, dep="10:00"),
            leg("WAW", "BCN", 1, dep="14:00"),
        ]
        arrays = PairLegArrays(legs)
        d0 = legs[0].departure_minutes

        idx = arrays.get_feasible_indices(d0 + 60, d0 + 300, -np.inf, np.inf)

        assert list(idx) == [1]

    def test_empty(self):
        arrays = PairLegArrays([])
        assert len(arrays.get_feasible_indices(0, 1, 0, 1)) == 0


# =============================================================================
# GRAPH STRUCTURE TESTS
# =============================================================================


class TestRouteGraphBuilder:
    """Tests for RouteGraphBuilder.build."""

    def test_layers_and_terminals(self, grand_tour_trip, grand_tour_legs):
        graph = build(grand_tour_trip, grand_tour_legs)

        assert isinstance(graph, RouteGraph)
        assert len(graph.layers) == 4
        assert graph.layers[0] == [graph.source]
        assert graph.terminals
        assert all(node.mask == 0b1111 for node in graph.terminals)
        assert all(node.stop_index == 3 for node in graph.terminals)

    def test_window_violations_have_no_edges(self, grand_tour_trip, grand_tour_legs):
        """Legs landing outside their stop's window never become edges."""
        graph = build(grand_tour_trip, grand_tour_legs)
        prices = sorted(leg.price for leg in graph_legs(graph))

        # 250 JFK-CDG lands on day 1, 100 JFK-FCO lands in Rome on day 2
        assert 250 not in prices
        assert 100 not in prices
        assert prices == [120, 200, 300, 400, 450, 520]

    def test_dead_ends_pruned(self, grand_tour_trip, grand_tour_legs):
        """Nothing leaves Rome for Paris in time, so Rome-first paths vanish."""
        graph = build(grand_tour_trip, grand_tour_legs)
        for layer in graph.layers[:-1]:
            for node in layer:
                assert node.out_edges
        assert all(node.location == "CDG" for node in graph.layers[1])

    def test_cached_leg_spanning_two_days_is_read(self, leg, trip_day):
        """A leg leaving two days before the target window opens still connects."""
        trip = TripRequest.create(
            [
                Stop.on("WAW", trip_day(1)),
                Stop.between("BCN", trip_day(1), trip_day(3)),
                Stop.on("MAD", trip_day(4)),
            ]
        )
        long_haul = leg("BCN", "MAD", 2, dep="23:00", hours=26)

        graph = build(trip, [leg("WAW", "BCN", 1), long_haul])

        assert isinstance(graph, RouteGraph)
        assert long_haul in graph_legs(graph)

    def test_min_layover_enforced(self, three_stop_trip, leg):
        legs = [
            leg("WAW", "BCN", 1, dep="08:00", hours=2),  # arrives 10:00
            leg("BCN", "MAD", 2, dep="08:00", hours=2),
            leg("BCN", "MAD", 2, dep="11:00", hours=2),
        ]
        trip = TripRequest.create(three_stop_trip.stops, min_layover=timedelta(hours=23))

        graph = build(trip, legs)

        second_legs = {e.leg for node in graph.layers[1] for e in node.out_edges}
        assert second_legs == {legs[2]}

    def test_max_layover_enforced(self, three_stop_trip, leg):
        legs = [
            leg("WAW", "BCN", 1, dep="08:00", hours=2),
            leg("BCN", "MAD", 2, dep="08:00", hours=2),
            leg("BCN", "MAD", 2, dep="11:00", hours=2),
        ]
        trip = TripRequest.create(three_stop_trip.stops, max_layover=timedelta(hours=22))

        graph = build(trip, legs)

        second_legs = {e.leg for node in graph.layers[1] for e in node.out_edges}
        assert second_legs == {legs[1]}
        assert graph.max_layover_minutes == 22 * 60

    def test_trip_budget_enforced(self, three_stop_trip, four_itinerary_legs):
        """With a 23h budget only the 12:00 departure can make it."""
        trip = TripRequest.create(three_stop_trip.stops, max_trip_duration=timedelta(hours=23))

        graph = build(trip, four_itinerary_legs)

        first_legs = {e.leg for e in graph.source.out_edges}
        assert first_legs == {four_itinerary_legs[1]}

    def test_shared_arrival_merges_nodes(self, three_stop_trip, four_itinerary_legs):
        """Both BCN arrivals can take the 08:00 BCN-MAD leg into one node."""
        graph = build(three_stop_trip, four_itinerary_legs)

        terminal_times = sorted(node.time for node in graph.terminals)
        assert len(terminal_times) == 2
        busiest = max(graph.terminals, key=lambda n: len(n.in_edges))
        assert len(busiest.in_edges) == 2

    def test_cheapest_out_price(self, three_stop_trip, four_itinerary_legs):
        graph = build(three_stop_trip, four_itinerary_legs)
        assert graph.cheapest_out_price() == {0: 200.0, 1: 300.0}


# =============================================================================
# NO FEASIBLE GRAPH TESTS
# =============================================================================


class TestNoFeasibleGraph:
    """Tests for structural infeasibility."""

    def test_nothing_leaves_origin(self, three_stop_trip, leg):
        result = build(three_stop_trip, [leg("BCN", "MAD", 2)])

        assert isinstance(result, NoFeasibleGraph)
        assert result.deepest_layer == 0
        assert result.last_location == "WAW"

    def test_missing_middle_leg(self, three_stop_trip, leg):
        first = leg("WAW", "BCN", 1, price=80)
        result = build(three_stop_trip, [first])

        assert isinstance(result, NoFeasibleGraph)
        assert result.deepest_layer == 1
        assert result.last_location == "BCN"
        assert result.visited_locations == ("WAW", "BCN")
        assert result.partial_legs == (first,)

    def test_free_stop_window_unreachable(self, leg, trip_day):
        trip = TripRequest.create(
            [
                Stop.on("WAW", trip_day(1)),
                Stop.between("BCN", trip_day(5), trip_day(6)),
                Stop.on("MAD", trip_day(7)),
            ]
        )
        result = build(trip, [leg("WAW", "BCN", 1), leg("BCN", "MAD", 7)])
        assert isinstance(result, NoFeasibleGraph)
