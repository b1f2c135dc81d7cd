"""
End-to-end tests for the OptimizeItinerary facade.

Tests cover:
- Construction from legs, CSV and a shared repository
- Synchronous and async optimization
- Cache preloading and clearing
- Date-window enforcement on every returned itinerary
- Legs spanning more than one calendar day
- Source faults and per-call fetch settings
"""

from unittest.mock import AsyncMock

import pytest

from itinerary_router import (
    FetchFailed,
    Infeasible,
    InvalidTripRequestError,
    OptimizeItinerary,
    OptimizerConfig,
    Stop,
    TripRequest,
)
from itinerary_router.adapters.pricing.in_memory_source import InMemoryPricingSource
from itinerary_router.schemas.leg import legs_to_dataframe


class TestOptimizeItinerary:
    """Tests for the public facade."""

    def test_requires_a_source(self):
        with pytest.raises(ValueError):
            OptimizeItinerary()

    def test_optimize_sync(self, grand_tour_trip, grand_tour_legs):
        optimizer = OptimizeItinerary.from_legs(grand_tour_legs)

        result = optimizer.optimize_sync(grand_tour_trip)

        assert result.is_feasible
        assert result.best.total_price == 820.0
        assert result.best.route == ["JFK", "CDG", "FCO", "JFK"]

    @pytest.mark.anyio
    async def test_optimize_async_top_k(self, three_stop_trip, four_itinerary_legs):
        optimizer = OptimizeItinerary.from_legs(four_itinerary_legs, OptimizerConfig(top_k=3))

        result = await optimizer.optimize(three_stop_trip)

        assert [i.total_price for i in result.itineraries] == [500.0, 550.0, 550.0]

    def test_from_csv(self, tmp_path, grand_tour_trip, grand_tour_legs):
        path = tmp_path / "quotes.csv"
        legs_to_dataframe(grand_tour_legs).to_csv(path, index=False)

        result = OptimizeItinerary.from_csv(path).optimize_sync(grand_tour_trip)

        assert result.best.total_price == 820.0

    def test_preload_avoids_fetches(self, grand_tour_trip, grand_tour_legs):
        source = InMemoryPricingSource(grand_tour_legs)
        optimizer = OptimizeItinerary(pricing_source=source)
        optimizer.preload_dataframe(legs_to_dataframe(grand_tour_legs))

        result = optimizer.optimize_sync(grand_tour_trip)

        assert result.best.total_price == 820.0
        assert source.call_count == 0

    def test_idempotent_across_calls(self, grand_tour_trip, grand_tour_legs):
        optimizer = OptimizeItinerary.from_legs(grand_tour_legs, OptimizerConfig(top_k=3))
        first = optimizer.optimize_sync(grand_tour_trip)
        second = optimizer.optimize_sync(grand_tour_trip)
        assert first.itineraries == second.itineraries

    def test_clear_cache_refetches(self, grand_tour_trip, grand_tour_legs):
        source = InMemoryPricingSource(grand_tour_legs)
        with OptimizeItinerary(pricing_source=source) as optimizer:
            optimizer.optimize_sync(grand_tour_trip)
            calls = source.call_count
            optimizer.clear_cache()
            optimizer.optimize_sync(grand_tour_trip)
            assert source.call_count == 2 * calls

    def test_plan_lists_queries(self, grand_tour_trip, grand_tour_legs):
        optimizer = OptimizeItinerary.from_legs(grand_tour_legs)
        routes = {(q.origin, q.destination) for q in optimizer.plan(grand_tour_trip)}
        assert routes == {
            ("CDG", "FCO"),
            ("CDG", "JFK"),
            ("FCO", "CDG"),
            ("FCO", "JFK"),
            ("JFK", "CDG"),
            ("JFK", "FCO"),
        }

    def test_every_leg_inside_its_window(self, grand_tour_trip, grand_tour_legs):
        """Arrival at each stop (and the first departure) lies in its window."""
        optimizer = OptimizeItinerary.from_legs(grand_tour_legs, OptimizerConfig(top_k=5))
        result = optimizer.optimize_sync(grand_tour_trip)
        windows = {stop.location: stop for stop in grand_tour_trip.stops[1:-1]}
        final = grand_tour_trip.destination

        for itinerary in result.itineraries:
            first = itinerary.legs[0]
            assert grand_tour_trip.origin.window.contains(first.departure.date())
            for flight in itinerary.legs[:-1]:
                assert windows[flight.destination].window.contains(flight.arrival.date())
            assert final.window.contains(itinerary.legs[-1].arrival.date())

    def test_invalid_trip_rejected_before_search(self, trip_day):
        with pytest.raises(InvalidTripRequestError):
            TripRequest.create([Stop("WAW", trip_day(3), trip_day(1))])

    def test_leg_spanning_two_calendar_days(self, leg, trip_day):
        """A 26h leg departing late on day 1 lands on day 3."""
        overnight = leg("SYD", "JFK", 1, dep="23:00", hours=26, price=1400)
        trip = TripRequest.create([Stop.on("SYD", trip_day(1)), Stop.on("JFK", trip_day(3))])

        result = OptimizeItinerary.from_legs([overnight]).optimize_sync(trip)

        assert result.is_feasible
        assert result.best.legs == (overnight,)

    def test_leg_span_limit_is_configurable(self, leg, trip_day):
        overnight = leg("SYD", "JFK", 1, dep="23:00", hours=26, price=1400)
        trip = TripRequest.create([Stop.on("SYD", trip_day(1)), Stop.on("JFK", trip_day(3))])
        optimizer = OptimizeItinerary.from_legs([overnight], OptimizerConfig(max_leg_days=1))

        assert optimizer.plan(trip) == []
        assert not optimizer.optimize_sync(trip).is_feasible

    def test_preloaded_long_leg_is_read(self, leg, trip_day):
        """Cached legs are read over the full departure range."""
        overnight = leg("SYD", "JFK", 1, dep="23:00", hours=26, price=1400)
        trip = TripRequest.create([Stop.on("SYD", trip_day(1)), Stop.on("JFK", trip_day(3))])
        optimizer = OptimizeItinerary.from_legs([], OptimizerConfig(max_leg_days=0))
        optimizer.preload([overnight])

        result = optimizer.optimize_sync(trip)

        assert result.best.total_price == 1400.0

    def test_source_connection_error_gives_infeasible(self, three_stop_trip, leg):
        """One broken route does not abort the other fetches."""
        inner = InMemoryPricingSource([leg("WAW", "BCN", 1)])

        async def fetch_legs(origin, destination, date_range):
            if (origin, destination) == ("BCN", "MAD"):
                raise ConnectionError("socket reset")
            return await inner.fetch_legs(origin, destination, date_range)

        source = AsyncMock()
        source.name = "Broken Source"
        source.fetch_legs.side_effect = fetch_legs

        result = OptimizeItinerary(pricing_source=source).optimize_sync(three_stop_trip)

        assert isinstance(result, Infeasible)
        assert result.last_partial.location == "BCN"

    def test_per_call_fetch_settings_apply(self, three_stop_trip):
        source = AsyncMock()
        source.name = "Failing Source"
        source.fetch_legs.side_effect = FetchFailed("WAW", "BCN", "HTTP 503")
        optimizer = OptimizeItinerary(pricing_source=source)

        optimizer.optimize_sync(
            three_stop_trip, config=OptimizerConfig(max_retries=3, backoff_seconds=0.0)
        )

        planned = len(optimizer.plan(three_stop_trip))
        assert source.fetch_legs.call_count == 4 * planned
