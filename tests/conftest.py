"""
Shared fixtures for itinerary router tests.

Days are counted from DAY1 (2026-06-01). Legs are built with the
`leg` fixture: leg("JFK", "CDG", day=1, dep="18:00", hours=7, price=300).
"""

from datetime import date, datetime, timedelta
from typing import Callable, List

import pytest

from itinerary_router.schemas.leg import FlightLeg
from itinerary_router.schemas.trip import Stop, TripRequest

DAY1 = date(2026, 6, 1)


def day(n: int) -> date:
    """Calendar date of trip day n (day 1 == DAY1)."""
    return DAY1 + timedelta(days=n - 1)


def make_leg(
    origin: str,
    destination: str,
    day_number: int,
    dep: str = "08:00",
    hours: float = 2.0,
    price: float = 100.0,
    carrier: str = "XX",
) -> FlightLeg:
    hour, minute = (int(part) for part in dep.split(":"))
    d = day(day_number)
    departure = datetime(d.year, d.month, d.day, hour, minute)
    return FlightLeg(
        origin=origin,
        destination=destination,
        departure=departure,
        arrival=departure + timedelta(hours=hours),
        price=price,
        carrier=carrier,
    )


@pytest.fixture
def anyio_backend():
    """Use only asyncio backend (trio not installed)."""
    return "asyncio"


@pytest.fixture
def leg() -> Callable[..., FlightLeg]:
    """Factory for FlightLegs on trip days."""
    return make_leg


@pytest.fixture
def trip_day() -> Callable[[int], date]:
    return day


# =============================================================================
# NYC / PARIS / ROME SCENARIO
# =============================================================================


@pytest.fixture
def grand_tour_trip() -> TripRequest:
    """NYC (day 1) -> Paris/Rome in any order -> NYC (day 7)."""
    return TripRequest.create(
        [
            Stop.on("JFK", day(1)),
            Stop.between("CDG", day(2), day(4)),
            Stop.between("FCO", day(3), day(6)),
            Stop.on("JFK", day(7)),
        ]
    )


@pytest.fixture
def grand_tour_legs() -> List[FlightLeg]:
    """
    Cheapest feasible tour is JFK-CDG-FCO-JFK for 300 + 120 + 400 = 820.

    Cheaper decoys break a window: the 250 JFK-CDG arrives on day 1 and
    the 100 JFK-FCO arrives in Rome on day 2.
    """
    return [
        # JFK -> CDG
        make_leg("JFK", "CDG", 1, dep="18:00", hours=7, price=300, carrier="AF"),
        make_leg("JFK", "CDG", 1, dep="20:00", hours=7, price=450, carrier="DL"),
        make_leg("JFK", "CDG", 1, dep="09:00", hours=7, price=250, carrier="UA"),
        # JFK -> FCO
        make_leg("JFK", "FCO", 1, dep="17:00", hours=9, price=100, carrier="AZ"),
        # CDG -> FCO
        make_leg("CDG", "FCO", 3, dep="10:00", hours=2, price=120, carrier="AF"),
        make_leg("CDG", "FCO", 4, dep="09:00", hours=2, price=200, carrier="AZ"),
        # FCO -> CDG
        make_leg("FCO", "CDG", 3, dep="07:00", hours=2, price=90, carrier="AZ"),
        # FCO -> JFK
        make_leg("FCO", "JFK", 7, dep="09:00", hours=4, price=400, carrier="AZ"),
        make_leg("FCO", "JFK", 7, dep="12:00", hours=4, price=520, carrier="DL"),
        # CDG -> JFK
        make_leg("CDG", "JFK", 7, dep="10:00", hours=3, price=200, carrier="AF"),
    ]


# =============================================================================
# TOP-K SCENARIO
# =============================================================================


@pytest.fixture
def three_stop_trip() -> TripRequest:
    """WAW (day 1) -> BCN (day 1-2) -> MAD (day 2), fixed order."""
    return TripRequest.create(
        [
            Stop.on("WAW", day(1)),
            Stop("BCN", day(1), day(2)),
            Stop.on("MAD", day(2)),
        ]
    )


@pytest.fixture
def four_itinerary_legs() -> List[FlightLeg]:
    """
    Four itineraries priced 500, 550, 550 and 600.

    The two 550 options differ in duration: WAW 12:00 -> MAD next day
    10:00 (22h) beats WAW 08:00 -> MAD next day 12:00 (28h).
    """
    return [
        make_leg("WAW", "BCN", 1, dep="08:00", hours=2, price=200, carrier="LO"),
        make_leg("WAW", "BCN", 1, dep="12:00", hours=2, price=250, carrier="VY"),
        make_leg("BCN", "MAD", 2, dep="08:00", hours=2, price=300, carrier="IB"),
        make_leg("BCN", "MAD", 2, dep="09:00", hours=3, price=350, carrier="UX"),
    ]
