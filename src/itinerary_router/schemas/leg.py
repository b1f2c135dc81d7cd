"""
Flight leg schemas.

Defines the immutable FlightLeg record, the day-granularity DateRange
used to key leg lookups, and the Pandera contract for batches of legs
crossing the pricing-source boundary as DataFrames.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, List, NamedTuple, Optional, Tuple

import pandas as pd
import pandera as pa
from pandera.typing import DataFrame, Series

# Reference epoch for time calculations.
# A fixed epoch keeps minute arithmetic consistent across sessions.
EPOCH_REFERENCE = datetime(2024, 1, 1, 0, 0, 0)

MINUTES_PER_DAY = 24 * 60


def datetime_to_epoch_minutes(dt: datetime) -> float:
    """Convert a naive datetime to minutes since EPOCH_REFERENCE."""
    return (dt - EPOCH_REFERENCE).total_seconds() / 60


def epoch_minutes_to_datetime(minutes: float) -> datetime:
    """Convert minutes since EPOCH_REFERENCE back to a datetime."""
    return EPOCH_REFERENCE + timedelta(minutes=minutes)


def day_start_minutes(day: date) -> float:
    """Epoch minutes of midnight at the start of ``day``."""
    return datetime_to_epoch_minutes(datetime(day.year, day.month, day.day))


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive range of calendar dates.

    Lookups against the pricing source are bucketed to day granularity,
    so every range is expressed in whole dates.

    Attributes:
        start: First date in the range (inclusive).
        end: Last date in the range (inclusive).
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"DateRange start ({self.start}) must be <= end ({self.end})"
            )

    @classmethod
    def fixed(cls, day: date) -> "DateRange":
        """Range covering exactly one day."""
        return cls(start=day, end=day)

    @classmethod
    def tolerance(cls, day: date, days: int) -> "DateRange":
        """Range of ``day`` plus or minus ``days`` days."""
        if days < 0:
            raise ValueError(f"tolerance must be >= 0, got {days}")
        delta = timedelta(days=days)
        return cls(start=day - delta, end=day + delta)

    def days(self) -> Iterator[date]:
        """Iterate every date in the range, in order."""
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def intersect(self, other: "DateRange") -> Optional["DateRange"]:
        """Overlap of two ranges, or None if they are disjoint."""
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start > end:
            return None
        return DateRange(start=start, end=end)

    def overlaps_or_touches(self, other: "DateRange") -> bool:
        """True if the ranges overlap or are adjacent days."""
        return (
            self.start <= other.end + timedelta(days=1)
            and other.start <= self.end + timedelta(days=1)
        )

    def union_hull(self, other: "DateRange") -> "DateRange":
        return DateRange(start=min(self.start, other.start), end=max(self.end, other.end))

    def __len__(self) -> int:
        return (self.end - self.start).days + 1

    def __str__(self) -> str:
        if self.start == self.end:
            return self.start.isoformat()
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


class LegKey(NamedTuple):
    """Cache key for legs: one (origin, destination) pair on one day."""

    origin: str
    destination: str
    day: date


@dataclass(frozen=True)
class FlightLeg:
    """
    Immutable representation of one bookable flight segment.

    Created by the external pricing source and never mutated afterwards.
    The Leg Repository owns legs for the lifetime of a session; graph
    edges and itineraries only hold references.

    Attributes:
        origin: Departure airport IATA code.
        destination: Arrival airport IATA code.
        departure: Departure time (naive, airport-agnostic clock).
        arrival: Arrival time.
        price: Quoted price in the session currency.
        carrier: Operating carrier code.
        fare_class: Fare class / booking code.
    """

    origin: str
    destination: str
    departure: datetime
    arrival: datetime
    price: float
    carrier: str = ""
    fare_class: str = ""

    def __post_init__(self) -> None:
        if not self.origin or not self.destination:
            raise ValueError("origin and destination cannot be empty")
        if self.origin == self.destination:
            raise ValueError(f"origin and destination are both {self.origin}")
        if self.departure >= self.arrival:
            raise ValueError(
                f"departure ({self.departure}) must be before arrival ({self.arrival})"
            )
        if self.price < 0:
            raise ValueError(f"price must be >= 0, got {self.price}")

    @property
    def departure_minutes(self) -> float:
        return datetime_to_epoch_minutes(self.departure)

    @property
    def arrival_minutes(self) -> float:
        return datetime_to_epoch_minutes(self.arrival)

    @property
    def duration(self) -> timedelta:
        """Time in the air."""
        return self.arrival - self.departure

    @property
    def departure_day(self) -> date:
        return self.departure.date()

    @property
    def key(self) -> LegKey:
        """Cache bucket this leg belongs to."""
        return LegKey(self.origin, self.destination, self.departure.date())

    @property
    def sort_key(self) -> Tuple:
        """
        Deterministic lexicographic ordering of legs.

        Used as the final tie-break between otherwise equal itineraries.
        """
        return (
            self.departure,
            self.arrival,
            self.origin,
            self.destination,
            self.carrier,
            self.fare_class,
            self.price,
        )


# =============================================================================
# DATAFRAME CONTRACT
# =============================================================================


class LegSchema(pa.DataFrameModel):
    """
    Batch contract for flight legs.

    Pricing sources that produce tabular data (CSV exports, cached
    snapshots) validate here, once, at the boundary. Extra columns are
    allowed and ignored.
    """

    origin: Series[str] = pa.Field(
        nullable=False,
        str_length={"min_value": 2, "max_value": 4},
        description="Departure airport IATA code",
    )
    destination: Series[str] = pa.Field(
        nullable=False,
        str_length={"min_value": 2, "max_value": 4},
        description="Arrival airport IATA code",
    )
    departure: Series[pd.Timestamp] = pa.Field(
        nullable=False,
        description="Departure datetime",
    )
    arrival: Series[pd.Timestamp] = pa.Field(
        nullable=False,
        description="Arrival datetime",
    )
    price: Series[float] = pa.Field(
        ge=0,
        description="Quoted leg price",
    )
    carrier: Optional[Series[str]] = pa.Field(
        nullable=True,
        description="Operating carrier code",
    )
    fare_class: Optional[Series[str]] = pa.Field(
        nullable=True,
        description="Fare class / booking code",
    )

    class Config:
        strict = False
        coerce = True
        name = "LegSchema"
        description = "Flight legs as delivered by a pricing source"

    @pa.dataframe_check
    def departure_before_arrival(cls, df: pd.DataFrame) -> Series[bool]:
        """Every leg departs strictly before it arrives."""
        return df["departure"] < df["arrival"]

    @pa.dataframe_check
    def distinct_endpoints(cls, df: pd.DataFrame) -> Series[bool]:
        """A leg cannot depart and arrive at the same airport."""
        return df["origin"] != df["destination"]


LegDataFrame = DataFrame[LegSchema]

LEG_COLUMNS = ["origin", "destination", "departure", "arrival", "price", "carrier", "fare_class"]


def _optional_str(value) -> str:
    if value is None or pd.isna(value):
        return ""
    return str(value)


def legs_from_dataframe(df: pd.DataFrame) -> List[FlightLeg]:
    """
    Validate a DataFrame against LegSchema and convert it to FlightLegs.

    Raises:
        pandera.errors.SchemaError: If the data fails validation.
    """
    validated = LegSchema.validate(df)
    if validated.empty:
        return []

    has_carrier = "carrier" in validated.columns
    has_fare = "fare_class" in validated.columns

    legs: List[FlightLeg] = []
    for row in validated.itertuples(index=False):
        legs.append(
            FlightLeg(
                origin=str(row.origin),
                destination=str(row.destination),
                departure=pd.Timestamp(row.departure).to_pydatetime(),
                arrival=pd.Timestamp(row.arrival).to_pydatetime(),
                price=float(row.price),
                carrier=_optional_str(row.carrier) if has_carrier else "",
                fare_class=_optional_str(row.fare_class) if has_fare else "",
            )
        )
    return legs


def legs_to_dataframe(legs: Iterable[FlightLeg]) -> pd.DataFrame:
    """Convert FlightLegs to a LegSchema-shaped DataFrame."""
    records = [
        {
            "origin": leg.origin,
            "destination": leg.destination,
            "departure": leg.departure,
            "arrival": leg.arrival,
            "price": leg.price,
            "carrier": leg.carrier,
            "fare_class": leg.fare_class,
        }
        for leg in legs
    ]
    if not records:
        return pd.DataFrame(columns=LEG_COLUMNS)
    return pd.DataFrame.from_records(records, columns=LEG_COLUMNS)
