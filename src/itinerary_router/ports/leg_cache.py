"""
Leg Cache port interface.

Defines the session cache protocol behind the Leg Repository.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Protocol, Sequence, Tuple, runtime_checkable

from itinerary_router.schemas.leg import FlightLeg, LegKey


@runtime_checkable
class LegCache(Protocol):
    """
    Protocol for per-session leg caches.

    Entries are only ever added, never partially written: a key is
    either absent or maps to its complete tuple of legs (possibly empty,
    meaning "no legs"). All implementations must be thread-safe.
    """

    def get(self, key: LegKey) -> Optional[Tuple[FlightLeg, ...]]:
        """
        Get cached legs for a key.

        Returns:
            Tuple of legs (empty for a cached miss) or None if the key
            has never been stored.
        """
        ...

    def put_many(self, entries: Dict[LegKey, Sequence[FlightLeg]]) -> None:
        """
        Store several complete entries at once.

        Legs for a key already present are merged into it.
        """
        ...

    def contains(self, key: LegKey) -> bool:
        ...

    def keys(self) -> Iterable[LegKey]:
        ...

    def clear(self) -> None:
        """Drop every entry (ends the session)."""
        ...
