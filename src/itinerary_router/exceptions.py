"""
Custom exceptions for the itinerary router.

Provides a hierarchy of exceptions for clear error handling of
trip validation, leg fetching and optimization control flow.

Structural infeasibility (NoFeasibleGraph) and search infeasibility
(Infeasible) are NOT exceptions; they are result types returned to
the caller (see itinerary_router.schemas).
"""

from typing import Optional


class ItineraryRouterError(Exception):
    """Base exception for all itinerary router errors."""

    pass


class ValidationError(ItineraryRouterError):
    """Base exception for input validation errors."""

    pass


class InvalidTripRequestError(ValidationError):
    """Raised when a TripRequest violates its construction contract."""

    def __init__(self, message: str, stop_index: Optional[int] = None) -> None:
        self.stop_index = stop_index
        if stop_index is not None:
            message = f"Stop {stop_index}: {message}"
        super().__init__(message)


class DataUnavailable(ItineraryRouterError):
    """
    Raised when no legs can be returned for a pair/date range.

    This is a normal outcome (e.g. no route exists). Callers building
    the route graph treat it as the absence of an edge.
    """

    def __init__(self, origin: str, destination: str, detail: str = "") -> None:
        self.origin = origin
        self.destination = destination
        message = f"No legs available for {origin}->{destination}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class FetchFailed(ItineraryRouterError):
    """Raised by a pricing source when an external lookup fails."""

    def __init__(self, origin: str, destination: str, reason: str = "") -> None:
        self.origin = origin
        self.destination = destination
        self.reason = reason
        message = f"Fetch failed for {origin}->{destination}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class FetchTimeout(FetchFailed):
    """Raised when an external lookup exceeds its per-fetch timeout."""

    def __init__(self, origin: str, destination: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            origin, destination, f"timed out after {timeout_seconds:.1f}s"
        )


class OptimizationCancelled(ItineraryRouterError):
    """Raised when a caller cancels an optimization in progress."""

    def __init__(self, stage: str = "optimization") -> None:
        self.stage = stage
        super().__init__(f"Cancelled during {stage}")
