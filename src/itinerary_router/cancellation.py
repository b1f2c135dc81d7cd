"""
Cooperative cancellation for optimization calls.

The token is checked between query dispatches and at coarse intervals
in the optimizer's relaxation loop. It is thread-safe so a search
running in a worker thread can be cancelled from the event loop.
"""

import threading

from itinerary_router.exceptions import OptimizationCancelled


class CancellationToken:
    """Signal shared between the caller and a running optimization."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "optimization") -> None:
        """
        Raise if cancellation was requested.

        Raises:
            OptimizationCancelled: If cancel() has been called.
        """
        if self._event.is_set():
            raise OptimizationCancelled(stage)


class _NeverCancelled(CancellationToken):
    """Token used when the caller supplies none."""

    def cancel(self) -> None:
        pass


NEVER_CANCELLED = _NeverCancelled()
