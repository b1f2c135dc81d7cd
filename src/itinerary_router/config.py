"""
Configuration for the itinerary optimizer.

Holds search, concurrency and fetch-retry settings in one immutable
object. Values can be loaded from ITINERARY_* environment variables
(a local .env file is honored).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from dotenv import load_dotenv

ENV_PREFIX = "ITINERARY_"


class SearchMode(Enum):
    """Which optimizer runs over the route graph."""

    EXACT = "exact"
    """Held-Karp dynamic program over (stop, visited subset, time) states."""

    BOUNDED = "bounded"
    """Branch and bound with a cheapest-outgoing-leg lower bound."""


@dataclass(frozen=True)
class FetchPolicy:
    """
    Timeout and retry settings for pricing-source fetches.

    Attributes:
        timeout_seconds: Per-fetch timeout (None = no timeout).
        max_retries: Retries of a failed fetch before it is treated as
            DataUnavailable.
        backoff_seconds: Delay before the first retry.
        backoff_multiplier: Exponential backoff multiplier for retries.
    """

    timeout_seconds: Optional[float] = None
    max_retries: int = 0
    backoff_seconds: float = 0.5
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class OptimizerConfig:
    """
    Immutable optimizer configuration.

    Attributes:
        top_k: Number of ranked itineraries to return.
        max_concurrent_fetches: Cap on in-flight pricing-source queries.
        search_mode: EXACT or BOUNDED.
        fetch_timeout_seconds: Per-fetch timeout (None = no timeout).
        max_retries: Retries of a failed fetch before it is treated as
            DataUnavailable.
        backoff_seconds: Delay before the first retry.
        backoff_multiplier: Exponential backoff multiplier for retries.
        time_bucket_minutes: Width of the optimizer's time buckets
            (0 = exact arrival times).
        cancel_check_interval: States relaxed between cancellation checks.
        exact_search_max_stops: Above this stop count EXACT falls back
            to branch and bound.
        max_leg_days: Calendar days a single leg may span; planned
            lookups start this many days before a stop's window opens.
    """

    top_k: int = 1
    max_concurrent_fetches: int = 4
    search_mode: SearchMode = SearchMode.EXACT
    fetch_timeout_seconds: Optional[float] = 10.0
    max_retries: int = 0
    backoff_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    time_bucket_minutes: int = 0
    cancel_check_interval: int = 1000
    exact_search_max_stops: int = 12
    max_leg_days: int = 2

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if isinstance(self.search_mode, str):
            object.__setattr__(self, "search_mode", SearchMode(self.search_mode.lower()))
        if self.top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {self.top_k}")
        if self.max_concurrent_fetches < 1:
            raise ValueError(
                f"max_concurrent_fetches must be >= 1, got {self.max_concurrent_fetches}"
            )
        if self.fetch_timeout_seconds is not None and self.fetch_timeout_seconds <= 0:
            raise ValueError(
                f"fetch_timeout_seconds must be > 0, got {self.fetch_timeout_seconds}"
            )
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.backoff_seconds < 0:
            raise ValueError(f"backoff_seconds must be >= 0, got {self.backoff_seconds}")
        if self.backoff_multiplier < 1:
            raise ValueError(
                f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}"
            )
        if self.time_bucket_minutes < 0:
            raise ValueError(
                f"time_bucket_minutes must be >= 0, got {self.time_bucket_minutes}"
            )
        if self.cancel_check_interval < 1:
            raise ValueError(
                f"cancel_check_interval must be >= 1, got {self.cancel_check_interval}"
            )
        if self.exact_search_max_stops < 2:
            raise ValueError(
                f"exact_search_max_stops must be >= 2, got {self.exact_search_max_stops}"
            )
        if self.max_leg_days < 0:
            raise ValueError(f"max_leg_days must be >= 0, got {self.max_leg_days}")

    @property
    def fetch_policy(self) -> FetchPolicy:
        """Fetch settings in the form the Leg Repository takes per lookup."""
        return FetchPolicy(
            timeout_seconds=self.fetch_timeout_seconds,
            max_retries=self.max_retries,
            backoff_seconds=self.backoff_seconds,
            backoff_multiplier=self.backoff_multiplier,
        )

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv: bool = True,
    ) -> "OptimizerConfig":
        """
        Build a config from ITINERARY_* environment variables.

        Unset variables keep their defaults. ITINERARY_FETCH_TIMEOUT_SECONDS
        set to "none" disables the timeout.

        Args:
            environ: Mapping to read instead of os.environ.
            dotenv: If True and environ is None, load a .env file first.

        Returns:
            Validated OptimizerConfig.
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        def _get(name: str) -> Optional[str]:
            value = environ.get(ENV_PREFIX + name)
            return value.strip() if value is not None and value.strip() else None

        kwargs = {}
        for field_name, caster in (
            ("top_k", int),
            ("max_concurrent_fetches", int),
            ("max_retries", int),
            ("backoff_seconds", float),
            ("backoff_multiplier", float),
            ("time_bucket_minutes", int),
            ("cancel_check_interval", int),
            ("exact_search_max_stops", int),
            ("max_leg_days", int),
        ):
            raw = _get(field_name.upper())
            if raw is not None:
                kwargs[field_name] = caster(raw)

        mode = _get("SEARCH_MODE")
        if mode is not None:
            kwargs["search_mode"] = SearchMode(mode.lower())

        timeout = _get("FETCH_TIMEOUT_SECONDS")
        if timeout is not None:
            kwargs["fetch_timeout_seconds"] = (
                None if timeout.lower() == "none" else float(timeout)
            )

        return cls(**kwargs)
