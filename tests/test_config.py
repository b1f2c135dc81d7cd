"""
Tests for configuration, cancellation and logging setup.
"""

import logging

import pytest

from itinerary_router.cancellation import NEVER_CANCELLED, CancellationToken
from itinerary_router.config import FetchPolicy, OptimizerConfig, SearchMode
from itinerary_router.exceptions import OptimizationCancelled
from itinerary_router.logging_config import setup_logging


class TestOptimizerConfig:
    """Tests for OptimizerConfig validation and environment loading."""

    def test_defaults(self):
        config = OptimizerConfig()
        assert config.top_k == 1
        assert config.max_concurrent_fetches == 4
        assert config.search_mode is SearchMode.EXACT
        assert config.time_bucket_minutes == 0
        assert config.max_leg_days == 2

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"top_k": 0},
            {"max_concurrent_fetches": 0},
            {"fetch_timeout_seconds": 0},
            {"max_retries": -1},
            {"backoff_multiplier": 0.5},
            {"time_bucket_minutes": -5},
            {"cancel_check_interval": 0},
            {"exact_search_max_stops": 1},
            {"max_leg_days": -1},
        ],
    )
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ValueError):
            OptimizerConfig(**kwargs)

    def test_search_mode_from_string(self):
        assert OptimizerConfig(search_mode="BOUNDED").search_mode is SearchMode.BOUNDED

    def test_config_is_frozen(self):
        config = OptimizerConfig()
        with pytest.raises(AttributeError):
            config.top_k = 5

    def test_from_env(self):
        config = OptimizerConfig.from_env(
            {
                "ITINERARY_TOP_K": "3",
                "ITINERARY_MAX_CONCURRENT_FETCHES": "8",
                "ITINERARY_SEARCH_MODE": "bounded",
                "ITINERARY_FETCH_TIMEOUT_SECONDS": "none",
                "ITINERARY_BACKOFF_SECONDS": "0.25",
                "ITINERARY_MAX_LEG_DAYS": "3",
                "UNRELATED": "x",
            }
        )
        assert config.top_k == 3
        assert config.max_concurrent_fetches == 8
        assert config.search_mode is SearchMode.BOUNDED
        assert config.fetch_timeout_seconds is None
        assert config.backoff_seconds == 0.25
        assert config.max_leg_days == 3

    def test_fetch_policy_mirrors_fetch_fields(self):
        config = OptimizerConfig(fetch_timeout_seconds=2.0, max_retries=3, backoff_seconds=0.1)
        assert config.fetch_policy == FetchPolicy(
            timeout_seconds=2.0, max_retries=3, backoff_seconds=0.1, backoff_multiplier=2.0
        )

    def test_from_env_blank_keeps_default(self):
        config = OptimizerConfig.from_env({"ITINERARY_TOP_K": "  "})
        assert config.top_k == 1

    def test_from_env_invalid_value_raises(self):
        with pytest.raises(ValueError):
            OptimizerConfig.from_env({"ITINERARY_TOP_K": "0"})

    def test_from_os_environ(self, monkeypatch):
        monkeypatch.setenv("ITINERARY_MAX_RETRIES", "2")
        config = OptimizerConfig.from_env(dotenv=False)
        assert config.max_retries == 2


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_cancel(self):
        token = CancellationToken()
        assert not token.is_cancelled
        token.raise_if_cancelled()

        token.cancel()

        assert token.is_cancelled
        with pytest.raises(OptimizationCancelled) as exc_info:
            token.raise_if_cancelled("graph construction")
        assert exc_info.value.stage == "graph construction"

    def test_never_cancelled_ignores_cancel(self):
        NEVER_CANCELLED.cancel()
        assert not NEVER_CANCELLED.is_cancelled


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_accepts_level_name(self):
        setup_logging("debug")
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("asyncio").level == logging.WARNING
        setup_logging(logging.WARNING)
        assert logging.getLogger().level == logging.WARNING
