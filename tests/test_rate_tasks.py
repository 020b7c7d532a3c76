"""Tests for the scheduled exchange rate refresh task."""

from decimal import Decimal

import pytest

from evoke.services.rate_service import RATE_CACHE_KEY, RateCache, RateFetchError
from evoke.tasks import rate_tasks
from evoke.tasks.celery_app import celery_app

from conftest import T0


@pytest.fixture
def patch_cache(monkeypatch, mock_redis):
    """Route the task's Redis client and cache to test doubles."""
    def _patch(provider):
        monkeypatch.setattr(rate_tasks.aioredis, "from_url", lambda *a, **kw: mock_redis)
        monkeypatch.setattr(
            rate_tasks,
            "build_rate_cache",
            lambda client: RateCache(provider, redis=client, clock=lambda: T0),
        )
    return _patch


class TestRefreshExchangeRates:

    def test_live_refresh_writes_snapshot(self, patch_cache, live_provider, mock_redis):
        patch_cache(live_provider)

        result = rate_tasks.refresh_exchange_rates()

        assert result["source"] == "live"
        assert result["fetched_at"] == T0.isoformat()
        assert Decimal(result["rates"]["EUR/USD"]) == Decimal("1.10")
        assert set(result["rates"]) == {"EUR/USD", "EUR/GBP", "EUR/CHF"}
        assert live_provider.calls == 1
        assert mock_redis.set.call_args.args[0] == RATE_CACHE_KEY
        mock_redis.aclose.assert_awaited_once()

    def test_upstream_down_reports_static(self, patch_cache, down_provider, mock_redis):
        patch_cache(down_provider)

        result = rate_tasks.refresh_exchange_rates()

        assert result["source"] == "static"
        assert Decimal(result["rates"]["EUR/GBP"]) == Decimal("0.86")
        mock_redis.set.assert_not_called()
        mock_redis.aclose.assert_awaited_once()

    def test_unexpected_error_propagates(self, patch_cache, make_provider, mock_redis):
        patch_cache(make_provider(error=RuntimeError("boom")))

        with pytest.raises(RuntimeError):
            rate_tasks.refresh_exchange_rates()
        mock_redis.aclose.assert_awaited_once()

    def test_fetch_error_is_not_raised(self, patch_cache, make_provider):
        patch_cache(make_provider(error=RateFetchError("HTTP 503")))

        assert rate_tasks.refresh_exchange_rates()["source"] == "static"


class TestBeatSchedule:
    def test_refresh_scheduled(self):
        entry = celery_app.conf.beat_schedule["refresh-exchange-rates"]
        assert entry["task"] == "evoke.tasks.rate_tasks.refresh_exchange_rates"
        assert entry["schedule"] > 0
