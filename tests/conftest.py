"""
Shared test fixtures for the EvokeEssence settlement service.

Provides an async test client, database session and Redis mocks, stub
upstream rate providers, and ORM object factories.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from evoke.api.deps import get_rate_cache
from evoke.config import settings
from evoke.database import get_db
from evoke.models.deposit import DepositStatus, SepaDeposit
from evoke.models.user import User
from evoke.services.converter import CurrencyConverter
from evoke.services.rate_service import RateCache, RateFetchError, RateService

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

# EUR-based quotes used wherever a "live" upstream answer is needed.
LIVE_QUOTES = {
    "USD": Decimal("1.10"),
    "GBP": Decimal("0.85"),
    "CHF": Decimal("0.95"),
}


# --- Upstream rate providers ---


class StubRateProvider:
    """Records calls; returns *quotes* or raises *error* after *delay* seconds."""

    def __init__(self, quotes=None, error=None, delay=0):
        self.quotes = quotes if quotes is not None else dict(LIVE_QUOTES)
        self.error = error
        self.delay = delay
        self.calls = 0

    async def fetch_quotes(self):
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return dict(self.quotes)


@pytest.fixture
def make_provider():
    """Factory for StubRateProvider instances."""
    return StubRateProvider


@pytest.fixture
def live_provider():
    return StubRateProvider()


@pytest.fixture
def down_provider():
    """An upstream that is unreachable."""
    return StubRateProvider(error=RateFetchError("connection refused"))


@pytest.fixture
def rate_cache(down_provider):
    """Cache with no upstream and no Redis: every lookup uses the static table."""
    return RateCache(down_provider, redis=None, clock=lambda: T0)


@pytest.fixture
def converter(rate_cache):
    return CurrencyConverter(RateService(rate_cache))


# --- Mock Redis ---


@pytest.fixture
def mock_redis():
    """AsyncMock Redis client with the methods the rate cache uses."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.aclose = AsyncMock()
    return redis


# --- Mock Database Session ---


def make_result(one=None, many=None, scalar=None, rows=None):
    """Build a MagicMock shaped like an SQLAlchemy Result."""
    result = MagicMock()
    result.scalar_one_or_none = MagicMock(return_value=one)
    result.scalar_one = MagicMock(return_value=scalar)
    scalars = MagicMock()
    scalars.all = MagicMock(return_value=list(many or []))
    result.scalars = MagicMock(return_value=scalars)
    result.all = MagicMock(return_value=list(rows or []))
    return result


@pytest.fixture
def result_factory():
    return make_result


@pytest.fixture
def mock_db():
    """AsyncMock database session."""
    db = AsyncMock()
    db.execute = AsyncMock(return_value=make_result())
    db.flush = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


# --- ORM factories ---


def _make_user(**overrides) -> User:
    defaults = {
        "id": 7,
        "username": "lena.k",
        "email": "lena@example.com",
        "balance": Decimal("100.00"),
        "balance_currency": "USD",
    }
    defaults.update(overrides)
    return User(**defaults)


def _make_contractor(**overrides) -> User:
    defaults = {
        "id": 3,
        "username": "andrea.v",
        "is_contractor": True,
        "referral_code": "A64S",
        "balance_currency": "EUR",
    }
    defaults.update(overrides)
    return User(**defaults)


def _make_deposit(**overrides) -> SepaDeposit:
    defaults = {
        "id": 1,
        "reference": "PAY-7-0000001",
        "user_id": 7,
        "amount": Decimal("1000.00"),
        "currency": "EUR",
        "commission_rate": Decimal("0.16"),
        "commission_fee": Decimal("160.00"),
        "net_amount": Decimal("840.00"),
        "settlement_currency": "USD",
        "exchange_rate": Decimal("1.08"),
        "converted_amount": Decimal("907.20"),
        "rate_source": "static",
        "status": DepositStatus.PENDING,
    }
    defaults.update(overrides)
    return SepaDeposit(**defaults)


@pytest.fixture
def make_user():
    return _make_user


@pytest.fixture
def make_contractor():
    return _make_contractor


@pytest.fixture
def make_deposit():
    return _make_deposit


@pytest.fixture(autouse=True)
def default_commission_settings(monkeypatch):
    """Pin commission settings so a local .env cannot change expectations."""
    monkeypatch.setattr(settings, "PLATFORM_COMMISSION_RATE", Decimal("0.16"))
    monkeypatch.setattr(settings, "CONTRACTOR_COMMISSION_RATE", Decimal("0.0085"))
    monkeypatch.setattr(settings, "DEFAULT_SETTLEMENT_CURRENCY", "USD")


# --- Dependency Override Helpers ---


@pytest_asyncio.fixture
async def client(mock_db, rate_cache):
    """
    Async HTTP test client with get_db and get_rate_cache overridden
    to use test doubles.
    """
    from evoke.main import app

    async def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_cache] = lambda: rate_cache

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
