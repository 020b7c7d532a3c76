"""
Exchange rate engine — upstream fetching, caching, and fallback.

Rates for EUR/USD/GBP/CHF are derived from a single EUR-based quote set
(exchangerate-api.com v6) into a full cross-rate matrix. The matrix is held
by a ``RateCache`` constructed once per process and injected into the
routers, the deposit service and the Celery refresh task.

Fallback chain when the in-memory table is missing or older than the TTL:

    fresh Redis snapshot -> upstream API -> stale in-memory / Redis table
    -> static table

Callers always get a number. Which level produced it is reported through
``RateSource`` on ``RateTable`` and ``RateLookup``; only the logs say why.
"""

import asyncio
import enum
import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Protocol

import httpx
from redis.exceptions import RedisError

from evoke.config import settings
from evoke.services.currency import (
    BASE_CURRENCY,
    SUPPORTED_CURRENCIES,
    normalize_currency,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Redis key for the shared snapshot. Stored without TTL; staleness is
# judged from the timestamp inside so a stale snapshot still works as a
# fallback.
RATE_CACHE_KEY = f"fx_rates:{BASE_CURRENCY}"

# EUR-based quotes behind the static table. Every pair is derived from
# these, so X->Y is exactly the reciprocal of Y->X.
STATIC_BASE_QUOTES: dict[str, Decimal] = {
    "USD": Decimal("1.08"),
    "GBP": Decimal("0.86"),
    "CHF": Decimal("0.98"),
}


class RateSource(str, enum.Enum):
    LIVE = "live"          # upstream table within the freshness window
    CACHED = "cached"      # stale table served because a refresh failed
    STATIC = "static"      # hardcoded fallback
    IDENTITY = "identity"  # no conversion needed, rate is exactly 1


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RateFetchError(Exception):
    """Upstream rates could not be obtained (network, credential, payload)."""
    pass


class RateUnavailableError(Exception):
    """No live, cached or static rate exists for a pair."""

    def __init__(self, source: str, target: str):
        self.source = source
        self.target = target
        super().__init__(f"No valid exchange rate available for {source}/{target}")


# ---------------------------------------------------------------------------
# Rate tables
# ---------------------------------------------------------------------------


def build_cross_rates(
    base_quotes: dict[str, Decimal],
    base: str = BASE_CURRENCY,
) -> dict[str, dict[str, Decimal]]:
    """
    Expand ``{currency: units per 1 base}`` into a ``from -> to -> rate`` matrix.

    ``rate[X][Y] = quote[Y] / quote[X]`` with ``quote[base] = 1``. Currencies
    without a quote are left out of the matrix entirely.
    """
    quotes = {base: Decimal("1"), **base_quotes}
    matrix: dict[str, dict[str, Decimal]] = {}
    for src in SUPPORTED_CURRENCIES:
        if src not in quotes:
            continue
        row: dict[str, Decimal] = {}
        for dst in SUPPORTED_CURRENCIES:
            if dst not in quotes:
                continue
            row[dst] = Decimal("1") if src == dst else quotes[dst] / quotes[src]
        matrix[src] = row
    return matrix


STATIC_RATES = build_cross_rates(STATIC_BASE_QUOTES)


@dataclass(frozen=True)
class RateTable:
    """A cross-rate matrix with the time it was fetched and its provenance."""

    rates: dict[str, dict[str, Decimal]]
    fetched_at: datetime
    source: RateSource = RateSource.LIVE

    def rate(self, source: str, target: str) -> Decimal | None:
        return self.rates.get(source, {}).get(target)

    def age(self, now: datetime) -> timedelta:
        return now - self.fetched_at

    def with_source(self, source: RateSource) -> "RateTable":
        return replace(self, source=source)

    def to_json(self) -> str:
        return json.dumps({
            "base": BASE_CURRENCY,
            "fetched_at": self.fetched_at.isoformat(),
            "rates": {
                src: {dst: str(rate) for dst, rate in row.items()}
                for src, row in self.rates.items()
            },
        })

    @classmethod
    def from_json(cls, raw: str) -> "RateTable":
        data = json.loads(raw)
        return cls(
            rates={
                src: {dst: Decimal(rate) for dst, rate in row.items()}
                for src, row in data["rates"].items()
            },
            fetched_at=datetime.fromisoformat(data["fetched_at"]),
            source=RateSource.LIVE,
        )


def static_table(now: datetime) -> RateTable:
    """The hardcoded fallback table, stamped with *now*."""
    return RateTable(rates=STATIC_RATES, fetched_at=now, source=RateSource.STATIC)


@dataclass(frozen=True)
class RateLookup:
    """A single pair's rate and where it came from."""

    rate: Decimal
    source: RateSource
    fetched_at: datetime | None


# ---------------------------------------------------------------------------
# Upstream providers
# ---------------------------------------------------------------------------


class RateProvider(Protocol):
    async def fetch_quotes(self) -> dict[str, Decimal]:
        """Fetch ``{currency: units per 1 EUR}`` for the supported currencies."""
        ...


def parse_conversion_rates(data) -> dict[str, Decimal]:
    """
    Extract supported EUR-based quotes from an exchangerate-api payload.

    Quotes that are missing, non-numeric or non-positive are dropped; the
    pairs that would need them fall back to the static table at lookup
    time. A payload without a ``conversion_rates`` object, or without a
    single usable quote, is rejected.
    """
    if not isinstance(data, dict) or not isinstance(data.get("conversion_rates"), dict):
        raise RateFetchError("Invalid response from exchange rate API")

    raw = data["conversion_rates"]
    quotes: dict[str, Decimal] = {}
    for code in SUPPORTED_CURRENCIES:
        if code == BASE_CURRENCY:
            continue
        value = raw.get(code)
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            continue
        try:
            quote = Decimal(str(value))
        except InvalidOperation:
            continue
        if quote.is_finite() and quote > 0:
            quotes[code] = quote

    if not quotes:
        raise RateFetchError("Exchange rate API returned no usable quotes")
    return quotes


class ExchangeRateAPIProvider:
    """Fetch live EUR-based rates from exchangerate-api.com (v6, keyed)."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = settings.EXCHANGE_RATE_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.EXCHANGE_RATE_API_URL).rstrip("/")
        self.timeout = settings.EXCHANGE_RATE_TIMEOUT_SECONDS if timeout is None else timeout
        self.transport = transport

    async def fetch_quotes(self) -> dict[str, Decimal]:
        if not self.api_key:
            raise RateFetchError("Exchange rate API key not configured")

        url = f"{self.base_url}/{self.api_key}/latest/{BASE_CURRENCY}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport,
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            # The URL carries the API key; keep it out of the message.
            raise RateFetchError(
                f"Exchange rate API returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RateFetchError(
                f"Exchange rate request failed: {type(exc).__name__}"
            ) from exc
        except ValueError as exc:
            raise RateFetchError("Exchange rate API returned malformed JSON") from exc

        return parse_conversion_rates(data)


# ---------------------------------------------------------------------------
# RateCache
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RateCache:
    """
    Process-wide holder of the current rate table.

    ``get`` returns a usable table, refreshing through the provider when
    the held one is older than ``ttl``. Only one refresh attempt runs at a
    time inside a process: callers arriving while it is in flight await the
    same task and receive its result, whether that is a new live table or
    a fallback, so an outage costs one upstream timeout per burst rather
    than one per request. The held table is swapped by one reference
    assignment; across processes the last writer of the Redis snapshot wins.
    """

    def __init__(
        self,
        provider: RateProvider,
        redis=None,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.provider = provider
        self.redis = redis
        self.ttl = ttl or timedelta(minutes=settings.EXCHANGE_RATE_CACHE_TTL_MINUTES)
        self.clock = clock
        self._table: RateTable | None = None
        self._inflight: asyncio.Future | None = None

    @property
    def table(self) -> RateTable | None:
        """The last live table held in memory, fresh or not."""
        return self._table

    def is_fresh(self, table: RateTable | None, now: datetime) -> bool:
        return table is not None and table.age(now) < self.ttl

    async def get(self, now: datetime | None = None) -> RateTable:
        now = now or self.clock()
        if self.is_fresh(self._table, now):
            return self._table
        return await self._join(lambda: self._load_or_refresh(now))

    async def refresh(self, now: datetime | None = None) -> RateTable:
        """
        Fetch from upstream regardless of freshness (falls back on failure).

        An attempt already in flight is joined instead of starting another.
        """
        now = now or self.clock()
        return await self._join(lambda: self._refresh(now, None))

    # --- Internals ---

    async def _join(self, start) -> RateTable:
        if self._inflight is None or self._inflight.done():
            task = asyncio.ensure_future(start())
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
        # A cancelled caller must not cancel the attempt other callers share.
        return await asyncio.shield(self._inflight)

    def _clear_inflight(self, task: asyncio.Future) -> None:
        if self._inflight is task:
            self._inflight = None

    async def _load_or_refresh(self, now: datetime) -> RateTable:
        snapshot = await self._load_snapshot()
        if self.is_fresh(snapshot, now):
            logger.info(
                "Adopted shared exchange rate snapshot from %s",
                snapshot.fetched_at.isoformat(),
            )
            self._table = snapshot
            return snapshot

        return await self._refresh(now, snapshot)

    async def _refresh(
        self, now: datetime, snapshot: RateTable | None,
    ) -> RateTable:
        try:
            quotes = await self.provider.fetch_quotes()
        except RateFetchError as exc:
            logger.warning("Exchange rate refresh failed: %s", exc)
            return await self._fallback(now, snapshot)

        table = RateTable(rates=build_cross_rates(quotes), fetched_at=now)
        self._table = table
        await self._save_snapshot(table)

        logger.info(
            "Exchange rates updated from API: EUR/USD=%s EUR/GBP=%s EUR/CHF=%s",
            table.rate("EUR", "USD"), table.rate("EUR", "GBP"), table.rate("EUR", "CHF"),
        )
        return table

    async def _fallback(self, now: datetime, snapshot: RateTable | None) -> RateTable:
        if snapshot is None:
            snapshot = await self._load_snapshot()

        candidates = [t for t in (self._table, snapshot) if t is not None]
        if candidates:
            stale = max(candidates, key=lambda t: t.fetched_at)
            logger.warning(
                "Using cached exchange rates from %s (age %s)",
                stale.fetched_at.isoformat(), stale.age(now),
            )
            return stale.with_source(RateSource.CACHED)

        logger.warning("No cached exchange rates, using static fallback table")
        return static_table(now)

    async def _load_snapshot(self) -> RateTable | None:
        if self.redis is None:
            return None
        try:
            raw = await self.redis.get(RATE_CACHE_KEY)
        except RedisError as exc:
            logger.warning("Could not read exchange rate snapshot: %s", exc)
            return None
        if raw is None:
            return None
        try:
            return RateTable.from_json(raw)
        except (ValueError, KeyError, TypeError, AttributeError, ArithmeticError):
            logger.warning("Discarding malformed exchange rate snapshot")
            return None

    async def _save_snapshot(self, table: RateTable) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(RATE_CACHE_KEY, table.to_json())
        except RedisError as exc:
            logger.warning("Could not write exchange rate snapshot: %s", exc)


def build_rate_cache(redis=None) -> RateCache:
    """RateCache wired to the configured upstream provider."""
    return RateCache(ExchangeRateAPIProvider(), redis=redis)


# ---------------------------------------------------------------------------
# RateService
# ---------------------------------------------------------------------------


class RateService:
    """Pair lookups on top of a RateCache."""

    def __init__(self, cache: RateCache):
        self.cache = cache

    async def get_table(self, now: datetime | None = None) -> RateTable:
        return await self.cache.get(now)

    async def lookup_rate(
        self, source: str, target: str, now: datetime | None = None,
    ) -> RateLookup:
        """
        Rate for ``source -> target`` with provenance.

        Equal currencies return exactly 1 without touching the cache. A
        missing or non-positive entry in the current table is replaced by
        the static entry for the same pair.
        """
        src = normalize_currency(source)
        dst = normalize_currency(target)
        if src == dst:
            return RateLookup(rate=Decimal("1"), source=RateSource.IDENTITY, fetched_at=None)

        table = await self.cache.get(now)
        rate = table.rate(src, dst)
        if rate is not None and rate > 0:
            return RateLookup(rate=rate, source=table.source, fetched_at=table.fetched_at)

        fallback = STATIC_RATES.get(src, {}).get(dst)
        if fallback is None or fallback <= 0:
            raise RateUnavailableError(src, dst)

        logger.warning(
            "Invalid %s/%s rate %s in %s table, using static rate %s",
            src, dst, rate, table.source.value, fallback,
        )
        return RateLookup(rate=fallback, source=RateSource.STATIC, fetched_at=None)

    async def get_rate(self, source: str, target: str, now: datetime | None = None) -> Decimal:
        """Positive multiplier such that ``amount_in_target = amount * rate``."""
        lookup = await self.lookup_rate(source, target, now)
        return lookup.rate
