"""
Exchange rate Celery tasks.

Refreshes the upstream rates on the EXCHANGE_RATE_REFRESH_SECONDS schedule
and writes the shared Redis snapshot, so API processes adopt a fresh table
instead of each calling the upstream API when theirs expires.
"""

import asyncio
import logging

import redis.asyncio as aioredis

from evoke.config import settings
from evoke.services.rate_service import build_rate_cache
from evoke.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def refresh_rates_once() -> dict:
    """Force one upstream refresh and report what was obtained."""
    # A fresh client per run: redis.asyncio connections are bound to the
    # event loop that opened them.
    client = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        ssl=settings.REDIS_SSL,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
    )
    try:
        table = await build_rate_cache(client).refresh()
    finally:
        await client.aclose()

    return {
        "source": table.source.value,
        "fetched_at": table.fetched_at.isoformat(),
        "rates": {
            f"EUR/{code}": str(table.rate("EUR", code))
            for code in ("USD", "GBP", "CHF")
        },
    }


@celery_app.task(name="evoke.tasks.rate_tasks.refresh_exchange_rates")
def refresh_exchange_rates():
    """
    Refresh exchange rates.

    Celery tasks are synchronous, so the async refresh runs in its own
    event loop.
    """
    logger.info("Starting scheduled exchange rate refresh")
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(refresh_rates_once())
        if result["source"] != "live":
            logger.warning("Exchange rate refresh fell back to %s rates", result["source"])
        else:
            logger.info("Exchange rates refreshed at %s", result["fetched_at"])
        return result
    except Exception:
        logger.exception("Exchange rate refresh failed")
        raise
    finally:
        loop.close()
