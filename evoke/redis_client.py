"""
Shared redis-py async client.

Holds the cross-process exchange-rate snapshot. Short socket timeouts keep
a slow Redis from stalling conversions; callers treat Redis errors as a
missing snapshot.
"""

import redis.asyncio as aioredis

from evoke.config import settings

redis = aioredis.from_url(
    settings.REDIS_URL,
    decode_responses=True,
    ssl=settings.REDIS_SSL,
    socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
    socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
)
