"""Redis client management for the buffered hit counter.

This module provides a lazily created, process-wide Redis client. It is only
opened when HIT_COUNTER_MODE=redis; the default direct mode never touches
Redis.

How to Use
===========
**Step 1 — Get the client**::
    cache_write = await get_redis()

**Step 2 — Cleanup on shutdown**::
    await close_redis()

Key Behaviours
===============
- Redis client is created lazily on first access.
- Global client is reused across all requests.
- UTF-8 encoding with decode_responses for string operations.

Functions:
    get_redis():  Shared Redis client (primary, used for writes).
    close_redis():  Cleanup function for shutdown.
"""

import redis.asyncio as redis

from shortlink.config import get_settings

__all__ = ["close_redis", "get_redis"]

# Write client: always points to the Redis primary.
# Used for: INCR/INCRBY click buffers, SADD/SPOP pending set, GETDEL on flush.
redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(
            get_settings().REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return redis_client


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
