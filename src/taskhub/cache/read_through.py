"""Cache-aside reads for single keys.

Example:
    task = await read_through(
        cache,
        CacheKeys.task(task_id),
        lambda: repo.get(task_id),
        ttl_policy.ttl_for(CacheKind.TASK),
    )
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from taskhub.cache.keys import CacheKeys
from taskhub.cache.redis import RedisCache
from taskhub.observability.metrics import record_cache_hit, record_cache_miss

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Zero-argument coroutine factory that queries the origin store
FetchFn = Callable[[], Awaitable[T | None]]


def _namespace_of(key: str) -> str:
    parsed = CacheKeys.parse_key(key)
    return parsed["namespace"] if parsed else "other"


async def read_through(cache: RedisCache, key: str, fetch_fn: FetchFn[T], ttl: int) -> T | None:
    """Return the cached value for key, fetching and caching it on a miss.

    None results are returned but never cached, so lookups of missing rows
    always reach the origin. Cache failures degrade to a plain origin read;
    only an exception from fetch_fn reaches the caller.
    """
    namespace = _namespace_of(key)

    cached = await cache.get(key)
    if cached is not None:
        record_cache_hit(namespace)
        logger.debug(f"Cache HIT: {key}")
        return cached

    record_cache_miss(namespace)
    logger.debug(f"Cache MISS: {key}")

    value = await fetch_fn()

    if value is not None:
        if await cache.set(key, value, ttl):
            logger.debug(f"Cached: {key} (TTL: {ttl}s)")

    return value
