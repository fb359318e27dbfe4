"""Redis cache client for taskhub.

Provides async Redis operations for caching JSON-serializable values.
Uses redis-py async client for connection pooling and orjson for
(de)serialization.

Every operation is safe to call while Redis is down: failures are logged,
counted and reported as a miss / zero / False. Call sites that need
confirmation pass ``strict=True`` and get a CacheUnavailableError instead.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, cast

import orjson
import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from taskhub.config import Settings
from taskhub.config import settings as default_settings
from taskhub.errors import CacheUnavailableError
from taskhub.observability.metrics import record_cache_error, record_cache_operation

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Errors that mean "cache unavailable" rather than a programming mistake
CACHE_ERRORS: tuple[type[BaseException], ...] = (RedisError, OSError, TimeoutError)

# Sentinels returned by ttl_remaining(), matching Redis TTL semantics
TTL_NO_EXPIRY = -1
TTL_MISSING = -2


def create_redis(settings: Settings | None = None) -> Redis:
    """Create the process-wide Redis client.

    The client owns a connection pool and is safe for concurrent use by
    many operations. Close it with RedisCache.close() on shutdown.
    """
    s = settings or default_settings
    return redis.from_url(  # type: ignore[no-untyped-call]
        s.redis_url,
        decode_responses=False,  # values are orjson bytes
        socket_timeout=s.redis_socket_timeout,
        socket_connect_timeout=s.redis_connect_timeout,
        retry=Retry(ExponentialBackoff(cap=3.0, base=0.1), s.redis_max_retries),
        retry_on_error=[RedisConnectionError, RedisTimeoutError],
        health_check_interval=30,
    )


class RedisCache:
    """Typed JSON cache operations over a shared Redis client."""

    def __init__(self, client: Redis, scan_count: int = 500):
        self.client = client
        self.scan_count = scan_count

    @contextmanager
    def _timed(self, operation: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            record_cache_operation(operation, time.perf_counter() - start)

    def _fail(self, operation: str, target: str, exc: BaseException, strict: bool) -> None:
        """Log and count a cache failure, re-raising only for strict callers."""
        record_cache_error(operation)
        logger.warning(f"Cache {operation} failed for {target}: {exc}")
        if strict:
            raise CacheUnavailableError(operation, target, exc) from exc

    def _decode(self, key: str, raw: bytes) -> Any:
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            self._fail("decode", key, e, strict=False)
            return None

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Get a cached value, or None on miss or any cache failure."""
        try:
            with self._timed("get"):
                raw = await self.client.get(key)
        except CACHE_ERRORS as e:
            self._fail("get", key, e, strict=False)
            return None

        if raw is None:
            return None
        return self._decode(key, raw)

    async def multi_get(self, keys: list[str]) -> list[Any | None]:
        """Get many values in one round trip.

        Result order matches ``keys``. A failed round trip yields a list of
        None with the same length.
        """
        if not keys:
            return []

        try:
            with self._timed("mget"):
                raws = await self.client.mget(keys)
        except CACHE_ERRORS as e:
            self._fail("mget", f"{len(keys)} keys", e, strict=False)
            return [None] * len(keys)

        return [None if raw is None else self._decode(key, raw) for key, raw in zip(keys, raws)]

    async def exists(self, key: str) -> bool:
        try:
            return cast(int, await self.client.exists(key)) == 1
        except CACHE_ERRORS as e:
            self._fail("exists", key, e, strict=False)
            return False

    async def ttl_remaining(self, key: str) -> int:
        """Seconds until the key expires.

        Returns TTL_NO_EXPIRY for keys without expiry and TTL_MISSING for
        absent keys (or when Redis is unreachable).
        """
        try:
            return int(await self.client.ttl(key))
        except CACHE_ERRORS as e:
            self._fail("ttl", key, e, strict=False)
            return TTL_MISSING

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def set(self, key: str, value: Any, ttl: int, *, strict: bool = False) -> bool:
        """Serialize and store a value with expiry.

        Returns True when stored. With strict=True a failure raises
        CacheUnavailableError instead of returning False.
        """
        if ttl <= 0:
            raise ValueError(f"TTL must be positive, got {ttl} for {key}")

        try:
            payload = orjson.dumps(value)
        except TypeError as e:
            self._fail("serialize", key, e, strict)
            return False

        try:
            with self._timed("set"):
                await self.client.set(key, payload, ex=ttl)
        except CACHE_ERRORS as e:
            self._fail("set", key, e, strict)
            return False
        return True

    async def set_many(self, items: Mapping[str, Any], ttl: int) -> int:
        """Store several independent entries in one pipelined round trip.

        Each value gets its own key and TTL. Best effort: returns the number
        of entries written, 0 if the pipeline failed.
        """
        if ttl <= 0:
            raise ValueError(f"TTL must be positive, got {ttl}")
        if not items:
            return 0

        payloads: dict[str, bytes] = {}
        for key, value in items.items():
            try:
                payloads[key] = orjson.dumps(value)
            except TypeError as e:
                self._fail("serialize", key, e, strict=False)

        if not payloads:
            return 0

        try:
            with self._timed("set_many"):
                async with self.client.pipeline(transaction=False) as pipe:
                    for key, payload in payloads.items():
                        pipe.set(key, payload, ex=ttl)
                    await pipe.execute()
        except CACHE_ERRORS as e:
            self._fail("set_many", f"{len(payloads)} keys", e, strict=False)
            return 0
        return len(payloads)

    async def delete_keys(self, keys: Iterable[str], *, strict: bool = False) -> int:
        """Delete keys, returning how many existed. Absent keys count as zero."""
        keys = list(keys)
        if not keys:
            return 0

        try:
            with self._timed("delete"):
                return cast(int, await self.client.delete(*keys))
        except CACHE_ERRORS as e:
            self._fail("delete", ", ".join(keys), e, strict)
            return 0

    async def delete_pattern(self, pattern: str, *, strict: bool = False) -> int:
        """Delete every key matching a glob pattern.

        Uses SCAN to avoid blocking Redis on large keyspaces. Matches are
        collected before deleting (in chunks of ``scan_count``) so the scan
        cursor never walks a keyspace that shrinks under it. Zero matches
        returns 0.
        """
        deleted = 0

        try:
            with self._timed("delete_pattern"):
                matches = [
                    key
                    async for key in self.client.scan_iter(match=pattern, count=self.scan_count)
                ]
                for start in range(0, len(matches), self.scan_count):
                    chunk = matches[start : start + self.scan_count]
                    deleted += cast(int, await self.client.delete(*chunk))
        except CACHE_ERRORS as e:
            self._fail("delete_pattern", pattern, e, strict)
        return deleted

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            await cast(Awaitable[bool], self.client.ping())
            return True
        except CACHE_ERRORS:
            return False

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self.client.aclose()
