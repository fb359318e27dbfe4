"""Global pytest configuration and fixtures.

Provides Redis-backed cache fixtures shared by unit and integration tests:
- cache: RedisCache over an isolated in-memory fakeredis server
- broken_cache: RedisCache whose every Redis call fails with a connection error
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

from taskhub.cache.redis import RedisCache
from taskhub.cache.ttl import TtlPolicy


@pytest_asyncio.fixture
async def redis_client() -> AsyncIterator[fakeredis.FakeAsyncRedis]:
    """In-memory Redis with its own server, so tests never share keys."""
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())
    yield client
    await client.aclose()


@pytest.fixture
def cache(redis_client: fakeredis.FakeAsyncRedis) -> RedisCache:
    return RedisCache(redis_client, scan_count=10)


@pytest.fixture
def broken_redis() -> MagicMock:
    """Redis client mock where every command raises ConnectionError."""
    error = RedisConnectionError("Connection refused")
    client = MagicMock()
    for command in ("get", "mget", "set", "delete", "exists", "ttl", "ping"):
        setattr(client, command, AsyncMock(side_effect=error))
    client.scan_iter = MagicMock(side_effect=error)
    client.pipeline = MagicMock(side_effect=error)
    return client


@pytest.fixture
def broken_cache(broken_redis: MagicMock) -> RedisCache:
    return RedisCache(broken_redis)


@pytest.fixture
def ttl_policy() -> TtlPolicy:
    return TtlPolicy()
