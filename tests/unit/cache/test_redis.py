"""Tests for the Redis cache client.

Uses an in-memory fakeredis server for behaviour and a failing mock client
for the unavailable-cache paths.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from taskhub.cache.redis import TTL_MISSING, TTL_NO_EXPIRY, RedisCache
from taskhub.errors import CacheUnavailableError


class TestReadsAndWrites:
    """Test get/set against a working Redis."""

    @pytest.mark.asyncio
    async def test_set_then_get_round_trips(self, cache: RedisCache) -> None:
        value = {"id": "T1", "title": "Write docs", "tags": ["a", "b"], "done": False}
        assert await cache.set("task:T1", value, 60) is True
        assert await cache.get("task:T1") == value

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, cache: RedisCache) -> None:
        assert await cache.get("task:missing") is None

    @pytest.mark.asyncio
    async def test_empty_list_is_a_value(self, cache: RedisCache) -> None:
        """An empty list is cached and read back, distinct from a miss."""
        await cache.set("tasks:creator:U9", [], 60)
        assert await cache.get("tasks:creator:U9") == []

    @pytest.mark.asyncio
    async def test_set_applies_ttl(self, cache: RedisCache) -> None:
        await cache.set("user:U1", {"id": "U1"}, 120)
        remaining = await cache.ttl_remaining("user:U1")
        assert 0 < remaining <= 120

    @pytest.mark.asyncio
    async def test_set_rejects_non_positive_ttl(self, cache: RedisCache) -> None:
        with pytest.raises(ValueError):
            await cache.set("user:U1", {"id": "U1"}, 0)

    @pytest.mark.asyncio
    async def test_unserializable_value_is_not_stored(self, cache: RedisCache) -> None:
        assert await cache.set("user:U1", object(), 60) is False
        assert await cache.exists("user:U1") is False

    @pytest.mark.asyncio
    async def test_corrupt_entry_reads_as_miss(self, cache: RedisCache) -> None:
        await cache.client.set("user:U1", b"{not json")
        assert await cache.get("user:U1") is None


class TestMultiGet:
    """Test batched reads."""

    @pytest.mark.asyncio
    async def test_order_matches_keys(self, cache: RedisCache) -> None:
        await cache.set("user:a", {"id": "a"}, 60)
        await cache.set("user:c", {"id": "c"}, 60)

        result = await cache.multi_get(["user:c", "user:b", "user:a"])

        assert result == [{"id": "c"}, None, {"id": "a"}]

    @pytest.mark.asyncio
    async def test_empty_keys(self, cache: RedisCache) -> None:
        assert await cache.multi_get([]) == []

    @pytest.mark.asyncio
    async def test_set_many_writes_independent_entries(self, cache: RedisCache) -> None:
        written = await cache.set_many({"user:a": {"id": "a"}, "tasks:creator:a": []}, 60)

        assert written == 2
        assert await cache.multi_get(["user:a", "tasks:creator:a"]) == [{"id": "a"}, []]
        assert 0 < await cache.ttl_remaining("tasks:creator:a") <= 60


class TestDeletes:
    """Test key and pattern deletion."""

    @pytest.mark.asyncio
    async def test_delete_keys_counts_existing_only(self, cache: RedisCache) -> None:
        await cache.set("task:T1", {"id": "T1"}, 60)

        assert await cache.delete_keys(["task:T1", "task:T2"]) == 1
        assert await cache.get("task:T1") is None

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, cache: RedisCache) -> None:
        """Deleting an absent key is not an error."""
        assert await cache.delete_keys(["task:none"]) == 0
        assert await cache.delete_keys([]) == 0

    @pytest.mark.asyncio
    async def test_delete_pattern(self, cache: RedisCache) -> None:
        for page in range(1, 26):
            await cache.set(f"tasks:all:page:{page}:limit:10", [], 60)
        await cache.set("tasks:allocated", [], 60)
        await cache.set("task:T1", {"id": "T1"}, 60)

        deleted = await cache.delete_pattern("tasks:all:*")

        assert deleted == 25
        assert await cache.exists("tasks:allocated") is True
        assert await cache.exists("task:T1") is True

    @pytest.mark.asyncio
    async def test_delete_pattern_without_matches(self, cache: RedisCache) -> None:
        assert await cache.delete_pattern("comments:all:*") == 0


class TestTtlRemaining:
    """Test TTL inspection sentinels."""

    @pytest.mark.asyncio
    async def test_missing_key(self, cache: RedisCache) -> None:
        assert await cache.ttl_remaining("user:nobody") == TTL_MISSING

    @pytest.mark.asyncio
    async def test_key_without_expiry(self, cache: RedisCache) -> None:
        await cache.client.set("user:forever", b"{}")
        assert await cache.ttl_remaining("user:forever") == TTL_NO_EXPIRY


class TestUnavailable:
    """Test behaviour while Redis is down."""

    @pytest.mark.asyncio
    async def test_get_degrades_to_miss(self, broken_cache: RedisCache) -> None:
        assert await broken_cache.get("user:U1") is None

    @pytest.mark.asyncio
    async def test_multi_get_degrades_to_all_misses(self, broken_cache: RedisCache) -> None:
        assert await broken_cache.multi_get(["a", "b", "c"]) == [None, None, None]

    @pytest.mark.asyncio
    async def test_writes_report_failure(self, broken_cache: RedisCache) -> None:
        assert await broken_cache.set("user:U1", {"id": "U1"}, 60) is False
        assert await broken_cache.set_many({"user:U1": {"id": "U1"}}, 60) == 0
        assert await broken_cache.delete_keys(["user:U1"]) == 0
        assert await broken_cache.delete_pattern("users:all:*") == 0

    @pytest.mark.asyncio
    async def test_inspection_reports_absence(self, broken_cache: RedisCache) -> None:
        assert await broken_cache.exists("user:U1") is False
        assert await broken_cache.ttl_remaining("user:U1") == TTL_MISSING
        assert await broken_cache.health_check() is False

    @pytest.mark.asyncio
    async def test_strict_delete_raises(self, broken_cache: RedisCache) -> None:
        with pytest.raises(CacheUnavailableError) as exc_info:
            await broken_cache.delete_keys(["task:T1"], strict=True)
        assert exc_info.value.operation == "delete"
        assert exc_info.value.target == "task:T1"

    @pytest.mark.asyncio
    async def test_strict_pattern_delete_raises(self, broken_cache: RedisCache) -> None:
        with pytest.raises(CacheUnavailableError):
            await broken_cache.delete_pattern("tasks:all:*", strict=True)

    @pytest.mark.asyncio
    async def test_strict_set_raises(self, broken_cache: RedisCache) -> None:
        with pytest.raises(CacheUnavailableError):
            await broken_cache.set("user:U1", {"id": "U1"}, 60, strict=True)


class TestLifecycle:
    """Test health check and shutdown."""

    @pytest.mark.asyncio
    async def test_health_check_ok(self, cache: RedisCache) -> None:
        assert await cache.health_check() is True

    @pytest.mark.asyncio
    async def test_close_releases_pool(self) -> None:
        client = MagicMock()
        client.aclose = AsyncMock()

        await RedisCache(client).close()

        client.aclose.assert_awaited_once()
