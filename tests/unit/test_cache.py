import pytest
from unittest.mock import AsyncMock, MagicMock
from redis.exceptions import WatchError

from app.infrastructure.cache import (
    GENERATION_TTL_SECONDS,
    InMemoryCache,
    RedisCache,
    create_cache,
    unread_count_key,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestUnreadCountKey:

    def test_key_format(self):
        assert unread_count_key(7, 42) == "unread_count:7:42"


class TestInMemoryCache:
    """프로세스 메모리 캐시 테스트"""

    @pytest.mark.asyncio
    async def test_put_get_evict(self):
        cache = InMemoryCache()

        assert await cache.get("k") is None
        await cache.put("k", "3", 60)
        assert await cache.get("k") == "3"

        await cache.evict("k")
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_evict_missing_key(self):
        cache = InMemoryCache()
        await cache.evict("missing")
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        cache = InMemoryCache(clock=clock)
        await cache.put("k", "1", 300)

        clock.now += 299
        assert await cache.get("k") == "1"

        clock.now += 1
        assert await cache.get("k") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_contains_respects_ttl(self):
        clock = FakeClock()
        cache = InMemoryCache(clock=clock)
        await cache.put("k", "1", 10)

        assert "k" in cache
        clock.now += 10
        assert "k" not in cache


    @pytest.mark.asyncio
    async def test_evict_bumps_generation(self):
        cache = InMemoryCache()
        assert await cache.generation("k") == 0

        await cache.evict("k")
        await cache.evict("k")

        assert await cache.generation("k") == 2
        assert await cache.generation("other") == 0

    @pytest.mark.asyncio
    async def test_put_skipped_when_evicted_after_generation_read(self):
        """세대를 읽은 뒤 evict가 끼어들면 그 세대로 계산한 값은 기록되지 않음"""
        cache = InMemoryCache()
        generation = await cache.generation("k")

        await cache.evict("k")
        await cache.put("k", "0", 300, generation=generation)
        assert "k" not in cache

        await cache.put("k", "1", 300, generation=await cache.generation("k"))
        assert await cache.get("k") == "1"


class TestRedisCache:
    """Redis 캐시 테스트 (클라이언트는 mock)"""

    @staticmethod
    def make_client(generation=None):
        client = AsyncMock()
        pipe = MagicMock()
        pipe.watch = AsyncMock()
        pipe.get = AsyncMock(return_value=generation)
        pipe.execute = AsyncMock()
        client.pipeline = MagicMock()
        client.pipeline.return_value.__aenter__.return_value = pipe
        return client, pipe

    @pytest.mark.asyncio
    async def test_operations_use_redis_commands(self):
        client, pipe = self.make_client()
        client.get.return_value = "4"
        cache = RedisCache(client=client)

        await cache.put("unread_count:1:2", "4", 300)
        value = await cache.get("unread_count:1:2")
        await cache.evict("unread_count:1:2")

        client.setex.assert_awaited_once_with("unread_count:1:2", 300, "4")
        client.get.assert_awaited_once_with("unread_count:1:2")
        pipe.delete.assert_called_once_with("unread_count:1:2")
        pipe.incr.assert_called_once_with("unread_count:1:2:gen")
        pipe.expire.assert_called_once_with("unread_count:1:2:gen", GENERATION_TTL_SECONDS)
        pipe.execute.assert_awaited_once()
        assert value == "4"

    @pytest.mark.asyncio
    async def test_generation_reads_counter(self):
        client, _ = self.make_client()
        client.get.side_effect = ["3", None]
        cache = RedisCache(client=client)

        assert await cache.generation("k") == 3
        assert await cache.generation("k") == 0
        client.get.assert_awaited_with("k:gen")

    @pytest.mark.asyncio
    async def test_put_with_matching_generation(self):
        client, pipe = self.make_client(generation="2")
        cache = RedisCache(client=client)

        await cache.put("k", "5", 300, generation=2)

        pipe.watch.assert_awaited_once_with("k:gen")
        pipe.multi.assert_called_once()
        pipe.setex.assert_called_once_with("k", 300, "5")
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_put_with_stale_generation_is_skipped(self):
        client, pipe = self.make_client(generation="3")
        cache = RedisCache(client=client)

        await cache.put("k", "5", 300, generation=2)

        pipe.setex.assert_not_called()
        pipe.execute.assert_not_awaited()
        client.setex.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_put_losing_watch_race_is_skipped(self):
        """WATCH 이후 다른 연결이 세대를 올리면 EXEC가 실패하고 값은 기록되지 않음"""
        client, pipe = self.make_client(generation="2")
        pipe.execute.side_effect = WatchError("generation changed")
        cache = RedisCache(client=client)

        await cache.put("k", "5", 300, generation=2)

        pipe.setex.assert_called_once_with("k", 300, "5")

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self):
        """Redis 장애는 miss/no-op으로 처리"""
        client = AsyncMock()
        client.get.side_effect = ConnectionError("redis down")
        client.setex.side_effect = ConnectionError("redis down")
        client.pipeline = MagicMock(side_effect=ConnectionError("redis down"))
        cache = RedisCache(client=client)

        assert await cache.get("k") is None
        assert await cache.generation("k") == -1
        await cache.put("k", "1", 60)
        await cache.put("k", "1", 60, generation=0)
        await cache.evict("k")

    @pytest.mark.asyncio
    async def test_unavailable_client_is_a_miss(self, monkeypatch):
        async def broken_get_redis():
            raise ConnectionError("no redis")

        monkeypatch.setattr("app.database.redis.get_redis", broken_get_redis)
        cache = RedisCache()

        assert await cache.get("k") is None

class TestCreateCache:

    def test_backends(self):
        assert isinstance(create_cache("memory"), InMemoryCache)
        assert isinstance(create_cache("Redis"), RedisCache)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_cache("memcached")
