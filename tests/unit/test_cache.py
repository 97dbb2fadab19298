"""Tests for the result caching module."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import RedisError

from polyquery.engine.cache import CacheConfig, CacheStats, ResultCache, generate_cache_key
from polyquery.models.query import QueryDescriptor, ResultEnvelope


class FakeTimer:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def envelope() -> ResultEnvelope:
    return ResultEnvelope(
        query=QueryDescriptor(db_name="shop", collection_name="orders"),
        data=[{"id": 1, "status": "paid"}],
    )


class TestGenerateCacheKey:
    """Tests for cache key generation."""

    def test_generates_consistent_key(self) -> None:
        assert generate_cache_key("c1", "all orders") == generate_cache_key("c1", "all orders")

    def test_connection_is_part_of_key(self) -> None:
        assert generate_cache_key("c1", "all orders") != generate_cache_key("c2", "all orders")

    def test_prompt_used_verbatim(self) -> None:
        """Case and whitespace differences are different questions."""
        assert generate_cache_key("c1", "all orders") != generate_cache_key("c1", "All  orders")

    def test_missing_connection_id(self) -> None:
        assert generate_cache_key(None, "x") == generate_cache_key("", "x")

    def test_key_is_16_chars(self) -> None:
        key = generate_cache_key("c1", "x")
        assert len(key) == 16
        assert all(c in "0123456789abcdef" for c in key)


class TestCacheStats:
    """Tests for CacheStats."""

    def test_initial_stats(self) -> None:
        stats = CacheStats()
        assert stats.total_hits == 0
        assert stats.hit_rate == 0.0

    def test_hit_rate_calculation(self) -> None:
        stats = CacheStats()
        stats.l1_hits = 1
        stats.l1_misses = 3
        stats.l2_hits = 1
        assert stats.total_hits == 2
        assert stats.hit_rate == 0.5

    def test_to_dict(self) -> None:
        d = CacheStats().to_dict()
        assert set(d) == {"l1_hits", "l1_misses", "l2_hits", "l2_misses", "total_hits", "hit_rate"}


class TestCacheConfig:
    """Tests for CacheConfig."""

    def test_default_config(self) -> None:
        config = CacheConfig()
        assert config.enabled is True
        assert config.ttl_seconds == 300
        assert config.redis_url == ""

    def test_config_from_settings(self) -> None:
        settings = MagicMock()
        settings.CACHE_ENABLED = False
        settings.REDIS_URL = "redis://localhost:6379"
        settings.RESULT_CACHE_TTL_SECONDS = 60
        settings.RESULT_CACHE_MAX_SIZE = 10

        config = CacheConfig(settings)
        assert config.enabled is False
        assert config.redis_url == "redis://localhost:6379"
        assert config.ttl_seconds == 60
        assert config.max_size == 10


class TestResultCache:
    """Tests for ResultCache operations."""

    @pytest.fixture
    def timer(self) -> FakeTimer:
        return FakeTimer()

    @pytest.fixture
    def cache(self, timer: FakeTimer) -> ResultCache:
        return ResultCache(CacheConfig(), timer=timer)

    @pytest.mark.asyncio
    async def test_set_get(self, cache: ResultCache, envelope: ResultEnvelope) -> None:
        await cache.set("c1", "paid orders", envelope)

        result = await cache.get("c1", "paid orders")
        assert result is not None
        assert result.count == 1
        assert cache.get_stats()["l1_hits"] == 1

    @pytest.mark.asyncio
    async def test_miss(self, cache: ResultCache) -> None:
        assert await cache.get("c1", "nothing") is None
        assert cache.get_stats()["l1_misses"] == 1

    @pytest.mark.asyncio
    async def test_other_connection_misses(self, cache: ResultCache, envelope) -> None:
        await cache.set("c1", "paid orders", envelope)
        assert await cache.get("c2", "paid orders") is None

    @pytest.mark.asyncio
    async def test_served_just_before_ttl(self, cache, timer, envelope) -> None:
        await cache.set("c1", "q", envelope)
        timer.now += 299.999
        assert await cache.get("c1", "q") is not None

    @pytest.mark.asyncio
    async def test_expired_at_ttl(self, cache, timer, envelope) -> None:
        await cache.set("c1", "q", envelope)
        timer.now += 300
        assert await cache.get("c1", "q") is None

    @pytest.mark.asyncio
    async def test_expired_after_ttl(self, cache, timer, envelope) -> None:
        await cache.set("c1", "q", envelope)
        timer.now += 300.001
        assert await cache.get("c1", "q") is None

    @pytest.mark.asyncio
    async def test_cache_disabled(self, envelope: ResultEnvelope) -> None:
        config = CacheConfig()
        config.enabled = False
        cache = ResultCache(config)

        await cache.set("c1", "q", envelope)
        assert await cache.get("c1", "q") is None

    @pytest.mark.asyncio
    async def test_invalidate_clears_cache(self, cache: ResultCache, envelope) -> None:
        await cache.set("c1", "a", envelope)
        await cache.set("c1", "b", envelope)

        assert await cache.invalidate() == 2
        assert await cache.get("c1", "a") is None

    @pytest.mark.asyncio
    async def test_connect_redis_no_url(self, cache: ResultCache) -> None:
        assert await cache.connect_redis() is False

    @pytest.mark.asyncio
    async def test_close_without_redis(self, cache: ResultCache) -> None:
        await cache.close()


class TestResultCacheRedis:
    """Tests for the Redis (L2) layer with a mocked client."""

    @pytest.fixture
    def redis_client(self) -> AsyncMock:
        return AsyncMock()

    @pytest.fixture
    def cache(self, redis_client: AsyncMock) -> ResultCache:
        cache = ResultCache(CacheConfig())
        cache._redis = redis_client
        cache._redis_available = True
        return cache

    @pytest.mark.asyncio
    async def test_set_writes_camel_case_json(self, cache, redis_client, envelope) -> None:
        await cache.set("c1", "q", envelope)

        key, ttl, payload = redis_client.setex.call_args.args
        assert key.startswith("pq:rc:")
        assert ttl == 300
        assert '"collectionName":"orders"' in payload

    @pytest.mark.asyncio
    async def test_l2_hit_populates_l1(self, cache, redis_client, envelope) -> None:
        redis_client.get.return_value = envelope.model_dump_json(by_alias=True)

        first = await cache.get("c1", "q")
        second = await cache.get("c1", "q")

        assert first is not None
        assert first.query.collection_name == "orders"
        assert second is not None
        assert redis_client.get.await_count == 1
        stats = cache.get_stats()
        assert stats["l2_hits"] == 1
        assert stats["l1_hits"] == 1

    @pytest.mark.asyncio
    async def test_redis_error_is_a_miss(self, cache, redis_client) -> None:
        redis_client.get.side_effect = RedisError("boom")
        assert await cache.get("c1", "q") is None

    @pytest.mark.asyncio
    async def test_corrupt_l2_entry_is_a_miss(self, cache, redis_client) -> None:
        redis_client.get.return_value = '{"not": "an envelope"}'
        assert await cache.get("c1", "q") is None
