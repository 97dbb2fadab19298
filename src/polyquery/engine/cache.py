"""Result caching layer with optional Redis support.

Caches whole result envelopes per ``(connection id, prompt)``:
- L1: In-memory TTL cache (per process)
- L2: Redis cache (shared, optional)
"""

from __future__ import annotations

import hashlib
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import redis.asyncio as aioredis
from cachetools import TTLCache
from pydantic import ValidationError
from redis.exceptions import RedisError

from polyquery.core.logging import get_logger
from polyquery.models.query import ResultEnvelope

if TYPE_CHECKING:
    from redis.asyncio import Redis as AsyncRedis

    from polyquery.core.config import Settings

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_SIZE = 256
CACHE_KEY_PREFIX = "pq:rc"


class CacheConfig:
    """Cache configuration from Settings or defaults."""

    def __init__(self, settings: Settings | None = None) -> None:
        if settings:
            self.enabled = settings.CACHE_ENABLED
            self.redis_url = settings.REDIS_URL or ""
            self.ttl_seconds = settings.RESULT_CACHE_TTL_SECONDS
            self.max_size = settings.RESULT_CACHE_MAX_SIZE
        else:
            self.enabled = True
            self.redis_url = ""
            self.ttl_seconds = DEFAULT_TTL_SECONDS
            self.max_size = DEFAULT_MAX_SIZE
        self.key_prefix = CACHE_KEY_PREFIX


def generate_cache_key(connection_id: str | None, prompt: str) -> str:
    """Generate a deterministic cache key from a connection id and prompt.

    The prompt is used verbatim; two prompts differing only in case or
    whitespace are different questions to the generator.

    Args:
        connection_id: Requested connection id (may be None).
        prompt: The user's question.

    Returns:
        A hashed cache key string.
    """
    key_data = f"{connection_id or ''}|{prompt}"
    return hashlib.sha256(key_data.encode()).hexdigest()[:16]


class ResultCache:
    """Two-tier cache of result envelopes.

    An entry is served only while it is younger than the TTL; at exactly the
    TTL it has expired.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or CacheConfig()
        self._l1_cache: TTLCache[str, ResultEnvelope] = TTLCache(
            maxsize=self.config.max_size,
            ttl=self.config.ttl_seconds,
            timer=timer,
        )
        self._redis: AsyncRedis | None = None
        self._redis_available = False
        self._stats = CacheStats()

    async def connect_redis(self) -> bool:
        """Initialize Redis connection if configured.

        Returns:
            True if Redis connected successfully.
        """
        if not self.config.redis_url:
            logger.debug("cache_redis_disabled", reason="no_url")
            return False

        try:
            self._redis = aioredis.from_url(
                self.config.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=2.0,
                socket_connect_timeout=2.0,
            )
            await self._redis.ping()  # type: ignore[misc]
            self._redis_available = True
            logger.info("cache_redis_connected", url=self.config.redis_url[:20] + "...")
            return True
        except (RedisError, OSError) as e:
            logger.warning("cache_redis_connection_failed", error=str(e))
            self._redis_available = False
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self._redis_available = False

    def _make_key(self, key_hash: str) -> str:
        return f"{self.config.key_prefix}:{key_hash}"

    async def get(self, connection_id: str | None, prompt: str) -> ResultEnvelope | None:
        """Get a cached envelope.

        Args:
            connection_id: Requested connection id.
            prompt: The user's question.

        Returns:
            The cached ResultEnvelope, or None on a miss.
        """
        if not self.config.enabled:
            return None

        key_hash = generate_cache_key(connection_id, prompt)

        entry = self._l1_cache.get(key_hash)
        if entry is not None:
            self._stats.l1_hits += 1
            logger.debug("cache_hit", layer="l1", key=key_hash[:8])
            return entry

        self._stats.l1_misses += 1

        if self._redis_available and self._redis:
            try:
                cached_json = await self._redis.get(self._make_key(key_hash))
                if cached_json:
                    entry = ResultEnvelope.model_validate_json(cached_json)
                    self._l1_cache[key_hash] = entry
                    self._stats.l2_hits += 1
                    logger.debug("cache_hit", layer="l2", key=key_hash[:8])
                    return entry
                self._stats.l2_misses += 1
            except (RedisError, ValidationError) as e:
                logger.warning("cache_redis_get_error", error=str(e))

        return None

    async def set(
        self,
        connection_id: str | None,
        prompt: str,
        envelope: ResultEnvelope,
    ) -> None:
        """Cache an envelope under ``(connection_id, prompt)``."""
        if not self.config.enabled:
            return

        key_hash = generate_cache_key(connection_id, prompt)
        self._l1_cache[key_hash] = envelope

        if self._redis_available and self._redis:
            try:
                await self._redis.setex(
                    self._make_key(key_hash),
                    self.config.ttl_seconds,
                    envelope.model_dump_json(by_alias=True),
                )
                logger.debug("cache_set", key=key_hash[:8], ttl=self.config.ttl_seconds)
            except RedisError as e:
                logger.warning("cache_redis_set_error", error=str(e))

    async def invalidate(self) -> int:
        """Drop every entry from both layers.

        Returns:
            Number of entries invalidated.
        """
        count = len(self._l1_cache)
        self._l1_cache.clear()

        if self._redis_available and self._redis:
            try:
                cursor = 0
                while True:
                    cursor, keys = await self._redis.scan(
                        cursor=cursor,
                        match=f"{self.config.key_prefix}:*",
                        count=100,
                    )
                    if keys:
                        await self._redis.delete(*keys)
                        count += len(keys)
                    if cursor == 0:
                        break
            except RedisError as e:
                logger.warning("cache_redis_invalidate_error", error=str(e))

        logger.info("cache_invalidated", count=count)
        return count

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        return self._stats.to_dict()


class CacheStats:
    """Cache hit/miss statistics."""

    def __init__(self) -> None:
        self.l1_hits = 0
        self.l1_misses = 0
        self.l2_hits = 0
        self.l2_misses = 0

    @property
    def total_hits(self) -> int:
        return self.l1_hits + self.l2_hits

    @property
    def hit_rate(self) -> float:
        total = self.l1_hits + self.l1_misses
        return self.total_hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "l1_hits": self.l1_hits,
            "l1_misses": self.l1_misses,
            "l2_hits": self.l2_hits,
            "l2_misses": self.l2_misses,
            "total_hits": self.total_hits,
            "hit_rate": round(self.hit_rate, 4),
        }
