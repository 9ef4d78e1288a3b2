"""
Transcript cache.

Transcripts are expensive to fetch and never change, so the fetch is read
through a cache keyed by video id. The backing store is injected:

- InMemoryCacheBackend: bounded per-process LRU with expiry (tests, and
  the default when REDIS_CACHE_ENABLED is false)
- RedisCacheBackend: shared cache in Redis (production)

A cache failure is never fatal: reads fall back to the provider and writes
are skipped, with a warning logged.
"""

import time
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from cachetools import TLRUCache
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.logging import get_logger
from app.db.redis import get_redis
from app.services.transcript_service import TranscriptService

logger = get_logger(__name__)


class CacheBackend(ABC):
    """Minimal async key/value store with per-key TTL."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class _ExpiringLRU(TLRUCache):
    """TLRUCache over (value, ttl_seconds) pairs that logs LRU evictions."""

    def popitem(self):
        key, value = super().popitem()
        logger.debug("transcript_cache_evicted", key=key)
        return key, value


def _expires_at(key: str, entry: Tuple[str, int], now: float) -> float:
    return now + entry[1]


class InMemoryCacheBackend(CacheBackend):
    """
    Bounded LRU cache with per-entry expiry (cachetools TLRUCache).

    Reads refresh recency. Writes sweep expired entries, then evict the
    least recently used ones until at most `max_entries` remain.
    """

    def __init__(self, max_entries: int = 256, clock=time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries = _ExpiringLRU(maxsize=max_entries, ttu=_expires_at, timer=clock)

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        return entry[0] if entry is not None else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)


class RedisCacheBackend(CacheBackend):
    """Redis-backed cache using SET ... EX."""

    def __init__(self, redis: Redis):
        self.redis = redis

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.redis.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self.redis.delete(key)


class TranscriptCache:
    """Namespaced transcript cache on top of a CacheBackend."""

    def __init__(
        self,
        backend: CacheBackend,
        ttl_seconds: Optional[int] = None,
        prefix: str = "transcript:",
    ):
        self.backend = backend
        self.ttl_seconds = ttl_seconds or settings.TRANSCRIPT_CACHE_TTL_SECONDS
        self.prefix = prefix

    def _key(self, video_id: str) -> str:
        return f"{self.prefix}{video_id}"

    async def get(self, video_id: str) -> Optional[str]:
        try:
            return await self.backend.get(self._key(video_id))
        except RedisError as e:
            logger.warning("transcript_cache_read_failed", video_id=video_id, error=str(e))
            return None

    async def set(self, video_id: str, transcript: str) -> None:
        try:
            await self.backend.set(self._key(video_id), transcript, self.ttl_seconds)
        except RedisError as e:
            logger.warning("transcript_cache_write_failed", video_id=video_id, error=str(e))

    async def invalidate(self, video_id: str) -> None:
        try:
            await self.backend.delete(self._key(video_id))
        except RedisError as e:
            logger.warning("transcript_cache_delete_failed", video_id=video_id, error=str(e))


class CachedTranscriptService:
    """
    Read-through wrapper around TranscriptService.

    `fetch(video_id, force=True)` skips the cached value and overwrites it
    with a fresh fetch (used by refresh).
    """

    def __init__(self, service: TranscriptService, cache: TranscriptCache):
        self.service = service
        self.cache = cache

    async def fetch(self, video_id: str, force: bool = False) -> str:
        if not force:
            cached = await self.cache.get(video_id)
            if cached:
                logger.info("transcript_cache_hit", video_id=video_id)
                return cached

        transcript = await self.service.fetch(video_id)
        await self.cache.set(video_id, transcript)
        return transcript


_memory_backend: Optional[InMemoryCacheBackend] = None


async def get_transcript_cache() -> TranscriptCache:
    """
    Cache configured from settings.

    Redis when REDIS_CACHE_ENABLED and reachable, otherwise a process-wide
    in-memory backend.
    """
    global _memory_backend

    if settings.REDIS_CACHE_ENABLED:
        try:
            return TranscriptCache(RedisCacheBackend(await get_redis()))
        except (RedisError, OSError) as e:
            logger.warning("redis_cache_unavailable", error=str(e))

    if _memory_backend is None:
        _memory_backend = InMemoryCacheBackend(max_entries=settings.TRANSCRIPT_CACHE_MAX_ENTRIES)
    return TranscriptCache(_memory_backend)
