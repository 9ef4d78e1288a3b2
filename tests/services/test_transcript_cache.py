"""
Tests for the transcript cache and the read-through transcript service.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.services.transcript_cache import (
    CacheBackend,
    CachedTranscriptService,
    InMemoryCacheBackend,
    TranscriptCache,
)
from app.services.transcript_service import TranscriptService


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class BrokenBackend(CacheBackend):
    """Backend whose every call fails like an unreachable Redis."""

    async def get(self, key):
        raise RedisConnectionError("redis down")

    async def set(self, key, value, ttl_seconds):
        raise RedisConnectionError("redis down")

    async def delete(self, key):
        raise RedisConnectionError("redis down")


class TestInMemoryCacheBackend:

    @pytest.mark.asyncio
    async def test_entries_expire(self):
        clock = FakeClock()
        backend = InMemoryCacheBackend(clock=clock)

        await backend.set("k", "v", ttl_seconds=10)
        assert await backend.get("k") == "v"

        clock.now += 10
        assert await backend.get("k") is None
        assert len(backend) == 0

    @pytest.mark.asyncio
    async def test_never_exceeds_max_entries(self):
        backend = InMemoryCacheBackend(max_entries=3)

        for i in range(10):
            await backend.set(f"k{i}", "v", ttl_seconds=60)
            assert len(backend) <= 3

        assert await backend.get("k0") is None
        assert await backend.get("k9") == "v"

    @pytest.mark.asyncio
    async def test_evicts_least_recently_used(self):
        backend = InMemoryCacheBackend(max_entries=2)
        await backend.set("a", "1", ttl_seconds=60)
        await backend.set("b", "2", ttl_seconds=60)

        assert await backend.get("a") == "1"
        await backend.set("c", "3", ttl_seconds=60)

        assert await backend.get("b") is None
        assert await backend.get("a") == "1"
        assert await backend.get("c") == "3"

    @pytest.mark.asyncio
    async def test_writes_sweep_expired_entries(self):
        clock = FakeClock()
        backend = InMemoryCacheBackend(max_entries=10, clock=clock)
        await backend.set("old1", "v", ttl_seconds=5)
        await backend.set("old2", "v", ttl_seconds=5)

        clock.now += 5
        await backend.set("new", "v", ttl_seconds=5)

        assert len(backend) == 1

    def test_rejects_non_positive_bound(self):
        with pytest.raises(ValueError):
            InMemoryCacheBackend(max_entries=0)

    @pytest.mark.asyncio
    async def test_delete(self):
        backend = InMemoryCacheBackend()
        await backend.set("k", "v", ttl_seconds=10)
        await backend.delete("k")
        await backend.delete("missing")
        assert await backend.get("k") is None


class TestTranscriptCache:

    @pytest.mark.asyncio
    async def test_keys_are_namespaced(self):
        backend = InMemoryCacheBackend()
        cache = TranscriptCache(backend, ttl_seconds=60)

        await cache.set("dQw4w9WgXcQ", "text")

        assert await backend.get("transcript:dQw4w9WgXcQ") == "text"
        assert await cache.get("dQw4w9WgXcQ") == "text"

    @pytest.mark.asyncio
    async def test_backend_failures_are_swallowed(self):
        cache = TranscriptCache(BrokenBackend(), ttl_seconds=60)

        assert await cache.get("dQw4w9WgXcQ") is None
        await cache.set("dQw4w9WgXcQ", "text")
        await cache.invalidate("dQw4w9WgXcQ")


class TestCachedTranscriptService:

    @pytest.fixture
    def cached(self, fake_provider):
        return CachedTranscriptService(
            TranscriptService(fake_provider),
            TranscriptCache(InMemoryCacheBackend(), ttl_seconds=60),
        )

    @pytest.mark.asyncio
    async def test_second_fetch_is_served_from_cache(self, cached, fake_provider):
        first = await cached.fetch("dQw4w9WgXcQ")
        second = await cached.fetch("dQw4w9WgXcQ")

        assert first == second
        assert fake_provider.requests == ["dQw4w9WgXcQ"]

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, cached, fake_provider):
        await cached.fetch("dQw4w9WgXcQ")
        await cached.fetch("dQw4w9WgXcQ", force=True)

        assert fake_provider.requests == ["dQw4w9WgXcQ", "dQw4w9WgXcQ"]

    @pytest.mark.asyncio
    async def test_works_when_cache_is_down(self, fake_provider):
        cached = CachedTranscriptService(
            TranscriptService(fake_provider),
            TranscriptCache(BrokenBackend(), ttl_seconds=60),
        )
        assert await cached.fetch("dQw4w9WgXcQ")
