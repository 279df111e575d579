import asyncio

import pytest

from recommender.core.cache import InMemoryCache


class TestInMemoryCache:
    def test_get_set(self):
        cache = InMemoryCache()
        cache.set("key", "value")
        assert cache.get("key") == "value"
        assert cache.get("missing") is None

    def test_expiration(self, clock):
        cache = InMemoryCache(default_ttl_seconds=1800, clock=clock)
        cache.set("key", "value")

        clock.advance(1799)
        assert cache.get("key") == "value"

        clock.advance(1)
        assert cache.get("key") is None
        # Should be removed from store
        assert cache.size() == 0

    def test_explicit_ttl(self, clock):
        cache = InMemoryCache(clock=clock)
        cache.set("short", "val", ttl_seconds=10)
        cache.set("long", "val", ttl_seconds=1000)

        clock.advance(11)
        assert cache.get("short") is None
        assert cache.get("long") == "val"

    def test_delete_clear(self):
        cache = InMemoryCache()
        cache.set("k1", "v1")
        cache.set("k2", "v2")

        assert cache.delete("k1") is True
        assert cache.get("k1") is None
        assert cache.delete("missing") is False

        cache.clear()
        assert cache.size() == 0
        assert cache.get("k2") is None

    def test_cleanup_expired(self, clock):
        cache = InMemoryCache(clock=clock)
        cache.set("k1", "v1", ttl_seconds=1)
        cache.set("k2", "v2", ttl_seconds=100)

        clock.advance(5)

        removed = cache.cleanup_expired()
        assert removed == 1
        assert cache.get("k1") is None
        assert cache.get("k2") == "v2"


class TestGetOrCompute:
    @pytest.mark.asyncio
    async def test_miss_then_hit(self):
        cache = InMemoryCache()
        calls = []

        async def factory():
            calls.append(1)
            return "computed"

        assert await cache.get_or_compute("key", factory) == "computed"
        assert await cache.get_or_compute("key", factory) == "computed"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_computation(self):
        cache = InMemoryCache()
        calls = []

        async def slow_factory():
            calls.append(1)
            await asyncio.sleep(0.01)
            return "computed"

        results = await asyncio.gather(*(cache.get_or_compute("key", slow_factory) for _ in range(5)))

        assert results == ["computed"] * 5
        assert len(calls) == 1
        assert not cache.is_computing("key")

    @pytest.mark.asyncio
    async def test_recomputes_after_ttl(self, clock):
        cache = InMemoryCache(default_ttl_seconds=60, clock=clock)
        values = iter(["first", "second"])

        async def factory():
            return next(values)

        assert await cache.get_or_compute("key", factory) == "first"
        clock.advance(60)
        assert await cache.get_or_compute("key", factory) == "second"

    @pytest.mark.asyncio
    async def test_validator_rejects_cached_value(self):
        cache = InMemoryCache()
        cache.set("key", "stale")

        async def factory():
            return "fresh"

        value = await cache.get_or_compute("key", factory, validator=lambda v: v != "stale")
        assert value == "fresh"
        assert cache.get("key") == "fresh"

    @pytest.mark.asyncio
    async def test_failed_computation_is_not_cached(self):
        cache = InMemoryCache()

        async def failing():
            raise RuntimeError("store down")

        with pytest.raises(RuntimeError):
            await cache.get_or_compute("key", failing)

        assert cache.get("key") is None
        assert not cache.is_computing("key")
