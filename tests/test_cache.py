"""
List cache: LRU bounds, TTL expiry, invalidation and key scheme
"""

import pytest

from app.core.cache import ListCache, MemoryCacheBackend, TRIPS_NAMESPACE


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestMemoryBackend:

    @pytest.mark.asyncio
    async def test_lru_evicts_least_recently_used(self):
        backend = MemoryCacheBackend(max_entries=2)
        await backend.set("a", "1", 60)
        await backend.set("b", "2", 60)
        assert await backend.get("a") == "1"  # a is now most recent
        await backend.set("c", "3", 60)

        assert len(backend) == 2
        assert await backend.get("b") is None
        assert await backend.get("a") == "1"
        assert await backend.get("c") == "3"

    @pytest.mark.asyncio
    async def test_entries_expire(self):
        clock = FakeClock()
        backend = MemoryCacheBackend(clock=clock)
        await backend.set("k", "v", 30)

        clock.now += 29
        assert await backend.get("k") == "v"
        clock.now += 2
        assert await backend.get("k") is None
        assert len(backend) == 0

    @pytest.mark.asyncio
    async def test_delete_prefix(self):
        backend = MemoryCacheBackend()
        await backend.set("v1:trips:aaaa", "1", 60)
        await backend.set("v1:trips:bbbb", "2", 60)
        await backend.set("v1:other:cccc", "3", 60)

        assert await backend.delete_prefix("v1:trips:") == 2
        assert await backend.get("v1:other:cccc") == "3"

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            MemoryCacheBackend(max_entries=0)


class TestListCache:

    def test_key_is_stable_and_order_independent(self):
        cache = ListCache(MemoryCacheBackend())
        first = cache.make_key(TRIPS_NAMESPACE, {"from": "lisbon", "page": 1})
        second = cache.make_key(TRIPS_NAMESPACE, {"page": 1, "from": "lisbon"})

        assert first == second
        assert first.startswith("v1:trips:")
        assert len(first.split(":")[2]) == 8
        assert cache.make_key(TRIPS_NAMESPACE, {"from": "porto", "page": 1}) != first

    @pytest.mark.asyncio
    async def test_set_get_and_invalidate(self):
        cache = ListCache(MemoryCacheBackend())
        params = {"from": "lisbon"}
        assert await cache.get(TRIPS_NAMESPACE, params) is None

        await cache.set(TRIPS_NAMESPACE, params, {"items": [1, 2]})
        assert await cache.get(TRIPS_NAMESPACE, params) == {"items": [1, 2]}

        assert await cache.invalidate(TRIPS_NAMESPACE) == 1
        assert await cache.get(TRIPS_NAMESPACE, params) is None
