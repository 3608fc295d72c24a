"""
Tests for the in-memory cache tier.

These tests verify:
- Entries expire after their TTL
- Non-positive TTLs remove the key
- Sweeps remove a bounded number of expired entries and evict beyond capacity
"""

import pytest

from deep_research.cache.memory import MemoryCache


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_set_and_get():
    cache = MemoryCache()

    await cache.set("k", {"a": 1}, ttl=10)

    assert await cache.get("k") == {"a": 1}
    assert await cache.exists("k")
    assert await cache.get("missing") is None


@pytest.mark.asyncio
async def test_entry_expires():
    clock = FakeClock()
    cache = MemoryCache(clock=clock)
    await cache.set("k", "v", ttl=10)

    clock.now = 9.9
    assert await cache.get("k") == "v"

    clock.now = 10.0
    assert await cache.get("k") is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_get_with_ttl_reports_remaining():
    clock = FakeClock()
    cache = MemoryCache(clock=clock)
    await cache.set("k", "v", ttl=10)

    clock.now = 4.0
    assert await cache.get_with_ttl("k") == ("v", 6.0)

    clock.now = 10.0
    assert await cache.get_with_ttl("k") is None


@pytest.mark.asyncio
async def test_non_positive_ttl_removes_key():
    cache = MemoryCache()
    await cache.set("k", "v", ttl=10)

    await cache.set("k", "new", ttl=0)

    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_delete():
    cache = MemoryCache()
    await cache.set("k", "v", ttl=10)

    await cache.delete("k")
    await cache.delete("never-set")

    assert not await cache.exists("k")


@pytest.mark.asyncio
async def test_oldest_entries_evicted_beyond_capacity():
    cache = MemoryCache(max_entries=3)

    for i in range(5):
        await cache.set(f"k{i}", i, ttl=100)

    assert len(cache) == 3
    assert await cache.get("k0") is None
    assert await cache.get("k1") is None
    assert await cache.get("k4") == 4


@pytest.mark.asyncio
async def test_overwrite_refreshes_position():
    cache = MemoryCache(max_entries=2)
    await cache.set("a", 1, ttl=100)
    await cache.set("b", 2, ttl=100)

    await cache.set("a", 10, ttl=100)
    await cache.set("c", 3, ttl=100)

    assert await cache.get("a") == 10
    assert await cache.get("b") is None


@pytest.mark.asyncio
async def test_sweep_prefers_expired_entries():
    clock = FakeClock()
    cache = MemoryCache(max_entries=3, clock=clock)
    await cache.set("old", "x", ttl=1)
    await cache.set("a", 1, ttl=100)
    await cache.set("b", 2, ttl=100)

    clock.now = 5.0
    await cache.set("c", 3, ttl=100)

    assert len(cache) == 3
    assert await cache.get("a") == 1


@pytest.mark.asyncio
async def test_sweep_batch_is_bounded():
    clock = FakeClock()
    cache = MemoryCache(max_entries=100, sweep_batch=2, clock=clock)
    for i in range(5):
        await cache.set(f"k{i}", i, ttl=1)

    clock.now = 5.0
    removed = cache.sweep()

    assert removed == 2
    assert len(cache) == 3


def test_invalid_capacity():
    with pytest.raises(ValueError):
        MemoryCache(max_entries=0)
