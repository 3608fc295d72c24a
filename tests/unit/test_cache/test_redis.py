"""
Tests for the Redis cache tier.

The redis client is replaced with an AsyncMock; these tests verify key
prefixing, JSON encoding, millisecond expiry and error mapping.
"""

import json
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from deep_research.cache.redis_cache import RedisCache
from deep_research.errors import CacheError


@pytest.fixture
def client():
    return AsyncMock()


@pytest.fixture
def cache(client):
    return RedisCache(client, key_prefix="test")


@pytest.mark.asyncio
async def test_get_decodes_json(cache, client):
    client.get.return_value = b'{"score": 0.9}'

    assert await cache.get("k") == {"score": 0.9}
    client.get.assert_awaited_once_with("test:k")


@pytest.mark.asyncio
async def test_get_miss(cache, client):
    client.get.return_value = None

    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_set_uses_millisecond_expiry(cache, client):
    await cache.set("k", {"a": [1, 2]}, ttl=1.5)

    client.set.assert_awaited_once_with("test:k", json.dumps({"a": [1, 2]}), px=1500)


@pytest.mark.asyncio
async def test_set_with_non_positive_ttl_is_skipped(cache, client):
    await cache.set("k", "v", ttl=0)

    client.set.assert_not_awaited()


@pytest.mark.asyncio
async def test_unserialisable_value(cache):
    with pytest.raises(CacheError):
        await cache.set("k", object(), ttl=10)


@pytest.mark.asyncio
async def test_connection_error_becomes_cache_error(cache, client):
    client.get.side_effect = redis.ConnectionError("refused")

    with pytest.raises(CacheError) as exc_info:
        await cache.get("k")

    assert isinstance(exc_info.value.cause, redis.ConnectionError)


@pytest.mark.asyncio
async def test_corrupt_entry_becomes_cache_error(cache, client):
    client.get.return_value = b"not json"

    with pytest.raises(CacheError):
        await cache.get("k")


@pytest.mark.asyncio
async def test_delete_and_exists(cache, client):
    client.exists.return_value = 1

    assert await cache.exists("k")
    await cache.delete("k")

    client.exists.assert_awaited_once_with("test:k")
    client.delete.assert_awaited_once_with("test:k")


@pytest.mark.asyncio
async def test_close(cache, client):
    await cache.close()

    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_with_ttl_reports_remaining_seconds(cache, client):
    client.get.return_value = b'"v"'
    client.pttl.return_value = 4500

    assert await cache.get_with_ttl("k") == ("v", 4.5)
    client.pttl.assert_awaited_once_with("test:k")


@pytest.mark.asyncio
async def test_get_with_ttl_without_expiry(cache, client):
    client.get.return_value = b'"v"'
    client.pttl.return_value = -1

    assert await cache.get_with_ttl("k") == ("v", None)


@pytest.mark.asyncio
async def test_get_with_ttl_miss(cache, client):
    client.get.return_value = None

    assert await cache.get_with_ttl("k") is None
    client.pttl.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_with_ttl_key_expired_between_calls(cache, client):
    client.get.return_value = b'"v"'
    client.pttl.return_value = -2

    assert await cache.get_with_ttl("k") is None
