"""
Shared cache tier backed by Redis.

Entries are stored as JSON with a native Redis expiry, so TTL enforcement
happens server-side. Any Redis or connection failure is raised as
CacheError for the tiered cache to downgrade to a miss.
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

from ..errors import CacheError

logger = logging.getLogger(__name__)


class RedisCache:
    """Redis-backed cache tier."""

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = "deep_research",
    ):
        """
        Initialize Redis tier.

        Args:
            client: redis.asyncio client
            key_prefix: Prefix for all keys
        """
        self._redis = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "deep_research") -> "RedisCache":
        return cls(redis.Redis.from_url(url), key_prefix=key_prefix)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._redis.get(self._key(key))
        except (redis.RedisError, OSError) as e:
            raise CacheError(f"Redis get failed: {e}", cause=e) from e

        return self._decode(key, raw)

    async def get_with_ttl(self, key: str) -> tuple[Any, float | None] | None:
        """
        Value and remaining seconds from the key's PTTL.

        Remaining time is None for keys without an expiry.
        """
        try:
            raw = await self._redis.get(self._key(key))
            if raw is None:
                return None
            pttl = await self._redis.pttl(self._key(key))
        except (redis.RedisError, OSError) as e:
            raise CacheError(f"Redis get failed: {e}", cause=e) from e

        # -2: expired between the two calls, -1: no expiry
        if pttl == -2:
            return None
        remaining = pttl / 1000 if pttl >= 0 else None
        return self._decode(key, raw), remaining

    def _decode(self, key: str, raw: Any) -> Any | None:
        if raw is None:
            return None

        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CacheError(f"Corrupt cache entry for {key}", cause=e) from e

    async def set(self, key: str, value: Any, ttl: float) -> None:
        ttl_ms = int(ttl * 1000)
        if ttl_ms <= 0:
            return

        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Value for {key} is not JSON serialisable", cause=e) from e

        try:
            await self._redis.set(self._key(key), payload, px=ttl_ms)
        except (redis.RedisError, OSError) as e:
            raise CacheError(f"Redis set failed: {e}", cause=e) from e

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._key(key))
        except (redis.RedisError, OSError) as e:
            raise CacheError(f"Redis delete failed: {e}", cause=e) from e

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._redis.exists(self._key(key)))
        except (redis.RedisError, OSError) as e:
            raise CacheError(f"Redis exists failed: {e}", cause=e) from e

    async def close(self) -> None:
        await self._redis.aclose()
