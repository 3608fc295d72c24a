"""
Cache contract shared by all tiers.

Values must be JSON-serialisable so any tier (in-process or shared store)
can hold them. Callers that treat the cache as an optimisation go through
``cached_or_none`` and ``store_quietly`` so a failing backend reads as a miss.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A value with its creation time and time-to-live (seconds)."""

    value: Any
    created_at: float
    ttl: float

    def is_live(self, now: float) -> bool:
        return now < self.created_at + self.ttl

    def remaining(self, now: float) -> float:
        return self.created_at + self.ttl - now


class CacheBackend(Protocol):
    """Async key-value cache with per-entry TTL. Misses return None."""

    async def get(self, key: str) -> Any | None:
        ...

    async def set(self, key: str, value: Any, ttl: float) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def exists(self, key: str) -> bool:
        ...


def monotonic_clock() -> float:
    return time.monotonic()


async def cached_or_none(cache: CacheBackend | None, key: str) -> Any | None:
    """Read from an optional cache; a failing backend counts as a miss."""
    if cache is None:
        return None
    try:
        return await cache.get(key)
    except Exception as e:
        logger.warning(f"Cache get failed, treating as miss: {e}")
        return None


async def store_quietly(cache: CacheBackend | None, key: str, value: Any, ttl: float) -> None:
    """Write to an optional cache; failures are logged and skipped."""
    if cache is None:
        return
    try:
        await cache.set(key, value, ttl)
    except Exception as e:
        logger.warning(f"Cache set failed, skipping: {e}")
