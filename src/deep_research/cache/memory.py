"""In-process TTL cache tier."""

import logging
from collections import OrderedDict
from typing import Any, Callable

from .base import CacheEntry, monotonic_clock

logger = logging.getLogger(__name__)


class MemoryCache:
    """
    Near-tier cache held in process memory.

    Expired entries are removed lazily when read. Writes that push the item
    count above ``sweep_threshold`` trigger a sweep of at most
    ``sweep_batch`` expired entries; if the cache is still larger than
    ``max_entries`` afterwards, the oldest entries are evicted.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        sweep_threshold: int | None = None,
        sweep_batch: int = 256,
        clock: Callable[[], float] = monotonic_clock,
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be >= 1")

        self.max_entries = max_entries
        self.sweep_threshold = sweep_threshold or max_entries
        self.sweep_batch = sweep_batch
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Any | None:
        found = await self.get_with_ttl(key)
        return None if found is None else found[0]

    async def get_with_ttl(self, key: str) -> tuple[Any, float] | None:
        """Live value and its remaining seconds, or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        now = self._clock()
        if not entry.is_live(now):
            del self._entries[key]
            return None

        return entry.value, entry.remaining(now)

    async def set(self, key: str, value: Any, ttl: float) -> None:
        if ttl <= 0:
            self._entries.pop(key, None)
            return

        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(value=value, created_at=self._clock(), ttl=ttl)

        if len(self._entries) > self.sweep_threshold:
            self.sweep()

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    def sweep(self) -> int:
        """Drop expired entries (bounded), then evict oldest beyond capacity."""
        now = self._clock()
        expired = []
        for key, entry in self._entries.items():
            if not entry.is_live(now):
                expired.append(key)
                if len(expired) >= self.sweep_batch:
                    break

        for key in expired:
            del self._entries[key]

        evicted = 0
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            evicted += 1

        if expired or evicted:
            logger.debug(f"Cache sweep: {len(expired)} expired, {evicted} evicted")

        return len(expired) + evicted
