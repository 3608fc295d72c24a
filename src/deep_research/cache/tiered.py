"""
Tiered cache composing a fast near tier with slower shared tiers.

Caching is an optimisation only: tier failures are logged and behave as
misses, never as errors.
"""

import logging
from dataclasses import dataclass
from typing import Any

from .base import CacheBackend

logger = logging.getLogger(__name__)


@dataclass
class CacheTier:
    """One cache layer and the longest TTL it may hold."""

    backend: CacheBackend
    name: str = "tier"
    max_ttl: float | None = None

    def effective_ttl(self, ttl: float) -> float:
        if self.max_ttl is None:
            return ttl
        return min(ttl, self.max_ttl)


class TieredCache:
    """
    Reads check tiers fastest-first; a hit in a slower tier backfills the
    faster ones. Tiers exposing ``get_with_ttl`` report how long the entry
    has left, so a backfilled copy expires no later than the original.
    Writes go to every tier with that tier's TTL cap applied.
    """

    def __init__(self, tiers: list[CacheTier], backfill_ttl: float = 60.0):
        """
        Initialize tiered cache.

        Args:
            tiers: Cache tiers ordered fastest to slowest
            backfill_ttl: TTL requested when backfilling faster tiers
                (capped by each tier's max_ttl and by the time the entry has left)
        """
        if not tiers:
            raise ValueError("At least one cache tier required")

        self.tiers = tiers
        self.backfill_ttl = backfill_ttl

    async def get(self, key: str) -> Any | None:
        for index, tier in enumerate(self.tiers):
            try:
                value, remaining = await self._read(tier, key)
            except Exception as e:
                logger.warning(f"Cache tier {tier.name} get failed, treating as miss: {e}")
                continue

            if value is None:
                continue

            # Backfilled copies never outlive the entry they were read from
            ttl = self.backfill_ttl if remaining is None else min(self.backfill_ttl, remaining)
            if ttl > 0:
                for faster in self.tiers[:index]:
                    await self._safe_set(faster, key, value, ttl)

            return value

        return None

    async def _read(self, tier: CacheTier, key: str) -> tuple[Any | None, float | None]:
        """Value and remaining TTL; remaining is None if the tier cannot report it."""
        get_with_ttl = getattr(tier.backend, "get_with_ttl", None)
        if get_with_ttl is None:
            return await tier.backend.get(key), None

        found = await get_with_ttl(key)
        if found is None:
            return None, None
        return found

    async def set(self, key: str, value: Any, ttl: float) -> None:
        for tier in self.tiers:
            await self._safe_set(tier, key, value, ttl)

    async def delete(self, key: str) -> None:
        for tier in self.tiers:
            try:
                await tier.backend.delete(key)
            except Exception as e:
                logger.warning(f"Cache tier {tier.name} delete failed: {e}")

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def close(self) -> None:
        """Close tiers that hold connections."""
        for tier in self.tiers:
            close = getattr(tier.backend, "close", None)
            if close is not None:
                await close()

    async def _safe_set(self, tier: CacheTier, key: str, value: Any, ttl: float) -> None:
        try:
            await tier.backend.set(key, value, tier.effective_ttl(ttl))
        except Exception as e:
            logger.warning(f"Cache tier {tier.name} set failed, skipping: {e}")
