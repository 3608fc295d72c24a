"""Result caching: in-memory, Redis and tiered composition."""

from .base import CacheBackend, CacheEntry
from .memory import MemoryCache
from .redis_cache import RedisCache
from .tiered import CacheTier, TieredCache

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "CacheTier",
    "MemoryCache",
    "RedisCache",
    "TieredCache",
]
