"""
In-process TTL/LRU cache for Jobloom API handlers.

Re-exports the pieces request handlers use directly.
"""

from jobloom_cache.cache import Cache, CacheConfig, CacheStats
from jobloom_cache.helpers import (
    SWRRefresher,
    create_cache_key,
    invalidate_by_prefix,
    with_cache,
    with_swr,
)
from jobloom_cache.registry import CacheRegistry, UnknownCacheError

__all__ = [
    "Cache",
    "CacheConfig",
    "CacheRegistry",
    "CacheStats",
    "SWRRefresher",
    "UnknownCacheError",
    "create_cache_key",
    "invalidate_by_prefix",
    "with_cache",
    "with_swr",
]
