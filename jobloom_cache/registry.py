"""
Named cache instances owned by the application.

One ``CacheRegistry`` is built per process in the FastAPI lifespan and stored
on ``app.state``; request handlers and the prune scheduler receive it from
there instead of importing module-level cache objects.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from jobloom_cache.cache import Cache, CacheStats
from jobloom_cache.config import Settings
from jobloom_cache.helpers import SWRRefresher

logger = logging.getLogger(__name__)


class UnknownCacheError(KeyError):
    """Raised when a cache name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown cache: {self.name!r}"


class CacheRegistry:
    """
    Holds the application's named caches.

    The default profiles (``api``, ``user``, ``compute``, ``reference``) are
    created from :meth:`Settings.cache_profiles`.  Further caches can be
    added with :meth:`register`.
    """

    def __init__(self, settings: Optional[Settings] = None, **cache_kwargs: Any) -> None:
        """
        Args:
            settings:     Source of the profile configuration.  When omitted
                          the registry starts empty.
            cache_kwargs: Extra keyword arguments passed to every ``Cache``
                          built from *settings* (e.g. ``clock`` in tests).
        """
        self._caches: Dict[str, Cache] = {}
        self.refresher = SWRRefresher()

        if settings is not None:
            for name, config in settings.cache_profiles().items():
                self.register(name, Cache(config, **cache_kwargs))

    def register(self, name: str, cache: Cache) -> Cache:
        """
        Add *cache* under *name*.

        Raises:
            ValueError: If *name* is empty or already registered.
        """
        if not name:
            raise ValueError("Cache name must not be empty")
        if name in self._caches:
            raise ValueError(f"Cache {name!r} is already registered")
        self._caches[name] = cache
        logger.debug(
            "Registered cache %r (ttl=%.0fs, max_size=%d, swr=%s)",
            name,
            cache.config.default_ttl,
            cache.config.max_size,
            cache.config.stale_while_revalidate,
        )
        return cache

    def get(self, name: str) -> Cache:
        """
        Return the cache registered under *name*.

        Raises:
            UnknownCacheError: If no such cache exists.
        """
        try:
            return self._caches[name]
        except KeyError:
            raise UnknownCacheError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._caches

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def names(self) -> List[str]:
        return list(self._caches)

    def items(self) -> List[Tuple[str, Cache]]:
        return list(self._caches.items())

    def stats(self) -> Dict[str, CacheStats]:
        """Stats snapshot for every registered cache."""
        return {name: cache.get_stats() for name, cache in self._caches.items()}

    def prune_all(self) -> Dict[str, int]:
        """Prune every cache; returns name -> number of entries removed."""
        pruned = {name: cache.prune() for name, cache in self._caches.items()}
        total = sum(pruned.values())
        if total:
            logger.info("Pruned %d expired entries: %s", total, pruned)
        return pruned

    def clear_all(self) -> None:
        for cache in self._caches.values():
            cache.clear()
        logger.info("Cleared %d caches", len(self._caches))

    async def aclose(self) -> None:
        """Stop background refreshes and drop every entry."""
        await self.refresher.aclose()
        self.clear_all()
