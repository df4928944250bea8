"""
Cache-aside helpers for request handlers.

Route handlers wrap an expensive upstream call (Firestore query, sponsor
register lookup, AI completion) in ``with_cache`` or ``with_swr`` instead of
hand-writing the get / fetch / set dance:

    result = await with_cache(
        caches.get("user"),
        create_cache_key("user", user_id),
        lambda: fetch_user(user_id),
    )
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Set, Tuple, TypeVar, Union

from jobloom_cache.cache import Cache

logger = logging.getLogger(__name__)

T = TypeVar("T")

Loader = Callable[[], Awaitable[T]]


def create_cache_key(*parts: Union[str, int, None]) -> str:
    """Join the truthy *parts* with ``":"``.

    ``None``, empty strings and ``0`` are dropped, so optional segments can be
    passed through unconditionally::

        create_cache_key("jobs", user_id, None, page)  # "jobs:u_123:2"
    """
    return ":".join(str(part) for part in parts if part)


def invalidate_by_prefix(cache: Cache, prefix: str) -> int:
    """Delete every key in *cache* that starts with *prefix*.

    O(n) over the stored keys; use sparingly.

    Returns:
        Number of entries removed.
    """
    invalidated = 0
    for key in cache.keys():
        if key.startswith(prefix) and cache.delete(key):
            invalidated += 1
    logger.debug("Invalidated %d entries with prefix %r", invalidated, prefix)
    return invalidated


async def with_cache(
    cache: Cache[T],
    key: str,
    loader: Loader[T],
    *,
    ttl: Optional[float] = None,
    force_refresh: bool = False,
) -> T:
    """Return the cached value for *key*, loading and storing it on a miss.

    A cached ``None`` cannot be told apart from a miss and is reloaded.
    Exceptions from *loader* propagate and nothing is stored.

    Args:
        cache:         Cache instance to read from and write to.
        key:           Cache key.
        loader:        Zero-argument coroutine function producing the value.
        ttl:           Seconds to keep the loaded value; cache default if None.
        force_refresh: Skip the lookup and always call *loader*.
    """
    if not force_refresh:
        cached = cache.get(key)
        if cached is not None:
            return cached

    result = await loader()
    cache.set(key, result, ttl)
    return result


class SWRRefresher:
    """Runs stale-while-revalidate background refreshes.

    Keeps a strong reference to each refresh task until it finishes and
    allows at most one in-flight refresh per (cache, key) pair.  One instance
    is owned by the application and drained at shutdown.
    """

    def __init__(self) -> None:
        self._in_flight: Dict[Tuple[int, str], asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()

    def pending(self) -> int:
        """Number of refresh tasks that have not finished yet."""
        return len(self._tasks)

    def is_refreshing(self, cache: Cache, key: str) -> bool:
        return (id(cache), key) in self._in_flight

    def schedule(
        self,
        cache: Cache[T],
        key: str,
        loader: Loader[T],
        ttl: Optional[float] = None,
    ) -> Optional[asyncio.Task]:
        """Start a background refresh of *key* unless one is already running.

        Must be called from inside a running event loop.

        Returns:
            The new task, or ``None`` if a refresh was already in flight.
        """
        slot = (id(cache), key)
        if slot in self._in_flight:
            logger.debug("SWR refresh already in flight: key=%r", key)
            return None

        task = asyncio.create_task(self._refresh(cache, key, loader, ttl))
        self._in_flight[slot] = task
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if self._in_flight.get(slot) is t:
                del self._in_flight[slot]

        task.add_done_callback(_done)
        return task

    async def _refresh(
        self,
        cache: Cache[T],
        key: str,
        loader: Loader[T],
        ttl: Optional[float],
    ) -> None:
        try:
            result = await loader()
        except asyncio.CancelledError:
            raise
        except Exception:
            # The stale value keeps being served until it hard-expires.
            logger.exception("SWR background refresh failed for key=%r", key)
            return
        cache.set(key, result, ttl)
        logger.debug("SWR background refresh stored key=%r", key)

    async def drain(self) -> None:
        """Wait for every pending refresh to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel outstanding refreshes and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._in_flight.clear()
        if tasks:
            logger.info("Cancelled %d pending SWR refreshes", len(tasks))


async def with_swr(
    cache: Cache[T],
    key: str,
    loader: Loader[T],
    refresher: SWRRefresher,
    *,
    ttl: Optional[float] = None,
) -> T:
    """Serve from cache immediately, refreshing stale entries in the background.

    On a hit the cached value is returned right away; if the entry is inside
    its stale window a refresh is handed to *refresher*.  On a miss the
    loader is awaited inline, stored, and returned; loader errors propagate.

    Args:
        cache:     Cache instance with a stale-while-revalidate window.
        key:       Cache key.
        loader:    Zero-argument coroutine function producing the value.
        refresher: Owner of background refresh tasks.
        ttl:       Seconds to keep loaded values; cache default if None.
    """
    cached = cache.get(key)
    if cached is not None:
        if cache.is_stale(key):
            refresher.schedule(cache, key, loader, ttl)
        return cached

    result = await loader()
    cache.set(key, result, ttl)
    return result
