"""
In-memory cache with per-entry TTL, LRU eviction and stale-while-revalidate.

Sits between API request handlers and their upstream calls (Firestore,
sponsor register lookups, AI providers).  Expiration is lazy: an expired
entry is removed the first time it is read via ``get()``/``has()``, or in
bulk by ``prune()``.  No background cleanup runs inside the cache itself;
see ``jobloom_cache.scheduler`` for the periodic prune task.

Usage:
    from jobloom_cache.cache import Cache

    cache: Cache[dict] = Cache(default_ttl=300, max_size=500, stale_while_revalidate=60)
    cache.set("sponsor:acme", {"licensed": True})
    cache.get("sponsor:acme")
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    """A single stored value and its timestamps (monotonic seconds)."""

    value: T
    created_at: float
    expires_at: float
    last_accessed: float
    stale_at: Optional[float] = None


@dataclass(frozen=True, slots=True)
class CacheConfig:
    """Construction parameters for a :class:`Cache`.

    Attributes:
        default_ttl:            Seconds an entry lives when ``set()`` gets no ttl.
        max_size:               Maximum number of stored entries.
        stale_while_revalidate: Seconds before expiry during which an entry is
                                still served but reported as stale.  ``None``
                                or ``0`` disables the stale window.
    """

    default_ttl: float = 300.0
    max_size: int = 1000
    stale_while_revalidate: Optional[float] = 60.0

    def __post_init__(self) -> None:
        if self.default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")
        if self.stale_while_revalidate is not None and self.stale_while_revalidate < 0:
            raise ValueError("stale_while_revalidate must not be negative")


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Point-in-time snapshot of cache counters."""

    hits: int
    misses: int
    stale_hits: int
    evictions: int
    size: int
    hit_rate: float


class Cache(Generic[T]):
    """Thread-safe key-value store with TTL expiry and LRU eviction.

    Storage layout:
        _store: OrderedDict[str, CacheEntry[T]]
            Kept in recency order: the first item is the least recently used
            entry, the last item the most recently set or read one.  Eviction
            pops from the front in O(1).

    ``size`` in :meth:`get_stats` is the length of ``_store``, so it always
    matches the entries actually held, including expired entries nobody has
    looked at yet.

    None of the public methods raise on a miss; an absent or expired key is
    reported as ``None`` / ``False``.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        *,
        default_ttl: Optional[float] = None,
        max_size: Optional[int] = None,
        stale_while_revalidate: Optional[float] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        """
        Args:
            config:                 Full configuration; keyword overrides below
                                    win over its fields.
            default_ttl:            Override for ``config.default_ttl``.
            max_size:               Override for ``config.max_size``.
            stale_while_revalidate: Override for ``config.stale_while_revalidate``;
                                    pass ``0`` to disable the stale window.
            clock:                  Returns the current time in seconds.
                                    Defaults to ``time.monotonic``.

        Raises:
            ValueError: If the resulting configuration is invalid.
        """
        base = config or CacheConfig()
        self._config = CacheConfig(
            default_ttl=base.default_ttl if default_ttl is None else float(default_ttl),
            max_size=base.max_size if max_size is None else int(max_size),
            stale_while_revalidate=(
                base.stale_while_revalidate
                if stale_while_revalidate is None
                else float(stale_while_revalidate)
            ),
        )
        self._clock = clock
        self._store: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._lock = threading.RLock()

        self._hits = 0
        self._misses = 0
        self._stale_hits = 0
        self._evictions = 0

    @property
    def config(self) -> CacheConfig:
        return self._config

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[T]:
        """Return the value for *key* if present and not expired.

        A value inside the stale window is still returned but counted as a
        stale hit; callers use :meth:`is_stale` to decide whether to refresh.
        Every successful read marks the entry as most recently used.

        Args:
            key: Cache key to look up.

        Returns:
            The cached value, or ``None`` if the key is absent or expired.
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                logger.debug("Cache miss (not found): key=%r", key)
                return None

            now = self._clock()
            if now > entry.expires_at:
                del self._store[key]
                self._misses += 1
                logger.debug("Cache miss (expired): key=%r", key)
                return None

            if entry.stale_at is not None and now > entry.stale_at:
                self._stale_hits += 1
                logger.debug("Cache stale hit: key=%r", key)
            else:
                self._hits += 1
                logger.debug("Cache hit: key=%r", key)

            entry.last_accessed = now
            self._store.move_to_end(key, last=True)
            return entry.value

    def has(self, key: str) -> bool:
        """Return whether *key* holds a live entry.

        Does not touch recency or hit/miss counters.  An expired entry found
        here is removed, the same as in :meth:`get`.
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return False
            if self._clock() > entry.expires_at:
                del self._store[key]
                logger.debug("Cache entry expired on probe: key=%r", key)
                return False
            return True

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def is_stale(self, key: str) -> bool:
        """Return True if *key* is inside its stale window but not yet expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None or entry.stale_at is None:
                return False
            now = self._clock()
            return entry.stale_at < now <= entry.expires_at

    def keys(self) -> List[str]:
        """Snapshot of stored keys, least recently used first.

        Expired entries that have not been pruned yet are included.
        """
        with self._lock:
            return list(self._store.keys())

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Store *value* under *key* for *ttl* seconds.

        Overwriting an existing key replaces its value and timestamps without
        evicting anything.  Inserting a new key into a full cache evicts
        exactly one least recently used entry first.

        Args:
            key:   Cache key.
            value: Value to store.  Not copied; do not mutate it afterwards.
            ttl:   Seconds until expiry.  Defaults to ``config.default_ttl``.
        """
        actual_ttl = self._config.default_ttl if ttl is None else float(ttl)
        swr = self._config.stale_while_revalidate

        with self._lock:
            now = self._clock()
            expires_at = now + actual_ttl
            stale_at: Optional[float] = None
            if swr:
                # created_at <= stale_at <= expires_at
                stale_at = min(max(expires_at - swr, now), expires_at)

            if key not in self._store and len(self._store) >= self._config.max_size:
                self._evict_lru()

            self._store[key] = CacheEntry(
                value=value,
                created_at=now,
                expires_at=expires_at,
                last_accessed=now,
                stale_at=stale_at,
            )
            self._store.move_to_end(key, last=True)

        logger.debug("Cache set: key=%r  ttl=%.3fs  expires_at=%.3f", key, actual_ttl, expires_at)

    def delete(self, key: str) -> bool:
        """Remove *key*.  Returns whether it was present."""
        with self._lock:
            removed = self._store.pop(key, None)

        if removed is not None:
            logger.debug("Cache delete: key=%r", key)
            return True
        logger.debug("Cache delete (not found): key=%r", key)
        return False

    def clear(self) -> None:
        """Remove all entries.  Hit/miss/eviction counters are kept."""
        with self._lock:
            count = len(self._store)
            self._store.clear()
        logger.debug("Cache cleared: removed %d entries", count)

    def prune(self) -> int:
        """Remove every expired entry and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._store.items() if now > entry.expires_at]
            for key in expired:
                del self._store[key]

        if expired:
            logger.debug("Cache pruned %d expired entries", len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> CacheStats:
        """Return a snapshot of the counters.

        ``hit_rate`` is ``hits / (hits + misses)``.  Stale hits count toward
        neither side, so it reads as the fraction of fully fresh reads.
        """
        with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                stale_hits=self._stale_hits,
                evictions=self._evictions,
                size=len(self._store),
                hit_rate=self._hits / total if total > 0 else 0.0,
            )

    def _evict_lru(self) -> None:
        # Caller holds the lock
        if not self._store:
            return
        key, _ = self._store.popitem(last=False)
        self._evictions += 1
        logger.debug("Cache evicted LRU entry: key=%r", key)
