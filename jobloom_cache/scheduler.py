"""
Background scheduler for periodic cache pruning.

Cache expiration is lazy, so entries that are never read again stay in
memory until LRU eviction reaches them.  This scheduler sweeps every
registered cache at a fixed interval to release them.
"""

import asyncio
import logging
from typing import Dict, Optional

from jobloom_cache.registry import CacheRegistry

logger = logging.getLogger(__name__)


class PruneScheduler:
    """
    Scheduler for the periodic prune task.

    Owns a single asyncio task that sleeps for ``interval_seconds`` and then
    calls ``CacheRegistry.prune_all()``, repeatedly.
    """

    def __init__(self, registry: CacheRegistry, interval_seconds: int) -> None:
        """
        Initialize the scheduler.

        Args:
            registry: Caches to prune
            interval_seconds: Seconds between prune passes
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.registry = registry
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background prune task."""
        if self._running:
            logger.warning("Prune scheduler already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_periodic_task())
        logger.info(
            "Prune scheduler started: %d caches every %ds",
            len(self.registry.names()),
            self.interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the background prune task."""
        if not self._running:
            logger.warning("Prune scheduler not running")
            return

        self._running = False
        logger.info("Stopping prune scheduler")

        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)

        logger.info("Prune scheduler stopped")

    async def run_once(self) -> Dict[str, int]:
        """Prune every cache once and return per-cache removal counts."""
        pruned = self.registry.prune_all()
        logger.debug("Prune pass complete: %s", pruned)
        return pruned

    async def _run_periodic_task(self) -> None:
        logger.info("Starting periodic prune with interval %ds", self.interval_seconds)

        # Caches start empty, so the first pass waits one full interval
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                logger.info("Periodic prune cancelled")
                break

            try:
                await self.run_once()
            except Exception as e:
                # Log error but keep the schedule alive
                logger.error("Error in prune pass: %s", str(e), exc_info=True)
