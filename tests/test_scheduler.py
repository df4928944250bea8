"""
Tests for the prune scheduler.

Verifies scheduler initialization, task lifecycle, error handling in the
periodic loop, and that each pass prunes every registered cache.
"""

import asyncio
import logging
from unittest.mock import MagicMock, patch

import pytest

from jobloom_cache.cache import Cache
from jobloom_cache.registry import CacheRegistry
from jobloom_cache.scheduler import PruneScheduler


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def registry(clock) -> CacheRegistry:
    """Registry with two small caches on the fake clock."""
    reg = CacheRegistry()
    reg.register("api", Cache(default_ttl=1.0, max_size=10, clock=clock))
    reg.register("reference", Cache(default_ttl=60.0, max_size=10, clock=clock))
    return reg


@pytest.fixture
def scheduler(registry: CacheRegistry) -> PruneScheduler:
    return PruneScheduler(registry, interval_seconds=60)


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


def test_scheduler_initialization(registry: CacheRegistry) -> None:
    """Scheduler stores the registry and starts idle."""
    sched = PruneScheduler(registry, interval_seconds=30)

    assert sched.registry is registry
    assert sched.interval_seconds == 30
    assert sched.running is False
    assert sched._task is None


@pytest.mark.parametrize("interval", [0, -5])
def test_scheduler_rejects_non_positive_interval(registry: CacheRegistry, interval: int) -> None:
    with pytest.raises(ValueError):
        PruneScheduler(registry, interval_seconds=interval)


# ---------------------------------------------------------------------------
# Start / stop lifecycle
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_scheduler_start_creates_task(scheduler: PruneScheduler) -> None:
    """start() creates the background task and sets running."""
    await scheduler.start()

    assert scheduler.running is True
    assert scheduler._task is not None
    assert not scheduler._task.done()

    await scheduler.stop()


@pytest.mark.asyncio
async def test_scheduler_stop_cancels_task(scheduler: PruneScheduler) -> None:
    """stop() ends the background task and clears running."""
    await scheduler.start()
    await scheduler.stop()

    assert scheduler.running is False
    assert scheduler._task.done()


@pytest.mark.asyncio
async def test_scheduler_double_start_warning(
    scheduler: PruneScheduler, caplog: pytest.LogCaptureFixture
) -> None:
    """A second start() while running logs an 'already running' warning."""
    await scheduler.start()

    with caplog.at_level(logging.WARNING, logger="jobloom_cache.scheduler"):
        await scheduler.start()

    assert "already running" in caplog.text

    await scheduler.stop()


@pytest.mark.asyncio
async def test_scheduler_stop_when_not_running(
    scheduler: PruneScheduler, caplog: pytest.LogCaptureFixture
) -> None:
    """stop() on a scheduler that was never started logs 'not running'."""
    with caplog.at_level(logging.WARNING, logger="jobloom_cache.scheduler"):
        await scheduler.stop()

    assert "not running" in caplog.text


# ---------------------------------------------------------------------------
# Prune passes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_run_once_prunes_every_cache(clock, registry: CacheRegistry, scheduler: PruneScheduler) -> None:
    registry.get("api").set("a", 1)
    registry.get("api").set("b", 2)
    registry.get("reference").set("soc:2136", "Programmers")

    clock.advance(5.0)
    pruned = await scheduler.run_once()

    assert pruned == {"api": 2, "reference": 0}
    assert registry.get("api").get_stats().size == 0
    assert registry.get("reference").has("soc:2136")


@pytest.mark.asyncio
async def test_periodic_task_waits_one_interval_before_pruning(
    clock, registry: CacheRegistry, scheduler: PruneScheduler
) -> None:
    """The first pass runs after the first sleep, not at startup."""
    registry.get("api").set("a", 1)
    clock.advance(5.0)

    real_sleep = asyncio.sleep
    slept = []
    released = asyncio.Event()

    async def fake_sleep(seconds):
        slept.append(seconds)
        if len(slept) == 1:
            assert registry.get("api").get_stats().size == 1
            return
        released.set()
        await real_sleep(3600)

    with patch("jobloom_cache.scheduler.asyncio.sleep", new=fake_sleep):
        await scheduler.start()
        await asyncio.wait_for(released.wait(), timeout=1.0)

    assert slept[0] == 60
    assert registry.get("api").get_stats().size == 0

    await scheduler.stop()


@pytest.mark.asyncio
async def test_periodic_task_survives_errors(
    scheduler: PruneScheduler, caplog: pytest.LogCaptureFixture
) -> None:
    """An exception in one pass is logged and the loop keeps going."""
    calls = 0
    keep_running = asyncio.Event()

    def flaky_prune_all():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("boom")
        keep_running.set()
        return {}

    real_sleep = asyncio.sleep

    async def no_sleep(_seconds):
        await real_sleep(0)

    scheduler.registry.prune_all = MagicMock(side_effect=flaky_prune_all)

    with caplog.at_level(logging.ERROR, logger="jobloom_cache.scheduler"):
        with patch("jobloom_cache.scheduler.asyncio.sleep", new=no_sleep):
            await scheduler.start()
            await asyncio.wait_for(keep_running.wait(), timeout=1.0)
            await scheduler.stop()

    assert calls >= 2
    assert "Error in prune pass" in caplog.text
    assert "boom" in caplog.text
