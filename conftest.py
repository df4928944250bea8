"""
Root conftest for the Jobloom cache test suite.

Provides a controllable monotonic clock so TTL and stale-window tests run
instantly instead of sleeping.
"""

import pytest


class FakeClock:
    """Callable clock whose time only moves when a test advances it."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
