"""Shared pytest fixtures: a manual clock and timer source for the debouncer."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest


class FakeHandle:
    """Timer handle returned by FakeScheduler."""

    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler whose time only moves when a test calls advance()."""

    def __init__(self) -> None:
        self.time = 0.0
        self.timers: list[FakeHandle] = []

    def now(self) -> float:
        return self.time

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(self.time + delay, callback)
        self.timers.append(handle)
        return handle

    @property
    def armed(self) -> list[FakeHandle]:
        """Timers that have neither fired nor been cancelled."""
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        """Move time forward and fire every timer that came due, in order."""
        self.time += seconds
        due = sorted(
            (t for t in self.armed if t.when <= self.time), key=lambda t: t.when
        )
        for timer in due:
            self.timers.remove(timer)
            timer.callback()


class FakeClock:
    """Wall clock for TTL tests, starting at a fixed aware datetime."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ram_path(tmp_path):
    return tmp_path / ".wabisabi" / "ram.json"
