"""Debounced persistence.

DebouncedWriter is a two-state machine:

    idle --schedule()--> pending(deadline) --timer fires--> idle (write if dirty)
    idle --schedule(), no timer available--> idle (dirty; next schedule() retries)
    pending --schedule()--> pending (same deadline; the timer is not reset)
    pending --flush()--> idle (write now if dirty)
    pending --cancel()--> idle (no write)

Time comes from an injected Scheduler so tests can advance a fake clock
instead of sleeping.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock and timer source for the debouncer."""

    def now(self) -> float:
        """Current time in seconds (monotonic)."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle | None:
        """Run callback after delay seconds.

        Returns None when no timer can be armed; the caller then relies on flush().
        """
        ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; no timer armed")
            return None
        return loop.call_later(delay, callback)


@dataclass(frozen=True)
class Pending:
    """Debouncer state while a write is scheduled."""

    deadline: float
    handle: TimerHandle


class DebouncedWriter:
    """Batch successive mutations into a single delayed write.

    Args:
        write: Persists the current state. Returns True on success.
        delay: Seconds between the first mutation and the write.
        scheduler: Timer source (defaults to the asyncio loop).
    """

    def __init__(
        self,
        write: Callable[[], bool],
        delay: float,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._write = write
        self._delay = delay
        self._scheduler = scheduler or AsyncioScheduler()
        self._state: Pending | None = None
        self.dirty = False

    @property
    def pending(self) -> bool:
        """True while a write is scheduled."""
        return self._state is not None

    @property
    def deadline(self) -> float | None:
        """When the pending write is due, or None when idle."""
        return self._state.deadline if self._state else None

    def schedule(self) -> None:
        """Mark state dirty and arm the timer unless one is already pending.

        If the scheduler cannot arm a timer (no running event loop), the writer
        stays idle and dirty, so a later schedule() can still arm one.
        """
        self.dirty = True
        if self._state is not None:
            return
        deadline = self._scheduler.now() + self._delay
        handle = self._scheduler.call_later(self._delay, self._on_timer)
        if handle is None:
            return
        self._state = Pending(deadline=deadline, handle=handle)

    def cancel(self) -> None:
        """Drop any pending timer without writing."""
        if self._state is not None:
            self._state.handle.cancel()
        self._state = None

    def flush(self) -> bool:
        """Cancel the pending timer and write now if dirty.

        Returns:
            True if nothing needed writing or the write succeeded.
        """
        self.cancel()
        if not self.dirty:
            return True
        return self._run_write()

    def _on_timer(self) -> None:
        self._state = None
        if self.dirty:
            self._run_write()

    def _run_write(self) -> bool:
        ok = self._write()
        if ok:
            self.dirty = False
        return ok
