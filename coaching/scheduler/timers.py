"""Single-shot cancellable timers for the coaching engine.

The engine never touches wall-clock or event-loop timer APIs directly; it is
handed a :class:`Timers` object that provides ``now()`` and
``call_later(delay, callback)``. Two implementations ship:

* :class:`APSchedulerTimers` — one-shot ``date`` jobs on APScheduler's
  ``AsyncIOScheduler``, running entirely within the caller's asyncio event
  loop. Callbacks are dispatched as coroutines so they execute on the loop
  thread, never in the executor's thread pool.
* :class:`ManualTimers` — a virtual clock advanced explicitly with
  :meth:`ManualTimers.advance`. Used for deterministic session replay and
  in tests.

Every handle is idempotently cancellable, and a handle that fires after it
was cancelled does nothing.

Usage::

    timers = APSchedulerTimers()
    handle = timers.call_later(8.0, on_timeout)   # inside a running loop
    handle.cancel()
    await timers.stop()
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)


class TimerHandle:
    """A scheduled callback that runs at most once."""

    def __init__(self, callback: Callable[[], None], due: float) -> None:
        self._callback = callback
        self.due = due
        self.cancelled = False
        self.fired = False
        self._on_cancel: Callable[[], None] | None = None

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if not self.active:
            return
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()

    def run(self) -> None:
        if not self.active:
            return
        self.fired = True
        self._callback()


class Timers(Protocol):
    def now(self) -> float:
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class APSchedulerTimers:
    """Timers backed by APScheduler's ``AsyncIOScheduler``.

    The scheduler is started lazily on the first ``call_later`` so that it
    binds to the running event loop. ``now()`` is ``time.monotonic()``.
    """

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._started = False
        self._ids = itertools.count(1)

    def start(self) -> None:
        if self._started:
            logger.warning("APSchedulerTimers already started")
            return
        self._scheduler.start()
        self._started = True
        logger.debug("APSchedulerTimers started")

    async def stop(self) -> None:
        """Shutdown the scheduler; pending jobs are discarded."""
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.debug("APSchedulerTimers stopped")

    @property
    def is_running(self) -> bool:
        return self._started

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        if not self._started:
            self.start()

        delay = max(0.0, delay)
        handle = TimerHandle(callback, due=self.now() + delay)
        job_id = f"coaching_timer_{next(self._ids)}"
        self._scheduler.add_job(
            self._fire,
            trigger="date",
            run_date=datetime.now(timezone.utc) + timedelta(seconds=delay),
            args=[handle],
            id=job_id,
            misfire_grace_time=None,
        )
        handle._on_cancel = lambda: self._remove_job(job_id)
        return handle

    def pending_jobs(self) -> int:
        return len(self._scheduler.get_jobs())

    async def _fire(self, handle: TimerHandle) -> None:
        try:
            handle.run()
        except Exception as exc:
            logger.error("Timer callback failed: %s", exc, exc_info=True)

    def _remove_job(self, job_id: str) -> None:
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            pass


class ManualTimers:
    """Virtual clock; time only moves when :meth:`advance` is called."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(callback, due=self._now + max(0.0, delay))
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running every timer that falls due, in order."""
        self.advance_to(self._now + max(0.0, seconds))

    def advance_to(self, target: float) -> None:
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            self._now = max(self._now, due)
            handle.run()
        self._now = max(self._now, target)

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle in self._queue if handle.active)
