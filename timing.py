# =========  timing.py  =========
"""
Timer scheduling for autoplay and capture.

Everything that fires "later" goes through a Scheduler so the same
controller code runs on the live asyncio loop or on a stepped virtual
clock in tests.  All times are integer-ish *milliseconds*.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Callable, Optional, Protocol, runtime_checkable

Callback = Callable[[], None]


class TimerHandle:
    """Cancellation token returned by `Scheduler.call_later()`."""

    def __init__(self, deadline_ms: float, cancel_fn: Optional[Callback] = None):
        self.deadline_ms = deadline_ms
        self._cancel_fn  = cancel_fn
        self._cancelled  = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._cancel_fn:
            self._cancel_fn()
            self._cancel_fn = None


@runtime_checkable
class Scheduler(Protocol):
    def now_ms(self) -> float: ...

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle: ...


# ── live loop ──────────────────────────────────────────────────────────────
class LoopScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return self.loop.time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        delay_ms = max(0.0, delay_ms)
        handle   = TimerHandle(self.now_ms() + delay_ms)

        def _fire() -> None:
            if not handle.cancelled:
                handle._cancelled = True      # one-shot: spent once fired
                callback()

        th = self.loop.call_later(delay_ms / 1000.0, _fire)
        handle._cancel_fn = th.cancel
        return handle


# ── virtual clock ──────────────────────────────────────────────────────────
class SteppedScheduler:
    """
    Deterministic scheduler used for tests.

    Time moves only when `advance()` is called.  Due callbacks fire in
    deadline order; ties fire in the order they were scheduled.  A callback
    scheduled from inside another one still fires within the same
    `advance()` window if its deadline falls inside it.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now   = start_ms
        self._queue: list[tuple[float, int, TimerHandle, Callback]] = []
        self._seq   = itertools.count()

    def now_ms(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(self._now + max(0.0, delay_ms))
        heapq.heappush(self._queue, (handle.deadline_ms, next(self._seq), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h, _ in self._queue if not h.cancelled)

    def advance(self, ms: float) -> float:
        """Move the clock forward by `ms` (must be non-negative)."""
        if ms < 0:
            raise ValueError("ms must be non-negative")
        target = self._now + ms
        while self._queue and self._queue[0][0] <= target:
            deadline, _, handle, callback = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = deadline
            handle._cancelled = True
            callback()
        self._now = target
        return self._now
