"""
Purpose: Injectable time primitives for the status engine.
What it does:
- Defines the Clock type (zero-arg callable returning a naive UTC datetime)
- Defines the Scheduler contract: call_later(delay_ms, callback) -> TimerHandle
- ManualScheduler: virtual time, advanced explicitly (tests + simulations)
- AsyncioScheduler: real timers on an asyncio event loop

Rule: Schedulers only run callbacks. They know nothing about orders.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Protocol, Tuple

from .models import utcnow

Clock = Callable[[], datetime]


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        ...


class ManualTimer:
    """
    Timer owned by a ManualScheduler. cancel() is idempotent.
    """
    def __init__(self, due_ms: int, callback: Callable[[], None]):
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler driven by virtual time.

    Nothing fires until advance() / run_until_idle() is called, so tests can
    step an order through its whole lifecycle without real waiting.
    Doubles as the clock: pass `scheduler.now` wherever a Clock is expected.
    """
    def __init__(self, start: Optional[datetime] = None):
        self.start = start or utcnow()
        self.elapsed_ms = 0
        self._seq = itertools.count()  # FIFO tie-break for timers due at the same ms
        self._timers: List[Tuple[int, int, ManualTimer]] = []

    def now(self) -> datetime:
        return self.start + timedelta(milliseconds=self.elapsed_ms)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.elapsed_ms + max(0, int(delay_ms)), callback)
        heapq.heappush(self._timers, (timer.due_ms, next(self._seq), timer))
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._timers if not timer.cancelled)

    def advance(self, ms: int) -> int:
        """
        Move virtual time forward by `ms`, firing every timer that becomes due
        (including timers scheduled by callbacks during the advance).
        Returns the number of callbacks fired.
        """
        target = self.elapsed_ms + ms
        fired = 0
        while self._timers and self._timers[0][0] <= target:
            due_ms, _, timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self.elapsed_ms = due_ms
            timer.callback()
            fired += 1
        self.elapsed_ms = target
        return fired

    def run_until_idle(self, max_ms: int = 24 * 60 * 60 * 1000) -> int:
        """
        Fire timers in due order until none are left, or `max_ms` of virtual
        time has passed. Returns the number of callbacks fired.
        """
        limit = self.elapsed_ms + max_ms
        fired = 0
        while self._timers:
            due_ms, _, timer = self._timers[0]
            if due_ms > limit:
                break
            heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self.elapsed_ms = due_ms
            timer.callback()
            fired += 1
        return fired


class AsyncioScheduler:
    """
    Real-time scheduler backed by an asyncio event loop.
    Single-threaded and cooperative: callbacks run on the loop thread.
    """
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0, delay_ms) / 1000.0, callback)
