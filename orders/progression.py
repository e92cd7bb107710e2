"""
Purpose: Time-driven order status engine.
What it does:
- Works out the delivery budget of an order (estimated_delivery - created_at, or the policy fallback)
- OrderProgression: stepped state object. Each step converts elapsed time into a
  position on the canonical status sequence and reports forward moves only.
- OrderStatusEngine: drives an OrderProgression with an injected Scheduler/Clock,
  calls on_update for every status change and on_complete once on delivery.
- start_order_updates(): the "one call" entry point, returns a cancel handle.

Rule: The engine never raises for bad time budgets. A non-positive budget is
treated as "already due" and produces a single delivered update.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from .models import (
    Order,
    OrderStatus,
    ProgressUpdate,
    STATUS_SEQUENCE,
    TERMINAL_STATUS,
    status_index,
    utcnow,
)
from .policy import ProgressionPolicy, default_progression_policy
from .scheduler import Clock, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[ProgressUpdate], None]
CompleteCallback = Callable[[], None]
CancelHandle = Callable[[], None]


def total_duration_ms(order: Order, policy: Optional[ProgressionPolicy] = None) -> int:
    """
    Delivery budget in milliseconds.

    Uses estimated_delivery - created_at when the estimate lies after
    created_at, otherwise the policy fallback (25 minutes by default).
    """
    policy = policy or default_progression_policy()
    if order.estimated_delivery is not None and order.estimated_delivery > order.created_at:
        budget = order.estimated_delivery - order.created_at
        return int(budget / timedelta(milliseconds=1))
    return policy.fallback_duration_ms


@dataclass
class OrderProgression:
    """
    Explicit state of one order's progression.

    step() is the whole algorithm: one call == one tick. It holds no timers,
    so it can be advanced by any scheduler (or by hand in tests).
    """
    order_id: str
    current_status: OrderStatus
    total_duration_ms: int
    started_at: datetime
    tick_ms: int = 5000
    elapsed_ms: int = 0
    finished: bool = False

    @classmethod
    def for_order(
        cls,
        order: Order,
        *,
        started_at: datetime,
        policy: Optional[ProgressionPolicy] = None,
        total_duration_ms_override: Optional[int] = None,
    ) -> OrderProgression:
        policy = policy or default_progression_policy()
        budget = (
            total_duration_ms_override
            if total_duration_ms_override is not None
            else total_duration_ms(order, policy)
        )
        return cls(
            order_id=order.id,
            current_status=order.status,
            total_duration_ms=budget,
            started_at=started_at,
            tick_ms=policy.tick_ms,
            # an order that is already delivered has nothing left to do
            finished=order.status == TERMINAL_STATUS,
        )

    @property
    def deadline(self) -> datetime:
        return self.started_at + timedelta(milliseconds=max(0, self.total_duration_ms))

    @property
    def progress(self) -> float:
        if self.total_duration_ms <= 0:
            return 1.0
        return min(self.elapsed_ms / self.total_duration_ms, 1.0)

    def target_status(self) -> OrderStatus:
        last = len(STATUS_SEQUENCE) - 1
        index = int(math.floor(self.progress * last))
        #clamp against float rounding
        index = max(0, min(index, last))
        return STATUS_SEQUENCE[index]

    def step(self, now: datetime) -> Optional[ProgressUpdate]:
        """
        Advance by one tick.

        Returns a ProgressUpdate when the order moved forward, None otherwise.
        Once the terminal status has been reported `finished` is set and
        further calls are no-ops.
        """
        if self.finished:
            return None

        target = self.target_status()
        update: Optional[ProgressUpdate] = None

        # forward only: an order that started ahead of the clock waits for it to catch up
        if status_index(target) > status_index(self.current_status):
            self.current_status = target
            remaining_ms = max(0, self.total_duration_ms - self.elapsed_ms)
            projected = now + timedelta(milliseconds=remaining_ms)
            # the projection never runs past the budget measured from engine start
            update = ProgressUpdate(
                status=target,
                estimated_delivery=min(projected, self.deadline),
            )

        if self.current_status == TERMINAL_STATUS:
            self.finished = True
        else:
            # keeps going past the budget if needed: progress is clamped to 1,
            # so the next step lands on delivered
            self.elapsed_ms += self.tick_ms

        return update


class OrderStatusEngine:
    """
    Runs one order's OrderProgression on a scheduler.

    Each engine instance is independent: it owns one progression, one
    pending timer at most, and only talks to its own callbacks.
    """
    def __init__(
        self,
        order: Order,
        on_update: UpdateCallback,
        on_complete: CompleteCallback,
        *,
        scheduler: Scheduler,
        clock: Optional[Clock] = None,
        policy: Optional[ProgressionPolicy] = None,
        total_duration_ms: Optional[int] = None,
    ):
        self.policy = policy or default_progression_policy()
        self.scheduler = scheduler
        self.clock = clock or utcnow
        self.on_update = on_update
        self.on_complete = on_complete

        self.progression = OrderProgression.for_order(
            order,
            started_at=self.clock(),
            policy=self.policy,
            total_duration_ms_override=total_duration_ms,
        )

        self._timer: Optional[TimerHandle] = None
        self._cancelled = False
        self._started = False

    @property
    def order_id(self) -> str:
        return self.progression.order_id

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self.progression.finished

    @property
    def active(self) -> bool:
        return self._started and not self._cancelled and not self.progression.finished

    def start(self) -> CancelHandle:
        if self._started:
            return self.cancel
        self._started = True

        if self.progression.finished:
            logger.info("Order %s already delivered; nothing to track.", self.order_id)
            return self.cancel

        self._timer = self.scheduler.call_later(self.policy.initial_delay_ms, self._tick)
        return self.cancel

    def cancel(self) -> None:
        """
        Stop the engine. Idempotent, and safe after natural completion.
        """
        if self._cancelled:
            return
        self._cancelled = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _tick(self) -> None:
        self._timer = None
        # a timer that already fired may still be queued behind a cancel()
        if self._cancelled or self.progression.finished:
            return

        update = self.progression.step(self.clock())
        if update is not None:
            logger.info(
                "Order %s -> %s (eta %s)",
                self.order_id,
                update.status.value,
                update.estimated_delivery.isoformat(),
            )
            self.on_update(update)

        # on_update is allowed to cancel us
        if self._cancelled:
            return

        if self.progression.finished:
            logger.info("Order %s delivered.", self.order_id)
            self.on_complete()
            return

        self._timer = self.scheduler.call_later(self.policy.tick_ms, self._tick)


def start_order_updates(
    order: Order,
    on_update: UpdateCallback,
    on_complete: CompleteCallback,
    *,
    scheduler: Scheduler,
    clock: Optional[Clock] = None,
    policy: Optional[ProgressionPolicy] = None,
    total_duration_ms: Optional[int] = None,
) -> CancelHandle:
    """
    Start simulating live status updates for `order`.

    Args:
        order: the order to track. Its current status is the starting point.
        on_update: called with a ProgressUpdate every time the status moves forward
        on_complete: called exactly once when the order reaches delivered
        scheduler: timer primitive (ManualScheduler in tests, AsyncioScheduler live)
        clock: wall clock, defaults to utcnow
        policy: tick timings and fallback budget
        total_duration_ms: optional explicit budget (e.g. a delivery ETA);
            overrides the one derived from the order

    Returns:
        A cancel handle. Calling it stops all further callbacks.
    """
    engine = OrderStatusEngine(
        order,
        on_update,
        on_complete,
        scheduler=scheduler,
        clock=clock,
        policy=policy,
        total_duration_ms=total_duration_ms,
    )
    return engine.start()


def format_estimated_delivery(estimated_delivery: Optional[datetime], now: Optional[datetime] = None) -> str:
    """
    Customer facing countdown for an estimated delivery time.
    """
    if estimated_delivery is None:
        return "Calculating..."

    now = now or utcnow()
    remaining_s = (estimated_delivery - now).total_seconds()
    if remaining_s <= 0:
        return "Arriving now"

    minutes = math.ceil(remaining_s / 60)
    if minutes == 1:
        return "1 minute"
    return f"{minutes} minutes"
