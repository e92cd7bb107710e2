import asyncio
from datetime import datetime, timedelta

import pytest

from orders.models import Order, OrderItem, OrderStatus, STATUS_SEQUENCE, status_index
from orders.policy import ProgressionPolicy, default_progression_policy
from orders.progression import (
    OrderProgression,
    OrderStatusEngine,
    format_estimated_delivery,
    start_order_updates,
    total_duration_ms,
)
from orders.scheduler import AsyncioScheduler, ManualScheduler

T0 = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture
def scheduler():
    return ManualScheduler(start=T0)


def make_order(order_id="o1", status=OrderStatus.PENDING, budget_minutes=25):
    estimated = T0 + timedelta(minutes=budget_minutes) if budget_minutes is not None else None
    return Order(
        id=order_id,
        customer_id="c1",
        vendor_id="v1",
        items=[OrderItem(id="p_milk", name="Milk", price=18.99)],
        status=status,
        created_at=T0,
        estimated_delivery=estimated,
    )


class Recorder:
    def __init__(self):
        self.updates = []
        self.completions = 0

    def on_update(self, update):
        self.updates.append(update)

    def on_complete(self):
        self.completions += 1

    @property
    def statuses(self):
        return [update.status for update in self.updates]


def run(order, scheduler, **kwargs):
    recorder = Recorder()
    cancel = start_order_updates(
        order,
        recorder.on_update,
        recorder.on_complete,
        scheduler=scheduler,
        clock=scheduler.now,
        **kwargs,
    )
    return recorder, cancel


def test_total_duration_from_estimate_or_fallback():
    assert total_duration_ms(make_order(budget_minutes=10)) == 10 * 60 * 1000
    assert total_duration_ms(make_order(budget_minutes=None)) == 25 * 60 * 1000

    # an estimate that is not after created_at is ignored
    stale = make_order(budget_minutes=0)
    assert total_duration_ms(stale) == 25 * 60 * 1000


def test_full_lifecycle_reaches_delivered_within_budget(scheduler):
    """
    25 minute budget: the engine walks through every stage, completes once,
    and the last projection is not later than created_at + 25 min.
    """
    order = make_order()
    recorder, _ = run(order, scheduler)

    scheduler.run_until_idle()

    # 1. Every stage after the starting one, in order, exactly once
    assert recorder.statuses == list(STATUS_SEQUENCE[1:])

    # 2. A single completion
    assert recorder.completions == 1

    # 3. Projections never exceed the promised delivery time
    assert recorder.updates[-1].estimated_delivery <= T0 + timedelta(minutes=25)
    for update in recorder.updates:
        assert update.estimated_delivery <= T0 + timedelta(minutes=25)

    # 4. Nothing left scheduled, nothing fires afterwards
    assert scheduler.pending == 0
    scheduler.advance(60 * 60 * 1000)
    assert len(recorder.updates) == 6
    assert recorder.completions == 1


def test_no_tick_before_initial_delay(scheduler):
    recorder, _ = run(make_order(budget_minutes=None), scheduler)

    assert scheduler.advance(1999) == 0
    assert scheduler.advance(1) == 1
    # first tick at elapsed 0 keeps the order pending
    assert recorder.updates == []


def test_status_follows_elapsed_time(scheduler):
    recorder, _ = run(make_order(), scheduler)

    # elapsed 300s of 1500s -> 20% -> index 1
    scheduler.advance(2000 + 300_000)
    assert recorder.statuses[-1] == OrderStatus.CONFIRMED

    # elapsed 600s of 1500s -> 40% -> index 2
    scheduler.advance(300_000)
    assert recorder.statuses[-1] == OrderStatus.PREPARING
    assert recorder.completions == 0


def test_budget_not_aligned_with_ticks_still_finishes(scheduler):
    """
    7s budget with 5s ticks: elapsed jumps 0 -> 5s -> 10s, overshooting the
    budget. The overshoot tick must still emit delivered.
    """
    recorder, _ = run(make_order(), scheduler, total_duration_ms=7000)

    scheduler.run_until_idle()

    assert recorder.statuses == [OrderStatus.PICKED, OrderStatus.DELIVERED]
    assert recorder.completions == 1


@pytest.mark.parametrize("budget", [0, -5000])
def test_degenerate_budget_emits_a_single_delivered_update(scheduler, budget):
    recorder, _ = run(make_order(), scheduler, total_duration_ms=budget)

    scheduler.run_until_idle()

    assert recorder.statuses == [OrderStatus.DELIVERED]
    assert recorder.completions == 1


def test_starting_status_ahead_of_the_clock_never_moves_backward(scheduler):
    order = make_order(status=OrderStatus.PREPARING)
    recorder, _ = run(order, scheduler)

    scheduler.run_until_idle()

    assert recorder.statuses[0] == OrderStatus.READY
    assert all(status_index(s) > status_index(OrderStatus.PREPARING) for s in recorder.statuses)
    assert recorder.statuses[-1] == OrderStatus.DELIVERED
    assert recorder.completions == 1


def test_already_delivered_order_is_inert(scheduler):
    recorder, cancel = run(make_order(status=OrderStatus.DELIVERED), scheduler)

    assert scheduler.pending == 0
    scheduler.run_until_idle()

    assert recorder.updates == []
    assert recorder.completions == 0
    cancel()


def test_cancel_before_first_tick_silences_everything(scheduler):
    recorder, cancel = run(make_order(), scheduler)

    cancel()
    cancel()  # idempotent
    scheduler.run_until_idle()

    assert recorder.updates == []
    assert recorder.completions == 0
    assert scheduler.pending == 0


def test_cancel_midway_stops_further_updates(scheduler):
    recorder, cancel = run(make_order(), scheduler)

    scheduler.advance(2000 + 600_000)
    seen = len(recorder.updates)
    assert seen > 0

    cancel()
    scheduler.run_until_idle()

    assert len(recorder.updates) == seen
    assert recorder.completions == 0


def test_cancel_after_completion_is_safe(scheduler):
    recorder, cancel = run(make_order(), scheduler)
    scheduler.run_until_idle()

    cancel()
    cancel()

    assert recorder.completions == 1


def test_cancel_from_inside_on_update(scheduler):
    updates = []
    completions = []
    handle = {}

    def on_update(update):
        updates.append(update)
        handle["cancel"]()

    handle["cancel"] = start_order_updates(
        make_order(),
        on_update,
        lambda: completions.append(True),
        scheduler=scheduler,
        clock=scheduler.now,
    )
    scheduler.run_until_idle()

    assert len(updates) == 1
    assert completions == []


def test_fired_timer_processed_after_cancel_does_nothing(scheduler):
    """
    A timer callback that was already dequeued when cancel() ran must not
    reach the callbacks.
    """
    recorder = Recorder()
    engine = OrderStatusEngine(
        make_order(),
        recorder.on_update,
        recorder.on_complete,
        scheduler=scheduler,
        clock=scheduler.now,
        total_duration_ms=0,
    )
    engine.start()
    engine.cancel()

    engine._tick()

    assert recorder.updates == []
    assert recorder.completions == 0
    assert engine.cancelled
    assert not engine.active


def test_engines_are_independent(scheduler):
    completed = []
    quick = make_order("quick", budget_minutes=10)
    slow = make_order("slow", budget_minutes=25)

    cancel_slow = None
    for order in (slow, quick):
        handle = start_order_updates(
            order,
            lambda update: None,
            lambda order_id=order.id: completed.append(order_id),
            scheduler=scheduler,
            clock=scheduler.now,
        )
        if order is slow:
            cancel_slow = handle

    scheduler.advance(2000 + 10 * 60 * 1000)
    assert completed == ["quick"]

    # cancelling one engine leaves nothing else behind
    cancel_slow()
    scheduler.run_until_idle()
    assert completed == ["quick"]


def test_progression_steps_forward_only():
    progression = OrderProgression(
        order_id="o1",
        current_status=OrderStatus.PENDING,
        total_duration_ms=60_000,
        started_at=T0,
        tick_ms=5000,
    )

    seen = []
    steps = 0
    while not progression.finished:
        update = progression.step(T0 + timedelta(milliseconds=progression.elapsed_ms))
        steps += 1
        if update is not None:
            seen.append(update.status)
        assert steps < 100

    assert seen[-1] == OrderStatus.DELIVERED
    assert [status_index(s) for s in seen] == sorted(set(status_index(s) for s in seen))
    assert progression.step(T0) is None


def test_progression_clamps_status_index():
    progression = OrderProgression(
        order_id="o1",
        current_status=OrderStatus.PENDING,
        total_duration_ms=1000,
        started_at=T0,
        elapsed_ms=10_000,
    )
    assert progression.progress == 1.0
    assert progression.target_status() == OrderStatus.DELIVERED


def test_asyncio_scheduler_runs_to_completion():
    policy = ProgressionPolicy(initial_delay_ms=1, tick_ms=1, fallback_duration_ms=1000)
    recorder = Recorder()

    async def scenario():
        done = asyncio.Event()

        def on_complete():
            recorder.on_complete()
            done.set()

        start_order_updates(
            make_order(),
            recorder.on_update,
            on_complete,
            scheduler=AsyncioScheduler(),
            policy=policy,
            total_duration_ms=6,
        )
        await asyncio.wait_for(done.wait(), timeout=5)

    asyncio.run(scenario())

    assert recorder.statuses[-1] == OrderStatus.DELIVERED
    assert recorder.completions == 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"initial_delay_ms": -1},
        {"tick_ms": 0},
        {"fallback_duration_ms": 0},
    ],
)
def test_progression_policy_validation(overrides):
    with pytest.raises(ValueError):
        ProgressionPolicy(**overrides).validate()


def test_default_policy_timings():
    policy = default_progression_policy()
    assert (policy.initial_delay_ms, policy.tick_ms, policy.fallback_duration_ms) == (2000, 5000, 1_500_000)


def test_format_estimated_delivery():
    now = T0
    assert format_estimated_delivery(None, now) == "Calculating..."
    assert format_estimated_delivery(now - timedelta(seconds=1), now) == "Arriving now"
    assert format_estimated_delivery(now, now) == "Arriving now"
    assert format_estimated_delivery(now + timedelta(seconds=30), now) == "1 minute"
    assert format_estimated_delivery(now + timedelta(minutes=5), now) == "5 minutes"
    assert format_estimated_delivery(now + timedelta(minutes=4, seconds=1), now) == "5 minutes"
