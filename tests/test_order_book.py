import logging
from datetime import datetime, timedelta

import pytest

from orders.book import OrderBook
from orders.models import Order, OrderItem, OrderStatus
from orders.scheduler import ManualScheduler
from orders.state_machine import OrderStateException, next_status, transition_order_status
from routing.pricing import estimate_delivery_cost

T0 = datetime(2026, 3, 1, 18, 30, 0)


@pytest.fixture
def scheduler():
    return ManualScheduler(start=T0)


@pytest.fixture
def book():
    return OrderBook()


def make_order(order_id, customer_id="c1", status=OrderStatus.PENDING, minutes=25):
    return Order(
        id=order_id,
        customer_id=customer_id,
        vendor_id="v1",
        items=[
            OrderItem(id="p_bread", name="Brown Bread", price=16.49, quantity=2),
            OrderItem(id="p_eggs", name="Eggs x6", price=32.99),
        ],
        status=status,
        created_at=T0,
        estimated_delivery=T0 + timedelta(minutes=minutes) if minutes else None,
    )


def test_order_total_and_products():
    order = make_order("o1")

    assert order.total == pytest.approx(16.49 * 2 + 32.99)
    assert order.contains_product("p_eggs")
    assert not order.contains_product("p_milk")


def test_status_accepts_raw_strings():
    order = Order(id="o1", customer_id="c1", vendor_id="v1", status="picked")
    assert order.status is OrderStatus.PICKED


def test_add_order_is_idempotent_and_newest_first(book):
    first = make_order("o1")
    second = make_order("o2")

    book.add_order(first)
    book.add_order(second)
    book.add_order(make_order("o1", status=OrderStatus.READY))

    assert [o.id for o in book.orders()] == ["o2", "o1"]
    assert book.get_order("o1").status == OrderStatus.PENDING
    assert len(book) == 2


def test_add_order_uses_delivery_estimate_as_budget(book):
    order = make_order("o1", minutes=None)
    estimate = estimate_delivery_cost((0.0, 0.0), (0.0, 0.01))

    book.add_order(order, estimate)

    assert order.estimated_delivery == T0 + timedelta(minutes=estimate.estimated_time)


def test_add_order_keeps_existing_estimate(book):
    order = make_order("o1", minutes=40)
    book.add_order(order, estimate_delivery_cost((0.0, 0.0), (0.0, 0.01)))

    assert order.estimated_delivery == T0 + timedelta(minutes=40)


def test_manual_transitions_are_forward_only(book):
    book.add_order(make_order("o1"))

    book.set_status("o1", OrderStatus.PREPARING)
    assert book.get_order("o1").status == OrderStatus.PREPARING

    with pytest.raises(OrderStateException):
        book.set_status("o1", OrderStatus.CONFIRMED)

    book.set_status("o1", OrderStatus.DELIVERED)
    with pytest.raises(OrderStateException):
        book.set_status("o1", OrderStatus.DELIVERED)


def test_unknown_order_raises(book):
    with pytest.raises(KeyError):
        book.set_status("missing", OrderStatus.READY)


def test_transition_order_status_helpers():
    order = make_order("o1")
    transition_order_status(order, OrderStatus.CONFIRMED)

    assert order.status == OrderStatus.CONFIRMED
    assert next_status(OrderStatus.CONFIRMED) == OrderStatus.PREPARING
    assert next_status(OrderStatus.DELIVERED) is None


def test_tracked_order_reaches_delivered(book, scheduler):
    order = make_order("o1")
    book.add_order(order)
    seen = []
    completed = []

    book.track(
        "o1",
        scheduler=scheduler,
        clock=scheduler.now,
        on_update=lambda o: seen.append(o.status),
        on_complete=lambda o: completed.append(o.id),
    )
    assert book.is_tracking("o1")

    scheduler.run_until_idle()

    assert order.status == OrderStatus.DELIVERED
    assert order.estimated_delivery <= T0 + timedelta(minutes=25)
    assert seen[-1] == OrderStatus.DELIVERED
    assert completed == ["o1"]
    assert not book.is_tracking("o1")


def test_tracking_twice_reuses_the_running_engine(book, scheduler):
    book.add_order(make_order("o1"))

    first = book.track("o1", scheduler=scheduler, clock=scheduler.now)
    second = book.track("o1", scheduler=scheduler, clock=scheduler.now)

    assert first is second
    assert scheduler.pending == 1


def test_manual_jump_ahead_drops_stale_engine_updates(book, scheduler, caplog):
    order = make_order("o1")
    book.add_order(order)
    completed = []
    book.track("o1", scheduler=scheduler, clock=scheduler.now, on_complete=lambda o: completed.append(o.id))

    book.set_status("o1", OrderStatus.DELIVERING)

    with caplog.at_level(logging.WARNING, logger="orders.book"):
        scheduler.run_until_idle()

    # 1. the order never went backwards
    assert order.status == OrderStatus.DELIVERED
    assert completed == ["o1"]

    # 2. the engine's early stages were reported as stale
    assert "Dropping stale update" in caplog.text


def test_manual_delivery_stops_the_engine(book, scheduler):
    order = make_order("o1")
    book.add_order(order)
    seen = []
    book.track("o1", scheduler=scheduler, clock=scheduler.now, on_update=lambda o: seen.append(o.status))

    scheduler.advance(2000 + 300_000)
    book.set_status("o1", OrderStatus.DELIVERED)
    seen_before = list(seen)
    scheduler.run_until_idle()

    assert seen == seen_before
    assert not book.is_tracking("o1")
    assert order.status == OrderStatus.DELIVERED


def test_stop_all_cancels_every_engine(book, scheduler):
    for order_id in ("o1", "o2", "o3"):
        book.add_order(make_order(order_id))
        book.track(order_id, scheduler=scheduler, clock=scheduler.now)

    book.stop_all()
    scheduler.run_until_idle()

    assert all(o.status == OrderStatus.PENDING for o in book.orders())
    assert not any(book.is_tracking(o.id) for o in book.orders())


def test_tracking_a_delivered_order_does_nothing(book, scheduler):
    book.add_order(make_order("o1", status=OrderStatus.DELIVERED))

    book.track("o1", scheduler=scheduler, clock=scheduler.now)

    assert not book.is_tracking("o1")
    assert scheduler.pending == 0


def test_orders_for_customer_and_active_orders(book):
    book.add_order(make_order("o1", customer_id="c1"))
    book.add_order(make_order("o2", customer_id="c2"))
    book.add_order(make_order("o3", customer_id="c1", status=OrderStatus.DELIVERED))

    assert [o.id for o in book.orders_for_customer("c1")] == ["o3", "o1"]
    assert [o.id for o in book.active_orders()] == ["o2", "o1"]
