from typing import Optional

from .models import Order, OrderStatus, ProgressUpdate, STATUS_SEQUENCE, TERMINAL_STATUS, status_index


class OrderStateException(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


def ensure_forward(order: Order, new_status: OrderStatus) -> OrderStatus:
    """
    Validates a status change without applying it.
    Delivered orders are frozen, and the sequence only ever moves forward.
    """
    new_status = OrderStatus(new_status)

    if order.status == TERMINAL_STATUS:
        raise OrderStateException(f"Order {order.id} is already delivered and can no longer change.")

    if status_index(new_status) < status_index(order.status):
        raise OrderStateException(
            f"Cannot move order {order.id} backward from {order.status.value} to {new_status.value}"
        )
    return new_status


def transition_order_status(order: Order, new_status: OrderStatus) -> Order:
    """
    Manual status change (e.g. a vendor confirming an order by hand).
    Rejects backward moves instead of letting them race a running engine.
    """
    order.status = ensure_forward(order, new_status)
    return order


def apply_progress_update(order: Order, update: ProgressUpdate) -> Order:
    """
    Applies an engine update (status + refreshed estimate) to the order.
    """
    order.status = ensure_forward(order, update.status)
    order.estimated_delivery = update.estimated_delivery
    return order


def is_stale_update(order: Order, update: ProgressUpdate) -> bool:
    """
    True when the order has already moved past what the engine is reporting,
    which happens after a manual transition while the engine was running.
    """
    if order.status == TERMINAL_STATUS:
        return True
    return status_index(update.status) < status_index(order.status)


def next_status(status: OrderStatus) -> Optional[OrderStatus]:
    index = status_index(status)
    if index + 1 >= len(STATUS_SEQUENCE):
        return None
    return STATUS_SEQUENCE[index + 1]
