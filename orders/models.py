"""
Purpose: Domain models for the Orders capability.
What it does:
- Defines core data structures:
- Order (id, customer, vendor, line items, timestamps, status, estimated delivery)
- OrderItem (product id, name, price, quantity)
- ProgressUpdate (partial order update emitted by the status engine)

Defines enums/constants:
- OrderStatus = pending | confirmed | preparing | ready | picked | delivering | delivered
- STATUS_SEQUENCE = the canonical ordering of OrderStatus

Rule: No timers, no pricing logic. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple


def utcnow() -> datetime:
    """Naive UTC timestamp, the default clock for the whole orders domain."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    PICKED = "picked"
    DELIVERING = "delivering"
    DELIVERED = "delivered"


#canonical delivery progression, index == stage
STATUS_SEQUENCE: Tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.PICKED,
    OrderStatus.DELIVERING,
    OrderStatus.DELIVERED,
)

TERMINAL_STATUS = OrderStatus.DELIVERED


def status_index(status: OrderStatus) -> int:
    return STATUS_SEQUENCE.index(OrderStatus(status))


@dataclass(frozen=True)
class OrderItem:
    """
    A single product line on an order.
    `id` is the product id, this is what rating eligibility matches against.
    """
    id: str
    name: str
    price: float
    quantity: int = 1
    vendor_id: Optional[str] = None


@dataclass
class Order:
    """
    Represents a customer order moving through the delivery lifecycle.

    created_at is fixed at checkout. estimated_delivery is the current
    projection and is rewritten by the status engine as the order advances.
    """

    id: str
    customer_id: str
    vendor_id: str
    items: List[OrderItem] = field(default_factory=list)

    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    estimated_delivery: Optional[datetime] = None

    delivery_address: Optional[str] = None

    def __post_init__(self) -> None:
        #accept raw strings coming from storage/csv
        self.status = OrderStatus(self.status)

    @property
    def total(self) -> float:
        return sum(item.price * item.quantity for item in self.items)

    @property
    def is_delivered(self) -> bool:
        return self.status == TERMINAL_STATUS

    def contains_product(self, product_id: str) -> bool:
        return any(item.id == product_id for item in self.items)


@dataclass(frozen=True)
class ProgressUpdate:
    """
    Partial order update emitted by the status engine
    (only the fields the engine is allowed to touch).
    """
    status: OrderStatus
    estimated_delivery: datetime
