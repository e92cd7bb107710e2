"""
Purpose: In-memory order book for a customer session.
What it does:
- Owns the orders placed in this session (newest first, like an order history screen)
- Stamps an estimated_delivery from a delivery estimate at checkout
- Applies status changes:
   - set_status(order_id, status) for manual changes (forward only)
   - apply_update(order_id, update) for engine updates
- Starts / stops one status engine per order (track, stop_tracking, stop_all)

Rule: Book owns order state, the engine owns timing. Engines never touch
another order, and a stale engine update is dropped instead of rewinding an order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from .models import Order, OrderStatus, ProgressUpdate, utcnow
from .policy import ProgressionPolicy
from .progression import OrderStatusEngine
from .scheduler import Clock, Scheduler
from .state_machine import apply_progress_update, is_stale_update, transition_order_status

if TYPE_CHECKING:
    from routing.pricing import DeliveryCostEstimate

logger = logging.getLogger(__name__)


@dataclass
class OrderBook:
    """
    In-memory order lifecycle manager.

    Engines run independently per order id; there is no ordering between them.
    """
    #all orders by id
    _orders: Dict[str, Order] = field(default_factory=dict)
    #newest first
    _order_ids: List[str] = field(default_factory=list)
    #running engines by order id
    _engines: Dict[str, OrderStatusEngine] = field(default_factory=dict)

    # --- Public API ---

    def add_order(self, order: Order, estimate: Optional["DeliveryCostEstimate"] = None) -> Order:
        """
        Add a newly placed order.

        If a delivery estimate is given and the order has no estimated_delivery
        yet, the estimate's ETA becomes the order's delivery budget.
        """
        if order.id in self._orders:
            #idempotency : dont double insert
            return self._orders[order.id]

        if estimate is not None and order.estimated_delivery is None:
            order.estimated_delivery = order.created_at + estimate.eta

        self._orders[order.id] = order
        self._order_ids.insert(0, order.id)
        return order

    def get_order(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def orders(self) -> List[Order]:
        return [self._orders[order_id] for order_id in self._order_ids]

    def orders_for_customer(self, customer_id: str) -> List[Order]:
        return [order for order in self.orders() if order.customer_id == customer_id]

    def active_orders(self) -> List[Order]:
        return [order for order in self.orders() if not order.is_delivered]

    def __len__(self) -> int:
        return len(self._orders)

    #---- Transition methods ----

    def set_status(self, order_id: str, status: OrderStatus) -> Order:
        """
        Manual status change. Raises OrderStateException on a backward move
        or on a delivered order.
        """
        order = self._require(order_id)
        transition_order_status(order, status)
        if order.is_delivered:
            self.stop_tracking(order_id)
        return order

    def apply_update(self, order_id: str, update: ProgressUpdate) -> Optional[Order]:
        """
        Merge an engine update into the stored order.
        Returns None (and leaves the order alone) when the update is stale.
        """
        order = self._require(order_id)
        if is_stale_update(order, update):
            logger.warning(
                "Dropping stale update for order %s: engine reported %s but order is %s",
                order_id,
                update.status.value,
                order.status.value,
            )
            return None
        return apply_progress_update(order, update)

    #---- Engine management ----

    def track(
        self,
        order_id: str,
        *,
        scheduler: Scheduler,
        clock: Optional[Clock] = None,
        policy: Optional[ProgressionPolicy] = None,
        on_update: Optional[Callable[[Order], None]] = None,
        on_complete: Optional[Callable[[Order], None]] = None,
    ) -> OrderStatusEngine:
        """
        Start the status engine for one order. Tracking an order twice
        returns the engine that is already running.
        """
        order = self._require(order_id)
        running = self._engines.get(order_id)
        if running is not None and running.active:
            return running

        def handle_update(update: ProgressUpdate) -> None:
            updated = self.apply_update(order_id, update)
            if updated is not None and on_update is not None:
                on_update(updated)

        def handle_complete() -> None:
            self._engines.pop(order_id, None)
            if on_complete is not None:
                on_complete(self._orders[order_id])

        engine = OrderStatusEngine(
            order,
            handle_update,
            handle_complete,
            scheduler=scheduler,
            clock=clock or utcnow,
            policy=policy,
        )
        self._engines[order_id] = engine
        engine.start()
        if not engine.active:
            #already delivered, nothing will ever fire
            self._engines.pop(order_id, None)
        return engine

    def is_tracking(self, order_id: str) -> bool:
        engine = self._engines.get(order_id)
        return engine is not None and engine.active

    def stop_tracking(self, order_id: str) -> None:
        engine = self._engines.pop(order_id, None)
        if engine is not None:
            engine.cancel()

    def stop_all(self) -> None:
        for order_id in list(self._engines):
            self.stop_tracking(order_id)

    # --- helpers ---

    def _require(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise KeyError(f"Unknown order {order_id}")
        return order
