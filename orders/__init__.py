"""
Orders domain package.

Public API:
- Domain models: Order, OrderItem, OrderStatus, ProgressUpdate, STATUS_SEQUENCE
- Status engine: start_order_updates, OrderStatusEngine, OrderProgression
- Time primitives: ManualScheduler, AsyncioScheduler
- Session store: OrderBook
"""
from .models import Order, OrderItem, OrderStatus, ProgressUpdate, STATUS_SEQUENCE, TERMINAL_STATUS
from .policy import ProgressionPolicy, default_progression_policy
from .scheduler import AsyncioScheduler, ManualScheduler
from .progression import (
    OrderProgression,
    OrderStatusEngine,
    format_estimated_delivery,
    start_order_updates,
    total_duration_ms,
)
from .state_machine import OrderStateException, transition_order_status
from .book import OrderBook

__all__ = ["Order",
           "OrderItem",
             "OrderStatus",
               "ProgressUpdate",
               "STATUS_SEQUENCE",
               "TERMINAL_STATUS",
               "ProgressionPolicy",
               "default_progression_policy",
               "AsyncioScheduler",
               "ManualScheduler",
               "OrderProgression",
               "OrderStatusEngine",
               "format_estimated_delivery",
               "start_order_updates",
               "total_duration_ms",
               "OrderStateException",
               "transition_order_status",
               "OrderBook",
               ]
