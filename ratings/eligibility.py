"""
Purpose: Rating eligibility policy.
What it does:
- can_rate: a customer may rate a product once an order of theirs containing
  it has been delivered
- has_rated: informational, does not block re-rating
- average_rating / vendor_rating: plain means, 0 when there is nothing to average

Rule: Pure predicates over snapshots. No storage calls.
"""

from typing import Iterable, Sequence

from orders.models import Order, OrderStatus

from .models import ProductRating


def can_rate(product_id: str, customer_id: str, orders: Iterable[Order]) -> bool:
    return any(
        order.customer_id == customer_id
        and order.status == OrderStatus.DELIVERED
        and order.contains_product(product_id)
        for order in orders
    )


def has_rated(product_id: str, customer_id: str, ratings: Iterable[ProductRating]) -> bool:
    return any(
        rating.product_id == product_id and rating.customer_id == customer_id
        for rating in ratings
    )


def _mean(values: Sequence[int]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def average_rating(product_id: str, ratings: Iterable[ProductRating]) -> float:
    return _mean([rating.rating for rating in ratings if rating.product_id == product_id])


def vendor_rating(product_ids: Iterable[str], ratings: Iterable[ProductRating]) -> float:
    """
    A vendor's rating is the mean over every rating of every product it sells.
    """
    wanted = set(product_ids)
    return _mean([rating.rating for rating in ratings if rating.product_id in wanted])
