"""
Purpose: Domain models for product ratings.
What it does:
- ProductRating (product, customer, order, 1-5 stars, timestamp)
- RatingCollection: the session's ratings keyed by (product_id, customer_id)

A customer has at most one active rating per product: a resubmission
replaces the previous one (last write wins).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from orders.models import utcnow

MIN_RATING = 1
MAX_RATING = 5

RatingKey = Tuple[str, str]


@dataclass(frozen=True)
class ProductRating:
    product_id: str
    customer_id: str
    order_id: str
    rating: int
    created_at: datetime = field(default_factory=utcnow)

    @property
    def key(self) -> RatingKey:
        return (self.product_id, self.customer_id)

    @property
    def document_id(self) -> str:
        #one document per (product, customer) in the rating store
        return f"{self.product_id}_{self.customer_id}"


@dataclass
class RatingCollection:
    """
    In-memory ratings, append or update by key.
    Iteration order is first-insertion order.
    """
    _ratings: Dict[RatingKey, ProductRating] = field(default_factory=dict)

    @classmethod
    def of(cls, ratings: Iterable[ProductRating]) -> RatingCollection:
        collection = cls()
        for rating in ratings:
            collection.upsert(rating)
        return collection

    def upsert(self, rating: ProductRating) -> None:
        self._ratings[rating.key] = rating

    def get(self, product_id: str, customer_id: str) -> Optional[ProductRating]:
        return self._ratings.get((product_id, customer_id))

    def for_product(self, product_id: str) -> List[ProductRating]:
        return [rating for rating in self._ratings.values() if rating.product_id == product_id]

    def merge_missing(self, ratings: Iterable[ProductRating]) -> int:
        """
        Add ratings loaded from the store without overwriting anything the
        session already holds. Returns how many were added.
        """
        added = 0
        for rating in ratings:
            if rating.key not in self._ratings:
                self._ratings[rating.key] = rating
                added += 1
        return added

    def __iter__(self) -> Iterator[ProductRating]:
        return iter(list(self._ratings.values()))

    def __len__(self) -> int:
        return len(self._ratings)

    def __contains__(self, key: object) -> bool:
        return key in self._ratings
