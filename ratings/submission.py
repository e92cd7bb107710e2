"""
Purpose: Rating submission flow (the "glue" between eligibility and storage).
What it does:
Takes a star value a customer tapped for a product, checks it against the
orders the session knows about, persists it, and makes it visible to
has_rated / average_rating straight away.

The tapped value is held as a tentative selection while the submission is in
flight. Any failure or cancellation rolls it back to the last committed value.
Only the newest submission for a (product, customer) pair owns that selection,
so an older one finishing late leaves it alone.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from orders.models import Order, utcnow
from orders.scheduler import Clock

from .eligibility import average_rating, can_rate, has_rated
from .errors import IneligibleError, ValidationError
from .models import MAX_RATING, MIN_RATING, ProductRating, RatingCollection, RatingKey
from .store import RatingStore

logger = logging.getLogger(__name__)

OrdersSource = Union[Callable[[], Iterable[Order]], Sequence[Order]]


class RatingSubmissionFlow:
    """
    Orchestrates eligibility check -> store write -> local collection update.

    `orders` is either a snapshot sequence or a zero-arg callable returning the
    current orders (e.g. OrderBook.orders), so a delivery that lands while the
    screen is open is seen by the next submission.
    """
    def __init__(
        self,
        store: RatingStore,
        ratings: Optional[RatingCollection] = None,
        orders: OrdersSource = (),
        *,
        clock: Optional[Clock] = None,
        on_rating_submitted: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.ratings = ratings if ratings is not None else RatingCollection()
        self._orders = orders
        self.clock = clock or utcnow
        self.on_rating_submitted = on_rating_submitted

        self._selected: Dict[RatingKey, int] = {}
        self._submitting: Dict[RatingKey, bool] = {}
        self._owners: Dict[RatingKey, object] = {}

    # --- read side ---

    def orders(self) -> List[Order]:
        if callable(self._orders):
            return list(self._orders())
        return list(self._orders)

    def can_rate(self, product_id: str, customer_id: str) -> bool:
        return can_rate(product_id, customer_id, self.orders())

    def has_rated(self, product_id: str, customer_id: str) -> bool:
        return has_rated(product_id, customer_id, self.ratings)

    def average_rating(self, product_id: str) -> float:
        return average_rating(product_id, self.ratings)

    def committed_rating(self, product_id: str, customer_id: str) -> int:
        existing = self.ratings.get(product_id, customer_id)
        return existing.rating if existing else 0

    def selected_rating(self, product_id: str, customer_id: str) -> int:
        """
        Star value to render: the in-flight selection if any, else the saved rating, else 0.
        """
        key = (product_id, customer_id)
        if key in self._selected:
            return self._selected[key]
        return self.committed_rating(product_id, customer_id)

    def is_submitting(self, product_id: str, customer_id: str) -> bool:
        return self._submitting.get((product_id, customer_id), False)

    # --- write side ---

    async def submit(
        self,
        product_id: str,
        customer_id: str,
        rating: int,
        order_id: Optional[str] = None,
    ) -> ProductRating:
        """
        Submit a 1-5 star rating.

        Raises:
            ValidationError: no order reference, or rating outside 1-5
            IneligibleError: no delivered order of this customer contains the product
            RatingStoreError (or whatever the store raises): persistence failed
        """
        key = (product_id, customer_id)
        # the newest submit for a key owns its selection and submitting flag
        token = object()
        self._owners[key] = token
        self._selected[key] = rating

        try:
            if not order_id:
                raise ValidationError("Order information is required to rate a product.")

            if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
                raise ValidationError(f"Rating must be a whole number between {MIN_RATING} and {MAX_RATING}, got {rating!r}.")

            if not self.can_rate(product_id, customer_id):
                raise IneligibleError("You can only rate products after they have been delivered.")

            product_rating = ProductRating(
                product_id=product_id,
                customer_id=customer_id,
                order_id=order_id,
                rating=rating,
                created_at=self.clock(),
            )

            self._submitting[key] = True
            try:
                await self.store.save_rating(product_rating)
            except Exception:
                logger.error("Failed to submit rating for product %s by %s", product_id, customer_id)
                raise

            self.ratings.upsert(product_rating)
        finally:
            # success clears the selection, anything else (cancellation included) rolls it back
            self._release(key, token)

        logger.info("Customer %s rated product %s: %d", customer_id, product_id, rating)

        if self.on_rating_submitted is not None:
            self.on_rating_submitted()
        return product_rating

    def _release(self, key: RatingKey, token: object) -> None:
        if self._owners.get(key) is not token:
            return
        del self._owners[key]
        self._selected.pop(key, None)
        self._submitting.pop(key, None)

    async def load_ratings(self, product_ids: Iterable[str]) -> int:
        """
        Pull stored ratings for the given products into the session collection
        without overwriting local entries. Returns how many were added.
        """
        product_ids = list(product_ids)
        if not product_ids:
            return 0
        ratings = await self.store.ratings_for_products(product_ids)
        return self.ratings.merge_missing(ratings)
