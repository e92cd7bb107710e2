"""
Ratings domain package.

Public API:
- Models: ProductRating, RatingCollection
- Policy: can_rate, has_rated, average_rating, vendor_rating
- Flow: RatingSubmissionFlow
- Stores: RatingStore, InMemoryRatingStore, FirestoreRatingStore
- Errors: ValidationError, IneligibleError, RatingStoreError
"""
from .models import ProductRating, RatingCollection
from .errors import IneligibleError, RatingError, RatingStoreError, ValidationError
from .eligibility import average_rating, can_rate, has_rated, vendor_rating
from .store import FirestoreRatingStore, InMemoryRatingStore, RatingStore
from .submission import RatingSubmissionFlow

__all__ = ["ProductRating",
           "RatingCollection",
             "RatingError",
             "ValidationError",
             "IneligibleError",
             "RatingStoreError",
             "can_rate",
             "has_rated",
             "average_rating",
             "vendor_rating",
             "RatingStore",
             "InMemoryRatingStore",
             "FirestoreRatingStore",
             "RatingSubmissionFlow",
             ]
