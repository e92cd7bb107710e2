class RatingError(Exception):
    """Base class for rating flow failures."""
    pass


class ValidationError(RatingError):
    """Raised when a rating is missing required data (order reference, 1-5 value)."""
    pass


class IneligibleError(RatingError):
    """Raised when the customer has no delivered order containing the product."""
    pass


class RatingStoreError(RatingError):
    """Raised by rating stores when persistence fails."""
    pass
