"""
Service-level exceptions.

Expected business outcomes (invalid coupon, declined card) are returned as
result values, not raised. These exceptions cover missing records and
requests the funnel cannot serve; the API maps them to 4xx responses.
"""

from __future__ import annotations


class NotFoundError(LookupError):
    """A requested record does not exist."""

    code = "NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, slug: str) -> None:
        super().__init__(f"Product not found: {slug}")
        self.slug = slug


class OfferNotFoundError(NotFoundError):
    code = "OFFER_NOT_FOUND"

    def __init__(self, product_slug: str, offer_id: str) -> None:
        super().__init__(f"Offer not found: {offer_id} (product {product_slug})")
        self.product_slug = product_slug
        self.offer_id = offer_id


class UnsupportedPricingError(ValueError):
    """The requested pricing option cannot be sold through this checkout."""


__all__ = [
    "NotFoundError",
    "OfferNotFoundError",
    "ProductNotFoundError",
    "UnsupportedPricingError",
]
