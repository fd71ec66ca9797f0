"""
Coupon service for validating coupon codes.

Looks coupons up in the payment processor's registry and applies the
redemption rules in `domain.coupon`. A coupon that cannot be found or
fetched is an expected buyer-facing outcome: it is reported as an invalid
coupon, never as a system error.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from domain.coupon import (
    CouponRecord,
    CouponValidation,
    InvalidCoupon,
    evaluate_coupon,
    normalize_coupon_code,
)
from domain.product import Product
from domain.time import utc_now
from repositories.payment_gateway import PaymentGateway, PaymentProcessorError
from repositories.product_repository import ProductCatalog
from services.errors import ProductNotFoundError

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Invalid coupon code"


def resolve_coupon(
    code: str,
    product: Product,
    gateway: PaymentGateway,
    now: Optional[datetime] = None,
) -> CouponValidation:
    """
    Validate a coupon code for an already-resolved product.

    Args:
        code: Coupon code as typed by the buyer (any case)
        product: Product the coupon would apply to (its currency matters
            for fixed-amount coupons)
        gateway: Payment processor gateway
        now: Current UTC time; defaults to the wall clock

    Returns:
        ValidCoupon or InvalidCoupon
    """
    normalized = normalize_coupon_code(code)
    if not normalized:
        return InvalidCoupon(error=INVALID_CODE_MESSAGE)

    try:
        data = gateway.retrieve_coupon(normalized)
    except PaymentProcessorError as e:
        logger.warning(f"Coupon lookup failed for {normalized}: {e}")
        return InvalidCoupon(error=INVALID_CODE_MESSAGE)

    if data is None:
        logger.info(f"Unknown coupon code {normalized} for {product.slug}")
        return InvalidCoupon(error=INVALID_CODE_MESSAGE)

    record = CouponRecord.from_processor(data)
    result = evaluate_coupon(record, now or utc_now(), currency=product.currency)

    if not result.valid:
        logger.info(f"Rejected coupon {normalized} for {product.slug}: {result.error}")

    return result


def validate_coupon(
    code: str,
    product_slug: str,
    *,
    catalog: ProductCatalog,
    gateway: PaymentGateway,
    now: Optional[datetime] = None,
) -> CouponValidation:
    """
    Validate a coupon code against a product.

    Raises:
        ProductNotFoundError: if no product has this slug

    Example:
        result = validate_coupon("save10", "course", catalog=catalog, gateway=gateway)
        if result.valid:
            print(result.discount_type, result.discount_amount)
    """
    product = catalog.get_product(product_slug)
    if product is None:
        raise ProductNotFoundError(product_slug)

    return resolve_coupon(code, product, gateway, now)


__all__ = ["INVALID_CODE_MESSAGE", "resolve_coupon", "validate_coupon"]
