"""
Quotes API Endpoints.

Endpoint for previewing a checkout price before any payment is created.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import catalog_dependency, gateway_dependency, settings_dependency
from api.models import (
    ErrorResponse,
    PriceBreakdownModel,
    QuoteRequest,
    QuoteResponse,
    ValidateCouponResponse,
)
from domain.cart import CartState
from domain.money import format_money
from repositories.config import Settings
from repositories.payment_gateway import PaymentGateway
from repositories.product_repository import ProductCatalog
from services.coupon_service import resolve_coupon
from services.pricing_service import build_quote, select_price

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/quote",
    response_model=QuoteResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Calculate Checkout Quote",
    description="Calculate the price breakdown for a cart. Quote is valid for 15 minutes."
)
def calculate_quote(
    request: QuoteRequest,
    catalog: ProductCatalog = Depends(catalog_dependency),
    gateway: PaymentGateway = Depends(gateway_dependency),
    settings: Settings = Depends(settings_dependency),
):
    """
    Calculate a checkout quote for the buyer's current cart.

    Returns the same breakdown the payment intent would be created for,
    plus the cart fingerprint the intent will carry in its metadata.

    **How it works:**
    1. Looks up the product
    2. Validates the coupon, if any
    3. Builds the breakdown (bump, discount, VAT)

    **Example request:**
    ```json
    {
      "productSlug": "course",
      "country": "DE",
      "couponCode": "SAVE10",
      "includeOrderBump": true
    }
    ```
    """
    product = catalog.get_product(request.product_slug)
    if product is None:
        return JSONResponse(status_code=404, content={"error": "Product not found"})

    try:
        coupon = resolve_coupon(request.coupon_code, product, gateway) if request.coupon_code else None
        selected = select_price(product, request.price_tier_id)

        cart = CartState.create(
            product.id,
            plan_id=selected.tier.id if selected.tier else None,
            order_bump_ids=[product.order_bump.id] if request.include_order_bump and product.bump_enabled else [],
            coupon_code=request.coupon_code,
            country=request.country.upper(),
            email=request.email,
            vat_number=request.vat_number,
        )

        quote = build_quote(product, cart, coupon, prices_include_vat=settings.prices_include_vat)
    except Exception:
        logger.error(f"Failed to calculate quote for {request.product_slug}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to calculate quote"})

    return QuoteResponse(
        breakdown=PriceBreakdownModel.from_domain(quote.breakdown),
        cart_fingerprint=quote.fingerprint,
        formatted_total=format_money(quote.breakdown.total, quote.breakdown.currency),
        coupon=ValidateCouponResponse.from_domain(coupon) if coupon is not None else None,
        created_at=quote.created_at,
        expires_at=quote.expires_at,
    )
