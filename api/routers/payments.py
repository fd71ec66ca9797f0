"""
Payments API Endpoints.

Endpoints for the checkout PaymentIntent and one-click offer charges.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import catalog_dependency, gateway_dependency, settings_dependency
from api.models import (
    ChargeUpsellRequest,
    ChargeUpsellResponse,
    CreatePaymentIntentRequest,
    CreatePaymentIntentResponse,
    ErrorResponse,
    PriceBreakdownModel,
)
from repositories.config import Settings
from repositories.payment_gateway import PaymentGateway
from repositories.product_repository import ProductCatalog
from services.errors import OfferNotFoundError, ProductNotFoundError, UnsupportedPricingError
from services.payment_service import BuyerProfile, charge_offer, create_initial_intent

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/create-payment-intent",
    response_model=CreatePaymentIntentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Create Checkout Payment Intent",
    description="Price the checkout server-side and create a PaymentIntent that saves the card for one-click offers."
)
def create_payment_intent(
    request: CreatePaymentIntentRequest,
    catalog: ProductCatalog = Depends(catalog_dependency),
    gateway: PaymentGateway = Depends(gateway_dependency),
    settings: Settings = Depends(settings_dependency),
):
    """
    Create the PaymentIntent for the main checkout.

    **Process:**
    1. Looks up the product by slug
    2. Validates the coupon (an invalid coupon gives no discount)
    3. Builds the price breakdown (bump, discount, VAT)
    4. Finds or creates the processor customer by email
    5. Creates a PaymentIntent for the breakdown total

    The amount is always computed here; the client never sends prices.

    **Example request:**
    ```json
    {
      "productSlug": "course",
      "email": "buyer@example.com",
      "country": "US",
      "couponCode": "SAVE10",
      "includeOrderBump": true
    }
    ```
    """
    profile = BuyerProfile(
        email=request.email,
        country=request.country.upper(),
        first_name=request.first_name,
        last_name=request.last_name,
        vat_number=request.vat_number,
    )

    try:
        intent = create_initial_intent(
            request.product_slug,
            profile,
            catalog=catalog,
            gateway=gateway,
            coupon_code=request.coupon_code,
            include_bump=request.include_order_bump,
            price_tier_id=request.price_tier_id,
            prices_include_vat=settings.prices_include_vat,
            business_country=settings.business_country,
            idempotency_key=request.idempotency_key,
        )
    except ProductNotFoundError:
        return JSONResponse(status_code=404, content={"error": "Product not found"})
    except UnsupportedPricingError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception:
        logger.error(f"Failed to create payment intent for {request.product_slug}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to create payment intent"})

    return CreatePaymentIntentResponse(
        client_secret=intent.client_secret,
        customer_id=intent.customer_id,
        payment_intent_id=intent.payment_intent_id,
        breakdown=PriceBreakdownModel.from_domain(intent.breakdown),
    )


@router.post(
    "/charge-upsell",
    response_model=ChargeUpsellResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ChargeUpsellResponse}, 404: {"model": ChargeUpsellResponse}, 500: {"model": ChargeUpsellResponse}},
    summary="Charge One-Click Offer",
    description="Charge an upsell or downsell off-session with the card saved at checkout."
)
def charge_upsell(
    request: ChargeUpsellRequest,
    catalog: ProductCatalog = Depends(catalog_dependency),
    gateway: PaymentGateway = Depends(gateway_dependency),
):
    """
    Charge a post-purchase offer without asking for card details again.

    The offer is looked up among the product's upsells/downsell first, then
    as a standalone product. Retries with the same idempotencyKey (or the
    same sessionToken) never charge twice.

    **Success response:**
    ```json
    {"success": true, "paymentIntentId": "pi_123"}
    ```

    **Declined card (400):**
    ```json
    {"success": false, "error": "Your card was declined."}
    ```
    """
    try:
        result = charge_offer(
            request.customer_id,
            request.payment_method_id,
            request.product_slug,
            request.upsell_id,
            catalog=catalog,
            gateway=gateway,
            idempotency_key=request.idempotency_key,
            session_token=request.session_token,
        )
    except ProductNotFoundError:
        return JSONResponse(status_code=404, content={"success": False, "error": "Product not found"})
    except OfferNotFoundError:
        return JSONResponse(status_code=404, content={"success": False, "error": "Offer not found"})
    except UnsupportedPricingError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})
    except Exception:
        logger.error(f"Failed to charge offer {request.upsell_id} for {request.product_slug}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to process upsell payment"}
        )

    if not result.success:
        body = ChargeUpsellResponse(
            success=False,
            payment_intent_id=result.payment_intent_id,
            error=result.error,
            requires_action=result.requires_action or None,
        )
        return JSONResponse(status_code=400, content=body.model_dump(by_alias=True, exclude_none=True))

    return ChargeUpsellResponse(success=True, payment_intent_id=result.payment_intent_id)
