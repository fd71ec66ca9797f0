"""
Funnel API Endpoints.

Buyer-facing steps of a product funnel:
checkout -> upsell-1 ... upsell-n -> downsell -> thank-you.

All state between steps travels in the query string
(customer_id, payment_method, purchases, payment_intent).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse, RedirectResponse

from api.dependencies import catalog_dependency, gateway_dependency, settings_dependency
from api.models import (
    ChargeUpsellResponse,
    CheckoutCompleteRequest,
    CheckoutViewResponse,
    OfferModel,
    PricingTierModel,
    PurchasedItemModel,
    StepViewResponse,
    ThankYouResponse,
    TransitionResponse,
)
from domain.funnel import (
    FunnelAction,
    FunnelParams,
    FunnelStep,
    InvalidTransitionError,
    Redirect,
    StepUnavailableError,
)
from domain.money import format_money
from repositories.config import Settings
from repositories.payment_gateway import PaymentGateway
from repositories.product_repository import ProductCatalog
from services.errors import NotFoundError
from services.funnel_service import (
    Transition,
    accept_offer,
    complete_checkout,
    decline_offer,
    enter_step,
    load_funnel,
    thank_you,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _params(
    customer_id: Optional[str],
    payment_method: Optional[str],
    purchases: Optional[str],
    payment_intent: Optional[str],
) -> FunnelParams:
    return FunnelParams.from_query({
        "customer_id": customer_id,
        "payment_method": payment_method,
        "purchases": purchases,
        "payment_intent": payment_intent,
    })


def _parse_offer_step(step_path: str) -> FunnelStep:
    try:
        step = FunnelStep.parse(step_path)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown funnel step: {step_path}")
    if not step.is_offer:
        raise HTTPException(status_code=404, detail=f"Unknown funnel step: {step_path}")
    return step


def _transition_body(transition: Transition) -> dict:
    charge = None
    if transition.charge is not None:
        charge = ChargeUpsellResponse(
            success=transition.charge.success,
            payment_intent_id=transition.charge.payment_intent_id,
            error=transition.charge.error,
            requires_action=transition.charge.requires_action or None,
        )
    model = TransitionResponse(
        next_step=transition.next_step.path,
        next_url=transition.next_url,
        purchases=list(transition.purchases),
        charge=charge,
    )
    return model.model_dump(by_alias=True, exclude_none=True)


@router.get(
    "/{product_slug}/checkout",
    response_model=CheckoutViewResponse,
    summary="Checkout Page",
    description="Main offer, order bump and pricing tiers of a product."
)
def checkout_page(
    product_slug: str,
    catalog: ProductCatalog = Depends(catalog_dependency),
    settings: Settings = Depends(settings_dependency),
):
    try:
        product, plan = load_funnel(catalog, product_slug)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Product not found")

    bump = None
    if product.bump_enabled:
        pricing = product.order_bump.pricing
        bump = OfferModel(
            offer_id=product.order_bump.id,
            title=product.order_bump.title,
            amount=pricing.amount,
            currency=pricing.currency,
            formatted_price=format_money(pricing.amount, pricing.currency),
            description=product.order_bump.description,
        )

    tiers = [
        PricingTierModel(
            id=tier.id,
            label=tier.label,
            amount=tier.amount,
            formatted_price=format_money(tier.amount, product.currency),
            is_default=tier.is_default,
            installment_count=tier.installments.count if tier.installments else None,
        )
        for tier in product.pricing.tiers
    ]

    return CheckoutViewResponse(
        product_slug=product.slug,
        name=product.name,
        amount=product.pricing.amount,
        currency=product.currency,
        formatted_price=format_money(product.pricing.amount, product.currency),
        order_bump=bump,
        pricing_tiers=tiers,
        total_steps=plan.total_steps,
        publishable_key=settings.stripe_publishable_key,
    )


@router.post(
    "/{product_slug}/checkout/complete",
    response_model=TransitionResponse,
    response_model_exclude_none=True,
    summary="Complete Checkout",
    description="Called after the processor UI confirmed the checkout payment; returns the first offer step."
)
def checkout_complete(
    product_slug: str,
    request: CheckoutCompleteRequest,
    catalog: ProductCatalog = Depends(catalog_dependency),
):
    """
    **Example response:**
    ```json
    {
      "nextStep": "upsell-1",
      "nextUrl": "/course/upsell-1?customer_id=cus_123&payment_method=pm_123&purchases=main%2Cbump",
      "purchases": ["main", "bump"]
    }
    ```
    """
    try:
        transition = complete_checkout(
            catalog,
            product_slug,
            customer_id=request.customer_id,
            payment_method_id=request.payment_method_id,
            payment_intent_id=request.payment_intent_id,
            included_bump=request.included_order_bump,
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Product not found")

    return JSONResponse(content=_transition_body(transition))


@router.get(
    "/{product_slug}/thank-you",
    response_model=ThankYouResponse,
    summary="Thank-You Page",
    description="Summary of everything bought in this funnel. No charges happen here."
)
def thank_you_page(
    product_slug: str,
    purchases: Optional[str] = None,
    payment_intent: Optional[str] = None,
    catalog: ProductCatalog = Depends(catalog_dependency),
):
    params = _params(None, None, purchases, payment_intent)

    try:
        summary = thank_you(catalog, product_slug, params)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Product not found")

    return ThankYouResponse(
        product_slug=summary.product_slug,
        product_name=summary.product_name,
        purchases=list(summary.purchases),
        items=[
            PurchasedItemModel(
                offer_id=item.offer_id,
                title=item.title,
                amount=item.amount,
                formatted_amount=format_money(item.amount, summary.currency),
            )
            for item in summary.items
        ],
        list_total=summary.list_total,
        formatted_list_total=summary.formatted_list_total,
        currency=summary.currency,
        payment_intent_id=summary.payment_intent_id,
        content=dict(summary.content),
    )


@router.get(
    "/{product_slug}/{step_path}",
    response_model=StepViewResponse,
    responses={307: {"description": "Missing one-click credentials; redirected to thank-you"}},
    summary="Offer Page",
    description="Upsell or downsell offer. Without customer_id and payment_method the buyer is sent to thank-you."
)
def offer_page(
    product_slug: str,
    step_path: str,
    customer_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    purchases: Optional[str] = None,
    payment_intent: Optional[str] = None,
    catalog: ProductCatalog = Depends(catalog_dependency),
):
    step = _parse_offer_step(step_path)
    params = _params(customer_id, payment_method, purchases, payment_intent)

    try:
        view = enter_step(catalog, product_slug, step, params)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Product not found")
    except StepUnavailableError:
        raise HTTPException(status_code=404, detail="Offer not found")

    if isinstance(view, Redirect):
        return RedirectResponse(url=view.url, status_code=307)

    offer = view.offer
    return StepViewResponse(
        product_slug=view.product_slug,
        step=view.step.path,
        offer=OfferModel(
            offer_id=offer.offer_id,
            title=offer.title,
            amount=offer.amount,
            currency=offer.currency,
            formatted_price=offer.formatted_price,
            subtitle=offer.subtitle,
            description=offer.description,
            benefits=list(offer.benefits),
            original_amount=offer.original_amount,
            urgency_text=offer.urgency_text,
        ),
        current_step=view.current_step,
        total_steps=view.total_steps,
        customer_id=view.params.customer_id,
        payment_method_id=view.params.payment_method,
        purchases=list(view.params.purchases),
        accept_url=view.accept_url,
        decline_url=view.decline_url,
    )


@router.post(
    "/{product_slug}/{step_path}/{action}",
    response_model=TransitionResponse,
    response_model_exclude_none=True,
    responses={400: {"model": TransitionResponse}},
    summary="Accept / Decline Offer",
    description="Accept (charge with the saved card), decline or abandon the offer at a step."
)
def offer_action(
    product_slug: str,
    step_path: str,
    action: str,
    customer_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    purchases: Optional[str] = None,
    payment_intent: Optional[str] = None,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    catalog: ProductCatalog = Depends(catalog_dependency),
    gateway: PaymentGateway = Depends(gateway_dependency),
):
    """
    Move the buyer past an offer step.

    Accept charges the offer and advances only when the processor reports
    success; on failure the buyer stays on the step (400) with the
    processor's reason and an unchanged purchases token.

    **Declined card (400):**
    ```json
    {
      "nextStep": "upsell-1",
      "nextUrl": "/course/upsell-1?customer_id=cus_123&payment_method=pm_123&purchases=main",
      "purchases": ["main"],
      "charge": {"success": false, "error": "Your card was declined."}
    }
    ```
    """
    step = _parse_offer_step(step_path)
    try:
        funnel_action = FunnelAction(action)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown action: {action}")
    if funnel_action is FunnelAction.PAY:
        raise HTTPException(status_code=404, detail=f"Unknown action: {action}")

    params = _params(customer_id, payment_method, purchases, payment_intent)

    try:
        if funnel_action is FunnelAction.ACCEPT:
            transition = accept_offer(
                catalog, gateway, product_slug, step, params, idempotency_key=idempotency_key
            )
        else:
            transition = decline_offer(catalog, product_slug, step, params, action=funnel_action)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Offer not found")
    except StepUnavailableError:
        raise HTTPException(status_code=404, detail="Offer not found")
    except InvalidTransitionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    status_code = 200 if transition.advanced else 400
    return JSONResponse(status_code=status_code, content=_transition_body(transition))
