"""
Funnel service: step entry, offer acceptance/decline and the thank-you summary.

Each call handles exactly one buyer navigation. No session object survives
between calls; inbound state is a `FunnelParams` parsed from the query
string and outbound state is the next step's URL.

Handles:
- Guarding offer steps (missing product/offer -> not found, missing
  credentials -> redirect to thank-you)
- Charging an accepted offer and appending it to the purchases token only
  after the processor reports success
- Building the thank-you summary from the purchases token
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from domain.funnel import (
    CHECKOUT,
    THANK_YOU,
    FunnelAction,
    FunnelParams,
    FunnelPlan,
    FunnelStep,
    PurchasesToken,
    Redirect,
    action_url,
    step_url,
)
from domain.money import format_money
from domain.product import Downsell, Product, Upsell
from repositories.payment_gateway import PaymentGateway
from repositories.product_repository import ProductCatalog
from services.errors import ProductNotFoundError
from services.payment_service import ChargeResult, charge_offer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OfferView:
    offer_id: str
    title: str
    amount: int
    currency: str
    formatted_price: str
    subtitle: Optional[str] = None
    description: str = ""
    benefits: tuple[str, ...] = ()
    original_amount: Optional[int] = None
    urgency_text: Optional[str] = None


@dataclass(frozen=True, slots=True)
class StepView:
    product_slug: str
    step: FunnelStep
    offer: OfferView
    current_step: int
    total_steps: int
    params: FunnelParams
    accept_url: str
    decline_url: str


@dataclass(frozen=True, slots=True)
class Transition:
    """Where the buyer goes next and the purchases token they carry."""
    next_step: FunnelStep
    next_url: str
    purchases: PurchasesToken
    charge: Optional[ChargeResult] = None

    @property
    def advanced(self) -> bool:
        return self.charge is None or self.charge.success


@dataclass(frozen=True, slots=True)
class PurchasedItem:
    offer_id: str
    title: str
    amount: int


@dataclass(frozen=True, slots=True)
class ThankYouSummary:
    product_slug: str
    product_name: str
    purchases: PurchasesToken
    items: tuple[PurchasedItem, ...]
    currency: str
    payment_intent_id: Optional[str] = None
    content: Mapping[str, Any] = field(default_factory=dict)

    @property
    def list_total(self) -> int:
        """Sum of list prices; not the charged amount after coupons or VAT."""
        return sum(item.amount for item in self.items)

    @property
    def formatted_list_total(self) -> str:
        return format_money(self.list_total, self.currency)


def load_funnel(catalog: ProductCatalog, product_slug: str) -> tuple[Product, FunnelPlan]:
    product = catalog.get_product(product_slug)
    if product is None:
        raise ProductNotFoundError(product_slug)
    return product, FunnelPlan.for_product(product)


def _offer_view(offer: Union[Upsell, Downsell]) -> OfferView:
    return OfferView(
        offer_id=offer.id,
        title=offer.title,
        amount=offer.pricing.amount,
        currency=offer.pricing.currency,
        formatted_price=format_money(offer.pricing.amount, offer.pricing.currency),
        subtitle=offer.subtitle,
        description=offer.description,
        benefits=offer.benefits,
        original_amount=offer.original_amount,
        urgency_text=getattr(offer, "urgency_text", None),
    )


def enter_step(
    catalog: ProductCatalog,
    product_slug: str,
    step: FunnelStep,
    params: FunnelParams,
) -> Union[StepView, Redirect]:
    """
    Decide what an upsell/downsell page shows.

    Raises:
        ProductNotFoundError: unknown product
        StepUnavailableError: the product has no such enabled offer step
    """
    product, plan = load_funnel(catalog, product_slug)
    decision = plan.enter(step, params)

    if isinstance(decision, Redirect):
        logger.info(f"{product_slug}/{step.path}: no one-click credentials, redirecting to thank-you")
        return decision

    offer = product.find_embedded_offer(decision.offer_id)

    return StepView(
        product_slug=product_slug,
        step=step,
        offer=_offer_view(offer),
        current_step=decision.current_step,
        total_steps=decision.total_steps,
        params=params,
        accept_url=action_url(product_slug, step, FunnelAction.ACCEPT, params),
        decline_url=action_url(product_slug, step, FunnelAction.DECLINE, params),
    )


def complete_checkout(
    catalog: ProductCatalog,
    product_slug: str,
    *,
    customer_id: Optional[str],
    payment_method_id: Optional[str],
    payment_intent_id: Optional[str],
    included_bump: bool,
) -> Transition:
    """
    Route the buyer onward after the checkout payment succeeded.

    The purchases token starts as ["main"] (plus "bump" when the bump was
    part of the checkout charge).
    """
    product, plan = load_funnel(catalog, product_slug)

    purchases = PurchasesToken()
    if included_bump and product.bump_enabled:
        purchases = purchases.with_offer(product.order_bump.id)

    params = FunnelParams(
        customer_id=customer_id,
        payment_method=payment_method_id,
        purchases=purchases,
        payment_intent=payment_intent_id,
    )

    next_step = plan.next_step(CHECKOUT, FunnelAction.PAY)
    if next_step.is_offer and not params.has_credentials:
        next_step = THANK_YOU

    return Transition(
        next_step=next_step,
        next_url=step_url(product_slug, next_step, params),
        purchases=purchases,
    )


def accept_offer(
    catalog: ProductCatalog,
    gateway: PaymentGateway,
    product_slug: str,
    step: FunnelStep,
    params: FunnelParams,
    *,
    idempotency_key: Optional[str] = None,
) -> Transition:
    """
    Buyer accepted the offer at `step`.

    Process:
    1. Guard the step exactly like page entry (missing credentials -> thank-you)
    2. Charge the offer; stay on the step with the failure when it does not succeed
    3. On success append the offer id to the token and move to the next step

    An offer already present in the token is not charged again.
    """
    _, plan = load_funnel(catalog, product_slug)
    decision = plan.enter(step, params)

    if isinstance(decision, Redirect):
        return Transition(next_step=decision.step, next_url=decision.url, purchases=params.purchases)

    offer_id = decision.offer_id
    next_step = plan.next_step(step, FunnelAction.ACCEPT)

    if offer_id in params.purchases:
        logger.info(f"{product_slug}/{step.path}: {offer_id} already purchased, not charging again")
        return Transition(
            next_step=next_step,
            next_url=step_url(product_slug, next_step, params),
            purchases=params.purchases,
        )

    result = charge_offer(
        params.customer_id,
        params.payment_method,
        product_slug,
        offer_id,
        catalog=catalog,
        gateway=gateway,
        idempotency_key=idempotency_key,
        session_token=f"{params.payment_method}:{params.purchases.serialize()}",
    )

    if not result.success:
        return Transition(
            next_step=step,
            next_url=step_url(product_slug, step, params),
            purchases=params.purchases,
            charge=result,
        )

    purchases = params.purchases.with_offer(result.offer_id)
    forward = params.with_purchases(purchases)

    return Transition(
        next_step=next_step,
        next_url=step_url(product_slug, next_step, forward),
        purchases=purchases,
        charge=result,
    )


def decline_offer(
    catalog: ProductCatalog,
    product_slug: str,
    step: FunnelStep,
    params: FunnelParams,
    *,
    action: FunnelAction = FunnelAction.DECLINE,
) -> Transition:
    """
    Buyer skipped the offer at `step` (DECLINE) or left the funnel (ABANDON).

    The purchases token is carried forward unchanged.
    """
    _, plan = load_funnel(catalog, product_slug)
    plan.offer_id(step)

    next_step = plan.next_step(step, action)
    if next_step.is_offer and not params.has_credentials:
        next_step = THANK_YOU

    return Transition(
        next_step=next_step,
        next_url=step_url(product_slug, next_step, params),
        purchases=params.purchases,
    )


def thank_you(catalog: ProductCatalog, product_slug: str, params: FunnelParams) -> ThankYouSummary:
    """
    Summarize what was bought. No charges happen here.

    Token entries that no longer match an offer are kept in the token but
    left out of the itemized list.
    """
    product, _ = load_funnel(catalog, product_slug)

    items: list[PurchasedItem] = []
    for offer_id in params.purchases:
        offer = product.offer_for_token(offer_id)
        if offer is None:
            logger.warning(f"{product_slug}/thank-you: unknown purchase {offer_id!r}")
            continue
        items.append(PurchasedItem(offer_id=offer_id, title=offer.title, amount=offer.pricing.amount))

    return ThankYouSummary(
        product_slug=product_slug,
        product_name=product.name,
        purchases=params.purchases,
        items=tuple(items),
        currency=product.currency,
        payment_intent_id=params.payment_intent,
        content=product.thank_you,
    )


__all__ = [
    "OfferView",
    "PurchasedItem",
    "StepView",
    "ThankYouSummary",
    "Transition",
    "accept_offer",
    "complete_checkout",
    "decline_offer",
    "enter_step",
    "load_funnel",
    "thank_you",
]
