"""
Payment service for checkout and one-click offer charges.

Handles:
- Find-or-create of the buyer's processor customer (keyed by email)
- The initial checkout PaymentIntent, set up to save the payment method
  for later off-session use
- Off-session, immediately confirmed charges of upsell/downsell offers
  against that saved payment method

Declined cards and authentication requests are expected outcomes and are
returned as `ChargeResult(success=False, ...)`. Processor outages propagate
as `PaymentProcessorError`.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

from domain.breakdown import PriceBreakdown
from domain.cart import CartState, cart_fingerprint
from domain.coupon import CouponValidation
from domain.tax import is_eu_country
from repositories.payment_gateway import PaymentDeclinedError, PaymentGateway
from repositories.product_repository import ProductCatalog
from services.coupon_service import resolve_coupon
from services.errors import ProductNotFoundError, UnsupportedPricingError
from services.offer_service import resolve_offer
from services.pricing_service import build_breakdown, select_price

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuyerProfile:
    email: str
    country: str = "US"
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    vat_number: Optional[str] = None

    @property
    def full_name(self) -> Optional[str]:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or None

    def customer_metadata(self) -> dict[str, str]:
        return {"country": self.country, "vatNumber": self.vat_number or ""}


@dataclass(frozen=True, slots=True)
class InitialIntent:
    client_secret: str
    customer_id: str
    payment_intent_id: str
    breakdown: PriceBreakdown
    cart_fingerprint: str


@dataclass(frozen=True, slots=True)
class ChargeResult:
    """
    Outcome of one offer charge.

    success is True only when the processor reported `succeeded`; that is
    the sole proof of purchase the funnel accepts.
    """
    success: bool
    offer_id: str
    payment_intent_id: Optional[str] = None
    error: Optional[str] = None
    requires_action: bool = False


def find_or_create_customer(gateway: PaymentGateway, profile: BuyerProfile) -> str:
    """Reuse the processor customer with this email (updating its details) or create one."""
    customer_id = gateway.find_customer_id(profile.email)
    if customer_id:
        gateway.update_customer(customer_id, profile.full_name, profile.customer_metadata())
        return customer_id
    return gateway.create_customer(profile.email, profile.full_name, profile.customer_metadata())


def offer_idempotency_key(customer_id: str, offer_id: str, session_token: str) -> str:
    """
    Deterministic processor idempotency key for one offer acceptance.

    A network retry of the same click yields the same key, so the processor
    replays the first result instead of charging twice.

    The processor keeps idempotent results for about 24 hours, declines
    included. A buyer who retries the same offer with the same card and the
    same purchases token inside that window gets the cached decline back;
    a fresh attempt needs a client-supplied key or a new payment method.
    """
    raw = "|".join((customer_id, offer_id, session_token))
    return "offer-" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:40]


def create_initial_intent(
    product_slug: str,
    profile: BuyerProfile,
    *,
    catalog: ProductCatalog,
    gateway: PaymentGateway,
    coupon_code: Optional[str] = None,
    include_bump: bool = False,
    price_tier_id: Optional[str] = None,
    prices_include_vat: bool = False,
    business_country: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> InitialIntent:
    """
    Price the checkout and create its PaymentIntent.

    Process:
    1. Resolve the product
    2. Validate the coupon (an invalid coupon simply gives no discount)
    3. Build the price breakdown
    4. Find or create the processor customer by email
    5. Create a PaymentIntent for breakdown.total that saves the payment
       method for off-session use (needed by one-click offers)

    Raises:
        ProductNotFoundError: unknown product slug
        UnsupportedPricingError: installment tier selected or nothing to charge
        PaymentProcessorError: processor failure (not retried)
    """
    product = catalog.get_product(product_slug)
    if product is None:
        raise ProductNotFoundError(product_slug)

    selected = select_price(product, price_tier_id)
    if selected.is_installment_plan:
        raise UnsupportedPricingError("Installment payments are not supported by this checkout")

    coupon: Optional[CouponValidation] = None
    if coupon_code:
        coupon = resolve_coupon(coupon_code, product, gateway)

    breakdown = build_breakdown(
        product,
        include_bump,
        coupon,
        country=profile.country,
        vat_number=profile.vat_number,
        price_tier_id=price_tier_id,
        prices_include_vat=prices_include_vat,
    )

    if breakdown.total <= 0:
        raise UnsupportedPricingError("Order total must be greater than zero")

    fingerprint = cart_fingerprint(
        CartState.create(
            product.id,
            plan_id=selected.tier.id if selected.tier else None,
            order_bump_ids=[product.order_bump.id] if include_bump and product.bump_enabled else [],
            coupon_code=coupon_code,
            country=profile.country,
            email=profile.email,
            vat_number=profile.vat_number,
        )
    )

    customer_id = find_or_create_customer(gateway, profile)

    metadata = {
        "productSlug": product.slug,
        "productId": product.pricing.product_id,
        "productName": product.name,
        "priceId": selected.tier.price_id if selected.tier else product.pricing.price_id,
        "priceTierId": price_tier_id or "",
        "email": profile.email,
        "firstName": profile.first_name or "",
        "lastName": profile.last_name or "",
        "country": profile.country,
        "vatNumber": profile.vat_number or "",
        "couponCode": coupon_code or "",
        "couponId": breakdown.coupon_id or "",
        "includeOrderBump": str(include_bump).lower(),
        "subtotal": str(breakdown.subtotal),
        "discount": str(breakdown.discount),
        "tax": str(breakdown.tax),
        "taxRate": str(breakdown.tax_rate),
        "reverseCharge": str(breakdown.reverse_charge).lower(),
        "isEU": str(is_eu_country(profile.country)).lower(),
        "businessCountry": business_country or "",
        "cartFingerprint": fingerprint,
    }

    intent = gateway.create_payment_intent(
        amount=breakdown.total,
        currency=breakdown.currency,
        customer_id=customer_id,
        metadata=metadata,
        idempotency_key=idempotency_key,
        save_for_off_session=True,
    )

    logger.info(f"Created payment intent {intent.id} for {product.slug} ({breakdown.total} {breakdown.currency})")

    return InitialIntent(
        client_secret=intent.client_secret or "",
        customer_id=customer_id,
        payment_intent_id=intent.id,
        breakdown=breakdown,
        cart_fingerprint=fingerprint,
    )


def charge_offer(
    customer_id: str,
    payment_method_id: str,
    product_slug: str,
    offer_identifier: str,
    *,
    catalog: ProductCatalog,
    gateway: PaymentGateway,
    idempotency_key: Optional[str] = None,
    session_token: Optional[str] = None,
) -> ChargeResult:
    """
    Charge an upsell/downsell with the buyer's saved payment method.

    The PaymentIntent is created off-session and confirmed immediately for
    the offer's exact price.

    Args:
        customer_id: Processor customer created at checkout
        payment_method_id: Payment method saved by the checkout intent
        product_slug: Funnel's main product
        offer_identifier: Upsell/downsell id or slug, or a standalone product slug
        idempotency_key: Client-generated key for this acceptance click
        session_token: Funnel session token used to derive a key when none is given
            (defaults to the payment method id, which is new for every checkout)

    Returns:
        ChargeResult; success only when the processor reports `succeeded`

    Raises:
        ProductNotFoundError / OfferNotFoundError: nothing to charge
        PaymentProcessorError: processor failure other than a decline
    """
    offer = resolve_offer(catalog, product_slug, offer_identifier)

    key = idempotency_key or offer_idempotency_key(
        customer_id, offer.offer_id, session_token or payment_method_id
    )

    metadata = {
        "productSlug": product_slug,
        "upsellId": offer.offer_id,
        "type": offer.role.value,
        "source": offer.source.value,
        "productId": offer.pricing.product_id,
        "productName": offer.title,
    }

    try:
        intent = gateway.create_payment_intent(
            amount=offer.amount,
            currency=offer.currency,
            customer_id=customer_id,
            metadata=metadata,
            idempotency_key=key,
            payment_method_id=payment_method_id,
            off_session=True,
            confirm=True,
        )
    except PaymentDeclinedError as e:
        logger.warning(f"Offer {offer.offer_id} declined for customer {customer_id}: {e.code or e.message}")
        return ChargeResult(
            success=False,
            offer_id=offer.offer_id,
            payment_intent_id=e.payment_intent_id,
            error=e.message,
            requires_action=e.requires_action,
        )

    if intent.status == "succeeded":
        logger.info(f"Charged offer {offer.offer_id} for customer {customer_id}: {intent.id}")
        return ChargeResult(success=True, offer_id=offer.offer_id, payment_intent_id=intent.id)

    if intent.status == "requires_action":
        logger.warning(f"Offer {offer.offer_id} requires authentication: {intent.id}")
        return ChargeResult(
            success=False,
            offer_id=offer.offer_id,
            payment_intent_id=intent.id,
            error="Payment requires additional authentication",
            requires_action=True,
        )

    logger.warning(f"Offer {offer.offer_id} charge ended in status {intent.status}: {intent.id}")
    return ChargeResult(
        success=False,
        offer_id=offer.offer_id,
        payment_intent_id=intent.id,
        error=f"Payment status: {intent.status}",
    )


__all__ = [
    "BuyerProfile",
    "ChargeResult",
    "InitialIntent",
    "charge_offer",
    "create_initial_intent",
    "find_or_create_customer",
    "offer_idempotency_key",
]
