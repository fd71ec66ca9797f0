"""
Pricing service for assembling price breakdowns.

Combines a product's base price, the optional order bump, a coupon
validation result and the buyer's tax jurisdiction into one authoritative
`PriceBreakdown`. Currency is inherited from the product; nothing here
converts currencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from domain.breakdown import LineItem, PriceBreakdown
from domain.cart import CartState, cart_fingerprint
from domain.coupon import CouponValidation, DiscountType
from domain.money import fixed_discount, percent_discount
from domain.product import PricingTier, Product
from domain.tax import compute_tax, is_b2b_purchase
from domain.time import utc_now


@dataclass(frozen=True, slots=True)
class SelectedPrice:
    """Base price chosen for the main offer (default price or a tier)."""
    amount: int
    tier: Optional[PricingTier] = None

    @property
    def is_installment_plan(self) -> bool:
        return self.tier is not None and self.tier.is_installment_plan


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """
    Breakdown plus the cart fingerprint it was computed for.

    Quotes are valid for a limited time so a stale price cannot be replayed.
    """
    breakdown: PriceBreakdown
    fingerprint: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) > self.expires_at


def select_price(product: Product, price_tier_id: Optional[str] = None) -> SelectedPrice:
    """
    Pick the main offer's price.

    An unknown tier id falls back to the product's default price.
    """
    tier = product.pricing.tier(price_tier_id)
    if tier is None:
        return SelectedPrice(amount=product.pricing.amount)
    return SelectedPrice(amount=tier.amount, tier=tier)


def coupon_discount(subtotal: int, coupon: Optional[CouponValidation]) -> int:
    """Discount in minor units for a validated coupon; 0 <= result <= subtotal."""
    if coupon is None or not coupon.valid:
        return 0
    if coupon.discount_type is DiscountType.PERCENT:
        return percent_discount(subtotal, coupon.discount_amount)
    return subtotal - fixed_discount(subtotal, int(coupon.discount_amount))


def build_breakdown(
    product: Product,
    include_bump: bool,
    coupon: Optional[CouponValidation] = None,
    *,
    country: str = "US",
    vat_number: Optional[str] = None,
    price_tier_id: Optional[str] = None,
    prices_include_vat: bool = False,
) -> PriceBreakdown:
    """
    Compute the itemized price for a checkout.

    Algorithm:
    1. subtotal = main price (+ bump price when included and enabled)
    2. discount from the coupon (percent or fixed, capped at subtotal)
    3. tax on (subtotal - discount) for the buyer's jurisdiction
    4. total = subtotal - discount + tax

    Args:
        product: Product configuration
        include_bump: Whether the buyer ticked the order bump
        coupon: Result of coupon validation, if a code was given
        country: Buyer country (ISO alpha-2)
        vat_number: Buyer VAT number; a valid one makes the purchase B2B
        price_tier_id: Optional pricing tier of the main offer
        prices_include_vat: Treat EU B2C prices as VAT-inclusive

    Returns:
        PriceBreakdown in the product's currency

    Example:
        breakdown = build_breakdown(product, include_bump=True)
        print(f"Total: {format_money(breakdown.total, breakdown.currency)}")
    """
    selected = select_price(product, price_tier_id)

    main_name = product.name
    if selected.is_installment_plan:
        main_name = f"{product.name} ({selected.tier.installments.count} payments)"

    items: list[LineItem] = [LineItem(name=main_name, amount=selected.amount, offer_id="main")]
    subtotal = selected.amount

    if include_bump and product.bump_enabled:
        bump = product.order_bump
        items.append(LineItem(name=bump.title, amount=bump.pricing.amount, offer_id=bump.id))
        subtotal += bump.pricing.amount

    discount = coupon_discount(subtotal, coupon)
    after_discount = subtotal - discount

    tax = compute_tax(
        after_discount,
        country,
        vat_number=vat_number,
        is_b2b=is_b2b_purchase(vat_number),
        currency=product.currency,
        prices_include_vat=prices_include_vat,
    )

    return PriceBreakdown(
        subtotal=subtotal,
        discount=discount,
        tax=tax.tax_amount,
        tax_rate=tax.tax_rate,
        total=after_discount + tax.tax_amount,
        currency=product.currency,
        reverse_charge=tax.reverse_charge,
        tax_label=tax.tax_label,
        items=tuple(items),
        coupon_id=coupon.coupon_id if coupon is not None and coupon.valid else None,
    )


def build_quote(
    product: Product,
    cart: CartState,
    coupon: Optional[CouponValidation] = None,
    *,
    prices_include_vat: bool = False,
    quote_validity_minutes: int = 15,
) -> PriceQuote:
    """
    Price a cart snapshot and stamp it with its fingerprint.

    The bump is included when the cart selects the product's bump id.
    """
    include_bump = product.order_bump is not None and product.order_bump.id in cart.order_bump_ids

    breakdown = build_breakdown(
        product,
        include_bump,
        coupon,
        country=cart.country or "US",
        vat_number=cart.vat_number,
        price_tier_id=cart.plan_id,
        prices_include_vat=prices_include_vat,
    )

    now = utc_now()
    return PriceQuote(
        breakdown=breakdown,
        fingerprint=cart_fingerprint(cart),
        created_at=now,
        expires_at=now + timedelta(minutes=quote_validity_minutes),
    )


__all__ = [
    "PriceQuote",
    "SelectedPrice",
    "build_breakdown",
    "build_quote",
    "coupon_discount",
    "select_price",
]
