"""
Domain: Product and offer configuration.

Product configuration is owned by admin tooling; this core only reads it.
Each offer role (main, bump, upsell, downsell) is its own type with its own
required fields.

Contract excerpts implemented here:
- Every offer carries its own pricing descriptor (minor units + currency).
- All offers assembled into one funnel share one currency; mixed-currency
  products are rejected when the configuration is loaded.
- Upsells are ordered; only enabled offers take part in a funnel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional, Sequence, Union

from .money import ensure_same_currency, is_supported_currency


class ProductConfigError(ValueError):
    """Raised when a product configuration is malformed or inconsistent."""


class OfferRole(str, Enum):
    MAIN = "main"
    BUMP = "bump"
    UPSELL = "upsell"
    DOWNSELL = "downsell"


@dataclass(frozen=True, slots=True)
class InstallmentPlan:
    count: int
    interval_label: str
    amount_per_payment: int


@dataclass(frozen=True, slots=True)
class PricingTier:
    id: str
    label: str
    amount: int
    price_id: str = ""
    original_amount: Optional[int] = None
    is_default: bool = False
    description: Optional[str] = None
    installments: Optional[InstallmentPlan] = None

    @property
    def is_installment_plan(self) -> bool:
        return self.installments is not None


@dataclass(frozen=True, slots=True)
class PricingDescriptor:
    """
    Price of one offer.

    amount is the default price in minor units; tiers optionally offer
    alternative prices (e.g. pay in full vs. installments).
    """

    amount: int
    currency: str
    product_id: str = ""
    price_id: str = ""
    tiers: tuple[PricingTier, ...] = ()

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ProductConfigError("price amount must be >= 0")
        if not is_supported_currency(self.currency):
            raise ProductConfigError(f"Unsupported currency: {self.currency}")
        for tier in self.tiers:
            if tier.amount < 0:
                raise ProductConfigError(f"tier {tier.id!r} amount must be >= 0")

    def tier(self, tier_id: Optional[str]) -> Optional[PricingTier]:
        """Tier with the given id; None when no id is given or it is unknown."""
        if not tier_id:
            return None
        for tier in self.tiers:
            if tier.id == tier_id:
                return tier
        return None


@dataclass(frozen=True, slots=True)
class MainOffer:
    role: ClassVar[OfferRole] = OfferRole.MAIN

    id: str
    title: str
    pricing: PricingDescriptor
    enabled: bool = True


@dataclass(frozen=True, slots=True)
class OrderBump:
    role: ClassVar[OfferRole] = OfferRole.BUMP

    title: str
    pricing: PricingDescriptor
    enabled: bool = True
    id: str = "bump"
    description: str = ""
    savings_percent: Optional[int] = None


@dataclass(frozen=True, slots=True)
class Upsell:
    role: ClassVar[OfferRole] = OfferRole.UPSELL

    id: str
    slug: str
    title: str
    pricing: PricingDescriptor
    enabled: bool = True
    subtitle: Optional[str] = None
    description: str = ""
    benefits: tuple[str, ...] = ()
    original_amount: Optional[int] = None
    urgency_text: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Downsell:
    role: ClassVar[OfferRole] = OfferRole.DOWNSELL

    title: str
    pricing: PricingDescriptor
    enabled: bool = True
    id: str = "downsell"
    slug: str = "downsell"
    subtitle: Optional[str] = None
    description: str = ""
    benefits: tuple[str, ...] = ()
    original_amount: Optional[int] = None


Offer = Union[MainOffer, OrderBump, Upsell, Downsell]


@dataclass(frozen=True, slots=True)
class Product:
    """
    A sellable product and the funnel assembled around it.

    Immutability:
    - Frozen so a configuration read at the start of a request cannot
      change while a price is being computed.
    """

    id: str
    slug: str
    name: str
    pricing: PricingDescriptor
    order_bump: Optional[OrderBump] = None
    upsells: tuple[Upsell, ...] = ()
    downsell: Optional[Downsell] = None
    thank_you: Mapping[str, Any] = field(default_factory=dict)
    active: bool = True

    def __post_init__(self) -> None:
        try:
            ensure_same_currency(offer.pricing.currency for offer in self.offers())
        except ValueError as e:
            raise ProductConfigError(f"Product {self.slug!r}: {e}") from e

        seen: set[str] = set()
        for upsell in self.upsells:
            if upsell.id in seen:
                raise ProductConfigError(f"Product {self.slug!r}: duplicate upsell id {upsell.id!r}")
            seen.add(upsell.id)

    @property
    def currency(self) -> str:
        return self.pricing.currency.upper()

    @property
    def main_offer(self) -> MainOffer:
        return MainOffer(id="main", title=self.name, pricing=self.pricing)

    @property
    def bump_enabled(self) -> bool:
        return self.order_bump is not None and self.order_bump.enabled

    @property
    def downsell_enabled(self) -> bool:
        return self.downsell is not None and self.downsell.enabled

    @property
    def enabled_upsells(self) -> tuple[Upsell, ...]:
        return tuple(u for u in self.upsells if u.enabled)

    def offers(self) -> list[Offer]:
        """Every configured offer, enabled or not, main offer first."""
        result: list[Offer] = [self.main_offer]
        if self.order_bump is not None:
            result.append(self.order_bump)
        result.extend(self.upsells)
        if self.downsell is not None:
            result.append(self.downsell)
        return result

    def find_embedded_offer(self, identifier: str) -> Optional[Union[Upsell, Downsell]]:
        """Enabled upsell matched by id or slug, else the enabled downsell matched by id or slug."""
        for upsell in self.enabled_upsells:
            if identifier in (upsell.id, upsell.slug):
                return upsell
        if self.downsell_enabled and identifier in (self.downsell.id, self.downsell.slug):
            return self.downsell
        return None

    def offer_for_token(self, identifier: str) -> Optional[Offer]:
        """Offer named by a purchases-token entry ("main", "bump", upsell/downsell id)."""
        if identifier == "main":
            return self.main_offer
        if self.order_bump is not None and identifier == self.order_bump.id:
            return self.order_bump
        return self.find_embedded_offer(identifier)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @classmethod
    def from_config(cls, data: Mapping[str, Any]) -> "Product":
        """
        Build a Product from a configuration mapping.

        Accepts the stored JSON shape, where each offer's price lives
        under "stripe" ({"priceAmount", "currency", "priceId", "productId",
        "pricingTiers"}), or the same keys in snake_case under "pricing".

        Raises:
            ProductConfigError: if a required field is missing or invalid
        """
        try:
            slug = str(data["slug"])
            bump_data = data.get("orderBump") or data.get("order_bump")
            downsell_data = data.get("downsell")
            upsell_data: Sequence[Mapping[str, Any]] = data.get("upsells") or ()

            return cls(
                id=str(data.get("id") or slug),
                slug=slug,
                name=str(data["name"]),
                pricing=_parse_pricing(data),
                order_bump=_parse_bump(bump_data) if bump_data else None,
                upsells=tuple(_parse_upsell(u, i) for i, u in enumerate(upsell_data, start=1)),
                downsell=_parse_downsell(downsell_data) if downsell_data else None,
                thank_you=dict(data.get("thankYou") or data.get("thank_you") or {}),
                active=bool(data.get("active", True)),
            )
        except ProductConfigError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ProductConfigError(f"Invalid product configuration: {e!r}") from e


def _get(data: Mapping[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in data and data[camel] is not None:
        return data[camel]
    return data.get(snake, default)


def _parse_installments(data: Optional[Mapping[str, Any]]) -> Optional[InstallmentPlan]:
    if not data:
        return None
    return InstallmentPlan(
        count=int(data["count"]),
        interval_label=str(_get(data, "intervalLabel", "interval_label", "month")),
        amount_per_payment=int(_get(data, "amountPerPayment", "amount_per_payment")),
    )


def _parse_tier(data: Mapping[str, Any]) -> PricingTier:
    original = _get(data, "originalPrice", "original_amount")
    return PricingTier(
        id=str(data["id"]),
        label=str(data.get("label", data["id"])),
        amount=int(_get(data, "priceAmount", "amount")),
        price_id=str(_get(data, "priceId", "price_id", "")),
        original_amount=int(original) if original is not None else None,
        is_default=bool(_get(data, "isDefault", "is_default", False)),
        description=data.get("description"),
        installments=_parse_installments(data.get("installments")),
    )


def _parse_pricing(data: Mapping[str, Any]) -> PricingDescriptor:
    block = data.get("stripe") or data.get("pricing")
    if block is None:
        raise ProductConfigError("offer has no pricing descriptor")
    tiers = _get(block, "pricingTiers", "tiers") or ()
    return PricingDescriptor(
        amount=int(_get(block, "priceAmount", "amount")),
        currency=str(block["currency"]).upper(),
        product_id=str(_get(block, "productId", "product_id", "")),
        price_id=str(_get(block, "priceId", "price_id", "")),
        tiers=tuple(_parse_tier(t) for t in tiers),
    )


def _parse_bump(data: Mapping[str, Any]) -> OrderBump:
    return OrderBump(
        id=str(data.get("id") or "bump"),
        title=str(data["title"]),
        pricing=_parse_pricing(data),
        enabled=bool(data.get("enabled", True)),
        description=str(data.get("description") or ""),
        savings_percent=_get(data, "savingsPercent", "savings_percent"),
    )


def _parse_upsell(data: Mapping[str, Any], position: int) -> Upsell:
    slug = str(data.get("slug") or f"upsell-{position}")
    original = _get(data, "originalPrice", "original_amount")
    return Upsell(
        id=str(data.get("id") or slug),
        slug=slug,
        title=str(data["title"]),
        pricing=_parse_pricing(data),
        enabled=bool(data.get("enabled", True)),
        subtitle=data.get("subtitle"),
        description=str(data.get("description") or ""),
        benefits=tuple(data.get("benefits") or ()),
        original_amount=int(original) if original is not None else None,
        urgency_text=_get(data, "urgencyText", "urgency_text"),
    )


def _parse_downsell(data: Mapping[str, Any]) -> Downsell:
    original = _get(data, "originalPrice", "original_amount")
    return Downsell(
        id=str(data.get("id") or "downsell"),
        slug=str(data.get("slug") or "downsell"),
        title=str(data["title"]),
        pricing=_parse_pricing(data),
        enabled=bool(data.get("enabled", True)),
        subtitle=data.get("subtitle"),
        description=str(data.get("description") or ""),
        benefits=tuple(data.get("benefits") or ()),
        original_amount=int(original) if original is not None else None,
    )


__all__ = [
    "Downsell",
    "InstallmentPlan",
    "MainOffer",
    "Offer",
    "OfferRole",
    "OrderBump",
    "PricingDescriptor",
    "PricingTier",
    "Product",
    "ProductConfigError",
    "Upsell",
]
