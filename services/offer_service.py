"""
Offer resolution for one-click charges.

An offer identifier sent by a funnel page names either:
- an upsell/downsell embedded in the main product's funnel (matched by id or slug), or
- a standalone sellable product record used as an offer (matched by slug).

Both are resolved behind one call and returned as a tagged `ResolvedOffer`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from domain.product import OfferRole, PricingDescriptor, Product
from repositories.product_repository import ProductCatalog
from services.errors import OfferNotFoundError, ProductNotFoundError, UnsupportedPricingError

logger = logging.getLogger(__name__)


class OfferSource(str, Enum):
    EMBEDDED = "embedded"
    STANDALONE = "standalone"


@dataclass(frozen=True, slots=True)
class ResolvedOffer:
    source: OfferSource
    offer_id: str
    title: str
    role: OfferRole
    pricing: PricingDescriptor
    product: Product  # funnel's main product

    @property
    def amount(self) -> int:
        return self.pricing.amount

    @property
    def currency(self) -> str:
        return self.pricing.currency.upper()


def resolve_offer(catalog: ProductCatalog, product_slug: str, offer_identifier: str) -> ResolvedOffer:
    """
    Resolve an offer of `product_slug`'s funnel.

    Embedded offers take precedence over a standalone product that happens
    to share the identifier.

    Raises:
        ProductNotFoundError: the funnel's main product does not exist
        OfferNotFoundError: neither an embedded nor a standalone offer matches
        UnsupportedPricingError: a standalone offer is priced in another currency
    """
    product = catalog.get_product(product_slug)
    if product is None:
        raise ProductNotFoundError(product_slug)

    embedded = product.find_embedded_offer(offer_identifier)
    if embedded is not None:
        return ResolvedOffer(
            source=OfferSource.EMBEDDED,
            offer_id=embedded.id,
            title=embedded.title,
            role=embedded.role,
            pricing=embedded.pricing,
            product=product,
        )

    if offer_identifier != product.slug:
        standalone = catalog.get_product(offer_identifier)
        if standalone is not None:
            if standalone.currency != product.currency:
                raise UnsupportedPricingError(
                    f"Offer {offer_identifier} is priced in {standalone.currency}, "
                    f"funnel {product_slug} in {product.currency}"
                )
            return ResolvedOffer(
                source=OfferSource.STANDALONE,
                offer_id=standalone.slug,
                title=standalone.name,
                role=OfferRole.UPSELL,
                pricing=standalone.pricing,
                product=product,
            )

    logger.warning(f"Offer {offer_identifier} not found for product {product_slug}")
    raise OfferNotFoundError(product_slug, offer_identifier)


__all__ = ["OfferSource", "ResolvedOffer", "resolve_offer"]
