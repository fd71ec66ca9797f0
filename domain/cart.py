"""
Domain: Cart state snapshot and fingerprint (pure).

Contract excerpts implemented here:
- A cart is an immutable, request-scoped snapshot; it is never persisted.
- The fingerprint canonicalizes the cart first: order bump ids sorted
  ascending, coupon code upper-cased, missing fields as empty strings.
- Equal logical carts yield equal fingerprints regardless of input ordering.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

FINGERPRINT_LENGTH = 16


@dataclass(frozen=True, slots=True)
class CartState:
    product_id: str
    plan_id: Optional[str] = None
    order_bump_ids: frozenset[str] = field(default_factory=frozenset)
    coupon_code: Optional[str] = None
    country: Optional[str] = None
    email: Optional[str] = None
    vat_number: Optional[str] = None

    @classmethod
    def create(
        cls,
        product_id: str,
        *,
        plan_id: Optional[str] = None,
        order_bump_ids: Iterable[str] = (),
        coupon_code: Optional[str] = None,
        country: Optional[str] = None,
        email: Optional[str] = None,
        vat_number: Optional[str] = None,
    ) -> "CartState":
        return cls(
            product_id=product_id,
            plan_id=plan_id,
            order_bump_ids=frozenset(order_bump_ids),
            coupon_code=coupon_code,
            country=country,
            email=email,
            vat_number=vat_number,
        )

    def canonical(self) -> dict[str, Any]:
        """Canonical, order-independent representation used for hashing."""
        return {
            "product_id": self.product_id or "",
            "plan_id": self.plan_id or "",
            "order_bump_ids": sorted(self.order_bump_ids),
            "coupon_code": (self.coupon_code or "").strip().upper(),
            "country": (self.country or "").upper(),
            "email": (self.email or "").strip().lower(),
            "vat_number": self.vat_number or "",
        }


def cart_fingerprint(cart: CartState | Mapping[str, Any]) -> str:
    """
    Stable short digest of a cart.

    Accepts either a CartState or a plain mapping using the same field names
    (camelCase keys from clients are accepted too).

    Example:
        a = CartState.create("course", order_bump_ids=["b", "a"], coupon_code="save10")
        b = CartState.create("course", order_bump_ids=["a", "b"], coupon_code="SAVE10")
        assert cart_fingerprint(a) == cart_fingerprint(b)
    """
    if not isinstance(cart, CartState):
        cart = _cart_from_mapping(cart)

    payload = json.dumps(cart.canonical(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def _cart_from_mapping(data: Mapping[str, Any]) -> CartState:
    def pick(*keys: str) -> Any:
        for key in keys:
            if data.get(key) is not None:
                return data[key]
        return None

    return CartState.create(
        product_id=pick("product_id", "productId") or "",
        plan_id=pick("plan_id", "planId"),
        order_bump_ids=pick("order_bump_ids", "orderBumpIds") or (),
        coupon_code=pick("coupon_code", "couponCode"),
        country=pick("country"),
        email=pick("email"),
        vat_number=pick("vat_number", "vatNumber"),
    )


__all__ = ["CartState", "FINGERPRINT_LENGTH", "cart_fingerprint"]
