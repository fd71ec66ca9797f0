"""
Tests for `domain/cart.py`.

Covers contract rules:
- Equal logical carts yield equal fingerprints regardless of input ordering
  or coupon-code case.
- Any change to the cart's contents changes the fingerprint.
- CartState is immutable (frozen).
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

from domain.cart import FINGERPRINT_LENGTH, CartState, cart_fingerprint


def test_fingerprint_ignores_bump_order_and_coupon_case() -> None:
    a = CartState.create("course", order_bump_ids=["b", "a"], coupon_code="save10")
    b = CartState.create("course", order_bump_ids=["a", "b"], coupon_code="SAVE10 ")

    assert cart_fingerprint(a) == cart_fingerprint(b)
    assert len(cart_fingerprint(a)) == FINGERPRINT_LENGTH


def test_fingerprint_treats_missing_fields_as_empty() -> None:
    assert cart_fingerprint(CartState.create("course")) == cart_fingerprint(
        CartState.create("course", coupon_code="", country=None)
    )


def test_fingerprint_changes_with_contents() -> None:
    base = CartState.create("course", country="US")

    assert cart_fingerprint(base) != cart_fingerprint(CartState.create("course", country="DE"))
    assert cart_fingerprint(base) != cart_fingerprint(
        CartState.create("course", country="US", order_bump_ids=["bump"])
    )
    assert cart_fingerprint(base) != cart_fingerprint(CartState.create("course", country="US", plan_id="full"))


def test_fingerprint_accepts_client_mapping() -> None:
    """Verify camelCase mappings hash the same as the equivalent CartState."""

    state = CartState.create("course", order_bump_ids=["bump"], coupon_code="SAVE10", email="Buyer@Example.com")
    mapping = {
        "productId": "course",
        "orderBumpIds": ["bump"],
        "couponCode": "save10",
        "email": "buyer@example.com",
    }

    assert cart_fingerprint(mapping) == cart_fingerprint(state)


def test_cart_state_is_immutable() -> None:
    cart = CartState.create("course")

    with pytest.raises(FrozenInstanceError):
        cart.coupon_code = "SAVE10"  # type: ignore[misc]
