"""
Tests for `repositories/`.

Covers contract rules:
- Supabase rows become validated Products; inactive rows are not served.
- Stripe card errors surface as PaymentDeclinedError (with requires_action for
  authentication), other Stripe errors as PaymentProcessorError.
- Unknown coupons are None, not errors.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import stripe

from repositories.payment_gateway import (
    PaymentDeclinedError,
    PaymentProcessorError,
    StripeGateway,
)
from repositories.product_repository import SupabaseProductCatalog


class FakeQuery:
    def __init__(self, rows):
        self.rows = rows
        self.filters = []

    def select(self, columns):
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def limit(self, count):
        return self

    def execute(self):
        rows = [r for r in self.rows if all(r.get(c) == v for c, v in self.filters)]
        return SimpleNamespace(data=rows, error=None)


class FakeSupabase:
    def __init__(self, rows):
        self.rows = rows

    def table(self, name):
        assert name == "products"
        return FakeQuery(self.rows)


def test_supabase_catalog_reads_rows(course_config) -> None:
    config = {k: v for k, v in course_config.items() if k != "slug"}
    client = FakeSupabase([
        {"id": "p1", "slug": "course", "config": config, "active": True},
        {"id": "p2", "slug": "old", "config": {"name": "Old", "stripe": {"priceAmount": 100, "currency": "USD"}}, "active": False},
    ])
    catalog = SupabaseProductCatalog(client=client)

    product = catalog.get_product("course")

    assert product.id == "p1"
    assert product.slug == "course"
    assert product.pricing.amount == 9900
    assert catalog.get_product("old") is None
    assert catalog.get_product("missing") is None
    assert catalog.list_slugs() == ["course"]


def test_supabase_catalog_accepts_json_string_config() -> None:
    client = FakeSupabase([
        {"slug": "guide", "config": '{"name": "Guide", "stripe": {"priceAmount": 500, "currency": "EUR"}}', "active": True},
    ])

    product = SupabaseProductCatalog(client=client).get_product("guide")

    assert product.currency == "EUR"
    assert product.id == "guide"


@pytest.fixture
def stripe_gateway(monkeypatch) -> StripeGateway:
    monkeypatch.setattr(stripe, "api_key", None)
    return StripeGateway(api_key="sk_test_123")


def test_card_error_becomes_decline(monkeypatch, stripe_gateway) -> None:
    def create(**params):
        raise stripe.CardError("Your card was declined.", None, "card_declined")

    monkeypatch.setattr(stripe.PaymentIntent, "create", create)

    with pytest.raises(PaymentDeclinedError) as info:
        stripe_gateway.create_payment_intent(
            amount=4900, currency="USD", customer_id="cus_1", metadata={}, confirm=True, off_session=True
        )

    assert info.value.message == "Your card was declined."
    assert info.value.requires_action is False


def test_authentication_required_sets_requires_action(monkeypatch, stripe_gateway) -> None:
    def create(**params):
        raise stripe.CardError("Authentication required.", None, "authentication_required")

    monkeypatch.setattr(stripe.PaymentIntent, "create", create)

    with pytest.raises(PaymentDeclinedError) as info:
        stripe_gateway.create_payment_intent(amount=4900, currency="USD", customer_id="cus_1", metadata={})

    assert info.value.requires_action is True


def test_other_stripe_errors_become_processor_errors(monkeypatch, stripe_gateway) -> None:
    def create(**params):
        raise stripe.APIConnectionError("network down")

    monkeypatch.setattr(stripe.PaymentIntent, "create", create)

    with pytest.raises(PaymentProcessorError):
        stripe_gateway.create_payment_intent(amount=4900, currency="USD", customer_id="cus_1", metadata={})


def test_payment_intent_params(monkeypatch, stripe_gateway) -> None:
    captured = {}

    def create(**params):
        captured.update(params)
        return SimpleNamespace(id="pi_1", status="succeeded", client_secret="secret", amount=4900, currency="usd")

    monkeypatch.setattr(stripe.PaymentIntent, "create", create)

    result = stripe_gateway.create_payment_intent(
        amount=4900,
        currency="USD",
        customer_id="cus_1",
        metadata={"upsellId": "upsell-1"},
        idempotency_key="offer-abc",
        payment_method_id="pm_1",
        off_session=True,
        confirm=True,
    )

    assert result.status == "succeeded"
    assert captured == {
        "amount": 4900,
        "currency": "usd",
        "customer": "cus_1",
        "metadata": {"upsellId": "upsell-1"},
        "payment_method": "pm_1",
        "off_session": True,
        "confirm": True,
        "idempotency_key": "offer-abc",
    }
    assert stripe.api_key == "sk_test_123"


def test_checkout_intent_saves_card(monkeypatch, stripe_gateway) -> None:
    captured = {}

    def create(**params):
        captured.update(params)
        return SimpleNamespace(id="pi_1", status="requires_payment_method", client_secret="secret")

    monkeypatch.setattr(stripe.PaymentIntent, "create", create)

    stripe_gateway.create_payment_intent(
        amount=11800, currency="USD", customer_id="cus_1", metadata={}, save_for_off_session=True
    )

    assert captured["setup_future_usage"] == "off_session"
    assert captured["automatic_payment_methods"] == {"enabled": True}


def test_unknown_coupon_is_none(monkeypatch, stripe_gateway) -> None:
    def retrieve(code):
        raise stripe.InvalidRequestError("No such coupon", "coupon")

    monkeypatch.setattr(stripe.Coupon, "retrieve", retrieve)

    assert stripe_gateway.retrieve_coupon("NOPE") is None


def test_coupon_fields_are_copied(monkeypatch, stripe_gateway) -> None:
    coupon = SimpleNamespace(id="SAVE10", valid=True, percent_off=10.0, times_redeemed=3)
    monkeypatch.setattr(stripe.Coupon, "retrieve", lambda code: coupon)

    data = stripe_gateway.retrieve_coupon("SAVE10")

    assert data["id"] == "SAVE10"
    assert data["percent_off"] == 10.0
    assert data["amount_off"] is None
    assert data["times_redeemed"] == 3
