"""
Tests for `services/payment_service.py` and `services/offer_service.py`.

Covers contract rules:
- The checkout intent amount is computed server-side and saves the card for off-session use.
- Customers are found by email before a new one is created.
- Offer charges are off-session, confirmed immediately, for the offer's exact price.
- Only `succeeded` counts as a purchase; declines and `requires_action` are
  returned as failures, never raised.
- Repeated charges with the same idempotency key never charge twice.
- Embedded offers win over standalone products; standalone offers must share the currency.
"""

from __future__ import annotations

import pytest

from repositories.payment_gateway import PaymentDeclinedError, PaymentProcessorError
from services.errors import OfferNotFoundError, ProductNotFoundError, UnsupportedPricingError
from services.offer_service import OfferSource, resolve_offer
from services.payment_service import (
    BuyerProfile,
    charge_offer,
    create_initial_intent,
    offer_idempotency_key,
)

BUYER = BuyerProfile(email="buyer@example.com", country="US", first_name="Ada", last_name="Lovelace")


# ---------------------------------------------------------------------------
# Checkout intent
# ---------------------------------------------------------------------------

def test_initial_intent_charges_breakdown_total(catalog, save10_gateway) -> None:
    intent = create_initial_intent(
        "course", BUYER, catalog=catalog, gateway=save10_gateway, coupon_code="save10", include_bump=True
    )

    call = save10_gateway.intents[0]
    assert intent.breakdown.total == 10620
    assert call["amount"] == 10620
    assert call["currency"] == "USD"
    assert call["save_for_off_session"] is True
    assert call["customer_id"] == intent.customer_id
    assert call["metadata"]["cartFingerprint"] == intent.cart_fingerprint
    assert call["metadata"]["couponId"] == "SAVE10"
    assert call["metadata"]["includeOrderBump"] == "true"
    assert intent.client_secret == "pi_1_secret"


def test_existing_customer_is_reused(catalog, gateway) -> None:
    gateway.customers["buyer@example.com"] = "cus_existing"

    intent = create_initial_intent("course", BUYER, catalog=catalog, gateway=gateway)

    assert intent.customer_id == "cus_existing"
    assert gateway.updated_customers == ["cus_existing"]


def test_client_idempotency_key_is_forwarded(catalog, gateway) -> None:
    create_initial_intent("course", BUYER, catalog=catalog, gateway=gateway, idempotency_key="checkout-abc")

    assert gateway.intents[0]["idempotency_key"] == "checkout-abc"


def test_initial_intent_unknown_product(catalog, gateway) -> None:
    with pytest.raises(ProductNotFoundError):
        create_initial_intent("missing", BUYER, catalog=catalog, gateway=gateway)


def test_installment_tier_is_rejected(catalog, gateway) -> None:
    with pytest.raises(UnsupportedPricingError):
        create_initial_intent("course", BUYER, catalog=catalog, gateway=gateway, price_tier_id="three-pay")

    assert gateway.intents == []


def test_zero_total_is_rejected(catalog, gateway) -> None:
    gateway.coupons["FREE"] = {"id": "FREE", "valid": True, "percent_off": 100}

    with pytest.raises(UnsupportedPricingError):
        create_initial_intent("course", BUYER, catalog=catalog, gateway=gateway, coupon_code="FREE")


# ---------------------------------------------------------------------------
# Offer resolution
# ---------------------------------------------------------------------------

def test_resolve_embedded_offer_by_id_or_slug(catalog) -> None:
    by_id = resolve_offer(catalog, "course", "upsell-1")
    downsell = resolve_offer(catalog, "course", "downsell")

    assert by_id.source is OfferSource.EMBEDDED
    assert by_id.amount == 4900
    assert downsell.amount == 1500


def test_resolve_standalone_offer(catalog) -> None:
    offer = resolve_offer(catalog, "course", "masterclass")

    assert offer.source is OfferSource.STANDALONE
    assert offer.offer_id == "masterclass"
    assert offer.amount == 19900


def test_standalone_offer_in_other_currency_rejected(catalog) -> None:
    with pytest.raises(UnsupportedPricingError):
        resolve_offer(catalog, "course", "euro-guide")


def test_resolve_missing_offer_or_product(catalog) -> None:
    with pytest.raises(OfferNotFoundError):
        resolve_offer(catalog, "course", "nope")
    with pytest.raises(OfferNotFoundError):
        resolve_offer(catalog, "course", "course")
    with pytest.raises(ProductNotFoundError):
        resolve_offer(catalog, "missing", "upsell-1")


# ---------------------------------------------------------------------------
# Offer charges
# ---------------------------------------------------------------------------

def test_successful_offer_charge(catalog, gateway) -> None:
    result = charge_offer("cus_1", "pm_1", "course", "upsell-1", catalog=catalog, gateway=gateway)

    call = gateway.intents[0]
    assert result.success
    assert result.offer_id == "upsell-1"
    assert result.payment_intent_id == "pi_1"
    assert call["amount"] == 4900
    assert call["payment_method_id"] == "pm_1"
    assert call["off_session"] is True
    assert call["confirm"] is True
    assert call["metadata"]["upsellId"] == "upsell-1"
    assert call["idempotency_key"] == offer_idempotency_key("cus_1", "upsell-1", "pm_1")


def test_declined_charge_is_returned_not_raised(catalog, declining_gateway) -> None:
    result = charge_offer("cus_1", "pm_1", "course", "upsell-1", catalog=catalog, gateway=declining_gateway)

    assert not result.success
    assert result.error == "Your card was declined."
    assert result.requires_action is False


def test_authentication_required_decline(catalog, gateway) -> None:
    gateway.decline = PaymentDeclinedError(
        "This payment requires authentication.", code="authentication_required", requires_action=True
    )

    result = charge_offer("cus_1", "pm_1", "course", "upsell-1", catalog=catalog, gateway=gateway)

    assert not result.success
    assert result.requires_action is True


def test_requires_action_status_is_not_success(catalog, gateway) -> None:
    gateway.charge_status = "requires_action"

    result = charge_offer("cus_1", "pm_1", "course", "upsell-1", catalog=catalog, gateway=gateway)

    assert not result.success
    assert result.requires_action is True
    assert result.error == "Payment requires additional authentication"


def test_other_status_is_not_success(catalog, gateway) -> None:
    gateway.charge_status = "processing"

    result = charge_offer("cus_1", "pm_1", "course", "upsell-1", catalog=catalog, gateway=gateway)

    assert not result.success
    assert result.error == "Payment status: processing"


def test_processor_outage_propagates(catalog, gateway) -> None:
    gateway.decline = PaymentProcessorError("processor unavailable")

    with pytest.raises(PaymentProcessorError):
        charge_offer("cus_1", "pm_1", "course", "upsell-1", catalog=catalog, gateway=gateway)


def test_retry_with_same_key_charges_once(catalog, gateway) -> None:
    first = charge_offer(
        "cus_1", "pm_1", "course", "upsell-1", catalog=catalog, gateway=gateway, idempotency_key="click-1"
    )
    second = charge_offer(
        "cus_1", "pm_1", "course", "upsell-1", catalog=catalog, gateway=gateway, idempotency_key="click-1"
    )

    assert len(gateway.intents) == 1
    assert first.payment_intent_id == second.payment_intent_id


def test_derived_key_depends_on_session_token() -> None:
    a = offer_idempotency_key("cus_1", "upsell-1", "main")
    b = offer_idempotency_key("cus_1", "upsell-1", "main")
    c = offer_idempotency_key("cus_1", "upsell-1", "main,upsell-2")

    assert a == b
    assert a != c
    assert a != offer_idempotency_key("cus_1", "upsell-2", "main")


def test_retry_after_decline_reuses_derived_key(catalog, gateway) -> None:
    gateway.decline = PaymentDeclinedError("Your card was declined.", code="card_declined")

    charge_offer("cus_1", "pm_1", "course", "upsell-1", catalog=catalog, gateway=gateway)
    charge_offer("cus_1", "pm_1", "course", "upsell-1", catalog=catalog, gateway=gateway)

    gateway.decline = None
    result = charge_offer(
        "cus_1", "pm_1", "course", "upsell-1", catalog=catalog, gateway=gateway, idempotency_key="retry-2"
    )

    keys = [call["idempotency_key"] for call in gateway.intents]
    assert keys[0] == keys[1] == offer_idempotency_key("cus_1", "upsell-1", "pm_1")
    assert keys[2] == "retry-2"
    assert result.success is True
