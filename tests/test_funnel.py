"""
Tests for `domain/funnel.py`.

Covers contract rules:
- The purchases token is an append-only ordered set starting at "main".
- Offer steps need both one-click credentials; otherwise they redirect to thank-you.
- Transitions: accept advances through upsells, decline of the last upsell
  reaches the downsell, the downsell always ends at thank-you, abandon leaves.
- Thank-you URLs drop the credentials and keep purchases + payment_intent.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from domain.funnel import (
    CHECKOUT,
    DOWNSELL,
    THANK_YOU,
    FunnelAction,
    FunnelParams,
    FunnelPlan,
    FunnelStep,
    InvalidTransitionError,
    PurchasesToken,
    Redirect,
    StepEntry,
    StepKind,
    StepUnavailableError,
    step_url,
)
from domain.product import Product

CREDENTIALS = FunnelParams(customer_id="cus_1", payment_method="pm_1")


def _query(url: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(url).query)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

def test_parse_step_paths() -> None:
    assert FunnelStep.parse("upsell-2") == FunnelStep(StepKind.UPSELL, 2)
    assert FunnelStep.parse("downsell") == DOWNSELL
    assert FunnelStep.parse("thank-you") == THANK_YOU
    assert FunnelStep.parse("upsell-2").path == "upsell-2"


@pytest.mark.parametrize("path", ["upsell", "upsell-0", "upsell-x", "bonus", ""])
def test_parse_rejects_unknown_paths(path: str) -> None:
    with pytest.raises(ValueError):
        FunnelStep.parse(path)


def test_step_index_rules() -> None:
    with pytest.raises(ValueError):
        FunnelStep(StepKind.UPSELL, 0)
    with pytest.raises(ValueError):
        FunnelStep(StepKind.DOWNSELL, 1)


# ---------------------------------------------------------------------------
# Purchases token
# ---------------------------------------------------------------------------

def test_token_defaults_to_main() -> None:
    assert list(PurchasesToken.parse(None)) == ["main"]
    assert list(PurchasesToken.parse("  ")) == ["main"]


def test_token_parse_drops_blanks_and_duplicates() -> None:
    token = PurchasesToken.parse("main,,upsell-1, main,upsell-1")

    assert list(token) == ["main", "upsell-1"]
    assert token.serialize() == "main,upsell-1"


def test_token_append_keeps_order_without_duplicates() -> None:
    token = PurchasesToken()

    after = token.with_offer("upsell-1")
    again = after.with_offer("upsell-1")

    assert list(token) == ["main"]
    assert list(after) == ["main", "upsell-1"]
    assert again == after
    assert "upsell-1" in after
    assert len(after) == 2


def test_token_rejects_malformed_entries() -> None:
    with pytest.raises(ValueError):
        PurchasesToken(("main", "main"))
    with pytest.raises(ValueError):
        PurchasesToken(("main", "a,b"))


# ---------------------------------------------------------------------------
# Params and URLs
# ---------------------------------------------------------------------------

def test_params_from_query() -> None:
    params = FunnelParams.from_query({"customer_id": "cus_1", "payment_method": "", "purchases": None})

    assert params.customer_id == "cus_1"
    assert params.payment_method is None
    assert not params.has_credentials
    assert list(params.purchases) == ["main"]


def test_offer_step_url_carries_credentials() -> None:
    params = CREDENTIALS.with_purchases(PurchasesToken(("main", "bump")))

    url = step_url("course", FunnelStep.upsell(1), params)

    assert url.startswith("/course/upsell-1?")
    assert _query(url) == {"customer_id": ["cus_1"], "payment_method": ["pm_1"], "purchases": ["main,bump"]}


def test_thank_you_url_drops_credentials() -> None:
    params = FunnelParams(customer_id="cus_1", payment_method="pm_1", payment_intent="pi_1")

    url = step_url("course", THANK_YOU, params)

    assert url.startswith("/course/thank-you?")
    assert _query(url) == {"purchases": ["main"], "payment_intent": ["pi_1"]}


# ---------------------------------------------------------------------------
# Plan and transitions
# ---------------------------------------------------------------------------

def test_plan_steps(course: Product) -> None:
    plan = FunnelPlan.for_product(course)

    assert plan.total_steps == 3
    assert [s.path for s in plan.steps()] == ["checkout", "upsell-1", "upsell-2", "downsell", "thank-you"]
    assert plan.offer_id(FunnelStep.upsell(2)) == "upsell-2"
    assert plan.offer_id(DOWNSELL) == "downsell"
    assert plan.position(DOWNSELL) == 3


def test_transition_table(course: Product) -> None:
    plan = FunnelPlan.for_product(course)
    up1, up2 = FunnelStep.upsell(1), FunnelStep.upsell(2)

    assert plan.next_step(CHECKOUT, FunnelAction.PAY) == up1
    assert plan.next_step(up1, FunnelAction.ACCEPT) == up2
    assert plan.next_step(up1, FunnelAction.DECLINE) == up2
    assert plan.next_step(up2, FunnelAction.ACCEPT) == THANK_YOU
    assert plan.next_step(up2, FunnelAction.DECLINE) == DOWNSELL
    assert plan.next_step(up1, FunnelAction.ABANDON) == THANK_YOU
    assert plan.next_step(DOWNSELL, FunnelAction.ACCEPT) == THANK_YOU
    assert plan.next_step(DOWNSELL, FunnelAction.DECLINE) == THANK_YOU


def test_no_transition_out_of_thank_you(course: Product) -> None:
    plan = FunnelPlan.for_product(course)

    with pytest.raises(InvalidTransitionError):
        plan.next_step(THANK_YOU, FunnelAction.ACCEPT)
    with pytest.raises(InvalidTransitionError):
        plan.next_step(CHECKOUT, FunnelAction.ACCEPT)


def test_plan_without_offers_goes_straight_to_thank_you() -> None:
    product = Product.from_config({
        "slug": "solo",
        "name": "Solo",
        "stripe": {"priceAmount": 1000, "currency": "USD"},
    })
    plan = FunnelPlan.for_product(product)

    assert plan.total_steps == 0
    assert plan.next_step(CHECKOUT, FunnelAction.PAY) == THANK_YOU
    with pytest.raises(StepUnavailableError):
        plan.offer_id(FunnelStep.upsell(1))
    with pytest.raises(StepUnavailableError):
        plan.offer_id(DOWNSELL)


def test_last_upsell_decline_without_downsell(course_config) -> None:
    del course_config["downsell"]
    plan = FunnelPlan.for_product(Product.from_config(course_config))

    assert plan.next_step(FunnelStep.upsell(2), FunnelAction.DECLINE) == THANK_YOU


def test_disabled_upsells_are_skipped(course_config) -> None:
    course_config["upsells"][0]["enabled"] = False
    plan = FunnelPlan.for_product(Product.from_config(course_config))

    assert plan.offer_id(FunnelStep.upsell(1)) == "upsell-2"
    assert not plan.has_step(FunnelStep.upsell(2))


def test_enter_offer_step_with_credentials(course: Product) -> None:
    plan = FunnelPlan.for_product(course)

    decision = plan.enter(FunnelStep.upsell(2), CREDENTIALS)

    assert isinstance(decision, StepEntry)
    assert decision.offer_id == "upsell-2"
    assert decision.current_step == 2
    assert decision.total_steps == 3


def test_enter_offer_step_without_credentials_redirects(course: Product) -> None:
    plan = FunnelPlan.for_product(course)
    params = FunnelParams(customer_id="cus_1", purchases=PurchasesToken(("main", "bump")))

    decision = plan.enter(FunnelStep.upsell(1), params)

    assert isinstance(decision, Redirect)
    assert decision.step == THANK_YOU
    assert _query(decision.url) == {"purchases": ["main,bump"]}
