"""
Pytest configuration and shared fixtures.

This file adds the project root to the Python path so that tests can
import from the domain, repositories, services and api packages, and
provides an in-memory product catalog plus a recording fake of the
payment processor gateway.
"""

import copy
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.product import Product  # noqa: E402
from repositories.payment_gateway import (  # noqa: E402
    PaymentDeclinedError,
    PaymentIntentResult,
)
from repositories.product_repository import StaticProductCatalog  # noqa: E402


COURSE_CONFIG: dict[str, Any] = {
    "slug": "course",
    "name": "Course",
    "stripe": {
        "priceAmount": 9900,
        "currency": "USD",
        "productId": "prod_course",
        "priceId": "price_course",
        "pricingTiers": [
            {"id": "full", "label": "Pay in full", "priceAmount": 9900, "isDefault": True},
            {
                "id": "three-pay",
                "label": "3 monthly payments",
                "priceAmount": 3500,
                "installments": {"count": 3, "intervalLabel": "month", "amountPerPayment": 3500},
            },
        ],
    },
    "orderBump": {
        "title": "Workbook",
        "description": "Printable companion workbook",
        "stripe": {"priceAmount": 1900, "currency": "USD", "productId": "prod_workbook"},
    },
    "upsells": [
        {
            "id": "upsell-1",
            "title": "Coaching Call",
            "subtitle": "One hour, one on one",
            "benefits": ["Personal feedback", "Action plan"],
            "stripe": {"priceAmount": 4900, "currency": "USD", "productId": "prod_call"},
        },
        {
            "id": "upsell-2",
            "title": "Template Pack",
            "stripe": {"priceAmount": 2900, "currency": "USD", "productId": "prod_templates"},
        },
    ],
    "downsell": {
        "title": "Mini Template Pack",
        "stripe": {"priceAmount": 1500, "currency": "USD", "productId": "prod_mini"},
    },
    "thankYou": {"headline": "You're in!"},
}

MASTERCLASS_CONFIG: dict[str, Any] = {
    "slug": "masterclass",
    "name": "Masterclass",
    "stripe": {"priceAmount": 19900, "currency": "USD", "productId": "prod_masterclass"},
}

EURO_GUIDE_CONFIG: dict[str, Any] = {
    "slug": "euro-guide",
    "name": "Euro Guide",
    "stripe": {"priceAmount": 5000, "currency": "EUR"},
}


class FakeGateway:
    """
    In-memory stand-in for the payment processor.

    Records every call; behaviour is configured through attributes:
    - coupons: code -> processor coupon mapping
    - customers: email -> customer id
    - charge_status: status returned for confirmed (off-session) intents
    - decline: exception raised for confirmed intents
    """

    def __init__(self) -> None:
        self.coupons: dict[str, Mapping[str, Any]] = {}
        self.customers: dict[str, str] = {}
        self.charge_status = "succeeded"
        self.decline: Optional[Exception] = None
        self.intents: list[dict[str, Any]] = []
        self.updated_customers: list[str] = []
        self._replays: dict[str, PaymentIntentResult] = {}

    def retrieve_coupon(self, code: str) -> Optional[Mapping[str, Any]]:
        return self.coupons.get(code)

    def find_customer_id(self, email: str) -> Optional[str]:
        return self.customers.get(email)

    def create_customer(self, email: str, name: Optional[str], metadata: Mapping[str, str]) -> str:
        customer_id = f"cus_{len(self.customers) + 1}"
        self.customers[email] = customer_id
        return customer_id

    def update_customer(self, customer_id: str, name: Optional[str], metadata: Mapping[str, str]) -> None:
        self.updated_customers.append(customer_id)

    def create_payment_intent(self, **kwargs: Any) -> PaymentIntentResult:
        key = kwargs.get("idempotency_key")
        if key and key in self._replays:
            return self._replays[key]

        self.intents.append(kwargs)

        if kwargs.get("confirm"):
            if self.decline is not None:
                raise self.decline
            status = self.charge_status
        else:
            status = "requires_payment_method"

        result = PaymentIntentResult(
            id=f"pi_{len(self.intents)}",
            status=status,
            client_secret=f"pi_{len(self.intents)}_secret",
            amount=kwargs["amount"],
            currency=kwargs["currency"],
        )
        if key:
            self._replays[key] = result
        return result


@pytest.fixture
def course_config() -> dict[str, Any]:
    return copy.deepcopy(COURSE_CONFIG)


@pytest.fixture
def course() -> Product:
    return Product.from_config(COURSE_CONFIG)


@pytest.fixture
def catalog() -> StaticProductCatalog:
    return StaticProductCatalog.from_configs([COURSE_CONFIG, MASTERCLASS_CONFIG, EURO_GUIDE_CONFIG])


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def save10_gateway(gateway: FakeGateway) -> FakeGateway:
    gateway.coupons["SAVE10"] = {"id": "SAVE10", "valid": True, "percent_off": 10, "name": "Ten percent off"}
    return gateway


@pytest.fixture
def declining_gateway(gateway: FakeGateway) -> FakeGateway:
    gateway.decline = PaymentDeclinedError("Your card was declined.", code="card_declined")
    return gateway
