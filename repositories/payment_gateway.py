"""
Payment processor gateway (Stripe).

This module contains *only* the calls made to the payment processor and the
translation of its objects and exceptions into plain values. Business rules
(what to charge, when to advance the funnel) live in the services layer.

Processor records (customers, payment methods, payment intents, coupons)
are owned by Stripe; nothing here is persisted locally.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

import stripe

from repositories.config import get_settings

logger = logging.getLogger(__name__)


class PaymentProcessorError(Exception):
    """Processor unreachable or returned an unexpected error."""


class PaymentDeclinedError(Exception):
    """
    The processor refused the charge (card declined, authentication required).

    requires_action is True when the buyer could complete the payment by
    authenticating (e.g. 3-D Secure), as opposed to a hard decline.
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        requires_action: bool = False,
        payment_intent_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.requires_action = requires_action
        self.payment_intent_id = payment_intent_id


@dataclass(frozen=True, slots=True)
class PaymentIntentResult:
    id: str
    status: str
    client_secret: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None


class PaymentGateway(Protocol):
    def retrieve_coupon(self, code: str) -> Optional[Mapping[str, Any]]:
        ...

    def find_customer_id(self, email: str) -> Optional[str]:
        ...

    def create_customer(self, email: str, name: Optional[str], metadata: Mapping[str, str]) -> str:
        ...

    def update_customer(self, customer_id: str, name: Optional[str], metadata: Mapping[str, str]) -> None:
        ...

    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        customer_id: str,
        metadata: Mapping[str, str],
        idempotency_key: Optional[str] = None,
        payment_method_id: Optional[str] = None,
        off_session: bool = False,
        confirm: bool = False,
        save_for_off_session: bool = False,
    ) -> PaymentIntentResult:
        ...


_COUPON_FIELDS = (
    "id",
    "valid",
    "percent_off",
    "amount_off",
    "currency",
    "max_redemptions",
    "times_redeemed",
    "redeem_by",
    "name",
)


def _coupon_to_mapping(coupon: Any) -> dict[str, Any]:
    return {name: getattr(coupon, name, None) for name in _COUPON_FIELDS}


class StripeGateway:
    """PaymentGateway backed by the Stripe API."""

    def __init__(self, api_key: Optional[str] = None) -> None:
        self._api_key = api_key

    def _configure(self) -> None:
        key = self._api_key or get_settings().stripe_secret_key
        if not key:
            raise RuntimeError(
                "Missing environment variable: STRIPE_SECRET_KEY. "
                "Set STRIPE_SECRET_KEY to your Stripe secret key."
            )
        stripe.api_key = key

    def retrieve_coupon(self, code: str) -> Optional[Mapping[str, Any]]:
        """
        Fetch a coupon by id.

        Returns:
            Coupon fields, or None if Stripe has no such coupon

        Raises:
            PaymentProcessorError: on any other Stripe failure
        """
        self._configure()
        try:
            coupon = stripe.Coupon.retrieve(code)
        except stripe.InvalidRequestError:
            return None
        except stripe.StripeError as e:
            raise PaymentProcessorError(f"Failed to retrieve coupon: {e}") from e
        return _coupon_to_mapping(coupon)

    def find_customer_id(self, email: str) -> Optional[str]:
        self._configure()
        try:
            customers = stripe.Customer.list(email=email, limit=1)
        except stripe.StripeError as e:
            raise PaymentProcessorError(f"Failed to look up customer: {e}") from e
        data = getattr(customers, "data", None) or []
        return data[0].id if data else None

    def create_customer(self, email: str, name: Optional[str], metadata: Mapping[str, str]) -> str:
        self._configure()
        params: dict[str, Any] = {"email": email, "metadata": dict(metadata)}
        if name:
            params["name"] = name
        try:
            customer = stripe.Customer.create(**params)
        except stripe.StripeError as e:
            raise PaymentProcessorError(f"Failed to create customer: {e}") from e
        logger.info(f"Created Stripe customer {customer.id}")
        return customer.id

    def update_customer(self, customer_id: str, name: Optional[str], metadata: Mapping[str, str]) -> None:
        self._configure()
        params: dict[str, Any] = {"metadata": dict(metadata)}
        if name:
            params["name"] = name
        try:
            stripe.Customer.modify(customer_id, **params)
        except stripe.StripeError as e:
            raise PaymentProcessorError(f"Failed to update customer: {e}") from e
        logger.info(f"Updated Stripe customer {customer_id}")

    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        customer_id: str,
        metadata: Mapping[str, str],
        idempotency_key: Optional[str] = None,
        payment_method_id: Optional[str] = None,
        off_session: bool = False,
        confirm: bool = False,
        save_for_off_session: bool = False,
    ) -> PaymentIntentResult:
        """
        Create (and optionally confirm) a PaymentIntent.

        Raises:
            PaymentDeclinedError: the card was declined or needs authentication
            PaymentProcessorError: any other Stripe failure
        """
        self._configure()

        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency.lower(),
            "customer": customer_id,
            "metadata": dict(metadata),
        }
        if save_for_off_session:
            params["setup_future_usage"] = "off_session"
            params["automatic_payment_methods"] = {"enabled": True}
        if payment_method_id:
            params["payment_method"] = payment_method_id
        if off_session:
            params["off_session"] = True
        if confirm:
            params["confirm"] = True
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        try:
            intent = stripe.PaymentIntent.create(**params)
        except stripe.CardError as e:
            error = getattr(e, "error", None)
            intent_obj = getattr(error, "payment_intent", None) if error else None
            raise PaymentDeclinedError(
                e.user_message or str(e) or "Card was declined",
                code=e.code,
                requires_action=e.code == "authentication_required",
                payment_intent_id=getattr(intent_obj, "id", None),
            ) from e
        except stripe.StripeError as e:
            raise PaymentProcessorError(f"Failed to create payment intent: {e}") from e

        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            client_secret=getattr(intent, "client_secret", None),
            amount=getattr(intent, "amount", None),
            currency=getattr(intent, "currency", None),
        )


__all__ = [
    "PaymentDeclinedError",
    "PaymentGateway",
    "PaymentIntentResult",
    "PaymentProcessorError",
    "StripeGateway",
]
