"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Wire names are camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from domain.breakdown import PriceBreakdown
from domain.coupon import CouponValidation


class ApiModel(BaseModel):
    class Config:
        populate_by_name = True


# ============================================================================
# Pricing Models
# ============================================================================

class BreakdownItem(ApiModel):
    name: str
    amount: int


class PriceBreakdownModel(ApiModel):
    """Itemized price in minor currency units."""
    subtotal: int
    discount: int
    tax: int
    tax_rate: float = Field(..., alias="taxRate")
    total: int
    currency: str
    reverse_charge: bool = Field(False, alias="reverseCharge")
    tax_label: Optional[str] = Field(None, alias="taxLabel")
    items: List[BreakdownItem]

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "subtotal": 11800,
                "discount": 0,
                "tax": 0,
                "taxRate": 0.0,
                "total": 11800,
                "currency": "USD",
                "reverseCharge": False,
                "taxLabel": "No VAT",
                "items": [
                    {"name": "Course", "amount": 9900},
                    {"name": "Workbook", "amount": 1900}
                ]
            }
        }

    @classmethod
    def from_domain(cls, breakdown: PriceBreakdown) -> "PriceBreakdownModel":
        return cls(
            subtotal=breakdown.subtotal,
            discount=breakdown.discount,
            tax=breakdown.tax,
            tax_rate=float(breakdown.tax_rate),
            total=breakdown.total,
            currency=breakdown.currency,
            reverse_charge=breakdown.reverse_charge,
            tax_label=breakdown.tax_label,
            items=[BreakdownItem(name=i.name, amount=i.amount) for i in breakdown.items],
        )


class QuoteRequest(ApiModel):
    """Preview the price of a checkout without touching the processor."""
    product_slug: str = Field(..., min_length=1, alias="productSlug")
    email: Optional[EmailStr] = None
    country: str = Field("US", min_length=2, max_length=2)
    vat_number: Optional[str] = Field(None, alias="vatNumber")
    coupon_code: Optional[str] = Field(None, alias="couponCode")
    include_order_bump: bool = Field(False, alias="includeOrderBump")
    price_tier_id: Optional[str] = Field(None, alias="priceTierId")


class QuoteResponse(ApiModel):
    breakdown: PriceBreakdownModel
    cart_fingerprint: str = Field(..., alias="cartFingerprint")
    formatted_total: str = Field(..., alias="formattedTotal")
    coupon: Optional["ValidateCouponResponse"] = None
    created_at: datetime = Field(..., alias="createdAt")
    expires_at: datetime = Field(..., alias="expiresAt")


# ============================================================================
# Payment Intent Models
# ============================================================================

class CreatePaymentIntentRequest(ApiModel):
    product_slug: str = Field(..., min_length=1, alias="productSlug")
    email: EmailStr
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    country: str = Field("US", min_length=2, max_length=2)
    vat_number: Optional[str] = Field(None, alias="vatNumber")
    coupon_code: Optional[str] = Field(None, alias="couponCode")
    include_order_bump: bool = Field(False, alias="includeOrderBump")
    price_tier_id: Optional[str] = Field(None, alias="priceTierId")
    idempotency_key: Optional[str] = Field(None, alias="idempotencyKey")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "productSlug": "course",
                "email": "buyer@example.com",
                "firstName": "Ada",
                "lastName": "Lovelace",
                "country": "US",
                "couponCode": "SAVE10",
                "includeOrderBump": True
            }
        }


class CreatePaymentIntentResponse(ApiModel):
    client_secret: str = Field(..., alias="clientSecret")
    customer_id: str = Field(..., alias="customerId")
    payment_intent_id: str = Field(..., alias="paymentIntentId")
    breakdown: PriceBreakdownModel


# ============================================================================
# Coupon Models
# ============================================================================

class ValidateCouponRequest(ApiModel):
    code: str = Field(..., min_length=1)
    product_slug: str = Field(..., min_length=1, alias="productSlug")


class ValidateCouponResponse(ApiModel):
    valid: bool
    coupon_id: Optional[str] = Field(None, alias="couponId")
    discount_type: Optional[Literal["percent", "fixed"]] = Field(None, alias="discountType")
    discount_amount: Optional[float] = Field(None, alias="discountAmount")
    name: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_domain(cls, result: CouponValidation) -> "ValidateCouponResponse":
        if not result.valid:
            return cls(valid=False, error=result.error)
        return cls(
            valid=True,
            coupon_id=result.coupon_id,
            discount_type=result.discount_type.value,
            discount_amount=result.discount_amount,
            name=result.name,
        )


# ============================================================================
# Offer Charge Models
# ============================================================================

class ChargeUpsellRequest(ApiModel):
    customer_id: str = Field(..., min_length=1, alias="customerId")
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodId")
    product_slug: str = Field(..., min_length=1, alias="productSlug")
    upsell_id: str = Field(..., min_length=1, alias="upsellId")
    idempotency_key: Optional[str] = Field(None, alias="idempotencyKey")
    session_token: Optional[str] = Field(None, alias="sessionToken")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "customerId": "cus_123",
                "paymentMethodId": "pm_123",
                "productSlug": "course",
                "upsellId": "upsell-1"
            }
        }


class ChargeUpsellResponse(ApiModel):
    success: bool
    payment_intent_id: Optional[str] = Field(None, alias="paymentIntentId")
    error: Optional[str] = None
    requires_action: Optional[bool] = Field(None, alias="requiresAction")


# ============================================================================
# Funnel Models
# ============================================================================

class OfferModel(ApiModel):
    offer_id: str = Field(..., alias="offerId")
    title: str
    amount: int
    currency: str
    formatted_price: str = Field(..., alias="formattedPrice")
    subtitle: Optional[str] = None
    description: str = ""
    benefits: List[str] = []
    original_amount: Optional[int] = Field(None, alias="originalAmount")
    urgency_text: Optional[str] = Field(None, alias="urgencyText")


class PricingTierModel(ApiModel):
    id: str
    label: str
    amount: int
    formatted_price: str = Field(..., alias="formattedPrice")
    is_default: bool = Field(False, alias="isDefault")
    installment_count: Optional[int] = Field(None, alias="installmentCount")


class CheckoutViewResponse(ApiModel):
    product_slug: str = Field(..., alias="productSlug")
    name: str
    amount: int
    currency: str
    formatted_price: str = Field(..., alias="formattedPrice")
    order_bump: Optional[OfferModel] = Field(None, alias="orderBump")
    pricing_tiers: List[PricingTierModel] = Field([], alias="pricingTiers")
    total_steps: int = Field(..., alias="totalSteps")
    publishable_key: Optional[str] = Field(None, alias="publishableKey")


class StepViewResponse(ApiModel):
    product_slug: str = Field(..., alias="productSlug")
    step: str
    offer: OfferModel
    current_step: int = Field(..., alias="currentStep")
    total_steps: int = Field(..., alias="totalSteps")
    customer_id: str = Field(..., alias="customerId")
    payment_method_id: str = Field(..., alias="paymentMethodId")
    purchases: List[str]
    accept_url: str = Field(..., alias="acceptUrl")
    decline_url: str = Field(..., alias="declineUrl")


class CheckoutCompleteRequest(ApiModel):
    customer_id: Optional[str] = Field(None, alias="customerId")
    payment_method_id: Optional[str] = Field(None, alias="paymentMethodId")
    payment_intent_id: Optional[str] = Field(None, alias="paymentIntentId")
    included_order_bump: bool = Field(False, alias="includedOrderBump")


class TransitionResponse(ApiModel):
    next_step: str = Field(..., alias="nextStep")
    next_url: str = Field(..., alias="nextUrl")
    purchases: List[str]
    charge: Optional[ChargeUpsellResponse] = None


class PurchasedItemModel(ApiModel):
    offer_id: str = Field(..., alias="offerId")
    title: str
    amount: int
    formatted_amount: str = Field(..., alias="formattedAmount")


class ThankYouResponse(ApiModel):
    product_slug: str = Field(..., alias="productSlug")
    product_name: str = Field(..., alias="productName")
    purchases: List[str]
    items: List[PurchasedItemModel]
    # List prices of the purchased offers, before coupons and VAT.
    list_total: int = Field(..., alias="listTotal")
    formatted_list_total: str = Field(..., alias="formattedListTotal")
    currency: str
    payment_intent_id: Optional[str] = Field(None, alias="paymentIntentId")
    content: dict[str, Any] = {}


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(ApiModel):
    """Standard error response."""
    error: str
    details: Optional[List[dict[str, Any]]] = None

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "error": "Invalid request data",
                "details": [{"loc": ["body", "email"], "msg": "value is not a valid email address", "type": "value_error"}]
            }
        }


QuoteResponse.model_rebuild()
