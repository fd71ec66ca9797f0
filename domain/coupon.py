"""
Domain: Coupon records and validation results (pure).

Contract excerpts implemented here:
- Coupon codes are case-normalized to upper-case before lookup.
- A coupon is rejected when it is marked invalid, its redemption count has
  reached max_redemptions, or its redeem_by timestamp has passed.
- Validation reports the discount type and raw value only; computing the
  final price is the breakdown assembler's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Mapping, Optional, Union

from .time import require_utc_timestamp


class DiscountType(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"


def normalize_coupon_code(code: str) -> str:
    return code.strip().upper()


@dataclass(frozen=True, slots=True)
class CouponRecord:
    """Processor-side coupon, reduced to the fields the funnel cares about."""

    id: str
    valid: bool
    percent_off: Optional[float] = None
    amount_off: Optional[int] = None
    currency: Optional[str] = None
    max_redemptions: Optional[int] = None
    times_redeemed: int = 0
    redeem_by: Optional[datetime] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.redeem_by is not None:
            require_utc_timestamp("redeem_by", self.redeem_by)

    @classmethod
    def from_processor(cls, data: Mapping[str, Any]) -> "CouponRecord":
        """Build from a processor coupon object (redeem_by in epoch seconds)."""
        redeem_by = data.get("redeem_by")
        currency = data.get("currency")
        return cls(
            id=str(data["id"]),
            valid=bool(data.get("valid", False)),
            percent_off=data.get("percent_off"),
            amount_off=data.get("amount_off"),
            currency=str(currency).upper() if currency else None,
            max_redemptions=data.get("max_redemptions"),
            times_redeemed=int(data.get("times_redeemed") or 0),
            redeem_by=datetime.fromtimestamp(int(redeem_by), tz=timezone.utc) if redeem_by else None,
            name=data.get("name"),
        )


@dataclass(frozen=True, slots=True)
class ValidCoupon:
    coupon_id: str
    discount_type: DiscountType
    discount_amount: float  # percent for PERCENT, minor units for FIXED
    name: Optional[str] = None
    valid: Literal[True] = True


@dataclass(frozen=True, slots=True)
class InvalidCoupon:
    error: str
    valid: Literal[False] = False


CouponValidation = Union[ValidCoupon, InvalidCoupon]


def evaluate_coupon(
    record: CouponRecord,
    now: datetime,
    *,
    currency: Optional[str] = None,
) -> CouponValidation:
    """
    Apply redemption rules to a coupon record.

    Args:
        record: Coupon as reported by the processor
        now: Current UTC time (passed explicitly)
        currency: Funnel currency; fixed-amount coupons in another currency are rejected

    Returns:
        ValidCoupon or InvalidCoupon with a buyer-facing message
    """
    require_utc_timestamp("now", now)

    if not record.valid:
        return InvalidCoupon(error="This coupon has expired")

    if record.max_redemptions and record.times_redeemed >= record.max_redemptions:
        return InvalidCoupon(error="This coupon has reached its maximum redemptions")

    if record.redeem_by is not None and record.redeem_by < now:
        return InvalidCoupon(error="This coupon has expired")

    if record.percent_off:
        return ValidCoupon(
            coupon_id=record.id,
            discount_type=DiscountType.PERCENT,
            discount_amount=float(record.percent_off),
            name=record.name,
        )

    if currency and record.currency and record.currency != currency.upper():
        return InvalidCoupon(error="This coupon cannot be used with this currency")

    return ValidCoupon(
        coupon_id=record.id,
        discount_type=DiscountType.FIXED,
        discount_amount=int(record.amount_off or 0),
        name=record.name,
    )


__all__ = [
    "CouponRecord",
    "CouponValidation",
    "DiscountType",
    "InvalidCoupon",
    "ValidCoupon",
    "evaluate_coupon",
    "normalize_coupon_code",
]
