"""
Domain: Price breakdown (pure).

A breakdown is computed fresh for every pricing request and never mutated;
changed inputs produce a new instance.

Invariants (checked on construction):
- 0 <= discount <= subtotal
- tax >= 0
- total == subtotal - discount + tax, and total >= 0
- subtotal equals the sum of the itemized amounts
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True, slots=True)
class LineItem:
    name: str
    amount: int
    offer_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    subtotal: int
    discount: int
    tax: int
    tax_rate: Decimal
    total: int
    currency: str
    reverse_charge: bool
    tax_label: str
    items: tuple[LineItem, ...]
    coupon_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0 <= self.discount <= self.subtotal:
            raise ValueError("discount must be between 0 and subtotal")
        if self.tax < 0:
            raise ValueError("tax must be >= 0")
        if self.total != self.subtotal - self.discount + self.tax:
            raise ValueError("total must equal subtotal - discount + tax")
        if sum(item.amount for item in self.items) != self.subtotal:
            raise ValueError("subtotal must equal the sum of line items")

    @property
    def after_discount(self) -> int:
        return self.subtotal - self.discount


__all__ = ["LineItem", "PriceBreakdown"]
