"""
Domain: VAT validation and tax calculation (pure).

Contract excerpts implemented here:
- Only EU buyer jurisdictions collect tax; every other country has no VAT path.
- An EU buyer with a syntactically valid VAT number on a B2B purchase is
  reverse charged: tax is 0 and reverse_charge is True, whatever the nominal rate.
- Otherwise tax = round_half_even(amount * rate) on the post-discount amount.
- total = amount + tax_amount, never negative.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .money import round_minor

# Standard VAT rates in percent (2025).
EU_VAT_RATES: dict[str, Decimal] = {
    "AT": Decimal("20"),
    "BE": Decimal("21"),
    "BG": Decimal("20"),
    "HR": Decimal("25"),
    "CY": Decimal("19"),
    "CZ": Decimal("21"),
    "DK": Decimal("25"),
    "EE": Decimal("22"),
    "FI": Decimal("25.5"),
    "FR": Decimal("20"),
    "DE": Decimal("19"),
    "GR": Decimal("24"),
    "HU": Decimal("27"),
    "IE": Decimal("23"),
    "IT": Decimal("22"),
    "LV": Decimal("21"),
    "LT": Decimal("21"),
    "LU": Decimal("17"),
    "MT": Decimal("18"),
    "NL": Decimal("21"),
    "PL": Decimal("23"),
    "PT": Decimal("23"),
    "RO": Decimal("19"),
    "SK": Decimal("20"),
    "SI": Decimal("22"),
    "ES": Decimal("21"),
    "SE": Decimal("25"),
}

# Keyed by VAT prefix, which differs from the ISO code for Greece (EL).
VAT_FORMATS: dict[str, re.Pattern[str]] = {
    "AT": re.compile(r"^ATU\d{8}$"),
    "BE": re.compile(r"^BE0\d{9}$"),
    "BG": re.compile(r"^BG\d{9,10}$"),
    "HR": re.compile(r"^HR\d{11}$"),
    "CY": re.compile(r"^CY\d{8}[A-Z]$"),
    "CZ": re.compile(r"^CZ\d{8,10}$"),
    "DK": re.compile(r"^DK\d{8}$"),
    "EE": re.compile(r"^EE\d{9}$"),
    "FI": re.compile(r"^FI\d{8}$"),
    "FR": re.compile(r"^FR[A-Z0-9]{2}\d{9}$"),
    "DE": re.compile(r"^DE\d{9}$"),
    "EL": re.compile(r"^EL\d{9}$"),
    "HU": re.compile(r"^HU\d{8}$"),
    "IE": re.compile(r"^IE\d{7}[A-Z]{1,2}$"),
    "IT": re.compile(r"^IT\d{11}$"),
    "LV": re.compile(r"^LV\d{11}$"),
    "LT": re.compile(r"^LT(\d{9}|\d{12})$"),
    "LU": re.compile(r"^LU\d{8}$"),
    "MT": re.compile(r"^MT\d{8}$"),
    "NL": re.compile(r"^NL\d{9}B\d{2}$"),
    "PL": re.compile(r"^PL\d{10}$"),
    "PT": re.compile(r"^PT\d{9}$"),
    "RO": re.compile(r"^RO\d{2,10}$"),
    "SK": re.compile(r"^SK\d{10}$"),
    "SI": re.compile(r"^SI\d{8}$"),
    "ES": re.compile(r"^ES[A-Z0-9]\d{7}[A-Z0-9]$"),
    "SE": re.compile(r"^SE\d{12}$"),
}

_VAT_PREFIX_TO_COUNTRY = {"EL": "GR"}


@dataclass(frozen=True, slots=True)
class TaxCalculation:
    """Result of taxing one post-discount amount."""

    subtotal: int
    tax_amount: int
    tax_rate: Decimal  # fraction in [0, 1), e.g. Decimal("0.19")
    total: int
    reverse_charge: bool
    tax_label: str
    currency: str


def normalize_vat_number(vat_number: str) -> str:
    return re.sub(r"[\s\-.]", "", vat_number).upper()


def validate_vat_format(vat_number: str) -> bool:
    normalized = normalize_vat_number(vat_number)
    pattern = VAT_FORMATS.get(normalized[:2])
    return bool(pattern and pattern.match(normalized))


def extract_country_from_vat(vat_number: str) -> Optional[str]:
    """ISO country code for a VAT number's prefix, or None if the prefix is unknown."""
    prefix = normalize_vat_number(vat_number)[:2]
    if prefix not in VAT_FORMATS:
        return None
    return _VAT_PREFIX_TO_COUNTRY.get(prefix, prefix)


def is_eu_country(country_code: str) -> bool:
    return country_code.upper() in EU_VAT_RATES


def get_vat_rate(country_code: str) -> Decimal:
    """Standard VAT rate in percent; 0 outside the EU."""
    return EU_VAT_RATES.get(country_code.upper(), Decimal("0"))


def format_vat_number(vat_number: str) -> str:
    """Space a VAT number for display, e.g. "NL123456789B01" -> "NL 1234 56789B01"."""
    normalized = normalize_vat_number(vat_number)
    if len(normalized) > 4:
        return f"{normalized[:2]} {normalized[2:6]} {normalized[6:]}".strip()
    return normalized


def is_b2b_purchase(vat_number: Optional[str]) -> bool:
    """A purchase is B2B when a syntactically valid VAT number was given."""
    return bool(vat_number) and validate_vat_format(vat_number)


def _percent_label(rate_percent: Decimal) -> str:
    text = format(rate_percent.normalize(), "f")
    return f"VAT ({text}%)"


def compute_tax(
    amount: int,
    buyer_country: str,
    vat_number: Optional[str] = None,
    is_b2b: bool = False,
    currency: str = "USD",
    *,
    prices_include_vat: bool = False,
) -> TaxCalculation:
    """
    Compute tax for a post-discount amount in minor units.

    Args:
        amount: Taxable amount (minor units, >= 0)
        buyer_country: ISO 3166-1 alpha-2 buyer country
        vat_number: Buyer VAT number, if any
        is_b2b: Whether the buyer purchases as a business
        currency: Currency code carried through unchanged
        prices_include_vat: Treat EU B2C prices as already VAT-inclusive

    Returns:
        TaxCalculation with total = amount + tax_amount

    Example:
        compute_tax(10000, "DE")                            # tax 1900, "VAT (19%)"
        compute_tax(10000, "DE", "DE123456789", True)       # reverse charge, tax 0
        compute_tax(10000, "US")                            # tax 0, "No VAT"
    """
    if amount < 0:
        raise ValueError("amount must be >= 0")

    country = buyer_country.upper()

    if not is_eu_country(country):
        return TaxCalculation(
            subtotal=amount,
            tax_amount=0,
            tax_rate=Decimal("0"),
            total=amount,
            reverse_charge=False,
            tax_label="No VAT",
            currency=currency,
        )

    if is_b2b and vat_number and validate_vat_format(vat_number):
        return TaxCalculation(
            subtotal=amount,
            tax_amount=0,
            tax_rate=Decimal("0"),
            total=amount,
            reverse_charge=True,
            tax_label="VAT Reverse Charge",
            currency=currency,
        )

    if prices_include_vat:
        return TaxCalculation(
            subtotal=amount,
            tax_amount=0,
            tax_rate=Decimal("0"),
            total=amount,
            reverse_charge=False,
            tax_label="VAT Included",
            currency=currency,
        )

    rate_percent = EU_VAT_RATES[country]
    tax_amount = round_minor(Decimal(amount) * rate_percent / Decimal(100))

    return TaxCalculation(
        subtotal=amount,
        tax_amount=tax_amount,
        tax_rate=rate_percent / Decimal(100),
        total=amount + tax_amount,
        reverse_charge=False,
        tax_label=_percent_label(rate_percent),
        currency=currency,
    )


__all__ = [
    "EU_VAT_RATES",
    "TaxCalculation",
    "VAT_FORMATS",
    "compute_tax",
    "extract_country_from_vat",
    "format_vat_number",
    "get_vat_rate",
    "is_b2b_purchase",
    "is_eu_country",
    "normalize_vat_number",
    "validate_vat_format",
]
