"""
Tests for `domain/tax.py`.

Covers contract rules:
- Non-EU buyers pay no VAT.
- EU B2C buyers pay the country's standard rate on the post-discount amount.
- EU B2B buyers with a valid VAT number are reverse charged (tax 0).
- An invalid VAT number never triggers reverse charge.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from domain.tax import (
    compute_tax,
    extract_country_from_vat,
    format_vat_number,
    get_vat_rate,
    is_b2b_purchase,
    is_eu_country,
    normalize_vat_number,
    validate_vat_format,
)


def test_non_eu_buyer_pays_no_vat() -> None:
    result = compute_tax(11800, "US")

    assert result.tax_amount == 0
    assert result.total == 11800
    assert result.tax_rate == Decimal("0")
    assert result.reverse_charge is False
    assert result.tax_label == "No VAT"


def test_eu_b2c_buyer_pays_standard_rate() -> None:
    """Verify Germany (19%) on 10000 adds 1900."""

    result = compute_tax(10000, "de", currency="EUR")

    assert result.tax_amount == 1900
    assert result.total == 11900
    assert result.tax_rate == Decimal("0.19")
    assert result.tax_label == "VAT (19%)"
    assert result.currency == "EUR"


def test_fractional_rate_label_and_rounding() -> None:
    """Verify Finland's 25.5% rate keeps its decimal and rounds half to even."""

    result = compute_tax(1000, "FI")

    assert result.tax_amount == 255
    assert result.tax_label == "VAT (25.5%)"

    # 25.5% of 10 = 2.55 -> 3 (not a tie); 20% of 1005 = 201 exactly
    assert compute_tax(10, "FI").tax_amount == 3
    assert compute_tax(1005, "FR").tax_amount == 201


def test_eu_b2b_with_valid_vat_is_reverse_charged() -> None:
    result = compute_tax(10000, "DE", vat_number="DE123456789", is_b2b=True)

    assert result.tax_amount == 0
    assert result.total == 10000
    assert result.reverse_charge is True
    assert result.tax_label == "VAT Reverse Charge"


def test_invalid_vat_number_is_taxed_normally() -> None:
    result = compute_tax(10000, "DE", vat_number="DE12", is_b2b=True)

    assert result.reverse_charge is False
    assert result.tax_amount == 1900


def test_prices_including_vat_add_no_tax() -> None:
    result = compute_tax(10000, "DK", prices_include_vat=True)

    assert result.tax_amount == 0
    assert result.total == 10000
    assert result.tax_label == "VAT Included"


def test_negative_amount_rejected() -> None:
    with pytest.raises(ValueError):
        compute_tax(-1, "DE")


def test_vat_number_helpers() -> None:
    assert normalize_vat_number("de 123-456.789") == "DE123456789"
    assert validate_vat_format("DE 123 456 789")
    assert validate_vat_format("NL123456789B01")
    assert not validate_vat_format("XX123456789")
    assert extract_country_from_vat("EL123456789") == "GR"
    assert extract_country_from_vat("US123") is None
    assert format_vat_number("NL123456789B01") == "NL 1234 56789B01"


def test_country_helpers() -> None:
    assert is_eu_country("dk")
    assert not is_eu_country("US")
    assert get_vat_rate("DK") == Decimal("25")
    assert get_vat_rate("US") == Decimal("0")


def test_b2b_requires_valid_vat_number() -> None:
    assert is_b2b_purchase("DK12345678")
    assert not is_b2b_purchase("DK1234")
    assert not is_b2b_purchase(None)
    assert not is_b2b_purchase("")
