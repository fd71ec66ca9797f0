"""
Domain: Money in minor currency units (pure).

Contract excerpts implemented here:
- All amounts are integers in the currency's minor unit (cents, øre).
- Every supported currency has exactly 2 decimal places.
- Rounding to the minor unit is round-half-to-even (banker's rounding).
- A percent discount never exceeds the amount it is applied to; a fixed
  discount never drives an amount below zero.
- One funnel never mixes currencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Iterable, Optional


@dataclass(frozen=True, slots=True)
class CurrencyInfo:
    code: str
    symbol: str
    locale: str
    name: str
    decimal_places: int = 2


CURRENCY_CONFIG: dict[str, CurrencyInfo] = {
    "USD": CurrencyInfo(code="USD", symbol="$", locale="en-US", name="US Dollar"),
    "EUR": CurrencyInfo(code="EUR", symbol="€", locale="de-DE", name="Euro"),
    "DKK": CurrencyInfo(code="DKK", symbol="kr", locale="da-DK", name="Danish Krone"),
}

SUPPORTED_CURRENCIES: tuple[str, ...] = tuple(CURRENCY_CONFIG)

# (thousands separator, decimal separator, symbol goes before amount)
_LOCALE_STYLE: dict[str, tuple[str, str, bool]] = {
    "en": (",", ".", True),
    "de": (".", ",", False),
    "da": (".", ",", False),
}


def is_supported_currency(code: str) -> bool:
    return code.upper() in CURRENCY_CONFIG


def currency_symbol(code: str) -> str:
    """Symbol for a supported currency; the raw code otherwise."""
    info = CURRENCY_CONFIG.get(code.upper())
    return info.symbol if info else code.upper()


def round_minor(value: Decimal | int | float) -> int:
    """Round a (possibly fractional) minor-unit amount to an integer, half to even."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_EVEN))


def percent_discount(amount: int, percent: Decimal | int | float) -> int:
    """
    Discount worth `percent` % of `amount`, in minor units.

    The result is clamped to [0, amount] so a misconfigured percentage can
    never produce a negative price.

    Example:
        percent_discount(9900, 10)  # 990
    """
    if amount < 0:
        raise ValueError("amount must be >= 0")
    raw = Decimal(amount) * Decimal(str(percent)) / Decimal(100)
    return max(0, min(amount, round_minor(raw)))


def fixed_discount(amount: int, discount_amount: int) -> int:
    """Amount remaining after subtracting a fixed discount, never below zero."""
    if amount < 0:
        raise ValueError("amount must be >= 0")
    return max(0, amount - max(0, discount_amount))


def ensure_same_currency(currencies: Iterable[str]) -> str:
    """
    Return the single currency shared by every offer in a funnel.

    Raises:
        ValueError: if no currency is given or more than one distinct code appears
    """
    codes = {code.upper() for code in currencies}
    if not codes:
        raise ValueError("At least one currency is required")
    if len(codes) > 1:
        raise ValueError(f"Mixed currencies are not allowed: {', '.join(sorted(codes))}")
    return codes.pop()


def _group_thousands(digits: str, separator: str) -> str:
    parts = []
    while len(digits) > 3:
        parts.insert(0, digits[-3:])
        digits = digits[:-3]
    parts.insert(0, digits)
    return separator.join(parts)


def format_money(minor_units: int, currency_code: str, locale: Optional[str] = None) -> str:
    """
    Render a minor-unit amount for display.

    Unknown currencies never raise; they fall back to "<amount> <CODE>".

    Example:
        format_money(11800, "USD")           # "$118.00"
        format_money(109900, "DKK")          # "1.099,00 kr"
        format_money(500, "GBP")             # "5.00 GBP"
    """
    code = currency_code.upper()
    info = CURRENCY_CONFIG.get(code)
    places = info.decimal_places if info else 2

    sign = "-" if minor_units < 0 else ""
    major, minor = divmod(abs(int(minor_units)), 10 ** places)

    if info is None:
        return f"{sign}{major}.{minor:0{places}d} {code}"

    language = (locale or info.locale).split("-")[0].lower()
    thousands, decimal_sep, symbol_first = _LOCALE_STYLE.get(language, _LOCALE_STYLE["en"])
    number = f"{_group_thousands(str(major), thousands)}{decimal_sep}{minor:0{places}d}"

    if symbol_first:
        return f"{sign}{info.symbol}{number}"
    return f"{sign}{number} {info.symbol}"


def parse_money(formatted: str, currency_code: str) -> int:
    """
    Parse a formatted price back to minor units.

    Example:
        parse_money("$1,234.56", "USD")      # 123456
        parse_money("1.099,00 kr", "DKK")    # 109900
    """
    code = currency_code.upper()
    info = CURRENCY_CONFIG.get(code)
    language = (info.locale if info else "en-US").split("-")[0]

    cleaned = "".join(ch for ch in formatted if ch.isdigit() or ch in ".,-")
    if language in ("de", "da"):
        cleaned = cleaned.replace(".", "").replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Cannot parse money value: {formatted!r}")

    return round_minor(value * 100)


__all__ = [
    "CURRENCY_CONFIG",
    "CurrencyInfo",
    "SUPPORTED_CURRENCIES",
    "currency_symbol",
    "ensure_same_currency",
    "fixed_discount",
    "format_money",
    "is_supported_currency",
    "parse_money",
    "percent_discount",
    "round_minor",
]
