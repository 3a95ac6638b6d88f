"""Helpers for the string-typed product fields.

Prices and quantities are stored as typed, with a comma decimal separator,
and dates as ``DD.MM.YYYY``. Nothing here raises on bad input: unparsable
values come back as ``None`` or ``""``.
"""

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

__all__ = [
    "parse_decimal",
    "format_decimal",
    "normalize_price",
    "calculate_unit_price",
    "parse_flyer_date",
    "format_flyer_date",
    "to_input_date",
    "from_input_date",
]

_RX_NUMBER = re.compile(r"^[+-]?(\d+([.,]\d*)?|[.,]\d+)")
_TWO_PLACES = Decimal("0.01")


def parse_decimal(value: Optional[str]) -> Optional[Decimal]:
    """Parse a locale-formatted number ("3,49", "1.5", "2 kg" -> 2).

    Like the browser form, only the leading numeric part counts.

    Returns:
        The value, or None for blank or non-numeric input.
    """
    if value is None:
        return None
    text = str(value).strip().replace("\u00a0", "").replace(" ", "")
    match = _RX_NUMBER.match(text)
    if not match:
        return None
    try:
        return Decimal(match.group(0).replace(",", "."))
    except InvalidOperation:
        return None


def format_decimal(value: Decimal, places: Decimal = _TWO_PLACES) -> str:
    """Format with two decimals (half-up) and a comma separator."""
    return str(value.quantize(places, rounding=ROUND_HALF_UP)).replace(".", ",")


def normalize_price(value: Optional[str]) -> str:
    """Replace every dot with a comma and trim ("3.49 " -> "3,49")."""
    return (value or "").replace(".", ",").strip()


def calculate_unit_price(price: Optional[str], amount: Optional[str]) -> str:
    """Price per unit of amount, e.g. ("3,49", "0,5") -> "6,98".

    Returns ``""`` when either side is blank or unparsable, or the amount is
    zero.
    """
    if not (price or "").strip() or not (amount or "").strip():
        return ""
    price_num = parse_decimal(price)
    amount_num = parse_decimal(amount)
    if price_num is None or amount_num is None or amount_num == 0:
        return ""
    return format_decimal(price_num / amount_num)


def parse_flyer_date(value: Optional[str]) -> Optional[date]:
    """Parse ``DD.MM.YYYY``; None for anything else, including 31.02.2026."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%d.%m.%Y").date()
    except ValueError:
        return None


def format_flyer_date(value: date) -> str:
    return value.strftime("%d.%m.%Y")


def to_input_date(value: Optional[str]) -> str:
    """``DD.MM.YYYY`` -> ISO ``YYYY-MM-DD`` (for date inputs), ``""`` if invalid."""
    parsed = parse_flyer_date(value)
    return parsed.isoformat() if parsed else ""


def from_input_date(value: Optional[str]) -> str:
    """ISO ``YYYY-MM-DD`` -> ``DD.MM.YYYY``, ``""`` if invalid."""
    if not value:
        return ""
    try:
        return format_flyer_date(date.fromisoformat(value.strip()))
    except ValueError:
        return ""
