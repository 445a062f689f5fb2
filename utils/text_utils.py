"""
Text and number helpers for supplier data.

Supplier feeds send prices as "$1,299.00", "19.99 USD" or plain numbers;
everything funnels through these helpers so money is always Decimal.
"""

import re
import unicodedata
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

_NON_NUMERIC = re.compile(r"[^0-9.\-]")

CENT = Decimal("0.01")


def parse_money(value: Any) -> Optional[Decimal]:
    """
    Parse a money-like value, ignoring currency symbols and separators.

    - "$1,299.00" → Decimal("1299.00")
    - 19.99 → Decimal("19.99")
    - "free" → None

    Args:
        value: Raw value from a source record

    Returns:
        Decimal, or None if nothing numeric remains
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        return _finite(Decimal(str(value)))

    cleaned = _NON_NUMERIC.sub("", str(value))
    if not cleaned:
        return None

    try:
        return _finite(Decimal(cleaned))
    except InvalidOperation:
        return None


def parse_number(value: Any) -> Optional[Decimal]:
    """
    Parse a plain numeric value (no symbol stripping).

    Returns None for anything that is not a number as written.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        return _finite(Decimal(str(value)))

    text = str(value).strip()
    if not text:
        return None

    try:
        return _finite(Decimal(text))
    except InvalidOperation:
        return None


def parse_quantity(value: Any) -> Optional[int]:
    """Parse an inventory quantity, truncating fractional input."""
    number = parse_money(value)
    if number is None:
        return None
    return int(number)


def round_money(value: Decimal) -> Decimal:
    """Round half-up to cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money_string(value: Any) -> Optional[str]:
    """Format a money value as the platform expects ("25.00")."""
    number = parse_money(value)
    if number is None:
        return None
    return str(round_money(number))


def fold_text(value: Any) -> str:
    """
    Normalize text for case-insensitive comparison.

    - "  Acme Ltd " → "acme ltd"
    - None → ""
    """
    if value is None:
        return ""
    return unicodedata.normalize("NFC", str(value)).strip().lower()


def _finite(number: Decimal) -> Optional[Decimal]:
    return number if number.is_finite() else None
