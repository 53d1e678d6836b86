"""Display formatting for minor-unit amounts. Never use the output for comparisons."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

NOT_AVAILABLE = "N/A"


def format_amount(minor_units: int, currency: str) -> str:
    """``format_amount(150000, "ISK") == "1.500 ISK"``, ``format_amount(12345, "USD") == "123.45 USD"``"""
    if minor_units <= 0:
        return NOT_AVAILABLE
    currency = (currency or "").upper()
    major = Decimal(minor_units) / Decimal(100)
    if currency == "ISK":
        whole = int(major.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return f"{whole:,}".replace(",", ".") + " ISK"
    return f"{major.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)} {currency}"


def mask_card_number(value: str) -> str:
    """Keep the last four digits; values the processor already masked pass through."""
    value = (value or "").strip()
    if not value or "*" in value or "x" in value.lower():
        return value
    if len(value) <= 4:
        return value
    return "*" * (len(value) - 4) + value[-4:]
