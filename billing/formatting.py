from __future__ import annotations

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Any

from billing.coerce import ROUNDING_CONTEXT, to_decimal

CURRENCY_SYMBOL = "₹"
PAISE = Decimal("0.01")

_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine", "Ten",
    "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen", "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

# Indian numbering groups, largest first.
_SCALES = [(10_000_000, "Crore"), (100_000, "Lakh"), (1_000, "Thousand"), (100, "Hundred")]


def format_currency(amount: Any) -> str:
    """Fixed two-decimal rupee amount, as printed on invoices (no grouping)."""
    amount = to_decimal(amount).quantize(PAISE, rounding=ROUND_HALF_UP, context=ROUNDING_CONTEXT)
    if amount < 0:
        return f"-{CURRENCY_SYMBOL}{-amount}"
    return f"{CURRENCY_SYMBOL}{amount}"


def _words(number: int) -> str:
    if number < 20:
        return _ONES[number]
    if number < 100:
        tens, ones = divmod(number, 10)
        return _TENS[tens] + (f" {_ONES[ones]}" if ones else "")

    for scale, name in _SCALES:
        if number >= scale:
            head, rest = divmod(number, scale)
            # Crores can exceed 99, so the head recurses rather than indexing _ONES.
            return f"{_words(head)} {name}" + (f" {_words(rest)}" if rest else "")
    return ""


def amount_in_words(amount: Any) -> str:
    rupees = int(to_decimal(amount).to_integral_value(rounding=ROUND_FLOOR))
    if rupees == 0:
        return "Zero"
    if rupees < 0:
        return f"Minus {_words(-rupees)} Only"
    return f"{_words(rupees)} Only"
