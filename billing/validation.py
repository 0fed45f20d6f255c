"""Input checks kept apart from the arithmetic.

Every validator returns a list of violations (empty when the input is fine)
and leaves it to the caller to reject or display them.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from billing.coerce import field, to_bool, to_decimal, to_int
from billing.quantity import Quantity, coerce_pieces_per_box, to_base_units
from billing.totals import Totals


def violation(field_name: str, message: str) -> dict[str, str]:
    return {"field": field_name, "message": message}


def validate_quantity(needed_pieces: Any, available_pieces: Any, operation: str = "sale") -> list[dict[str, str]]:
    needed = to_int(needed_pieces)
    available = to_int(available_pieces)

    if needed < 0:
        return [violation("quantity", f"Cannot {operation} negative quantity")]
    if needed == 0:
        return [violation("quantity", f"Must {operation} at least 1 piece")]
    if needed > available:
        return [violation("quantity", f"Insufficient quantity. Available: {available} pc, Needed: {needed} pc")]
    return []


def validate_invoice_items(items: Iterable[Any]) -> list[dict[str, str]]:
    items = list(items)
    if not items:
        return [violation("items", "Please add at least one product")]

    problems = []
    for index, item in enumerate(items):
        prefix = f"items[{index}]"
        name = field(item, "product_name") or f"item {index + 1}"
        quantity = Quantity.coerce(field(item, "quantity"))
        is_custom = to_bool(field(item, "is_custom", False))
        pieces_per_box = coerce_pieces_per_box(field(item, "pieces_per_box"))

        if quantity.boxes < 0 or quantity.pieces < 0:
            problems.append(violation(f"{prefix}.quantity", f"Quantity for {name} cannot be negative"))
        elif is_custom and quantity.pieces == 0:
            problems.append(violation(f"{prefix}.quantity", f"Please enter quantity for {name}"))
        elif not is_custom and to_base_units(quantity, pieces_per_box) == 0:
            problems.append(violation(f"{prefix}.quantity", f"Please enter quantity for {name}"))

        if not is_custom and quantity.pieces >= pieces_per_box:
            problems.append(violation(f"{prefix}.quantity", f"Pieces must be less than {pieces_per_box}"))

        if is_custom and to_decimal(field(item, "price_per_piece")) <= 0:
            problems.append(violation(f"{prefix}.price_per_piece", "Please enter price for all custom products"))
        if to_decimal(field(item, "price_per_box")) < 0 or to_decimal(field(item, "price_per_piece")) < 0:
            problems.append(violation(f"{prefix}.price", f"Price for {name} cannot be negative"))

        tax_rate = to_decimal(field(item, "tax_rate"))
        if tax_rate < 0 or tax_rate > 100:
            problems.append(violation(f"{prefix}.tax_rate", "Tax rate must be between 0 and 100"))
    return problems


def validate_discount(discount: Any, totals: Totals) -> list[dict[str, str]]:
    discount = to_decimal(discount)
    if discount < 0:
        return [violation("discount", "Discount cannot be negative")]
    if discount > totals.total_before_discount:
        return [violation("discount", "Discount cannot exceed the invoice total")]
    return []


def validate_return_items(items: Iterable[Any]) -> list[dict[str, str]]:
    """Each item carries ``return_quantity``, ``returnable_quantity`` and ``pieces_per_box``."""
    items = list(items)
    if not items:
        return [violation("items", "Please select at least one item to return")]

    problems = []
    for index, item in enumerate(items):
        name = field(item, "product_name") or f"item {index + 1}"
        pieces_per_box = field(item, "pieces_per_box")
        returning = to_base_units(field(item, "return_quantity"), pieces_per_box)
        returnable = to_base_units(field(item, "returnable_quantity"), pieces_per_box)

        if returning <= 0:
            problems.append(violation(f"items[{index}].quantity", f"Please enter return quantity for {name}"))
        elif returning > returnable:
            problems.append(
                violation(f"items[{index}].quantity", f"Return quantity for {name} exceeds invoice quantity")
            )
    return problems


def validate_exchange_items(items: Iterable[Any]) -> list[dict[str, str]]:
    items = list(items)
    if not items:
        return [violation("exchange_items", "Please add at least one exchange item")]

    return [
        violation(
            f"exchange_items[{index}].quantity",
            f"Please enter quantity for {field(item, 'product_name') or f'item {index + 1}'}",
        )
        for index, item in enumerate(items)
        if to_base_units(field(item, "quantity"), field(item, "pieces_per_box")) <= 0
    ]


def validate_payment(amount: Any, pending_amount: Any) -> list[dict[str, str]]:
    amount = to_decimal(amount)
    if amount <= 0:
        return [violation("amount", "Please enter a valid payment amount")]
    if amount > to_decimal(pending_amount):
        return [violation("amount", "Payment amount cannot be greater than the remaining balance.")]
    return []
