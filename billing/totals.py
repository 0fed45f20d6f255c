from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from billing.coerce import ROUNDING_CONTEXT, ZERO, field, to_decimal
from billing.pricing import InvoiceType, LinePrice, price_line

RUPEE = Decimal("1")

PAYMENT_PAID = "PAID"
PAYMENT_PARTIAL = "PARTIAL"
PAYMENT_PENDING = "PENDING"


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    total_tax: Decimal
    total_before_discount: Decimal
    discount: Decimal
    total_amount: Decimal
    round_off_amount: Decimal
    final_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal = ZERO


@dataclass(frozen=True)
class PaymentSummary:
    status: str
    total_paid: Decimal
    pending_amount: Decimal


def _to_rupee(amount: Decimal) -> Decimal:
    return amount.quantize(RUPEE, rounding=ROUND_HALF_UP, context=ROUNDING_CONTEXT)


def round_half_up(value: Any) -> Decimal:
    return _to_rupee(to_decimal(value))


def aggregate(lines: Iterable[Any], discount: Any = 0) -> Totals:
    lines = list(lines)
    discount = to_decimal(discount)

    subtotal = sum((to_decimal(field(line, "item_total")) for line in lines), ZERO)
    total_tax = sum((to_decimal(field(line, "tax_amount")) for line in lines), ZERO)
    total_before_discount = subtotal + total_tax
    total_amount = total_before_discount - discount
    final_amount = _to_rupee(total_amount)
    half_tax = total_tax / 2

    return Totals(
        subtotal=subtotal,
        total_tax=total_tax,
        total_before_discount=total_before_discount,
        discount=discount,
        total_amount=total_amount,
        round_off_amount=final_amount - total_amount,
        final_amount=final_amount,
        cgst=half_tax,
        sgst=half_tax,
    )


def price_invoice(items: Iterable[Any], invoice_type: Any, discount: Any = 0) -> tuple[list[LinePrice], Totals]:
    lines = [price_line(item, invoice_type) for item in items]
    return lines, aggregate(lines, discount)


def invoice_value(totals: Totals, invoice_type: Any) -> Decimal:
    if InvoiceType.coerce(invoice_type) is InvoiceType.GST:
        return totals.subtotal + totals.total_tax
    return totals.subtotal


def payment_summary(final_amount: Any, total_paid: Any) -> PaymentSummary:
    final_amount = to_decimal(final_amount)
    total_paid = to_decimal(total_paid)

    if total_paid >= final_amount:
        status = PAYMENT_PAID
    elif total_paid > 0:
        status = PAYMENT_PARTIAL
    else:
        status = PAYMENT_PENDING

    return PaymentSummary(status=status, total_paid=total_paid, pending_amount=final_amount - total_paid)
