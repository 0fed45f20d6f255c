from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from billing.coerce import ZERO, field, to_bool, to_decimal
from billing.quantity import Quantity, coerce_pieces_per_box

GST_DEFAULT_TAX_RATE = Decimal("18")


class InvoiceType(str, Enum):
    GST = "GST"
    NON_GST = "NON_GST"

    @classmethod
    def coerce(cls, value: Any) -> "InvoiceType":
        if isinstance(value, cls):
            return value
        return cls.GST if str(value or "").strip().upper() == cls.GST.value else cls.NON_GST


@dataclass(frozen=True)
class LinePrice:
    total_price: Decimal
    item_total: Decimal
    tax_amount: Decimal


def default_tax_rate(invoice_type: Any) -> Decimal:
    return GST_DEFAULT_TAX_RATE if InvoiceType.coerce(invoice_type) is InvoiceType.GST else ZERO


def price_per_piece_from_box(price_per_box: Any, pieces_per_box: Any) -> Decimal:
    return to_decimal(price_per_box) / coerce_pieces_per_box(pieces_per_box)


def line_total_price(item: Any) -> Decimal:
    """Amount the customer pays for a line, tax included where tax applies."""
    quantity = Quantity.coerce(field(item, "quantity"))
    price_per_piece = to_decimal(field(item, "price_per_piece"))
    if to_bool(field(item, "is_custom", False)):
        return quantity.pieces * price_per_piece
    return quantity.boxes * to_decimal(field(item, "price_per_box")) + quantity.pieces * price_per_piece


def price_line(item: Any, invoice_type: Any) -> LinePrice:
    """Split a line's price into its taxable amount and tax.

    On GST invoices the entered prices already include tax, so the base amount
    is extracted from the total. NON_GST lines, and GST lines at a zero rate,
    carry no tax.
    """
    total_price = line_total_price(item)
    tax_rate = to_decimal(field(item, "tax_rate"))

    if InvoiceType.coerce(invoice_type) is InvoiceType.GST and tax_rate > 0:
        item_total = total_price / (1 + tax_rate / 100)
        return LinePrice(total_price=total_price, item_total=item_total, tax_amount=total_price - item_total)

    return LinePrice(total_price=total_price, item_total=total_price, tax_amount=ZERO)


def apply_invoice_type(items: Iterable[Mapping[str, Any]], invoice_type: Any) -> list[dict[str, Any]]:
    """Return copies of draft items adjusted for a switch of invoice type.

    Moving to GST gives every zero-rated item the default GST rate. Moving back
    to NON_GST leaves rates alone.
    """
    is_gst = InvoiceType.coerce(invoice_type) is InvoiceType.GST
    adjusted = []
    for item in items:
        item = dict(item)
        if is_gst and to_decimal(item.get("tax_rate")) == 0:
            item["tax_rate"] = GST_DEFAULT_TAX_RATE
        adjusted.append(item)
    return adjusted
