"""Customer ledger: invoices, payments and returns folded into a running balance."""
from __future__ import annotations

import datetime
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any

from billing.coerce import ZERO, field, to_decimal

INVOICE = "INVOICE"
PAYMENT = "PAYMENT"
RETURN = "RETURN"

INITIAL_PAYMENT_DESCRIPTION = "Payment collected at invoice creation"


@dataclass
class LedgerEntry:
    date: datetime.datetime
    type: str
    description: str
    invoice_number: str | None
    invoice_id: Any
    particulars: str
    sales: Decimal = ZERO
    discount: Decimal = ZERO
    payment: Decimal = ZERO
    returns: Decimal = ZERO
    balance: Decimal = ZERO

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _as_datetime(value: Any) -> datetime.datetime:
    if isinstance(value, str):
        try:
            value = datetime.datetime.fromisoformat(value)
        except ValueError:
            return datetime.datetime.min
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min)
    return datetime.datetime.min


def _window_start(value: Any) -> datetime.datetime | None:
    if value is None or value == "":
        return None
    return _as_datetime(value)


def _window_end(value: Any) -> datetime.datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, str) and "T" not in value and " " not in value.strip():
        try:
            value = datetime.date.fromisoformat(value)
        except ValueError:
            return None
    if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        return datetime.datetime.combine(value, datetime.time.max)
    return _as_datetime(value)


def _invoice_entries(invoice: Any) -> list[LedgerEntry]:
    date = _as_datetime(field(invoice, "invoice_date") or field(invoice, "created_at"))
    number = field(invoice, "invoice_number")
    invoice_id = field(invoice, "id")

    entries = [
        LedgerEntry(
            date=date,
            type=INVOICE,
            description=f"Invoice {number}",
            invoice_number=number,
            invoice_id=invoice_id,
            particulars=f"Sale - Inv #{number}",
            sales=to_decimal(field(invoice, "final_amount")),
            discount=to_decimal(field(invoice, "discount")),
        )
    ]

    paid_at_sale = to_decimal(field(invoice, "initial_payment"))
    if paid_at_sale > 0:
        entries.append(
            LedgerEntry(
                date=date,
                type=PAYMENT,
                description=INITIAL_PAYMENT_DESCRIPTION,
                invoice_number=number,
                invoice_id=invoice_id,
                particulars=f"Payment at creation - Inv #{number}",
                payment=paid_at_sale,
            )
        )
    return entries


def _payment_entry(payment: Any) -> LedgerEntry:
    method = field(payment, "payment_method", "")
    return LedgerEntry(
        date=_as_datetime(field(payment, "payment_date") or field(payment, "created_at")),
        type=PAYMENT,
        description=f"Payment received via {method}",
        invoice_number=field(payment, "invoice_number"),
        invoice_id=field(payment, "invoice_id"),
        particulars=f"{method} - Ref: {field(payment, 'transaction_id') or 'N/A'}",
        payment=to_decimal(field(payment, "amount")),
    )


def _return_entry(return_txn: Any) -> LedgerEntry:
    amount = field(return_txn, "total_amount") or field(return_txn, "return_value")
    number = field(return_txn, "invoice_number")
    return LedgerEntry(
        date=_as_datetime(field(return_txn, "return_date") or field(return_txn, "created_at")),
        type=RETURN,
        description="Product return",
        invoice_number=number,
        invoice_id=field(return_txn, "invoice_id"),
        particulars=f"Return for Inv #{number}",
        returns=to_decimal(amount),
    )


def build_ledger(
    invoices: Iterable[Any],
    payments: Iterable[Any],
    returns: Iterable[Any],
    date_from: Any = None,
    date_to: Any = None,
) -> list[LedgerEntry]:
    """Chronological statement with a running balance of what the customer owes.

    The date window is applied before the balance is accumulated, so the
    balance of a filtered statement starts from zero at the window's start.
    """
    entries: list[LedgerEntry] = []
    for invoice in invoices:
        entries.extend(_invoice_entries(invoice))
    entries.extend(_payment_entry(payment) for payment in payments)
    entries.extend(_return_entry(return_txn) for return_txn in returns)

    # list.sort is stable: same-day entries keep insertion order.
    entries.sort(key=lambda entry: entry.date)

    start = _window_start(date_from)
    end = _window_end(date_to)
    if start is not None:
        entries = [entry for entry in entries if entry.date >= start]
    if end is not None:
        entries = [entry for entry in entries if entry.date <= end]

    balance = ZERO
    for entry in entries:
        balance += entry.sales - entry.discount - entry.payment - entry.returns
        entry.balance = balance
    return entries


def ledger_summary(entries: Iterable[LedgerEntry]) -> dict[str, Decimal]:
    entries = list(entries)
    return {
        "total_sales": sum((entry.sales for entry in entries), ZERO),
        "total_discount": sum((entry.discount for entry in entries), ZERO),
        "total_payment": sum((entry.payment for entry in entries), ZERO),
        "total_returns": sum((entry.returns for entry in entries), ZERO),
        "closing_balance": entries[-1].balance if entries else ZERO,
    }
