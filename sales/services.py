import logging
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from billing.coerce import field, to_bool
from billing.ledger import build_ledger, ledger_summary
from billing.quantity import Quantity, coerce_pieces_per_box, from_base_units, to_base_units
from billing.totals import payment_summary
from inventory.services import adjust_counter
from sales.models import Invoice, Payment, Return, ReturnItem

logger = logging.getLogger(__name__)

MONEY_QUANT = Decimal("0.01")
INVOICE_NUMBER_ATTEMPTS = 5


def _to_money(value):
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def next_invoice_number(invoice_date=None):
    """Next ``{PREFIX}-{YYYY}-{seq:05d}`` number for the invoice's year."""
    year = (invoice_date or timezone.localdate()).year
    prefix = f"{getattr(settings, 'INVOICE_NUMBER_PREFIX', 'HT')}-{year}-"
    sequence = Invoice.objects.filter(invoice_number__startswith=prefix).count() + 1
    while True:
        candidate = f"{prefix}{sequence:05d}"
        if not Invoice.objects.filter(invoice_number=candidate).exists():
            return candidate
        sequence += 1


def save_with_invoice_number(invoice, custom_number=""):
    """Insert a new invoice, moving to the next free number when a concurrent sale took ours.

    A custom number is never replaced; its clash propagates as ``IntegrityError``.
    """
    for attempt in range(1, INVOICE_NUMBER_ATTEMPTS + 1):
        invoice.invoice_number = custom_number or next_invoice_number(invoice.invoice_date)
        try:
            with transaction.atomic():
                invoice.save()
            return invoice
        except IntegrityError:
            if custom_number or attempt == INVOICE_NUMBER_ATTEMPTS:
                raise
            logger.warning("invoice_number_taken number=%s attempt=%s", invoice.invoice_number, attempt)


def sold_pieces_by_product(items):
    """Pieces sold per catalog product across invoice items (custom items carry no stock)."""
    sold = defaultdict(int)
    for item in items:
        product = field(item, "product")
        if product is None or to_bool(field(item, "is_custom", False)):
            continue
        sold[product.pk] += to_base_units(field(item, "quantity"), field(item, "pieces_per_box"))
    return sold


def sync_sales_counters(invoice, before, after, user=None):
    """Move product sales counters from the ``before`` to the ``after`` piece map."""
    for product_id in sorted(set(before) | set(after), key=str):
        adjust_counter(
            product_id,
            "sales",
            after.get(product_id, 0) - before.get(product_id, 0),
            reference=invoice.invoice_number,
            user=user,
            check_available=True,
        )


def paid_through_payments(invoice):
    if invoice._state.adding:
        return Decimal("0")
    return invoice.payments.aggregate(total=Sum("amount"))["total"] or Decimal("0")


def refresh_payment_summary(invoice, save=True):
    summary = payment_summary(invoice.final_amount, invoice.initial_payment + paid_through_payments(invoice))
    invoice.total_paid = _to_money(summary.total_paid)
    invoice.pending_amount = _to_money(summary.pending_amount)
    invoice.payment_status = summary.status
    if summary.status == Invoice.PaymentStatus.PAID:
        invoice.next_due_date = None
    if save:
        invoice.save(update_fields=["total_paid", "pending_amount", "payment_status", "next_due_date", "updated_at"])
    return summary


def returned_pieces(invoice_item):
    total = 0
    for return_item in invoice_item.return_items.all():
        total += to_base_units(return_item.quantity, invoice_item.pieces_per_box)
    return total


def returnable_quantity(invoice_item):
    remaining = to_base_units(invoice_item.quantity, invoice_item.pieces_per_box) - returned_pieces(invoice_item)
    return from_base_units(max(0, remaining), invoice_item.pieces_per_box)


def quantity_value(quantity, price_per_box, pieces_per_box):
    """boxes * box price + pieces * (box price / pieces per box)."""
    quantity = Quantity.coerce(quantity)
    price_per_box = Decimal(price_per_box or 0)
    return quantity.boxes * price_per_box + quantity.pieces * (price_per_box / coerce_pieces_per_box(pieces_per_box))


def return_line_value(invoice_item, quantity):
    if invoice_item.is_custom:
        pieces = to_base_units(quantity, invoice_item.pieces_per_box)
        return _to_money(pieces * invoice_item.price_per_piece)
    return _to_money(quantity_value(quantity, invoice_item.price_per_box, invoice_item.pieces_per_box))


def restock_return_item(return_item, user=None):
    invoice_item = return_item.invoice_item
    if invoice_item.product_id is None or invoice_item.is_custom:
        return
    pieces = to_base_units(return_item.quantity, invoice_item.pieces_per_box)
    reference = return_item.return_txn.invoice_number
    adjust_counter(invoice_item.product_id, "returns", pieces, reference=reference, user=user)
    # Damaged tiles come back into the books but not onto the shelf.
    if return_item.condition == ReturnItem.Condition.DAMAGED:
        adjust_counter(invoice_item.product_id, "damage", pieces, reference=reference, user=user)


LEDGER_MONEY_FIELDS = ("sales", "discount", "payment", "returns", "balance")


def _ledger_row(entry):
    row = entry.as_dict()
    for key in LEDGER_MONEY_FIELDS:
        row[key] = str(_to_money(row[key]))
    return row


def customer_ledger(customer, date_from=None, date_to=None):
    invoices = customer.invoices.order_by("invoice_date", "created_at")
    payments = Payment.objects.filter(invoice__customer=customer).select_related("invoice").order_by(
        "payment_date", "created_at"
    )
    returns = Return.objects.filter(invoice__customer=customer).select_related("invoice").order_by(
        "return_date", "created_at"
    )
    entries = build_ledger(invoices, payments, returns, date_from=date_from, date_to=date_to)
    logger.info("customer_ledger_built customer=%s entries=%s", customer.id, len(entries))
    summary = ledger_summary(entries)
    return {
        "entries": [_ledger_row(entry) for entry in entries],
        "summary": {key: str(_to_money(value)) for key, value in summary.items()},
    }
