import logging

from django.db import transaction
from rest_framework.exceptions import ValidationError

from billing.quantity import Quantity, from_base_units, to_base_units
from billing.stock import is_below_threshold
from billing.validation import validate_quantity
from common.exceptions import raise_violations
from inventory.models import Product, StockTransaction

logger = logging.getLogger(__name__)

KIND_COUNTERS = {
    StockTransaction.Kind.ADD: "stock",
    StockTransaction.Kind.SALE: "sales",
    StockTransaction.Kind.DAMAGE: "damage",
    StockTransaction.Kind.RETURN: "returns",
}

# Movements that take tiles off the shelf and must fit in what is available.
CONSUMING_KINDS = {StockTransaction.Kind.SALE, StockTransaction.Kind.DAMAGE}


def signed_quantity(total_pieces, pieces_per_box):
    """Box/piece split of a signed piece count, sign carried on both parts."""
    quantity = from_base_units(abs(total_pieces), pieces_per_box)
    if total_pieces < 0:
        return Quantity(boxes=-quantity.boxes, pieces=-quantity.pieces)
    return quantity


def bump_counter(product, counter, delta_pieces):
    """Move one product counter by ``delta_pieces``; counters never go below zero."""
    total = to_base_units(product.get_counter(counter), product.pieces_per_box) + delta_pieces
    product.set_counter(counter, from_base_units(max(0, total), product.pieces_per_box))


def check_quantity_shape(quantity, pieces_per_box):
    if quantity.boxes < 0 or quantity.pieces < 0:
        raise ValidationError({"quantity": ["Cannot have negative boxes or pieces"]})
    if quantity.pieces >= pieces_per_box:
        raise ValidationError({"quantity": [f"Pieces must be less than {pieces_per_box}"]})


def _record(product, kind, delta_pieces, *, reference="", notes="", user=None):
    quantity = signed_quantity(delta_pieces, product.pieces_per_box)
    return StockTransaction.objects.create(
        product=product,
        kind=kind,
        boxes=quantity.boxes,
        pieces=quantity.pieces,
        total_pieces=delta_pieces,
        reference=reference,
        notes=notes,
        created_by=user,
    )


def record_stock_movement(product_id, kind, quantity, *, notes="", reference="", user=None):
    """Apply a manual stock movement (add, sale, damage, return) to a product."""
    kind = StockTransaction.Kind(kind)
    quantity = Quantity.coerce(quantity)
    with transaction.atomic():
        product = Product.objects.select_for_update().get(pk=product_id)
        check_quantity_shape(quantity, product.pieces_per_box)
        needed = to_base_units(quantity, product.pieces_per_box)

        if kind in CONSUMING_KINDS:
            raise_violations(validate_quantity(needed, product.available_pieces, kind), key="quantity")
        elif needed <= 0:
            raise_violations(validate_quantity(needed, needed, kind), key="quantity")

        bump_counter(product, KIND_COUNTERS[kind], needed)
        product.save()
        txn = _record(product, kind, needed, reference=reference, notes=notes, user=user)

    logger.info(
        "stock_movement_recorded kind=%s pieces=%s",
        kind,
        needed,
        extra={"product_id": product.id, "pieces": needed},
    )
    return product, txn


def adjust_counter(product_id, counter, delta_pieces, *, reference="", user=None, check_available=False):
    """Move a counter on behalf of an invoice, return or exchange.

    With ``check_available`` a positive sales delta must fit in the available
    stock. Zero deltas are a no-op. Runs inside the caller's transaction.
    """
    if delta_pieces == 0:
        return None

    kind = next(kind for kind, name in KIND_COUNTERS.items() if name == counter)
    product = Product.objects.select_for_update().get(pk=product_id)
    if check_available and delta_pieces > 0:
        violations = validate_quantity(delta_pieces, product.available_pieces, kind)
        if violations:
            raise ValidationError(
                {"items": [f"{product.name}: {violation['message']}" for violation in violations]}
            )

    bump_counter(product, counter, delta_pieces)
    product.save()
    return _record(product, kind, delta_pieces, reference=reference, user=user)


def products_below_threshold(queryset):
    """Products at or under their low-stock threshold, most critical first."""
    products = [product for product in queryset if is_below_threshold(product)]
    products.sort(key=lambda product: product.available.boxes - product.low_stock_threshold)
    return products
