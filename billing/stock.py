from __future__ import annotations

from typing import Any

from billing.coerce import field, to_int
from billing.quantity import Quantity, coerce_pieces_per_box, from_base_units, to_base_units

STATUS_GOOD = "good"
STATUS_LOW = "low"
STATUS_CRITICAL = "critical"
STATUS_OUT_OF_STOCK = "out_of_stock"

# Whole boxes at or above which stock counts as healthy.
GOOD_STOCK_BOXES = 3


def available_pieces(product: Any) -> int:
    """stock - sales - damage + returns, in pieces, never below zero."""
    pieces_per_box = coerce_pieces_per_box(field(product, "pieces_per_box"))
    stock = to_base_units(field(product, "stock"), pieces_per_box)
    sales = to_base_units(field(product, "sales"), pieces_per_box)
    damage = to_base_units(field(product, "damage"), pieces_per_box)
    returns = to_base_units(field(product, "returns"), pieces_per_box)
    return max(0, stock - sales - damage + returns)


def available(product: Any) -> Quantity:
    return from_base_units(available_pieces(product), field(product, "pieces_per_box"))


def availability_status(pieces: Any, pieces_per_box: Any) -> str:
    pieces = to_int(pieces)
    if pieces <= 0:
        return STATUS_OUT_OF_STOCK

    boxes = pieces // coerce_pieces_per_box(pieces_per_box)
    if boxes >= GOOD_STOCK_BOXES:
        return STATUS_GOOD
    if boxes >= 1:
        return STATUS_LOW
    return STATUS_CRITICAL


def is_below_threshold(product: Any, threshold_boxes: Any = None) -> bool:
    if threshold_boxes is None:
        threshold_boxes = field(product, "low_stock_threshold", 0)
    return available(product).boxes <= to_int(threshold_boxes)
