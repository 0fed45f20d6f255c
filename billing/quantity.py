"""Box/piece quantities.

Tiles are counted in boxes of a fixed number of pieces. Everything that adds or
compares quantities goes through base units (pieces) and comes back out with
``from_base_units``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from billing.coerce import field, to_int

# Used whenever a product or line carries no usable pieces-per-box value.
DEFAULT_PIECES_PER_BOX = 1


def coerce_pieces_per_box(value: Any) -> int:
    pieces_per_box = to_int(value)
    return pieces_per_box if pieces_per_box >= 1 else DEFAULT_PIECES_PER_BOX


@dataclass(frozen=True)
class Quantity:
    boxes: int = 0
    pieces: int = 0

    @classmethod
    def coerce(cls, value: Any) -> "Quantity":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls()
        return cls(boxes=to_int(field(value, "boxes", 0)), pieces=to_int(field(value, "pieces", 0)))

    def as_dict(self) -> dict[str, int]:
        return {"boxes": self.boxes, "pieces": self.pieces}

    def __str__(self) -> str:
        return format_quantity(self)


def to_base_units(quantity: Any, pieces_per_box: Any) -> int:
    quantity = Quantity.coerce(quantity)
    return quantity.boxes * coerce_pieces_per_box(pieces_per_box) + quantity.pieces


def from_base_units(total_pieces: Any, pieces_per_box: Any) -> Quantity:
    boxes, pieces = divmod(to_int(total_pieces), coerce_pieces_per_box(pieces_per_box))
    return Quantity(boxes=boxes, pieces=pieces)


def normalize(quantity: Any, pieces_per_box: Any) -> Quantity:
    """Carry loose pieces into whole boxes."""
    return from_base_units(to_base_units(quantity, pieces_per_box), pieces_per_box)


def format_quantity(quantity: Any) -> str:
    quantity = Quantity.coerce(quantity)
    boxes, pieces = quantity.boxes, quantity.pieces
    if boxes == 0 and pieces == 0:
        return "0"
    if boxes == 0:
        return f"{pieces} pc"
    if pieces == 0:
        return f"{boxes} bx"
    return f"{boxes} bx, {pieces} pc"
