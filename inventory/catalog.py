"""Tile packing rules: how many pieces come in a box of a given tile."""

# (type, sub_type, size) -> allowed pieces per box, default first.
TYPED_RULES = {
    ("Wall", None, "1×1.5"): [6],
    ("Wall", None, "1×2"): [6, 5],
    ("Floor", "Matte", "2×2"): [4],
    ("Floor", "Glossy", "2×4"): [2],
    ("Floor", "Glossy", "2×2"): [4],
    ("Floor", "High Glossy", "2×4"): [2],
    ("Floor", "High Glossy", "2×2"): [4],
    ("Floor", "Rough", "2×4"): [2],
    ("Floor", "Rough", "1×1"): [9],
    ("Parking", None, "16×16"): [5],
}

SIZE_RULES = {
    "1×1": [9],
    "1×1.5": [6],
    "1×2": [6, 5],
    "2×2": [4],
    "2×4": [2],
    "16×16": [5],
}

# Only floor tiles are sold in finishes.
TYPES_WITH_SUB_TYPE = {"Floor"}


def normalize_size(size):
    """Accept "2x4" or "2X4" as well as the catalog spelling "2×4"."""
    if not size:
        return ""
    return str(size).strip().replace("x", "×").replace("X", "×").replace(" ", "")


def _options(size, type=None, sub_type=None):
    size = normalize_size(size)
    if type:
        key_sub_type = sub_type if type in TYPES_WITH_SUB_TYPE else None
        rule = TYPED_RULES.get((type, key_sub_type, size))
        if rule:
            return rule
    return SIZE_RULES.get(size, [])


def pieces_per_box_for(size, type=None, sub_type=None):
    """Default pieces per box for a tile, or ``None`` when no rule covers it."""
    options = _options(size, type, sub_type)
    return options[0] if options else None


def pieces_per_box_options(size, type=None, sub_type=None):
    return sorted(_options(size, type, sub_type))


def default_product_name(type, sub_type, size):
    if type in TYPES_WITH_SUB_TYPE and sub_type:
        return f"{type} {sub_type} {normalize_size(size)}"
    return f"{type} {normalize_size(size)}"
