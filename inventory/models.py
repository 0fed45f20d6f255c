import uuid

from django.conf import settings
from django.db import models

from billing.pricing import price_per_piece_from_box
from billing.quantity import Quantity
from billing.stock import availability_status, available, available_pieces

# Counters kept per product, each as a box/piece pair.
COUNTERS = ("stock", "sales", "damage", "returns")


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    type = models.CharField(max_length=64)
    sub_type = models.CharField(max_length=64, blank=True)
    size = models.CharField(max_length=32)
    pieces_per_box = models.PositiveIntegerField(default=1)
    hsn_no = models.CharField(max_length=32, blank=True)
    price_per_box = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    location = models.CharField(max_length=128, blank=True)
    low_stock_threshold = models.PositiveIntegerField(default=0)

    stock_boxes = models.PositiveIntegerField(default=0)
    stock_pieces = models.PositiveIntegerField(default=0)
    sales_boxes = models.PositiveIntegerField(default=0)
    sales_pieces = models.PositiveIntegerField(default=0)
    damage_boxes = models.PositiveIntegerField(default=0)
    damage_pieces = models.PositiveIntegerField(default=0)
    returns_boxes = models.PositiveIntegerField(default=0)
    returns_pieces = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["type", "size"], name="product_type_size_idx"),
            models.Index(fields=["name"], name="product_name_idx"),
            models.Index(fields=["is_active"], name="product_active_idx"),
        ]

    def __str__(self):
        return self.name

    def get_counter(self, counter):
        return Quantity(
            boxes=getattr(self, f"{counter}_boxes"),
            pieces=getattr(self, f"{counter}_pieces"),
        )

    def set_counter(self, counter, quantity):
        quantity = Quantity.coerce(quantity)
        setattr(self, f"{counter}_boxes", quantity.boxes)
        setattr(self, f"{counter}_pieces", quantity.pieces)

    @property
    def stock(self):
        return self.get_counter("stock")

    @property
    def sales(self):
        return self.get_counter("sales")

    @property
    def damage(self):
        return self.get_counter("damage")

    @property
    def returns(self):
        return self.get_counter("returns")

    @property
    def available(self):
        return available(self)

    @property
    def available_pieces(self):
        return available_pieces(self)

    @property
    def availability_status(self):
        return availability_status(self.available_pieces, self.pieces_per_box)

    @property
    def price_per_piece(self):
        return price_per_piece_from_box(self.price_per_box, self.pieces_per_box)


class StockTransaction(models.Model):
    """One movement of a product counter.

    Quantities are signed: invoice edits and deletions record negative sales.
    """

    class Kind(models.TextChoices):
        ADD = "add", "Stock added"
        SALE = "sale", "Sale"
        DAMAGE = "damage", "Damage"
        RETURN = "return", "Return"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="transactions")
    kind = models.CharField(max_length=16, choices=Kind)
    boxes = models.IntegerField(default=0)
    pieces = models.IntegerField(default=0)
    total_pieces = models.IntegerField()
    reference = models.CharField(max_length=64, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["product", "created_at"], name="stocktxn_product_created_idx"),
            models.Index(fields=["kind", "created_at"], name="stocktxn_kind_created_idx"),
        ]

    @property
    def quantity(self):
        return Quantity(boxes=self.boxes, pieces=self.pieces)
