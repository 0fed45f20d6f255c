from rest_framework import serializers

from billing.quantity import Quantity, format_quantity
from inventory.catalog import TYPES_WITH_SUB_TYPE, default_product_name, normalize_size, pieces_per_box_for
from inventory.models import Product, StockTransaction


class QuantityField(serializers.Field):
    """A ``{"boxes": int, "pieces": int}`` pair."""

    default_error_messages = {
        "invalid": "Expected an object with integer boxes and pieces.",
        "negative": "Boxes and pieces cannot be negative.",
    }

    def to_representation(self, value):
        return Quantity.coerce(value).as_dict()

    def to_internal_value(self, data):
        if not isinstance(data, dict):
            self.fail("invalid")
        try:
            boxes = int(data.get("boxes") or 0)
            pieces = int(data.get("pieces") or 0)
        except (TypeError, ValueError):
            self.fail("invalid")
        if boxes < 0 or pieces < 0:
            self.fail("negative")
        return Quantity(boxes=boxes, pieces=pieces)


class ProductSerializer(serializers.ModelSerializer):
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    pieces_per_box = serializers.IntegerField(min_value=1, required=False)
    stock = QuantityField(required=False)
    sales = QuantityField(read_only=True)
    damage = QuantityField(read_only=True)
    returns = QuantityField(read_only=True)
    available = QuantityField(read_only=True)
    available_display = serializers.SerializerMethodField()
    availability_status = serializers.CharField(read_only=True)
    price_per_piece = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "type",
            "sub_type",
            "size",
            "pieces_per_box",
            "hsn_no",
            "price_per_box",
            "price_per_piece",
            "location",
            "low_stock_threshold",
            "stock",
            "sales",
            "damage",
            "returns",
            "available",
            "available_display",
            "availability_status",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def get_available_display(self, obj):
        return format_quantity(obj.available)

    def validate(self, attrs):
        instance = self.instance
        if instance is not None and "stock" in attrs:
            raise serializers.ValidationError({"stock": "Record stock changes through the stock endpoint."})

        type_ = attrs.get("type", getattr(instance, "type", ""))
        sub_type = attrs.get("sub_type", getattr(instance, "sub_type", ""))
        size = normalize_size(attrs.get("size", getattr(instance, "size", "")))
        if "size" in attrs:
            attrs["size"] = size

        if type_ in TYPES_WITH_SUB_TYPE and not sub_type:
            raise serializers.ValidationError({"sub_type": f"Sub type is required for {type_} tiles."})

        if instance is None and "pieces_per_box" not in attrs:
            derived = pieces_per_box_for(size, type_, sub_type)
            if derived is None:
                raise serializers.ValidationError(
                    {"pieces_per_box": "No packing rule for this tile; pieces per box is required."}
                )
            attrs["pieces_per_box"] = derived

        if instance is None and not attrs.get("name"):
            attrs["name"] = default_product_name(type_, sub_type, size)

        pieces_per_box = attrs.get("pieces_per_box", getattr(instance, "pieces_per_box", 1))
        stock = attrs.get("stock")
        if stock is not None and stock.pieces >= pieces_per_box:
            raise serializers.ValidationError({"stock": f"Pieces must be less than {pieces_per_box}"})
        return attrs

    def create(self, validated_data):
        stock = validated_data.pop("stock", None)
        product = Product(**validated_data)
        if stock is not None:
            product.set_counter("stock", stock)
        product.save()
        return product


class StockMovementSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=StockTransaction.Kind.choices)
    boxes = serializers.IntegerField(min_value=0, default=0)
    pieces = serializers.IntegerField(min_value=0, default=0)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class StockTransactionSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default=None)
    quantity_display = serializers.SerializerMethodField()

    class Meta:
        model = StockTransaction
        fields = [
            "id",
            "product",
            "kind",
            "boxes",
            "pieces",
            "total_pieces",
            "quantity_display",
            "reference",
            "notes",
            "created_by",
            "created_by_username",
            "created_at",
        ]
        read_only_fields = fields

    def get_quantity_display(self, obj):
        sign = "-" if obj.total_pieces < 0 else ""
        return sign + format_quantity(Quantity(boxes=abs(obj.boxes), pieces=abs(obj.pieces)))


class BulkLowStockThresholdSerializer(serializers.Serializer):
    product_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    low_stock_threshold = serializers.IntegerField(min_value=0)
