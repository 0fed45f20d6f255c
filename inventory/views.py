from django.db.models import F, Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.audit import AuditedMutationMixin, create_audit_log_from_request
from common.permissions import RoleCapabilityPermission
from inventory.catalog import pieces_per_box_for, pieces_per_box_options
from inventory.models import Product
from inventory.serializers import (
    BulkLowStockThresholdSerializer,
    ProductSerializer,
    StockMovementSerializer,
    StockTransactionSerializer,
)
from inventory.services import products_below_threshold, record_stock_movement

TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}


def _available_pieces_expression():
    ppb = F("pieces_per_box")
    return (
        F("stock_boxes") * ppb
        + F("stock_pieces")
        - F("sales_boxes") * ppb
        - F("sales_pieces")
        - F("damage_boxes") * ppb
        - F("damage_pieces")
        + F("returns_boxes") * ppb
        + F("returns_pieces")
    )


class ProductViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = Product.objects.all()
    serializer_class = ProductSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "stock.view",
        "retrieve": "stock.view",
        "history": "stock.view",
        "low_stock": "stock.view",
        "pieces_per_box": "stock.view",
        "create": "stock.manage",
        "update": "stock.manage",
        "partial_update": "stock.manage",
        "destroy": "stock.manage",
        "stock": "stock.manage",
        "bulk_low_stock_threshold": "stock.manage",
    }
    audit_entity = "product"

    def get_queryset(self):
        qs = self.queryset.order_by("name")
        params = self.request.query_params

        search = params.get("q")
        if search:
            qs = qs.filter(
                Q(name__icontains=search)
                | Q(type__icontains=search)
                | Q(sub_type__icontains=search)
                | Q(size__icontains=search)
            )
        for field_name in ("type", "sub_type", "size", "hsn_no", "location"):
            value = params.get(field_name)
            if value:
                qs = qs.filter(**{field_name: value})
        if params.get("is_active") is not None:
            qs = qs.filter(is_active=params["is_active"].strip().lower() in TRUE_VALUES)
        if (params.get("in_stock_only") or "").strip().lower() in TRUE_VALUES:
            qs = qs.alias(available_total=_available_pieces_expression()).filter(available_total__gt=0)
        return qs

    def perform_destroy(self, instance):
        if instance.invoice_items.exists():
            raise ValidationError("This product appears on invoices; deactivate it instead of deleting it.")
        super().perform_destroy(instance)

    @action(detail=True, methods=["post"], url_path="stock")
    def stock(self, request, pk=None):
        product = self.get_object()
        serializer = StockMovementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        before_snapshot = self.get_serializer(product).data
        product, txn = record_stock_movement(
            product.id,
            data["kind"],
            {"boxes": data["boxes"], "pieces": data["pieces"]},
            notes=data["notes"],
            user=request.user,
        )
        after_snapshot = self.get_serializer(product).data
        create_audit_log_from_request(
            request,
            action=f"stock.{data['kind']}",
            entity="product",
            entity_id=product.id,
            before_snapshot=before_snapshot,
            after_snapshot=after_snapshot,
        )
        return Response(
            {"product": after_snapshot, "transaction": StockTransactionSerializer(txn).data},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["get"], url_path="history")
    def history(self, request, pk=None):
        product = self.get_object()
        transactions = product.transactions.select_related("created_by")
        kind = request.query_params.get("kind")
        if kind:
            transactions = transactions.filter(kind=kind)

        page = self.paginate_queryset(transactions)
        if page is not None:
            return self.get_paginated_response(StockTransactionSerializer(page, many=True).data)
        return Response(StockTransactionSerializer(transactions, many=True).data)

    @action(detail=False, methods=["get"], url_path="low-stock")
    def low_stock(self, request):
        products = products_below_threshold(self.get_queryset().filter(is_active=True))
        return Response(self.get_serializer(products, many=True).data)

    @action(detail=False, methods=["patch"], url_path="bulk-low-stock-threshold")
    def bulk_low_stock_threshold(self, request):
        serializer = BulkLowStockThresholdSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        product_ids = serializer.validated_data["product_ids"]
        threshold = serializer.validated_data["low_stock_threshold"]

        updated = Product.objects.filter(id__in=product_ids).update(low_stock_threshold=threshold)
        create_audit_log_from_request(
            request,
            action="product.bulk_low_stock_threshold",
            entity="product",
            after_snapshot={"product_ids": product_ids, "low_stock_threshold": threshold},
        )
        return Response({"updated": updated, "low_stock_threshold": threshold})

    @action(detail=False, methods=["get"], url_path="pieces-per-box")
    def pieces_per_box(self, request):
        size = request.query_params.get("size", "")
        type_ = request.query_params.get("type")
        sub_type = request.query_params.get("sub_type")
        return Response(
            {
                "default": pieces_per_box_for(size, type_, sub_type),
                "options": pieces_per_box_options(size, type_, sub_type),
            }
        )
