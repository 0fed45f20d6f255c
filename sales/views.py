import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q
from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.audit import AuditedMutationMixin
from common.filters import date_param, filter_date_range
from common.permissions import RoleCapabilityPermission
from sales.models import Customer, Invoice, Payment, Return
from sales.serializers import (
    CustomerSerializer,
    InvoiceSerializer,
    PaymentSerializer,
    ReturnPreviewItemSerializer,
    ReturnSerializer,
)
from sales.services import customer_ledger, refresh_payment_summary, sold_pieces_by_product, sync_sales_counters

logger = logging.getLogger(__name__)


class CustomerViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = Customer.objects.all()
    serializer_class = CustomerSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "customers.view",
        "retrieve": "customers.view",
        "ledger": "reports.view",
        "create": "customers.manage",
        "update": "customers.manage",
        "partial_update": "customers.manage",
        "destroy": "customers.manage",
    }
    audit_entity = "customer"

    def get_queryset(self):
        qs = self.queryset.order_by("name")
        search = self.request.query_params.get("q")
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(phone__icontains=search) | Q(gst_number__icontains=search))
        return qs

    @action(detail=True, methods=["get"], url_path="ledger")
    def ledger(self, request, pk=None):
        customer = self.get_object()
        date_from = date_param(request, "date_from")
        date_to = date_param(request, "date_to")
        return Response(customer_ledger(customer, date_from, date_to))


class InvoiceViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = Invoice.objects.select_related("customer").prefetch_related("items")
    serializer_class = InvoiceSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "sales.view",
        "retrieve": "sales.view",
        "pending": "sales.view",
        "preview": "sales.manage",
        "create": "sales.manage",
        "update": "sales.manage",
        "partial_update": "sales.manage",
        "destroy": "sales.manage",
    }
    audit_entity = "invoice"

    def get_queryset(self):
        qs = self.queryset.order_by("-invoice_date", "-created_at")
        params = self.request.query_params

        search = params.get("q")
        if search:
            qs = qs.filter(Q(invoice_number__icontains=search) | Q(customer__name__icontains=search))
        for field_name in ("customer", "invoice_type", "payment_status"):
            value = params.get(field_name)
            if value:
                qs = qs.filter(**{field_name: value})
        return filter_date_range(qs, self.request, "invoice_date")

    def perform_destroy(self, instance):
        if instance.payments.exists() or instance.returns.exists():
            raise ValidationError("Invoices with payments or returns cannot be deleted.")
        invoice_id = instance.id
        with transaction.atomic():
            sold = sold_pieces_by_product(instance.items.select_related("product"))
            sync_sales_counters(instance, sold, {}, user=self.request.user)
            super().perform_destroy(instance)
        logger.info("invoice_deleted number=%s", instance.invoice_number, extra={"invoice_id": invoice_id})

    @action(detail=False, methods=["post"], url_path="preview")
    def preview(self, request):
        serializer = self.get_serializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        return Response(serializer.preview())

    @action(detail=False, methods=["get"], url_path="pending")
    def pending(self, request):
        invoices = self.get_queryset().filter(pending_amount__gt=0).order_by("next_due_date", "invoice_date")
        page = self.paginate_queryset(invoices)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(invoices, many=True).data)


class PaymentViewSet(
    AuditedMutationMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Payment.objects.select_related("invoice", "invoice__customer")
    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "payments.view",
        "retrieve": "payments.view",
        "create": "payments.manage",
        "destroy": "payments.manage",
    }
    audit_entity = "payment"

    def get_queryset(self):
        qs = self.queryset.order_by("-payment_date", "-created_at")
        params = self.request.query_params
        if params.get("invoice"):
            qs = qs.filter(invoice_id=params["invoice"])
        if params.get("customer"):
            qs = qs.filter(invoice__customer_id=params["customer"])
        if params.get("payment_method"):
            qs = qs.filter(payment_method=params["payment_method"])
        return filter_date_range(qs, self.request, "payment_date")

    def perform_destroy(self, instance):
        with transaction.atomic():
            invoice = Invoice.objects.select_for_update().get(pk=instance.invoice_id)
            super().perform_destroy(instance)
            refresh_payment_summary(invoice)
        logger.info(
            "payment_reverted",
            extra={"invoice_id": invoice.id, "amount": instance.amount},
        )


class ReturnViewSet(
    AuditedMutationMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Return.objects.select_related("invoice").prefetch_related("items__invoice_item", "exchange_items__product")
    serializer_class = ReturnSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "sales.view",
        "retrieve": "sales.view",
        "preview": "sales.view",
        "create": "sales.manage",
    }
    audit_entity = "return"

    def get_queryset(self):
        qs = self.queryset.order_by("-return_date", "-created_at")
        params = self.request.query_params
        if params.get("invoice"):
            qs = qs.filter(invoice_id=params["invoice"])
        if params.get("return_type"):
            qs = qs.filter(return_type=params["return_type"])
        return filter_date_range(qs, self.request, "return_date")

    @action(detail=False, methods=["get"], url_path="preview")
    def preview(self, request):
        invoice_id = request.query_params.get("invoice")
        if not invoice_id:
            raise ValidationError({"invoice": "This query parameter is required."})
        try:
            invoice = Invoice.objects.get(pk=invoice_id)
        except (Invoice.DoesNotExist, DjangoValidationError):
            raise ValidationError({"invoice": "Invoice not found."})
        items = invoice.items.prefetch_related("return_items")
        return Response(
            {
                "invoice": invoice.id,
                "invoice_number": invoice.invoice_number,
                "items": ReturnPreviewItemSerializer(items, many=True).data,
            }
        )
