import logging

from django.db import IntegrityError, transaction
from rest_framework import serializers

from billing.formatting import amount_in_words, format_currency
from billing.pricing import apply_invoice_type, default_tax_rate, price_per_piece_from_box
from billing.quantity import format_quantity, to_base_units
from billing.totals import invoice_value, price_invoice
from billing.validation import (
    validate_discount,
    validate_exchange_items,
    validate_invoice_items,
    validate_payment,
    validate_return_items,
)
from common.exceptions import raise_violations
from inventory.models import Product
from inventory.serializers import QuantityField
from inventory.services import adjust_counter
from sales.models import Customer, ExchangeItem, Invoice, InvoiceItem, Payment, Return, ReturnItem
from sales.services import (
    _to_money,
    paid_through_payments,
    quantity_value,
    refresh_payment_summary,
    restock_return_item,
    return_line_value,
    returnable_quantity,
    save_with_invoice_number,
    sold_pieces_by_product,
    sync_sales_counters,
)

logger = logging.getLogger(__name__)


def _request_user(serializer):
    request = serializer.context.get("request")
    user = getattr(request, "user", None)
    return user if user is not None and user.is_authenticated else None


def _money_text(value):
    return str(_to_money(value))


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ["id", "name", "phone", "address", "gst_number", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class InvoiceItemSerializer(serializers.ModelSerializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)
    product_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    quantity = QuantityField()
    quantity_display = serializers.SerializerMethodField()
    pieces_per_box = serializers.IntegerField(min_value=1, required=False)
    price_per_box = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    price_per_piece = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    tax_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)

    class Meta:
        model = InvoiceItem
        fields = [
            "id",
            "position",
            "product",
            "product_name",
            "size",
            "hsn_no",
            "is_custom",
            "quantity",
            "quantity_display",
            "pieces_per_box",
            "price_per_box",
            "price_per_piece",
            "tax_rate",
            "total_price",
            "item_total",
            "tax_amount",
        ]
        read_only_fields = ["id", "position", "total_price", "item_total", "tax_amount"]

    def get_quantity_display(self, obj):
        return format_quantity(obj.quantity)

    def validate(self, attrs):
        product = attrs.get("product")
        if attrs.get("is_custom"):
            attrs["product"] = None
            attrs["pieces_per_box"] = 1
            if not attrs.get("product_name"):
                raise serializers.ValidationError({"product_name": "Custom items need a name."})
        elif product is None:
            raise serializers.ValidationError({"product": "Select a product or mark the item as custom."})
        else:
            attrs.setdefault("product_name", product.name)
            attrs["product_name"] = attrs["product_name"] or product.name
            attrs.setdefault("size", product.size)
            attrs.setdefault("hsn_no", product.hsn_no)
            attrs.setdefault("pieces_per_box", product.pieces_per_box)
            attrs.setdefault("price_per_box", product.price_per_box)

        attrs.setdefault("price_per_box", 0)
        if "price_per_piece" not in attrs:
            attrs["price_per_piece"] = _to_money(price_per_piece_from_box(attrs["price_per_box"], attrs["pieces_per_box"]))
        return attrs


def _item_state(item):
    """Validated item data for an existing invoice item, for re-pricing without new items."""
    return {
        "product": item.product,
        "product_name": item.product_name,
        "size": item.size,
        "hsn_no": item.hsn_no,
        "is_custom": item.is_custom,
        "quantity": item.quantity,
        "pieces_per_box": item.pieces_per_box,
        "price_per_box": item.price_per_box,
        "price_per_piece": item.price_per_piece,
        "tax_rate": item.tax_rate,
    }


class InvoiceSerializer(serializers.ModelSerializer):
    items = InvoiceItemSerializer(many=True, required=False)
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    custom_invoice_number = serializers.CharField(max_length=64, required=False, allow_blank=True, write_only=True)
    final_amount_display = serializers.SerializerMethodField()
    amount_in_words = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "custom_invoice_number",
            "invoice_type",
            "invoice_date",
            "customer",
            "customer_name",
            "customer_details",
            "items",
            "subtotal",
            "total_tax",
            "cgst",
            "sgst",
            "igst",
            "discount",
            "round_off_amount",
            "final_amount",
            "final_amount_display",
            "amount_in_words",
            "payment_method",
            "initial_payment",
            "total_paid",
            "pending_amount",
            "payment_status",
            "next_due_date",
            "notes",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "invoice_number",
            "customer_details",
            "subtotal",
            "total_tax",
            "cgst",
            "sgst",
            "igst",
            "round_off_amount",
            "final_amount",
            "total_paid",
            "pending_amount",
            "payment_status",
            "created_by",
            "created_at",
            "updated_at",
        ]

    def get_final_amount_display(self, obj):
        return format_currency(obj.final_amount)

    def get_amount_in_words(self, obj):
        return amount_in_words(obj.final_amount)

    def validate_custom_invoice_number(self, value):
        value = value.strip()
        existing = Invoice.objects.filter(invoice_number=value)
        if self.instance is not None:
            existing = existing.exclude(pk=self.instance.pk)
        if value and existing.exists():
            raise serializers.ValidationError("An invoice with this number already exists.")
        return value

    def validate(self, attrs):
        instance = self.instance
        if "items" in attrs:
            if instance is not None and instance.returns.exists():
                raise serializers.ValidationError({"items": "Items cannot change once goods have been returned."})
            items = attrs["items"]
        elif instance is not None:
            items = [_item_state(item) for item in instance.items.select_related("product")]
        else:
            items = []

        invoice_type = attrs.get("invoice_type", getattr(instance, "invoice_type", Invoice.Type.NON_GST))
        # A missing rate takes the default for the invoice type; an explicit 0 stays 0 on GST.
        items = [{**item, "tax_rate": item.get("tax_rate", default_tax_rate(invoice_type))} for item in items]
        if instance is not None and instance.invoice_type == Invoice.Type.NON_GST and invoice_type == Invoice.Type.GST:
            items = apply_invoice_type(items, invoice_type)
        if "items" in attrs:
            attrs["items"] = items

        raise_violations(validate_invoice_items(items), key="items")

        discount = attrs.get("discount", getattr(instance, "discount", 0))
        lines, totals = price_invoice(items, invoice_type, discount)
        raise_violations(validate_discount(discount, totals), key="discount")

        initial_payment = attrs.get("initial_payment", getattr(instance, "initial_payment", 0))
        if initial_payment:
            raise_violations(validate_payment(initial_payment, totals.final_amount), key="initial_payment")
        if instance is not None:
            already_paid = initial_payment + paid_through_payments(instance)
            if totals.final_amount < already_paid:
                raise serializers.ValidationError(
                    {"items": "The new total is lower than what the customer has already paid."}
                )

        self._priced = (items, lines, totals)
        return attrs

    def _apply_totals(self, invoice, totals):
        invoice.subtotal = _to_money(totals.subtotal)
        invoice.total_tax = _to_money(totals.total_tax)
        invoice.cgst = _to_money(totals.cgst)
        invoice.sgst = _to_money(totals.sgst)
        invoice.igst = _to_money(totals.igst)
        invoice.discount = _to_money(totals.discount)
        invoice.round_off_amount = _to_money(totals.round_off_amount)
        invoice.final_amount = _to_money(totals.final_amount)

    def _create_items(self, invoice, items, lines):
        for position, (item, line) in enumerate(zip(items, lines)):
            quantity = item["quantity"]
            InvoiceItem.objects.create(
                invoice=invoice,
                position=position,
                product=item.get("product"),
                product_name=item["product_name"],
                size=item.get("size", ""),
                hsn_no=item.get("hsn_no", ""),
                is_custom=item.get("is_custom", False),
                quantity_boxes=quantity.boxes,
                quantity_pieces=quantity.pieces,
                pieces_per_box=item["pieces_per_box"],
                price_per_box=item["price_per_box"],
                price_per_piece=item["price_per_piece"],
                tax_rate=item["tax_rate"],
                total_price=_to_money(line.total_price),
                item_total=_to_money(line.item_total),
                tax_amount=_to_money(line.tax_amount),
            )

    def create(self, validated_data):
        items, lines, totals = self._priced
        validated_data.pop("items", None)
        custom_number = validated_data.pop("custom_invoice_number", "")
        user = _request_user(self)

        with transaction.atomic():
            invoice = Invoice(**validated_data)
            invoice.customer_details = invoice.customer.snapshot()
            invoice.created_by = user
            self._apply_totals(invoice, totals)
            refresh_payment_summary(invoice, save=False)
            try:
                save_with_invoice_number(invoice, custom_number)
            except IntegrityError:
                if not custom_number:
                    raise
                raise serializers.ValidationError(
                    {"custom_invoice_number": "An invoice with this number already exists."}
                )

            self._create_items(invoice, items, lines)
            sync_sales_counters(invoice, {}, sold_pieces_by_product(items), user=user)

        logger.info(
            "invoice_created number=%s type=%s",
            invoice.invoice_number,
            invoice.invoice_type,
            extra={"invoice_id": invoice.id, "customer_id": invoice.customer_id, "amount": invoice.final_amount},
        )
        return invoice

    def update(self, instance, validated_data):
        items, lines, totals = self._priced
        replace_items = validated_data.pop("items", None) is not None
        custom_number = validated_data.pop("custom_invoice_number", "")
        user = _request_user(self)

        with transaction.atomic():
            before = sold_pieces_by_product(instance.items.select_related("product"))
            for attr, value in validated_data.items():
                setattr(instance, attr, value)
            if custom_number:
                instance.invoice_number = custom_number
            if "customer" in validated_data:
                instance.customer_details = instance.customer.snapshot()
            self._apply_totals(instance, totals)
            refresh_payment_summary(instance, save=False)
            instance.save()

            if replace_items:
                instance.items.all().delete()
                self._create_items(instance, items, lines)
                sync_sales_counters(instance, before, sold_pieces_by_product(items), user=user)
                getattr(instance, "_prefetched_objects_cache", {}).pop("items", None)
            else:
                for item, (priced, line) in zip(instance.items.all(), zip(items, lines)):
                    item.tax_rate = priced["tax_rate"]
                    item.total_price = _to_money(line.total_price)
                    item.item_total = _to_money(line.item_total)
                    item.tax_amount = _to_money(line.tax_amount)
                    item.save(update_fields=["tax_rate", "total_price", "item_total", "tax_amount"])

        logger.info(
            "invoice_updated number=%s",
            instance.invoice_number,
            extra={"invoice_id": instance.id, "amount": instance.final_amount},
        )
        return instance

    def preview(self):
        """Priced draft for the live totals panel; nothing is saved."""
        items, lines, totals = self._priced
        invoice_type = self.validated_data.get("invoice_type", Invoice.Type.NON_GST)
        return {
            "items": [
                {
                    "product_name": item.get("product_name", ""),
                    "quantity": item["quantity"].as_dict(),
                    "tax_rate": _money_text(item["tax_rate"]),
                    "total_price": _money_text(line.total_price),
                    "item_total": _money_text(line.item_total),
                    "tax_amount": _money_text(line.tax_amount),
                }
                for item, line in zip(items, lines)
            ],
            "subtotal": _money_text(totals.subtotal),
            "total_tax": _money_text(totals.total_tax),
            "cgst": _money_text(totals.cgst),
            "sgst": _money_text(totals.sgst),
            "igst": _money_text(totals.igst),
            "discount": _money_text(totals.discount),
            "total_before_discount": _money_text(totals.total_before_discount),
            "round_off_amount": _money_text(totals.round_off_amount),
            "final_amount": _money_text(totals.final_amount),
            "invoice_value": _money_text(invoice_value(totals, invoice_type)),
            "final_amount_display": format_currency(totals.final_amount),
            "amount_in_words": amount_in_words(totals.final_amount),
        }


class PaymentSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True)
    customer_name = serializers.CharField(source="invoice.customer.name", read_only=True)
    next_due_date = serializers.DateField(required=False, allow_null=True, write_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "invoice",
            "invoice_number",
            "customer_name",
            "amount",
            "payment_method",
            "payment_date",
            "transaction_id",
            "notes",
            "next_due_date",
            "remaining_amount",
            "created_by",
            "created_at",
        ]
        read_only_fields = ["id", "remaining_amount", "created_by", "created_at"]

    def validate(self, attrs):
        invoice = attrs["invoice"]
        amount = attrs["amount"]
        raise_violations(validate_payment(amount, invoice.pending_amount), key="amount")
        if amount < invoice.pending_amount and not attrs.get("next_due_date"):
            raise serializers.ValidationError({"next_due_date": "A partial payment needs the next due date."})
        return attrs

    def create(self, validated_data):
        next_due_date = validated_data.pop("next_due_date", None)
        with transaction.atomic():
            invoice = Invoice.objects.select_for_update().get(pk=validated_data["invoice"].pk)
            # Re-checked under the lock so concurrent payments cannot overpay.
            raise_violations(validate_payment(validated_data["amount"], invoice.pending_amount), key="amount")

            payment = Payment.objects.create(
                **validated_data,
                remaining_amount=invoice.pending_amount - validated_data["amount"],
                created_by=_request_user(self),
            )
            if next_due_date:
                invoice.next_due_date = next_due_date
            refresh_payment_summary(invoice)

        logger.info(
            "payment_recorded method=%s",
            payment.payment_method,
            extra={"invoice_id": invoice.id, "amount": payment.amount},
        )
        return payment


class ReturnItemSerializer(serializers.ModelSerializer):
    quantity = QuantityField()
    product_name = serializers.CharField(source="invoice_item.product_name", read_only=True)

    class Meta:
        model = ReturnItem
        fields = ["id", "invoice_item", "product_name", "quantity", "return_value", "reason", "condition"]
        read_only_fields = ["id", "return_value"]


class ExchangeItemSerializer(serializers.ModelSerializer):
    quantity = QuantityField()
    product_name = serializers.CharField(source="product.name", read_only=True)
    price_per_box = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)

    class Meta:
        model = ExchangeItem
        fields = ["id", "product", "product_name", "quantity", "price_per_box", "value"]
        read_only_fields = ["id", "value"]


class ReturnSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True)
    items = ReturnItemSerializer(many=True)
    exchange_items = ExchangeItemSerializer(many=True, required=False)

    class Meta:
        model = Return
        fields = [
            "id",
            "invoice",
            "invoice_number",
            "return_type",
            "refund_method",
            "return_date",
            "items",
            "exchange_items",
            "total_amount",
            "exchange_total",
            "notes",
            "created_by",
            "created_at",
        ]
        read_only_fields = ["id", "total_amount", "exchange_total", "created_by", "created_at"]

    def validate(self, attrs):
        invoice = attrs["invoice"]
        items = attrs.get("items") or []
        exchange_items = attrs.get("exchange_items") or []
        return_type = attrs.get("return_type", Return.Type.CREDIT)

        seen = set()
        checks = []
        for item in items:
            invoice_item = item["invoice_item"]
            if invoice_item.invoice_id != invoice.id:
                raise serializers.ValidationError({"items": "Returned items must belong to the invoice."})
            if invoice_item.pk in seen:
                raise serializers.ValidationError({"items": "Each invoice item can appear only once per return."})
            seen.add(invoice_item.pk)
            checks.append(
                {
                    "product_name": invoice_item.product_name,
                    "pieces_per_box": invoice_item.pieces_per_box,
                    "return_quantity": item["quantity"],
                    "returnable_quantity": returnable_quantity(invoice_item),
                }
            )
        raise_violations(validate_return_items(checks), key="items")

        if return_type == Return.Type.EXCHANGE:
            raise_violations(
                validate_exchange_items(
                    [
                        {
                            "product_name": item["product"].name,
                            "pieces_per_box": item["product"].pieces_per_box,
                            "quantity": item["quantity"],
                        }
                        for item in exchange_items
                    ]
                ),
                key="exchange_items",
            )
        elif exchange_items:
            raise serializers.ValidationError({"exchange_items": "Only exchanges carry exchange items."})

        if return_type == Return.Type.REFUND and not attrs.get("refund_method"):
            raise serializers.ValidationError({"refund_method": "Choose how the refund is paid."})
        return attrs

    def create(self, validated_data):
        items = validated_data.pop("items")
        exchange_items = validated_data.pop("exchange_items", [])
        user = _request_user(self)

        with transaction.atomic():
            return_txn = Return.objects.create(**validated_data, created_by=user)

            total_amount = 0
            for item in items:
                quantity = item.pop("quantity")
                return_item = ReturnItem.objects.create(
                    return_txn=return_txn,
                    quantity_boxes=quantity.boxes,
                    quantity_pieces=quantity.pieces,
                    return_value=return_line_value(item["invoice_item"], quantity),
                    **item,
                )
                total_amount += return_item.return_value
                restock_return_item(return_item, user=user)

            exchange_total = 0
            for item in exchange_items:
                quantity = item.pop("quantity")
                product = item["product"]
                price_per_box = item.pop("price_per_box", product.price_per_box)
                exchange_item = ExchangeItem.objects.create(
                    return_txn=return_txn,
                    quantity_boxes=quantity.boxes,
                    quantity_pieces=quantity.pieces,
                    price_per_box=price_per_box,
                    value=_to_money(quantity_value(quantity, price_per_box, product.pieces_per_box)),
                    **item,
                )
                exchange_total += exchange_item.value
                adjust_counter(
                    product.pk,
                    "sales",
                    to_base_units(quantity, product.pieces_per_box),
                    reference=return_txn.invoice_number,
                    user=user,
                    check_available=True,
                )

            return_txn.total_amount = _to_money(total_amount)
            return_txn.exchange_total = _to_money(exchange_total)
            return_txn.save(update_fields=["total_amount", "exchange_total"])

        logger.info(
            "return_recorded type=%s",
            return_txn.return_type,
            extra={"invoice_id": return_txn.invoice_id, "amount": return_txn.total_amount},
        )
        return return_txn


class ReturnPreviewItemSerializer(serializers.ModelSerializer):
    returnable_quantity = serializers.SerializerMethodField()
    quantity = QuantityField(read_only=True)

    class Meta:
        model = InvoiceItem
        fields = [
            "id",
            "product",
            "product_name",
            "is_custom",
            "pieces_per_box",
            "price_per_box",
            "price_per_piece",
            "quantity",
            "returnable_quantity",
        ]
        read_only_fields = fields

    def get_returnable_quantity(self, obj):
        return returnable_quantity(obj).as_dict()
