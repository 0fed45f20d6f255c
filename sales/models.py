import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from billing.quantity import Quantity
from inventory.models import Product


class PaymentMethod(models.TextChoices):
    CASH = "CASH", "Cash"
    UPI = "UPI", "UPI"
    CARD = "CARD", "Card"
    BANK_TRANSFER = "BANK_TRANSFER", "Bank transfer"
    CHEQUE = "CHEQUE", "Cheque"
    BAJAJ_FINSERVE = "BAJAJ_FINSERVE", "Bajaj Finserv"


class Customer(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    gst_number = models.CharField(max_length=15, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["phone"], name="customer_phone_idx"),
            models.Index(fields=["name"], name="customer_name_idx"),
        ]

    def __str__(self):
        return self.name

    def snapshot(self):
        return {
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "gst_number": self.gst_number,
        }


class Invoice(models.Model):
    class Type(models.TextChoices):
        GST = "GST", "GST"
        NON_GST = "NON_GST", "Non-GST"

    class PaymentStatus(models.TextChoices):
        PAID = "PAID", "Paid"
        PARTIAL = "PARTIAL", "Partial"
        PENDING = "PENDING", "Pending"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice_number = models.CharField(max_length=64, unique=True)
    invoice_type = models.CharField(max_length=16, choices=Type, default=Type.NON_GST)
    invoice_date = models.DateField(default=timezone.localdate)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="invoices")
    customer_details = models.JSONField(default=dict, blank=True)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_tax = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    cgst = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    sgst = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    igst = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    round_off_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    final_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    payment_method = models.CharField(max_length=16, choices=PaymentMethod, blank=True)
    initial_payment = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_paid = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    pending_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    payment_status = models.CharField(max_length=16, choices=PaymentStatus, default=PaymentStatus.PENDING)
    next_due_date = models.DateField(null=True, blank=True)

    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["customer", "invoice_date"], name="invoice_customer_date_idx"),
            models.Index(fields=["payment_status", "invoice_date"], name="invoice_status_date_idx"),
        ]

    def __str__(self):
        return self.invoice_number


class InvoiceItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, null=True, blank=True, related_name="invoice_items")
    position = models.PositiveIntegerField(default=0)
    product_name = models.CharField(max_length=255)
    size = models.CharField(max_length=32, blank=True)
    hsn_no = models.CharField(max_length=32, blank=True)
    is_custom = models.BooleanField(default=False)
    quantity_boxes = models.PositiveIntegerField(default=0)
    quantity_pieces = models.PositiveIntegerField(default=0)
    pieces_per_box = models.PositiveIntegerField(default=1)
    price_per_box = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    price_per_piece = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    item_total = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    class Meta:
        ordering = ["position"]
        indexes = [
            models.Index(fields=["invoice", "position"], name="invoiceitem_invoice_pos_idx"),
        ]

    @property
    def quantity(self):
        return Quantity(boxes=self.quantity_boxes, pieces=self.quantity_pieces)


class Payment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name="payments")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=16, choices=PaymentMethod, default=PaymentMethod.CASH)
    payment_date = models.DateField(default=timezone.localdate)
    transaction_id = models.CharField(max_length=128, blank=True)
    notes = models.TextField(blank=True)
    remaining_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["invoice", "payment_date"], name="payment_invoice_date_idx"),
        ]

    @property
    def invoice_number(self):
        return self.invoice.invoice_number


class Return(models.Model):
    class Type(models.TextChoices):
        CREDIT = "CREDIT", "Credit note"
        REFUND = "REFUND", "Refund"
        EXCHANGE = "EXCHANGE", "Exchange"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name="returns")
    return_type = models.CharField(max_length=16, choices=Type, default=Type.CREDIT)
    refund_method = models.CharField(max_length=16, choices=PaymentMethod, blank=True)
    return_date = models.DateField(default=timezone.localdate)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    exchange_total = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["invoice", "return_date"], name="return_invoice_date_idx"),
        ]

    @property
    def invoice_number(self):
        return self.invoice.invoice_number


class ReturnItem(models.Model):
    class Condition(models.TextChoices):
        GOOD = "GOOD", "Good"
        DAMAGED = "DAMAGED", "Damaged"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    return_txn = models.ForeignKey(Return, on_delete=models.CASCADE, related_name="items")
    invoice_item = models.ForeignKey(InvoiceItem, on_delete=models.PROTECT, related_name="return_items")
    quantity_boxes = models.PositiveIntegerField(default=0)
    quantity_pieces = models.PositiveIntegerField(default=0)
    return_value = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    reason = models.CharField(max_length=255, blank=True)
    condition = models.CharField(max_length=16, choices=Condition, default=Condition.GOOD)

    @property
    def quantity(self):
        return Quantity(boxes=self.quantity_boxes, pieces=self.quantity_pieces)


class ExchangeItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    return_txn = models.ForeignKey(Return, on_delete=models.CASCADE, related_name="exchange_items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="exchange_items")
    quantity_boxes = models.PositiveIntegerField(default=0)
    quantity_pieces = models.PositiveIntegerField(default=0)
    price_per_box = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    value = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    @property
    def quantity(self):
        return Quantity(boxes=self.quantity_boxes, pieces=self.quantity_pieces)
