import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

PAYMENT_METHODS = [
    ("CASH", "Cash"),
    ("UPI", "UPI"),
    ("CARD", "Card"),
    ("BANK_TRANSFER", "Bank transfer"),
    ("CHEQUE", "Cheque"),
    ("BAJAJ_FINSERVE", "Bajaj Finserv"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("inventory", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("phone", models.CharField(blank=True, max_length=20)),
                ("address", models.TextField(blank=True)),
                ("gst_number", models.CharField(blank=True, max_length=15)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["phone"], name="customer_phone_idx"),
                    models.Index(fields=["name"], name="customer_name_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("invoice_number", models.CharField(max_length=64, unique=True)),
                (
                    "invoice_type",
                    models.CharField(choices=[("GST", "GST"), ("NON_GST", "Non-GST")], default="NON_GST", max_length=16),
                ),
                ("invoice_date", models.DateField(default=django.utils.timezone.localdate)),
                ("customer_details", models.JSONField(blank=True, default=dict)),
                ("subtotal", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("total_tax", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("cgst", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("sgst", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("igst", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("discount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("round_off_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("final_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("payment_method", models.CharField(blank=True, choices=PAYMENT_METHODS, max_length=16)),
                ("initial_payment", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("total_paid", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("pending_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("PAID", "Paid"), ("PARTIAL", "Partial"), ("PENDING", "Pending")],
                        default="PENDING",
                        max_length=16,
                    ),
                ),
                ("next_due_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="sales.customer"
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["customer", "invoice_date"], name="invoice_customer_date_idx"),
                    models.Index(fields=["payment_status", "invoice_date"], name="invoice_status_date_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("position", models.PositiveIntegerField(default=0)),
                ("product_name", models.CharField(max_length=255)),
                ("size", models.CharField(blank=True, max_length=32)),
                ("hsn_no", models.CharField(blank=True, max_length=32)),
                ("is_custom", models.BooleanField(default=False)),
                ("quantity_boxes", models.PositiveIntegerField(default=0)),
                ("quantity_pieces", models.PositiveIntegerField(default=0)),
                ("pieces_per_box", models.PositiveIntegerField(default=1)),
                ("price_per_box", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("price_per_piece", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("tax_rate", models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ("total_price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("item_total", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="items", to="sales.invoice"
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoice_items",
                        to="inventory.product",
                    ),
                ),
            ],
            options={
                "ordering": ["position"],
                "indexes": [
                    models.Index(fields=["invoice", "position"], name="invoiceitem_invoice_pos_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("payment_method", models.CharField(choices=PAYMENT_METHODS, default="CASH", max_length=16)),
                ("payment_date", models.DateField(default=django.utils.timezone.localdate)),
                ("transaction_id", models.CharField(blank=True, max_length=128)),
                ("notes", models.TextField(blank=True)),
                ("remaining_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="sales.invoice"
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["invoice", "payment_date"], name="payment_invoice_date_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Return",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "return_type",
                    models.CharField(
                        choices=[("CREDIT", "Credit note"), ("REFUND", "Refund"), ("EXCHANGE", "Exchange")],
                        default="CREDIT",
                        max_length=16,
                    ),
                ),
                ("refund_method", models.CharField(blank=True, choices=PAYMENT_METHODS, max_length=16)),
                ("return_date", models.DateField(default=django.utils.timezone.localdate)),
                ("total_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("exchange_total", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="returns", to="sales.invoice"
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["invoice", "return_date"], name="return_invoice_date_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReturnItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity_boxes", models.PositiveIntegerField(default=0)),
                ("quantity_pieces", models.PositiveIntegerField(default=0)),
                ("return_value", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("reason", models.CharField(blank=True, max_length=255)),
                (
                    "condition",
                    models.CharField(choices=[("GOOD", "Good"), ("DAMAGED", "Damaged")], default="GOOD", max_length=16),
                ),
                (
                    "invoice_item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="return_items", to="sales.invoiceitem"
                    ),
                ),
                (
                    "return_txn",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="items", to="sales.return"
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="ExchangeItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity_boxes", models.PositiveIntegerField(default=0)),
                ("quantity_pieces", models.PositiveIntegerField(default=0)),
                ("price_per_box", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("value", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="exchange_items", to="inventory.product"
                    ),
                ),
                (
                    "return_txn",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="exchange_items", to="sales.return"
                    ),
                ),
            ],
        ),
    ]
