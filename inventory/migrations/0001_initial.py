import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("type", models.CharField(max_length=64)),
                ("sub_type", models.CharField(blank=True, max_length=64)),
                ("size", models.CharField(max_length=32)),
                ("pieces_per_box", models.PositiveIntegerField(default=1)),
                ("hsn_no", models.CharField(blank=True, max_length=32)),
                ("price_per_box", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("location", models.CharField(blank=True, max_length=128)),
                ("low_stock_threshold", models.PositiveIntegerField(default=0)),
                ("stock_boxes", models.PositiveIntegerField(default=0)),
                ("stock_pieces", models.PositiveIntegerField(default=0)),
                ("sales_boxes", models.PositiveIntegerField(default=0)),
                ("sales_pieces", models.PositiveIntegerField(default=0)),
                ("damage_boxes", models.PositiveIntegerField(default=0)),
                ("damage_pieces", models.PositiveIntegerField(default=0)),
                ("returns_boxes", models.PositiveIntegerField(default=0)),
                ("returns_pieces", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["type", "size"], name="product_type_size_idx"),
                    models.Index(fields=["name"], name="product_name_idx"),
                    models.Index(fields=["is_active"], name="product_active_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockTransaction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "kind",
                    models.CharField(
                        choices=[("add", "Stock added"), ("sale", "Sale"), ("damage", "Damage"), ("return", "Return")],
                        max_length=16,
                    ),
                ),
                ("boxes", models.IntegerField(default=0)),
                ("pieces", models.IntegerField(default=0)),
                ("total_pieces", models.IntegerField()),
                ("reference", models.CharField(blank=True, max_length=64)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="transactions",
                        to="inventory.product",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["product", "created_at"], name="stocktxn_product_created_idx"),
                    models.Index(fields=["kind", "created_at"], name="stocktxn_kind_created_idx"),
                ],
            },
        ),
    ]
