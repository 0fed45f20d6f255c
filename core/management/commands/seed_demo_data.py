from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from inventory.catalog import default_product_name, pieces_per_box_for
from inventory.models import Product
from sales.models import Customer
from sales.serializers import InvoiceSerializer

DEMO_PRODUCTS = [
    ("Floor", "Glossy", "2×2", Decimal("520.00"), 40),
    ("Floor", "High Glossy", "2×4", Decimal("1150.00"), 25),
    ("Wall", "", "1×2", Decimal("430.00"), 60),
    ("Parking", "", "16×16", Decimal("380.00"), 8),
]


class Command(BaseCommand):
    help = "Seed demo tiles, customers and an invoice for local development."

    def handle(self, *args, **options):
        User = get_user_model()

        admin_user, admin_created = User.objects.get_or_create(
            username="admin",
            defaults={
                "email": "admin@example.com",
                "role": User.Role.ADMIN,
                "is_staff": True,
                "is_superuser": True,
                "is_active": True,
            },
        )
        if admin_created:
            admin_user.set_password("admin1234")
            admin_user.save(update_fields=["password"])

        viewer_user, viewer_created = User.objects.get_or_create(
            username="stock",
            defaults={"email": "stock@example.com", "role": User.Role.STOCK_VIEWER, "is_active": True},
        )
        if viewer_created:
            viewer_user.set_password("stock1234")
            viewer_user.save(update_fields=["password"])

        products = []
        for type_, sub_type, size, price_per_box, stock_boxes in DEMO_PRODUCTS:
            product, _ = Product.objects.get_or_create(
                name=default_product_name(type_, sub_type, size),
                defaults={
                    "type": type_,
                    "sub_type": sub_type,
                    "size": size,
                    "pieces_per_box": pieces_per_box_for(size, type_, sub_type) or 1,
                    "price_per_box": price_per_box,
                    "stock_boxes": stock_boxes,
                    "low_stock_threshold": 10,
                },
            )
            products.append(product)

        customer, _ = Customer.objects.get_or_create(
            phone="9000000001",
            defaults={"name": "Demo Builders", "address": "Station Road", "gst_number": "27ABCDE1234F1Z5"},
        )

        if not customer.invoices.exists():
            serializer = InvoiceSerializer(
                data={
                    "customer": customer.id,
                    "invoice_type": "GST",
                    "initial_payment": "500.00",
                    "payment_method": "CASH",
                    "items": [
                        {"product": products[0].id, "quantity": {"boxes": 3, "pieces": 1}},
                        {"product": products[2].id, "quantity": {"boxes": 2, "pieces": 0}},
                    ],
                }
            )
            serializer.is_valid(raise_exception=True)
            with transaction.atomic():
                invoice = serializer.save()
            self.stdout.write(f"Invoice: {invoice.invoice_number} | Total: {invoice.final_amount}")

        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully."))
        self.stdout.write("Credentials: admin/admin1234, stock/stock1234")
