from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from core.models import AuditLog
from inventory.models import Product
from sales.models import Customer, Invoice, Payment, Return


class SalesTestMixin:
    def setUp(self):
        self.client = APIClient()
        user_model = get_user_model()
        self.admin = user_model.objects.create_user(username="sales-admin", password="pass1234", role="admin")
        self.viewer = user_model.objects.create_user(username="sales-viewer", password="pass1234", role="stock_viewer")
        self.customer = Customer.objects.create(name="Ravi Constructions", phone="9876543210")
        self.product = Product.objects.create(
            name="Floor Glossy 2×2",
            type="Floor",
            sub_type="Glossy",
            size="2×2",
            pieces_per_box=4,
            price_per_box="400.00",
            stock_boxes=10,
        )
        self.client.force_authenticate(user=self.admin)

    def create_invoice(self, boxes=2, pieces=1, **payload):
        data = {
            "customer": str(self.customer.id),
            "invoice_type": "GST",
            "items": [{"product": str(self.product.id), "quantity": {"boxes": boxes, "pieces": pieces}}],
        }
        data.update(payload)
        return self.client.post("/api/v1/invoices/", data, format="json")


class InvoiceCreateTests(SalesTestMixin, TestCase):
    def test_gst_invoice_is_priced_on_the_server(self):
        response = self.create_invoice()

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["invoice_number"], f"HT-{timezone.localdate().year}-00001")
        self.assertEqual(payload["subtotal"], "762.71")
        self.assertEqual(payload["total_tax"], "137.29")
        self.assertEqual(payload["cgst"], "68.64")
        self.assertEqual(payload["sgst"], "68.64")
        self.assertEqual(payload["igst"], "0.00")
        self.assertEqual(payload["final_amount"], "900.00")
        self.assertEqual(payload["final_amount_display"], "₹900.00")
        self.assertEqual(payload["amount_in_words"], "Nine Hundred Only")
        self.assertEqual(payload["payment_status"], "PENDING")
        self.assertEqual(payload["pending_amount"], "900.00")
        self.assertEqual(payload["customer_details"]["phone"], "9876543210")

        item = payload["items"][0]
        self.assertEqual(item["tax_rate"], "18.00")
        self.assertEqual(item["price_per_piece"], "100.00")
        self.assertEqual(item["quantity_display"], "2 bx, 1 pc")

    def test_sale_moves_product_sales_counter(self):
        self.create_invoice()

        self.product.refresh_from_db()
        self.assertEqual((self.product.sales_boxes, self.product.sales_pieces), (2, 1))
        self.assertEqual(self.product.available_pieces, 31)
        self.assertEqual(self.product.transactions.get().reference, Invoice.objects.get().invoice_number)

    def test_non_gst_invoice_carries_no_tax(self):
        response = self.create_invoice(boxes=1, pieces=0, invoice_type="NON_GST", discount="50.00")

        payload = response.json()
        self.assertEqual(payload["total_tax"], "0.00")

    def test_number_taken_by_a_concurrent_sale_moves_to_the_next_one(self):
        year = timezone.localdate().year
        self.create_invoice(boxes=1, pieces=0)

        with patch(
            "sales.services.next_invoice_number", side_effect=[f"HT-{year}-00001", f"HT-{year}-00002"]
        ) as numbering:
            response = self.create_invoice(boxes=1, pieces=0)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["invoice_number"], f"HT-{year}-00002")
        self.assertEqual(numbering.call_count, 2)
        self.assertEqual(Invoice.objects.count(), 2)

    def test_explicit_zero_rate_on_gst_invoice_is_kept(self):
        response = self.client.post(
            "/api/v1/invoices/",
            {
                "customer": str(self.customer.id),
                "invoice_type": "GST",
                "items": [
                    {"product": str(self.product.id), "quantity": {"boxes": 1, "pieces": 0}, "tax_rate": "0"}
                ],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["items"][0]["tax_rate"], "0.00")
        self.assertEqual(payload["subtotal"], "400.00")
        self.assertEqual(payload["total_tax"], "0.00")
        self.assertEqual(payload["final_amount"], "400.00")
        self.assertEqual(payload["subtotal"], "400.00")
        self.assertEqual(payload["final_amount"], "350.00")

    def test_initial_payment_sets_partial_status(self):
        response = self.create_invoice(boxes=1, pieces=0, invoice_type="NON_GST", initial_payment="100.00")

        payload = response.json()
        self.assertEqual(payload["total_paid"], "100.00")
        self.assertEqual(payload["pending_amount"], "300.00")
        self.assertEqual(payload["payment_status"], "PARTIAL")

    def test_custom_item_is_priced_per_piece_without_stock(self):
        response = self.client.post(
            "/api/v1/invoices/",
            {
                "customer": str(self.customer.id),
                "invoice_type": "NON_GST",
                "items": [
                    {
                        "is_custom": True,
                        "product_name": "Cutting charge",
                        "quantity": {"boxes": 0, "pieces": 3},
                        "price_per_piece": "50.00",
                    }
                ],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["final_amount"], "150.00")
        self.assertFalse(self.product.transactions.exists())

    def test_custom_invoice_number_must_be_unique(self):
        self.create_invoice(custom_invoice_number="SHOP-1")

        response = self.create_invoice(custom_invoice_number="SHOP-1")

        self.assertEqual(response.status_code, 400)
        self.assertIn("custom_invoice_number", response.json()["errors"])

    def test_rejects_sale_beyond_available_stock(self):
        response = self.create_invoice(boxes=11, pieces=0)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["errors"]["items"],
            ["Floor Glossy 2×2: Insufficient quantity. Available: 40 pc, Needed: 44 pc"],
        )
        self.assertFalse(Invoice.objects.exists())

    def test_rejects_empty_invoice(self):
        response = self.client.post(
            "/api/v1/invoices/", {"customer": str(self.customer.id), "items": []}, format="json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"]["items"], ["Please add at least one product"])

    def test_rejects_discount_above_total(self):
        response = self.create_invoice(boxes=1, pieces=0, invoice_type="NON_GST", discount="500.00")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"]["discount"], ["Discount cannot exceed the invoice total"])

    def test_creation_is_audited(self):
        response = self.create_invoice()

        self.assertTrue(
            AuditLog.objects.filter(action="invoice.create", entity_id=response.json()["id"]).exists()
        )

    def test_malformed_filter_is_a_validation_error(self):
        response = self.client.get("/api/v1/invoices/", {"customer": "not-a-uuid"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")

    def test_stock_viewer_cannot_see_invoices(self):
        self.client.force_authenticate(user=self.viewer)

        response = self.client.get("/api/v1/invoices/")

        self.assertEqual(response.status_code, 403)


class InvoicePreviewTests(SalesTestMixin, TestCase):
    def test_preview_prices_without_saving(self):
        response = self.client.post(
            "/api/v1/invoices/preview/",
            {
                "invoice_type": "GST",
                "items": [{"product": str(self.product.id), "quantity": {"boxes": 2, "pieces": 1}}],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["subtotal"], "762.71")
        self.assertEqual(payload["final_amount"], "900.00")
        self.assertEqual(payload["invoice_value"], "900.00")
        self.assertEqual(payload["items"][0]["tax_rate"], "18.00")
        self.assertFalse(Invoice.objects.exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.sales_boxes, 0)


class InvoiceChangeTests(SalesTestMixin, TestCase):
    def test_update_adjusts_sales_counter_by_the_difference(self):
        invoice_id = self.create_invoice(boxes=2, pieces=0).json()["id"]

        response = self.client.patch(
            f"/api/v1/invoices/{invoice_id}/",
            {"items": [{"product": str(self.product.id), "quantity": {"boxes": 1, "pieces": 0}}]},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["final_amount"], "400.00")
        self.assertEqual(len(response.json()["items"]), 1)
        self.product.refresh_from_db()
        self.assertEqual((self.product.sales_boxes, self.product.sales_pieces), (1, 0))

    def test_switch_to_gst_gives_zero_rated_items_the_default_rate(self):
        invoice_id = self.create_invoice(boxes=1, pieces=0, invoice_type="NON_GST").json()["id"]

        response = self.client.patch(f"/api/v1/invoices/{invoice_id}/", {"invoice_type": "GST"}, format="json")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["items"][0]["tax_rate"], "18.00")
        self.assertEqual(payload["subtotal"], "338.98")
        self.assertEqual(payload["total_tax"], "61.02")
        self.assertEqual(payload["final_amount"], "400.00")

    def test_delete_reverses_sales_counter(self):
        invoice_id = self.create_invoice().json()["id"]

        response = self.client.delete(f"/api/v1/invoices/{invoice_id}/")

        self.assertEqual(response.status_code, 204)
        self.product.refresh_from_db()
        self.assertEqual(self.product.available_pieces, 40)
        self.assertTrue(AuditLog.objects.filter(action="invoice.delete").exists())

    def test_delete_refused_once_paid(self):
        invoice_id = self.create_invoice(boxes=1, pieces=0, invoice_type="NON_GST").json()["id"]
        self.client.post("/api/v1/payments/", {"invoice": invoice_id, "amount": "400.00"}, format="json")

        response = self.client.delete(f"/api/v1/invoices/{invoice_id}/")

        self.assertEqual(response.status_code, 400)
        self.assertTrue(Invoice.objects.filter(pk=invoice_id).exists())

    def test_pending_lists_unpaid_invoices(self):
        unpaid = self.create_invoice(boxes=1, pieces=0, invoice_type="NON_GST").json()["id"]
        self.create_invoice(boxes=1, pieces=0, invoice_type="NON_GST", initial_payment="400.00")

        response = self.client.get("/api/v1/invoices/pending/")

        self.assertEqual([item["id"] for item in response.json()["results"]], [unpaid])


class PaymentTests(SalesTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.invoice_id = self.create_invoice(boxes=1, pieces=0, invoice_type="NON_GST").json()["id"]

    def test_partial_payment_updates_invoice(self):
        response = self.client.post(
            "/api/v1/payments/",
            {"invoice": self.invoice_id, "amount": "150.00", "payment_method": "UPI", "next_due_date": "2026-12-01"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["remaining_amount"], "250.00")
        invoice = Invoice.objects.get(pk=self.invoice_id)
        self.assertEqual(str(invoice.pending_amount), "250.00")
        self.assertEqual(invoice.payment_status, Invoice.PaymentStatus.PARTIAL)
        self.assertEqual(str(invoice.next_due_date), "2026-12-01")

    def test_partial_payment_needs_next_due_date(self):
        response = self.client.post("/api/v1/payments/", {"invoice": self.invoice_id, "amount": "150.00"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("next_due_date", response.json()["errors"])

    def test_overpayment_is_rejected(self):
        response = self.client.post("/api/v1/payments/", {"invoice": self.invoice_id, "amount": "500.00"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["errors"]["amount"], ["Payment amount cannot be greater than the remaining balance."]
        )

    def test_full_payment_marks_invoice_paid(self):
        self.client.post("/api/v1/payments/", {"invoice": self.invoice_id, "amount": "400.00"}, format="json")

        invoice = Invoice.objects.get(pk=self.invoice_id)
        self.assertEqual(invoice.payment_status, Invoice.PaymentStatus.PAID)
        self.assertEqual(str(invoice.pending_amount), "0.00")
        self.assertIsNone(invoice.next_due_date)

    def test_deleting_a_payment_restores_the_balance(self):
        payment_id = self.client.post(
            "/api/v1/payments/", {"invoice": self.invoice_id, "amount": "400.00"}, format="json"
        ).json()["id"]

        response = self.client.delete(f"/api/v1/payments/{payment_id}/")

        self.assertEqual(response.status_code, 204)
        invoice = Invoice.objects.get(pk=self.invoice_id)
        self.assertEqual(invoice.payment_status, Invoice.PaymentStatus.PENDING)
        self.assertEqual(str(invoice.pending_amount), "400.00")
        self.assertFalse(Payment.objects.exists())


class ReturnTests(SalesTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        payload = self.create_invoice(boxes=2, pieces=1).json()
        self.invoice_id = payload["id"]
        self.item_id = payload["items"][0]["id"]

    def post_return(self, boxes=1, pieces=1, **payload):
        data = {
            "invoice": self.invoice_id,
            "return_type": "CREDIT",
            "items": [{"invoice_item": self.item_id, "quantity": {"boxes": boxes, "pieces": pieces}}],
        }
        data.update(payload)
        return self.client.post("/api/v1/returns/", data, format="json")

    def test_return_values_line_and_credits_returns_counter(self):
        response = self.post_return()

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["total_amount"], "500.00")
        self.assertEqual(response.json()["items"][0]["return_value"], "500.00")
        self.product.refresh_from_db()
        self.assertEqual((self.product.returns_boxes, self.product.returns_pieces), (1, 1))
        self.assertEqual(self.product.available_pieces, 36)

    def test_damaged_return_does_not_restock(self):
        response = self.post_return(
            boxes=1,
            pieces=0,
            items=[{"invoice_item": self.item_id, "quantity": {"boxes": 1, "pieces": 0}, "condition": "DAMAGED"}],
        )

        self.assertEqual(response.status_code, 201)
        self.product.refresh_from_db()
        self.assertEqual(self.product.returns_boxes, 1)
        self.assertEqual(self.product.damage_boxes, 1)
        self.assertEqual(self.product.available_pieces, 31)

    def test_cannot_return_more_than_remains(self):
        self.post_return()

        response = self.post_return()

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["errors"]["items"], ["Return quantity for Floor Glossy 2×2 exceeds invoice quantity"]
        )

    def test_preview_lists_returnable_quantities(self):
        self.post_return()

        response = self.client.get("/api/v1/returns/preview/", {"invoice": self.invoice_id})

        self.assertEqual(response.status_code, 200)
        item = response.json()["items"][0]
        self.assertEqual(item["quantity"], {"boxes": 2, "pieces": 1})
        self.assertEqual(item["returnable_quantity"], {"boxes": 1, "pieces": 0})

    def test_refund_needs_a_method(self):
        response = self.post_return(return_type="REFUND")

        self.assertEqual(response.status_code, 400)
        self.assertIn("refund_method", response.json()["errors"])

    def test_exchange_moves_new_product_out(self):
        other = Product.objects.create(
            name="Wall 1×2", type="Wall", size="1×2", pieces_per_box=6, price_per_box="300.00", stock_boxes=5
        )

        response = self.post_return(
            boxes=1,
            pieces=0,
            return_type="EXCHANGE",
            exchange_items=[{"product": str(other.id), "quantity": {"boxes": 1, "pieces": 0}}],
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["exchange_total"], "300.00")
        other.refresh_from_db()
        self.assertEqual(other.sales_boxes, 1)

        blocked = self.client.delete(f"/api/v1/products/{other.id}/")
        self.assertEqual(blocked.status_code, 409)
        self.assertEqual(blocked.json()["code"], "protected")

    def test_invoice_items_are_locked_after_a_return(self):
        self.post_return()

        response = self.client.patch(
            f"/api/v1/invoices/{self.invoice_id}/",
            {"items": [{"product": str(self.product.id), "quantity": {"boxes": 1, "pieces": 0}}]},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(Return.objects.count(), 1)


class CustomerLedgerTests(SalesTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        invoice_id = self.create_invoice(
            boxes=1, pieces=0, invoice_type="NON_GST", invoice_date="2026-01-05", initial_payment="100.00"
        ).json()["id"]
        self.client.post(
            "/api/v1/payments/",
            {
                "invoice": invoice_id,
                "amount": "100.00",
                "payment_date": "2026-01-10",
                "next_due_date": "2026-02-10",
            },
            format="json",
        )

    def test_ledger_runs_a_balance(self):
        response = self.client.get(f"/api/v1/customers/{self.customer.id}/ledger/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual([entry["type"] for entry in payload["entries"]], ["INVOICE", "PAYMENT", "PAYMENT"])
        self.assertEqual([entry["balance"] for entry in payload["entries"]], ["400.00", "300.00", "200.00"])
        self.assertEqual(payload["entries"][1]["description"], "Payment collected at invoice creation")
        self.assertEqual(payload["summary"]["closing_balance"], "200.00")
        self.assertEqual(payload["summary"]["total_payment"], "200.00")

    def test_date_window_restarts_the_balance(self):
        response = self.client.get(f"/api/v1/customers/{self.customer.id}/ledger/", {"date_from": "2026-01-06"})

        entries = response.json()["entries"]
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]["balance"], "-100.00")

    def test_bad_dates_are_rejected(self):
        response = self.client.get(f"/api/v1/customers/{self.customer.id}/ledger/", {"date_from": "05/01/2026"})

        self.assertEqual(response.status_code, 400)

    def test_customer_with_invoices_cannot_be_deleted(self):
        response = self.client.delete(f"/api/v1/customers/{self.customer.id}/")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "protected")
        self.assertFalse(AuditLog.objects.filter(action="customer.delete").exists())
        self.assertTrue(Customer.objects.filter(pk=self.customer.id).exists())
