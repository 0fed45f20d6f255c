from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from core.models import AuditLog
from inventory.catalog import default_product_name, pieces_per_box_for, pieces_per_box_options
from inventory.models import Product, StockTransaction


class CatalogRuleTests(SimpleTestCase):
    def test_typed_rules(self):
        self.assertEqual(pieces_per_box_for("1×2", "Wall"), 6)
        self.assertEqual(pieces_per_box_for("2×4", "Floor", "High Glossy"), 2)
        self.assertEqual(pieces_per_box_for("1×1", "Floor", "Rough"), 9)
        self.assertEqual(pieces_per_box_for("16×16", "Parking"), 5)

    def test_falls_back_to_size_rules(self):
        self.assertEqual(pieces_per_box_for("2×2", "Floor", "Satin"), 4)
        self.assertEqual(pieces_per_box_for("2x4"), 2)
        self.assertIsNone(pieces_per_box_for("3×3", "Wall"))

    def test_options(self):
        self.assertEqual(pieces_per_box_options("1×2", "Wall"), [5, 6])
        self.assertEqual(pieces_per_box_options("2×2", "Floor", "Matte"), [4])
        self.assertEqual(pieces_per_box_options("9×9"), [])

    def test_default_name(self):
        self.assertEqual(default_product_name("Floor", "Glossy", "2x2"), "Floor Glossy 2×2")
        self.assertEqual(default_product_name("Wall", "", "1×2"), "Wall 1×2")


class ProductTestMixin:
    def setUp(self):
        self.client = APIClient()
        user_model = get_user_model()
        self.admin = user_model.objects.create_user(username="stock-admin", password="pass1234", role="admin")
        self.viewer = user_model.objects.create_user(username="stock-viewer", password="pass1234", role="stock_viewer")
        self.product = Product.objects.create(
            name="Floor Glossy 2×2",
            type="Floor",
            sub_type="Glossy",
            size="2×2",
            pieces_per_box=4,
            price_per_box="400.00",
            stock_boxes=10,
            sales_boxes=2,
            sales_pieces=2,
            low_stock_threshold=8,
        )


class ProductApiTests(ProductTestMixin, TestCase):
    def test_product_payload_carries_availability(self):
        self.client.force_authenticate(user=self.viewer)

        response = self.client.get(f"/api/v1/products/{self.product.id}/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["available"], {"boxes": 7, "pieces": 2})
        self.assertEqual(payload["available_display"], "7 bx, 2 pc")
        self.assertEqual(payload["availability_status"], "good")
        self.assertEqual(payload["price_per_piece"], "100.00")

    def test_create_derives_pieces_per_box_and_name(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            "/api/v1/products/",
            {"type": "Wall", "size": "1x2", "price_per_box": "550.00", "stock": {"boxes": 20, "pieces": 3}},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["name"], "Wall 1×2")
        self.assertEqual(payload["pieces_per_box"], 6)
        self.assertEqual(payload["stock"], {"boxes": 20, "pieces": 3})
        self.assertTrue(AuditLog.objects.filter(action="product.create", entity="product").exists())

    def test_floor_tiles_need_a_sub_type(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post("/api/v1/products/", {"type": "Floor", "size": "2×2"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("sub_type", response.json()["errors"])

    def test_unknown_size_requires_explicit_pieces_per_box(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post("/api/v1/products/", {"type": "Wall", "size": "3×3"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("pieces_per_box", response.json()["errors"])

    def test_stock_viewer_cannot_create_products(self):
        self.client.force_authenticate(user=self.viewer)

        response = self.client.post("/api/v1/products/", {"type": "Wall", "size": "1×2"}, format="json")

        self.assertEqual(response.status_code, 403)

    def test_stock_cannot_be_edited_directly(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.patch(
            f"/api/v1/products/{self.product.id}/", {"stock": {"boxes": 99, "pieces": 0}}, format="json"
        )

        self.assertEqual(response.status_code, 400)

    def test_list_filters(self):
        Product.objects.create(name="Wall 1×2", type="Wall", size="1×2", pieces_per_box=6)
        self.client.force_authenticate(user=self.viewer)

        by_type = self.client.get("/api/v1/products/?type=Wall").json()["results"]
        in_stock = self.client.get("/api/v1/products/?in_stock_only=true").json()["results"]
        search = self.client.get("/api/v1/products/?q=gloss").json()["results"]

        self.assertEqual([item["name"] for item in by_type], ["Wall 1×2"])
        self.assertEqual([item["name"] for item in in_stock], ["Floor Glossy 2×2"])
        self.assertEqual([item["name"] for item in search], ["Floor Glossy 2×2"])

    def test_pieces_per_box_lookup(self):
        self.client.force_authenticate(user=self.viewer)

        response = self.client.get("/api/v1/products/pieces-per-box/", {"size": "1×2", "type": "Wall"})

        self.assertEqual(response.json(), {"default": 6, "options": [5, 6]})


class StockMovementTests(ProductTestMixin, TestCase):
    def test_add_stock_bumps_counter_and_records_history(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            f"/api/v1/products/{self.product.id}/stock/",
            {"kind": "add", "boxes": 3, "pieces": 1, "notes": "Truck 12"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.product.refresh_from_db()
        self.assertEqual((self.product.stock_boxes, self.product.stock_pieces), (13, 1))
        txn = StockTransaction.objects.get(product=self.product)
        self.assertEqual(txn.total_pieces, 13)
        self.assertEqual(txn.created_by, self.admin)
        self.assertTrue(AuditLog.objects.filter(action="stock.add").exists())

    def test_sale_cannot_exceed_available(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            f"/api/v1/products/{self.product.id}/stock/", {"kind": "sale", "boxes": 8}, format="json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["errors"]["quantity"], ["Insufficient quantity. Available: 30 pc, Needed: 32 pc"]
        )
        self.assertFalse(StockTransaction.objects.exists())

    def test_damage_carries_pieces_into_boxes(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            f"/api/v1/products/{self.product.id}/stock/", {"kind": "damage", "pieces": 3}, format="json"
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["product"]["available"], {"boxes": 6, "pieces": 3})

    def test_pieces_must_be_below_pieces_per_box(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            f"/api/v1/products/{self.product.id}/stock/", {"kind": "add", "pieces": 4}, format="json"
        )

        self.assertEqual(response.status_code, 400)

    def test_zero_quantity_is_rejected(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(f"/api/v1/products/{self.product.id}/stock/", {"kind": "return"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"]["quantity"], ["Must return at least 1 piece"])

    def test_history_lists_movements(self):
        self.client.force_authenticate(user=self.admin)
        self.client.post(f"/api/v1/products/{self.product.id}/stock/", {"kind": "add", "boxes": 1}, format="json")
        self.client.post(f"/api/v1/products/{self.product.id}/stock/", {"kind": "damage", "pieces": 1}, format="json")

        response = self.client.get(f"/api/v1/products/{self.product.id}/history/?kind=damage")

        self.assertEqual(response.status_code, 200)
        results = response.json()["results"]
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]["quantity_display"], "1 pc")


class LowStockTests(ProductTestMixin, TestCase):
    def test_low_stock_lists_most_critical_first(self):
        nearly_out = Product.objects.create(
            name="Parking 16×16", type="Parking", size="16×16", pieces_per_box=5, stock_boxes=1, low_stock_threshold=5
        )
        Product.objects.create(name="Healthy", type="Wall", size="1×2", pieces_per_box=6, stock_boxes=50, low_stock_threshold=5)
        self.client.force_authenticate(user=self.viewer)

        response = self.client.get("/api/v1/products/low-stock/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["id"] for item in response.json()], [str(nearly_out.id), str(self.product.id)])

    def test_bulk_threshold_update(self):
        other = Product.objects.create(name="Wall 1×2", type="Wall", size="1×2", pieces_per_box=6)
        self.client.force_authenticate(user=self.admin)

        response = self.client.patch(
            "/api/v1/products/bulk-low-stock-threshold/",
            {"product_ids": [str(self.product.id), str(other.id)], "low_stock_threshold": 3},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["updated"], 2)
        self.assertEqual(set(Product.objects.values_list("low_stock_threshold", flat=True)), {3})
