from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from core.models import AuditLog


class LoginTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = get_user_model().objects.create_user(
            username="shop-admin",
            email="Owner@Example.com",
            phone="9876543210",
            password="pass1234",
            role="admin",
        )

    def test_email_is_normalized_on_save(self):
        self.user.refresh_from_db()
        self.assertEqual(self.user.email, "owner@example.com")

    def test_login_with_username_email_or_phone(self):
        for login in ("shop-admin", "OWNER@example.com", "9876543210"):
            response = self.client.post("/api/v1/token/", {"username": login, "password": "pass1234"}, format="json")

            self.assertEqual(response.status_code, 200, login)
            self.assertIn("access", response.json())
            self.assertIn("refresh", response.json())

    def test_wrong_password_is_rejected_with_error_envelope(self):
        response = self.client.post("/api/v1/token/", {"username": "9876543210", "password": "nope"}, format="json")

        self.assertEqual(response.status_code, 401)
        payload = response.json()
        self.assertEqual(payload["code"], "authentication_failed")
        self.assertEqual(payload["status"], 401)


class MeTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()

    def test_admin_sees_every_screen(self):
        admin = self.user_model.objects.create_user(username="admin", password="pass1234", role="admin")
        self.client.force_authenticate(user=admin)

        response = self.client.get("/api/v1/me/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["role"], "admin")
        self.assertTrue(all(response.json()["permissions"].values()))

    def test_stock_viewer_only_sees_stock(self):
        viewer = self.user_model.objects.create_user(username="viewer", password="pass1234", role="stock_viewer")
        self.client.force_authenticate(user=viewer)

        permissions = self.client.get("/api/v1/me/").json()["permissions"]

        self.assertTrue(permissions["can_view_stock"])
        self.assertFalse(permissions["can_view_sales"])
        self.assertFalse(permissions["can_view_customers"])
        self.assertFalse(permissions["can_view_reports"])
        self.assertFalse(permissions["can_view_payments"])
        self.assertFalse(permissions["can_view_settings"])

    def test_anonymous_request_is_rejected(self):
        response = self.client.get("/api/v1/me/")
        self.assertEqual(response.status_code, 401)


class UserManagementTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.admin = self.user_model.objects.create_user(username="admin", password="pass1234", role="admin")
        self.viewer = self.user_model.objects.create_user(username="viewer", password="pass1234", role="stock_viewer")

    def test_stock_viewer_cannot_manage_users_and_denial_is_logged(self):
        self.client.force_authenticate(user=self.viewer)
        with self.assertLogs("security.authorization", level="WARNING") as cm:
            response = self.client.post(
                "/api/v1/users/",
                {"username": "another", "password": "pass1234", "role": "admin"},
                format="json",
            )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "permission_denied")
        self.assertTrue(any("permission_denied" in message for message in cm.output))

    def test_admin_creates_user_and_audit_log_is_written(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(
            "/api/v1/users/",
            {"username": "counter", "email": "counter@example.com", "password": "pass1234", "role": "stock_viewer"},
            format="json",
            HTTP_X_REQUEST_ID="req-123",
        )

        self.assertEqual(response.status_code, 201)
        self.assertNotIn("password", response.json())
        created = self.user_model.objects.get(username="counter")
        self.assertTrue(created.check_password("pass1234"))
        log = AuditLog.objects.get(action="user.create", entity="user", request_id="req-123")
        self.assertEqual(log.entity_id, created.id)
        self.assertEqual(log.actor, self.admin)

    def test_duplicate_email_is_rejected_case_insensitively(self):
        self.user_model.objects.create_user(username="existing", email="existing@example.com", password="pass1234")
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            "/api/v1/users/",
            {"username": "new-user", "email": "EXISTING@example.com", "password": "pass1234"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"], {"email": ["A user with this email already exists."]})

    def test_users_filter_by_role(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/users/?role=stock_viewer")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["username"] for item in response.json()["results"]], ["viewer"])

    def test_admin_cannot_delete_own_account(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.delete(f"/api/v1/users/{self.admin.id}/")
        self.assertEqual(response.status_code, 400)


class AuditLogTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = get_user_model().objects.create_user(username="audit-admin", password="pass1234", role="admin")

    def test_audit_logs_are_read_only(self):
        self.client.force_authenticate(user=self.admin)
        log = AuditLog.objects.create(action="test.action", entity="test", actor=self.admin)

        patch_res = self.client.patch(f"/api/v1/admin/audit-logs/{log.id}/", {"action": "changed"}, format="json")
        delete_res = self.client.delete(f"/api/v1/admin/audit-logs/{log.id}/")

        self.assertEqual(patch_res.status_code, 405)
        self.assertEqual(delete_res.status_code, 405)

    def test_audit_logs_filter_by_entity(self):
        AuditLog.objects.create(action="invoice.create", entity="invoice", actor=self.admin)
        AuditLog.objects.create(action="payment.create", entity="payment", actor=self.admin)
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/audit-logs/?entity=invoice")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["action"] for item in response.json()["results"]], ["invoice.create"])

    def test_export_streams_filtered_rows_as_csv(self):
        AuditLog.objects.create(action="payment.create", entity="payment", actor=self.admin, request_id="req-9")
        AuditLog.objects.create(action="customer.delete", entity="customer", actor=self.admin)
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/audit-logs/export/?entity=payment")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv")
        rows = response.content.decode().strip().splitlines()
        self.assertEqual(rows[0], "id,created_at,actor,action,entity,entity_id,request_id")
        self.assertEqual(len(rows), 2)
        self.assertIn("audit-admin,payment.create,payment,,req-9", rows[1])

    def test_malformed_date_filter_is_rejected(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/audit-logs/?date_from=19-10-2026")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"], {"date_from": ["Use the YYYY-MM-DD format."]})


class HealthTests(TestCase):
    def test_healthz_echoes_request_id(self):
        response = APIClient().get("/api/v1/healthz/", HTTP_X_REQUEST_ID="lb-check-1")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["request_id"], "lb-check-1")
        self.assertEqual(response["X-Request-ID"], "lb-check-1")
