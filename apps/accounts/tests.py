from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.expenses.models import Expense
from apps.receipts.services import ReceiptStore

User = get_user_model()


class AccountApiTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="member@club.test", password="member-pass-123")

    def login(self, email="member@club.test", password="member-pass-123"):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"email": email, "password": password},
            format="json",
        )
        if response.status_code == 200:
            self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        return response

    def test_register_then_login_by_email(self):
        created = self.client.post(
            "/api/v1/auth/register/",
            {"email": "New.Member@Club.test", "password": "fresh-pass-2026"},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["email"], "new.member@club.test")
        self.assertNotIn("password", created.data)

        self.assertEqual(self.login("new.member@club.test", "fresh-pass-2026").status_code, 200)

    def test_register_rejects_duplicate_and_short_passwords(self):
        duplicate = self.client.post(
            "/api/v1/auth/register/",
            {"email": "member@club.test", "password": "another-pass-99"},
            format="json",
        )
        self.assertEqual(duplicate.status_code, 400)
        self.assertIn("email", duplicate.data["fields"])

        short = self.client.post(
            "/api/v1/auth/register/",
            {"email": "short@club.test", "password": "x1!"},
            format="json",
        )
        self.assertEqual(short.status_code, 400)
        self.assertFalse(User.objects.filter(email="short@club.test").exists())

    def test_current_user_identity(self):
        self.login()
        response = self.client.get("/api/v1/auth/me/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["id"], self.user.id)
        self.assertEqual(response.data["email"], "member@club.test")
        self.assertIn("created_at", response.data)

    def test_current_user_requires_session(self):
        response = self.client.get("/api/v1/auth/me/")
        self.assertEqual(response.status_code, 401)

    def test_password_update_validation(self):
        self.login()
        mismatch = self.client.post(
            "/api/v1/auth/password/",
            {"new_password": "brand-new-pass-1", "confirm_password": "brand-new-pass-2"},
            format="json",
        )
        self.assertEqual(mismatch.status_code, 400)
        self.assertIn("confirm_password", mismatch.data["fields"])

        too_short = self.client.post(
            "/api/v1/auth/password/",
            {"new_password": "ab1", "confirm_password": "ab1"},
            format="json",
        )
        self.assertEqual(too_short.status_code, 400)
        self.assertIn("new_password", too_short.data["fields"])

        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("member-pass-123"))

    def test_password_update(self):
        self.login()
        response = self.client.post(
            "/api/v1/auth/password/",
            {"new_password": "brand-new-pass-1", "confirm_password": "brand-new-pass-1"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.client.credentials()
        self.assertEqual(self.login(password="member-pass-123").status_code, 401)
        self.assertEqual(self.login(password="brand-new-pass-1").status_code, 200)
        self.assertTrue(AuditLog.objects.filter(action="accounts.password_update").exists())

    def test_logout_blacklists_refresh_token(self):
        tokens = self.login().data
        response = self.client.post("/api/v1/auth/logout/", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(response.status_code, 204)

        refreshed = self.client.post("/api/v1/auth/token/refresh/", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(refreshed.status_code, 401)

    def test_logout_with_garbage_token(self):
        self.login()
        response = self.client.post("/api/v1/auth/logout/", {"refresh": "not-a-token"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("refresh", response.data["fields"])

    def test_account_clear_requires_exact_confirmation(self):
        other = User.objects.create_user(email="other@club.test", password="other-pass-123")
        Expense.objects.create(title="Tape", amount=Decimal("40.00"), category="Other", submitted_by=self.user)
        Expense.objects.create(title="Flyers", amount=Decimal("90.00"), category="Marketing", submitted_by=self.user)
        Expense.objects.create(title="Cables", amount=Decimal("60.00"), category="Equipment", submitted_by=other)
        tokens = self.login().data

        declined = self.client.post(
            "/api/v1/auth/account/clear/",
            {"confirmation": "delete my account"},
            format="json",
        )
        self.assertEqual(declined.status_code, 400)
        self.assertEqual(declined.data["code"], "confirmation_mismatch")
        self.assertEqual(Expense.objects.filter(submitted_by=self.user).count(), 2)

        cleared = self.client.post(
            "/api/v1/auth/account/clear/",
            {"confirmation": "DELETE MY ACCOUNT", "refresh": tokens["refresh"]},
            format="json",
        )
        self.assertEqual(cleared.status_code, 200)
        self.assertEqual(cleared.data["expenses_deleted"], 2)
        self.assertFalse(Expense.objects.filter(submitted_by=self.user).exists())
        self.assertEqual(Expense.objects.filter(submitted_by=other).count(), 1)
        self.assertTrue(User.objects.filter(pk=self.user.pk).exists())

        refreshed = self.client.post("/api/v1/auth/token/refresh/", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(refreshed.status_code, 401)

    def test_account_clear_removes_stored_receipts(self):
        self.login()
        created = self.client.post(
            "/api/v1/expenses/",
            {
                "title": "Banner print",
                "amount": "300.00",
                "category": "Marketing",
                "receipt": SimpleUploadedFile("banner.png", b"\x89PNG" + b"0" * 512, content_type="image/png"),
            },
            format="multipart",
        )
        self.assertEqual(created.status_code, 201)
        path = ReceiptStore().path_for_url(created.data["receipt_url"])
        self.assertTrue(default_storage.exists(path))

        cleared = self.client.post("/api/v1/auth/account/clear/", {"confirmation": "DELETE MY ACCOUNT"}, format="json")
        self.assertEqual(cleared.data["expenses_deleted"], 1)
        self.assertFalse(default_storage.exists(path))
