from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.expenses.models import Expense, ExpenseStatus
from apps.receipts.services import ReceiptStore

User = get_user_model()

MB = 1024 * 1024


def image_upload(size, name="receipt.png", content_type="image/png"):
    return SimpleUploadedFile(name, b"\x89PNG" + b"0" * (size - 4), content_type=content_type)


class ExpensesApiTests(APITestCase):
    def setUp(self):
        self.owner = User.objects.create_user(email="owner@club.test", password="owner-pass-123")
        self.other = User.objects.create_user(email="other@club.test", password="other-pass-123")

    def auth_as(self, email, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"email": email, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def create_expense(self, **overrides):
        payload = {
            "title": "Volunteer lunch",
            "amount": "1200.00",
            "category": "Food",
            "description": "Sandwiches",
        }
        payload.update(overrides)
        return self.client.post("/api/v1/expenses/", payload, format="json")

    def test_create_starts_pending_and_is_owned_by_caller(self):
        self.auth_as("owner@club.test", "owner-pass-123")
        response = self.create_expense(status="approved", description="   ")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], ExpenseStatus.PENDING)
        self.assertEqual(response.data["submitted_by"], self.owner.id)
        self.assertIsNone(response.data["description"])
        self.assertIsNone(response.data["receipt_url"])

        expense = Expense.objects.get(pk=response.data["id"])
        self.assertEqual(expense.amount, Decimal("1200.00"))
        self.assertTrue(AuditLog.objects.filter(action="expenses.create", entity_id=str(expense.id)).exists())

    def test_validation_errors_create_nothing(self):
        self.auth_as("owner@club.test", "owner-pass-123")

        missing_title = self.create_expense(title="  ")
        self.assertEqual(missing_title.status_code, 400)
        self.assertIn("title", missing_title.data["fields"])

        zero_amount = self.create_expense(amount="0.00")
        self.assertEqual(zero_amount.status_code, 400)
        self.assertIn("amount", zero_amount.data["fields"])

        unknown_category = self.create_expense(category="Snacks")
        self.assertEqual(unknown_category.status_code, 400)
        self.assertIn("category", unknown_category.data["fields"])

        self.assertEqual(Expense.objects.count(), 0)

    def test_list_is_scoped_to_owner_and_newest_first(self):
        self.auth_as("owner@club.test", "owner-pass-123")
        first = self.create_expense(title="First").data["id"]
        second = self.create_expense(title="Second").data["id"]
        Expense.objects.create(
            title="Not mine",
            amount=Decimal("50.00"),
            category="Other",
            submitted_by=self.other,
        )

        response = self.client.get("/api/v1/expenses/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual([row["id"] for row in response.data["results"]], [second, first])

    def test_list_filters_by_category_and_status(self):
        self.auth_as("owner@club.test", "owner-pass-123")
        lunch = self.create_expense(title="Lunch", category="Food").data["id"]
        dinner = self.create_expense(title="Dinner", category="Food").data["id"]
        self.create_expense(title="Posters", category="Marketing")
        Expense.objects.create(title="Snacks", amount=Decimal("80.00"), category="Food", submitted_by=self.other)
        self.client.post(f"/api/v1/expenses/{lunch}/approve/")

        food = self.client.get("/api/v1/expenses/", {"category": "food"})
        self.assertEqual(food.status_code, 200)
        self.assertEqual({row["id"] for row in food.data["results"]}, {lunch, dinner})

        approved_food = self.client.get("/api/v1/expenses/", {"category": "FOOD", "status": "approved"})
        self.assertEqual([row["id"] for row in approved_food.data["results"]], [lunch])

        self.assertEqual(self.client.get("/api/v1/expenses/", {"category": "Equipment"}).data["count"], 0)

    def test_approved_expense_moves_between_status_subsets(self):
        self.auth_as("owner@club.test", "owner-pass-123")
        expense_id = self.create_expense().data["id"]

        approved = self.client.post(f"/api/v1/expenses/{expense_id}/approve/", {}, format="json")
        self.assertEqual(approved.status_code, 200)
        self.assertEqual(approved.data["status"], "approved")

        approved_list = self.client.get("/api/v1/expenses/", {"status": "approved"})
        rejected_list = self.client.get("/api/v1/expenses/", {"status": "rejected"})
        self.assertEqual([row["id"] for row in approved_list.data["results"]], [expense_id])
        self.assertEqual(rejected_list.data["count"], 0)
        self.assertTrue(AuditLog.objects.filter(action="expenses.approve", entity_id=expense_id).exists())

    def test_terminal_states_cannot_transition(self):
        self.auth_as("owner@club.test", "owner-pass-123")
        expense_id = self.create_expense().data["id"]
        self.assertEqual(self.client.post(f"/api/v1/expenses/{expense_id}/reject/").status_code, 200)

        reopen = self.client.post(f"/api/v1/expenses/{expense_id}/approve/")
        self.assertEqual(reopen.status_code, 400)
        self.assertEqual(reopen.data["code"], "invalid_state")

        again = self.client.post(f"/api/v1/expenses/{expense_id}/reject/")
        self.assertEqual(again.status_code, 400)
        self.assertEqual(Expense.objects.get(pk=expense_id).status, ExpenseStatus.REJECTED)

    def test_transition_response_matches_stored_record(self):
        self.auth_as("owner@club.test", "owner-pass-123")
        expense_id = self.create_expense().data["id"]

        response = self.client.post(f"/api/v1/expenses/{expense_id}/approve/")
        stored = Expense.objects.get(pk=expense_id)
        self.assertEqual(response.data["status"], stored.status)
        self.assertEqual(Decimal(str(response.data["amount"])), stored.amount)

    def test_other_users_records_behave_as_missing(self):
        expense = Expense.objects.create(
            title="Banner",
            amount=Decimal("800.00"),
            category="Marketing",
            submitted_by=self.other,
        )
        self.auth_as("owner@club.test", "owner-pass-123")

        self.assertEqual(self.client.get(f"/api/v1/expenses/{expense.id}/").status_code, 404)
        self.assertEqual(self.client.post(f"/api/v1/expenses/{expense.id}/approve/").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/v1/expenses/{expense.id}/?confirm=true").status_code, 404)

        expense.refresh_from_db()
        self.assertEqual(expense.status, ExpenseStatus.PENDING)

    def test_delete_requires_confirmation(self):
        self.auth_as("owner@club.test", "owner-pass-123")
        expense_id = self.create_expense().data["id"]

        declined = self.client.delete(f"/api/v1/expenses/{expense_id}/")
        self.assertEqual(declined.status_code, 400)
        self.assertEqual(declined.data["code"], "confirmation_required")
        self.assertTrue(Expense.objects.filter(pk=expense_id).exists())

        deleted = self.client.delete(f"/api/v1/expenses/{expense_id}/?confirm=true")
        self.assertEqual(deleted.status_code, 204)
        self.assertEqual(self.client.get("/api/v1/expenses/").data["count"], 0)
        self.assertTrue(AuditLog.objects.filter(action="expenses.delete", entity_id=expense_id).exists())

        self.assertEqual(self.client.delete(f"/api/v1/expenses/{expense_id}/?confirm=true").status_code, 404)

    def test_updates_are_not_exposed(self):
        self.auth_as("owner@club.test", "owner-pass-123")
        expense_id = self.create_expense().data["id"]
        response = self.client.patch(f"/api/v1/expenses/{expense_id}/", {"status": "approved"}, format="json")
        self.assertEqual(response.status_code, 405)

    def test_requires_authentication(self):
        response = self.client.get("/api/v1/expenses/")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["code"], "not_authenticated")


class ExpenseReceiptTests(APITestCase):
    def setUp(self):
        self.owner = User.objects.create_user(email="treasurer@club.test", password="treasurer-pass-1")
        token = self.client.post(
            "/api/v1/auth/token/",
            {"email": "treasurer@club.test", "password": "treasurer-pass-1"},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def submit(self, receipt):
        return self.client.post(
            "/api/v1/expenses/",
            {"title": "Stage lights", "amount": "2400.00", "category": "Equipment", "receipt": receipt},
            format="multipart",
        )

    def test_four_megabyte_image_is_stored(self):
        response = self.submit(image_upload(4 * MB, name="lights.jpeg", content_type="image/jpeg"))
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["receipt_url"].startswith(f"/media/receipts/{self.owner.id}/receipt-"))
        self.assertTrue(response.data["receipt_url"].endswith(".jpeg"))
        self.assertNotIn("receipt", response.data)

    def test_six_megabyte_image_is_rejected(self):
        response = self.submit(image_upload(6 * MB))
        self.assertEqual(response.status_code, 400)
        self.assertIn("receipt", response.data["fields"])
        self.assertEqual(Expense.objects.count(), 0)

    def test_non_image_is_rejected_regardless_of_size(self):
        response = self.submit(SimpleUploadedFile("notes.txt", b"tiny", content_type="text/plain"))
        self.assertEqual(response.status_code, 400)
        self.assertIn("receipt", response.data["fields"])
        self.assertEqual(Expense.objects.count(), 0)

    def test_upload_failure_aborts_submission(self):
        with mock.patch(
            "django.core.files.storage.InMemoryStorage.save",
            side_effect=OSError("bucket unavailable"),
        ):
            response = self.submit(image_upload(1024))
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.data["code"], "receipt_upload_failed")
        self.assertEqual(Expense.objects.count(), 0)

    def test_deleting_expense_removes_its_receipt(self):
        response = self.submit(image_upload(2048))
        self.assertEqual(response.status_code, 201)
        path = ReceiptStore().path_for_url(response.data["receipt_url"])
        self.assertTrue(path.startswith(f"receipts/{self.owner.id}/"))
        self.assertTrue(default_storage.exists(path))

        deleted = self.client.delete(f"/api/v1/expenses/{response.data['id']}/?confirm=true")
        self.assertEqual(deleted.status_code, 204)
        self.assertFalse(default_storage.exists(path))
