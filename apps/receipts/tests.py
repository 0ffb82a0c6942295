from datetime import datetime
from datetime import timezone as dt_timezone
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.files.storage import InMemoryStorage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase
from rest_framework import serializers
from rest_framework.test import APITestCase

from apps.common.exceptions import ReceiptUploadError
from apps.receipts.services import (
    OCR_MAX_AMOUNT,
    OCR_MIN_AMOUNT,
    ReceiptStore,
    build_receipt_path,
    validate_receipt_file,
)

User = get_user_model()

MB = 1024 * 1024


def upload(size, content_type="image/png", name="receipt.png"):
    return SimpleUploadedFile(name, b"r" * size, content_type=content_type)


class ReceiptValidationTests(SimpleTestCase):
    def test_accepts_images_up_to_five_megabytes(self):
        self.assertEqual(validate_receipt_file(upload(4 * MB)).size, 4 * MB)
        self.assertEqual(validate_receipt_file(upload(5 * MB, content_type="image/jpeg")).size, 5 * MB)

    def test_rejects_images_over_five_megabytes(self):
        with self.assertRaises(serializers.ValidationError) as ctx:
            validate_receipt_file(upload(6 * MB))
        self.assertEqual(ctx.exception.detail[0].code, "file_too_large")

    def test_rejects_non_images_of_any_size(self):
        for size in (10, 4 * MB):
            with self.assertRaises(serializers.ValidationError) as ctx:
                validate_receipt_file(upload(size, content_type="application/pdf", name="receipt.pdf"))
            self.assertEqual(ctx.exception.detail[0].code, "invalid_file_type")


class ReceiptStoreTests(SimpleTestCase):
    def test_path_is_namespaced_by_owner_and_timestamp(self):
        now = datetime(2026, 3, 2, 12, 0, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(
            build_receipt_path(42, "Bill.Photo.JPG", now=now),
            f"receipts/42/receipt-{int(now.timestamp() * 1000)}.jpg",
        )
        self.assertTrue(build_receipt_path(42, "scan", now=now).endswith(".bin"))

    def test_upload_and_public_url(self):
        store = ReceiptStore(storage=InMemoryStorage(base_url="/media/"))
        stored = store.upload("receipts/7/receipt-1.png", upload(32))
        self.assertEqual(stored, "receipts/7/receipt-1.png")
        self.assertEqual(store.public_url(stored), "/media/receipts/7/receipt-1.png")
        self.assertEqual(store.path_for_url("/media/receipts/7/receipt-1.png"), stored)
        self.assertIsNone(store.path_for_url("https://elsewhere.test/receipt.png"))

        store.delete(stored)
        self.assertFalse(store.storage.exists(stored))

    def test_storage_failure_becomes_upload_error(self):
        storage = InMemoryStorage()
        with mock.patch.object(storage, "save", side_effect=OSError("quota exceeded")):
            with self.assertRaises(ReceiptUploadError):
                ReceiptStore(storage=storage).upload("receipts/7/receipt-1.png", upload(32))


class ReceiptExtractApiTests(APITestCase):
    def setUp(self):
        User.objects.create_user(email="scanner@club.test", password="scanner-pass-1")
        token = self.client.post(
            "/api/v1/auth/token/",
            {"email": "scanner@club.test", "password": "scanner-pass-1"},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def test_extract_suggests_an_amount(self):
        response = self.client.post("/api/v1/receipts/extract/", {"receipt": upload(256)}, format="multipart")
        self.assertEqual(response.status_code, 200)
        self.assertGreaterEqual(response.data["amount"], OCR_MIN_AMOUNT)
        self.assertLessEqual(response.data["amount"], OCR_MAX_AMOUNT)
        self.assertTrue(response.data["applied"])

    def test_extract_never_overrides_typed_amount(self):
        with mock.patch("apps.receipts.services.random.randint", return_value=1234):
            response = self.client.post(
                "/api/v1/receipts/extract/",
                {"receipt": upload(256), "current_amount": "450"},
                format="multipart",
            )
        self.assertEqual(response.data["amount"], 1234)
        self.assertFalse(response.data["applied"])

    def test_extract_validates_the_file(self):
        response = self.client.post(
            "/api/v1/receipts/extract/",
            {"receipt": upload(6 * MB)},
            format="multipart",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("receipt", response.data["fields"])
