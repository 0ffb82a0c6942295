"""Receipt image validation, blob storage and the simulated OCR step.

Receipts are written through Django's storage API so the backing store
(local disk, S3, in-memory in tests) is a settings concern.
"""

import logging
import random
import time
from urllib.parse import unquote

from django.conf import settings
from django.core.files.storage import default_storage
from django.utils import timezone
from rest_framework import serializers

from apps.common.exceptions import ReceiptUploadError

logger = logging.getLogger(__name__)

OCR_MIN_AMOUNT = 100
OCR_MAX_AMOUNT = 5099


def validate_receipt_file(upload):
    content_type = (getattr(upload, "content_type", None) or "").lower()
    if not content_type.startswith("image/"):
        raise serializers.ValidationError(
            "Please upload an image file (JPG, PNG, etc.)",
            code="invalid_file_type",
        )

    max_bytes = settings.RECEIPT_MAX_UPLOAD_BYTES
    if upload.size > max_bytes:
        raise serializers.ValidationError(
            f"Please upload an image smaller than {max_bytes // (1024 * 1024)}MB",
            code="file_too_large",
        )
    return upload


def build_receipt_path(owner_id, filename, now=None):
    now = now or timezone.now()
    name = (filename or "").rsplit("/", 1)[-1]
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else "bin"
    stamp = int(now.timestamp() * 1000)
    return f"receipts/{owner_id}/receipt-{stamp}.{ext}"


class ReceiptStore:
    def __init__(self, storage=None):
        self.storage = storage if storage is not None else default_storage

    def upload(self, path, content):
        try:
            return self.storage.save(path, content)
        except Exception as exc:
            logger.exception("Receipt upload to %s failed", path)
            raise ReceiptUploadError() from exc

    def public_url(self, path):
        return self.storage.url(path)

    def delete(self, path):
        if self.storage.exists(path):
            self.storage.delete(path)

    def path_for_url(self, url):
        """Inverse of ``public_url``; ``None`` for URLs outside this storage."""
        base_url = self.storage.url("")
        if not url or not base_url or not url.startswith(base_url):
            return None
        return unquote(url[len(base_url):]) or None

    def discard(self, url):
        path = self.path_for_url(url)
        if path is None:
            return
        self.delete(path)
        logger.info("Removed receipt %s", path)


def simulate_amount_extraction(upload):
    # Stand-in for a real OCR provider: waits, then "reads" a plausible amount.
    delay = settings.OCR_SIMULATED_DELAY_SECONDS
    if delay > 0:
        time.sleep(delay)
    amount = random.randint(OCR_MIN_AMOUNT, OCR_MAX_AMOUNT)
    logger.info("Simulated OCR on %s extracted %s", getattr(upload, "name", "receipt"), amount)
    return amount
