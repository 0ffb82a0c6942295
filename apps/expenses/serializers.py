import logging

from django.db import transaction
from rest_framework import serializers

from apps.expenses.models import Expense, ExpenseStatus
from apps.receipts.services import ReceiptStore, build_receipt_path, validate_receipt_file

logger = logging.getLogger(__name__)


class ExpenseSerializer(serializers.ModelSerializer):
    receipt = serializers.FileField(write_only=True, required=False, allow_null=True)

    class Meta:
        model = Expense
        fields = [
            "id",
            "title",
            "amount",
            "category",
            "description",
            "receipt",
            "receipt_url",
            "status",
            "submitted_by",
            "created_at",
        ]
        read_only_fields = ["id", "receipt_url", "status", "submitted_by", "created_at"]

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title is required")
        return value

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Valid amount is required")
        return value

    def validate_description(self, value):
        if value is None:
            return None
        return value.strip() or None

    def validate_receipt(self, value):
        if value is None:
            return None
        return validate_receipt_file(value)

    def create(self, validated_data):
        receipt = validated_data.pop("receipt", None)
        owner = self.context["request"].user
        store = ReceiptStore()

        stored_path = None
        if receipt is not None:
            stored_path = store.upload(build_receipt_path(owner.pk, receipt.name), receipt)
            validated_data["receipt_url"] = store.public_url(stored_path)

        validated_data["submitted_by"] = owner
        validated_data["status"] = ExpenseStatus.PENDING
        try:
            with transaction.atomic():
                return super().create(validated_data)
        except Exception:
            if stored_path is not None:
                logger.warning("Expense insert failed, removing orphaned receipt %s", stored_path)
                store.delete(stored_path)
            raise
