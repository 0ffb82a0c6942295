from rest_framework import serializers

from apps.receipts.services import validate_receipt_file


class ReceiptExtractSerializer(serializers.Serializer):
    receipt = serializers.FileField()
    current_amount = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_receipt(self, value):
        return validate_receipt_file(value)
