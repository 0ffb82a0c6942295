from django.urls import path

from apps.receipts.views import ReceiptExtractView

urlpatterns = [
    path("receipts/extract/", ReceiptExtractView.as_view(), name="receipt-extract"),
]
