from rest_framework import generics
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from apps.receipts.serializers import ReceiptExtractSerializer
from apps.receipts.services import simulate_amount_extraction


class ReceiptExtractView(generics.GenericAPIView):
    serializer_class = ReceiptExtractSerializer
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        amount = simulate_amount_extraction(serializer.validated_data["receipt"])
        return Response(
            {
                "amount": amount,
                "applied": not serializer.validated_data["current_amount"].strip(),
            }
        )
