import logging

from django.db import transaction
from rest_framework import generics, status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.serializers import ValidationError
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.serializers import (
    ACCOUNT_CLEAR_CONFIRMATION,
    AccountClearSerializer,
    IdentitySerializer,
    LogoutSerializer,
    PasswordUpdateSerializer,
    RegisterSerializer,
)
from apps.audit.models import AuditAction
from apps.audit.services import record_audit
from apps.budgets.services import reset_budget_warning
from apps.common.exceptions import ConfirmationRequired
from apps.expenses.models import Expense
from apps.receipts.services import ReceiptStore

logger = logging.getLogger(__name__)


def _blacklist(raw_token):
    try:
        RefreshToken(raw_token).blacklist()
    except TokenError as exc:
        raise ValidationError({"refresh": str(exc)}) from exc


class RegisterView(generics.CreateAPIView):
    serializer_class = RegisterSerializer
    permission_classes = [AllowAny]
    authentication_classes = []

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response(IdentitySerializer(user).data, status=status.HTTP_201_CREATED)


class CurrentUserView(generics.RetrieveAPIView):
    serializer_class = IdentitySerializer

    def get_object(self):
        return self.request.user


class LogoutView(generics.GenericAPIView):
    serializer_class = LogoutSerializer

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        _blacklist(serializer.validated_data["refresh"])
        reset_budget_warning(request.user.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PasswordUpdateView(generics.GenericAPIView):
    serializer_class = PasswordUpdateSerializer

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = request.user
        user.set_password(serializer.validated_data["new_password"])
        user.save(update_fields=["password"])
        record_audit(
            actor=user,
            action=AuditAction.PASSWORD_UPDATE,
            entity_type="user",
            entity_id=user.pk,
        )
        return Response({"detail": "Your password has been updated successfully"})


class AccountClearView(generics.GenericAPIView):
    serializer_class = AccountClearSerializer

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if serializer.validated_data["confirmation"] != ACCOUNT_CLEAR_CONFIRMATION:
            raise ConfirmationRequired("The confirmation text didn't match", code="confirmation_mismatch")

        user = request.user
        refresh = serializer.validated_data.get("refresh")
        if refresh:
            _blacklist(refresh)
        expenses = Expense.objects.filter(submitted_by=user)
        receipt_urls = list(expenses.exclude(receipt_url__isnull=True).values_list("receipt_url", flat=True))
        with transaction.atomic():
            deleted, _ = expenses.delete()
            record_audit(
                actor=user,
                action=AuditAction.ACCOUNT_CLEAR,
                entity_type="user",
                entity_id=user.pk,
                payload={"expenses_deleted": deleted},
            )
        store = ReceiptStore()
        for url in receipt_urls:
            store.discard(url)
        reset_budget_warning(user.pk)
        logger.info("Cleared %s expenses for user %s", deleted, user.pk)
        return Response({"expenses_deleted": deleted})
