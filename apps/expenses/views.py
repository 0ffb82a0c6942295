import logging

from django.db import transaction
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.models import AuditAction
from apps.audit.services import record_audit
from apps.common.exceptions import ConfirmationRequired, InvalidStateError
from apps.common.permissions import IsOwner
from apps.expenses.models import Expense, ExpenseStatus
from apps.expenses.serializers import ExpenseSerializer
from apps.receipts.services import ReceiptStore

logger = logging.getLogger(__name__)

CONFIRM_VALUES = {"1", "true", "yes"}


def expense_snapshot(expense):
    return {
        "title": expense.title,
        "category": expense.category,
        "amount": str(expense.amount),
        "status": expense.status,
    }


class ExpenseViewSet(viewsets.ModelViewSet):
    serializer_class = ExpenseSerializer
    permission_classes = [IsOwner]
    http_method_names = ["get", "post", "delete", "head", "options"]
    owner_field = "submitted_by"

    def get_queryset(self):
        queryset = Expense.objects.filter(submitted_by=self.request.user)
        status = self.request.query_params.get("status")
        category = self.request.query_params.get("category")
        if status:
            queryset = queryset.filter(status=status.strip().lower())
        if category:
            queryset = queryset.filter(category__iexact=category.strip())
        return queryset

    def perform_create(self, serializer):
        expense = serializer.save()
        record_audit(
            actor=self.request.user,
            action=AuditAction.EXPENSE_CREATE,
            entity_type="expense",
            entity_id=expense.id,
            payload={**expense_snapshot(expense), "has_receipt": bool(expense.receipt_url)},
        )

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        return self._transition(ExpenseStatus.APPROVED, AuditAction.EXPENSE_APPROVE)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        return self._transition(ExpenseStatus.REJECTED, AuditAction.EXPENSE_REJECT)

    def _transition(self, new_status, audit_action):
        expense = self.get_object()
        with transaction.atomic():
            locked = Expense.objects.select_for_update().get(pk=expense.pk)
            if not locked.can_transition_to(new_status):
                raise InvalidStateError(f"Only pending expenses can be {new_status.value}; this one is {locked.status}.")
            previous = locked.status
            locked.status = new_status.value
            locked.save(update_fields=["status"])
            record_audit(
                actor=self.request.user,
                action=audit_action,
                entity_type="expense",
                entity_id=locked.id,
                payload={"before": previous, "after": locked.status},
            )

        # Respond with what the database holds, never a locally patched copy.
        locked.refresh_from_db()
        logger.info("Expense %s moved %s -> %s", locked.id, previous, locked.status)
        return Response(self.get_serializer(locked).data)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        if request.query_params.get("confirm", "").strip().lower() not in CONFIRM_VALUES:
            raise ConfirmationRequired("Deleting an expense must be confirmed with confirm=true.")
        self.perform_destroy(instance)
        return Response(status=204)

    def perform_destroy(self, instance):
        record_audit(
            actor=self.request.user,
            action=AuditAction.EXPENSE_DELETE,
            entity_type="expense",
            entity_id=instance.id,
            payload=expense_snapshot(instance),
        )
        receipt_url = instance.receipt_url
        super().perform_destroy(instance)
        if receipt_url:
            ReceiptStore().discard(receipt_url)
