import logging

from rest_framework import generics
from rest_framework.response import Response

from apps.budgets.serializers import BudgetQuerySerializer, DashboardQuerySerializer
from apps.budgets.services import build_dashboard, consume_budget_warning, plan_ceilings
from apps.expenses.models import Expense

logger = logging.getLogger(__name__)


class BudgetPlanView(generics.GenericAPIView):
    def get(self, request, *args, **kwargs):
        query_serializer = BudgetQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        budget = query_serializer.validated_data["budget"]
        return Response({"budget": budget, "allocations": plan_ceilings(budget)})


class DashboardView(generics.GenericAPIView):
    def get(self, request, *args, **kwargs):
        query_serializer = DashboardQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        budget = query_serializer.validated_data["budget"]
        strict = query_serializer.validated_data["strict"]

        # Always aggregate a fresh read so concurrent edits elsewhere are reflected.
        expenses = list(Expense.objects.filter(submitted_by=request.user))
        payload = build_dashboard(expenses, budget, strict=strict)

        warning = consume_budget_warning(request.user.pk, payload["budget_utilization"])
        if warning:
            logger.info("Budget warning raised for user %s at %s%%", request.user.pk, payload["budget_utilization"])
        payload["budget_warning"] = warning
        return Response(payload)
