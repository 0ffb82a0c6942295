from django.conf import settings
from rest_framework import serializers


def default_budget():
    return settings.DEFAULT_EVENT_BUDGET


class BudgetQuerySerializer(serializers.Serializer):
    budget = serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        min_value=0,
        required=False,
        default=default_budget,
    )


class DashboardQuerySerializer(BudgetQuerySerializer):
    strict = serializers.BooleanField(required=False, default=False)
