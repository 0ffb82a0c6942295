from django.urls import path

from apps.budgets.views import BudgetPlanView, DashboardView

urlpatterns = [
    path("dashboard/", DashboardView.as_view(), name="dashboard"),
    path("budget-plan/", BudgetPlanView.as_view(), name="budget-plan"),
]
