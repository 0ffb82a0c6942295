from django.urls import include, path

urlpatterns = [
    path("auth/", include("apps.accounts.urls")),
    path("", include("apps.expenses.urls")),
    path("", include("apps.receipts.urls")),
    path("", include("apps.budgets.urls")),
]
