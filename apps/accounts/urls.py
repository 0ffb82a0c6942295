from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from apps.accounts.views import AccountClearView, CurrentUserView, LogoutView, PasswordUpdateView, RegisterView

urlpatterns = [
    path("token/", TokenObtainPairView.as_view(), name="token-obtain-pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("register/", RegisterView.as_view(), name="register"),
    path("me/", CurrentUserView.as_view(), name="current-user"),
    path("logout/", LogoutView.as_view(), name="logout"),
    path("password/", PasswordUpdateView.as_view(), name="password-update"),
    path("account/clear/", AccountClearView.as_view(), name="account-clear"),
]
