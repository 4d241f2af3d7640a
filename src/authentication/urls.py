"""URL patterns for authentication and user listing endpoints."""

from django.urls import path

from .views import LoginView, MeView, RegisterView, UserListView

urlpatterns = [
    path("register/", RegisterView.as_view(), name="auth-register"),
    path("login/", LoginView.as_view(), name="auth-login"),
    path("me/", MeView.as_view(), name="auth-me"),
]

users_urlpatterns = [
    path("", UserListView.as_view(), name="user-list"),
]
