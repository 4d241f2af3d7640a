"""Routing for authorization endpoints."""

from django.urls import path

from .views import CheckView, UserRolesView

urlpatterns = [
    path("check/", CheckView.as_view(), name="rebac-check"),
    path("users/<uuid:user_id>/roles/", UserRolesView.as_view(), name="rebac-user-roles"),
]
