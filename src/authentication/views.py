"""Authentication endpoints: register, login and profile; admin user listing."""

from typing import Any

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed

from core.response import BaseAPIView, api_response
from rebac.permissions import OrgRolePermission
from .serializers import LoginSerializer, RegisterSerializer, UserDetailSerializer, UserSummarySerializer
from .services import TokenService

User = get_user_model()


class RegisterView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Register a new subject and return its profile."""
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return api_response(UserDetailSerializer(user).data, status=status.HTTP_201_CREATED)


class LoginView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Authenticate and issue an access token."""
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]
        return api_response(
            {"access": TokenService.generate_token(user), "user": UserDetailSerializer(user).data}
        )


class MeView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        """Return the current user's profile and org roles."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        return api_response(UserDetailSerializer(request.user).data)


class UserListView(BaseAPIView):
    """List all subjects (org admins only)."""

    permission_classes = [OrgRolePermission]
    required_org_roles = ("admin",)

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        users = User.objects.order_by("-date_joined")
        return api_response(UserSummarySerializer(users, many=True).data)
