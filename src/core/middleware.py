"""Middleware attaching the authenticated subject to each request."""

from typing import Optional

from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed

from authentication.models import User
from authentication.services import TokenService


class JWTAuthMiddleware(MiddlewareMixin):
    """Decode a Bearer access token and attach ``request.user``.

    Requests without a token continue as anonymous; an invalid token, or one
    for an unknown or inactive user, is rejected with 401.
    """

    def process_request(self, request):  # type: ignore[override]
        auth_header = request.META.get("HTTP_AUTHORIZATION", "")
        if not auth_header.startswith("Bearer "):
            request.user = AnonymousUser()
            return None

        token = auth_header.split(" ", 1)[1]
        try:
            payload = TokenService.decode_token(token, expected_type="access")
        except AuthenticationFailed:
            return _unauthorized()

        user = self._get_user(payload.get("sub"))
        if not user or not user.is_active:
            return _unauthorized()

        request.user = user
        return None

    @staticmethod
    def _get_user(user_id: Optional[str]) -> Optional[User]:
        if not user_id:
            return None
        try:
            return User.objects.get(id=user_id)
        except (User.DoesNotExist, DjangoValidationError):
            return None


def _unauthorized() -> JsonResponse:
    return JsonResponse(
        {
            "data": None,
            "errors": ["Authentication credentials were not provided or are invalid, or user is inactive."],
        },
        status=status.HTTP_401_UNAUTHORIZED,
    )


__all__ = ["JWTAuthMiddleware"]
