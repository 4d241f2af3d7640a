"""Bridge between ``JWTAuthMiddleware`` and DRF authentication.

The middleware has already verified the bearer token and set
``request.user`` on the Django request; this authenticator only surfaces
that user to DRF.
"""

from typing import Any, Optional, Tuple

from django.contrib.auth.models import AnonymousUser
from rest_framework.authentication import BaseAuthentication


class MiddlewareUserAuthentication(BaseAuthentication):
    """Expose ``request._request.user`` (set by middleware) to DRF."""

    def authenticate(self, request) -> Optional[Tuple[Any, None]]:
        django_request = getattr(request, "_request", None)
        if django_request is None:
            return None

        user = getattr(django_request, "user", None)
        if user is None or isinstance(user, AnonymousUser):
            return None
        if not getattr(user, "is_authenticated", False):
            return None
        return user, None

    def authenticate_header(self, request) -> str:
        """Challenge sent with 401 responses to anonymous requests."""
        return 'Bearer realm="api"'


__all__ = ["MiddlewareUserAuthentication"]
