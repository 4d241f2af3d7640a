"""Custom exception handling to enforce the API error envelope."""

import logging
from typing import Any

from django.conf import settings
from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed, NotAuthenticated
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from rebac.exceptions import AuthorizationDenied, StoreUnavailable, ValidationError

logger = logging.getLogger(__name__)


def _normalize_errors(payload: Any) -> list[Any]:
    """Convert DRF's response.data into a list for the envelope."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and "detail" in payload:
        return [payload["detail"]]
    return [payload]


def _envelope(message: str, status_code: int) -> Response:
    return Response({"data": None, "errors": [message]}, status=status_code)


def custom_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """Wrap errors in the `{ "data": null, "errors": [...] }` shape.

    - Authorization engine errors map to 400 (validation), 403 (denied) and
      503 (store unavailable or rolled-back batch). A store failure is never
      reported as 403.
    - Raw database errors are a temporary outage (503).
    - Everything else goes through DRF's default handler, with auth failures
      normalized to 401.
    """

    if isinstance(exc, ValidationError):
        return _envelope(exc.message, status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, AuthorizationDenied):
        return _envelope(exc.message, status.HTTP_403_FORBIDDEN)
    if isinstance(exc, StoreUnavailable):
        logger.warning("Authorization store unavailable: %s", exc.__cause__ or exc)
        return _envelope(exc.message, status.HTTP_503_SERVICE_UNAVAILABLE)
    if isinstance(exc, DatabaseError):
        logger.exception("Database error while handling request")
        return _envelope("Service temporarily unavailable.", status.HTTP_503_SERVICE_UNAVAILABLE)

    response = drf_exception_handler(exc, context)

    if response is None:
        return response

    if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
        response.status_code = status.HTTP_401_UNAUTHORIZED

    if response.status_code >= 400:
        base_errors = response.data

        if response.status_code == status.HTTP_401_UNAUTHORIZED:
            if getattr(settings, "DEBUG_AUTH_ERRORS", False):
                errors = _normalize_errors(base_errors)
            else:
                errors = [
                    "Authentication credentials were not provided or are invalid, "
                    "or user is inactive."
                ]
        elif response.status_code == status.HTTP_403_FORBIDDEN:
            errors = [AuthorizationDenied.default_message]
        else:
            errors = _normalize_errors(base_errors)

        response.data = {"data": None, "errors": errors}

    return response
