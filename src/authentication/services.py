"""Token issuance and subject registration."""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from django.conf import settings
from django.db import transaction
from rest_framework.exceptions import AuthenticationFailed

from rebac.engine import get_engine

from .models import User

logger = logging.getLogger(__name__)


class TokenService:
    """Issue and decode signed access tokens."""

    ALGORITHM = "HS256"

    @classmethod
    def access_ttl(cls) -> timedelta:
        return timedelta(minutes=getattr(settings, "ACCESS_TOKEN_TTL_MINUTES", 60 * 24 * 7))

    @classmethod
    def generate_token(cls, user) -> str:
        """Return a signed access token for ``user``."""
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "sub": str(user.id),
            "email": user.email,
            "jti": str(uuid.uuid4()),
            "iat": int(now.timestamp()),
            "exp": int((now + cls.access_ttl()).timestamp()),
            "type": "access",
        }
        return jwt.encode(payload, settings.SECRET_KEY, algorithm=cls.ALGORITHM)

    @classmethod
    def decode_token(cls, token: str, expected_type: str | None = "access") -> dict[str, Any]:
        """Decode and validate a token; optionally enforce its type."""
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[cls.ALGORITHM])
        except jwt.ExpiredSignatureError as exc:  # pragma: no cover - simple mapping
            raise AuthenticationFailed("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthenticationFailed("Invalid token") from exc

        if expected_type and payload.get("type") != expected_type:
            raise AuthenticationFailed("Invalid token type")
        return payload


class SubjectService:
    """Create users together with their initial org role."""

    @staticmethod
    def register(email: str, password: str, **extra_fields) -> tuple[User, str]:
        """Create a user and assign ``admin`` (first ever) or ``viewer``.

        The role assignment commits with the user row or not at all.
        """
        with transaction.atomic():
            user = User.objects.create_user(email=email, password=password, **extra_fields)
            role = get_engine().orchestrator.register_subject(user.pk)
        logger.info("Registered subject %s with org role %s", user.pk, role)
        return user, role


__all__ = ["TokenService", "SubjectService"]
