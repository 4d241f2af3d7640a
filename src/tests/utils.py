"""Shared helpers for tests (subject creation, role grants, API clients)."""

from __future__ import annotations

from rest_framework.test import APIClient

from authentication.services import SubjectService, TokenService
from rebac.engine import get_engine
from rebac.identifiers import TupleKey, user_ref

DEFAULT_PASSWORD = "StrongPass123"


def create_subject(email: str, *roles: str, password: str = DEFAULT_PASSWORD, **extra):
    """Register a subject through the normal path, then grant extra org roles."""

    user, _ = SubjectService.register(email=email, password=password, **extra)
    if roles:
        grant_roles(user, *roles)
    return user


def grant_roles(user, *roles: str) -> None:
    """Write org role tuples directly, bypassing the admin check."""

    engine = get_engine()
    engine.store.write([TupleKey(user_ref(user.pk), role, engine.orchestrator.org) for role in roles])


def auth_client(user) -> APIClient:
    """Return an APIClient authenticated with a fresh access token."""

    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {TokenService.generate_token(user)}")
    return client
