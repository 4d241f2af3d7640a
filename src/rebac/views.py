"""Endpoints exposing permission checks and org role management."""

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from rest_framework.permissions import IsAuthenticated

from core.response import BaseAPIView, api_response
from .engine import get_engine
from .exceptions import AuthorizationDenied
from .identifiers import user_ref
from .permissions import OrgRolePermission
from .policy import Operation
from .serializers import CheckSerializer, RoleChangeSerializer


class CheckView(BaseAPIView):
    """Answer ``check(subject, relation, object)``.

    Subjects may query their own permissions; org admins may query anyone's.
    """

    permission_classes = [IsAuthenticated]

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        serializer = CheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        engine = get_engine()
        caller = user_ref(request.user.pk)
        if data["subject"] != caller and not engine.orchestrator.has_org_role(caller, "admin"):
            raise AuthorizationDenied()
        allowed = engine.check(data["subject"], data["relation"], data["object"])
        return api_response(
            {
                "subject": str(data["subject"]),
                "relation": data["relation"],
                "object": str(data["object"]),
                "allowed": allowed,
            }
        )


class UserRolesView(BaseAPIView):
    """List or change the org roles held by a user."""

    permission_classes = [IsAuthenticated, OrgRolePermission]
    required_org_roles = ("admin",)

    # noinspection PyMethodMayBeStatic
    def get(self, request, user_id):
        get_object_or_404(get_user_model(), pk=user_id)
        roles = get_engine().orchestrator.org_roles(user_ref(user_id))
        return api_response({"user": str(user_ref(user_id)), "roles": roles})

    # noinspection PyMethodMayBeStatic
    def post(self, request, user_id):
        get_object_or_404(get_user_model(), pk=user_id)
        serializer = RoleChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        orchestrator = get_engine().orchestrator
        verdict = orchestrator.require(
            Operation.MANAGE_ROLE,
            user_ref(request.user.pk),
            {"target": user_ref(user_id), **serializer.validated_data},
        )
        return api_response(
            {
                "user": str(user_ref(user_id)),
                "roles": orchestrator.org_roles(user_ref(user_id)),
                "effects": [str(effect) for effect in verdict.effects],
            }
        )


__all__ = ["CheckView", "UserRolesView"]
