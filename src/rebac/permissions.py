"""DRF permission class backed by org-role checks on the authorization engine."""

from rest_framework import permissions

from .engine import get_engine
from .identifiers import user_ref


class OrgRolePermission(permissions.BasePermission):
    """Allow the request if the user holds any of ``view.required_org_roles``.

    Views without ``required_org_roles`` are denied outright. Store failures
    propagate as ``StoreUnavailable`` rather than turning into a 403.
    """

    message = "You do not have permission to perform this action on this resource."

    def has_permission(self, request, view) -> bool:
        roles = getattr(view, "required_org_roles", None)
        if not roles:
            return False

        user = getattr(request, "user", None)
        if not user or not getattr(user, "is_authenticated", False):
            return False

        return get_engine().orchestrator.has_org_role(user_ref(user.pk), *roles)


__all__ = ["OrgRolePermission"]
