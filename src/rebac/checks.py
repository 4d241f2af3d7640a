"""System checks for the authorization model."""

from django.core.checks import Error, register

from .engine import configured_model_path
from .exceptions import SchemaError
from .schema import load_schema

REQUIRED_RELATIONS = {
    "org": ("admin", "editor", "moderator", "viewer"),
    "post": ("org", "owner", "granted_editor", "can_edit"),
}


@register()
def authorization_model_is_valid(app_configs, **kwargs):
    """Ensure the configured model loads and defines what the policy layer uses."""
    errors: list[Error] = []
    path = configured_model_path()

    try:
        schema = load_schema(path)
    except SchemaError as exc:
        return [Error(exc.message, obj=str(path), id="rebac.E001")]

    for type_name, relations in REQUIRED_RELATIONS.items():
        type_def = schema.types.get(type_name)
        missing = [r for r in relations if type_def is None or r not in type_def.relations]
        if missing:
            errors.append(
                Error(
                    f"Authorization model type {type_name!r} lacks relations: {', '.join(missing)}.",
                    obj=str(path),
                    id="rebac.E002",
                )
            )

    return errors


@register()
def org_role_views_declare_roles(app_configs, **kwargs):
    """Ensure views guarded by OrgRolePermission declare required_org_roles."""
    errors: list[Error] = []

    # Imported here to avoid circular imports at module load time.
    from authentication.views import UserListView
    from .permissions import OrgRolePermission
    from .policy import ORG_ROLES
    from .views import UserRolesView

    for view_cls in (UserListView, UserRolesView):
        if OrgRolePermission not in getattr(view_cls, "permission_classes", []):
            continue
        roles = getattr(view_cls, "required_org_roles", None)
        if not roles or any(role not in ORG_ROLES for role in roles):
            errors.append(
                Error(
                    f"{view_cls.__name__} uses OrgRolePermission without valid required_org_roles.",
                    obj=view_cls,
                    id="rebac.E003",
                )
            )

    return errors
