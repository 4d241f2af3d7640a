"""App configuration for the rebac Django application.

Builds the authorization engine once at startup and registers the system
check that validates the authorization model.
"""

from django.apps import AppConfig
from django.core.exceptions import ImproperlyConfigured


class RebacConfig(AppConfig):
    """Application configuration for the rebac app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "rebac"
    verbose_name = "Relationship-based access control"

    engine = None
    installed_model_synced = False

    def ready(self) -> None:
        """Load the model file; an invalid model aborts startup.

        No database access here: ``get_engine`` picks up an installed model later.
        """
        from . import checks  # noqa: F401
        from .engine import build_engine
        from .exceptions import SchemaError

        try:
            self.engine = build_engine(use_installed=False)
        except SchemaError as exc:
            raise ImproperlyConfigured(f"Invalid authorization model: {exc.message}") from exc
