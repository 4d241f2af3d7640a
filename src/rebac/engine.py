"""Process-wide wiring of schema, store, evaluator and orchestrator.

The engine is constructed once by ``RebacConfig.ready`` from the model file
and handed to callers through ``get_engine()``, which switches it to the
active installed model on first use. Tests build their own with
``build_engine``.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from django.apps import apps
from django.conf import settings
from django.db import transaction

from .evaluator import DEFAULT_MAX_DEPTH, Evaluator
from .identifiers import org_ref
from .models import AuthorizationModel
from .policy import PolicyOrchestrator
from .schema import Schema, load_schema, parse_schema
from .store import TupleStore

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PATH = Path(__file__).resolve().parent / "authorization_model.json"


@dataclass
class AuthorizationEngine:
    store: TupleStore
    evaluator: Evaluator
    orchestrator: PolicyOrchestrator

    @property
    def schema(self) -> Schema:
        return self.evaluator.schema

    def check(self, subject, relation: str, obj) -> bool:
        return self.evaluator.check(subject, relation, obj)

    def apply(self, operation, subject, params: dict[str, Any] | None = None):
        return self.orchestrator.apply(operation, subject, params)


def configured_model_path() -> Path:
    return Path(getattr(settings, "REBAC_MODEL_PATH", None) or DEFAULT_MODEL_PATH)


def installed_schema() -> Schema | None:
    """Schema of the active ``AuthorizationModel`` row, or None if none was installed."""
    record = AuthorizationModel.objects.filter(is_active=True).first()
    return parse_schema(record.document) if record else None


def build_engine(schema: Schema | None = None, use_installed: bool = True) -> AuthorizationEngine:
    """Construct an engine from settings. Raises ``SchemaError`` on a bad model.

    Without an explicit ``schema`` the active installed model is served; the
    ``REBAC_MODEL_PATH`` file is the fallback when nothing was installed yet
    (or when ``use_installed`` is False, which avoids touching the database).
    """
    if schema is None and use_installed:
        schema = installed_schema()
    if schema is None:
        schema = load_schema(configured_model_path())
    store = TupleStore()
    evaluator = Evaluator(
        schema, store, max_depth=getattr(settings, "REBAC_MAX_CHECK_DEPTH", DEFAULT_MAX_DEPTH)
    )
    orchestrator = PolicyOrchestrator(
        evaluator, store, org=org_ref(getattr(settings, "REBAC_ORG_ID", "blog"))
    )
    return AuthorizationEngine(store=store, evaluator=evaluator, orchestrator=orchestrator)


def sync_installed_model(engine: AuthorizationEngine) -> bool:
    """Switch ``engine`` to the active installed model if it serves another one."""
    schema = installed_schema()
    if schema is None or schema.digest == engine.schema.digest:
        return False
    engine.evaluator.install(schema)
    logger.info("Serving installed authorization model %s", schema.digest[:12])
    return True


def install_authorization_model(engine: AuthorizationEngine, document: dict[str, Any]) -> AuthorizationModel:
    """Validate ``document`` and make it the active model.

    Installing the same document again is a no-op. Tuples are never touched.
    """
    schema = parse_schema(document)
    with transaction.atomic():
        record, created = AuthorizationModel.objects.get_or_create(
            digest=schema.digest,
            defaults={"schema_version": schema.schema_version, "document": document},
        )
        if not record.is_active:
            AuthorizationModel.objects.exclude(pk=record.pk).update(is_active=False)
            record.is_active = True
            record.save(update_fields=["is_active"])
    engine.evaluator.install(schema)
    logger.info(
        "%s authorization model %s", "Installed" if created else "Re-installed", schema.digest[:12]
    )
    return record


def get_engine() -> AuthorizationEngine:
    """Return the engine built at startup.

    The first call in a process switches it to the active installed model,
    since ``RebacConfig.ready`` cannot query the database.
    """
    config = apps.get_app_config("rebac")
    if not config.installed_model_synced:
        sync_installed_model(config.engine)
        config.installed_model_synced = True
    return config.engine


__all__ = [
    "AuthorizationEngine",
    "build_engine",
    "installed_schema",
    "sync_installed_model",
    "install_authorization_model",
    "get_engine",
    "configured_model_path",
]
