"""Persistence for relation tuples, installed models and the first-admin claim."""

from django.conf import settings
from django.db import models
from django.db.models import Q


class RelationTuple(models.Model):
    """One ``(subject, relation, object)`` fact. No versioning, no timestamps."""

    subject_type = models.CharField(max_length=50)
    subject_id = models.CharField(max_length=128)
    relation = models.CharField(max_length=50)
    object_type = models.CharField(max_length=50)
    object_id = models.CharField(max_length=128)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["object_type", "object_id", "relation", "subject_type", "subject_id"],
                name="rebac_tuple_unique",
            ),
            # A post never has two owners, whatever the caller does.
            models.UniqueConstraint(
                fields=["object_type", "object_id"],
                condition=Q(relation="owner"),
                name="rebac_single_owner",
            ),
        ]
        indexes = [
            models.Index(fields=["subject_type", "subject_id", "relation"], name="rebac_subject_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.object_type}:{self.object_id}#{self.relation}@{self.subject_type}:{self.subject_id}"


class AuthorizationModel(models.Model):
    """An installed authorization model, keyed by content digest."""

    digest = models.CharField(max_length=64, unique=True)
    schema_version = models.CharField(max_length=10)
    document = models.JSONField()
    is_active = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.schema_version}:{self.digest[:12]}"


class FirstAdminClaim(models.Model):
    """Singleton row; whoever inserts it first becomes the org admin."""

    SINGLETON_KEY = "first_admin"

    key = models.CharField(max_length=20, primary_key=True, default=SINGLETON_KEY)
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    claimed_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"first admin: {self.user_id}"


__all__ = ["RelationTuple", "AuthorizationModel", "FirstAdminClaim"]
