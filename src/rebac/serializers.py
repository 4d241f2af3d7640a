"""Serializers for the check and role management endpoints."""

from rest_framework import serializers

from .exceptions import ValidationError
from .identifiers import ObjectRef


class ObjectRefField(serializers.CharField):
    """``type:id`` string parsed into an ``ObjectRef``."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        try:
            return ObjectRef.parse(value)
        except ValidationError as exc:
            raise serializers.ValidationError(exc.message) from exc

    def to_representation(self, value):
        return str(value)


class CheckSerializer(serializers.Serializer):
    """Validate a ``check(subject, relation, object)`` query."""

    subject = ObjectRefField()
    relation = serializers.CharField(max_length=50)
    object = ObjectRefField()


class RoleChangeSerializer(serializers.Serializer):
    """Grant or revoke an org role; values are validated by the policy layer."""

    role = serializers.CharField(max_length=50)
    action = serializers.CharField(max_length=10)


__all__ = ["ObjectRefField", "CheckSerializer", "RoleChangeSerializer"]
