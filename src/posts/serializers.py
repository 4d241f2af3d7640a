"""Serializers for post CRUD and lifecycle actions."""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Post

User = get_user_model()


class PostSerializer(serializers.ModelSerializer):
    owner = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        """Ownership, status and timestamps change only through lifecycle actions."""
        model = Post
        fields = ["id", "title", "content", "owner", "status", "created_at", "updated_at"]
        read_only_fields = ["id", "owner", "status", "created_at", "updated_at"]


class TransferOwnerSerializer(serializers.Serializer):
    new_owner_id = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))


class GrantEditSerializer(serializers.Serializer):
    moderator_id = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))


__all__ = ["PostSerializer", "TransferOwnerSerializer", "GrantEditSerializer"]
