"""Serializers for authentication flows (register, login, profile)."""

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed

from rebac.engine import get_engine
from rebac.identifiers import user_ref

from .managers import UserManager
from .services import SubjectService

User = get_user_model()


class RegisterSerializer(serializers.Serializer):
    """Validate and create a subject; the engine assigns its initial role."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    first_name = serializers.CharField(required=False, allow_blank=True)
    last_name = serializers.CharField(required=False, allow_blank=True)

    @staticmethod
    def validate_email(value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Email already in use")
        return value

    def create(self, validated_data):
        user, _ = SubjectService.register(**validated_data)
        return user


class LoginSerializer(serializers.Serializer):
    """Authenticate a user via email/password using bcrypt verification."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        try:
            user = User.objects.get(email__iexact=attrs.get("email"))
        except User.DoesNotExist:
            raise AuthenticationFailed("Invalid credentials")

        if not user.is_active:
            raise AuthenticationFailed("User is inactive")

        if not UserManager.verify_password(user, attrs.get("password")):
            raise AuthenticationFailed("Invalid credentials")

        attrs["user"] = user
        return attrs


class UserDetailSerializer(serializers.ModelSerializer):
    """Profile payload including the org roles the user currently holds."""

    subject = serializers.SerializerMethodField()
    roles = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "subject", "email", "first_name", "last_name", "roles", "date_joined"]
        read_only_fields = fields

    @staticmethod
    def get_subject(obj) -> str:
        return str(user_ref(obj.pk))

    @staticmethod
    def get_roles(obj) -> list[str]:
        return get_engine().orchestrator.org_roles(user_ref(obj.pk))


class UserSummarySerializer(serializers.ModelSerializer):
    """Listing payload; roles are looked up per user only on detail views."""

    class Meta:
        model = User
        fields = ["id", "email", "date_joined"]
        read_only_fields = fields
