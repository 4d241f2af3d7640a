"""User manager handling bcrypt hashing and verification."""

import uuid

import bcrypt
from django.conf import settings
from django.contrib.auth.base_user import BaseUserManager


class UserManager(BaseUserManager):
    """Manager to create users with bcrypt password hashes."""

    use_in_migrations = True

    def create_user(self, email: str, password: str | None = None, **extra_fields):
        """Create a user row. Org roles are assigned separately by the subject service."""
        if not email:
            raise ValueError("The Email must be set")
        if password is None:
            raise ValueError("Password must be provided")
        email = self.normalize_email(email)
        user = self.model(id=uuid.uuid4(), email=email, **extra_fields)
        user.password_hash = self.hash_password(password)
        user.save(using=self._db)
        return user

    @staticmethod
    def hash_password(raw_password: str) -> str:
        """Hash a raw password using bcrypt and return the utf-8 string."""
        hashed = bcrypt.hashpw(raw_password.encode(), bcrypt.gensalt(rounds=getattr(settings, "BCRYPT_ROUNDS", 12)))
        return hashed.decode()

    @staticmethod
    def verify_password(user, raw_password: str) -> bool:
        if not user.password_hash:
            return False
        return bcrypt.checkpw(raw_password.encode(), user.password_hash.encode("utf-8"))


__all__ = ["UserManager"]
