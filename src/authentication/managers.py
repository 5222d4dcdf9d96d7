"""Custom user manager handling bcrypt hashing and verification."""

import uuid

import bcrypt
from django.conf import settings
from django.contrib.auth.base_user import BaseUserManager


class UserManager(BaseUserManager):
    """Manager to create users with bcrypt password hashes."""

    use_in_migrations = True

    def _create_user(self, email: str, password: str, **extra_fields):
        if not email:
            raise ValueError("The Email must be set")
        email = self.normalize_email(email)
        user = self.model(id=uuid.uuid4(), email=email, **extra_fields)
        user.password_hash = self.hash_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email: str, password: str | None = None, **extra_fields):
        """Create a user with a bcrypt-hashed password (role defaults to VIEWER)."""
        if password is None:
            raise ValueError("Password must be provided")
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email: str, password: str, **extra_fields):
        """Create an ADMIN user; used by ``createsuperuser``."""
        extra_fields["role"] = "ADMIN"
        extra_fields.setdefault("is_active", True)
        extra_fields.setdefault("name", email.split("@", 1)[0])
        return self._create_user(email, password, **extra_fields)

    @staticmethod
    def hash_password(raw_password: str) -> str:
        """Hash a raw password using bcrypt and return the utf-8 string."""
        salt = bcrypt.gensalt(rounds=getattr(settings, "BCRYPT_ROUNDS", 12))
        hashed = bcrypt.hashpw(raw_password.encode(), salt)
        return hashed.decode()

    @staticmethod
    def verify_password(user, raw_password: str) -> bool:
        """Verify raw password against stored bcrypt hash."""

        if not user.password_hash:
            return False
        return bcrypt.checkpw(raw_password.encode(), user.password_hash.encode("utf-8"))


__all__ = ["UserManager"]
