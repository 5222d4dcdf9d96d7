"""Custom User model with bcrypt-hashed passwords and a closed role, plus login attempts.

Note: Django's built-in groups/permissions (PermissionsMixin) are not used;
what a user may do is decided by ``role`` and the operation policy tables.
"""

import uuid
from typing import Optional, ClassVar

from django.contrib.auth.models import AbstractBaseUser
from django.db import models

from access_control.models import Role
from .managers import UserManager


class User(AbstractBaseUser):
    """Custom user identified by email with bcrypt password hashes."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    password_hash = models.CharField(max_length=128)
    name = models.CharField(max_length=150)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.VIEWER)
    is_active = models.BooleanField(default=True)
    # Bumped by logout-all; tokens carrying an older ``ver`` are rejected.
    token_version = models.PositiveIntegerField(default=1)
    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS: ClassVar[list[str]] = []

    objects = UserManager()

    class Meta:
        """Default ordering shows newest users first."""
        ordering = ["-date_joined"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.email

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def set_password(self, raw_password: Optional[str]) -> None:  # type: ignore[override]
        """Override to ensure bcrypt hashing via manager utility."""

        if raw_password is None:
            self.password_hash = ""
        else:
            self.password_hash = UserManager.hash_password(raw_password)

    def check_password(self, raw_password: Optional[str]) -> bool:  # type: ignore[override]
        """Delegate to bcrypt verification helper."""

        if raw_password is None:
            return False
        return UserManager.verify_password(self, raw_password)


class LoginAttempt(models.Model):
    """One authentication attempt, used for rolling-window login throttling."""

    email = models.EmailField()
    successful = models.BooleanField(default=False)
    ip_address = models.CharField(max_length=64)
    user_agent = models.TextField(blank=True)
    user = models.ForeignKey(
        User,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="login_attempts",
    )
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["email", "successful", "timestamp"], name="login_email_idx"),
            models.Index(fields=["ip_address", "successful", "timestamp"], name="login_ip_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        outcome = "ok" if self.successful else "failed"
        return f"{self.email} from {self.ip_address}: {outcome}"


__all__ = ["User", "LoginAttempt"]
