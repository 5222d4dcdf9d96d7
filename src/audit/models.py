"""Audit trail of attempted operations."""

from django.conf import settings
from django.db import models

from access_control.models import Operation, Role


class CallStatus(models.TextChoices):
    SUCCESS = "SUCCESS", "Success"
    DENIED = "DENIED", "Denied"
    ERROR = "ERROR", "Error"


class AuditEntry(models.Model):
    """Immutable record of one attempted operation and its outcome.

    The acting user is kept as a nullable reference plus an email snapshot,
    so entries survive the deletion of the user they describe.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        on_delete=models.SET_NULL,
        related_name="audit_entries",
    )
    user_email = models.EmailField(blank=True)
    role = models.CharField(max_length=20, choices=Role.choices)
    operation_name = models.CharField(max_length=100)
    operation = models.ForeignKey(
        Operation,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="audit_entries",
    )
    parameters = models.JSONField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=CallStatus.choices)
    output = models.TextField(blank=True)
    error_message = models.TextField(blank=True)
    client_ip = models.CharField(max_length=64, blank=True)
    user_agent = models.TextField(blank=True)
    execution_time_ms = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["role", "operation_name", "status", "created_at"], name="audit_rate_limit_idx"),
            models.Index(fields=["user", "created_at"], name="audit_user_idx"),
        ]
        verbose_name_plural = "audit entries"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.operation_name} [{self.status}] by {self.user_email or self.role}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Audit entries are immutable once written.")
        super().save(*args, **kwargs)


__all__ = ["AuditEntry", "CallStatus"]
