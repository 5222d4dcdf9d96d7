"""App configuration for the audit log."""

from django.apps import AppConfig


class AuditConfig(AppConfig):
    """Audit app records every attempted operation and serves log queries."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "audit"
