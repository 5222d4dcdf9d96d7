"""App configuration for the access_control Django application.

This module wires up the application config and ensures that role-gating
system checks are registered when Django starts.
"""

from django.apps import AppConfig


class AccessControlConfig(AppConfig):
    """Operation registry, policies, and the authorization gate."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "access_control"

    def ready(self) -> None:
        """Register system checks when the app is loaded."""
        # Import system checks so they are registered with Django.
        from . import checks  # noqa: F401
