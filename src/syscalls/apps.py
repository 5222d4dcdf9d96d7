"""App configuration for the operation executor and request pipeline."""

from django.apps import AppConfig


class SyscallsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "syscalls"

    def ready(self) -> None:
        """Register system checks when the app is loaded."""
        from . import checks  # noqa: F401
