"""Runtime configuration entries editable through the admin API."""

from django.db import models


class Configuration(models.Model):
    """Key/value setting that overrides an environment default at runtime."""

    key = models.CharField(max_length=100, unique=True)
    value = models.CharField(max_length=500)
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.key}={self.value}"

    @classmethod
    def get_value(cls, key: str, default: str | None = None) -> str | None:
        """Return the stored value for ``key`` or ``default`` when unset."""
        entry = cls.objects.filter(key=key).only("value").first()
        return entry.value if entry else default

    @classmethod
    def get_int(cls, key: str, default: int) -> int:
        """Return the stored value as an int, falling back on bad or missing data."""
        raw = cls.get_value(key)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError:
            return default


__all__ = ["Configuration"]
