"""Operation registry and policy models: Role, Operation, OperationRole, Policy."""

from django.core.validators import MinValueValidator
from django.db import models


class Role(models.TextChoices):
    """Closed set of roles a user can hold."""

    ADMIN = "ADMIN", "Administrator"
    POWER_USER = "POWER_USER", "Power user"
    VIEWER = "VIEWER", "Viewer"


class OperationCategory(models.TextChoices):
    FILE_SYSTEM = "FILE_SYSTEM", "File system"
    SYSTEM_INFO = "SYSTEM_INFO", "System information"
    PROCESS = "PROCESS", "Process"


class Operation(models.Model):
    """A named, policy-gated system call exposed to authenticated users."""

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=OperationCategory.choices)
    enabled = models.BooleanField(default=True)
    requires_params = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name

    @property
    def eligible_roles(self) -> list[str]:
        """Roles allowed to even attempt this operation."""
        return sorted(grant.role for grant in self.role_grants.all())

    def is_eligible(self, role: str) -> bool:
        return self.role_grants.filter(role=role).exists()


class OperationRole(models.Model):
    """Membership of a role in an operation's eligible-roles set."""

    operation = models.ForeignKey(Operation, on_delete=models.CASCADE, related_name="role_grants")
    role = models.CharField(max_length=20, choices=Role.choices)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["operation", "role"], name="uniq_operation_role"),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.role} may attempt {self.operation.name}"


class Policy(models.Model):
    """Explicit allow/deny and optional hourly cap binding a Role to an Operation."""

    role = models.CharField(max_length=20, choices=Role.choices)
    operation = models.ForeignKey(Operation, on_delete=models.CASCADE, related_name="policies")
    allowed = models.BooleanField(default=True)
    # Successful executions permitted per rolling 60-minute window; null = unlimited.
    max_executions = models.PositiveIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1)]
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["role", "operation"], name="uniq_policy_role_operation"),
        ]
        verbose_name_plural = "policies"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.role} -> {self.operation.name}"


__all__ = ["Role", "OperationCategory", "Operation", "OperationRole", "Policy"]
