"""System checks tying the seeded operation registry to executor handlers."""

from django.core.checks import Error, register

from .executor import HANDLERS
from .serializers import PARAMETER_SCHEMAS


@register()
def seeded_operations_have_handlers(app_configs, **kwargs):
    """Every seeded operation, and every parameter schema, must map to a handler."""
    from scripts.management.commands.seed_syscalls import SEED_OPERATIONS

    errors: list[Error] = []

    for seed in SEED_OPERATIONS:
        if seed["name"] not in HANDLERS:
            errors.append(
                Error(
                    f"Seeded operation '{seed['name']}' has no executor handler.",
                    hint="Add it to syscalls.executor.HANDLERS or drop it from the seed data.",
                    id="syscalls.E001",
                )
            )

    for name in PARAMETER_SCHEMAS:
        if name not in HANDLERS:
            errors.append(
                Error(
                    f"Parameter schema declared for unknown operation '{name}'.",
                    id="syscalls.E002",
                )
            )

    return errors
