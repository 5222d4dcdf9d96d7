"""Seed the operation registry, default policies, and demo users."""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from access_control.models import Operation, OperationCategory, OperationRole, Policy, Role
from audit.models import AuditEntry
from authentication.managers import UserManager
from authentication.models import LoginAttempt

ALL_ROLES = [Role.ADMIN, Role.POWER_USER, Role.VIEWER]

SEED_OPERATIONS = [
    {
        "name": "listDirectory",
        "description": "List files and directories in a path",
        "category": OperationCategory.FILE_SYSTEM,
        "eligible_roles": ALL_ROLES,
        "requires_params": True,
    },
    {
        "name": "readFile",
        "description": "Read contents of a file",
        "category": OperationCategory.FILE_SYSTEM,
        "eligible_roles": ALL_ROLES,
        "requires_params": True,
    },
    {
        "name": "writeFile",
        "description": "Write content to a file",
        "category": OperationCategory.FILE_SYSTEM,
        "eligible_roles": [Role.ADMIN, Role.POWER_USER],
        "requires_params": True,
    },
    {
        "name": "deleteFile",
        "description": "Delete a file",
        "category": OperationCategory.FILE_SYSTEM,
        "eligible_roles": [Role.ADMIN],
        "requires_params": True,
    },
    {
        "name": "getSystemInfo",
        "description": "Get system information (OS, CPU, memory)",
        "category": OperationCategory.SYSTEM_INFO,
        "eligible_roles": ALL_ROLES,
        "requires_params": False,
    },
    {
        "name": "listProcesses",
        "description": "List running processes",
        "category": OperationCategory.PROCESS,
        "eligible_roles": [Role.ADMIN, Role.POWER_USER],
        "requires_params": False,
    },
    {
        "name": "runSafeCommand",
        "description": "Execute whitelisted safe commands",
        "category": OperationCategory.PROCESS,
        "eligible_roles": [Role.ADMIN],
        "requires_params": True,
    },
]

VIEWER_HOURLY_LIMIT = 10

SEED_ADMIN = {"email": "admin@syscall.local", "password": "admin123", "name": "Admin User"}
SEED_USERS = [
    {
        "email": "power@syscall.local",
        "password": "power123",
        "name": "Power User",
        "role": Role.POWER_USER,
    },
    {
        "email": "viewer@syscall.local",
        "password": "viewer123",
        "name": "Viewer User",
        "role": Role.VIEWER,
    },
]


def create_seed_operations() -> dict[str, Operation]:
    """Create or refresh the seven operations and their eligible roles."""
    operations = {}
    for seed in SEED_OPERATIONS:
        operation, _ = Operation.objects.update_or_create(
            name=seed["name"],
            defaults={
                "description": seed["description"],
                "category": seed["category"],
                "requires_params": seed["requires_params"],
                "enabled": True,
            },
        )
        operation.role_grants.exclude(role__in=seed["eligible_roles"]).delete()
        for role in seed["eligible_roles"]:
            OperationRole.objects.get_or_create(operation=operation, role=role)
        operations[operation.name] = operation
    return operations


def create_seed_policies(operations: dict[str, Operation]) -> list[Policy]:
    """One allowing policy per eligible (role, operation); viewers are capped hourly."""
    policies = []
    for seed in SEED_OPERATIONS:
        operation = operations[seed["name"]]
        for role in seed["eligible_roles"]:
            policy, _ = Policy.objects.update_or_create(
                role=role,
                operation=operation,
                defaults={
                    "allowed": True,
                    "max_executions": VIEWER_HOURLY_LIMIT if role == Role.VIEWER else None,
                },
            )
            policies.append(policy)
    return policies


def create_seed_users():
    """Create the demo admin and non-admin accounts if they do not exist."""
    User = get_user_model()
    users = {}

    admin, _ = User.objects.get_or_create(
        email=SEED_ADMIN["email"],
        defaults={
            "name": SEED_ADMIN["name"],
            "role": Role.ADMIN,
            "password_hash": UserManager.hash_password(SEED_ADMIN["password"]),
        },
    )
    users[Role.ADMIN] = admin

    for seed in SEED_USERS:
        user, _ = User.objects.get_or_create(
            email=seed["email"],
            defaults={
                "name": seed["name"],
                "role": seed["role"],
                "password_hash": UserManager.hash_password(seed["password"]),
            },
        )
        users[seed["role"]] = user
    return users


@transaction.atomic
def reset_to_seed_state() -> dict[str, int]:
    """Clear audit history and non-admin users, then restore seed data.

    Operations and policies are rebuilt from the seed definitions; admin
    accounts are left untouched. Returns how many rows were removed.
    """
    User = get_user_model()

    logs_deleted, _ = AuditEntry.objects.all().delete()
    attempts_deleted, _ = LoginAttempt.objects.all().delete()
    users_deleted, _ = User.objects.exclude(role=Role.ADMIN).delete()
    Policy.objects.all().delete()

    operations = create_seed_operations()
    create_seed_policies(operations)
    create_seed_users()

    return {
        "audit_entries": logs_deleted,
        "login_attempts": attempts_deleted,
        "users": users_deleted,
    }


class Command(BaseCommand):
    """Management command to seed operations, policies, and demo users."""

    help = (
        "Seed the operation registry, default policies, and demo users. "
        "Use --reset to clear audit history and non-admin users first."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Delete audit entries, login attempts and non-admin users before seeding.",
        )

    def handle(self, *args, **options):
        """Entrypoint for the management command."""
        if options.get("reset"):
            self.stdout.write("Resetting to seed state...")
            deleted = reset_to_seed_state()
            self.stdout.write(
                self.style.WARNING(
                    f"Removed {deleted['audit_entries']} audit entries, "
                    f"{deleted['login_attempts']} login attempts and {deleted['users']} users."
                )
            )
        else:
            self.stdout.write("Seeding operations...")
            with transaction.atomic():
                operations = create_seed_operations()
                create_seed_policies(operations)
                create_seed_users()

        self.stdout.write(self.style.SUCCESS("Seed completed."))
