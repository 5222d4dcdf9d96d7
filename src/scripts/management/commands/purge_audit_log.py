"""Delete audit entries older than the retention period."""

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from audit.services import purge_older_than
from core.models import Configuration

RETENTION_KEY = "audit.retention_days"


class Command(BaseCommand):
    help = (
        "Delete audit entries older than N days. Defaults to the "
        f"'{RETENTION_KEY}' configuration entry, then AUDIT_RETENTION_DAYS."
    )

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=None, help="Retention period in days.")

    def handle(self, *args, **options):
        days = options.get("days")
        if days is None:
            days = Configuration.get_int(RETENTION_KEY, settings.AUDIT_RETENTION_DAYS)
        if days < 1:
            raise CommandError("--days must be a positive integer")

        deleted = purge_older_than(days)
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} audit entries older than {days} days."))
