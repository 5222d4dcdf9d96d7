"""Audit writer, log queries, dashboard aggregation, and retention purge."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from django.db import transaction
from django.db.models import Count, QuerySet
from django.utils import timezone

from .models import AuditEntry, CallStatus

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
TRUNCATED = "... [truncated]"
SENSITIVE_FIELDS = ("password", "token", "secret", "key", "apiKey")
MAX_CONTENT_LENGTH = 500
MAX_OUTPUT_LENGTH = 5000

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def redact_parameters(params: Any) -> Any:
    """Mask sensitive fields and shorten long ``content`` before persisting.

    Only exact top-level field names are masked.
    """
    if not isinstance(params, dict):
        return params

    sanitized = dict(params)
    for field in SENSITIVE_FIELDS:
        if field in sanitized:
            sanitized[field] = REDACTED

    content = sanitized.get("content")
    if isinstance(content, str) and len(content) > MAX_CONTENT_LENGTH:
        sanitized["content"] = content[:MAX_CONTENT_LENGTH] + TRUNCATED

    return sanitized


def truncate_output(output: Optional[str]) -> str:
    if not output:
        return ""
    return output[:MAX_OUTPUT_LENGTH]


class AuditWriter:
    """Best-effort writer for audit entries.

    ``record`` never raises. It returns the stored entry, or ``None`` when the
    write failed; the failure is only reported through logging.
    """

    def record(
        self,
        *,
        user,
        role: str,
        operation_name: str,
        status: str,
        operation=None,
        parameters: Any = None,
        output: Optional[str] = None,
        error_message: Optional[str] = None,
        client_ip: str = "",
        user_agent: str = "",
        execution_time_ms: Optional[int] = None,
    ) -> Optional[AuditEntry]:
        try:
            # Savepoint keeps a failed insert from poisoning the caller's transaction.
            with transaction.atomic():
                return AuditEntry.objects.create(
                    user=user,
                    user_email=getattr(user, "email", "") or "",
                    role=role,
                    operation_name=operation_name,
                    operation=operation,
                    parameters=redact_parameters(parameters),
                    status=status,
                    output=truncate_output(output),
                    error_message=error_message or "",
                    client_ip=client_ip or "",
                    user_agent=user_agent or "",
                    execution_time_ms=execution_time_ms,
                )
        except Exception:
            logger.exception(
                "Failed to write audit entry for operation=%s status=%s", operation_name, status
            )
            return None


@dataclass
class LogFilters:
    user: Any = None
    status: Optional[str] = None
    operation_name: Optional[str] = None
    role: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0


def filter_entries(filters: LogFilters) -> QuerySet:
    qs = AuditEntry.objects.select_related("user")
    if filters.user is not None:
        qs = qs.filter(user=filters.user)
    if filters.status:
        qs = qs.filter(status=filters.status)
    if filters.operation_name:
        qs = qs.filter(operation_name=filters.operation_name)
    if filters.role:
        qs = qs.filter(role=filters.role)
    if filters.start_date:
        qs = qs.filter(created_at__gte=filters.start_date)
    if filters.end_date:
        qs = qs.filter(created_at__lte=filters.end_date)
    return qs


def query_entries(filters: LogFilters) -> tuple[list[AuditEntry], int]:
    """Return one page of matching entries (newest first) and the total count."""
    qs = filter_entries(filters)
    limit = max(1, min(filters.limit, MAX_PAGE_SIZE))
    offset = max(0, filters.offset)
    return list(qs[offset:offset + limit]), qs.count()


def dashboard_stats(user=None, top_n: int = 10) -> dict[str, Any]:
    """Aggregate counts for the dashboard; scoped to ``user`` when given."""
    qs = AuditEntry.objects.all()
    if user is not None:
        qs = qs.filter(user=user)

    by_status = dict(qs.values_list("status").annotate(count=Count("id")).order_by())
    by_role = qs.values("role").annotate(count=Count("id")).order_by("-count", "role")
    by_operation = (
        qs.values("operation_name").annotate(count=Count("id")).order_by("-count", "operation_name")[:top_n]
    )

    return {
        "total_calls": sum(by_status.values()),
        "successful_calls": by_status.get(CallStatus.SUCCESS, 0),
        "denied_calls": by_status.get(CallStatus.DENIED, 0),
        "error_calls": by_status.get(CallStatus.ERROR, 0),
        "calls_by_role": [{"role": row["role"], "count": row["count"]} for row in by_role],
        "calls_by_operation": [
            {"operation": row["operation_name"], "count": row["count"]} for row in by_operation
        ],
        "recent_logs": list(qs.select_related("user")[:top_n]),
    }


def purge_older_than(days: int) -> int:
    """Delete entries older than ``days`` days and return how many were removed."""
    threshold = timezone.now() - timedelta(days=days)
    deleted, _ = AuditEntry.objects.filter(created_at__lt=threshold).delete()
    logger.info("Purged %s audit entries older than %s days", deleted, days)
    return deleted


__all__ = [
    "AuditWriter",
    "LogFilters",
    "dashboard_stats",
    "filter_entries",
    "purge_older_than",
    "query_entries",
    "redact_parameters",
    "truncate_output",
]
