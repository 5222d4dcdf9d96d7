"""Authorization gate deciding whether a role may invoke a named operation.

The decision combines four sources in a fixed order: the operation registry
(exists, enabled), the eligible-roles set, the explicit policy row, and the
policy's hourly execution cap counted from the audit log. The gate never
writes; callers record the outcome.

A role that is eligible but has no policy row is allowed without a rate
limit. Policy rows are opt-in restrictions layered on top of eligibility.

Rate limiting is best effort: two concurrent checks for the same
(role, operation) may both observe a count below the cap.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.db import DatabaseError
from django.utils import timezone

from audit.models import AuditEntry, CallStatus

from .models import Operation, Policy

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW = timedelta(minutes=60)


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check."""

    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(False, reason)


class PolicyGate:
    """Read-only authorization against the registry, policies, and audit history."""

    OPERATION_NOT_FOUND = "operation not found"
    OPERATION_DISABLED = "operation disabled"
    INSUFFICIENT_PERMISSIONS = "insufficient permissions"
    POLICY_DENIES = "policy denies access"
    CHECK_FAILED = "policy check failed"

    def __init__(self, window: timedelta = RATE_LIMIT_WINDOW):
        self.window = window

    def authorize(self, role: str, operation_name: str) -> Decision:
        """Return an allow/deny decision; storage errors fail closed."""
        try:
            return self._authorize(role, operation_name)
        except DatabaseError:
            logger.exception("Policy check failed for role=%s operation=%s", role, operation_name)
            return Decision.deny(self.CHECK_FAILED)

    def _authorize(self, role: str, operation_name: str) -> Decision:
        operation = Operation.objects.filter(name=operation_name).first()
        if operation is None:
            return Decision.deny(self.OPERATION_NOT_FOUND)

        if not operation.enabled:
            return Decision.deny(self.OPERATION_DISABLED)

        if not operation.is_eligible(role):
            return Decision.deny(self.INSUFFICIENT_PERMISSIONS)

        policy = Policy.objects.filter(role=role, operation=operation).first()
        if policy is None:
            return Decision.allow()

        if not policy.allowed:
            return Decision.deny(self.POLICY_DENIES)

        if policy.max_executions:
            recent = self.recent_successes(role, operation_name)
            if recent >= policy.max_executions:
                return Decision.deny(f"rate limit exceeded: {policy.max_executions} per hour")

        return Decision.allow()

    def recent_successes(self, role: str, operation_name: str) -> int:
        """Count successful executions for (role, operation) inside the window."""
        since = timezone.now() - self.window
        return AuditEntry.objects.filter(
            role=role,
            operation_name=operation_name,
            status=CallStatus.SUCCESS,
            created_at__gte=since,
        ).count()


__all__ = ["Decision", "PolicyGate", "RATE_LIMIT_WINDOW"]
