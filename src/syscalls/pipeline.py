"""Request pipeline: authorize, validate, execute, audit, respond.

The order is fixed. Authorization happens before parameter validation so a
denied caller learns nothing about an operation's parameter shape, and the
audit entry is written only once the true outcome is known. Every call that
reaches ``run`` produces exactly one audit entry.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from django.db import DatabaseError
from rest_framework import serializers, status

from access_control.gate import PolicyGate
from access_control.models import Operation
from audit.models import CallStatus
from audit.services import AuditWriter

from .executor import HANDLERS, SyscallError
from .serializers import PARAMETER_SCHEMAS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    status_code: int
    body: dict[str, Any]


def _failure(status_code: int, errors: list[Any]) -> PipelineResult:
    return PipelineResult(status_code, {"success": False, "data": None, "errors": errors})


class SyscallPipeline:
    """Composes the gate, the executor handlers and the audit writer."""

    def __init__(
        self,
        gate: Optional[PolicyGate] = None,
        writer: Optional[AuditWriter] = None,
        handlers: Optional[Mapping[str, Callable[..., Any]]] = None,
        schemas: Optional[Mapping[str, type[serializers.Serializer]]] = None,
    ):
        self.gate = gate or PolicyGate()
        self.writer = writer or AuditWriter()
        self.handlers = HANDLERS if handlers is None else handlers
        self.schemas = PARAMETER_SCHEMAS if schemas is None else schemas

    def run(
        self,
        user,
        operation_name: str,
        parameters: Any = None,
        client_ip: str = "",
        user_agent: str = "",
    ) -> PipelineResult:
        if parameters is None:
            parameters = {}
        audit = {
            "user": user,
            "role": user.role,
            "operation_name": operation_name,
            "operation": self._find_operation(operation_name),
            "parameters": parameters,
            "client_ip": client_ip,
            "user_agent": user_agent,
        }

        decision = self.gate.authorize(user.role, operation_name)
        if not decision.allowed:
            logger.info(
                "Denied %s for %s (%s): %s", operation_name, user.email, user.role, decision.reason
            )
            self._record(audit, status=CallStatus.DENIED, error_message=decision.reason)
            code = (
                status.HTTP_404_NOT_FOUND
                if decision.reason == PolicyGate.OPERATION_NOT_FOUND
                else status.HTTP_403_FORBIDDEN
            )
            return _failure(code, [decision.reason])

        handler = self.handlers.get(operation_name)
        if handler is None:
            message = f"No handler registered for operation '{operation_name}'"
            logger.error(message)
            self._record(audit, status=CallStatus.ERROR, error_message=message)
            return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, [message])

        kwargs: dict[str, Any] = {}
        schema = self.schemas.get(operation_name)
        if schema is not None:
            params = schema(data=parameters)
            if not params.is_valid():
                errors = json.loads(json.dumps(params.errors))
                self._record(
                    audit,
                    status=CallStatus.ERROR,
                    error_message=f"Invalid parameters: {json.dumps(errors)}",
                )
                return _failure(status.HTTP_400_BAD_REQUEST, [errors])
            kwargs = dict(params.validated_data)

        started = time.perf_counter()
        try:
            result = handler(**kwargs)
        except SyscallError as exc:
            elapsed = int((time.perf_counter() - started) * 1000)
            logger.warning("Operation %s failed for %s: %s", operation_name, user.email, exc)
            self._record(
                audit, status=CallStatus.ERROR, error_message=str(exc), execution_time_ms=elapsed
            )
            return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, [str(exc)])
        except Exception:
            elapsed = int((time.perf_counter() - started) * 1000)
            logger.exception("Operation %s raised unexpectedly for %s", operation_name, user.email)
            message = f"Operation '{operation_name}' failed unexpectedly"
            self._record(
                audit, status=CallStatus.ERROR, error_message=message, execution_time_ms=elapsed
            )
            return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, [message])
        elapsed = int((time.perf_counter() - started) * 1000)

        self._record(
            audit,
            status=CallStatus.SUCCESS,
            output=json.dumps(result, default=str),
            execution_time_ms=elapsed,
        )
        return PipelineResult(
            status.HTTP_200_OK,
            {"success": True, "data": result, "executionTimeMs": elapsed, "errors": []},
        )

    def _find_operation(self, name: str) -> Optional[Operation]:
        try:
            return Operation.objects.filter(name=name).first()
        except DatabaseError:
            # The gate reports the same failure and denies.
            return None

    def _record(self, audit: dict[str, Any], **outcome) -> None:
        entry = self.writer.record(**audit, **outcome)
        if entry is None:
            logger.warning(
                "Audit entry missing for %s by %s (status=%s)",
                audit["operation_name"],
                audit["user"].email,
                outcome["status"],
            )


__all__ = ["PipelineResult", "SyscallPipeline"]
