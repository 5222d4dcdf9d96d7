"""Custom exception handling to enforce the API error envelope."""

import logging
from typing import Any

from django.conf import settings
from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed, NotAuthenticated
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from authentication.services import BlocklistUnavailable

logger = logging.getLogger(__name__)

GENERIC_UNAUTHORIZED = (
    "Authentication credentials were not provided or are invalid, "
    "token revoked, or user is inactive."
)
GENERIC_FORBIDDEN = "You do not have permission to perform this action on this resource."


def _normalize_errors(payload: Any) -> list[Any]:
    """Convert DRF's response.data into a list for the envelope."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and "detail" in payload:
        # Common DRF pattern: {"detail": "..."}
        return [payload["detail"]]
    return [payload]


def custom_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """Wrap DRF errors in `{ "data": null, "errors": [...] }` shape.

    - Uses DRF's default handler to produce the base response.
    - Collapses authentication failures into one generic 401 message so the
      caller cannot tell which credential was wrong.
    - Optionally exposes more detailed auth errors when DEBUG_AUTH_ERRORS is enabled.
    """

    # Blocklist connectivity errors are security-critical and fail closed.
    if isinstance(exc, BlocklistUnavailable):
        return Response(
            {"data": None, "errors": ["Authentication service unavailable (blocklist)."]},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    # Database errors are a temporary outage; keep the JSON envelope instead
    # of Django's HTML 500 page.
    if isinstance(exc, DatabaseError):
        logger.exception("Database error while handling %s", context.get("view").__class__.__name__)
        return Response(
            {"data": None, "errors": ["Service temporarily unavailable."]},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    response = drf_exception_handler(exc, context)

    if response is None:
        return response

    if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
        response.status_code = status.HTTP_401_UNAUTHORIZED

    if response.status_code >= 400:
        base_errors = response.data

        if response.status_code == status.HTTP_401_UNAUTHORIZED:
            if getattr(settings, "DEBUG_AUTH_ERRORS", False):
                # Surface the underlying message (e.g. "Token has expired").
                errors = _normalize_errors(base_errors)
            else:
                errors = [GENERIC_UNAUTHORIZED]
        elif response.status_code == status.HTTP_403_FORBIDDEN:
            errors = [GENERIC_FORBIDDEN]
        else:
            errors = _normalize_errors(base_errors)

        response.data = {"data": None, "errors": errors}

    return response
