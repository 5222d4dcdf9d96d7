"""Middleware that authenticates gateway requests from a bearer JWT."""

import logging
from typing import Any, Optional

from django.contrib.auth.models import AnonymousUser
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed

from authentication.models import User
from authentication.services import BlocklistUnavailable, TokenService

logger = logging.getLogger(__name__)


class JWTAuthMiddleware(MiddlewareMixin):
    """Decode the access JWT, check blocklist and token version, attach request.user.

    Requests without a bearer header pass through as anonymous; the views
    decide whether anonymous access is acceptable. A header that is present
    but invalid, revoked, or issued for an inactive user is rejected here.
    """

    def process_request(self, request):  # type: ignore[override]
        """Authenticate request using Bearer access token if present."""
        auth_header = request.META.get("HTTP_AUTHORIZATION", "")
        if not auth_header or not auth_header.startswith("Bearer "):
            request.user = AnonymousUser()
            return None

        token = auth_header.split(" ", 1)[1]

        try:
            payload = TokenService.decode_token(token, expected_type="access")
            jti = payload.get("jti")
            if not jti:
                return _unauthorized()

            if TokenService.is_token_blocked(jti):
                return _unauthorized()

            user = self._get_user(payload.get("sub"))
            if not user or not user.is_active:
                return _unauthorized()

            if not _version_matches(payload, user):
                return _unauthorized()

            request.user = user
            return None

        except AuthenticationFailed:
            return _unauthorized()
        except BlocklistUnavailable:
            logger.error("Token blocklist unavailable; rejecting request to %s", request.path)
            return _service_unavailable()

    @staticmethod
    def _get_user(user_id: Optional[str]) -> Optional[User]:
        if not user_id:
            return None
        try:
            return User.objects.get(id=user_id)
        except (User.DoesNotExist, ValueError):
            return None


def _version_matches(payload: dict[str, Any], user: User) -> bool:
    """Tokens minted before a logout-all carry a stale ``ver`` claim."""
    return payload.get("ver") == user.token_version


def _unauthorized() -> JsonResponse:
    return JsonResponse(
        {
            "data": None,
            "errors": [
                "Authentication credentials were not provided or are invalid, token revoked, or user is inactive."
            ],
        },
        status=status.HTTP_401_UNAUTHORIZED,
    )


def _service_unavailable() -> JsonResponse:
    return JsonResponse(
        {"data": None, "errors": ["Authentication service unavailable (blocklist)."]},
        status=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


__all__ = ["JWTAuthMiddleware"]
