"""DRF authenticator that trusts the user attached by ``JWTAuthMiddleware``.

Token parsing happens once, in the middleware. DRF views still need an
authentication class so that ``request.user`` and the 401/403 distinction
work; this one only hands over what the middleware already resolved.
"""

from typing import Any, Optional, Tuple

from django.contrib.auth.models import AnonymousUser
from rest_framework.authentication import BaseAuthentication


class MiddlewareUserAuthentication(BaseAuthentication):
    """Expose ``request._request.user`` (set by middleware) to DRF."""

    def authenticate(self, request) -> Optional[Tuple[Any, None]]:
        django_request = getattr(request, "_request", None)
        if django_request is None:
            return None

        user = getattr(django_request, "user", None)
        if user is None or isinstance(user, AnonymousUser):
            return None

        if not getattr(user, "is_authenticated", False):
            return None

        return user, None

    def authenticate_header(self, request) -> str:
        # A non-empty challenge makes DRF answer NotAuthenticated with 401, not 403.
        return "Bearer"


__all__ = ["MiddlewareUserAuthentication"]
