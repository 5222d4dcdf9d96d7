"""Token service for JWT creation, decoding, and blocklist checks; login throttling."""

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple

import jwt
from django.conf import settings
from django.db import transaction
from django.utils import timezone as dj_timezone
from rest_framework.exceptions import AuthenticationFailed

from core.redis_client import get_redis_client
from .models import LoginAttempt

logger = logging.getLogger(__name__)


class BlocklistUnavailable(Exception):
    """Raised when Redis blocklist cannot be checked (fail-closed)."""


class TokenService:
    """Handle JWT issuance, decoding, and blocklist operations."""

    ACCESS_TTL = timedelta(minutes=15)
    REFRESH_TTL = timedelta(hours=24)
    ALGORITHM = "HS256"
    BLOCKLIST_PREFIX = "blocklist:token:"

    @classmethod
    def generate_tokens(cls, user) -> Tuple[str, str]:
        """Generate signed access and refresh tokens for the given user."""

        now = datetime.now(timezone.utc)
        access_payload = cls._build_payload(user, "access", now, cls.ACCESS_TTL)
        refresh_payload = cls._build_payload(user, "refresh", now, cls.REFRESH_TTL)

        access_token = jwt.encode(access_payload, settings.SECRET_KEY, algorithm=cls.ALGORITHM)
        refresh_token = jwt.encode(refresh_payload, settings.SECRET_KEY, algorithm=cls.ALGORITHM)
        return access_token, refresh_token

    @classmethod
    def _build_payload(cls, user, token_type: str, issued_at: datetime, ttl: timedelta) -> dict[str, Any]:
        exp = issued_at + ttl
        return {
            "sub": str(user.id),
            "jti": str(uuid.uuid4()),
            "exp": int(exp.timestamp()),
            "iat": int(issued_at.timestamp()),
            "role": user.role,
            "type": token_type,
            "ver": user.token_version,
        }

    @classmethod
    def decode_token(cls, token: str, expected_type: str | None = None) -> dict[str, Any]:
        """Decode and validate a JWT; optionally enforce token type."""

        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[cls.ALGORITHM])
        except jwt.ExpiredSignatureError as exc:  # pragma: no cover - simple mapping
            raise AuthenticationFailed("Token has expired") from exc
        except jwt.InvalidTokenError as exc:  # pragma: no cover - simple mapping
            raise AuthenticationFailed("Invalid token") from exc

        if expected_type and payload.get("type") != expected_type:
            raise AuthenticationFailed("Invalid token type")

        return payload

    @classmethod
    def block_token(cls, jti: str, exp: int) -> None:
        """Add token jti to blocklist until its expiration timestamp."""

        client = get_redis_client()
        ttl_seconds = max(1, exp - int(time.time()))
        try:
            client.setex(f"{cls.BLOCKLIST_PREFIX}{jti}", ttl_seconds, "1")
        except Exception as exc:  # pragma: no cover - network failure
            raise BlocklistUnavailable("Redis unavailable while blocklisting") from exc

    @classmethod
    def is_token_blocked(cls, jti: str) -> bool:
        """Check if a token jti is present in the blocklist."""

        client = get_redis_client()
        try:
            return client.get(f"{cls.BLOCKLIST_PREFIX}{jti}") is not None
        except Exception as exc:  # pragma: no cover - network failure
            raise BlocklistUnavailable("Redis unavailable while checking blocklist") from exc


@dataclass(frozen=True)
class ThrottleDecision:
    allowed: bool
    reason: Optional[str] = None


class LoginThrottle:
    """Rolling-window limit on failed logins, per email and per source IP.

    An email is locked after ``MAX_LOGIN_ATTEMPTS`` failures inside the
    window; an IP after twice that many, since one address may front
    several users.
    """

    @staticmethod
    def _window() -> Tuple[int, int]:
        return settings.MAX_LOGIN_ATTEMPTS, settings.LOGIN_TIMEOUT_MINUTES

    @classmethod
    def check(cls, email: str, ip_address: str) -> ThrottleDecision:
        max_attempts, minutes = cls._window()
        since = dj_timezone.now() - timedelta(minutes=minutes)
        failures = LoginAttempt.objects.filter(successful=False, timestamp__gte=since)

        if failures.filter(email__iexact=email).count() >= max_attempts:
            return ThrottleDecision(
                False,
                f"Too many failed login attempts. Please try again in {minutes} minutes.",
            )

        if failures.filter(ip_address=ip_address).count() >= max_attempts * 2:
            return ThrottleDecision(
                False,
                f"Too many failed login attempts from this IP. Please try again in {minutes} minutes.",
            )

        return ThrottleDecision(True)

    @staticmethod
    def record(email: str, successful: bool, ip_address: str, user_agent: str = "", user=None) -> None:
        """Persist a login attempt; a failed write is logged and otherwise ignored."""
        try:
            with transaction.atomic():
                LoginAttempt.objects.create(
                    email=email,
                    successful=successful,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    user=user,
                )
        except Exception:
            logger.exception("Failed to record login attempt for %s", email)


__all__ = ["TokenService", "BlocklistUnavailable", "LoginThrottle", "ThrottleDecision"]
