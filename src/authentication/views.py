"""Authentication endpoints (register, login, refresh, logout, profile) and user admin."""

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.db.models import Count
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed, Throttled, ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from access_control.models import Role
from access_control.permissions import RolePermission
from core.request_info import get_client_ip, get_user_agent
from core.response import BaseAPIView, BaseViewSet, api_response
from .serializers import (
    AdminUserSerializer,
    LoginSerializer,
    ProfileUpdateSerializer,
    RegisterSerializer,
    UserDetailSerializer,
)
from .services import LoginThrottle, TokenService

User = get_user_model()
logger = logging.getLogger(__name__)


class RegisterView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Register a new VIEWER user and return their profile."""
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("Registered user %s", user.email)
        return api_response(UserDetailSerializer(user).data, status=status.HTTP_201_CREATED)


class LoginView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Authenticate and issue access + refresh tokens, subject to login throttling."""
        email = str(request.data.get("email", ""))
        ip_address = get_client_ip(request)
        user_agent = get_user_agent(request)

        decision = LoginThrottle.check(email, ip_address)
        if not decision.allowed:
            logger.warning("Login throttled for %s from %s", email, ip_address)
            raise Throttled(detail=decision.reason)

        serializer = LoginSerializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except AuthenticationFailed:
            LoginThrottle.record(email, False, ip_address, user_agent)
            raise

        user = serializer.validated_data["user"]
        LoginThrottle.record(email, True, ip_address, user_agent, user=user)
        user.last_login = timezone.now()
        user.save(update_fields=["last_login"])

        access, refresh = TokenService.generate_tokens(user)
        return api_response({"access": access, "refresh": refresh})


class RefreshView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Exchange a valid refresh token for new access/refresh tokens."""
        refresh_token = request.data.get("refresh")
        if not refresh_token:
            raise AuthenticationFailed("Refresh token required")

        payload = TokenService.decode_token(refresh_token, expected_type="refresh")
        user = _get_active_user(payload.get("sub"))
        if not user:
            raise AuthenticationFailed("User not found or inactive")

        # A logout-all since this token was minted bumps token_version.
        if payload.get("ver") != user.token_version:
            raise AuthenticationFailed("Invalid or revoked refresh token")

        access, new_refresh = TokenService.generate_tokens(user)
        return api_response({"access": access, "refresh": new_refresh})


class LogoutView(APIView):
    """Invalidate the current access token by blocklisting its jti."""

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Blocklist the bearer access token and return 204 No Content."""
        token = _get_bearer_token(request)
        if not token:
            raise AuthenticationFailed("Missing token")

        payload = TokenService.decode_token(token, expected_type="access")
        TokenService.block_token(payload["jti"], payload["exp"])
        # 204 responses must not include a body.
        return Response(status=status.HTTP_204_NO_CONTENT)


class LogoutAllView(APIView):
    """Invalidate all existing tokens for the current user across devices."""

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Increment token_version and blocklist the current access token."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")

        user = request.user
        user.token_version = user.token_version + 1
        user.save(update_fields=["token_version"])

        token = _get_bearer_token(request)
        if token:
            payload = TokenService.decode_token(token, expected_type="access")
            TokenService.block_token(payload["jti"], payload["exp"])

        return Response(status=status.HTTP_204_NO_CONTENT)


class MeView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        """Return the current user's profile."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        return api_response(UserDetailSerializer(request.user).data)

    # noinspection PyMethodMayBeStatic
    def patch(self, request):
        """Update profile fields for the current user."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        serializer = ProfileUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(UserDetailSerializer(request.user).data)

    # noinspection PyMethodMayBeStatic
    def delete(self, request):
        """Soft-delete the current user and blocklist the current access token."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        token = _get_bearer_token(request)
        if token:
            payload = TokenService.decode_token(token, expected_type="access")
            TokenService.block_token(payload["jti"], payload["exp"])
        request.user.is_active = False
        request.user.save(update_fields=["is_active"])
        return Response(status=status.HTTP_204_NO_CONTENT)


class UserAdminViewSet(BaseViewSet):
    """Administrator CRUD over user accounts."""

    serializer_class = AdminUserSerializer
    permission_classes = [RolePermission]
    allowed_roles = [Role.ADMIN]
    http_method_names = ["get", "post", "patch", "put", "delete", "head", "options"]

    def get_queryset(self):
        return User.objects.annotate(audit_entry_count=Count("audit_entries"))

    def perform_destroy(self, instance):
        if instance.pk == self.request.user.pk:
            raise ValidationError("Cannot delete your own account")
        logger.info("User %s deleted by %s", instance.email, self.request.user.email)
        instance.delete()


def _get_active_user(user_id) -> User | None:
    """Retrieve an active user by id, or None if missing/inactive."""
    if not user_id:
        return None
    try:
        user = User.objects.get(id=user_id)
    except (User.DoesNotExist, ValueError):
        return None
    if not user.is_active:
        return None
    return user


def _get_bearer_token(request) -> str | None:
    """Extract the Bearer token from Authorization header if present."""
    auth_header = request.META.get("HTTP_AUTHORIZATION", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return None
