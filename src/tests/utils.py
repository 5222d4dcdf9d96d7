"""Shared helpers for tests (seeding, user creation, fake Redis, API clients)."""

from __future__ import annotations

import shutil
import tempfile
from typing import Dict
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import override_settings
from rest_framework.test import APIClient

from access_control.models import Operation, Role
from authentication.managers import UserManager
from authentication.services import TokenService
from scripts.management.commands.seed_syscalls import create_seed_operations, create_seed_policies

User = get_user_model()


class FakeRedis:
    """Minimal Redis stub supporting the commands used by TokenService."""

    def __init__(self):
        self._store: Dict[str, str] = {}

    def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        """Mimic Redis SETEX; TTL is ignored in tests, value stored in-memory."""
        self._store[key] = value

    def get(self, key: str):
        """Return stored value for key or None, matching Redis GET semantics."""
        return self._store.get(key)


def seed_syscall_basics() -> dict[str, Operation]:
    """Create the seeded operations and default policies for tests.

    Delegates to the same helpers used by the ``seed_syscalls`` management
    command to keep registry setup logic in a single place.
    """

    operations = create_seed_operations()
    create_seed_policies(operations)
    return operations


def create_user(email: str, password: str, role: str = Role.VIEWER, **extra):
    """Create a user with a bcrypt-hashed password for tests."""

    extra.setdefault("name", email.split("@")[0].title())
    return User.objects.create(
        email=email,
        password_hash=UserManager.hash_password(password),
        role=role,
        **extra,
    )


def auth_client(user) -> APIClient:
    """Return an APIClient authenticated with a fresh access token."""

    token, _ = TokenService.generate_tokens(user)
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


class RedisPatchMixin:
    """Replace the Redis client with an in-memory fake for the whole test class."""

    @classmethod
    def setUpClass(cls):
        """Patch Redis clients to use the in-memory fake."""
        super().setUpClass()
        cls.fake_redis = FakeRedis()
        cls.patchers = [
            mock.patch("core.redis_client.get_redis_client", return_value=cls.fake_redis),
            mock.patch("authentication.services.get_redis_client", return_value=cls.fake_redis),
        ]
        for patcher in cls.patchers:
            patcher.start()

    @classmethod
    def tearDownClass(cls):
        """Stop Redis patches after the suite finishes."""
        for patcher in cls.patchers:
            patcher.stop()
        super().tearDownClass()


class SandboxMixin:
    """Point SANDBOX_ROOT at a fresh temporary directory for every test."""

    def setUp(self):
        super().setUp()
        self.sandbox_dir = tempfile.mkdtemp(prefix="sandbox-")
        self.addCleanup(shutil.rmtree, self.sandbox_dir, ignore_errors=True)
        sandbox_override = override_settings(SANDBOX_ROOT=self.sandbox_dir)
        sandbox_override.enable()
        self.addCleanup(sandbox_override.disable)
