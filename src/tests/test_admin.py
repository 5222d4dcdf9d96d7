"""Role-gated administration: users, operations, policies, configuration, reset."""

from __future__ import annotations

from io import StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from access_control.models import Operation, OperationRole, Policy, Role
from audit.models import AuditEntry, CallStatus
from authentication.managers import UserManager
from authentication.models import LoginAttempt, User
from core.models import Configuration
from tests.utils import RedisPatchMixin, auth_client, create_user, seed_syscall_basics


@override_settings(BCRYPT_ROUNDS=4)
class AdminSurfaceTests(RedisPatchMixin, TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.operations = seed_syscall_basics()
        cls.admin = create_user("root@test.com", "root1234", Role.ADMIN)
        cls.power = create_user("power@test.com", "power123", Role.POWER_USER)
        cls.viewer = create_user("viewer@test.com", "viewer123", Role.VIEWER)

    def setUp(self):
        self.client_admin = auth_client(self.admin)

    def test_non_admins_are_forbidden(self):
        for user in (self.power, self.viewer):
            client = auth_client(user)
            for url in ("/manage/users/", "/manage/operations/", "/manage/policies/", "/manage/configuration/"):
                with self.subTest(role=user.role, url=url):
                    response = client.get(url)
                    self.assertEqual(response.status_code, 403)
                    self.assertIsNone(response.json()["data"])
            self.assertEqual(client.post("/manage/reset/").status_code, 403)

    def test_anonymous_is_unauthorized(self):
        self.assertEqual(APIClient().get("/manage/users/").status_code, 401)

    # Users

    def test_list_users_with_audit_counts(self):
        AuditEntry.objects.create(
            user=self.viewer,
            user_email=self.viewer.email,
            role=self.viewer.role,
            operation_name="readFile",
            status=CallStatus.SUCCESS,
        )
        response = self.client_admin.get("/manage/users/")
        users = {u["email"]: u for u in response.json()["data"]}

        self.assertEqual(response.status_code, 200)
        self.assertEqual(users[self.viewer.email]["audit_entry_count"], 1)
        self.assertEqual(users[self.power.email]["audit_entry_count"], 0)
        self.assertNotIn("password", users[self.viewer.email])
        self.assertNotIn("password_hash", users[self.viewer.email])

    def test_create_user_hashes_password(self):
        response = self.client_admin.post(
            "/manage/users/",
            {"email": "fresh@test.com", "name": "Fresh", "role": Role.POWER_USER, "password": "fresh123"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)

        user = User.objects.get(email="fresh@test.com")
        self.assertEqual(user.role, Role.POWER_USER)
        self.assertNotEqual(user.password_hash, "fresh123")
        self.assertTrue(UserManager.verify_password(user, "fresh123"))

    def test_create_user_requires_password(self):
        response = self.client_admin.post(
            "/manage/users/", {"email": "nopass@test.com", "name": "No Pass"}, format="json"
        )
        self.assertEqual(response.status_code, 400)

    def test_create_user_duplicate_email(self):
        response = self.client_admin.post(
            "/manage/users/",
            {"email": self.viewer.email, "name": "Dup", "password": "dup12345"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)

    def test_update_user_role_and_password(self):
        response = self.client_admin.patch(
            f"/manage/users/{self.viewer.id}/",
            {"role": Role.POWER_USER, "password": "changed123"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)

        self.viewer.refresh_from_db()
        self.assertEqual(self.viewer.role, Role.POWER_USER)
        self.assertTrue(UserManager.verify_password(self.viewer, "changed123"))

    def test_cannot_delete_self(self):
        response = self.client_admin.delete(f"/manage/users/{self.admin.id}/")

        self.assertEqual(response.status_code, 400)
        self.assertTrue(User.objects.filter(pk=self.admin.pk).exists())

    def test_delete_user_keeps_audit_history(self):
        AuditEntry.objects.create(
            user=self.power,
            user_email=self.power.email,
            role=self.power.role,
            operation_name="writeFile",
            status=CallStatus.SUCCESS,
        )
        response = self.client_admin.delete(f"/manage/users/{self.power.id}/")

        self.assertEqual(response.status_code, 204)
        entry = AuditEntry.objects.get()
        self.assertIsNone(entry.user)
        self.assertEqual(entry.user_email, "power@test.com")

    # Operations

    def test_list_operations_with_roles_and_policies(self):
        response = self.client_admin.get("/manage/operations/")
        operations = {op["name"]: op for op in response.json()["data"]}

        self.assertEqual(len(operations), 7)
        self.assertEqual(operations["writeFile"]["eligible_roles"], [Role.ADMIN, Role.POWER_USER])
        viewer_policy = next(p for p in operations["readFile"]["policies"] if p["role"] == Role.VIEWER)
        self.assertEqual(viewer_policy["max_executions"], 10)
        self.assertEqual(operations["readFile"]["log_count"], 0)

    def test_toggle_operation(self):
        operation = self.operations["readFile"]
        response = self.client_admin.patch(
            f"/manage/operations/{operation.id}/", {"enabled": False}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        operation.refresh_from_db()
        self.assertFalse(operation.enabled)

    def test_edit_eligible_roles(self):
        operation = self.operations["listProcesses"]
        response = self.client_admin.patch(
            f"/manage/operations/{operation.id}/",
            {"eligible_roles": [Role.ADMIN, Role.POWER_USER, Role.VIEWER]},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["eligible_roles"], [Role.ADMIN, Role.POWER_USER, Role.VIEWER])
        self.assertTrue(operation.is_eligible(Role.VIEWER))

    def test_operation_name_is_immutable(self):
        operation = self.operations["readFile"]
        response = self.client_admin.patch(
            f"/manage/operations/{operation.id}/", {"name": "readEverything"}, format="json"
        )

        self.assertEqual(response.status_code, 400)
        operation.refresh_from_db()
        self.assertEqual(operation.name, "readFile")

    def test_create_operation_requires_handler(self):
        response = self.client_admin.post(
            "/manage/operations/",
            {"name": "formatDisk", "category": "PROCESS", "eligible_roles": [Role.ADMIN]},
            format="json",
        )
        self.assertEqual(response.status_code, 400)

    def test_recreate_deleted_operation(self):
        operation = self.operations["runSafeCommand"]
        self.assertEqual(self.client_admin.delete(f"/manage/operations/{operation.id}/").status_code, 204)
        self.assertFalse(Operation.objects.filter(name="runSafeCommand").exists())

        response = self.client_admin.post(
            "/manage/operations/",
            {
                "name": "runSafeCommand",
                "description": "Whitelisted commands",
                "category": "PROCESS",
                "requires_params": True,
                "eligible_roles": [Role.ADMIN],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        created = Operation.objects.get(name="runSafeCommand")
        self.assertEqual(created.eligible_roles, [Role.ADMIN])

    # Policies

    def test_create_duplicate_policy_rejected(self):
        response = self.client_admin.post(
            "/manage/policies/",
            {"role": Role.VIEWER, "operation": "readFile", "allowed": True},
            format="json",
        )
        body = response.json()

        self.assertEqual(response.status_code, 400)
        self.assertIn("already exists", str(body["errors"]))

    def test_create_and_update_policy(self):
        Policy.objects.filter(role=Role.POWER_USER, operation__name="listProcesses").delete()
        response = self.client_admin.post(
            "/manage/policies/",
            {"role": Role.POWER_USER, "operation": "listProcesses", "allowed": True, "max_executions": 3},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        policy_id = response.json()["data"]["id"]

        response = self.client_admin.patch(
            f"/manage/policies/{policy_id}/", {"max_executions": None}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(Policy.objects.get(pk=policy_id).max_executions)

    def test_policy_max_executions_must_be_positive(self):
        policy = Policy.objects.get(role=Role.VIEWER, operation__name="readFile")
        response = self.client_admin.patch(
            f"/manage/policies/{policy.id}/", {"max_executions": 0}, format="json"
        )
        self.assertEqual(response.status_code, 400)

    # Configuration

    def test_configuration_crud(self):
        response = self.client_admin.post(
            "/manage/configuration/", {"key": "audit.retention_days", "value": "30"}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Configuration.get_int("audit.retention_days", 90), 30)

    # Reset

    def test_reset_restores_seed_state(self):
        AuditEntry.objects.create(
            user=self.viewer,
            user_email=self.viewer.email,
            role=self.viewer.role,
            operation_name="readFile",
            status=CallStatus.SUCCESS,
        )
        LoginAttempt.objects.create(email="x@test.com", successful=False, ip_address="127.0.0.1")
        Policy.objects.filter(role=Role.VIEWER).update(allowed=False)
        OperationRole.objects.filter(operation__name="deleteFile").delete()
        Operation.objects.filter(name="readFile").update(enabled=False)

        response = self.client_admin.post("/manage/reset/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["deleted"]["audit_entries"], 1)

        self.assertEqual(AuditEntry.objects.count(), 0)
        self.assertEqual(LoginAttempt.objects.count(), 0)
        self.assertFalse(User.objects.filter(pk__in=[self.power.pk, self.viewer.pk]).exists())
        self.assertTrue(User.objects.filter(pk=self.admin.pk).exists())
        self.assertTrue(User.objects.filter(email="power@syscall.local", role=Role.POWER_USER).exists())
        self.assertTrue(User.objects.filter(email="viewer@syscall.local", role=Role.VIEWER).exists())
        self.assertFalse(Policy.objects.filter(allowed=False).exists())
        self.assertTrue(Operation.objects.get(name="readFile").enabled)
        self.assertEqual(Operation.objects.get(name="deleteFile").eligible_roles, [Role.ADMIN])


@override_settings(BCRYPT_ROUNDS=4)
class SeedCommandTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command("seed_syscalls", stdout=StringIO())
        call_command("seed_syscalls", stdout=StringIO())

        self.assertEqual(Operation.objects.count(), 7)
        self.assertEqual(OperationRole.objects.count(), 15)
        self.assertEqual(Policy.objects.count(), 15)
        self.assertEqual(Policy.objects.filter(role=Role.VIEWER, max_executions=10).count(), 3)
        self.assertEqual(User.objects.count(), 3)
        self.assertTrue(User.objects.filter(email="admin@syscall.local", role=Role.ADMIN).exists())

    def test_seed_reset_keeps_admins(self):
        call_command("seed_syscalls", stdout=StringIO())
        create_user("extra@test.com", "extra123", Role.VIEWER)

        call_command("seed_syscalls", reset=True, stdout=StringIO())

        self.assertFalse(User.objects.filter(email="extra@test.com").exists())
        self.assertTrue(User.objects.filter(email="admin@syscall.local").exists())
        self.assertEqual(User.objects.count(), 3)
