"""Administrator endpoints for operations, policies, configuration, and reset."""

import logging

from django.db.models import Count, Prefetch
from rest_framework import status

from core.models import Configuration
from core.response import BaseAPIView, BaseViewSet, api_response
from .models import Operation, Policy, Role
from .permissions import RolePermission
from .serializers import ConfigurationSerializer, OperationSerializer, PolicySerializer

logger = logging.getLogger(__name__)


class AdminOnlyMixin:
    permission_classes = [RolePermission]
    allowed_roles = [Role.ADMIN]


class OperationViewSet(AdminOnlyMixin, BaseViewSet):
    """CRUD over the operation registry, including eligible roles and toggling."""

    serializer_class = OperationSerializer

    def get_queryset(self):
        return Operation.objects.annotate(log_count=Count("audit_entries", distinct=True)).prefetch_related(
            "role_grants", Prefetch("policies", queryset=Policy.objects.order_by("role"))
        )

    def perform_update(self, serializer):
        operation = serializer.save()
        logger.info(
            "Operation %s updated by %s (enabled=%s)",
            operation.name,
            self.request.user.email,
            operation.enabled,
        )


class PolicyViewSet(AdminOnlyMixin, BaseViewSet):
    """CRUD endpoints for managing Policy rows."""

    serializer_class = PolicySerializer
    queryset = Policy.objects.select_related("operation").order_by("operation__name", "role")


class ConfigurationViewSet(AdminOnlyMixin, BaseViewSet):
    serializer_class = ConfigurationSerializer
    queryset = Configuration.objects.all()


class ResetView(AdminOnlyMixin, BaseAPIView):
    """Restore the registry, policies and demo users to their seeded state."""

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        from scripts.management.commands.seed_syscalls import reset_to_seed_state

        deleted = reset_to_seed_state()
        logger.warning("System reset to seed state by %s: %s", request.user.email, deleted)
        return api_response({"deleted": deleted}, status=status.HTTP_200_OK)


__all__ = ["ConfigurationViewSet", "OperationViewSet", "PolicyViewSet", "ResetView"]
