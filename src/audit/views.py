"""Audit log and dashboard endpoints."""

import math

from rest_framework.permissions import IsAuthenticated

from access_control.models import Role
from core.response import BaseAPIView, api_response
from .serializers import AuditEntrySerializer, LogFilterSerializer
from .services import LogFilters, dashboard_stats, query_entries


class LogsView(BaseAPIView):
    """Paginated audit entries; non-admins only ever see their own."""

    permission_classes = [IsAuthenticated]

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        params = LogFilterSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        data = params.validated_data

        if request.user.role == Role.ADMIN:
            scope = data.get("user_id")
        else:
            scope = request.user

        filters = LogFilters(
            user=scope,
            status=data.get("status"),
            operation_name=data.get("operation_name"),
            role=data.get("role"),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            limit=data["limit"],
            offset=data["offset"],
        )
        entries, total = query_entries(filters)

        return api_response(
            {
                "logs": AuditEntrySerializer(entries, many=True).data,
                "total": total,
                "page": filters.offset // filters.limit + 1,
                "total_pages": math.ceil(total / filters.limit),
            }
        )


class DashboardView(BaseAPIView):
    """Aggregate outcome counts; admins see everything, others their own calls."""

    permission_classes = [IsAuthenticated]

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        scope = None if request.user.role == Role.ADMIN else request.user
        stats = dashboard_stats(scope)
        stats["recent_logs"] = AuditEntrySerializer(stats["recent_logs"], many=True).data
        return api_response(stats)


__all__ = ["LogsView", "DashboardView"]
