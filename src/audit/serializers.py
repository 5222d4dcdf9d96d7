"""Serializers for audit log listing and filtering."""

from rest_framework import serializers

from access_control.models import Role

from .models import AuditEntry, CallStatus
from .services import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


class AuditUserSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    email = serializers.EmailField()
    name = serializers.CharField()


class AuditEntrySerializer(serializers.ModelSerializer):
    """Read-only view of an audit entry with a compact actor summary."""

    user = AuditUserSerializer(read_only=True, allow_null=True)

    class Meta:
        model = AuditEntry
        fields = [
            "id",
            "user",
            "user_email",
            "role",
            "operation_name",
            "parameters",
            "status",
            "output",
            "error_message",
            "client_ip",
            "user_agent",
            "execution_time_ms",
            "created_at",
        ]
        read_only_fields = fields


class LogFilterSerializer(serializers.Serializer):
    """Validate ``GET /logs/`` query parameters."""

    status = serializers.ChoiceField(choices=CallStatus.choices, required=False)
    operationName = serializers.CharField(required=False, source="operation_name")
    role = serializers.ChoiceField(choices=Role.choices, required=False)
    startDate = serializers.DateTimeField(required=False, source="start_date")
    endDate = serializers.DateTimeField(required=False, source="end_date")
    userId = serializers.UUIDField(required=False, source="user_id")
    limit = serializers.IntegerField(required=False, min_value=1, max_value=MAX_PAGE_SIZE, default=DEFAULT_PAGE_SIZE)
    offset = serializers.IntegerField(required=False, min_value=0, default=0)

    def validate(self, attrs):
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and start > end:
            raise serializers.ValidationError("startDate must not be after endDate")
        return attrs


__all__ = ["AuditEntrySerializer", "LogFilterSerializer"]
