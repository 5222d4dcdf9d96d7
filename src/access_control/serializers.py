"""Serializers for the operation registry, policies, and runtime configuration."""

from django.db import transaction
from rest_framework import serializers

from core.models import Configuration
from .models import Operation, OperationRole, Policy, Role


class PolicySerializer(serializers.ModelSerializer):
    """Serialize Policy rows for the admin interface.

    The operation is addressed by its name instead of its numeric id.
    """

    operation = serializers.SlugRelatedField(slug_field="name", queryset=Operation.objects.all())
    max_executions = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    class Meta:
        model = Policy
        fields = ["id", "role", "operation", "allowed", "max_executions", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]
        # Uniqueness is reported by validate() with a friendlier message.
        validators: list = []

    def validate(self, attrs):
        """Prevent duplicate (role, operation) pairs with a friendly error."""
        role = attrs.get("role") or getattr(self.instance, "role", None)
        operation = attrs.get("operation") or getattr(self.instance, "operation", None)
        if role and operation:
            qs = Policy.objects.filter(role=role, operation=operation)
            if self.instance:
                qs = qs.exclude(pk=self.instance.pk)
            if qs.exists():
                raise serializers.ValidationError("Policy for this role and operation already exists.")
        return attrs


class OperationPolicySerializer(serializers.ModelSerializer):
    class Meta:
        model = Policy
        fields = ["id", "role", "allowed", "max_executions"]
        read_only_fields = fields


class OperationSerializer(serializers.ModelSerializer):
    """Operation with its eligible roles, policies, and audit entry count."""

    eligible_roles = serializers.ListField(
        child=serializers.ChoiceField(choices=Role.choices), allow_empty=True, required=False
    )
    policies = OperationPolicySerializer(many=True, read_only=True)
    log_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Operation
        fields = [
            "id",
            "name",
            "description",
            "category",
            "enabled",
            "requires_params",
            "eligible_roles",
            "policies",
            "log_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_name(self, value):
        """Names are immutable and must map to an executor handler."""
        from syscalls.executor import HANDLERS

        if self.instance is not None and value != self.instance.name:
            raise serializers.ValidationError("Operation name cannot be changed.")
        if value not in HANDLERS:
            raise serializers.ValidationError(
                f"No executor handler for '{value}'. Known operations: {', '.join(sorted(HANDLERS))}"
            )
        return value

    @transaction.atomic
    def create(self, validated_data):
        roles = validated_data.pop("eligible_roles", [])
        operation = Operation.objects.create(**validated_data)
        self._set_roles(operation, roles)
        return operation

    @transaction.atomic
    def update(self, instance, validated_data):
        roles = validated_data.pop("eligible_roles", None)
        instance = super().update(instance, validated_data)
        if roles is not None:
            self._set_roles(instance, roles)
        return instance

    @staticmethod
    def _set_roles(operation: Operation, roles: list[str]) -> None:
        operation.role_grants.exclude(role__in=roles).delete()
        for role in set(roles):
            OperationRole.objects.get_or_create(operation=operation, role=role)


class ConfigurationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Configuration
        fields = ["id", "key", "value", "description", "updated_at"]
        read_only_fields = ["id", "updated_at"]


__all__ = ["ConfigurationSerializer", "OperationSerializer", "PolicySerializer"]
