"""Parameter schemas for operations and the operation listing shape."""

from rest_framework import serializers

from access_control.models import Operation


class PathParamsSerializer(serializers.Serializer):
    path = serializers.CharField(allow_blank=False, trim_whitespace=False)


class WriteFileParamsSerializer(PathParamsSerializer):
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)


class RunCommandParamsSerializer(serializers.Serializer):
    command = serializers.CharField(allow_blank=False)


# Operations absent from this mapping take no parameters.
PARAMETER_SCHEMAS: dict[str, type[serializers.Serializer]] = {
    "listDirectory": PathParamsSerializer,
    "readFile": PathParamsSerializer,
    "writeFile": WriteFileParamsSerializer,
    "deleteFile": PathParamsSerializer,
    "runSafeCommand": RunCommandParamsSerializer,
}


class AvailableOperationSerializer(serializers.ModelSerializer):
    """Operation as shown to a caller allowed to attempt it."""

    class Meta:
        model = Operation
        fields = ["id", "name", "description", "category", "requires_params"]
        read_only_fields = fields


__all__ = [
    "AvailableOperationSerializer",
    "PARAMETER_SCHEMAS",
    "PathParamsSerializer",
    "RunCommandParamsSerializer",
    "WriteFileParamsSerializer",
]
