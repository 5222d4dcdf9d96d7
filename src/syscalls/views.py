"""The ``/syscall/`` endpoint: list callable operations and invoke one."""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from access_control.models import Operation
from core.request_info import get_client_ip, get_user_agent
from core.response import api_response
from .pipeline import SyscallPipeline
from .serializers import AvailableOperationSerializer


class SyscallView(APIView):
    """Invoke a named operation on behalf of the authenticated user."""

    permission_classes = [IsAuthenticated]
    pipeline_class = SyscallPipeline

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        """Return the enabled operations the caller's role may attempt."""
        operations = Operation.objects.filter(
            enabled=True, role_grants__role=request.user.role
        ).distinct()
        return api_response(AvailableOperationSerializer(operations, many=True).data)

    def post(self, request):
        """Run ``operationName`` with ``parameters`` through the pipeline."""
        payload = request.data if isinstance(request.data, dict) else {}
        operation_name = payload.get("operationName")
        if not isinstance(operation_name, str) or not operation_name.strip():
            return Response(
                {"success": False, "data": None, "errors": ["operationName is required"]},
                status=status.HTTP_400_BAD_REQUEST,
            )

        result = self.pipeline_class().run(
            request.user,
            operation_name.strip(),
            payload.get("parameters"),
            client_ip=get_client_ip(request),
            user_agent=get_user_agent(request),
        )
        return Response(result.body, status=result.status_code)


__all__ = ["SyscallView"]
