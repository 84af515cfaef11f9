# clinic_core/iam/api/permissions.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from clinic_core.iam.api.serializers import PermissionFilterSerializer, PermissionSerializer
from clinic_core.iam.models import Permission
from clinic_core.iam.permissions import require_permissions
from clinic_core.iam.selectors import permission_qs, permissions_by_module, system_permissions


@extend_schema_view(
    list=extend_schema(
        tags=["RBAC"],
        operation_id="v1_rbac_permissions_list",
        responses={200: PermissionSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="module",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by module (e.g. financial_management).",
            ),
            OpenApiParameter(
                name="sub_module",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by sub-module; only applied together with module.",
            ),
        ],
    ),
    system=extend_schema(
        tags=["RBAC"],
        operation_id="v1_rbac_permissions_system",
        responses={200: PermissionSerializer(many=True)},
    ),
)
class PermissionViewSet(viewsets.ViewSet):
    """
    Read-only permission catalog.
    """

    permission_classes = [require_permissions("permissions.view")]

    serializer_class = PermissionSerializer
    queryset = Permission.objects.none()

    def list(self, request):
        f = PermissionFilterSerializer(data=request.query_params)
        f.is_valid(raise_exception=True)

        module = f.validated_data.get("module")
        if module:
            qs = permissions_by_module(module, f.validated_data.get("sub_module") or None)
        else:
            qs = permission_qs().order_by("module", "sub_module", "action")

        return Response(PermissionSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="system")
    def system(self, request):
        return Response(PermissionSerializer(system_permissions(), many=True).data, status=status.HTTP_200_OK)
