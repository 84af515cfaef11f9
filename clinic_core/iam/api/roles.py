# clinic_core/iam/api/roles.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from clinic_core.iam.api.serializers import (
    CopyFromSerializer,
    PermissionNameSerializer,
    RoleCreateSerializer,
    RolePermissionsSerializer,
    RoleSerializer,
    SetParentSerializer,
)
from clinic_core.iam.authorization import get_auth_context
from clinic_core.iam.exceptions import RoleLocked, SourceRoleNotFound
from clinic_core.iam.models import Role
from clinic_core.iam.permissions import require_permissions
from clinic_core.iam.selectors import clinic_roles, get_clinic_role_or_none
from clinic_core.iam.services.roles import RoleService

CAN_VIEW = require_permissions("permissions.view")
CAN_CREATE = require_permissions("permissions.create_role")
CAN_DELETE = require_permissions("permissions.delete_role")
CAN_EDIT = require_permissions("permissions.edit_role")
CAN_ASSIGN = require_permissions("permissions.assign_permissions")


def _parse_pk(pk) -> UUID:
    try:
        return UUID(str(pk))
    except ValueError:
        raise NotFound("Role not found in this clinic.")


@extend_schema_view(
    list=extend_schema(tags=["RBAC"], operation_id="v1_rbac_roles_list", responses={200: RoleSerializer(many=True)}),
    retrieve=extend_schema(tags=["RBAC"], operation_id="v1_rbac_roles_retrieve", responses={200: RoleSerializer}),
    create=extend_schema(tags=["RBAC"], operation_id="v1_rbac_roles_create", request=RoleCreateSerializer, responses={201: RoleSerializer}),
    destroy=extend_schema(tags=["RBAC"], operation_id="v1_rbac_roles_destroy", responses={204: None}),
    set_permissions=extend_schema(tags=["RBAC"], operation_id="v1_rbac_roles_set_permissions", request=RolePermissionsSerializer, responses={200: RoleSerializer}),
    grant=extend_schema(tags=["RBAC"], operation_id="v1_rbac_roles_grant", request=PermissionNameSerializer, responses={200: RoleSerializer}),
    revoke=extend_schema(tags=["RBAC"], operation_id="v1_rbac_roles_revoke", request=PermissionNameSerializer, responses={200: RoleSerializer}),
    copy_from=extend_schema(tags=["RBAC"], operation_id="v1_rbac_roles_copy_from", request=CopyFromSerializer, responses={200: RoleSerializer}),
    set_parent=extend_schema(tags=["RBAC"], operation_id="v1_rbac_roles_set_parent", request=SetParentSerializer, responses={200: RoleSerializer}),
)
class RoleViewSet(viewsets.ViewSet):
    """
    Roles usable in the active clinic (its custom roles + system roles).

    System roles are shared by every clinic, so they are read-only here:
    only the seeders change them.
    """

    permission_classes = [CAN_VIEW]
    action_permissions = {
        "create": [CAN_CREATE],
        "destroy": [CAN_DELETE],
    }

    # ✅ critical for drf-spectacular
    serializer_class = RoleSerializer
    queryset = Role.objects.none()

    def get_permissions(self):
        classes = self.action_permissions.get(self.action, self.permission_classes)
        return [cls() for cls in classes]

    def _get_role(self, request, pk) -> Role:
        ctx = get_auth_context(request)
        role = get_clinic_role_or_none(clinic_id=ctx.clinic_id, role_id=_parse_pk(pk))
        if role is None:
            raise NotFound("Role not found in this clinic.")
        return role

    def _get_owned_role(self, request, pk) -> Role:
        role = self._get_role(request, pk)
        if role.is_system_role:
            raise RoleLocked("System roles cannot be modified from a clinic")
        return role

    def list(self, request):
        ctx = get_auth_context(request)
        qs = clinic_roles(ctx.clinic_id).prefetch_related("grants")
        return Response(RoleSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    def retrieve(self, request, pk=None):
        return Response(RoleSerializer(self._get_role(request, pk)).data, status=status.HTTP_200_OK)

    def create(self, request):
        ctx = get_auth_context(request)
        ser = RoleCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        role = RoleService.create_custom_role(
            clinic_id=ctx.clinic_id,
            name=ser.validated_data["name"],
            display_name=ser.validated_data["display_name"],
            description=ser.validated_data.get("description") or "",
            permission_names=ser.validated_data.get("permissions") or [],
            inherits_from_id=ser.validated_data.get("inherits_from"),
            created_by_id=request.user.id,
        )
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        role = self._get_role(request, pk)
        RoleService.delete_role(role=role, actor_user_id=request.user.id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["put"], url_path="permissions", permission_classes=[CAN_ASSIGN])
    def set_permissions(self, request, pk=None):
        role = self._get_owned_role(request, pk)
        ser = RolePermissionsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        RoleService.set_permissions(
            role=role,
            permission_names=ser.validated_data["permissions"],
            actor_user_id=request.user.id,
        )
        return Response(RoleSerializer(role).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="grant", permission_classes=[CAN_ASSIGN])
    def grant(self, request, pk=None):
        role = self._get_owned_role(request, pk)
        ser = PermissionNameSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        RoleService.grant_permission(
            role=role,
            permission_name=ser.validated_data["permission_name"],
            actor_user_id=request.user.id,
        )
        return Response(RoleSerializer(role).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="revoke", permission_classes=[CAN_ASSIGN])
    def revoke(self, request, pk=None):
        role = self._get_owned_role(request, pk)
        ser = PermissionNameSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        RoleService.revoke_permission(
            role=role,
            permission_name=ser.validated_data["permission_name"],
            actor_user_id=request.user.id,
        )
        return Response(RoleSerializer(role).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="copy-from", permission_classes=[CAN_ASSIGN])
    def copy_from(self, request, pk=None):
        ctx = get_auth_context(request)
        role = self._get_owned_role(request, pk)
        ser = CopyFromSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        source_id = ser.validated_data["source_role_id"]
        # a role from another clinic is reported as missing
        if get_clinic_role_or_none(clinic_id=ctx.clinic_id, role_id=source_id) is None:
            raise SourceRoleNotFound()

        RoleService.copy_permissions(role=role, source_role_id=source_id, actor_user_id=request.user.id)
        return Response(RoleSerializer(role).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="set-parent", permission_classes=[CAN_EDIT])
    def set_parent(self, request, pk=None):
        role = self._get_owned_role(request, pk)
        ser = SetParentSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        RoleService.set_parent(
            role=role,
            parent_role_id=ser.validated_data["inherits_from"],
            actor_user_id=request.user.id,
        )
        return Response(RoleSerializer(role).data, status=status.HTTP_200_OK)
