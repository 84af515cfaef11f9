# clinic_core/iam/api/memberships.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from clinic_core.iam.api.serializers import (
    MembershipCreateSerializer,
    MembershipSerializer,
    OverrideSerializer,
    RoleAssignSerializer,
    RoleRemoveSerializer,
)
from clinic_core.iam.authorization import get_auth_context
from clinic_core.iam.models import UserClinic
from clinic_core.iam.permissions import require_all_permissions, require_permissions
from clinic_core.iam.selectors import clinic_memberships, get_clinic_membership_or_none
from clinic_core.iam.services.membership import MembershipService

CAN_VIEW = require_permissions("users.view")
CAN_CREATE = require_all_permissions("users.create", "permissions.assign_roles")
CAN_ASSIGN_ROLES = require_permissions("permissions.assign_roles")
CAN_OVERRIDE = require_permissions("users.manage_permissions")
CAN_TOGGLE = require_permissions("users.activate_deactivate")


@extend_schema_view(
    list=extend_schema(tags=["RBAC"], operation_id="v1_rbac_memberships_list", responses={200: MembershipSerializer(many=True)}),
    retrieve=extend_schema(tags=["RBAC"], operation_id="v1_rbac_memberships_retrieve", responses={200: MembershipSerializer}),
    create=extend_schema(tags=["RBAC"], operation_id="v1_rbac_memberships_create", request=MembershipCreateSerializer, responses={201: MembershipSerializer}),
    assign_role=extend_schema(tags=["RBAC"], operation_id="v1_rbac_memberships_assign_role", request=RoleAssignSerializer, responses={200: MembershipSerializer}),
    remove_role=extend_schema(tags=["RBAC"], operation_id="v1_rbac_memberships_remove_role", request=RoleRemoveSerializer, responses={200: MembershipSerializer}),
    grant_permission=extend_schema(tags=["RBAC"], operation_id="v1_rbac_memberships_grant_permission", request=OverrideSerializer, responses={200: MembershipSerializer}),
    revoke_permission=extend_schema(tags=["RBAC"], operation_id="v1_rbac_memberships_revoke_permission", request=OverrideSerializer, responses={200: MembershipSerializer}),
    activate=extend_schema(tags=["RBAC"], operation_id="v1_rbac_memberships_activate", request=None, responses={200: MembershipSerializer}),
    deactivate=extend_schema(tags=["RBAC"], operation_id="v1_rbac_memberships_deactivate", request=None, responses={200: MembershipSerializer}),
)
class MembershipViewSet(viewsets.ViewSet):
    """
    Users of the active clinic and their roles / overrides.
    """

    permission_classes = [CAN_VIEW]
    action_permissions = {"create": [CAN_CREATE]}

    serializer_class = MembershipSerializer
    queryset = UserClinic.objects.none()

    def get_permissions(self):
        classes = self.action_permissions.get(self.action, self.permission_classes)
        return [cls() for cls in classes]

    def _get_membership(self, request, pk) -> UserClinic:
        ctx = get_auth_context(request)
        try:
            membership_id = UUID(str(pk))
        except ValueError:
            raise NotFound("Membership not found in this clinic.")

        membership = get_clinic_membership_or_none(clinic_id=ctx.clinic_id, membership_id=membership_id)
        if membership is None:
            raise NotFound("Membership not found in this clinic.")
        return membership

    def _respond(self, membership: UserClinic, http_status=status.HTTP_200_OK) -> Response:
        # re-read so prefetched roles/overrides reflect the mutation
        fresh = get_clinic_membership_or_none(clinic_id=membership.clinic_id, membership_id=membership.id)
        return Response(MembershipSerializer(fresh).data, status=http_status)

    def list(self, request):
        ctx = get_auth_context(request)
        qs = clinic_memberships(ctx.clinic_id)
        return Response(MembershipSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    def retrieve(self, request, pk=None):
        return Response(MembershipSerializer(self._get_membership(request, pk)).data, status=status.HTTP_200_OK)

    def create(self, request):
        ctx = get_auth_context(request)
        ser = MembershipCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        membership = MembershipService.create(
            user_id=ser.validated_data["user_id"],
            clinic_id=ctx.clinic_id,
            role_ids=ser.validated_data["role_ids"],
            assigned_by_id=request.user.id,
            primary_role_id=ser.validated_data.get("primary_role_id"),
        )
        return self._respond(membership, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="assign-role", permission_classes=[CAN_ASSIGN_ROLES])
    def assign_role(self, request, pk=None):
        membership = self._get_membership(request, pk)
        ser = RoleAssignSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        MembershipService.assign_role(
            membership=membership,
            role_id=ser.validated_data["role_id"],
            assigned_by_id=request.user.id,
            is_primary=ser.validated_data["is_primary"],
        )
        return self._respond(membership)

    @action(detail=True, methods=["post"], url_path="remove-role", permission_classes=[CAN_ASSIGN_ROLES])
    def remove_role(self, request, pk=None):
        membership = self._get_membership(request, pk)
        ser = RoleRemoveSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        MembershipService.remove_role(
            membership=membership,
            role_id=ser.validated_data["role_id"],
            removed_by_id=request.user.id,
            reason=ser.validated_data.get("reason"),
        )
        return self._respond(membership)

    @action(detail=True, methods=["post"], url_path="grant-permission", permission_classes=[CAN_OVERRIDE])
    def grant_permission(self, request, pk=None):
        membership = self._get_membership(request, pk)
        ser = OverrideSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        MembershipService.grant_permission(
            membership=membership,
            permission_name=ser.validated_data["permission_name"],
            granted_by_id=request.user.id,
            reason=ser.validated_data.get("reason"),
        )
        return self._respond(membership)

    @action(detail=True, methods=["post"], url_path="revoke-permission", permission_classes=[CAN_OVERRIDE])
    def revoke_permission(self, request, pk=None):
        membership = self._get_membership(request, pk)
        ser = OverrideSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        MembershipService.revoke_permission(
            membership=membership,
            permission_name=ser.validated_data["permission_name"],
            revoked_by_id=request.user.id,
            reason=ser.validated_data.get("reason"),
        )
        return self._respond(membership)

    @action(detail=True, methods=["post"], url_path="activate", permission_classes=[CAN_TOGGLE])
    def activate(self, request, pk=None):
        membership = self._get_membership(request, pk)
        MembershipService.activate(membership=membership, actor_user_id=request.user.id)
        return self._respond(membership)

    @action(detail=True, methods=["post"], url_path="deactivate", permission_classes=[CAN_TOGGLE])
    def deactivate(self, request, pk=None):
        membership = self._get_membership(request, pk)
        MembershipService.deactivate(membership=membership, actor_user_id=request.user.id)
        return self._respond(membership)
