# clinic_core/iam/api/me.py

from __future__ import annotations

from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from clinic_core.iam.api.serializers import MeResponseSerializer
from clinic_core.iam.authorization import admin_role_name, get_auth_context
from clinic_core.iam.models import UserClinic
from clinic_core.iam.permissions import without_clinic_context
from clinic_core.iam.scope import InvalidClinicId, clinic_header_name, load_identity, resolve_clinic_id
from clinic_core.iam.services.membership import list_user_clinics
from clinic_core.iam.services.resolver import (
    effective_permissions,
    effective_role_names,
    get_active_membership,
)


class MeView(APIView):
    """
    Who am I, where am I a member, and what may I do in the active clinic.

    The clinic header is optional here: without it (and without a default
    clinic) active_clinic is null instead of a CLINIC_REQUIRED rejection.
    """
    permission_classes = [without_clinic_context()]

    @extend_schema(
        tags=["IAM"],
        responses={200: MeResponseSerializer},
        parameters=[
            OpenApiParameter(
                name=clinic_header_name(),
                location=OpenApiParameter.HEADER,
                required=False,
                description="Clinic to resolve roles and permissions for.",
            )
        ],
    )
    def get(self, request):
        ctx = get_auth_context(request)
        user = request.user
        identity = load_identity(user)

        active_clinic = None
        try:
            clinic_id = resolve_clinic_id(request, identity)
        except InvalidClinicId:
            clinic_id = None

        membership = get_active_membership(user_id=user.id, clinic_id=clinic_id) if clinic_id else None
        if membership is not None:
            UserClinic.objects.filter(id=membership.id).update(last_login=timezone.now())
            roles = effective_role_names(membership)
            active_clinic = {
                "clinic_id": str(clinic_id),
                "roles": sorted(roles),
                "permissions": sorted(effective_permissions(membership)),
                "is_admin": ctx.is_admin or admin_role_name() in roles,
            }

        return Response(
            {
                "user": {
                    "id": user.id,
                    "username": getattr(user, "username", None),
                    "email": getattr(user, "email", None),
                    "is_superuser": bool(getattr(user, "is_superuser", False)),
                    "is_admin": ctx.is_admin,
                },
                "memberships": list_user_clinics(user.id),
                "active_clinic": active_clinic,
            },
            status=status.HTTP_200_OK,
        )
