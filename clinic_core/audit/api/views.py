# clinic_core/audit/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from clinic_core.audit.api.serializers import AuditEventSerializer
from clinic_core.audit.models import AuditEvent
from clinic_core.audit.selectors import list_audit_events
from clinic_core.iam.authorization import get_auth_context
from clinic_core.iam.permissions import require_permissions

DEFAULT_LIMIT = 200
MAX_LIMIT = 500


def _limit(raw) -> int:
    try:
        n = int(raw) if raw else DEFAULT_LIMIT
    except (TypeError, ValueError):
        n = DEFAULT_LIMIT
    return max(1, min(n, MAX_LIMIT))


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    Audit trail of the active clinic: role/membership changes and
    permission check outcomes.
    """
    permission_classes = [require_permissions("permissions.audit_log")]

    # ✅ Makes drf-spectacular happy:
    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="entity_type",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by entity type (e.g. Role, UserClinic, Endpoint).",
            ),
            OpenApiParameter(
                name="entity_id",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by entity id.",
            ),
            OpenApiParameter(
                name="event_code",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by event code (e.g. role.created, rbac.permission_check).",
            ),
            OpenApiParameter(
                name="actor_user_id",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by actor user id (int).",
            ),
            OpenApiParameter(
                name="limit",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Max records to return (default 200, max 500).",
            ),
        ],
    )
    def list(self, request):
        ctx = get_auth_context(request)

        actor_user_raw = request.query_params.get("actor_user_id")
        actor_user_id = None
        if actor_user_raw:
            try:
                actor_user_id = int(actor_user_raw)
            except ValueError:
                raise ValidationError({"actor_user_id": "Invalid actor_user_id (int expected)"})

        qs = list_audit_events(
            clinic_id=ctx.clinic_id,
            entity_type=request.query_params.get("entity_type") or None,
            entity_id=request.query_params.get("entity_id") or None,
            event_code=request.query_params.get("event_code") or None,
            actor_user_id=actor_user_id,
        )

        # timeline endpoints can get huge
        limit_n = _limit(request.query_params.get("limit"))
        return Response(AuditEventSerializer(qs[:limit_n], many=True).data, status=status.HTTP_200_OK)
