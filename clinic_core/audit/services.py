# clinic_core/audit/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from clinic_core.audit.models import AuditEvent

logger = logging.getLogger(__name__)

PERMISSION_CHECK_EVENT = "rbac.permission_check"


@dataclass(frozen=True)
class AuditRecord:
    event_code: str
    entity_type: str
    entity_id: str
    clinic_id: UUID | None
    actor_user_id: int | None
    metadata: Dict[str, Any]


class AuditService:
    """
    Central audit writer.
    Persists into AuditEvent (append-only).
    """

    @staticmethod
    @transaction.atomic
    def log(
        *,
        event_code: str,
        entity_type: str,
        entity_id: Any,
        clinic_id: UUID | None,
        actor_user_id: int | None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        metadata = metadata or {}
        entity_id = "" if entity_id is None else str(entity_id)

        AuditEvent.objects.create(
            clinic_id=clinic_id,
            event_code=event_code,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_user_id=actor_user_id,
            metadata=metadata,
        )

        return AuditRecord(
            event_code=event_code,
            entity_type=entity_type,
            entity_id=entity_id,
            clinic_id=clinic_id,
            actor_user_id=actor_user_id,
            metadata=metadata,
        )

    @staticmethod
    def log_permission_check(
        *,
        actor_user_id: int | None,
        clinic_id: UUID | None,
        endpoint: str,
        ip_address: str | None,
        user_agent: str | None,
        required_permissions: Iterable[str],
        required_roles: Iterable[str],
        user_permissions: Iterable[str],
        user_roles: Iterable[str],
        operator: str,
        success: bool,
        error_code: str | None = None,
    ) -> AuditRecord | None:
        """
        Record one authorization outcome (allow or deny).

        Always logged; persisted only when RBAC_AUDIT_PERMISSION_CHECKS is on.
        """
        metadata = {
            "endpoint": endpoint,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "required_permissions": sorted(required_permissions),
            "required_roles": sorted(required_roles),
            "user_permissions": sorted(user_permissions),
            "user_roles": sorted(user_roles),
            "operator": operator,
            "success": success,
            "error_code": error_code,
            "timestamp": timezone.now().isoformat(),
        }

        logger.info(
            "permission check %s user=%s clinic=%s endpoint=%s code=%s",
            "allowed" if success else "denied",
            actor_user_id,
            clinic_id,
            endpoint,
            error_code or "-",
        )

        if not getattr(settings, "RBAC_AUDIT_PERMISSION_CHECKS", True):
            return None

        return AuditService.log(
            event_code=PERMISSION_CHECK_EVENT,
            entity_type="Endpoint",
            entity_id=endpoint[:128],
            clinic_id=clinic_id,
            actor_user_id=actor_user_id,
            metadata=metadata,
        )
