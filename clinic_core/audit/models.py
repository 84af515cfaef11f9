# clinic_core/audit/models.py
from django.conf import settings
from django.db import models

from clinic_core.common.models import UUIDModel


class AuditEvent(UUIDModel):
    """
    Append-only audit record.
    Holds permission-check outcomes and every membership/role mutation.
    """
    clinic_id = models.UUIDField(null=True, blank=True, db_index=True)

    event_code = models.CharField(max_length=128, db_index=True)  # e.g. "rbac.permission_check"
    entity_type = models.CharField(max_length=128, db_index=True)  # e.g. "UserClinic"
    entity_id = models.CharField(max_length=128, blank=True, default="", db_index=True)

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="audit_events",
        null=True,
        blank=True,
    )

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["clinic_id", "occurred_at"], name="audit_clinic_occurred_idx"),
            models.Index(fields=["entity_type", "entity_id"], name="audit_entity_idx"),
            models.Index(fields=["clinic_id", "event_code"], name="audit_clinic_code_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.event_code} {self.entity_type}:{self.entity_id}"
