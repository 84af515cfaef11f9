# clinic_core/clinics/models.py
import uuid
from django.db import models


class Clinic(models.Model):
    """
    Tenant of the system. Every membership, custom role and audit
    event is scoped to one clinic.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    code = models.SlugField(max_length=64, unique=True)

    is_active = models.BooleanField(default=True, db_index=True)

    # feature flags, onboarding notes, etc.
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "clinics_clinic"
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"
