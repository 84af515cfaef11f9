from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db import transaction
from rest_framework.exceptions import ValidationError

from clinic_core.clinics.models import Clinic


class ClinicService:
    """
    All Clinic mutations live here (write-model boundary).
    """

    @staticmethod
    @transaction.atomic
    def create(*, name: str, code: str, metadata: Optional[dict] = None) -> Clinic:
        code = (code or "").strip()
        name = (name or "").strip()

        if not code:
            raise ValidationError({"code": "This field is required."})
        if not name:
            raise ValidationError({"name": "This field is required."})
        if Clinic.objects.filter(code=code).exists():
            raise ValidationError({"code": "A clinic with this code already exists."})

        return Clinic.objects.create(name=name, code=code, metadata=metadata or {})

    @staticmethod
    @transaction.atomic
    def set_active(*, clinic_id: UUID, is_active: bool) -> Clinic:
        clinic = Clinic.objects.select_for_update().get(id=clinic_id)

        # idempotent no-op
        if clinic.is_active == is_active:
            return clinic

        clinic.is_active = is_active
        clinic.save(update_fields=["is_active", "updated_at"])
        return clinic
