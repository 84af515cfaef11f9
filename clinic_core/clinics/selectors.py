from __future__ import annotations

from typing import Optional

from clinic_core.clinics.models import Clinic


def get_clinic_by_code_or_none(*, code: str) -> Optional[Clinic]:
    return Clinic.objects.filter(code=code).first()
