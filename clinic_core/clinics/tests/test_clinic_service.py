from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from rest_framework.exceptions import ValidationError

from clinic_core.clinics.models import Clinic
from clinic_core.clinics.selectors import get_clinic_by_code_or_none
from clinic_core.clinics.services import ClinicService

pytestmark = pytest.mark.django_db


def run(*args) -> str:
    out = StringIO()
    call_command("ensure_clinic", *args, stdout=out)
    return out.getvalue()


def test_create_and_lookup():
    clinic = ClinicService.create(name=" Downtown ", code="downtown")
    assert clinic.name == "Downtown"
    assert get_clinic_by_code_or_none(code="downtown") == clinic

    with pytest.raises(ValidationError):
        ClinicService.create(name="Another", code="downtown")

    with pytest.raises(ValidationError):
        ClinicService.create(name="No code", code="  ")


def test_set_active_is_idempotent():
    clinic = ClinicService.create(name="Uptown", code="uptown")

    ClinicService.set_active(clinic_id=clinic.id, is_active=False)
    ClinicService.set_active(clinic_id=clinic.id, is_active=False)

    clinic.refresh_from_db()
    assert clinic.is_active is False


def test_ensure_clinic_command():
    out = run("eastside", "East Side")
    clinic = Clinic.objects.get(code="eastside")
    assert f"Clinic eastside created (active): {clinic.id}" in out

    out = run("eastside", "Ignored", "--inactive")
    assert "Clinic eastside exists (inactive)" in out
    assert Clinic.objects.filter(code="eastside").count() == 1

    clinic.refresh_from_db()
    assert clinic.name == "East Side"
    assert clinic.is_active is False


def test_ensure_clinic_rejects_blank_name():
    with pytest.raises(CommandError):
        run("westside", "  ")
