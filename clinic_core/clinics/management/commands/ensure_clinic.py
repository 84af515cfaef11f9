# clinic_core/clinics/management/commands/ensure_clinic.py
from django.core.management.base import BaseCommand, CommandError
from rest_framework.exceptions import ValidationError

from clinic_core.clinics.selectors import get_clinic_by_code_or_none
from clinic_core.clinics.services import ClinicService


class Command(BaseCommand):
    help = "Ensure a clinic with the given code exists (idempotent). Prints its id."

    def add_arguments(self, parser):
        parser.add_argument("code")
        parser.add_argument("name")
        parser.add_argument("--inactive", action="store_true", help="Leave the clinic deactivated.")

    def handle(self, *args, **opts):
        clinic = get_clinic_by_code_or_none(code=opts["code"].strip())
        created = clinic is None
        if created:
            try:
                clinic = ClinicService.create(name=opts["name"], code=opts["code"])
            except ValidationError as exc:
                raise CommandError(str(exc.detail)) from exc

        clinic = ClinicService.set_active(clinic_id=clinic.id, is_active=not opts["inactive"])

        state = "active" if clinic.is_active else "inactive"
        verb = "created" if created else "exists"
        self.stdout.write(self.style.SUCCESS(f"Clinic {clinic.code} {verb} ({state}): {clinic.id}"))
