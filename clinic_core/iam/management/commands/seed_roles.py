# clinic_core/iam/management/commands/seed_roles.py

from django.core.management.base import BaseCommand

from clinic_core.iam.services.seeding import seed_roles


class Command(BaseCommand):
    help = "Upsert the system roles and their grants (idempotent). Run seed_permissions first."

    def handle(self, *args, **options):
        result = seed_roles()
        self.stdout.write(
            self.style.SUCCESS(f"System roles seeded. Created: {result.created}, updated: {result.updated}")
        )
