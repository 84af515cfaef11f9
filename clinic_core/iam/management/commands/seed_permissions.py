# clinic_core/iam/management/commands/seed_permissions.py

from django.core.management.base import BaseCommand

from clinic_core.iam.services.seeding import seed_permissions


class Command(BaseCommand):
    help = "Upsert the default permission catalog (idempotent)."

    def handle(self, *args, **options):
        result = seed_permissions()
        self.stdout.write(
            self.style.SUCCESS(
                f"Permissions seeded. Created: {result.created}, updated: {result.updated}, total: {result.total}"
            )
        )
