# clinic_core/iam/management/commands/setup_permission_system.py
from __future__ import annotations

from django.core.management.base import BaseCommand

from clinic_core.iam.services.seeding import setup_permission_system


class Command(BaseCommand):
    help = "Seed permissions and system roles, then migrate legacy memberships to roles."

    def add_arguments(self, parser):
        parser.add_argument(
            "--skip-migration",
            action="store_true",
            help="Seed only; leave legacy memberships untouched.",
        )

    def handle(self, *args, **opts):
        result = setup_permission_system(migrate_users=not opts["skip_migration"])

        self.stdout.write(f"Permissions: {result.permissions.created} created, {result.permissions.updated} updated")
        self.stdout.write(f"Roles: {result.roles.created} created, {result.roles.updated} updated")
        if opts["skip_migration"]:
            self.stdout.write("Legacy migration skipped.")
        else:
            m = result.migration
            self.stdout.write(f"Memberships: {m.migrated} migrated, {m.skipped} skipped, {m.failed} failed")
            if m.failed:
                self.stdout.write(self.style.WARNING("Some memberships failed to migrate; see the log."))

        self.stdout.write(self.style.SUCCESS("Permission system ready."))
