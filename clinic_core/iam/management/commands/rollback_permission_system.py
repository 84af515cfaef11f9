# clinic_core/iam/management/commands/rollback_permission_system.py
from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from clinic_core.iam.exceptions import RollbackForbidden
from clinic_core.iam.services.seeding import rollback_permission_system


class Command(BaseCommand):
    help = "Delete every membership, system role and permission. Refused in production."

    def add_arguments(self, parser):
        parser.add_argument("--yes", action="store_true", help="Confirm the destructive rollback.")

    def handle(self, *args, **opts):
        if not opts["yes"]:
            raise CommandError("Rollback deletes all memberships, system roles and permissions. Re-run with --yes.")

        try:
            result = rollback_permission_system()
        except RollbackForbidden as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(
            self.style.SUCCESS(
                f"Rolled back. Memberships: {result.memberships}, "
                f"system roles: {result.roles}, permissions: {result.permissions}"
            )
        )
