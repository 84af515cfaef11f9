# clinic_core/iam/services/seeding.py
"""
Idempotent bootstrap of the permission system:

  seed_permissions          upsert the default catalog by name
  seed_roles                upsert the system roles by (name, is_system_role)
  migrate_legacy_memberships  convert schema-v1 memberships to roles
  setup_permission_system   all three, in that order
  rollback_permission_system  tear everything down (never in prod)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from rest_framework.exceptions import ValidationError

from clinic_core.audit.services import AuditService
from clinic_core.iam.exceptions import RollbackForbidden
from clinic_core.iam.models import MembershipSchema, Permission, Role, UserClinic
from clinic_core.iam.seed_data import DEFAULT_PERMISSIONS, DEFAULT_ROLES
from clinic_core.iam.selectors import get_system_role_by_name
from clinic_core.iam.services.membership import MembershipService
from clinic_core.iam.services.roles import RoleService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedResult:
    created: int
    updated: int
    total: int


@dataclass(frozen=True)
class MigrationResult:
    migrated: int
    skipped: int
    failed: int


@dataclass(frozen=True)
class SetupResult:
    permissions: SeedResult
    roles: SeedResult
    migration: MigrationResult


@dataclass(frozen=True)
class RollbackResult:
    memberships: int
    roles: int
    permissions: int


@transaction.atomic
def seed_permissions(definitions: Optional[Iterable[dict]] = None) -> SeedResult:
    created = updated = 0

    for data in definitions if definitions is not None else DEFAULT_PERMISSIONS:
        fields = {k: v for k, v in data.items() if k != "name"}
        fields["is_system_permission"] = True
        fields["applies_to_clinic"] = True

        _, was_created = Permission.objects.update_or_create(name=data["name"], defaults=fields)
        if was_created:
            created += 1
        else:
            updated += 1

    result = SeedResult(created=created, updated=updated, total=created + updated)
    logger.info("permissions seeded: created=%d updated=%d", result.created, result.updated)
    return result


@transaction.atomic
def seed_roles(definitions: Optional[Iterable[dict]] = None) -> SeedResult:
    known = set(Permission.objects.values_list("name", flat=True))
    created = updated = 0

    for data in definitions if definitions is not None else DEFAULT_ROLES:
        names = []
        for name in data["permissions"]:
            if name in known:
                names.append(name)
            else:
                logger.warning("permission %s not in catalog; skipped for role %s", name, data["name"])

        attrs = {k: v for k, v in data.items() if k not in ("name", "permissions")}
        attrs["is_active"] = True

        role = Role.objects.filter(name=data["name"], is_system_role=True).first()
        if role is None:
            role = Role(name=data["name"], is_system_role=True, **attrs)
            created += 1
        else:
            for key, value in attrs.items():
                setattr(role, key, value)
            updated += 1
        role.save()

        RoleService.replace_grants(role=role, permission_names=names)

    result = SeedResult(created=created, updated=updated, total=created + updated)
    logger.info("system roles seeded: created=%d updated=%d", result.created, result.updated)
    return result


def migrate_legacy_memberships(*, default_role: str | None = None) -> MigrationResult:
    """
    Convert every schema-v1 membership: its legacy role string maps to the
    system role of the same name (falling back to the default role), which
    becomes the primary role. The flat permission list is cleared.

    Migrated rows are marked schema v2, so a second run migrates nothing.
    """
    fallback_name = default_role or getattr(settings, "RBAC_DEFAULT_ROLE", "staff")
    migrated = skipped = failed = 0

    pending = UserClinic.objects.filter(schema_version=MembershipSchema.LEGACY).order_by("created_at")
    for membership in list(pending):
        old_role = (membership.legacy_role or "").strip().lower()
        if not old_role:
            skipped += 1
            continue

        role = get_system_role_by_name(old_role) or get_system_role_by_name(fallback_name)
        if role is None:
            logger.warning("no system role for legacy role %s (membership %s)", old_role, membership.id)
            skipped += 1
            continue

        try:
            with transaction.atomic():
                MembershipService.assign_role(membership=membership, role_id=role.id, is_primary=True)

                membership.permissions = []
                membership.schema_version = MembershipSchema.RBAC
                membership.save(update_fields=["permissions", "schema_version", "updated_at"])

                AuditService.log(
                    event_code="membership.role_migrated",
                    entity_type="UserClinic",
                    entity_id=membership.id,
                    clinic_id=membership.clinic_id,
                    actor_user_id=None,
                    metadata={
                        "user_id": membership.user_id,
                        "old_role": old_role,
                        "new_role_id": str(role.id),
                        "new_role": role.name,
                    },
                )
        except (DatabaseError, DjangoValidationError, ValidationError):
            logger.exception("failed to migrate membership %s", membership.id)
            failed += 1
            continue

        migrated += 1

    result = MigrationResult(migrated=migrated, skipped=skipped, failed=failed)
    logger.info(
        "legacy memberships migrated=%d skipped=%d failed=%d",
        result.migrated,
        result.skipped,
        result.failed,
    )
    return result


def setup_permission_system(*, migrate_users: bool = True) -> SetupResult:
    permissions = seed_permissions()
    roles = seed_roles()
    migration = migrate_legacy_memberships() if migrate_users else MigrationResult(0, 0, 0)
    return SetupResult(permissions=permissions, roles=roles, migration=migration)


@transaction.atomic
def rollback_permission_system() -> RollbackResult:
    if getattr(settings, "ENVIRONMENT", "local") == "prod":
        raise RollbackForbidden()

    memberships = UserClinic.objects.count()
    UserClinic.objects.all().delete()

    roles = Role.objects.filter(is_system_role=True).count()
    Role.objects.filter(is_system_role=True).delete()

    permissions = Permission.objects.count()
    Permission.objects.all().delete()

    logger.warning(
        "permission system rolled back: memberships=%d system_roles=%d permissions=%d",
        memberships,
        roles,
        permissions,
    )
    return RollbackResult(memberships=memberships, roles=roles, permissions=permissions)
