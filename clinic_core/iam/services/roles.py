# clinic_core/iam/services/roles.py
from __future__ import annotations

import logging
import re
from typing import Iterable, Optional
from uuid import UUID

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from clinic_core.audit.services import AuditService
from clinic_core.iam.exceptions import RoleLocked, SourceRoleNotFound
from clinic_core.iam.models import Role, RolePermission
from clinic_core.iam.seed_data import CUSTOM_ROLE_DEFAULTS
from clinic_core.iam.selectors import get_clinic_role_or_none, get_system_role_by_name
from clinic_core.iam.services.catalog import validate_grantable, validate_revocable

logger = logging.getLogger(__name__)


def _normalize(name: str) -> str:
    return (name or "").strip().lower()


class RoleService:
    """
    Role registry write-model.

    add_permission / remove_permission / copy_from_role are the raw grant
    mutators (seeding uses them). grant_permission / revoke_permission /
    set_permissions are the validated variants behind the HTTP API: they
    respect can_be_modified and the catalog's dependency/conflict rules.
    """

    # ---- reads ----

    @staticmethod
    def has_permission(*, role: Role, permission_name: str) -> bool:
        granted = (
            role.grants.filter(permission_name=_normalize(permission_name))
            .values_list("granted", flat=True)
            .first()
        )
        return bool(granted)

    @staticmethod
    def get_effective_permissions(role: Role) -> set[str]:
        """
        Own granted permissions united with everything inherited up the
        parent chain. A missing parent contributes nothing; the visited set
        stops the walk on a cycle that predates write-time validation.
        """
        effective: set[str] = set()
        seen: set[UUID] = set()

        current: Optional[Role] = role
        while current is not None and current.id not in seen:
            seen.add(current.id)
            effective.update(
                current.grants.filter(granted=True).values_list("permission_name", flat=True)
            )
            parent_id = current.inherits_from_id
            current = Role.objects.filter(id=parent_id).first() if parent_id else None

        return effective

    # ---- raw mutators ----

    @staticmethod
    @transaction.atomic
    def add_permission(*, role: Role, permission_name: str, granted_by_id: int | None = None) -> Role:
        RolePermission.objects.update_or_create(
            role=role,
            permission_name=_normalize(permission_name),
            defaults={
                "granted": True,
                "granted_at": timezone.now(),
                "granted_by_id": granted_by_id,
            },
        )
        role.save(update_fields=["updated_at"])
        return role

    @staticmethod
    @transaction.atomic
    def remove_permission(*, role: Role, permission_name: str) -> Role:
        role.grants.filter(permission_name=_normalize(permission_name)).delete()
        role.save(update_fields=["updated_at"])
        return role

    @staticmethod
    @transaction.atomic
    def replace_grants(*, role: Role, permission_names: Iterable[str], granted_by_id: int | None = None) -> Role:
        """Make the role's grants exactly `permission_names` (all granted)."""
        names = list(dict.fromkeys(_normalize(n) for n in permission_names))
        now = timezone.now()

        role.grants.exclude(permission_name__in=names).delete()
        role.grants.filter(permission_name__in=names, granted=False).update(granted=True, granted_at=now)

        existing = set(role.grants.values_list("permission_name", flat=True))
        RolePermission.objects.bulk_create(
            [
                RolePermission(role=role, permission_name=n, granted=True, granted_at=now, granted_by_id=granted_by_id)
                for n in names
                if n not in existing
            ]
        )
        role.save(update_fields=["updated_at"])
        return role

    @staticmethod
    @transaction.atomic
    def copy_from_role(*, role: Role, source_role_id: UUID, granted_by_id: int | None = None) -> Role:
        """
        Replace all grants with the source role's effective set (inherited
        permissions included), freshly granted.
        """
        source = Role.objects.filter(id=source_role_id).first()
        if source is None:
            raise SourceRoleNotFound()

        names = sorted(RoleService.get_effective_permissions(source))
        now = timezone.now()

        role.grants.all().delete()
        RolePermission.objects.bulk_create(
            [
                RolePermission(role=role, permission_name=n, granted=True, granted_at=now, granted_by_id=granted_by_id)
                for n in names
            ]
        )
        role.save(update_fields=["updated_at"])
        return role

    # ---- validated mutators ----

    @staticmethod
    def _ensure_modifiable(role: Role) -> None:
        if not role.can_be_modified:
            raise RoleLocked()

    @staticmethod
    def _inherited_permissions(role: Role) -> set[str]:
        if role.inherits_from_id is None:
            return set()
        parent = Role.objects.filter(id=role.inherits_from_id).first()
        return RoleService.get_effective_permissions(parent) if parent else set()

    @staticmethod
    @transaction.atomic
    def grant_permission(*, role: Role, permission_name: str, actor_user_id: int | None = None) -> Role:
        RoleService._ensure_modifiable(role)
        name = _normalize(permission_name)
        validate_grantable([name], RoleService.get_effective_permissions(role))

        RoleService.add_permission(role=role, permission_name=name, granted_by_id=actor_user_id)
        AuditService.log(
            event_code="role.permission_granted",
            entity_type="Role",
            entity_id=role.id,
            clinic_id=role.clinic_id,
            actor_user_id=actor_user_id,
            metadata={"permission_name": name},
        )
        return role

    @staticmethod
    @transaction.atomic
    def revoke_permission(*, role: Role, permission_name: str, actor_user_id: int | None = None) -> Role:
        RoleService._ensure_modifiable(role)
        name = _normalize(permission_name)
        own = set(role.grants.filter(granted=True).values_list("permission_name", flat=True))
        validate_revocable(name, (own - {name}) | RoleService._inherited_permissions(role))

        RoleService.remove_permission(role=role, permission_name=name)
        AuditService.log(
            event_code="role.permission_revoked",
            entity_type="Role",
            entity_id=role.id,
            clinic_id=role.clinic_id,
            actor_user_id=actor_user_id,
            metadata={"permission_name": name},
        )
        return role

    @staticmethod
    @transaction.atomic
    def set_permissions(*, role: Role, permission_names: Iterable[str], actor_user_id: int | None = None) -> Role:
        RoleService._ensure_modifiable(role)
        names = validate_grantable(permission_names, RoleService._inherited_permissions(role))

        RoleService.replace_grants(role=role, permission_names=names, granted_by_id=actor_user_id)
        AuditService.log(
            event_code="role.permissions_replaced",
            entity_type="Role",
            entity_id=role.id,
            clinic_id=role.clinic_id,
            actor_user_id=actor_user_id,
            metadata={"permissions": sorted(set(names))},
        )
        return role

    @staticmethod
    @transaction.atomic
    def copy_permissions(*, role: Role, source_role_id: UUID, actor_user_id: int | None = None) -> Role:
        RoleService._ensure_modifiable(role)

        RoleService.copy_from_role(role=role, source_role_id=source_role_id, granted_by_id=actor_user_id)
        AuditService.log(
            event_code="role.permissions_copied",
            entity_type="Role",
            entity_id=role.id,
            clinic_id=role.clinic_id,
            actor_user_id=actor_user_id,
            metadata={"source_role_id": str(source_role_id)},
        )
        return role

    @staticmethod
    @transaction.atomic
    def set_parent(
        *,
        role: Role,
        parent_role_id: UUID | None,
        actor_user_id: int | None = None,
    ) -> Role:
        RoleService._ensure_modifiable(role)

        parent = None
        if parent_role_id is not None:
            parent = get_clinic_role_or_none(clinic_id=role.clinic_id, role_id=parent_role_id)
            if parent is None:
                raise ValidationError({"inherits_from": "Parent role not found in this clinic."})

        # Role.save rejects self-inheritance and cycles
        role.inherits_from = parent
        role.save()

        AuditService.log(
            event_code="role.parent_changed",
            entity_type="Role",
            entity_id=role.id,
            clinic_id=role.clinic_id,
            actor_user_id=actor_user_id,
            metadata={"inherits_from": str(parent.id) if parent else None},
        )
        return role

    @staticmethod
    @transaction.atomic
    def create_custom_role(
        *,
        clinic_id: UUID,
        name: str,
        display_name: str,
        description: str = "",
        permission_names: Iterable[str] = (),
        inherits_from_id: UUID | None = None,
        created_by_id: int | None = None,
    ) -> Role:
        role_name = re.sub(r"\s+", "_", _normalize(name))

        if get_system_role_by_name(role_name) is not None:
            raise ValidationError({"name": "This name is reserved for a system role."})
        if Role.objects.filter(clinic_id=clinic_id, name=role_name).exists():
            raise ValidationError({"name": "A role with this name already exists in this clinic."})

        parent = None
        if inherits_from_id is not None:
            parent = get_clinic_role_or_none(clinic_id=clinic_id, role_id=inherits_from_id)
            if parent is None:
                raise ValidationError({"inherits_from": "Parent role not found in this clinic."})

        inherited = RoleService.get_effective_permissions(parent) if parent else set()
        names = validate_grantable(permission_names, inherited)

        role = Role(
            name=role_name,
            display_name=display_name,
            description=description,
            clinic_id=clinic_id,
            is_system_role=False,
            inherits_from=parent,
            created_by_id=created_by_id,
            **CUSTOM_ROLE_DEFAULTS,
        )
        role.save()

        now = timezone.now()
        RolePermission.objects.bulk_create(
            [
                RolePermission(role=role, permission_name=n, granted=True, granted_at=now, granted_by_id=created_by_id)
                for n in dict.fromkeys(names)
            ]
        )

        AuditService.log(
            event_code="role.created",
            entity_type="Role",
            entity_id=role.id,
            clinic_id=clinic_id,
            actor_user_id=created_by_id,
            metadata={"name": role_name, "permissions": sorted(set(names))},
        )
        logger.info("custom role %s created in clinic %s", role_name, clinic_id)
        return role

    @staticmethod
    @transaction.atomic
    def delete_role(*, role: Role, actor_user_id: int | None = None) -> None:
        role_id, clinic_id, name = role.id, role.clinic_id, role.name

        # Role.delete raises RoleProtected / RoleInUse
        role.delete()

        AuditService.log(
            event_code="role.deleted",
            entity_type="Role",
            entity_id=role_id,
            clinic_id=clinic_id,
            actor_user_id=actor_user_id,
            metadata={"name": name},
        )
