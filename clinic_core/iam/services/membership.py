# clinic_core/iam/services/membership.py
from __future__ import annotations

import logging
from typing import Iterable, Optional
from uuid import UUID

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from clinic_core.audit.services import AuditService
from clinic_core.iam.exceptions import DuplicateMembership, LastRole, RoleNotAssigned
from clinic_core.iam.models import (
    MembershipRole,
    MembershipSchema,
    PermissionOverride,
    Role,
    UserClinic,
)
from clinic_core.iam.selectors import get_clinic_role_or_none
from clinic_core.iam.services.catalog import ensure_permissions_exist, validate_grantable, validate_revocable
from clinic_core.iam.services.resolver import effective_permissions

logger = logging.getLogger(__name__)


def list_user_clinics(user_id: int) -> list[dict]:
    """
    Active clinic memberships for the /me response, primary role included.
    """
    qs = (
        UserClinic.objects.select_related("clinic")
        .filter(user_id=user_id, is_active=True, clinic__is_active=True)
        .order_by("clinic__name")
    )
    primary_by_membership = {
        a.membership_id: a.role
        for a in MembershipRole.objects.select_related("role").filter(
            membership__in=qs,
            is_primary=True,
        )
    }

    items: list[dict] = []
    for m in qs:
        primary = primary_by_membership.get(m.id)
        items.append(
            {
                "membership_id": str(m.id),
                "clinic_id": str(m.clinic_id),
                "clinic_code": m.clinic.code,
                "clinic_name": m.clinic.name,
                "primary_role": primary.name if primary else None,
                "joined_at": m.joined_at.isoformat(),
            }
        )
    return items


def is_user_member_of_clinic(*, user_id: int, clinic_id: UUID) -> bool:
    """
    Active membership in an active clinic.
    Single source of truth for clinic access.
    """
    return UserClinic.objects.filter(
        user_id=user_id,
        clinic_id=clinic_id,
        is_active=True,
        clinic__is_active=True,
    ).exists()


def _audit(membership: UserClinic, event_code: str, actor_user_id: int | None, metadata: dict) -> None:
    AuditService.log(
        event_code=event_code,
        entity_type="UserClinic",
        entity_id=membership.id,
        clinic_id=membership.clinic_id,
        actor_user_id=actor_user_id,
        metadata={"user_id": membership.user_id, **metadata},
    )


def _resolve_role(membership: UserClinic, role_id: UUID) -> Role:
    role = get_clinic_role_or_none(clinic_id=membership.clinic_id, role_id=role_id)
    if role is None or not role.is_active:
        raise ValidationError({"role_id": "Role not found in this clinic."})
    return role


class MembershipService:
    """
    User <-> clinic membership write-model: roles, overrides, activation.
    Every mutation lands in the audit trail.
    """

    @staticmethod
    def primary_role(membership: UserClinic) -> Optional[Role]:
        assignment = (
            MembershipRole.objects.select_related("role")
            .filter(membership=membership, is_primary=True)
            .first()
        )
        return assignment.role if assignment else None

    @staticmethod
    @transaction.atomic
    def create(
        *,
        user_id: int,
        clinic_id: UUID,
        role_ids: Iterable[UUID],
        assigned_by_id: int | None = None,
        primary_role_id: UUID | None = None,
    ) -> UserClinic:
        role_ids = list(dict.fromkeys(role_ids))
        if not role_ids:
            raise ValidationError({"role_ids": "A membership needs at least one role."})

        if primary_role_id is not None and primary_role_id not in role_ids:
            raise ValidationError({"primary_role_id": "Primary role must be one of role_ids."})

        if not get_user_model().objects.filter(id=user_id).exists():
            raise ValidationError({"user_id": "User not found."})

        # Pre-check; the uq_user_clinic constraint catches the concurrent case.
        if UserClinic.objects.filter(user_id=user_id, clinic_id=clinic_id).exists():
            raise DuplicateMembership()

        membership = UserClinic.objects.create(
            user_id=user_id,
            clinic_id=clinic_id,
            schema_version=MembershipSchema.RBAC,
        )

        for role_id in role_ids:
            MembershipService.assign_role(
                membership=membership,
                role_id=role_id,
                assigned_by_id=assigned_by_id,
                is_primary=(role_id == primary_role_id),
            )

        logger.info("user %s joined clinic %s with %d role(s)", user_id, clinic_id, len(role_ids))
        return membership

    @staticmethod
    @transaction.atomic
    def create_legacy(
        *,
        user_id: int,
        clinic_id: UUID,
        legacy_role: str,
        permissions: Optional[list[str]] = None,
    ) -> UserClinic:
        """
        Pre-RBAC membership: one role string + flat permission list, no roles.
        Converted later by migrate_legacy_memberships.
        """
        if UserClinic.objects.filter(user_id=user_id, clinic_id=clinic_id).exists():
            raise DuplicateMembership()

        return UserClinic.objects.create(
            user_id=user_id,
            clinic_id=clinic_id,
            legacy_role=(legacy_role or "").strip().lower(),
            permissions=list(permissions or []),
            schema_version=MembershipSchema.LEGACY,
        )

    @staticmethod
    @transaction.atomic
    def assign_role(
        *,
        membership: UserClinic,
        role_id: UUID,
        assigned_by_id: int | None = None,
        is_primary: bool = False,
    ) -> UserClinic:
        role = _resolve_role(membership, role_id)
        now = timezone.now()
        assignments = MembershipRole.objects.filter(membership=membership)

        existing = assignments.filter(role=role).first()
        if existing is not None:
            existing.assigned_at = now
            existing.assigned_by_id = assigned_by_id
            if is_primary and not existing.is_primary:
                assignments.exclude(id=existing.id).update(is_primary=False)
                existing.is_primary = True
            existing.save(update_fields=["assigned_at", "assigned_by", "is_primary", "updated_at"])
            is_primary = existing.is_primary
        else:
            # first role is always primary; an explicit primary demotes the rest
            if is_primary or not assignments.exists():
                assignments.update(is_primary=False)
                is_primary = True
            MembershipRole.objects.create(
                membership=membership,
                role=role,
                assigned_at=now,
                assigned_by_id=assigned_by_id,
                is_primary=is_primary,
            )
            Role.objects.filter(id=role.id).update(user_count=F("user_count") + 1)

        _audit(
            membership,
            "membership.role_assigned",
            assigned_by_id,
            {"role_id": str(role.id), "role_name": role.name, "is_primary": is_primary},
        )
        membership.refresh_from_db()
        return membership

    @staticmethod
    @transaction.atomic
    def remove_role(
        *,
        membership: UserClinic,
        role_id: UUID,
        removed_by_id: int | None = None,
        reason: str | None = None,
    ) -> UserClinic:
        assignments = MembershipRole.objects.filter(membership=membership)

        assignment = assignments.filter(role_id=role_id).first()
        if assignment is None:
            raise RoleNotAssigned()
        if assignments.count() == 1:
            raise LastRole()

        if assignment.is_primary:
            successor = assignments.exclude(id=assignment.id).order_by("created_at").first()
            successor.is_primary = True
            successor.save(update_fields=["is_primary", "updated_at"])

        # user_count is decremented by the post_delete receiver
        assignment.delete()

        _audit(
            membership,
            "membership.role_removed",
            removed_by_id,
            {"role_id": str(role_id), "reason": reason},
        )
        membership.refresh_from_db()
        return membership

    @staticmethod
    def _set_override(
        *,
        membership: UserClinic,
        permission_name: str,
        granted: bool,
        actor_user_id: int | None,
        reason: str | None,
    ) -> PermissionOverride:
        name = (permission_name or "").strip().lower()
        if not name:
            raise ValidationError({"permission_name": "This field is required."})

        held = effective_permissions(membership)
        if granted:
            validate_grantable([name], held)
        else:
            ensure_permissions_exist([name])
            validate_revocable(name, held - {name})

        override = PermissionOverride.objects.filter(membership=membership, permission_name=name).first()
        if override is None:
            override = PermissionOverride(membership=membership, permission_name=name)

        override.granted = granted
        override.granted_at = timezone.now()
        override.granted_by_id = actor_user_id
        if reason:
            override.reason = reason
        override.save()

        _audit(
            membership,
            "membership.permission_granted" if granted else "membership.permission_revoked",
            actor_user_id,
            {"permission_name": name, "reason": reason},
        )
        return override

    @staticmethod
    @transaction.atomic
    def grant_permission(
        *,
        membership: UserClinic,
        permission_name: str,
        granted_by_id: int | None = None,
        reason: str | None = None,
    ) -> PermissionOverride:
        return MembershipService._set_override(
            membership=membership,
            permission_name=permission_name,
            granted=True,
            actor_user_id=granted_by_id,
            reason=reason,
        )

    @staticmethod
    @transaction.atomic
    def revoke_permission(
        *,
        membership: UserClinic,
        permission_name: str,
        revoked_by_id: int | None = None,
        reason: str | None = None,
    ) -> PermissionOverride:
        return MembershipService._set_override(
            membership=membership,
            permission_name=permission_name,
            granted=False,
            actor_user_id=revoked_by_id,
            reason=reason,
        )

    @staticmethod
    @transaction.atomic
    def set_active(*, membership: UserClinic, is_active: bool, actor_user_id: int | None = None) -> UserClinic:
        # idempotent no-op
        if membership.is_active == is_active:
            return membership

        membership.is_active = is_active
        membership.save(update_fields=["is_active", "updated_at"])
        _audit(
            membership,
            "membership.activated" if is_active else "membership.deactivated",
            actor_user_id,
            {},
        )
        return membership

    @staticmethod
    def activate(*, membership: UserClinic, actor_user_id: int | None = None) -> UserClinic:
        return MembershipService.set_active(membership=membership, is_active=True, actor_user_id=actor_user_id)

    @staticmethod
    def deactivate(*, membership: UserClinic, actor_user_id: int | None = None) -> UserClinic:
        return MembershipService.set_active(membership=membership, is_active=False, actor_user_id=actor_user_id)
