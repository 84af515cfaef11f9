# clinic_core/iam/services/resolver.py
"""
Effective permission resolution for a (user, clinic) pair.

Nothing is cached: each call walks the assigned roles and their
inheritance chains again.
"""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from clinic_core.iam.models import MembershipRole, PermissionOverride, UserClinic
from clinic_core.iam.services.roles import RoleService


def get_active_membership(*, user_id: int, clinic_id: UUID) -> Optional[UserClinic]:
    return (
        UserClinic.objects.select_related("clinic")
        .filter(user_id=user_id, clinic_id=clinic_id, is_active=True, clinic__is_active=True)
        .first()
    )


def _assigned_roles(membership: UserClinic):
    return [
        a.role
        for a in MembershipRole.objects.select_related("role").filter(membership=membership).order_by("created_at")
    ]


def effective_role_names(membership: UserClinic) -> set[str]:
    return {role.name for role in _assigned_roles(membership)}


def effective_permissions(membership: UserClinic) -> set[str]:
    """
    roles (with inheritance) | legacy flat list, then overrides:
    granted=True adds, granted=False removes.
    """
    permissions: set[str] = set()
    for role in _assigned_roles(membership):
        permissions |= RoleService.get_effective_permissions(role)

    permissions |= set(membership.permissions or [])

    for name, granted in PermissionOverride.objects.filter(membership=membership).values_list(
        "permission_name", "granted"
    ):
        if granted:
            permissions.add(name)
        else:
            permissions.discard(name)

    return permissions


def has_permission(*, user_id: int, clinic_id: UUID, permission_name: str) -> bool:
    membership = get_active_membership(user_id=user_id, clinic_id=clinic_id)
    if membership is None:
        return False
    return permission_name in effective_permissions(membership)


def has_role(*, user_id: int, clinic_id: UUID, role_name: str) -> bool:
    membership = get_active_membership(user_id=user_id, clinic_id=clinic_id)
    if membership is None:
        return False
    return role_name in effective_role_names(membership)


def get_user_permissions(*, user_id: int, clinic_id: UUID) -> list[str]:
    membership = get_active_membership(user_id=user_id, clinic_id=clinic_id)
    if membership is None:
        return []
    return sorted(effective_permissions(membership))
