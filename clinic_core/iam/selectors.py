# clinic_core/iam/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import Q, QuerySet

from clinic_core.iam.models import Permission, Role, UserClinic


# ---- Permission catalog ----

def permission_qs() -> QuerySet[Permission]:
    return Permission.objects.all()


def permissions_by_module(module: str, sub_module: str | None = None) -> QuerySet[Permission]:
    qs = Permission.objects.filter(module=module)
    if sub_module:
        qs = qs.filter(sub_module=sub_module)
    return qs.order_by("module", "sub_module", "action")


def system_permissions() -> QuerySet[Permission]:
    return Permission.objects.filter(is_system_permission=True).order_by("module", "action")


def get_permission_or_none(*, name: str) -> Optional[Permission]:
    return Permission.objects.filter(name=(name or "").strip().lower()).first()


def existing_permission_names(names) -> set[str]:
    return set(Permission.objects.filter(name__in=list(names)).values_list("name", flat=True))


# ---- Roles ----

def role_qs() -> QuerySet[Role]:
    return Role.objects.select_related("inherits_from", "clinic")


def system_roles() -> QuerySet[Role]:
    return role_qs().filter(is_system_role=True, is_active=True).order_by("-priority", "name")


def clinic_roles(clinic_id: UUID) -> QuerySet[Role]:
    """Roles usable inside a clinic: its own custom roles plus every system role."""
    return (
        role_qs()
        .filter(Q(clinic_id=clinic_id) | Q(is_system_role=True), is_active=True)
        .order_by("-priority", "name")
    )


def get_clinic_role_or_none(*, clinic_id: UUID, role_id: UUID) -> Optional[Role]:
    return role_qs().filter(Q(clinic_id=clinic_id) | Q(is_system_role=True), id=role_id).first()


def get_system_role_by_name(name: str) -> Optional[Role]:
    return role_qs().filter(is_system_role=True, name=name).first()


# ---- Memberships ----

def membership_qs() -> QuerySet[UserClinic]:
    return UserClinic.objects.select_related("clinic", "user").prefetch_related(
        "role_assignments__role",
        "permission_overrides",
    )


def clinic_memberships(clinic_id: UUID) -> QuerySet[UserClinic]:
    return membership_qs().filter(clinic_id=clinic_id).order_by("joined_at")


def get_clinic_membership_or_none(*, clinic_id: UUID, membership_id: UUID) -> Optional[UserClinic]:
    return membership_qs().filter(clinic_id=clinic_id, id=membership_id).first()
