import uuid

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import ValidationError

from clinic_core.audit.models import AuditEvent
from clinic_core.iam.exceptions import (
    MissingDependency,
    RoleInUse,
    RoleLocked,
    RoleProtected,
    SourceRoleNotFound,
)
from clinic_core.iam.models import Role, UserClinic
from clinic_core.iam.selectors import clinic_roles, get_system_role_by_name, system_roles
from clinic_core.iam.services.membership import MembershipService
from clinic_core.iam.services.roles import RoleService

pytestmark = pytest.mark.django_db


def custom_role(clinic, name, permissions=(), parent=None):
    return RoleService.create_custom_role(
        clinic_id=clinic.id,
        name=name,
        display_name=name.title(),
        permission_names=permissions,
        inherits_from_id=parent.id if parent else None,
    )


def test_system_role_is_never_bound_to_a_clinic(clinic):
    role = Role(name="auditor", display_name="Auditor", is_system_role=True, clinic=clinic)
    role.save()

    role.refresh_from_db()
    assert role.clinic_id is None
    assert role.can_be_deleted is False


def test_custom_role_requires_a_clinic(db):
    with pytest.raises(DjangoValidationError):
        Role(name="floater", display_name="Floater", is_system_role=False).save()


def test_role_cannot_inherit_from_itself(clinic, seeded):
    role = custom_role(clinic, "front_desk")
    role.inherits_from = role
    with pytest.raises(DjangoValidationError) as exc:
        role.save()
    assert "Role cannot inherit from itself" in str(exc.value)


def test_multi_hop_inheritance_cycle_is_rejected(clinic, seeded):
    a = custom_role(clinic, "role_a")
    b = custom_role(clinic, "role_b", parent=a)
    c = custom_role(clinic, "role_c", parent=b)

    with pytest.raises(DjangoValidationError) as exc:
        RoleService.set_parent(role=a, parent_role_id=c.id)
    assert "cycle" in str(exc.value)


def test_effective_permissions_follow_the_parent_chain(clinic, seeded):
    base = custom_role(clinic, "base", permissions=["patients.view"])
    mid = custom_role(clinic, "mid", permissions=["appointments.view"], parent=base)
    top = custom_role(clinic, "top", permissions=["services.view"], parent=mid)

    assert RoleService.get_effective_permissions(top) == {"patients.view", "appointments.view", "services.view"}
    assert RoleService.has_permission(role=top, permission_name="services.view")
    assert not RoleService.has_permission(role=top, permission_name="patients.view")


def test_create_custom_role_normalizes_name_and_audits(clinic, seeded):
    role = custom_role(clinic, "  Night Shift ", permissions=["patients.view"])

    assert role.name == "night_shift"
    assert role.is_system_role is False
    assert role.color == "#6366f1"
    assert role.priority == 50
    assert AuditEvent.objects.filter(event_code="role.created", entity_id=str(role.id)).exists()

    with pytest.raises(ValidationError):
        custom_role(clinic, "night shift")


def test_custom_role_cannot_take_a_system_role_name(clinic, seeded):
    with pytest.raises(ValidationError):
        custom_role(clinic, "doctor")


def test_custom_role_permissions_must_satisfy_dependencies(clinic, seeded):
    with pytest.raises(MissingDependency):
        custom_role(clinic, "refunder", permissions=["payments.refund"])

    parent = custom_role(clinic, "cashier", permissions=["payments.view", "payments.process"])
    child = custom_role(clinic, "refunder", permissions=["payments.refund"], parent=parent)
    assert "payments.refund" in RoleService.get_effective_permissions(child)


def test_clinic_roles_include_system_roles_only_once_per_clinic(clinic, other_clinic, seeded):
    custom_role(clinic, "mine")
    custom_role(other_clinic, "theirs")

    names = set(clinic_roles(clinic.id).values_list("name", flat=True))
    assert "mine" in names
    assert "theirs" not in names
    assert {"admin", "doctor", "staff"} <= names


def test_system_roles_are_ordered_by_priority(clinic, seeded):
    custom_role(clinic, "mine")
    Role.objects.filter(name="accountant").update(is_active=False)

    names = list(system_roles().values_list("name", flat=True))
    assert names == ["admin", "doctor", "nurse", "receptionist", "staff"]


def test_admin_role_is_locked(seeded):
    admin = get_system_role_by_name("admin")
    with pytest.raises(RoleLocked):
        RoleService.grant_permission(role=admin, permission_name="patients.view")


def test_grant_and_revoke(clinic, seeded):
    role = custom_role(clinic, "helper")

    RoleService.grant_permission(role=role, permission_name="Patients.View", actor_user_id=None)
    assert RoleService.has_permission(role=role, permission_name="patients.view")

    RoleService.revoke_permission(role=role, permission_name="patients.view")
    assert not RoleService.has_permission(role=role, permission_name="patients.view")

    codes = list(AuditEvent.objects.filter(entity_id=str(role.id)).values_list("event_code", flat=True))
    assert "role.permission_granted" in codes
    assert "role.permission_revoked" in codes


def test_set_permissions_replaces_grants(clinic, seeded):
    role = custom_role(clinic, "rotating", permissions=["patients.view"])

    RoleService.set_permissions(role=role, permission_names=["services.view", "departments.view"])
    assert RoleService.get_effective_permissions(role) == {"services.view", "departments.view"}


def test_copy_from_role_takes_effective_set(clinic, seeded):
    parent = custom_role(clinic, "parent_role", permissions=["patients.view"])
    source = custom_role(clinic, "source_role", permissions=["services.view"], parent=parent)
    target = custom_role(clinic, "target_role", permissions=["tests.view"])

    RoleService.copy_permissions(role=target, source_role_id=source.id)
    assert set(target.grants.values_list("permission_name", flat=True)) == {"patients.view", "services.view"}


def test_copy_from_missing_role(clinic, seeded):
    target = custom_role(clinic, "orphan")
    with pytest.raises(SourceRoleNotFound):
        RoleService.copy_from_role(role=target, source_role_id=uuid.uuid4())


def test_delete_rules(clinic, seeded, make_member):
    with pytest.raises(RoleProtected):
        RoleService.delete_role(role=get_system_role_by_name("staff"))

    role = custom_role(clinic, "temp")
    make_member(clinic, roles=["staff"])
    membership = UserClinic.objects.get(clinic=clinic)
    MembershipService.assign_role(membership=membership, role_id=role.id)
    role.refresh_from_db()
    assert role.user_count == 1

    with pytest.raises(RoleInUse):
        RoleService.delete_role(role=role)

    MembershipService.remove_role(membership=membership, role_id=role.id)
    role.refresh_from_db()
    RoleService.delete_role(role=role)
    assert not Role.objects.filter(id=role.id).exists()


def test_deleting_a_member_frees_the_role(clinic, seeded, make_member):
    role = custom_role(clinic, "seasonal")
    user = make_member(clinic, roles=["staff"])
    membership = UserClinic.objects.get(user=user)
    MembershipService.assign_role(membership=membership, role_id=role.id)

    user.delete()

    role.refresh_from_db()
    assert role.user_count == 0
    assert get_system_role_by_name("staff").user_count == 0

    RoleService.delete_role(role=role)
    assert not Role.objects.filter(id=role.id).exists()


def test_revoke_keeps_dependents_satisfied(clinic, seeded):
    role = custom_role(clinic, "cashier", permissions=["payments.view", "payments.process", "payments.refund"])

    with pytest.raises(MissingDependency):
        RoleService.revoke_permission(role=role, permission_name="payments.view")
    assert RoleService.has_permission(role=role, permission_name="payments.view")

    RoleService.revoke_permission(role=role, permission_name="payments.refund")
    RoleService.revoke_permission(role=role, permission_name="payments.view")
    assert RoleService.get_effective_permissions(role) == {"payments.process"}


def test_revoke_allowed_when_parent_still_grants_it(clinic, seeded):
    parent = custom_role(clinic, "viewer", permissions=["payments.view"])
    child = custom_role(
        clinic, "refunds", permissions=["payments.view", "payments.process", "payments.refund"], parent=parent
    )

    RoleService.revoke_permission(role=child, permission_name="payments.view")
    assert not child.grants.filter(permission_name="payments.view").exists()
    assert "payments.view" in RoleService.get_effective_permissions(child)
