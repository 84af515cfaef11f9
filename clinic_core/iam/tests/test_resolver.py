import pytest

from clinic_core.clinics.services import ClinicService
from clinic_core.iam.models import UserClinic
from clinic_core.iam.services.membership import MembershipService
from clinic_core.iam.services.resolver import get_user_permissions, has_permission, has_role
from clinic_core.iam.services.roles import RoleService

pytestmark = pytest.mark.django_db


def test_permissions_come_from_every_assigned_role(clinic, make_member):
    user = make_member(clinic, roles=["staff", "receptionist"])

    perms = get_user_permissions(user_id=user.id, clinic_id=clinic.id)
    assert "training.view" in perms
    assert "payments.process" in perms
    assert perms == sorted(perms)

    assert has_role(user_id=user.id, clinic_id=clinic.id, role_name="receptionist")
    assert not has_role(user_id=user.id, clinic_id=clinic.id, role_name="doctor")


def test_inherited_permissions_are_effective(clinic, make_member):
    parent = RoleService.create_custom_role(
        clinic_id=clinic.id, name="senior", display_name="Senior", permission_names=["analytics.reports"]
    )
    child = RoleService.create_custom_role(
        clinic_id=clinic.id, name="junior", display_name="Junior", inherits_from_id=parent.id
    )
    user = make_member(clinic, roles=["staff"])
    m = UserClinic.objects.get(user=user, clinic=clinic)
    MembershipService.assign_role(membership=m, role_id=child.id)

    assert has_permission(user_id=user.id, clinic_id=clinic.id, permission_name="analytics.reports")


def test_overrides_apply_on_top_of_roles(clinic, make_member):
    user = make_member(clinic, roles=["staff"])
    m = UserClinic.objects.get(user=user, clinic=clinic)

    MembershipService.grant_permission(membership=m, permission_name="invoices.view")
    MembershipService.revoke_permission(membership=m, permission_name="patients.view")

    assert has_permission(user_id=user.id, clinic_id=clinic.id, permission_name="invoices.view")
    assert not has_permission(user_id=user.id, clinic_id=clinic.id, permission_name="patients.view")


def test_legacy_flat_list_still_counts(clinic, make_user):
    user = make_user()
    MembershipService.create_legacy(
        user_id=user.id, clinic_id=clinic.id, legacy_role="staff", permissions=["patients.view"]
    )
    assert get_user_permissions(user_id=user.id, clinic_id=clinic.id) == ["patients.view"]


def test_no_active_membership_means_nothing(clinic, other_clinic, make_member):
    user = make_member(clinic, roles=["doctor"])

    assert get_user_permissions(user_id=user.id, clinic_id=other_clinic.id) == []
    assert not has_role(user_id=user.id, clinic_id=other_clinic.id, role_name="doctor")

    ClinicService.set_active(clinic_id=clinic.id, is_active=False)
    assert not has_permission(user_id=user.id, clinic_id=clinic.id, permission_name="patients.view")
