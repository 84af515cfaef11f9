import pytest
from rest_framework.test import APIClient

from clinic_core.conftest import clinic_headers
from clinic_core.iam.models import UserClinic
from clinic_core.iam.selectors import get_system_role_by_name

pytestmark = pytest.mark.django_db

URL = "/api/v1/rbac/memberships/"


def membership_url(membership, suffix=""):
    return f"{URL}{membership.id}/{suffix}"


def client_for(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


def test_list_clinic_members(api_client, admin_user, clinic, other_clinic, make_member):
    make_member(clinic, roles=["doctor"])
    make_member(other_clinic, roles=["doctor"])

    res = api_client.get(URL, **clinic_headers(clinic))
    assert res.status_code == 200
    rows = res.json()
    assert len(rows) == 2
    assert {r["primary_role"] for r in rows} == {"admin", "doctor"}


def test_add_user_to_clinic(api_client, clinic, make_user):
    user = make_user()
    nurse = get_system_role_by_name("nurse")
    staff = get_system_role_by_name("staff")

    payload = {"user_id": user.id, "role_ids": [str(nurse.id), str(staff.id)], "primary_role_id": str(staff.id)}
    res = api_client.post(URL, payload, format="json", **clinic_headers(clinic))
    assert res.status_code == 201
    body = res.json()
    assert body["primary_role"] == "staff"
    assert {r["name"] for r in body["roles"]} == {"nurse", "staff"}

    again = api_client.post(URL, payload, format="json", **clinic_headers(clinic))
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "duplicate_membership"
    assert again.json()["error"]["message"] == "User is already associated with this clinic"


def test_assign_and_remove_roles(api_client, clinic, make_member):
    user = make_member(clinic, roles=["staff"])
    m = UserClinic.objects.get(user=user, clinic=clinic)
    doctor = get_system_role_by_name("doctor")
    staff = get_system_role_by_name("staff")
    headers = clinic_headers(clinic)

    res = api_client.post(
        membership_url(m, "assign-role/"), {"role_id": str(doctor.id), "is_primary": True}, format="json", **headers
    )
    assert res.status_code == 200
    assert res.json()["primary_role"] == "doctor"

    res = api_client.post(membership_url(m, "remove-role/"), {"role_id": str(doctor.id)}, format="json", **headers)
    assert res.status_code == 200
    assert res.json()["primary_role"] == "staff"

    res = api_client.post(membership_url(m, "remove-role/"), {"role_id": str(staff.id)}, format="json", **headers)
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "last_role"


def test_overrides_change_effective_permissions(api_client, clinic, make_member):
    user = make_member(clinic, roles=["staff"])
    m = UserClinic.objects.get(user=user, clinic=clinic)
    headers = clinic_headers(clinic)

    member_client = client_for(user)
    assert member_client.get("/api/v1/rbac/roles/", **headers).status_code == 403

    res = api_client.post(
        membership_url(m, "grant-permission/"),
        {"permission_name": "permissions.view", "reason": "covering"},
        format="json",
        **headers,
    )
    assert res.status_code == 200
    assert res.json()["overrides"] == [{"permission_name": "permissions.view", "granted": True, "reason": "covering"}]
    assert member_client.get("/api/v1/rbac/roles/", **headers).status_code == 200

    api_client.post(membership_url(m, "revoke-permission/"), {"permission_name": "permissions.view"}, format="json", **headers)
    assert member_client.get("/api/v1/rbac/roles/", **headers).status_code == 403


def test_deactivated_member_loses_clinic_access(api_client, clinic, make_member):
    user = make_member(clinic, roles=["staff"])
    m = UserClinic.objects.get(user=user, clinic=clinic)
    headers = clinic_headers(clinic)

    res = api_client.post(membership_url(m, "deactivate/"), **headers)
    assert res.status_code == 200
    assert res.json()["is_active"] is False

    res = client_for(user).get("/api/v1/me/", **headers)
    assert res.status_code == 200
    assert res.json()["active_clinic"] is None

    res = client_for(user).get("/api/v1/rbac/permissions/", **headers)
    assert res.json()["error_code"] == "CLINIC_ACCESS_DENIED"

    res = api_client.post(membership_url(m, "activate/"), **headers)
    assert res.json()["is_active"] is True


def test_staff_cannot_manage_memberships(clinic, make_member):
    user = make_member(clinic, roles=["staff"])
    m = UserClinic.objects.get(user=user, clinic=clinic)

    res = client_for(user).post(
        membership_url(m, "grant-permission/"), {"permission_name": "users.view"}, format="json", **clinic_headers(clinic)
    )
    assert res.status_code == 403
    assert res.json()["error_code"] == "PERMISSION_DENIED"


def test_membership_of_another_clinic_is_not_found(api_client, clinic, other_clinic, make_member):
    user = make_member(other_clinic, roles=["staff"])
    m = UserClinic.objects.get(user=user, clinic=other_clinic)

    res = api_client.post(membership_url(m, "deactivate/"), **clinic_headers(clinic))
    assert res.status_code == 404


def test_add_unknown_user_is_a_validation_error(api_client, clinic):
    staff = get_system_role_by_name("staff")

    res = api_client.post(URL, {"user_id": 999999, "role_ids": [str(staff.id)]}, format="json", **clinic_headers(clinic))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"
    assert not UserClinic.objects.filter(user_id=999999).exists()


def test_grant_permission_with_missing_dependency_is_a_conflict(api_client, clinic, make_member):
    user = make_member(clinic, roles=["staff"])
    m = UserClinic.objects.get(user=user, clinic=clinic)

    res = api_client.post(
        membership_url(m, "grant-permission/"),
        {"permission_name": "payments.refund"},
        format="json",
        **clinic_headers(clinic),
    )
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "missing_dependency"
