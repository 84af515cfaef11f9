import pytest
from django.core.exceptions import ImproperlyConfigured
from rest_framework.response import Response
from rest_framework.test import APIRequestFactory, force_authenticate
from rest_framework.views import APIView

from clinic_core.audit.models import AuditEvent
from clinic_core.audit.services import PERMISSION_CHECK_EVENT
from clinic_core.conftest import clinic_headers
from clinic_core.iam.authorization import Operator, PermissionOptions, get_auth_context
from clinic_core.iam.models import UserClinic, UserProfile
from clinic_core.iam.permissions import (
    require_admin,
    require_all_permissions,
    require_all_roles,
    require_any_role,
    require_permission,
    require_permissions,
    require_role,
    without_clinic_context,
)

pytestmark = pytest.mark.django_db


# ----------------------------
# Helpers
# ----------------------------
def guarded(permission_class):
    class GuardedView(APIView):
        permission_classes = [permission_class]

        def get(self, request):
            ctx = get_auth_context(request)
            return Response(
                {
                    "clinic_id": str(ctx.clinic_id) if ctx.clinic_id else None,
                    "is_admin": ctx.is_admin,
                    "permissions": sorted(ctx.permissions),
                    "roles": sorted(ctx.roles),
                }
            )

    return GuardedView.as_view()


def call(permission_class, *, user=None, clinic=None, **extra):
    factory = APIRequestFactory()
    headers = clinic_headers(clinic) if clinic is not None else {}
    headers.update(extra)
    request = factory.get("/api/v1/guarded/", **headers)
    if user is not None:
        force_authenticate(request, user=user)
    return guarded(permission_class)(request)


def last_check():
    return AuditEvent.objects.filter(event_code=PERMISSION_CHECK_EVENT).order_by("-occurred_at").first()


# ----------------------------
# AuthenticationCheck
# ----------------------------
def test_anonymous_request_is_rejected_with_auth_required():
    res = call(require_permissions("patients.view"))

    assert res.status_code == 401
    assert res.data["success"] is False
    assert res.data["error_code"] == "AUTH_REQUIRED"
    assert res.data["message"] == "Authentication required"
    assert res.data["request_id"]

    event = last_check()
    assert event.metadata["success"] is False
    assert event.metadata["error_code"] == "AUTH_REQUIRED"
    assert event.entity_id == "GET /api/v1/guarded/"


# ----------------------------
# ClinicContextCheck
# ----------------------------
def test_missing_clinic_context(make_member, clinic):
    user = make_member(clinic, roles=["staff"])
    res = call(require_permissions("patients.view"), user=user)

    assert res.status_code == 400
    assert res.data["error_code"] == "CLINIC_REQUIRED"
    assert res.data["message"] == "Clinic context required"


def test_unparsable_clinic_header(make_member, clinic):
    user = make_member(clinic, roles=["staff"])
    res = call(require_permissions("patients.view"), user=user, HTTP_X_CLINIC_ID="not-a-uuid")

    assert res.status_code == 400
    assert res.data["error_code"] == "CLINIC_REQUIRED"


def test_default_clinic_is_used_without_header(make_member, clinic):
    user = make_member(clinic, roles=["staff"])
    UserProfile.objects.create(user=user, default_clinic=clinic)

    res = call(require_permissions("patients.view"), user=user)
    assert res.status_code == 200
    assert res.data["clinic_id"] == str(clinic.id)


def test_non_member_is_denied(make_member, clinic, other_clinic):
    user = make_member(clinic, roles=["admin"])
    res = call(require_permissions("patients.view"), user=user, clinic=other_clinic)

    assert res.status_code == 403
    assert res.data["error_code"] == "CLINIC_ACCESS_DENIED"
    assert res.data["message"] == "Access denied to this clinic"


def test_inactive_membership_is_denied(make_member, clinic):
    user = make_member(clinic, roles=["staff"])
    UserClinic.objects.filter(user=user).update(is_active=False)

    res = call(require_permissions("patients.view"), user=user, clinic=clinic)
    assert res.data["error_code"] == "CLINIC_ACCESS_DENIED"


# ----------------------------
# Permission / role checks
# ----------------------------
def test_member_with_permission_is_allowed_and_audited(make_member, clinic):
    user = make_member(clinic, roles=["staff"])
    res = call(require_permissions("patients.view"), user=user, clinic=clinic)

    assert res.status_code == 200
    assert "patients.view" in res.data["permissions"]
    assert res.data["roles"] == ["staff"]

    event = last_check()
    assert event.metadata["success"] is True
    assert event.clinic_id == clinic.id
    assert event.actor_user_id == user.id
    assert event.metadata["required_permissions"] == ["patients.view"]
    assert event.metadata["operator"] == "OR"


def test_missing_permission_reports_required_and_held(make_member, clinic):
    user = make_member(clinic, roles=["staff"])
    res = call(require_permissions("invoices.view"), user=user, clinic=clinic)

    assert res.status_code == 403
    assert res.data["error_code"] == "PERMISSION_DENIED"
    assert res.data["message"] == "Insufficient permissions"
    assert res.data["required_permissions"] == ["invoices.view"]
    assert "patients.view" in res.data["user_permissions"]
    assert last_check().metadata["error_code"] == "PERMISSION_DENIED"


def test_or_needs_one_and_needs_all(make_member, clinic):
    user = make_member(clinic, roles=["staff"])

    assert call(require_permissions("invoices.view", "patients.view"), user=user, clinic=clinic).status_code == 200

    res = call(require_all_permissions("invoices.view", "patients.view"), user=user, clinic=clinic)
    assert res.data["error_code"] == "PERMISSION_DENIED"

    res = call(require_all_permissions("services.view", "patients.view"), user=user, clinic=clinic)
    assert res.status_code == 200


def test_role_requirements(make_member, clinic):
    user = make_member(clinic, roles=["staff", "nurse"])

    assert call(require_role("nurse"), user=user, clinic=clinic).status_code == 200
    assert call(require_any_role("doctor", "staff"), user=user, clinic=clinic).status_code == 200
    assert call(require_all_roles("nurse", "staff"), user=user, clinic=clinic).status_code == 200

    res = call(require_all_roles("nurse", "doctor"), user=user, clinic=clinic)
    assert res.status_code == 403
    assert res.data["error_code"] == "ROLE_DENIED"
    assert res.data["message"] == "Insufficient role privileges"
    assert res.data["required_roles"] == ["nurse", "doctor"]
    assert res.data["user_roles"] == ["nurse", "staff"]


def test_permissions_are_checked_before_roles(make_member, clinic):
    user = make_member(clinic, roles=["staff"])
    res = call(require_permission(permissions=["invoices.view"], roles=["doctor"]), user=user, clinic=clinic)
    assert res.data["error_code"] == "PERMISSION_DENIED"


def test_empty_requirements_pass_for_members(make_member, clinic):
    user = make_member(clinic, roles=["staff"])
    assert call(require_permission(), user=user, clinic=clinic).status_code == 200


# ----------------------------
# AdminBypassCheck
# ----------------------------
def test_admin_role_bypasses_requirements(make_member, clinic):
    user = make_member(clinic, roles=["admin"])
    res = call(require_permission(permissions=["nothing.here"], roles=["doctor"]), user=user, clinic=clinic)

    assert res.status_code == 200
    assert res.data["is_admin"] is True


def test_identity_admin_flags_bypass_once_member(make_member, make_user, clinic):
    flagged = make_member(clinic, roles=["staff"])
    UserProfile.objects.create(user=flagged, is_admin=True)
    assert call(require_permissions("invoices.view"), user=flagged, clinic=clinic).status_code == 200

    superuser = make_member(clinic, roles=["staff"], user=make_user(is_superuser=True))
    assert call(require_permissions("invoices.view"), user=superuser, clinic=clinic).status_code == 200


def test_admin_flags_do_not_replace_membership(make_user, clinic, seeded):
    superuser = make_user(is_superuser=True)
    res = call(require_permissions("patients.view"), user=superuser, clinic=clinic)
    assert res.data["error_code"] == "CLINIC_ACCESS_DENIED"


def test_require_admin_has_no_bypass(make_member, make_user, clinic):
    superuser = make_member(clinic, roles=["staff"], user=make_user(is_superuser=True))
    res = call(require_admin(), user=superuser, clinic=clinic)
    assert res.data["error_code"] == "ROLE_DENIED"

    admin = make_member(clinic, roles=["admin"])
    assert call(require_admin(), user=admin, clinic=clinic).status_code == 200


def test_bypass_can_be_disabled(make_member, clinic):
    user = make_member(clinic, roles=["admin"])
    res = call(require_permission(permissions=["nothing.here"], admin_bypass=False), user=user, clinic=clinic)
    assert res.data["error_code"] == "PERMISSION_DENIED"


# ----------------------------
# CustomCheck
# ----------------------------
def test_custom_check_runs_before_permission_check(make_member, clinic):
    seen = {}

    def billing_staff_only(request, ctx):
        seen["clinic_id"] = ctx.clinic_id
        seen["is_staff"] = ctx.has_role("staff")
        return ctx.has_permission("invoices.view")

    user = make_member(clinic, roles=["staff"])
    res = call(require_permission(permissions=["invoices.view"], custom_check=billing_staff_only), user=user, clinic=clinic)

    assert res.status_code == 403
    assert res.data["error_code"] == "CUSTOM_PERMISSION_DENIED"
    assert res.data["message"] == "Custom permission check failed"
    assert seen["clinic_id"] == clinic.id
    assert seen["is_staff"] is True


def test_failing_check_becomes_permission_check_error(make_member, clinic):
    def broken(request, ctx):
        raise RuntimeError("boom")

    user = make_member(clinic, roles=["staff"])
    res = call(require_permission(custom_check=broken), user=user, clinic=clinic)

    assert res.status_code == 500
    assert res.data["error_code"] == "PERMISSION_CHECK_ERROR"
    assert res.data["message"] == "Internal server error during permission check"


# ----------------------------
# Options / context plumbing
# ----------------------------
def test_without_clinic_context(make_user, seeded):
    user = make_user(is_superuser=True)
    res = call(without_clinic_context(), user=user)

    assert res.status_code == 200
    assert res.data["clinic_id"] is None
    assert res.data["permissions"] == []
    assert res.data["is_admin"] is True


def test_options_are_typed():
    opts = PermissionOptions(permissions="patients.view", operator="AND")
    assert opts.permissions == ("patients.view",)
    assert opts.operator is Operator.AND

    with pytest.raises(TypeError):
        require_permission(permisions=["patients.view"])


def test_get_auth_context_requires_the_gate():
    request = APIRequestFactory().get("/api/v1/guarded/")
    with pytest.raises(ImproperlyConfigured):
        get_auth_context(request)


def test_permission_check_persistence_can_be_disabled(make_member, clinic, settings):
    settings.RBAC_AUDIT_PERMISSION_CHECKS = False
    user = make_member(clinic, roles=["staff"])

    call(require_permissions("patients.view"), user=user, clinic=clinic)
    assert not AuditEvent.objects.filter(event_code=PERMISSION_CHECK_EVENT).exists()
