# clinic_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from clinic_core.clinics.models import Clinic


def clinic_headers(clinic):
    """
    Clinic context header for the authorization gate.
    DRF test client requires HTTP_ prefix.
    """
    return {"HTTP_X_CLINIC_ID": str(clinic.id)}


@pytest.fixture
def clinic(db):
    return Clinic.objects.create(code="main-clinic", name="Main Clinic")


@pytest.fixture
def other_clinic(db):
    return Clinic.objects.create(code="other-clinic", name="Other Clinic")


@pytest.fixture
def seeded(db):
    """Default permission catalog + system roles."""
    from clinic_core.iam.services.seeding import seed_permissions, seed_roles

    seed_permissions()
    seed_roles()


@pytest.fixture
def make_user(db):
    User = get_user_model()
    counter = {"n": 0}

    def _make(username=None, **extra):
        counter["n"] += 1
        return User.objects.create_user(
            username=username or f"user{counter['n']}",
            password="testpass",
            is_active=True,
            **extra,
        )

    return _make


@pytest.fixture
def make_member(db, seeded, make_user):
    """
    make_member(clinic, roles=["doctor"]) -> user with an RBAC membership
    holding the named system roles (first one primary).
    """
    from clinic_core.iam.selectors import get_system_role_by_name
    from clinic_core.iam.services.membership import MembershipService

    def _make(clinic, roles=("staff",), user=None):
        user = user or make_user()
        MembershipService.create(
            user_id=user.id,
            clinic_id=clinic.id,
            role_ids=[get_system_role_by_name(name).id for name in roles],
        )
        return user

    return _make


@pytest.fixture
def admin_user(clinic, make_member):
    return make_member(clinic, roles=["admin"])


@pytest.fixture
def api_client(admin_user):
    c = APIClient()
    c.force_authenticate(user=admin_user)
    return c
