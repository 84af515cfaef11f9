from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from clinic_core.iam.models import Permission, Role, UserClinic
from clinic_core.iam.seed_data import ALL_PERMISSION_NAMES, DEFAULT_ROLES
from clinic_core.iam.services.membership import MembershipService

pytestmark = pytest.mark.django_db


def run(*args, **kwargs) -> str:
    out = StringIO()
    call_command(*args, stdout=out, **kwargs)
    return out.getvalue()


def test_seed_commands():
    out = run("seed_permissions")
    assert f"Created: {len(ALL_PERMISSION_NAMES)}" in out

    out = run("seed_roles")
    assert f"Created: {len(DEFAULT_ROLES)}" in out
    assert Role.objects.filter(is_system_role=True).count() == len(DEFAULT_ROLES)


def test_setup_permission_system(clinic, make_user):
    user = make_user()
    MembershipService.create_legacy(user_id=user.id, clinic_id=clinic.id, legacy_role="receptionist")

    out = run("setup_permission_system", "--skip-migration")
    assert "Legacy migration skipped." in out
    assert UserClinic.objects.get(user=user).schema_version == 1

    out = run("setup_permission_system")
    assert "1 migrated" in out
    assert "Permission system ready." in out


def test_rollback_needs_confirmation(seeded):
    with pytest.raises(CommandError):
        run("rollback_permission_system")
    assert Permission.objects.exists()

    out = run("rollback_permission_system", "--yes")
    assert "Rolled back." in out
    assert not Permission.objects.exists()


def test_rollback_refused_in_production(seeded, settings):
    settings.ENVIRONMENT = "prod"
    with pytest.raises(CommandError, match="not allowed in production"):
        run("rollback_permission_system", "--yes")
