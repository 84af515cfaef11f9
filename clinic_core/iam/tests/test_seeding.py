import pytest

from clinic_core.audit.models import AuditEvent
from clinic_core.iam.exceptions import RollbackForbidden
from clinic_core.iam.models import MembershipSchema, Permission, Role, UserClinic
from clinic_core.iam.seed_data import ALL_PERMISSION_NAMES, DEFAULT_ROLES
from clinic_core.iam.selectors import get_system_role_by_name
from clinic_core.iam.services.membership import MembershipService
from clinic_core.iam.services.resolver import effective_role_names
from clinic_core.iam.services.roles import RoleService
from clinic_core.iam.services.seeding import (
    migrate_legacy_memberships,
    rollback_permission_system,
    seed_permissions,
    seed_roles,
    setup_permission_system,
)

pytestmark = pytest.mark.django_db


def test_seeding_is_idempotent():
    first = seed_permissions()
    second = seed_permissions()
    assert first.created == len(ALL_PERMISSION_NAMES)
    assert second.created == 0
    assert second.updated == len(ALL_PERMISSION_NAMES)

    roles_first = seed_roles()
    roles_second = seed_roles()
    assert roles_first.created == len(DEFAULT_ROLES)
    assert roles_second.created == 0
    assert Role.objects.filter(is_system_role=True).count() == len(DEFAULT_ROLES)


def test_seeded_system_roles(seeded):
    admin = get_system_role_by_name("admin")
    assert admin.clinic_id is None
    assert admin.can_be_modified is False
    assert admin.can_be_deleted is False
    assert admin.priority == 100
    assert RoleService.get_effective_permissions(admin) == set(ALL_PERMISSION_NAMES)

    staff = get_system_role_by_name("staff")
    assert RoleService.get_effective_permissions(staff) == {
        "patients.view",
        "appointments.view",
        "services.view",
        "departments.view",
        "training.view",
    }


def test_seed_roles_skips_unknown_permissions(db):
    seed_permissions()
    result = seed_roles(
        [
            {
                "name": "auditor",
                "display_name": "Auditor",
                "description": "",
                "color": "#111111",
                "icon": "eye",
                "priority": 10,
                "can_be_modified": True,
                "permissions": ["patients.view", "ghost.permission"],
            }
        ]
    )
    assert result.created == 1
    assert RoleService.get_effective_permissions(get_system_role_by_name("auditor")) == {"patients.view"}


def test_legacy_migration_maps_roles_and_is_idempotent(clinic, seeded, make_user):
    nurse = make_user()
    unknown = make_user()
    blank = make_user()
    MembershipService.create_legacy(user_id=nurse.id, clinic_id=clinic.id, legacy_role="nurse")
    MembershipService.create_legacy(user_id=unknown.id, clinic_id=clinic.id, legacy_role="janitor")
    MembershipService.create_legacy(user_id=blank.id, clinic_id=clinic.id, legacy_role="")

    result = migrate_legacy_memberships()
    assert (result.migrated, result.skipped, result.failed) == (2, 1, 0)

    m = UserClinic.objects.get(user=nurse, clinic=clinic)
    assert m.schema_version == MembershipSchema.RBAC
    assert m.permissions == []
    assert effective_role_names(m) == {"nurse"}
    assert MembershipService.primary_role(m).name == "nurse"

    fallback = UserClinic.objects.get(user=unknown, clinic=clinic)
    assert effective_role_names(fallback) == {"staff"}

    assert AuditEvent.objects.filter(event_code="membership.role_migrated").count() == 2

    again = migrate_legacy_memberships()
    assert again.migrated == 0


def test_setup_runs_everything(clinic, make_user):
    user = make_user()
    MembershipService.create_legacy(user_id=user.id, clinic_id=clinic.id, legacy_role="doctor")

    result = setup_permission_system()
    assert result.permissions.total == len(ALL_PERMISSION_NAMES)
    assert result.roles.total == len(DEFAULT_ROLES)
    assert result.migration.migrated == 1


def test_rollback_removes_everything(clinic, make_member):
    custom = RoleService.create_custom_role(clinic_id=clinic.id, name="keeper", display_name="Keeper")
    make_member(clinic, roles=["doctor"])

    result = rollback_permission_system()
    assert result.memberships == 1
    assert result.roles == len(DEFAULT_ROLES)
    assert result.permissions == len(ALL_PERMISSION_NAMES)

    assert not UserClinic.objects.exists()
    assert not Permission.objects.exists()
    assert list(Role.objects.values_list("id", flat=True)) == [custom.id]


def test_rollback_is_refused_in_production(seeded, settings):
    settings.ENVIRONMENT = "prod"
    with pytest.raises(RollbackForbidden):
        rollback_permission_system()
    assert Permission.objects.exists()
