# clinic_core/iam/models.py
from __future__ import annotations

import re

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from clinic_core.clinics.models import Clinic
from clinic_core.common.models import UUIDModel
from clinic_core.iam.exceptions import RoleInUse, RoleProtected
from clinic_core.iam.seed_data import LEGACY_ROLE_PERMISSIONS

PERMISSION_NAME_RE = re.compile(r"^[a-z_]+\.[a-z_]+$")
ROLE_NAME_RE = re.compile(r"^[a-z_]+$")
COLOR_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")

validate_permission_name = RegexValidator(
    PERMISSION_NAME_RE,
    "Permission name must look like module.action (lowercase letters and underscores).",
)
validate_role_name = RegexValidator(
    ROLE_NAME_RE,
    "Role name may only contain lowercase letters and underscores.",
)
validate_color = RegexValidator(COLOR_RE, "Color must be a hex code like #abc or #aabbcc.")


def validate_permission_name_list(value) -> None:
    if not isinstance(value, list):
        raise ValidationError("Must be a list of permission names.")
    invalid = [str(v) for v in value if not isinstance(v, str) or not PERMISSION_NAME_RE.match(v)]
    if invalid:
        raise ValidationError(f"Invalid permission names: {', '.join(invalid)}")


class PermissionModule(models.TextChoices):
    USER_MANAGEMENT = "user_management"
    CLINIC_MANAGEMENT = "clinic_management"
    PATIENT_MANAGEMENT = "patient_management"
    APPOINTMENT_MANAGEMENT = "appointment_management"
    FINANCIAL_MANAGEMENT = "financial_management"
    INVENTORY_MANAGEMENT = "inventory_management"
    LAB_MANAGEMENT = "lab_management"
    DEPARTMENT_MANAGEMENT = "department_management"
    SERVICE_MANAGEMENT = "service_management"
    PRESCRIPTION_MANAGEMENT = "prescription_management"
    LEAD_MANAGEMENT = "lead_management"
    TRAINING_MANAGEMENT = "training_management"
    DENTAL_MANAGEMENT = "dental_management"
    ANALYTICS_REPORTS = "analytics_reports"
    SETTINGS = "settings"
    PERMISSIONS_MANAGEMENT = "permissions_management"


class PermissionAction(models.TextChoices):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    EXPORT = "export"
    IMPORT = "import"
    APPROVE = "approve"
    REJECT = "reject"
    ASSIGN = "assign"
    UNASSIGN = "unassign"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    SEND = "send"
    PRINT = "print"
    PROCESS = "process"
    VERIFY = "verify"
    DELIVER = "deliver"
    DISPENSE = "dispense"
    CONVERT = "convert"
    RESCHEDULE = "reschedule"
    CANCEL = "cancel"
    REFUND = "refund"
    BACKUP = "backup"
    RESTORE = "restore"
    MANAGE_PERMISSIONS = "manage_permissions"
    MANAGE_ROLES = "manage_roles"
    SWITCH_CLINIC = "switch_clinic"
    AI_ANALYSIS = "ai_analysis"
    BULK_OPERATIONS = "bulk_operations"


class PermissionLevel(models.TextChoices):
    NONE = "none"
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    FULL = "full"


class Permission(UUIDModel):
    """
    Catalog entry: one grantable capability, e.g. "patients.view".

    depends_on / conflicts_with are checked when the permission is granted,
    not when it is saved (only their format is validated here).
    """
    name = models.CharField(max_length=100, unique=True, validators=[validate_permission_name])
    display_name = models.CharField(max_length=200)
    description = models.CharField(max_length=500)

    module = models.CharField(max_length=64, choices=PermissionModule.choices, db_index=True)
    sub_module = models.CharField(max_length=64, blank=True, default="")
    action = models.CharField(max_length=32, choices=PermissionAction.choices)
    level = models.CharField(max_length=16, choices=PermissionLevel.choices, default=PermissionLevel.VIEW)

    is_system_permission = models.BooleanField(default=True, db_index=True)
    applies_to_clinic = models.BooleanField(default=True)

    depends_on = models.JSONField(default=list, blank=True, validators=[validate_permission_name_list])
    conflicts_with = models.JSONField(default=list, blank=True, validators=[validate_permission_name_list])

    class Meta:
        db_table = "iam_permission"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["module", "sub_module", "action"], name="iam_perm_module_idx"),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def full_name(self) -> str:
        if self.sub_module:
            return f"{self.module}.{self.sub_module}.{self.action}"
        return f"{self.module}.{self.action}"

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip().lower()
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)


class Role(UUIDModel):
    """
    Named bundle of permission grants.

    System roles (clinic is NULL) are shared by every clinic; custom roles
    belong to exactly one clinic. A role may inherit from one parent role.
    """
    name = models.CharField(max_length=50, validators=[validate_role_name])
    display_name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default="")

    clinic = models.ForeignKey(
        Clinic,
        on_delete=models.PROTECT,
        related_name="roles",
        null=True,
        blank=True,
    )
    is_system_role = models.BooleanField(default=False, db_index=True)
    is_active = models.BooleanField(default=True)

    inherits_from = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        related_name="child_roles",
        null=True,
        blank=True,
    )

    user_count = models.PositiveIntegerField(default=0)

    color = models.CharField(max_length=7, default="#6366f1", validators=[validate_color])
    icon = models.CharField(max_length=50, blank=True, default="")
    priority = models.PositiveSmallIntegerField(
        default=50,
        validators=[MinValueValidator(1), MaxValueValidator(100)],
    )

    can_be_modified = models.BooleanField(default=True)
    can_be_deleted = models.BooleanField(default=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_roles",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "iam_role"
        constraints = [
            models.UniqueConstraint(fields=["name", "clinic"], name="uq_role_name_clinic"),
            # NULL clinic never collides in a plain unique index
            models.UniqueConstraint(
                fields=["name"],
                condition=Q(clinic__isnull=True),
                name="uq_role_name_system",
            ),
        ]
        indexes = [
            models.Index(fields=["clinic", "is_active"], name="iam_role_clinic_active_idx"),
        ]

    def __str__(self) -> str:
        return self.name

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip().lower()

        if self.is_system_role:
            self.clinic = None
            self.can_be_deleted = False
        elif self.clinic_id is None:
            raise ValidationError("Custom roles must be associated with a clinic")

        self._validate_inheritance()
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)

    def _validate_inheritance(self) -> None:
        parent_id = self.inherits_from_id
        if parent_id is None:
            return
        if parent_id == self.id:
            raise ValidationError({"inherits_from": "Role cannot inherit from itself"})

        seen = {self.id}
        while parent_id is not None:
            if parent_id in seen:
                raise ValidationError({"inherits_from": "Role inheritance cycle detected"})
            seen.add(parent_id)
            parent_id = (
                Role.objects.filter(id=parent_id).values_list("inherits_from_id", flat=True).first()
            )

    def delete(self, *args, **kwargs):
        if not self.can_be_deleted:
            raise RoleProtected()
        if self.assignments.exists():
            raise RoleInUse()
        return super().delete(*args, **kwargs)


class RolePermission(UUIDModel):
    """
    Grant entry of a role. References the catalog by name.
    """
    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="grants")
    permission_name = models.CharField(max_length=100)
    granted = models.BooleanField(default=True)
    granted_at = models.DateTimeField(default=timezone.now)
    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "iam_role_permission"
        ordering = ["created_at", "permission_name"]
        constraints = [
            models.UniqueConstraint(fields=["role", "permission_name"], name="uq_role_permission_name"),
        ]

    def __str__(self) -> str:
        return f"{self.role_id}:{self.permission_name}"


class UserProfile(UUIDModel):
    """
    ClinicPro identity wrapper around AUTH_USER_MODEL.
    Holds the identity-level admin flag and the clinic used when no
    X-Clinic-Id header is sent.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="clinic_profile",
    )
    default_clinic = models.ForeignKey(
        Clinic,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    is_admin = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "iam_user_profile"

    def __str__(self) -> str:
        return f"{self.user.get_username()}"


class MembershipSchema(models.IntegerChoices):
    LEGACY = 1, "Legacy single role"
    RBAC = 2, "Role based"


class UserClinic(UUIDModel):
    """
    A user's membership in one clinic: assigned roles, per-membership
    overrides and, for pre-RBAC rows, the legacy role + flat permission list.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="clinic_memberships",
    )
    clinic = models.ForeignKey(Clinic, on_delete=models.PROTECT, related_name="memberships")

    is_active = models.BooleanField(default=True)
    joined_at = models.DateTimeField(default=timezone.now)
    last_login = models.DateTimeField(null=True, blank=True)

    # Legacy shape, kept for migration-period compatibility
    legacy_role = models.CharField(max_length=50, blank=True, default="")
    permissions = models.JSONField(default=list, blank=True)

    schema_version = models.PositiveSmallIntegerField(
        choices=MembershipSchema.choices,
        default=MembershipSchema.RBAC,
        db_index=True,
    )

    class Meta:
        db_table = "iam_user_clinic"
        constraints = [
            models.UniqueConstraint(fields=["user", "clinic"], name="uq_user_clinic"),
        ]
        indexes = [
            models.Index(fields=["clinic", "is_active"], name="iam_uc_clinic_active_idx"),
            models.Index(fields=["user", "is_active"], name="iam_uc_user_active_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id}@{self.clinic_id}"

    def save(self, *args, **kwargs):
        if self._state.adding and self.legacy_role and not self.permissions:
            self.permissions = list(LEGACY_ROLE_PERMISSIONS.get(self.legacy_role, []))
        return super().save(*args, **kwargs)


class MembershipRole(UUIDModel):
    membership = models.ForeignKey(UserClinic, on_delete=models.CASCADE, related_name="role_assignments")
    role = models.ForeignKey(Role, on_delete=models.PROTECT, related_name="assignments")
    assigned_at = models.DateTimeField(default=timezone.now)
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    is_primary = models.BooleanField(default=False)

    class Meta:
        db_table = "iam_membership_role"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(fields=["membership", "role"], name="uq_membership_role"),
        ]


class PermissionOverride(UUIDModel):
    """
    Per-membership grant (granted=True) or revoke (granted=False) of a
    single permission, applied on top of the role-derived set.
    """
    membership = models.ForeignKey(UserClinic, on_delete=models.CASCADE, related_name="permission_overrides")
    permission_name = models.CharField(max_length=100)
    granted = models.BooleanField()
    granted_at = models.DateTimeField(default=timezone.now)
    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    reason = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "iam_permission_override"
        constraints = [
            models.UniqueConstraint(
                fields=["membership", "permission_name"],
                name="uq_membership_permission_override",
            ),
        ]
