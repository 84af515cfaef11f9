import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import clinic_core.iam.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("clinics", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Permission",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "name",
                    models.CharField(
                        max_length=100,
                        unique=True,
                        validators=[clinic_core.iam.models.validate_permission_name],
                    ),
                ),
                ("display_name", models.CharField(max_length=200)),
                ("description", models.CharField(max_length=500)),
                (
                    "module",
                    models.CharField(
                        choices=clinic_core.iam.models.PermissionModule.choices,
                        db_index=True,
                        max_length=64,
                    ),
                ),
                ("sub_module", models.CharField(blank=True, default="", max_length=64)),
                (
                    "action",
                    models.CharField(choices=clinic_core.iam.models.PermissionAction.choices, max_length=32),
                ),
                (
                    "level",
                    models.CharField(
                        choices=clinic_core.iam.models.PermissionLevel.choices,
                        default="view",
                        max_length=16,
                    ),
                ),
                ("is_system_permission", models.BooleanField(db_index=True, default=True)),
                ("applies_to_clinic", models.BooleanField(default=True)),
                (
                    "depends_on",
                    models.JSONField(
                        blank=True,
                        default=list,
                        validators=[clinic_core.iam.models.validate_permission_name_list],
                    ),
                ),
                (
                    "conflicts_with",
                    models.JSONField(
                        blank=True,
                        default=list,
                        validators=[clinic_core.iam.models.validate_permission_name_list],
                    ),
                ),
            ],
            options={
                "db_table": "iam_permission",
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["module", "sub_module", "action"], name="iam_perm_module_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Role",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "name",
                    models.CharField(max_length=50, validators=[clinic_core.iam.models.validate_role_name]),
                ),
                ("display_name", models.CharField(max_length=100)),
                ("description", models.CharField(blank=True, default="", max_length=500)),
                ("is_system_role", models.BooleanField(db_index=True, default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("user_count", models.PositiveIntegerField(default=0)),
                (
                    "color",
                    models.CharField(
                        default="#6366f1",
                        max_length=7,
                        validators=[clinic_core.iam.models.validate_color],
                    ),
                ),
                ("icon", models.CharField(blank=True, default="", max_length=50)),
                (
                    "priority",
                    models.PositiveSmallIntegerField(
                        default=50,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(100),
                        ],
                    ),
                ),
                ("can_be_modified", models.BooleanField(default=True)),
                ("can_be_deleted", models.BooleanField(default=True)),
                (
                    "clinic",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="roles",
                        to="clinics.clinic",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_roles",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "inherits_from",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="child_roles",
                        to="iam.role",
                    ),
                ),
            ],
            options={
                "db_table": "iam_role",
                "indexes": [
                    models.Index(fields=["clinic", "is_active"], name="iam_role_clinic_active_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("name", "clinic"), name="uq_role_name_clinic"),
                    models.UniqueConstraint(
                        condition=models.Q(("clinic__isnull", True)),
                        fields=("name",),
                        name="uq_role_name_system",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RolePermission",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("permission_name", models.CharField(max_length=100)),
                ("granted", models.BooleanField(default=True)),
                ("granted_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "granted_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "role",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="grants",
                        to="iam.role",
                    ),
                ),
            ],
            options={
                "db_table": "iam_role_permission",
                "ordering": ["created_at", "permission_name"],
                "constraints": [
                    models.UniqueConstraint(fields=("role", "permission_name"), name="uq_role_permission_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="UserProfile",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("is_admin", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "default_clinic",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="clinics.clinic",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="clinic_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "iam_user_profile",
            },
        ),
        migrations.CreateModel(
            name="UserClinic",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("is_active", models.BooleanField(default=True)),
                ("joined_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("last_login", models.DateTimeField(blank=True, null=True)),
                ("legacy_role", models.CharField(blank=True, default="", max_length=50)),
                ("permissions", models.JSONField(blank=True, default=list)),
                (
                    "schema_version",
                    models.PositiveSmallIntegerField(
                        choices=clinic_core.iam.models.MembershipSchema.choices,
                        db_index=True,
                        default=2,
                    ),
                ),
                (
                    "clinic",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="memberships",
                        to="clinics.clinic",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="clinic_memberships",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "iam_user_clinic",
                "indexes": [
                    models.Index(fields=["clinic", "is_active"], name="iam_uc_clinic_active_idx"),
                    models.Index(fields=["user", "is_active"], name="iam_uc_user_active_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("user", "clinic"), name="uq_user_clinic"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MembershipRole",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("assigned_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("is_primary", models.BooleanField(default=False)),
                (
                    "assigned_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "membership",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="role_assignments",
                        to="iam.userclinic",
                    ),
                ),
                (
                    "role",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assignments",
                        to="iam.role",
                    ),
                ),
            ],
            options={
                "db_table": "iam_membership_role",
                "ordering": ["created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("membership", "role"), name="uq_membership_role"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PermissionOverride",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("permission_name", models.CharField(max_length=100)),
                ("granted", models.BooleanField()),
                ("granted_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("reason", models.CharField(blank=True, default="", max_length=500)),
                (
                    "granted_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "membership",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="permission_overrides",
                        to="iam.userclinic",
                    ),
                ),
            ],
            options={
                "db_table": "iam_permission_override",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("membership", "permission_name"),
                        name="uq_membership_permission_override",
                    ),
                ],
            },
        ),
    ]
