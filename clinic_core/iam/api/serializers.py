# clinic_core/iam/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.iam.models import Permission, PermissionModule, Role, UserClinic
from clinic_core.iam.services.roles import RoleService


# ---- auth / me (schema only) ----

class LoginRequestSerializer(serializers.Serializer):
    username = serializers.CharField(required=False)
    email = serializers.EmailField(required=False)
    password = serializers.CharField()


class DetailResponseSerializer(serializers.Serializer):
    detail = serializers.CharField()


class MeUserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField(allow_null=True, required=False)
    email = serializers.EmailField(allow_null=True, required=False)
    is_superuser = serializers.BooleanField()
    is_admin = serializers.BooleanField()


class ActiveClinicSerializer(serializers.Serializer):
    clinic_id = serializers.UUIDField()
    roles = serializers.ListField(child=serializers.CharField())
    permissions = serializers.ListField(child=serializers.CharField())
    is_admin = serializers.BooleanField()


class MeResponseSerializer(serializers.Serializer):
    user = MeUserSerializer()
    memberships = serializers.ListField(child=serializers.DictField())
    active_clinic = ActiveClinicSerializer(allow_null=True, required=False)


# ---- permission catalog ----

class PermissionSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Permission
        fields = [
            "id",
            "name",
            "display_name",
            "description",
            "module",
            "sub_module",
            "action",
            "level",
            "full_name",
            "is_system_permission",
            "applies_to_clinic",
            "depends_on",
            "conflicts_with",
        ]
        read_only_fields = fields


# ---- roles ----

class RoleSerializer(serializers.ModelSerializer):
    inherits_from = serializers.UUIDField(source="inherits_from_id", allow_null=True, read_only=True)
    clinic_id = serializers.UUIDField(allow_null=True, read_only=True)
    permissions = serializers.SerializerMethodField()
    effective_permissions = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            "id",
            "name",
            "display_name",
            "description",
            "clinic_id",
            "is_system_role",
            "is_active",
            "inherits_from",
            "user_count",
            "color",
            "icon",
            "priority",
            "can_be_modified",
            "can_be_deleted",
            "permissions",
            "effective_permissions",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_permissions(self, obj: Role) -> list[str]:
        return sorted(obj.grants.filter(granted=True).values_list("permission_name", flat=True))

    def get_effective_permissions(self, obj: Role) -> list[str]:
        return sorted(RoleService.get_effective_permissions(obj))


class RoleCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50)
    display_name = serializers.CharField(max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    permissions = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    inherits_from = serializers.UUIDField(required=False, allow_null=True, default=None)


class RolePermissionsSerializer(serializers.Serializer):
    permissions = serializers.ListField(child=serializers.CharField(), allow_empty=True)


class PermissionNameSerializer(serializers.Serializer):
    permission_name = serializers.CharField(max_length=100)


class CopyFromSerializer(serializers.Serializer):
    source_role_id = serializers.UUIDField()


class SetParentSerializer(serializers.Serializer):
    inherits_from = serializers.UUIDField(allow_null=True)


# ---- memberships ----

class MembershipSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    clinic_id = serializers.UUIDField(read_only=True)
    username = serializers.CharField(source="user.username", read_only=True)
    roles = serializers.SerializerMethodField()
    primary_role = serializers.SerializerMethodField()
    overrides = serializers.SerializerMethodField()

    class Meta:
        model = UserClinic
        fields = [
            "id",
            "user_id",
            "username",
            "clinic_id",
            "is_active",
            "joined_at",
            "last_login",
            "schema_version",
            "legacy_role",
            "roles",
            "primary_role",
            "overrides",
        ]
        read_only_fields = fields

    def get_roles(self, obj: UserClinic) -> list[dict]:
        return [
            {"id": str(a.role_id), "name": a.role.name, "is_primary": a.is_primary}
            for a in obj.role_assignments.all()
        ]

    def get_primary_role(self, obj: UserClinic) -> str | None:
        for a in obj.role_assignments.all():
            if a.is_primary:
                return a.role.name
        return None

    def get_overrides(self, obj: UserClinic) -> list[dict]:
        return [
            {"permission_name": o.permission_name, "granted": o.granted, "reason": o.reason}
            for o in obj.permission_overrides.all()
        ]


class MembershipCreateSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    role_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    primary_role_id = serializers.UUIDField(required=False, allow_null=True, default=None)


class RoleAssignSerializer(serializers.Serializer):
    role_id = serializers.UUIDField()
    is_primary = serializers.BooleanField(required=False, default=False)


class RoleRemoveSerializer(serializers.Serializer):
    role_id = serializers.UUIDField()
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class OverrideSerializer(serializers.Serializer):
    permission_name = serializers.CharField(max_length=100)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class PermissionFilterSerializer(serializers.Serializer):
    module = serializers.ChoiceField(choices=PermissionModule.choices, required=False)
    sub_module = serializers.CharField(required=False, allow_blank=True)
