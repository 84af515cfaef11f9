# clinic_core/iam/admin.py
from __future__ import annotations

from django.contrib import admin

from clinic_core.iam.models import (
    MembershipRole,
    Permission,
    PermissionOverride,
    Role,
    RolePermission,
    UserClinic,
    UserProfile,
)


@admin.register(Permission)
class PermissionAdmin(admin.ModelAdmin):
    list_display = ("name", "display_name", "module", "action", "level", "is_system_permission")
    list_filter = ("module", "level", "is_system_permission")
    search_fields = ("name", "display_name")
    ordering = ("module", "name")


class RolePermissionInline(admin.TabularInline):
    model = RolePermission
    extra = 0
    fields = ("permission_name", "granted", "granted_at", "granted_by")
    readonly_fields = ("granted_at",)


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ("name", "display_name", "clinic", "is_system_role", "is_active", "priority", "user_count")
    list_filter = ("is_system_role", "is_active", "clinic")
    search_fields = ("name", "display_name")
    inlines = [RolePermissionInline]
    readonly_fields = ("user_count",)
    ordering = ("-priority", "name")


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "default_clinic", "is_admin", "is_active", "created_at")
    list_filter = ("is_admin", "is_active")
    search_fields = ("user__username", "user__email")
    ordering = ("-created_at",)


class MembershipRoleInline(admin.TabularInline):
    model = MembershipRole
    extra = 0
    fields = ("role", "is_primary", "assigned_at", "assigned_by")


class PermissionOverrideInline(admin.TabularInline):
    model = PermissionOverride
    extra = 0
    fields = ("permission_name", "granted", "reason", "granted_at", "granted_by")


@admin.register(UserClinic)
class UserClinicAdmin(admin.ModelAdmin):
    list_display = ("user", "clinic", "is_active", "schema_version", "legacy_role", "joined_at")
    list_filter = ("clinic", "is_active", "schema_version")
    search_fields = ("user__username", "user__email", "clinic__name", "clinic__code")
    inlines = [MembershipRoleInline, PermissionOverrideInline]
