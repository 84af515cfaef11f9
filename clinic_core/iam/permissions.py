# clinic_core/iam/permissions.py
from __future__ import annotations

from rest_framework.permissions import BasePermission

from clinic_core.iam.authorization import (
    Operator,
    PermissionOptions,
    admin_role_name,
    authorize,
)


class ClinicPermission(BasePermission):
    """
    DRF permission class wrapping the authorization gate.

    Never returns False: a rejection is raised as AuthorizationError so the
    exception handler can render the error_code payload. On success the
    AuthContext is attached as request.auth_context.
    """
    options: PermissionOptions = PermissionOptions()

    def has_permission(self, request, view) -> bool:
        request.auth_context = authorize(request, self.options)
        return True


def require_permission(**options) -> type[ClinicPermission]:
    """
    Build a permission class from PermissionOptions keywords.
    Unknown keywords raise TypeError here, at import time of the view.
    """
    opts = PermissionOptions(**options)
    return type("RequirePermission", (ClinicPermission,), {"options": opts})


def require_admin() -> type[ClinicPermission]:
    return require_permission(roles=[admin_role_name()], admin_bypass=False)


def require_role(role: str) -> type[ClinicPermission]:
    return require_permission(roles=[role])


def require_any_role(*roles: str) -> type[ClinicPermission]:
    return require_permission(roles=roles, operator=Operator.OR)


def require_all_roles(*roles: str) -> type[ClinicPermission]:
    return require_permission(roles=roles, operator=Operator.AND)


def require_permissions(*names: str) -> type[ClinicPermission]:
    return require_permission(permissions=names, operator=Operator.OR)


def require_all_permissions(*names: str) -> type[ClinicPermission]:
    return require_permission(permissions=names, operator=Operator.AND)


def without_clinic_context(**options) -> type[ClinicPermission]:
    return require_permission(require_clinic_access=False, **options)
