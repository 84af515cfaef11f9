# clinic_core/iam/authorization.py
"""
Authorization gate for clinic-scoped endpoints.

  AuthenticationCheck -> ClinicContextCheck -> AdminBypassCheck
    -> CustomCheck -> PermissionCheck -> RoleCheck -> allow

Every outcome, allow or deny, is written to the audit trail. A rejection
is an AuthorizationError carrying one of the error codes below.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from rest_framework import status
from rest_framework.exceptions import APIException

from clinic_core.audit.services import AuditService
from clinic_core.common.api.exceptions import AuthorizationError
from clinic_core.iam.models import UserClinic
from clinic_core.iam.scope import InvalidClinicId, load_identity, resolve_clinic_id
from clinic_core.iam.services.resolver import (
    effective_permissions,
    effective_role_names,
    get_active_membership,
)

logger = logging.getLogger(__name__)

AUTH_REQUIRED = "AUTH_REQUIRED"
CLINIC_REQUIRED = "CLINIC_REQUIRED"
CLINIC_ACCESS_DENIED = "CLINIC_ACCESS_DENIED"
CUSTOM_PERMISSION_DENIED = "CUSTOM_PERMISSION_DENIED"
PERMISSION_DENIED = "PERMISSION_DENIED"
ROLE_DENIED = "ROLE_DENIED"
PERMISSION_CHECK_ERROR = "PERMISSION_CHECK_ERROR"


class Operator(str, Enum):
    AND = "AND"
    OR = "OR"

    def satisfied(self, required: Iterable[str], held: frozenset[str]) -> bool:
        if self is Operator.AND:
            return all(name in held for name in required)
        return any(name in held for name in required)


def _as_tuple(value) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class PermissionOptions:
    permissions: tuple[str, ...] = ()
    roles: tuple[str, ...] = ()
    operator: Operator = Operator.OR
    require_clinic_access: bool = True
    admin_bypass: bool = True
    custom_check: Optional[Callable[[Any, "AuthContext"], bool]] = None

    def __post_init__(self):
        object.__setattr__(self, "permissions", _as_tuple(self.permissions))
        object.__setattr__(self, "roles", _as_tuple(self.roles))
        object.__setattr__(self, "operator", Operator(self.operator))


@dataclass(frozen=True)
class AuthContext:
    user_id: int
    clinic_id: Optional[UUID] = None
    membership: Optional[UserClinic] = field(default=None, compare=False)
    permissions: frozenset[str] = frozenset()
    roles: frozenset[str] = frozenset()
    is_admin: bool = False

    def has_permission(self, name: str) -> bool:
        return name in self.permissions

    def has_role(self, name: str) -> bool:
        return name in self.roles


def admin_role_name() -> str:
    return getattr(settings, "RBAC_ADMIN_ROLE", "admin")


def get_auth_context(request) -> AuthContext:
    ctx = getattr(request, "auth_context", None)
    if ctx is None:
        raise ImproperlyConfigured(
            "request.auth_context is not set; guard the view with a require_* permission class."
        )
    return ctx


# -----------------------------
# Request metadata for the audit trail
# -----------------------------

def client_ip(request) -> str | None:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def user_agent(request) -> str | None:
    return request.META.get("HTTP_USER_AGENT")


def endpoint_of(request) -> str:
    return f"{request.method} {request.path}"


def _record(
    request,
    options: PermissionOptions,
    *,
    user_id: int | None,
    ctx: Optional[AuthContext],
    clinic_id: Optional[UUID],
    success: bool,
    error_code: str | None = None,
) -> None:
    AuditService.log_permission_check(
        actor_user_id=user_id,
        clinic_id=clinic_id,
        endpoint=endpoint_of(request),
        ip_address=client_ip(request),
        user_agent=user_agent(request),
        required_permissions=options.permissions,
        required_roles=options.roles,
        user_permissions=ctx.permissions if ctx else (),
        user_roles=ctx.roles if ctx else (),
        operator=options.operator.value,
        success=success,
        error_code=error_code,
    )


# -----------------------------
# Checks
# -----------------------------

def _build_context(request, user, options: PermissionOptions) -> AuthContext:
    identity = load_identity(user)

    if not options.require_clinic_access:
        return AuthContext(user_id=user.id, is_admin=identity.is_admin)

    try:
        clinic_id = resolve_clinic_id(request, identity)
    except InvalidClinicId as exc:
        raise AuthorizationError(
            CLINIC_REQUIRED,
            "Clinic context required",
            status_code=status.HTTP_400_BAD_REQUEST,
            context={"clinic_id": exc.raw},
        )
    if clinic_id is None:
        raise AuthorizationError(
            CLINIC_REQUIRED,
            "Clinic context required",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    membership = get_active_membership(user_id=user.id, clinic_id=clinic_id)
    if membership is None:
        raise AuthorizationError(
            CLINIC_ACCESS_DENIED,
            "Access denied to this clinic",
            context={"clinic_id": str(clinic_id)},
        )

    roles = frozenset(effective_role_names(membership))
    return AuthContext(
        user_id=user.id,
        clinic_id=clinic_id,
        membership=membership,
        permissions=frozenset(effective_permissions(membership)),
        roles=roles,
        is_admin=admin_role_name() in roles or identity.is_admin,
    )


def _check_requirements(request, options: PermissionOptions, ctx: AuthContext) -> None:
    if options.admin_bypass and ctx.is_admin:
        return

    if options.custom_check is not None and not options.custom_check(request, ctx):
        raise AuthorizationError(CUSTOM_PERMISSION_DENIED, "Custom permission check failed")

    # empty requirement lists pass
    if options.permissions and not options.operator.satisfied(options.permissions, ctx.permissions):
        raise AuthorizationError(
            PERMISSION_DENIED,
            "Insufficient permissions",
            context={
                "required_permissions": list(options.permissions),
                "user_permissions": sorted(ctx.permissions),
            },
        )

    if options.roles and not options.operator.satisfied(options.roles, ctx.roles):
        raise AuthorizationError(
            ROLE_DENIED,
            "Insufficient role privileges",
            context={
                "required_roles": list(options.roles),
                "user_roles": sorted(ctx.roles),
            },
        )


def _authorize(request, options: PermissionOptions) -> AuthContext:
    user = getattr(request, "user", None)
    if user is None or not getattr(user, "is_authenticated", False):
        _record(request, options, user_id=None, ctx=None, clinic_id=None, success=False, error_code=AUTH_REQUIRED)
        raise AuthorizationError(
            AUTH_REQUIRED,
            "Authentication required",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    ctx: Optional[AuthContext] = None
    try:
        ctx = _build_context(request, user, options)
        _check_requirements(request, options, ctx)
    except AuthorizationError as exc:
        logger.info("authorization denied user=%s code=%s endpoint=%s", user.id, exc.error_code, endpoint_of(request))
        _record(
            request,
            options,
            user_id=user.id,
            ctx=ctx,
            clinic_id=ctx.clinic_id if ctx else None,
            success=False,
            error_code=exc.error_code,
        )
        raise

    _record(request, options, user_id=user.id, ctx=ctx, clinic_id=ctx.clinic_id, success=True)
    return ctx


def authorize(request, options: PermissionOptions) -> AuthContext:
    """
    Run the gate for `request`. Returns the AuthContext on success, raises
    AuthorizationError otherwise. Anything unexpected becomes
    PERMISSION_CHECK_ERROR (500).
    """
    try:
        return _authorize(request, options)
    except APIException:
        # AuthorizationError, or AuthenticationFailed raised while resolving request.user
        raise
    except Exception as exc:
        logger.exception("permission check failed for %s", endpoint_of(request))
        raise AuthorizationError(
            PERMISSION_CHECK_ERROR,
            "Internal server error during permission check",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        ) from exc
