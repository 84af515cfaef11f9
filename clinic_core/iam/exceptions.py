# clinic_core/iam/exceptions.py
from __future__ import annotations

from rest_framework.exceptions import NotFound, ValidationError

from clinic_core.common.api.exceptions import ConflictError


class StateConflictError(ConflictError):
    """The current state of a role or membership forbids the change."""
    default_detail = "The requested change conflicts with the current state."
    default_code = "state_conflict"


class DuplicateMembership(StateConflictError):
    default_detail = "User is already associated with this clinic"
    default_code = "duplicate_membership"


class RoleProtected(StateConflictError):
    default_detail = "This role cannot be deleted"
    default_code = "role_protected"


class RoleInUse(StateConflictError):
    default_detail = "Cannot delete role that is assigned to users"
    default_code = "role_in_use"


class RoleLocked(StateConflictError):
    default_detail = "This role cannot be modified"
    default_code = "role_locked"


class LastRole(StateConflictError):
    default_detail = "Cannot remove the last role. User must have at least one role."
    default_code = "last_role"


class DependencyError(ConflictError):
    default_detail = "Missing required permissions"
    default_code = "missing_dependency"


class MissingDependency(DependencyError):
    pass


class PermissionConflict(ConflictError):
    default_detail = "Conflicts with existing permissions"
    default_code = "permission_conflict"


class SourceRoleNotFound(NotFound):
    default_detail = "Source role not found"
    default_code = "source_role_not_found"


class RoleNotAssigned(NotFound):
    default_detail = "Role not found"
    default_code = "role_not_assigned"


class UnknownPermission(ValidationError):
    default_detail = "Unknown permission"
    default_code = "unknown_permission"


class RollbackForbidden(Exception):
    """Raised when tearing down the permission system in production."""

    def __init__(self, message: str = "Rollback is not allowed in production environment"):
        super().__init__(message)
