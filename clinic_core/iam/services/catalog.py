# clinic_core/iam/services/catalog.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from clinic_core.iam.exceptions import MissingDependency, PermissionConflict, UnknownPermission
from clinic_core.iam.models import Permission
from clinic_core.iam.selectors import existing_permission_names


class GrantFailure(str, Enum):
    MISSING_DEPENDENCY = "missing_dependency"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class GrantCheck:
    can_grant: bool
    reason: Optional[str] = None
    failure: Optional[GrantFailure] = None


def can_be_granted(permission: Permission, granted_names: Iterable[str]) -> GrantCheck:
    """
    Decide whether `permission` may be added next to `granted_names`.

    Dependencies are checked first; missing ones are reported in the order
    they are declared on the permission.
    """
    held = set(granted_names)

    missing = [name for name in permission.depends_on if name not in held]
    if missing:
        return GrantCheck(
            can_grant=False,
            reason=f"Missing required permissions: {', '.join(missing)}",
            failure=GrantFailure.MISSING_DEPENDENCY,
        )

    conflicting = [name for name in permission.conflicts_with if name in held]
    if conflicting:
        return GrantCheck(
            can_grant=False,
            reason=f"Conflicts with existing permissions: {', '.join(conflicting)}",
            failure=GrantFailure.CONFLICT,
        )

    return GrantCheck(can_grant=True)


def ensure_permissions_exist(names: Iterable[str]) -> list[str]:
    names = [(n or "").strip().lower() for n in names]
    known = existing_permission_names(names)
    unknown = [n for n in names if n not in known]
    if unknown:
        raise UnknownPermission({"permissions": [f"Permission not found: {n}" for n in unknown]})
    return names


def validate_grantable(names: Iterable[str], granted: Iterable[str]) -> list[str]:
    """
    Check a batch of permissions that will be granted together.

    Each permission is checked against `granted` plus the rest of the batch,
    so a batch that carries its own dependencies passes.
    Raises UnknownPermission, MissingDependency or PermissionConflict.
    """
    names = ensure_permissions_exist(names)
    target = set(granted) | set(names)

    for permission in Permission.objects.filter(name__in=names).order_by("name"):
        check = can_be_granted(permission, target - {permission.name})
        if check.can_grant:
            continue
        detail = f"{permission.name}: {check.reason}"
        if check.failure is GrantFailure.MISSING_DEPENDENCY:
            raise MissingDependency(detail)
        raise PermissionConflict(detail)

    return names


def validate_revocable(name: str, remaining: Iterable[str]) -> None:
    """
    Refuse to drop `name` while a permission in `remaining` depends on it.
    `remaining` is what stays held after the revoke; if `name` is still in
    it (inherited, say) nothing is lost.
    """
    remaining = set(remaining)
    if name in remaining:
        return

    dependents = sorted(
        p.name for p in Permission.objects.filter(name__in=remaining) if name in p.depends_on
    )
    if dependents:
        raise MissingDependency(f"{name}: required by {', '.join(dependents)}")
