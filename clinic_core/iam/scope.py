# clinic_core/iam/scope.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from django.conf import settings

from clinic_core.iam.models import UserProfile

DEFAULT_CLINIC_HEADER = "X-Clinic-Id"


class InvalidClinicId(ValueError):
    """The clinic header is present but not a UUID."""

    def __init__(self, raw: str):
        super().__init__(f"Invalid clinic id: {raw!r}")
        self.raw = raw


@dataclass(frozen=True)
class Identity:
    """What the identity layer says about a user, independent of any clinic."""
    default_clinic_id: Optional[UUID]
    is_admin: bool


def clinic_header_name() -> str:
    return getattr(settings, "RBAC_CLINIC_HEADER", DEFAULT_CLINIC_HEADER)


def _get_header(request, name: str) -> str | None:
    """
    Prefer request.headers (case-insensitive), fallback to META (pytest uses HTTP_*).
    """
    headers = getattr(request, "headers", None)
    v = headers.get(name) if headers is not None else None
    if v:
        return v
    meta_key = "HTTP_" + name.upper().replace("-", "_")
    return request.META.get(meta_key)


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        raise InvalidClinicId(value)


def load_identity(user) -> Identity:
    profile = (
        UserProfile.objects.filter(user_id=user.id)
        .values("default_clinic_id", "is_admin")
        .first()
    )
    profile = profile or {"default_clinic_id": None, "is_admin": False}
    return Identity(
        default_clinic_id=profile["default_clinic_id"],
        is_admin=bool(profile["is_admin"]) or bool(getattr(user, "is_superuser", False)),
    )


def resolve_clinic_id(request, identity: Identity) -> Optional[UUID]:
    """
    Clinic for this request:
      1) the clinic header, when present (must be a UUID, else InvalidClinicId)
      2) the user's default clinic
    Returns None when neither is available.
    """
    raw = _get_header(request, clinic_header_name())
    if raw:
        return _parse_uuid(raw)
    return identity.default_clinic_id
