# clinic_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from clinic_core.audit.api.views import AuditEventViewSet
from clinic_core.iam.api.auth import LoginView, LogoutView, RefreshView
from clinic_core.iam.api.me import MeView
from clinic_core.iam.api.memberships import MembershipViewSet
from clinic_core.iam.api.permissions import PermissionViewSet
from clinic_core.iam.api.roles import RoleViewSet

router = DefaultRouter()

router.register(r"rbac/permissions", PermissionViewSet, basename="rbac-permissions")
router.register(r"rbac/roles", RoleViewSet, basename="rbac-roles")
router.register(r"rbac/memberships", MembershipViewSet, basename="rbac-memberships")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    # 🔐 Auth + /me
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
