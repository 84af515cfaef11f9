import json

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from django.test import RequestFactory
from rest_framework.exceptions import NotFound

from clinic_core.common.api.exceptions import AuthorizationError, ConflictError, api_exception_handler


def test_authorization_error_uses_flat_payload():
    exc = AuthorizationError("ROLE_DENIED", "Insufficient role privileges", context={"required_roles": ["doctor"]})
    resp = api_exception_handler(exc, {"request": RequestFactory().get("/x/")})

    assert resp.status_code == 403
    assert resp.data["success"] is False
    assert resp.data["error_code"] == "ROLE_DENIED"
    assert resp.data["message"] == "Insufficient role privileges"
    assert resp.data["required_roles"] == ["doctor"]
    assert resp.data["request_id"]


def test_request_id_is_stable_per_request():
    req = RequestFactory().get("/x/")
    first = api_exception_handler(AuthorizationError("AUTH_REQUIRED", "Authentication required", status_code=401), {"request": req})
    second = api_exception_handler(NotFound("gone"), {"request": req})

    assert first.status_code == 401
    assert second.data["error"]["request_id"] == first.data["request_id"]


def test_django_validation_error_becomes_400_envelope():
    resp = api_exception_handler(
        DjangoValidationError({"inherits_from": "Role cannot inherit from itself"}),
        {"request": RequestFactory().get("/x/")},
    )
    assert resp.status_code == 400
    assert resp.data["error"]["code"] == "validation_error"
    assert resp.data["error"]["details"] == {"inherits_from": ["Role cannot inherit from itself"]}


def test_conflict_envelope():
    resp = api_exception_handler(ConflictError(), {"request": RequestFactory().get("/x/")})
    assert resp.status_code == 409
    assert resp.data["error"]["code"] == "conflict"
    assert resp.data["error"]["message"] == "Conflict."


@pytest.mark.django_db
def test_unhandled_error_is_500_envelope(api_client, clinic, monkeypatch):
    from clinic_core.iam.api import roles

    def boom(clinic_id):
        raise LookupError("db exploded")

    monkeypatch.setattr(roles, "clinic_roles", boom)
    api_client.raise_request_exception = False
    resp = api_client.get("/api/v1/rbac/roles/", HTTP_X_CLINIC_ID=str(clinic.id))

    assert resp.status_code == 500
    body = json.loads(resp.content.decode("utf-8"))
    assert body["error"]["code"] == "server_error"
    assert "request_id" in body["error"]
