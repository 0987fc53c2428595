import pytest
from django.db import OperationalError

from access import session as access_session
from core.openapi import SUBSCRIPTION_WARNING_HEADER

pytestmark = pytest.mark.django_db


def test_validation_errors_keep_fields_and_gain_a_code(api_client):
    resp = api_client.post("/api/merchants/register/", {"email": "not-an-email"}, format="json")

    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "invalid"
    assert "merchant_name" in body


def test_missing_object_reports_not_found(auth_client, platform_owner):
    resp = auth_client(platform_owner).get("/api/merchants/9999/")

    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_unreachable_permission_store_is_a_503(auth_client, merchant_admin, monkeypatch):
    def broken(user):
        raise OperationalError("database is gone")

    access_session._cache().clear()
    monkeypatch.setattr(access_session, "_load_permissions", broken)

    resp = auth_client(merchant_admin).get("/api/users/")

    assert resp.status_code == 503
    assert resp.json()["code"] == "transient_backend_failure"


def test_schema_documents_the_warning_header(api_client):
    resp = api_client.get("/api/schema/", {"format": "json"})

    assert resp.status_code == 200
    assert SUBSCRIPTION_WARNING_HEADER in resp.json()["components"]["headers"]
