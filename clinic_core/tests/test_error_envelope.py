import uuid

import pytest


@pytest.mark.django_db
def test_not_found_uses_domain_code(api_client):
    resp = api_client.post(f"/api/v1/payments/{uuid.uuid4()}/void/", {}, format="json")

    assert resp.status_code == 404
    body = resp.json()
    assert body["error"]["code"] == "payment_not_found"
    assert "request_id" in body["error"]


@pytest.mark.django_db
def test_serializer_errors_use_validation_error_code(api_client):
    resp = api_client.post("/api/v1/payments/", {"amount": "10.00"}, format="json")

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "validation_error"
    assert "patient_id" in body["error"]["details"]


@pytest.mark.django_db
def test_unauthenticated_request_is_rejected(client):
    resp = client.get("/api/v1/payments/")

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "not_authenticated"
