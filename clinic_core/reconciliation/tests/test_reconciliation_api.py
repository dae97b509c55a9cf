from datetime import date

import pytest

from clinic_core.common.money import MoneyAmount

D = date(2025, 6, 16)


@pytest.mark.django_db
def test_batch_import_rerun_and_manual_reconcile(api_client, patient, make_card_payment, ledger):
    make_card_payment(patient, "30000.00", D)

    resp = api_client.post(
        "/api/v1/reconciliation/batches/",
        {
            "file_name": "transbank-june.xlsx",
            "transactions": [
                {"transaction_date": "2025-06-16", "amount": "30000.00", "authorization_code": "AUTH01"},
                {"transaction_date": "2025-06-16", "amount": "12000.00", "card_type": "MASTERCARD"},
            ],
        },
        format="json",
    )
    assert resp.status_code == 201
    batch_id = resp.data["id"]
    assert resp.data["status"] == "PROCESSING"
    assert resp.data["reconciled_count"] == 1
    assert resp.data["pending_count"] == 1
    assert len(resp.data["transactions"]) == 2

    # pending queue
    resp = api_client.get("/api/v1/reconciliation/transactions/pending/")
    assert resp.status_code == 200
    assert len(resp.data) == 1
    tx_id = resp.data[0]["id"]
    assert resp.data[0]["amount"] == "12000.00"

    # candidates (none at the same amount yet)
    resp = api_client.get(f"/api/v1/reconciliation/transactions/{tx_id}/candidates/", {"same_amount": "true"})
    assert resp.status_code == 200
    assert resp.data == []

    # rerun after the missing payment is recorded
    make_card_payment(patient, "12000.00", D)
    resp = api_client.post(f"/api/v1/reconciliation/batches/{batch_id}/rerun/", {}, format="json")
    assert resp.status_code == 200
    assert resp.data["status"] == "COMPLETED"
    assert resp.data["pending_count"] == 0

    # manual override: ignore it
    resp = api_client.post(
        f"/api/v1/reconciliation/transactions/{tx_id}/reconcile/",
        {"ignore": True, "notes": "duplicate charge"},
        format="json",
    )
    assert resp.status_code == 200
    assert resp.data["match_status"] == "IGNORED"
    assert resp.data["matched_payment"] is None
    assert resp.data["matched_payment_number"] is None

    # batch list + detail
    resp = api_client.get("/api/v1/reconciliation/batches/")
    assert resp.status_code == 200
    assert resp.data["count"] == 1

    resp = api_client.get(f"/api/v1/reconciliation/batches/{batch_id}/")
    assert resp.status_code == 200
    assert {t["match_status"] for t in resp.data["transactions"]} == {"MATCHED", "IGNORED"}


@pytest.mark.django_db
def test_manual_reconcile_with_difference_via_api(api_client, patient, ledger):
    payment = ledger.create(patient_id=patient.id, amount=MoneyAmount.of("28000.00"))
    resp = api_client.post(
        "/api/v1/reconciliation/batches/",
        {"file_name": "f.csv", "transactions": [{"transaction_date": "2025-06-16", "amount": "30000.00"}]},
        format="json",
    )
    tx_id = resp.data["transactions"][0]["id"]

    resp = api_client.post(
        f"/api/v1/reconciliation/transactions/{tx_id}/reconcile/",
        {"payment_id": str(payment.id)},
        format="json",
    )

    assert resp.status_code == 200
    assert resp.data["match_status"] == "DIFFERENCE"
    assert resp.data["amount_difference"] == "2000.00"
    assert resp.data["matched_payment_number"] == payment.payment_number


@pytest.mark.django_db
def test_manual_reconcile_requires_one_target(api_client):
    resp = api_client.post(
        "/api/v1/reconciliation/batches/",
        {"file_name": "f.csv", "transactions": [{"transaction_date": "2025-06-16", "amount": "5.00"}]},
        format="json",
    )
    tx_id = resp.data["transactions"][0]["id"]

    resp = api_client.post(f"/api/v1/reconciliation/transactions/{tx_id}/reconcile/", {}, format="json")

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_reconciliation_target"


@pytest.mark.django_db
def test_empty_import_is_rejected(api_client):
    resp = api_client.post("/api/v1/reconciliation/batches/", {"file_name": "f.csv", "transactions": []}, format="json")

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_import"


@pytest.mark.django_db
def test_summary_endpoint(api_client, patient, make_card_payment):
    make_card_payment(patient, "10.00", D)
    api_client.post(
        "/api/v1/reconciliation/batches/",
        {"file_name": "f.csv", "transactions": [{"transaction_date": "2025-06-16", "amount": "10.00"}]},
        format="json",
    )

    resp = api_client.get("/api/v1/reconciliation/summary/", {"date_from": "2025-06-15", "date_to": "2025-06-17"})

    assert resp.status_code == 200
    assert resp.data["imported"]["total"] == "10.00"
    assert resp.data["imported"]["matched"]["count"] == 1
    assert resp.data["internal"]["total"] == "10.00"
    assert resp.data["difference"] == "0.00"
    assert resp.data["percent_matched"] == "100.00"


@pytest.mark.django_db
def test_summary_endpoint_requires_dates(api_client):
    resp = api_client.get("/api/v1/reconciliation/summary/", {"date_from": "2025-06-15"})

    assert resp.status_code == 400
    assert "date_to" in resp.json()["error"]["details"]
