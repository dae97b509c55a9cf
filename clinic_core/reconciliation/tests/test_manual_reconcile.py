import uuid
from datetime import date

import pytest

from clinic_core.audit.models import AuditEvent
from clinic_core.common.money import MoneyAmount
from clinic_core.payments.exceptions import PaymentNotFound
from clinic_core.reconciliation.exceptions import (
    InvalidReconciliationTarget,
    SaleNotFound,
    TransactionNotFound,
)
from clinic_core.reconciliation.models import BatchStatus, MatchStatus
from clinic_core.reconciliation.services import ReconciliationMatcher

M = MoneyAmount.of
D = date(2025, 4, 2)


@pytest.fixture
def matcher():
    return ReconciliationMatcher()


@pytest.fixture
def pending_tx(matcher):
    batch = matcher.ingest_batch(
        file_name="april.csv",
        transactions=[{"transaction_date": D, "amount": "30000.00"}],
    )
    return batch.transactions.get()


@pytest.mark.django_db
def test_manual_match_with_difference(patient, ledger, matcher, pending_tx):
    payment = ledger.create(patient_id=patient.id, amount=M("28000.00"))

    row = matcher.reconcile_manual(transaction_id=pending_tx.id, payment_id=payment.id, notes="fee withheld")

    assert row.match_status == MatchStatus.DIFFERENCE
    assert row.amount_difference == M("2000.00")
    assert row.matched_payment_id == payment.id
    assert row.notes == "fee withheld"
    assert row.matched_at is not None

    batch = row.batch
    batch.refresh_from_db()
    assert batch.status == BatchStatus.COMPLETED
    assert batch.reconciled_count == 1
    assert batch.pending_count == 0

    event = AuditEvent.objects.get(event_code="reconciliation.manual", entity_id=row.id)
    assert event.metadata["from_status"] == MatchStatus.PENDING
    assert event.metadata["to_status"] == MatchStatus.DIFFERENCE


@pytest.mark.django_db
def test_manual_match_exact_amount_is_matched(patient, ledger, matcher, pending_tx):
    payment = ledger.create(patient_id=patient.id, amount=M("30000.00"))

    row = matcher.reconcile_manual(transaction_id=pending_tx.id, payment_id=payment.id)

    assert row.match_status == MatchStatus.MATCHED
    assert row.amount_difference == M("0.00")


@pytest.mark.django_db
def test_manual_match_to_sale_clears_payment(patient, ledger, make_sale, matcher, pending_tx):
    payment = ledger.create(patient_id=patient.id, amount=M("30000.00"))
    matcher.reconcile_manual(transaction_id=pending_tx.id, payment_id=payment.id)
    sale = make_sale("30500.00", D)

    row = matcher.reconcile_manual(transaction_id=pending_tx.id, sale_id=sale.id)

    assert row.matched_sale_id == sale.id
    assert row.matched_payment_id is None
    assert row.match_status == MatchStatus.DIFFERENCE
    assert row.amount_difference == M("-500.00")


@pytest.mark.django_db
def test_ignore_clears_targets(patient, ledger, matcher, pending_tx):
    payment = ledger.create(patient_id=patient.id, amount=M("1.00"))
    matcher.reconcile_manual(transaction_id=pending_tx.id, payment_id=payment.id)

    row = matcher.reconcile_manual(transaction_id=pending_tx.id, ignore=True, notes="bank fee")

    assert row.match_status == MatchStatus.IGNORED
    assert row.matched_payment_id is None
    assert row.matched_sale_id is None
    assert row.amount_difference == M("0.00")
    row.batch.refresh_from_db()
    assert row.batch.reconciled_count == 1
    assert row.batch.status == BatchStatus.COMPLETED


@pytest.mark.django_db
def test_ignored_transactions_are_left_alone_by_auto_match(patient, make_card_payment, matcher, pending_tx):
    matcher.reconcile_manual(transaction_id=pending_tx.id, ignore=True)
    make_card_payment(patient, "30000.00", D)

    matcher.rerun_auto_match(batch_id=pending_tx.batch_id)

    pending_tx.refresh_from_db()
    assert pending_tx.match_status == MatchStatus.IGNORED


@pytest.mark.django_db
@pytest.mark.parametrize(
    "kwargs",
    [
        {},
        {"ignore": True, "payment_id": uuid.UUID(int=1)},
        {"payment_id": uuid.UUID(int=1), "sale_id": uuid.UUID(int=2)},
    ],
)
def test_exactly_one_target_required(matcher, pending_tx, kwargs):
    with pytest.raises(InvalidReconciliationTarget):
        matcher.reconcile_manual(transaction_id=pending_tx.id, **kwargs)

    pending_tx.refresh_from_db()
    assert pending_tx.match_status == MatchStatus.PENDING


@pytest.mark.django_db
def test_unknown_ids(matcher, pending_tx):
    with pytest.raises(TransactionNotFound):
        matcher.reconcile_manual(transaction_id=uuid.uuid4(), ignore=True)
    with pytest.raises(PaymentNotFound):
        matcher.reconcile_manual(transaction_id=pending_tx.id, payment_id=uuid.uuid4())
    with pytest.raises(SaleNotFound):
        matcher.reconcile_manual(transaction_id=pending_tx.id, sale_id=uuid.uuid4())


@pytest.mark.django_db
def test_reconciling_again_replaces_notes(patient, ledger, matcher, pending_tx):
    payment = ledger.create(patient_id=patient.id, amount=M("28000.00"))
    matcher.reconcile_manual(transaction_id=pending_tx.id, payment_id=payment.id, notes="fee withheld")

    row = matcher.reconcile_manual(transaction_id=pending_tx.id, ignore=True)

    row.refresh_from_db()
    assert row.match_status == MatchStatus.IGNORED
    assert row.notes == ""
