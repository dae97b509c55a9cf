import uuid

import pytest
from rest_framework.exceptions import ValidationError

from clinic_core.common.money import MoneyAmount
from clinic_core.payments.exceptions import (
    AllocationExceedsCredit,
    AllocationExceedsPending,
    DuplicateAllocation,
    NoAvailableCredit,
    PaymentNotConfirmed,
    PaymentNotFound,
    SessionMismatch,
)
from clinic_core.payments.models import PaymentAllocation
from clinic_core.sessions.models import SessionPaymentStatus

M = MoneyAmount.of


@pytest.fixture
def advance(patient, ledger):
    return ledger.create(patient_id=patient.id, amount=M("50000.00"))


@pytest.mark.django_db
def test_allocate_part_of_advance(patient, make_session, ledger, advance):
    session = make_session(patient, "20000.00")

    payment = ledger.allocate(
        payment_id=advance.id,
        allocations=[{"session_id": session.id, "amount": "20000.00"}],
    )

    session.refresh_from_db()
    patient.refresh_from_db()
    assert session.payment_status == SessionPaymentStatus.PAID
    assert payment.available_credit == M("30000.00")
    assert payment.applied_amount == M("20000.00")
    assert patient.total_credit == M("30000.00")
    assert patient.total_debt == M("0.00")


@pytest.mark.django_db
def test_allocate_exactly_available_credit(patient, make_session, ledger):
    payment = ledger.create(patient_id=patient.id, amount=M("60.00"))
    session = make_session(patient, "100.00")

    payment = ledger.allocate(payment_id=payment.id, allocations=[{"session_id": session.id, "amount": "60.00"}])

    assert payment.available_credit == M("0.00")
    session.refresh_from_db()
    assert session.payment_status == SessionPaymentStatus.PARTIAL


@pytest.mark.django_db
def test_allocate_one_cent_over_credit_fails(patient, make_session, ledger):
    payment = ledger.create(patient_id=patient.id, amount=M("60.00"))
    session = make_session(patient, "100.00")

    with pytest.raises(AllocationExceedsCredit):
        ledger.allocate(payment_id=payment.id, allocations=[{"session_id": session.id, "amount": "60.01"}])

    payment.refresh_from_db()
    assert payment.available_credit == M("60.00")
    assert not PaymentAllocation.objects.filter(payment=payment).exists()


@pytest.mark.django_db
def test_allocate_over_pending_fails(patient, make_session, ledger, advance):
    session = make_session(patient, "100.00")

    with pytest.raises(AllocationExceedsPending):
        ledger.allocate(payment_id=advance.id, allocations=[{"session_id": session.id, "amount": "100.01"}])


@pytest.mark.django_db
def test_allocate_same_session_twice_fails(patient, make_session, ledger, advance):
    session = make_session(patient, "100.00")
    ledger.allocate(payment_id=advance.id, allocations=[{"session_id": session.id, "amount": "40.00"}])

    with pytest.raises(DuplicateAllocation):
        ledger.allocate(payment_id=advance.id, allocations=[{"session_id": session.id, "amount": "10.00"}])


@pytest.mark.django_db
def test_allocate_without_credit_fails(patient, make_session, ledger):
    s1 = make_session(patient, "100.00")
    s2 = make_session(patient, "100.00")
    payment = ledger.create(
        patient_id=patient.id,
        amount=M("100.00"),
        allocations=[{"session_id": s1.id, "amount": "100.00"}],
    )

    with pytest.raises(NoAvailableCredit):
        ledger.allocate(payment_id=payment.id, allocations=[{"session_id": s2.id, "amount": "1.00"}])


@pytest.mark.django_db
def test_allocate_to_other_patients_session_fails(make_patient, make_session, ledger, advance):
    other = make_patient(full_name="Someone Else")
    session = make_session(other, "100.00")

    with pytest.raises(SessionMismatch):
        ledger.allocate(payment_id=advance.id, allocations=[{"session_id": session.id, "amount": "10.00"}])


@pytest.mark.django_db
def test_allocate_voided_payment_fails(patient, make_session, ledger, advance):
    session = make_session(patient, "100.00")
    ledger.void(payment_id=advance.id)

    with pytest.raises(PaymentNotConfirmed):
        ledger.allocate(payment_id=advance.id, allocations=[{"session_id": session.id, "amount": "10.00"}])


@pytest.mark.django_db
def test_allocate_requires_allocations(ledger, advance):
    with pytest.raises(ValidationError):
        ledger.allocate(payment_id=advance.id, allocations=[])


@pytest.mark.django_db
def test_allocate_unknown_payment(ledger, patient, make_session):
    session = make_session(patient, "10.00")
    with pytest.raises(PaymentNotFound):
        ledger.allocate(payment_id=uuid.uuid4(), allocations=[{"session_id": session.id, "amount": "1.00"}])
