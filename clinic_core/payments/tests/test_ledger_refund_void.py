import pytest

from clinic_core.common.money import MoneyAmount
from clinic_core.payments.exceptions import (
    InvalidAmount,
    PaymentNotConfirmed,
    PaymentNotVoidable,
    RefundExceedsAvailable,
)
from clinic_core.payments.models import PaymentAllocation, PaymentStatus
from clinic_core.sessions.models import SessionPaymentStatus

M = MoneyAmount.of


@pytest.fixture
def half_applied(patient, make_session, ledger):
    """50000 payment with 20000 applied to one session."""
    session = make_session(patient, "20000.00")
    payment = ledger.create(
        patient_id=patient.id,
        amount=M("50000.00"),
        allocations=[{"session_id": session.id, "amount": "20000.00"}],
    )
    return payment, session


@pytest.mark.django_db
def test_partial_refund_keeps_payment_confirmed(patient, ledger, half_applied):
    payment, session = half_applied

    payment = ledger.refund(payment_id=payment.id, amount=M("10000.00"), reason="overpaid")

    patient.refresh_from_db()
    session.refresh_from_db()
    assert payment.status == PaymentStatus.CONFIRMED
    assert payment.available_credit == M("20000.00")
    assert payment.applied_amount == M("20000.00")
    assert payment.refunded_amount == M("10000.00")
    assert "[Refund: 10000.00 - overpaid]" in payment.notes
    assert session.payment_status == SessionPaymentStatus.PAID
    assert patient.total_credit == M("20000.00")


@pytest.mark.django_db
def test_refund_cannot_touch_applied_amount(ledger, half_applied):
    payment, _ = half_applied

    with pytest.raises(RefundExceedsAvailable):
        ledger.refund(payment_id=payment.id, amount=M("30000.01"))

    payment = ledger.refund(payment_id=payment.id, amount=M("30000.00"))
    assert payment.available_credit == M("0.00")
    assert payment.status == PaymentStatus.CONFIRMED


@pytest.mark.django_db
def test_full_refund_of_advance_marks_refunded(patient, ledger):
    payment = ledger.create(patient_id=patient.id, amount=M("500.00"))

    payment = ledger.refund(payment_id=payment.id, amount=M("500.00"), reason="cancelled treatment")

    payment.refresh_from_db()
    patient.refresh_from_db()
    assert payment.status == PaymentStatus.REFUNDED
    assert payment.refunded_amount == M("500.00")
    assert payment.available_credit == M("0.00")
    assert "[Refund: 500.00 - cancelled treatment]" in payment.notes
    assert patient.total_credit == M("0.00")

    with pytest.raises(PaymentNotConfirmed):
        ledger.refund(payment_id=payment.id, amount=M("1.00"))


@pytest.mark.django_db
def test_partial_refunds_adding_up_to_amount_stay_confirmed(patient, ledger):
    payment = ledger.create(patient_id=patient.id, amount=M("50000.00"))

    ledger.refund(payment_id=payment.id, amount=M("20000.00"))
    payment = ledger.refund(payment_id=payment.id, amount=M("30000.00"))

    payment.refresh_from_db()
    assert payment.status == PaymentStatus.CONFIRMED
    assert payment.refunded_amount == M("50000.00")
    assert payment.available_credit == M("0.00")
    assert payment.applied_amount + payment.available_credit + payment.refunded_amount == payment.amount
    assert payment.notes.count("[Refund:") == 2

    payment = ledger.void(payment_id=payment.id)
    assert payment.status == PaymentStatus.VOIDED


@pytest.mark.django_db
def test_refund_rejects_non_positive_amount(ledger, half_applied):
    payment, _ = half_applied
    with pytest.raises(InvalidAmount):
        ledger.refund(payment_id=payment.id, amount=M("0.00"))


@pytest.mark.django_db
def test_void_releases_sessions_and_zeroes_credit(patient, ledger, half_applied):
    payment, session = half_applied

    payment = ledger.void(payment_id=payment.id)

    session.refresh_from_db()
    patient.refresh_from_db()
    assert payment.status == PaymentStatus.VOIDED
    assert payment.voided_at is not None
    assert payment.applied_amount == M("0.00")
    assert payment.available_credit == M("0.00")
    assert payment.amount == M("50000.00")
    assert not PaymentAllocation.objects.filter(payment_id=payment.id).exists()
    assert session.paid_amount == M("0.00")
    assert session.payment_status == SessionPaymentStatus.UNPAID
    assert patient.total_debt == M("20000.00")
    assert patient.total_credit == M("0.00")


@pytest.mark.django_db
def test_void_twice_fails(ledger, half_applied):
    payment, _ = half_applied
    ledger.void(payment_id=payment.id)

    with pytest.raises(PaymentNotVoidable):
        ledger.void(payment_id=payment.id)


@pytest.mark.django_db
def test_void_refunded_payment_fails(patient, ledger):
    payment = ledger.create(patient_id=patient.id, amount=M("10.00"))
    ledger.refund(payment_id=payment.id, amount=M("10.00"))

    with pytest.raises(PaymentNotVoidable):
        ledger.void(payment_id=payment.id)


@pytest.mark.django_db
def test_void_keeps_other_payments_allocations(patient, make_session, ledger):
    session = make_session(patient, "100.00")
    first = ledger.create(
        patient_id=patient.id,
        amount=M("30.00"),
        allocations=[{"session_id": session.id, "amount": "30.00"}],
    )
    second = ledger.create(
        patient_id=patient.id,
        amount=M("50.00"),
        allocations=[{"session_id": session.id, "amount": "50.00"}],
    )

    ledger.void(payment_id=first.id)

    session.refresh_from_db()
    assert session.paid_amount == M("50.00")
    assert session.payment_status == SessionPaymentStatus.PARTIAL
    assert PaymentAllocation.objects.filter(payment=second).count() == 1
