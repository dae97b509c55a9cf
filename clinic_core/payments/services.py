# clinic_core/payments/services.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping
from uuid import UUID

from django.db import transaction
from django.db.models.functions import Length
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from clinic_core.audit.services import AuditService
from clinic_core.common.money import MoneyAmount
from clinic_core.patients.balances import PatientBalanceAggregator
from clinic_core.patients.models import Patient
from clinic_core.payments.exceptions import (
    AllocationExceedsCredit,
    AllocationExceedsPaymentAmount,
    AllocationExceedsPending,
    DuplicateAllocation,
    InvalidAmount,
    NoAvailableCredit,
    PatientNotFound,
    PaymentNotConfirmed,
    PaymentNotFound,
    PaymentNotVoidable,
    RefundExceedsAvailable,
    SessionMismatch,
    SessionNotFound,
)
from clinic_core.payments.models import (
    Payment,
    PaymentAllocation,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
)
from clinic_core.payments.ports import PatientBalancePort, SessionBalancePort
from clinic_core.sessions.balances import SessionBalanceTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationRequest:
    session_id: UUID
    amount: MoneyAmount

    @classmethod
    def from_value(cls, value: AllocationRequest | Mapping) -> AllocationRequest:
        if isinstance(value, AllocationRequest):
            return value
        return cls(session_id=UUID(str(value["session_id"])), amount=MoneyAmount.of(value["amount"]))


def payment_type_for(allocation_count: int) -> str:
    if allocation_count == 0:
        return PaymentType.ADVANCE
    if allocation_count == 1:
        return PaymentType.SINGLE_SESSION
    return PaymentType.MULTI_SESSION


class PaymentLedger:
    """
    Single write path for Payment, PaymentAllocation and the derived
    session / patient balances.

    Lock order inside every operation: payment row, then session rows
    (ascending pk), then the patient row (taken by the patient balance
    recompute). Keeping one order means concurrent ledger calls serialize
    instead of deadlocking.
    """

    def __init__(
        self,
        *,
        sessions: SessionBalancePort | None = None,
        patients: PatientBalancePort | None = None,
    ) -> None:
        self.sessions = sessions or SessionBalanceTracker()
        self.patients = patients or PatientBalanceAggregator()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _positive_amount(value, field_name: str = "amount") -> MoneyAmount:
        try:
            amount = MoneyAmount.of(value)
        except (TypeError, ValueError):
            raise InvalidAmount({field_name: f"Invalid amount: {value!r}."})
        if not amount.is_positive:
            raise InvalidAmount({field_name: "Amount must be greater than zero."})
        return amount

    def _normalize_allocations(self, allocations: Iterable) -> list[AllocationRequest]:
        requests: list[AllocationRequest] = []
        seen: set[UUID] = set()
        for raw in allocations or ():
            try:
                req = AllocationRequest.from_value(raw)
            except (KeyError, TypeError, ValueError):
                raise ValidationError({"allocations": "Each allocation needs a session_id and an amount."})
            self._positive_amount(req.amount, "allocations.amount")
            if req.session_id in seen:
                raise DuplicateAllocation(f"Session {req.session_id} appears more than once.")
            seen.add(req.session_id)
            requests.append(req)
        return requests

    def _lock_and_check_sessions(self, *, patient_id: UUID, requests: list[AllocationRequest]) -> None:
        sessions = self.sessions.lock_for_allocation(r.session_id for r in requests)
        for req in requests:
            session = sessions.get(req.session_id)
            if session is None:
                raise SessionNotFound(f"Session {req.session_id} not found.")
            if session.patient_id != patient_id:
                raise SessionMismatch(f"Session {req.session_id} does not belong to patient {patient_id}.")
            pending = self.sessions.pending_amount(session)
            if req.amount > pending:
                raise AllocationExceedsPending(
                    f"Allocation of {req.amount} to session {req.session_id} exceeds its pending amount ({pending})."
                )

    @staticmethod
    def _lock_payment(payment_id: UUID) -> Payment:
        try:
            return Payment.objects.select_for_update().get(id=payment_id)
        except Payment.DoesNotExist:
            raise PaymentNotFound(f"Payment {payment_id} not found.")

    @staticmethod
    def _next_payment_number_locked() -> str:
        latest = (
            Payment.objects.select_for_update()
            .exclude(payment_number="")
            .annotate(number_length=Length("payment_number"))
            .order_by("-number_length", "-payment_number")
            .first()
        )
        if not latest:
            return "PAY-000001"

        m = re.match(r"PAY-(\d{6,})$", latest.payment_number.strip())
        if not m:
            return f"PAY-{timezone.now().strftime('%y%m%d%H%M%S')}"
        return f"PAY-{int(m.group(1)) + 1:06d}"

    def _recompute(self, *, patient_id: UUID, session_ids: Iterable[UUID]) -> None:
        for session_id in session_ids:
            self.sessions.recompute(session_id)
        self.patients.recompute(patient_id)

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(
        self,
        *,
        patient_id: UUID,
        amount,
        method: str = PaymentMethod.CASH,
        allocations: Iterable = (),
        reference_code: str = "",
        description: str = "",
        notes: str = "",
        paid_at=None,
        actor_user_id: int | None = None,
    ) -> Payment:
        amount = self._positive_amount(amount)
        requests = self._normalize_allocations(allocations)

        if not Patient.objects.filter(id=patient_id).exists():
            raise PatientNotFound(f"Patient {patient_id} not found.")

        # Takes the latest payment row lock before any session lock.
        payment_number = self._next_payment_number_locked()
        self._lock_and_check_sessions(patient_id=patient_id, requests=requests)

        applied = MoneyAmount.sum(r.amount for r in requests)
        if applied > amount:
            raise AllocationExceedsPaymentAmount(
                f"Total allocated ({applied}) exceeds the payment amount ({amount})."
            )

        payment = Payment.objects.create(
            payment_number=payment_number,
            patient_id=patient_id,
            amount=amount,
            applied_amount=applied,
            available_credit=amount - applied,
            refunded_amount=MoneyAmount.zero(),
            method=method,
            payment_type=payment_type_for(len(requests)),
            status=PaymentStatus.CONFIRMED,
            paid_at=paid_at or timezone.now(),
            reference_code=reference_code or "",
            description=description or "",
            notes=notes or "",
            recorded_by_user_id=actor_user_id,
        )
        PaymentAllocation.objects.bulk_create(
            [PaymentAllocation(payment=payment, session_id=r.session_id, amount=r.amount) for r in requests]
        )

        self._recompute(patient_id=patient_id, session_ids=[r.session_id for r in requests])

        AuditService.log(
            event_code="payment.created",
            entity_type="Payment",
            entity_id=payment.id,
            actor_user_id=actor_user_id,
            metadata={
                "amount": str(amount),
                "method": method,
                "payment_type": payment.payment_type,
                "allocations": [{"session_id": str(r.session_id), "amount": str(r.amount)} for r in requests],
            },
        )
        logger.info(
            "Payment %s created for patient %s: amount=%s applied=%s credit=%s",
            payment.payment_number,
            patient_id,
            amount,
            applied,
            payment.available_credit,
        )
        return payment

    @transaction.atomic
    def allocate(
        self,
        *,
        payment_id: UUID,
        allocations: Iterable,
        actor_user_id: int | None = None,
    ) -> Payment:
        """
        Applies spare credit of a confirmed payment to more sessions.
        """
        requests = self._normalize_allocations(allocations)
        if not requests:
            raise ValidationError({"allocations": "At least one allocation is required."})

        payment = self._lock_payment(payment_id)
        if payment.status != PaymentStatus.CONFIRMED:
            raise PaymentNotConfirmed(f"Payment {payment.payment_number} is {payment.status}.")
        if not payment.available_credit.is_positive:
            raise NoAvailableCredit(f"Payment {payment.payment_number} has no available credit.")

        existing = set(
            PaymentAllocation.objects.filter(
                payment=payment,
                session_id__in=[r.session_id for r in requests],
            ).values_list("session_id", flat=True)
        )
        if existing:
            raise DuplicateAllocation(
                f"Payment {payment.payment_number} is already allocated to session(s): "
                + ", ".join(sorted(str(s) for s in existing))
            )

        self._lock_and_check_sessions(patient_id=payment.patient_id, requests=requests)

        total = MoneyAmount.sum(r.amount for r in requests)
        if total > payment.available_credit:
            raise AllocationExceedsCredit(
                f"Total to allocate ({total}) exceeds the available credit ({payment.available_credit})."
            )

        PaymentAllocation.objects.bulk_create(
            [PaymentAllocation(payment=payment, session_id=r.session_id, amount=r.amount) for r in requests]
        )
        payment.applied_amount = payment.applied_amount + total
        payment.available_credit = payment.available_credit - total
        payment.save(update_fields=["applied_amount", "available_credit", "updated_at"])

        self._recompute(patient_id=payment.patient_id, session_ids=[r.session_id for r in requests])

        AuditService.log(
            event_code="payment.allocated",
            entity_type="Payment",
            entity_id=payment.id,
            actor_user_id=actor_user_id,
            metadata={
                "total": str(total),
                "allocations": [{"session_id": str(r.session_id), "amount": str(r.amount)} for r in requests],
            },
        )
        logger.info(
            "Payment %s allocated %s to %d session(s); credit left %s",
            payment.payment_number,
            total,
            len(requests),
            payment.available_credit,
        )
        return payment

    @transaction.atomic
    def refund(
        self,
        *,
        payment_id: UUID,
        amount,
        reason: str = "",
        actor_user_id: int | None = None,
    ) -> Payment:
        """
        Refunds from the unapplied part of a payment. Existing allocations are
        never touched. Only a single refund of the whole amount makes the
        payment REFUNDED; partial refunds leave it CONFIRMED.
        """
        amount = self._positive_amount(amount)
        payment = self._lock_payment(payment_id)

        if payment.status != PaymentStatus.CONFIRMED:
            raise PaymentNotConfirmed(f"Only confirmed payments can be refunded ({payment.status}).")

        refundable = payment.available_credit
        if amount > refundable:
            raise RefundExceedsAvailable(f"Refund of {amount} exceeds the refundable amount ({refundable}).")

        payment.available_credit = (payment.available_credit - amount).clamp_at_zero()
        payment.refunded_amount = payment.refunded_amount + amount
        if amount == payment.amount:
            payment.status = PaymentStatus.REFUNDED

        note = f"[Refund: {amount}{f' - {reason}' if reason else ''}]"
        payment.notes = f"{payment.notes}\n{note}" if payment.notes else note

        payment.save(update_fields=["available_credit", "refunded_amount", "status", "notes", "updated_at"])
        self.patients.recompute(payment.patient_id)

        AuditService.log(
            event_code="payment.refunded",
            entity_type="Payment",
            entity_id=payment.id,
            actor_user_id=actor_user_id,
            metadata={"amount": str(amount), "reason": reason or "", "status": payment.status},
        )
        logger.info("Payment %s refunded %s (status=%s)", payment.payment_number, amount, payment.status)
        return payment

    @transaction.atomic
    def void(self, *, payment_id: UUID, actor_user_id: int | None = None) -> Payment:
        """
        Cancels the payment's economic effect: every allocation is removed and
        both applied amount and available credit drop to zero. Credit is not
        restored; a voided payment is final.
        """
        payment = self._lock_payment(payment_id)
        if payment.status not in (PaymentStatus.CONFIRMED, PaymentStatus.PENDING):
            raise PaymentNotVoidable(f"Payment {payment.payment_number} is {payment.status} and cannot be voided.")

        affected = list(payment.allocations.values_list("session_id", flat=True))
        self.sessions.lock_for_allocation(affected)

        payment.allocations.all().delete()
        payment.applied_amount = MoneyAmount.zero()
        payment.available_credit = MoneyAmount.zero()
        payment.status = PaymentStatus.VOIDED
        payment.voided_at = timezone.now()
        payment.save(update_fields=["applied_amount", "available_credit", "status", "voided_at", "updated_at"])

        self._recompute(patient_id=payment.patient_id, session_ids=affected)

        AuditService.log(
            event_code="payment.voided",
            entity_type="Payment",
            entity_id=payment.id,
            actor_user_id=actor_user_id,
            metadata={"released_sessions": [str(s) for s in affected]},
        )
        logger.info("Payment %s voided; %d allocation(s) removed", payment.payment_number, len(affected))
        return payment
