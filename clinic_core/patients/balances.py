# clinic_core/patients/balances.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from clinic_core.common.money import MoneyAmount
from clinic_core.patients.models import Patient
from clinic_core.payments.models import Payment, PaymentStatus
from clinic_core.sessions.models import Session, SessionPaymentStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatientBalance:
    patient_id: UUID
    total_debt: MoneyAmount
    total_credit: MoneyAmount


def compute_patient_balance(patient_id: UUID) -> PatientBalance:
    """
    Pure read: derives debt and credit from Session and Payment state.

    - total_debt: sum of (final_price - paid_amount) over UNPAID / PARTIAL sessions
    - total_credit: sum of available_credit over CONFIRMED payments
    """
    open_sessions = Session.objects.filter(
        patient_id=patient_id,
        payment_status__in=[SessionPaymentStatus.UNPAID, SessionPaymentStatus.PARTIAL],
    ).values_list("final_price", "paid_amount")
    total_debt = MoneyAmount.sum(final_price - paid_amount for final_price, paid_amount in open_sessions)

    credits = Payment.objects.filter(
        patient_id=patient_id,
        status=PaymentStatus.CONFIRMED,
    ).values_list("available_credit", flat=True)
    total_credit = MoneyAmount.sum(credits)

    return PatientBalance(patient_id=patient_id, total_debt=total_debt, total_credit=total_credit)


class PatientBalanceAggregator:
    """
    Materialized balance cache on Patient.

    Always recompute-and-overwrite from source rows; never add/subtract
    deltas into the cached columns.
    """

    @transaction.atomic
    def recompute(self, patient_id: UUID) -> Patient:
        patient = Patient.objects.select_for_update().get(id=patient_id)
        balance = compute_patient_balance(patient_id)

        total_debt = balance.total_debt
        total_credit = balance.total_credit
        if total_debt.is_negative or total_credit.is_negative:
            logger.error(
                "Negative patient balance computed for %s (debt=%s credit=%s); clamping to zero",
                patient_id,
                total_debt,
                total_credit,
            )
            total_debt = total_debt.clamp_at_zero()
            total_credit = total_credit.clamp_at_zero()

        patient.total_debt = total_debt
        patient.total_credit = total_credit
        patient.balance_updated_at = timezone.now()
        patient.save(update_fields=["total_debt", "total_credit", "balance_updated_at", "updated_at"])
        return patient
