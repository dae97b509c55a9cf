from __future__ import annotations

from uuid import UUID

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from clinic_core.common.money import MoneyAmount
from clinic_core.patients.balances import PatientBalanceAggregator
from clinic_core.patients.models import Patient
from clinic_core.sessions.balances import payment_status_for
from clinic_core.sessions.models import Session


class SessionService:
    @staticmethod
    @transaction.atomic
    def create_session(
        *,
        patient_id: UUID,
        base_price: MoneyAmount,
        discount: MoneyAmount | None = None,
        scheduled_at=None,
        duration_minutes: int = 30,
        notes: str = "",
    ) -> Session:
        base_price = MoneyAmount.of(base_price)
        discount = MoneyAmount.of(discount) if discount is not None else MoneyAmount.zero()

        if base_price.is_negative:
            raise ValidationError({"base_price": "Base price must be >= 0."})
        if discount.is_negative or discount > base_price:
            raise ValidationError({"discount": "Discount must be between 0 and the base price."})
        if not Patient.objects.filter(id=patient_id).exists():
            raise ValidationError({"patient": "Patient not found."})

        final_price = base_price - discount
        session = Session.objects.create(
            patient_id=patient_id,
            scheduled_at=scheduled_at or timezone.now(),
            duration_minutes=duration_minutes,
            base_price=base_price,
            discount=discount,
            final_price=final_price,
            paid_amount=MoneyAmount.zero(),
            payment_status=payment_status_for(paid_amount=MoneyAmount.zero(), final_price=final_price),
            notes=notes or "",
        )
        PatientBalanceAggregator().recompute(patient_id)
        return session
