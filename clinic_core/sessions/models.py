# clinic_core/sessions/models.py
from __future__ import annotations

from django.db import models
from django.utils import timezone

from clinic_core.common.fields import MoneyField
from clinic_core.common.models import UUIDModel
from clinic_core.common.money import MoneyAmount


class SessionPaymentStatus(models.TextChoices):
    UNPAID = "UNPAID", "Unpaid"
    PARTIAL = "PARTIAL", "Partially Paid"
    PAID = "PAID", "Paid"


class Session(UUIDModel):
    """
    Billable clinic session.

    paid_amount and payment_status are derived from payment allocations and
    are only written by SessionBalanceTracker.
    """
    patient = models.ForeignKey("patients.Patient", on_delete=models.PROTECT, related_name="sessions")
    scheduled_at = models.DateTimeField(default=timezone.now)
    duration_minutes = models.PositiveIntegerField(default=30)

    base_price = MoneyField(default=MoneyAmount.zero)
    discount = MoneyField(default=MoneyAmount.zero)
    final_price = MoneyField(default=MoneyAmount.zero)

    paid_amount = MoneyField(default=MoneyAmount.zero)
    payment_status = models.CharField(
        max_length=16,
        choices=SessionPaymentStatus.choices,
        default=SessionPaymentStatus.UNPAID,
        db_index=True,
    )

    notes = models.TextField(blank=True)

    class Meta:
        db_table = "clinic_session"
        indexes = [
            models.Index(fields=["patient", "payment_status"]),
            models.Index(fields=["scheduled_at"]),
        ]

    @property
    def pending_amount(self) -> MoneyAmount:
        return (self.final_price - self.paid_amount).clamp_at_zero()

    def __str__(self) -> str:
        return f"Session {self.id} ({self.final_price})"
