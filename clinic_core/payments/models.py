# clinic_core/payments/models.py
from __future__ import annotations

from django.db import models
from django.utils import timezone

from clinic_core.common.fields import MoneyField
from clinic_core.common.models import UUIDModel
from clinic_core.common.money import MoneyAmount


class PaymentMethod(models.TextChoices):
    CASH = "CASH", "Cash"
    CARD_DEBIT = "CARD_DEBIT", "Debit Card"
    CARD_CREDIT = "CARD_CREDIT", "Credit Card"
    TRANSFER = "TRANSFER", "Bank Transfer"


CARD_METHODS = (PaymentMethod.CARD_DEBIT, PaymentMethod.CARD_CREDIT)


class PaymentType(models.TextChoices):
    ADVANCE = "ADVANCE", "Advance"
    SINGLE_SESSION = "SINGLE_SESSION", "Single Session"
    MULTI_SESSION = "MULTI_SESSION", "Multiple Sessions"


class PaymentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    CONFIRMED = "CONFIRMED", "Confirmed"
    REFUNDED = "REFUNDED", "Refunded"
    VOIDED = "VOIDED", "Voided"


class Payment(UUIDModel):
    """
    Money received from a patient.

    Ledger identity (maintained by PaymentLedger only):
        applied_amount + available_credit + refunded_amount == amount
    except for VOIDED payments, which keep amount but zero everything else.
    """
    payment_number = models.CharField(max_length=32, unique=True)
    patient = models.ForeignKey("patients.Patient", on_delete=models.PROTECT, related_name="payments")

    amount = MoneyField()
    applied_amount = MoneyField(default=MoneyAmount.zero)
    available_credit = MoneyField(default=MoneyAmount.zero)
    refunded_amount = MoneyField(default=MoneyAmount.zero)

    method = models.CharField(max_length=16, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    payment_type = models.CharField(max_length=16, choices=PaymentType.choices, default=PaymentType.ADVANCE)
    status = models.CharField(
        max_length=16,
        choices=PaymentStatus.choices,
        default=PaymentStatus.CONFIRMED,
        db_index=True,
    )

    paid_at = models.DateTimeField(default=timezone.now, db_index=True)
    reference_code = models.CharField(max_length=64, blank=True)
    description = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)

    voided_at = models.DateTimeField(null=True, blank=True)
    recorded_by_user_id = models.IntegerField(null=True, blank=True)

    class Meta:
        db_table = "payments_payment"
        indexes = [
            models.Index(fields=["patient", "status"]),
            models.Index(fields=["status", "method", "paid_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.payment_number} ({self.amount})"


class PaymentAllocation(UUIDModel):
    """
    Portion of a payment applied to one session.
    """
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name="allocations")
    session = models.ForeignKey("clinic_sessions.Session", on_delete=models.PROTECT, related_name="allocations")
    amount = MoneyField()

    class Meta:
        db_table = "payments_payment_allocation"
        constraints = [
            models.UniqueConstraint(fields=["payment", "session"], name="uq_allocation_payment_session"),
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="ck_allocation_amount_positive"),
        ]
