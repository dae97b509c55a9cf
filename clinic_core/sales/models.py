# clinic_core/sales/models.py
from __future__ import annotations

from django.db import models
from django.utils import timezone

from clinic_core.common.fields import MoneyField
from clinic_core.common.money import MoneyAmount
from clinic_core.common.models import UUIDModel
from clinic_core.payments.models import PaymentMethod


class SaleStatus(models.TextChoices):
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


class Sale(UUIDModel):
    """
    Product sale, as far as reconciliation needs it: the collected total,
    how it was paid and when. Line items and stock live elsewhere.
    """
    sale_number = models.PositiveIntegerField(unique=True)
    patient = models.ForeignKey(
        "patients.Patient",
        on_delete=models.PROTECT,
        related_name="sales",
        null=True,
        blank=True,
    )
    total = MoneyField(default=MoneyAmount.zero)
    method = models.CharField(max_length=16, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    status = models.CharField(max_length=16, choices=SaleStatus.choices, default=SaleStatus.COMPLETED, db_index=True)
    sold_at = models.DateTimeField(default=timezone.now, db_index=True)
    reference_code = models.CharField(max_length=64, blank=True)

    class Meta:
        db_table = "sales_sale"
        indexes = [
            models.Index(fields=["status", "method", "sold_at"]),
        ]

    def __str__(self) -> str:
        return f"Sale #{self.sale_number} ({self.total})"
