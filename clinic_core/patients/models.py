# clinic_core/patients/models.py
from django.db import models

from clinic_core.common.fields import MoneyField
from clinic_core.common.models import UUIDModel
from clinic_core.common.money import MoneyAmount


class Patient(UUIDModel):
    """
    Patient record. total_debt / total_credit are a balance cache owned by
    PatientBalanceAggregator; nothing else writes them.
    """
    full_name = models.CharField(max_length=255)
    national_id = models.CharField(max_length=32, unique=True)
    phone = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)

    total_debt = MoneyField(default=MoneyAmount.zero)
    total_credit = MoneyField(default=MoneyAmount.zero)
    balance_updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "patients_patient"
        indexes = [
            models.Index(fields=["full_name"]),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.national_id})"
