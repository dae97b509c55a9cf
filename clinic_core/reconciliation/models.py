# clinic_core/reconciliation/models.py
from __future__ import annotations

from django.db import models
from django.utils import timezone

from clinic_core.common.fields import MoneyField
from clinic_core.common.models import UUIDModel
from clinic_core.common.money import MoneyAmount


class BatchStatus(models.TextChoices):
    PROCESSING = "PROCESSING", "Processing"
    COMPLETED = "COMPLETED", "Completed"


class MatchStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    MATCHED = "MATCHED", "Matched"
    DIFFERENCE = "DIFFERENCE", "Matched With Difference"
    IGNORED = "IGNORED", "Ignored"


RECONCILED_STATUSES = (MatchStatus.MATCHED, MatchStatus.DIFFERENCE, MatchStatus.IGNORED)
LINKED_STATUSES = (MatchStatus.MATCHED, MatchStatus.DIFFERENCE)


class ImportBatch(UUIDModel):
    """
    One import of a card-network settlement file.

    Counters are a roll-up of the batch's transactions, rewritten after every
    matching pass. COMPLETED iff pending_count == 0.
    """
    file_name = models.CharField(max_length=255)
    imported_at = models.DateTimeField(default=timezone.now, db_index=True)
    date_from = models.DateField()
    date_to = models.DateField()

    total_transactions = models.PositiveIntegerField(default=0)
    total_amount = MoneyField(default=MoneyAmount.zero)
    reconciled_count = models.PositiveIntegerField(default=0)
    pending_count = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=16, choices=BatchStatus.choices, default=BatchStatus.PROCESSING, db_index=True)

    imported_by_user_id = models.IntegerField(null=True, blank=True)

    class Meta:
        db_table = "reconciliation_import_batch"

    def __str__(self) -> str:
        return f"{self.file_name} ({self.date_from}..{self.date_to})"


class ImportedTransaction(UUIDModel):
    """
    A single card transaction reported by the bank.

    matched_payment / matched_sale: exactly one is set when MATCHED or
    DIFFERENCE, both are null when PENDING or IGNORED.
    """
    batch = models.ForeignKey(ImportBatch, on_delete=models.PROTECT, related_name="transactions")

    transaction_date = models.DateField(db_index=True)
    transaction_time = models.TimeField(null=True, blank=True)
    operation_number = models.CharField(max_length=64, blank=True)
    authorization_code = models.CharField(max_length=64, blank=True)
    card_type = models.CharField(max_length=32, blank=True)
    card_last_digits = models.CharField(max_length=8, blank=True)
    installments = models.PositiveSmallIntegerField(null=True, blank=True)
    amount = MoneyField()

    match_status = models.CharField(
        max_length=16,
        choices=MatchStatus.choices,
        default=MatchStatus.PENDING,
        db_index=True,
    )
    matched_payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="bank_transactions",
        null=True,
        blank=True,
    )
    matched_sale = models.ForeignKey(
        "sales.Sale",
        on_delete=models.PROTECT,
        related_name="bank_transactions",
        null=True,
        blank=True,
    )
    matched_at = models.DateTimeField(null=True, blank=True)
    amount_difference = MoneyField(default=MoneyAmount.zero)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = "reconciliation_imported_transaction"
        indexes = [
            models.Index(fields=["batch", "match_status"]),
            models.Index(fields=["match_status", "transaction_date"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(
                        match_status__in=[MatchStatus.PENDING, MatchStatus.IGNORED],
                        matched_payment__isnull=True,
                        matched_sale__isnull=True,
                    )
                    | models.Q(
                        match_status__in=[MatchStatus.MATCHED, MatchStatus.DIFFERENCE],
                        matched_payment__isnull=False,
                        matched_sale__isnull=True,
                    )
                    | models.Q(
                        match_status__in=[MatchStatus.MATCHED, MatchStatus.DIFFERENCE],
                        matched_payment__isnull=True,
                        matched_sale__isnull=False,
                    )
                ),
                name="ck_imported_tx_single_match_target",
            ),
        ]
