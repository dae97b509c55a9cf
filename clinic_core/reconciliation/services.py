# clinic_core/reconciliation/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Mapping
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.db.models import Count
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_time

from clinic_core.audit.services import AuditService
from clinic_core.common.money import MoneyAmount
from clinic_core.payments.exceptions import PaymentNotFound
from clinic_core.payments.models import CARD_METHODS, Payment
from clinic_core.payments.selectors import find_matching_card_payment
from clinic_core.reconciliation.exceptions import (
    BatchNotFound,
    InvalidImport,
    InvalidReconciliationTarget,
    SaleNotFound,
    TransactionNotFound,
)
from clinic_core.reconciliation.models import (
    LINKED_STATUSES,
    RECONCILED_STATUSES,
    BatchStatus,
    ImportBatch,
    ImportedTransaction,
    MatchStatus,
)
from clinic_core.reconciliation.selectors import reconciliation_summary
from clinic_core.sales.models import Sale
from clinic_core.sales.selectors import find_matching_completed_sale

logger = logging.getLogger(__name__)


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_date(str(value)) if value else None
    if parsed is None:
        raise ValueError(f"Invalid date: {value!r}")
    return parsed


def _as_time(value) -> time | None:
    if value in (None, ""):
        return None
    if isinstance(value, time):
        return value
    parsed = parse_time(str(value))
    if parsed is None:
        raise ValueError(f"Invalid time: {value!r}")
    return parsed


@dataclass(frozen=True)
class TransactionInput:
    """One parsed line of a bank settlement file."""

    transaction_date: date
    amount: MoneyAmount
    transaction_time: time | None = None
    operation_number: str = ""
    authorization_code: str = ""
    card_type: str = ""
    card_last_digits: str = ""
    installments: int | None = None

    @classmethod
    def from_value(cls, value: TransactionInput | Mapping) -> TransactionInput:
        if isinstance(value, TransactionInput):
            return value
        installments = value.get("installments")
        return cls(
            transaction_date=_as_date(value["transaction_date"]),
            amount=MoneyAmount.of(value["amount"]),
            transaction_time=_as_time(value.get("transaction_time")),
            operation_number=str(value.get("operation_number") or ""),
            authorization_code=str(value.get("authorization_code") or ""),
            card_type=str(value.get("card_type") or ""),
            card_last_digits=str(value.get("card_last_digits") or ""),
            installments=int(installments) if installments not in (None, "") else None,
        )


def _match_window_days() -> int:
    return int(getattr(settings, "RECONCILIATION_MATCH_WINDOW_DAYS", 1))


def _claimed_payment_ids():
    return ImportedTransaction.objects.filter(
        match_status__in=LINKED_STATUSES,
        matched_payment__isnull=False,
    ).values("matched_payment_id")


def _claimed_sale_ids():
    return ImportedTransaction.objects.filter(
        match_status__in=LINKED_STATUSES,
        matched_sale__isnull=False,
    ).values("matched_sale_id")


class ReconciliationMatcher:
    """
    Matches imported bank transactions against confirmed card payments and
    completed card sales.

    Auto-matching only ever looks for an exact amount inside the date window
    and only touches PENDING rows, so running it again is harmless. Manual
    reconciliation may override any state.
    """

    # ------------------------------------------------------------------
    # import
    # ------------------------------------------------------------------

    def ingest_batch(
        self,
        *,
        file_name: str,
        transactions: Iterable,
        actor_user_id: int | None = None,
    ) -> ImportBatch:
        rows: list[TransactionInput] = []
        for idx, raw in enumerate(transactions or ()):
            try:
                row = TransactionInput.from_value(raw)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                raise InvalidImport({"transactions": f"Line {idx + 1}: {exc}"})
            if not row.amount.is_positive:
                raise InvalidImport({"transactions": f"Line {idx + 1}: amount must be greater than zero."})
            rows.append(row)

        if not rows:
            raise InvalidImport()

        batch = self._store_batch(file_name=file_name, rows=rows, actor_user_id=actor_user_id)
        batch = self.auto_match(batch_id=batch.id)

        logger.info(
            "Imported %s: %d transaction(s), %d reconciled, %d pending",
            file_name,
            batch.total_transactions,
            batch.reconciled_count,
            batch.pending_count,
        )
        return batch

    @staticmethod
    @transaction.atomic
    def _store_batch(*, file_name: str, rows: list[TransactionInput], actor_user_id: int | None) -> ImportBatch:
        batch = ImportBatch.objects.create(
            file_name=file_name or "",
            date_from=min(r.transaction_date for r in rows),
            date_to=max(r.transaction_date for r in rows),
            total_transactions=len(rows),
            total_amount=MoneyAmount.sum(r.amount for r in rows),
            pending_count=len(rows),
            status=BatchStatus.PROCESSING,
            imported_by_user_id=actor_user_id,
        )
        ImportedTransaction.objects.bulk_create(
            [
                ImportedTransaction(
                    batch=batch,
                    transaction_date=r.transaction_date,
                    transaction_time=r.transaction_time,
                    operation_number=r.operation_number,
                    authorization_code=r.authorization_code,
                    card_type=r.card_type,
                    card_last_digits=r.card_last_digits,
                    installments=r.installments,
                    amount=r.amount,
                )
                for r in rows
            ]
        )
        AuditService.log(
            event_code="reconciliation.batch_imported",
            entity_type="ImportBatch",
            entity_id=batch.id,
            actor_user_id=actor_user_id,
            metadata={
                "file_name": batch.file_name,
                "transactions": len(rows),
                "total_amount": str(batch.total_amount),
            },
        )
        return batch

    # ------------------------------------------------------------------
    # auto-match
    # ------------------------------------------------------------------

    def auto_match(self, *, batch_id: UUID) -> ImportBatch:
        """
        Tries every PENDING transaction of the batch: payment first, then sale.
        Each transaction is matched in its own atomic block. The batch
        counters are refreshed at the end, also when a match raises.
        """
        if not ImportBatch.objects.filter(id=batch_id).exists():
            raise BatchNotFound(f"Import batch {batch_id} not found.")

        pending_ids = list(
            ImportedTransaction.objects.filter(batch_id=batch_id, match_status=MatchStatus.PENDING)
            .order_by("transaction_date", "transaction_time", "id")
            .values_list("id", flat=True)
        )

        matched = 0
        try:
            for tx_id in pending_ids:
                if self._match_one(tx_id):
                    matched += 1
        finally:
            # Counters follow whatever rows were matched before a failure.
            batch = self.refresh_batch_status(batch_id=batch_id)

        logger.info("Auto-match on batch %s: %d of %d pending matched", batch_id, matched, len(pending_ids))
        return batch

    def rerun_auto_match(self, *, batch_id: UUID) -> ImportBatch:
        return self.auto_match(batch_id=batch_id)

    @transaction.atomic
    def _match_one(self, tx_id: UUID) -> bool:
        tx = ImportedTransaction.objects.select_for_update().get(id=tx_id)
        if tx.match_status != MatchStatus.PENDING:
            return False

        window = timedelta(days=_match_window_days())
        date_from = tx.transaction_date - window
        date_to = tx.transaction_date + window

        payment = find_matching_card_payment(
            amount=tx.amount,
            target_date=tx.transaction_date,
            date_from=date_from,
            date_to=date_to,
            exclude_ids=_claimed_payment_ids(),
        )
        sale = None
        if payment is None:
            sale = find_matching_completed_sale(
                amount=tx.amount,
                target_date=tx.transaction_date,
                date_from=date_from,
                date_to=date_to,
                methods=CARD_METHODS,
                exclude_ids=_claimed_sale_ids(),
            )
            if sale is None:
                logger.debug("Transaction %s (%s on %s): no candidate", tx.id, tx.amount, tx.transaction_date)
                return False

        tx.match_status = MatchStatus.MATCHED
        tx.matched_payment = payment
        tx.matched_sale = sale
        tx.matched_at = timezone.now()
        tx.amount_difference = MoneyAmount.zero()
        tx.save(
            update_fields=[
                "match_status",
                "matched_payment",
                "matched_sale",
                "matched_at",
                "amount_difference",
                "updated_at",
            ]
        )
        logger.debug(
            "Transaction %s matched to %s %s",
            tx.id,
            "payment" if payment else "sale",
            (payment or sale).id,
        )
        return True

    @staticmethod
    @transaction.atomic
    def refresh_batch_status(*, batch_id: UUID) -> ImportBatch:
        try:
            batch = ImportBatch.objects.select_for_update().get(id=batch_id)
        except ImportBatch.DoesNotExist:
            raise BatchNotFound(f"Import batch {batch_id} not found.")

        counts = dict(
            ImportedTransaction.objects.filter(batch_id=batch_id)
            .values("match_status")
            .annotate(n=Count("id"))
            .values_list("match_status", "n")
        )
        batch.reconciled_count = sum(counts.get(s, 0) for s in RECONCILED_STATUSES)
        batch.pending_count = counts.get(MatchStatus.PENDING, 0)
        batch.status = BatchStatus.COMPLETED if batch.pending_count == 0 else BatchStatus.PROCESSING
        batch.save(update_fields=["reconciled_count", "pending_count", "status", "updated_at"])
        return batch

    # ------------------------------------------------------------------
    # manual
    # ------------------------------------------------------------------

    @transaction.atomic
    def reconcile_manual(
        self,
        *,
        transaction_id: UUID,
        payment_id: UUID | None = None,
        sale_id: UUID | None = None,
        ignore: bool = False,
        notes: str = "",
        actor_user_id: int | None = None,
    ) -> ImportedTransaction:
        """
        Links a transaction to exactly one payment or sale, or marks it IGNORED.
        A linked amount that differs from the bank amount is stored as
        DIFFERENCE with amount_difference = bank amount - internal amount.
        """
        targets = [payment_id is not None, sale_id is not None, bool(ignore)]
        if sum(targets) != 1:
            raise InvalidReconciliationTarget()

        try:
            tx = ImportedTransaction.objects.select_for_update().get(id=transaction_id)
        except ImportedTransaction.DoesNotExist:
            raise TransactionNotFound(f"Imported transaction {transaction_id} not found.")

        previous_status = tx.match_status

        if ignore:
            tx.match_status = MatchStatus.IGNORED
            tx.matched_payment = None
            tx.matched_sale = None
            tx.amount_difference = MoneyAmount.zero()
        else:
            if payment_id is not None:
                try:
                    target = Payment.objects.get(id=payment_id)
                except Payment.DoesNotExist:
                    raise PaymentNotFound(f"Payment {payment_id} not found.")
                internal_amount = target.amount
                tx.matched_payment = target
                tx.matched_sale = None
            else:
                try:
                    target = Sale.objects.get(id=sale_id)
                except Sale.DoesNotExist:
                    raise SaleNotFound(f"Sale {sale_id} not found.")
                internal_amount = target.total
                tx.matched_payment = None
                tx.matched_sale = target

            difference = tx.amount - internal_amount
            tx.amount_difference = difference
            tx.match_status = MatchStatus.MATCHED if difference.is_zero else MatchStatus.DIFFERENCE

        tx.matched_at = timezone.now()
        tx.notes = notes or ""
        tx.save()

        self.refresh_batch_status(batch_id=tx.batch_id)

        AuditService.log(
            event_code="reconciliation.manual",
            entity_type="ImportedTransaction",
            entity_id=tx.id,
            actor_user_id=actor_user_id,
            metadata={
                "from_status": previous_status,
                "to_status": tx.match_status,
                "payment_id": str(payment_id) if payment_id else None,
                "sale_id": str(sale_id) if sale_id else None,
                "amount_difference": str(tx.amount_difference),
            },
        )
        logger.info(
            "Transaction %s reconciled manually: %s -> %s (difference %s)",
            tx.id,
            previous_status,
            tx.match_status,
            tx.amount_difference,
        )
        return tx

    # ------------------------------------------------------------------
    # reporting
    # ------------------------------------------------------------------

    @staticmethod
    def get_summary(*, date_from: date, date_to: date) -> dict:
        return reconciliation_summary(date_from=date_from, date_to=date_to)
