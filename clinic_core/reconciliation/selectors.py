# clinic_core/reconciliation/selectors.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from django.conf import settings
from django.db.models import Count, Prefetch, QuerySet, Sum

from clinic_core.common.money import MoneyAmount
from clinic_core.payments.models import CARD_METHODS, Payment
from clinic_core.payments.selectors import card_payment_candidates, confirmed_card_payments_qs
from clinic_core.reconciliation.exceptions import BatchNotFound, TransactionNotFound
from clinic_core.reconciliation.models import ImportBatch, ImportedTransaction, MatchStatus
from clinic_core.sales.selectors import completed_sales_qs

PERCENT = Decimal("0.01")


def batches_qs() -> QuerySet[ImportBatch]:
    return ImportBatch.objects.all().order_by("-imported_at")


def transactions_qs() -> QuerySet[ImportedTransaction]:
    return ImportedTransaction.objects.select_related(
        "batch",
        "matched_payment",
        "matched_payment__patient",
        "matched_sale",
    )


def get_batch(*, batch_id: UUID) -> ImportBatch:
    """
    Batch with its transactions prefetched in statement order.
    """
    ordered = transactions_qs().order_by("transaction_date", "transaction_time", "id")
    try:
        return ImportBatch.objects.prefetch_related(Prefetch("transactions", queryset=ordered)).get(id=batch_id)
    except ImportBatch.DoesNotExist:
        raise BatchNotFound(f"Import batch {batch_id} not found.")


def get_transaction(*, transaction_id: UUID) -> ImportedTransaction:
    try:
        return transactions_qs().get(id=transaction_id)
    except ImportedTransaction.DoesNotExist:
        raise TransactionNotFound(f"Imported transaction {transaction_id} not found.")


def pending_transactions(*, limit: int | None = None) -> list[ImportedTransaction]:
    """
    Most recent transactions still waiting for a match, across batches.
    """
    if limit is None:
        limit = int(getattr(settings, "RECONCILIATION_PENDING_LIMIT", 50))
    qs = transactions_qs().filter(match_status=MatchStatus.PENDING)
    qs = qs.order_by("-transaction_date", "-transaction_time", "-id")
    return list(qs[:limit])


def payment_candidates(*, transaction_id: UUID, same_amount: bool = False) -> QuerySet[Payment]:
    tx = get_transaction(transaction_id=transaction_id)
    return card_payment_candidates(
        around=tx.transaction_date,
        window_days=int(getattr(settings, "RECONCILIATION_CANDIDATE_WINDOW_DAYS", 3)),
        amount=tx.amount if same_amount else None,
    )


def _money(value) -> MoneyAmount:
    return value if value is not None else MoneyAmount.zero()


def reconciliation_summary(*, date_from: date, date_to: date) -> dict[str, Any]:
    """
    Bank side vs internal side for a period.

    Bank side: imported transactions by match status. Internal side: confirmed
    card payments plus completed card sales. difference is the absolute gap
    between the two totals; percent_matched counts MATCHED rows only.
    """
    rows = (
        ImportedTransaction.objects.filter(transaction_date__gte=date_from, transaction_date__lte=date_to)
        .values("match_status")
        .annotate(total=Sum("amount"), count=Count("id"))
        .order_by("match_status")
    )
    by_status = {
        status: {"total": MoneyAmount.zero(), "count": 0} for status in MatchStatus.values
    }
    for row in rows:
        by_status[row["match_status"]] = {"total": _money(row["total"]), "count": row["count"]}

    imported_total = MoneyAmount.sum(v["total"] for v in by_status.values())
    imported_count = sum(v["count"] for v in by_status.values())

    payments = confirmed_card_payments_qs(date_from=date_from, date_to=date_to).aggregate(
        total=Sum("amount"), count=Count("id")
    )
    sales = completed_sales_qs(methods=CARD_METHODS, date_from=date_from, date_to=date_to).aggregate(
        collected=Sum("total"), count=Count("id")
    )
    payments_total = _money(payments["total"])
    sales_total = _money(sales["collected"])
    internal_total = payments_total + sales_total

    matched_count = by_status[MatchStatus.MATCHED]["count"]
    if imported_count:
        percent_matched = (Decimal(matched_count) * 100 / Decimal(imported_count)).quantize(PERCENT)
    else:
        percent_matched = Decimal("0.00")

    return {
        "period": {"date_from": date_from, "date_to": date_to},
        "imported": {
            "total": imported_total,
            "count": imported_count,
            "matched": by_status[MatchStatus.MATCHED],
            "difference": by_status[MatchStatus.DIFFERENCE],
            "pending": by_status[MatchStatus.PENDING],
            "ignored": by_status[MatchStatus.IGNORED],
        },
        "internal": {
            "total": internal_total,
            "payments": {"total": payments_total, "count": payments["count"]},
            "sales": {"total": sales_total, "count": sales["count"]},
        },
        "difference": abs(imported_total - internal_total),
        "percent_matched": percent_matched,
    }
