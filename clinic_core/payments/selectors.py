# clinic_core/payments/selectors.py
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Iterable
from uuid import UUID

from django.db.models import Count, QuerySet, Sum
from django.utils import timezone

from clinic_core.common.money import MoneyAmount
from clinic_core.payments.exceptions import PaymentNotFound
from clinic_core.payments.models import CARD_METHODS, Payment, PaymentStatus


def payments_qs() -> QuerySet[Payment]:
    return Payment.objects.select_related("patient").prefetch_related("allocations")


def get_payment(*, payment_id: UUID) -> Payment:
    try:
        return payments_qs().get(id=payment_id)
    except Payment.DoesNotExist:
        raise PaymentNotFound(f"Payment {payment_id} not found.")


def payments_filtered(
    *,
    patient_id: UUID | None = None,
    method: str | None = None,
    status: str | None = None,
    payment_type: str | None = None,
    with_available_credit: bool = False,
    date_from: date | None = None,
    date_to: date | None = None,
) -> QuerySet[Payment]:
    qs = payments_qs().order_by("-paid_at")

    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if method:
        qs = qs.filter(method=method)
    if status:
        qs = qs.filter(status=status)
    if payment_type:
        qs = qs.filter(payment_type=payment_type)
    if with_available_credit:
        qs = qs.filter(available_credit__gt=0)
    if date_from:
        qs = qs.filter(paid_at__date__gte=date_from)
    if date_to:
        qs = qs.filter(paid_at__date__lte=date_to)

    return qs


def _money(value) -> MoneyAmount:
    return value if value is not None else MoneyAmount.zero()


def payments_summary(*, date_from: date, date_to: date) -> dict[str, Any]:
    """
    Confirmed payments received in [date_from, date_to]: grand total plus
    breakdowns by method and by payment type.
    """
    qs = Payment.objects.filter(
        status=PaymentStatus.CONFIRMED,
        paid_at__date__gte=date_from,
        paid_at__date__lte=date_to,
    )

    total = qs.aggregate(total=Sum("amount"), count=Count("id"))
    by_method = qs.values("method").annotate(total=Sum("amount"), count=Count("id")).order_by("method")
    by_type = qs.values("payment_type").annotate(total=Sum("amount"), count=Count("id")).order_by("payment_type")

    return {
        "period": {"date_from": date_from, "date_to": date_to},
        "total": {"amount": _money(total["total"]), "count": total["count"]},
        "by_method": [
            {"method": row["method"], "amount": _money(row["total"]), "count": row["count"]} for row in by_method
        ],
        "by_type": [
            {"payment_type": row["payment_type"], "amount": _money(row["total"]), "count": row["count"]}
            for row in by_type
        ],
    }


def confirmed_card_payments_qs(*, date_from: date, date_to: date) -> QuerySet[Payment]:
    return Payment.objects.filter(
        status=PaymentStatus.CONFIRMED,
        method__in=CARD_METHODS,
        paid_at__date__gte=date_from,
        paid_at__date__lte=date_to,
    )


def find_matching_card_payment(
    *,
    amount: MoneyAmount,
    target_date: date,
    date_from: date,
    date_to: date,
    exclude_ids: Iterable[UUID] | QuerySet | None = None,
) -> Payment | None:
    """
    Confirmed card payment with exactly `amount` paid in [date_from, date_to].
    Closest payment date to target_date wins; ties go to the earliest created.
    """
    qs = confirmed_card_payments_qs(date_from=date_from, date_to=date_to).filter(amount=amount)
    if exclude_ids is not None:
        qs = qs.exclude(id__in=exclude_ids)

    candidates = list(qs.order_by("created_at", "payment_number"))
    if not candidates:
        return None
    return min(candidates, key=lambda p: abs((timezone.localdate(p.paid_at) - target_date).days))


def card_payment_candidates(*, around: date, window_days: int, amount: MoneyAmount | None = None) -> QuerySet[Payment]:
    """
    Card payments near a date, for picking a manual reconciliation target.
    """
    qs = Payment.objects.select_related("patient").filter(
        method__in=CARD_METHODS,
        paid_at__date__gte=around - timedelta(days=window_days),
        paid_at__date__lte=around + timedelta(days=window_days),
    )
    if amount is not None:
        qs = qs.filter(amount=amount)
    return qs.order_by("-paid_at")
