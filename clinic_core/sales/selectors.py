from __future__ import annotations

from datetime import date
from typing import Iterable
from uuid import UUID

from django.db.models import QuerySet
from django.utils import timezone

from clinic_core.common.money import MoneyAmount
from clinic_core.sales.models import Sale, SaleStatus


def completed_sales_qs(*, methods: Iterable[str], date_from: date, date_to: date) -> QuerySet[Sale]:
    return Sale.objects.filter(
        status=SaleStatus.COMPLETED,
        method__in=list(methods),
        sold_at__date__gte=date_from,
        sold_at__date__lte=date_to,
    )


def find_matching_completed_sale(
    *,
    amount: MoneyAmount,
    target_date: date,
    date_from: date,
    date_to: date,
    methods: Iterable[str],
    exclude_ids: Iterable[UUID] | QuerySet | None = None,
) -> Sale | None:
    """
    Completed sale with exactly `amount`, paid by one of `methods`, sold in
    [date_from, date_to]. Closest sale date to target_date wins; ties go to
    the earliest created.
    """
    qs = completed_sales_qs(methods=methods, date_from=date_from, date_to=date_to).filter(total=amount)
    if exclude_ids is not None:
        qs = qs.exclude(id__in=exclude_ids)

    candidates = list(qs.order_by("created_at", "sale_number"))
    if not candidates:
        return None
    return min(candidates, key=lambda s: abs((timezone.localdate(s.sold_at) - target_date).days))
