# clinic_core/sessions/balances.py
from __future__ import annotations

import logging
from typing import Iterable
from uuid import UUID

from django.db import transaction

from clinic_core.common.money import MoneyAmount
from clinic_core.sessions.models import Session, SessionPaymentStatus

logger = logging.getLogger(__name__)


def payment_status_for(*, paid_amount: MoneyAmount, final_price: MoneyAmount) -> str:
    if paid_amount >= final_price:
        return SessionPaymentStatus.PAID
    if paid_amount.is_positive:
        return SessionPaymentStatus.PARTIAL
    return SessionPaymentStatus.UNPAID


class SessionBalanceTracker:
    """
    Owns Session.paid_amount / Session.payment_status.

    recompute() is a pure function of the session's current allocations, so
    calling it any number of times yields the same result.
    """

    def lock_for_allocation(self, session_ids: Iterable[UUID]) -> dict[UUID, Session]:
        # Fixed lock order (by pk) so two allocators never deadlock on the same pair.
        ids = set(session_ids)
        if not ids:
            return {}
        sessions = Session.objects.select_for_update().filter(id__in=ids).order_by("id")
        return {s.id: s for s in sessions}

    def pending_amount(self, session: Session) -> MoneyAmount:
        return session.pending_amount

    @transaction.atomic
    def recompute(self, session_id: UUID) -> Session:
        session = Session.objects.select_for_update().get(id=session_id)

        paid_amount = MoneyAmount.sum(session.allocations.values_list("amount", flat=True))
        if paid_amount.is_negative:
            logger.error("Negative paid amount %s computed for session %s; clamping to zero", paid_amount, session_id)
            paid_amount = MoneyAmount.zero()
        if paid_amount > session.final_price:
            logger.warning(
                "Session %s allocations (%s) exceed final price (%s)",
                session_id,
                paid_amount,
                session.final_price,
            )

        session.paid_amount = paid_amount
        session.payment_status = payment_status_for(paid_amount=paid_amount, final_price=session.final_price)
        session.save(update_fields=["paid_amount", "payment_status", "updated_at"])
        return session
