"""
Narrow interfaces the payment ledger needs from the session and patient
modules. The ledger never imports their services directly; the concrete
SessionBalanceTracker / PatientBalanceAggregator satisfy these protocols.
"""
from __future__ import annotations

from typing import Any, Iterable, Protocol
from uuid import UUID

from clinic_core.common.money import MoneyAmount


class SessionBalancePort(Protocol):
    def lock_for_allocation(self, session_ids: Iterable[UUID]) -> dict[UUID, Any]:
        """Row-lock the sessions and return them keyed by id (missing ids are absent)."""
        ...

    def pending_amount(self, session: Any) -> MoneyAmount:
        ...

    def recompute(self, session_id: UUID) -> Any:
        ...


class PatientBalancePort(Protocol):
    def recompute(self, patient_id: UUID) -> Any:
        ...
