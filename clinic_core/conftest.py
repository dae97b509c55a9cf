# clinic_core/conftest.py
from datetime import date, datetime, time
from itertools import count

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from clinic_core.common.money import MoneyAmount
from clinic_core.patients.services import PatientService
from clinic_core.payments.models import PaymentMethod
from clinic_core.payments.services import PaymentLedger
from clinic_core.sales.models import Sale, SaleStatus
from clinic_core.sessions.services import SessionService

_seq = count(1)


def local_dt(day: date, hour: int = 12) -> datetime:
    """Aware datetime at `hour` on `day` in the project time zone."""
    return timezone.make_aware(datetime.combine(day, time(hour, 0)))


@pytest.fixture
def user(db):
    User = get_user_model()
    return User.objects.create_user(username="cashier", password="testpass", is_active=True)


@pytest.fixture
def api_client(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


@pytest.fixture
def make_patient(db):
    def _make(full_name: str = "Ana Rojas", national_id: str | None = None):
        return PatientService.create_patient(
            full_name=full_name,
            national_id=national_id or f"NID-{next(_seq):05d}",
        )

    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient()


@pytest.fixture
def make_session(db):
    def _make(patient, price="100.00", discount=None):
        return SessionService.create_session(
            patient_id=patient.id,
            base_price=MoneyAmount.of(price),
            discount=MoneyAmount.of(discount) if discount is not None else None,
        )

    return _make


@pytest.fixture
def ledger():
    return PaymentLedger()


@pytest.fixture
def make_card_payment(db, ledger):
    def _make(patient, amount, day: date, method=PaymentMethod.CARD_DEBIT, hour: int = 12):
        return ledger.create(
            patient_id=patient.id,
            amount=MoneyAmount.of(amount),
            method=method,
            paid_at=local_dt(day, hour),
        )

    return _make


@pytest.fixture
def make_sale(db):
    def _make(total, day: date, method=PaymentMethod.CARD_CREDIT, status=SaleStatus.COMPLETED, patient=None):
        return Sale.objects.create(
            sale_number=next(_seq),
            patient=patient,
            total=MoneyAmount.of(total),
            method=method,
            status=status,
            sold_at=local_dt(day),
        )

    return _make
