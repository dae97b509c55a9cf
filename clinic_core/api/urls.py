# clinic_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from clinic_core.payments.api.views import PaymentViewSet
from clinic_core.reconciliation.api.views import (
    ImportBatchViewSet,
    ImportedTransactionViewSet,
    ReconciliationSummaryView,
)

router = DefaultRouter()

router.register(r"payments", PaymentViewSet, basename="payments")
router.register(r"reconciliation/batches", ImportBatchViewSet, basename="reconciliation-batches")
router.register(r"reconciliation/transactions", ImportedTransactionViewSet, basename="reconciliation-transactions")

urlpatterns = [
    # Non-ViewSet endpoint
    path("reconciliation/summary/", ReconciliationSummaryView.as_view(), name="reconciliation-summary"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
