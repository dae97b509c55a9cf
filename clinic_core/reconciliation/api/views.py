# clinic_core/reconciliation/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from clinic_core.common.api.pagination import paginate
from clinic_core.common.api.params import flag, required_date_range, uuid_or_none
from clinic_core.payments.api.views import DATE_RANGE_PARAMS
from clinic_core.reconciliation.api.serializers import (
    CandidatePaymentSerializer,
    ImportBatchCreateSerializer,
    ImportBatchDetailSerializer,
    ImportBatchSerializer,
    ImportedTransactionSerializer,
    ReconcileManualSerializer,
    ReconciliationSummarySerializer,
)
from clinic_core.reconciliation.models import ImportBatch, ImportedTransaction
from clinic_core.reconciliation.selectors import (
    batches_qs,
    get_batch,
    get_transaction,
    payment_candidates,
    pending_transactions,
)
from clinic_core.reconciliation.services import ReconciliationMatcher


def _actor_id(request) -> int | None:
    return getattr(request.user, "id", None)


def _batch_detail(batch_id) -> dict:
    return ImportBatchDetailSerializer(get_batch(batch_id=batch_id)).data


class ImportBatchViewSet(viewsets.GenericViewSet):
    """
    Bank settlement imports:
    - list/retrieve (with transactions)
    - create: ingest a parsed file and auto-match it
    - rerun: auto-match the batch's pending transactions again
    """
    serializer_class = ImportBatchSerializer
    queryset = ImportBatch.objects.none()

    @extend_schema(tags=["Reconciliation"], responses={200: ImportBatchSerializer(many=True)})
    def list(self, request):
        return paginate(request, batches_qs(), ImportBatchSerializer)

    @extend_schema(tags=["Reconciliation"], responses={200: ImportBatchDetailSerializer})
    def retrieve(self, request, pk=None):
        return Response(_batch_detail(uuid_or_none(pk, "id")), status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Reconciliation"],
        request=ImportBatchCreateSerializer,
        responses={201: ImportBatchDetailSerializer},
    )
    def create(self, request):
        ser = ImportBatchCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        batch = ReconciliationMatcher().ingest_batch(
            file_name=ser.validated_data["file_name"],
            transactions=ser.validated_data["transactions"],
            actor_user_id=_actor_id(request),
        )
        return Response(_batch_detail(batch.id), status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Reconciliation"], request=None, responses={200: ImportBatchDetailSerializer})
    @action(detail=True, methods=["post"], url_path="rerun")
    def rerun(self, request, pk=None):
        batch = ReconciliationMatcher().rerun_auto_match(batch_id=uuid_or_none(pk, "id"))
        return Response(_batch_detail(batch.id), status=status.HTTP_200_OK)


class ImportedTransactionViewSet(viewsets.GenericViewSet):
    """
    Imported bank transactions: pending queue, manual reconciliation and
    candidate payments for it.
    """
    serializer_class = ImportedTransactionSerializer
    queryset = ImportedTransaction.objects.none()

    @extend_schema(tags=["Reconciliation"], responses={200: ImportedTransactionSerializer})
    def retrieve(self, request, pk=None):
        tx = get_transaction(transaction_id=uuid_or_none(pk, "id"))
        return Response(ImportedTransactionSerializer(tx).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Reconciliation"], responses={200: ImportedTransactionSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="pending")
    def pending(self, request):
        data = ImportedTransactionSerializer(pending_transactions(), many=True).data
        return Response(data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Reconciliation"],
        request=ReconcileManualSerializer,
        responses={200: ImportedTransactionSerializer},
    )
    @action(detail=True, methods=["post"], url_path="reconcile")
    def reconcile(self, request, pk=None):
        ser = ReconcileManualSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        tx = ReconciliationMatcher().reconcile_manual(
            transaction_id=uuid_or_none(pk, "id"),
            payment_id=data.get("payment_id"),
            sale_id=data.get("sale_id"),
            ignore=data.get("ignore", False),
            notes=data.get("notes", ""),
            actor_user_id=_actor_id(request),
        )
        tx = get_transaction(transaction_id=tx.id)
        return Response(ImportedTransactionSerializer(tx).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Reconciliation"],
        responses={200: CandidatePaymentSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="same_amount",
                type=OpenApiTypes.BOOL,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Only payments with exactly the transaction amount.",
            ),
        ],
    )
    @action(detail=True, methods=["get"], url_path="candidates")
    def candidates(self, request, pk=None):
        qs = payment_candidates(
            transaction_id=uuid_or_none(pk, "id"),
            same_amount=flag(request.query_params.get("same_amount")),
        )
        return Response(CandidatePaymentSerializer(qs, many=True).data, status=status.HTTP_200_OK)


class ReconciliationSummaryView(APIView):
    @extend_schema(
        tags=["Reconciliation"],
        parameters=DATE_RANGE_PARAMS,
        responses={200: ReconciliationSummarySerializer},
    )
    def get(self, request):
        date_from, date_to = required_date_range(request.query_params)
        data = ReconciliationMatcher.get_summary(date_from=date_from, date_to=date_to)
        return Response(ReconciliationSummarySerializer(data).data, status=status.HTTP_200_OK)
