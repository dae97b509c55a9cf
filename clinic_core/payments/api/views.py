# clinic_core/payments/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from clinic_core.common.api.pagination import paginate
from clinic_core.common.api.params import date_or_none, flag, required_date_range, uuid_or_none
from clinic_core.payments.api.serializers import (
    PaymentAllocateSerializer,
    PaymentCreateSerializer,
    PaymentRefundSerializer,
    PaymentSerializer,
    PaymentsSummarySerializer,
)
from clinic_core.payments.models import Payment
from clinic_core.payments.selectors import get_payment, payments_filtered, payments_summary
from clinic_core.payments.services import PaymentLedger

DATE_RANGE_PARAMS = [
    OpenApiParameter(name="date_from", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=True),
    OpenApiParameter(name="date_to", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=True),
]


def _actor_id(request) -> int | None:
    return getattr(request.user, "id", None)


class PaymentViewSet(viewsets.GenericViewSet):
    """
    Payments:
    - list/retrieve
    - create (optionally allocated to sessions)
    - allocate / refund / void
    - summary over a date range
    """
    serializer_class = PaymentSerializer
    queryset = Payment.objects.none()

    @extend_schema(
        tags=["Payments"],
        responses={200: PaymentSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="patient", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="method", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="payment_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False
            ),
            OpenApiParameter(
                name="with_credit",
                type=OpenApiTypes.BOOL,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Only payments with available credit left.",
            ),
            OpenApiParameter(name="date_from", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="date_to", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qp = request.query_params
        qs = payments_filtered(
            patient_id=uuid_or_none(qp.get("patient"), "patient"),
            method=qp.get("method") or None,
            status=qp.get("status") or None,
            payment_type=qp.get("payment_type") or None,
            with_available_credit=flag(qp.get("with_credit")),
            date_from=date_or_none(qp.get("date_from"), "date_from"),
            date_to=date_or_none(qp.get("date_to"), "date_to"),
        )
        return paginate(request, qs, PaymentSerializer)

    @extend_schema(tags=["Payments"], responses={200: PaymentSerializer})
    def retrieve(self, request, pk=None):
        payment = get_payment(payment_id=uuid_or_none(pk, "id"))
        return Response(PaymentSerializer(payment).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Payments"],
        request=PaymentCreateSerializer,
        responses={201: PaymentSerializer},
    )
    def create(self, request):
        ser = PaymentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        payment = PaymentLedger().create(
            patient_id=data["patient_id"],
            amount=data["amount"],
            method=data["method"],
            allocations=data.get("allocations") or [],
            reference_code=data.get("reference_code", ""),
            description=data.get("description", ""),
            notes=data.get("notes", ""),
            paid_at=data.get("paid_at"),
            actor_user_id=_actor_id(request),
        )
        return Response(PaymentSerializer(get_payment(payment_id=payment.id)).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Payments"],
        request=PaymentAllocateSerializer,
        responses={200: PaymentSerializer},
    )
    @action(detail=True, methods=["post"], url_path="allocate")
    def allocate(self, request, pk=None):
        ser = PaymentAllocateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        payment = PaymentLedger().allocate(
            payment_id=uuid_or_none(pk, "id"),
            allocations=ser.validated_data["allocations"],
            actor_user_id=_actor_id(request),
        )
        return Response(PaymentSerializer(get_payment(payment_id=payment.id)).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Payments"],
        request=PaymentRefundSerializer,
        responses={200: PaymentSerializer},
    )
    @action(detail=True, methods=["post"], url_path="refund")
    def refund(self, request, pk=None):
        ser = PaymentRefundSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        payment = PaymentLedger().refund(
            payment_id=uuid_or_none(pk, "id"),
            amount=ser.validated_data["amount"],
            reason=ser.validated_data.get("reason", ""),
            actor_user_id=_actor_id(request),
        )
        return Response(PaymentSerializer(get_payment(payment_id=payment.id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Payments"], request=None, responses={200: PaymentSerializer})
    @action(detail=True, methods=["post"], url_path="void")
    def void(self, request, pk=None):
        payment = PaymentLedger().void(payment_id=uuid_or_none(pk, "id"), actor_user_id=_actor_id(request))
        return Response(PaymentSerializer(get_payment(payment_id=payment.id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Payments"], parameters=DATE_RANGE_PARAMS, responses={200: PaymentsSummarySerializer})
    @action(detail=False, methods=["get"], url_path="summary")
    def summary(self, request):
        date_from, date_to = required_date_range(request.query_params)
        data = payments_summary(date_from=date_from, date_to=date_to)
        return Response(PaymentsSummarySerializer(data).data, status=status.HTTP_200_OK)
