# clinic_core/payments/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.payments.models import Payment, PaymentAllocation, PaymentMethod


class PaymentAllocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentAllocation
        fields = ["id", "session", "amount", "created_at"]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    allocations = PaymentAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "payment_number",
            "patient",
            "amount",
            "applied_amount",
            "available_credit",
            "refunded_amount",
            "method",
            "payment_type",
            "status",
            "paid_at",
            "reference_code",
            "description",
            "notes",
            "voided_at",
            "recorded_by_user_id",
            "allocations",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AllocationInputSerializer(serializers.Serializer):
    session_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)


class PaymentCreateSerializer(serializers.Serializer):
    """
    Amount checks (positive, within pending / payment amount) are left to
    PaymentLedger so the API and the service report the same error codes.
    """
    patient_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    allocations = AllocationInputSerializer(many=True, required=False, default=list)
    reference_code = serializers.CharField(required=False, allow_blank=True, default="", max_length=64)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    paid_at = serializers.DateTimeField(required=False, allow_null=True, default=None)


class PaymentAllocateSerializer(serializers.Serializer):
    allocations = AllocationInputSerializer(many=True)


class PaymentRefundSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class _MethodTotalSerializer(serializers.Serializer):
    method = serializers.CharField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()


class _TypeTotalSerializer(serializers.Serializer):
    payment_type = serializers.CharField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()


class _TotalSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()


class PeriodSerializer(serializers.Serializer):
    date_from = serializers.DateField()
    date_to = serializers.DateField()


class PaymentsSummarySerializer(serializers.Serializer):
    period = PeriodSerializer()
    total = _TotalSerializer()
    by_method = _MethodTotalSerializer(many=True)
    by_type = _TypeTotalSerializer(many=True)
