# clinic_core/reconciliation/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.payments.api.serializers import PeriodSerializer
from clinic_core.payments.models import Payment
from clinic_core.reconciliation.models import ImportBatch, ImportedTransaction


class ImportedTransactionSerializer(serializers.ModelSerializer):
    matched_payment_number = serializers.CharField(
        source="matched_payment.payment_number", read_only=True, default=None
    )
    matched_sale_number = serializers.IntegerField(source="matched_sale.sale_number", read_only=True, default=None)

    class Meta:
        model = ImportedTransaction
        fields = [
            "id",
            "batch",
            "transaction_date",
            "transaction_time",
            "operation_number",
            "authorization_code",
            "card_type",
            "card_last_digits",
            "installments",
            "amount",
            "match_status",
            "matched_payment",
            "matched_payment_number",
            "matched_sale",
            "matched_sale_number",
            "matched_at",
            "amount_difference",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ImportBatchSerializer(serializers.ModelSerializer):
    class Meta:
        model = ImportBatch
        fields = [
            "id",
            "file_name",
            "imported_at",
            "date_from",
            "date_to",
            "total_transactions",
            "total_amount",
            "reconciled_count",
            "pending_count",
            "status",
            "imported_by_user_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ImportBatchDetailSerializer(ImportBatchSerializer):
    transactions = ImportedTransactionSerializer(many=True, read_only=True)

    class Meta(ImportBatchSerializer.Meta):
        fields = ImportBatchSerializer.Meta.fields + ["transactions"]
        read_only_fields = fields


class TransactionInputSerializer(serializers.Serializer):
    """
    One line of a parsed settlement file. Amount positivity is checked by
    ReconciliationMatcher.ingest_batch.
    """
    transaction_date = serializers.DateField()
    transaction_time = serializers.TimeField(required=False, allow_null=True, default=None)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    operation_number = serializers.CharField(required=False, allow_blank=True, default="", max_length=64)
    authorization_code = serializers.CharField(required=False, allow_blank=True, default="", max_length=64)
    card_type = serializers.CharField(required=False, allow_blank=True, default="", max_length=32)
    card_last_digits = serializers.CharField(required=False, allow_blank=True, default="", max_length=8)
    installments = serializers.IntegerField(required=False, allow_null=True, default=None, min_value=1)


class ImportBatchCreateSerializer(serializers.Serializer):
    file_name = serializers.CharField(max_length=255)
    transactions = TransactionInputSerializer(many=True)


class ReconcileManualSerializer(serializers.Serializer):
    payment_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    sale_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    ignore = serializers.BooleanField(required=False, default=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CandidatePaymentSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source="patient.full_name", read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "payment_number",
            "patient",
            "patient_name",
            "amount",
            "method",
            "status",
            "paid_at",
            "reference_code",
        ]
        read_only_fields = fields


class _BucketSerializer(serializers.Serializer):
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()


class _ImportedSideSerializer(serializers.Serializer):
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()
    matched = _BucketSerializer()
    difference = _BucketSerializer()
    pending = _BucketSerializer()
    ignored = _BucketSerializer()


class _InternalSideSerializer(serializers.Serializer):
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    payments = _BucketSerializer()
    sales = _BucketSerializer()


class ReconciliationSummarySerializer(serializers.Serializer):
    period = PeriodSerializer()
    imported = _ImportedSideSerializer()
    internal = _InternalSideSerializer()
    difference = serializers.DecimalField(max_digits=14, decimal_places=2)
    percent_matched = serializers.DecimalField(max_digits=5, decimal_places=2)
