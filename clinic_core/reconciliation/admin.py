from django.contrib import admin

from clinic_core.reconciliation.models import ImportBatch, ImportedTransaction


@admin.register(ImportBatch)
class ImportBatchAdmin(admin.ModelAdmin):
    list_display = (
        "file_name",
        "imported_at",
        "date_from",
        "date_to",
        "total_transactions",
        "total_amount",
        "reconciled_count",
        "pending_count",
        "status",
    )
    list_filter = ("status",)
    search_fields = ("file_name",)
    ordering = ("-imported_at",)


@admin.register(ImportedTransaction)
class ImportedTransactionAdmin(admin.ModelAdmin):
    list_display = (
        "transaction_date",
        "amount",
        "card_type",
        "authorization_code",
        "match_status",
        "matched_payment",
        "matched_sale",
        "amount_difference",
    )
    list_filter = ("match_status", "card_type")
    search_fields = ("authorization_code", "operation_number")
    raw_id_fields = ("batch", "matched_payment", "matched_sale")
    ordering = ("-transaction_date",)
