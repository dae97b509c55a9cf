from django.contrib import admin

from clinic_core.payments.models import Payment, PaymentAllocation


class PaymentAllocationInline(admin.TabularInline):
    model = PaymentAllocation
    extra = 0
    raw_id_fields = ("session",)
    readonly_fields = ("session", "amount", "created_at")
    can_delete = False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
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
    )
    list_filter = ("status", "method", "payment_type")
    search_fields = ("payment_number", "reference_code", "patient__full_name", "patient__national_id")
    raw_id_fields = ("patient",)
    ordering = ("-paid_at",)
    inlines = [PaymentAllocationInline]

    # Balances are owned by PaymentLedger.
    readonly_fields = ("applied_amount", "available_credit", "refunded_amount", "payment_type", "status", "voided_at")


@admin.register(PaymentAllocation)
class PaymentAllocationAdmin(admin.ModelAdmin):
    list_display = ("payment", "session", "amount", "created_at")
    raw_id_fields = ("payment", "session")
