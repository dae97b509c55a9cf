from django.contrib import admin

from clinic_core.sessions.models import Session


@admin.register(Session)
class SessionAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "patient",
        "scheduled_at",
        "final_price",
        "paid_amount",
        "payment_status",
    )
    list_filter = ("payment_status", "scheduled_at")
    search_fields = ("id", "patient__full_name", "patient__national_id")
    autocomplete_fields = ("patient",)
    readonly_fields = ("paid_amount", "payment_status", "created_at", "updated_at")
    ordering = ("-scheduled_at",)
