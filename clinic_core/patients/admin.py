from django.contrib import admin

from clinic_core.patients.models import Patient


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = (
        "full_name",
        "national_id",
        "phone",
        "total_debt",
        "total_credit",
        "created_at",
    )
    search_fields = ("full_name", "national_id", "phone", "email")
    readonly_fields = ("total_debt", "total_credit", "balance_updated_at", "created_at", "updated_at")
    ordering = ("-created_at",)
