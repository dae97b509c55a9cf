from django.contrib import admin

from clinic_core.sales.models import Sale


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ("sale_number", "patient", "total", "method", "status", "sold_at")
    list_filter = ("status", "method", "sold_at")
    search_fields = ("sale_number", "reference_code")
    ordering = ("-sold_at",)
