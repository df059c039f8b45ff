"""Admin configuration for the sales app."""
from django.contrib import admin

from sales.models import Sale


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    """Admin for the Sale model."""

    list_display = (
        "sale_date",
        "salesperson",
        "vehicle_category",
        "vehicle_label",
        "sale_price",
        "net_profit",
        "status",
        "completed_at",
    )
    list_filter = ("status", "vehicle_category", "lead_source", "sale_date")
    search_fields = (
        "vehicle_label",
        "salesperson__first_name",
        "salesperson__last_name",
        "salesperson__email",
    )
    readonly_fields = (
        "id",
        "completed_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    )
    raw_id_fields = ("salesperson",)
    date_hierarchy = "sale_date"
    list_select_related = ("salesperson",)
    list_per_page = 50

    fieldsets = (
        (None, {
            "fields": (
                "id",
                "salesperson",
                "status",
                "sale_date",
            ),
        }),
        ("Vehicule", {
            "fields": ("vehicle_category", "vehicle_label", "lead_source"),
        }),
        ("Montants", {
            "fields": ("sale_price", "net_profit"),
        }),
        ("Suivi", {
            "fields": (
                "completed_at",
                "cancelled_at",
                "cancellation_reason",
                "notes",
                "created_at",
                "updated_at",
            ),
        }),
    )
