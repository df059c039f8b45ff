"""Django admin for the goals module."""
from django.contrib import admin

from goals.models import SalespersonGoal


@admin.register(SalespersonGoal)
class SalespersonGoalAdmin(admin.ModelAdmin):
    list_display = (
        "user", "period_start", "period_end",
        "target_sales", "current_sales",
        "target_revenue", "current_revenue", "refreshed_at",
    )
    list_filter = ("period_start",)
    search_fields = ("user__email", "user__first_name", "user__last_name")
    readonly_fields = (
        "current_sales", "current_revenue", "current_profit",
        "refreshed_at", "created_at", "updated_at",
    )
    date_hierarchy = "period_start"
    ordering = ("-period_start",)
