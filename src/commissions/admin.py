"""Django admin for the commissions module.

Commissions, adjustments and audit entries are read-only here: status
changes and adjustments go through ``commissions.services`` and
``commissions.ledger`` so the audit trail stays complete.
"""
from django.conf import settings
from django.contrib import admin

from commissions.models import (
    CommissionAdjustment,
    CommissionAuditLog,
    CommissionRule,
    CommissionSplit,
    SaleCommission,
)


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class CommissionAdjustmentInline(ReadOnlyInline):
    model = CommissionAdjustment
    fields = ("created_at", "delta_amount", "justification", "actor")
    readonly_fields = fields


class CommissionAuditLogInline(ReadOnlyInline):
    model = CommissionAuditLog
    fields = ("created_at", "action", "previous_status", "new_status", "actor", "notes")
    readonly_fields = fields


@admin.register(CommissionRule)
class CommissionRuleAdmin(admin.ModelAdmin):
    list_display = (
        "id", "name", "version", "commission_type", "vehicle_category",
        "min_sale_price", "max_sale_price", "min_profit_margin", "is_active",
    )
    list_filter = ("is_active", "commission_type", "vehicle_category")
    search_fields = ("name", "description")
    readonly_fields = ("version", "supersedes", "created_at", "updated_at")
    ordering = ("id",)

    def has_delete_permission(self, request, obj=None):
        return False

    def get_readonly_fields(self, request, obj=None):
        fields = super().get_readonly_fields(request, obj)
        if obj is not None and obj.is_referenced:
            # Referenced rules are versioned through load_commission_rules.
            return fields + (
                "name", "commission_type", "parameters", "vehicle_category",
                "min_sale_price", "max_sale_price", "min_profit_margin",
            )
        return fields


@admin.register(SaleCommission)
class SaleCommissionAdmin(admin.ModelAdmin):
    list_display = (
        "user", "sale", "status", "calculated_amount",
        "manual_adjustment", "final_amount_display", "payment_due_date", "paid_at",
    )
    list_filter = ("status", "paid", "payment_due_date")
    search_fields = ("user__email", "user__first_name", "user__last_name", "sale__vehicle_label")
    raw_id_fields = ("sale", "user", "commission_rule")
    list_select_related = ("user", "sale")
    inlines = [CommissionAdjustmentInline, CommissionAuditLogInline]
    date_hierarchy = "created_at"
    list_per_page = 50

    def get_readonly_fields(self, request, obj=None):
        # Only free-text notes stay editable.
        return [field.name for field in self.model._meta.fields if field.name != "notes"]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def final_amount_display(self, obj):
        return f"{obj.final_amount:,.2f} {settings.CURRENCY}"
    final_amount_display.short_description = "Montant final"


@admin.register(CommissionSplit)
class CommissionSplitAdmin(admin.ModelAdmin):
    list_display = ("sale", "user", "percentage", "created_at")
    search_fields = ("user__email", "sale__vehicle_label")
    raw_id_fields = ("sale", "user")


@admin.register(CommissionAuditLog)
class CommissionAuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "commission", "action", "previous_status", "new_status", "actor")
    list_filter = ("action",)
    search_fields = ("commission__id", "actor__email", "notes")
    readonly_fields = (
        "commission", "action", "previous_status", "new_status", "actor",
        "notes", "old_values", "new_values", "created_at",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
