"""DRF Serializers for the commissions module."""
from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework import serializers

from commissions.models import (
    CommissionAdjustment,
    CommissionAuditLog,
    CommissionRule,
    CommissionSplit,
    SaleCommission,
)
from sales.models import Sale


def _display_name(user) -> str:
    if user is None:
        return ""
    return user.get_full_name() or user.email


# ────────────────────────────────────────────────────────────
# Rules
# ────────────────────────────────────────────────────────────

class CommissionRuleSerializer(serializers.ModelSerializer):
    specificity = serializers.IntegerField(read_only=True)

    class Meta:
        model = CommissionRule
        fields = [
            "id", "name", "description", "commission_type", "parameters",
            "vehicle_category", "min_sale_price", "max_sale_price",
            "min_profit_margin", "is_active", "version", "supersedes", "specificity",
            "created_at", "updated_at",
        ]
        read_only_fields = fields


class CommissionSimulationSerializer(serializers.Serializer):
    """Hypothetical sale figures for the rule simulator."""

    sale_price = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"),
    )
    net_profit = serializers.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    vehicle_category = serializers.ChoiceField(
        choices=Sale.VehicleCategory.choices,
        required=False,
        allow_blank=True,
        default="",
    )
    lead_source = serializers.ChoiceField(
        choices=Sale.LeadSource.choices,
        required=False,
        allow_blank=True,
        default="",
    )


# ────────────────────────────────────────────────────────────
# Ledger & audit
# ────────────────────────────────────────────────────────────

class CommissionAdjustmentSerializer(serializers.ModelSerializer):
    actor_name = serializers.SerializerMethodField()

    class Meta:
        model = CommissionAdjustment
        fields = ["id", "delta_amount", "justification", "actor", "actor_name", "created_at"]
        read_only_fields = fields

    def get_actor_name(self, obj) -> str:
        return _display_name(obj.actor)


class CommissionAuditLogSerializer(serializers.ModelSerializer):
    actor_name = serializers.SerializerMethodField()

    class Meta:
        model = CommissionAuditLog
        fields = [
            "id", "action", "previous_status", "new_status", "actor",
            "actor_name", "notes", "old_values", "new_values", "created_at",
        ]
        read_only_fields = fields

    def get_actor_name(self, obj) -> str:
        return _display_name(obj.actor)


class CommissionSplitSerializer(serializers.ModelSerializer):
    class Meta:
        model = CommissionSplit
        fields = ["id", "sale", "user", "percentage"]
        read_only_fields = ["id"]


# ────────────────────────────────────────────────────────────
# Commissions
# ────────────────────────────────────────────────────────────

class SaleCommissionSerializer(serializers.ModelSerializer):
    """Commission as exposed to clients; every field is server-owned."""

    user_name = serializers.SerializerMethodField()
    rule_name = serializers.SerializerMethodField()
    sale_date = serializers.DateField(source="sale.sale_date", read_only=True)
    sale_price = serializers.DecimalField(
        source="sale.sale_price", max_digits=14, decimal_places=2, read_only=True,
    )
    vehicle_category = serializers.CharField(source="sale.vehicle_category", read_only=True)

    class Meta:
        model = SaleCommission
        fields = [
            "id", "sale", "sale_date", "sale_price", "vehicle_category",
            "user", "user_name", "commission_rule", "rule_name",
            "split_percentage", "calculated_amount", "manual_adjustment",
            "final_amount", "status", "paid", "rejection_reason", "notes",
            "payment_due_date", "approved_by", "approved_at",
            "rejected_by", "rejected_at", "paid_by", "paid_at",
            "created_at", "updated_at",
        ]
        read_only_fields = fields

    def get_user_name(self, obj) -> str:
        return _display_name(obj.user)

    def get_rule_name(self, obj) -> str:
        return str(obj.commission_rule) if obj.commission_rule_id else ""


class SaleCommissionDetailSerializer(SaleCommissionSerializer):
    adjustments = CommissionAdjustmentSerializer(many=True, read_only=True)
    audit_logs = CommissionAuditLogSerializer(many=True, read_only=True)

    class Meta(SaleCommissionSerializer.Meta):
        fields = SaleCommissionSerializer.Meta.fields + ["adjustments", "audit_logs"]
        read_only_fields = fields


# ────────────────────────────────────────────────────────────
# Command payloads
# ────────────────────────────────────────────────────────────

class RejectCommissionSerializer(serializers.Serializer):
    # Blank accepted here: the service owns the "reason required" rule.
    reason = serializers.CharField(required=False, allow_blank=True, default="", trim_whitespace=False)


class AdjustCommissionSerializer(serializers.Serializer):
    delta = serializers.DecimalField(max_digits=14, decimal_places=2)
    justification = serializers.CharField(required=False, allow_blank=True, default="", trim_whitespace=False)


class TransitionNotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


# ────────────────────────────────────────────────────────────
# Reports
# ────────────────────────────────────────────────────────────

class PeriodQuerySerializer(serializers.Serializer):
    period_start = serializers.DateField(required=False)
    period_end = serializers.DateField(required=False)

    def validate(self, attrs):
        start, end = attrs.get("period_start"), attrs.get("period_end")
        if start and end and end < start:
            raise serializers.ValidationError("La fin de periode doit suivre son debut.")
        return attrs


class MissingCommissionSaleSerializer(serializers.ModelSerializer):
    salesperson_name = serializers.SerializerMethodField()

    class Meta:
        model = Sale
        fields = [
            "id", "salesperson", "salesperson_name", "vehicle_category",
            "vehicle_label", "sale_price", "net_profit", "sale_date", "completed_at",
        ]
        read_only_fields = fields

    def get_salesperson_name(self, obj) -> str:
        return _display_name(obj.salesperson)


class SplitShareSerializer(serializers.Serializer):
    user = serializers.PrimaryKeyRelatedField(queryset=get_user_model().objects.all())
    percentage = serializers.DecimalField(max_digits=5, decimal_places=2)


class SetCommissionSplitsSerializer(serializers.Serializer):
    sale = serializers.PrimaryKeyRelatedField(queryset=Sale.objects.all())
    shares = SplitShareSerializer(many=True)
