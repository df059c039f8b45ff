"""DRF Serializers for the goals module."""
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from goals.models import SalespersonGoal


class SalespersonGoalSerializer(serializers.ModelSerializer):
    user_name = serializers.SerializerMethodField()

    class Meta:
        model = SalespersonGoal
        fields = [
            "id", "user", "user_name", "period_start", "period_end",
            "target_sales", "target_revenue", "target_profit",
            "current_sales", "current_revenue", "current_profit",
            "refreshed_at", "notes", "created_at", "updated_at",
        ]
        read_only_fields = [
            "id", "current_sales", "current_revenue", "current_profit",
            "refreshed_at", "created_at", "updated_at",
        ]

    def get_user_name(self, obj) -> str:
        return obj.user.get_full_name() or obj.user.email

    def validate(self, attrs):
        instance = self.instance or SalespersonGoal()
        candidate = SalespersonGoal(
            pk=instance.pk,
            user=attrs.get("user", getattr(instance, "user", None)),
            period_start=attrs.get("period_start", instance.period_start),
            period_end=attrs.get("period_end", instance.period_end),
        )
        candidate._state.adding = self.instance is None
        try:
            candidate.clean()
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.messages)
        return attrs


class GoalProgressSerializer(serializers.Serializer):
    goal_id = serializers.UUIDField(allow_null=True)
    user_id = serializers.UUIDField()
    period_start = serializers.DateField()
    period_end = serializers.DateField()
    current_sales = serializers.IntegerField()
    current_revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    current_profit = serializers.DecimalField(max_digits=14, decimal_places=2)
    target_sales = serializers.IntegerField()
    target_revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    target_profit = serializers.DecimalField(max_digits=14, decimal_places=2)
    sales_progress = serializers.DecimalField(max_digits=12, decimal_places=2)
    revenue_progress = serializers.DecimalField(max_digits=12, decimal_places=2)
    profit_progress = serializers.DecimalField(max_digits=12, decimal_places=2)
    is_achieved = serializers.BooleanField()
