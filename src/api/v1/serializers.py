"""DRF Serializers for the sales endpoints of API v1."""
from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework import serializers

from sales.models import Sale


class SaleSerializer(serializers.ModelSerializer):
    """Read serializer for Sale."""

    salesperson_name = serializers.SerializerMethodField()

    class Meta:
        model = Sale
        fields = [
            'id', 'salesperson', 'salesperson_name', 'vehicle_category',
            'vehicle_label', 'lead_source', 'sale_price', 'net_profit', 'sale_date',
            'status', 'completed_at', 'cancelled_at', 'cancellation_reason',
            'notes', 'created_at',
        ]
        read_only_fields = [
            'id', 'salesperson', 'status', 'completed_at', 'cancelled_at',
            'cancellation_reason', 'created_at',
        ]

    def get_salesperson_name(self, obj):
        return obj.salesperson.get_full_name() or obj.salesperson.email

    def validate(self, attrs):
        if self.instance is not None and not self.instance.can_complete():
            raise serializers.ValidationError(
                "Seule une vente en brouillon peut etre modifiee."
            )
        return attrs


class SaleCreateSerializer(serializers.Serializer):
    """Serializer for creating a new DRAFT sale.

    ``salesperson_id`` defaults to the requesting user; only managers and
    admins may record a sale for someone else (checked in the view).
    """

    salesperson_id = serializers.PrimaryKeyRelatedField(
        queryset=get_user_model().objects.filter(is_active=True),
        required=False,
        allow_null=True,
        default=None,
    )
    sale_price = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal('0.00'),
    )
    net_profit = serializers.DecimalField(
        max_digits=14, decimal_places=2, required=False, default=Decimal('0.00'),
    )
    vehicle_category = serializers.ChoiceField(
        choices=Sale.VehicleCategory.choices,
        required=False,
        default=Sale.VehicleCategory.OTHER,
    )
    vehicle_label = serializers.CharField(
        max_length=200, required=False, default='', allow_blank=True,
    )
    lead_source = serializers.ChoiceField(
        choices=Sale.LeadSource.choices,
        required=False,
        allow_blank=True,
        default='',
    )
    sale_date = serializers.DateField(required=False, allow_null=True, default=None)


class SaleCancelSerializer(serializers.Serializer):
    reason = serializers.CharField()
