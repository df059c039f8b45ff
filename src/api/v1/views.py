"""Sales endpoints of API v1."""
import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.v1.pagination import StandardResultsSetPagination
from api.v1.permissions import IsManagerOrAdmin, IsSales
from api.v1.serializers import (
    SaleCancelSerializer,
    SaleCreateSerializer,
    SaleSerializer,
)
from sales.models import Sale
from sales.services import cancel_sale, complete_sale, create_sale

logger = logging.getLogger(__name__)

SALES_MANAGER_ROLES = ('ADMIN', 'MANAGER', 'FINANCE')


class SaleViewSet(viewsets.ModelViewSet):
    """
    ViewSet for vehicle sales with workflow actions.

    - list: filter by status, salesperson, vehicle_category, date range
    - create: creates a DRAFT sale
    - complete: completes the sale, which creates its commissions
    - cancel: cancels the sale (requires manager)
    """

    serializer_class = SaleSerializer
    queryset = Sale.objects.select_related('salesperson')
    filterset_fields = ['status', 'salesperson', 'vehicle_category']
    search_fields = [
        'vehicle_label',
        'salesperson__first_name',
        'salesperson__last_name',
        'salesperson__email',
    ]
    ordering_fields = ['sale_date', 'created_at', 'sale_price', 'net_profit', 'status']
    pagination_class = StandardResultsSetPagination
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def get_permissions(self):
        if self.action in ('create', 'partial_update', 'complete'):
            return [IsSales()]
        if self.action == 'cancel':
            return [IsManagerOrAdmin()]
        return [IsAuthenticated()]

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if not (user.is_superuser or user.role in SALES_MANAGER_ROLES):
            qs = qs.filter(salesperson=user)

        date_from = self.request.query_params.get('date_from')
        date_to = self.request.query_params.get('date_to')
        if date_from:
            qs = qs.filter(sale_date__gte=date_from)
        if date_to:
            qs = qs.filter(sale_date__lte=date_to)
        return qs

    def create(self, request, *args, **kwargs):
        """Create a new DRAFT sale for the requesting user (or, for managers, anyone)."""
        serializer = SaleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        salesperson = data['salesperson_id'] or request.user
        if salesperson != request.user and request.user.role not in ('ADMIN', 'MANAGER'):
            raise PermissionDenied("Vous ne pouvez pas enregistrer une vente pour un autre vendeur.")

        try:
            sale = create_sale(
                salesperson=salesperson,
                sale_price=data['sale_price'],
                net_profit=data['net_profit'],
                vehicle_category=data['vehicle_category'],
                vehicle_label=data['vehicle_label'],
                lead_source=data['lead_source'],
                sale_date=data['sale_date'],
            )
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(SaleSerializer(sale).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='complete')
    def complete(self, request, pk=None):
        """Complete a DRAFT sale."""
        sale = self.get_object()
        try:
            sale = complete_sale(sale, actor=request.user)
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(SaleSerializer(sale).data)

    @action(detail=True, methods=['post'], url_path='cancel')
    def cancel(self, request, pk=None):
        """Cancel a sale.  Existing commissions are left untouched."""
        sale = self.get_object()
        serializer = SaleCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            sale = cancel_sale(sale, reason=serializer.validated_data['reason'], actor=request.user)
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(SaleSerializer(sale).data)
