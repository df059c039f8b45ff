"""API views for the commissions module."""
from __future__ import annotations

import logging

from django.conf import settings
from django.utils.dateparse import parse_date
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.v1.pagination import LedgerResultsSetPagination, StandardResultsSetPagination
from api.v1.permissions import (
    CanApproveCommission,
    CanPayCommission,
    CanViewAllCommissions,
    IsManagerOrAdmin,
)
from commissions import ledger, reports, rules as rule_engine, services
from commissions.exceptions import AlreadyPaid, CommissionError
from commissions.models import CommissionRule, CommissionSplit, SaleCommission
from commissions.serializers import (
    AdjustCommissionSerializer,
    CommissionAdjustmentSerializer,
    CommissionRuleSerializer,
    CommissionSimulationSerializer,
    CommissionSplitSerializer,
    MissingCommissionSaleSerializer,
    PeriodQuerySerializer,
    RejectCommissionSerializer,
    SaleCommissionDetailSerializer,
    SaleCommissionSerializer,
    SetCommissionSplitsSerializer,
    TransitionNotesSerializer,
)

logger = logging.getLogger(__name__)


def _error_response(exc: CommissionError) -> Response:
    """Translate an engine error into ``{"detail", "code", "retryable"}``."""
    return Response(exc.as_dict(), status=exc.http_status)


def _already_paid_response(exc: AlreadyPaid) -> Response:
    payload = exc.as_dict()
    payload["commission"] = SaleCommissionSerializer(exc.commission).data
    return Response(payload, status=status.HTTP_200_OK)


def _query_date(request, name):
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        value = parse_date(raw)
    except ValueError:
        value = None
    if value is None:
        raise ValidationError({name: "Date invalide, format attendu AAAA-MM-JJ."})
    return value


# ────────────────────────────────────────────────────────────
# Commissions
# ────────────────────────────────────────────────────────────

class SaleCommissionViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Commissions and their approval workflow.

    - list: filter by status, user, sale, date_from / date_to (sale date),
      due_from / due_to (payment due date)
    - retrieve: includes ledger and audit history
    - approve / reject / pay / approve-and-pay / adjust: state machine commands
    - stats / ranking / missing: reporting read-models

    Salespeople only see their own commissions.
    """

    serializer_class = SaleCommissionSerializer
    queryset = SaleCommission.objects.select_related(
        "sale", "user", "commission_rule",
    )
    filterset_fields = ["status", "user", "sale"]
    search_fields = [
        "user__first_name",
        "user__last_name",
        "user__email",
        "sale__vehicle_label",
    ]
    ordering_fields = ["created_at", "final_amount", "status", "payment_due_date"]
    pagination_class = StandardResultsSetPagination

    def get_permissions(self):
        if self.action in ("approve", "reject", "adjust"):
            return [CanApproveCommission()]
        if self.action in ("pay", "approve_and_pay"):
            return [CanPayCommission()]
        if self.action in ("stats", "ranking", "missing"):
            return [CanViewAllCommissions()]
        return [IsAuthenticated()]

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if not (user.is_superuser or user.role in CanViewAllCommissions.allowed_roles):
            qs = qs.filter(user=user)

        if self.action == "retrieve":
            qs = qs.prefetch_related("adjustments__actor", "audit_logs__actor")

        date_from = _query_date(self.request, "date_from")
        date_to = _query_date(self.request, "date_to")
        return reports.filter_commissions(
            qs,
            date_from=date_from,
            date_to=date_to,
            due_from=_query_date(self.request, "due_from"),
            due_to=_query_date(self.request, "due_to"),
        )

    def get_serializer_class(self):
        if self.action == "retrieve":
            return SaleCommissionDetailSerializer
        return SaleCommissionSerializer

    def _detail(self, commission):
        return Response(SaleCommissionSerializer(commission).data)

    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        """Approve a pending commission."""
        commission = self.get_object()
        serializer = TransitionNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            commission = services.approve(
                commission, actor=request.user, notes=serializer.validated_data["notes"],
            )
        except CommissionError as e:
            return _error_response(e)
        return self._detail(commission)

    @action(detail=True, methods=["post"], url_path="reject")
    def reject(self, request, pk=None):
        """Reject a pending commission; ``reason`` is required."""
        commission = self.get_object()
        serializer = RejectCommissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            commission = services.reject(
                commission, reason=serializer.validated_data["reason"], actor=request.user,
            )
        except CommissionError as e:
            return _error_response(e)
        return self._detail(commission)

    @action(detail=True, methods=["post"], url_path="pay")
    def pay(self, request, pk=None):
        """Pay an approved commission.  Paying twice answers ``already_paid``."""
        commission = self.get_object()
        serializer = TransitionNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            commission = services.pay(
                commission, actor=request.user, notes=serializer.validated_data["notes"],
            )
        except AlreadyPaid as e:
            return _already_paid_response(e)
        except CommissionError as e:
            return _error_response(e)
        return self._detail(commission)

    @action(detail=True, methods=["post"], url_path="approve-and-pay")
    def approve_and_pay(self, request, pk=None):
        """Approve then pay in one call, as two audited transitions."""
        commission = self.get_object()
        try:
            commission = services.approve_and_pay(commission, actor=request.user)
        except AlreadyPaid as e:
            return _already_paid_response(e)
        except CommissionError as e:
            return _error_response(e)
        return self._detail(commission)

    @action(detail=True, methods=["post"], url_path="adjust")
    def adjust(self, request, pk=None):
        """Append a justified adjustment to a pending commission."""
        commission = self.get_object()
        serializer = AdjustCommissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            ledger.adjust(
                commission,
                delta=serializer.validated_data["delta"],
                justification=serializer.validated_data["justification"],
                actor=request.user,
            )
        except CommissionError as e:
            return _error_response(e)
        commission.refresh_from_db()
        return self._detail(commission)

    @action(detail=True, methods=["get"], url_path="ledger")
    def history(self, request, pk=None):
        """Adjustment history, oldest first."""
        commission = self.get_object()
        paginator = LedgerResultsSetPagination()
        page = paginator.paginate_queryset(ledger.ledger_history(commission), request, view=self)
        data = CommissionAdjustmentSerializer(page, many=True).data
        return paginator.get_paginated_response(data)

    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        """Count and total per status, honouring the list filters."""
        qs = self.filter_queryset(self.get_queryset())
        data = reports.commission_stats(qs)
        data["currency"] = settings.CURRENCY
        return Response(data)

    @action(detail=False, methods=["get"], url_path="ranking")
    def ranking(self, request):
        """Salesperson ranking over ``period_start`` .. ``period_end``."""
        serializer = PeriodQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        entries = reports.salesperson_ranking(
            period_start=serializer.validated_data.get("period_start"),
            period_end=serializer.validated_data.get("period_end"),
        )
        return Response({"currency": settings.CURRENCY, "entries": entries})

    @action(detail=False, methods=["get"], url_path="missing")
    def missing(self, request):
        """Completed sales that have no commission."""
        qs = reports.sales_missing_commissions()
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(MissingCommissionSaleSerializer(page, many=True).data)
        return Response(MissingCommissionSaleSerializer(qs, many=True).data)


# ────────────────────────────────────────────────────────────
# Rules
# ────────────────────────────────────────────────────────────

class CommissionRuleViewSet(viewsets.ReadOnlyModelViewSet):
    """Read-only access to commission rules, plus the simulator."""

    serializer_class = CommissionRuleSerializer
    queryset = CommissionRule.objects.all()
    filterset_fields = ["is_active", "commission_type", "vehicle_category"]
    search_fields = ["name", "description"]
    ordering_fields = ["id", "name", "version"]
    pagination_class = StandardResultsSetPagination
    permission_classes = [IsAuthenticated]

    @action(detail=False, methods=["post"], url_path="simulate")
    def simulate(self, request):
        """Resolve a hypothetical sale against the active rules; nothing is saved."""
        serializer = CommissionSimulationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            resolution = rule_engine.simulate(
                sale_price=data["sale_price"],
                net_profit=data["net_profit"],
                vehicle_category=data["vehicle_category"],
                lead_source=data["lead_source"],
                rules=CommissionRule.objects.active(),
            )
        except CommissionError as e:
            return _error_response(e)
        return Response({
            "rule": CommissionRuleSerializer(resolution.rule).data,
            "calculated_amount": str(resolution.calculated_amount),
            "specificity": resolution.specificity,
            "currency": settings.CURRENCY,
        })


# ────────────────────────────────────────────────────────────
# Splits
# ────────────────────────────────────────────────────────────

class CommissionSplitViewSet(viewsets.ReadOnlyModelViewSet):
    """Commission shares of co-sold sales."""

    serializer_class = CommissionSplitSerializer
    queryset = CommissionSplit.objects.select_related("sale", "user")
    filterset_fields = ["sale", "user"]
    pagination_class = StandardResultsSetPagination

    def get_permissions(self):
        if self.action == "replace":
            return [IsManagerOrAdmin()]
        return [CanViewAllCommissions()]

    @action(detail=False, methods=["post"], url_path="set")
    def replace(self, request):
        """Replace every share of a sale; percentages must sum to 100."""
        serializer = SetCommissionSplitsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        shares = [(share["user"], share["percentage"]) for share in data["shares"]]
        try:
            splits = services.set_commission_splits(data["sale"], shares)
        except CommissionError as e:
            return _error_response(e)
        return Response(
            CommissionSplitSerializer(splits, many=True).data,
            status=status.HTTP_201_CREATED,
        )
