"""Read-models over commissions and sales: stats, ranking, coverage gaps.

Everything is recomputed from the database on each call.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from django.db.models import Count, Exists, OuterRef, Sum

from commissions.models import SaleCommission
from sales.models import Sale

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
EARNED_STATUSES = (SaleCommission.Status.APPROVED, SaleCommission.Status.PAID)


def filter_commissions(
    queryset=None,
    *,
    status: str | None = None,
    user=None,
    sale=None,
    date_from: date | None = None,
    date_to: date | None = None,
    due_from: date | None = None,
    due_to: date | None = None,
):
    """Apply the standard commission filters.

    ``date_from`` / ``date_to`` bound the sale date, ``due_from`` / ``due_to``
    the payment due date (the payment calendar).
    """
    qs = SaleCommission.objects.all() if queryset is None else queryset
    if status:
        qs = qs.filter(status=status)
    if user:
        qs = qs.filter(user=user)
    if sale:
        qs = qs.filter(sale=sale)
    if date_from:
        qs = qs.filter(sale__sale_date__gte=date_from)
    if date_to:
        qs = qs.filter(sale__sale_date__lte=date_to)
    if due_from:
        qs = qs.filter(payment_due_date__gte=due_from)
    if due_to:
        qs = qs.filter(payment_due_date__lte=due_to)
    return qs


def commission_stats(queryset=None, **filters) -> dict:
    """Count and total final amount per status.

    Returns
    -------
    dict
        ``{"by_status": {status: {"count", "total"}}, "count", "total",
        "pending_total", "payable_total", "paid_total"}``
    """
    qs = filter_commissions(queryset, **filters)
    rows = qs.order_by().values("status").annotate(
        count=Count("id"),
        total=Sum("final_amount"),
    )

    by_status = {
        value: {"count": 0, "total": ZERO}
        for value in SaleCommission.Status.values
    }
    for row in rows:
        by_status[row["status"]] = {
            "count": row["count"],
            "total": row["total"] or ZERO,
        }

    return {
        "by_status": by_status,
        "count": sum(entry["count"] for entry in by_status.values()),
        "total": sum(
            (entry["total"] for key, entry in by_status.items() if key != SaleCommission.Status.REJECTED),
            ZERO,
        ),
        "pending_total": by_status[SaleCommission.Status.PENDING]["total"],
        "payable_total": by_status[SaleCommission.Status.APPROVED]["total"],
        "paid_total": by_status[SaleCommission.Status.PAID]["total"],
    }


def salesperson_ranking(period_start: date | None = None, period_end: date | None = None) -> list[dict]:
    """Rank salespeople on completed sales within an inclusive period.

    Each entry: ``rank``, ``user_id``, ``name``, ``sales_count``,
    ``revenue``, ``profit``, ``commissions`` (approved + paid),
    ``average_profit``.  Ordered by revenue, highest first.
    """
    sales = Sale.objects.filter(status=Sale.Status.COMPLETED)
    commissions = SaleCommission.objects.filter(status__in=EARNED_STATUSES)
    if period_start:
        sales = sales.filter(sale_date__gte=period_start)
        commissions = commissions.filter(sale__sale_date__gte=period_start)
    if period_end:
        sales = sales.filter(sale_date__lte=period_end)
        commissions = commissions.filter(sale__sale_date__lte=period_end)

    sales_rows = (
        sales.order_by()
        .values(
            "salesperson_id",
            "salesperson__first_name",
            "salesperson__last_name",
            "salesperson__email",
        )
        .annotate(
            sales_count=Count("id"),
            revenue=Sum("sale_price"),
            profit=Sum("net_profit"),
        )
    )
    earned = {
        row["user_id"]: row["total"] or ZERO
        for row in commissions.order_by().values("user_id").annotate(total=Sum("final_amount"))
    }

    entries = []
    for row in sales_rows:
        name = " ".join(
            part for part in (row["salesperson__first_name"], row["salesperson__last_name"]) if part
        )
        profit = row["profit"] or ZERO
        count = row["sales_count"]
        entries.append({
            "user_id": row["salesperson_id"],
            "name": name or row["salesperson__email"],
            "sales_count": count,
            "revenue": row["revenue"] or ZERO,
            "profit": profit,
            "commissions": earned.get(row["salesperson_id"], ZERO),
            "average_profit": (profit / count).quantize(Decimal("0.01")) if count else ZERO,
        })

    entries.sort(key=lambda entry: (-entry["revenue"], -entry["sales_count"], str(entry["user_id"])))
    for rank, entry in enumerate(entries, start=1):
        entry["rank"] = rank
    return entries


def sales_missing_commissions():
    """Completed sales that never received a commission.

    Sales whose commissions were all rejected are not a gap: rejection is a
    decision, not a missing record.
    """
    any_commission = SaleCommission.objects.filter(sale=OuterRef("pk"))
    return (
        Sale.objects.filter(status=Sale.Status.COMPLETED)
        .annotate(has_commission=Exists(any_commission))
        .filter(has_commission=False)
        .select_related("salesperson")
        .order_by("sale_date", "created_at")
    )
