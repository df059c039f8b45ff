"""Goal tracking engine.

Core design principles:
- Pure aggregation over committed, COMPLETED sales: never reads or locks
  commission rows, so approvals and payments are never blocked by a refresh
- Plain UPDATE of the derived ``current_*`` fields, safe to repeat at any time
- Progress is reported as a percentage of each target (0 when no target)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from django.db.models import Count, Sum
from django.utils import timezone

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def progress_percent(current, target) -> Decimal:
    """``current / target * 100`` rounded to 2 decimals; 0 when target is 0."""
    target = Decimal(target or 0)
    if target <= 0:
        return ZERO
    return (Decimal(current or 0) / target * HUNDRED).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP,
    )


@dataclass(frozen=True)
class Period:
    """Inclusive date range."""

    start: date
    end: date

    @classmethod
    def coerce(cls, value) -> "Period":
        if isinstance(value, cls):
            return value
        if hasattr(value, "period_start") and hasattr(value, "period_end"):
            return cls(value.period_start, value.period_end)
        start, end = value
        return cls(start, end)


@dataclass(frozen=True)
class GoalProgress:
    user_id: object
    period_start: date
    period_end: date
    current_sales: int
    current_revenue: Decimal
    current_profit: Decimal
    target_sales: int = 0
    target_revenue: Decimal = ZERO
    target_profit: Decimal = ZERO
    goal_id: Optional[object] = None

    @property
    def sales_progress(self) -> Decimal:
        return progress_percent(self.current_sales, self.target_sales)

    @property
    def revenue_progress(self) -> Decimal:
        return progress_percent(self.current_revenue, self.target_revenue)

    @property
    def profit_progress(self) -> Decimal:
        return progress_percent(self.current_profit, self.target_profit)

    @property
    def is_achieved(self) -> bool:
        """Every non-zero target met; a goal without targets is never achieved."""
        pairs = (
            (self.current_sales, self.target_sales),
            (self.current_revenue, self.target_revenue),
            (self.current_profit, self.target_profit),
        )
        targets = [(current, target) for current, target in pairs if target and target > 0]
        return bool(targets) and all(current >= target for current, target in targets)

    def as_dict(self) -> dict:
        return {
            "goal_id": self.goal_id,
            "user_id": self.user_id,
            "period_start": self.period_start,
            "period_end": self.period_end,
            "current_sales": self.current_sales,
            "current_revenue": self.current_revenue,
            "current_profit": self.current_profit,
            "target_sales": self.target_sales,
            "target_revenue": self.target_revenue,
            "target_profit": self.target_profit,
            "sales_progress": self.sales_progress,
            "revenue_progress": self.revenue_progress,
            "profit_progress": self.profit_progress,
            "is_achieved": self.is_achieved,
        }


class GoalTracker:
    """Recompute goal progress from completed sales."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def aggregate(self, user_id, period) -> dict:
        """Count and totals of the user's completed sales in ``period``."""
        from sales.models import Sale

        period = Period.coerce(period)
        row = Sale.objects.filter(
            salesperson_id=user_id,
            status=Sale.Status.COMPLETED,
            sale_date__gte=period.start,
            sale_date__lte=period.end,
        ).aggregate(
            sales=Count("id"),
            revenue=Sum("sale_price"),
            profit=Sum("net_profit"),
        )
        return {
            "sales": row["sales"] or 0,
            "revenue": row["revenue"] or ZERO,
            "profit": row["profit"] or ZERO,
        }

    def refresh(self, user_id, period) -> GoalProgress:
        """Recompute the user's figures over ``period`` and store them on
        the goal with exactly that period, if any.

        Parameters
        ----------
        user_id : UUID
        period : Period | (date, date) | SalespersonGoal

        Returns
        -------
        GoalProgress
            Targets are zero when no goal matches the period.
        """
        from goals.models import SalespersonGoal

        period = Period.coerce(period)
        figures = self.aggregate(user_id, period)

        goals = SalespersonGoal.objects.filter(
            user_id=user_id,
            period_start=period.start,
            period_end=period.end,
        )
        updated = goals.update(
            current_sales=figures["sales"],
            current_revenue=figures["revenue"],
            current_profit=figures["profit"],
            refreshed_at=timezone.now(),
            updated_at=timezone.now(),
        )
        goal = goals.first() if updated else None

        logger.debug(
            "Goal refresh user=%s period=%s..%s sales=%s revenue=%s",
            user_id, period.start, period.end, figures["sales"], figures["revenue"],
        )
        return GoalProgress(
            user_id=user_id,
            period_start=period.start,
            period_end=period.end,
            current_sales=figures["sales"],
            current_revenue=figures["revenue"],
            current_profit=figures["profit"],
            target_sales=goal.target_sales if goal else 0,
            target_revenue=goal.target_revenue if goal else ZERO,
            target_profit=goal.target_profit if goal else ZERO,
            goal_id=goal.pk if goal else None,
        )

    def refresh_goal(self, goal) -> GoalProgress:
        return self.refresh(goal.user_id, goal)

    def refresh_for_day(self, user_id, day: date) -> list[GoalProgress]:
        """Refresh every goal of the user whose period contains ``day``."""
        from goals.models import SalespersonGoal

        goals = SalespersonGoal.objects.filter(
            user_id=user_id,
            period_start__lte=day,
            period_end__gte=day,
        )
        return [self.refresh_goal(goal) for goal in goals]

    def progress(self, goal) -> GoalProgress:
        """Progress from the stored figures, without recomputing."""
        return GoalProgress(
            user_id=goal.user_id,
            period_start=goal.period_start,
            period_end=goal.period_end,
            current_sales=goal.current_sales,
            current_revenue=goal.current_revenue,
            current_profit=goal.current_profit,
            target_sales=goal.target_sales,
            target_revenue=goal.target_revenue,
            target_profit=goal.target_profit,
            goal_id=goal.pk,
        )
