"""Celery tasks for the goals module."""
from __future__ import annotations

import logging
from datetime import date

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def refresh_salesperson_goal(self, *, user_id: str, day: str | None = None):
    """Refresh the goals of one salesperson covering ``day`` (ISO date, default today)."""
    try:
        from django.utils import timezone

        from goals.engine import GoalTracker

        target_day = date.fromisoformat(day) if day else timezone.localdate()
        results = GoalTracker().refresh_for_day(user_id, target_day)
        logger.info("Refreshed %d goal(s) for user=%s day=%s", len(results), user_id, target_day)
        return len(results)
    except Exception as exc:
        logger.exception("refresh_salesperson_goal failed: %s", exc)
        raise self.retry(exc=exc)


@shared_task
def refresh_current_goals():
    """Scheduled hourly (Celery Beat). Refresh every goal covering today."""
    from django.utils import timezone

    from goals.engine import GoalTracker
    from goals.models import SalespersonGoal

    today = timezone.localdate()
    tracker = GoalTracker()
    goals = SalespersonGoal.objects.filter(period_start__lte=today, period_end__gte=today)

    count = 0
    for goal in goals.iterator():
        tracker.refresh_goal(goal)
        count += 1
    logger.info("refresh_current_goals: %d goal(s) refreshed for %s", count, today)
    return count
