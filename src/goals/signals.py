"""Signals that keep salesperson goals in sync with completed sales."""
import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)

COMPLETED = "COMPLETED"


def _refresh_now(*, user_id, day) -> None:
    from goals.engine import GoalTracker

    GoalTracker().refresh_for_day(user_id, day)


def _queue_refresh(*, user_id, day, sync_refresh: bool = True) -> None:
    def _dispatch() -> None:
        queued = False
        try:
            from goals.tasks import refresh_salesperson_goal

            refresh_salesperson_goal.delay(user_id=str(user_id), day=day.isoformat())
            queued = True
        except Exception as exc:
            logger.warning("goals async dispatch failed: %s", exc, exc_info=True)

        if sync_refresh:
            # Keep goal progress up-to-date even when workers are unavailable.
            try:
                _refresh_now(user_id=user_id, day=day)
            except Exception as exc:
                # Never let a signal crash a business transaction.
                level = logger.warning if queued else logger.error
                level("goals sync refresh failed: %s", exc, exc_info=True)

    # Queue after DB commit so the worker reads the committed sale.
    transaction.on_commit(_dispatch)


@receiver(post_save, sender="sales.Sale")
def on_sale_saved(sender, instance, created, **kwargs):
    """Refresh goals when a sale enters or leaves COMPLETED."""
    previous_status = getattr(instance, "_previous_status", None)
    if previous_status == instance.status:
        return
    if COMPLETED not in (previous_status, instance.status):
        return
    if not instance.salesperson_id or not instance.sale_date:
        return
    _queue_refresh(user_id=instance.salesperson_id, day=instance.sale_date)
