"""Celery tasks for the commissions module."""
from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def backfill_missing_commissions(limit: int = 500) -> dict:
    """Retry commission creation for completed sales that have none.

    Scheduled daily (Celery Beat).  Sales still without an applicable rule
    stay in the gap and are reported again on the next run.
    """
    from django.db import transaction

    from commissions.exceptions import CommissionError
    from commissions.reports import sales_missing_commissions
    from commissions.services import create_commissions_for_sale

    created = 0
    failed = 0
    sales = list(sales_missing_commissions()[:limit])
    for sale in sales:
        try:
            with transaction.atomic():
                created += len(create_commissions_for_sale(sale))
        except CommissionError as exc:
            failed += 1
            logger.warning(
                "backfill: sale %s still without commission (%s): %s",
                sale.pk, exc.code, exc.message,
            )

    logger.info(
        "backfill_missing_commissions: %d sale(s) scanned, %d commission(s) created, %d still missing",
        len(sales), created, failed,
    )
    return {"scanned": len(sales), "created": created, "failed": failed}


@shared_task
def handle_sale_completed_event(payload: dict) -> int:
    """Create the commissions announced by a sale-completion event.

    ``payload`` carries ``sale_id``, ``salesperson_id``, ``sale_price``,
    ``net_profit``, ``vehicle_category``, ``sale_date`` and optionally
    ``lead_source``.  The referenced sale must exist, be COMPLETED and
    belong to the same salesperson; the rule is resolved on the event's
    figures.  Replayed events create nothing new.

    Returns the number of commissions created.
    """
    import uuid

    from django.db import transaction

    from commissions.exceptions import CommissionError, ValidationError
    from commissions.rules import SaleFacts
    from commissions.services import create_commissions_for_sale
    from sales.models import Sale

    try:
        facts = SaleFacts.from_payload(payload)
        sale_id = uuid.UUID(str(facts.sale_id))
    except (CommissionError, ValueError) as exc:
        logger.warning("sale event rejected: %s (payload=%r)", exc, payload)
        return 0

    sale = Sale.objects.filter(pk=sale_id).first()
    if sale is None or sale.status != Sale.Status.COMPLETED:
        logger.warning(
            "sale event for %s ignored: sale %s",
            sale_id, "unknown" if sale is None else f"is {sale.status}",
        )
        return 0

    try:
        if str(sale.salesperson_id) != str(facts.salesperson_id):
            raise ValidationError("Le vendeur de l'evenement ne correspond pas a la vente.")
        with transaction.atomic():
            created = create_commissions_for_sale(sale, facts=facts)
    except CommissionError as exc:
        logger.warning(
            "sale event for %s: no commission created (%s): %s",
            sale_id, exc.code, exc.message,
        )
        return 0

    logger.info("sale event for %s: %d commission(s) created", sale_id, len(created))
    return len(created)
