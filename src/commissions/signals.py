"""Signals wiring sale completion to commission creation."""
import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from commissions.exceptions import CommissionError

logger = logging.getLogger("dealership")

COMPLETED = "COMPLETED"
CANCELLED = "CANCELLED"


def _create_commissions(sale) -> None:
    from commissions.services import create_commissions_for_sale

    try:
        # Savepoint: a failure here must not roll back the sale itself.
        with transaction.atomic():
            create_commissions_for_sale(sale)
    except CommissionError as exc:
        logger.warning(
            "Sale %s completed without commission (%s): %s",
            sale.pk, exc.code, exc.message,
        )


def _report_reversed_sale(sale) -> None:
    from django.db.models import Count

    from commissions.models import SaleCommission

    Status = SaleCommission.Status
    counts = dict(
        SaleCommission.objects.filter(sale=sale)
        .order_by()
        .values_list("status")
        .annotate(total=Count("id"))
    )
    pending = counts.get(Status.PENDING, 0)
    settled = counts.get(Status.APPROVED, 0) + counts.get(Status.PAID, 0)
    if pending:
        logger.warning(
            "Sale %s cancelled with %d pending commission(s); "
            "they can no longer be approved and should be rejected.",
            sale.pk, pending,
        )
    if settled:
        logger.warning(
            "Sale %s cancelled with %d approved/paid commission(s); "
            "commissions left untouched, compensation required.",
            sale.pk, settled,
        )


@receiver(post_save, sender="sales.Sale")
def on_sale_saved(sender, instance, created, **kwargs):
    previous_status = getattr(instance, "_previous_status", None)
    if previous_status == instance.status:
        return
    if instance.status == COMPLETED:
        _create_commissions(instance)
    elif instance.status == CANCELLED and previous_status == COMPLETED:
        _report_reversed_sale(instance)
