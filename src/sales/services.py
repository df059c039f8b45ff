"""Business-logic / service functions for the sales app."""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from sales.models import Sale

logger = logging.getLogger("dealership")


# ---------------------------------------------------------------------------
# create_sale
# ---------------------------------------------------------------------------

def create_sale(
    salesperson,
    sale_price: Decimal,
    net_profit: Decimal = Decimal("0.00"),
    vehicle_category: str = Sale.VehicleCategory.OTHER,
    sale_date: date | None = None,
    vehicle_label: str = "",
    lead_source: str = "",
) -> Sale:
    """Create a new DRAFT sale.

    Parameters
    ----------
    salesperson : accounts.models.User
    sale_price : Decimal
    net_profit : Decimal
    vehicle_category : str
    sale_date : date, optional
        Defaults to today.
    vehicle_label : str
    lead_source : str
        One of ``Sale.LeadSource``; blank when unknown.

    Returns
    -------
    Sale
    """
    if salesperson is None:
        raise ValueError("Impossible de creer une vente sans vendeur.")
    if Decimal(str(sale_price)) < 0:
        raise ValueError("Le prix de vente ne peut pas etre negatif.")

    sale = Sale.objects.create(
        salesperson=salesperson,
        sale_price=Decimal(str(sale_price)),
        net_profit=Decimal(str(net_profit)),
        vehicle_category=vehicle_category,
        vehicle_label=vehicle_label,
        lead_source=lead_source or "",
        sale_date=sale_date or timezone.localdate(),
        status=Sale.Status.DRAFT,
    )
    logger.info("Sale %s created (DRAFT) for %s", sale.pk, salesperson)
    return sale


# ---------------------------------------------------------------------------
# complete_sale
# ---------------------------------------------------------------------------

@transaction.atomic
def complete_sale(sale: Sale, actor=None) -> Sale:
    """Mark a DRAFT sale as COMPLETED.

    Saving the COMPLETED status emits the sale-completion event: the
    commissions app creates the pending commissions in the same transaction
    and the goals app queues a goal refresh after commit.

    Raises
    ------
    ValueError
        If the sale is not a draft.
    """
    sale = Sale.objects.select_for_update().get(pk=sale.pk)

    if not sale.can_complete():
        raise ValueError("Seule une vente en brouillon peut etre conclue.")

    sale.status = Sale.Status.COMPLETED
    sale.completed_at = timezone.now()
    sale.save(update_fields=["status", "completed_at", "updated_at"])

    logger.info("Sale %s completed (actor=%s)", sale.pk, actor)
    return sale


# ---------------------------------------------------------------------------
# cancel_sale
# ---------------------------------------------------------------------------

@transaction.atomic
def cancel_sale(sale: Sale, reason: str, actor) -> Sale:
    """Cancel a sale.

    Commissions already attached to a completed sale are left untouched:
    pending ones can no longer be approved or paid and wait to be rejected,
    approved or paid ones need a compensating flow outside the engine.

    Raises
    ------
    ValueError
        If the sale cannot be cancelled or no reason is given.
    """
    sale = Sale.objects.select_for_update().get(pk=sale.pk)

    if not sale.can_cancel():
        raise ValueError("Cette vente ne peut pas etre annulee dans son etat actuel.")

    if not (reason or "").strip():
        raise ValueError("Une raison d'annulation est requise.")

    sale.status = Sale.Status.CANCELLED
    sale.cancelled_at = timezone.now()
    sale.cancellation_reason = reason.strip()
    sale.save(update_fields=[
        "status",
        "cancelled_at",
        "cancellation_reason",
        "updated_at",
    ])

    logger.info(
        "Sale %s cancelled by %s.  Reason: %s",
        sale.pk, actor, reason,
    )
    return sale
