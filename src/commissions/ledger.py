"""Adjustment ledger for pending commissions.

Adjustments are append-only: a correction is a new entry with the opposite
sign, never an edit.  The running ``manual_adjustment`` stored on the
commission is always the sum of its entries.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Sum

from commissions.exceptions import InvalidTransition, ValidationError
from commissions.models import (
    CommissionAdjustment,
    CommissionAuditLog,
    SaleCommission,
)
from commissions.services import APPROVER_ROLES, ensure_can_act, record_audit

logger = logging.getLogger("dealership")


def _parse_delta(delta) -> Decimal:
    if isinstance(delta, bool):
        raise ValidationError("Montant d'ajustement invalide.")
    try:
        value = Decimal(str(delta))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Montant d'ajustement invalide: {delta!r}.")
    if not value.is_finite():
        raise ValidationError(f"Montant d'ajustement invalide: {delta!r}.")
    if value == 0:
        raise ValidationError("Un ajustement ne peut pas etre nul.")
    if value != value.quantize(Decimal("0.01")):
        raise ValidationError("Un ajustement ne peut pas avoir plus de deux decimales.")
    return value


@transaction.atomic
def adjust(commission, delta, justification: str, actor) -> Decimal:
    """Append an adjustment to a pending commission.

    Parameters
    ----------
    commission : SaleCommission | UUID
    delta : Decimal
        Signed, non-zero amount.
    justification : str
        Mandatory, non-empty after trim.
    actor : User

    Returns
    -------
    Decimal
        The commission's new ``final_amount``.

    Raises
    ------
    ValidationError
        Zero or malformed delta, empty justification.
    NotAuthorized
    InvalidTransition
        The commission is not pending; nothing is written.
    """
    pk = commission.pk if isinstance(commission, SaleCommission) else commission
    value = _parse_delta(delta)
    justification = (justification or "").strip()
    if not justification:
        raise ValidationError("Une justification est obligatoire pour tout ajustement.")

    # Lock the commission row so the insert and the recomputed total agree
    locked = SaleCommission.objects.select_for_update().get(pk=pk)

    ensure_can_act(actor, locked, APPROVER_ROLES)

    if locked.status != SaleCommission.Status.PENDING:
        raise InvalidTransition(
            f"Seule une commission en attente peut etre ajustee (statut: {locked.status}).",
            current_status=locked.status,
        )

    previous_final = locked.final_amount
    CommissionAdjustment.objects.create(
        commission=locked,
        delta_amount=value,
        justification=justification,
        actor=actor,
    )

    total = (
        CommissionAdjustment.objects
        .filter(commission=locked)
        .aggregate(total=Sum("delta_amount"))["total"]
    ) or Decimal("0.00")
    locked.manual_adjustment = total
    locked.save(update_fields=["manual_adjustment", "updated_at"])

    record_audit(
        locked,
        CommissionAuditLog.Action.ADJUSTED,
        actor=actor,
        previous_status=locked.status,
        new_status=locked.status,
        notes=justification,
        old_values={"final_amount": str(previous_final)},
        new_values={
            "delta_amount": str(value),
            "manual_adjustment": str(locked.manual_adjustment),
            "final_amount": str(locked.final_amount),
        },
    )

    if isinstance(commission, SaleCommission):
        commission.manual_adjustment = locked.manual_adjustment
        commission.final_amount = locked.final_amount
        commission.updated_at = locked.updated_at

    logger.info(
        "Commission %s adjusted by %s (%s): final amount %s -> %s",
        locked.pk, value, actor, previous_final, locked.final_amount,
    )
    return locked.final_amount


def ledger_history(commission):
    """Adjustments of ``commission``, oldest first."""
    pk = commission.pk if isinstance(commission, SaleCommission) else commission
    return (
        CommissionAdjustment.objects
        .filter(commission_id=pk)
        .select_related("actor")
        .order_by("created_at", "id")
    )


@dataclass
class LedgerCheck:
    commission_id: object
    errors: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def verify_ledger(commission) -> LedgerCheck:
    """Check the stored totals of ``commission`` against its ledger."""
    commission = (
        commission if isinstance(commission, SaleCommission)
        else SaleCommission.objects.get(pk=commission)
    )
    check = LedgerCheck(commission_id=commission.pk)

    total = (
        CommissionAdjustment.objects
        .filter(commission=commission)
        .aggregate(total=Sum("delta_amount"))["total"]
    ) or Decimal("0.00")

    if commission.manual_adjustment != total:
        check.errors.append(
            f"manual_adjustment={commission.manual_adjustment} != somme du journal={total}",
        )
    expected_final = commission.calculated_amount + commission.manual_adjustment
    if commission.final_amount != expected_final:
        check.errors.append(
            f"final_amount={commission.final_amount} != calcule+ajustement={expected_final}",
        )
    return check
