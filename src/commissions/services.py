"""Commission creation and approval workflow.

Every status transition is a single conditional UPDATE guarded by the
status the caller expects (``WHERE id = ? AND status = ?``).  Zero rows
affected means another request moved the commission first and surfaces as
``ConcurrentModification``; nothing is ever silently coerced into another
transition.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from commissions import rules as rule_engine
from commissions.exceptions import (
    AlreadyPaid,
    ConcurrentModification,
    InvalidTransition,
    NotAuthorized,
    ValidationError,
)
from commissions.models import (
    CommissionAuditLog,
    CommissionRule,
    CommissionSplit,
    SaleCommission,
)
from sales.models import Sale

logger = logging.getLogger("dealership")

APPROVER_ROLES = ("ADMIN", "MANAGER")
PAYER_ROLES = ("ADMIN", "MANAGER", "FINANCE")

Status = SaleCommission.Status


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def get_commission(commission) -> SaleCommission:
    """Accept a SaleCommission instance or its primary key."""
    if isinstance(commission, SaleCommission):
        return commission
    return SaleCommission.objects.get(pk=commission)


def ensure_can_act(actor, commission: SaleCommission, allowed_roles) -> None:
    """Raise ``NotAuthorized`` unless ``actor`` may act on ``commission``."""
    if actor is None or not getattr(actor, "is_authenticated", False):
        raise NotAuthorized("Un utilisateur authentifie est requis.")
    if not actor.is_superuser and actor.role not in allowed_roles:
        raise NotAuthorized(
            f"Le role '{actor.role}' ne permet pas cette action sur une commission.",
        )
    if actor.pk == commission.user_id and not settings.COMMISSION_ALLOW_SELF_APPROVAL:
        raise NotAuthorized("Un vendeur ne peut pas valider ou payer sa propre commission.")


def record_audit(
    commission: SaleCommission,
    action: str,
    actor=None,
    previous_status: str = "",
    new_status: str = "",
    notes: str = "",
    old_values: dict | None = None,
    new_values: dict | None = None,
) -> CommissionAuditLog:
    return CommissionAuditLog.objects.create(
        commission=commission,
        action=action,
        previous_status=previous_status or "",
        new_status=new_status or "",
        actor=actor,
        notes=notes or "",
        old_values=old_values or {},
        new_values=new_values or {},
    )


def _compare_and_set(
    commission: SaleCommission,
    expected_status: str,
    require_completed_sale: bool = True,
    **changes,
) -> None:
    """Apply ``changes`` only if the row is still in ``expected_status``.

    With ``require_completed_sale`` the sale must also still be COMPLETED,
    so a cancellation racing an approval or payment wins.
    """
    now = timezone.now()
    qs = SaleCommission.objects.filter(pk=commission.pk, status=expected_status)
    if require_completed_sale:
        qs = qs.filter(sale__status=Sale.Status.COMPLETED)
    rows = qs.update(updated_at=now, **changes)

    if rows != 1:
        logger.warning(
            "Commission %s: expected status %s, row changed concurrently",
            commission.pk, expected_status,
        )
        raise ConcurrentModification()

    for field, value in changes.items():
        setattr(commission, field, value)
    commission.updated_at = now


def ensure_sale_completed(commission: SaleCommission) -> None:
    """Raise ``InvalidTransition`` when the commission's sale was cancelled."""
    sale_status = (
        Sale.objects.filter(pk=commission.sale_id)
        .values_list("status", flat=True)
        .first()
    )
    if sale_status != Sale.Status.COMPLETED:
        raise InvalidTransition(
            f"La vente de cette commission n'est plus conclue (statut: {sale_status}).",
            current_status=commission.status,
        )


# ---------------------------------------------------------------------------
# Splits
# ---------------------------------------------------------------------------

def split_participants(sale) -> list[tuple[object, Decimal]]:
    """Return ``(user_id, percentage)`` for every participant of ``sale``.

    Without explicit splits the sale's salesperson gets 100 %.
    """
    splits = list(CommissionSplit.objects.filter(sale=sale))
    if not splits:
        return [(sale.salesperson_id, Decimal("100"))]

    total = sum((split.percentage for split in splits), Decimal("0"))
    if total != Decimal("100"):
        raise ValidationError(
            f"Les parts de commission de la vente totalisent {total}% au lieu de 100%.",
        )
    return [(split.user_id, split.percentage) for split in splits]


@transaction.atomic
def set_commission_splits(sale, shares) -> list[CommissionSplit]:
    """Replace the commission splits of a sale.

    Parameters
    ----------
    sale : sales.Sale
    shares : iterable of (user, percentage)
        Percentages must be positive and sum to 100.

    Raises
    ------
    ValidationError
        On an invalid share list, or when the sale already has live
        commissions.
    """
    shares = [(user, Decimal(str(percentage))) for user, percentage in shares]
    if not shares:
        raise ValidationError("Au moins un participant est requis.")

    user_ids = [getattr(user, "pk", user) for user, _ in shares]
    if len(set(user_ids)) != len(user_ids):
        raise ValidationError("Un participant ne peut apparaitre qu'une seule fois.")
    if any(percentage <= 0 or percentage > 100 for _, percentage in shares):
        raise ValidationError("Chaque part doit etre comprise entre 0 (exclu) et 100.")

    total = sum((percentage for _, percentage in shares), Decimal("0"))
    if total != Decimal("100"):
        raise ValidationError(f"Les parts totalisent {total}% au lieu de 100%.")

    if SaleCommission.objects.filter(sale=sale).not_rejected().exists():
        raise ValidationError(
            "Les parts ne peuvent plus etre modifiees: des commissions existent deja pour cette vente.",
        )

    CommissionSplit.objects.filter(sale=sale).delete()
    return [
        CommissionSplit.objects.create(sale=sale, user_id=user_id, percentage=percentage)
        for user_id, (_, percentage) in zip(user_ids, shares)
    ]


def _split_amounts(base: Decimal, participants) -> list[Decimal]:
    """Share ``base`` by percentage; rounding remainder goes to the first participant."""
    amounts = [
        rule_engine.quantize(base * percentage / rule_engine.HUNDRED)
        for _, percentage in participants
    ]
    remainder = base - sum(amounts, Decimal("0"))
    if amounts and remainder:
        amounts[0] += remainder
    return amounts


# ---------------------------------------------------------------------------
# create_commissions_for_sale
# ---------------------------------------------------------------------------

@transaction.atomic
def create_commissions_for_sale(sale, actor=None, rules=None, facts=None) -> list[SaleCommission]:
    """Create the pending commissions of a completed sale.

    Resolves the applicable rule, then creates one commission per
    participant.  Participants that already hold a non-rejected commission
    on the sale are skipped, so calling this twice is harmless.

    Parameters
    ----------
    sale : sales.Sale
    actor : User, optional
        ``None`` when triggered by the sale-completion event.
    rules : iterable of CommissionRule, optional
        Defaults to the active rules.
    facts : SaleFacts, optional
        Figures to resolve against, e.g. from a sale-completion event.
        Defaults to the figures stored on ``sale``.

    Returns
    -------
    list[SaleCommission]
        The commissions created by this call.

    Raises
    ------
    ValidationError
        Sale not completed, invalid splits, negative amount.
    NoApplicableRule
        No active rule matches the sale.
    """
    if rules is None:
        rules = CommissionRule.objects.active()
    if facts is None:
        facts = rule_engine.SaleFacts.from_sale(sale)
    resolution = rule_engine.resolve(facts, rules)

    participants = split_participants(sale)
    existing = set(
        SaleCommission.objects.filter(sale=sale)
        .not_rejected()
        .values_list("user_id", flat=True)
    )
    due_date = sale.sale_date + timedelta(days=settings.COMMISSION_PAYMENT_DUE_DAYS)
    amounts = _split_amounts(resolution.calculated_amount, participants)

    created = []
    for (user_id, percentage), amount in zip(participants, amounts):
        if user_id in existing:
            continue
        commission = SaleCommission.objects.create(
            sale=sale,
            user_id=user_id,
            commission_rule=resolution.rule,
            split_percentage=percentage,
            calculated_amount=amount,
            manual_adjustment=Decimal("0.00"),
            status=Status.PENDING,
            payment_due_date=due_date,
        )
        record_audit(
            commission,
            CommissionAuditLog.Action.CREATED,
            actor=actor,
            new_status=Status.PENDING,
            notes=f"Regle appliquee: {resolution.rule}",
            new_values={
                "calculated_amount": str(amount),
                "split_percentage": str(percentage),
                "commission_rule": resolution.rule.pk,
            },
        )
        created.append(commission)

    if created:
        logger.info(
            "Sale %s: %d commission(s) created with rule %s (base %s)",
            sale.pk, len(created), resolution.rule.pk, resolution.calculated_amount,
        )
    return created


# ---------------------------------------------------------------------------
# approve
# ---------------------------------------------------------------------------

@transaction.atomic
def approve(commission, actor, notes: str = "") -> SaleCommission:
    """Move a commission from pending to approved.

    Raises
    ------
    NotAuthorized
    InvalidTransition
        The commission is not pending, or its sale is no longer completed.
    ConcurrentModification
        Another request changed the commission first.
    """
    commission = get_commission(commission)
    ensure_can_act(actor, commission, APPROVER_ROLES)

    if commission.status != Status.PENDING:
        raise InvalidTransition(
            f"Seule une commission en attente peut etre approuvee (statut: {commission.status}).",
            current_status=commission.status,
        )
    ensure_sale_completed(commission)

    _compare_and_set(
        commission,
        Status.PENDING,
        status=Status.APPROVED,
        approved_by=actor,
        approved_at=timezone.now(),
    )
    record_audit(
        commission,
        CommissionAuditLog.Action.APPROVED,
        actor=actor,
        previous_status=Status.PENDING,
        new_status=Status.APPROVED,
        notes=notes,
        new_values={"final_amount": str(commission.final_amount)},
    )
    logger.info("Commission %s approved by %s", commission.pk, actor)
    return commission


# ---------------------------------------------------------------------------
# reject
# ---------------------------------------------------------------------------

@transaction.atomic
def reject(commission, reason: str, actor) -> SaleCommission:
    """Move a commission from pending to rejected.

    Raises
    ------
    ValidationError
        Empty reason.
    NotAuthorized
    InvalidTransition
    ConcurrentModification
    """
    commission = get_commission(commission)
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Un motif de rejet est obligatoire.")

    ensure_can_act(actor, commission, APPROVER_ROLES)

    if commission.status != Status.PENDING:
        raise InvalidTransition(
            f"Seule une commission en attente peut etre rejetee (statut: {commission.status}).",
            current_status=commission.status,
        )

    _compare_and_set(
        commission,
        Status.PENDING,
        require_completed_sale=False,
        status=Status.REJECTED,
        rejection_reason=reason,
        rejected_by=actor,
        rejected_at=timezone.now(),
    )
    record_audit(
        commission,
        CommissionAuditLog.Action.REJECTED,
        actor=actor,
        previous_status=Status.PENDING,
        new_status=Status.REJECTED,
        notes=reason,
    )
    logger.info("Commission %s rejected by %s.  Reason: %s", commission.pk, actor, reason)
    return commission


# ---------------------------------------------------------------------------
# pay
# ---------------------------------------------------------------------------

@transaction.atomic
def pay(commission, actor, notes: str = "") -> SaleCommission:
    """Move a commission from approved to paid.

    At most one call succeeds per commission.

    Raises
    ------
    AlreadyPaid
        The commission is already paid; carries it, nothing is written.
    NotAuthorized
    InvalidTransition
        The commission is pending or rejected, or its sale is no longer
        completed.
    ConcurrentModification
    """
    commission = get_commission(commission)

    if commission.status == Status.PAID:
        raise AlreadyPaid(commission)

    ensure_can_act(actor, commission, PAYER_ROLES)

    if commission.status != Status.APPROVED:
        raise InvalidTransition(
            f"Seule une commission approuvee peut etre payee (statut: {commission.status}).",
            current_status=commission.status,
        )
    ensure_sale_completed(commission)

    _compare_and_set(
        commission,
        Status.APPROVED,
        status=Status.PAID,
        paid=True,
        paid_by=actor,
        paid_at=timezone.now(),
    )
    record_audit(
        commission,
        CommissionAuditLog.Action.PAID,
        actor=actor,
        previous_status=Status.APPROVED,
        new_status=Status.PAID,
        notes=notes,
        new_values={"final_amount": str(commission.final_amount)},
    )
    logger.info(
        "Commission %s paid by %s (%s %s)",
        commission.pk, actor, commission.final_amount, settings.CURRENCY,
    )
    return commission


# ---------------------------------------------------------------------------
# approve_and_pay
# ---------------------------------------------------------------------------

def approve_and_pay(commission, actor) -> SaleCommission:
    """Approve then pay, as two transitions with their own audit entries.

    Not atomic across both steps: if payment fails the commission stays
    approved and the operator retries ``pay``.  An approved commission goes
    straight to payment and a paid one raises ``AlreadyPaid``, so a repeated
    call behaves like a repeated ``pay``.
    """
    commission = get_commission(commission)
    if commission.status == Status.PAID:
        raise AlreadyPaid(commission)
    if commission.status == Status.PENDING:
        commission = approve(commission, actor)
    return pay(commission, actor)
