from decimal import Decimal

import pytest

from commissions import ledger, services
from commissions.exceptions import (
    AlreadyPaid,
    ConcurrentModification,
    InvalidTransition,
    NotAuthorized,
    ValidationError,
)
from commissions.models import CommissionAuditLog, SaleCommission
from sales.models import Sale
from sales.services import cancel_sale


@pytest.mark.django_db
class TestApprovalWorkflow:
    def test_commission_created_pending_on_completion(self, pending_commission, sales_user, flat_rule):
        assert pending_commission.status == SaleCommission.Status.PENDING
        assert pending_commission.user == sales_user
        assert pending_commission.commission_rule == flat_rule
        assert pending_commission.calculated_amount == Decimal("1000.00")
        assert pending_commission.final_amount == Decimal("1000.00")
        assert pending_commission.paid is False

    def test_adjust_approve_pay(self, pending_commission, manager_user, finance_user):
        final = ledger.adjust(
            pending_commission,
            delta=Decimal("-100.00"),
            justification="price renegotiated",
            actor=manager_user,
        )
        assert final == Decimal("900.00")

        commission = services.approve(pending_commission.pk, actor=manager_user)
        assert commission.status == SaleCommission.Status.APPROVED
        assert commission.approved_by == manager_user

        commission = services.pay(commission, actor=finance_user)
        commission.refresh_from_db()
        assert commission.status == SaleCommission.Status.PAID
        assert commission.paid is True
        assert commission.paid_at is not None
        assert commission.final_amount == Decimal("900.00")
        assert commission.manual_adjustment == Decimal("-100.00")

        actions = list(commission.audit_logs.values_list("action", flat=True))
        assert actions == [
            CommissionAuditLog.Action.CREATED,
            CommissionAuditLog.Action.ADJUSTED,
            CommissionAuditLog.Action.APPROVED,
            CommissionAuditLog.Action.PAID,
        ]

    def test_concurrent_approve_only_one_wins(self, pending_commission, manager_user, admin_user):
        first = SaleCommission.objects.get(pk=pending_commission.pk)
        second = SaleCommission.objects.get(pk=pending_commission.pk)

        services.approve(first, actor=manager_user)
        with pytest.raises(ConcurrentModification) as excinfo:
            services.approve(second, actor=admin_user)

        assert excinfo.value.retryable is True
        pending_commission.refresh_from_db()
        assert pending_commission.status == SaleCommission.Status.APPROVED
        assert pending_commission.approved_by == manager_user
        assert pending_commission.audit_logs.filter(action=CommissionAuditLog.Action.APPROVED).count() == 1

    def test_reject_requires_reason(self, pending_commission, manager_user):
        with pytest.raises(ValidationError):
            services.reject(pending_commission, reason="", actor=manager_user)
        with pytest.raises(ValidationError):
            services.reject(pending_commission, reason="   ", actor=manager_user)

        pending_commission.refresh_from_db()
        assert pending_commission.status == SaleCommission.Status.PENDING

    def test_reject(self, pending_commission, manager_user):
        commission = services.reject(pending_commission, reason="Vente douteuse", actor=manager_user)
        commission.refresh_from_db()
        assert commission.status == SaleCommission.Status.REJECTED
        assert commission.rejection_reason == "Vente douteuse"
        assert commission.rejected_by == manager_user

    def test_pay_pending_is_invalid(self, pending_commission, finance_user):
        with pytest.raises(InvalidTransition) as excinfo:
            services.pay(pending_commission, actor=finance_user)

        assert excinfo.value.current_status == SaleCommission.Status.PENDING
        pending_commission.refresh_from_db()
        assert pending_commission.paid_at is None
        assert pending_commission.paid is False

    def test_pay_twice_returns_already_paid(self, pending_commission, manager_user, finance_user):
        services.approve(pending_commission, actor=manager_user)
        services.pay(pending_commission.pk, actor=finance_user)

        with pytest.raises(AlreadyPaid) as excinfo:
            services.pay(pending_commission.pk, actor=finance_user)

        assert excinfo.value.commission.pk == pending_commission.pk
        assert excinfo.value.http_status == 200
        assert pending_commission.audit_logs.filter(action=CommissionAuditLog.Action.PAID).count() == 1

    def test_concurrent_pay_only_one_wins(self, pending_commission, manager_user, finance_user, admin_user):
        services.approve(pending_commission, actor=manager_user)
        first = SaleCommission.objects.get(pk=pending_commission.pk)
        second = SaleCommission.objects.get(pk=pending_commission.pk)

        services.pay(first, actor=finance_user)
        with pytest.raises(ConcurrentModification):
            services.pay(second, actor=admin_user)

        pending_commission.refresh_from_db()
        assert pending_commission.paid_by == finance_user

    @pytest.mark.parametrize("terminal", ["rejected", "paid"])
    def test_no_transition_out_of_terminal_status(self, terminal, pending_commission, manager_user, finance_user):
        if terminal == "rejected":
            services.reject(pending_commission, reason="Erreur", actor=manager_user)
        else:
            services.approve(pending_commission, actor=manager_user)
            services.pay(pending_commission, actor=finance_user)

        with pytest.raises(InvalidTransition):
            services.approve(pending_commission.pk, actor=manager_user)
        with pytest.raises(InvalidTransition):
            services.reject(pending_commission.pk, reason="Encore", actor=manager_user)
        pending_commission.refresh_from_db()
        assert pending_commission.status == terminal

    def test_pay_rejected_is_invalid(self, pending_commission, manager_user, finance_user):
        services.reject(pending_commission, reason="Erreur", actor=manager_user)
        with pytest.raises(InvalidTransition):
            services.pay(pending_commission.pk, actor=finance_user)

    def test_approve_and_pay(self, pending_commission, admin_user):
        commission = services.approve_and_pay(pending_commission.pk, actor=admin_user)
        assert commission.status == SaleCommission.Status.PAID
        actions = set(commission.audit_logs.values_list("action", flat=True))
        assert {CommissionAuditLog.Action.APPROVED, CommissionAuditLog.Action.PAID} <= actions

    def test_approve_and_pay_twice_returns_already_paid(self, pending_commission, admin_user):
        services.approve_and_pay(pending_commission.pk, actor=admin_user)

        with pytest.raises(AlreadyPaid) as excinfo:
            services.approve_and_pay(pending_commission.pk, actor=admin_user)

        assert excinfo.value.commission.status == SaleCommission.Status.PAID
        assert pending_commission.audit_logs.filter(action=CommissionAuditLog.Action.PAID).count() == 1

    def test_approve_and_pay_on_approved_only_pays(self, pending_commission, manager_user, admin_user):
        services.approve(pending_commission, actor=manager_user)

        commission = services.approve_and_pay(pending_commission.pk, actor=admin_user)

        assert commission.status == SaleCommission.Status.PAID
        assert commission.approved_by == manager_user
        assert commission.audit_logs.filter(action=CommissionAuditLog.Action.APPROVED).count() == 1

    def test_many_stale_pay_calls_pay_once(self, pending_commission, manager_user, finance_user, admin_user):
        services.approve(pending_commission, actor=manager_user)
        stale = [SaleCommission.objects.get(pk=pending_commission.pk) for _ in range(8)]

        paid, lost = 0, 0
        for index, commission in enumerate(stale):
            actor = finance_user if index % 2 else admin_user
            try:
                services.pay(commission, actor=actor)
                paid += 1
            except ConcurrentModification:
                lost += 1

        assert paid == 1
        assert lost == len(stale) - 1
        pending_commission.refresh_from_db()
        assert pending_commission.status == SaleCommission.Status.PAID
        assert pending_commission.audit_logs.filter(action=CommissionAuditLog.Action.PAID).count() == 1


@pytest.mark.django_db
class TestCancelledSale:
    def test_pending_commission_cannot_be_approved(self, pending_commission, manager_user):
        cancel_sale(pending_commission.sale, reason="Client retracte", actor=manager_user)

        with pytest.raises(InvalidTransition):
            services.approve(pending_commission.pk, actor=manager_user)

        pending_commission.refresh_from_db()
        assert pending_commission.status == SaleCommission.Status.PENDING
        assert not pending_commission.audit_logs.filter(action=CommissionAuditLog.Action.APPROVED).exists()

    def test_approved_commission_cannot_be_paid(self, pending_commission, manager_user, finance_user):
        services.approve(pending_commission, actor=manager_user)
        cancel_sale(pending_commission.sale, reason="Client retracte", actor=manager_user)

        with pytest.raises(InvalidTransition):
            services.pay(pending_commission.pk, actor=finance_user)

        pending_commission.refresh_from_db()
        assert pending_commission.status == SaleCommission.Status.APPROVED
        assert pending_commission.paid is False

    def test_cas_refuses_cancelled_sale(self, pending_commission):
        Sale.objects.filter(pk=pending_commission.sale_id).update(status=Sale.Status.CANCELLED)

        with pytest.raises(ConcurrentModification):
            services._compare_and_set(
                pending_commission,
                SaleCommission.Status.PENDING,
                status=SaleCommission.Status.APPROVED,
            )
        pending_commission.refresh_from_db()
        assert pending_commission.status == SaleCommission.Status.PENDING

    def test_pending_commission_can_still_be_rejected(self, pending_commission, manager_user):
        cancel_sale(pending_commission.sale, reason="Client retracte", actor=manager_user)

        commission = services.reject(pending_commission.pk, reason="Vente annulee", actor=manager_user)

        assert commission.status == SaleCommission.Status.REJECTED


@pytest.mark.django_db
class TestAuthorization:
    def test_sales_role_cannot_approve(self, pending_commission, second_sales_user):
        with pytest.raises(NotAuthorized):
            services.approve(pending_commission, actor=second_sales_user)

    def test_finance_cannot_approve_but_can_pay(self, pending_commission, finance_user, manager_user):
        with pytest.raises(NotAuthorized):
            services.approve(pending_commission, actor=finance_user)
        services.approve(pending_commission, actor=manager_user)
        assert services.pay(pending_commission, actor=finance_user).paid is True

    def test_anonymous_actor(self, pending_commission):
        with pytest.raises(NotAuthorized):
            services.approve(pending_commission, actor=None)

    def test_self_approval_is_blocked(self, flat_rule, make_sale, manager_user):
        sale = make_sale(manager_user)
        commission = SaleCommission.objects.get(sale=sale)
        with pytest.raises(NotAuthorized):
            services.approve(commission, actor=manager_user)

    def test_self_approval_when_allowed(self, settings, flat_rule, make_sale, manager_user):
        settings.COMMISSION_ALLOW_SELF_APPROVAL = True
        sale = make_sale(manager_user)
        commission = SaleCommission.objects.get(sale=sale)
        assert services.approve(commission, actor=manager_user).status == SaleCommission.Status.APPROVED
