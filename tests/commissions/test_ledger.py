from decimal import Decimal

import pytest

from commissions import ledger, services
from commissions.exceptions import InvalidTransition, NotAuthorized, ValidationError
from commissions.models import CommissionAdjustment, SaleCommission


@pytest.mark.django_db
class TestAdjustmentLedger:
    def test_two_adjustments_sum(self, pending_commission, manager_user):
        ledger.adjust(pending_commission, Decimal("50.00"), "Bonus accessoires", manager_user)
        final = ledger.adjust(pending_commission, Decimal("-20.00"), "Frais de dossier", manager_user)

        assert final == Decimal("1030.00")
        pending_commission.refresh_from_db()
        assert pending_commission.manual_adjustment == Decimal("30.00")
        assert pending_commission.final_amount == Decimal("1030.00")

        history = list(ledger.ledger_history(pending_commission))
        assert [entry.delta_amount for entry in history] == [Decimal("50.00"), Decimal("-20.00")]
        assert ledger.verify_ledger(pending_commission).ok

    def test_adjust_updates_passed_instance(self, pending_commission, manager_user):
        ledger.adjust(pending_commission, "12.50", "Correction", manager_user)
        assert pending_commission.final_amount == Decimal("1012.50")

    @pytest.mark.parametrize("delta", [0, "0.00", "abc", "1.005", True, None])
    def test_invalid_delta(self, pending_commission, manager_user, delta):
        with pytest.raises(ValidationError):
            ledger.adjust(pending_commission, delta, "Justification", manager_user)
        assert not CommissionAdjustment.objects.exists()

    def test_justification_required(self, pending_commission, manager_user):
        with pytest.raises(ValidationError):
            ledger.adjust(pending_commission, Decimal("10"), "  ", manager_user)
        assert not CommissionAdjustment.objects.exists()

    @pytest.mark.parametrize("target", ["approved", "rejected", "paid"])
    def test_adjust_non_pending_is_invalid(self, target, pending_commission, manager_user, finance_user):
        if target == "rejected":
            services.reject(pending_commission, reason="Doublon", actor=manager_user)
        else:
            services.approve(pending_commission, actor=manager_user)
            if target == "paid":
                services.pay(pending_commission, actor=finance_user)

        with pytest.raises(InvalidTransition) as excinfo:
            ledger.adjust(pending_commission, Decimal("10.00"), "Trop tard", manager_user)

        assert excinfo.value.current_status == target
        pending_commission.refresh_from_db()
        assert pending_commission.status == target
        assert pending_commission.final_amount == Decimal("1000.00")
        assert pending_commission.manual_adjustment == Decimal("0.00")
        assert not CommissionAdjustment.objects.exists()

    def test_adjust_requires_approver_role(self, pending_commission, finance_user):
        with pytest.raises(NotAuthorized):
            ledger.adjust(pending_commission, Decimal("10.00"), "Correction", finance_user)

    def test_verify_ledger_detects_drift(self, pending_commission, manager_user):
        ledger.adjust(pending_commission, Decimal("40.00"), "Correction", manager_user)
        SaleCommission.objects.filter(pk=pending_commission.pk).update(manual_adjustment=Decimal("0.00"))

        check = ledger.verify_ledger(pending_commission.pk)
        assert not check.ok
        assert len(check.errors) == 2

    def test_final_amount_is_recomputed_on_save(self, pending_commission):
        pending_commission.final_amount = Decimal("999999.00")
        pending_commission.save()
        pending_commission.refresh_from_db()
        assert pending_commission.final_amount == Decimal("1000.00")
