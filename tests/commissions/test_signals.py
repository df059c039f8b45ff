import logging
from decimal import Decimal

import pytest

from commissions import services
from commissions.models import CommissionRule, SaleCommission
from sales.models import Sale
from sales.services import cancel_sale, complete_sale


@pytest.mark.django_db
class TestSaleCompletionSignal:
    def test_draft_sale_has_no_commission(self, flat_rule, make_sale, sales_user):
        sale = make_sale(sales_user, complete=False)
        assert not SaleCommission.objects.filter(sale=sale).exists()

    def test_completion_creates_one_commission(self, flat_rule, make_sale, sales_user):
        sale = make_sale(sales_user)
        assert SaleCommission.objects.filter(sale=sale).count() == 1

    def test_resaving_completed_sale_does_not_duplicate(self, flat_rule, make_sale, sales_user):
        sale = make_sale(sales_user)
        sale.notes = "Carte grise remise"
        sale.save()
        assert SaleCommission.objects.filter(sale=sale).count() == 1

    def test_most_specific_rule_is_used(self, flat_rule, make_sale, sales_user):
        suv_rule = CommissionRule.objects.create(
            name="SUV",
            commission_type=CommissionRule.CommissionType.PERCENT_OF_PROFIT,
            parameters={"rate": "10"},
            vehicle_category=Sale.VehicleCategory.SUV,
        )
        sale = make_sale(sales_user, vehicle_category=Sale.VehicleCategory.SUV, net_profit=Decimal("4000"))
        commission = SaleCommission.objects.get(sale=sale)
        assert commission.commission_rule == suv_rule
        assert commission.calculated_amount == Decimal("400.00")

    def test_missing_rule_keeps_the_sale(self, make_sale, sales_user, caplog):
        with caplog.at_level(logging.WARNING, logger="dealership"):
            sale = make_sale(sales_user)

        sale.refresh_from_db()
        assert sale.status == Sale.Status.COMPLETED
        assert not SaleCommission.objects.filter(sale=sale).exists()
        assert "no_applicable_rule" in caplog.text

    def test_negative_amount_keeps_the_sale(self, make_sale, sales_user):
        CommissionRule.objects.create(
            name="Marge",
            commission_type=CommissionRule.CommissionType.PERCENT_OF_PROFIT,
            parameters={"rate": "5"},
        )
        sale = make_sale(sales_user, net_profit=Decimal("-1500"))
        assert Sale.objects.get(pk=sale.pk).status == Sale.Status.COMPLETED
        assert not SaleCommission.objects.filter(sale=sale).exists()

    def test_cancelled_sale_leaves_commissions_untouched(
        self, pending_commission, manager_user, finance_user, caplog,
    ):
        services.approve_and_pay(pending_commission, actor=manager_user)

        with caplog.at_level(logging.WARNING, logger="dealership"):
            cancel_sale(pending_commission.sale, reason="Client retracte", actor=manager_user)

        pending_commission.refresh_from_db()
        assert pending_commission.status == SaleCommission.Status.PAID
        assert "compensation required" in caplog.text

    def test_cancelled_sale_reports_pending_commissions(self, pending_commission, manager_user, caplog):
        with caplog.at_level(logging.WARNING, logger="dealership"):
            cancel_sale(pending_commission.sale, reason="Client retracte", actor=manager_user)

        pending_commission.refresh_from_db()
        assert pending_commission.status == SaleCommission.Status.PENDING
        assert "1 pending commission(s)" in caplog.text

    def test_oversized_rule_amount_keeps_the_sale(self, make_sale, sales_user, caplog):
        CommissionRule.objects.create(
            name="Forfait errone",
            commission_type=CommissionRule.CommissionType.FLAT,
            parameters={"amount": "100000000000000"},
        )
        with caplog.at_level(logging.WARNING, logger="dealership"):
            sale = make_sale(sales_user)

        assert Sale.objects.get(pk=sale.pk).status == Sale.Status.COMPLETED
        assert not SaleCommission.objects.filter(sale=sale).exists()
        assert "rule_configuration_error" in caplog.text

    def test_complete_twice_is_refused(self, make_sale, sales_user):
        sale = make_sale(sales_user)
        with pytest.raises(ValueError):
            complete_sale(sale)
