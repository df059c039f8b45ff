from decimal import Decimal

import pytest

from commissions import services
from commissions.exceptions import ValidationError
from commissions.models import CommissionRule, CommissionSplit, SaleCommission
from sales.services import complete_sale


@pytest.mark.django_db
class TestCommissionSplits:
    def test_split_amounts_sum_to_base(self, make_sale, sales_user, second_sales_user, manager_user):
        CommissionRule.objects.create(
            name="Forfait",
            commission_type=CommissionRule.CommissionType.FLAT,
            parameters={"amount": "1000.00"},
        )
        sale = make_sale(sales_user, complete=False)
        services.set_commission_splits(sale, [
            (sales_user, Decimal("33.33")),
            (second_sales_user, Decimal("33.33")),
            (manager_user, Decimal("33.34")),
        ])

        complete_sale(sale)

        commissions = SaleCommission.objects.filter(sale=sale)
        assert commissions.count() == 3
        amounts = {c.user_id: c.calculated_amount for c in commissions}
        assert sum(amounts.values()) == Decimal("1000.00")
        # 333.30 + 333.30 + 333.40 = 1000.00
        assert amounts[manager_user.pk] == Decimal("333.40")

    def test_rounding_remainder_goes_to_first_participant(self, make_sale, sales_user, second_sales_user):
        CommissionRule.objects.create(
            name="Forfait",
            commission_type=CommissionRule.CommissionType.FLAT,
            parameters={"amount": "100.01"},
        )
        sale = make_sale(sales_user, complete=False)
        services.set_commission_splits(sale, [
            (sales_user, 50),
            (second_sales_user, 50),
        ])
        complete_sale(sale)

        first = SaleCommission.objects.get(sale=sale, user=sales_user)
        second = SaleCommission.objects.get(sale=sale, user=second_sales_user)
        assert first.calculated_amount + second.calculated_amount == Decimal("100.01")
        assert first.split_percentage == Decimal("50")

    @pytest.mark.parametrize("shares", [
        [],
        [("a", 60), ("b", 30)],
        [("a", 100), ("a", 0)],
        [("a", 120), ("b", -20)],
    ])
    def test_invalid_shares(self, make_sale, sales_user, second_sales_user, shares):
        users = {"a": sales_user, "b": second_sales_user}
        sale = make_sale(sales_user, complete=False)
        with pytest.raises(ValidationError):
            services.set_commission_splits(sale, [(users[key], pct) for key, pct in shares])
        assert not CommissionSplit.objects.filter(sale=sale).exists()

    def test_splits_locked_once_commissions_exist(self, pending_commission, sales_user, second_sales_user):
        with pytest.raises(ValidationError):
            services.set_commission_splits(pending_commission.sale, [
                (sales_user, 50),
                (second_sales_user, 50),
            ])

    def test_create_is_idempotent(self, pending_commission):
        created = services.create_commissions_for_sale(pending_commission.sale)
        assert created == []
        assert SaleCommission.objects.filter(sale=pending_commission.sale).count() == 1

    def test_rejected_participant_gets_a_new_commission(self, pending_commission, manager_user):
        services.reject(pending_commission, reason="Mauvaise regle", actor=manager_user)
        created = services.create_commissions_for_sale(pending_commission.sale)
        assert len(created) == 1
        assert created[0].status == SaleCommission.Status.PENDING

    def test_payment_due_date(self, pending_commission, settings):
        expected = pending_commission.sale.sale_date.toordinal() + settings.COMMISSION_PAYMENT_DUE_DAYS
        assert pending_commission.payment_due_date.toordinal() == expected
