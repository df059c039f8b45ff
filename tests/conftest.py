import datetime
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from accounts.models import User
from commissions.models import CommissionRule, SaleCommission
from sales.models import Sale
from sales.services import complete_sale, create_sale


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email="admin@test.com",
        password="testpass123",
        first_name="Admin",
        last_name="User",
        role=User.Role.ADMIN,
    )


@pytest.fixture
def manager_user(db):
    return User.objects.create_user(
        email="manager@test.com",
        password="testpass123",
        first_name="Manager",
        last_name="User",
        role=User.Role.MANAGER,
    )


@pytest.fixture
def finance_user(db):
    return User.objects.create_user(
        email="finance@test.com",
        password="testpass123",
        first_name="Finance",
        last_name="User",
        role=User.Role.FINANCE,
    )


@pytest.fixture
def sales_user(db):
    return User.objects.create_user(
        email="sales@test.com",
        password="testpass123",
        first_name="Sales",
        last_name="User",
        role=User.Role.SALES,
    )


@pytest.fixture
def second_sales_user(db):
    return User.objects.create_user(
        email="sales2@test.com",
        password="testpass123",
        first_name="Second",
        last_name="Seller",
        role=User.Role.SALES,
    )


@pytest.fixture
def flat_rule(db):
    """Default rule: 1000.00 per sale, every category and price."""
    return CommissionRule.objects.create(
        name="Forfait standard",
        commission_type=CommissionRule.CommissionType.FLAT,
        parameters={"amount": "1000.00"},
    )


@pytest.fixture
def make_sale(db):
    """Factory for sales; completed by default, which triggers commission creation."""

    def _make_sale(
        salesperson,
        sale_price=Decimal("10000.00"),
        net_profit=Decimal("2000.00"),
        vehicle_category=Sale.VehicleCategory.SEDAN,
        sale_date=None,
        complete=True,
    ):
        sale = create_sale(
            salesperson=salesperson,
            sale_price=sale_price,
            net_profit=net_profit,
            vehicle_category=vehicle_category,
            sale_date=sale_date or datetime.date(2026, 3, 15),
        )
        if complete:
            sale = complete_sale(sale)
        return sale

    return _make_sale


@pytest.fixture
def pending_commission(flat_rule, make_sale, sales_user):
    sale = make_sale(sales_user)
    return SaleCommission.objects.get(sale=sale)


@pytest.fixture
def api_client():
    return APIClient()
