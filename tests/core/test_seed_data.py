from io import StringIO

import pytest
from django.core.management import call_command

from accounts.models import User
from commissions.models import CommissionRule, SaleCommission
from goals.models import SalespersonGoal
from sales.models import Sale


@pytest.mark.django_db
def test_seed_data_creates_demo_dataset():
    out = StringIO()
    call_command("seed_data", stdout=out)

    assert User.objects.filter(email__endswith="@concession.cm").count() == 5
    assert CommissionRule.objects.active().count() == 3
    assert Sale.objects.filter(status=Sale.Status.COMPLETED).count() == 4
    assert SaleCommission.objects.count() == 4
    assert SalespersonGoal.objects.count() == 2
    assert "Seed complete" in out.getvalue()


@pytest.mark.django_db
def test_seed_data_is_rerunnable():
    call_command("seed_data", stdout=StringIO())
    call_command("seed_data", stdout=StringIO())

    assert Sale.objects.count() == 4
    assert CommissionRule.objects.count() == 3


@pytest.mark.django_db
def test_seed_data_flush():
    call_command("seed_data", stdout=StringIO())
    call_command("seed_data", "--flush", stdout=StringIO())

    assert Sale.objects.count() == 4
    assert SaleCommission.objects.count() == 4
