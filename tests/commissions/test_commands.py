import json
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from commissions import ledger
from commissions.models import CommissionRule, SaleCommission

RULES = [
    {
        "name": "Forfait standard",
        "commission_type": "flat",
        "parameters": {"amount": "500.00"},
    },
    {
        "name": "SUV premium",
        "commission_type": "tiered",
        "parameters": {
            "basis": "profit",
            "bands": [
                {"lower": "0", "upper": "5000", "rate": "5"},
                {"lower": "5000", "upper": None, "rate": "10"},
            ],
        },
        "vehicle_category": "SUV",
        "min_sale_price": "20000",
    },
]


def _write(tmp_path, payload):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


@pytest.mark.django_db
class TestLoadCommissionRules:
    def test_creates_rules(self, tmp_path):
        out = StringIO()
        call_command("load_commission_rules", _write(tmp_path, {"rules": RULES}), stdout=out)

        assert CommissionRule.objects.active().count() == 2
        suv = CommissionRule.objects.get(name="SUV premium")
        assert suv.min_sale_price == Decimal("20000")
        assert suv.specificity == 3
        assert "created: 2" in out.getvalue()

    def test_dry_run_writes_nothing(self, tmp_path):
        out = StringIO()
        call_command("load_commission_rules", _write(tmp_path, RULES), "--dry-run", stdout=out)
        assert not CommissionRule.objects.exists()
        assert "[dry-run]" in out.getvalue()

    def test_invalid_rule_is_rejected(self, tmp_path):
        bad = [{"name": "Casse", "commission_type": "percent_of_sale", "parameters": {"rate": "250"}}]
        with pytest.raises(CommandError):
            call_command("load_commission_rules", _write(tmp_path, bad), stdout=StringIO())
        assert not CommissionRule.objects.exists()

    def test_unreferenced_rule_updated_in_place(self, tmp_path):
        path = _write(tmp_path, RULES)
        call_command("load_commission_rules", path, stdout=StringIO())

        changed = [dict(RULES[0], parameters={"amount": "600.00"})]
        call_command("load_commission_rules", _write(tmp_path, changed), stdout=StringIO())

        rule = CommissionRule.objects.get(name="Forfait standard")
        assert rule.version == 1
        assert rule.parameters == {"amount": "600.00"}

    def test_referenced_rule_gets_new_version(self, tmp_path, make_sale, sales_user):
        call_command("load_commission_rules", _write(tmp_path, RULES[:1]), stdout=StringIO())
        original = CommissionRule.objects.get(name="Forfait standard")
        commission = SaleCommission.objects.get(sale=make_sale(sales_user))
        assert commission.commission_rule == original

        changed = [dict(RULES[0], parameters={"amount": "600.00"})]
        call_command("load_commission_rules", _write(tmp_path, changed), stdout=StringIO())

        original.refresh_from_db()
        successor = CommissionRule.objects.get(name="Forfait standard", is_active=True)
        assert original.is_active is False
        assert successor.version == 2
        assert successor.supersedes == original
        commission.refresh_from_db()
        assert commission.calculated_amount == Decimal("500.00")

    def test_deactivate_missing(self, tmp_path):
        call_command("load_commission_rules", _write(tmp_path, RULES), stdout=StringIO())
        call_command(
            "load_commission_rules", _write(tmp_path, RULES[:1]), "--deactivate-missing", stdout=StringIO(),
        )
        assert list(CommissionRule.objects.active().values_list("name", flat=True)) == ["Forfait standard"]

    def test_missing_file(self):
        with pytest.raises(CommandError):
            call_command("load_commission_rules", "/nonexistent/rules.json", stdout=StringIO())


@pytest.mark.django_db
class TestCheckCommissionLedger:
    def test_consistent_ledger(self, pending_commission, manager_user):
        ledger.adjust(pending_commission, Decimal("25.00"), "Correction", manager_user)
        out = StringIO()
        call_command("check_commission_ledger", stdout=out, stderr=StringIO())
        assert "1 commission(s) checked" in out.getvalue()

    def test_broken_ledger(self, pending_commission, manager_user):
        ledger.adjust(pending_commission, Decimal("25.00"), "Correction", manager_user)
        SaleCommission.objects.filter(pk=pending_commission.pk).update(manual_adjustment=Decimal("0"))
        with pytest.raises(CommandError):
            call_command("check_commission_ledger", stdout=StringIO(), stderr=StringIO())
