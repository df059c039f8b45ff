import datetime
from decimal import Decimal

import pytest

from commissions import rules as rule_engine
from commissions.exceptions import NoApplicableRule, RuleConfigurationError, ValidationError
from commissions.models import CommissionRule


def _rule(pk, commission_type, parameters, **kwargs):
    return CommissionRule(
        id=pk,
        name=f"rule-{pk}",
        commission_type=commission_type,
        parameters=parameters,
        **kwargs,
    )


def _facts(sale_price="10000.00", net_profit="2000.00", category="SEDAN", status="COMPLETED", lead_source=""):
    return rule_engine.SaleFacts(
        sale_id="s-1",
        salesperson_id="u-1",
        sale_price=Decimal(sale_price),
        net_profit=Decimal(net_profit),
        vehicle_category=category,
        sale_date=datetime.date(2026, 3, 1),
        status=status,
        lead_source=lead_source,
    )


class TestParameters:
    def test_flat_amount(self):
        params = rule_engine.parse_parameters("flat", {"amount": "500"})
        assert rule_engine.compute_amount(params, _facts()) == Decimal("500.00")

    def test_percent_of_sale_rounds_half_up(self):
        params = rule_engine.parse_parameters("percent_of_sale", {"rate": "2.5"})
        facts = _facts(sale_price="10000.10")
        # 10000.10 * 2.5% = 250.0025
        assert rule_engine.compute_amount(params, facts) == Decimal("250.00")

        facts = _facts(sale_price="0.30")
        # 0.30 * 2.5% = 0.0075
        assert rule_engine.compute_amount(params, facts) == Decimal("0.01")

    def test_percent_of_profit(self):
        params = rule_engine.parse_parameters("percent_of_profit", {"rate": "10"})
        assert rule_engine.compute_amount(params, _facts(net_profit="2000")) == Decimal("200.00")

    def test_tiered_is_marginal(self):
        params = rule_engine.parse_parameters("tiered", {
            "basis": "profit",
            "bands": [
                {"lower": "0", "upper": "1000", "rate": "5"},
                {"lower": "1000", "upper": None, "rate": "10"},
            ],
        })
        # 1000 * 5% + 1000 * 10%
        assert rule_engine.compute_amount(params, _facts(net_profit="2000")) == Decimal("150.00")
        assert rule_engine.compute_amount(params, _facts(net_profit="500")) == Decimal("25.00")

    def test_tiered_defaults_to_profit_basis(self):
        params = rule_engine.parse_parameters("tiered", {
            "bands": [{"lower": "0", "upper": None, "rate": "10"}],
        })
        assert params.basis == rule_engine.BASIS_PROFIT

    def test_caps_are_applied(self):
        params = rule_engine.parse_parameters("percent_of_sale", {
            "rate": "10", "minimum": "300", "maximum": "800",
        })
        assert rule_engine.compute_amount(params, _facts(sale_price="1000")) == Decimal("300.00")
        assert rule_engine.compute_amount(params, _facts(sale_price="100000")) == Decimal("800.00")

    def test_negative_profit_gives_validation_error(self):
        params = rule_engine.parse_parameters("percent_of_profit", {"rate": "10"})
        with pytest.raises(ValidationError):
            rule_engine.compute_amount(params, _facts(net_profit="-500"))

    def test_mixed_is_profit_share_plus_fixed(self):
        params = rule_engine.parse_parameters("mixed", {"rate": "5", "amount": "200"})
        assert isinstance(params, rule_engine.MixedParameters)
        # 2000 * 5% + 200
        assert rule_engine.compute_amount(params, _facts(net_profit="2000")) == Decimal("300.00")

    def test_lead_source_bonus(self):
        params = rule_engine.parse_parameters("flat", {
            "amount": "500", "lead_source_bonus": {"REFERRAL": "150"},
        })
        assert rule_engine.compute_amount(params, _facts(lead_source="REFERRAL")) == Decimal("650.00")
        assert rule_engine.compute_amount(params, _facts(lead_source="WEBSITE")) == Decimal("500.00")
        assert rule_engine.compute_amount(params, _facts()) == Decimal("500.00")

    def test_lead_source_bonus_stays_under_maximum(self):
        params = rule_engine.parse_parameters("percent_of_sale", {
            "rate": "10", "maximum": "800", "lead_source_bonus": {"REFERRAL": "500"},
        })
        assert rule_engine.compute_amount(params, _facts(sale_price="5000", lead_source="REFERRAL")) == Decimal("800.00")

    def test_amount_beyond_storage_limit(self):
        params = rule_engine.parse_parameters("mixed", {"rate": "100", "amount": str(rule_engine.MAX_AMOUNT)})
        with pytest.raises(ValidationError):
            rule_engine.compute_amount(params, _facts(net_profit="1"))

    @pytest.mark.parametrize("commission_type,raw", [
        ("bonus", {"amount": "10"}),
        ("flat", {}),
        ("flat", {"amount": "-1"}),
        ("flat", {"amount": "10", "rate": "5"}),
        ("percent_of_sale", {"rate": "150"}),
        ("percent_of_sale", {"rate": "abc"}),
        ("percent_of_sale", {"rate": "5", "minimum": "10", "maximum": "5"}),
        ("tiered", {"bands": []}),
        ("tiered", {"bands": [{"lower": "100", "upper": None, "rate": "5"}]}),
        ("tiered", {"bands": [
            {"lower": "0", "upper": "1000", "rate": "5"},
            {"lower": "900", "upper": None, "rate": "10"},
        ]}),
        ("tiered", {"bands": [
            {"lower": "0", "upper": None, "rate": "5"},
            {"lower": "1000", "upper": None, "rate": "10"},
        ]}),
        ("tiered", {"basis": "revenue", "bands": [{"lower": "0", "upper": None, "rate": "5"}]}),
        ("flat", ["amount", "10"]),
        ("flat", {"amount": "1000000000000"}),
        ("percent_of_sale", {"rate": "5", "maximum": "1E+13"}),
        ("mixed", {"rate": "5"}),
        ("mixed", {"amount": "100"}),
        ("flat", {"amount": "1", "lead_source_bonus": {"REFERRAL": "-5"}}),
        ("flat", {"amount": "1", "lead_source_bonus": ["REFERRAL"]}),
    ])
    def test_invalid_parameters_are_rejected(self, commission_type, raw):
        with pytest.raises(RuleConfigurationError):
            rule_engine.parse_parameters(commission_type, raw)


class TestResolution:
    def test_specificity_ranks(self):
        default = _rule(1, "flat", {"amount": "1"})
        ranged = _rule(2, "flat", {"amount": "1"}, min_sale_price=Decimal("0"))
        category = _rule(3, "flat", {"amount": "1"}, vehicle_category="SUV")
        both = _rule(4, "flat", {"amount": "1"}, vehicle_category="SUV", max_sale_price=Decimal("5"))
        assert [rule_engine.specificity(r) for r in (default, ranged, category, both)] == [0, 1, 2, 3]

    def test_most_specific_rule_wins(self):
        rules = [
            _rule(1, "flat", {"amount": "100"}),
            _rule(2, "flat", {"amount": "200"}, min_sale_price=Decimal("5000")),
            _rule(3, "flat", {"amount": "300"}, vehicle_category="SEDAN"),
            _rule(4, "flat", {"amount": "400"}, vehicle_category="SUV", min_sale_price=Decimal("0")),
        ]
        resolution = rule_engine.resolve(_facts(category="SEDAN"), rules)
        assert resolution.rule.id == 3
        assert resolution.calculated_amount == Decimal("300.00")
        assert resolution.specificity == rule_engine.SPECIFICITY_CATEGORY

    def test_tie_goes_to_lowest_id(self):
        rules = [
            _rule(7, "flat", {"amount": "700"}, vehicle_category="SEDAN"),
            _rule(5, "flat", {"amount": "500"}, vehicle_category="SEDAN"),
        ]
        assert rule_engine.resolve(_facts(), rules).rule.id == 5

    def test_price_bounds_are_inclusive(self):
        rule = _rule(1, "flat", {"amount": "1"}, min_sale_price=Decimal("10000"), max_sale_price=Decimal("20000"))
        assert rule_engine.matches(rule, _facts(sale_price="10000"))
        assert rule_engine.matches(rule, _facts(sale_price="20000"))
        assert not rule_engine.matches(rule, _facts(sale_price="20000.01"))

    def test_inactive_rules_never_match(self):
        rule = _rule(1, "flat", {"amount": "1"}, is_active=False)
        with pytest.raises(NoApplicableRule):
            rule_engine.resolve(_facts(), [rule])

    def test_no_rule(self):
        rules = [_rule(1, "flat", {"amount": "1"}, vehicle_category="SUV")]
        with pytest.raises(NoApplicableRule):
            rule_engine.resolve(_facts(category="SEDAN"), rules)

    def test_sale_must_be_completed(self):
        rules = [_rule(1, "flat", {"amount": "1"})]
        with pytest.raises(ValidationError):
            rule_engine.resolve(_facts(status="DRAFT"), rules)

    def test_simulate(self):
        rules = [_rule(1, "percent_of_sale", {"rate": "1"})]
        resolution = rule_engine.simulate("25000", "3000", rules, vehicle_category="SUV")
        assert resolution.calculated_amount == Decimal("250.00")

    def test_min_profit_margin(self):
        rule = _rule(1, "flat", {"amount": "1"}, min_profit_margin=Decimal("15"))
        assert rule_engine.matches(rule, _facts(sale_price="10000", net_profit="2000"))
        assert rule_engine.matches(rule, _facts(sale_price="10000", net_profit="1500"))
        assert not rule_engine.matches(rule, _facts(sale_price="10000", net_profit="1499.99"))
        assert not rule_engine.matches(rule, _facts(sale_price="0", net_profit="0"))

    def test_low_margin_falls_back_to_default_rule(self):
        rules = [
            _rule(1, "flat", {"amount": "100"}),
            _rule(2, "flat", {"amount": "300"}, vehicle_category="SEDAN", min_profit_margin=Decimal("15")),
        ]
        assert rule_engine.resolve(_facts(net_profit="2000"), rules).rule.id == 2
        assert rule_engine.resolve(_facts(net_profit="1000"), rules).rule.id == 1

    def test_simulate_with_lead_source(self):
        rules = [_rule(1, "flat", {"amount": "100", "lead_source_bonus": {"WHATSAPP": "25"}})]
        resolution = rule_engine.simulate("25000", "3000", rules, lead_source="WHATSAPP")
        assert resolution.calculated_amount == Decimal("125.00")


class TestSaleFacts:
    def test_from_payload(self):
        facts = rule_engine.SaleFacts.from_payload({
            "sale_id": "abc",
            "salesperson_id": "u-1",
            "sale_price": "15000",
            "net_profit": 1200,
            "vehicle_category": "SUV",
            "sale_date": "2026-02-01",
        })
        assert facts.sale_price == Decimal("15000")
        assert facts.net_profit == Decimal("1200")
        assert facts.sale_date == datetime.date(2026, 2, 1)
        assert facts.status == "COMPLETED"

    def test_from_payload_missing_fields(self):
        with pytest.raises(ValidationError):
            rule_engine.SaleFacts.from_payload({"sale_id": "abc"})

    def test_from_payload_bad_date(self):
        with pytest.raises(ValidationError):
            rule_engine.SaleFacts.from_payload({
                "sale_id": "abc", "salesperson_id": "u", "sale_price": "1", "sale_date": "01/02/2026",
            })

    def test_from_payload_lead_source_and_margin(self):
        facts = rule_engine.SaleFacts.from_payload({
            "sale_id": "abc",
            "salesperson_id": "u-1",
            "sale_price": "20000",
            "net_profit": "3000",
            "lead_source": "REFERRAL",
        })
        assert facts.lead_source == "REFERRAL"
        assert facts.profit_margin == Decimal("15")
