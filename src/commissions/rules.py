"""Commission rule resolution.

Pure functions: given the facts of a completed sale and the active rules,
pick the single most specific rule and compute the commission amount.
Nothing here touches the database; callers pass the rules in
(``CommissionRule.objects.active()``).

Rule parameters are stored as JSON and parsed into one of four frozen
parameter types, keyed by the rule's ``commission_type``::

    flat               {"amount": "500.00"}
    percent_of_sale    {"rate": "2.5"}
    percent_of_profit  {"rate": "10"}
    mixed              {"rate": "5", "amount": "200.00"}   # % of profit + fixed
    tiered             {"basis": "profit", "bands": [
                            {"lower": "0", "upper": "5000", "rate": "5"},
                            {"lower": "5000", "upper": null, "rate": "10"}]}

Every type also accepts optional ``minimum`` / ``maximum`` caps and a
``lead_source_bonus`` map (``{"REFERRAL": "150.00"}``) added to the raw
amount before the caps.  Rates are percentages.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from commissions.exceptions import (
    NoApplicableRule,
    RuleConfigurationError,
    ValidationError,
)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

FLAT = "flat"
PERCENT_OF_SALE = "percent_of_sale"
PERCENT_OF_PROFIT = "percent_of_profit"
TIERED = "tiered"
MIXED = "mixed"
COMMISSION_TYPES = (FLAT, PERCENT_OF_SALE, PERCENT_OF_PROFIT, TIERED, MIXED)

# Largest value a DecimalField(max_digits=14, decimal_places=2) can hold.
MAX_AMOUNT = Decimal("999999999999.99")

BASIS_SALE_PRICE = "sale_price"
BASIS_PROFIT = "profit"

SALE_COMPLETED = "COMPLETED"

# Specificity ranks, highest wins.
SPECIFICITY_CATEGORY_AND_RANGE = 3
SPECIFICITY_CATEGORY = 2
SPECIFICITY_RANGE = 1
SPECIFICITY_DEFAULT = 0


def quantize(amount: Decimal) -> Decimal:
    """Round a monetary amount to the cent, half up."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value, field: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise RuleConfigurationError(f"Champ '{field}' manquant ou invalide.")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise RuleConfigurationError(f"Champ '{field}' n'est pas un montant valide: {value!r}.")
    if not result.is_finite():
        raise RuleConfigurationError(f"Champ '{field}' n'est pas un montant valide: {value!r}.")
    return result


def _non_negative(value, field: str) -> Decimal:
    result = _to_decimal(value, field)
    if result < 0:
        raise RuleConfigurationError(f"Champ '{field}' doit etre positif ou nul.")
    return result


def _amount(value, field: str) -> Decimal:
    result = _non_negative(value, field)
    if result > MAX_AMOUNT:
        raise RuleConfigurationError(f"Champ '{field}' depasse le montant maximal ({MAX_AMOUNT}).")
    return result


def _rate(value, field: str = "rate") -> Decimal:
    result = _non_negative(value, field)
    if result > HUNDRED:
        raise RuleConfigurationError(f"Champ '{field}' doit etre compris entre 0 et 100.")
    return result


# ---------------------------------------------------------------------------
# Sale facts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SaleFacts:
    """The slice of a sale the resolver needs."""

    sale_id: object
    salesperson_id: object
    sale_price: Decimal
    net_profit: Decimal
    vehicle_category: str = ""
    sale_date: Optional[datetime.date] = None
    status: str = SALE_COMPLETED
    lead_source: str = ""

    @property
    def profit_margin(self) -> Optional[Decimal]:
        """Net profit as a percentage of the sale price; None for a free sale."""
        if not self.sale_price:
            return None
        return self.net_profit / self.sale_price * HUNDRED

    @classmethod
    def from_sale(cls, sale) -> "SaleFacts":
        return cls(
            sale_id=sale.pk,
            salesperson_id=sale.salesperson_id,
            sale_price=Decimal(sale.sale_price),
            net_profit=Decimal(sale.net_profit),
            vehicle_category=sale.vehicle_category or "",
            sale_date=sale.sale_date,
            status=sale.status,
            lead_source=sale.lead_source or "",
        )

    @classmethod
    def from_payload(cls, payload: dict) -> "SaleFacts":
        """Build facts from a sale-completion event payload.

        Expected keys: ``sale_id``, ``salesperson_id``, ``sale_price``,
        ``net_profit``, ``vehicle_category``, ``sale_date`` (ISO date) and
        optionally ``lead_source`` and ``status`` (defaults to COMPLETED).
        """
        missing = [
            key for key in ("sale_id", "salesperson_id", "sale_price")
            if payload.get(key) in (None, "")
        ]
        if missing:
            raise ValidationError(
                "Champs manquants dans l'evenement de vente: " + ", ".join(missing) + ".",
            )
        try:
            sale_price = Decimal(str(payload["sale_price"]))
            net_profit = Decimal(str(payload.get("net_profit") or "0"))
        except (InvalidOperation, ValueError):
            raise ValidationError("Montants de vente invalides.")

        sale_date = payload.get("sale_date")
        if isinstance(sale_date, str):
            try:
                sale_date = datetime.date.fromisoformat(sale_date)
            except ValueError:
                raise ValidationError(f"Date de vente invalide: {sale_date!r}.")

        return cls(
            sale_id=payload["sale_id"],
            salesperson_id=payload["salesperson_id"],
            sale_price=sale_price,
            net_profit=net_profit,
            vehicle_category=payload.get("vehicle_category") or "",
            sale_date=sale_date,
            status=payload.get("status") or SALE_COMPLETED,
            lead_source=payload.get("lead_source") or "",
        )


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Caps:
    minimum: Optional[Decimal] = None
    maximum: Optional[Decimal] = None

    def apply(self, amount: Decimal) -> Decimal:
        if self.minimum is not None and amount < self.minimum:
            amount = self.minimum
        if self.maximum is not None and amount > self.maximum:
            amount = self.maximum
        return amount


@dataclass(frozen=True)
class LeadSourceBonus:
    """Fixed bonus per lead source, stored as sorted ``(source, amount)`` pairs."""

    amounts: tuple = ()

    def for_source(self, lead_source: str) -> Decimal:
        for source, amount in self.amounts:
            if source == lead_source:
                return amount
        return Decimal("0")


@dataclass(frozen=True)
class FlatParameters:
    amount: Decimal
    caps: Caps = Caps()
    bonus: LeadSourceBonus = LeadSourceBonus()

    def compute(self, facts: SaleFacts) -> Decimal:
        return self.amount


@dataclass(frozen=True)
class PercentParameters:
    rate: Decimal
    basis: str = BASIS_SALE_PRICE
    caps: Caps = Caps()
    bonus: LeadSourceBonus = LeadSourceBonus()

    def compute(self, facts: SaleFacts) -> Decimal:
        base = facts.net_profit if self.basis == BASIS_PROFIT else facts.sale_price
        return base * self.rate / HUNDRED


@dataclass(frozen=True)
class MixedParameters:
    """Percentage of the net profit plus a fixed amount."""

    rate: Decimal
    amount: Decimal
    caps: Caps = Caps()
    bonus: LeadSourceBonus = LeadSourceBonus()

    def compute(self, facts: SaleFacts) -> Decimal:
        return facts.net_profit * self.rate / HUNDRED + self.amount


@dataclass(frozen=True)
class Band:
    lower: Decimal
    upper: Optional[Decimal]
    rate: Decimal

    def portion(self, base: Decimal) -> Decimal:
        """Part of ``base`` falling inside ``[lower, upper)``."""
        top = base if self.upper is None else min(base, self.upper)
        return max(Decimal("0"), top - self.lower)


@dataclass(frozen=True)
class TieredParameters:
    basis: str
    bands: tuple
    caps: Caps = Caps()
    bonus: LeadSourceBonus = LeadSourceBonus()

    def compute(self, facts: SaleFacts) -> Decimal:
        base = facts.net_profit if self.basis == BASIS_PROFIT else facts.sale_price
        total = Decimal("0")
        for band in self.bands:
            total += band.portion(base) * band.rate / HUNDRED
        return total


RuleParameters = Union[FlatParameters, PercentParameters, MixedParameters, TieredParameters]

_ALLOWED_KEYS = {
    FLAT: {"amount"},
    PERCENT_OF_SALE: {"rate"},
    PERCENT_OF_PROFIT: {"rate"},
    MIXED: {"rate", "amount"},
    TIERED: {"basis", "bands"},
}
_COMMON_KEYS = {"minimum", "maximum", "lead_source_bonus"}


def _parse_caps(raw: dict) -> Caps:
    minimum = raw.get("minimum")
    maximum = raw.get("maximum")
    minimum = None if minimum is None else _amount(minimum, "minimum")
    maximum = None if maximum is None else _amount(maximum, "maximum")
    if minimum is not None and maximum is not None and minimum > maximum:
        raise RuleConfigurationError("Le minimum ne peut pas depasser le maximum.")
    return Caps(minimum=minimum, maximum=maximum)


def _parse_bonus(raw: dict) -> LeadSourceBonus:
    bonuses = raw.get("lead_source_bonus") or {}
    if not isinstance(bonuses, dict):
        raise RuleConfigurationError("'lead_source_bonus' doit etre un objet {source: montant}.")
    amounts = []
    for source, amount in sorted(bonuses.items()):
        if not isinstance(source, str) or not source.strip():
            raise RuleConfigurationError("Source de prospect invalide dans 'lead_source_bonus'.")
        amounts.append((source, _amount(amount, f"lead_source_bonus.{source}")))
    return LeadSourceBonus(amounts=tuple(amounts))


def _parse_bands(raw_bands) -> tuple:
    if not isinstance(raw_bands, list) or not raw_bands:
        raise RuleConfigurationError("Une regle par paliers doit definir au moins un palier.")

    bands = []
    expected_lower = Decimal("0")
    for index, raw in enumerate(raw_bands):
        if not isinstance(raw, dict):
            raise RuleConfigurationError(f"Palier {index + 1}: format invalide.")
        lower = _amount(raw.get("lower", "0"), f"bands[{index}].lower")
        upper = raw.get("upper")
        upper = None if upper is None else _amount(upper, f"bands[{index}].upper")
        rate = _rate(raw.get("rate"), f"bands[{index}].rate")

        if lower != expected_lower:
            raise RuleConfigurationError(
                f"Palier {index + 1}: doit commencer a {expected_lower} "
                "(paliers tries, contigus, sans chevauchement).",
            )
        if upper is not None and upper <= lower:
            raise RuleConfigurationError(
                f"Palier {index + 1}: la borne haute doit depasser la borne basse.",
            )
        if upper is None and index != len(raw_bands) - 1:
            raise RuleConfigurationError("Seul le dernier palier peut etre ouvert.")

        bands.append(Band(lower=lower, upper=upper, rate=rate))
        expected_lower = upper
    return tuple(bands)


def parse_parameters(commission_type: str, raw) -> RuleParameters:
    """Validate raw JSON parameters and return the typed variant.

    Raises
    ------
    RuleConfigurationError
        When the type is unknown or the parameters do not match it.
    """
    if commission_type not in COMMISSION_TYPES:
        raise RuleConfigurationError(f"Type de commission inconnu: {commission_type!r}.")
    if not isinstance(raw, dict):
        raise RuleConfigurationError("Les parametres d'une regle doivent etre un objet JSON.")

    unknown = set(raw) - _ALLOWED_KEYS[commission_type] - _COMMON_KEYS
    if unknown:
        raise RuleConfigurationError(
            f"Parametres inattendus pour '{commission_type}': {', '.join(sorted(unknown))}.",
        )

    caps = _parse_caps(raw)
    bonus = _parse_bonus(raw)

    if commission_type == FLAT:
        return FlatParameters(amount=_amount(raw.get("amount"), "amount"), caps=caps, bonus=bonus)

    if commission_type in (PERCENT_OF_SALE, PERCENT_OF_PROFIT):
        basis = BASIS_PROFIT if commission_type == PERCENT_OF_PROFIT else BASIS_SALE_PRICE
        return PercentParameters(rate=_rate(raw.get("rate")), basis=basis, caps=caps, bonus=bonus)

    if commission_type == MIXED:
        return MixedParameters(
            rate=_rate(raw.get("rate")),
            amount=_amount(raw.get("amount"), "amount"),
            caps=caps,
            bonus=bonus,
        )

    basis = raw.get("basis", BASIS_PROFIT)
    if basis not in (BASIS_PROFIT, BASIS_SALE_PRICE):
        raise RuleConfigurationError(f"Base de calcul inconnue: {basis!r}.")
    return TieredParameters(basis=basis, bands=_parse_bands(raw.get("bands")), caps=caps, bonus=bonus)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def has_price_range(rule) -> bool:
    return rule.min_sale_price is not None or rule.max_sale_price is not None


def specificity(rule) -> int:
    """Rank a rule: category+range > category > range > default."""
    if rule.vehicle_category and has_price_range(rule):
        return SPECIFICITY_CATEGORY_AND_RANGE
    if rule.vehicle_category:
        return SPECIFICITY_CATEGORY
    if has_price_range(rule):
        return SPECIFICITY_RANGE
    return SPECIFICITY_DEFAULT


def matches(rule, facts: SaleFacts) -> bool:
    if not getattr(rule, "is_active", True):
        return False
    if rule.vehicle_category and rule.vehicle_category != facts.vehicle_category:
        return False
    if rule.min_sale_price is not None and facts.sale_price < rule.min_sale_price:
        return False
    if rule.max_sale_price is not None and facts.sale_price > rule.max_sale_price:
        return False
    if rule.min_profit_margin is not None:
        margin = facts.profit_margin
        if margin is None or margin < rule.min_profit_margin:
            return False
    return True


def compute_amount(parameters: RuleParameters, facts: SaleFacts) -> Decimal:
    """Raw amount plus lead-source bonus, then caps, then rounding to the cent."""
    raw = parameters.compute(facts) + parameters.bonus.for_source(facts.lead_source)
    amount = quantize(parameters.caps.apply(raw))
    if amount < 0:
        raise ValidationError(
            f"Le calcul donne une commission negative ({amount}). "
            "Verifiez la marge de la vente ou la regle appliquee.",
        )
    if amount > MAX_AMOUNT:
        raise ValidationError(
            f"Le calcul donne une commission hors limites ({amount}). "
            "Ajoutez un plafond a la regle appliquee.",
        )
    return amount


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Resolution:
    rule: object
    calculated_amount: Decimal

    @property
    def specificity(self) -> int:
        return specificity(self.rule)


def select_rule(facts: SaleFacts, rules: Iterable):
    """Most specific matching rule; ties go to the lowest id."""
    candidates = [rule for rule in rules if matches(rule, facts)]
    if not candidates:
        raise NoApplicableRule(
            f"Aucune regle active pour la categorie '{facts.vehicle_category or '-'}' "
            f"et le prix {facts.sale_price}.",
        )
    return min(candidates, key=lambda rule: (-specificity(rule), rule.id))


def resolve(sale, rules: Iterable) -> Resolution:
    """Resolve the applicable rule for ``sale`` and compute its amount.

    Parameters
    ----------
    sale : SaleFacts | sales.models.Sale
    rules : iterable of CommissionRule
        Active rules supplied by the caller.

    Raises
    ------
    ValidationError
        The sale is not completed, or the amount would be negative.
    NoApplicableRule
        No rule matches.
    RuleConfigurationError
        The selected rule's parameters are malformed.
    """
    facts = sale if isinstance(sale, SaleFacts) else SaleFacts.from_sale(sale)
    if facts.status != SALE_COMPLETED:
        raise ValidationError(
            f"Seule une vente conclue donne droit a commission (statut: {facts.status}).",
        )
    if facts.sale_price < 0:
        raise ValidationError("Le prix de vente ne peut pas etre negatif.")

    rule = select_rule(facts, rules)
    parameters = parse_parameters(rule.commission_type, rule.parameters)
    return Resolution(rule=rule, calculated_amount=compute_amount(parameters, facts))


def simulate(
    sale_price,
    net_profit,
    rules: Iterable,
    vehicle_category: str = "",
    sale_date: Optional[datetime.date] = None,
    lead_source: str = "",
) -> Resolution:
    """Run the resolver on hypothetical figures, nothing is persisted."""
    facts = SaleFacts(
        sale_id=None,
        salesperson_id=None,
        sale_price=Decimal(str(sale_price)),
        net_profit=Decimal(str(net_profit)),
        vehicle_category=vehicle_category or "",
        sale_date=sale_date,
        lead_source=lead_source or "",
    )
    return resolve(facts, rules)
