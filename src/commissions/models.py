"""Models for the sale commissions module."""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from commissions import rules as rule_engine
from commissions.exceptions import RuleConfigurationError
from core.models import TimeStampedModel
from sales.models import Sale


# ---------------------------------------------------------------------------
# CommissionRule
# ---------------------------------------------------------------------------

class CommissionRuleQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True).order_by("id")


class CommissionRule(models.Model):
    """Versioned rule turning a sale into a commission amount.

    A rule referenced by at least one commission is never edited in place:
    ``create_new_version()`` deactivates it and creates its successor.
    """

    class CommissionType(models.TextChoices):
        FLAT = rule_engine.FLAT, "Montant fixe"
        PERCENT_OF_SALE = rule_engine.PERCENT_OF_SALE, "% du prix de vente"
        PERCENT_OF_PROFIT = rule_engine.PERCENT_OF_PROFIT, "% de la marge"
        TIERED = rule_engine.TIERED, "Par paliers"
        MIXED = rule_engine.MIXED, "% de la marge + fixe"

    name = models.CharField("nom", max_length=120)
    description = models.TextField("description", blank=True, default="")
    commission_type = models.CharField(
        "type de commission",
        max_length=20,
        choices=CommissionType.choices,
    )
    parameters = models.JSONField(
        "parametres",
        default=dict,
        help_text='Ex: {"rate": "2.5"} ou {"amount": "500.00"}.',
    )
    vehicle_category = models.CharField(
        "categorie vehicule",
        max_length=20,
        choices=Sale.VehicleCategory.choices,
        blank=True,
        default="",
        help_text="Laissez vide pour toutes les categories.",
    )
    min_sale_price = models.DecimalField(
        "prix de vente min",
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    max_sale_price = models.DecimalField(
        "prix de vente max",
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    min_profit_margin = models.DecimalField(
        "marge minimale (%)",
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("-100")), MaxValueValidator(Decimal("100"))],
        help_text="Marge nette minimale en % du prix de vente. Vide: aucune condition.",
    )
    is_active = models.BooleanField("active", default=True, db_index=True)
    version = models.PositiveIntegerField("version", default=1)
    supersedes = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        related_name="successors",
        null=True,
        blank=True,
        verbose_name="remplace",
    )
    created_at = models.DateTimeField("cree le", auto_now_add=True)
    updated_at = models.DateTimeField("modifie le", auto_now=True)

    objects = CommissionRuleQuerySet.as_manager()

    class Meta:
        verbose_name = "regle de commission"
        verbose_name_plural = "regles de commission"
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(min_sale_price__isnull=True)
                    | Q(max_sale_price__isnull=True)
                    | Q(min_sale_price__lte=models.F("max_sale_price"))
                ),
                name="commission_rule_price_range_ordered",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} v{self.version}"

    def clean(self) -> None:
        if (
            self.min_sale_price is not None
            and self.max_sale_price is not None
            and self.min_sale_price > self.max_sale_price
        ):
            raise ValidationError("Le prix minimum doit etre inferieur ou egal au prix maximum.")
        try:
            rule_engine.parse_parameters(self.commission_type, self.parameters)
        except RuleConfigurationError as exc:
            raise ValidationError({"parameters": exc.message})

    def get_parameters(self) -> rule_engine.RuleParameters:
        return rule_engine.parse_parameters(self.commission_type, self.parameters)

    @property
    def specificity(self) -> int:
        return rule_engine.specificity(self)

    @property
    def is_referenced(self) -> bool:
        return self.commissions.exists()

    def create_new_version(self, **changes) -> "CommissionRule":
        """Deactivate this rule and create its successor with ``changes``."""
        fields = {
            "name": self.name,
            "description": self.description,
            "commission_type": self.commission_type,
            "parameters": self.parameters,
            "vehicle_category": self.vehicle_category,
            "min_sale_price": self.min_sale_price,
            "max_sale_price": self.max_sale_price,
            "min_profit_margin": self.min_profit_margin,
        }
        fields.update(changes)
        successor = CommissionRule(
            version=self.version + 1,
            supersedes=self,
            is_active=True,
            **fields,
        )
        successor.full_clean()

        self.is_active = False
        self.save(update_fields=["is_active", "updated_at"])
        successor.save()
        return successor


# ---------------------------------------------------------------------------
# SaleCommission
# ---------------------------------------------------------------------------

class SaleCommissionQuerySet(models.QuerySet):
    def pending(self):
        return self.filter(status=SaleCommission.Status.PENDING)

    def approved(self):
        return self.filter(status=SaleCommission.Status.APPROVED)

    def paid(self):
        return self.filter(status=SaleCommission.Status.PAID)

    def not_rejected(self):
        return self.exclude(status=SaleCommission.Status.REJECTED)

    def for_user(self, user):
        return self.filter(user=user)


class SaleCommission(TimeStampedModel):
    """A salesperson's commission on one sale.

    ``final_amount`` is always ``calculated_amount + manual_adjustment`` and
    is recomputed on every save.  Status changes go through
    ``commissions.services``; adjustments through ``commissions.ledger``.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "En attente"
        APPROVED = "approved", "Approuvee"
        REJECTED = "rejected", "Rejetee"
        PAID = "paid", "Payee"

    TERMINAL_STATUSES = (Status.PAID, Status.REJECTED)

    sale = models.ForeignKey(
        Sale,
        on_delete=models.PROTECT,
        related_name="commissions",
        verbose_name="vente",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="commissions",
        verbose_name="vendeur",
    )
    commission_rule = models.ForeignKey(
        CommissionRule,
        on_delete=models.PROTECT,
        related_name="commissions",
        null=True,
        blank=True,
        verbose_name="regle appliquee",
    )
    split_percentage = models.DecimalField(
        "part (%)",
        max_digits=5,
        decimal_places=2,
        default=Decimal("100.00"),
        validators=[MinValueValidator(Decimal("0.01")), MaxValueValidator(Decimal("100"))],
    )
    calculated_amount = models.DecimalField(
        "montant calcule",
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    manual_adjustment = models.DecimalField(
        "ajustement manuel",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    final_amount = models.DecimalField(
        "montant final",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    status = models.CharField(
        "statut",
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    paid = models.BooleanField("payee", default=False)
    rejection_reason = models.TextField("motif de rejet", blank=True, default="")
    notes = models.TextField("notes", blank=True, default="")
    payment_due_date = models.DateField("echeance de paiement", null=True, blank=True)

    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="approved_commissions",
        null=True,
        blank=True,
        verbose_name="approuvee par",
    )
    approved_at = models.DateTimeField("approuvee le", null=True, blank=True)
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="rejected_commissions",
        null=True,
        blank=True,
        verbose_name="rejetee par",
    )
    rejected_at = models.DateTimeField("rejetee le", null=True, blank=True)
    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="paid_commissions",
        null=True,
        blank=True,
        verbose_name="payee par",
    )
    paid_at = models.DateTimeField("payee le", null=True, blank=True)

    objects = SaleCommissionQuerySet.as_manager()

    class Meta:
        verbose_name = "commission"
        verbose_name_plural = "commissions"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "status"], name="commission_user_status_idx"),
            models.Index(fields=["status", "payment_due_date"], name="commission_status_due_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["sale", "user"],
                condition=~Q(status="rejected"),
                name="uniq_open_commission_per_sale_user",
            ),
            models.CheckConstraint(
                condition=~Q(status="rejected") | ~Q(rejection_reason=""),
                name="commission_rejection_requires_reason",
            ),
            models.CheckConstraint(
                condition=(
                    Q(
                        status="paid",
                        paid=True,
                        paid_at__isnull=False,
                        approved_at__isnull=False,
                    )
                    | (~Q(status="paid") & Q(paid=False))
                ),
                name="commission_paid_flag_matches_status",
            ),
        ]

    def __str__(self) -> str:
        return f"Commission {self.user} / {self.sale_id} ({self.get_status_display()})"

    def save(self, *args, **kwargs):
        self.final_amount = (self.calculated_amount or Decimal("0")) + (
            self.manual_adjustment or Decimal("0")
        )
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and (
            "manual_adjustment" in update_fields or "calculated_amount" in update_fields
        ):
            kwargs["update_fields"] = set(update_fields) | {"final_amount"}
        super().save(*args, **kwargs)

    def clean(self) -> None:
        if self.status == self.Status.REJECTED and not (self.rejection_reason or "").strip():
            raise ValidationError("Un motif est obligatoire pour rejeter une commission.")
        if self.paid != (self.status == self.Status.PAID):
            raise ValidationError("Le drapeau 'payee' doit correspondre au statut.")
        if self.approved_at and self.paid_at and self.approved_at > self.paid_at:
            raise ValidationError("Le paiement ne peut pas preceder l'approbation.")

    @property
    def is_pending(self) -> bool:
        return self.status == self.Status.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES


# ---------------------------------------------------------------------------
# CommissionAdjustment
# ---------------------------------------------------------------------------

class CommissionAdjustment(models.Model):
    """Append-only ledger entry changing a commission's manual adjustment."""

    commission = models.ForeignKey(
        SaleCommission,
        on_delete=models.PROTECT,
        related_name="adjustments",
        verbose_name="commission",
    )
    delta_amount = models.DecimalField("ecart", max_digits=14, decimal_places=2)
    justification = models.TextField("justification")
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="commission_adjustments",
        verbose_name="auteur",
    )
    created_at = models.DateTimeField("cree le", auto_now_add=True)

    class Meta:
        verbose_name = "ajustement de commission"
        verbose_name_plural = "ajustements de commission"
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=~Q(delta_amount=0),
                name="commission_adjustment_nonzero_delta",
            ),
            models.CheckConstraint(
                condition=~Q(justification=""),
                name="commission_adjustment_requires_justification",
            ),
        ]

    def __str__(self) -> str:
        sign = "+" if self.delta_amount > 0 else ""
        return f"{sign}{self.delta_amount} sur {self.commission_id}"


# ---------------------------------------------------------------------------
# CommissionSplit
# ---------------------------------------------------------------------------

class CommissionSplit(models.Model):
    """Share of a sale's commission owed to one participant.

    When a sale has splits, they must sum to 100 %.
    """

    sale = models.ForeignKey(
        Sale,
        on_delete=models.CASCADE,
        related_name="commission_splits",
        verbose_name="vente",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="commission_splits",
        verbose_name="participant",
    )
    percentage = models.DecimalField(
        "part (%)",
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01")), MaxValueValidator(Decimal("100"))],
    )
    created_at = models.DateTimeField("cree le", auto_now_add=True)

    class Meta:
        verbose_name = "partage de commission"
        verbose_name_plural = "partages de commission"
        ordering = ["-percentage", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["sale", "user"],
                name="uniq_commission_split_per_sale_user",
            ),
            models.CheckConstraint(
                condition=Q(percentage__gt=0) & Q(percentage__lte=100),
                name="commission_split_percentage_range",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user} {self.percentage}% ({self.sale_id})"


# ---------------------------------------------------------------------------
# CommissionAuditLog
# ---------------------------------------------------------------------------

class CommissionAuditLog(models.Model):
    """One entry per successful commission operation."""

    class Action(models.TextChoices):
        CREATED = "created", "Creee"
        APPROVED = "approved", "Approuvee"
        REJECTED = "rejected", "Rejetee"
        PAID = "paid", "Payee"
        ADJUSTED = "adjusted", "Ajustee"

    commission = models.ForeignKey(
        SaleCommission,
        on_delete=models.PROTECT,
        related_name="audit_logs",
        verbose_name="commission",
    )
    action = models.CharField("action", max_length=20, choices=Action.choices)
    previous_status = models.CharField("statut precedent", max_length=20, blank=True, default="")
    new_status = models.CharField("nouveau statut", max_length=20, blank=True, default="")
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="commission_audit_logs",
        null=True,
        blank=True,
        verbose_name="auteur",
    )
    notes = models.TextField("notes", blank=True, default="")
    old_values = models.JSONField("anciennes valeurs", default=dict, blank=True)
    new_values = models.JSONField("nouvelles valeurs", default=dict, blank=True)
    created_at = models.DateTimeField("cree le", auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = "journal de commission"
        verbose_name_plural = "journal des commissions"
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.get_action_display()} - {self.commission_id}"
