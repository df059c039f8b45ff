"""Models for the salesperson goals module."""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from core.models import TimeStampedModel


class SalespersonGoal(TimeStampedModel):
    """Targets for one salesperson over an inclusive date range.

    Business rule: periods of the same user never overlap.  Enforced in
    model validation.  ``current_*`` fields are derived by
    ``goals.engine.GoalTracker`` and never edited by clients.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="goals",
        verbose_name="vendeur",
    )
    period_start = models.DateField("debut de periode")
    period_end = models.DateField("fin de periode")

    target_sales = models.PositiveIntegerField("objectif nb ventes", default=0)
    target_revenue = models.DecimalField(
        "objectif chiffre d'affaires",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    target_profit = models.DecimalField(
        "objectif marge",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )

    current_sales = models.PositiveIntegerField("nb ventes", default=0)
    current_revenue = models.DecimalField(
        "chiffre d'affaires",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )
    current_profit = models.DecimalField(
        "marge",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )
    refreshed_at = models.DateTimeField("actualise le", null=True, blank=True)
    notes = models.TextField("notes", blank=True, default="")

    class Meta:
        verbose_name = "objectif vendeur"
        verbose_name_plural = "objectifs vendeurs"
        ordering = ["-period_start"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "period_start"],
                name="uniq_goal_user_period_start",
            ),
            models.CheckConstraint(
                condition=models.Q(period_end__gte=models.F("period_start")),
                name="goal_period_end_after_start",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user} {self.period_start} -> {self.period_end}"

    def clean(self) -> None:
        if self.period_start and self.period_end and self.period_end < self.period_start:
            raise ValidationError("La fin de periode doit etre posterieure ou egale au debut.")
        if not self.user_id or not self.period_start or not self.period_end:
            return

        overlaps = SalespersonGoal.objects.filter(
            user_id=self.user_id,
            period_start__lte=self.period_end,
            period_end__gte=self.period_start,
        )
        if self.pk and not self._state.adding:
            overlaps = overlaps.exclude(pk=self.pk)
        if overlaps.exists():
            raise ValidationError(
                "Un autre objectif chevauche deja cette periode pour ce vendeur."
            )

    def covers(self, day) -> bool:
        return self.period_start <= day <= self.period_end
