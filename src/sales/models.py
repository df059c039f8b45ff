"""Models for the sales app.

Only the fields the commission engine and goal tracker consume are kept here;
the full sale workflow (negotiation, payment methods, vehicle records) lives
in the CRM.
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from core.models import TimeStampedModel


# ---------------------------------------------------------------------------
# Sale
# ---------------------------------------------------------------------------

class Sale(TimeStampedModel):
    """A vehicle sale closed by a salesperson."""

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Brouillon"
        COMPLETED = "COMPLETED", "Conclue"
        CANCELLED = "CANCELLED", "Annulee"

    class VehicleCategory(models.TextChoices):
        HATCHBACK = "HATCHBACK", "Citadine"
        SEDAN = "SEDAN", "Berline"
        SUV = "SUV", "SUV"
        PICKUP = "PICKUP", "Pick-up"
        VAN = "VAN", "Utilitaire"
        MOTORCYCLE = "MOTORCYCLE", "Moto"
        OTHER = "OTHER", "Autre"

    class LeadSource(models.TextChoices):
        MANUAL = "MANUAL", "Saisie manuelle"
        WALK_IN = "WALK_IN", "Visite en concession"
        PHONE = "PHONE", "Telephone"
        WHATSAPP = "WHATSAPP", "WhatsApp"
        FACEBOOK = "FACEBOOK", "Facebook"
        INSTAGRAM = "INSTAGRAM", "Instagram"
        GOOGLE = "GOOGLE", "Google"
        WEBSITE = "WEBSITE", "Site web"
        REFERRAL = "REFERRAL", "Recommandation"
        MARKETPLACE = "MARKETPLACE", "Site d'annonces"

    salesperson = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="sales",
        verbose_name="vendeur",
    )
    vehicle_category = models.CharField(
        "categorie vehicule",
        max_length=20,
        choices=VehicleCategory.choices,
        default=VehicleCategory.OTHER,
    )
    vehicle_label = models.CharField(
        "vehicule",
        max_length=200,
        blank=True,
        default="",
        help_text='Ex: "Toyota Corolla 2021".',
    )
    sale_price = models.DecimalField(
        "prix de vente",
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    net_profit = models.DecimalField(
        "marge nette",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Prix de vente moins cout d'acquisition et frais. Peut etre negatif.",
    )
    lead_source = models.CharField(
        "origine du prospect",
        max_length=20,
        choices=LeadSource.choices,
        blank=True,
        default="",
    )
    sale_date = models.DateField("date de vente")
    status = models.CharField(
        "statut",
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True,
    )
    completed_at = models.DateTimeField("conclue le", null=True, blank=True)
    cancelled_at = models.DateTimeField("annulee le", null=True, blank=True)
    cancellation_reason = models.TextField(
        "raison d'annulation",
        blank=True,
        default="",
    )
    notes = models.TextField("notes", blank=True, default="")

    class Meta:
        verbose_name = "vente"
        verbose_name_plural = "ventes"
        ordering = ["-sale_date", "-created_at"]
        indexes = [
            models.Index(
                fields=["salesperson", "status", "sale_date"],
                name="sale_salesperson_status_idx",
            ),
        ]

    def __str__(self):
        label = self.vehicle_label or self.get_vehicle_category_display()
        return f"Vente {label} ({self.sale_date})"

    @property
    def is_completed(self) -> bool:
        return self.status == self.Status.COMPLETED

    def can_complete(self) -> bool:
        return self.status == self.Status.DRAFT

    def can_cancel(self) -> bool:
        return self.status in (self.Status.DRAFT, self.Status.COMPLETED)
