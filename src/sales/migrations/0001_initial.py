import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Sale",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                (
                    "vehicle_category",
                    models.CharField(
                        choices=[
                            ("HATCHBACK", "Citadine"),
                            ("SEDAN", "Berline"),
                            ("SUV", "SUV"),
                            ("PICKUP", "Pick-up"),
                            ("VAN", "Utilitaire"),
                            ("MOTORCYCLE", "Moto"),
                            ("OTHER", "Autre"),
                        ],
                        default="OTHER",
                        max_length=20,
                        verbose_name="categorie vehicule",
                    ),
                ),
                (
                    "vehicle_label",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text='Ex: "Toyota Corolla 2021".',
                        max_length=200,
                        verbose_name="vehicule",
                    ),
                ),
                (
                    "sale_price",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="prix de vente",
                    ),
                ),
                (
                    "net_profit",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Prix de vente moins cout d'acquisition et frais. Peut etre negatif.",
                        max_digits=14,
                        verbose_name="marge nette",
                    ),
                ),
                ("sale_date", models.DateField(verbose_name="date de vente")),
                (
                    "status",
                    models.CharField(
                        choices=[("DRAFT", "Brouillon"), ("COMPLETED", "Conclue"), ("CANCELLED", "Annulee")],
                        db_index=True,
                        default="DRAFT",
                        max_length=20,
                        verbose_name="statut",
                    ),
                ),
                ("completed_at", models.DateTimeField(blank=True, null=True, verbose_name="conclue le")),
                ("cancelled_at", models.DateTimeField(blank=True, null=True, verbose_name="annulee le")),
                (
                    "cancellation_reason",
                    models.TextField(blank=True, default="", verbose_name="raison d'annulation"),
                ),
                ("notes", models.TextField(blank=True, default="", verbose_name="notes")),
                (
                    "salesperson",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="vendeur",
                    ),
                ),
            ],
            options={
                "verbose_name": "vente",
                "verbose_name_plural": "ventes",
                "ordering": ["-sale_date", "-created_at"],
                "indexes": [
                    models.Index(
                        fields=["salesperson", "status", "sale_date"],
                        name="sale_salesperson_status_idx",
                    ),
                ],
            },
        ),
    ]
