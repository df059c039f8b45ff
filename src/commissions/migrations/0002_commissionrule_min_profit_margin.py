from decimal import Decimal

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("commissions", "0001_initial"),
        ("sales", "0002_sale_lead_source"),
    ]

    operations = [
        migrations.AddField(
            model_name="commissionrule",
            name="min_profit_margin",
            field=models.DecimalField(
                blank=True,
                decimal_places=2,
                help_text="Marge nette minimale en % du prix de vente. Vide: aucune condition.",
                max_digits=5,
                null=True,
                validators=[
                    django.core.validators.MinValueValidator(Decimal("-100")),
                    django.core.validators.MaxValueValidator(Decimal("100")),
                ],
                verbose_name="marge minimale (%)",
            ),
        ),
        migrations.AlterField(
            model_name="commissionrule",
            name="commission_type",
            field=models.CharField(
                choices=[
                    ("flat", "Montant fixe"),
                    ("percent_of_sale", "% du prix de vente"),
                    ("percent_of_profit", "% de la marge"),
                    ("tiered", "Par paliers"),
                    ("mixed", "% de la marge + fixe"),
                ],
                max_length=20,
                verbose_name="type de commission",
            ),
        ),
    ]
