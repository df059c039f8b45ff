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
            name="SalespersonGoal",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("period_start", models.DateField(verbose_name="debut de periode")),
                ("period_end", models.DateField(verbose_name="fin de periode")),
                ("target_sales", models.PositiveIntegerField(default=0, verbose_name="objectif nb ventes")),
                (
                    "target_revenue",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="objectif chiffre d'affaires",
                    ),
                ),
                (
                    "target_profit",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="objectif marge",
                    ),
                ),
                ("current_sales", models.PositiveIntegerField(default=0, verbose_name="nb ventes")),
                (
                    "current_revenue",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14, verbose_name="chiffre d'affaires"),
                ),
                (
                    "current_profit",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14, verbose_name="marge"),
                ),
                ("refreshed_at", models.DateTimeField(blank=True, null=True, verbose_name="actualise le")),
                ("notes", models.TextField(blank=True, default="", verbose_name="notes")),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="goals",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="vendeur",
                    ),
                ),
            ],
            options={
                "verbose_name": "objectif vendeur",
                "verbose_name_plural": "objectifs vendeurs",
                "ordering": ["-period_start"],
                "constraints": [
                    models.UniqueConstraint(fields=("user", "period_start"), name="uniq_goal_user_period_start"),
                    models.CheckConstraint(
                        condition=models.Q(("period_end__gte", models.F("period_start"))),
                        name="goal_period_end_after_start",
                    ),
                ],
            },
        ),
    ]
