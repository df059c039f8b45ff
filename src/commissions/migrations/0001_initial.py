import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("sales", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CommissionRule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120, verbose_name="nom")),
                ("description", models.TextField(blank=True, default="", verbose_name="description")),
                (
                    "commission_type",
                    models.CharField(
                        choices=[
                            ("flat", "Montant fixe"),
                            ("percent_of_sale", "% du prix de vente"),
                            ("percent_of_profit", "% de la marge"),
                            ("tiered", "Par paliers"),
                        ],
                        max_length=20,
                        verbose_name="type de commission",
                    ),
                ),
                (
                    "parameters",
                    models.JSONField(
                        default=dict,
                        help_text='Ex: {"rate": "2.5"} ou {"amount": "500.00"}.',
                        verbose_name="parametres",
                    ),
                ),
                (
                    "vehicle_category",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("HATCHBACK", "Citadine"),
                            ("SEDAN", "Berline"),
                            ("SUV", "SUV"),
                            ("PICKUP", "Pick-up"),
                            ("VAN", "Utilitaire"),
                            ("MOTORCYCLE", "Moto"),
                            ("OTHER", "Autre"),
                        ],
                        default="",
                        help_text="Laissez vide pour toutes les categories.",
                        max_length=20,
                        verbose_name="categorie vehicule",
                    ),
                ),
                (
                    "min_sale_price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=14,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="prix de vente min",
                    ),
                ),
                (
                    "max_sale_price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=14,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="prix de vente max",
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("version", models.PositiveIntegerField(default=1, verbose_name="version")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                (
                    "supersedes",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="successors",
                        to="commissions.commissionrule",
                        verbose_name="remplace",
                    ),
                ),
            ],
            options={
                "verbose_name": "regle de commission",
                "verbose_name_plural": "regles de commission",
                "ordering": ["id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(min_sale_price__isnull=True)
                            | models.Q(max_sale_price__isnull=True)
                            | models.Q(min_sale_price__lte=models.F("max_sale_price"))
                        ),
                        name="commission_rule_price_range_ordered",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SaleCommission",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                (
                    "split_percentage",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("100.00"),
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0.01")),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                        verbose_name="part (%)",
                    ),
                ),
                (
                    "calculated_amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="montant calcule",
                    ),
                ),
                (
                    "manual_adjustment",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0.00"), max_digits=14, verbose_name="ajustement manuel",
                    ),
                ),
                (
                    "final_amount",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0.00"), max_digits=14, verbose_name="montant final",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "En attente"),
                            ("approved", "Approuvee"),
                            ("rejected", "Rejetee"),
                            ("paid", "Payee"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                        verbose_name="statut",
                    ),
                ),
                ("paid", models.BooleanField(default=False, verbose_name="payee")),
                ("rejection_reason", models.TextField(blank=True, default="", verbose_name="motif de rejet")),
                ("notes", models.TextField(blank=True, default="", verbose_name="notes")),
                ("payment_due_date", models.DateField(blank=True, null=True, verbose_name="echeance de paiement")),
                ("approved_at", models.DateTimeField(blank=True, null=True, verbose_name="approuvee le")),
                ("rejected_at", models.DateTimeField(blank=True, null=True, verbose_name="rejetee le")),
                ("paid_at", models.DateTimeField(blank=True, null=True, verbose_name="payee le")),
                (
                    "approved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="approved_commissions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="approuvee par",
                    ),
                ),
                (
                    "commission_rule",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commissions",
                        to="commissions.commissionrule",
                        verbose_name="regle appliquee",
                    ),
                ),
                (
                    "paid_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="paid_commissions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="payee par",
                    ),
                ),
                (
                    "rejected_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rejected_commissions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="rejetee par",
                    ),
                ),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commissions",
                        to="sales.sale",
                        verbose_name="vente",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commissions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="vendeur",
                    ),
                ),
            ],
            options={
                "verbose_name": "commission",
                "verbose_name_plural": "commissions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "status"], name="commission_user_status_idx"),
                    models.Index(fields=["status", "payment_due_date"], name="commission_status_due_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "rejected"), _negated=True),
                        fields=("sale", "user"),
                        name="uniq_open_commission_per_sale_user",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("status", "rejected"), _negated=True),
                            models.Q(("rejection_reason", ""), _negated=True),
                            _connector="OR",
                        ),
                        name="commission_rejection_requires_reason",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ("approved_at__isnull", False),
                                ("paid", True),
                                ("paid_at__isnull", False),
                                ("status", "paid"),
                            ),
                            models.Q(models.Q(("status", "paid"), _negated=True), ("paid", False)),
                            _connector="OR",
                        ),
                        name="commission_paid_flag_matches_status",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CommissionAdjustment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("delta_amount", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="ecart")),
                ("justification", models.TextField(verbose_name="justification")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="cree le")),
                (
                    "actor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commission_adjustments",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="auteur",
                    ),
                ),
                (
                    "commission",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="adjustments",
                        to="commissions.salecommission",
                        verbose_name="commission",
                    ),
                ),
            ],
            options={
                "verbose_name": "ajustement de commission",
                "verbose_name_plural": "ajustements de commission",
                "ordering": ["created_at", "id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("delta_amount", 0), _negated=True),
                        name="commission_adjustment_nonzero_delta",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("justification", ""), _negated=True),
                        name="commission_adjustment_requires_justification",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CommissionSplit",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "percentage",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0.01")),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                        verbose_name="part (%)",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="cree le")),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="commission_splits",
                        to="sales.sale",
                        verbose_name="vente",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commission_splits",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="participant",
                    ),
                ),
            ],
            options={
                "verbose_name": "partage de commission",
                "verbose_name_plural": "partages de commission",
                "ordering": ["-percentage", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("sale", "user"),
                        name="uniq_commission_split_per_sale_user",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("percentage__gt", 0), ("percentage__lte", 100)),
                        name="commission_split_percentage_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CommissionAuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("created", "Creee"),
                            ("approved", "Approuvee"),
                            ("rejected", "Rejetee"),
                            ("paid", "Payee"),
                            ("adjusted", "Ajustee"),
                        ],
                        max_length=20,
                        verbose_name="action",
                    ),
                ),
                (
                    "previous_status",
                    models.CharField(blank=True, default="", max_length=20, verbose_name="statut precedent"),
                ),
                (
                    "new_status",
                    models.CharField(blank=True, default="", max_length=20, verbose_name="nouveau statut"),
                ),
                ("notes", models.TextField(blank=True, default="", verbose_name="notes")),
                ("old_values", models.JSONField(blank=True, default=dict, verbose_name="anciennes valeurs")),
                ("new_values", models.JSONField(blank=True, default=dict, verbose_name="nouvelles valeurs")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="commission_audit_logs",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="auteur",
                    ),
                ),
                (
                    "commission",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="audit_logs",
                        to="commissions.salecommission",
                        verbose_name="commission",
                    ),
                ),
            ],
            options={
                "verbose_name": "journal de commission",
                "verbose_name_plural": "journal des commissions",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
