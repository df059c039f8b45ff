"""Seed database with demo staff, commission rules, sales and goals."""
import datetime
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone


class Command(BaseCommand):
    help = "Seed database with demo users, commission rules, completed sales and monthly goals"

    DEMO_USERS = [
        {"email": "admin@concession.cm", "first_name": "Admin", "last_name": "Systeme", "role": "ADMIN", "password": "admin123!"},
        {"email": "manager@concession.cm", "first_name": "Marie", "last_name": "Ngo", "role": "MANAGER", "password": "manager123!"},
        {"email": "finance@concession.cm", "first_name": "Fatou", "last_name": "Bello", "role": "FINANCE", "password": "finance123!"},
        {"email": "vendeur1@concession.cm", "first_name": "Jean", "last_name": "Kamga", "role": "SALES", "password": "vendeur123!"},
        {"email": "vendeur2@concession.cm", "first_name": "Paul", "last_name": "Tchoupo", "role": "SALES", "password": "vendeur123!"},
    ]

    DEMO_RULES = [
        {
            "name": "Forfait standard",
            "commission_type": "flat",
            "parameters": {"amount": "150000.00"},
        },
        {
            "name": "Marge SUV",
            "commission_type": "tiered",
            "parameters": {
                "basis": "profit",
                "bands": [
                    {"lower": "0", "upper": "2000000", "rate": "5"},
                    {"lower": "2000000", "upper": None, "rate": "8"},
                ],
                "maximum": "750000",
            },
            "vehicle_category": "SUV",
        },
        {
            "name": "Haut de gamme",
            "commission_type": "percent_of_sale",
            "parameters": {"rate": "1.5"},
            "min_sale_price": Decimal("30000000"),
        },
    ]

    DEMO_SALES = [
        # (seller email, category, label, price, profit, days ago)
        ("vendeur1@concession.cm", "SUV", "Toyota RAV4 2022", "24500000", "2600000", 12),
        ("vendeur1@concession.cm", "SEDAN", "Hyundai Elantra 2021", "13800000", "900000", 8),
        ("vendeur2@concession.cm", "PICKUP", "Toyota Hilux 2023", "31500000", "3100000", 5),
        ("vendeur2@concession.cm", "HATCHBACK", "Suzuki Swift 2020", "6900000", "450000", 2),
    ]

    def add_arguments(self, parser):
        parser.add_argument("--flush", action="store_true", help="Delete existing demo data first")
        parser.add_argument(
            "--reset-passwords",
            action="store_true",
            help="Reset demo users passwords to default values (useful when the DB already contains these users).",
        )

    def handle(self, *args, **options):
        if options["flush"]:
            self.stdout.write("Flushing existing data...")
            self._flush()

        self.stdout.write("Seeding data...")
        with transaction.atomic():
            users = self._create_users(reset_passwords=options["reset_passwords"])
            rules = self._create_rules()
            sales = self._create_sales(users)
            goals = self._create_goals(users)

        self.stdout.write(self.style.SUCCESS(
            f"Seed complete: {len(users)} users, {len(rules)} rules, "
            f"{len(sales)} sales, {len(goals)} goals"
        ))

    def _flush(self):
        from accounts.models import User
        from commissions.models import (
            CommissionAdjustment,
            CommissionAuditLog,
            CommissionRule,
            CommissionSplit,
            SaleCommission,
        )
        from goals.models import SalespersonGoal
        from sales.models import Sale

        for model in [CommissionAuditLog, CommissionAdjustment, SaleCommission,
                      CommissionSplit, Sale, SalespersonGoal]:
            model.objects.all().delete()
        # Versioned rules reference their predecessor: delete newest first
        for rule in CommissionRule.objects.order_by("-version", "-id"):
            rule.delete()

        demo_emails = [u["email"] for u in self.DEMO_USERS]
        User.objects.filter(email__in=demo_emails).delete()

    def _create_users(self, *, reset_passwords: bool = False):
        from accounts.models import User

        users = {}
        for ud in self.DEMO_USERS:
            is_admin = ud["role"] == "ADMIN"
            user, created = User.objects.get_or_create(
                email=ud["email"],
                defaults={
                    "first_name": ud["first_name"],
                    "last_name": ud["last_name"],
                    "role": ud["role"],
                    "is_staff": is_admin,
                    "is_superuser": is_admin,
                }
            )

            changed_fields = []
            for field, expected in [
                ("role", ud["role"]),
                ("is_staff", is_admin),
                ("is_superuser", is_admin),
                ("is_active", True),
            ]:
                if getattr(user, field) != expected:
                    setattr(user, field, expected)
                    changed_fields.append(field)

            if created or reset_passwords:
                user.set_password(ud["password"])
                changed_fields.append("password")

            if created or changed_fields:
                user.save()
                if created:
                    self.stdout.write(f"  User: {user.email} ({user.role})")
            users[user.email] = user
        return users

    def _create_rules(self):
        from commissions.models import CommissionRule

        rules = []
        for definition in self.DEMO_RULES:
            rule = CommissionRule.objects.filter(name=definition["name"], is_active=True).first()
            if rule is None:
                rule = CommissionRule(**definition)
                rule.full_clean(exclude=["supersedes"])
                rule.save()
                self.stdout.write(f"  Rule: {rule}")
            rules.append(rule)
        return rules

    def _create_sales(self, users):
        from sales.models import Sale
        from sales.services import complete_sale, create_sale

        if Sale.objects.filter(salesperson__email__in=[row[0] for row in self.DEMO_SALES]).exists():
            return []

        today = timezone.localdate()
        sales = []
        for email, category, label, price, profit, days_ago in self.DEMO_SALES:
            sale = create_sale(
                salesperson=users[email],
                sale_price=Decimal(price),
                net_profit=Decimal(profit),
                vehicle_category=category,
                vehicle_label=label,
                sale_date=today - datetime.timedelta(days=days_ago),
            )
            sales.append(complete_sale(sale))
        return sales

    def _create_goals(self, users):
        from goals.engine import GoalTracker
        from goals.models import SalespersonGoal

        today = timezone.localdate()
        start = today.replace(day=1)
        end = (start + datetime.timedelta(days=32)).replace(day=1) - datetime.timedelta(days=1)

        tracker = GoalTracker()
        goals = []
        for user in users.values():
            if user.role != "SALES":
                continue
            goal, _ = SalespersonGoal.objects.get_or_create(
                user=user,
                period_start=start,
                defaults={
                    "period_end": end,
                    "target_sales": 6,
                    "target_revenue": Decimal("120000000"),
                    "target_profit": Decimal("9000000"),
                },
            )
            tracker.refresh_goal(goal)
            goals.append(goal)
        return goals
