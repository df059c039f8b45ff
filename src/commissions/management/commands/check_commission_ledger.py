"""Verify that stored commission totals match their adjustment ledger."""
from django.core.management.base import BaseCommand, CommandError

from commissions.ledger import verify_ledger
from commissions.models import SaleCommission


class Command(BaseCommand):
    help = "Check manual_adjustment and final_amount of every commission against its ledger."

    def add_arguments(self, parser):
        parser.add_argument(
            "--status",
            choices=SaleCommission.Status.values,
            help="Only check commissions in this status.",
        )

    def handle(self, *args, **options):
        qs = SaleCommission.objects.all().order_by("created_at")
        if options.get("status"):
            qs = qs.filter(status=options["status"])

        checked = 0
        broken = 0
        for commission in qs.iterator():
            checked += 1
            result = verify_ledger(commission)
            if not result.ok:
                broken += 1
                for error in result.errors:
                    self.stderr.write(f"{commission.pk}: {error}")

        if broken:
            raise CommandError(f"{broken} of {checked} commission(s) inconsistent with their ledger.")
        self.stdout.write(self.style.SUCCESS(f"{checked} commission(s) checked, ledger consistent."))
