"""Management command to replay loyalty ledgers and report mismatches."""

from django.core.management.base import BaseCommand, CommandError

from loyaltyledger.exceptions import NotFoundError
from loyaltyledger.services import reporting


class Command(BaseCommand):
    help = "Replay every account's transactions and compare with the stored balances"

    def add_arguments(self, parser):
        parser.add_argument(
            "--customer",
            default=None,
            help="Only reconcile this customer_ref",
        )
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Exit with an error if any mismatch is found",
        )

    def handle(self, *args, **options):
        try:
            issues = reporting.reconcile_all(options["customer"])
        except NotFoundError as e:
            raise CommandError(e.message)

        for issue in issues:
            where = f" (tx {issue.transaction_id})" if issue.transaction_id else ""
            self.stdout.write(
                f"{issue.customer_ref}: {issue.kind} expected {issue.expected}, "
                f"found {issue.actual}{where}"
            )

        if not issues:
            self.stdout.write(self.style.SUCCESS("All loyalty ledgers reconcile."))
            return

        summary = f"{len(issues)} ledger mismatch(es) found."
        if options["strict"]:
            raise CommandError(summary)
        self.stdout.write(self.style.WARNING(summary))
