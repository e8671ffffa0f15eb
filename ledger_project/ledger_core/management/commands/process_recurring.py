from django.core.management.base import BaseCommand, CommandError

from ledger_core.services.common import parse_date
from ledger_core.services.recurring import process_due_transactions


class Command(BaseCommand):
    help = "Materialize due recurring invoices and bills (cron twin of the Celery beat task)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            default=None,
            help="Process as if today were this ISO date (default: today).",
        )

    def handle(self, *args, **options):
        now = parse_date(options["date"], "date") if options["date"] else None
        result = process_due_transactions(now)
        if not result["success"]:
            raise CommandError("Recurring processing failed, see the log.")
        self.stdout.write(
            self.style.SUCCESS(f"Recurring transactions processed: {result['count']} created")
        )
