from django.core.management.base import BaseCommand, CommandError

from ledger_core.models import Company
from ledger_core.services.chart import seed_default_accounts


class Command(BaseCommand):
    help = "Create the default chart of accounts for a company (safe to re-run)."

    # Define command-line argument
    def add_arguments(self, parser):
        parser.add_argument(
            "company",  # slug of the tenant
            help="Slug of the company to seed.",
        )

    def handle(self, *args, **options):
        slug = options["company"]
        try:
            company = Company.objects.get(slug=slug)
        except Company.DoesNotExist:
            raise CommandError(f"No company with slug '{slug}'.")

        accounts = seed_default_accounts(company)
        for account in accounts:
            self.stdout.write(f"  {account.code}  {account.name} ({account.ac_type})")
        self.stdout.write(
            self.style.SUCCESS(f"Chart of accounts ready for {company} ({len(accounts)} new accounts)")
        )
