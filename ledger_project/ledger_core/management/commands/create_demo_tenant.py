import datetime
from decimal import Decimal
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.text import slugify
from ledger_core.models import BankAccount, BankTransaction, Company
from ledger_core.services.bill import approve_bill, create_bill
from ledger_core.services.chart import get_account_by_code, seed_default_accounts
from ledger_core.services.invoice import create_invoice
from ledger_core.services.matching import suggest_matches
from ledger_core.services.payment import record_payment


User = get_user_model()


class Command(BaseCommand):
    help = (
        "Create a demo tenant (company), user, chart of accounts and sample "
        "invoice / bill / payment / bank activity for testing."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--company-name",  # Define flag
            default="Demo Freight",
            help="Name of the demo company to create.",
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        # Read arguments from add_arguments()
        company_name = options["company_name"]
        username = options["username"]
        password = options["password"]

        # Generate unique slug for company
        def unique_slug_for_company(name, max_tries=100):
            # "Demo Freight" → "demo-freight" → "demo-freight-1" ...
            base = slugify(name) or "company"
            slug = base
            i = 1
            while Company.objects.filter(slug=slug).exists():
                slug = f"{base}-{i}"
                i += 1
                if i > max_tries:
                    raise RuntimeError("Couldn't generate unique slug")
            return slug

        # 1. Create company
        company = Company.objects.filter(name=company_name).first()
        if company is None:
            company = Company.objects.create(
                name=company_name, slug=unique_slug_for_company(company_name)
            )
        self.stdout.write(self.style.SUCCESS(f"Created company: {company}"))

        # 2. Create user
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com"},
        )
        if created:  # only set the password on a fresh user
            user.set_password(password)
            user.save()
        self.stdout.write(
            self.style.SUCCESS(f"Created user: {user.username} (pw={password})")
        )

        # 3. Chart of accounts (idempotent)
        seed_default_accounts(company, user=user)
        self.stdout.write(self.style.SUCCESS("Seeded default chart of accounts"))

        today = datetime.date.today()

        # 4. Invoice for a delivered load, half paid
        invoice, _ = create_invoice(
            company,
            {
                "customerId": "CUST-001",
                "loadId": "LOAD-1001",
                "issueDate": today,
                "subtotal": "1000.00",
                "taxAmount": "0.00",
                "status": "sent",
                "terms": "Net 30",
            },
            user=user,
        )
        record_payment(
            company,
            {
                "paymentType": "invoice_payment",
                "invoiceId": invoice.pk,
                "amount": "500.00",
                "paymentMethod": "ach",
                "paymentDate": today,
            },
            user=user,
        )
        self.stdout.write(
            self.style.SUCCESS(f"Created invoice: {invoice.invoice_number} (500.00 paid)")
        )

        # 5. Fuel bill, approved but unpaid
        bill, _ = create_bill(
            company,
            {
                "vendorId": "VEND-FUEL",
                "billDate": today,
                "subtotal": "250.00",
                "memo": "Diesel",
            },
            user=user,
        )
        approve_bill(company, bill.pk, user=user)
        self.stdout.write(self.style.SUCCESS(f"Created bill: {bill.bill_number} (approved)"))

        # 6. Bank account + an incoming transfer waiting for a match
        bank_account, _ = BankAccount.objects.get_or_create(
            company=company,
            name=f"{company_name} Operating",
            defaults={"ledger_account": get_account_by_code(company, "1000")},
        )
        bank_tx, _ = BankTransaction.objects.get_or_create(
            company=company,
            external_id=f"DEMO-{today.isoformat()}-1",
            defaults={
                "bank_account": bank_account,
                "posted_date": today,
                "amount": Decimal("500.00"),
                "description": f"ACH CUST-001 {invoice.invoice_number}",
            },
        )
        proposals = suggest_matches(company, bank_tx, user=user)
        self.stdout.write(
            self.style.SUCCESS(f"Created bank transaction ({len(proposals)} match proposals)")
        )
        self.stdout.write(self.style.SUCCESS("Demo tenant setup complete!"))
