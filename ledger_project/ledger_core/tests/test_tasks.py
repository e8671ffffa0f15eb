import datetime
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from ..models import Account, BankTransactionMatch, Company, Invoice, InvoiceStatus
from ..services.invoice import create_invoice
from ..services.posting import ledger_is_balanced
from ..services.recurring import schedule
from ..tasks import process_recurring_transactions, refresh_document_aging
from .utils import make_company


class CeleryTaskTests(TestCase):
    def setUp(self):
        self.company = make_company()

    def test_process_recurring_task_reports_success_and_count(self):
        schedule(
            self.company, "Dispatch fee", "invoice", "monthly",
            {"customerId": "ACME", "subtotal": "50.00"}, start_date="2025-01-01",
        )
        # runs in-process, no broker needed
        result = process_recurring_transactions.apply().get()
        self.assertTrue(result["success"])
        self.assertGreater(result["count"], 0)
        self.assertEqual(Invoice.objects.for_company(self.company).count(), result["count"])

    def test_process_recurring_task_with_nothing_due(self):
        result = process_recurring_transactions.apply().get()
        self.assertEqual(result, {"success": True, "count": 0})

    def test_refresh_document_aging_task(self):
        invoice, _ = create_invoice(
            self.company,
            {"customerId": "ACME", "subtotal": "80.00", "status": "sent",
             "issueDate": "2025-01-01", "dueDate": "2025-01-31"},
        )
        result = refresh_document_aging.apply(kwargs={"company_id": self.company.pk}).get()
        self.assertEqual(result["invoices"], 1)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.OVERDUE)


class ManagementCommandTests(TestCase):
    def test_seed_chart_of_accounts(self):
        company = Company.objects.create(name="Fresh Co", slug="fresh-co")
        out = StringIO()
        call_command("seed_chart_of_accounts", "fresh-co", stdout=out)
        self.assertEqual(Account.objects.for_company(company).count(), 6)
        self.assertIn("6 new accounts", out.getvalue())

        # re-running keeps the chart as it is
        call_command("seed_chart_of_accounts", "fresh-co", stdout=StringIO())
        self.assertEqual(Account.objects.for_company(company).count(), 6)

    def test_seed_chart_unknown_company(self):
        with self.assertRaises(CommandError):
            call_command("seed_chart_of_accounts", "nope", stdout=StringIO())

    def test_process_recurring_command(self):
        company = make_company()
        schedule(
            company, "Dispatch fee", "invoice", "monthly",
            {"customerId": "ACME", "subtotal": "50.00"}, start_date="2025-01-10",
        )
        out = StringIO()
        call_command("process_recurring", "--date", "2025-03-10", stdout=out)
        self.assertIn("3 created", out.getvalue())

    def test_create_demo_tenant(self):
        call_command("create_demo_tenant", "--company-name", "Demo Freight", stdout=StringIO())
        company = Company.objects.get(name="Demo Freight")
        self.assertEqual(Invoice.objects.for_company(company).count(), 1)
        self.assertTrue(BankTransactionMatch.objects.for_company(company).exists())
        self.assertListEqual(ledger_is_balanced(company), [])
