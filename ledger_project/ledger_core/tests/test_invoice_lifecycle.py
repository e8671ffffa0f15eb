import datetime
from decimal import Decimal

from django.test import TestCase

from ..exceptions import (InvalidTransitionError, LedgerInvariantError,
                          LedgerValidationError, OverpaymentError)
from ..models import AuditLog, Invoice, InvoiceStatus, JournalLine, ReferenceType
from ..services.chart import create_account
from ..services.invoice import (cancel_invoice, create_invoice, issue_invoice,
                                list_invoices, refresh_invoice_aging,
                                update_invoice_status)
from ..services.posting import journal_for, ledger_is_balanced
from ..services.reports import profit_and_loss
from .utils import account, make_company, make_user


class InvoiceLifecycleTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.user = make_user()
        self.ar = account(self.company, "1200")
        self.revenue = account(self.company, "4000")
        self.issue_date = datetime.date(2025, 1, 15)

    def make_invoice(self, subtotal="1000.00", tax="0.00", **extra):
        data = {
            "customerId": "CUST-1",
            "issueDate": self.issue_date.isoformat(),
            "subtotal": subtotal,
            "taxAmount": tax,
        }
        data.update(extra)
        return create_invoice(self.company, data, user=self.user)

    def test_create_posts_ar_debit_and_revenue_credit(self):
        invoice, postings = self.make_invoice()

        self.assertEqual(invoice.status, InvoiceStatus.DRAFT)
        self.assertEqual(invoice.total_amount, Decimal("1000.00"))
        self.assertEqual(invoice.amount_paid, Decimal("0.00"))
        # Net 30 by default
        self.assertEqual(invoice.due_date, datetime.date(2025, 2, 14))
        self.assertTrue(invoice.invoice_number.startswith("INV-"))

        by_account = {line.account_id: line for line in postings}
        self.assertEqual(by_account[self.ar.pk].debit, Decimal("1000.00"))
        self.assertEqual(by_account[self.revenue.pk].credit, Decimal("1000.00"))
        self.assertEqual(postings[0].reference_type, ReferenceType.INVOICE)
        self.assertEqual(postings[0].reference_id, str(invoice.pk))

    def test_invoice_numbers_increase_per_company(self):
        first, _ = self.make_invoice()
        second, _ = self.make_invoice()
        other_company = make_company("Other Co")
        foreign, _ = create_invoice(
            other_company, {"customer_id": "C", "subtotal": "10.00"}
        )

        year = first.invoice_number.split("-")[1]
        self.assertEqual(first.invoice_number, f"INV-{year}-0001")
        self.assertEqual(second.invoice_number, f"INV-{year}-0002")
        # independent counter per tenant
        self.assertTrue(foreign.invoice_number.endswith("-0001"))

    def test_total_includes_tax_and_lines_split_revenue(self):
        linehaul = self.revenue
        detention = create_account(self.company, "Detention Revenue", "4100", "revenue")

        invoice, postings = self.make_invoice(
            subtotal=None,
            tax="15.00",
            lines=[
                {"description": "Linehaul", "quantity": "1", "rate": "800.00"},
                {"description": "Detention", "quantity": "2", "rate": "50.00", "account_id": detention.pk},
            ],
        )

        self.assertEqual(invoice.subtotal, Decimal("900.00"))
        self.assertEqual(invoice.total_amount, Decimal("915.00"))
        self.assertEqual(invoice.lines.count(), 2)
        credits = {line.account_id: line.credit for line in postings if line.credit}
        # tax goes with the default revenue account
        self.assertEqual(credits[linehaul.pk], Decimal("815.00"))
        self.assertEqual(credits[detention.pk], Decimal("100.00"))

    def test_supplied_total_must_match(self):
        with self.assertRaises(LedgerValidationError):
            self.make_invoice(subtotal="100.00", tax="10.00", totalAmount="100.00")

    def test_lines_must_add_up_to_subtotal(self):
        with self.assertRaises(LedgerValidationError):
            self.make_invoice(
                subtotal="100.00",
                lines=[{"description": "Linehaul", "amount": "90.00"}],
            )
        self.assertFalse(Invoice.objects.for_company(self.company).exists())

    def test_invalid_input_writes_nothing(self):
        for bad in (
            {"subtotal": "0.00"},
            {"subtotal": 12.5},
            {"subtotal": "100.00", "dueDate": "2024-12-31"},
            {"subtotal": "100.00", "status": "paid"},
        ):
            with self.assertRaises(LedgerValidationError):
                self.make_invoice(**bad)
        self.assertFalse(Invoice.objects.for_company(self.company).exists())
        self.assertFalse(JournalLine.objects.for_company(self.company).exists())

    def test_issue_only_from_draft(self):
        invoice, _ = self.make_invoice()
        invoice = issue_invoice(self.company, invoice.pk, user=self.user)
        self.assertEqual(invoice.status, InvoiceStatus.SENT)
        self.assertEqual(invoice.version, 1)

        with self.assertRaises(InvalidTransitionError):
            issue_invoice(self.company, invoice.pk)

    def test_cancel_reverses_revenue_and_keeps_number(self):
        invoice, _ = self.make_invoice(subtotal="400.00")
        cancelled = cancel_invoice(self.company, invoice.pk, user=self.user, reason="duplicate")

        self.assertEqual(cancelled.status, InvoiceStatus.CANCELLED)
        self.assertEqual(
            Invoice.objects.get(pk=invoice.pk).invoice_number, invoice.invoice_number
        )
        journal = journal_for(self.company, ReferenceType.INVOICE, invoice.pk)
        self.assertIsNotNone(journal_for(self.company, ReferenceType.REVERSAL, journal.pk))
        self.assertListEqual(ledger_is_balanced(self.company), [])

        # revenue nets to zero once cancelled
        report = profit_and_loss(self.company, "2025-01-01", "2099-12-31")
        self.assertEqual(report["revenue"], Decimal("0.00"))

        # cancelled is terminal
        with self.assertRaises(InvalidTransitionError):
            issue_invoice(self.company, invoice.pk)
        with self.assertRaises(InvalidTransitionError):
            cancel_invoice(self.company, invoice.pk)

    def test_status_override_rules(self):
        invoice, _ = self.make_invoice(subtotal="100.00", status="sent")

        invoice = update_invoice_status(self.company, invoice.pk, "partial", amount_paid="40.00")
        self.assertEqual(invoice.status, InvoiceStatus.PARTIAL)
        self.assertEqual(invoice.amount_paid, Decimal("40.00"))

        # amount paid never decreases
        with self.assertRaises(LedgerInvariantError):
            update_invoice_status(self.company, invoice.pk, "partial", amount_paid="10.00")
        # never above the total
        with self.assertRaises(OverpaymentError):
            update_invoice_status(self.company, invoice.pk, "paid", amount_paid="150.00")
        # paid needs the full amount
        with self.assertRaises(InvalidTransitionError):
            update_invoice_status(self.company, invoice.pk, "paid", amount_paid="50.00")

        invoice = update_invoice_status(self.company, invoice.pk, "paid", amount_paid="100.00")
        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertEqual(invoice.balance_due, Decimal("0.00"))
        self.assertTrue(
            AuditLog.objects.filter(object_id=str(invoice.pk), action="status_override").exists()
        )

    def test_aging_refresh_flips_overdue_both_ways(self):
        invoice, _ = self.make_invoice(subtotal="100.00", status="sent")

        changed = refresh_invoice_aging(self.company, today=datetime.date(2025, 3, 1))
        self.assertEqual(changed, 1)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.OVERDUE)
        self.assertEqual(invoice.aging_days, 15)

        # a clock before the due date brings it back
        refresh_invoice_aging(self.company, today=datetime.date(2025, 2, 1))
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.SENT)

    def test_drafts_never_become_overdue(self):
        invoice, _ = self.make_invoice(subtotal="100.00")
        refresh_invoice_aging(self.company, today=datetime.date(2025, 6, 1))
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.DRAFT)
        self.assertGreater(invoice.aging_days, 0)

    def test_list_filters(self):
        sent, _ = self.make_invoice(status="sent", customerId="CUST-2")
        draft, _ = self.make_invoice()

        self.assertListEqual(list_invoices(self.company, status="sent"), [sent])
        self.assertListEqual(list_invoices(self.company, customer_id="CUST-2"), [sent])
        self.assertEqual(len(list_invoices(self.company)), 2)
        self.assertListEqual(
            list_invoices(self.company, start_date=datetime.date(2025, 2, 1)), []
        )
