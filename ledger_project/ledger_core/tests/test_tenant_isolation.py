import datetime
from decimal import Decimal

from django.test import TestCase

from ..exceptions import DocumentNotFoundError
from ..models import Invoice, JournalLine
from ..services.bill import approve_bill, create_bill
from ..services.invoice import create_invoice, get_invoice, issue_invoice
from ..services.reports import balance_sheet, profit_and_loss
from .utils import make_company


class TenantIsolationTests(TestCase):
    def setUp(self):
        self.company_a = make_company("Company A")
        self.company_b = make_company("Company B")

        # one invoice per company
        self.inv_a, _ = create_invoice(
            self.company_a, {"customerId": "C1", "subtotal": "200.00", "issueDate": "2025-01-05"}
        )
        self.inv_b, _ = create_invoice(
            self.company_b, {"customerId": "C1", "subtotal": "100.00", "issueDate": "2025-01-05"}
        )

    def test_for_company_returns_only_that_company_objects(self):
        """Compare invoice primary keys"""
        self.assertListEqual(
            list(
                Invoice.objects.for_company(self.company_a)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.inv_a.pk],
        )
        self.assertEqual(JournalLine.objects.for_company(self.company_b).count(), 2)

    def test_same_number_allowed_across_companies(self):
        self.assertEqual(self.inv_a.invoice_number, self.inv_b.invoice_number)

    def test_other_company_document_is_not_found(self):
        with self.assertRaises(DocumentNotFoundError):
            get_invoice(self.company_a, self.inv_b.pk)
        with self.assertRaises(DocumentNotFoundError):
            issue_invoice(self.company_a, self.inv_b.pk)
        bill, _ = create_bill(self.company_b, {"vendorId": "V", "subtotal": "10.00"})
        with self.assertRaises(DocumentNotFoundError):
            approve_bill(self.company_a, bill.pk)

    def test_reports_only_see_own_postings(self):
        pnl_a = profit_and_loss(self.company_a, "2025-01-01", "2025-01-31")
        pnl_b = profit_and_loss(self.company_b, "2025-01-01", "2025-01-31")
        self.assertEqual(pnl_a["revenue"], Decimal("200.00"))
        self.assertEqual(pnl_b["revenue"], Decimal("100.00"))
        self.assertEqual(
            balance_sheet(self.company_b, datetime.date(2025, 1, 31))["assets"]["total"],
            Decimal("100.00"),
        )

    def test_company_can_be_passed_by_id(self):
        self.assertEqual(get_invoice(self.company_a.pk, self.inv_a.pk), self.inv_a)
        with self.assertRaises(DocumentNotFoundError):
            get_invoice(987654, self.inv_a.pk)
