import datetime
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from ..exceptions import LedgerValidationError
from ..models import ReferenceType
from ..serializers import money_str, to_wire
from ..services.bill import approve_bill, create_bill
from ..services.chart import create_account
from ..services.invoice import (cancel_invoice, create_invoice,
                                refresh_invoice_aging)
from ..services.payment import record_payment
from ..services.posting import post
from ..services.reports import (ap_aging, ar_aging, balance_sheet, bucket_for,
                                dashboard_summary, profit_and_loss,
                                trial_balance)
from .utils import account, make_company

ZERO = Decimal("0.00")


class EmptyReportTests(TestCase):
    def setUp(self):
        self.company = make_company()

    def test_empty_company_reports_zeros(self):
        pnl = profit_and_loss(self.company, "2025-01-01", "2025-12-31")
        self.assertEqual(pnl["revenue"], ZERO)
        self.assertEqual(pnl["expenses"], ZERO)
        self.assertEqual(pnl["netIncome"], ZERO)
        self.assertListEqual(pnl["revenueBreakdown"], [])

        sheet = balance_sheet(self.company, "2025-12-31")
        self.assertEqual(sheet["assets"]["total"], ZERO)
        self.assertEqual(sheet["equity"]["retainedEarnings"], ZERO)

        self.assertEqual(
            ar_aging(self.company),
            {"current": ZERO, "days1to30": ZERO, "days31to60": ZERO, "days61to90": ZERO, "over90": ZERO},
        )
        self.assertEqual(trial_balance(self.company, "2025-12-31")["rows"], [])


class FinancialReportTests(TestCase):
    """One month of freight activity"""

    def setUp(self):
        self.company = make_company()
        self.cash = account(self.company, "1000")
        self.equity = account(self.company, "3000")

        # owner puts in 5,000
        post(
            self.company,
            datetime.date(2025, 1, 2),
            [
                {"account": self.cash, "debit": "5000.00"},
                {"account": self.equity, "credit": "5000.00"},
            ],
            ReferenceType.ADJUSTMENT,
            "opening",
        )
        # invoice 1,000 (paid 400), invoice 500 cancelled, bill 300 (paid)
        self.invoice, _ = create_invoice(
            self.company,
            {"customerId": "ACME", "subtotal": "1000.00", "status": "sent", "issueDate": "2025-01-10"},
        )
        record_payment(
            self.company,
            {"paymentType": "invoice_payment", "invoiceId": self.invoice.pk, "amount": "400.00",
             "paymentMethod": "ach", "paymentDate": "2025-01-20"},
        )
        cancelled, _ = create_invoice(
            self.company,
            {"customerId": "ACME", "subtotal": "500.00", "issueDate": "2025-01-12"},
        )
        cancel_invoice(self.company, cancelled.pk)
        bill, _ = create_bill(
            self.company, {"vendorId": "FUELCO", "subtotal": "300.00", "billDate": "2025-01-15"},
        )
        approve_bill(self.company, bill.pk)
        record_payment(
            self.company,
            {"paymentType": "bill_payment", "billId": bill.pk, "amount": "300.00",
             "paymentMethod": "card", "paymentDate": "2025-01-25"},
        )

    def test_profit_and_loss_over_range(self):
        # through today: the cancellation reversal is dated today
        pnl = profit_and_loss(self.company, "2025-01-01", timezone.localdate())
        self.assertEqual(pnl["revenue"], Decimal("1000.00"))
        self.assertEqual(pnl["expenses"], Decimal("300.00"))
        self.assertEqual(pnl["netIncome"], Decimal("700.00"))
        self.assertEqual(pnl["period"]["startDate"], datetime.date(2025, 1, 1))
        self.assertEqual(
            [row["code"] for row in pnl["revenueBreakdown"]], ["4000"]
        )

    def test_range_is_inclusive(self):
        # the only bill is dated the 15th
        pnl = profit_and_loss(self.company, "2025-01-15", "2025-01-15")
        self.assertEqual(pnl["expenses"], Decimal("300.00"))
        self.assertEqual(pnl["revenue"], ZERO)

    def test_balance_sheet_identity(self):
        for as_of in ("2025-01-01", "2025-01-12", "2025-01-31", timezone.localdate()):
            sheet = balance_sheet(self.company, as_of)
            self.assertEqual(
                sheet["assets"]["total"],
                sheet["liabilities"]["total"] + sheet["equity"]["total"],
                msg=f"identity broken as of {as_of}",
            )

        sheet = balance_sheet(self.company, timezone.localdate())
        # cash 5000 + 400 - 300, AR 600
        self.assertEqual(sheet["assets"]["total"], Decimal("5700.00"))
        self.assertEqual(sheet["liabilities"]["total"], ZERO)
        self.assertEqual(sheet["equity"]["retainedEarnings"], Decimal("700.00"))
        self.assertEqual(sheet["equity"]["total"], Decimal("5700.00"))

    def test_trial_balance_debits_equal_credits(self):
        tb = trial_balance(self.company, timezone.localdate())
        self.assertEqual(tb["totalDebits"], tb["totalCredits"])
        codes = [row["code"] for row in tb["rows"]]
        self.assertEqual(codes, sorted(codes))

    def test_trial_balance_orders_codes_numerically(self):
        petty = create_account(self.company, "Petty cash", "900", "asset")
        post(
            self.company,
            datetime.date(2025, 1, 3),
            [
                {"account": petty, "debit": "50.00"},
                {"account": self.cash, "credit": "50.00"},
            ],
            ReferenceType.ADJUSTMENT,
            "petty-float",
        )
        tb = trial_balance(self.company, "2025-01-31")
        self.assertEqual(tb["rows"][0]["code"], "900")
        self.assertEqual(tb["totalDebits"], tb["totalCredits"])

    def test_ar_aging_buckets(self):
        # invoice due 2025-02-09 with 600 open; the cancelled one is left out
        self.assertEqual(ar_aging(self.company, "2025-02-01")["current"], Decimal("600.00"))
        self.assertEqual(ar_aging(self.company, "2025-02-20")["days1to30"], Decimal("600.00"))
        self.assertEqual(ar_aging(self.company, "2025-04-01")["days31to60"], Decimal("600.00"))
        self.assertEqual(ar_aging(self.company, "2025-05-01")["days61to90"], Decimal("600.00"))
        aging = ar_aging(self.company, "2025-06-01")
        self.assertEqual(aging["over90"], Decimal("600.00"))
        self.assertEqual(sum(aging.values()), Decimal("600.00"))

    def test_ap_aging_skips_paid_bills(self):
        self.assertEqual(sum(ap_aging(self.company, "2025-06-01").values()), ZERO)

    def test_bucket_edges(self):
        self.assertEqual(bucket_for(0), "current")
        self.assertEqual(bucket_for(1), "days1to30")
        self.assertEqual(bucket_for(30), "days1to30")
        self.assertEqual(bucket_for(31), "days31to60")
        self.assertEqual(bucket_for(90), "days61to90")
        self.assertEqual(bucket_for(91), "over90")

    def test_wire_rendering(self):
        wire = to_wire(balance_sheet(self.company, "2025-01-31"))
        self.assertEqual(wire["asOfDate"], "2025-01-31")
        self.assertEqual(wire["assets"]["total"], "6200.00")
        self.assertEqual(money_str(Decimal("5")), "5.00")
        self.assertIsNone(money_str(None))

    def test_dashboard_summary_for_the_month(self):
        summary = dashboard_summary(self.company, "2025-01")

        self.assertEqual(summary["month"], "2025-01")
        # the cancelled 500 invoice is not revenue
        self.assertEqual(summary["totalRevenue"], Decimal("1000.00"))
        self.assertEqual(summary["totalExpenses"], Decimal("300.00"))
        self.assertEqual(summary["netProfit"], Decimal("700.00"))
        self.assertEqual(summary["profitMargin"], Decimal("70.00"))
        # 400 collected, 300 paid out
        self.assertEqual(summary["cashFlow"], Decimal("100.00"))
        self.assertEqual(summary["outstandingInvoices"], 1)
        self.assertEqual(summary["overdueInvoices"], 0)
        self.assertEqual(summary["unpaidBills"], 0)
        self.assertEqual(to_wire(summary)["profitMargin"], "70.00")

        # a date inside the month works too
        self.assertEqual(dashboard_summary(self.company, datetime.date(2025, 1, 31)), summary)

    def test_dashboard_summary_counts_overdue_and_unpaid(self):
        refresh_invoice_aging(self.company, datetime.date(2025, 3, 1))
        create_bill(
            self.company, {"vendorId": "TIRECO", "subtotal": "80.00", "billDate": "2025-01-28"},
        )
        summary = dashboard_summary(self.company, "2025-01")
        self.assertEqual(summary["outstandingInvoices"], 0)
        self.assertEqual(summary["overdueInvoices"], 1)
        self.assertEqual(summary["unpaidBills"], 1)
        self.assertEqual(summary["totalExpenses"], Decimal("380.00"))

    def test_dashboard_summary_quiet_month_and_bad_input(self):
        summary = dashboard_summary(self.company, "2025-02")
        self.assertEqual(summary["totalRevenue"], ZERO)
        self.assertEqual(summary["profitMargin"], ZERO)
        self.assertEqual(summary["cashFlow"], ZERO)
        with self.assertRaises(LedgerValidationError):
            dashboard_summary(self.company, "2025-13")
