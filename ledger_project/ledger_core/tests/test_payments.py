import datetime
from decimal import Decimal

from django.test import TestCase

from ..exceptions import (ConcurrentModificationError, DocumentNotFoundError,
                          InvalidTransitionError, LedgerValidationError,
                          OverpaymentError)
from ..models import (AuditLog, BankAccount, Invoice, InvoiceStatus, Payment,
                      PaymentType, ReferenceType)
from ..services.chart import create_account
from ..services.concurrency import compare_and_swap, run_with_retry
from ..services.invoice import cancel_invoice, create_invoice
from ..services.payment import get_payment, list_payments, record_payment
from ..services.posting import journal_for, ledger_is_balanced
from .utils import account, make_company, make_user


class PaymentTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.user = make_user()
        self.cash = account(self.company, "1000")
        self.ar = account(self.company, "1200")
        self.invoice, _ = create_invoice(
            self.company,
            {"customerId": "CUST-1", "subtotal": "1000.00", "status": "sent", "issueDate": "2025-01-01"},
        )

    def pay(self, amount, **extra):
        data = {
            "paymentType": "invoice_payment",
            "invoiceId": self.invoice.pk,
            "amount": amount,
            "paymentMethod": "ach",
            "paymentDate": "2025-01-20",
        }
        data.update(extra)
        return record_payment(self.company, data, user=self.user)

    def test_partial_then_full_payment(self):
        payment, postings = self.pay("400.00")

        self.assertTrue(payment.payment_number.startswith("PAY-"))
        self.assertEqual(payment.reference_id, self.invoice.pk)
        by_account = {line.account_id: line for line in postings}
        self.assertEqual(by_account[self.cash.pk].debit, Decimal("400.00"))
        self.assertEqual(by_account[self.ar.pk].credit, Decimal("400.00"))
        self.assertEqual(postings[0].reference_type, ReferenceType.PAYMENT)
        self.assertEqual(postings[0].reference_id, str(payment.pk))

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PARTIAL)
        self.assertEqual(self.invoice.amount_paid, Decimal("400.00"))

        self.pay("600.00")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PAID)
        self.assertEqual(self.invoice.balance_due, Decimal("0.00"))
        self.assertListEqual(ledger_is_balanced(self.company), [])

    def test_overpayment_rejected_without_side_effects(self):
        self.pay("900.00")
        with self.assertRaises(OverpaymentError):
            self.pay("100.01")

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.amount_paid, Decimal("900.00"))
        self.assertEqual(Payment.objects.for_company(self.company).count(), 1)

    def test_cancelled_invoice_takes_no_payment(self):
        draft, _ = create_invoice(self.company, {"customerId": "C", "subtotal": "50.00"})
        cancel_invoice(self.company, draft.pk)
        with self.assertRaises(InvalidTransitionError):
            self.pay("10.00", invoiceId=draft.pk)

    def test_paying_a_draft_issues_it(self):
        draft, _ = create_invoice(self.company, {"customerId": "C", "subtotal": "50.00"})
        self.pay("50.00", invoiceId=draft.pk)
        draft.refresh_from_db()
        self.assertEqual(draft.status, InvoiceStatus.PAID)
        self.assertTrue(
            AuditLog.objects.filter(object_id=str(draft.pk), action="issue").exists()
        )

    def test_input_validation(self):
        for bad in (
            {"amount": "0.00"},
            {"amount": "-5.00"},
            {"amount": 10.0},
            {"paymentMethod": "bitcoin"},
            {"paymentType": "refund"},
        ):
            with self.assertRaises(LedgerValidationError):
                self.pay(bad.pop("amount", "10.00"), **bad)
        self.assertFalse(Payment.objects.for_company(self.company).exists())

    def test_unknown_or_foreign_invoice_not_found(self):
        other = make_company("Other Co")
        foreign, _ = create_invoice(other, {"customerId": "C", "subtotal": "10.00"})
        with self.assertRaises(DocumentNotFoundError):
            self.pay("10.00", invoiceId=foreign.pk)
        with self.assertRaises(DocumentNotFoundError):
            self.pay("10.00", invoiceId=999999)

    def test_bank_account_routes_cash_side(self):
        operating = create_account(self.company, "Operating Bank", "1010", "asset")
        bank = BankAccount.objects.create(
            company=self.company, name="Operating", ledger_account=operating
        )
        _, postings = self.pay("100.00", bankAccountId=bank.pk)
        debit_line = next(line for line in postings if line.debit)
        self.assertEqual(debit_line.account_id, operating.pk)

    def test_adjustment_needs_offset_account(self):
        with self.assertRaises(LedgerValidationError):
            record_payment(
                self.company,
                {"paymentType": "adjustment", "amount": "25.00", "paymentMethod": "cash"},
            )

        equity = account(self.company, "3000")
        payment, postings = record_payment(
            self.company,
            {"paymentType": "adjustment", "amount": "25.00", "paymentMethod": "cash", "accountId": equity.pk},
        )
        self.assertEqual(payment.payment_type, PaymentType.ADJUSTMENT)
        self.assertIsNone(payment.reference_id)
        credit_line = next(line for line in postings if line.credit)
        self.assertEqual(credit_line.account_id, equity.pk)

    def test_stale_version_loses_the_race(self):
        stale = Invoice.objects.get(pk=self.invoice.pk)
        self.pay("100.00")  # bumps the version underneath
        with self.assertRaises(ConcurrentModificationError):
            compare_and_swap(stale, stale.version, amount_paid=Decimal("200.00"))

    def test_run_with_retry_rereads_and_rechecks(self):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise ConcurrentModificationError("lost race")
            return self.pay("100.00")

        payment, _ = run_with_retry(flaky, attempts=3)
        self.assertEqual(len(attempts), 2)
        self.assertEqual(get_payment(self.company, payment.pk), payment)

        def always_conflicting():
            raise ConcurrentModificationError("lost race")

        with self.assertRaises(ConcurrentModificationError):
            run_with_retry(always_conflicting, attempts=2)

    def test_list_payments_filters(self):
        self.pay("100.00", paymentMethod="check", checkNumber="1001")
        self.pay("200.00", paymentDate="2025-02-15")

        self.assertEqual(len(list_payments(self.company)), 2)
        self.assertEqual(len(list_payments(self.company, payment_method="check")), 1)
        self.assertEqual(
            len(list_payments(self.company, start_date=datetime.date(2025, 2, 1))), 1
        )
        self.assertEqual(len(list_payments(self.company, invoice_id=self.invoice.pk)), 2)
        # every payment has exactly one posting group
        for payment in list_payments(self.company):
            self.assertIsNotNone(journal_for(self.company, ReferenceType.PAYMENT, payment.pk))
