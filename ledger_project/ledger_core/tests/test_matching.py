import datetime
from decimal import Decimal

from django.test import TestCase, override_settings

from ..exceptions import DocumentNotFoundError, LedgerValidationError
from ..models import BankTransaction, BankTransactionMatch, MatchedType, Payment
from ..services.bill import approve_bill, create_bill
from ..services.invoice import create_invoice
from ..services.matching import (accept_match, accepted_match, matches_for,
                                 propose_match, score_candidate,
                                 suggest_matches)
from ..services.payment import record_payment
from .utils import make_company, make_user


class MatchRecordTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.user = make_user()
        self.invoice, _ = create_invoice(
            self.company,
            {"customerId": "CUST-1", "subtotal": "250.00", "status": "sent", "issueDate": "2025-05-01"},
        )

    def propose(self, confidence, bt_id="BT-1"):
        return propose_match(
            self.company, bt_id, MatchedType.INVOICE, self.invoice.pk,
            "250.00", confidence, user=self.user,
        )

    def test_auto_match_only_above_threshold(self):
        high = self.propose("0.95")
        edge = self.propose("0.90", bt_id="BT-2")
        low = self.propose("0.40", bt_id="BT-3")

        self.assertTrue(high.is_auto_matched)
        # strictly greater than the threshold
        self.assertFalse(edge.is_auto_matched)
        self.assertFalse(low.is_auto_matched)
        self.assertEqual(accepted_match(self.company, "BT-1"), high)
        self.assertIsNone(accepted_match(self.company, "BT-3"))

    @override_settings(LEDGER_AUTO_MATCH_THRESHOLD=0.5)
    def test_threshold_is_configurable(self):
        self.assertTrue(self.propose("0.60").is_auto_matched)

    def test_manual_acceptance_wins_over_auto(self):
        auto = self.propose("0.99")
        manual = self.propose("0.30")

        accepted = accept_match(self.company, manual.pk, user=self.user)
        self.assertTrue(accepted.is_manually_accepted)
        self.assertEqual(accepted_match(self.company, "BT-1"), manual)

        # accepting another one withdraws the earlier acceptance
        accept_match(self.company, auto.pk)
        manual.refresh_from_db()
        self.assertFalse(manual.is_manually_accepted)
        self.assertEqual(accepted_match(self.company, "BT-1"), auto)

        # every attempt is kept for audit
        self.assertEqual(len(matches_for(self.company, "BT-1")), 2)

    def test_confidence_and_candidate_validation(self):
        with self.assertRaises(LedgerValidationError):
            self.propose("1.5")
        with self.assertRaises(LedgerValidationError):
            propose_match(self.company, "BT-1", "load", self.invoice.pk, "1.00", "0.5")
        with self.assertRaises(DocumentNotFoundError):
            propose_match(self.company, "BT-1", MatchedType.BILL, 424242, "1.00", "0.5")
        self.assertFalse(BankTransactionMatch.objects.for_company(self.company).exists())

    def test_losing_payment_match_is_unflagged(self):
        payment, _ = record_payment(
            self.company,
            {"paymentType": "invoice_payment", "invoiceId": self.invoice.pk, "amount": "250.00",
             "paymentMethod": "ach", "paymentDate": "2025-05-10"},
        )
        auto = propose_match(
            self.company, "BT-7", MatchedType.PAYMENT, payment.pk, "250.00", "0.97"
        )
        self.assertTrue(Payment.objects.get(pk=payment.pk).is_matched)

        # operator settles the bank line against the invoice instead
        invoice_match = self.propose("0.50", bt_id="BT-7")
        accept_match(self.company, invoice_match.pk)
        self.assertFalse(Payment.objects.get(pk=payment.pk).is_matched)

        accept_match(self.company, auto.pk)
        self.assertTrue(Payment.objects.get(pk=payment.pk).is_matched)

    def test_payment_settled_by_another_bank_line_stays_flagged(self):
        payment, _ = record_payment(
            self.company,
            {"paymentType": "invoice_payment", "invoiceId": self.invoice.pk, "amount": "250.00",
             "paymentMethod": "ach", "paymentDate": "2025-05-10"},
        )
        propose_match(self.company, "BT-8", MatchedType.PAYMENT, payment.pk, "250.00", "0.99")
        propose_match(self.company, "BT-9", MatchedType.PAYMENT, payment.pk, "250.00", "0.95")
        accept_match(self.company, self.propose("0.40", bt_id="BT-9").pk)

        # BT-8 still points at the payment
        self.assertTrue(Payment.objects.get(pk=payment.pk).is_matched)

    def test_matches_are_tenant_scoped(self):
        self.propose("0.95")
        other = make_company("Other Co")
        self.assertIsNone(accepted_match(other, "BT-1"))
        self.assertListEqual(matches_for(other, "BT-1"), [])


class SuggestMatchesTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.invoice, _ = create_invoice(
            self.company,
            {"customerId": "ACME", "subtotal": "1200.00", "status": "sent", "issueDate": "2025-05-01",
             "dueDate": "2025-05-31"},
        )
        self.other_invoice, _ = create_invoice(
            self.company,
            {"customerId": "GLOBEX", "subtotal": "75.00", "status": "sent", "issueDate": "2025-05-01",
             "dueDate": "2025-05-31"},
        )
        bill, _ = create_bill(
            self.company, {"vendorId": "FUELCO", "subtotal": "300.00", "billDate": "2025-05-01",
                           "dueDate": "2025-05-31"},
        )
        self.bill = approve_bill(self.company, bill.pk)

    def test_score_components(self):
        day = datetime.date(2025, 5, 31)
        exact = score_candidate("100.00", day, "ACME INV", Decimal("100.00"), day, ("ACME", "INV"))
        self.assertEqual(exact, Decimal("1.0000"))
        amount_only = score_candidate("100.00", day, "", Decimal("100.00"), day - datetime.timedelta(days=30))
        self.assertEqual(amount_only, Decimal("0.6000"))
        # within 1% earns half the amount weight
        close = score_candidate("100.50", None, "", Decimal("100.00"), None)
        self.assertEqual(close, Decimal("0.3000"))

    def test_inflow_proposes_the_matching_invoice(self):
        txn = BankTransaction.objects.create(
            company=self.company,
            external_id="BT-100",
            posted_date=datetime.date(2025, 5, 31),
            amount=Decimal("1200.00"),
            description=f"ACH ACME {self.invoice.invoice_number}",
        )
        proposals = suggest_matches(self.company, txn)

        self.assertEqual(len(proposals), 1)
        best = proposals[0]
        self.assertEqual(best.matched_type, MatchedType.INVOICE)
        self.assertEqual(best.matched_id, str(self.invoice.pk))
        self.assertTrue(best.is_auto_matched)

        # already proposed candidates are skipped on a second pass
        self.assertListEqual(suggest_matches(self.company, txn.pk), [])

    def test_outflow_looks_at_payables(self):
        txn = BankTransaction.objects.create(
            company=self.company,
            external_id="BT-200",
            posted_date=datetime.date(2025, 5, 30),
            amount=Decimal("-300.00"),
            description="FUELCO card",
        )
        proposals = suggest_matches(self.company, txn)
        self.assertEqual([p.matched_type for p in proposals], [MatchedType.BILL])

    def test_auto_match_on_payment_marks_it_matched(self):
        payment, _ = record_payment(
            self.company,
            {"paymentType": "invoice_payment", "invoiceId": self.other_invoice.pk,
             "amount": "75.00", "paymentMethod": "check", "paymentDate": "2025-06-02",
             "checkNumber": "5531"},
        )
        txn = BankTransaction.objects.create(
            company=self.company,
            external_id="BT-300",
            posted_date=datetime.date(2025, 6, 2),
            amount=Decimal("75.00"),
            description=f"DEPOSIT CHECK 5531 {payment.payment_number}",
        )
        proposals = suggest_matches(self.company, txn, limit=1)

        self.assertEqual(proposals[0].matched_type, MatchedType.PAYMENT)
        self.assertTrue(proposals[0].is_auto_matched)
        self.assertTrue(Payment.objects.get(pk=payment.pk).is_matched)
