import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase

from ..exceptions import (AlreadyPostedDifferentPayload, DocumentNotFoundError,
                          LedgerInvariantError, LedgerValidationError,
                          UnbalancedPostingError)
from ..models import JournalEntry, JournalLine, ReferenceType
from ..services.chart import deactivate_account
from ..services.posting import (journal_for, ledger_is_balanced, post,
                                reverse_journal)
from .utils import account, make_company, make_user


class PostingEngineTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.user = make_user()
        self.cash = account(self.company, "1000")
        self.equity = account(self.company, "3000")
        self.revenue = account(self.company, "4000")
        self.day = datetime.date(2025, 3, 1)

    def owner_contribution(self, amount="500.00", reference_id="adj-1"):
        return post(
            self.company,
            self.day,
            [
                {"account": self.cash, "debit": Decimal(amount), "description": "Owner funds"},
                {"account_id": self.equity.pk, "credit": Decimal(amount)},
            ],
            ReferenceType.ADJUSTMENT,
            reference_id,
            user=self.user,
        )

    def test_balanced_post_appends_all_lines(self):
        lines = self.owner_contribution()

        self.assertEqual(len(lines), 2)
        journal = JournalEntry.objects.get(reference_type="adjustment", reference_id="adj-1")
        self.assertTrue(journal.is_balanced())
        self.assertEqual(journal.created_by, self.user)
        # header metadata is reachable from every line
        self.assertEqual(lines[0].reference_type, "adjustment")
        self.assertEqual(lines[0].reference_id, "adj-1")
        self.assertEqual(lines[0].transaction_date, self.day)

    def test_unbalanced_post_rejected_and_nothing_written(self):
        with self.assertRaises(UnbalancedPostingError):
            post(
                self.company,
                self.day,
                [
                    {"account": self.cash, "debit": Decimal("100.00")},
                    {"account": self.equity, "credit": Decimal("99.99")},
                ],
                ReferenceType.ADJUSTMENT,
                "adj-x",
            )
        self.assertFalse(JournalLine.objects.for_company(self.company).exists())
        self.assertIsNone(journal_for(self.company, ReferenceType.ADJUSTMENT, "adj-x"))

    def test_line_shape_rules(self):
        bad_sets = [
            [],  # empty
            [  # both sides on one line
                {"account": self.cash, "debit": "10.00", "credit": "10.00"},
                {"account": self.equity, "credit": "0.00"},
            ],
            [  # negative
                {"account": self.cash, "debit": "-10.00"},
                {"account": self.equity, "credit": "-10.00"},
            ],
            [  # neither side
                {"account": self.cash},
                {"account": self.equity},
            ],
        ]
        for lines in bad_sets:
            with self.assertRaises(LedgerValidationError):
                post(self.company, self.day, lines, ReferenceType.ADJUSTMENT, "adj-bad")

    def test_float_amounts_rejected(self):
        with self.assertRaises(LedgerValidationError):
            post(
                self.company,
                self.day,
                [
                    {"account": self.cash, "debit": 0.1},
                    {"account": self.equity, "credit": 0.1},
                ],
                ReferenceType.ADJUSTMENT,
                "adj-float",
            )

    def test_inactive_account_rejected(self):
        deactivate_account(self.company, self.equity.pk)
        with self.assertRaises(LedgerValidationError):
            self.owner_contribution()

    def test_other_company_account_rejected(self):
        other = make_company("Other Co")
        with self.assertRaises(DocumentNotFoundError):
            post(
                self.company,
                self.day,
                [
                    {"account": self.cash, "debit": "10.00"},
                    {"account": account(other, "3000"), "credit": "10.00"},
                ],
                ReferenceType.ADJUSTMENT,
                "adj-cross",
            )

    def test_identical_retry_is_idempotent(self):
        first = self.owner_contribution()
        again = self.owner_contribution()
        self.assertListEqual([l.pk for l in first], [l.pk for l in again])
        self.assertEqual(JournalLine.objects.for_company(self.company).count(), 2)

    def test_different_payload_for_same_reference_rejected(self):
        self.owner_contribution("500.00")
        with self.assertRaises(AlreadyPostedDifferentPayload):
            self.owner_contribution("600.00")

    def test_lines_are_immutable(self):
        line = self.owner_contribution()[0]
        line.debit = Decimal("1.00")
        with self.assertRaises(ValidationError):
            line.save()
        with self.assertRaises(ValidationError):
            line.delete()
        with self.assertRaises(ValidationError):
            JournalLine.objects.for_company(self.company).update(description="edited")
        with self.assertRaises(ValidationError):
            JournalLine.objects.for_company(self.company).delete()

        line.refresh_from_db()
        self.assertEqual(line.debit, Decimal("500.00"))

    def test_reverse_journal_mirrors_lines(self):
        self.owner_contribution()
        journal = journal_for(self.company, ReferenceType.ADJUSTMENT, "adj-1")

        mirror = reverse_journal(self.company, journal.pk, transaction_date=datetime.date(2025, 3, 5))

        self.assertEqual(len(mirror), 2)
        by_account = {line.account_id: line for line in mirror}
        self.assertEqual(by_account[self.cash.pk].credit, Decimal("500.00"))
        self.assertEqual(by_account[self.equity.pk].debit, Decimal("500.00"))
        self.assertEqual(mirror[0].reference_type, ReferenceType.REVERSAL)
        self.assertEqual(mirror[0].reference_id, str(journal.pk))

        # reversing the reversal is refused
        reversal = journal_for(self.company, ReferenceType.REVERSAL, journal.pk)
        with self.assertRaises(LedgerInvariantError):
            reverse_journal(self.company, reversal.pk)

    def test_reversal_allowed_after_account_deactivated(self):
        self.owner_contribution()
        journal = journal_for(self.company, ReferenceType.ADJUSTMENT, "adj-1")
        deactivate_account(self.company, self.equity.pk)
        self.assertEqual(len(reverse_journal(self.company, journal.pk)), 2)

    def test_ledger_is_balanced_after_many_postings(self):
        for n in range(5):
            self.owner_contribution(f"{n + 1}00.00", f"adj-{n}")
        self.assertListEqual(ledger_is_balanced(self.company), [])

    def test_journal_header_cannot_be_deleted(self):
        self.owner_contribution()
        journal = journal_for(self.company, ReferenceType.ADJUSTMENT, "adj-1")
        with self.assertRaises(ValidationError):
            with transaction.atomic():
                journal.delete()
