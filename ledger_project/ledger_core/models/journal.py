import hashlib
import json
from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import JournalManager
from .account import Account
from .company import Company


# What kind of business document caused a posting group
class ReferenceType(models.TextChoices):
    INVOICE = "invoice", "Invoice"
    BILL = "bill", "Bill"
    PAYMENT = "payment", "Payment"
    ADJUSTMENT = "adjustment", "Adjustment"
    REVERSAL = "reversal", "Reversal"


# ---------- Journal (Header) & JournalLine ----------
class JournalEntry(models.Model):  # One balanced posting group
    """
    Header of a balanced group of journal lines.
    - exactly one header per (company, reference_type, reference_id)
    - append-only: corrections are new reversal entries, never edits
    """

    # Multi-tenant: every entry belongs to a company
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # Business metadata
    date = models.DateField()  # transaction date of every line in the group
    # The document that caused this posting (invoice, bill, payment...)
    reference_type = models.CharField(
        max_length=20, choices=ReferenceType.choices
    )
    reference_id = models.CharField(max_length=64)
    description = models.TextField(null=True, blank=True)
    # Track user who posted it
    # (Nullable in case the posting was automated, e.g. recurring run)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)
    # Fingerprint-based idempotency (safe to call twice if nothing has changed)
    posting_fingerprint = models.CharField(max_length=64)

    # Enforce tenant scoping (no bulk update/delete)
    objects = JournalManager()

    class Meta:
        ordering = ("date", "id")
        verbose_name_plural = "journal entries"
        # Speed up listing & filtering
        # (e.g. show all entries this month)
        indexes = [
            models.Index(fields=["company", "date"], name="je_company_date_idx"),
        ]

        constraints = [
            # Within one company, one balanced group per source document
            # Across companies, duplicates are allowed
            models.UniqueConstraint(
                fields=["company", "reference_type", "reference_id"],
                name="uq_je_company_reference",
            )
        ]

    def __str__(self):
        return f"JE {self.pk} {self.date} [{self.reference_type}:{self.reference_id}]"

    # Aggregate all debit and credit amounts across entry’s lines
    def compute_totals(self):
        """Return debits, credits sums for lines"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit"),
            total_credit=models.Sum("credit"),
        )
        return (
            aggs["total_debit"] or Decimal("0.00"),
            aggs["total_credit"] or Decimal("0.00"),
        )

    # True if double-entry rule holds: total debits = total credits
    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit

    @staticmethod
    def posting_payload(company_id, date, lines):
        """Deterministic representation of what matters for posting

        Deterministic = no matter when or how you call it,
        if the data hasn't changed,
        the JSON string will always look the same.

        `lines` are normalized dicts (account_id, debit, credit, description)
        in the order the caller supplied them.
        """
        payload = {
            "company": company_id,
            "date": date.isoformat(),  # ISO format like "2025-09-15"
            "lines": [
                {
                    "acct": line["account_id"],
                    "debit": str(line["debit"]),
                    "credit": str(line["credit"]),
                    "desc": line.get("description") or "",
                }
                for line in lines
            ],
        }
        # Converts payload dict into a compact JSON string
        return json.dumps(payload, separators=(",", ":"), sort_keys=True)

    @classmethod
    def fingerprint_for(cls, company_id, date, lines):
        # hash (sha256) JSON string to produce a fingerprint
        payload = cls.posting_payload(company_id, date, lines)
        return hashlib.sha256(payload.encode()).hexdigest()

    def save(self, *args, **kwargs):
        # Headers are written once, together with their lines
        if self.pk and JournalEntry.objects.filter(pk=self.pk).exists():
            raise ValidationError("Journal entries are immutable.")
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Journal entries cannot be deleted; post a reversal instead."
        )


class JournalLine(models.Model):  # Stores Lines ( credits / debits )
    """
    One row of the general ledger.
    Each line belongs to a journal entry and to a GL account;
    exactly one of debit / credit is nonzero.
    """

    # Belongs to company & a journal entry
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    journal = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )

    # Must point to one Account (can’t delete account if lines exist → PROTECT)
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="journal_lines"
    )
    # Copied from the header so reports filter lines without a join
    transaction_date = models.DateField()

    # Description
    description = models.CharField(max_length=400, null=True, blank=True)

    # Amounts, always in the company currency
    debit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping (no bulk update/delete)
    objects = JournalManager()

    class Meta:
        ordering = ("journal", "id")
        # For fast queries like “all lines for this account” /
        # “all lines up to a date”
        indexes = [
            models.Index(
                fields=["company", "account"], name="jl_company_account_idx"
            ),
            models.Index(
                fields=["company", "transaction_date"], name="jl_company_date_idx"
            ),
        ]

        # Enforce debits and credits must be non-negative
        # and exactly one of them nonzero
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(debit__gte=0) &
                    models.Q(credit__gte=0)
                ),
                name="jl_non_negative_amounts",
            ),
            models.CheckConstraint(
                condition=(
                    (models.Q(debit=0) & models.Q(credit__gt=0)) |
                    (models.Q(credit=0) & models.Q(debit__gt=0))
                ),
                name="jl_debit_xor_credit",
            ),
        ]

    # Show journal, account, and amounts in debug logs
    def __str__(self):
        return f"{self.journal_id} | {self.account_id} | D:{self.debit} C:{self.credit}"

    # proxies to the header so a line reads like a full ledger row
    @property
    def reference_type(self):
        return self.journal.reference_type

    @property
    def reference_id(self):
        return self.journal.reference_id

    @property
    def created_by(self):
        return self.journal.created_by

    def clean(self):
        # Ensure no negative values sneak in
        # (redundant with CheckConstraint but useful at app-level)
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Debit and credit must be >= 0")

        # Exactly one side carries the amount
        if (self.debit > 0) and (self.credit > 0):
            raise ValidationError(
                "JournalLine should not have both debit and credit > 0"
            )
        if (self.debit == 0) and (self.credit == 0):
            raise ValidationError(
                "JournalLine requires a non-0 amount on either debit or credit"
            )

        # Prevent “cross-company” contamination
        if self.journal_id and self.company_id != self.journal.company_id:
            raise ValidationError(
                "JournalLine.company must equal JournalEntry.company"
            )
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError(
                "JournalLine.account must belong to the same company."
            )

    def save(self, *args, **kwargs):
        # Lines are immutable once written
        if self.pk and JournalLine.objects.filter(pk=self.pk).exists():
            raise ValidationError(
                "Journal lines are immutable; post an offsetting entry instead."
            )
        # clean()+field validation always run whenever
        # you save a JournalLine programmatically
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Journal lines cannot be deleted; post an offsetting entry instead."
        )
