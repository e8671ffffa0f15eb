from django.core.exceptions import ValidationError
from django.db import models
from django.db.models.functions import Cast
from ..managers import AccountManager
from .company import Company


# Classify general ledger accounts
class AccountType(models.TextChoices):
    ASSET = "asset", "Asset"
    LIABILITY = "liability", "Liability"
    EQUITY = "equity", "Equity"
    REVENUE = "revenue", "Revenue"
    EXPENSE = "expense", "Expense"


# Define whether the account normally increases
# on the debit side or credit side
DEBIT_NORMAL_TYPES = (AccountType.ASSET, AccountType.EXPENSE)
CREDIT_NORMAL_TYPES = (AccountType.LIABILITY, AccountType.EQUITY, AccountType.REVENUE)


class Account(models.Model):
    """
    Actual ledger account entry in Chart of Accounts.
    - code should be unique per company
    - ac_type: determines reporting -BS vs P&L
    - normal balance is derived from ac_type when building reports
    """

    company = models.ForeignKey(  # Each account belongs to one company
        Company,  # All reports must filter by company_id to prevent data leaks
        on_delete=models.CASCADE,
    )
    # Numeric code, lets you sort/group accounts consistently in reports.
    code = models.CharField(
        max_length=20
    )
    name = models.CharField(
        max_length=255
    )  # Human-readable name → "Cash on Hand", "Accounts Payable".

    # Classify account into one of the 5 basic accounting types
    ac_type = models.CharField(
        max_length=10,
        choices=AccountType.choices,
        # This tells system whether the account
        # goes on the Balance Sheet or P&L
    )

    # Optional hierarchy:
    # you can make sub-accounts
    # (e.g. 1000 Cash, 1010 Operating Account, 1020 Fuel Card Float)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        # you can’t delete a parent if children exist
        related_name="children",
    )
    description = models.TextField(null=True, blank=True)

    # “soft deactivate” accounts (hide in UI, stop new postings)
    # without deleting history
    is_active = models.BooleanField(
        default=True
    )
    is_control_account = models.BooleanField(
        default=False
    )  # marker for accounts that must reconcile with subledgers (AR, AP)

    created_at = models.DateTimeField(
        auto_now_add=True
    )  # Track when the account was created.
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = AccountManager()

    class Meta:
        # numeric code order, see AccountQuerySet.by_code
        ordering = ("company", Cast("code", models.BigIntegerField()), "code")
        indexes = [  # Optimize queries
            # For reports grouped by ac_type
            # (Trial Balance, P&L, Balance Sheet)
            models.Index(
                fields=["company", "ac_type"], name="acct_company_type_idx"
            ),
            models.Index(
                fields=["company", "parent"], name="acct_company_parent_idx"
            ),  # Sub-accounts by parent account
        ]

        """ Each company defines its own chart of accounts.
               Codes repeat across companies but must be unique within one. """
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_account_code"
            )
        ]

    def __str__(self):
        # Make accounts readable in logs and debugging
        return f"{self.code} – {self.name}"
        # Example: "1200 – Accounts Receivable".

    @property
    def normal_balance(self):
        return "debit" if self.ac_type in DEBIT_NORMAL_TYPES else "credit"

    def is_referenced(self):
        from .journal import JournalLine

        return JournalLine.objects.filter(account_id=self.pk).exists()

    def clean(self):
        """Enforce company consistency (multi-tenancy)"""
        # Check if parent account belongs to same company
        if self.parent_id and self.parent.company_id != self.company_id:
            raise ValidationError(
                "Parent & child accounts must belong to the same company"
            )

    def save(self, *args, **kwargs):
        """Enforce business immutability
        (can’t change the type of an account used in journal lines)"""
        if not self.pk:
            # If no primary key → this is a new object →
            # just save (no need for checks)
            return super().save(*args, **kwargs)
        # Fetch the previous version of account from DB
        old = Account.objects.filter(pk=self.pk).only("ac_type").first()

        # Historical reports depend on the type an account was posted under
        if old and old.ac_type != self.ac_type and self.is_referenced():
            raise ValidationError(
                "Cannot change the type of an account used in journal lines."
            )
        return super().save(*args, **kwargs)
