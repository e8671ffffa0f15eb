from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .account import Account, AccountType
from .company import Company


# ---------- Banking ----------


class BankAccount(models.Model):  # Represents bank account company maintains
    # Belongs to a Company (multi-tenant)
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(
        max_length=200
    )  # e.g. "Operating Checking", "Fuel Card Float"
    # Partial account number for display/security
    account_number_masked = models.CharField(
        max_length=50, null=True, blank=True)
    # Cash account in the chart that mirrors this bank account
    ledger_account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="bank_accounts",
    )
    last_reconciled_at = models.DateField(
        null=True, blank=True
    )  # For reconciliation workflows

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        # A company cannot have two accounts with the same name
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_bankaccount_name"
            ),
        ]

    def __str__(self):
        # Show name + masked number for clarity
        if self.account_number_masked:
            return f"{self.name} ({self.account_number_masked})"
        return self.name

    def clean(self):
        if self.ledger_account_id:
            if self.ledger_account.company_id != self.company_id:
                raise ValidationError(
                    "Ledger account must belong to the same company.")
            if self.ledger_account.ac_type != AccountType.ASSET:
                raise ValidationError("Bank ledger account must be an asset.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


class BankTransaction(
    models.Model
):  # Represents single already-parsed line from the bank feed
    # Belongs to both a Company and a specific BankAccount
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # prevent BankAccount deletion if transactions exist
    bank_account = models.ForeignKey(
        BankAccount, null=True, blank=True, on_delete=models.PROTECT
    )
    # id assigned by the bank feed, matches refer to it
    external_id = models.CharField(max_length=100)
    posted_date = models.DateField()  # when it cleared
    # amount: positive = inflow (deposit), negative = outflow (payment)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    description = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        # Optimizes queries for reconciliation
        # (find all txns for a date)
        indexes = [
            models.Index(fields=["company", "posted_date"], name="bt_company_date_idx"),
        ]

        constraints = [
            # Within one company, each feed id appears once
            # Across companies, duplicates are allowed
            models.UniqueConstraint(
                fields=["company", "external_id"], name="uq_bt_company_external_id"
            )
        ]

    def __str__(self):
        return f"{self.external_id} - {self.posted_date} - {self.amount}"

    def clean(self):  # auto-runs when you call full_clean() before saving
        # Tenancy check
        # Ensure bank account chosen belongs to the same company
        if self.bank_account_id and self.bank_account.company_id != self.company_id:
            raise ValidationError(
                "Bank account must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


class MatchedType(models.TextChoices):
    INVOICE = "invoice", "Invoice"
    BILL = "bill", "Bill"
    PAYMENT = "payment", "Payment"


class BankTransactionMatch(models.Model):
    """
    One proposed link between a bank transaction and a ledger document.
    Rows are never deleted: every match attempt stays for audit.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # external bank transaction id (the feed's id, not our pk)
    bank_transaction_id = models.CharField(max_length=100)
    matched_type = models.CharField(max_length=10, choices=MatchedType.choices)
    matched_id = models.CharField(max_length=64)
    match_amount = models.DecimalField(max_digits=18, decimal_places=2)
    # 0.0000 – 1.0000
    confidence = models.DecimalField(max_digits=5, decimal_places=4)
    # confidence above the auto-accept threshold
    is_auto_matched = models.BooleanField(default=False)
    # operator promoted this proposal to the accepted one
    is_manually_accepted = models.BooleanField(default=False)
    matched_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    matched_at = models.DateTimeField(auto_now_add=True)
    accepted_at = models.DateTimeField(null=True, blank=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("matched_at", "id")
        indexes = [
            models.Index(
                fields=["company", "bank_transaction_id"], name="btm_company_bt_idx"
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(confidence__gte=0) & models.Q(confidence__lte=1),
                name="btm_confidence_0_1",
            ),
        ]

    def __str__(self):
        return (
            f"{self.bank_transaction_id} → {self.matched_type}:{self.matched_id} "
            f"({self.confidence})"
        )

    def clean(self):
        if self.confidence is not None and not (
            Decimal("0") <= self.confidence <= Decimal("1")
        ):
            raise ValidationError("Confidence must be between 0 and 1.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
