from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .account import Account
from .company import Company
from .invoice import RecurringFrequency, check_status_amounts


class BillStatus(models.TextChoices):
    RECEIVED = "received", "Received"
    APPROVED = "approved", "Approved"
    PAID = "paid", "Paid"
    OVERDUE = "overdue", "Overdue"


# Approval is a separate gate from the payment status
class ApprovalStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


# ---------- Bills / BillLines ----------

# Header represents vendor bill (Accounts Payable document)


class Bill(models.Model):
    # Bill belongs to a company (multi-tenant)
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # Vendors live outside the ledger, keep their id only
    vendor_id = models.CharField(max_length=64)
    # Ledger number, always BILL-<year>-<seq>
    bill_number = models.CharField(max_length=64)
    # Vendor’s own invoice number (e.g. "INV-4567"), unique per vendor only
    vendor_bill_number = models.CharField(max_length=64, null=True, blank=True)
    bill_date = models.DateField()
    # when payment is expected
    due_date = models.DateField()

    # Money: subtotal + tax = total
    subtotal = models.DecimalField(max_digits=18, decimal_places=2)
    tax_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    total_amount = models.DecimalField(max_digits=18, decimal_places=2)
    amount_paid = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    # Track workflow
    status = models.CharField(
        max_length=10, choices=BillStatus.choices, default=BillStatus.RECEIVED
    )  # received, approved, paid, overdue
    approval_status = models.CharField(
        max_length=10,
        choices=ApprovalStatus.choices,
        default=ApprovalStatus.PENDING,
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="approved_bills",
    )
    approved_at = models.DateTimeField(null=True, blank=True)

    terms = models.CharField(max_length=50, default="Net 30")
    memo = models.TextField(null=True, blank=True)
    aging_days = models.IntegerField(default=0)
    is_recurring = models.BooleanField(default=False)
    recurring_frequency = models.CharField(
        max_length=20, choices=RecurringFrequency.choices, null=True, blank=True
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="created_bills",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    # Optimistic concurrency: bumped on every payment / status write
    version = models.PositiveIntegerField(default=0)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-created_at", "-id")
        # Optimize queries for “lookup by status”
        # or “all bills for this vendor.”
        indexes = [
            models.Index(fields=["company", "status"], name="bill_company_status_idx"),
            models.Index(fields=["company", "vendor_id"], name="bill_company_vendor_idx"),
            models.Index(fields=["company", "due_date"], name="bill_company_due_idx"),
        ]

        constraints = [
            # Within one company, each bill number must be unique
            # Across companies, duplicates are allowed
            models.UniqueConstraint(
                fields=["company", "bill_number"],
                name="uq_bill_company_number"
            ),
            # Two vendors may both send "1001"; one vendor may not send it twice
            models.UniqueConstraint(
                fields=["company", "vendor_id", "vendor_bill_number"],
                condition=models.Q(vendor_bill_number__isnull=False),
                name="uq_bill_vendor_number",
            ),
            models.CheckConstraint(
                condition=models.Q(amount_paid__gte=0) &
                models.Q(amount_paid__lte=models.F("total_amount")),
                name="bill_amount_paid_within_total",
            ),
            models.CheckConstraint(
                condition=models.Q(subtotal__gte=0) & models.Q(tax_amount__gte=0),
                name="bill_non_negative_amounts",
            ),
        ]

    def __str__(self):
        # If no bill number, fall back to database ID
        return f"Bill: {self.bill_number or self.pk}"

    @property
    def balance_due(self):
        return self.total_amount - self.amount_paid

    @property
    def is_approved(self):
        return self.approval_status == ApprovalStatus.APPROVED

    def clean(self):
        if self.total_amount != self.subtotal + self.tax_amount:
            raise ValidationError("Total amount must equal subtotal + tax amount.")
        error = check_status_amounts(
            self.status, self.amount_paid, self.total_amount
        )
        if error:
            raise ValidationError(error)
        # approval gate: nothing moves toward payment before approval
        if self.status in (BillStatus.APPROVED, BillStatus.PAID) and not self.is_approved:
            raise ValidationError(
                f"Bill status '{self.status}' requires approval_status 'approved'."
            )
        if self.amount_paid > 0 and not self.is_approved:
            raise ValidationError("Unapproved bills cannot carry payments.")
        if self.due_date and self.bill_date and self.due_date < self.bill_date:
            raise ValidationError("Due date cannot be before bill date.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Bills are never deleted.")


class BillLine(models.Model):  # Each line describes a cost on the bill
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name="lines")
    description = models.TextField(null=True, blank=True)
    # free-text expense category from the vendor (fuel, tolls, repairs...)
    category = models.CharField(max_length=100, null=True, blank=True)
    quantity = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("1")
    )
    rate = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # Expense GL account (default expense when empty)
    account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        help_text="Expense account for this line",
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("bill", "id")
        indexes = [
            models.Index(fields=["company", "bill"], name="billl_company_bill_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0) &
                models.Q(rate__gte=0) & models.Q(amount__gte=0),
                name="billl_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"Bill line {self.pk}: {self.description or ''} {self.amount}"

    def clean(self):
        # Prevent cross-company contamination
        if self.bill_id and self.bill.company_id != self.company_id:
            raise ValidationError("BillLine.company must match Bill.company")
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError("BillLine.company must match Account.company")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
