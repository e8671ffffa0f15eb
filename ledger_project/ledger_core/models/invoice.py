from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .account import Account
from .company import Company


class InvoiceStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SENT = "sent", "Sent"
    PARTIAL = "partial", "Partially paid"
    PAID = "paid", "Paid"
    OVERDUE = "overdue", "Overdue"
    CANCELLED = "cancelled", "Cancelled"


class RecurringFrequency(models.TextChoices):
    WEEKLY = "weekly", "Weekly"
    MONTHLY = "monthly", "Monthly"
    QUARTERLY = "quarterly", "Quarterly"
    YEARLY = "yearly", "Yearly"


# Current state vs. allowed next states
# overdue is recomputed from the due date, so it can fall back to sent/partial
INVOICE_TRANSITIONS = {
    InvoiceStatus.DRAFT: {InvoiceStatus.SENT, InvoiceStatus.CANCELLED},
    InvoiceStatus.SENT: {
        InvoiceStatus.PARTIAL,
        InvoiceStatus.PAID,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.CANCELLED,
    },
    InvoiceStatus.PARTIAL: {InvoiceStatus.PAID, InvoiceStatus.OVERDUE},
    InvoiceStatus.OVERDUE: {
        InvoiceStatus.SENT,
        InvoiceStatus.PARTIAL,
        InvoiceStatus.PAID,
    },
    InvoiceStatus.PAID: set(),  # "paid" → (no further transitions)
    InvoiceStatus.CANCELLED: set(),  # terminal
}


def check_status_amounts(status, amount_paid, total_amount):
    """Shared status/amount rules for invoices and bills.
    Returns an error message, or None when consistent."""
    if amount_paid < 0:
        return "Amount paid cannot be negative."
    if amount_paid > total_amount:
        return "Amount paid cannot exceed total amount."
    if status == "paid" and amount_paid != total_amount:
        return "Status 'paid' requires amount paid == total amount."
    if status == "partial" and not (0 < amount_paid < total_amount):
        return "Status 'partial' requires 0 < amount paid < total amount."
    if status in ("draft", "sent", "received", "cancelled") and amount_paid != 0:
        return f"Status '{status}' requires nothing paid."
    if status == "overdue" and amount_paid >= total_amount:
        return "Status 'overdue' requires an outstanding balance."
    return None


class Invoice(models.Model):  # Represents a customer invoice

    # Invoice belongs to one company (multi-tenant)
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    # Identifiers and key dates
    # human-readable (e.g. "INV-2025-0001"), never reused
    invoice_number = models.CharField(max_length=64)
    # Customers and loads live outside the ledger, keep their ids only
    customer_id = models.CharField(max_length=64)
    load_id = models.CharField(max_length=64, null=True, blank=True)
    issue_date = models.DateField()
    # payment deadline (derived from terms when not supplied)
    due_date = models.DateField()

    # Money: subtotal + tax = total
    subtotal = models.DecimalField(max_digits=18, decimal_places=2)
    tax_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    total_amount = models.DecimalField(max_digits=18, decimal_places=2)
    # Grows with every applied payment, never shrinks
    amount_paid = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    status = models.CharField(
        max_length=10, choices=InvoiceStatus.choices, default=InvoiceStatus.DRAFT
    )
    """ Workflow:
        draft = not yet finalized.
        sent = issued, nothing paid.
        partial = some payments applied.
        paid = fully settled.
        overdue = due date passed with balance > 0 (recomputed).
        cancelled = voided before any payment. """

    terms = models.CharField(max_length=50, default="Net 30")
    memo = models.TextField(null=True, blank=True)
    # days past due as of the last aging refresh (negative = not yet due)
    aging_days = models.IntegerField(default=0)

    is_recurring = models.BooleanField(default=False)
    recurring_frequency = models.CharField(
        max_length=20, choices=RecurringFrequency.choices, null=True, blank=True
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    # Optimistic concurrency: bumped on every payment / status write
    version = models.PositiveIntegerField(default=0)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-created_at", "-id")
        # Optimize for fast lookups by status or customer
        indexes = [
            models.Index(fields=["company", "status"], name="inv_company_status_idx"),
            models.Index(
                fields=["company", "customer_id"], name="inv_company_customer_idx"
            ),
            models.Index(fields=["company", "due_date"], name="inv_company_due_idx"),
        ]

        constraints = [
            # Within one company, each invoice number must be unique
            # Across companies, duplicates are allowed
            models.UniqueConstraint(
                fields=["company", "invoice_number"],
                name="uq_invoice_company_number"
            ),
            # Never overpaid, never negative
            models.CheckConstraint(
                condition=models.Q(amount_paid__gte=0) &
                models.Q(amount_paid__lte=models.F("total_amount")),
                name="inv_amount_paid_within_total",
            ),
            models.CheckConstraint(
                condition=models.Q(subtotal__gte=0) & models.Q(tax_amount__gte=0),
                name="inv_non_negative_amounts",
            ),
        ]

    def __str__(self):
        # If no invoice number, fall back to database ID
        return f"Inv {self.invoice_number or self.pk}"

    @property
    def balance_due(self):
        return self.total_amount - self.amount_paid

    def can_transition(self, new_status):
        return new_status in INVOICE_TRANSITIONS.get(self.status, set())

    def clean(self):
        # total is always derived, never typed in
        if self.total_amount != self.subtotal + self.tax_amount:
            raise ValidationError("Total amount must equal subtotal + tax amount.")
        error = check_status_amounts(
            self.status, self.amount_paid, self.total_amount
        )
        if error:
            raise ValidationError(error)
        if self.due_date and self.issue_date and self.due_date < self.issue_date:
            raise ValidationError("Due date cannot be before issue date.")

    def save(self, *args, **kwargs):
        self.full_clean()  # will trigger clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        # Void or cancel an invoice, instead of deleting it outright
        raise ValidationError("Invoices are never deleted; cancel them instead.")


class InvoiceLine(
    models.Model
):  # Each line describes a service billed on the invoice

    # Line belongs to both company and parent invoice
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="lines")
    description = models.TextField(null=True, blank=True)

    # Core pricing logic: quantity × rate = amount
    quantity = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("1")
    )
    rate = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    # Post to the correct revenue GL account (default revenue when empty)
    account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        # You can’t delete an account if lines still point to it
        on_delete=models.PROTECT,
        help_text="Revenue account for this line",
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("invoice", "id")
        # Speed up queries like “all lines for this invoice.”
        indexes = [
            models.Index(fields=["company", "invoice"], name="invl_company_invoice_idx"),
        ]

        # Ensure quantity & rate are never negative
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0) &
                models.Q(rate__gte=0) & models.Q(amount__gte=0),
                name="invl_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"Invoice line {self.pk}: {self.description or ''} {self.amount}"

    def clean(self):
        # Tenant safety
        if self.invoice_id and self.invoice.company_id != self.company_id:
            raise ValidationError("InvoiceLine.company must match Invoice.company")
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError("InvoiceLine.company must match Account.company")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
