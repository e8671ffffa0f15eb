from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .banking import BankAccount
from .bill import Bill
from .company import Company
from .invoice import Invoice


class PaymentType(models.TextChoices):
    INVOICE_PAYMENT = "invoice_payment", "Invoice payment"
    BILL_PAYMENT = "bill_payment", "Bill payment"
    ADJUSTMENT = "adjustment", "Adjustment"


PAYMENT_METHODS = [
    # Keeps payment method standardized across records
    ("check", "Check"),
    ("ach", "ACH"),
    ("card", "Card"),
    ("cash", "Cash"),
    ("wire", "Wire"),
]


# ---------- Payments ----------
class Payment(models.Model):
    """
    Cash movement tied to one invoice or bill, or a standalone adjustment.
    Each payment owns exactly one balanced posting group.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # PAY-<year>-<seq>, never reused
    payment_number = models.CharField(max_length=64)
    payment_type = models.CharField(max_length=20, choices=PaymentType.choices)
    # target document (at most one of them)
    invoice = models.ForeignKey(
        Invoice, null=True, blank=True, on_delete=models.PROTECT,
        related_name="payments",
    )
    bill = models.ForeignKey(
        Bill, null=True, blank=True, on_delete=models.PROTECT,
        related_name="payments",
    )
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHODS)
    payment_date = models.DateField()
    bank_account = models.ForeignKey(
        BankAccount, null=True, blank=True, on_delete=models.PROTECT
    )
    check_number = models.CharField(max_length=50, null=True, blank=True)
    reference_number = models.CharField(max_length=100, null=True, blank=True)
    memo = models.TextField(null=True, blank=True)
    status = models.CharField(max_length=20, default="processed")
    # flipped when a bank transaction match is accepted
    is_matched = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(
                fields=["company", "payment_date"], name="pay_company_date_idx"
            ),
            models.Index(
                fields=["company", "payment_type"], name="pay_company_type_idx"
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "payment_number"],
                name="uq_payment_company_number",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="pay_amount_positive"
            ),
            # a payment never settles an invoice and a bill at once
            models.CheckConstraint(
                condition=models.Q(invoice__isnull=True) | models.Q(bill__isnull=True),
                name="pay_single_target",
            ),
        ]

    def __str__(self):
        return f"{self.payment_number} {self.payment_type} {self.amount}"

    @property
    def reference_id(self):
        """Id of the settled document, None for standalone payments"""
        if self.invoice_id:
            return self.invoice_id
        return self.bill_id

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Payment amount must be > 0.")
        if self.invoice_id and self.bill_id:
            raise ValidationError(
                "Payment cannot reference both invoice and bill.")
        if self.payment_type == PaymentType.INVOICE_PAYMENT and self.bill_id:
            raise ValidationError("Invoice payments cannot target a bill.")
        if self.payment_type == PaymentType.BILL_PAYMENT and self.invoice_id:
            raise ValidationError("Bill payments cannot target an invoice.")
        # Prevent cross-company contamination
        for related in (self.invoice, self.bill, self.bank_account):
            if related is not None and related.company_id != self.company_id:
                raise ValidationError(
                    "Payment target must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
