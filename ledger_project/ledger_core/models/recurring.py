from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from ..managers import TenantManager
from .company import Company
from .invoice import RecurringFrequency


class RecurringTransactionType(models.TextChoices):
    INVOICE = "invoice", "Invoice"
    BILL = "bill", "Bill"


# ---------- Recurring templates ----------
class RecurringTransaction(models.Model):
    """
    Named invoice/bill template fired on a calendar cadence.
    - next_run_date only moves forward
    - firing never mutates template_data
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    template_name = models.CharField(max_length=255)
    transaction_type = models.CharField(
        max_length=10, choices=RecurringTransactionType.choices
    )
    frequency = models.CharField(max_length=20, choices=RecurringFrequency.choices)
    next_run_date = models.DateField()
    # day-of-month monthly/quarterly/yearly runs stick to (clamped to month end)
    anchor_day = models.PositiveSmallIntegerField()
    # serialized create_invoice / create_bill payload (money as strings)
    template_data = models.JSONField(default=dict, encoder=DjangoJSONEncoder)
    is_active = models.BooleanField(default=True)
    last_run_date = models.DateField(null=True, blank=True)
    # message of the last failed run, cleared on success
    last_error = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("next_run_date", "id")
        indexes = [
            models.Index(
                fields=["is_active", "next_run_date"], name="rt_active_next_run_idx"
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(anchor_day__gte=1) & models.Q(anchor_day__lte=31),
                name="rt_anchor_day_1_31",
            ),
        ]

    def __str__(self):
        return f"{self.template_name} ({self.frequency}, next {self.next_run_date})"

    def clean(self):
        if not isinstance(self.template_data, dict):
            raise ValidationError("Template data must be an object.")

    def save(self, *args, **kwargs):
        if self.pk:
            # nextRunDate only ever moves forward
            old = (
                RecurringTransaction.objects.filter(pk=self.pk)
                .only("next_run_date")
                .first()
            )
            if old and self.next_run_date < old.next_run_date:
                raise ValidationError("next_run_date can only move forward.")
        self.full_clean()
        return super().save(*args, **kwargs)


class RecurringRun(models.Model):
    """Dedupe guard: one materialized document per template and run date"""

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    template = models.ForeignKey(
        RecurringTransaction, on_delete=models.CASCADE, related_name="runs"
    )
    scheduled_date = models.DateField()
    document_type = models.CharField(
        max_length=10, choices=RecurringTransactionType.choices
    )
    document_id = models.BigIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("scheduled_date", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["template", "scheduled_date"], name="uq_recurring_run_date"
            ),
        ]

    def __str__(self):
        return f"{self.template_id} @ {self.scheduled_date} → {self.document_type}:{self.document_id}"
