from django.db import models
from .company import Company


class SequenceKind(models.TextChoices):
    INVOICE = "invoice", "Invoice"
    BILL = "bill", "Bill"
    PAYMENT = "payment", "Payment"


# Per-company document counter.
# Incremented under a row lock, so numbers are never handed out twice
# and never reused (cancelled documents keep theirs)
class DocumentSequence(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    kind = models.CharField(max_length=10, choices=SequenceKind.choices)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "kind"], name="uq_sequence_company_kind"
            ),
        ]

    def __str__(self):
        return f"{self.company_id}:{self.kind}={self.last_value}"
