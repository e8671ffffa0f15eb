from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .exceptions import LedgerInvariantError
from .models import Account, Bill, Invoice, JournalLine, Payment

"""
Model.delete() is already blocked on documents; the receivers below
also catch queryset deletes and cascades from a parent row.
"""


# pre_delete signal auto-fires just before Django deletes a model instance
@receiver(pre_delete, sender=Account)
def prevent_delete_account(sender, instance, **kwargs):
    if JournalLine.objects.filter(account=instance).exists():
        raise LedgerInvariantError("Cannot delete account used in journal lines.")
    # unused accounts too: deactivate keeps the code reserved
    raise LedgerInvariantError("Accounts are never deleted, deactivate them instead.")


@receiver(pre_delete, sender=Invoice)
def prevent_delete_invoice(sender, instance, **kwargs):
    # Invoice numbers are never freed; cancel instead
    raise LedgerInvariantError(
        f"Invoice {instance.invoice_number} cannot be deleted, cancel it instead."
    )


@receiver(pre_delete, sender=Bill)
def prevent_delete_bill(sender, instance, **kwargs):
    raise LedgerInvariantError(f"Bill {instance.bill_number} cannot be deleted.")


@receiver(pre_delete, sender=Payment)
def prevent_delete_payment(sender, instance, **kwargs):
    # its posting stays in the ledger, so must the payment
    raise LedgerInvariantError(f"Payment {instance.payment_number} cannot be deleted.")
