from django.db import transaction
from django.db.models import F
from django.utils import timezone
from ..models import DocumentSequence, SequenceKind

# Document number prefixes per sequence kind
PREFIXES = {
    SequenceKind.INVOICE: "INV",
    SequenceKind.BILL: "BILL",
    SequenceKind.PAYMENT: "PAY",
}


def next_sequence_value(company, kind) -> int:
    """
    Atomically allocate the next value of a per-company counter.
    - the counter row is locked until the caller's transaction ends,
      so two concurrent creates can never get the same number
    - values are never handed back, cancelled documents keep theirs
    """
    with transaction.atomic():
        # Lock (or create) the counter row
        seq, _ = DocumentSequence.objects.select_for_update().get_or_create(
            company=company, kind=kind
        )
        # Increment in the database, not in Python
        DocumentSequence.objects.filter(pk=seq.pk).update(
            last_value=F("last_value") + 1
        )
        seq.refresh_from_db(fields=["last_value"])
        return seq.last_value


def format_document_number(kind, value, year=None) -> str:
    # e.g. INV-2025-0001 (4-digit year, at least 4-digit sequence)
    year = year or timezone.localdate().year
    return f"{PREFIXES[kind]}-{year:04d}-{value:04d}"


def next_document_number(company, kind, year=None) -> str:
    return format_document_number(kind, next_sequence_value(company, kind), year)
