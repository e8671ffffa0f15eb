import calendar
import logging
from datetime import timedelta
from django.db import transaction
from django.utils import timezone
from ..exceptions import LedgerValidationError
from ..models import (RecurringFrequency, RecurringRun, RecurringTransaction,
                      RecurringTransactionType)
from .audit_helper import log_action
from .bill import create_bill
from .common import (get_for_company, normalize_keys, parse_date,
                     resolve_company)
from .invoice import create_invoice

logger = logging.getLogger(__name__)

# calendar months per step; weekly is handled separately
MONTHS_PER_STEP = {
    RecurringFrequency.MONTHLY: 1,
    RecurringFrequency.QUARTERLY: 3,
    RecurringFrequency.YEARLY: 12,
}

# template keys that belong to one concrete document, not the template
PER_DOCUMENT_KEYS = (
    "issue_date", "bill_date", "due_date", "bill_number", "vendor_bill_number", "status",
)


def advance_run_date(current, frequency, anchor_day):
    """
    Next run date after `current`.
    Weekly adds 7 days; the others move whole calendar months and land on
    the anchor day, clamped to the month's last day (Jan 31 → Feb 28 → Mar 31).
    """
    if frequency == RecurringFrequency.WEEKLY:
        return current + timedelta(days=7)
    if frequency not in MONTHS_PER_STEP:
        raise LedgerValidationError({"frequency": f"'{frequency}' is not a known frequency."})

    month_index = current.month - 1 + MONTHS_PER_STEP[frequency]
    year = current.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return current.replace(year=year, month=month, day=min(anchor_day, last_day))


def _reject_floats(value, path="template_data"):
    # money is stored as strings; a float here would fail on every run
    if isinstance(value, float):
        raise LedgerValidationError({path: "Amounts must be decimal strings, not floats."})
    if isinstance(value, dict):
        for key, item in value.items():
            _reject_floats(item, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _reject_floats(item, f"{path}[{index}]")


# ----------------------------
# Template registration
# ----------------------------
def schedule(company, name, transaction_type, frequency, template_data,
             start_date=None, user=None) -> RecurringTransaction:
    """
    Register a recurring invoice/bill template.
    First run is `start_date`, or today advanced by one interval.
    The anchor day is the first run's day-of-month.
    """
    company = resolve_company(company)
    if not name:
        raise LedgerValidationError({"name": "This field is required."})
    if transaction_type not in RecurringTransactionType.values:
        raise LedgerValidationError(
            {"transaction_type": f"'{transaction_type}' must be invoice or bill."}
        )
    if frequency not in RecurringFrequency.values:
        raise LedgerValidationError({"frequency": f"'{frequency}' is not a known frequency."})
    if not isinstance(template_data, dict):
        raise LedgerValidationError({"template_data": "Template data must be an object."})

    data = normalize_keys(template_data)
    _reject_floats(data)
    party = "customer_id" if transaction_type == RecurringTransactionType.INVOICE else "vendor_id"
    if not data.get(party):
        raise LedgerValidationError({party: "This field is required."})

    if start_date is not None:
        next_run = parse_date(start_date, "start_date")
    else:
        today = timezone.localdate()
        next_run = advance_run_date(today, frequency, today.day)

    with transaction.atomic():
        template = RecurringTransaction(
            company=company,
            template_name=name,
            transaction_type=transaction_type,
            frequency=frequency,
            next_run_date=next_run,
            anchor_day=next_run.day,
            template_data=data,
        )
        template.save()
        log_action(
            action="schedule",
            instance=template,
            user=user,
            changes={"frequency": frequency, "next_run_date": next_run.isoformat()},
        )
    logger.info("recurring %s '%s' scheduled from %s", transaction_type, name, next_run)
    return template


def deactivate(company, template_id, user=None) -> RecurringTransaction:
    company = resolve_company(company)
    with transaction.atomic():
        template = get_for_company(
            RecurringTransaction.objects.select_for_update(),
            company, template_id, "Recurring template",
        )
        template.is_active = False
        template.save(update_fields=["is_active", "updated_at"])
        log_action(action="deactivate", instance=template, user=user)
    return template


# ----------------------------
# Materialization
# ----------------------------
def _materialize(template, run_date):
    """Create the document for one run date; returns (type, pk)"""
    # the template itself stays untouched
    data = {
        k: v for k, v in template.template_data.items() if k not in PER_DOCUMENT_KEYS
    }
    data["memo"] = data.get("memo") or f"Recurring: {template.template_name}"
    if template.transaction_type == RecurringTransactionType.INVOICE:
        data["issue_date"] = run_date
        data["status"] = "sent"
        invoice, _ = create_invoice(template.company, data)
        return RecurringTransactionType.INVOICE, invoice.pk
    data["bill_date"] = run_date
    bill, _ = create_bill(template.company, data)
    return RecurringTransactionType.BILL, bill.pk


def _run_once(template_id, run_date):
    """
    One atomic step: document + RecurringRun + template advance.
    Returns 1 when a document was created, 0 when the date already ran.
    """
    with transaction.atomic():
        template = RecurringTransaction.objects.select_for_update().select_related(
            "company"
        ).get(pk=template_id)
        if not template.is_active or template.next_run_date != run_date:
            # deactivated meanwhile, or another worker got here first
            return 0

        created = 0
        if not RecurringRun.objects.filter(template=template, scheduled_date=run_date).exists():
            document_type, document_id = _materialize(template, run_date)
            RecurringRun.objects.create(
                company=template.company,
                template=template,
                scheduled_date=run_date,
                document_type=document_type,
                document_id=document_id,
            )
            created = 1

        template.last_run_date = run_date
        template.next_run_date = advance_run_date(
            run_date, template.frequency, template.anchor_day
        )
        template.last_error = None
        template.save(
            update_fields=["last_run_date", "next_run_date", "last_error", "updated_at"]
        )
    return created


def run_due(now=None) -> int:
    """
    Materialize every missed run of every active template up to `now`
    (a date, default today), one document per run date.
    A failing template keeps its next_run_date, stores the error and
    is retried on the next call; the others carry on.
    Returns the number of documents created.
    """
    today = parse_date(now, "now") if now else timezone.localdate()
    due_ids = list(
        RecurringTransaction.objects.filter(is_active=True, next_run_date__lte=today)
        .order_by("next_run_date", "id")
        .values_list("pk", flat=True)
    )

    count = 0
    for template_id in due_ids:
        run_date = None
        try:
            while True:
                run_date, is_active = (
                    RecurringTransaction.objects.filter(pk=template_id)
                    .values_list("next_run_date", "is_active")
                    .get()
                )
                if not is_active or run_date > today:
                    break
                count += _run_once(template_id, run_date)
        except Exception as exc:
            # isolated per template: record and move on
            logger.exception("recurring template %s failed for %s", template_id, run_date)
            RecurringTransaction.objects.filter(pk=template_id).update(
                last_error=str(exc)[:2000], updated_at=timezone.now()
            )
    logger.info("recurring run for %s: %s documents created", today, count)
    return count


def process_due_transactions(now=None):
    """Entry point for Celery beat and the management command"""
    try:
        count = run_due(now)
    except Exception:
        logger.exception("recurring processing aborted")
        return {"success": False, "count": 0}
    return {"success": True, "count": count}
