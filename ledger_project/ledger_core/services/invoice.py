import logging
from django.db import transaction
from django.utils import timezone
from .. import conf
from ..exceptions import (InvalidTransitionError, LedgerInvariantError,
                          LedgerValidationError, OverpaymentError)
from ..models import (AccountType, Invoice, InvoiceLine, InvoiceStatus,
                      RecurringFrequency, ReferenceType, SequenceKind)
from ..models.invoice import check_status_amounts
from .audit_helper import log_action
from .chart import get_account_by_code
from .common import (aging_days, get_for_company, parse_money, require,
                     normalize_keys, resolve_company)
from .concurrency import compare_and_swap
from .documents import (document_amounts, document_dates, grouped_amounts,
                        open_status_after_due_check, parse_lines)
from .posting import journal_for, post, reverse_journal
from .sequence import next_document_number

logger = logging.getLogger(__name__)

# Statuses that still carry a receivable balance
OPEN_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE)


# ----------------------------------------------
# Invoice creation
# ----------------------------------------------
def create_invoice(company, data, user=None):
    """
    Create an invoice and its revenue posting in one atomic step:
      Debit: Accounts Receivable = total
      Credit: Revenue (per line account, tax to default revenue) = total
    Returns (invoice, postings).
    """
    company = resolve_company(company)
    data = normalize_keys(data)

    """ Input validation (nothing written yet) """
    customer_id = str(require(data, "customer_id"))
    issue_date, due_date, terms = document_dates(data, "issue_date")
    lines = parse_lines(company, data.get("lines"), (AccountType.REVENUE,), "Invoice")
    subtotal, tax_amount, total = document_amounts(data, lines)

    status = data.get("status") or InvoiceStatus.DRAFT
    if status not in (InvoiceStatus.DRAFT, InvoiceStatus.SENT):
        raise LedgerValidationError(
            {"status": "New invoices start as 'draft' or 'sent'."}
        )
    frequency = data.get("recurring_frequency") or None
    if frequency and frequency not in RecurringFrequency.values:
        raise LedgerValidationError(
            {"recurring_frequency": f"'{frequency}' is not a known frequency."}
        )

    ar_account = get_account_by_code(company, conf.account_code("accounts_receivable"))
    revenue_account = get_account_by_code(company, conf.account_code("revenue"))

    with transaction.atomic():
        # allocated inside the transaction: a rollback gives the number up
        # together with the invoice, committed numbers are never reused
        invoice_number = next_document_number(company, SequenceKind.INVOICE)
        invoice = Invoice(
            company=company,
            invoice_number=invoice_number,
            customer_id=customer_id,
            load_id=data.get("load_id") or None,
            issue_date=issue_date,
            due_date=due_date,
            subtotal=subtotal,
            tax_amount=tax_amount,
            total_amount=total,
            status=status,
            terms=terms,
            memo=data.get("memo"),
            aging_days=aging_days(due_date, timezone.localdate()),
            is_recurring=bool(data.get("is_recurring") or frequency),
            recurring_frequency=frequency,
            created_by=user if getattr(user, "pk", None) else None,
        )
        invoice.save()

        for line in lines:
            InvoiceLine.objects.create(
                company=company,
                invoice=invoice,
                description=line["description"],
                quantity=line["quantity"],
                rate=line["rate"],
                amount=line["amount"],
                account=line["account"],
            )

        # Debit AR (single line), credit revenue per account
        credits = grouped_amounts(
            lines, revenue_account, tax_amount if lines else total
        )
        posting_lines = [
            {
                "account": ar_account,
                "debit": total,
                "description": f"Invoice {invoice_number}",
            }
        ] + [
            {
                "account_id": account_id,
                "credit": amount,
                "description": f"Revenue: invoice {invoice_number}",
            }
            for account_id, amount in credits
        ]
        postings = post(
            company,
            issue_date,
            posting_lines,
            ReferenceType.INVOICE,
            invoice.pk,
            user=user,
            description=f"Invoice {invoice_number}",
        )

        # Log Invoice creation
        log_action(
            action="create",
            instance=invoice,
            user=user,
            changes={"invoice_number": invoice_number, "total": str(total), "status": status},
        )

    logger.info(
        "invoice %s created for company %s (total %s)", invoice_number, company.pk, total
    )
    return invoice, postings


def get_invoice(company, invoice_id) -> Invoice:
    company = resolve_company(company)
    return get_for_company(Invoice.objects, company, invoice_id, "Invoice")


def _locked_invoice(company, invoice_id) -> Invoice:
    return get_for_company(
        Invoice.objects.select_for_update(), company, invoice_id, "Invoice"
    )


# ----------------------------------------------
# Invoice status update workflows
# ----------------------------------------------
def issue_invoice(company, invoice_id, user=None) -> Invoice:
    """Move invoice from draft → sent"""
    company = resolve_company(company)
    with transaction.atomic():
        invoice = _locked_invoice(company, invoice_id)
        if invoice.status != InvoiceStatus.DRAFT:
            raise InvalidTransitionError(
                f"Cannot issue invoice in status '{invoice.status}'."
            )
        compare_and_swap(invoice, invoice.version, status=InvoiceStatus.SENT)
        log_action(
            action="issue",
            instance=invoice,
            user=user,
            changes={"status": [InvoiceStatus.DRAFT, InvoiceStatus.SENT]},
        )
    logger.info("invoice %s issued", invoice.invoice_number)
    return invoice


def cancel_invoice(company, invoice_id, user=None, reason=None) -> Invoice:
    """
    draft|sent → cancelled (terminal).
    The revenue posting is offset by a reversal entry, the invoice
    row and its number stay.
    """
    company = resolve_company(company)
    with transaction.atomic():
        invoice = _locked_invoice(company, invoice_id)
        if not invoice.can_transition(InvoiceStatus.CANCELLED) or invoice.amount_paid != 0:
            logger.warning(
                "cancel of invoice %s rejected (status %s, paid %s)",
                invoice.invoice_number, invoice.status, invoice.amount_paid,
            )
            raise InvalidTransitionError(
                f"Cannot cancel invoice in status '{invoice.status}'."
            )
        old_status = invoice.status
        journal = journal_for(company, ReferenceType.INVOICE, invoice.pk)
        if journal is not None:
            reverse_journal(
                company,
                journal.pk,
                user=user,
                transaction_date=timezone.localdate(),
                description=f"Cancel invoice {invoice.invoice_number}",
            )
        compare_and_swap(invoice, invoice.version, status=InvoiceStatus.CANCELLED)
        log_action(
            action="cancel",
            instance=invoice,
            user=user,
            changes={"status": [old_status, InvoiceStatus.CANCELLED], "reason": reason},
        )
    logger.info("invoice %s cancelled", invoice.invoice_number)
    return invoice


def update_invoice_status(company, invoice_id, status, amount_paid=None, user=None) -> Invoice:
    """
    Administrative override of status (and optionally amount paid).
    Still enforced:
      - amount paid never exceeds the total, never decreases
      - paid ⇔ amount paid == total, partial ⇔ 0 < amount paid < total
      - cancelled is terminal (cancelling goes through cancel_invoice)
    """
    company = resolve_company(company)
    if status not in InvoiceStatus.values:
        raise LedgerValidationError({"status": f"'{status}' is not a valid status."})
    if status == InvoiceStatus.CANCELLED:
        return cancel_invoice(company, invoice_id, user=user)

    new_paid = None
    if amount_paid is not None:
        new_paid = parse_money({"amount_paid": amount_paid}, "amount_paid")

    with transaction.atomic():
        invoice = _locked_invoice(company, invoice_id)
        if invoice.status == InvoiceStatus.CANCELLED:
            raise InvalidTransitionError("Cancelled invoices cannot change status.")
        if new_paid is None:
            new_paid = invoice.amount_paid
        if new_paid < invoice.amount_paid:
            raise LedgerInvariantError("Amount paid can never decrease.")
        if new_paid > invoice.total_amount:
            raise OverpaymentError(
                f"Amount paid {new_paid} exceeds invoice total {invoice.total_amount}."
            )
        error = check_status_amounts(status, new_paid, invoice.total_amount)
        if error:
            raise InvalidTransitionError(error)

        old = {"status": invoice.status, "amount_paid": str(invoice.amount_paid)}
        compare_and_swap(invoice, invoice.version, status=status, amount_paid=new_paid)
        log_action(
            action="status_override",
            instance=invoice,
            user=user,
            changes={"before": old, "after": {"status": status, "amount_paid": str(new_paid)}},
        )
    return invoice


def refresh_invoice_aging(company=None, today=None) -> int:
    """
    Recompute aging days for every unsettled invoice and flip the
    derived overdue state both ways (overdue ⇄ sent/partial).
    `company=None` refreshes every tenant. Returns rows changed.
    """
    today = today or timezone.localdate()
    qs = Invoice.objects.exclude(
        status__in=[InvoiceStatus.PAID, InvoiceStatus.CANCELLED]
    )
    if company is not None:
        qs = qs.for_company(resolve_company(company))

    changed = 0
    for invoice_id in qs.values_list("pk", flat=True):
        with transaction.atomic():
            invoice = Invoice.objects.select_for_update().get(pk=invoice_id)
            new_aging = aging_days(invoice.due_date, today)
            new_status = invoice.status
            if invoice.status in OPEN_STATUSES:
                open_status = (
                    InvoiceStatus.PARTIAL if invoice.amount_paid > 0 else InvoiceStatus.SENT
                )
                new_status = open_status_after_due_check(invoice, today, open_status)
            if new_aging == invoice.aging_days and new_status == invoice.status:
                continue
            old_status = invoice.status
            compare_and_swap(
                invoice, invoice.version, aging_days=new_aging, status=new_status
            )
            if new_status != old_status:
                log_action(
                    action="aging",
                    instance=invoice,
                    changes={"status": [old_status, new_status], "aging_days": new_aging},
                )
            changed += 1
    logger.info("invoice aging refreshed: %s rows changed", changed)
    return changed


# ----------------------------------------------
# Queries
# ----------------------------------------------
def list_invoices(company, status=None, customer_id=None, start_date=None, end_date=None):
    """Newest first; optional status / customer / issue-date range filters"""
    company = resolve_company(company)
    qs = Invoice.objects.for_company(company)
    if status:
        qs = qs.filter(status=status)
    if customer_id:
        qs = qs.filter(customer_id=str(customer_id))
    if start_date:
        qs = qs.filter(issue_date__gte=start_date)
    if end_date:
        qs = qs.filter(issue_date__lte=end_date)
    return list(qs.order_by("-created_at", "-id"))
