import logging
from django.db import transaction
from django.utils import timezone
from .. import conf
from ..exceptions import InvalidTransitionError, LedgerValidationError
from ..models import (AccountType, ApprovalStatus, Bill, BillLine, BillStatus,
                      RecurringFrequency, ReferenceType, SequenceKind)
from .audit_helper import log_action
from .chart import get_account_by_code
from .common import (aging_days, get_for_company, normalize_keys, require,
                     resolve_company)
from .concurrency import compare_and_swap
from .documents import (document_amounts, document_dates, grouped_amounts,
                        open_status_after_due_check, parse_lines)
from .posting import post
from .sequence import next_document_number

logger = logging.getLogger(__name__)


# ------------------------------------
# Bill creation
# ------------------------------------
def create_bill(company, data, user=None):
    """
    Record a received vendor bill and its expense posting atomically:
      Debit: Expense (per line account, tax to default expense) = total
      Credit: Accounts Payable = total
    The liability exists once the bill is received (accrual basis),
    approval later is a pure status change.
    Returns (bill, postings).
    """
    company = resolve_company(company)
    data = normalize_keys(data)

    """ Input validation (nothing written yet) """
    vendor_id = str(require(data, "vendor_id"))
    bill_date, due_date, terms = document_dates(data, "bill_date")
    lines = parse_lines(company, data.get("lines"), (AccountType.EXPENSE,), "Bill")
    subtotal, tax_amount, total = document_amounts(data, lines)
    frequency = data.get("recurring_frequency") or None
    if frequency and frequency not in RecurringFrequency.values:
        raise LedgerValidationError(
            {"recurring_frequency": f"'{frequency}' is not a known frequency."}
        )
    # vendor's own number is reference data; the ledger number is always ours
    vendor_bill_number = str(
        data.get("vendor_bill_number") or data.get("bill_number") or ""
    ).strip() or None
    if vendor_bill_number and Bill.objects.for_company(company).filter(
        vendor_id=vendor_id, vendor_bill_number=vendor_bill_number
    ).exists():
        raise LedgerValidationError(
            {"bill_number": f"Bill {vendor_bill_number} from vendor {vendor_id} is already recorded."}
        )

    ap_account = get_account_by_code(company, conf.account_code("accounts_payable"))
    expense_account = get_account_by_code(company, conf.account_code("expense"))

    with transaction.atomic():
        bill_number = next_document_number(company, SequenceKind.BILL)
        bill = Bill(
            company=company,
            vendor_id=vendor_id,
            bill_number=bill_number,
            vendor_bill_number=vendor_bill_number,
            bill_date=bill_date,
            due_date=due_date,
            subtotal=subtotal,
            tax_amount=tax_amount,
            total_amount=total,
            terms=terms,
            memo=data.get("memo"),
            aging_days=aging_days(due_date, timezone.localdate()),
            is_recurring=bool(data.get("is_recurring") or frequency),
            recurring_frequency=frequency,
            created_by=user if getattr(user, "pk", None) else None,
        )
        bill.save()

        for line in lines:
            BillLine.objects.create(
                company=company,
                bill=bill,
                description=line["description"],
                category=line["category"],
                quantity=line["quantity"],
                rate=line["rate"],
                amount=line["amount"],
                account=line["account"],
            )

        # Debit expense per account, credit AP (single line)
        debits = grouped_amounts(
            lines, expense_account, tax_amount if lines else total
        )
        posting_lines = [
            {
                "account_id": account_id,
                "debit": amount,
                "description": f"Expense: bill {bill_number}",
            }
            for account_id, amount in debits
        ] + [
            {
                "account": ap_account,
                "credit": total,
                "description": f"Bill {bill_number}",
            }
        ]
        postings = post(
            company,
            bill_date,
            posting_lines,
            ReferenceType.BILL,
            bill.pk,
            user=user,
            description=f"Bill {bill_number} from vendor {vendor_id}",
        )

        log_action(
            action="create",
            instance=bill,
            user=user,
            changes={"bill_number": bill_number, "total": str(total)},
        )

    logger.info("bill %s recorded for company %s (total %s)", bill_number, company.pk, total)
    return bill, postings


def get_bill(company, bill_id) -> Bill:
    company = resolve_company(company)
    return get_for_company(Bill.objects, company, bill_id, "Bill")


def _locked_bill(company, bill_id) -> Bill:
    return get_for_company(Bill.objects.select_for_update(), company, bill_id, "Bill")


# ------------------------------------
# Bill approval workflows
# ------------------------------------
def approve_bill(company, bill_id, user=None) -> Bill:
    """pending|rejected → approved; no posting happens here"""
    company = resolve_company(company)
    with transaction.atomic():
        bill = _locked_bill(company, bill_id)
        if bill.approval_status == ApprovalStatus.APPROVED:
            raise InvalidTransitionError(f"Bill {bill.bill_number} is already approved.")
        old = bill.approval_status
        # overdue stays overdue, it's recomputed from the due date
        status = BillStatus.APPROVED if bill.status == BillStatus.RECEIVED else bill.status
        compare_and_swap(
            bill,
            bill.version,
            approval_status=ApprovalStatus.APPROVED,
            status=status,
            approved_by=user if getattr(user, "pk", None) else None,
            approved_at=timezone.now(),
        )
        log_action(
            action="approve",
            instance=bill,
            user=user,
            changes={"approval_status": [old, ApprovalStatus.APPROVED]},
        )
    logger.info("bill %s approved", bill.bill_number)
    return bill


def reject_bill(company, bill_id, user=None, reason=None) -> Bill:
    """pending|approved (nothing paid) → rejected; blocks payment"""
    company = resolve_company(company)
    with transaction.atomic():
        bill = _locked_bill(company, bill_id)
        if bill.approval_status == ApprovalStatus.REJECTED or bill.amount_paid > 0:
            raise InvalidTransitionError(
                f"Cannot reject bill {bill.bill_number} "
                f"(approval {bill.approval_status}, paid {bill.amount_paid})."
            )
        old = bill.approval_status
        status = BillStatus.RECEIVED if bill.status == BillStatus.APPROVED else bill.status
        compare_and_swap(
            bill,
            bill.version,
            approval_status=ApprovalStatus.REJECTED,
            status=status,
            approved_by=None,
            approved_at=None,
        )
        log_action(
            action="reject",
            instance=bill,
            user=user,
            changes={"approval_status": [old, ApprovalStatus.REJECTED], "reason": reason},
        )
    logger.info("bill %s rejected", bill.bill_number)
    return bill


def refresh_bill_aging(company=None, today=None) -> int:
    """Bills twin of refresh_invoice_aging"""
    today = today or timezone.localdate()
    qs = Bill.objects.exclude(status=BillStatus.PAID)
    if company is not None:
        qs = qs.for_company(resolve_company(company))

    changed = 0
    for bill_id in qs.values_list("pk", flat=True):
        with transaction.atomic():
            bill = Bill.objects.select_for_update().get(pk=bill_id)
            new_aging = aging_days(bill.due_date, today)
            open_status = BillStatus.APPROVED if bill.is_approved else BillStatus.RECEIVED
            new_status = open_status_after_due_check(bill, today, open_status)
            if new_aging == bill.aging_days and new_status == bill.status:
                continue
            old_status = bill.status
            compare_and_swap(bill, bill.version, aging_days=new_aging, status=new_status)
            if new_status != old_status:
                log_action(
                    action="aging",
                    instance=bill,
                    changes={"status": [old_status, new_status], "aging_days": new_aging},
                )
            changed += 1
    logger.info("bill aging refreshed: %s rows changed", changed)
    return changed


# ------------------------------------
# Queries
# ------------------------------------
def list_bills(company, status=None, vendor_id=None, approval_status=None):
    """Newest first; optional status / vendor / approval filters"""
    company = resolve_company(company)
    qs = Bill.objects.for_company(company)
    if status:
        qs = qs.filter(status=status)
    if vendor_id:
        qs = qs.filter(vendor_id=str(vendor_id))
    if approval_status:
        qs = qs.filter(approval_status=approval_status)
    return list(qs.order_by("-created_at", "-id"))
