import logging
from django.db import transaction
from django.utils import timezone
from .. import conf
from ..exceptions import (InvalidTransitionError, LedgerValidationError,
                          OverpaymentError)
from ..models import (Account, BankAccount, Bill, BillStatus, Invoice,
                      InvoiceStatus, Payment, PaymentType, ReferenceType,
                      SequenceKind)
from ..models.payment import PAYMENT_METHODS
from .audit_helper import log_action
from .chart import get_account_by_code
from .common import (get_for_company, normalize_keys, parse_money,
                     parse_optional_date, require, resolve_company)
from .concurrency import compare_and_swap
from .posting import post
from .sequence import next_document_number

logger = logging.getLogger(__name__)

METHOD_VALUES = [value for value, _ in PAYMENT_METHODS]


def _parse_payment(company, data):
    """Validate payment input; returns a dict of clean values"""
    payment_type = require(data, "payment_type")
    if payment_type not in PaymentType.values:
        raise LedgerValidationError(
            {"payment_type": f"'{payment_type}' is not a known payment type."}
        )
    amount = parse_money(data, "amount")
    if amount <= 0:
        raise LedgerValidationError({"amount": "Payment amount must be > 0."})
    method = require(data, "payment_method")
    if method not in METHOD_VALUES:
        raise LedgerValidationError(
            {"payment_method": f"'{method}' is not one of {', '.join(METHOD_VALUES)}."}
        )

    # target document: explicit invoice_id / bill_id or the generic reference_id
    reference_id = data.get("reference_id")
    invoice_id = data.get("invoice_id")
    bill_id = data.get("bill_id")
    if payment_type == PaymentType.INVOICE_PAYMENT:
        invoice_id = invoice_id or reference_id
        if bill_id:
            raise LedgerValidationError({"bill_id": "Invoice payments cannot target a bill."})
    elif payment_type == PaymentType.BILL_PAYMENT:
        bill_id = bill_id or reference_id
        if invoice_id:
            raise LedgerValidationError({"invoice_id": "Bill payments cannot target an invoice."})
    elif invoice_id or bill_id:
        raise LedgerValidationError(
            {"payment_type": "Adjustments stand alone and don't settle documents."}
        )

    bank_account = None
    if data.get("bank_account_id"):
        bank_account = get_for_company(
            BankAccount.objects.select_related("ledger_account"),
            company, data["bank_account_id"], "Bank account",
        )

    offset_account = None
    if payment_type == PaymentType.ADJUSTMENT:
        # cash side is fixed, the caller names what the cash offsets
        offset_id = data.get("account_id") or data.get("offset_account_id")
        if not offset_id:
            raise LedgerValidationError(
                {"account_id": "Adjustments need the offsetting account."}
            )
        offset_account = get_for_company(Account.objects, company, offset_id, "Account")

    return {
        "payment_type": payment_type,
        "amount": amount,
        "payment_method": method,
        "payment_date": parse_optional_date(data, "payment_date") or timezone.localdate(),
        "invoice_id": invoice_id or None,
        "bill_id": bill_id or None,
        "bank_account": bank_account,
        "offset_account": offset_account,
        "check_number": data.get("check_number") or None,
        "reference_number": data.get("reference_number") or None,
        "memo": data.get("memo"),
    }


def _cash_account(company, bank_account):
    # payments through a bank account hit its ledger account,
    # everything else the default cash account
    if bank_account is not None:
        return bank_account.ledger_account
    return get_account_by_code(company, conf.account_code("cash"))


def _posting_lines(company, values, cash_account, payment_number):
    amount = values["amount"]
    description = f"Payment {payment_number}"
    if values["payment_type"] == PaymentType.INVOICE_PAYMENT:
        # Debit cash, credit AR
        ar = get_account_by_code(company, conf.account_code("accounts_receivable"))
        return [
            {"account": cash_account, "debit": amount, "description": description},
            {"account": ar, "credit": amount, "description": description},
        ]
    if values["payment_type"] == PaymentType.BILL_PAYMENT:
        # Debit AP, credit cash
        ap = get_account_by_code(company, conf.account_code("accounts_payable"))
        return [
            {"account": ap, "debit": amount, "description": description},
            {"account": cash_account, "credit": amount, "description": description},
        ]
    # Adjustment: debit cash, credit the offset account
    return [
        {"account": cash_account, "debit": amount, "description": description},
        {"account": values["offset_account"], "credit": amount, "description": description},
    ]


def _check_invoice_payable(invoice, amount):
    if invoice.status == InvoiceStatus.CANCELLED:
        raise InvalidTransitionError(
            f"Invoice {invoice.invoice_number} is cancelled and cannot take payments."
        )
    new_paid = invoice.amount_paid + amount
    if new_paid > invoice.total_amount:
        logger.warning(
            "overpayment rejected on invoice %s: %s + %s > %s",
            invoice.invoice_number, invoice.amount_paid, amount, invoice.total_amount,
        )
        raise OverpaymentError(
            f"Payment of {amount} would bring invoice {invoice.invoice_number} "
            f"to {new_paid}, above its total {invoice.total_amount}."
        )
    return new_paid


def _check_bill_payable(bill, amount):
    # approval is the gate in front of payment
    if not bill.is_approved:
        raise InvalidTransitionError(
            f"Bill {bill.bill_number} must be approved before payment."
        )
    new_paid = bill.amount_paid + amount
    if new_paid > bill.total_amount:
        logger.warning(
            "overpayment rejected on bill %s: %s + %s > %s",
            bill.bill_number, bill.amount_paid, amount, bill.total_amount,
        )
        raise OverpaymentError(
            f"Payment of {amount} would bring bill {bill.bill_number} "
            f"to {new_paid}, above its total {bill.total_amount}."
        )
    return new_paid


# ----------------------------
# Payment-related workflows
# ----------------------------
def record_payment(company, data, user=None):
    """
    Record a payment, post its cash-side entry and apply it to the
    target invoice/bill, all in one transaction. Returns (payment, postings).

    The target row is locked (select_for_update) and written with a
    version compare-and-swap, so two payments racing on the same
    document can't both pass the overpayment check.
    """
    company = resolve_company(company)
    data = normalize_keys(data)
    values = _parse_payment(company, data)
    amount = values["amount"]
    cash_account = _cash_account(company, values["bank_account"])

    with transaction.atomic():
        # Lock the target row until the transaction finishes
        invoice = bill = None
        if values["invoice_id"]:
            invoice = get_for_company(
                Invoice.objects.select_for_update(), company, values["invoice_id"], "Invoice"
            )
            new_paid = _check_invoice_payable(invoice, amount)
        elif values["bill_id"]:
            bill = get_for_company(
                Bill.objects.select_for_update(), company, values["bill_id"], "Bill"
            )
            new_paid = _check_bill_payable(bill, amount)

        payment_number = next_document_number(company, SequenceKind.PAYMENT)
        payment = Payment(
            company=company,
            payment_number=payment_number,
            payment_type=values["payment_type"],
            invoice=invoice,
            bill=bill,
            amount=amount,
            payment_method=values["payment_method"],
            payment_date=values["payment_date"],
            bank_account=values["bank_account"],
            check_number=values["check_number"],
            reference_number=values["reference_number"],
            memo=values["memo"],
            created_by=user if getattr(user, "pk", None) else None,
        )
        payment.save()

        postings = post(
            company,
            values["payment_date"],
            _posting_lines(company, values, cash_account, payment_number),
            ReferenceType.PAYMENT,
            payment.pk,
            user=user,
            description=f"Payment {payment_number}",
        )

        """ Apply to the target document """
        if invoice is not None:
            old_status = invoice.status
            new_status = (
                InvoiceStatus.PAID if new_paid == invoice.total_amount
                else InvoiceStatus.PARTIAL
            )
            compare_and_swap(
                invoice, invoice.version, amount_paid=new_paid, status=new_status
            )
            if old_status == InvoiceStatus.DRAFT:
                # paying a draft implicitly issues it
                log_action(
                    action="issue",
                    instance=invoice,
                    user=user,
                    changes={"status": [old_status, InvoiceStatus.SENT], "implicit": True},
                )
            log_action(
                action="apply_payment",
                instance=invoice,
                user=user,
                changes={
                    "payment": payment_number,
                    "amount_paid": str(new_paid),
                    "status": [old_status, new_status],
                },
            )
        elif bill is not None:
            old_status = bill.status
            # bills keep their approval-derived status until settled
            new_status = BillStatus.PAID if new_paid == bill.total_amount else bill.status
            compare_and_swap(bill, bill.version, amount_paid=new_paid, status=new_status)
            log_action(
                action="apply_payment",
                instance=bill,
                user=user,
                changes={
                    "payment": payment_number,
                    "amount_paid": str(new_paid),
                    "status": [old_status, new_status],
                },
            )

        log_action(
            action="create",
            instance=payment,
            user=user,
            changes={"payment_number": payment_number, "amount": str(amount)},
        )

    logger.info(
        "payment %s (%s, %s) recorded for company %s",
        payment_number, values["payment_type"], amount, company.pk,
    )
    return payment, postings


def get_payment(company, payment_id) -> Payment:
    company = resolve_company(company)
    return get_for_company(Payment.objects, company, payment_id, "Payment")


def list_payments(company, payment_type=None, payment_method=None,
                  start_date=None, end_date=None, invoice_id=None, bill_id=None):
    """Newest first; optional type / method / date range / target filters"""
    company = resolve_company(company)
    qs = Payment.objects.for_company(company)
    if payment_type:
        qs = qs.filter(payment_type=payment_type)
    if payment_method:
        qs = qs.filter(payment_method=payment_method)
    if start_date:
        qs = qs.filter(payment_date__gte=start_date)
    if end_date:
        qs = qs.filter(payment_date__lte=end_date)
    if invoice_id:
        qs = qs.filter(invoice_id=invoice_id)
    if bill_id:
        qs = qs.filter(bill_id=bill_id)
    return list(qs.order_by("-created_at", "-id"))
