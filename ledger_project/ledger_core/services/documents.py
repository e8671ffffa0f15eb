from collections import OrderedDict
from datetime import timedelta
from decimal import ROUND_HALF_UP
from django.utils import timezone
from .. import conf
from ..exceptions import LedgerValidationError
from ..models import Account
from .common import (CENT, ZERO, get_for_company, parse_money,
                     parse_optional_date, terms_days, to_money, to_quantity)

# ------------------------------------------------
# Helpers shared by invoice and bill creation
# ------------------------------------------------


def parse_lines(company, raw_lines, allowed_types, label):
    """
    Validate optional line items.
    Returns dicts: description, quantity, rate, amount, account (or None).
    amount defaults to quantity × rate.
    """
    if raw_lines is None:
        return []
    if not isinstance(raw_lines, (list, tuple)):
        raise LedgerValidationError({"lines": "Lines must be a list."})

    parsed = []
    for index, raw in enumerate(raw_lines):
        quantity = to_quantity(raw.get("quantity"), "quantity")
        rate = to_money(raw.get("rate") or ZERO, "rate")
        if raw.get("amount") not in (None, ""):
            amount = to_money(raw["amount"], "amount")
        else:
            amount = (quantity * rate).quantize(CENT, rounding=ROUND_HALF_UP)
        if amount < 0 or rate < 0:
            raise LedgerValidationError({"lines": f"Line {index}: amounts must be >= 0."})

        account = None
        account_id = raw.get("account_id") or raw.get("accountId")
        if account_id:
            account = get_for_company(Account.objects, company, account_id, "Account")
            if account.ac_type not in allowed_types:
                raise LedgerValidationError(
                    {"lines": f"Line {index}: {label} lines must use {'/'.join(allowed_types)} accounts."}
                )
        parsed.append(
            {
                "description": raw.get("description"),
                "category": raw.get("category"),
                "quantity": quantity,
                "rate": rate,
                "amount": amount,
                "account": account,
            }
        )
    return parsed


def document_amounts(data, lines):
    """
    subtotal / tax / total for a new invoice or bill.
    - subtotal may be omitted when lines are given (sum of line amounts)
    - total_amount, when supplied, must equal subtotal + tax
    """
    subtotal = parse_money(data, "subtotal", required=not lines)
    tax_amount = parse_money(data, "tax_amount", required=False, default=ZERO)
    lines_total = sum((line["amount"] for line in lines), ZERO)
    if subtotal is None:
        subtotal = lines_total
    elif lines and lines_total != subtotal:
        raise LedgerValidationError(
            {"lines": f"Line amounts ({lines_total}) must add up to the subtotal ({subtotal})."}
        )
    if subtotal < 0 or tax_amount < 0:
        raise LedgerValidationError({"subtotal": "Amounts must be >= 0."})

    total = subtotal + tax_amount
    supplied_total = parse_money(data, "total_amount", required=False)
    if supplied_total is not None and supplied_total != total:
        raise LedgerValidationError(
            {"total_amount": f"Total ({supplied_total}) must equal subtotal + tax ({total})."}
        )
    if total <= 0:
        raise LedgerValidationError({"total_amount": "Total amount must be > 0."})
    return subtotal, tax_amount, total


def document_dates(data, date_field):
    """Issue/bill date (default today) and due date (default from terms)"""
    doc_date = parse_optional_date(data, date_field) or timezone.localdate()
    default_days = conf.default_payment_terms_days()
    terms = data.get("terms") or f"Net {default_days}"
    due_date = parse_optional_date(data, "due_date")
    if due_date is None:
        due_date = doc_date + timedelta(days=terms_days(terms, default_days))
    if due_date < doc_date:
        raise LedgerValidationError({"due_date": "Due date cannot be before the document date."})
    return doc_date, due_date, terms


def grouped_amounts(lines, default_account, remainder):
    """
    Sum line amounts per GL account (lines without one use the default).
    `remainder` (tax, or the whole amount when there are no lines)
    goes to the default account.
    Keeps first-seen order so the posting payload is deterministic.
    """
    grouped = OrderedDict()
    for line in lines:
        account = line["account"] or default_account
        grouped[account.pk] = grouped.get(account.pk, ZERO) + line["amount"]
    if remainder > 0:
        grouped[default_account.pk] = grouped.get(default_account.pk, ZERO) + remainder
    return [(account_id, amount) for account_id, amount in grouped.items() if amount > 0]


def open_status_after_due_check(doc, today, open_status):
    """
    Status a not-settled document should show once aging is recomputed:
    overdue while past due with a balance, otherwise its open status.
    """
    if doc.balance_due > 0 and doc.due_date < today:
        return "overdue"
    return open_status
