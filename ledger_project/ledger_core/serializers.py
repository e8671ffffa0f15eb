"""
Wire rendering for ledger objects.
Money leaves as strings with exactly two decimals, dates as ISO strings.
Field names are camelCase and stable, clients key on them.
"""
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from .services.common import CENT


def money_str(value) -> str:
    """Decimal(5) → "5.00"; None stays None"""
    if value is None:
        return None
    return str(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def to_wire(value):
    """Recursively turn Decimals/dates in a report structure into strings"""
    if isinstance(value, Decimal):
        return money_str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_wire(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(item) for item in value]
    return value


def account_to_dict(account):
    return {
        "id": account.pk,
        "code": account.code,
        "name": account.name,
        "type": account.ac_type,
        "parentId": account.parent_id,
        "isActive": account.is_active,
        "isControlAccount": account.is_control_account,
        "normalBalance": account.normal_balance,
    }


def journal_line_to_dict(line):
    return to_wire(
        {
            "id": line.pk,
            "journalId": line.journal_id,
            "transactionDate": line.transaction_date,
            "accountId": line.account_id,
            "debit": line.debit,
            "credit": line.credit,
            "description": line.description,
            "referenceType": line.reference_type,
            "referenceId": line.reference_id,
            "createdAt": line.created_at,
        }
    )


def invoice_to_dict(invoice):
    return to_wire(
        {
            "id": invoice.pk,
            "invoiceNumber": invoice.invoice_number,
            "customerId": invoice.customer_id,
            "loadId": invoice.load_id,
            "issueDate": invoice.issue_date,
            "dueDate": invoice.due_date,
            "subtotal": invoice.subtotal,
            "taxAmount": invoice.tax_amount,
            "totalAmount": invoice.total_amount,
            "amountPaid": invoice.amount_paid,
            "balanceDue": invoice.balance_due,
            "status": invoice.status,
            "terms": invoice.terms,
            "memo": invoice.memo,
            "agingDays": invoice.aging_days,
            "isRecurring": invoice.is_recurring,
            "recurringFrequency": invoice.recurring_frequency,
            "createdAt": invoice.created_at,
        }
    )


def bill_to_dict(bill):
    return to_wire(
        {
            "id": bill.pk,
            "billNumber": bill.bill_number,
            "vendorBillNumber": bill.vendor_bill_number,
            "vendorId": bill.vendor_id,
            "billDate": bill.bill_date,
            "dueDate": bill.due_date,
            "subtotal": bill.subtotal,
            "taxAmount": bill.tax_amount,
            "totalAmount": bill.total_amount,
            "amountPaid": bill.amount_paid,
            "balanceDue": bill.balance_due,
            "status": bill.status,
            "approvalStatus": bill.approval_status,
            "approvedAt": bill.approved_at,
            "terms": bill.terms,
            "memo": bill.memo,
            "agingDays": bill.aging_days,
            "createdAt": bill.created_at,
        }
    )


def payment_to_dict(payment):
    return to_wire(
        {
            "id": payment.pk,
            "paymentNumber": payment.payment_number,
            "paymentType": payment.payment_type,
            "referenceId": payment.reference_id,
            "amount": payment.amount,
            "paymentMethod": payment.payment_method,
            "paymentDate": payment.payment_date,
            "bankAccountId": payment.bank_account_id,
            "checkNumber": payment.check_number,
            "referenceNumber": payment.reference_number,
            "memo": payment.memo,
            "status": payment.status,
            "isMatched": payment.is_matched,
            "createdAt": payment.created_at,
        }
    )


def match_to_dict(match):
    return {
        "id": match.pk,
        "bankTransactionId": match.bank_transaction_id,
        "matchedType": match.matched_type,
        "matchedId": match.matched_id,
        "matchAmount": money_str(match.match_amount),
        # ratio, not money: keep all four places
        "confidence": str(match.confidence),
        "isAutoMatched": match.is_auto_matched,
        "isManuallyAccepted": match.is_manually_accepted,
        "matchedAt": match.matched_at.isoformat() if match.matched_at else None,
    }
