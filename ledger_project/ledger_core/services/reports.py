import calendar
from datetime import date, datetime
from decimal import ROUND_HALF_UP
from django.db.models import Sum
from django.utils import timezone
from ..exceptions import LedgerValidationError
from ..models import (AccountType, Bill, BillStatus, Invoice, InvoiceStatus,
                      JournalLine, Payment, PaymentType)
from .chart import accounts_by_type
from .common import CENT, ZERO, parse_date, resolve_company

# --------------------------------------------------------
# Read-side aggregation over the journal.
# Nothing here writes; empty data gives zero-valued reports.
# Field names are rendered as-is by exports, keep them stable.
# --------------------------------------------------------

AGING_BUCKETS = ("current", "days1to30", "days31to60", "days61to90", "over90")


def _sums_by_account(company, start_date=None, end_date=None):
    """{account_id: (debit total, credit total)} over an inclusive date range"""
    qs = JournalLine.objects.for_company(company)
    if start_date is not None:
        qs = qs.filter(transaction_date__gte=start_date)
    if end_date is not None:
        qs = qs.filter(transaction_date__lte=end_date)
    rows = (
        qs.values("account_id")
        .annotate(debit=Sum("debit"), credit=Sum("credit"))
        .order_by()
    )
    return {
        row["account_id"]: (row["debit"] or ZERO, row["credit"] or ZERO)
        for row in rows
    }


def _net(ac_type, debit, credit):
    # Debit-normal: assets, expenses. Credit-normal: the rest
    if ac_type in (AccountType.ASSET, AccountType.EXPENSE):
        return debit - credit
    return credit - debit


def _section(company, ac_type, sums, amount_key):
    """Total + per-account breakdown for one account type"""
    breakdown = []
    total = ZERO
    for account in accounts_by_type(company, ac_type):
        debit, credit = sums.get(account.pk, (ZERO, ZERO))
        amount = _net(ac_type, debit, credit)
        total += amount
        if debit == ZERO and credit == ZERO:
            continue  # no activity, keep the breakdown short
        breakdown.append(
            {
                "accountId": account.pk,
                "code": account.code,
                "name": account.name,
                amount_key: amount,
            }
        )
    return total, breakdown


def profit_and_loss(company, start_date, end_date):
    """
    Revenue (net credits on revenue accounts) minus expenses
    (net debits on expense accounts) within [start_date, end_date].
    Reversals of cancelled documents net out of the figures.
    """
    company = resolve_company(company)
    start_date = parse_date(start_date, "start_date")
    end_date = parse_date(end_date, "end_date")
    sums = _sums_by_account(company, start_date, end_date)

    revenue, revenue_breakdown = _section(company, AccountType.REVENUE, sums, "amount")
    expenses, expense_breakdown = _section(company, AccountType.EXPENSE, sums, "amount")
    return {
        "period": {"startDate": start_date, "endDate": end_date},
        "revenue": revenue,
        "expenses": expenses,
        "netIncome": revenue - expenses,
        "revenueBreakdown": revenue_breakdown,
        "expenseBreakdown": expense_breakdown,
    }


def balance_sheet(company, as_of_date):
    """
    Running balances up to and including as_of_date.
    Equity carries retained earnings (all revenue − expenses so far),
    so assets == liabilities + equity always holds.
    """
    company = resolve_company(company)
    as_of_date = parse_date(as_of_date, "as_of_date")
    sums = _sums_by_account(company, end_date=as_of_date)

    assets, asset_breakdown = _section(company, AccountType.ASSET, sums, "balance")
    liabilities, liability_breakdown = _section(company, AccountType.LIABILITY, sums, "balance")
    equity, equity_breakdown = _section(company, AccountType.EQUITY, sums, "balance")
    revenue, _ = _section(company, AccountType.REVENUE, sums, "balance")
    expenses, _ = _section(company, AccountType.EXPENSE, sums, "balance")
    retained_earnings = revenue - expenses

    return {
        "asOfDate": as_of_date,
        "assets": {"total": assets, "breakdown": asset_breakdown},
        "liabilities": {"total": liabilities, "breakdown": liability_breakdown},
        "equity": {
            "total": equity + retained_earnings,
            "retainedEarnings": retained_earnings,
            "breakdown": equity_breakdown,
        },
    }


def trial_balance(company, as_of_date):
    """Each account's net balance on its normal side; debits == credits"""
    company = resolve_company(company)
    as_of_date = parse_date(as_of_date, "as_of_date")
    sums = _sums_by_account(company, end_date=as_of_date)

    rows = []
    total_debits = ZERO
    total_credits = ZERO
    for ac_type in AccountType.values:
        for account in accounts_by_type(company, ac_type):
            debit, credit = sums.get(account.pk, (ZERO, ZERO))
            if debit == ZERO and credit == ZERO:
                continue
            net = debit - credit
            row_debit = net if net > 0 else ZERO
            row_credit = -net if net < 0 else ZERO
            total_debits += row_debit
            total_credits += row_credit
            rows.append(
                {
                    "accountId": account.pk,
                    "code": account.code,
                    "name": account.name,
                    "type": account.ac_type,
                    "debit": row_debit,
                    "credit": row_credit,
                }
            )
    rows.sort(key=lambda row: int(row["code"]))
    return {
        "asOfDate": as_of_date,
        "rows": rows,
        "totalDebits": total_debits,
        "totalCredits": total_credits,
    }


def bucket_for(days_past_due):
    """Aging bucket name for a number of days past due"""
    if days_past_due <= 0:
        return "current"
    if days_past_due <= 30:
        return "days1to30"
    if days_past_due <= 60:
        return "days31to60"
    if days_past_due <= 90:
        return "days61to90"
    return "over90"


def _aging(documents, as_of):
    # every open balance lands in exactly one bucket
    aging = {bucket: ZERO for bucket in AGING_BUCKETS}
    for due_date, total, paid in documents:
        balance = total - paid
        if balance <= 0:
            continue
        aging[bucket_for((as_of - due_date).days)] += balance
    return aging


def ar_aging(company, as_of=None):
    """Outstanding receivables (total − paid) by days past due"""
    company = resolve_company(company)
    as_of = parse_date(as_of, "as_of") if as_of else timezone.localdate()
    invoices = (
        Invoice.objects.for_company(company)
        .exclude(status__in=[InvoiceStatus.PAID, InvoiceStatus.CANCELLED])
        .values_list("due_date", "total_amount", "amount_paid")
    )
    return _aging(invoices, as_of)


def ap_aging(company, as_of=None):
    """Outstanding payables (total − paid) by days past due"""
    company = resolve_company(company)
    as_of = parse_date(as_of, "as_of") if as_of else timezone.localdate()
    bills = (
        Bill.objects.for_company(company)
        .exclude(status=BillStatus.PAID)
        .values_list("due_date", "total_amount", "amount_paid")
    )
    return _aging(bills, as_of)


# --------------------------------------------------------
# Monthly dashboard figures, read from the documents
# --------------------------------------------------------
def _month_bounds(month):
    """'2025-03', a date inside the month, or None (this month) → (first, last)"""
    if month is None:
        first = timezone.localdate().replace(day=1)
    elif isinstance(month, date):
        first = date(month.year, month.month, 1)
    else:
        try:
            first = datetime.strptime(str(month).strip(), "%Y-%m").date()
        except ValueError:
            raise LedgerValidationError({"month": f"'{month}' is not a YYYY-MM month."})
    last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
    return first, last


def _total(qs, field):
    return qs.aggregate(total=Sum(field))["total"] or ZERO


def dashboard_summary(company, month=None):
    """
    Headline numbers for one calendar month:
      - revenue: invoices issued in the month (cancelled ones left out)
      - expenses: bills dated in the month
      - cash flow: invoice payments in minus bill payments out
      - counts of open, overdue and unpaid documents from that month
    profitMargin is a percentage, 0 when there is no revenue.
    """
    company = resolve_company(company)
    first, last = _month_bounds(month)

    invoices = (
        Invoice.objects.for_company(company)
        .filter(issue_date__range=(first, last))
        .exclude(status=InvoiceStatus.CANCELLED)
    )
    bills = Bill.objects.for_company(company).filter(bill_date__range=(first, last))
    payments = Payment.objects.for_company(company).filter(payment_date__range=(first, last))

    revenue = _total(invoices, "total_amount")
    expenses = _total(bills, "total_amount")
    net_profit = revenue - expenses
    margin = ZERO
    if revenue > 0:
        margin = (net_profit / revenue * 100).quantize(CENT, rounding=ROUND_HALF_UP)
    inflow = _total(payments.filter(payment_type=PaymentType.INVOICE_PAYMENT), "amount")
    outflow = _total(payments.filter(payment_type=PaymentType.BILL_PAYMENT), "amount")

    return {
        "month": first.strftime("%Y-%m"),
        "totalRevenue": revenue,
        "totalExpenses": expenses,
        "netProfit": net_profit,
        "profitMargin": margin,
        "cashFlow": inflow - outflow,
        "outstandingInvoices": invoices.filter(
            status__in=[InvoiceStatus.SENT, InvoiceStatus.PARTIAL]
        ).count(),
        "overdueInvoices": invoices.filter(status=InvoiceStatus.OVERDUE).count(),
        "unpaidBills": bills.exclude(status=BillStatus.PAID).count(),
    }
