""" Ledger knobs with defaults, overridable from Django settings """
from decimal import Decimal
from django.conf import settings


DEFAULT_ACCOUNT_CODES = {
    "cash": "1000",
    "accounts_receivable": "1200",
    "accounts_payable": "2000",
    "equity": "3000",
    "revenue": "4000",
    "expense": "5000",
}


def auto_match_threshold():
    return Decimal(str(getattr(settings, "LEDGER_AUTO_MATCH_THRESHOLD", 0.9)))


def account_code(role):
    codes = {**DEFAULT_ACCOUNT_CODES, **getattr(settings, "LEDGER_DEFAULT_ACCOUNT_CODES", {})}
    return codes[role]


def default_payment_terms_days():
    return int(getattr(settings, "LEDGER_DEFAULT_PAYMENT_TERMS_DAYS", 30))


def concurrency_retries():
    return int(getattr(settings, "LEDGER_CONCURRENCY_RETRIES", 3))


def match_date_window_days():
    return int(getattr(settings, "LEDGER_MATCH_DATE_WINDOW_DAYS", 7))
