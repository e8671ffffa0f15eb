import logging
from django.db import transaction
from ..exceptions import (CycleError, DocumentNotFoundError, DuplicateCodeError,
                          InvalidTypeError, LedgerInvariantError,
                          LedgerValidationError)
from ..models import Account, AccountType
from .audit_helper import log_action
from .common import get_for_company, resolve_company

logger = logging.getLogger(__name__)


# Default chart every company starts with.
# The lifecycle posts against these codes (see conf.account_code)
DEFAULT_CHART = [
    # (code, name, type, control account?)
    ("1000", "Cash", AccountType.ASSET, False),
    ("1200", "Accounts Receivable", AccountType.ASSET, True),
    ("2000", "Accounts Payable", AccountType.LIABILITY, True),
    ("3000", "Owner's Equity", AccountType.EQUITY, False),
    ("4000", "Freight Revenue", AccountType.REVENUE, False),
    ("5000", "Operating Expenses", AccountType.EXPENSE, False),
]


def normalize_account_type(ac_type) -> str:
    """'Asset' / 'asset' / AccountType.ASSET → 'asset'"""
    value = str(ac_type or "").strip().lower()
    if value not in AccountType.values:
        raise InvalidTypeError(
            {"ac_type": f"'{ac_type}' is not one of {', '.join(AccountType.values)}."}
        )
    return value


def _check_code(code) -> str:
    code = str(code or "").strip()
    if not code.isdigit():
        raise LedgerValidationError({"code": "Account code must be numeric."})
    # codes sort as 64-bit integers
    if len(code) > 18:
        raise LedgerValidationError({"code": "Account code is limited to 18 digits."})
    return code


def _resolve_parent(company, parent):
    if parent is None or parent == "":
        return None
    parent_id = parent.pk if isinstance(parent, Account) else parent
    return get_for_company(Account.objects, company, parent_id, "Account")


def _would_cycle(account_pk, new_parent) -> bool:
    """Walk up from new_parent; reaching account_pk means a loop"""
    node = new_parent
    seen = set()
    while node is not None:
        if account_pk is not None and node.pk == account_pk:
            return True
        if node.pk in seen:  # already corrupt tree, treat as cycle
            return True
        seen.add(node.pk)
        node = node.parent
    return False


# ----------------------------
# Chart of accounts workflows
# ----------------------------
def create_account(company, name, code, ac_type, parent=None,
                   description=None, is_control_account=False, user=None) -> Account:
    """
    Create one account in the company's chart.
    Raises DuplicateCodeError, InvalidTypeError, CycleError
    (validation happens before anything is written).
    """
    company = resolve_company(company)
    ac_type = normalize_account_type(ac_type)
    code = _check_code(code)
    if not str(name or "").strip():
        raise LedgerValidationError({"name": "This field is required."})

    with transaction.atomic():
        if Account.objects.for_company(company).filter(code=code).exists():
            logger.warning("duplicate account code %s for company %s", code, company.pk)
            raise DuplicateCodeError(
                f"Account code {code} already exists for this company."
            )
        parent_account = _resolve_parent(company, parent)
        # a brand-new account can only loop onto itself via a broken tree
        if parent_account is not None and _would_cycle(
            None, parent_account
        ):
            raise CycleError("Parent account chain already contains a cycle.")

        account = Account(
            company=company,
            code=code,
            name=name.strip(),
            ac_type=ac_type,
            parent=parent_account,
            description=description,
            is_control_account=is_control_account,
        )
        account.full_clean()
        account.save()
        log_action(
            action="create",
            instance=account,
            user=user,
            changes={"code": code, "ac_type": ac_type},
        )
    logger.info("account %s created for company %s", account, company.pk)
    return account


def list_accounts(company, active_only=True):
    """Accounts ordered by code ascending"""
    company = resolve_company(company)
    if active_only:
        qs = Account.objects.active(company)
    else:
        qs = Account.objects.for_company(company)
    return list(qs.by_code())


def accounts_by_type(company, ac_type, active_only=False):
    """
    Used by the reporting engine.
    Inactive accounts are included by default:
    historical balances never disappear from reports.
    """
    company = resolve_company(company)
    ac_type = normalize_account_type(ac_type)
    qs = Account.objects.for_company(company).filter(ac_type=ac_type)
    if active_only:
        qs = qs.filter(is_active=True)
    return list(qs.by_code())


def get_account_by_code(company, code, active_only=False) -> Account:
    company = resolve_company(company)
    qs = Account.objects.for_company(company)
    if active_only:
        qs = qs.filter(is_active=True)
    account = qs.filter(code=str(code)).first()
    if account is None:
        raise DocumentNotFoundError(f"Account with code {code} not found.")
    return account


def reparent_account(company, account_id, parent_id, user=None) -> Account:
    """Move an account under another one (None = top level)"""
    company = resolve_company(company)
    with transaction.atomic():
        account = get_for_company(
            Account.objects.select_for_update(), company, account_id, "Account"
        )
        new_parent = _resolve_parent(company, parent_id)
        if new_parent is not None and _would_cycle(account.pk, new_parent):
            logger.warning("reparent of %s under %s would cycle", account.pk, new_parent.pk)
            raise CycleError(
                f"Account {account.code} cannot be placed under {new_parent.code}."
            )
        old_parent_id = account.parent_id
        account.parent = new_parent
        account.save(update_fields=["parent", "updated_at"])
        log_action(
            action="reparent",
            instance=account,
            user=user,
            changes={"parent": [old_parent_id, account.parent_id]},
        )
    return account


def change_account_type(company, account_id, ac_type, user=None) -> Account:
    """Only allowed while no journal line references the account"""
    company = resolve_company(company)
    ac_type = normalize_account_type(ac_type)
    with transaction.atomic():
        account = get_for_company(
            Account.objects.select_for_update(), company, account_id, "Account"
        )
        if account.ac_type == ac_type:
            return account
        if account.is_referenced():
            raise LedgerInvariantError(
                f"Account {account.code} has postings; its type is immutable."
            )
        old = account.ac_type
        account.ac_type = ac_type
        account.save(update_fields=["ac_type", "updated_at"])
        log_action(
            action="change_type",
            instance=account,
            user=user,
            changes={"ac_type": [old, ac_type]},
        )
    return account


def _set_active(company, account_id, is_active, user=None) -> Account:
    company = resolve_company(company)
    with transaction.atomic():
        account = get_for_company(
            Account.objects.select_for_update(), company, account_id, "Account"
        )
        if account.is_active != is_active:
            account.is_active = is_active
            account.save(update_fields=["is_active", "updated_at"])
            log_action(
                action="activate" if is_active else "deactivate",
                instance=account,
                user=user,
            )
    return account


def deactivate_account(company, account_id, user=None) -> Account:
    """Accounts are never deleted; deactivated ones stop taking postings"""
    return _set_active(company, account_id, False, user=user)


def reactivate_account(company, account_id, user=None) -> Account:
    return _set_active(company, account_id, True, user=user)


def seed_default_accounts(company, user=None):
    """Create the default chart (idempotent: existing codes are kept)"""
    company = resolve_company(company)
    created = []
    with transaction.atomic():
        for code, name, ac_type, is_control in DEFAULT_CHART:
            if Account.objects.for_company(company).filter(code=code).exists():
                continue
            created.append(
                create_account(
                    company, name, code, ac_type,
                    is_control_account=is_control, user=user,
                )
            )
    return created
