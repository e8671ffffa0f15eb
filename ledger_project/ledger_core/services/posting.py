import logging
from decimal import Decimal
from django.db import IntegrityError, transaction
from django.db.models import Sum
# Import models
from ..exceptions import (AlreadyPostedDifferentPayload, DocumentNotFoundError,
                          LedgerInvariantError, LedgerValidationError,
                          UnbalancedPostingError)
from ..models import Account, JournalEntry, JournalLine, ReferenceType
from .audit_helper import log_action
from .common import (MONEY_EPSILON, ZERO, get_for_company, parse_date,
                     resolve_company, to_money)

logger = logging.getLogger(__name__)


# ----------------------------
# Journal-related workflows
# ----------------------------
def _normalize_lines(lines):
    """
    Turn caller line mappings into plain dicts with cent-quantized amounts.
    Each line needs `account` (instance) or `account_id`,
    plus `debit` / `credit` (missing side = 0).
    """
    if not lines:
        raise LedgerValidationError({"lines": "A posting needs at least one line."})

    normalized = []
    for index, line in enumerate(lines):
        account = line.get("account")
        account_id = account.pk if isinstance(account, Account) else line.get("account_id", account)
        try:
            account_id = int(account_id)
        except (TypeError, ValueError):
            raise LedgerValidationError({"lines": f"Line {index} has no valid account."})
        debit = to_money(line.get("debit") or ZERO, "debit")
        credit = to_money(line.get("credit") or ZERO, "credit")

        # Ensure no negative values sneak in
        if debit < 0 or credit < 0:
            raise LedgerValidationError(
                {"lines": f"Line {index}: debit and credit must be >= 0."}
            )
        # Exactly one side carries the amount
        if debit > 0 and credit > 0:
            raise LedgerValidationError(
                {"lines": f"Line {index} has both debit and credit."}
            )
        if debit == 0 and credit == 0:
            raise LedgerValidationError(
                {"lines": f"Line {index} has neither debit nor credit."}
            )
        normalized.append(
            {
                "account_id": account_id,
                "debit": debit,
                "credit": credit,
                "description": line.get("description") or "",
            }
        )
    return normalized


def _check_balanced(lines):
    # Enforce double-entry rule: debits = credits
    total_debit = sum((line["debit"] for line in lines), ZERO)
    total_credit = sum((line["credit"] for line in lines), ZERO)
    if abs(total_debit - total_credit) >= MONEY_EPSILON:
        raise UnbalancedPostingError(
            f"Posting not balanced: debits={total_debit}, credits={total_credit}"
        )
    return total_debit


def _load_accounts(company, lines, allow_inactive=False):
    """All referenced accounts must exist in the company (and be active)"""
    ids = {line["account_id"] for line in lines}
    accounts = {
        acct.pk: acct
        for acct in Account.objects.for_company(company).filter(pk__in=ids)
    }
    missing = ids - set(accounts)
    if missing:
        # other companies' accounts are reported as unknown
        raise DocumentNotFoundError(
            f"Accounts {sorted(missing)} not found for company {company.pk}."
        )
    if not allow_inactive:
        inactive = sorted(a.code for a in accounts.values() if not a.is_active)
        if inactive:
            raise LedgerValidationError(
                {"lines": f"Cannot post to inactive accounts {inactive}."}
            )
    return accounts


def _existing_posting(company, reference_type, reference_id, fingerprint):
    """
    Idempotency & immutability:
    - same reference + same payload → the lines already written
    - same reference + other payload → AlreadyPostedDifferentPayload
    """
    existing = (
        JournalEntry.objects.for_company(company)
        .filter(reference_type=reference_type, reference_id=reference_id)
        .first()
    )
    if existing is None:
        return None
    if existing.posting_fingerprint == fingerprint:
        logger.info(
            "posting %s:%s already recorded, returning existing lines",
            reference_type, reference_id,
        )
        return list(existing.lines.select_related("account").order_by("id"))
    logger.warning(
        "posting %s:%s rejected, payload differs from recorded entry",
        reference_type, reference_id,
    )
    raise AlreadyPostedDifferentPayload(
        f"{reference_type} {reference_id} already posted with a different payload."
    )


def _post(company, transaction_date, lines, reference_type, reference_id,
          user=None, description="", allow_inactive=False):
    company = resolve_company(company)
    transaction_date = parse_date(transaction_date, "transaction_date")
    if reference_type not in ReferenceType.values:
        raise LedgerValidationError(
            {"reference_type": f"'{reference_type}' is not a known reference type."}
        )
    if reference_id in (None, ""):
        raise LedgerValidationError({"reference_id": "This field is required."})
    reference_id = str(reference_id)

    """ Business validations (nothing written yet) """
    normalized = _normalize_lines(lines)
    total = _check_balanced(normalized)
    _load_accounts(company, normalized, allow_inactive=allow_inactive)
    fingerprint = JournalEntry.fingerprint_for(company.pk, transaction_date, normalized)

    with transaction.atomic():
        already = _existing_posting(company, reference_type, reference_id, fingerprint)
        if already is not None:
            return already

        try:
            # savepoint: a racing writer of the same reference trips the
            # unique constraint, then we fall back to the idempotency check
            with transaction.atomic():
                je = JournalEntry.objects.create(
                    company=company,
                    date=transaction_date,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    description=description or None,
                    created_by=user if getattr(user, "pk", None) else None,
                    posting_fingerprint=fingerprint,
                )
        except IntegrityError:
            already = _existing_posting(company, reference_type, reference_id, fingerprint)
            if already is not None:
                return already
            raise

        # all lines land in the same transaction as their header
        created = [
            JournalLine.objects.create(
                company=company,
                journal=je,
                account_id=line["account_id"],
                transaction_date=transaction_date,
                description=line["description"] or None,
                debit=line["debit"],
                credit=line["credit"],
            )
            for line in normalized
        ]

        log_action(
            action="post",
            instance=je,
            user=user if getattr(user, "pk", None) else None,
            company=company,
            changes={
                "reference_type": reference_type,
                "reference_id": reference_id,
                "total": str(total),
                "lines": len(created),
            },
        )

    logger.info(
        "posted %s:%s (%s lines, total %s) for company %s",
        reference_type, reference_id, len(created), total, company.pk,
    )
    return created


def post(company, transaction_date, lines, reference_type, reference_id,
         user=None, description=""):
    """
    Append one balanced group of journal lines, all-or-nothing.

    The caller decides what to post; this only guarantees that:
      - sum(debit) == sum(credit) (cent exact) → else UnbalancedPostingError
      - every line has exactly one nonzero side
      - every account belongs to the company and is active
      - a retried identical post returns the lines already written
    """
    return _post(
        company, transaction_date, lines, reference_type, reference_id,
        user=user, description=description,
    )


def reverse_journal(company, journal_id, user=None, transaction_date=None,
                    description=None):
    """
    Correct a posting by appending its mirror image
    (debits become credits and the other way round).
    Reversal of a reversal is not allowed: post a fresh entry instead.
    """
    company = resolve_company(company)
    journal = get_for_company(JournalEntry.objects, company, journal_id, "Journal entry")
    if journal.reference_type == ReferenceType.REVERSAL:
        raise LedgerInvariantError("A reversal entry cannot itself be reversed.")

    mirror = [
        {
            "account_id": line.account_id,
            "debit": line.credit,
            "credit": line.debit,
            "description": f"Reversal: {line.description or ''}".strip(),
        }
        for line in journal.lines.order_by("id")
    ]
    return _post(
        company,
        transaction_date or journal.date,
        mirror,
        ReferenceType.REVERSAL,
        str(journal.pk),
        user=user,
        description=description or f"Reversal of {journal.reference_type} {journal.reference_id}",
        # history must stay correctable after an account is retired
        allow_inactive=True,
    )


def journal_for(company, reference_type, reference_id):
    """Header of the posting group caused by one document, or None"""
    company = resolve_company(company)
    return (
        JournalEntry.objects.for_company(company)
        .filter(reference_type=reference_type, reference_id=str(reference_id))
        .first()
    )


def ledger_is_balanced(company):
    """
    Return the posting groups whose lines don't balance.
    An empty list means the store is consistent.
    """
    company = resolve_company(company)
    rows = (
        JournalLine.objects.for_company(company)
        .values("journal__reference_type", "journal__reference_id")
        .annotate(total_debit=Sum("debit"), total_credit=Sum("credit"))
        .order_by()
    )
    unbalanced = []
    for row in rows:
        debit = row["total_debit"] or Decimal("0.00")
        credit = row["total_credit"] or Decimal("0.00")
        if debit != credit:
            unbalanced.append(
                {
                    "reference_type": row["journal__reference_type"],
                    "reference_id": row["journal__reference_id"],
                    "debit": debit,
                    "credit": credit,
                }
            )
    return unbalanced
