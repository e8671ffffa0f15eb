import logging
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from django.db import transaction
from django.utils import timezone
from .. import conf
from ..exceptions import LedgerValidationError
from ..models import (ApprovalStatus, BankTransaction, BankTransactionMatch,
                      Bill, BillStatus,
                      Invoice, InvoiceStatus, MatchedType, Payment, PaymentType)
from .audit_helper import log_action
from .common import ZERO, get_for_company, resolve_company, to_money

logger = logging.getLogger(__name__)

CONFIDENCE_PLACES = Decimal("0.0001")

# How much each signal contributes to the 0–1 confidence
AMOUNT_WEIGHT = Decimal("0.60")
DATE_WEIGHT = Decimal("0.25")
TEXT_WEIGHT = Decimal("0.15")

# model behind each matchable document type
CANDIDATE_MODELS = {
    MatchedType.INVOICE: Invoice,
    MatchedType.BILL: Bill,
    MatchedType.PAYMENT: Payment,
}


def _to_confidence(value) -> Decimal:
    # scores are ratios, not money: floats are fine here
    try:
        confidence = Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise LedgerValidationError({"confidence": f"'{value}' is not a number."})
    if not confidence.is_finite() or not (0 <= confidence <= 1):
        raise LedgerValidationError({"confidence": "Confidence must be between 0 and 1."})
    return confidence.quantize(CONFIDENCE_PLACES, rounding=ROUND_HALF_UP)


def _claimed_elsewhere(company, payment_id, bank_transaction_id):
    # another bank line whose authoritative match is this payment
    others = (
        BankTransactionMatch.objects.for_company(company)
        .filter(matched_type=MatchedType.PAYMENT, matched_id=payment_id)
        .exclude(bank_transaction_id=bank_transaction_id)
        .values_list("bank_transaction_id", flat=True)
        .distinct()
    )
    for other_id in others:
        winner = accepted_match(company, other_id)
        if winner is not None and winner.matched_type == MatchedType.PAYMENT \
                and winner.matched_id == payment_id:
            return True
    return False


def _sync_payment_flags(company, bank_transaction_id):
    """
    Payment.is_matched follows the authoritative match of the bank line:
    the winning payment is flagged, payments whose match lost are cleared
    unless some other bank line still settles them.
    """
    payment_ids = set(
        BankTransactionMatch.objects.for_company(company)
        .filter(bank_transaction_id=bank_transaction_id, matched_type=MatchedType.PAYMENT)
        .values_list("matched_id", flat=True)
    )
    if not payment_ids:
        return
    winner = accepted_match(company, bank_transaction_id)
    winner_id = None
    if winner is not None and winner.matched_type == MatchedType.PAYMENT:
        winner_id = winner.matched_id
    for payment_id in payment_ids:
        is_matched = payment_id == winner_id or _claimed_elsewhere(
            company, payment_id, bank_transaction_id
        )
        Payment.objects.for_company(company).filter(pk=payment_id).update(
            is_matched=is_matched
        )


# ----------------------------
# Match records
# ----------------------------
def propose_match(company, bank_transaction_id, candidate_type, candidate_id,
                  amount, confidence, user=None) -> BankTransactionMatch:
    """
    Store one proposed bank transaction ↔ document link.
    Auto-accepted when confidence > LEDGER_AUTO_MATCH_THRESHOLD.
    Earlier proposals for the same bank transaction are kept as they are.
    """
    company = resolve_company(company)
    if not bank_transaction_id:
        raise LedgerValidationError({"bank_transaction_id": "This field is required."})
    if candidate_type not in MatchedType.values:
        raise LedgerValidationError(
            {"candidate_type": f"'{candidate_type}' is not one of {', '.join(MatchedType.values)}."}
        )
    confidence = _to_confidence(confidence)
    amount = to_money(amount, "amount")
    # candidate must be a document of this company
    get_for_company(
        CANDIDATE_MODELS[candidate_type].objects, company, candidate_id, candidate_type.title()
    )

    is_auto = confidence > conf.auto_match_threshold()
    with transaction.atomic():
        match = BankTransactionMatch.objects.create(
            company=company,
            bank_transaction_id=str(bank_transaction_id),
            matched_type=candidate_type,
            matched_id=str(candidate_id),
            match_amount=amount,
            confidence=confidence,
            is_auto_matched=is_auto,
            matched_by=user if getattr(user, "pk", None) else None,
        )
        if is_auto:
            _sync_payment_flags(company, match.bank_transaction_id)
        log_action(
            action="propose_match",
            instance=match,
            user=user,
            changes={
                "bank_transaction_id": match.bank_transaction_id,
                "candidate": f"{candidate_type}:{candidate_id}",
                "confidence": str(confidence),
                "auto": is_auto,
            },
        )
    # low confidence is an expected outcome, not an error
    logger.info(
        "match proposed %s → %s:%s confidence=%s auto=%s",
        match.bank_transaction_id, candidate_type, candidate_id, confidence, is_auto,
    )
    return match


def accept_match(company, match_id, user=None) -> BankTransactionMatch:
    """
    Operator acceptance. Any earlier manual acceptance for the same bank
    transaction is withdrawn (the rows themselves stay for audit).
    """
    company = resolve_company(company)
    with transaction.atomic():
        match = get_for_company(
            BankTransactionMatch.objects.select_for_update(), company, match_id, "Match"
        )
        # at most one accepted match per bank transaction
        BankTransactionMatch.objects.for_company(company).filter(
            bank_transaction_id=match.bank_transaction_id,
            is_manually_accepted=True,
        ).exclude(pk=match.pk).update(is_manually_accepted=False)

        match.is_manually_accepted = True
        match.accepted_at = timezone.now()
        if getattr(user, "pk", None):
            match.matched_by = user
        match.save(update_fields=["is_manually_accepted", "accepted_at", "matched_by"])
        _sync_payment_flags(company, match.bank_transaction_id)
        log_action(
            action="accept_match",
            instance=match,
            user=user,
            changes={"bank_transaction_id": match.bank_transaction_id},
        )
    logger.info("match %s accepted for %s", match.pk, match.bank_transaction_id)
    return match


def accepted_match(company, bank_transaction_id):
    """
    The authoritative match for a bank transaction:
    latest manual acceptance, else latest auto-match, else None.
    """
    company = resolve_company(company)
    qs = BankTransactionMatch.objects.for_company(company).filter(
        bank_transaction_id=str(bank_transaction_id)
    )
    manual = qs.filter(is_manually_accepted=True).order_by("-accepted_at", "-id").first()
    if manual is not None:
        return manual
    return qs.filter(is_auto_matched=True).order_by("-matched_at", "-id").first()


def matches_for(company, bank_transaction_id):
    """Full audit trail of match attempts, oldest first"""
    company = resolve_company(company)
    return list(
        BankTransactionMatch.objects.for_company(company)
        .filter(bank_transaction_id=str(bank_transaction_id))
        .order_by("matched_at", "id")
    )


# ----------------------------
# Scoring
# ----------------------------
_TOKEN = re.compile(r"[a-z0-9]+")


def _tokens(*texts):
    tokens = set()
    for text in texts:
        if text:
            tokens.update(t for t in _TOKEN.findall(str(text).lower()) if len(t) > 1)
    return tokens


def score_candidate(txn_amount, txn_date, txn_description,
                    doc_amount, doc_date, doc_texts=()) -> Decimal:
    """
    0–1 confidence that a bank line and a document are the same money.
      - amount: exact (absolute) equality scores full weight,
        within 1% half of it
      - date: full weight on the same day, decaying to 0 at the window edge
      - text: share of the document's tokens found in the bank description
    """
    window = conf.match_date_window_days()
    txn_amount = abs(Decimal(str(txn_amount)))
    doc_amount = abs(Decimal(str(doc_amount)))

    score = ZERO
    if txn_amount == doc_amount:
        score += AMOUNT_WEIGHT
    elif doc_amount > 0 and abs(txn_amount - doc_amount) / doc_amount <= Decimal("0.01"):
        score += AMOUNT_WEIGHT / 2

    if txn_date and doc_date and window > 0:
        distance = abs((txn_date - doc_date).days)
        if distance < window:
            score += DATE_WEIGHT * Decimal(window - distance) / Decimal(window)

    doc_tokens = _tokens(*doc_texts)
    if doc_tokens:
        overlap = len(doc_tokens & _tokens(txn_description))
        score += TEXT_WEIGHT * Decimal(overlap) / Decimal(len(doc_tokens))

    return min(score, Decimal("1")).quantize(CONFIDENCE_PLACES, rounding=ROUND_HALF_UP)


def _candidates(company, txn):
    """
    (type, id, open amount, reference date, texts) for documents the
    bank line could settle. Inflows → receivables, outflows → payables.
    """
    if txn.amount > 0:
        for inv in Invoice.objects.for_company(company).filter(
            status__in=[InvoiceStatus.SENT, InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE]
        ):
            yield (MatchedType.INVOICE, inv.pk, inv.balance_due, inv.due_date,
                   (inv.invoice_number, inv.customer_id, inv.load_id))
        payments = Payment.objects.for_company(company).filter(
            is_matched=False, payment_type=PaymentType.INVOICE_PAYMENT
        )
    else:
        for bill in Bill.objects.for_company(company).exclude(status=BillStatus.PAID).filter(
            approval_status=ApprovalStatus.APPROVED
        ):
            yield (MatchedType.BILL, bill.pk, bill.balance_due, bill.due_date,
                   (bill.bill_number, bill.vendor_bill_number, bill.vendor_id))
        payments = Payment.objects.for_company(company).filter(
            is_matched=False, payment_type=PaymentType.BILL_PAYMENT
        )
    for pay in payments:
        yield (MatchedType.PAYMENT, pay.pk, pay.amount, pay.payment_date,
               (pay.payment_number, pay.check_number, pay.reference_number))


def suggest_matches(company, bank_transaction, limit=3, min_confidence="0.5", user=None):
    """
    Score open documents against one bank transaction and propose the
    best `limit` of them (at or above `min_confidence`).
    Candidates already proposed for this bank transaction are skipped.
    """
    company = resolve_company(company)
    if not isinstance(bank_transaction, BankTransaction):
        bank_transaction = get_for_company(
            BankTransaction.objects, company, bank_transaction, "Bank transaction"
        )
    floor = _to_confidence(min_confidence)
    already = set(
        BankTransactionMatch.objects.for_company(company)
        .filter(bank_transaction_id=bank_transaction.external_id)
        .values_list("matched_type", "matched_id")
    )

    scored = []
    for matched_type, doc_id, doc_amount, doc_date, texts in _candidates(company, bank_transaction):
        if (matched_type, str(doc_id)) in already:
            continue
        confidence = score_candidate(
            bank_transaction.amount, bank_transaction.posted_date,
            bank_transaction.description, doc_amount, doc_date, texts,
        )
        if confidence >= floor:
            scored.append((confidence, matched_type, doc_id))

    # best first; ties resolved by type then id for a stable order
    scored.sort(key=lambda item: (-item[0], item[1], item[2]))
    proposals = [
        propose_match(
            company,
            bank_transaction.external_id,
            matched_type,
            doc_id,
            abs(bank_transaction.amount),
            confidence,
            user=user,
        )
        for confidence, matched_type, doc_id in scored[:limit]
    ]
    logger.info(
        "bank transaction %s: %s candidates scored, %s proposed",
        bank_transaction.external_id, len(scored), len(proposals),
    )
    return proposals
