from django.core.exceptions import ObjectDoesNotExist, ValidationError


class LedgerValidationError(ValidationError):
    """Bad input shape or value, rejected before any store mutation."""
    pass


class InvalidTypeError(LedgerValidationError):
    """Account type is not one of the five canonical types."""
    pass


class LedgerInvariantError(ValidationError):
    """A ledger invariant would be violated; the operation has no effect."""
    pass


class UnbalancedPostingError(LedgerInvariantError):
    """Raised when a posting group fails the double-entry balance check."""
    pass


class OverpaymentError(LedgerInvariantError):
    """Raised when a payment would push amount_paid above total_amount."""
    pass


class DuplicateCodeError(LedgerInvariantError):
    """Account code already used inside the company."""
    pass


class CycleError(LedgerInvariantError):
    """Parent assignment would turn the account tree into a cycle."""
    pass


class InvalidTransitionError(LedgerInvariantError):
    """Document status change not allowed by the lifecycle."""
    pass


class AlreadyPostedDifferentPayload(LedgerInvariantError):
    """Raised when a reference is already posted with a different payload """
    pass


class DocumentNotFoundError(ObjectDoesNotExist):
    """Referenced invoice/bill/account/payment does not exist for the company."""
    pass


class ConcurrentModificationError(Exception):
    """Another transaction changed the document between read and write."""
    pass
