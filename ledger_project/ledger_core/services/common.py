import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional
from ..exceptions import DocumentNotFoundError, LedgerValidationError
from ..models import Company

# ----------------------------
# Money / input parsing helpers
# ----------------------------
CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# half a cent: two quantized amounts only compare equal when cent-exact
MONEY_EPSILON = Decimal("0.005")


def to_money(value, field="amount") -> Decimal:
    """
    Convert caller input into a cent-quantized Decimal.
    Accepts Decimal, int or a decimal string ("1234.56").
    Floats are rejected: binary floats can't carry money exactly.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise LedgerValidationError(
            {field: f"Money must be a decimal string or Decimal, got {type(value).__name__}."}
        )
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise LedgerValidationError({field: f"'{value}' is not a valid amount."})
    else:
        raise LedgerValidationError({field: f"Unsupported money value {value!r}."})

    if not amount.is_finite():
        raise LedgerValidationError({field: "Amount must be finite."})
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_money(data, field, required=True, default=None) -> Optional[Decimal]:
    """Read a money field from an input mapping"""
    value = data.get(field)
    if value is None or value == "":
        if required:
            raise LedgerValidationError({field: "This field is required."})
        return default
    return to_money(value, field)


def parse_date(value, field="date") -> date:
    """ISO date string, date or datetime → date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise LedgerValidationError({field: f"'{value}' is not an ISO date."})
    raise LedgerValidationError({field: "This field is required."})


def parse_optional_date(data, field) -> Optional[date]:
    value = data.get(field)
    if value in (None, ""):
        return None
    return parse_date(value, field)


def require(data, field):
    """Read a required non-empty field"""
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise LedgerValidationError({field: "This field is required."})
    return value


def resolve_company(company) -> Company:
    """Accept a Company or its pk; always returns a Company instance"""
    if isinstance(company, Company):
        return company
    try:
        return Company.objects.get(pk=company)
    except (Company.DoesNotExist, ValueError, TypeError):
        raise DocumentNotFoundError(f"Company {company!r} does not exist.")


def get_for_company(queryset, company, pk, label):
    """
    Fetch one tenant-scoped row or raise DocumentNotFoundError.
    Other companies' rows are reported as missing, never as forbidden.
    """
    try:
        return queryset.for_company(company).get(pk=pk)
    except (queryset.model.DoesNotExist, ValueError, TypeError):
        raise DocumentNotFoundError(f"{label} {pk!r} not found for company {company.pk}.")


# "Net 30", "net45", "Due on receipt"
_NET_TERMS = re.compile(r"net\s*(\d+)", re.IGNORECASE)


def terms_days(terms, default_days) -> int:
    """Number of days between issue and due date implied by payment terms"""
    if not terms:
        return default_days
    match = _NET_TERMS.search(terms)
    if match:
        return int(match.group(1))
    if "receipt" in terms.lower():
        return 0
    return default_days


def aging_days(due_date, today) -> int:
    """Days past due (negative while not yet due)"""
    return (today - due_date).days


_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


def normalize_keys(data) -> dict:
    """Accept wire-style camelCase keys as well: dueDate → due_date"""
    if data is None:
        return {}
    return {_CAMEL.sub("_", str(key)).lower(): value for key, value in dict(data).items()}


def to_quantity(value, field="quantity") -> Decimal:
    """Line quantities carry up to 4 decimals (hours, miles, gallons)"""
    if value is None or value == "":
        return Decimal("1")
    if isinstance(value, (bool, float)):
        raise LedgerValidationError({field: "Quantity must be a decimal string or Decimal."})
    try:
        quantity = Decimal(str(value).strip())
    except InvalidOperation:
        raise LedgerValidationError({field: f"'{value}' is not a valid quantity."})
    if not quantity.is_finite() or quantity < 0:
        raise LedgerValidationError({field: "Quantity must be >= 0."})
    return quantity.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)
