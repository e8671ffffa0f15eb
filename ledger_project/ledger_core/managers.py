from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import BigIntegerField
from django.db.models.functions import Cast


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
# Define subclass of Django’s QuerySet
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):         # Add queryset helper
        return self.filter(company=company) # Apply filter

    def active(self, company):
        return self.filter(
                            company=company, # enforce tenant scoping
                            is_active=True   # only fetch active records
                        )
    # Enables query:
    # Account.objects.active(company)


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    # every model using TenantManager can call:
    # Invoice.objects.for_company(company)
    pass


# Account codes are digit strings but sort as numbers: "900" before "1000"
class AccountQuerySet(TenantQuerySet):
    def by_code(self):
        return self.annotate(
            code_number=Cast("code", BigIntegerField())
        ).order_by("code_number", "code")


class AccountManager(models.Manager.from_queryset(AccountQuerySet)):
    # Account.objects.active(company).by_code()
    pass


# Journal rows are append-only: no bulk edits or deletes through the manager
class JournalQuerySet(TenantQuerySet):
    def update(self, **kwargs):
        raise ValidationError("Journal rows are immutable.")

    def delete(self):
        raise ValidationError("Journal rows are immutable.")


class JournalManager(models.Manager.from_queryset(JournalQuerySet)):
    pass
