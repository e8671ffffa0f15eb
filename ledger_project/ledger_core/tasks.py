import logging
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def process_recurring_transactions():
    # import services lazily to avoid circular imports at module import time
    from .services.recurring import process_due_transactions

    # result looks like {"success": True, "count": 3}
    return process_due_transactions()


@shared_task
def refresh_document_aging(company_id=None):
    from .services.bill import refresh_bill_aging
    from .services.invoice import refresh_invoice_aging

    # company_id=None → every tenant
    invoices = refresh_invoice_aging(company_id)
    bills = refresh_bill_aging(company_id)
    logger.info("aging refresh: %s invoices, %s bills changed", invoices, bills)
    return {"invoices": invoices, "bills": bills}
