import logging
from typing import Optional
from ..models import AuditLog, Company

logger = logging.getLogger(__name__)


def log_action(
    *,
    action: str,
    instance,
    user=None,
    company: Optional[Company] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Safe to call multiple times (caller ensures idempotency).
    Runs inside the caller's transaction, so a rolled back
    operation leaves no audit row behind.
    """

    if not company:
        company = getattr(instance, "company", None)

    entry = AuditLog.objects.create(
        company=company,
        user=user if getattr(user, "pk", None) else None,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=changes,
    )
    logger.debug(
        "audit %s %s(%s) company=%s",
        action, entry.object_type, entry.object_id, getattr(company, "pk", None),
    )
    return entry
