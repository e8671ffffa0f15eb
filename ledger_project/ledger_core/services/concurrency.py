import logging
from django.db import OperationalError
from django.db.models import F
from django.utils import timezone
from .. import conf
from ..exceptions import ConcurrentModificationError

logger = logging.getLogger(__name__)


def compare_and_swap(instance, expected_version, **fields):
    """
    Write `fields` only if nobody bumped the row's version since we read it.
    Raises ConcurrentModificationError when the row moved on.
    The instance is updated in memory on success.
    """
    model = type(instance)
    updated = model.objects.filter(pk=instance.pk, version=expected_version).update(
        version=F("version") + 1,
        updated_at=timezone.now(),
        **fields,
    )
    if updated == 0:
        logger.warning(
            "concurrent modification of %s %s (expected version %s)",
            model.__name__, instance.pk, expected_version,
        )
        raise ConcurrentModificationError(
            f"{model.__name__} {instance.pk} was modified by another transaction."
        )
    for name, value in fields.items():
        setattr(instance, name, value)
    instance.version = expected_version + 1
    return instance


def run_with_retry(fn, *args, attempts=None, **kwargs):
    """
    Call fn, retrying a bounded number of times on write conflicts.

    Each attempt re-runs fn from scratch (fresh reads, fresh validation),
    so a retry that would now overpay fails with OverpaymentError
    instead of being forced through.
    """
    attempts = attempts or conf.concurrency_retries()
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            return fn(*args, **kwargs)
        except (ConcurrentModificationError, OperationalError) as exc:
            last_error = exc
            logger.warning(
                "attempt %s/%s of %s lost a write race: %s",
                attempt, attempts, getattr(fn, "__name__", fn), exc,
            )
    raise ConcurrentModificationError(
        f"Gave up after {attempts} attempts: {last_error}"
    ) from last_error
