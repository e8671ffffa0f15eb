"""
Django settings for ledger_project.

Everything deployment specific comes from the environment so the same module
serves local development, the test-suite and the Celery workers.
"""
import os
from pathlib import Path

from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-dev-key-change-me")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "ledger_core.apps.LedgerCoreConfig",
]

MIDDLEWARE = []

# ---------- Database ----------
# PostgreSQL when POSTGRES_DB is set, SQLite otherwise
if os.environ.get("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["POSTGRES_DB"],
            "USER": os.environ.get("POSTGRES_USER", "postgres"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
            "ATOMIC_REQUESTS": False,
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("DJANGO_TIME_ZONE", "UTC")
USE_I18N = False
USE_TZ = True

# ---------- Ledger ----------
# Confidence above which a proposed bank match is accepted automatically
LEDGER_AUTO_MATCH_THRESHOLD = float(os.environ.get("LEDGER_AUTO_MATCH_THRESHOLD", "0.9"))

# Chart of accounts codes the lifecycle posts against
LEDGER_DEFAULT_ACCOUNT_CODES = {
    "cash": "1000",
    "accounts_receivable": "1200",
    "accounts_payable": "2000",
    "equity": "3000",
    "revenue": "4000",
    "expense": "5000",
}

LEDGER_DEFAULT_PAYMENT_TERMS_DAYS = 30
LEDGER_CONCURRENCY_RETRIES = int(os.environ.get("LEDGER_CONCURRENCY_RETRIES", "3"))
LEDGER_MATCH_DATE_WINDOW_DAYS = 7

# ---------- Celery ----------
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "memory://")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "cache+memory://")
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    # materialize due recurring invoices/bills once a day
    "process-recurring-transactions": {
        "task": "ledger_core.tasks.process_recurring_transactions",
        "schedule": crontab(hour=1, minute=0),
    },
    # recompute aging days / overdue status before the business day starts
    "refresh-document-aging": {
        "task": "ledger_core.tasks.refresh_document_aging",
        "schedule": crontab(hour=2, minute=0),
    },
}

# ---------- Logging ----------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "ledger_core": {
            "handlers": ["console"],
            "level": os.environ.get("LEDGER_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
