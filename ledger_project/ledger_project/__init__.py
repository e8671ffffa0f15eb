# Celery instance is defined in ledger_project/celery.py
# It points celery_app at the Django settings so workers and beat share config
from .celery import celery_app

# 'from ledger_project import *', only exports celery_app
__all__ = ("celery_app",)

""" Workers and the beat scheduler run with "celery -A ledger_project worker -B -l info".
    -A ledger_project imports this module, which exposes celery_app. """
