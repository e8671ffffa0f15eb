from django.contrib.auth import get_user_model

from ..models import Company
from ..services.chart import get_account_by_code, seed_default_accounts


def make_company(name="Test Co", slug=None):
    """Company with the default chart of accounts already seeded"""
    company = Company.objects.create(name=name, slug=slug or name.lower().replace(" ", "-"))
    seed_default_accounts(company)
    return company


def make_user(username="clerk"):
    return get_user_model().objects.create_user(username=username, password="pw")


def account(company, code):
    return get_account_by_code(company, code)
