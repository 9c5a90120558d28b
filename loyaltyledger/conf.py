"""
Loyalty ledger configuration.

Usage in settings.py:
    LOYALTY_LEDGER = {
        "REPOSITORY_BACKEND": "loyaltyledger.adapters.django_orm.DjangoLedgerRepository",
        "RECENT_TRANSACTIONS_DAYS": 30,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class LoyaltyLedgerSettings:
    """Loyalty ledger configuration settings."""

    # Storage used by the ledger engine (dotted path to a LedgerRepository)
    REPOSITORY_BACKEND: str = "loyaltyledger.adapters.django_orm.DjangoLedgerRepository"

    # Reference type recorded when an order ref comes without a type tag
    DEFAULT_REFERENCE_TYPE: str = "sales_order"

    # Paging for member listing and transaction history
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Window for "recent transactions" in program statistics
    RECENT_TRANSACTIONS_DAYS: int = 30

    # Label for accounts without a tier in statistics
    NO_TIER_LABEL: str = "No Tier"


def get_ledger_settings() -> LoyaltyLedgerSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "LOYALTY_LEDGER", {})
    return LoyaltyLedgerSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_ledger_settings(), name)


ledger_settings = _LazySettings()
