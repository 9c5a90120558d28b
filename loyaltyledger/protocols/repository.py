"""Storage protocol for the ledger engine."""

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol, runtime_checkable

from loyaltyledger.protocols.ledger import (
    AccountInfo,
    RuleVersionInfo,
    TierChangeInfo,
    TierInfo,
    TransactionInfo,
)


@runtime_checkable
class LedgerRepository(Protocol):
    """
    Protocol for ledger persistence.

    The engine only reads and writes through this seam, so it runs the same
    against the database or in memory. Implemented by
    adapters/django_orm.py and adapters/memory.py.

    Configuration in settings.py:
        LOYALTY_LEDGER = {
            "REPOSITORY_BACKEND": "loyaltyledger.adapters.django_orm.DjangoLedgerRepository",
        }
    """

    def atomic(self, customer_ref: str) -> AbstractContextManager:
        """
        Unit of work for one mutation.

        Everything written inside the block commits together or not at all.
        """
        ...

    def load_account(self, customer_ref: str, for_update: bool = False) -> AccountInfo | None:
        """
        Return the account, or None if the customer has none yet.

        Args:
            customer_ref: Customer identifier
            for_update: Lock the account row until the unit of work ends
        """
        ...

    def create_account(self, customer_ref: str) -> AccountInfo:
        """
        Create an empty account and lock it until the unit of work ends.

        If another writer created the account first, that account is locked
        and returned instead.
        """
        ...

    def save_account(self, account: AccountInfo) -> AccountInfo:
        """Persist the state of an existing account; returns it."""
        ...

    def append_transaction(self, entry: TransactionInfo) -> TransactionInfo:
        """Append a ledger entry; returns it with its id."""
        ...

    def append_tier_change(self, change: TierChangeInfo) -> None:
        """Record a tier transition."""
        ...

    def load_active_rule_version(self, at: datetime) -> RuleVersionInfo | None:
        """Rule version in effect at ``at``, or None."""
        ...

    def load_tier_catalog(self) -> list[TierInfo]:
        """All tiers, inactive ones included (needed to price existing accounts)."""
        ...

    def load_order_transactions(
        self,
        customer_ref: str,
        reference_type: str,
        reference_id: str,
    ) -> list[TransactionInfo]:
        """
        Earn/redeem entries of one order that have not been reversed yet.

        Returns:
            Entries in creation order
        """
        ...
