"""In-memory LedgerRepository adapter.

Keeps the whole ledger in process memory. Writes made inside atomic() are
staged per thread and only become visible when the block exits cleanly, so
a failed mutation leaves nothing behind.
"""

import itertools
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime

from django.utils import timezone

from loyaltyledger import policy
from loyaltyledger.choices import REVERSIBLE_TYPES
from loyaltyledger.protocols.ledger import (
    AccountInfo,
    RuleVersionInfo,
    TierChangeInfo,
    TierInfo,
    TransactionInfo,
)


class _Pending:
    def __init__(self):
        self.accounts: dict[str, AccountInfo] = {}
        self.transactions: list[TransactionInfo] = []
        self.tier_changes: list[TierChangeInfo] = []


class InMemoryLedgerRepository:
    """
    LedgerRepository kept in dicts and lists.

    Configuration in settings.py:
        LOYALTY_LEDGER = {
            "REPOSITORY_BACKEND": "loyaltyledger.adapters.memory.InMemoryLedgerRepository",
        }
    """

    def __init__(self, rule_versions=(), tiers=()):
        self._lock = threading.RLock()
        self._local = threading.local()
        self._ids = itertools.count(1)
        self.accounts: dict[str, AccountInfo] = {}
        self.transactions: list[TransactionInfo] = []
        self.tier_changes: list[TierChangeInfo] = []
        self.rule_versions: list[RuleVersionInfo] = list(rule_versions)
        self.tiers: list[TierInfo] = list(tiers)

    # ------------------------------------------------------------------
    # Catalog setup
    # ------------------------------------------------------------------

    def add_rule_version(self, version: RuleVersionInfo) -> RuleVersionInfo:
        with self._lock:
            self.rule_versions.append(version)
        return version

    def add_tier(self, tier: TierInfo) -> TierInfo:
        with self._lock:
            self.tiers.append(tier)
        return tier

    # ------------------------------------------------------------------
    # LedgerRepository
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self, customer_ref: str):
        if getattr(self._local, "pending", None) is not None:
            yield
            return

        self._local.pending = _Pending()
        try:
            yield
            pending = self._local.pending
            with self._lock:
                self.accounts.update(pending.accounts)
                self.transactions.extend(pending.transactions)
                self.tier_changes.extend(pending.tier_changes)
        finally:
            self._local.pending = None

    def _pending(self) -> _Pending | None:
        return getattr(self._local, "pending", None)

    def load_account(self, customer_ref: str, for_update: bool = False) -> AccountInfo | None:
        pending = self._pending()
        if pending and customer_ref in pending.accounts:
            return pending.accounts[customer_ref]
        with self._lock:
            return self.accounts.get(customer_ref)

    def create_account(self, customer_ref: str) -> AccountInfo:
        existing = self.load_account(customer_ref)
        if existing is not None:
            return existing
        with self._lock:
            account_id = next(self._ids)
        account = AccountInfo(customer_ref=customer_ref, id=account_id, created_at=timezone.now())
        return self.save_account(account)

    def save_account(self, account: AccountInfo) -> AccountInfo:
        pending = self._pending()
        if pending is not None:
            pending.accounts[account.customer_ref] = account
        else:
            with self._lock:
                self.accounts[account.customer_ref] = account
        return account

    def append_transaction(self, entry: TransactionInfo) -> TransactionInfo:
        with self._lock:
            entry = replace(entry, id=next(self._ids))
        pending = self._pending()
        if pending is not None:
            pending.transactions.append(entry)
        else:
            with self._lock:
                self.transactions.append(entry)
        return entry

    def append_tier_change(self, change: TierChangeInfo) -> None:
        pending = self._pending()
        if pending is not None:
            pending.tier_changes.append(change)
        else:
            with self._lock:
                self.tier_changes.append(change)

    def load_active_rule_version(self, at: datetime) -> RuleVersionInfo | None:
        with self._lock:
            return policy.select_active_version(self.rule_versions, at)

    def load_tier_catalog(self) -> list[TierInfo]:
        with self._lock:
            return sorted(self.tiers, key=policy.tier_rank)

    def load_order_transactions(
        self,
        customer_ref: str,
        reference_type: str,
        reference_id: str,
    ) -> list[TransactionInfo]:
        entries = self.transactions_for(customer_ref)
        reversed_ids = {e.reverses_id for e in entries if e.reverses_id is not None}
        return [
            e
            for e in entries
            if e.reference_type == reference_type
            and e.reference_id == reference_id
            and e.transaction_type in REVERSIBLE_TYPES
            and e.id not in reversed_ids
        ]

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def transactions_for(self, customer_ref: str) -> list[TransactionInfo]:
        """Committed and pending entries of one customer, in creation order."""
        with self._lock:
            entries = [e for e in self.transactions if e.customer_ref == customer_ref]
        pending = self._pending()
        if pending is not None:
            entries += [e for e in pending.transactions if e.customer_ref == customer_ref]
        return sorted(entries, key=lambda e: e.id)
