"""
Loyalty ledger public API.

CORE (ledger):
    LoyaltyService.earn(ref, amount)                  - Credit points for a purchase
    LoyaltyService.calculate_redemption(ref, amount)  - Preview a redemption
    LoyaltyService.redeem(ref, points)                - Spend points for a discount
    LoyaltyService.adjust(ref, points, type, reason)  - Manual adjustment
    LoyaltyService.reverse_order(ref, order_ref)      - Undo a cancelled order

CONVENIENCE (read side):
    LoyaltyService.member(ref)           - Account summary
    LoyaltyService.members(...)          - Paginated listing
    LoyaltyService.history(ref)          - Transaction history
    LoyaltyService.stats()               - Program statistics

ADMIN:
    LoyaltyService.active_rules(), create_rule_version(...), activate_rule_version(n)
    LoyaltyService.tiers(), create_tier(...), update_tier(...), deactivate_tier(code)
"""

import threading

from django.utils.module_loading import import_string

from loyaltyledger.conf import ledger_settings
from loyaltyledger.engine import LedgerEngine
from loyaltyledger.locks import KeyedLock
from loyaltyledger.services import reporting, rules, tiers

_engines: dict[str, LedgerEngine] = {}
_engines_lock = threading.Lock()
_locks = KeyedLock()


class LoyaltyService:
    """
    Loyalty ledger public API.

    Uses @classmethod for extensibility. The engine is built once per
    configured repository backend and shares one per-customer lock table.
    """

    # ======================================================================
    # CORE API
    # ======================================================================

    @classmethod
    def engine(cls) -> LedgerEngine:
        """Ledger engine for the configured REPOSITORY_BACKEND."""
        path = ledger_settings.REPOSITORY_BACKEND
        with _engines_lock:
            engine = _engines.get(path)
            if engine is None:
                engine = cls._build_engine(path)
                _engines[path] = engine
        return engine

    @classmethod
    def _build_engine(cls, path: str) -> LedgerEngine:
        """Internal: construct the engine. Override to inject a clock, etc."""
        repository_class = import_string(path)
        return LedgerEngine(repository_class(), locks=_locks)

    @classmethod
    def reset(cls) -> None:
        """Drop cached engines (settings changed, tests)."""
        with _engines_lock:
            _engines.clear()

    @classmethod
    def earn(cls, customer_ref: str, amount: int, order_ref: str | None = None, **kwargs):
        """
        Credit points for a purchase.

        Args:
            customer_ref: Customer identifier
            amount: Purchase amount in minor units
            order_ref: Originating order (optional)
            order_type: Order type tag (default DEFAULT_REFERENCE_TYPE)
            actor: Who triggered the earn

        Returns:
            EarnResult
        """
        return cls.engine().earn(customer_ref, amount, order_ref=order_ref, **kwargs)

    @classmethod
    def calculate_redemption(cls, customer_ref: str, order_amount: int, points_to_redeem: int | None = None):
        """Preview a redemption for an order. Returns RedemptionPreview."""
        return cls.engine().calculate_redemption(customer_ref, order_amount, points_to_redeem)

    @classmethod
    def redeem(cls, customer_ref: str, points: int, order_ref: str | None = None, **kwargs):
        """
        Spend points for a discount.

        Args:
            customer_ref: Customer identifier
            points: Points to redeem
            order_ref: Order the discount applies to (optional)
            order_amount: Enforce the percentage cap against this amount
            actor: Who triggered the redemption

        Returns:
            RedeemResult
        """
        return cls.engine().redeem(customer_ref, points, order_ref=order_ref, **kwargs)

    @classmethod
    def adjust(cls, customer_ref: str, points: int, adjustment_type: str, reason: str, actor: str | None = None):
        """Manual adjustment. Returns AdjustResult."""
        return cls.engine().adjust(customer_ref, points, adjustment_type, reason, actor=actor)

    @classmethod
    def reverse_order(cls, customer_ref: str, order_ref: str, order_type: str | None = None, **kwargs):
        """Undo the earn/redeem entries of a cancelled order. Returns ReversalResult."""
        return cls.engine().reverse_order(customer_ref, order_ref, order_type, **kwargs)

    # ======================================================================
    # CONVENIENCE API
    # ======================================================================

    @classmethod
    def member(cls, customer_ref: str):
        return reporting.get_member(customer_ref)

    @classmethod
    def members(cls, **filters):
        return reporting.list_members(**filters)

    @classmethod
    def history(cls, customer_ref: str, page: int = 1, limit: int | None = None):
        return reporting.transaction_history(customer_ref, page=page, limit=limit)

    @classmethod
    def stats(cls):
        return reporting.program_stats()

    # ======================================================================
    # ADMIN API
    # ======================================================================

    @classmethod
    def active_rules(cls, at=None):
        return rules.get_active_rules(at)

    @classmethod
    def create_rule_version(cls, **params):
        return rules.create_version(**params)

    @classmethod
    def activate_rule_version(cls, version_number: int):
        return rules.activate_version(version_number)

    @classmethod
    def tiers(cls, include_inactive: bool = False):
        return tiers.list_tiers(include_inactive)

    @classmethod
    def create_tier(cls, **params):
        return tiers.create_tier(**params)

    @classmethod
    def update_tier(cls, code: str, /, **fields):
        return tiers.update_tier(code, **fields)

    @classmethod
    def deactivate_tier(cls, code: str):
        return tiers.deactivate_tier(code)
