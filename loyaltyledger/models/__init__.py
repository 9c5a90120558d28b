"""Loyalty ledger models.

Catalog (read-mostly, administered):
- LoyaltyTier, RuleVersion

Ledger (written only by the engine):
- LoyaltyAccount, LoyaltyTransaction, TierChange
"""

from loyaltyledger.models.tier import LoyaltyTier
from loyaltyledger.models.rule_version import RuleVersion
from loyaltyledger.models.account import LoyaltyAccount
from loyaltyledger.models.transaction import LoyaltyTransaction
from loyaltyledger.models.tier_change import TierChange

__all__ = [
    # Catalog
    "LoyaltyTier",
    "RuleVersion",
    # Ledger
    "LoyaltyAccount",
    "LoyaltyTransaction",
    "TierChange",
]
