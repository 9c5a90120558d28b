"""Loyalty ledger protocols."""

from loyaltyledger.protocols.ledger import (
    AccountInfo,
    RuleVersionInfo,
    TierChangeInfo,
    TierInfo,
    TransactionInfo,
)
from loyaltyledger.protocols.repository import LedgerRepository
from loyaltyledger.protocols.results import (
    AdjustResult,
    EarnResult,
    RedeemResult,
    RedemptionPreview,
    ReversalResult,
)

__all__ = [
    # Value types
    "AccountInfo",
    "RuleVersionInfo",
    "TierChangeInfo",
    "TierInfo",
    "TransactionInfo",
    # Storage
    "LedgerRepository",
    # Results
    "AdjustResult",
    "EarnResult",
    "RedeemResult",
    "RedemptionPreview",
    "ReversalResult",
]
