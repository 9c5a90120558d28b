"""
Loyalty ledger signals - public event API.

Emitted by the ledger engine when its own unit of work exits cleanly. A
caller that wraps the engine in an outer transaction may still roll it back
afterwards; receivers that must only see committed data should defer their
work with django.db.transaction.on_commit.

- points_earned: customer_ref, result=EarnResult
- points_redeemed: customer_ref, result=RedeemResult
- points_adjusted: customer_ref, result=AdjustResult
- points_reversed: customer_ref, reference_id, result=ReversalResult
- tier_changed: customer_ref, old_tier_id, new_tier_id, reason
"""

from django.dispatch import Signal

# Ledger signals (sender=LedgerEngine)
points_earned = Signal()
points_redeemed = Signal()
points_adjusted = Signal()
points_reversed = Signal()
tier_changed = Signal()
