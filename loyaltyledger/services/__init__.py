"""Loyalty ledger services backed by the Django ORM.

- rules: rule version store (resolution and administration)
- tiers: tier catalog (resolution and administration)
- reporting: member lookup, history, statistics and reconciliation

Point mutations live in loyaltyledger.engine.
"""

from loyaltyledger.services import rules
from loyaltyledger.services import tiers
from loyaltyledger.services import reporting

__all__ = ["rules", "tiers", "reporting"]
