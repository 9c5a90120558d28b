"""
Django Loyalty Ledger - points, tiers and versioned program rules.

Usage:
    from loyaltyledger import LoyaltyService

    result = LoyaltyService.earn("CUST-001", amount=105000, order_ref="SO-123")
    preview = LoyaltyService.calculate_redemption("CUST-001", order_amount=500000)
    LoyaltyService.redeem("CUST-001", preview.suggested_points, order_ref="SO-124")
    LoyaltyService.adjust("CUST-001", 200, "promotion", "Welcome bonus", actor="staff:7")
"""


def __getattr__(name):
    if name == "LoyaltyService":
        from loyaltyledger.service import LoyaltyService

        return LoyaltyService
    if name == "LedgerEngine":
        from loyaltyledger.engine import LedgerEngine

        return LedgerEngine
    if name == "Gates":
        from loyaltyledger.gates import Gates

        return Gates
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["LoyaltyService", "LedgerEngine", "Gates"]
__version__ = "0.1.0"
