"""Results returned by ledger operations."""

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class EarnResult:
    """Outcome of earn(). transaction_id is None for zero-point no-ops."""

    points_earned: int
    points_balance: int
    tier_multiplier: Decimal
    transaction_id: int | None
    tier_upgraded: bool = False
    new_tier_name: str | None = None


@dataclass(frozen=True)
class RedemptionPreview:
    """Advisory redemption figures for an order. Nothing is reserved."""

    points_available: int
    max_redeemable_points: int
    max_discount_amount: int
    suggested_points: int
    suggested_discount_amount: int
    requested_points_valid: bool
    can_redeem: bool
    min_redemption_points: int
    redemption_rate: Decimal
    tier_name: str | None
    tier_multiplier: Decimal


@dataclass(frozen=True)
class RedeemResult:
    discount_amount: int
    points_redeemed: int
    points_balance: int
    transaction_id: int


@dataclass(frozen=True)
class AdjustResult:
    points_adjusted: int
    points_balance: int
    transaction_id: int
    adjustment_type: str


@dataclass(frozen=True)
class ReversalResult:
    """Outcome of reverse_order(). Empty when there was nothing left to reverse."""

    points_reversed: int
    points_balance: int
    transaction_ids: list[int] = field(default_factory=list)
