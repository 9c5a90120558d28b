"""Ledger value types exchanged between the engine and its repository."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class TierInfo:
    """Tier catalog entry."""

    id: int
    code: str
    name: str
    display_order: int
    min_points: int
    points_multiplier: Decimal
    min_total_spend: int | None = None
    benefits: dict = field(default_factory=dict)
    is_active: bool = True


@dataclass(frozen=True)
class RuleVersionInfo:
    """Program parameters effective over [effective_from, effective_to)."""

    id: int
    version_number: int
    points_per_currency: Decimal
    earning_round_mode: str
    redemption_rate: Decimal
    max_redemption_percent: Decimal
    min_redemption_points: int
    allow_tier_downgrade: bool
    tier_evaluation_basis: str
    effective_from: datetime
    effective_to: datetime | None = None
    is_active: bool = True
    notes: str = ""


@dataclass(frozen=True)
class AccountInfo:
    """Customer loyalty account state. ``id`` is None until created."""

    customer_ref: str
    tier_id: int | None = None
    points_balance: int = 0
    points_earned_lifetime: int = 0
    points_redeemed_lifetime: int = 0
    total_spend: int = 0
    tier_updated_at: datetime | None = None
    id: int | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class TransactionInfo:
    """Append-only ledger entry. ``id`` is assigned by the repository."""

    account_id: int
    customer_ref: str
    transaction_type: str
    points: int  # positive credit, negative debit
    points_balance_after: int
    created_at: datetime
    reference_type: str = ""
    reference_id: str = ""
    order_amount: int | None = None
    reason: str = ""
    created_by: str = ""
    rule_version_id: int | None = None
    tier_id: int | None = None
    tier_multiplier: Decimal = Decimal("1")
    reverses_id: int | None = None
    id: int | None = None


@dataclass(frozen=True)
class TierChangeInfo:
    """One tier transition, tied to the transaction that triggered it."""

    account_id: int
    customer_ref: str
    old_tier_id: int | None
    new_tier_id: int | None
    change_reason: str
    transaction_id: int | None
    created_at: datetime
