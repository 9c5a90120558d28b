"""
Pure program arithmetic: rounding, rule resolution, tier ladder, redemption cap.

Works on any object exposing the attributes of the value types in
loyaltyledger.protocols (ORM rows included), so the Django services and the
ledger engine share one definition of every rule.
"""

from datetime import datetime
from decimal import ROUND_CEILING, ROUND_DOWN, ROUND_FLOOR, ROUND_HALF_UP, Decimal

from loyaltyledger.choices import RoundMode, TierBasis

_ROUNDING = {
    RoundMode.FLOOR.value: ROUND_DOWN,
    RoundMode.ROUND.value: ROUND_HALF_UP,
    RoundMode.CEIL.value: ROUND_CEILING,
}


def raw_points(amount: int, points_per_currency: Decimal, multiplier: Decimal) -> Decimal:
    """Unrounded points for an amount: amount x rate x tier multiplier."""
    return Decimal(amount) * Decimal(points_per_currency) * Decimal(multiplier)


def round_points(raw: Decimal, mode: str) -> int:
    """
    Turn raw points into whole points.

    floor truncates toward zero, round is half-up, ceil takes the next
    integer for any fractional remainder. Never negative.
    """
    rounding = _ROUNDING[str(mode)]
    points = int(Decimal(raw).quantize(Decimal(1), rounding=rounding))
    return max(points, 0)


def covers(version, at: datetime) -> bool:
    """True if the version is active and its [from, to) interval contains ``at``."""
    if not version.is_active or version.effective_from > at:
        return False
    return version.effective_to is None or at < version.effective_to


def select_active_version(versions, at: datetime):
    """Active version covering ``at``; latest effective_from wins ties."""
    candidates = [v for v in versions if covers(v, at)]
    if not candidates:
        return None
    return max(candidates, key=lambda v: (v.effective_from, v.version_number))


# =============================================================================
# Tier ladder
# =============================================================================


def tier_rank(tier) -> tuple:
    return (tier.display_order, tier.min_points)


def tier_threshold(tier, basis: str) -> int | None:
    if str(basis) == TierBasis.TOTAL_SPEND.value:
        return tier.min_total_spend
    return tier.min_points


def evaluation_value(account, basis: str) -> int:
    if str(basis) == TierBasis.TOTAL_SPEND.value:
        return account.total_spend
    return account.points_earned_lifetime


def resolve_tier(tiers, value: int, basis: str):
    """
    Highest-ordered active tier whose threshold is <= value, or None.

    Tiers without a threshold for the basis never qualify. Equal thresholds
    resolve to the higher display_order.
    """
    qualifying = []
    for tier in tiers:
        if not tier.is_active:
            continue
        threshold = tier_threshold(tier, basis)
        if threshold is not None and threshold <= value:
            qualifying.append(tier)
    if not qualifying:
        return None
    return max(qualifying, key=lambda t: (t.display_order, tier_threshold(t, basis)))


def is_higher(candidate, current) -> bool:
    """True if moving from ``current`` to ``candidate`` climbs the ladder."""
    if candidate is None:
        return False
    if current is None:
        return True
    return tier_rank(candidate) > tier_rank(current)


def next_tier(tiers, current, basis: str):
    """First active tier above ``current`` that has a threshold on the basis."""
    above = [
        t
        for t in tiers
        if t.is_active
        and tier_threshold(t, basis) is not None
        and (current is None or tier_rank(t) > tier_rank(current))
    ]
    if not above:
        return None
    return min(above, key=tier_rank)


# =============================================================================
# Redemption
# =============================================================================


def redemption_cap(order_amount: int, max_percent: Decimal, rate: Decimal) -> tuple[int, int]:
    """
    Cap for an order: (max_discount_amount, max_points_from_order).

    max_discount = floor(order_amount x percent / 100)
    max_points = floor(max_discount / redemption_rate)
    """
    max_discount = int(
        (Decimal(order_amount) * Decimal(max_percent) / 100).to_integral_value(rounding=ROUND_FLOOR)
    )
    max_points = int((Decimal(max_discount) / Decimal(rate)).to_integral_value(rounding=ROUND_FLOOR))
    return max_discount, max_points


def discount_for(points: int, rate: Decimal) -> int:
    """Discount in minor units for redeemed points, floored."""
    return int((Decimal(points) * Decimal(rate)).to_integral_value(rounding=ROUND_FLOOR))
