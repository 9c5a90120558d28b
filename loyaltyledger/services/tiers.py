"""Tier catalog - resolution and administration of membership tiers."""

import logging
from decimal import Decimal

from django.db import IntegrityError, transaction

from loyaltyledger import policy
from loyaltyledger.choices import TierBasis
from loyaltyledger.exceptions import ConflictError, NotFoundError
from loyaltyledger.gates import Gates, to_decimal
from loyaltyledger.models import LoyaltyTier, LoyaltyTransaction

logger = logging.getLogger(__name__)


# Fields that decide who qualifies and how much they earn.
# Frozen once the tier shows up on a transaction.
THRESHOLD_FIELDS = {
    "display_order",
    "min_points",
    "min_total_spend",
    "points_multiplier",
}

UPDATABLE_FIELDS = THRESHOLD_FIELDS | {
    "name",
    "benefits",
    "is_active",
}


def resolve_tier(evaluation_value: int, basis: str = TierBasis.LIFETIME_POINTS) -> LoyaltyTier | None:
    """
    Highest-ordered active tier the value qualifies for.

    Args:
        evaluation_value: Lifetime points or total spend
        basis: Which threshold to compare (lifetime_points | total_spend)

    Returns:
        LoyaltyTier, or None if no tier qualifies
    """
    return policy.resolve_tier(LoyaltyTier.objects.filter(is_active=True), evaluation_value, basis)


def list_tiers(include_inactive: bool = False) -> list[LoyaltyTier]:
    qs = LoyaltyTier.objects.all()
    if not include_inactive:
        qs = qs.filter(is_active=True)
    return list(qs.order_by("display_order", "min_points"))


def get_tier(code: str) -> LoyaltyTier:
    try:
        return LoyaltyTier.objects.get(code=code)
    except LoyaltyTier.DoesNotExist:
        raise NotFoundError("TIER_NOT_FOUND", tier_code=code)


def is_referenced(tier: LoyaltyTier) -> bool:
    """True once any transaction was priced with this tier."""
    return LoyaltyTransaction.objects.filter(tier=tier).exists()


def create_tier(
    code: str,
    name: str,
    display_order: int,
    min_points: int,
    points_multiplier=Decimal("1"),
    min_total_spend: int | None = None,
    benefits: dict | None = None,
    is_active: bool = True,
) -> LoyaltyTier:
    """
    Add a tier to the catalog.

    Raises:
        ValidationError: If a threshold or the multiplier is out of range
        ConflictError: If the code already exists
    """
    points_multiplier = to_decimal(points_multiplier, "points_multiplier")
    Gates.tier_ranges(display_order, min_points, points_multiplier, min_total_spend)

    if LoyaltyTier.objects.filter(code=code).exists():
        raise ConflictError("DUPLICATE_TIER_CODE", tier_code=code)

    try:
        with transaction.atomic():
            tier = LoyaltyTier.objects.create(
                code=code,
                name=name,
                display_order=display_order,
                min_points=min_points,
                min_total_spend=min_total_spend,
                points_multiplier=points_multiplier,
                benefits=benefits or {},
                is_active=is_active,
            )
    except IntegrityError:
        raise ConflictError("DUPLICATE_TIER_CODE", tier_code=code)

    logger.info("Created loyalty tier %s", code)
    return tier


def update_tier(code: str, /, **fields) -> LoyaltyTier:
    """
    Update tier fields (only whitelisted fields are accepted).

    Raises:
        NotFoundError: If the tier does not exist
        ConflictError: If a threshold changes on a tier used by transactions,
            or if the tier is deactivated while accounts sit on it
        ValidationError: If the resulting thresholds are out of range
    """
    tier = get_tier(code)

    changes = {}
    for key, value in fields.items():
        if key not in UPDATABLE_FIELDS:
            continue
        if key == "points_multiplier":
            value = to_decimal(value, key)
        if getattr(tier, key) != value:
            changes[key] = value

    if changes.get("is_active") is False:
        _ensure_unused(tier)

    frozen = sorted(THRESHOLD_FIELDS & changes.keys())
    if frozen and is_referenced(tier):
        raise ConflictError("TIER_REFERENCED", tier_code=code, fields=frozen)

    for key, value in changes.items():
        setattr(tier, key, value)
    Gates.tier_ranges(
        tier.display_order,
        tier.min_points,
        Decimal(tier.points_multiplier),
        tier.min_total_spend,
    )

    if changes:
        tier.save()
        logger.info("Updated loyalty tier %s: %s", code, ", ".join(sorted(changes)))
    return tier


def deactivate_tier(code: str) -> LoyaltyTier:
    """
    Soft-delete a tier.

    Raises:
        NotFoundError: If the tier does not exist
        ConflictError: While any account still sits on it
    """
    tier = get_tier(code)
    _ensure_unused(tier)

    tier.is_active = False
    tier.save(update_fields=["is_active", "updated_at"])
    logger.info("Deactivated loyalty tier %s", code)
    return tier


def _ensure_unused(tier: LoyaltyTier) -> None:
    members = tier.accounts.count()
    if members:
        raise ConflictError("TIER_IN_USE", tier_code=tier.code, members=members)
