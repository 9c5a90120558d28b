"""Rule version store - resolution and administration of program rules.

Versions are never edited once effective. Activating a version closes the
one it supersedes at the new version's start, so active intervals never
overlap and a past instant always resolves to the same version.
"""

import logging
from datetime import datetime
from decimal import Decimal

from django.db import transaction
from django.db.models import Max, Q
from django.utils import timezone

from loyaltyledger.choices import RoundMode, TierBasis
from loyaltyledger.exceptions import ConflictError, NoActiveRulesError, NotFoundError
from loyaltyledger.gates import Gates, to_decimal
from loyaltyledger.models import RuleVersion

logger = logging.getLogger(__name__)


def find_active(at: datetime | None = None) -> RuleVersion | None:
    """Active version covering ``at`` (default now), or None."""
    at = at or timezone.now()
    return (
        RuleVersion.objects.filter(is_active=True, effective_from__lte=at)
        .filter(Q(effective_to__isnull=True) | Q(effective_to__gt=at))
        .order_by("-effective_from", "-version_number")
        .first()
    )


def get_active_rules(at: datetime | None = None) -> RuleVersion:
    """
    Rule version in effect at ``at``.

    Raises:
        NoActiveRulesError: If no active version covers the instant
    """
    at = at or timezone.now()
    version = find_active(at)
    if version is None:
        logger.warning("No active loyalty rules at %s", at.isoformat())
        raise NoActiveRulesError(at=at.isoformat())
    return version


def get_version(version_number: int) -> RuleVersion:
    try:
        return RuleVersion.objects.get(version_number=version_number)
    except RuleVersion.DoesNotExist:
        raise NotFoundError("RULE_VERSION_NOT_FOUND", version_number=version_number)


def list_versions() -> list[RuleVersion]:
    """All versions, newest first."""
    return list(RuleVersion.objects.order_by("-version_number"))


def create_version(
    points_per_currency,
    redemption_rate,
    earning_round_mode: str = RoundMode.FLOOR,
    max_redemption_percent=Decimal("50"),
    min_redemption_points: int = 100,
    allow_tier_downgrade: bool = False,
    tier_evaluation_basis: str = TierBasis.LIFETIME_POINTS,
    is_active: bool = True,
    effective_from: datetime | None = None,
    effective_to: datetime | None = None,
    notes: str = "",
    created_by: str = "",
) -> RuleVersion:
    """
    Create a new rule version.

    An active version supersedes whatever is active at its start. Inactive
    versions are drafts until activate_version().

    Raises:
        ValidationError: If a parameter is out of range or effective_to is
            not after the resolved start
    """
    now = timezone.now()
    start = effective_from or now

    points_per_currency = to_decimal(points_per_currency, "points_per_currency")
    redemption_rate = to_decimal(redemption_rate, "redemption_rate")
    max_redemption_percent = to_decimal(max_redemption_percent, "max_redemption_percent")
    Gates.rule_version_ranges(
        points_per_currency=points_per_currency,
        redemption_rate=redemption_rate,
        max_redemption_percent=max_redemption_percent,
        min_redemption_points=min_redemption_points,
        earning_round_mode=earning_round_mode,
        tier_evaluation_basis=tier_evaluation_basis,
        effective_from=start,
        effective_to=effective_to,
    )

    with transaction.atomic():
        if is_active:
            if start < now:
                ensure_no_overlap(start, now)
            _supersede_active(start)

        version = RuleVersion.objects.create(
            version_number=_next_version_number(),
            points_per_currency=points_per_currency,
            earning_round_mode=str(earning_round_mode),
            redemption_rate=redemption_rate,
            max_redemption_percent=max_redemption_percent,
            min_redemption_points=min_redemption_points,
            allow_tier_downgrade=allow_tier_downgrade,
            tier_evaluation_basis=str(tier_evaluation_basis),
            is_active=is_active,
            effective_from=start,
            effective_to=effective_to,
            notes=notes,
            created_by=created_by,
        )

    logger.info(
        "Created loyalty rule version v%s (active=%s, from %s)",
        version.version_number,
        version.is_active,
        version.effective_from.isoformat(),
    )
    return version


def activate_version(version_number: int) -> RuleVersion:
    """
    Put a drafted version in effect from now (or its own later start).

    Raises:
        NotFoundError: If the version does not exist
        ConflictError: If it is already active
    """
    with transaction.atomic():
        version = get_version(version_number)
        if version.is_active:
            raise ConflictError("RULE_VERSION_ALREADY_ACTIVE", version_number=version_number)

        start = max(timezone.now(), version.effective_from)
        if version.effective_to is not None and version.effective_to <= start:
            version.effective_to = None
        _supersede_active(start)

        version.is_active = True
        version.effective_from = start
        version.save(update_fields=["is_active", "effective_from", "effective_to"])

    logger.info("Activated loyalty rule version v%s from %s", version_number, start.isoformat())
    return version


def _next_version_number() -> int:
    last = RuleVersion.objects.aggregate(last=Max("version_number"))["last"]
    return (last or 0) + 1


def _supersede_active(boundary: datetime) -> None:
    """
    Make room for a version starting at ``boundary``.

    Versions already in effect are closed at the boundary. Active versions
    that would only start at or after it have never been effective and are
    switched off.
    """
    for version in RuleVersion.objects.select_for_update().filter(is_active=True):
        if version.effective_from >= boundary:
            version.is_active = False
            version.save(update_fields=["is_active"])
            logger.info("Loyalty rule version v%s superseded before taking effect", version.version_number)
        elif version.effective_to is None or version.effective_to > boundary:
            version.effective_to = boundary
            version.save(update_fields=["effective_to"])


def ensure_no_overlap(start: datetime, now: datetime | None = None) -> None:
    """A backdated version may only fill a gap no active version covered."""
    now = now or timezone.now()
    overlapping = (
        RuleVersion.objects.filter(is_active=True, effective_from__lt=now)
        .filter(Q(effective_to__isnull=True) | Q(effective_to__gt=start))
        .values_list("version_number", flat=True)
    )
    if overlapping:
        raise ConflictError(
            "RULE_VERSION_OVERLAP",
            start=start.isoformat(),
            overlapping=list(overlapping),
        )
