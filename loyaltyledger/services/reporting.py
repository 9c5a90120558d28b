"""Read-side queries: members, history, program statistics and reconciliation.

Nothing here writes. Results may be slightly stale relative to concurrent
mutations.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from django.db.models import Count, Sum
from django.utils import timezone

from loyaltyledger import policy
from loyaltyledger.choices import TierBasis, TransactionType
from loyaltyledger.conf import ledger_settings
from loyaltyledger.exceptions import NotFoundError, ValidationError
from loyaltyledger.gates import Gates
from loyaltyledger.models import LoyaltyAccount, LoyaltyTier, LoyaltyTransaction, TierChange
from loyaltyledger.services import rules

logger = logging.getLogger(__name__)


SORT_FIELDS = ("points_balance", "points_earned_lifetime", "total_spend", "created_at")


@dataclass
class Page:
    """One page of a listing."""

    items: list
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass
class MemberSummary:
    customer_ref: str
    points_balance: int
    points_earned_lifetime: int
    points_redeemed_lifetime: int
    total_spend: int
    tier_code: str | None = None
    tier_name: str | None = None
    tier_multiplier: Decimal = Decimal("1")
    tier_updated_at: datetime | None = None
    created_at: datetime | None = None
    next_tier_name: str | None = None
    to_next_tier: int | None = None  # points or spend, per evaluation basis
    evaluation_basis: str = TierBasis.LIFETIME_POINTS.value


@dataclass
class ProgramStats:
    total_members: int
    total_points_issued: int
    total_points_redeemed: int
    total_points_balance: int
    members_by_tier: dict = field(default_factory=dict)
    recent_transactions: int = 0
    recent_days: int = 30


@dataclass
class ReconciliationIssue:
    """
    Mismatch found while replaying an account's ledger.

    kind is one of: balance, snapshot, negative, earned_lifetime,
    redeemed_lifetime.
    """

    customer_ref: str
    kind: str
    expected: int
    actual: int
    transaction_id: int | None = None


# =============================================================================
# Members
# =============================================================================


def get_member(customer_ref: str) -> MemberSummary:
    """
    Account summary with progress toward the next tier.

    Raises:
        NotFoundError: If the customer has no loyalty account
    """
    try:
        account = LoyaltyAccount.objects.select_related("tier").get(customer_ref=customer_ref)
    except LoyaltyAccount.DoesNotExist:
        raise NotFoundError("ACCOUNT_NOT_FOUND", customer_ref=customer_ref)
    return _summarize(account, list(LoyaltyTier.objects.all()), _evaluation_basis())


def list_members(
    search: str | None = None,
    tier_code: str | None = None,
    page: int = 1,
    limit: int | None = None,
    sort_by: str = "points_balance",
    sort_order: str = "desc",
) -> Page:
    """
    Paginated member listing.

    Args:
        search: Case-insensitive match on customer_ref
        tier_code: Only members of this tier
        sort_by: points_balance | points_earned_lifetime | total_spend | created_at
        sort_order: asc | desc

    Raises:
        ValidationError: On unknown sort field/order or bad paging
    """
    if sort_by not in SORT_FIELDS:
        raise ValidationError("INVALID_INPUT", f"Cannot sort by {sort_by}.", allowed=list(SORT_FIELDS))
    if sort_order not in ("asc", "desc"):
        raise ValidationError("INVALID_INPUT", "sort_order must be asc or desc.")

    qs = LoyaltyAccount.objects.select_related("tier")
    if search:
        qs = qs.filter(customer_ref__icontains=search)
    if tier_code:
        qs = qs.filter(tier__code=tier_code)

    prefix = "-" if sort_order == "desc" else ""
    qs = qs.order_by(f"{prefix}{sort_by}", "id")

    result = _paginate(qs, page, limit)
    catalog = list(LoyaltyTier.objects.all())
    basis = _evaluation_basis()
    result.items = [_summarize(account, catalog, basis) for account in result.items]
    return result


def _summarize(account: LoyaltyAccount, catalog: list, basis: str) -> MemberSummary:
    tier = account.tier
    upcoming = policy.next_tier(catalog, tier, basis)
    to_next = None
    if upcoming is not None:
        threshold = policy.tier_threshold(upcoming, basis)
        to_next = max(threshold - policy.evaluation_value(account, basis), 0)

    return MemberSummary(
        customer_ref=account.customer_ref,
        points_balance=account.points_balance,
        points_earned_lifetime=account.points_earned_lifetime,
        points_redeemed_lifetime=account.points_redeemed_lifetime,
        total_spend=account.total_spend,
        tier_code=tier.code if tier else None,
        tier_name=tier.name if tier else None,
        tier_multiplier=tier.points_multiplier if tier else Decimal("1"),
        tier_updated_at=account.tier_updated_at,
        created_at=account.created_at,
        next_tier_name=upcoming.name if upcoming else None,
        to_next_tier=to_next,
        evaluation_basis=basis,
    )


def _evaluation_basis() -> str:
    version = rules.find_active()
    if version is None:
        logger.warning("No active loyalty rules, tier progress shown on lifetime points")
        return TierBasis.LIFETIME_POINTS.value
    return version.tier_evaluation_basis


# =============================================================================
# History
# =============================================================================


def transaction_history(
    customer_ref: str,
    page: int = 1,
    limit: int | None = None,
    transaction_type: str | None = None,
) -> Page:
    """Ledger entries of a customer, newest first. Empty page if unknown."""
    qs = LoyaltyTransaction.objects.filter(account__customer_ref=customer_ref)
    if transaction_type:
        qs = qs.filter(transaction_type=str(transaction_type))
    return _paginate(qs.order_by("-created_at", "-id"), page, limit)


def tier_history(customer_ref: str) -> list[TierChange]:
    """Tier transitions of a customer, newest first."""
    return list(
        TierChange.objects.filter(account__customer_ref=customer_ref)
        .select_related("old_tier", "new_tier")
        .order_by("-created_at", "-id")
    )


def _paginate(qs, page: int, limit: int | None) -> Page:
    limit = ledger_settings.DEFAULT_PAGE_SIZE if limit is None else limit
    Gates.paging(page, limit, ledger_settings.MAX_PAGE_SIZE)

    total = qs.count()
    offset = (page - 1) * limit
    return Page(
        items=list(qs[offset : offset + limit]),
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )


# =============================================================================
# Program statistics
# =============================================================================


def program_stats(now: datetime | None = None) -> ProgramStats:
    """Program-wide totals and member count per tier."""
    now = now or timezone.now()
    days = ledger_settings.RECENT_TRANSACTIONS_DAYS

    totals = LoyaltyAccount.objects.aggregate(
        members=Count("id"),
        issued=Sum("points_earned_lifetime"),
        redeemed=Sum("points_redeemed_lifetime"),
        balance=Sum("points_balance"),
    )

    members_by_tier = {}
    rows = (
        LoyaltyAccount.objects.values("tier__name")
        .annotate(count=Count("id"))
        .order_by("tier__display_order")
    )
    for row in rows:
        label = row["tier__name"] or ledger_settings.NO_TIER_LABEL
        members_by_tier[label] = members_by_tier.get(label, 0) + row["count"]

    recent = LoyaltyTransaction.objects.filter(created_at__gte=now - timedelta(days=days)).count()

    return ProgramStats(
        total_members=totals["members"],
        total_points_issued=totals["issued"] or 0,
        total_points_redeemed=totals["redeemed"] or 0,
        total_points_balance=totals["balance"] or 0,
        members_by_tier=members_by_tier,
        recent_transactions=recent,
        recent_days=days,
    )


# =============================================================================
# Reconciliation
# =============================================================================


def reconcile_account(account: LoyaltyAccount) -> list[ReconciliationIssue]:
    """
    Replay an account's ledger from zero and compare with the stored state.

    Checks every balance snapshot, the final balance, that the balance never
    went negative, and the lifetime earned/redeemed counters.
    """
    issues = []
    balance = earned = redeemed = 0
    ref = account.customer_ref

    for tx in account.transactions.order_by("id"):
        balance += tx.points
        if tx.transaction_type == TransactionType.EARN:
            earned += tx.points
        elif tx.transaction_type == TransactionType.REDEEM:
            redeemed -= tx.points

        if balance < 0:
            issues.append(ReconciliationIssue(ref, "negative", 0, balance, tx.pk))
        if tx.points_balance_after != balance:
            issues.append(
                ReconciliationIssue(ref, "snapshot", balance, tx.points_balance_after, tx.pk)
            )

    if account.points_balance != balance:
        issues.append(ReconciliationIssue(ref, "balance", balance, account.points_balance))
    if account.points_earned_lifetime != earned:
        issues.append(
            ReconciliationIssue(ref, "earned_lifetime", earned, account.points_earned_lifetime)
        )
    if account.points_redeemed_lifetime != redeemed:
        issues.append(
            ReconciliationIssue(ref, "redeemed_lifetime", redeemed, account.points_redeemed_lifetime)
        )
    return issues


def reconcile_all(customer_ref: str | None = None) -> list[ReconciliationIssue]:
    """Reconcile one customer (NotFoundError if unknown) or every account."""
    accounts = LoyaltyAccount.objects.order_by("id")
    if customer_ref is not None:
        accounts = accounts.filter(customer_ref=customer_ref)
        if not accounts.exists():
            raise NotFoundError("ACCOUNT_NOT_FOUND", customer_ref=customer_ref)

    issues = []
    for account in accounts.iterator():
        found = reconcile_account(account)
        if found:
            logger.warning("Ledger mismatch for %s: %d issue(s)", account.customer_ref, len(found))
        issues.extend(found)
    return issues
