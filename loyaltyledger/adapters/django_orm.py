"""Django ORM LedgerRepository adapter."""

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from loyaltyledger.choices import REVERSIBLE_TYPES
from loyaltyledger.models import (
    LoyaltyAccount,
    LoyaltyTier,
    LoyaltyTransaction,
    RuleVersion,
    TierChange,
)
from loyaltyledger.protocols.ledger import (
    AccountInfo,
    RuleVersionInfo,
    TierChangeInfo,
    TierInfo,
    TransactionInfo,
)
from loyaltyledger.services import rules


class DjangoLedgerRepository:
    """
    Adapter that implements LedgerRepository on the loyaltyledger models.

    Each unit of work is a transaction.atomic() block; accounts loaded for
    update are row-locked (select_for_update) until it ends.

    Configuration in settings.py:
        LOYALTY_LEDGER = {
            "REPOSITORY_BACKEND": "loyaltyledger.adapters.django_orm.DjangoLedgerRepository",
        }
    """

    @contextmanager
    def atomic(self, customer_ref: str):
        with transaction.atomic():
            yield

    def load_account(self, customer_ref: str, for_update: bool = False) -> AccountInfo | None:
        qs = LoyaltyAccount.objects.all()
        if for_update:
            qs = qs.select_for_update()
        try:
            return account_info(qs.get(customer_ref=customer_ref))
        except LoyaltyAccount.DoesNotExist:
            return None

    def create_account(self, customer_ref: str) -> AccountInfo:
        LoyaltyAccount.objects.get_or_create(customer_ref=customer_ref)
        return self.load_account(customer_ref, for_update=True)

    def save_account(self, account: AccountInfo) -> AccountInfo:
        values = {
            "tier_id": account.tier_id,
            "points_balance": account.points_balance,
            "points_earned_lifetime": account.points_earned_lifetime,
            "points_redeemed_lifetime": account.points_redeemed_lifetime,
            "total_spend": account.total_spend,
            "tier_updated_at": account.tier_updated_at,
        }
        LoyaltyAccount.objects.filter(pk=account.id).update(updated_at=timezone.now(), **values)
        return account

    def append_transaction(self, entry: TransactionInfo) -> TransactionInfo:
        obj = LoyaltyTransaction.objects.create(
            account_id=entry.account_id,
            transaction_type=entry.transaction_type,
            points=entry.points,
            points_balance_after=entry.points_balance_after,
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            order_amount=entry.order_amount,
            reason=entry.reason[:255],
            created_by=entry.created_by,
            created_at=entry.created_at,
            rule_version_id=entry.rule_version_id,
            tier_id=entry.tier_id,
            tier_multiplier=entry.tier_multiplier,
            reverses_id=entry.reverses_id,
        )
        return transaction_info(obj, entry.customer_ref)

    def append_tier_change(self, change: TierChangeInfo) -> None:
        TierChange.objects.create(
            account_id=change.account_id,
            old_tier_id=change.old_tier_id,
            new_tier_id=change.new_tier_id,
            change_reason=change.change_reason,
            transaction_id=change.transaction_id,
            created_at=change.created_at,
        )

    def load_active_rule_version(self, at: datetime) -> RuleVersionInfo | None:
        version = rules.find_active(at)
        return rule_version_info(version) if version else None

    def load_tier_catalog(self) -> list[TierInfo]:
        return [tier_info(t) for t in LoyaltyTier.objects.order_by("display_order", "min_points")]

    def load_order_transactions(
        self,
        customer_ref: str,
        reference_type: str,
        reference_id: str,
    ) -> list[TransactionInfo]:
        qs = LoyaltyTransaction.objects.filter(
            account__customer_ref=customer_ref,
            reference_type=reference_type,
            reference_id=reference_id,
            transaction_type__in=REVERSIBLE_TYPES,
            reversal__isnull=True,
        ).order_by("created_at", "id")
        return [transaction_info(tx, customer_ref) for tx in qs]


# =============================================================================
# Row -> value type mapping
# =============================================================================


def account_info(obj: LoyaltyAccount) -> AccountInfo:
    return AccountInfo(
        id=obj.pk,
        customer_ref=obj.customer_ref,
        tier_id=obj.tier_id,
        points_balance=obj.points_balance,
        points_earned_lifetime=obj.points_earned_lifetime,
        points_redeemed_lifetime=obj.points_redeemed_lifetime,
        total_spend=obj.total_spend,
        tier_updated_at=obj.tier_updated_at,
        created_at=obj.created_at,
    )


def tier_info(obj: LoyaltyTier) -> TierInfo:
    return TierInfo(
        id=obj.pk,
        code=obj.code,
        name=obj.name,
        display_order=obj.display_order,
        min_points=obj.min_points,
        min_total_spend=obj.min_total_spend,
        points_multiplier=Decimal(obj.points_multiplier),
        benefits=dict(obj.benefits or {}),
        is_active=obj.is_active,
    )


def rule_version_info(obj: RuleVersion) -> RuleVersionInfo:
    return RuleVersionInfo(
        id=obj.pk,
        version_number=obj.version_number,
        points_per_currency=Decimal(obj.points_per_currency),
        earning_round_mode=obj.earning_round_mode,
        redemption_rate=Decimal(obj.redemption_rate),
        max_redemption_percent=Decimal(obj.max_redemption_percent),
        min_redemption_points=obj.min_redemption_points,
        allow_tier_downgrade=obj.allow_tier_downgrade,
        tier_evaluation_basis=obj.tier_evaluation_basis,
        effective_from=obj.effective_from,
        effective_to=obj.effective_to,
        is_active=obj.is_active,
        notes=obj.notes,
    )


def transaction_info(obj: LoyaltyTransaction, customer_ref: str) -> TransactionInfo:
    return TransactionInfo(
        id=obj.pk,
        account_id=obj.account_id,
        customer_ref=customer_ref,
        transaction_type=obj.transaction_type,
        points=obj.points,
        points_balance_after=obj.points_balance_after,
        created_at=obj.created_at,
        reference_type=obj.reference_type,
        reference_id=obj.reference_id,
        order_amount=obj.order_amount,
        reason=obj.reason,
        created_by=obj.created_by,
        rule_version_id=obj.rule_version_id,
        tier_id=obj.tier_id,
        tier_multiplier=Decimal(obj.tier_multiplier),
        reverses_id=obj.reverses_id,
    )
