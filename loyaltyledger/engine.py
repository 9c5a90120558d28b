"""
Ledger engine - earning, redemption, adjustments and order reversal.

Storage-agnostic: all reads and writes go through a LedgerRepository. Every
mutation runs under a per-customer lock inside one repository unit of work,
so it either commits completely or leaves nothing behind.

Usage:
    from loyaltyledger.adapters.django_orm import DjangoLedgerRepository
    from loyaltyledger.engine import LedgerEngine

    engine = LedgerEngine(DjangoLedgerRepository())
    result = engine.earn("CUST-001", 10_500, order_ref="ORD-42")
"""

import logging
from dataclasses import replace
from decimal import Decimal

from django.utils import timezone

from loyaltyledger import policy, signals
from loyaltyledger.choices import TierChangeReason, TransactionType
from loyaltyledger.conf import ledger_settings
from loyaltyledger.exceptions import (
    InsufficientPointsError,
    InvalidAdjustmentError,
    NoActiveRulesError,
)
from loyaltyledger.gates import Gates
from loyaltyledger.locks import KeyedLock
from loyaltyledger.protocols import (
    AccountInfo,
    AdjustResult,
    EarnResult,
    RedeemResult,
    RedemptionPreview,
    ReversalResult,
    TierChangeInfo,
    TransactionInfo,
)

logger = logging.getLogger(__name__)

ONE = Decimal("1")


class LedgerEngine:
    """
    Transactional core of the loyalty program.

    Args:
        repository: LedgerRepository implementation
        clock: Callable returning the current aware datetime
        locks: KeyedLock shared by engines writing the same store
    """

    def __init__(self, repository, clock=timezone.now, locks: KeyedLock | None = None):
        self.repository = repository
        self.clock = clock
        self.locks = locks or KeyedLock()

    # ======================================================================
    # Earn
    # ======================================================================

    def earn(
        self,
        customer_ref: str,
        amount: int,
        order_ref: str | None = None,
        order_type: str | None = None,
        actor: str = "",
    ) -> EarnResult:
        """
        Credit points for a purchase of ``amount`` minor units.

        A purchase worth zero points is a no-op: nothing is written and no
        account is created (transaction_id is None).

        Raises:
            ValidationError: On malformed input
            NoActiveRulesError: If no rule version is in effect
        """
        Gates.customer_ref(customer_ref)
        Gates.amount(amount)
        reference_type, reference_id = self._reference(order_ref, order_type)

        tier_event = None
        with self.locks.hold(customer_ref), self.repository.atomic(customer_ref):
            now = self.clock()
            rules = self._active_rules(now)
            account = self.repository.load_account(customer_ref, for_update=True)
            state = account or AccountInfo(customer_ref=customer_ref)

            catalog = self.repository.load_tier_catalog()
            current, multiplier, points = _price(state, catalog, rules, amount)
            if points == 0:
                return EarnResult(
                    points_earned=0,
                    points_balance=state.points_balance,
                    tier_multiplier=multiplier,
                    transaction_id=None,
                )

            if state.id is None:
                # Another writer may have created the account since the load
                state = self.repository.create_account(customer_ref)
                current, multiplier, points = _price(state, catalog, rules, amount)

            state = replace(
                state,
                points_balance=state.points_balance + points,
                points_earned_lifetime=state.points_earned_lifetime + points,
                total_spend=state.total_spend + amount,
            )
            entry = self.repository.append_transaction(
                TransactionInfo(
                    account_id=state.id,
                    customer_ref=customer_ref,
                    transaction_type=TransactionType.EARN.value,
                    points=points,
                    points_balance_after=state.points_balance,
                    created_at=now,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    order_amount=amount,
                    created_by=actor or "",
                    rule_version_id=rules.id,
                    tier_id=current.id if current else None,
                    tier_multiplier=multiplier,
                )
            )

            basis = rules.tier_evaluation_basis
            resolved = policy.resolve_tier(catalog, policy.evaluation_value(state, basis), basis)
            reason = _transition(current, resolved, rules.allow_tier_downgrade)
            if reason is not None:
                state = replace(
                    state,
                    tier_id=resolved.id if resolved else None,
                    tier_updated_at=now,
                )
                self.repository.append_tier_change(
                    TierChangeInfo(
                        account_id=state.id,
                        customer_ref=customer_ref,
                        old_tier_id=current.id if current else None,
                        new_tier_id=state.tier_id,
                        change_reason=reason,
                        transaction_id=entry.id,
                        created_at=now,
                    )
                )
                tier_event = (current, resolved, reason)

            self.repository.save_account(state)

        result = EarnResult(
            points_earned=points,
            points_balance=state.points_balance,
            tier_multiplier=multiplier,
            transaction_id=entry.id,
            tier_upgraded=bool(tier_event and tier_event[2] == TierChangeReason.UPGRADE.value),
            new_tier_name=tier_event[1].name if tier_event and tier_event[1] else None,
        )

        logger.debug("Earned %s points for %s (tx %s)", points, customer_ref, entry.id)
        if tier_event:
            old, new, reason = tier_event
            logger.info(
                "Tier %s for %s: %s -> %s",
                reason,
                customer_ref,
                old.code if old else "-",
                new.code if new else "-",
            )
            signals.tier_changed.send(
                sender=self.__class__,
                customer_ref=customer_ref,
                old_tier_id=old.id if old else None,
                new_tier_id=new.id if new else None,
                reason=reason,
            )
        signals.points_earned.send(sender=self.__class__, customer_ref=customer_ref, result=result)
        return result

    # ======================================================================
    # Redemption
    # ======================================================================

    def calculate_redemption(
        self,
        customer_ref: str,
        order_amount: int,
        points_to_redeem: int | None = None,
    ) -> RedemptionPreview:
        """
        Preview how many points can pay for an order. Nothing is reserved.

        Raises:
            ValidationError: On malformed input
            NoActiveRulesError: If no rule version is in effect
            InsufficientPointsError: If the balance is below the minimum
        """
        Gates.customer_ref(customer_ref)
        Gates.amount(order_amount, "order_amount")
        if points_to_redeem is not None:
            Gates.points(points_to_redeem, "points_to_redeem")

        rules = self._active_rules(self.clock())
        account = self.repository.load_account(customer_ref)
        balance = account.points_balance if account else 0
        minimum = rules.min_redemption_points
        if balance < minimum:
            raise InsufficientPointsError(
                "INSUFFICIENT_POINTS",
                available=balance,
                minimum=minimum,
            )

        max_discount, cap_points = policy.redemption_cap(
            order_amount, rules.max_redemption_percent, rules.redemption_rate
        )
        max_points = min(cap_points, balance)
        requested_valid = points_to_redeem is not None and minimum <= points_to_redeem <= max_points
        suggested = points_to_redeem if requested_valid else max_points

        tier = _find_tier(self.repository.load_tier_catalog(), account.tier_id if account else None)
        return RedemptionPreview(
            points_available=balance,
            max_redeemable_points=max_points,
            max_discount_amount=max_discount,
            suggested_points=suggested,
            suggested_discount_amount=policy.discount_for(suggested, rules.redemption_rate),
            requested_points_valid=requested_valid,
            can_redeem=max_points >= minimum,
            min_redemption_points=minimum,
            redemption_rate=rules.redemption_rate,
            tier_name=tier.name if tier else None,
            tier_multiplier=tier.points_multiplier if tier else ONE,
        )

    def redeem(
        self,
        customer_ref: str,
        points: int,
        order_ref: str | None = None,
        order_type: str | None = None,
        order_amount: int | None = None,
        actor: str = "",
    ) -> RedeemResult:
        """
        Spend points for a discount, re-checking every limit at execution time.

        When ``order_amount`` is given the percentage cap is enforced too.

        Raises:
            ValidationError: On malformed input
            NoActiveRulesError: If no rule version is in effect
            InsufficientPointsError: Below minimum, above balance or above cap
        """
        Gates.customer_ref(customer_ref)
        Gates.points(points)
        if order_amount is not None:
            Gates.amount(order_amount, "order_amount")
        reference_type, reference_id = self._reference(order_ref, order_type)

        with self.locks.hold(customer_ref), self.repository.atomic(customer_ref):
            now = self.clock()
            rules = self._active_rules(now)
            account = self.repository.load_account(customer_ref, for_update=True)
            balance = account.points_balance if account else 0

            if points < rules.min_redemption_points:
                raise InsufficientPointsError(
                    "BELOW_MIN_REDEMPTION",
                    requested=points,
                    minimum=rules.min_redemption_points,
                )
            if points > balance:
                raise InsufficientPointsError(
                    "INSUFFICIENT_POINTS",
                    available=balance,
                    requested=points,
                )
            if order_amount is not None:
                max_discount, cap_points = policy.redemption_cap(
                    order_amount, rules.max_redemption_percent, rules.redemption_rate
                )
                if points > cap_points:
                    raise InsufficientPointsError(
                        "REDEMPTION_CAP_EXCEEDED",
                        requested=points,
                        max_points=cap_points,
                        max_discount_amount=max_discount,
                    )

            state = replace(
                account,
                points_balance=balance - points,
                points_redeemed_lifetime=account.points_redeemed_lifetime + points,
            )
            entry = self.repository.append_transaction(
                TransactionInfo(
                    account_id=state.id,
                    customer_ref=customer_ref,
                    transaction_type=TransactionType.REDEEM.value,
                    points=-points,
                    points_balance_after=state.points_balance,
                    created_at=now,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    order_amount=order_amount,
                    created_by=actor or "",
                    rule_version_id=rules.id,
                )
            )
            self.repository.save_account(state)

        result = RedeemResult(
            discount_amount=policy.discount_for(points, rules.redemption_rate),
            points_redeemed=points,
            points_balance=state.points_balance,
            transaction_id=entry.id,
        )
        logger.debug("Redeemed %s points for %s (tx %s)", points, customer_ref, entry.id)
        signals.points_redeemed.send(sender=self.__class__, customer_ref=customer_ref, result=result)
        return result

    # ======================================================================
    # Adjustments
    # ======================================================================

    def adjust(
        self,
        customer_ref: str,
        points: int,
        adjustment_type: str,
        reason: str,
        actor: str | None = None,
    ) -> AdjustResult:
        """
        Manual credit, debit, correction, promotion or expiration.

        Moves the balance only. Lifetime counters and tier stay as they are.

        Raises:
            ValidationError: On unknown type, wrong sign or missing reason
            InvalidAdjustmentError: If the balance would go negative
        """
        Gates.customer_ref(customer_ref)
        Gates.adjustment(adjustment_type, points, reason)
        adjustment_type = str(adjustment_type)

        with self.locks.hold(customer_ref), self.repository.atomic(customer_ref):
            now = self.clock()
            account = self.repository.load_account(customer_ref, for_update=True)
            state = account or self.repository.create_account(customer_ref)

            new_balance = state.points_balance + points
            if new_balance < 0:
                raise InvalidAdjustmentError(
                    "NEGATIVE_BALANCE",
                    balance=state.points_balance,
                    points=points,
                )

            state = replace(state, points_balance=new_balance)
            entry = self.repository.append_transaction(
                TransactionInfo(
                    account_id=state.id,
                    customer_ref=customer_ref,
                    transaction_type=adjustment_type,
                    points=points,
                    points_balance_after=new_balance,
                    created_at=now,
                    reason=reason,
                    created_by=actor or "",
                )
            )
            self.repository.save_account(state)

        result = AdjustResult(
            points_adjusted=points,
            points_balance=new_balance,
            transaction_id=entry.id,
            adjustment_type=adjustment_type,
        )
        logger.info(
            "Adjusted %s by %+d points (%s) by %s: %s",
            customer_ref,
            points,
            adjustment_type,
            actor or "system",
            reason,
        )
        signals.points_adjusted.send(sender=self.__class__, customer_ref=customer_ref, result=result)
        return result

    # ======================================================================
    # Order reversal
    # ======================================================================

    def reverse_order(
        self,
        customer_ref: str,
        reference_id: str,
        reference_type: str | None = None,
        actor: str | None = None,
        reason: str = "",
    ) -> ReversalResult:
        """
        Undo the earn and redeem entries of a cancelled order.

        Appends one correction per entry not reversed yet. Lifetime counters
        are left alone. Calling it again for the same order is a no-op.

        Raises:
            ValidationError: On malformed input
            InvalidAdjustmentError: If the balance would go negative
        """
        Gates.customer_ref(customer_ref)
        Gates.order_ref(reference_id, reference_type)
        reference_type = reference_type or ledger_settings.DEFAULT_REFERENCE_TYPE

        with self.locks.hold(customer_ref), self.repository.atomic(customer_ref):
            now = self.clock()
            account = self.repository.load_account(customer_ref, for_update=True)
            if account is None:
                return ReversalResult(points_reversed=0, points_balance=0)

            entries = self.repository.load_order_transactions(
                customer_ref, reference_type, reference_id
            )
            if not entries:
                return ReversalResult(points_reversed=0, points_balance=account.points_balance)

            # Give redeemed points back before taking earned points away
            entries = sorted(entries, key=lambda e: e.points > 0)

            balance = account.points_balance
            created = []
            for original in entries:
                balance -= original.points
                if balance < 0:
                    raise InvalidAdjustmentError(
                        "NEGATIVE_BALANCE",
                        balance=account.points_balance,
                        reference_id=reference_id,
                        transaction_id=original.id,
                    )
                entry = self.repository.append_transaction(
                    TransactionInfo(
                        account_id=account.id,
                        customer_ref=customer_ref,
                        transaction_type=TransactionType.CORRECTION.value,
                        points=-original.points,
                        points_balance_after=balance,
                        created_at=now,
                        reference_type=reference_type,
                        reference_id=reference_id,
                        reason=reason or f"Reversal of {original.transaction_type} #{original.id}",
                        created_by=actor or "",
                        reverses_id=original.id,
                    )
                )
                created.append(entry.id)

            self.repository.save_account(replace(account, points_balance=balance))

        result = ReversalResult(
            points_reversed=balance - account.points_balance,
            points_balance=balance,
            transaction_ids=created,
        )
        logger.info(
            "Reversed %s %s for %s: %+d points in %d entries",
            reference_type,
            reference_id,
            customer_ref,
            result.points_reversed,
            len(created),
        )
        signals.points_reversed.send(
            sender=self.__class__,
            customer_ref=customer_ref,
            reference_id=reference_id,
            result=result,
        )
        return result

    # ======================================================================
    # Internal
    # ======================================================================

    def _active_rules(self, at):
        rules = self.repository.load_active_rule_version(at)
        if rules is None:
            logger.warning("No active loyalty rules at %s", at.isoformat())
            raise NoActiveRulesError(at=at.isoformat())
        return rules

    @staticmethod
    def _reference(order_ref, order_type) -> tuple[str, str]:
        if order_ref is None:
            return "", ""
        Gates.order_ref(order_ref, order_type)
        return order_type or ledger_settings.DEFAULT_REFERENCE_TYPE, order_ref


def _price(state, catalog, rules, amount):
    """Tier, multiplier and rounded points an account earns for ``amount``."""
    current = _find_tier(catalog, state.tier_id)
    multiplier = current.points_multiplier if current else ONE
    raw = policy.raw_points(amount, rules.points_per_currency, multiplier)
    return current, multiplier, policy.round_points(raw, rules.earning_round_mode)


def _find_tier(catalog, tier_id):
    if tier_id is None:
        return None
    for tier in catalog:
        if tier.id == tier_id:
            return tier
    return None


def _transition(current, resolved, allow_downgrade: bool) -> str | None:
    """Tier change reason for moving current -> resolved, or None to stay."""
    current_id = current.id if current else None
    resolved_id = resolved.id if resolved else None
    if current_id == resolved_id:
        return None
    if policy.is_higher(resolved, current):
        return TierChangeReason.UPGRADE.value
    if allow_downgrade:
        return TierChangeReason.DOWNGRADE.value
    return None
