"""
Loyalty Ledger Gates - Input validation rules.

Every gate runs before any lookup and raises ValidationError naming the gate.

V1: CustomerRef - Non-empty customer identifier
V2: Amount - Monetary amounts are non-negative integers (minor units)
V3: Points - Explicit point counts are positive integers
V4: AdjustmentSign - Points sign matches the adjustment type
V5: RuleVersionRanges - Program parameters are within range
V6: TierRanges - Tier thresholds and multiplier are within range
V7: Paging - Page and limit are sane
V8: OrderReference - Order references fit the ledger columns
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

from loyaltyledger.choices import ADJUSTMENT_SIGNS, RoundMode, TierBasis
from loyaltyledger.exceptions import ValidationError


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


def _fail(gate_name: str, message: str, **details) -> ValidationError:
    return ValidationError("INVALID_INPUT", message=message, gate=gate_name, **details)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def to_decimal(value, field: str) -> Decimal:
    """Coerce a number or numeric string into Decimal, or raise ValidationError."""
    if isinstance(value, bool) or value is None:
        raise _fail("V5_RuleVersionRanges", f"{field} must be a number.", field=field)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise _fail("V5_RuleVersionRanges", f"{field} must be a number.", field=field)
    if not result.is_finite():
        raise _fail("V5_RuleVersionRanges", f"{field} must be finite.", field=field)
    return result


class Gates:
    """Loyalty ledger validation gates."""

    # =========================================================================
    # V1: Customer reference
    # =========================================================================

    MAX_CUSTOMER_REF_LENGTH = 100

    @classmethod
    def customer_ref(cls, customer_ref) -> GateResult:
        """
        V1: Customer identifier is a non-empty string.

        Raises:
            ValidationError: If empty, not a string or too long
        """
        if not isinstance(customer_ref, str) or not customer_ref.strip():
            raise _fail("V1_CustomerRef", "Customer reference is required.")
        if len(customer_ref) > cls.MAX_CUSTOMER_REF_LENGTH:
            raise _fail(
                "V1_CustomerRef",
                f"Customer reference exceeds {cls.MAX_CUSTOMER_REF_LENGTH} characters.",
            )
        return GateResult(True, "V1_CustomerRef")

    # =========================================================================
    # V2: Amount
    # =========================================================================

    @classmethod
    def amount(cls, value, field: str = "amount") -> GateResult:
        """
        V2: Monetary amount is a non-negative integer in minor units.

        Raises:
            ValidationError: If not an int or negative
        """
        if not _is_int(value):
            raise _fail("V2_Amount", f"{field} must be an integer (minor units).", field=field)
        if value < 0:
            raise _fail("V2_Amount", f"{field} cannot be negative.", field=field, value=value)
        return GateResult(True, "V2_Amount")

    @classmethod
    def check_amount(cls, value, field: str = "amount") -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.amount(value, field)
            return True
        except ValidationError:
            return False

    # =========================================================================
    # V3: Points
    # =========================================================================

    @classmethod
    def points(cls, value, field: str = "points", allow_zero: bool = False) -> GateResult:
        """
        V3: Explicit point count is a positive integer.

        Raises:
            ValidationError: If not an int, or not positive
        """
        if not _is_int(value):
            raise _fail("V3_Points", f"{field} must be an integer.", field=field)
        if value < 0 or (value == 0 and not allow_zero):
            raise _fail("V3_Points", f"{field} must be positive.", field=field, value=value)
        return GateResult(True, "V3_Points")

    # =========================================================================
    # V4: Adjustment sign
    # =========================================================================

    @classmethod
    def adjustment(cls, adjustment_type, points, reason) -> GateResult:
        """
        V4: Adjustment type is known and the points sign matches it.

        Credits and promotions add points, debits and expirations remove
        them, corrections go either way. Zero is never a valid adjustment.

        Raises:
            ValidationError: On unknown type, wrong sign, zero or missing reason
        """
        adjustment_type = str(adjustment_type)
        if adjustment_type not in ADJUSTMENT_SIGNS:
            raise _fail(
                "V4_AdjustmentSign",
                f"Unknown adjustment type: {adjustment_type}",
                allowed=list(ADJUSTMENT_SIGNS),
            )
        if not _is_int(points) or points == 0:
            raise _fail("V4_AdjustmentSign", "Adjustment points must be a non-zero integer.")

        sign = ADJUSTMENT_SIGNS[adjustment_type]
        if sign > 0 and points < 0:
            raise _fail(
                "V4_AdjustmentSign",
                f"{adjustment_type} requires positive points.",
                points=points,
            )
        if sign < 0 and points > 0:
            raise _fail(
                "V4_AdjustmentSign",
                f"{adjustment_type} requires negative points.",
                points=points,
            )
        if not isinstance(reason, str) or not reason.strip():
            raise _fail("V4_AdjustmentSign", "Adjustment reason is required.")
        return GateResult(True, "V4_AdjustmentSign")

    @classmethod
    def check_adjustment(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.adjustment(*args, **kwargs)
            return True
        except ValidationError:
            return False

    # =========================================================================
    # V5: Rule version ranges
    # =========================================================================

    @classmethod
    def rule_version_ranges(
        cls,
        points_per_currency: Decimal,
        redemption_rate: Decimal,
        max_redemption_percent: Decimal,
        min_redemption_points,
        earning_round_mode: str,
        tier_evaluation_basis: str,
        effective_from: datetime | None = None,
        effective_to: datetime | None = None,
    ) -> GateResult:
        """
        V5: Program parameters are within range.

        - points_per_currency >= 0
        - redemption_rate > 0
        - 0 <= max_redemption_percent <= 100
        - min_redemption_points >= 1
        - effective_to after effective_from

        Raises:
            ValidationError: On the first parameter out of range
        """
        if points_per_currency < 0:
            raise _fail("V5_RuleVersionRanges", "points_per_currency cannot be negative.")
        if redemption_rate <= 0:
            raise _fail("V5_RuleVersionRanges", "redemption_rate must be positive.")
        if not Decimal(0) <= max_redemption_percent <= Decimal(100):
            raise _fail(
                "V5_RuleVersionRanges",
                "max_redemption_percent must be between 0 and 100.",
            )
        if not _is_int(min_redemption_points) or min_redemption_points < 1:
            raise _fail(
                "V5_RuleVersionRanges",
                "min_redemption_points must be an integer >= 1.",
            )
        if earning_round_mode not in RoundMode.values:
            raise _fail(
                "V5_RuleVersionRanges",
                f"Unknown earning_round_mode: {earning_round_mode}",
                allowed=RoundMode.values,
            )
        if tier_evaluation_basis not in TierBasis.values:
            raise _fail(
                "V5_RuleVersionRanges",
                f"Unknown tier_evaluation_basis: {tier_evaluation_basis}",
                allowed=TierBasis.values,
            )
        if effective_from and effective_to and effective_to <= effective_from:
            raise _fail("V5_RuleVersionRanges", "effective_to must be after effective_from.")
        return GateResult(True, "V5_RuleVersionRanges")

    # =========================================================================
    # V6: Tier ranges
    # =========================================================================

    MIN_MULTIPLIER = Decimal(1)
    MAX_MULTIPLIER = Decimal(10)

    @classmethod
    def tier_ranges(
        cls,
        display_order,
        min_points,
        points_multiplier: Decimal,
        min_total_spend=None,
    ) -> GateResult:
        """
        V6: Tier thresholds are non-negative, multiplier within 1-10.

        Raises:
            ValidationError: On the first field out of range
        """
        for field, value in (("display_order", display_order), ("min_points", min_points)):
            if not _is_int(value) or value < 0:
                raise _fail("V6_TierRanges", f"{field} must be an integer >= 0.", field=field)
        if min_total_spend is not None and (not _is_int(min_total_spend) or min_total_spend < 0):
            raise _fail("V6_TierRanges", "min_total_spend must be an integer >= 0.")
        if not cls.MIN_MULTIPLIER <= points_multiplier <= cls.MAX_MULTIPLIER:
            raise _fail("V6_TierRanges", "points_multiplier must be between 1 and 10.")
        return GateResult(True, "V6_TierRanges")

    # =========================================================================
    # V7: Paging
    # =========================================================================

    @classmethod
    def paging(cls, page, limit, max_limit: int) -> GateResult:
        """
        V7: page >= 1 and 1 <= limit <= max_limit.

        Raises:
            ValidationError: If out of range
        """
        if not _is_int(page) or page < 1:
            raise _fail("V7_Paging", "page must be an integer >= 1.")
        if not _is_int(limit) or not 1 <= limit <= max_limit:
            raise _fail("V7_Paging", f"limit must be between 1 and {max_limit}.")
        return GateResult(True, "V7_Paging")

    # =========================================================================
    # V8: Order reference
    # =========================================================================

    MAX_REFERENCE_LENGTH = 100

    @classmethod
    def order_ref(cls, reference_id, reference_type=None) -> GateResult:
        """
        V8: Order reference is a non-empty string, type tag fits its column.

        Raises:
            ValidationError: If empty or too long
        """
        if not isinstance(reference_id, str) or not reference_id.strip():
            raise _fail("V8_OrderReference", "Order reference must be a non-empty string.")
        if len(reference_id) > cls.MAX_REFERENCE_LENGTH:
            raise _fail(
                "V8_OrderReference",
                f"Order reference exceeds {cls.MAX_REFERENCE_LENGTH} characters.",
            )
        if reference_type is not None and (
            not isinstance(reference_type, str) or not 0 < len(reference_type) <= 30
        ):
            raise _fail("V8_OrderReference", "Order type must be 1-30 characters.")
        return GateResult(True, "V8_OrderReference")
