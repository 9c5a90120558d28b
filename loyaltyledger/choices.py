"""Enumerations shared by models, value types and the engine."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class TransactionType(models.TextChoices):
    """Loyalty transaction types."""

    EARN = "earn", _("Earn")
    REDEEM = "redeem", _("Redeem")
    MANUAL_CREDIT = "manual_credit", _("Manual credit")
    MANUAL_DEBIT = "manual_debit", _("Manual debit")
    CORRECTION = "correction", _("Correction")
    PROMOTION = "promotion", _("Promotion")
    EXPIRATION = "expiration", _("Expiration")


class RoundMode(models.TextChoices):
    """How fractional earned points are turned into whole points."""

    FLOOR = "floor", _("Floor")
    ROUND = "round", _("Round half up")
    CEIL = "ceil", _("Ceil")


class TierBasis(models.TextChoices):
    """Value a customer's tier is evaluated against."""

    LIFETIME_POINTS = "lifetime_points", _("Lifetime points")
    TOTAL_SPEND = "total_spend", _("Total spend")


class TierChangeReason(models.TextChoices):
    UPGRADE = "upgrade", _("Upgrade")
    DOWNGRADE = "downgrade", _("Downgrade")


# Manual adjustment types and the sign their points must carry
# (+1 credit, -1 debit, 0 either sign)
ADJUSTMENT_SIGNS = {
    TransactionType.MANUAL_CREDIT.value: 1,
    TransactionType.PROMOTION.value: 1,
    TransactionType.MANUAL_DEBIT.value: -1,
    TransactionType.EXPIRATION.value: -1,
    TransactionType.CORRECTION.value: 0,
}

# Types an order reversal can undo
REVERSIBLE_TYPES = (TransactionType.EARN.value, TransactionType.REDEEM.value)
