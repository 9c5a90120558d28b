"""TierChange model."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from loyaltyledger.choices import TierChangeReason


class TierChange(models.Model):
    """History of tier transitions for an account."""

    account = models.ForeignKey(
        "loyaltyledger.LoyaltyAccount",
        on_delete=models.PROTECT,
        related_name="tier_changes",
        verbose_name=_("account"),
    )
    old_tier = models.ForeignKey(
        "loyaltyledger.LoyaltyTier",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        verbose_name=_("old tier"),
    )
    new_tier = models.ForeignKey(
        "loyaltyledger.LoyaltyTier",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        verbose_name=_("new tier"),
    )
    change_reason = models.CharField(
        _("reason"),
        max_length=20,
        choices=TierChangeReason.choices,
    )
    transaction = models.ForeignKey(
        "loyaltyledger.LoyaltyTransaction",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="tier_changes",
        verbose_name=_("triggering transaction"),
    )
    created_at = models.DateTimeField(_("created at"), default=timezone.now, db_index=True)

    class Meta:
        verbose_name = _("tier change")
        verbose_name_plural = _("tier changes")
        ordering = ["-created_at", "-id"]

    def __str__(self):
        old = self.old_tier.code if self.old_tier_id else "-"
        new = self.new_tier.code if self.new_tier_id else "-"
        return f"{self.account.customer_ref}: {old} -> {new}"
