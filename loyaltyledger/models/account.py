"""LoyaltyAccount model."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class LoyaltyAccount(models.Model):
    """
    Customer loyalty account.

    One account per customer, created on the first earn or adjustment and
    never deleted. Lifetime counters and total spend only grow; the balance
    always equals the fold of the account's transactions.
    """

    customer_ref = models.CharField(
        _("customer"),
        max_length=100,
        unique=True,
        help_text=_("Identifier of the customer in the calling system."),
    )
    tier = models.ForeignKey(
        "loyaltyledger.LoyaltyTier",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="accounts",
        verbose_name=_("tier"),
    )

    points_balance = models.PositiveIntegerField(_("points balance"), default=0)
    points_earned_lifetime = models.PositiveIntegerField(_("points earned (lifetime)"), default=0)
    points_redeemed_lifetime = models.PositiveIntegerField(
        _("points redeemed (lifetime)"),
        default=0,
    )
    total_spend = models.PositiveBigIntegerField(
        _("total spend"),
        default=0,
        help_text=_("Minor currency units."),
    )

    tier_updated_at = models.DateTimeField(_("tier updated at"), null=True, blank=True)
    is_active = models.BooleanField(_("active"), default=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("loyalty account")
        verbose_name_plural = _("loyalty accounts")
        ordering = ["-created_at"]

    def __str__(self):
        tier = self.tier.name if self.tier_id else "-"
        return f"{self.customer_ref}: {self.points_balance}pts | {tier}"
