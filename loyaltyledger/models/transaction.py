"""LoyaltyTransaction model."""

from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from loyaltyledger.choices import TransactionType
from loyaltyledger.exceptions import LoyaltyError


class LoyaltyTransaction(models.Model):
    """
    Immutable ledger entry.

    Every earn, redeem, adjustment and reversal is logged here. Entries are
    append-only: save() refuses updates and delete() is refused outright.
    The tier, multiplier and rule version in force are stored with the
    entry so past results never depend on later catalog edits.
    """

    account = models.ForeignKey(
        "loyaltyledger.LoyaltyAccount",
        on_delete=models.PROTECT,
        related_name="transactions",
        verbose_name=_("account"),
    )

    transaction_type = models.CharField(
        _("type"),
        max_length=20,
        choices=TransactionType.choices,
    )
    points = models.IntegerField(
        _("points"),
        help_text=_("Positive for credits, negative for debits"),
    )
    points_balance_after = models.PositiveIntegerField(_("balance after"))

    # Originating order
    reference_type = models.CharField(_("reference type"), max_length=30, blank=True)
    reference_id = models.CharField(_("reference id"), max_length=100, blank=True, db_index=True)
    order_amount = models.PositiveBigIntegerField(_("order amount"), null=True, blank=True)

    reason = models.CharField(_("reason"), max_length=255, blank=True)
    created_by = models.CharField(_("created by"), max_length=100, blank=True)
    created_at = models.DateTimeField(_("created at"), default=timezone.now, db_index=True)

    # Audit: what was in force when the entry was written
    rule_version = models.ForeignKey(
        "loyaltyledger.RuleVersion",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
        verbose_name=_("rule version"),
    )
    tier = models.ForeignKey(
        "loyaltyledger.LoyaltyTier",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
        verbose_name=_("tier"),
    )
    tier_multiplier = models.DecimalField(
        _("tier multiplier"),
        max_digits=4,
        decimal_places=2,
        default=Decimal("1.00"),
    )
    reverses = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversal",
        verbose_name=_("reverses"),
    )

    class Meta:
        verbose_name = _("loyalty transaction")
        verbose_name_plural = _("loyalty transactions")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["account", "-created_at"], name="loyalty_tx_account_created_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="loyalty_tx_reference_idx"),
        ]

    def __str__(self):
        sign = "+" if self.points > 0 else ""
        return f"{sign}{self.points}pts ({self.transaction_type})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise LoyaltyError("TRANSACTION_IMMUTABLE", transaction_id=self.pk)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise LoyaltyError("TRANSACTION_IMMUTABLE", transaction_id=self.pk)
