"""RuleVersion model."""

from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from loyaltyledger.choices import RoundMode, TierBasis


class RuleVersion(models.Model):
    """
    Versioned loyalty program parameters.

    Effective over the half-open interval [effective_from, effective_to).
    A version is never edited once effective: corrections create a new
    version, which closes the previous one's effective_to.
    """

    version_number = models.PositiveIntegerField(_("version"), unique=True)

    # Earning
    points_per_currency = models.DecimalField(
        _("points per currency unit"),
        max_digits=12,
        decimal_places=6,
        help_text=_("Points per minor currency unit (0.01 = 1 point per 100)."),
    )
    earning_round_mode = models.CharField(
        _("earning round mode"),
        max_length=10,
        choices=RoundMode.choices,
        default=RoundMode.FLOOR,
    )

    # Redemption
    redemption_rate = models.DecimalField(
        _("redemption rate"),
        max_digits=12,
        decimal_places=4,
        help_text=_("Currency value (minor units) of one point."),
    )
    max_redemption_percent = models.DecimalField(
        _("max redemption %"),
        max_digits=5,
        decimal_places=2,
        default=Decimal("50"),
    )
    min_redemption_points = models.PositiveIntegerField(
        _("minimum redemption points"),
        default=100,
    )

    # Tiers
    allow_tier_downgrade = models.BooleanField(_("allow tier downgrade"), default=False)
    tier_evaluation_basis = models.CharField(
        _("tier evaluation basis"),
        max_length=20,
        choices=TierBasis.choices,
        default=TierBasis.LIFETIME_POINTS,
    )

    # Lifecycle
    is_active = models.BooleanField(_("active"), default=True)
    effective_from = models.DateTimeField(_("effective from"), default=timezone.now)
    effective_to = models.DateTimeField(_("effective to"), null=True, blank=True)
    notes = models.TextField(_("notes"), blank=True)

    created_by = models.CharField(_("created by"), max_length=100, blank=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        verbose_name = _("rule version")
        verbose_name_plural = _("rule versions")
        ordering = ["-version_number"]
        indexes = [
            models.Index(fields=["is_active", "effective_from"], name="loyalty_rule_active_from_idx"),
        ]

    def __str__(self):
        return f"v{self.version_number}"

    def covers(self, at) -> bool:
        """True if active and ``at`` is inside [effective_from, effective_to)."""
        from loyaltyledger.policy import covers

        return covers(self, at)

    @property
    def is_effective(self) -> bool:
        """Covers the current instant."""
        return self.covers(timezone.now())
