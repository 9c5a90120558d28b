"""LoyaltyTier model."""

from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class LoyaltyTier(models.Model):
    """
    Membership tier in the catalog.

    Tiers form a ladder ordered by display_order/min_points. Once a tier has
    been recorded on a transaction only name, benefits and is_active may
    change; see services.tiers.update_tier.
    """

    code = models.SlugField(_("code"), max_length=50, unique=True)
    name = models.CharField(_("name"), max_length=100)
    display_order = models.PositiveIntegerField(_("display order"), default=0)

    # Qualification
    min_points = models.PositiveIntegerField(
        _("minimum lifetime points"),
        default=0,
    )
    min_total_spend = models.PositiveBigIntegerField(
        _("minimum total spend"),
        null=True,
        blank=True,
        help_text=_("Minor currency units. Empty: never qualifies on spend."),
    )

    points_multiplier = models.DecimalField(
        _("points multiplier"),
        max_digits=4,
        decimal_places=2,
        default=Decimal("1.00"),
        validators=[MinValueValidator(Decimal("1")), MaxValueValidator(Decimal("10"))],
    )
    benefits = models.JSONField(_("benefits"), default=dict, blank=True)

    is_active = models.BooleanField(_("active"), default=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("loyalty tier")
        verbose_name_plural = _("loyalty tiers")
        ordering = ["display_order", "min_points"]

    def __str__(self):
        return f"{self.name} (x{self.points_multiplier})"
