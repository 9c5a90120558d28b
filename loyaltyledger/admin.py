"""Loyalty ledger admin.

Tiers and rule versions are administered here; accounts, transactions and
tier changes are read-only (the ledger engine owns every write to them).
"""

from django import forms
from django.contrib import admin, messages
from django.utils import timezone
from django.utils.html import format_html

from loyaltyledger.exceptions import LoyaltyError
from loyaltyledger.gates import Gates
from loyaltyledger.models import (
    LoyaltyAccount,
    LoyaltyTier,
    LoyaltyTransaction,
    RuleVersion,
    TierChange,
)
from loyaltyledger.services import rules, tiers


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


# ===========================================
# LoyaltyTier Admin
# ===========================================


class LoyaltyTierForm(forms.ModelForm):
    class Meta:
        model = LoyaltyTier
        fields = "__all__"

    def clean(self):
        cleaned = super().clean()
        if self.errors:
            return cleaned

        instance = self.instance
        try:
            Gates.tier_ranges(
                cleaned.get("display_order", instance.display_order),
                cleaned.get("min_points", instance.min_points),
                cleaned.get("points_multiplier", instance.points_multiplier),
                cleaned.get("min_total_spend", instance.min_total_spend),
            )
        except LoyaltyError as e:
            raise forms.ValidationError(e.message)

        if instance.pk and not cleaned.get("is_active", True) and instance.accounts.exists():
            raise forms.ValidationError("Tier has customers on it and cannot be deactivated.")
        return cleaned


@admin.register(LoyaltyTier)
class LoyaltyTierAdmin(admin.ModelAdmin):
    form = LoyaltyTierForm
    list_display = [
        "code",
        "name",
        "display_order",
        "min_points",
        "min_total_spend",
        "points_multiplier",
        "member_count",
        "is_active",
    ]
    list_filter = ["is_active"]
    search_fields = ["code", "name"]
    ordering = ["display_order", "min_points"]
    actions = ["deactivate_tiers"]

    def get_readonly_fields(self, request, obj=None):
        readonly = ["created_at", "updated_at"]
        if obj is not None:
            readonly.append("code")
            if tiers.is_referenced(obj):
                readonly.extend(sorted(tiers.THRESHOLD_FIELDS))
        return readonly

    def has_delete_permission(self, request, obj=None):
        return False

    def member_count(self, obj):
        return obj.accounts.count()

    member_count.short_description = "Members"

    @admin.action(description="Deactivate selected tiers")
    def deactivate_tiers(self, request, queryset):
        for tier in queryset:
            try:
                tiers.deactivate_tier(tier.code)
            except LoyaltyError as e:
                self.message_user(request, f"{tier.code}: {e.message}", messages.ERROR)
            else:
                self.message_user(request, f"{tier.code} deactivated.", messages.SUCCESS)


# ===========================================
# RuleVersion Admin
# ===========================================


def _effective_start(value):
    """Start a new version actually gets: past or missing starts mean now."""
    now = timezone.now()
    if value is None or value <= now:
        return now
    return value


class RuleVersionForm(forms.ModelForm):
    class Meta:
        model = RuleVersion
        exclude = ["version_number", "created_by"]
        help_texts = {
            "effective_from": "A start in the past takes effect immediately.",
        }

    def clean(self):
        cleaned = super().clean()
        if self.errors:
            return cleaned
        start = _effective_start(cleaned.get("effective_from"))
        try:
            Gates.rule_version_ranges(
                points_per_currency=cleaned["points_per_currency"],
                redemption_rate=cleaned["redemption_rate"],
                max_redemption_percent=cleaned["max_redemption_percent"],
                min_redemption_points=cleaned["min_redemption_points"],
                earning_round_mode=cleaned["earning_round_mode"],
                tier_evaluation_basis=cleaned["tier_evaluation_basis"],
                effective_from=start,
                effective_to=cleaned.get("effective_to"),
            )
        except LoyaltyError as e:
            raise forms.ValidationError(e.message)
        return cleaned


@admin.register(RuleVersion)
class RuleVersionAdmin(admin.ModelAdmin):
    form = RuleVersionForm
    list_display = [
        "version_number",
        "points_per_currency",
        "earning_round_mode",
        "redemption_rate",
        "max_redemption_percent",
        "min_redemption_points",
        "tier_evaluation_basis",
        "effective_from",
        "effective_to",
        "status_badge",
    ]
    list_filter = ["is_active", "earning_round_mode", "tier_evaluation_basis"]
    ordering = ["-version_number"]
    actions = ["activate_versions"]

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            return ["created_at"]
        # Versions are never edited once created
        return [f.name for f in RuleVersion._meta.fields]

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        if change:
            return

        data = form.cleaned_data
        start = data.get("effective_from")
        if start is not None and start <= timezone.now():
            start = None

        version = rules.create_version(
            points_per_currency=data["points_per_currency"],
            redemption_rate=data["redemption_rate"],
            earning_round_mode=data["earning_round_mode"],
            max_redemption_percent=data["max_redemption_percent"],
            min_redemption_points=data["min_redemption_points"],
            allow_tier_downgrade=data["allow_tier_downgrade"],
            tier_evaluation_basis=data["tier_evaluation_basis"],
            is_active=data["is_active"],
            effective_from=start,
            effective_to=data.get("effective_to"),
            notes=data.get("notes", ""),
            created_by=request.user.get_username(),
        )
        obj.pk = version.pk
        obj.version_number = version.version_number
        obj.effective_from = version.effective_from
        obj.created_at = version.created_at

    def status_badge(self, obj):
        if obj.is_effective:
            return format_html('<span style="color: green;">{}</span>', "in effect")
        if obj.is_active:
            return format_html('<span style="color: gray;">{}</span>', "scheduled/closed")
        return format_html('<span style="color: gray;">{}</span>', "draft")

    status_badge.short_description = "Status"

    @admin.action(description="Activate selected versions")
    def activate_versions(self, request, queryset):
        for version in queryset.order_by("version_number"):
            try:
                rules.activate_version(version.version_number)
            except LoyaltyError as e:
                self.message_user(request, f"v{version.version_number}: {e.message}", messages.ERROR)
            else:
                self.message_user(request, f"v{version.version_number} activated.", messages.SUCCESS)


# ===========================================
# LoyaltyAccount Admin (read-only)
# ===========================================


class LoyaltyTransactionInline(ReadOnlyInline):
    model = LoyaltyTransaction
    fk_name = "account"
    fields = ["created_at", "transaction_type", "points", "points_balance_after", "reference_id", "reason"]
    readonly_fields = fields
    ordering = ["-created_at", "-id"]
    max_num = 0


class TierChangeInline(ReadOnlyInline):
    model = TierChange
    fields = ["created_at", "old_tier", "new_tier", "change_reason", "transaction"]
    readonly_fields = fields
    ordering = ["-created_at", "-id"]
    max_num = 0


@admin.register(LoyaltyAccount)
class LoyaltyAccountAdmin(admin.ModelAdmin):
    list_display = [
        "customer_ref",
        "tier",
        "points_balance",
        "points_earned_lifetime",
        "points_redeemed_lifetime",
        "total_spend",
        "created_at",
    ]
    list_filter = ["tier", "is_active"]
    search_fields = ["customer_ref"]
    inlines = [LoyaltyTransactionInline, TierChangeInline]

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in LoyaltyAccount._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# LoyaltyTransaction Admin (read-only)
# ===========================================


@admin.register(LoyaltyTransaction)
class LoyaltyTransactionAdmin(admin.ModelAdmin):
    list_display = [
        "created_at",
        "customer_ref",
        "transaction_type",
        "points_display",
        "points_balance_after",
        "reference_id",
        "created_by",
    ]
    list_filter = ["transaction_type", "reference_type"]
    search_fields = ["account__customer_ref", "reference_id", "reason"]
    list_select_related = ["account"]
    date_hierarchy = "created_at"

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in LoyaltyTransaction._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def customer_ref(self, obj):
        return obj.account.customer_ref

    customer_ref.short_description = "Customer"

    def points_display(self, obj):
        if obj.points > 0:
            return format_html('<span style="color:green">+{}</span>', obj.points)
        return format_html('<span style="color:red">{}</span>', obj.points)

    points_display.short_description = "Points"
