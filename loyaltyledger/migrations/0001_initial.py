# Generated migration for the loyalty ledger

from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LoyaltyTier",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.SlugField(unique=True, verbose_name="code")),
                ("name", models.CharField(max_length=100, verbose_name="name")),
                ("display_order", models.PositiveIntegerField(default=0, verbose_name="display order")),
                ("min_points", models.PositiveIntegerField(default=0, verbose_name="minimum lifetime points")),
                (
                    "min_total_spend",
                    models.PositiveBigIntegerField(
                        blank=True,
                        help_text="Minor currency units. Empty: never qualifies on spend.",
                        null=True,
                        verbose_name="minimum total spend",
                    ),
                ),
                (
                    "points_multiplier",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("1.00"),
                        max_digits=4,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("1")),
                            django.core.validators.MaxValueValidator(Decimal("10")),
                        ],
                        verbose_name="points multiplier",
                    ),
                ),
                ("benefits", models.JSONField(blank=True, default=dict, verbose_name="benefits")),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "loyalty tier",
                "verbose_name_plural": "loyalty tiers",
                "ordering": ["display_order", "min_points"],
            },
        ),
        migrations.CreateModel(
            name="RuleVersion",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("version_number", models.PositiveIntegerField(unique=True, verbose_name="version")),
                (
                    "points_per_currency",
                    models.DecimalField(
                        decimal_places=6,
                        help_text="Points per minor currency unit (0.01 = 1 point per 100).",
                        max_digits=12,
                        verbose_name="points per currency unit",
                    ),
                ),
                (
                    "earning_round_mode",
                    models.CharField(
                        choices=[("floor", "Floor"), ("round", "Round half up"), ("ceil", "Ceil")],
                        default="floor",
                        max_length=10,
                        verbose_name="earning round mode",
                    ),
                ),
                (
                    "redemption_rate",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Currency value (minor units) of one point.",
                        max_digits=12,
                        verbose_name="redemption rate",
                    ),
                ),
                (
                    "max_redemption_percent",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("50"),
                        max_digits=5,
                        verbose_name="max redemption %",
                    ),
                ),
                (
                    "min_redemption_points",
                    models.PositiveIntegerField(default=100, verbose_name="minimum redemption points"),
                ),
                ("allow_tier_downgrade", models.BooleanField(default=False, verbose_name="allow tier downgrade")),
                (
                    "tier_evaluation_basis",
                    models.CharField(
                        choices=[("lifetime_points", "Lifetime points"), ("total_spend", "Total spend")],
                        default="lifetime_points",
                        max_length=20,
                        verbose_name="tier evaluation basis",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                (
                    "effective_from",
                    models.DateTimeField(default=django.utils.timezone.now, verbose_name="effective from"),
                ),
                ("effective_to", models.DateTimeField(blank=True, null=True, verbose_name="effective to")),
                ("notes", models.TextField(blank=True, verbose_name="notes")),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="created by")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
            ],
            options={
                "verbose_name": "rule version",
                "verbose_name_plural": "rule versions",
                "ordering": ["-version_number"],
                "indexes": [models.Index(fields=["is_active", "effective_from"], name="loyalty_rule_active_from_idx")],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "customer_ref",
                    models.CharField(
                        help_text="Identifier of the customer in the calling system.",
                        max_length=100,
                        unique=True,
                        verbose_name="customer",
                    ),
                ),
                ("points_balance", models.PositiveIntegerField(default=0, verbose_name="points balance")),
                (
                    "points_earned_lifetime",
                    models.PositiveIntegerField(default=0, verbose_name="points earned (lifetime)"),
                ),
                (
                    "points_redeemed_lifetime",
                    models.PositiveIntegerField(default=0, verbose_name="points redeemed (lifetime)"),
                ),
                (
                    "total_spend",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Minor currency units.",
                        verbose_name="total spend",
                    ),
                ),
                ("tier_updated_at", models.DateTimeField(blank=True, null=True, verbose_name="tier updated at")),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "tier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="accounts",
                        to="loyaltyledger.loyaltytier",
                        verbose_name="tier",
                    ),
                ),
            ],
            options={
                "verbose_name": "loyalty account",
                "verbose_name_plural": "loyalty accounts",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("earn", "Earn"),
                            ("redeem", "Redeem"),
                            ("manual_credit", "Manual credit"),
                            ("manual_debit", "Manual debit"),
                            ("correction", "Correction"),
                            ("promotion", "Promotion"),
                            ("expiration", "Expiration"),
                        ],
                        max_length=20,
                        verbose_name="type",
                    ),
                ),
                (
                    "points",
                    models.IntegerField(
                        help_text="Positive for credits, negative for debits",
                        verbose_name="points",
                    ),
                ),
                ("points_balance_after", models.PositiveIntegerField(verbose_name="balance after")),
                ("reference_type", models.CharField(blank=True, max_length=30, verbose_name="reference type")),
                (
                    "reference_id",
                    models.CharField(blank=True, db_index=True, max_length=100, verbose_name="reference id"),
                ),
                ("order_amount", models.PositiveBigIntegerField(blank=True, null=True, verbose_name="order amount")),
                ("reason", models.CharField(blank=True, max_length=255, verbose_name="reason")),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="created by")),
                (
                    "created_at",
                    models.DateTimeField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        verbose_name="created at",
                    ),
                ),
                (
                    "tier_multiplier",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("1.00"),
                        max_digits=4,
                        verbose_name="tier multiplier",
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="loyaltyledger.loyaltyaccount",
                        verbose_name="account",
                    ),
                ),
                (
                    "rule_version",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="loyaltyledger.ruleversion",
                        verbose_name="rule version",
                    ),
                ),
                (
                    "tier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="loyaltyledger.loyaltytier",
                        verbose_name="tier",
                    ),
                ),
                (
                    "reverses",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reversal",
                        to="loyaltyledger.loyaltytransaction",
                        verbose_name="reverses",
                    ),
                ),
            ],
            options={
                "verbose_name": "loyalty transaction",
                "verbose_name_plural": "loyalty transactions",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["account", "-created_at"], name="loyalty_tx_account_created_idx"),
                    models.Index(fields=["reference_type", "reference_id"], name="loyalty_tx_reference_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TierChange",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "change_reason",
                    models.CharField(
                        choices=[("upgrade", "Upgrade"), ("downgrade", "Downgrade")],
                        max_length=20,
                        verbose_name="reason",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        verbose_name="created at",
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tier_changes",
                        to="loyaltyledger.loyaltyaccount",
                        verbose_name="account",
                    ),
                ),
                (
                    "new_tier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="loyaltyledger.loyaltytier",
                        verbose_name="new tier",
                    ),
                ),
                (
                    "old_tier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="loyaltyledger.loyaltytier",
                        verbose_name="old tier",
                    ),
                ),
                (
                    "transaction",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tier_changes",
                        to="loyaltyledger.loyaltytransaction",
                        verbose_name="triggering transaction",
                    ),
                ),
            ],
            options={
                "verbose_name": "tier change",
                "verbose_name_plural": "tier changes",
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
