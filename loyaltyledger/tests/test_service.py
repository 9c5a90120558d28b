"""Tests for the LoyaltyService facade."""

import pytest
from django.test import override_settings

from loyaltyledger import LoyaltyService
from loyaltyledger.adapters.django_orm import DjangoLedgerRepository
from loyaltyledger.adapters.memory import InMemoryLedgerRepository
from loyaltyledger.models import LoyaltyAccount

pytestmark = pytest.mark.django_db


class TestLoyaltyService:
    """Facade over engine and services."""

    def test_default_backend(self, program):
        assert isinstance(LoyaltyService.engine().repository, DjangoLedgerRepository)

    def test_engine_cached(self, program):
        assert LoyaltyService.engine() is LoyaltyService.engine()

    def test_earn_redeem_flow(self, program):
        LoyaltyService.earn("CUST-001", amount=100_000, order_ref="SO-1")

        preview = LoyaltyService.calculate_redemption("CUST-001", order_amount=20_000)
        assert preview.max_redeemable_points == 100

        result = LoyaltyService.redeem("CUST-001", preview.suggested_points, order_ref="SO-2")
        assert result.discount_amount == 10_000

        member = LoyaltyService.member("CUST-001")
        assert member.points_balance == 900
        assert LoyaltyService.history("CUST-001").total == 2
        assert LoyaltyService.stats().total_members == 1

    def test_adjust_and_reverse(self, program):
        LoyaltyService.earn("CUST-001", amount=10_000, order_ref="SO-1", order_type="service_order")
        LoyaltyService.adjust("CUST-001", 50, "promotion", "Bonus", actor="staff:1")

        result = LoyaltyService.reverse_order("CUST-001", "SO-1", "service_order")

        assert result.points_reversed == -100
        assert LoyaltyAccount.objects.get(customer_ref="CUST-001").points_balance == 50

    def test_admin_helpers(self, rule_version, tier_ladder):
        assert LoyaltyService.active_rules() == rule_version
        assert [t.code for t in LoyaltyService.tiers()] == ["bronze", "silver", "gold"]
        LoyaltyService.update_tier("gold", name="Gold Plus")
        assert LoyaltyService.tiers()[-1].name == "Gold Plus"

    @override_settings(
        LOYALTY_LEDGER={"REPOSITORY_BACKEND": "loyaltyledger.adapters.memory.InMemoryLedgerRepository"}
    )
    def test_configured_backend(self):
        engine = LoyaltyService.engine()
        assert isinstance(engine.repository, InMemoryLedgerRepository)
