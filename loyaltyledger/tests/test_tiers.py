"""Tests for the tier catalog."""

from decimal import Decimal

import pytest

from loyaltyledger.exceptions import ConflictError, NotFoundError, ValidationError
from loyaltyledger.models import LoyaltyAccount, LoyaltyTier
from loyaltyledger.services import tiers

pytestmark = pytest.mark.django_db


class TestResolveTier:
    """Tier resolution against the catalog."""

    def test_by_lifetime_points(self, tier_ladder):
        assert tiers.resolve_tier(0).code == "bronze"
        assert tiers.resolve_tier(1999).code == "silver"
        assert tiers.resolve_tier(2000).code == "gold"

    def test_by_total_spend(self, tier_ladder):
        assert tiers.resolve_tier(50_000, "total_spend") is None
        assert tiers.resolve_tier(600_000, "total_spend").code == "gold"

    def test_no_catalog(self):
        assert tiers.resolve_tier(10_000) is None

    def test_inactive_tier_skipped(self, tier_ladder):
        tiers.deactivate_tier("gold")
        assert tiers.resolve_tier(5000).code == "silver"


class TestCreateTier:
    """Tier creation."""

    def test_create(self, db):
        tier = tiers.create_tier(
            code="vip",
            name="VIP",
            display_order=10,
            min_points=10_000,
            points_multiplier="3",
            benefits={"lounge": True},
        )
        assert tier.points_multiplier == Decimal("3")
        assert tier.benefits == {"lounge": True}
        assert tier.is_active

    def test_duplicate_code(self, tier_bronze):
        with pytest.raises(ConflictError) as exc:
            tiers.create_tier(code="bronze", name="Other", display_order=9, min_points=0)
        assert exc.value.code == "DUPLICATE_TIER_CODE"
        assert exc.value.data["tier_code"] == "bronze"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"points_multiplier": "0.5"},
            {"points_multiplier": "10.5"},
            {"min_points": -1},
            {"display_order": -1},
            {"min_total_spend": -100},
        ],
    )
    def test_out_of_range(self, db, overrides):
        params = {"code": "x", "name": "X", "display_order": 1, "min_points": 0}
        params.update(overrides)
        with pytest.raises(ValidationError):
            tiers.create_tier(**params)
        assert not LoyaltyTier.objects.exists()


class TestUpdateTier:
    """Tier updates and the threshold freeze."""

    def test_update_unreferenced_threshold(self, tier_silver):
        tier = tiers.update_tier("silver", min_points=600, points_multiplier="1.75")
        assert tier.min_points == 600
        assert tier.points_multiplier == Decimal("1.75")

    def test_threshold_frozen_once_referenced(self, engine, program, tier_bronze):
        # Second earn is priced with bronze
        engine.earn("CUST-001", 1000)
        engine.earn("CUST-001", 1000)

        with pytest.raises(ConflictError) as exc:
            tiers.update_tier("bronze", points_multiplier="2")
        assert exc.value.code == "TIER_REFERENCED"
        assert exc.value.data["fields"] == ["points_multiplier"]

    def test_non_threshold_fields_stay_editable(self, engine, program, tier_bronze):
        engine.earn("CUST-001", 1000)
        engine.earn("CUST-001", 1000)

        tier = tiers.update_tier("bronze", name="Copper", benefits={"birthday": True})
        assert tier.name == "Copper"
        assert tier.benefits == {"birthday": True}

    def test_unknown_fields_ignored(self, tier_bronze):
        tier = tiers.update_tier("bronze", code="renamed")
        assert tier.code == "bronze"

    def test_unknown_tier(self, db):
        with pytest.raises(NotFoundError) as exc:
            tiers.update_tier("missing", name="X")
        assert exc.value.code == "TIER_NOT_FOUND"
        assert exc.value.data["tier_code"] == "missing"

    def test_deactivate_through_update_refused_while_in_use(self, tier_bronze):
        LoyaltyAccount.objects.create(customer_ref="CUST-001", tier=tier_bronze)
        with pytest.raises(ConflictError) as exc:
            tiers.update_tier("bronze", is_active=False)
        assert exc.value.code == "TIER_IN_USE"
        tier_bronze.refresh_from_db()
        assert tier_bronze.is_active

    def test_deactivate_through_update(self, tier_gold):
        tier = tiers.update_tier("gold", is_active=False)
        assert not tier.is_active


class TestDeactivateTier:
    """Soft deletion."""

    def test_deactivate(self, tier_gold):
        tiers.deactivate_tier("gold")
        assert tiers.list_tiers() == []
        assert tiers.list_tiers(include_inactive=True) == [tier_gold]

    def test_in_use(self, tier_bronze):
        LoyaltyAccount.objects.create(customer_ref="CUST-001", tier=tier_bronze)
        with pytest.raises(ConflictError) as exc:
            tiers.deactivate_tier("bronze")
        assert exc.value.code == "TIER_IN_USE"
        assert exc.value.data["members"] == 1

    def test_list_ordering(self, tier_ladder):
        assert [t.code for t in tiers.list_tiers()] == ["bronze", "silver", "gold"]
