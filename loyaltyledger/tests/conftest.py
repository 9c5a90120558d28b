"""Pytest fixtures for loyalty ledger tests."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from loyaltyledger.adapters.django_orm import DjangoLedgerRepository
from loyaltyledger.adapters.memory import InMemoryLedgerRepository
from loyaltyledger.engine import LedgerEngine
from loyaltyledger.protocols import RuleVersionInfo, TierInfo
from loyaltyledger.service import LoyaltyService
from loyaltyledger.services import rules, tiers


@pytest.fixture(autouse=True)
def _fresh_service():
    """Engines are cached per backend; start every test without one."""
    LoyaltyService.reset()
    yield
    LoyaltyService.reset()


@pytest.fixture
def rule_version(db):
    """Active program rules: 1 point per 100 minor units, 1 point = 100 off."""
    return rules.create_version(
        points_per_currency=Decimal("0.01"),
        redemption_rate=Decimal("100"),
        earning_round_mode="floor",
        max_redemption_percent=Decimal("50"),
        min_redemption_points=50,
    )


@pytest.fixture
def tier_bronze(db):
    return tiers.create_tier(
        code="bronze",
        name="Bronze",
        display_order=1,
        min_points=0,
        points_multiplier=Decimal("1"),
    )


@pytest.fixture
def tier_silver(db):
    return tiers.create_tier(
        code="silver",
        name="Silver",
        display_order=2,
        min_points=500,
        min_total_spend=100_000,
        points_multiplier=Decimal("1.5"),
    )


@pytest.fixture
def tier_gold(db):
    return tiers.create_tier(
        code="gold",
        name="Gold",
        display_order=3,
        min_points=2000,
        min_total_spend=500_000,
        points_multiplier=Decimal("2"),
        benefits={"free_shipping": True},
    )


@pytest.fixture
def tier_ladder(tier_bronze, tier_silver, tier_gold):
    return [tier_bronze, tier_silver, tier_gold]


@pytest.fixture
def engine(db):
    """Ledger engine on the Django ORM repository."""
    return LedgerEngine(DjangoLedgerRepository())


@pytest.fixture
def program(rule_version, tier_ladder):
    """Rules plus the bronze/silver/gold ladder."""
    return rule_version


def make_rule_version(**overrides) -> RuleVersionInfo:
    params = {
        "id": 1,
        "version_number": 1,
        "points_per_currency": Decimal("0.01"),
        "earning_round_mode": "floor",
        "redemption_rate": Decimal("100"),
        "max_redemption_percent": Decimal("50"),
        "min_redemption_points": 50,
        "allow_tier_downgrade": False,
        "tier_evaluation_basis": "lifetime_points",
        "effective_from": timezone.now() - timedelta(days=1),
    }
    params.update(overrides)
    return RuleVersionInfo(**params)


def make_tier_ladder() -> list[TierInfo]:
    return [
        TierInfo(1, "bronze", "Bronze", 1, 0, Decimal("1")),
        TierInfo(2, "silver", "Silver", 2, 500, Decimal("1.5"), min_total_spend=100_000),
        TierInfo(3, "gold", "Gold", 3, 2000, Decimal("2"), min_total_spend=500_000),
    ]


@pytest.fixture
def memory_repo():
    """In-memory repository with rules and the bronze/silver/gold ladder."""
    return InMemoryLedgerRepository(
        rule_versions=[make_rule_version()],
        tiers=make_tier_ladder(),
    )


@pytest.fixture
def memory_engine(memory_repo):
    return LedgerEngine(memory_repo)


@pytest.fixture
def rule_version_info():
    """Factory for RuleVersionInfo with overridable parameters."""
    return make_rule_version


@pytest.fixture
def tier_infos():
    return make_tier_ladder()
