"""Tests for the rule version store."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from loyaltyledger.exceptions import ConflictError, NoActiveRulesError, NotFoundError, ValidationError
from loyaltyledger.models import RuleVersion
from loyaltyledger.services import rules

pytestmark = pytest.mark.django_db


class TestGetActiveRules:
    """Resolution of the rules in effect."""

    def test_no_rules(self):
        with pytest.raises(NoActiveRulesError) as exc:
            rules.get_active_rules()
        assert exc.value.code == "NO_ACTIVE_RULES"

    def test_returns_active_version(self, rule_version):
        assert rules.get_active_rules() == rule_version

    def test_resolution_is_stable_when_future_version_added(self, rule_version):
        """A version scheduled later does not change what an instant resolves to."""
        at = timezone.now()
        first = rules.get_active_rules(at)

        future = rules.create_version(
            points_per_currency="0.02",
            redemption_rate="100",
            effective_from=at + timedelta(days=1),
        )

        assert rules.get_active_rules(at) == first
        assert rules.get_active_rules(at + timedelta(days=2)) == future

        rule_version.refresh_from_db()
        assert rule_version.effective_to == at + timedelta(days=1)

    def test_draft_is_never_resolved(self, rule_version):
        rules.create_version(points_per_currency="0.05", redemption_rate="100", is_active=False)
        assert rules.get_active_rules() == rule_version


class TestCreateVersion:
    """Rule version creation and validation."""

    def test_numbers_increment(self, rule_version):
        second = rules.create_version(points_per_currency="0.02", redemption_rate="50")
        assert second.version_number == rule_version.version_number + 1

    def test_new_active_version_closes_previous(self, rule_version):
        second = rules.create_version(points_per_currency="0.02", redemption_rate="50")
        rule_version.refresh_from_db()

        assert rule_version.effective_to is not None
        assert rule_version.effective_to <= second.effective_from
        assert rules.get_active_rules() == second

    def test_active_intervals_never_overlap(self, rule_version):
        rules.create_version(points_per_currency="0.02", redemption_rate="50")
        rules.create_version(points_per_currency="0.03", redemption_rate="50")

        now = timezone.now()
        effective = [v for v in RuleVersion.objects.filter(is_active=True) if v.covers(now)]
        assert len(effective) == 1

    def test_backdated_version_in_gap(self):
        start = timezone.now() - timedelta(days=7)
        version = rules.create_version(
            points_per_currency="0.01",
            redemption_rate="100",
            effective_from=start,
        )
        assert rules.get_active_rules(start + timedelta(days=1)) == version

    def test_backdated_version_overlapping_rejected(self, rule_version):
        with pytest.raises(ConflictError) as exc:
            rules.create_version(
                points_per_currency="0.02",
                redemption_rate="100",
                effective_from=timezone.now() - timedelta(days=1),
            )
        assert exc.value.code == "RULE_VERSION_OVERLAP"
        assert RuleVersion.objects.count() == 1

    @pytest.mark.parametrize(
        "params",
        [
            {"points_per_currency": "-0.01"},
            {"redemption_rate": "0"},
            {"max_redemption_percent": "101"},
            {"max_redemption_percent": "-1"},
            {"min_redemption_points": 0},
            {"earning_round_mode": "bankers"},
            {"tier_evaluation_basis": "visits"},
            {"points_per_currency": "abc"},
        ],
    )
    def test_out_of_range_rejected(self, params):
        values = {"points_per_currency": "0.01", "redemption_rate": "100"}
        values.update(params)
        with pytest.raises(ValidationError):
            rules.create_version(**values)
        assert not RuleVersion.objects.exists()

    def test_effective_to_must_follow_from(self):
        start = timezone.now() + timedelta(days=1)
        with pytest.raises(ValidationError):
            rules.create_version(
                points_per_currency="0.01",
                redemption_rate="100",
                effective_from=start,
                effective_to=start,
            )

    def test_effective_to_checked_against_implicit_start(self, rule_version):
        with pytest.raises(ValidationError):
            rules.create_version(
                points_per_currency="0.05",
                redemption_rate="100",
                effective_to=timezone.now() - timedelta(days=1),
            )

        rule_version.refresh_from_db()
        assert rule_version.effective_to is None
        assert RuleVersion.objects.count() == 1
        assert rules.get_active_rules().pk == rule_version.pk

    def test_decimal_parameters_stored(self, rule_version):
        assert rule_version.points_per_currency == Decimal("0.01")
        assert rule_version.max_redemption_percent == Decimal("50")
        assert rule_version.created_at is not None


class TestActivateVersion:
    """Drafts put in effect later."""

    def test_activate_draft(self, rule_version):
        draft = rules.create_version(points_per_currency="0.05", redemption_rate="100", is_active=False)

        activated = rules.activate_version(draft.version_number)

        assert activated.is_active
        assert rules.get_active_rules() == activated
        rule_version.refresh_from_db()
        assert rule_version.effective_to == activated.effective_from

    def test_activate_already_active(self, rule_version):
        with pytest.raises(ConflictError) as exc:
            rules.activate_version(rule_version.version_number)
        assert exc.value.code == "RULE_VERSION_ALREADY_ACTIVE"

    def test_activate_unknown(self, db):
        with pytest.raises(NotFoundError) as exc:
            rules.activate_version(99)
        assert exc.value.code == "RULE_VERSION_NOT_FOUND"

    def test_list_versions_newest_first(self, rule_version):
        second = rules.create_version(points_per_currency="0.02", redemption_rate="100")
        assert rules.list_versions() == [second, rule_version]
