"""Tests for the ledger engine on the in-memory repository (no database)."""

import threading
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.utils import timezone

from loyaltyledger.adapters.memory import InMemoryLedgerRepository
from loyaltyledger.engine import LedgerEngine
from loyaltyledger.exceptions import InsufficientPointsError, NoActiveRulesError
from loyaltyledger.locks import KeyedLock
from loyaltyledger.protocols import LedgerRepository


def replay(entries):
    balance = 0
    for entry in entries:
        balance += entry.points
        assert entry.points_balance_after == balance
    return balance


class TestRepositoryProtocol:
    def test_adapters_satisfy_protocol(self, memory_repo):
        from loyaltyledger.adapters.django_orm import DjangoLedgerRepository

        assert isinstance(memory_repo, LedgerRepository)
        assert isinstance(DjangoLedgerRepository(), LedgerRepository)

    def test_create_account_returns_existing(self, memory_engine, memory_repo):
        memory_engine.earn("CUST-001", 10_000)
        existing = memory_repo.load_account("CUST-001")

        assert memory_repo.create_account("CUST-001") == existing
        assert len(memory_repo.accounts) == 1


class TestMemoryEarn:
    """Engine behavior without a database."""

    def test_earn_and_tier(self, memory_engine, memory_repo):
        result = memory_engine.earn("CUST-001", 50_000)

        assert result.points_earned == 500
        assert result.new_tier_name == "Silver"
        account = memory_repo.load_account("CUST-001")
        assert account.tier_id == 2
        assert account.total_spend == 50_000
        assert len(memory_repo.tier_changes) == 1

    def test_clock_selects_rule_version(self, memory_repo, rule_version_info):
        now = timezone.now()
        memory_repo.rule_versions = [
            rule_version_info(effective_to=now),
            rule_version_info(
                id=2,
                version_number=2,
                points_per_currency=Decimal("0.02"),
                effective_from=now,
            ),
        ]
        before = LedgerEngine(memory_repo, clock=lambda: now - timedelta(hours=1))
        after = LedgerEngine(memory_repo, clock=lambda: now + timedelta(hours=1))

        assert before.earn("A", 10_000).points_earned == 100
        assert after.earn("B", 10_000).points_earned == 200

    def test_no_rules(self, tier_infos):
        engine = LedgerEngine(InMemoryLedgerRepository(tiers=tier_infos))
        with pytest.raises(NoActiveRulesError):
            engine.earn("CUST-001", 10_000)

    def test_sticky_gold(self, memory_engine, memory_repo):
        memory_engine.earn("CUST-001", 60_000)
        account = memory_repo.load_account("CUST-001")
        memory_repo.save_account(replace(account, tier_id=3))

        result = memory_engine.earn("CUST-001", 1000)

        assert memory_repo.load_account("CUST-001").tier_id == 3
        assert result.points_earned == 20


class TestMemoryAtomicity:
    """Failed mutations leave nothing behind."""

    def test_failure_mid_write_discards_everything(self, memory_repo):
        engine = LedgerEngine(memory_repo)
        with mock.patch.object(memory_repo, "append_tier_change", side_effect=RuntimeError("disk full")):
            with pytest.raises(RuntimeError):
                engine.earn("CUST-001", 10_000)

        assert memory_repo.accounts == {}
        assert memory_repo.transactions == []

    def test_rejected_redeem_leaves_balance(self, memory_engine, memory_repo):
        memory_engine.adjust("CUST-001", 500, "manual_credit", "Opening balance")

        with pytest.raises(InsufficientPointsError):
            memory_engine.redeem("CUST-001", 10)

        assert memory_repo.load_account("CUST-001").points_balance == 500
        assert len(memory_repo.transactions) == 1


class TestConcurrency:
    """Per-customer serialization."""

    def test_concurrent_earns_are_not_lost(self, memory_repo, rule_version_info):
        memory_repo.rule_versions = [rule_version_info(points_per_currency=Decimal("1"))]
        memory_repo.tiers = []
        engine = LedgerEngine(memory_repo)
        start = threading.Barrier(2)
        errors = []

        def earn():
            try:
                start.wait()
                engine.earn("CUST-001", 100)
            except Exception as e:  # surfaced below
                errors.append(e)

        threads = [threading.Thread(target=earn) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        account = memory_repo.load_account("CUST-001")
        assert account.points_balance == 200

        entries = memory_repo.transactions_for("CUST-001")
        assert [e.points for e in entries] == [100, 100]
        assert [e.points_balance_after for e in entries] == [100, 200]
        assert len({e.id for e in entries}) == 2

    def test_many_customers_many_threads(self, memory_repo, rule_version_info):
        memory_repo.rule_versions = [rule_version_info(points_per_currency=Decimal("1"))]
        engine = LedgerEngine(memory_repo)

        def work(ref):
            for _ in range(20):
                engine.earn(ref, 10)
                engine.adjust(ref, -5, "manual_debit", "Debit")

        threads = [threading.Thread(target=work, args=(f"C{i}",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for i in range(4):
            ref = f"C{i}"
            entries = memory_repo.transactions_for(ref)
            assert len(entries) == 40
            assert replay(entries) == memory_repo.load_account(ref).points_balance

        assert len(engine.locks) == 0


class TestKeyedLock:
    def test_entries_dropped_after_release(self):
        locks = KeyedLock()
        with locks.hold("a"):
            with locks.hold("b"):
                assert len(locks) == 2
        assert len(locks) == 0

    def test_same_key_serializes(self):
        locks = KeyedLock()
        order = []
        entered = threading.Event()

        def hold_first():
            with locks.hold("a"):
                entered.set()
                order.append("first-out")

        with locks.hold("a"):
            t = threading.Thread(target=hold_first)
            t.start()
            assert not entered.wait(timeout=0.1)
            order.append("main-out")
        t.join()

        assert order == ["main-out", "first-out"]
