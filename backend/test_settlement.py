"""
Unit tests for PlayerSession and SettlementTick

Tests cover:
- Phase ordering of one settlement
- Isolation of failing companies and jobs
- Storage-full reporting
- Connection fee of consciousness linkers
- Mood bonus rounding, work drain and base data generation
- Player level-up and slot unlocks
- Metrics snapshot
"""

import logging
import random

import pytest

from company import CompanyTier
from config import CONFIG
from employees import AITier
from events import EventType
from resources import IdentityType, ProvidedResources, ResourceType
from settlement import PlayerSession, SettlementTick


def make_session(level: int = 5, coins: int = 5000) -> PlayerSession:
    session = PlayerSession("p1", "Alice", level=level)
    session.pool.earn_currency(coins)
    return session


def open_company(session: PlayerSession) -> str:
    company_id = session.create_company("Acme", CompanyTier.SMALL, now=0.0).data["company_id"]
    session.companies.hire_ai_employee(company_id, AITier.COMMON)
    return company_id


def install(driver: SettlementTick, skill_id: str) -> None:
    skills = driver.session.skills
    assert driver.session.purchase_skill(skill_id, now=0.0)
    driver.advance_download(skill_id, skills.get_instance(skill_id).download_seconds)
    assert skills.is_installed(skill_id)


class TestTickOrder:
    """on_tick phases"""

    def test_fee_then_companies_then_jobs_then_mood_then_report(self):
        session = make_session()
        open_company(session)
        session.start_job("job_002")
        session.set_mood_source("housing", 1.0)
        driver = SettlementTick(session)
        session.bus.drain()

        driver.on_tick()

        order = [event.event_type for event in session.bus.drain()]
        assert order == [
            EventType.CONNECTION_FEE_PAID,
            EventType.INCOME_SETTLED,
            EventType.SALARY_PAID,
            EventType.MOOD_BONUS_APPLIED,
            EventType.TICK_COMPLETED,
        ]

    def test_report_totals(self):
        session = make_session()
        open_company(session)
        session.start_job("job_002")
        driver = SettlementTick(session)
        storage = session.pool.storage_used

        report = driver.on_tick()

        assert report.ok
        assert 5 <= report.connection_fee <= 10
        assert report.coins_delta == 60 - report.connection_fee
        assert report.company_results[0]["coins_delta"] == 50
        assert report.job_results[0]["payout"] == 10
        # company 0.5 + job 0.1 + base 0.5
        assert session.pool.storage_used == pytest.approx(storage + 1.1)

    def test_tick_counter(self):
        session = make_session()
        driver = SettlementTick(session)

        driver.on_tick()
        report = driver.run()

        assert report.tick == 2
        assert session.tick_count == 2
        assert session.bus.current_tick == 2
        assert driver.last_report is report

    def test_empty_session_only_writes_base_data(self):
        session = PlayerSession("p1", "Alice")
        driver = SettlementTick(session)

        report = driver.on_tick()

        assert report.coins_delta == -report.connection_fee
        assert report.mood_delta == 0
        assert report.base_data_stored
        assert session.pool.storage_used == 20.5
        assert not session.bus.of_type(EventType.MOOD_BONUS_APPLIED)


class TestFaultIsolation:
    """One failure does not stop the rest of the settlement"""

    def test_failing_company_does_not_block_others(self, monkeypatch):
        session = make_session(coins=10_000)
        broken = open_company(session)
        healthy = open_company(session)
        original = session.companies.settle_company

        def settle(company):
            if company.company_id == broken:
                raise RuntimeError("ledger corrupted")
            return original(company)

        monkeypatch.setattr(session.companies, "settle_company", settle)
        session.start_job("job_002")

        report = SettlementTick(session).on_tick()

        assert not report.ok
        assert len(report.failures) == 1
        assert "ledger corrupted" in report.failures[0]
        assert [r["company_id"] for r in report.company_results] == [healthy]
        assert len(report.job_results) == 1
        assert session.bus.of_type(EventType.TICK_COMPLETED)

    def test_failing_job_is_recorded(self, monkeypatch):
        session = make_session()
        open_company(session)
        session.start_job("job_002")

        def pay_job(instance):
            raise KeyError(instance.job_id)

        monkeypatch.setattr(session.jobs, "pay_job", pay_job)

        report = SettlementTick(session).on_tick()

        assert len(report.failures) == 1
        assert report.failures[0].startswith("job slot 0")
        assert report.coins_delta == 50 - report.connection_fee


class TestConnectionFee:
    """Identity fee phase"""

    def test_full_virtual_pays_no_fee(self):
        session = PlayerSession("p1", "Alice", identity=IdentityType.FULL_VIRTUAL)

        report = SettlementTick(session).on_tick()

        assert report.connection_fee == 0
        assert report.connection_fee_paid
        assert report.coins_delta == 0
        assert not session.bus.of_type(EventType.CONNECTION_FEE_PAID)

    def test_fee_is_reproducible_with_seeded_rng(self):
        fees = []
        for _ in range(2):
            session = PlayerSession("p1", "Alice")
            driver = SettlementTick(session, rng=random.Random(42))
            fees.append([driver.on_tick().connection_fee for _ in range(3)])

        assert fees[0] == fees[1]
        assert all(5 <= fee <= 10 for fee in fees[0])

    def test_fee_event_carries_amount(self):
        session = PlayerSession("p1", "Alice")

        report = SettlementTick(session).on_tick()

        event = session.bus.of_type(EventType.CONNECTION_FEE_PAID)[0]
        assert event.payload["fee"] == report.connection_fee
        assert session.pool.virtual_coin == 100 - report.connection_fee

    def test_unpaid_fee_charges_nothing(self, caplog):
        session = PlayerSession("p1", "Alice")
        session.pool.try_spend_currency(97)

        with caplog.at_level(logging.WARNING, logger="settlement"):
            report = SettlementTick(session).on_tick()

        assert not report.connection_fee_paid
        assert report.connection_fee == 0
        assert report.ok
        assert session.pool.virtual_coin == 3
        assert "could not pay the connection fee" in caplog.text
        assert not session.bus.of_type(EventType.CONNECTION_FEE_PAID)

    def test_fee_error_does_not_stop_settlement(self, monkeypatch):
        session = make_session()
        session.start_job("job_002")

        def broken(identity, rng=None):
            raise RuntimeError("billing offline")

        monkeypatch.setattr(session.pool, "pay_connection_fee", broken)

        report = SettlementTick(session).on_tick()

        assert report.failures == ["connection fee: billing offline"]
        assert report.coins_delta == 10
        assert report.base_data_stored


class TestStorageFull:
    """Data that does not fit"""

    def test_full_storage_is_reported_and_logged(self, caplog):
        session = make_session()
        session.start_job("job_002")
        pool = session.pool
        pool.try_reserve_storage(pool.available(ResourceType.STORAGE))
        coins = pool.virtual_coin

        with caplog.at_level(logging.WARNING, logger="settlement"):
            report = SettlementTick(session).on_tick()

        assert report.storage_full_sources == ["job:0", "player"]
        assert not report.base_data_stored
        assert pool.virtual_coin == coins + 10 - report.connection_fee
        assert "Storage full:" in caplog.text
        sources = [event.payload["source"] for event in session.bus.of_type(EventType.STORAGE_FULL)]
        assert sources == ["job:0", "player"]

    def test_company_data_overflow(self):
        session = make_session()
        company_id = open_company(session)
        pool = session.pool
        pool.try_reserve_storage(pool.available(ResourceType.STORAGE) - 0.2)

        report = SettlementTick(session).on_tick()

        assert report.storage_full_sources == [f"company:{company_id}", "player"]
        assert report.company_results[0]["coins_delta"] == 50


class TestMood:
    """Mood bonus phase"""

    def test_total_is_rounded_once(self):
        session = PlayerSession("p1", "Alice")
        session.set_mood_source("apartment", 1.0)
        session.set_mood_source("villa", 3.0)
        session.set_mood_source("pet", 0.4)

        report = SettlementTick(session).on_tick()

        assert report.mood_delta == 4
        assert session.pool.mood == 14
        event = session.bus.of_type(EventType.MOOD_BONUS_APPLIED)[0]
        assert event.payload["delta"] == 4

    def test_removed_source_stops_applying(self):
        session = PlayerSession("p1", "Alice")
        session.set_mood_source("villa", 3.0)
        session.remove_mood_source("villa")

        SettlementTick(session).on_tick()

        assert session.pool.mood == 10

    def test_working_player_loses_mood(self):
        session = make_session()
        session.start_job("job_002")

        report = SettlementTick(session).on_tick()

        assert report.mood_delta == -2
        assert session.pool.mood == 8
        event = session.bus.of_type(EventType.MOOD_BONUS_APPLIED)[0]
        assert event.payload["work_drain"] == 2

    def test_company_owner_counts_as_working(self):
        session = make_session()
        open_company(session)
        session.set_mood_source("villa", 3.0)

        report = SettlementTick(session).on_tick()

        assert report.mood_delta == 1
        assert session.pool.mood == 11


class TestPlayerSession:
    """Level-aware actions"""

    def test_level_up_threshold_is_not_consumed(self):
        session = PlayerSession("p1", "Alice")

        assert not session.try_level_up()

        session.pool.earn_currency(900)
        result = session.try_level_up()

        assert result
        assert session.level == 2
        assert session.pool.virtual_coin == 1000
        assert session.bus.of_type(EventType.LEVEL_UP)

    def test_level_ten_unlocks_second_slot(self):
        session = make_session(level=9, coins=9000)
        assert session.jobs.unlocked_slots == 1

        assert session.try_level_up()

        assert session.level == 10
        assert session.jobs.unlocked_slots == 2

    def test_vip_adds_slot(self):
        session = PlayerSession("p1", "Alice")

        session.set_vip(True)

        assert session.jobs.unlocked_slots == 2

    def test_actions_use_session_level(self):
        session = PlayerSession("p1", "Alice", level=1)
        session.pool.earn_currency(5000)

        assert not session.create_company("Acme", CompanyTier.SMALL)
        assert not session.purchase_skill("dataAnalysis_lv1")

    def test_publish_resume_uses_identity(self):
        session = PlayerSession("p1", "Alice", level=15)

        result = session.publish_resume(
            ProvidedResources(memory=2.0, cpu=1.0, bandwidth=100.0, computing=10.0), 20.0, now=0.0,
        )

        assert result
        resume = session.talent_market.resume_of("p1")
        assert resume.player_name == "Alice"
        assert resume.income_bonus == pytest.approx(2.45)

    def test_empty_player_id_rejected(self):
        with pytest.raises(ValueError, match="player_id"):
            PlayerSession("", "Nobody")


class TestSkillsAndJobs:
    """Downloads and mastery through the driver"""

    def test_linked_mastery_sets_payout(self):
        session = PlayerSession("p1", "Alice")
        driver = SettlementTick(session)
        install(driver, "dataClean_lv1")
        session.skills.allocate_computing("dataClean_lv1", 10.0)
        session.start_job("job_001")

        report = driver.on_tick()

        assert report.job_results[0]["payout"] == 15

    def test_advance_downloads(self):
        session = PlayerSession("p1", "Alice")
        driver = SettlementTick(session)
        session.purchase_skill("dataClean_lv1", now=0.0)

        assert driver.advance_downloads(1.0) == []
        assert driver.advance_downloads(60.0) == ["dataClean_lv1"]


class TestMetrics:
    """get_metrics"""

    def test_metrics_snapshot(self):
        session = make_session()
        open_company(session)
        session.start_job("job_002")
        driver = SettlementTick(session)
        driver.on_tick()

        metrics = driver.get_metrics()

        assert metrics["tick"] == 1
        assert metrics["level"] == 5
        assert metrics["company_count"] == 1
        assert metrics["employee_count"] == 1
        assert metrics["total_company_net_profit"] == pytest.approx(50.0)
        assert metrics["active_jobs"] == 1
        assert metrics["installed_skills"] == 0
        assert metrics["mean_skill_mastery"] == 0.0
        for key in ("memory_usage_percent", "storage_usage_percent", "income_efficiency"):
            assert key in metrics


class TestLongRun:
    """Many settlements on one session"""

    def test_event_queue_stays_bounded(self):
        session = PlayerSession("p1", "Alice")
        session.set_mood_source("apartment", 1.0)
        driver = SettlementTick(session, rng=random.Random(0))

        for _ in range(1000):
            driver.on_tick()

        assert len(session.bus.peek()) <= CONFIG.debug.event_queue_limit
        assert session.bus.dropped > 0
        assert session.bus.peek()[-1].event_type is EventType.TICK_COMPLETED
        assert session.bus.peek()[-1].tick == 1000
