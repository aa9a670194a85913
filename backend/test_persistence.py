"""
Unit tests for save records

Tests cover:
- Session snapshot and restore through JSON
- Record validation
- Talent market snapshot and restore
"""

import math

import pytest
from pydantic import ValidationError

from company import CompanyTier
from employees import AITier, EmployeeKind
from events import EventType
from persistence import (
    PlayerStateRecord,
    TalentMarketRecord,
    dump_market,
    dump_session,
    restore_market,
    restore_session,
)
from resources import ProvidedResources, ResourceType
from settlement import PlayerSession, SettlementTick
from skills import SkillStatus
from talent_market import ResumeStatus, TalentMarket


@pytest.fixture
def market():
    market = TalentMarket()
    market.publish(
        "p2", "Remote", 15,
        ProvidedResources(memory=2.0, cpu=1.0, bandwidth=100.0, computing=10.0),
        20.0, now=0.0,
    )
    return market


@pytest.fixture
def session(market):
    session = PlayerSession("p1", "Alice", level=5, talent_market=market)
    session.pool.earn_currency(5000)
    driver = SettlementTick(session)

    company_id = session.create_company("Acme", CompanyTier.SMALL, now=0.0).data["company_id"]
    session.companies.hire_ai_employee(company_id, AITier.RARE, now=0.0)
    session.companies.hire_from_resume(company_id, market.resume_of("p2").resume_id, now=0.0)

    session.purchase_skill("dataClean_lv1", now=0.0)
    driver.advance_downloads(60.0)
    session.skills.allocate_computing("dataClean_lv1", 20.0)
    session.start_job("job_001", now=0.0)
    session.set_mood_source("villa", 3.0)

    driver.on_tick()
    return session


def json_round_trip(session: PlayerSession) -> PlayerStateRecord:
    payload = dump_session(session).model_dump_json()
    return PlayerStateRecord.model_validate_json(payload)


class TestSessionRecord:
    """dump_session / restore_session"""

    def test_round_trip_preserves_state(self, session, market):
        restored = restore_session(json_round_trip(session), talent_market=market)

        assert restored.player_id == "p1"
        assert restored.level == 5
        assert restored.tick_count == 1
        assert restored.pool.to_dict() == session.pool.to_dict()
        assert restored.mood_sources == {"villa": 3.0}

    def test_companies_rebuild_derived_fields(self, session, market):
        original = session.companies.list_companies()[0]

        restored = restore_session(json_round_trip(session), talent_market=market)

        company = restored.companies.get_company(original.company_id)
        assert company.employee_count == 2
        assert company.total_income == pytest.approx(original.total_income)
        assert company.net_profit == pytest.approx(original.net_profit)
        assert company.cumulative_income == pytest.approx(original.cumulative_income)
        kinds = sorted(emp.kind.value for emp in company.employees)
        assert kinds == [EmployeeKind.AI.value, EmployeeKind.HUMAN_PROXY.value]

    def test_skills_and_jobs_restored_without_reallocating(self, session, market):
        computing_used = session.pool.computing_used

        restored = restore_session(json_round_trip(session), talent_market=market)

        instance = restored.skills.get_instance("dataClean_lv1")
        assert instance.status is SkillStatus.INSTALLED
        assert instance.mastery_percent == 150.0
        assert restored.pool.computing_used == computing_used
        assert [job.job_id for job in restored.jobs.active_jobs()] == ["job_001"]
        assert restored.jobs.active[0].completed_cycles == 1

    def test_restored_session_keeps_settling(self, session, market):
        restored = restore_session(json_round_trip(session), talent_market=market)

        report = SettlementTick(restored).on_tick()

        assert report.tick == 2
        assert report.ok
        assert len(report.company_results) == 1
        assert restored.bus.of_type(EventType.TICK_COMPLETED)

    def test_restored_proxy_can_be_dismissed(self, session, market):
        restored = restore_session(json_round_trip(session), talent_market=market)
        company = restored.companies.list_companies()[0]
        proxy = next(emp for emp in company.employees if not emp.is_ai)

        result = restored.companies.dismiss_employee(company.company_id, proxy.employee_id)

        assert result
        assert market.resume_of("p2").status is ResumeStatus.AVAILABLE

    def test_stalled_download_survives_json(self):
        session = PlayerSession("p1", "Alice")
        pool = session.pool
        pool.try_allocate(bandwidth=pool.available(ResourceType.BANDWIDTH))
        session.purchase_skill("dataClean_lv1", now=0.0)

        restored = restore_session(json_round_trip(session))

        assert math.isinf(restored.skills.get_instance("dataClean_lv1").download_seconds)

    def test_unknown_skill_is_dropped(self, session, market):
        record = dump_session(session)
        record.skills[0].skill_id = "retired_skill"

        restored = restore_session(record, talent_market=market)

        assert restored.skills.get_instance("retired_skill") is None

    def test_negative_coins_rejected(self, session):
        data = dump_session(session).model_dump()
        data["pool"]["virtual_coin"] = -1

        with pytest.raises(ValidationError):
            PlayerStateRecord.model_validate(data)

    def test_empty_player_id_rejected(self, session):
        data = dump_session(session).model_dump()
        data["player_id"] = ""

        with pytest.raises(ValidationError):
            PlayerStateRecord.model_validate(data)


class TestMarketRecord:
    """dump_market / restore_market"""

    def test_round_trip(self, market):
        resume_id = market.resume_of("p2").resume_id
        market.mark_hired(resume_id, "c1", now=10.0)
        market.publish("p3", "Other", 4, ProvidedResources(cpu=1.0), 5.0, now=1.0)
        market.withdraw("p3")

        payload = dump_market(market).model_dump_json()
        restored = restore_market(TalentMarketRecord.model_validate_json(payload))

        hired = restored.resume_of("p2")
        assert hired.resume_id == resume_id
        assert hired.status is ResumeStatus.HIRED
        assert hired.employed_by_company_id == "c1"
        assert hired.income_bonus == pytest.approx(2.45)
        assert restored.resume_of("p3").status is ResumeStatus.WITHDRAWN
