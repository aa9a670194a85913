"""
Settlement

PlayerSession is the single context object for one player: resource pool,
skills, jobs, companies, talent market access, mood sources and the event
bus. SettlementTick drives one session through the fixed 300-second cycle.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np

from catalog import default_jobs, default_skills
from company import CompanyManager, CompanyTier
from config import CONFIG
from events import EventBus, EventType
from jobs import Job, JobBoard
from resources import ALLOCATABLE, IdentityType, ProvidedResources, ResourcePool, ResourceType
from results import ActionResult
from skills import Skill, SkillLibrary
from talent_market import TalentMarket

logger = logging.getLogger(__name__)


class PlayerSession:
    """
    Everything one player owns.

    Player-facing actions that depend on the player's level are exposed here
    so callers never pass the level by hand.
    """

    def __init__(
        self,
        player_id: str,
        player_name: str,
        identity: IdentityType = IdentityType.CONSCIOUSNESS_LINKER,
        level: Optional[int] = None,
        has_vip: bool = False,
        pool: Optional[ResourcePool] = None,
        skill_catalog: Optional[Iterable[Skill]] = None,
        job_catalog: Optional[Iterable[Job]] = None,
        talent_market: Optional[TalentMarket] = None,
        bus: Optional[EventBus] = None,
    ):
        if not player_id:
            raise ValueError("player_id cannot be empty")
        self.player_id = player_id
        self.player_name = player_name
        self.identity = identity
        self.level = CONFIG.resources.initial_level if level is None else level
        if self.level < 1:
            raise ValueError(f"level must be at least 1, got {self.level}")
        self.has_vip = has_vip
        self.tick_count = 0

        self.bus = bus or EventBus()
        self.pool = pool or ResourcePool.for_identity(identity)
        self.skills = SkillLibrary(
            self.pool,
            default_skills() if skill_catalog is None else skill_catalog,
            self.bus,
        )
        self.jobs = JobBoard(
            self.pool,
            default_jobs() if job_catalog is None else job_catalog,
            self.skills,
            self.bus,
        )
        self.jobs.unlock_slots(self.level, self.has_vip)
        self.talent_market = talent_market or TalentMarket(self.bus)
        self.companies = CompanyManager(player_id, self.pool, self.bus, self.talent_market)
        # Housing/pet mood per settlement, supplied by their owning systems
        self.mood_sources: Dict[str, float] = {}

    # ------------------------------------------------------------------
    # Mood sources
    # ------------------------------------------------------------------

    def set_mood_source(self, source_id: str, bonus_per_tick: float) -> None:
        self.mood_sources[source_id] = bonus_per_tick

    def remove_mood_source(self, source_id: str) -> None:
        self.mood_sources.pop(source_id, None)

    def mood_bonus_total(self) -> float:
        return sum(self.mood_sources.values())

    def is_working(self) -> bool:
        """True while the player works a job or runs a company."""
        return bool(self.jobs.active_jobs()) or bool(self.companies.list_companies())

    # ------------------------------------------------------------------
    # Level-aware actions
    # ------------------------------------------------------------------

    def purchase_skill(self, skill_id: str, now: Optional[float] = None) -> ActionResult:
        return self.skills.purchase_skill(skill_id, self.level, now=now)

    def start_job(self, job_id: str, now: Optional[float] = None) -> ActionResult:
        return self.jobs.start_job(job_id, self.level, now=now)

    def create_company(self, name: str, tier: CompanyTier, now: Optional[float] = None) -> ActionResult:
        return self.companies.create_company(name, tier, self.level, now=now)

    def publish_resume(
        self,
        offered: ProvidedResources,
        expected_salary: float,
        now: Optional[float] = None,
    ) -> ActionResult:
        return self.talent_market.publish(
            self.player_id, self.player_name, self.level, offered, expected_salary, now=now
        )

    def set_vip(self, has_vip: bool) -> None:
        self.has_vip = has_vip
        self.jobs.unlock_slots(self.level, has_vip)

    def try_level_up(self) -> ActionResult:
        """
        Advance one player level.

        Needs coins >= level * 1000; the coins are a threshold, not a price.
        """
        required = self.level * CONFIG.resources.level_up_coin_per_level
        if not self.pool.can_afford(required):
            return ActionResult.failure(
                f"Level {self.level + 1} needs {required} coins, have {self.pool.virtual_coin}"
            )
        self.level += 1
        self.jobs.unlock_slots(self.level, self.has_vip)
        self.bus.emit(EventType.LEVEL_UP, level=self.level)
        logger.info("%s reached level %d", self.player_name, self.level)
        return ActionResult.success(level=self.level)

    def income_efficiency(self) -> float:
        return self.pool.income_efficiency(self.level)

    def __repr__(self) -> str:
        return f"PlayerSession({self.player_id!r}, level={self.level}, coins={self.pool.virtual_coin})"


@dataclass(slots=True)
class TickReport:
    """Everything that changed in one settlement, for UI and persistence."""

    tick: int
    coins_before: int
    coins_after: int = 0
    mood_delta: int = 0
    connection_fee: int = 0
    connection_fee_paid: bool = True
    company_results: List[Dict[str, object]] = field(default_factory=list)
    job_results: List[Dict[str, object]] = field(default_factory=list)
    base_data_stored: bool = True
    storage_full_sources: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)

    @property
    def coins_delta(self) -> int:
        return self.coins_after - self.coins_before

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, object]:
        return {
            "tick": self.tick,
            "coins_before": self.coins_before,
            "coins_after": self.coins_after,
            "coins_delta": self.coins_delta,
            "mood_delta": self.mood_delta,
            "connection_fee": self.connection_fee,
            "connection_fee_paid": self.connection_fee_paid,
            "company_results": list(self.company_results),
            "job_results": list(self.job_results),
            "base_data_stored": self.base_data_stored,
            "storage_full_sources": list(self.storage_full_sources),
            "failures": list(self.failures),
        }


class SettlementTick:
    """Periodic driver for one player session."""

    def __init__(self, session: PlayerSession, rng: Optional[random.Random] = None):
        self.session = session
        self.rng = rng or random.Random()
        self.last_report: Optional[TickReport] = None

    def on_tick(self) -> TickReport:
        """
        Execute one settlement.

        Follows strict phase ordering:
        1. Charge the identity connection fee (consciousness linkers only)
        2. Settle every company and pay its net profit to the owner
        3. Pay every worked job
        4. Apply mood bonuses from housing and pets, minus the work drain
        5. Write base player data to storage
        6. Emit tick-completed with the report

        Each company and job is isolated: an error or a full disk in one is
        recorded and the rest still settle.
        """
        session = self.session
        pool = session.pool
        session.tick_count += 1
        session.bus.current_tick = session.tick_count
        report = TickReport(tick=session.tick_count, coins_before=pool.virtual_coin)

        # 1. Identity connection fee
        try:
            fee = pool.pay_connection_fee(session.identity, self.rng)
            if fee:
                report.connection_fee = fee.data["fee"]
                if report.connection_fee:
                    session.bus.emit(EventType.CONNECTION_FEE_PAID, fee=report.connection_fee)
            else:
                report.connection_fee_paid = False
                logger.warning("%s could not pay the connection fee: %s", session.player_name, fee.reason)
        except Exception as exc:
            logger.exception("Connection fee failed")
            report.failures.append(f"connection fee: {exc}")

        # 2. Companies
        for company in session.companies.list_companies():
            try:
                result = session.companies.settle_company(company)
            except Exception as exc:
                logger.exception("Settlement failed for company %s", company.company_id)
                report.failures.append(f"company {company.company_id}: {exc}")
                continue
            report.company_results.append(result)
            if not result["data_stored"]:
                self._storage_full(report, f"company:{company.company_id}", company.data_generation)

        # 3. Jobs
        for instance in session.jobs.active_jobs():
            try:
                if CONFIG.jobs.link_mastery_to_skills:
                    session.jobs.refresh_skill_mastery(instance)
                result = session.jobs.pay_job(instance)
            except Exception as exc:
                logger.exception("Payout failed for job slot %d", instance.slot_id)
                report.failures.append(f"job slot {instance.slot_id}: {exc}")
                continue
            report.job_results.append(result)
            if not result["data_stored"]:
                job = session.jobs.get_job(instance.job_id)
                self._storage_full(report, f"job:{instance.slot_id}", job.data_generation)

        # 4. Mood
        try:
            drain = CONFIG.resources.work_mood_drain if session.is_working() else 0
            report.mood_delta = int(round(session.mood_bonus_total())) - drain
            if report.mood_delta:
                pool.change_mood(report.mood_delta)
            if session.mood_sources or drain:
                session.bus.emit(EventType.MOOD_BONUS_APPLIED, delta=report.mood_delta,
                                 sources=len(session.mood_sources), work_drain=drain)
        except Exception as exc:
            logger.exception("Mood bonus failed")
            report.failures.append(f"mood: {exc}")

        # 5. Base data generation
        try:
            report.base_data_stored = pool.generate_data()
            if not report.base_data_stored:
                self._storage_full(report, "player", pool.data_generation_rate)
        except Exception as exc:
            logger.exception("Base data generation failed")
            report.failures.append(f"data: {exc}")

        if pool.is_storage_nearly_full():
            logger.info("Storage at %.1f%%", pool.usage_percent(ResourceType.STORAGE))

        # 6. Report
        report.coins_after = pool.virtual_coin
        session.bus.emit(EventType.TICK_COMPLETED, report=report.to_dict())
        logger.debug(
            "Tick %d: coins %+d, mood %+d, %d companies, %d jobs",
            report.tick, report.coins_delta, report.mood_delta,
            len(report.company_results), len(report.job_results),
        )
        self.last_report = report
        return report

    run = on_tick

    def _storage_full(self, report: TickReport, source: str, amount: float) -> None:
        pool = self.session.pool
        logger.warning(
            "Storage full: %s could not write %.2f GB (%.1f/%.1f GB used)",
            source, amount, pool.storage_used, pool.storage_total,
        )
        report.storage_full_sources.append(source)
        self.session.bus.emit(EventType.STORAGE_FULL, source=source, amount=amount,
                              storage_used=pool.storage_used)

    def advance_download(self, skill_id: str, delta_seconds: float) -> ActionResult:
        return self.session.skills.advance_download(skill_id, delta_seconds)

    def advance_downloads(self, delta_seconds: float) -> List[str]:
        return self.session.skills.advance_all_downloads(delta_seconds)

    def get_metrics(self) -> Dict[str, float]:
        """
        Aggregate indicators for monitoring and display.

        Returns:
            Dictionary with currency, resource usage, company, job and skill
            indicators for the session.
        """
        session = self.session
        pool = session.pool
        metrics: Dict[str, float] = {
            "tick": session.tick_count,
            "level": session.level,
            "virtual_coin": pool.virtual_coin,
            "mood": pool.mood,
            "storage_usage_percent": pool.usage_percent(ResourceType.STORAGE),
            "average_idle_percent": pool.average_idle_percent(),
            "income_efficiency": session.income_efficiency(),
        }
        for kind in ALLOCATABLE:
            metrics[f"{kind.value}_usage_percent"] = pool.usage_percent(kind)

        companies = session.companies.list_companies()
        metrics["company_count"] = len(companies)
        if companies:
            income = np.array([c.total_income for c in companies], dtype=np.float64)
            profit = np.array([c.net_profit for c in companies], dtype=np.float64)
            metrics["total_company_income"] = float(income.sum())
            metrics["total_company_net_profit"] = float(profit.sum())
            metrics["mean_company_net_profit"] = float(profit.mean())
            metrics["employee_count"] = sum(c.employee_count for c in companies)
        else:
            metrics["total_company_income"] = 0.0
            metrics["total_company_net_profit"] = 0.0
            metrics["mean_company_net_profit"] = 0.0
            metrics["employee_count"] = 0

        active = session.jobs.active_jobs()
        metrics["active_jobs"] = len(active)
        metrics["unlocked_job_slots"] = session.jobs.unlocked_slots
        metrics["total_job_earnings"] = float(sum(j.total_earned for j in active))

        installed = [session.skills.instances[sid] for sid in session.skills.installed_skill_ids()]
        metrics["installed_skills"] = len(installed)
        if installed:
            mastery = np.array([inst.mastery_percent for inst in installed], dtype=np.float64)
            metrics["mean_skill_mastery"] = float(mastery.mean())
            metrics["max_skill_mastery"] = float(mastery.max())
        else:
            metrics["mean_skill_mastery"] = 0.0
            metrics["max_skill_mastery"] = 0.0
        metrics["allocated_computing"] = session.skills.total_allocated_computing()
        return metrics
