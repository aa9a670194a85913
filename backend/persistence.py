"""
Persistence records

Pydantic models for the state a save layer stores per player id. The core
does not pick an encoding: callers use `model_dump()` or `model_dump_json()`
and `model_validate()` / `model_validate_json()` on the way back.

Derived company figures are written for readers of the record but rebuilt
from the roster on restore.
"""

import logging
import math
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, confloat, conint

from company import Company, CompanyTier
from employees import AIProfile, AITier, Employee, EmployeeKind, HumanProxyProfile
from jobs import Job, PlayerJobInstance
from resources import IdentityType, ProvidedResources, ResourcePool, ResourceType
from settlement import PlayerSession
from skills import Skill, SkillInstance, SkillStatus
from talent_market import Resume, ResumeStatus, TalentMarket

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


# ---------- Records ----------

class ProvidedResourcesRecord(BaseModel):
    memory: confloat(ge=0) = 0.0
    cpu: confloat(ge=0) = 0.0
    bandwidth: confloat(ge=0) = 0.0
    computing: confloat(ge=0) = 0.0


class ResourcePoolRecord(BaseModel):
    memory_total: confloat(ge=0)
    memory_used: confloat(ge=0)
    cpu_total: confloat(ge=0)
    cpu_used: confloat(ge=0)
    bandwidth_total: confloat(ge=0)
    bandwidth_used: confloat(ge=0)
    computing_total: confloat(ge=0)
    computing_used: confloat(ge=0)
    storage_total: confloat(ge=0)
    storage_used: confloat(ge=0)
    virtual_coin: conint(ge=0)
    mood: int
    data_generation_rate: confloat(ge=0) = 0.0


class EmployeeRecord(BaseModel):
    employee_id: str
    name: str
    kind: EmployeeKind
    salary: confloat(ge=0)
    income_bonus: confloat(ge=1.0)
    hired_at: float = 0.0
    # AI payload
    ai_tier: Optional[AITier] = None
    ai_level: Optional[conint(ge=1)] = None
    ai_max_level: Optional[conint(ge=1)] = None
    training_cost_per_level: Optional[confloat(ge=0)] = None
    # Human proxy payload
    linked_player_id: Optional[str] = None
    proxy_level: Optional[conint(ge=1)] = None
    provided: Optional[ProvidedResourcesRecord] = None
    resume_id: Optional[str] = None


class CompanyRecord(BaseModel):
    company_id: str
    name: str
    tier: CompanyTier
    owner_id: str
    created_at: float = 0.0
    level: conint(ge=1) = 1
    base_income: confloat(ge=0)
    max_employees: conint(ge=1)
    data_generation: confloat(ge=0)
    cumulative_income: confloat(ge=0) = 0.0
    employees: List[EmployeeRecord] = Field(default_factory=list)
    total_income: float = 0.0
    total_expenses: float = 0.0
    net_profit: float = 0.0
    required_income_for_next_level: float = 0.0
    required_employees_for_next_level: int = 0


class SkillInstanceRecord(BaseModel):
    skill_id: str
    acquired_at: float
    allocated_computing: confloat(ge=0) = 0.0
    mastery_percent: confloat(ge=20, le=200) = 20.0
    in_use: bool = False
    status: SkillStatus = SkillStatus.DOWNLOADING
    download_progress: confloat(ge=0, le=100) = 0.0
    # None when the download was started with no free bandwidth (never finishes)
    download_seconds: Optional[confloat(ge=0)] = 0.0
    elapsed_seconds: confloat(ge=0) = 0.0


class JobInstanceRecord(BaseModel):
    slot_id: conint(ge=0)
    job_id: str
    started_at: float
    reserved: ProvidedResourcesRecord = Field(default_factory=ProvidedResourcesRecord)
    completed_cycles: conint(ge=0) = 0
    total_earned: conint(ge=0) = 0
    skill_mastery: confloat(ge=0) = 100.0


class ResumeRecord(BaseModel):
    resume_id: str
    player_id: str
    player_name: str
    player_level: int
    offered_resources: ProvidedResourcesRecord
    expected_salary: float
    posted_at: float = 0.0
    status: ResumeStatus = ResumeStatus.AVAILABLE
    employed_by_company_id: Optional[str] = None
    hired_at: Optional[float] = None
    income_bonus: float = 1.0


class PlayerStateRecord(BaseModel):
    """Full saved state of one player, keyed by player_id."""

    schema_version: int = SCHEMA_VERSION
    player_id: str = Field(..., min_length=1)
    player_name: str
    identity: IdentityType = IdentityType.CONSCIOUSNESS_LINKER
    level: conint(ge=1) = 1
    has_vip: bool = False
    tick_count: conint(ge=0) = 0
    unlocked_job_slots: conint(ge=1) = 1
    pool: ResourcePoolRecord
    companies: List[CompanyRecord] = Field(default_factory=list)
    skills: List[SkillInstanceRecord] = Field(default_factory=list)
    jobs: List[JobInstanceRecord] = Field(default_factory=list)
    mood_sources: Dict[str, float] = Field(default_factory=dict)


class TalentMarketRecord(BaseModel):
    schema_version: int = SCHEMA_VERSION
    resumes: List[ResumeRecord] = Field(default_factory=list)


# ---------- Conversions ----------

def _resources_record(bundle: ProvidedResources) -> ProvidedResourcesRecord:
    return ProvidedResourcesRecord(**bundle.to_dict())


def _resources_from(record: ProvidedResourcesRecord) -> ProvidedResources:
    return ProvidedResources(record.memory, record.cpu, record.bandwidth, record.computing)


def _employee_record(employee: Employee) -> EmployeeRecord:
    record = EmployeeRecord(
        employee_id=employee.employee_id,
        name=employee.name,
        kind=employee.kind,
        salary=employee.salary,
        income_bonus=employee.income_bonus,
        hired_at=employee.hired_at,
    )
    if employee.ai is not None:
        record.ai_tier = employee.ai.tier
        record.ai_level = employee.ai.level
        record.ai_max_level = employee.ai.max_level
        record.training_cost_per_level = employee.ai.training_cost_per_level
    if employee.proxy is not None:
        record.linked_player_id = employee.proxy.linked_player_id
        record.proxy_level = employee.proxy.proxy_level
        record.provided = _resources_record(employee.proxy.provided)
        record.resume_id = employee.proxy.resume_id
    return record


def _employee_from(record: EmployeeRecord) -> Employee:
    ai = None
    proxy = None
    if record.kind is EmployeeKind.AI:
        if record.ai_tier is None:
            raise ValueError(f"AI employee {record.employee_id} has no tier")
        ai = AIProfile.for_tier(record.ai_tier)
        ai.level = record.ai_level or 1
        if record.ai_max_level is not None:
            ai.max_level = record.ai_max_level
        if record.training_cost_per_level is not None:
            ai.training_cost_per_level = record.training_cost_per_level
    else:
        if record.linked_player_id is None or record.proxy_level is None:
            raise ValueError(f"Human proxy {record.employee_id} has no linked player")
        proxy = HumanProxyProfile(
            linked_player_id=record.linked_player_id,
            proxy_level=record.proxy_level,
            provided=_resources_from(record.provided or ProvidedResourcesRecord()),
            resume_id=record.resume_id,
        )
    employee = Employee(
        employee_id=record.employee_id,
        name=record.name,
        kind=record.kind,
        salary=record.salary,
        income_bonus=record.income_bonus,
        hired_at=record.hired_at,
        ai=ai,
        proxy=proxy,
    )
    employee.recalculate_bonus()
    return employee


def _company_record(company: Company) -> CompanyRecord:
    data = company.to_dict()
    data["employees"] = [_employee_record(emp) for emp in company.employees]
    return CompanyRecord(**data)


def _company_from(record: CompanyRecord) -> Company:
    return Company(
        company_id=record.company_id,
        name=record.name,
        tier=record.tier,
        owner_id=record.owner_id,
        created_at=record.created_at,
        level=record.level,
        base_income=record.base_income,
        max_employees=record.max_employees,
        data_generation=record.data_generation,
        employees=[_employee_from(emp) for emp in record.employees],
        cumulative_income=record.cumulative_income,
    )


def _skill_record(instance: SkillInstance) -> SkillInstanceRecord:
    data = instance.to_dict()
    if math.isinf(instance.download_seconds):
        data["download_seconds"] = None
    return SkillInstanceRecord(**data)


def _skill_from(record: SkillInstanceRecord) -> SkillInstance:
    data = record.model_dump()
    if data["download_seconds"] is None:
        data["download_seconds"] = math.inf
    return SkillInstance(**data)


def _pool_record(pool: ResourcePool) -> ResourcePoolRecord:
    return ResourcePoolRecord(**pool.to_dict())


def _pool_from(record: ResourcePoolRecord) -> ResourcePool:
    return ResourcePool(
        totals={kind: getattr(record, f"{kind.value}_total") for kind in ResourceType},
        used={kind: getattr(record, f"{kind.value}_used") for kind in ResourceType},
        virtual_coin=record.virtual_coin,
        mood=record.mood,
        data_generation_rate=record.data_generation_rate,
    )


def dump_session(session: PlayerSession) -> PlayerStateRecord:
    """Snapshot a session into its save record."""
    return PlayerStateRecord(
        player_id=session.player_id,
        player_name=session.player_name,
        identity=session.identity,
        level=session.level,
        has_vip=session.has_vip,
        tick_count=session.tick_count,
        unlocked_job_slots=session.jobs.unlocked_slots,
        pool=_pool_record(session.pool),
        companies=[_company_record(c) for c in session.companies.list_companies()],
        skills=[_skill_record(inst) for inst in session.skills.instances.values()],
        jobs=[
            JobInstanceRecord(
                slot_id=inst.slot_id,
                job_id=inst.job_id,
                started_at=inst.started_at,
                reserved=_resources_record(inst.reserved),
                completed_cycles=inst.completed_cycles,
                total_earned=inst.total_earned,
                skill_mastery=inst.skill_mastery,
            )
            for inst in session.jobs.active_jobs()
        ],
        mood_sources=dict(session.mood_sources),
    )


def restore_session(
    record: PlayerStateRecord,
    skill_catalog: Optional[Iterable[Skill]] = None,
    job_catalog: Optional[Iterable[Job]] = None,
    talent_market: Optional[TalentMarket] = None,
) -> PlayerSession:
    """
    Rebuild a session from its save record.

    The saved pool usage already includes every job reservation and skill
    allocation, so nothing is allocated again.
    """
    session = PlayerSession(
        record.player_id,
        record.player_name,
        identity=record.identity,
        level=record.level,
        has_vip=record.has_vip,
        pool=_pool_from(record.pool),
        skill_catalog=skill_catalog,
        job_catalog=job_catalog,
        talent_market=talent_market,
    )
    session.tick_count = record.tick_count
    session.bus.current_tick = record.tick_count
    session.jobs.unlocked_slots = max(session.jobs.unlocked_slots, record.unlocked_job_slots)

    for skill_record in record.skills:
        if session.skills.get_skill(skill_record.skill_id) is None:
            logger.warning("Dropping saved skill %s: not in catalog", skill_record.skill_id)
            continue
        session.skills.instances[skill_record.skill_id] = _skill_from(skill_record)

    for job_record in record.jobs:
        if session.jobs.get_job(job_record.job_id) is None:
            logger.warning("Saved job %s is not in catalog; it will not be paid", job_record.job_id)
        session.jobs.active[job_record.slot_id] = PlayerJobInstance(
            slot_id=job_record.slot_id,
            job_id=job_record.job_id,
            started_at=job_record.started_at,
            reserved=_resources_from(job_record.reserved),
            completed_cycles=job_record.completed_cycles,
            total_earned=job_record.total_earned,
            skill_mastery=job_record.skill_mastery,
        )

    for company_record in record.companies:
        company = _company_from(company_record)
        session.companies.companies[company.company_id] = company

    session.mood_sources.update(record.mood_sources)
    session.bus.drain()
    return session


def dump_market(market: TalentMarket) -> TalentMarketRecord:
    return TalentMarketRecord(
        resumes=[
            ResumeRecord(**{**resume.to_dict(),
                            "offered_resources": _resources_record(resume.offered_resources)})
            for resume in market.resumes.values()
        ]
    )


def restore_market(record: TalentMarketRecord, market: Optional[TalentMarket] = None) -> TalentMarket:
    market = market or TalentMarket()
    for resume_record in record.resumes:
        resume = Resume(
            resume_id=resume_record.resume_id,
            player_id=resume_record.player_id,
            player_name=resume_record.player_name,
            player_level=resume_record.player_level,
            offered_resources=_resources_from(resume_record.offered_resources),
            expected_salary=resume_record.expected_salary,
            posted_at=resume_record.posted_at,
            status=resume_record.status,
            employed_by_company_id=resume_record.employed_by_company_id,
            hired_at=resume_record.hired_at,
        )
        market.add_resume(resume)
    return market
