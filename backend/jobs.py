"""
Jobs

A job definition names the skills it needs, the hardware it occupies while
worked and its salary per settlement. Starting a job reserves that hardware
in the player's pool for as long as the job is held; resigning releases
exactly the same reservation.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from config import CONFIG
from events import EventBus, EventType
from resources import ResourcePool, ResourceRequirement, to_coins
from results import ActionResult
from skills import SkillLibrary

logger = logging.getLogger(__name__)


class JobTier(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


@dataclass(frozen=True, slots=True)
class Job:
    """Job definition; immutable once loaded from the catalog."""

    job_id: str
    name: str
    tier: JobTier = JobTier.COMMON
    required_skill_ids: Tuple[str, ...] = ()
    requirement: ResourceRequirement = field(default_factory=ResourceRequirement)
    base_salary: int = 10
    pay_interval: int = 300  # seconds
    data_generation: float = 0.2  # GB per cycle
    unlock_level: int = 1
    description: str = ""

    def __post_init__(self):
        """Validate invariants after initialization."""
        if self.base_salary < 0:
            raise ValueError(f"base_salary cannot be negative, got {self.base_salary}")
        if self.pay_interval <= 0:
            raise ValueError(f"pay_interval must be positive, got {self.pay_interval}")
        if self.data_generation < 0:
            raise ValueError(f"data_generation cannot be negative, got {self.data_generation}")
        if self.unlock_level < 1:
            raise ValueError(f"unlock_level must be at least 1, got {self.unlock_level}")

    def missing_skills(self, installed: Iterable[str]) -> List[str]:
        owned = set(installed)
        return [sid for sid in self.required_skill_ids if sid not in owned]


@dataclass(slots=True)
class PlayerJobInstance:
    """
    A job the player is working in one slot.

    skill_mastery is the proficiency applied to this job's payout (100 = full
    salary); settlement may refresh it from the required skills.
    """

    slot_id: int
    job_id: str
    started_at: float
    reserved: ResourceRequirement = field(default_factory=ResourceRequirement)
    completed_cycles: int = 0
    total_earned: int = 0
    skill_mastery: float = 100.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "slot_id": self.slot_id,
            "job_id": self.job_id,
            "started_at": self.started_at,
            "reserved": self.reserved.to_dict(),
            "completed_cycles": self.completed_cycles,
            "total_earned": self.total_earned,
            "skill_mastery": self.skill_mastery,
        }


def slots_for_level(level: int, has_vip: bool = False) -> int:
    """Slot count earned by player level, plus one for VIP, capped at the maximum."""
    cfg = CONFIG.jobs
    count = cfg.initial_job_slots
    for required_level, slots in sorted(cfg.slot_unlock_levels.items()):
        if level >= required_level:
            count = max(count, slots)
    if has_vip:
        count += 1
    return min(count, cfg.max_job_slots)


class JobBoard:
    """The player's job slots: start, resign, pay, unlock."""

    def __init__(
        self,
        pool: ResourcePool,
        catalog: Iterable[Job],
        skills: SkillLibrary,
        bus: EventBus,
        unlocked_slots: Optional[int] = None,
    ):
        self.pool = pool
        self.skills = skills
        self.bus = bus
        self.catalog: Dict[str, Job] = {job.job_id: job for job in catalog}
        self.unlocked_slots = CONFIG.jobs.initial_job_slots if unlocked_slots is None else unlocked_slots
        self.active: Dict[int, PlayerJobInstance] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.catalog.get(job_id)

    def active_jobs(self) -> List[PlayerJobInstance]:
        return [self.active[slot] for slot in sorted(self.active)]

    def available_jobs(self, level: int) -> List[Job]:
        """Jobs unlocked at `level` whose skills are all installed."""
        installed = self.skills.installed_skill_ids()
        return [
            job for job in self.catalog.values()
            if level >= job.unlock_level and not job.missing_skills(installed)
        ]

    def has_free_slot(self) -> bool:
        return len(self.active) < self.unlocked_slots

    def next_free_slot(self) -> Optional[int]:
        for slot_id in range(self.unlocked_slots):
            if slot_id not in self.active:
                return slot_id
        return None

    def skills_in_use(self) -> Set[str]:
        in_use: Set[str] = set()
        for instance in self.active.values():
            job = self.catalog.get(instance.job_id)
            if job is not None:
                in_use.update(job.required_skill_ids)
        return in_use

    # ------------------------------------------------------------------
    # Start / resign
    # ------------------------------------------------------------------

    def start_job(self, job_id: str, level: int, now: Optional[float] = None) -> ActionResult:
        """
        Take a job in the lowest free slot.

        Requires the player level, every required skill installed, a free
        slot and room in the pool for the job's requirement. Nothing is
        reserved unless every check passes.
        """
        job = self.catalog.get(job_id)
        if job is None:
            return ActionResult.failure(f"Unknown job: {job_id}")
        if level < job.unlock_level:
            return ActionResult.failure(f"Requires level {job.unlock_level}, player is level {level}")
        missing = job.missing_skills(self.skills.installed_skill_ids())
        if missing:
            return ActionResult.failure(f"Missing skills: {', '.join(missing)}")
        slot_id = self.next_free_slot()
        if slot_id is None:
            return ActionResult.failure(f"No free job slot ({self.unlocked_slots} unlocked)")
        if not self.pool.try_allocate_bundle(job.requirement):
            return ActionResult.failure(f"Not enough resources for {job.name}")

        instance = PlayerJobInstance(
            slot_id=slot_id,
            job_id=job_id,
            started_at=time.time() if now is None else now,
            reserved=job.requirement,
            skill_mastery=CONFIG.jobs.default_skill_mastery,
        )
        self.active[slot_id] = instance
        self.skills.mark_in_use(self.skills_in_use())
        self.bus.emit(EventType.JOB_STARTED, slot_id=slot_id, job_id=job_id)
        logger.info("Started job %s in slot %d", job.name, slot_id)
        return ActionResult.success(slot_id=slot_id)

    def resign_job(self, slot_id: int) -> ActionResult:
        instance = self.active.pop(slot_id, None)
        if instance is None:
            return ActionResult.failure(f"No job in slot {slot_id}")
        self.pool.release_bundle(instance.reserved)
        self.skills.mark_in_use(self.skills_in_use())
        self.bus.emit(EventType.JOB_RESIGNED, slot_id=slot_id, job_id=instance.job_id,
                      total_earned=instance.total_earned)
        logger.info("Resigned job %s from slot %d", instance.job_id, slot_id)
        return ActionResult.success(total_earned=instance.total_earned)

    def unlock_slots(self, level: int, has_vip: bool = False) -> int:
        """Raise the unlocked slot count for the player's level; never lowers it."""
        target = slots_for_level(level, has_vip)
        if target > self.unlocked_slots:
            old = self.unlocked_slots
            self.unlocked_slots = target
            self.bus.emit(EventType.JOB_SLOTS_UNLOCKED, old=old, new=target)
            logger.info("Job slots unlocked: %d -> %d", old, target)
        return self.unlocked_slots

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def refresh_skill_mastery(self, instance: PlayerJobInstance) -> float:
        """Set the job's proficiency to the mean mastery of its required skills."""
        job = self.catalog.get(instance.job_id)
        if job is None or not job.required_skill_ids:
            return instance.skill_mastery
        masteries = [self.skills.mastery_of(sid) for sid in job.required_skill_ids]
        known = [m for m in masteries if m is not None]
        if known:
            instance.skill_mastery = sum(known) / len(known)
        return instance.skill_mastery

    def pay_job(self, instance: PlayerJobInstance) -> Dict[str, object]:
        """
        Pay one cycle of a worked job.

        payout = round(base_salary * skill_mastery / 100). The job's data is
        written to storage afterwards; a full disk does not withhold pay.

        Returns:
            Dict with slot_id, job_id, payout and data_stored
        """
        job = self.catalog.get(instance.job_id)
        if job is None:
            raise KeyError(f"job definition {instance.job_id} missing")

        payout = to_coins(job.base_salary * instance.skill_mastery / 100.0)
        instance.completed_cycles += 1
        instance.total_earned += payout
        self.pool.earn_currency(payout)
        if CONFIG.debug.log_each_payout:
            logger.debug("%s (slot %d) paid %d", job.name, instance.slot_id, payout)
        self.bus.emit(EventType.SALARY_PAID, slot_id=instance.slot_id, job_id=job.job_id, amount=payout)

        data_stored = self.pool.generate_data(job.data_generation)
        return {
            "slot_id": instance.slot_id,
            "job_id": job.job_id,
            "payout": payout,
            "data_stored": data_stored,
        }
