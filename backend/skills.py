"""
Skills: mastery curve, definitions, per-player instances.

A skill is bought with virtual coins, downloaded over the player's bandwidth,
and once installed its mastery scales with the computing the player allocates
to it. Mastery is a piecewise-linear function of allocated computing with a
kink at the 100% threshold.
"""

import logging
import math
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional

from config import CONFIG
from events import EventBus, EventType
from resources import ResourcePool, ResourceType, to_decimal
from results import ActionResult

logger = logging.getLogger(__name__)


def calculate_mastery(allocated: float, max100: float, max200: float) -> float:
    """
    Mastery percentage for an amount of allocated computing.

    20% with nothing allocated, rising linearly to 100% at `max100`, then
    linearly to 200% at `max200`. Clamped to [20, 200]. When the second
    segment has no width (max200 <= max100) mastery saturates at 200 as soon
    as allocation passes max100.
    """
    cfg = CONFIG.skills
    floor = cfg.mastery_floor
    first_span = cfg.mastery_at_max100 - floor
    second_span = cfg.mastery_cap - cfg.mastery_at_max100

    if allocated <= 0:
        return floor

    if max100 > 0 and allocated <= max100:
        mastery = floor + (allocated / max100) * first_span
    else:
        excess_width = max200 - max(max100, 0.0)
        if excess_width <= 0:
            extra = second_span
        else:
            extra = min(second_span, (allocated - max(max100, 0.0)) / excess_width * second_span)
        mastery = floor + first_span + extra

    return max(floor, min(cfg.mastery_cap, mastery))


class SkillTier(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class SkillStatus(str, Enum):
    LOCKED = "locked"
    AVAILABLE = "available"
    DOWNLOADING = "downloading"
    INSTALLED = "installed"


@dataclass(frozen=True, slots=True)
class Skill:
    """Skill definition; immutable once loaded from the catalog."""

    skill_id: str
    name: str
    tier: SkillTier = SkillTier.COMMON
    price: int = 50
    file_size: float = 1.0  # GB
    max_computing_for_100: float = 10.0
    max_computing_for_200: float = 30.0
    unlock_level: int = 1
    prerequisite_skill_id: Optional[str] = None
    skill_level: int = 1
    description: str = ""

    def __post_init__(self):
        """Validate invariants after initialization."""
        if self.price < 0:
            raise ValueError(f"price cannot be negative, got {self.price}")
        if self.file_size < 0:
            raise ValueError(f"file_size cannot be negative, got {self.file_size}")
        if self.max_computing_for_100 <= 0:
            raise ValueError(
                f"max_computing_for_100 must be positive, got {self.max_computing_for_100}"
            )
        if self.max_computing_for_200 < self.max_computing_for_100:
            raise ValueError(
                "max_computing_for_200 must not be below max_computing_for_100, got "
                f"{self.max_computing_for_200} < {self.max_computing_for_100}"
            )
        if self.prerequisite_skill_id == self.skill_id:
            raise ValueError(f"skill {self.skill_id} cannot be its own prerequisite")

    def mastery_for(self, allocated: float) -> float:
        return calculate_mastery(allocated, self.max_computing_for_100, self.max_computing_for_200)

    def download_seconds(self, bandwidth_mbps: float) -> float:
        """Seconds to download the file: size in megabits over bandwidth in Mbps."""
        if bandwidth_mbps <= 0:
            return math.inf
        return self.file_size * CONFIG.skills.megabits_per_gigabyte / bandwidth_mbps


@dataclass(slots=True)
class SkillInstance:
    """A skill the player owns: download state, allocated computing, mastery."""

    skill_id: str
    acquired_at: float
    allocated_computing: float = 0.0
    mastery_percent: float = 20.0
    in_use: bool = False
    status: SkillStatus = SkillStatus.DOWNLOADING
    download_progress: float = 0.0
    download_seconds: float = 0.0
    elapsed_seconds: float = 0.0

    @property
    def is_installed(self) -> bool:
        return self.status is SkillStatus.INSTALLED

    def recalculate_mastery(self, skill: Optional[Skill]) -> float:
        if skill is None:
            self.mastery_percent = CONFIG.skills.mastery_floor
        else:
            self.mastery_percent = skill.mastery_for(self.allocated_computing)
        return self.mastery_percent

    def to_dict(self) -> Dict[str, object]:
        return {
            "skill_id": self.skill_id,
            "acquired_at": self.acquired_at,
            "allocated_computing": self.allocated_computing,
            "mastery_percent": self.mastery_percent,
            "in_use": self.in_use,
            "status": self.status.value,
            "download_progress": self.download_progress,
            "download_seconds": self.download_seconds,
            "elapsed_seconds": self.elapsed_seconds,
        }


class SkillLibrary:
    """
    The player's skills: purchase, download, install and computing allocation.

    Computing allocated to skills is reserved in the resource pool, so the sum
    of allocations can never exceed the pool's computing capacity.
    """

    def __init__(self, pool: ResourcePool, catalog: Iterable[Skill], bus: EventBus):
        self.pool = pool
        self.bus = bus
        self.catalog: Dict[str, Skill] = {skill.skill_id: skill for skill in catalog}
        self.instances: Dict[str, SkillInstance] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_skill(self, skill_id: str) -> Optional[Skill]:
        return self.catalog.get(skill_id)

    def get_instance(self, skill_id: str) -> Optional[SkillInstance]:
        return self.instances.get(skill_id)

    def has_skill(self, skill_id: str) -> bool:
        return skill_id in self.instances

    def is_installed(self, skill_id: str) -> bool:
        instance = self.instances.get(skill_id)
        return instance is not None and instance.is_installed

    def installed_skill_ids(self) -> List[str]:
        return [sid for sid, inst in self.instances.items() if inst.is_installed]

    def mastery_of(self, skill_id: str) -> Optional[float]:
        instance = self.instances.get(skill_id)
        if instance is None or not instance.is_installed:
            return None
        return instance.mastery_percent

    def total_allocated_computing(self) -> float:
        return sum(inst.allocated_computing for inst in self.instances.values())

    def skill_status(self, skill_id: str, level: int) -> SkillStatus:
        instance = self.instances.get(skill_id)
        if instance is not None:
            return instance.status
        skill = self.catalog.get(skill_id)
        if skill is None or not self._is_unlocked(skill, level):
            return SkillStatus.LOCKED
        return SkillStatus.AVAILABLE

    def available_skills(self, level: int) -> List[Skill]:
        """Unowned skills whose level and prerequisite are satisfied."""
        return [
            skill for skill in self.catalog.values()
            if skill.skill_id not in self.instances and self._is_unlocked(skill, level)
        ]

    def _is_unlocked(self, skill: Skill, level: int) -> bool:
        if level < skill.unlock_level:
            return False
        return not skill.prerequisite_skill_id or self.is_installed(skill.prerequisite_skill_id)

    # ------------------------------------------------------------------
    # Purchase and download
    # ------------------------------------------------------------------

    def purchase_skill(self, skill_id: str, level: int, now: Optional[float] = None) -> ActionResult:
        """
        Buy a skill and start its download.

        Requires coins >= price, free storage >= file size, level >= unlock
        level and an installed prerequisite. On success the price is debited,
        the file's storage is taken and a Downloading instance is created.
        """
        skill = self.catalog.get(skill_id)
        if skill is None:
            return ActionResult.failure(f"Unknown skill: {skill_id}")
        if skill_id in self.instances:
            return ActionResult.failure(f"Skill {skill.name} is already owned")
        if level < skill.unlock_level:
            return ActionResult.failure(f"Requires level {skill.unlock_level}, player is level {level}")
        if skill.prerequisite_skill_id and not self.is_installed(skill.prerequisite_skill_id):
            return ActionResult.failure(f"Prerequisite {skill.prerequisite_skill_id} is not installed")
        if not self.pool.can_afford(skill.price):
            return ActionResult.failure(
                f"Not enough coins: need {skill.price}, have {self.pool.virtual_coin}"
            )
        storage_free = self.pool.available(ResourceType.STORAGE)
        if storage_free < skill.file_size:
            return ActionResult.failure(
                f"Not enough storage: need {skill.file_size:g} GB, {storage_free:.1f} GB free"
            )

        self.pool.try_spend_currency(skill.price)
        self.pool.try_reserve_storage(skill.file_size)

        instance = SkillInstance(
            skill_id=skill_id,
            acquired_at=time.time() if now is None else now,
            mastery_percent=CONFIG.skills.mastery_floor,
            download_seconds=skill.download_seconds(self.pool.available(ResourceType.BANDWIDTH)),
        )
        self.instances[skill_id] = instance
        self.bus.emit(EventType.SKILL_PURCHASED, skill_id=skill_id, price=skill.price,
                      download_seconds=instance.download_seconds)
        logger.info("Purchased skill %s for %d coins", skill_id, skill.price)

        if instance.download_seconds == 0:
            self._install(instance, skill)
        return ActionResult.success(skill_id=skill_id, download_seconds=instance.download_seconds)

    def advance_download(self, skill_id: str, delta_seconds: float) -> ActionResult:
        """Move a download forward by `delta_seconds` of scheduler time."""
        if delta_seconds < 0:
            raise ValueError(f"delta_seconds cannot be negative, got {delta_seconds}")
        instance = self.instances.get(skill_id)
        if instance is None or instance.status is not SkillStatus.DOWNLOADING:
            return ActionResult.failure(f"Skill {skill_id} is not downloading")

        instance.elapsed_seconds += delta_seconds
        if math.isinf(instance.download_seconds):
            progress = 0.0
        else:
            progress = min(100.0, instance.elapsed_seconds / instance.download_seconds * 100.0)
        instance.download_progress = max(instance.download_progress, progress)
        self.bus.emit(EventType.DOWNLOAD_PROGRESS, skill_id=skill_id, progress=instance.download_progress)

        if instance.download_progress >= 100.0:
            self._install(instance, self.catalog.get(skill_id))
        return ActionResult.success(progress=instance.download_progress, installed=instance.is_installed)

    def advance_all_downloads(self, delta_seconds: float) -> List[str]:
        """Advance every running download; returns the ids that finished."""
        finished = []
        for skill_id, instance in list(self.instances.items()):
            if instance.status is SkillStatus.DOWNLOADING:
                result = self.advance_download(skill_id, delta_seconds)
                if result.data.get("installed"):
                    finished.append(skill_id)
        return finished

    def cancel_download(self, skill_id: str) -> ActionResult:
        """Abort a download, freeing the storage taken at purchase. The price is not refunded."""
        instance = self.instances.get(skill_id)
        if instance is None or instance.status is not SkillStatus.DOWNLOADING:
            return ActionResult.failure(f"Skill {skill_id} is not downloading")
        skill = self.catalog.get(skill_id)
        if skill is not None:
            self.pool.clean_data(skill.file_size)
        del self.instances[skill_id]
        self.bus.emit(EventType.DOWNLOAD_CANCELLED, skill_id=skill_id, progress=instance.download_progress)
        return ActionResult.success(skill_id=skill_id)

    def _install(self, instance: SkillInstance, skill: Optional[Skill]) -> None:
        instance.status = SkillStatus.INSTALLED
        instance.download_progress = 100.0
        instance.recalculate_mastery(skill)
        self.bus.emit(EventType.DOWNLOAD_COMPLETED, skill_id=instance.skill_id,
                      mastery=instance.mastery_percent)
        logger.info("Skill %s installed", instance.skill_id)

    # ------------------------------------------------------------------
    # Computing allocation
    # ------------------------------------------------------------------

    def allocate_computing(self, skill_id: str, amount: float) -> ActionResult:
        """
        Set the computing allocated to an installed skill and recompute mastery.

        The change is reserved in (or released to) the resource pool. If the
        new total across all skills would exceed computing capacity, or the
        pool cannot supply the increase, nothing changes.
        """
        instance = self.instances.get(skill_id)
        if instance is None:
            return ActionResult.failure(f"Skill {skill_id} is not owned")
        if not instance.is_installed:
            return ActionResult.failure(f"Skill {skill_id} is not installed yet")
        if amount < 0 or not math.isfinite(amount):
            return ActionResult.failure(f"Invalid computing amount: {amount}")

        # Decimal so the pool books exactly what a later release returns
        old = to_decimal(instance.allocated_computing)
        new = to_decimal(amount)
        others = sum(
            (to_decimal(inst.allocated_computing) for sid, inst in self.instances.items() if sid != skill_id),
            Decimal(0),
        )
        new_total = others + new
        if new_total > to_decimal(self.pool.computing_total):
            return ActionResult.failure(
                f"Allocations would total {new_total:g}, computing capacity is {self.pool.computing_total:g}"
            )

        delta = new - old
        if delta > 0:
            if not self.pool.try_allocate(computing=delta):
                return ActionResult.failure(
                    f"Not enough computing: need {delta:g} more, "
                    f"{self.pool.available(ResourceType.COMPUTING):g} available"
                )
        elif delta < 0:
            self.pool.release(computing=-delta)

        instance.allocated_computing = amount
        mastery = instance.recalculate_mastery(self.catalog.get(skill_id))
        self.bus.emit(EventType.MASTERY_UPDATED, skill_id=skill_id,
                      allocated_computing=amount, mastery=mastery)
        return ActionResult.success(mastery=mastery)

    def reset_all_computing(self) -> float:
        """Release every skill's computing; returns the amount released."""
        released = 0.0
        for skill_id, instance in self.instances.items():
            if instance.allocated_computing > 0:
                released += instance.allocated_computing
                self.pool.release(computing=instance.allocated_computing)
                instance.allocated_computing = 0.0
                mastery = instance.recalculate_mastery(self.catalog.get(skill_id))
                self.bus.emit(EventType.MASTERY_UPDATED, skill_id=skill_id,
                              allocated_computing=0.0, mastery=mastery)
        return released

    def mark_in_use(self, skill_ids: Iterable[str]) -> None:
        """Flag exactly the given skills as used by a running job."""
        wanted = set(skill_ids)
        for skill_id, instance in self.instances.items():
            instance.in_use = skill_id in wanted
