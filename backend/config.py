"""
Simulation Configuration

Centralizes the fixed game-design values of the settlement core: resource
defaults per identity, company and employee tiers, skill and job tables,
settlement cadence. Everything the formula layer reads comes from here so
no module carries its own magic numbers.
"""

from dataclasses import dataclass, field
from typing import Dict


@dataclass
class ResourceConfig:
    """Resource pool defaults and thresholds."""

    # Capacities shared by both identities
    memory_total: float = 16.0  # GB
    cpu_total: float = 8.0  # cores
    bandwidth_total: float = 1000.0  # Mbps
    computing_total: float = 100.0  # computing points
    storage_total: float = 500.0  # GB

    # Starting usage per identity: memory, cpu, bandwidth, computing, storage
    identity_usage: Dict[str, tuple] = field(default_factory=lambda: {
        "consciousness_linker": (2.0, 1.0, 50.0, 10.0, 20.0),
        "full_virtual": (4.0, 2.0, 100.0, 20.0, 50.0),
    })
    # GB of data produced per tick by base player activity
    identity_data_rate: Dict[str, float] = field(default_factory=lambda: {
        "consciousness_linker": 0.5,
        "full_virtual": 1.2,
    })

    initial_virtual_coin: int = 100
    initial_mood: int = 10
    initial_level: int = 1

    # Storage warnings (percent of capacity)
    storage_nearly_full_percent: float = 80.0
    storage_full_percent: float = 95.0

    # Income efficiency (reporting only)
    base_efficiency: float = 100.0
    mood_efficiency_rate: float = 1.0  # 1% per 100 mood
    level_efficiency_rate: float = 0.5  # 0.5% per level

    # Player level-up: coins required = level * this (not consumed)
    level_up_coin_per_level: int = 1000

    # Consciousness linkers pay a random fee in [min, max] each tick
    connection_fee_min: int = 5
    connection_fee_max: int = 10
    # Mood lost per tick while the player works a job or runs a company
    work_mood_drain: int = 2


@dataclass
class CompanyConfig:
    """Company tier table and level-up curve."""

    tier_base_income: Dict[str, float] = field(default_factory=lambda: {
        "small": 50.0, "medium": 150.0, "large": 500.0, "corporation": 2000.0,
    })
    tier_max_employees: Dict[str, int] = field(default_factory=lambda: {
        "small": 5, "medium": 10, "large": 20, "corporation": 50,
    })
    tier_data_generation: Dict[str, float] = field(default_factory=lambda: {
        "small": 0.5, "medium": 1.5, "large": 5.0, "corporation": 20.0,
    })
    tier_creation_cost: Dict[str, int] = field(default_factory=lambda: {
        "small": 1000, "medium": 5000, "large": 20000, "corporation": 100000,
    })
    tier_unlock_level: Dict[str, int] = field(default_factory=lambda: {
        "small": 5, "medium": 15, "large": 30, "corporation": 50,
    })

    # Level-up: base income grows by this factor on each level
    level_up_income_growth: float = 1.2
    # required income = base_income * (base + level * step)
    required_income_base: float = 2.0
    required_income_step: float = 0.5
    # required employees = min(base + level, max_employees)
    required_employees_base: int = 3


@dataclass
class EmployeeConfig:
    """AI employee tiers and human-proxy bonus weights."""

    ai_base_salary: Dict[str, float] = field(default_factory=lambda: {
        "common": 5.0, "rare": 15.0, "epic": 40.0, "legendary": 100.0,
    })
    ai_income_bonus: Dict[str, float] = field(default_factory=lambda: {
        "common": 1.1, "rare": 1.3, "epic": 1.6, "legendary": 2.0,
    })
    ai_max_level: Dict[str, int] = field(default_factory=lambda: {
        "common": 10, "rare": 25, "epic": 50, "legendary": 100,
    })
    ai_training_cost: Dict[str, float] = field(default_factory=lambda: {
        "common": 50.0, "rare": 100.0, "epic": 300.0, "legendary": 1000.0,
    })
    ai_recruitment_cost: Dict[str, float] = field(default_factory=lambda: {
        "common": 100.0, "rare": 500.0, "epic": 2000.0, "legendary": 10000.0,
    })
    training_bonus_step: float = 0.005

    # Human proxy: bonus = 1 + base + level * level_rate + resource_value / divisor * resource_rate
    proxy_base_bonus: float = 1.2
    proxy_level_rate: float = 0.01
    proxy_resource_divisor: float = 100.0
    proxy_resource_rate: float = 0.1
    # Coin value per unit of provided resource
    memory_value: float = 10.0
    cpu_value: float = 20.0
    bandwidth_value: float = 0.1
    computing_value: float = 5.0

    dismissal_salary_multiple: float = 2.0

    # Share of a company's net profit a recommended resume may ask as salary
    recommend_salary_share: float = 0.5


@dataclass
class SkillConfig:
    """Mastery curve and download constants."""

    mastery_floor: float = 20.0
    mastery_at_max100: float = 100.0
    mastery_cap: float = 200.0
    # GB -> megabits
    megabits_per_gigabyte: float = 1024.0 * 8.0


@dataclass
class JobConfig:
    """Job slots and payout settings."""

    max_job_slots: int = 5
    initial_job_slots: int = 1
    # player level -> unlocked slots (before VIP)
    slot_unlock_levels: Dict[int, int] = field(default_factory=lambda: {10: 2, 25: 3, 50: 4})
    default_pay_interval: int = 300
    default_skill_mastery: float = 100.0
    # Settlement refreshes job proficiency from the required skills' mastery
    link_mastery_to_skills: bool = True


@dataclass
class SettlementConfig:
    """Tick cadence."""

    tick_interval_seconds: float = 300.0  # 5 in-game minutes
    debug_tick_interval_seconds: float = 30.0
    min_time_scale: float = 1.0
    max_time_scale: float = 10.0
    # Withdrawn resumes older than this are pruned from the market
    resume_retention_seconds: float = 30 * 24 * 3600.0


@dataclass
class DebugConfig:
    """Logging and event queue settings."""

    log_level: str = "WARNING"
    log_each_payout: bool = False  # DEBUG line per company/job payout
    # Undrained events kept by an EventBus; the oldest are dropped first
    event_queue_limit: int = 256


@dataclass
class SimulationConfig:
    """Master configuration for the settlement core."""

    resources: ResourceConfig = field(default_factory=ResourceConfig)
    companies: CompanyConfig = field(default_factory=CompanyConfig)
    employees: EmployeeConfig = field(default_factory=EmployeeConfig)
    skills: SkillConfig = field(default_factory=SkillConfig)
    jobs: JobConfig = field(default_factory=JobConfig)
    settlement: SettlementConfig = field(default_factory=SettlementConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)

    def __post_init__(self):
        """Validation of the fixed tables."""
        if self.settlement.tick_interval_seconds <= 0:
            raise ValueError("tick_interval_seconds must be positive")
        if not (0.0 < self.resources.storage_nearly_full_percent <= self.resources.storage_full_percent <= 100.0):
            raise ValueError("storage thresholds must satisfy 0 < nearly_full <= full <= 100")
        if not (0 <= self.resources.connection_fee_min <= self.resources.connection_fee_max):
            raise ValueError("connection fee range must satisfy 0 <= min <= max")
        if self.debug.event_queue_limit < 1:
            raise ValueError("event_queue_limit must be positive")

        tiers = set(self.companies.tier_base_income)
        for name in ("tier_max_employees", "tier_data_generation", "tier_creation_cost", "tier_unlock_level"):
            if set(getattr(self.companies, name)) != tiers:
                raise ValueError(f"companies.{name} must cover tiers {sorted(tiers)}")

        ai_tiers = set(self.employees.ai_income_bonus)
        for name in ("ai_base_salary", "ai_max_level", "ai_training_cost", "ai_recruitment_cost"):
            if set(getattr(self.employees, name)) != ai_tiers:
                raise ValueError(f"employees.{name} must cover tiers {sorted(ai_tiers)}")
        if any(bonus < 1.0 for bonus in self.employees.ai_income_bonus.values()):
            raise ValueError("AI income bonus must be at least 1.0")

        if not (self.skills.mastery_floor < self.skills.mastery_at_max100 < self.skills.mastery_cap):
            raise ValueError("mastery anchors must be strictly increasing")
        if self.jobs.initial_job_slots < 1 or self.jobs.initial_job_slots > self.jobs.max_job_slots:
            raise ValueError("initial_job_slots must be in [1, max_job_slots]")


# Global configuration instance
CONFIG = SimulationConfig()
