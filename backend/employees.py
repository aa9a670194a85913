"""
Employee Model

One Employee record covers both worker kinds. The `kind` tag selects which
profile payload is present: AI workers carry a tier/level/training profile,
human proxies carry the external player's level and the resources they lend
to the company. Formulas only branch on the tag where they differ (the
income bonus).
"""

import random
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from config import CONFIG
from resources import ProvidedResources


class EmployeeKind(str, Enum):
    AI = "ai"
    HUMAN_PROXY = "human_proxy"


class AITier(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


_AI_NAME_PREFIXES = ("Data", "Cyber", "Virtual", "Smart", "Quantum")
_AI_NAME_SUFFIXES = ("Assistant", "Engineer", "Expert", "Master", "Elite")


def new_id() -> str:
    return uuid.uuid4().hex


def human_proxy_bonus(level: int, resources: ProvidedResources) -> float:
    """
    Income bonus of a human proxy (also quoted on resumes).

    bonus = 1 + 1.2 + level * 0.01 + (resource_value / 100) * 0.1
    """
    cfg = CONFIG.employees
    level_bonus = level * cfg.proxy_level_rate
    resource_bonus = (resources.resource_value() / cfg.proxy_resource_divisor) * cfg.proxy_resource_rate
    return 1.0 + cfg.proxy_base_bonus + level_bonus + resource_bonus


def recruitment_cost(tier: AITier) -> float:
    return CONFIG.employees.ai_recruitment_cost[tier.value]


def generate_ai_name(rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    prefix = rng.choice(_AI_NAME_PREFIXES)
    suffix = rng.choice(_AI_NAME_SUFFIXES)
    return f"{prefix}{suffix}-{rng.randint(1000, 9999)}"


@dataclass(slots=True)
class AIProfile:
    tier: AITier
    level: int = 1
    max_level: int = 10
    training_cost_per_level: float = 50.0

    @classmethod
    def for_tier(cls, tier: AITier) -> "AIProfile":
        cfg = CONFIG.employees
        return cls(
            tier=tier,
            max_level=cfg.ai_max_level[tier.value],
            training_cost_per_level=cfg.ai_training_cost[tier.value],
        )


@dataclass(slots=True)
class HumanProxyProfile:
    linked_player_id: str
    proxy_level: int
    provided: ProvidedResources
    resume_id: Optional[str] = None


@dataclass(slots=True)
class Employee:
    """
    A worker on a company roster.

    Shared interface: salary (cost per settlement) and income_bonus (factor
    applied to company income, never below 1.0).
    """

    employee_id: str
    name: str
    kind: EmployeeKind
    salary: float
    income_bonus: float
    hired_at: float = 0.0
    ai: Optional[AIProfile] = None
    proxy: Optional[HumanProxyProfile] = None

    def __post_init__(self):
        """Validate invariants after initialization."""
        if self.salary < 0:
            raise ValueError(f"salary cannot be negative, got {self.salary}")
        if self.income_bonus < 1.0:
            raise ValueError(f"income_bonus must be at least 1.0, got {self.income_bonus}")
        if self.kind is EmployeeKind.AI:
            if self.ai is None or self.proxy is not None:
                raise ValueError("AI employee requires an AI profile and no proxy profile")
            if not (1 <= self.ai.level <= self.ai.max_level):
                raise ValueError(
                    f"AI level must be in [1, {self.ai.max_level}], got {self.ai.level}"
                )
        else:
            if self.proxy is None or self.ai is not None:
                raise ValueError("Human proxy requires a proxy profile and no AI profile")
            if self.proxy.proxy_level < 1:
                raise ValueError(f"proxy_level must be at least 1, got {self.proxy.proxy_level}")

    @classmethod
    def create_ai(
        cls,
        tier: AITier,
        name: Optional[str] = None,
        now: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> "Employee":
        """New AI worker at level 1 with the tier's salary and base bonus."""
        cfg = CONFIG.employees
        return cls(
            employee_id=new_id(),
            name=name or generate_ai_name(rng),
            kind=EmployeeKind.AI,
            salary=cfg.ai_base_salary[tier.value],
            income_bonus=cfg.ai_income_bonus[tier.value],
            hired_at=time.time() if now is None else now,
            ai=AIProfile.for_tier(tier),
        )

    @classmethod
    def create_human_proxy(
        cls,
        linked_player_id: str,
        name: str,
        level: int,
        provided: ProvidedResources,
        salary: float,
        resume_id: Optional[str] = None,
        now: Optional[float] = None,
    ) -> "Employee":
        """New proxy worker; the bonus comes from level and lent resources."""
        return cls(
            employee_id=new_id(),
            name=name,
            kind=EmployeeKind.HUMAN_PROXY,
            salary=salary,
            income_bonus=human_proxy_bonus(level, provided),
            hired_at=time.time() if now is None else now,
            proxy=HumanProxyProfile(
                linked_player_id=linked_player_id,
                proxy_level=level,
                provided=provided,
                resume_id=resume_id,
            ),
        )

    @property
    def is_ai(self) -> bool:
        return self.kind is EmployeeKind.AI

    @property
    def level(self) -> int:
        return self.ai.level if self.is_ai else self.proxy.proxy_level

    def can_train(self) -> bool:
        return self.is_ai and self.ai.level < self.ai.max_level

    def training_cost(self) -> float:
        return self.ai.training_cost_per_level if self.is_ai else 0.0

    def train(self) -> bool:
        """Raise an AI worker one level (+0.005 bonus). False at max level or for proxies."""
        if not self.can_train():
            return False
        self.ai.level += 1
        self.income_bonus += CONFIG.employees.training_bonus_step
        return True

    def dismissal_compensation(self) -> float:
        # Same for both kinds.
        return self.salary * CONFIG.employees.dismissal_salary_multiple

    def recalculate_bonus(self) -> float:
        """Proxy bonus is always derived from level and resources; AI bonus is kept."""
        if not self.is_ai:
            self.income_bonus = human_proxy_bonus(self.proxy.proxy_level, self.proxy.provided)
        return self.income_bonus

    def to_dict(self) -> Dict[str, object]:
        """
        Serialize all fields to basic Python types.

        Returns:
            Dictionary representation of the employee
        """
        data: Dict[str, object] = {
            "employee_id": self.employee_id,
            "name": self.name,
            "kind": self.kind.value,
            "salary": self.salary,
            "income_bonus": self.income_bonus,
            "hired_at": self.hired_at,
        }
        if self.ai is not None:
            data["ai"] = {
                "tier": self.ai.tier.value,
                "level": self.ai.level,
                "max_level": self.ai.max_level,
                "training_cost_per_level": self.ai.training_cost_per_level,
            }
        if self.proxy is not None:
            data["proxy"] = {
                "linked_player_id": self.proxy.linked_player_id,
                "proxy_level": self.proxy.proxy_level,
                "provided": self.proxy.provided.to_dict(),
                "resume_id": self.proxy.resume_id,
            }
        return data
