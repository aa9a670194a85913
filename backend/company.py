"""
Company Ledger

A company aggregates its employee roster into income, expenses and net
profit. The derived fields are caches of (base_income, employees) and are
recomputed after every roster change; nothing else writes them.

CompanyManager holds one player's companies and performs the player-facing
actions (create, hire, dismiss, train, upgrade, remove) plus the per-tick
settlement of a single company. Every action validates first and mutates
only when all checks pass.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

from config import CONFIG
from employees import AITier, Employee, new_id, recruitment_cost
from events import EventBus, EventType
from resources import ResourcePool, to_coins
from results import ActionResult

if TYPE_CHECKING:
    from talent_market import TalentMarket

logger = logging.getLogger(__name__)


class CompanyTier(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    CORPORATION = "corporation"


def creation_cost(tier: CompanyTier) -> int:
    return CONFIG.companies.tier_creation_cost[tier.value]


def unlock_level(tier: CompanyTier) -> int:
    return CONFIG.companies.tier_unlock_level[tier.value]


@dataclass(slots=True)
class Company:
    """
    One company and its roster.

    total_income, total_expenses, net_profit and the next-level thresholds
    are derived from base_income, level and employees.
    """

    company_id: str
    name: str
    tier: CompanyTier
    owner_id: str
    created_at: float = 0.0
    level: int = 1
    base_income: float = 50.0
    max_employees: int = 5
    data_generation: float = 0.5  # GB per settlement
    employees: List[Employee] = field(default_factory=list)
    cumulative_income: float = 0.0

    # Derived
    total_income: float = 0.0
    total_expenses: float = 0.0
    net_profit: float = 0.0
    required_income_for_next_level: float = 0.0
    required_employees_for_next_level: int = 0

    def __post_init__(self):
        """Validate invariants and rebuild the derived fields."""
        if self.level < 1:
            raise ValueError(f"level must be at least 1, got {self.level}")
        if self.base_income < 0:
            raise ValueError(f"base_income cannot be negative, got {self.base_income}")
        if self.max_employees < 1:
            raise ValueError(f"max_employees must be positive, got {self.max_employees}")
        if len(self.employees) > self.max_employees:
            raise ValueError(
                f"roster of {len(self.employees)} exceeds max_employees {self.max_employees}"
            )
        if self.cumulative_income < 0:
            raise ValueError(f"cumulative_income cannot be negative, got {self.cumulative_income}")
        self._update_level_requirements()
        self.recalculate_financials()

    @classmethod
    def create(cls, name: str, tier: CompanyTier, owner_id: str, now: Optional[float] = None) -> "Company":
        """New level-1 company with the tier's base income, roster size and data rate."""
        cfg = CONFIG.companies
        return cls(
            company_id=new_id(),
            name=name,
            tier=tier,
            owner_id=owner_id,
            created_at=time.time() if now is None else now,
            base_income=cfg.tier_base_income[tier.value],
            max_employees=cfg.tier_max_employees[tier.value],
            data_generation=cfg.tier_data_generation[tier.value],
        )

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def recalculate_financials(self) -> None:
        """
        Rebuild income, expenses and net profit from the roster.

        Bonuses add their excess over 1.0: total_bonus = 1 + sum(bonus - 1).
        """
        self.total_expenses = sum(emp.salary for emp in self.employees)
        total_bonus = 1.0 + sum(emp.income_bonus - 1.0 for emp in self.employees)
        self.total_income = self.base_income * total_bonus
        self.net_profit = self.total_income - self.total_expenses

    def settle(self) -> float:
        """Book one settlement; returns the net profit payable to the owner."""
        self.recalculate_financials()
        self.cumulative_income += self.total_income
        return self.net_profit

    def _update_level_requirements(self) -> None:
        cfg = CONFIG.companies
        self.required_income_for_next_level = self.base_income * (
            cfg.required_income_base + self.level * cfg.required_income_step
        )
        self.required_employees_for_next_level = min(
            cfg.required_employees_base + self.level, self.max_employees
        )

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    @property
    def is_full(self) -> bool:
        return len(self.employees) >= self.max_employees

    @property
    def employee_count(self) -> int:
        return len(self.employees)

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        for employee in self.employees:
            if employee.employee_id == employee_id:
                return employee
        return None

    def add_employee(self, employee: Employee) -> bool:
        if self.is_full:
            return False
        self.employees.append(employee)
        self.recalculate_financials()
        return True

    def remove_employee(self, employee_id: str) -> Optional[Employee]:
        employee = self.get_employee(employee_id)
        if employee is None:
            return None
        self.employees.remove(employee)
        self.recalculate_financials()
        return employee

    # ------------------------------------------------------------------
    # Level
    # ------------------------------------------------------------------

    def can_upgrade(self) -> bool:
        return (
            self.total_income >= self.required_income_for_next_level
            and len(self.employees) >= self.required_employees_for_next_level
        )

    def upgrade(self) -> bool:
        """Level up when eligible: base income grows 20% and thresholds move."""
        if not self.can_upgrade():
            return False
        self.level += 1
        self.base_income *= CONFIG.companies.level_up_income_growth
        self._update_level_requirements()
        self.recalculate_financials()
        return True

    def to_dict(self) -> Dict[str, object]:
        """
        Serialize all fields to basic Python types.

        Returns:
            Dictionary representation of the company state
        """
        return {
            "company_id": self.company_id,
            "name": self.name,
            "tier": self.tier.value,
            "owner_id": self.owner_id,
            "created_at": self.created_at,
            "level": self.level,
            "base_income": self.base_income,
            "max_employees": self.max_employees,
            "data_generation": self.data_generation,
            "employees": [emp.to_dict() for emp in self.employees],
            "total_income": self.total_income,
            "total_expenses": self.total_expenses,
            "net_profit": self.net_profit,
            "cumulative_income": self.cumulative_income,
            "required_income_for_next_level": self.required_income_for_next_level,
            "required_employees_for_next_level": self.required_employees_for_next_level,
        }


class CompanyManager:
    """Player-facing company actions for one owner."""

    def __init__(
        self,
        owner_id: str,
        pool: ResourcePool,
        bus: EventBus,
        talent_market: Optional["TalentMarket"] = None,
    ):
        self.owner_id = owner_id
        self.pool = pool
        self.bus = bus
        self.talent_market = talent_market
        self.companies: Dict[str, Company] = {}

    def get_company(self, company_id: str) -> Optional[Company]:
        return self.companies.get(company_id)

    def list_companies(self) -> List[Company]:
        return list(self.companies.values())

    def create_company(
        self,
        name: str,
        tier: CompanyTier,
        player_level: int,
        now: Optional[float] = None,
    ) -> ActionResult:
        required_level = unlock_level(tier)
        if player_level < required_level:
            return ActionResult.failure(
                f"{tier.value} companies unlock at level {required_level}, player is level {player_level}"
            )
        cost = creation_cost(tier)
        if not self.pool.try_spend_currency(cost):
            return ActionResult.failure(f"Not enough coins: need {cost}, have {self.pool.virtual_coin}")

        company = Company.create(name, tier, self.owner_id, now=now)
        self.companies[company.company_id] = company
        self.bus.emit(EventType.COMPANY_CREATED, company_id=company.company_id,
                      tier=tier.value, cost=cost)
        logger.info("Created %s company %s for %d coins", tier.value, name, cost)
        return ActionResult.success(company_id=company.company_id)

    def hire_ai_employee(
        self,
        company_id: str,
        tier: AITier,
        now: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> ActionResult:
        company = self.companies.get(company_id)
        if company is None:
            return ActionResult.failure(f"Unknown company: {company_id}")
        if company.is_full:
            return ActionResult.failure(f"{company.name} is full ({company.max_employees} employees)")
        cost = to_coins(recruitment_cost(tier))
        if not self.pool.try_spend_currency(cost):
            return ActionResult.failure(f"Not enough coins: need {cost}, have {self.pool.virtual_coin}")

        employee = Employee.create_ai(tier, now=now, rng=rng)
        company.add_employee(employee)
        self._emit_hired(company, employee, cost)
        return ActionResult.success(employee_id=employee.employee_id)

    def hire_from_resume(self, company_id: str, resume_id: str, now: Optional[float] = None) -> ActionResult:
        """Hire a human proxy from an Available resume on the talent market."""
        if self.talent_market is None:
            return ActionResult.failure("No talent market attached")
        company = self.companies.get(company_id)
        if company is None:
            return ActionResult.failure(f"Unknown company: {company_id}")
        if company.is_full:
            return ActionResult.failure(f"{company.name} is full ({company.max_employees} employees)")
        resume = self.talent_market.get_resume(resume_id)
        if resume is None:
            return ActionResult.failure(f"Unknown resume: {resume_id}")
        if not resume.is_available:
            return ActionResult.failure(f"Resume {resume_id} is {resume.status.value}")
        if not resume.is_valid():
            return ActionResult.failure(f"Resume {resume_id} is not valid")

        employee = Employee.create_human_proxy(
            linked_player_id=resume.player_id,
            name=resume.player_name,
            level=resume.player_level,
            provided=resume.offered_resources,
            salary=resume.expected_salary,
            resume_id=resume.resume_id,
            now=now,
        )
        company.add_employee(employee)
        self.talent_market.mark_hired(resume_id, company_id, now=now)
        self._emit_hired(company, employee, 0)
        return ActionResult.success(employee_id=employee.employee_id)

    def _emit_hired(self, company: Company, employee: Employee, cost: int) -> None:
        self.bus.emit(
            EventType.EMPLOYEE_HIRED,
            company_id=company.company_id,
            employee_id=employee.employee_id,
            kind=employee.kind.value,
            cost=cost,
            net_profit=company.net_profit,
        )
        logger.info("%s hired %s (%s)", company.name, employee.name, employee.kind.value)

    def dismiss_employee(self, company_id: str, employee_id: str) -> ActionResult:
        """Remove an employee; the owner pays salary * 2 as compensation."""
        company = self.companies.get(company_id)
        if company is None:
            return ActionResult.failure(f"Unknown company: {company_id}")
        employee = company.get_employee(employee_id)
        if employee is None:
            return ActionResult.failure(f"Employee {employee_id} does not work at {company.name}")
        compensation = to_coins(employee.dismissal_compensation())
        if not self.pool.try_spend_currency(compensation):
            return ActionResult.failure(
                f"Not enough coins for compensation: need {compensation}, have {self.pool.virtual_coin}"
            )

        company.remove_employee(employee_id)
        self._release_resume(employee)
        self.bus.emit(EventType.EMPLOYEE_DISMISSED, company_id=company_id,
                      employee_id=employee_id, compensation=compensation)
        logger.info("%s dismissed %s, paid %d compensation", company.name, employee.name, compensation)
        return ActionResult.success(compensation=compensation)

    def _release_resume(self, employee: Employee) -> None:
        if employee.proxy is None or employee.proxy.resume_id is None or self.talent_market is None:
            return
        self.talent_market.release(employee.proxy.resume_id)

    def train_employee(self, company_id: str, employee_id: str) -> ActionResult:
        company = self.companies.get(company_id)
        if company is None:
            return ActionResult.failure(f"Unknown company: {company_id}")
        employee = company.get_employee(employee_id)
        if employee is None:
            return ActionResult.failure(f"Employee {employee_id} does not work at {company.name}")
        if not employee.is_ai:
            return ActionResult.failure("Only AI employees can be trained")
        if not employee.can_train():
            return ActionResult.failure(f"{employee.name} is already at max level {employee.ai.max_level}")
        cost = to_coins(employee.training_cost())
        if not self.pool.try_spend_currency(cost):
            return ActionResult.failure(f"Not enough coins: need {cost}, have {self.pool.virtual_coin}")

        employee.train()
        company.recalculate_financials()
        self.bus.emit(EventType.EMPLOYEE_TRAINED, company_id=company_id, employee_id=employee_id,
                      level=employee.ai.level, income_bonus=employee.income_bonus, cost=cost)
        return ActionResult.success(level=employee.ai.level, income_bonus=employee.income_bonus)

    def upgrade_company(self, company_id: str) -> ActionResult:
        company = self.companies.get(company_id)
        if company is None:
            return ActionResult.failure(f"Unknown company: {company_id}")
        if not company.can_upgrade():
            return ActionResult.failure(
                f"Needs income {company.required_income_for_next_level:.1f} "
                f"(has {company.total_income:.1f}) and {company.required_employees_for_next_level} "
                f"employees (has {company.employee_count})"
            )
        company.upgrade()
        self.bus.emit(EventType.COMPANY_UPGRADED, company_id=company_id,
                      level=company.level, base_income=company.base_income)
        logger.info("%s upgraded to level %d", company.name, company.level)
        return ActionResult.success(level=company.level)

    def remove_company(self, company_id: str) -> ActionResult:
        """Close a company. Proxies on its roster become available again."""
        company = self.companies.pop(company_id, None)
        if company is None:
            return ActionResult.failure(f"Unknown company: {company_id}")
        for employee in company.employees:
            self._release_resume(employee)
        self.bus.emit(EventType.COMPANY_REMOVED, company_id=company_id)
        return ActionResult.success(company_id=company_id)

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def settle_company(self, company: Company) -> Dict[str, object]:
        """
        Settle one company for the current tick.

        A positive net profit is paid to the owner; a loss is charged when the
        owner can cover it and logged as a shortfall otherwise. The company's
        data is then written to the owner's storage.

        Returns:
            Dict with net_profit, coins_delta and data_stored
        """
        net_profit = company.settle()
        coins = to_coins(net_profit)
        coins_delta = 0
        if coins > 0:
            self.pool.earn_currency(coins)
            coins_delta = coins
        elif coins < 0:
            if self.pool.try_spend_currency(-coins):
                coins_delta = coins
            else:
                logger.warning(
                    "%s lost %d coins but owner only has %d; loss not charged",
                    company.name, -coins, self.pool.virtual_coin,
                )
        if CONFIG.debug.log_each_payout:
            logger.debug("%s settled: net %.1f, coins %+d", company.name, net_profit, coins_delta)

        data_stored = self.pool.generate_data(company.data_generation)
        self.bus.emit(EventType.INCOME_SETTLED, company_id=company.company_id,
                      net_profit=net_profit, coins_delta=coins_delta)
        return {
            "company_id": company.company_id,
            "net_profit": net_profit,
            "coins_delta": coins_delta,
            "data_stored": data_stored,
        }

    def statistics(self) -> Dict[str, float]:
        companies = self.list_companies()
        return {
            "company_count": len(companies),
            "employee_count": sum(c.employee_count for c in companies),
            "total_income": sum(c.total_income for c in companies),
            "total_expenses": sum(c.total_expenses for c in companies),
            "net_profit": sum(c.net_profit for c in companies),
        }
