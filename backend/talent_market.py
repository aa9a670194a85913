"""
Talent Market

Players publish resumes offering their resources to other players'
companies as human proxies. A resume quotes the same income bonus the proxy
would bring once hired, always derived from level and offered resources.

Lifecycle: Available -> Hired (one company at a time) -> Available again when
dismissed, or Available -> Withdrawn. A hired resume cannot be withdrawn.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

from config import CONFIG
from employees import AITier, human_proxy_bonus, new_id, recruitment_cost
from events import EventBus, EventType
from resources import ProvidedResources
from results import ActionResult

if TYPE_CHECKING:
    from company import Company

logger = logging.getLogger(__name__)


class ResumeStatus(str, Enum):
    AVAILABLE = "available"
    HIRED = "hired"
    WITHDRAWN = "withdrawn"


@dataclass(slots=True)
class Resume:
    resume_id: str
    player_id: str
    player_name: str
    player_level: int
    offered_resources: ProvidedResources
    expected_salary: float
    posted_at: float = 0.0
    status: ResumeStatus = ResumeStatus.AVAILABLE
    employed_by_company_id: Optional[str] = None
    hired_at: Optional[float] = None
    income_bonus: float = field(init=False, default=1.0)

    def __post_init__(self):
        self.recalculate_bonus()

    def recalculate_bonus(self) -> float:
        self.income_bonus = human_proxy_bonus(self.player_level, self.offered_resources)
        return self.income_bonus

    @property
    def is_available(self) -> bool:
        return self.status is ResumeStatus.AVAILABLE

    def is_valid(self) -> bool:
        """Named player, level >= 1, salary >= 0 and at least one resource offered."""
        if not self.player_id or not self.player_name:
            return False
        if self.player_level < 1 or self.expected_salary < 0:
            return False
        return not self.offered_resources.is_empty()

    def can_be_hired(self) -> bool:
        return self.is_available and self.is_valid()

    def cost_effectiveness(self) -> float:
        """Bonus excess per coin of salary; 0 for unpaid resumes."""
        if self.expected_salary <= 0:
            return 0.0
        return (self.income_bonus - 1.0) / self.expected_salary

    def summary(self) -> str:
        return (
            f"{self.player_name} (Lv.{self.player_level}) | salary {self.expected_salary:g} "
            f"| bonus +{(self.income_bonus - 1.0) * 100:.1f}%"
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "resume_id": self.resume_id,
            "player_id": self.player_id,
            "player_name": self.player_name,
            "player_level": self.player_level,
            "offered_resources": self.offered_resources.to_dict(),
            "expected_salary": self.expected_salary,
            "income_bonus": self.income_bonus,
            "posted_at": self.posted_at,
            "status": self.status.value,
            "employed_by_company_id": self.employed_by_company_id,
            "hired_at": self.hired_at,
        }


class TalentMarket:
    """Resumes of all players, with at most one Available resume per player."""

    def __init__(self, bus: Optional[EventBus] = None):
        self.bus = bus or EventBus()
        self.resumes: Dict[str, Resume] = {}
        self._by_player: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Player's own resume
    # ------------------------------------------------------------------

    def publish(
        self,
        player_id: str,
        player_name: str,
        player_level: int,
        offered: ProvidedResources,
        expected_salary: float,
        now: Optional[float] = None,
    ) -> ActionResult:
        current = self.resume_of(player_id)
        if current is not None and current.status is not ResumeStatus.WITHDRAWN:
            return ActionResult.failure(
                f"Player {player_id} already has a {current.status.value} resume"
            )
        resume = Resume(
            resume_id=new_id(),
            player_id=player_id,
            player_name=player_name,
            player_level=player_level,
            offered_resources=offered,
            expected_salary=expected_salary,
            posted_at=time.time() if now is None else now,
        )
        if not resume.is_valid():
            return ActionResult.failure("Resume needs a name, level >= 1, salary >= 0 and some resources")

        self.resumes[resume.resume_id] = resume
        self._by_player[player_id] = resume.resume_id
        self.bus.emit(EventType.RESUME_PUBLISHED, resume_id=resume.resume_id,
                      player_id=player_id, income_bonus=resume.income_bonus)
        logger.info("Resume published: %s", resume.summary())
        return ActionResult.success(resume_id=resume.resume_id, income_bonus=resume.income_bonus)

    def withdraw(self, player_id: str) -> ActionResult:
        resume = self.resume_of(player_id)
        if resume is None:
            return ActionResult.failure(f"Player {player_id} has no resume")
        if resume.status is ResumeStatus.HIRED:
            return ActionResult.failure("A hired resume cannot be withdrawn")
        if resume.status is ResumeStatus.WITHDRAWN:
            return ActionResult.failure("Resume is already withdrawn")
        resume.status = ResumeStatus.WITHDRAWN
        self.bus.emit(EventType.RESUME_WITHDRAWN, resume_id=resume.resume_id, player_id=player_id)
        return ActionResult.success(resume_id=resume.resume_id)

    def update(
        self,
        player_id: str,
        offered: ProvidedResources,
        expected_salary: float,
        now: Optional[float] = None,
    ) -> ActionResult:
        """Change an Available resume's offer; the bonus is re-derived."""
        resume = self.resume_of(player_id)
        if resume is None:
            return ActionResult.failure(f"Player {player_id} has no resume")
        if not resume.is_available:
            return ActionResult.failure(f"Only available resumes can be updated, this one is {resume.status.value}")
        if offered.is_empty() or expected_salary < 0:
            return ActionResult.failure("Resume needs some resources and a salary >= 0")
        resume.offered_resources = offered
        resume.expected_salary = expected_salary
        resume.recalculate_bonus()
        resume.posted_at = time.time() if now is None else now
        return ActionResult.success(resume_id=resume.resume_id, income_bonus=resume.income_bonus)

    def resume_of(self, player_id: str) -> Optional[Resume]:
        resume_id = self._by_player.get(player_id)
        return self.resumes.get(resume_id) if resume_id else None

    def get_resume(self, resume_id: str) -> Optional[Resume]:
        return self.resumes.get(resume_id)

    def add_resume(self, resume: Resume) -> None:
        """Insert a stored resume; the newest one per player becomes their current resume."""
        self.resumes[resume.resume_id] = resume
        current = self.resume_of(resume.player_id)
        if current is None or current.posted_at <= resume.posted_at:
            self._by_player[resume.player_id] = resume.resume_id

    # ------------------------------------------------------------------
    # Hiring hooks (called by CompanyManager)
    # ------------------------------------------------------------------

    def mark_hired(self, resume_id: str, company_id: str, now: Optional[float] = None) -> bool:
        resume = self.resumes.get(resume_id)
        if resume is None or not resume.is_available:
            return False
        resume.status = ResumeStatus.HIRED
        resume.employed_by_company_id = company_id
        resume.hired_at = time.time() if now is None else now
        self.bus.emit(EventType.RESUME_HIRED, resume_id=resume_id, company_id=company_id)
        return True

    def release(self, resume_id: str, now: Optional[float] = None) -> bool:
        """Return a hired resume to the market after dismissal."""
        resume = self.resumes.get(resume_id)
        if resume is None or resume.status is not ResumeStatus.HIRED:
            return False
        resume.status = ResumeStatus.AVAILABLE
        resume.employed_by_company_id = None
        resume.hired_at = None
        resume.posted_at = time.time() if now is None else now
        return True

    # ------------------------------------------------------------------
    # Browsing
    # ------------------------------------------------------------------

    def available_resumes(self) -> List[Resume]:
        return [r for r in self.resumes.values() if r.is_available]

    def search(self, min_level: int = 0, max_level: int = 0, max_salary: float = 0.0) -> List[Resume]:
        """Available resumes filtered by level range and salary ceiling (0 = no limit)."""
        results = self.available_resumes()
        if min_level > 0:
            results = [r for r in results if r.player_level >= min_level]
        if max_level > 0:
            results = [r for r in results if r.player_level <= max_level]
        if max_salary > 0:
            results = [r for r in results if r.expected_salary <= max_salary]
        return results

    def by_cost_effectiveness(self) -> List[Resume]:
        return sorted(self.available_resumes(), key=lambda r: r.cost_effectiveness(), reverse=True)

    def by_income_bonus(self) -> List[Resume]:
        return sorted(self.available_resumes(), key=lambda r: r.income_bonus, reverse=True)

    def by_salary(self, ascending: bool = True) -> List[Resume]:
        return sorted(self.available_resumes(), key=lambda r: r.expected_salary, reverse=not ascending)

    def recommend(self, company: "Company", max_results: int = 5) -> List[Resume]:
        """Best-value resumes whose salary fits in the configured share of the company's net profit."""
        budget = company.net_profit * CONFIG.employees.recommend_salary_share
        candidates = [r for r in self.available_resumes() if r.expected_salary <= budget]
        candidates.sort(key=lambda r: r.cost_effectiveness(), reverse=True)
        return candidates[:max_results]

    def ai_market(self) -> List[Dict[str, object]]:
        """Recruitment terms of each AI tier."""
        cfg = CONFIG.employees
        return [
            {
                "tier": tier.value,
                "recruitment_cost": recruitment_cost(tier),
                "salary": cfg.ai_base_salary[tier.value],
                "income_bonus": cfg.ai_income_bonus[tier.value],
                "max_level": cfg.ai_max_level[tier.value],
            }
            for tier in AITier
        ]

    def prune(self, now: Optional[float] = None) -> int:
        """Drop withdrawn resumes posted longer ago than the retention window."""
        now = time.time() if now is None else now
        cutoff = now - CONFIG.settlement.resume_retention_seconds
        stale = [
            rid for rid, r in self.resumes.items()
            if r.status is ResumeStatus.WITHDRAWN and r.posted_at < cutoff
        ]
        for rid in stale:
            resume = self.resumes.pop(rid)
            if self._by_player.get(resume.player_id) == rid:
                del self._by_player[resume.player_id]
        if stale:
            logger.info("Pruned %d stale resumes", len(stale))
        return len(stale)
