"""
Unit tests for the company ledger and CompanyManager

Tests cover:
- Financial aggregation over the roster
- Roster bounds and dismissal rules
- Level-up eligibility and thresholds
- Settlement payouts and shortfalls
- Hiring human proxies from the talent market
"""

import logging

import pytest

from company import Company, CompanyManager, CompanyTier
from employees import AITier, Employee
from events import EventBus, EventType
from resources import ProvidedResources, ResourcePool
from talent_market import ResumeStatus, TalentMarket


@pytest.fixture
def manager():
    pool = ResourcePool.for_identity()
    pool.earn_currency(100_000)
    bus = EventBus()
    return CompanyManager("owner", pool, bus, TalentMarket(bus))


@pytest.fixture
def company_id(manager):
    result = manager.create_company("Acme", CompanyTier.SMALL, player_level=5, now=0.0)
    assert result
    return result.data["company_id"]


class TestLedger:
    """Company financials"""

    def test_small_company_with_common_ai(self):
        """base 50, one Common AI: income 55, expenses 5, net 50"""
        company = Company.create("Acme", CompanyTier.SMALL, "owner", now=0.0)
        assert company.base_income == 50.0
        assert company.max_employees == 5

        company.add_employee(Employee.create_ai(AITier.COMMON))

        assert company.total_income == pytest.approx(55.0)
        assert company.total_expenses == 5.0
        assert company.net_profit == pytest.approx(50.0)

    def test_recalculation_is_idempotent(self):
        company = Company.create("Acme", CompanyTier.MEDIUM, "owner")
        company.add_employee(Employee.create_ai(AITier.RARE))
        company.add_employee(Employee.create_ai(AITier.EPIC))

        company.recalculate_financials()
        first = (company.total_income, company.total_expenses, company.net_profit)
        company.recalculate_financials()
        second = (company.total_income, company.total_expenses, company.net_profit)

        assert first == second

    def test_bonuses_add_their_excess(self):
        company = Company.create("Acme", CompanyTier.SMALL, "owner")
        company.add_employee(Employee.create_ai(AITier.LEGENDARY))
        company.add_employee(Employee.create_ai(AITier.LEGENDARY))

        # 1 + (2.0 - 1) + (2.0 - 1) = 3, not 2.0 * 2.0 = 4
        assert company.total_income == pytest.approx(150.0)

    def test_empty_company_earns_base_income(self):
        company = Company.create("Acme", CompanyTier.LARGE, "owner")

        assert company.total_income == 500.0
        assert company.net_profit == 500.0

    def test_settle_accumulates_income(self):
        company = Company.create("Acme", CompanyTier.SMALL, "owner")
        company.add_employee(Employee.create_ai(AITier.COMMON))

        net = company.settle()
        company.settle()

        assert net == pytest.approx(50.0)
        assert company.cumulative_income == pytest.approx(110.0)

    def test_roster_cannot_exceed_max(self):
        with pytest.raises(ValueError, match="exceeds max_employees"):
            Company(
                company_id="c1", name="Acme", tier=CompanyTier.SMALL, owner_id="owner",
                max_employees=1,
                employees=[Employee.create_ai(AITier.COMMON), Employee.create_ai(AITier.COMMON)],
            )


class TestLevelUp:
    """can_upgrade / upgrade"""

    def test_initial_thresholds(self):
        company = Company.create("Acme", CompanyTier.SMALL, "owner")

        assert company.required_income_for_next_level == pytest.approx(125.0)
        assert company.required_employees_for_next_level == 4

    def test_upgrade_when_eligible(self):
        company = Company.create("Acme", CompanyTier.SMALL, "owner")
        for _ in range(4):
            company.add_employee(Employee.create_ai(AITier.LEGENDARY))
        assert company.can_upgrade()

        assert company.upgrade()

        assert company.level == 2
        assert company.base_income == pytest.approx(60.0)
        assert company.required_income_for_next_level == pytest.approx(180.0)
        assert company.required_employees_for_next_level == 5

    def test_needs_enough_employees(self):
        company = Company.create("Acme", CompanyTier.SMALL, "owner")
        for _ in range(3):
            company.add_employee(Employee.create_ai(AITier.LEGENDARY))

        assert company.total_income >= company.required_income_for_next_level
        assert not company.can_upgrade()
        assert company.upgrade() is False
        assert company.level == 1

    def test_required_employees_capped_by_roster_size(self):
        company = Company(
            company_id="c1", name="Acme", tier=CompanyTier.SMALL, owner_id="owner", level=9,
        )

        assert company.required_employees_for_next_level == 5


class TestCompanyManager:
    """Player-facing actions"""

    def test_create_company(self, manager, company_id):
        company = manager.get_company(company_id)

        assert company.owner_id == "owner"
        assert manager.pool.virtual_coin == 100_100 - 1000
        assert manager.bus.of_type(EventType.COMPANY_CREATED)

    def test_create_requires_level(self, manager):
        result = manager.create_company("Acme", CompanyTier.MEDIUM, player_level=14)

        assert not result
        assert manager.list_companies() == []

    def test_create_requires_coins(self):
        manager = CompanyManager("owner", ResourcePool.for_identity(), EventBus())

        result = manager.create_company("Acme", CompanyTier.SMALL, player_level=5)

        assert not result
        assert manager.pool.virtual_coin == 100

    def test_hire_ai_charges_recruitment(self, manager, company_id):
        coins = manager.pool.virtual_coin

        result = manager.hire_ai_employee(company_id, AITier.RARE)

        assert result
        assert manager.pool.virtual_coin == coins - 500
        assert manager.get_company(company_id).employee_count == 1

    def test_hire_into_full_roster_fails(self, manager, company_id):
        for _ in range(5):
            assert manager.hire_ai_employee(company_id, AITier.COMMON)
        company = manager.get_company(company_id)
        roster = list(company.employees)
        coins = manager.pool.virtual_coin

        result = manager.hire_ai_employee(company_id, AITier.COMMON)

        assert not result
        assert company.employees == roster
        assert manager.pool.virtual_coin == coins

    def test_dismiss_pays_double_salary(self, manager, company_id):
        employee_id = manager.hire_ai_employee(company_id, AITier.EPIC).data["employee_id"]
        coins = manager.pool.virtual_coin

        result = manager.dismiss_employee(company_id, employee_id)

        assert result
        assert result.data["compensation"] == 80
        assert manager.pool.virtual_coin == coins - 80
        assert manager.get_company(company_id).total_expenses == 0.0

    def test_dismiss_absent_employee_fails(self, manager, company_id):
        manager.hire_ai_employee(company_id, AITier.COMMON)
        company = manager.get_company(company_id)
        expenses = company.total_expenses

        result = manager.dismiss_employee(company_id, "missing")

        assert not result
        assert company.total_expenses == expenses

    def test_dismiss_unaffordable_fails(self, manager, company_id):
        employee_id = manager.hire_ai_employee(company_id, AITier.LEGENDARY).data["employee_id"]
        manager.pool.virtual_coin = 150

        result = manager.dismiss_employee(company_id, employee_id)

        assert not result
        assert manager.get_company(company_id).employee_count == 1
        assert manager.pool.virtual_coin == 150

    def test_train_employee(self, manager, company_id):
        employee_id = manager.hire_ai_employee(company_id, AITier.COMMON).data["employee_id"]
        company = manager.get_company(company_id)
        income = company.total_income
        coins = manager.pool.virtual_coin

        result = manager.train_employee(company_id, employee_id)

        assert result
        assert manager.pool.virtual_coin == coins - 50
        assert company.total_income == pytest.approx(income + 50.0 * 0.005)

    def test_train_at_max_level_charges_nothing(self, manager, company_id):
        employee_id = manager.hire_ai_employee(company_id, AITier.COMMON).data["employee_id"]
        for _ in range(9):
            manager.train_employee(company_id, employee_id)
        coins = manager.pool.virtual_coin

        result = manager.train_employee(company_id, employee_id)

        assert not result
        assert "max level" in result.reason
        assert manager.pool.virtual_coin == coins

    def test_upgrade_company_not_eligible(self, manager, company_id):
        result = manager.upgrade_company(company_id)

        assert not result
        assert manager.get_company(company_id).level == 1

    def test_upgrade_company(self, manager, company_id):
        for _ in range(4):
            manager.hire_ai_employee(company_id, AITier.LEGENDARY)

        assert manager.upgrade_company(company_id)
        assert manager.bus.of_type(EventType.COMPANY_UPGRADED)

    def test_remove_company(self, manager, company_id):
        assert manager.remove_company(company_id)
        assert manager.get_company(company_id) is None
        assert not manager.remove_company(company_id)


class TestSettlement:
    """settle_company"""

    def test_profit_paid_to_owner(self, manager, company_id):
        manager.hire_ai_employee(company_id, AITier.COMMON)
        coins = manager.pool.virtual_coin
        storage = manager.pool.storage_used

        result = manager.settle_company(manager.get_company(company_id))

        assert result["coins_delta"] == 50
        assert result["data_stored"] is True
        assert manager.pool.virtual_coin == coins + 50
        assert manager.pool.storage_used == storage + 0.5
        assert manager.bus.of_type(EventType.INCOME_SETTLED)

    def test_loss_charged_when_affordable(self):
        pool = ResourcePool.for_identity()
        manager = CompanyManager("owner", pool, EventBus())
        company = Company(company_id="c1", name="Loss", tier=CompanyTier.SMALL, owner_id="owner",
                          base_income=1.0)
        company.add_employee(Employee.create_ai(AITier.LEGENDARY))

        result = manager.settle_company(company)

        assert result["coins_delta"] == -98
        assert pool.virtual_coin == 2

    def test_loss_shortfall_is_logged(self, caplog):
        pool = ResourcePool.for_identity()
        pool.try_spend_currency(50)
        manager = CompanyManager("owner", pool, EventBus())
        company = Company(company_id="c1", name="Loss", tier=CompanyTier.SMALL, owner_id="owner",
                          base_income=1.0)
        company.add_employee(Employee.create_ai(AITier.LEGENDARY))

        with caplog.at_level(logging.WARNING, logger="company"):
            result = manager.settle_company(company)

        assert result["coins_delta"] == 0
        assert pool.virtual_coin == 50
        assert "loss not charged" in caplog.text


class TestHumanProxyHiring:
    """Hiring from the talent market"""

    def publish(self, manager, salary=20.0):
        result = manager.talent_market.publish(
            "p2", "Remote", 15,
            ProvidedResources(memory=2.0, cpu=1.0, bandwidth=100.0, computing=10.0),
            salary, now=0.0,
        )
        return result.data["resume_id"]

    def test_hire_from_resume(self, manager, company_id):
        resume_id = self.publish(manager)

        result = manager.hire_from_resume(company_id, resume_id)

        assert result
        resume = manager.talent_market.get_resume(resume_id)
        assert resume.status is ResumeStatus.HIRED
        assert resume.employed_by_company_id == company_id
        company = manager.get_company(company_id)
        assert company.total_income == pytest.approx(50.0 * 2.45)
        assert company.total_expenses == 20.0

    def test_resume_hired_only_once(self, manager, company_id):
        resume_id = self.publish(manager)
        manager.hire_from_resume(company_id, resume_id)

        result = manager.hire_from_resume(company_id, resume_id)

        assert not result
        assert manager.get_company(company_id).employee_count == 1

    def test_dismissal_returns_resume_to_market(self, manager, company_id):
        resume_id = self.publish(manager)
        employee_id = manager.hire_from_resume(company_id, resume_id).data["employee_id"]

        result = manager.dismiss_employee(company_id, employee_id)

        assert result.data["compensation"] == 40
        assert manager.talent_market.get_resume(resume_id).status is ResumeStatus.AVAILABLE

    def test_removing_company_frees_proxies(self, manager, company_id):
        resume_id = self.publish(manager)
        manager.hire_from_resume(company_id, resume_id)

        manager.remove_company(company_id)

        assert manager.talent_market.get_resume(resume_id).is_available

    def test_statistics(self, manager, company_id):
        manager.hire_ai_employee(company_id, AITier.COMMON)

        stats = manager.statistics()

        assert stats["company_count"] == 1
        assert stats["employee_count"] == 1
        assert stats["net_profit"] == pytest.approx(50.0)
